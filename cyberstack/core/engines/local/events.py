import time
import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Deque, List, Optional, Tuple

logger = logging.getLogger(__name__)


class Consumer(str, Enum):
    TRANSLATOR = 'translator'
    CHATBOT = 'chatbot'


class Action(str, Enum):
    ACTIVATE = 'activate'
    DISPOSE = 'dispose'


@dataclass(frozen=True)
class ModelEvent:
    action: Action
    consumer: Consumer
    timestamp: float = field(default_factory=time.time)

    @property
    def name(self) -> str:
        return f"{self.action.value}-{self.consumer.value}"


Handler = Callable[[ModelEvent], None]


class ModelEventBus:
    """
    Typed publish/subscribe channel between the coordinator and the model
    consumers. Delivery is synchronous and in subscription order, so every
    handler has returned when publish() returns. A failing handler is logged
    and does not stop delivery to the others.
    """

    def __init__(self, history_size: int = 50):
        self._subscribers: List[Tuple[Optional[Consumer], Handler]] = []
        self._lock = threading.Lock()
        self.history: Deque[ModelEvent] = deque(maxlen=history_size)

    def subscribe(self, handler: Handler, consumer: Optional[Consumer] = None) -> Callable[[], None]:
        """
        Registers `handler` for events addressed to `consumer` (all events if None).
        Returns a callable that removes the subscription.
        """
        entry = (consumer, handler)
        with self._lock:
            self._subscribers.append(entry)

        def unsubscribe():
            with self._lock:
                if entry in self._subscribers:
                    self._subscribers.remove(entry)

        return unsubscribe

    def publish(self, event: ModelEvent) -> None:
        with self._lock:
            targets = [h for c, h in self._subscribers if c is None or c == event.consumer]
            self.history.append(event)

        logger.info(f"[ModelBus] {event.name} -> {len(targets)} subscriber(s)")
        for handler in targets:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"[ModelBus] Handler failed for {event.name}: {e}")
