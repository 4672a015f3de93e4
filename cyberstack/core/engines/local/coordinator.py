import time
import logging
import threading
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Callable, Dict, Optional, Sequence

from cyberstack.core.engines.local.diagnostics import CapabilityResult
from cyberstack.core.engines.local.events import Action, Consumer, ModelEvent, ModelEventBus

logger = logging.getLogger(__name__)


class ActiveConsumer(str, Enum):
    NONE = 'none'
    PRELOADING = 'preloading'
    TRANSLATOR = 'translator'
    CHATBOT = 'chatbot'


@dataclass(frozen=True)
class CoordinatorState:
    active_consumer: ActiveConsumer
    has_sufficient_resources: bool
    preload_complete: bool

    def to_dict(self) -> Dict:
        data = asdict(self)
        data['active_consumer'] = self.active_consumer.value
        return data


class ModelCoordinator:
    """
    Arbiter for the single local inference slot shared by the translator and
    the chat assistant.

    none -> preloading      start(), only when the capability probe passed
    preloading -> translator  tokenizer assets of both consumers downloaded
    translator <-> chatbot  request_switch(): dispose(previous), grace, activate(target)
    any -> none             preload failure; local models stay off for the session

    Exclusion is advisory: the coordinator does not wait for the previous
    consumer to confirm it released its resources.
    """

    def __init__(self,
                 capabilities: CapabilityResult,
                 bus: ModelEventBus,
                 preloaders: Sequence[Callable[[], None]] = (),
                 executor=None,
                 grace_period: float = 0.1,
                 sleep: Callable[[float], None] = time.sleep):
        self.capabilities = capabilities
        self.bus = bus
        self.preloaders = list(preloaders)
        self.executor = executor
        self.grace_period = grace_period
        self._sleep = sleep

        self._active = ActiveConsumer.NONE
        self._has_resources = capabilities.compatible
        self._preload_complete = False
        self._started = False
        self._lock = threading.Lock()
        self._switch_lock = threading.Lock()

    @property
    def state(self) -> CoordinatorState:
        with self._lock:
            return CoordinatorState(
                active_consumer=self._active,
                has_sufficient_resources=self._has_resources,
                preload_complete=self._preload_complete,
            )

    def start(self) -> None:
        """Begins the background preload once, if the runtime is compatible."""
        with self._lock:
            if self._started:
                return
            self._started = True
            if not self._has_resources:
                logger.info(f"[ModelCoordinator] Local models unavailable ({self.capabilities.reason}). Remote API only.")
                return
            self._active = ActiveConsumer.PRELOADING

        logger.info("[ModelCoordinator] Resources sufficient. Preloading both models...")
        if self.executor is not None:
            self.executor.submit(self._preload)
        else:
            self._preload()

    def _preload(self) -> None:
        try:
            for preload in self.preloaders:
                preload()
        except Exception as e:
            logger.error(f"[ModelCoordinator] Preload failed: {e}. Falling back to remote API for this session.")
            with self._lock:
                self._has_resources = False
                self._active = ActiveConsumer.NONE
            return

        with self._lock:
            if self._active != ActiveConsumer.PRELOADING:
                # shut down while preloading
                return
            self._preload_complete = True
            self._active = ActiveConsumer.TRANSLATOR
        logger.info("[ModelCoordinator] Preload complete. Translator active by default.")
        self.bus.publish(ModelEvent(Action.ACTIVATE, Consumer.TRANSLATOR))

    def allows_local(self, consumer: Optional[Consumer] = None) -> bool:
        with self._lock:
            if not (self._has_resources and self._preload_complete):
                return False
            return consumer is None or self._active.value == consumer.value

    def request_switch(self, target: Consumer) -> bool:
        """
        Hands the local slot to `target`.
        Returns False when local models are unavailable or still preloading.
        """
        with self._switch_lock:
            with self._lock:
                if not self._has_resources:
                    logger.info(f"[ModelCoordinator] No local resources. {target.value} uses the remote path.")
                    return False
                if not self._preload_complete:
                    logger.info(f"[ModelCoordinator] Preload not complete. Switch to {target.value} deferred.")
                    return False
                if self._active.value == target.value:
                    return True
                previous = self._active

            # The previous holder keeps the slot until its dispose and the grace period are over.
            logger.info(f"[ModelCoordinator] Switching {previous.value} -> {target.value}...")
            if previous in (ActiveConsumer.TRANSLATOR, ActiveConsumer.CHATBOT):
                self.bus.publish(ModelEvent(Action.DISPOSE, Consumer(previous.value)))
                if self.grace_period > 0:
                    self._sleep(self.grace_period)
            with self._lock:
                self._active = ActiveConsumer(target.value)
            self.bus.publish(ModelEvent(Action.ACTIVATE, target))
            return True

    def shutdown(self) -> None:
        with self._switch_lock:
            with self._lock:
                previous = self._active
                self._active = ActiveConsumer.NONE
                # a stopped coordinator grants no further switches
                self._preload_complete = False
            if previous in (ActiveConsumer.TRANSLATOR, ActiveConsumer.CHATBOT):
                self.bus.publish(ModelEvent(Action.DISPOSE, Consumer(previous.value)))
        logger.info("[ModelCoordinator] Shut down.")
