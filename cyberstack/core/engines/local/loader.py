import gc
import os
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Tuple

import torch
from huggingface_hub import snapshot_download
from tqdm.auto import tqdm

from cyberstack.core.engines.local.events import Action, Consumer, ModelEvent, ModelEventBus
from cyberstack.core.errors import InferenceError, LoadCancelled, LoadError, ModelBusy

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]

# Weights are not needed to build a tokenizer
TOKENIZER_ALLOW_PATTERNS = ["*.json", "*.model", "*.txt", "*.tiktoken"]


class LoadStatus(str, Enum):
    IDLE = 'idle'
    LOADING = 'loading'
    READY = 'ready'
    ERROR = 'error'


@dataclass
class ModelHandle:
    tokenizer: Any = None
    model: Any = None
    load_status: LoadStatus = LoadStatus.IDLE
    status_message: str = ''


def _progress_bar(report: ProgressCallback):
    """Builds a tqdm class that forwards download completion (0-100) to `report`."""

    class _ReportingBar(tqdm):
        def update(self, n=1):
            displayed = super().update(n)
            if self.total:
                report(min(100.0, self.n * 100.0 / self.total))
            return displayed

    return _ReportingBar


class LazyModelLoader(ABC):
    """
    Owns one tokenizer+model pair for a single consumer.

    - ensure_loaded() loads on first use. Callers arriving while a load is in
      flight wait for it instead of starting a second one.
    - dispose() releases the pair. A load that finishes after a dispose is
      discarded (generation counter) instead of being applied.
    - infer() admits a single request at a time; concurrent calls fail fast.
    """

    consumer: Consumer

    def __init__(self,
                 model_id: str,
                 device: str = 'cpu',
                 cache_dir: Optional[str] = None,
                 token: Optional[str] = None):
        self.model_id = model_id
        self.device = device
        self.cache_dir = cache_dir
        self.token = token
        self.active = False

        self._handle = ModelHandle()
        self._lock = threading.Lock()
        self._infer_lock = threading.Lock()
        self._load_done: Optional[threading.Event] = None
        self._generation = 0
        self._executor = None
        self._unsubscribe = None

    # --- Lifecycle -------------------------------------------------------

    @property
    def handle(self) -> ModelHandle:
        return self._handle

    @property
    def status(self) -> LoadStatus:
        return self._handle.load_status

    def _set_message(self, message: str, generation: int) -> None:
        with self._lock:
            if generation == self._generation:
                self._handle.status_message = message

    def ensure_loaded(self) -> ModelHandle:
        with self._lock:
            if self._handle.load_status == LoadStatus.READY:
                return self._handle
            in_flight = self._load_done
            generation = self._generation
            if in_flight is None:
                done = self._load_done = threading.Event()
                self._handle.load_status = LoadStatus.LOADING
                self._handle.status_message = 'Loading model...'

        if in_flight is not None:
            in_flight.wait()
            with self._lock:
                if self._handle.load_status == LoadStatus.READY:
                    return self._handle
                if generation != self._generation:
                    raise LoadCancelled(f"{self.model_id} was disposed while loading.")
                raise LoadError(self._handle.status_message or f"{self.model_id} failed to load.")

        logger.info(f"[{self.consumer.value}] Loading {self.model_id} on {self.device}...")
        try:
            tokenizer, model = self._load(lambda pct: self._set_message(f"Downloading: {round(pct)}%", generation))
        except Exception as e:
            logger.error(f"[{self.consumer.value}] Failed to load {self.model_id}: {e}")
            with self._lock:
                if generation == self._generation:
                    self._handle.load_status = LoadStatus.ERROR
                    self._handle.status_message = f"Load failed: {e}"
                self._finish_load(done)
            raise LoadError(f"{self.model_id} failed to load: {e}") from e

        with self._lock:
            if generation != self._generation:
                self._finish_load(done)
                discarded = True
            else:
                self._handle.tokenizer = tokenizer
                self._handle.model = model
                self._handle.load_status = LoadStatus.READY
                self._handle.status_message = 'Model ready.'
                self._finish_load(done)
                discarded = False

        if discarded:
            logger.info(f"[{self.consumer.value}] Disposed while loading. Discarding {self.model_id}.")
            del tokenizer, model
            self._clear_memory()
            raise LoadCancelled(f"{self.model_id} was disposed while loading.")

        logger.info(f"[{self.consumer.value}] Model ready: {self.model_id}")
        return self._handle

    def _finish_load(self, done: threading.Event) -> None:
        # caller holds self._lock
        done.set()
        if self._load_done is done:
            self._load_done = None

    def dispose(self) -> None:
        with self._lock:
            self._generation += 1
            had_model = self._handle.model is not None
            # A fresh handle; an inference already running keeps its own references.
            self._handle = ModelHandle()
            # Waiters on an abandoned load are released; they observe IDLE and fail.
            if self._load_done is not None:
                self._finish_load(self._load_done)
        if had_model:
            self._clear_memory()
            logger.info(f"[{self.consumer.value}] Model disposed.")

    @staticmethod
    def _clear_memory():
        """Force garbage collection and clear CUDA cache."""
        gc.collect()
        if torch.cuda.is_available():
            torch.cuda.empty_cache()

    # --- Inference -------------------------------------------------------

    def infer(self, prompt, **options) -> str:
        return self._run(self._generate, prompt, **options)

    def _run(self, fn, *args, **kwargs):
        handle = self._handle
        if handle.load_status == LoadStatus.ERROR:
            raise InferenceError(f"{self.consumer.value} model failed to load: {handle.status_message}")
        if handle.load_status != LoadStatus.READY:
            # disposed or still loading: the slot moved, the model did not fail
            raise ModelBusy(f"{self.consumer.value} model is not ready (status: {handle.load_status.value}).")
        if not self._infer_lock.acquire(blocking=False):
            raise ModelBusy(f"{self.consumer.value} model is busy with another request.")
        try:
            return fn(handle, *args, **kwargs)
        except InferenceError:
            raise
        except Exception as e:
            logger.error(f"[{self.consumer.value}] Inference failed: {e}")
            raise InferenceError(str(e)) from e
        finally:
            self._infer_lock.release()

    # --- Assets ----------------------------------------------------------

    def download(self, progress: Optional[ProgressCallback] = None, allow_patterns=None) -> str:
        """Fetches the model snapshot into the cache and returns its local path."""
        local_dir = None
        if self.cache_dir:
            local_dir = os.path.join(self.cache_dir, f"models--{self.model_id.replace('/', '--')}")
        kwargs = {}
        if progress is not None:
            kwargs['tqdm_class'] = _progress_bar(progress)
        return snapshot_download(
            repo_id=self.model_id,
            local_dir=local_dir,
            allow_patterns=allow_patterns,
            token=self.token,
            **kwargs,
        )

    def preload(self) -> None:
        """Downloads tokenizer assets only; no model weights, no session."""
        from transformers import AutoTokenizer

        path = self.download(allow_patterns=TOKENIZER_ALLOW_PATTERNS)
        AutoTokenizer.from_pretrained(path)
        logger.info(f"[{self.consumer.value}] Tokenizer preloaded: {self.model_id}")

    # --- Coordination ----------------------------------------------------

    def attach(self, bus: ModelEventBus, executor=None) -> None:
        """Follows activate/dispose commands addressed to this consumer."""
        self._executor = executor
        self._unsubscribe = bus.subscribe(self._on_event, consumer=self.consumer)

    def detach(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_event(self, event: ModelEvent) -> None:
        if event.action == Action.ACTIVATE:
            logger.info(f"[{self.consumer.value}] Received activate command")
            self.active = True
            self.on_activate()
        elif event.action == Action.DISPOSE:
            logger.info(f"[{self.consumer.value}] Received dispose command")
            self.active = False
            self.dispose()

    def on_activate(self) -> None:
        """Hook run after activation. Loads stay lazy by default."""

    # --- Model specific --------------------------------------------------

    @abstractmethod
    def _load(self, progress: ProgressCallback) -> Tuple[Any, Any]:
        """Returns (tokenizer, model) ready for inference on self.device."""

    @abstractmethod
    def _generate(self, handle: ModelHandle, prompt, **options) -> str:
        """Runs one generation with the loaded pair."""
