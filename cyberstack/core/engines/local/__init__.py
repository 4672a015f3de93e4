"""
Local Model Engine Package
--------------------------
Host-local models shared between the chat assistant and the translator:
- diagnostics: Runtime capability probe (memory, accelerator, CPU runtime).
- events: Typed activate/dispose channel between coordinator and consumers.
- coordinator: Exclusive assignment of the local inference slot.
- loader: Lazy tokenizer+model lifecycle shared by both consumers.
- chat / translator: The two concrete consumers.
"""

from .diagnostics import CapabilityResult, RuntimeHints, probe, collect_host_hints, hints_from_browser
from .events import Action, Consumer, ModelEvent, ModelEventBus
from .coordinator import ActiveConsumer, CoordinatorState, ModelCoordinator
from .loader import LazyModelLoader, LoadStatus, ModelHandle
from .chat import ChatModelLoader
from .translator import TranslatorModelLoader, resolve_target_language

__all__ = [
    "CapabilityResult",
    "RuntimeHints",
    "probe",
    "collect_host_hints",
    "hints_from_browser",
    "Action",
    "Consumer",
    "ModelEvent",
    "ModelEventBus",
    "ActiveConsumer",
    "CoordinatorState",
    "ModelCoordinator",
    "LazyModelLoader",
    "LoadStatus",
    "ModelHandle",
    "ChatModelLoader",
    "TranslatorModelLoader",
    "resolve_target_language",
]
