import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, Mapping, Optional

import psutil

# Configure logging for the diagnostics module
logger = logging.getLogger(__name__)

DEFAULT_RAM_THRESHOLD_GB = 4.0


@dataclass(frozen=True)
class RuntimeHints:
    """Raw capability hints reported by a runtime (this host or a browser)."""

    device_memory_gb: float = 0.0
    has_gpu: bool = False
    has_shared_memory: bool = False
    has_wasm: bool = False


@dataclass(frozen=True)
class CapabilityResult:
    supports_compute: bool
    supports_shared_memory: bool
    supports_wasm: bool
    has_sufficient_memory: bool
    approximate_memory_gb: float
    compatible: bool
    reason: Optional[str] = None

    @property
    def preferred_device(self) -> str:
        """Accelerated backend when available, portable CPU/WASM backend otherwise."""
        return 'cuda' if self.supports_compute else 'cpu'

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['preferred_device'] = self.preferred_device
        return data


def probe(hints: RuntimeHints, ram_threshold_gb: float = DEFAULT_RAM_THRESHOLD_GB) -> CapabilityResult:
    """
    Decides whether local models can run on the runtime described by `hints`.

    Memory, shared-memory support and a portable CPU/WASM runtime are all
    required. GPU compute is recorded but only selects the preferred device.

    Returns:
        CapabilityResult with `compatible` and, when incompatible, the first
        missing requirement in `reason`.
    """
    memory_gb = float(hints.device_memory_gb or 0.0)
    has_memory = memory_gb >= ram_threshold_gb

    reason = None
    if not has_memory:
        reason = (f"Insufficient memory for local models. "
                  f"Detected: {memory_gb}GB. Required: {ram_threshold_gb}GB.")
    elif not hints.has_shared_memory:
        reason = "Shared memory primitives are not available."
    elif not hints.has_wasm:
        reason = "No portable CPU (WASM) inference runtime available."

    return CapabilityResult(
        supports_compute=bool(hints.has_gpu),
        supports_shared_memory=bool(hints.has_shared_memory),
        supports_wasm=bool(hints.has_wasm),
        has_sufficient_memory=has_memory,
        approximate_memory_gb=memory_gb,
        compatible=reason is None,
        reason=reason,
    )


def _detect_accelerator() -> bool:
    try:
        import torch
    except ImportError:
        return False
    if torch.cuda.is_available():
        return True
    mps = getattr(torch.backends, 'mps', None)
    return bool(mps and mps.is_available())


def _detect_shared_memory() -> bool:
    try:
        from multiprocessing import shared_memory  # noqa: F401
    except ImportError:
        return False
    return True


def _detect_cpu_runtime() -> bool:
    try:
        import torch  # noqa: F401
    except ImportError:
        return False
    return True


def collect_host_hints() -> RuntimeHints:
    """Reads capability hints from the host running this service."""
    try:
        total_gb = round(psutil.virtual_memory().total / (1024 ** 3), 2)
    except Exception as e:
        logger.error(f"[Diagnostics] Failed to read system memory: {e}")
        total_gb = 0.0

    hints = RuntimeHints(
        device_memory_gb=total_gb,
        has_gpu=_detect_accelerator(),
        has_shared_memory=_detect_shared_memory(),
        has_wasm=_detect_cpu_runtime(),
    )
    logger.info(f"[Diagnostics] Host hints: RAM={hints.device_memory_gb}GB | "
                f"GPU={hints.has_gpu} | SharedMem={hints.has_shared_memory} | CPU runtime={hints.has_wasm}")
    return hints


def hints_from_browser(payload: Mapping[str, Any]) -> RuntimeHints:
    """
    Parses a browser capability report:
    {'deviceMemory': 8, 'gpu': true, 'crossOriginIsolated': true, 'wasm': true}
    """
    try:
        memory = float(payload.get('deviceMemory') or 0)
    except (TypeError, ValueError):
        raise ValueError("deviceMemory must be a number")
    return RuntimeHints(
        device_memory_gb=memory,
        has_gpu=bool(payload.get('gpu')),
        has_shared_memory=bool(payload.get('crossOriginIsolated')),
        has_wasm=bool(payload.get('wasm')),
    )
