"""
Error taxonomy shared by the services, engines and HTTP controllers.

- ConfigurationError: a required setting is missing. Rendered as an error
  message; the process keeps serving.
- NetworkError / ApiError / StoreError: an upstream (GitHub, Gemini, Redis)
  failed. Read paths log it and return a safe default.
- LoadError / InferenceError: the local model could not be used. Callers fall
  back to the remote client for the rest of the session.
- LoadCancelled / ModelBusy: contention for the local slot, not a model
  failure. Callers answer that one request remotely.
"""


class CyberStackError(Exception):
    """Base class for all application errors."""


class ConfigurationError(CyberStackError):
    pass


class NetworkError(CyberStackError):
    pass


class ApiError(NetworkError):
    """Hosted generative API failed (transport, auth, or empty response)."""


class StoreError(NetworkError):
    """Key-value store unreachable or a write could not be committed."""


class LoadError(CyberStackError):
    pass


class LoadCancelled(LoadError):
    """The load was abandoned because the model was disposed while it ran."""


class InferenceError(CyberStackError):
    pass


class ModelBusy(InferenceError):
    """The model is serving another request or was released before this one ran."""


__all__ = [
    "CyberStackError",
    "ConfigurationError",
    "NetworkError",
    "ApiError",
    "StoreError",
    "LoadError",
    "LoadCancelled",
    "InferenceError",
    "ModelBusy",
]
