"""
Background executor for model preloading and warm-up.
Requests never wait on these tasks; they poll /api/models/status instead.
"""

from concurrent.futures import ThreadPoolExecutor

from cyberstack.config import Config

# Global executor for background tasks.
# Two workers: the coordinator preload and one translator warm-up.
executor = ThreadPoolExecutor(max_workers=Config.MAX_WORKERS_BACKGROUND, thread_name_prefix='cyberstack-bg')

__all__ = [
    "executor",
]
