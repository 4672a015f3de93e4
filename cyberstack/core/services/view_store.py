import logging
from typing import Dict, Iterable, Optional

import redis

from cyberstack.core.errors import StoreError
from cyberstack.utils.retry import RetryPolicy

logger = logging.getLogger(__name__)

DEFAULT_DEDUP_TTL_SECONDS = 60 * 60 * 24


def views_key(slug: str) -> str:
    return f"views:{slug}"


def dedup_key(unique_id: str, slug: str) -> str:
    return f"deduplication:{unique_id}:{slug}"


class ViewStore:
    """
    Redis-backed page view counter with per-visitor deduplication.

    A visit counts once per (unique_id, slug) inside the dedup window. The
    sentinel is claimed with SET NX EX; only the visitor that wins the claim
    increments the counter inside a WATCH/MULTI transaction.
    """

    def __init__(self,
                 client: redis.Redis,
                 dedup_ttl_seconds: int = DEFAULT_DEDUP_TTL_SECONDS,
                 retry_policy: Optional[RetryPolicy] = None):
        self.client = client
        self.dedup_ttl_seconds = dedup_ttl_seconds
        self.retry_policy = retry_policy or RetryPolicy()

    def _increment_transaction(self, slug: str) -> int:
        key = views_key(slug)
        with self.client.pipeline() as pipe:
            pipe.watch(key)
            current = int(pipe.get(key) or 0)
            pipe.multi()
            pipe.set(key, current + 1)
            pipe.execute()
        return current + 1

    def increment_view(self, slug: str, unique_id: str) -> int:
        """
        Count a view of `slug` by `unique_id` and return the counter.

        Returns the unchanged counter when the visitor already viewed the slug
        inside the dedup window. Raises StoreError if the store is unreachable
        or the increment cannot be committed within the retry budget.
        """
        sentinel = dedup_key(unique_id, slug)
        try:
            first_view = self.client.set(sentinel, 1, nx=True, ex=self.dedup_ttl_seconds)
        except redis.RedisError as e:
            raise StoreError(f"Could not claim view sentinel for '{slug}': {e}") from e

        if not first_view:
            logger.debug(f"[Views] Duplicate view of '{slug}' by {unique_id}")
            return self._read_counter(slug)

        try:
            return self.retry_policy.call(
                lambda: self._increment_transaction(slug),
                retry_on=(redis.WatchError, redis.ConnectionError, redis.TimeoutError),
                label=f"Views:{slug}",
            )
        except redis.RedisError as e:
            # Release the claim so the visit can be counted on a later request.
            try:
                self.client.delete(sentinel)
            except redis.RedisError as cleanup_err:
                logger.warning(f"[Views] Could not release sentinel {sentinel}: {cleanup_err}")
            raise StoreError(f"Failed to increment views for '{slug}': {e}") from e

    def _read_counter(self, slug: str) -> int:
        try:
            return int(self.client.get(views_key(slug)) or 0)
        except redis.RedisError as e:
            raise StoreError(f"Could not read views for '{slug}': {e}") from e

    def get_views(self, slug: str) -> int:
        """Current counter for `slug`; 0 when unknown or when the store is down."""
        try:
            return self._read_counter(slug)
        except StoreError as e:
            logger.error(f"[Views] {e}")
            return 0

    def get_multiple_views(self, slugs: Iterable[str]) -> Dict[str, int]:
        slugs = list(dict.fromkeys(slugs))
        if not slugs:
            return {}
        try:
            values = self.client.mget([views_key(s) for s in slugs])
        except redis.RedisError as e:
            logger.error(f"[Views] Bulk read failed: {e}")
            return {slug: 0 for slug in slugs}
        return {slug: int(value or 0) for slug, value in zip(slugs, values)}
