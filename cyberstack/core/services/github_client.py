import time
import logging
from typing import Any, Dict, List, Optional

import requests

from cyberstack.core.errors import ConfigurationError, NetworkError

logger = logging.getLogger(__name__)


class GitHubClient:
    """
    Read-only client for the owner's public repositories.
    Successful responses are memoised for `cache_seconds` (hourly revalidation).
    Network failures are logged and mapped to safe defaults; a missing owner
    raises ConfigurationError so callers can surface it.
    """

    def __init__(self,
                 owner: Optional[str],
                 token: Optional[str] = None,
                 base_url: str = 'https://api.github.com',
                 cache_seconds: int = 3600,
                 timeout: float = 10,
                 session: Optional[requests.Session] = None):
        self.owner = owner
        self.base_url = base_url.rstrip('/')
        self.cache_seconds = cache_seconds
        self.timeout = timeout
        self.session = session or requests.Session()
        self._cache: Dict[str, tuple] = {}

        self.headers = {
            'Accept': 'application/vnd.github.v3+json',
            'X-GitHub-Api-Version': '2022-11-28',
        }
        if token:
            self.headers['Authorization'] = f"Bearer {token}"
        else:
            logger.warning("[GitHub] GITHUB_TOKEN not set. API rate limits will be lower.")

    def _require_owner(self) -> str:
        if not self.owner:
            raise ConfigurationError("GITHUB_REPO_OWNER environment variable is not set.")
        return self.owner

    def _cached(self, key: str):
        entry = self._cache.get(key)
        if entry and (time.monotonic() - entry[0]) < self.cache_seconds:
            return True, entry[1]
        return False, None

    def _get(self, url: str, accept: Optional[str] = None) -> Optional[requests.Response]:
        """GET with shared headers. Returns None on 404, raises NetworkError otherwise."""
        headers = dict(self.headers)
        if accept:
            headers['Accept'] = accept
        try:
            response = self.session.get(url, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise NetworkError(f"GitHub request failed: {e}") from e

        if response.status_code == 404:
            return None
        if not response.ok:
            raise NetworkError(f"GitHub returned {response.status_code} {response.reason} for {url}")
        return response

    def get_public_repositories(self) -> List[Dict[str, Any]]:
        owner = self._require_owner()
        hit, value = self._cached('repos')
        if hit:
            return value

        url = f"{self.base_url}/users/{owner}/repos?type=public&sort=updated&per_page=100"
        logger.info(f"[GitHub] Fetching public repos from: {url}")
        try:
            response = self._get(url)
            repos = response.json() if response is not None else []
        except (NetworkError, ValueError) as e:
            logger.error(f"[GitHub] Error fetching repository list: {e}")
            return []

        logger.info(f"[GitHub] Fetched {len(repos)} public repositories.")
        self._cache['repos'] = (time.monotonic(), repos)
        return repos

    def get_repository(self, repo_name: str) -> Optional[Dict[str, Any]]:
        owner = self._require_owner()
        if not repo_name:
            return None
        hit, value = self._cached(f"repo:{repo_name}")
        if hit:
            return value

        try:
            response = self._get(f"{self.base_url}/repos/{owner}/{repo_name}")
        except NetworkError as e:
            logger.error(f"[GitHub] Error fetching details for {repo_name}: {e}")
            return None
        if response is None:
            logger.warning(f"[GitHub] Repository not found: {owner}/{repo_name}")
            return None

        try:
            details = response.json()
        except ValueError as e:
            logger.error(f"[GitHub] Malformed details for {repo_name}: {e}")
            return None
        self._cache[f"repo:{repo_name}"] = (time.monotonic(), details)
        return details

    def get_readme(self, repo_name: str) -> Optional[str]:
        owner = self._require_owner()
        if not repo_name:
            return None
        hit, value = self._cached(f"readme:{repo_name}")
        if hit:
            return value

        try:
            response = self._get(
                f"{self.base_url}/repos/{owner}/{repo_name}/readme",
                accept='application/vnd.github.raw+json',
            )
        except NetworkError as e:
            logger.error(f"[GitHub] Error fetching README for {repo_name}: {e}")
            return None
        if response is None:
            logger.info(f"[GitHub] No README found for repository: {repo_name}")
            return None

        self._cache[f"readme:{repo_name}"] = (time.monotonic(), response.text)
        return response.text
