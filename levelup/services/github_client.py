"""
GitHub REST API Client

Only the three read endpoints the snapshot capture needs:
- GET /users/{username}
- GET /users/{username}/repos
- GET /repos/{owner}/{repo}/commits?since=...

Unauthenticated requests work but are rate limited to 60/hour;
set GITHUB_TOKEN to raise the limit.
"""

from datetime import datetime
from typing import List, Optional

import requests

from levelup.core.config import get_settings

settings = get_settings()


class GitHubAPIError(Exception):
    """Raised when GitHub returns an unexpected response."""


class GitHubClient:
    """Thin wrapper over the GitHub REST API."""

    def __init__(self, base_url: Optional[str] = None, token: Optional[str] = None,
                 timeout: Optional[int] = None, session: Optional[requests.Session] = None):
        self.base_url = (base_url or settings.github_api_url).rstrip("/")
        self.timeout = timeout or settings.github_timeout_seconds
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/vnd.github+json"})

        token = token if token is not None else settings.github_token
        if token:
            self.session.headers.update({"Authorization": f"Bearer {token}"})

    def _get(self, path: str, params: Optional[dict] = None):
        try:
            response = self.session.get(f"{self.base_url}{path}", params=params, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as request_error:
            raise GitHubAPIError(f"GitHub request {path} failed: {request_error}") from request_error

        return response.json()

    def get_user(self, username: str) -> dict:
        return self._get(f"/users/{username}")

    def get_repos(self, username: str, per_page: int = 100) -> List[dict]:
        return self._get(f"/users/{username}/repos", params={"per_page": per_page})

    def get_commit_dates(self, owner: str, repo: str, since: datetime) -> List[datetime]:
        """Author dates of commits pushed to the default branch since `since`."""
        commits = self._get(f"/repos/{owner}/{repo}/commits", params={"since": since.isoformat()})
        return [
            datetime.fromisoformat(commit["commit"]["author"]["date"].replace("Z", "+00:00"))
            for commit in commits
        ]


# Singleton instance
_github_client: GitHubClient = None


def get_github_client() -> GitHubClient:
    """Get or create GitHub client (singleton pattern)"""
    global _github_client
    if _github_client is None:
        _github_client = GitHubClient()
    return _github_client
