"""
GitHub Snapshot Service

PURPOSE:
Capture the current state of a user's GitHub profile so showcase tasks
(e.g. GHS_ADD_TOPICS) can be verified without the user submitting proof.

HOW IT WORKS:
1. Read the user's GitHub username from user_inputs (PostgreSQL)
2. Fetch profile + repositories from the GitHub API
3. Summarize: portfolio repo, profile README, topics, recent commit days
4. Store the summary as a snapshot document (MongoDB)
5. Record a PROFILE_UPDATED signal (PostgreSQL)
"""

from datetime import datetime, timedelta, timezone, tzinfo
from typing import Iterable, List, Optional

from levelup.core.config import get_settings
from levelup.core.logging_config import get_logger
from levelup.schemas.schemas import ProfileSnapshot, SignalKind
from levelup.services.github_client import GitHubAPIError, get_github_client
from levelup.services.snapshot_store import get_snapshot_store
from levelup.services.task_repository import get_task_repository
from levelup.services.verification_engine import dedupe_by_calendar_day

logger = get_logger(__name__)

RECENT_COMMIT_DAYS = 7
MAX_REPOS_FOR_COMMITS = 10


class GitHubUsernameNotFound(LookupError):
    """Raised when the user has not entered a GitHub username."""


def public_source_repos(repos: Iterable[dict]) -> List[dict]:
    """Public repositories that are not forks."""
    return [repo for repo in repos if not repo.get("private") and not repo.get("fork")]


def find_portfolio_repo(username: str, repos: Iterable[dict]) -> Optional[dict]:
    for repo in repos:
        name = repo.get("name") or ""
        description = (repo.get("description") or "").lower()
        if "portfolio" in name.lower() or name == username or "portfolio" in description:
            return repo
    return None


def collect_topics(repos: Iterable[dict]) -> List[str]:
    """Topics across repos, first occurrence order, duplicates removed."""
    seen = []
    for repo in repos:
        for topic in repo.get("topics") or []:
            if topic not in seen:
                seen.append(topic)
    return seen


def summarize_profile(
    username: str,
    user_data: dict,
    repos: List[dict],
    commit_dates: Iterable[datetime],
    tz: tzinfo = timezone.utc
) -> ProfileSnapshot:
    """Build the snapshot summary from raw GitHub payloads."""
    public_repos = public_source_repos(repos)

    return ProfileSnapshot(
        username=username,
        public_repos=user_data.get("public_repos") or 0,
        has_portfolio_repo=find_portfolio_repo(username, public_repos) is not None,
        has_profile_readme=any(repo.get("name") == username for repo in public_repos),
        total_topics=sum(len(repo.get("topics") or []) for repo in repos),
        topics=collect_topics(repos),
        recent_commit_days=len(dedupe_by_calendar_day(commit_dates, tz)),
        followers=user_data.get("followers") or 0,
        following=user_data.get("following") or 0
    )


class SnapshotService:
    """Captures and stores GitHub profile snapshots."""

    def __init__(self, repository=None, snapshot_store=None, github_client=None, tz: Optional[tzinfo] = None):
        self.repository = repository or get_task_repository()
        self.snapshot_store = snapshot_store or get_snapshot_store()
        self.github_client = github_client or get_github_client()
        self.tz = tz or get_settings().tzinfo

    def _recent_commit_dates(self, username: str, repos: List[dict], since: datetime) -> List[datetime]:
        dates = []
        for repo in repos[:MAX_REPOS_FOR_COMMITS]:
            try:
                dates.extend(self.github_client.get_commit_dates(username, repo["name"], since))
            except GitHubAPIError as e:
                # Empty repos answer 409; one bad repo should not sink the snapshot
                logger.warning("Failed to fetch commits for %s/%s: %s", username, repo["name"], e)
        return dates

    def capture(self, user_id: str, now: Optional[datetime] = None) -> ProfileSnapshot:
        """
        Capture a snapshot for a user.

        Raises:
            GitHubUsernameNotFound: no github_username in user_inputs
            GitHubAPIError: profile or repository listing failed
        """
        username = self.repository.get_github_username(user_id)
        if not username:
            raise GitHubUsernameNotFound(f"GitHub username not found for user {user_id}")

        now = now or datetime.now(timezone.utc)

        user_data = self.github_client.get_user(username)
        repos = self.github_client.get_repos(username)

        since = now - timedelta(days=RECENT_COMMIT_DAYS)
        commit_dates = self._recent_commit_dates(username, public_source_repos(repos), since)

        snapshot = summarize_profile(username, user_data, repos, commit_dates, self.tz)

        self.snapshot_store.insert(user_id, snapshot.model_dump(), captured_at=now)
        self.repository.insert_signal(
            user_id=user_id,
            kind=SignalKind.profile_updated.value,
            subject="GitHub Profile Snapshot",
            raw_meta=snapshot.model_dump(),
            happened_at=now
        )

        logger.info(
            "Captured GitHub snapshot for user %s (%s): %d repos, %d topics, %d commit days",
            user_id, username, snapshot.public_repos, snapshot.total_topics, snapshot.recent_commit_days
        )
        return snapshot


def get_snapshot_service() -> SnapshotService:
    """Get snapshot service instance."""
    return SnapshotService()
