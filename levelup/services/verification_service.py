"""
GitHub Verification Service

PURPOSE:
Run the verification engine over all of a user's GitHub tasks for one
period and apply the side effects of the results.

HOW IT WORKS:
1. Resolve the period (default: current ISO week) and its boundaries
2. Load the user's tasks for the period + tasks without a period
3. Load signals and the latest snapshots once per run
4. Per task: load evidence, build the context, run the engine
5. Persist changed status/score; on a fresh VERIFIED also notify the
   user and write the activity points ledger
6. Roll up the period score for weekly tasks

Also owns the two writes that feed verification:
- instantiate_week: create this week's task rows
- submit_evidence: attach proof to a task
"""

from datetime import datetime, timezone, tzinfo
from typing import List, Optional

from pymongo.errors import PyMongoError
from sqlalchemy.exc import SQLAlchemyError

from levelup.core.config import get_settings
from levelup.core.logging_config import get_logger
from levelup.schemas.schemas import (
    Evidence,
    EvidenceCreate,
    EvidenceKind,
    EvidenceResponse,
    InstantiateWeekResponse,
    Signal,
    Snapshot,
    TaskScope,
    TaskUpdate,
    VerificationContext,
    VerificationRunResponse,
)
from levelup.services.periods import current_period, normalize_period, period_bounds, period_due_at
from levelup.services.snapshot_store import get_snapshot_store
from levelup.services.task_repository import get_task_repository
from levelup.services.verification_engine import ActivityVerificationEngine

logger = get_logger(__name__)

SNAPSHOT_LIMIT = 10


class TaskNotFoundError(LookupError):
    """Raised when a user task does not exist or belongs to someone else."""


class VerificationService:
    """
    Orchestrates verification runs for one user at a time.

    Dependencies are injectable so the workflow can be exercised
    without PostgreSQL or MongoDB.
    """

    def __init__(self, repository=None, snapshot_store=None, engine=None, tz: Optional[tzinfo] = None):
        self.tz = tz or get_settings().tzinfo
        self.repository = repository or get_task_repository()
        self.snapshot_store = snapshot_store or get_snapshot_store()
        self.engine = engine or ActivityVerificationEngine(tz=self.tz)

    # ------------------------------------------------------------
    # Context loading
    # ------------------------------------------------------------

    def _load_signals(self, user_id: str, until: datetime) -> List[Signal]:
        try:
            rows = self.repository.get_signals(user_id, until)
        except SQLAlchemyError as e:
            logger.error("Error fetching signals for user %s: %s", user_id, e)
            return []
        return [
            Signal(
                kind=r["kind"], happened_at=r["happened_at"],
                subject=r.get("subject"), raw_meta=r.get("raw_meta")
            )
            for r in rows
        ]

    def _load_snapshots(self, user_id: str) -> List[Snapshot]:
        try:
            docs = self.snapshot_store.latest(user_id, limit=SNAPSHOT_LIMIT)
        except PyMongoError as e:
            logger.error("Error fetching snapshots for user %s: %s", user_id, e)
            return []
        return [Snapshot(topics=d.get("topics"), captured_at=d.get("captured_at")) for d in docs]

    def _load_evidence(self, user_task_id: str) -> List[Evidence]:
        rows = self.repository.get_evidence(user_task_id)
        return [
            Evidence(url=r.get("url"), kind=r.get("kind") or EvidenceKind.url, description=r.get("description"))
            for r in rows
        ]

    # ------------------------------------------------------------
    # Verification run
    # ------------------------------------------------------------

    def verify_user_tasks(
        self,
        user_id: str,
        period: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> VerificationRunResponse:
        """
        Verify all GitHub tasks of a user for a period.

        Args:
            user_id: Platform user ID
            period: ISO week "YYYY-WW"; defaults to the current week
            now: Clock override (tests, backfills)

        Raises:
            InvalidPeriodError: malformed period
            SQLAlchemyError: user tasks could not be loaded
        """
        now = now or datetime.now(timezone.utc)
        period = normalize_period(period) if period else current_period(now, self.tz)
        period_start, period_end = period_bounds(period, self.tz)

        logger.info("Verifying GitHub tasks for user %s, period %s (%s - %s)",
                    user_id, period, period_start.isoformat(), period_end.isoformat())

        user_tasks = self.repository.get_tasks_for_verification(user_id, period)
        if not user_tasks:
            return VerificationRunResponse(message="No tasks found for verification", period=period)

        logger.info("Found %d tasks to verify for user %s", len(user_tasks), user_id)

        signals = self._load_signals(user_id, period_end)
        snapshots = self._load_snapshots(user_id)
        activity_date = now.astimezone(self.tz).date()

        updated: List[TaskUpdate] = []
        weekly_points = 0
        has_weekly_update = False

        for user_task in user_tasks:
            task_id = str(user_task["id"])

            try:
                evidence = self._load_evidence(user_task["id"])
            except SQLAlchemyError as e:
                logger.error("Error fetching evidence for task %s: %s", task_id, e)
                continue

            windowed = bool(user_task["period"])
            context = VerificationContext(
                period_start=period_start if windowed else None,
                period_end=period_end if windowed else None,
                evidence=evidence,
                signals=signals,
                snapshots=snapshots
            )
            result = self.engine.verify(user_task["task_code"], context, previous_status=user_task["status"])

            old_score = user_task["score_awarded"] or 0
            if result.status == user_task["status"] and result.points == old_score:
                continue

            try:
                saved = self.repository.save_result(user_id, user_task, result, activity_date)
            except SQLAlchemyError as e:
                logger.error("Error updating task %s: %s", task_id, e)
                continue

            if not saved:
                logger.warning("Task %s changed status during verification, skipped", task_id)
                continue

            if result.transitioned:
                logger.info("Task %s (%s) verified for user %s: awarded %d points",
                            task_id, user_task["task_code"], user_id, result.points)

            updated.append(TaskUpdate(
                id=task_id,
                task_code=user_task["task_code"],
                old_status=user_task["status"],
                new_status=result.status,
                old_score=old_score,
                new_score=result.points,
                notes=result.notes
            ))

            if windowed:
                has_weekly_update = True
                weekly_points += result.points

        if has_weekly_update:
            try:
                self.repository.upsert_period_score(user_id, period, weekly_points, now)
            except SQLAlchemyError as e:
                logger.error("Error updating period score for user %s: %s", user_id, e)

        logger.info("Verification completed for user %s. Updated tasks: %d", user_id, len(updated))

        return VerificationRunResponse(
            message="GitHub tasks verification completed",
            period=period,
            tasks_verified=len(user_tasks),
            tasks_updated=len(updated),
            total_points_awarded=sum(u.new_score for u in updated),
            updated_tasks=updated
        )

    # ------------------------------------------------------------
    # Weekly task instantiation
    # ------------------------------------------------------------

    def instantiate_week(self, user_id: str, now: Optional[datetime] = None) -> InstantiateWeekResponse:
        """Create this week's task rows for a user. Safe to call repeatedly."""
        now = now or datetime.now(timezone.utc)
        period = current_period(now, self.tz)

        if self.repository.has_tasks_for_period(user_id, period):
            logger.info("Weekly tasks already exist for user %s, period %s", user_id, period)
            return InstantiateWeekResponse(message="Weekly tasks already exist for this period", period=period)

        weekly_tasks = self.repository.get_active_tasks(TaskScope.weekly.value)
        if not weekly_tasks:
            return InstantiateWeekResponse(message="No active weekly tasks found", period=period)

        due_at = period_due_at(period, self.tz)
        created = self.repository.create_user_tasks(
            user_id, [t["id"] for t in weekly_tasks], period, due_at
        )

        logger.info("Created %d weekly GitHub tasks for user %s, period %s", created, user_id, period)
        return InstantiateWeekResponse(
            message="Weekly GitHub tasks created successfully",
            period=period,
            tasks_created=created,
            due_at=due_at
        )

    # ------------------------------------------------------------
    # Evidence submission
    # ------------------------------------------------------------

    def submit_evidence(self, user_id: str, user_task_id: str, evidence: EvidenceCreate) -> EvidenceResponse:
        """
        Attach evidence to one of the user's tasks.

        Raises:
            TaskNotFoundError: task missing or owned by another user
        """
        user_task = self.repository.get_user_task(user_task_id, user_id)
        if not user_task:
            raise TaskNotFoundError(f"Task {user_task_id} not found")

        row = self.repository.insert_evidence(user_task["id"], evidence)
        logger.info("Evidence submitted for task %s by user %s", user_task_id, user_id)

        return EvidenceResponse(
            evidence_id=str(row["id"]),
            user_task_id=str(user_task["id"]),
            kind=evidence.kind.value,
            url=evidence.url,
            task_status=row["task_status"],
            created_at=row["created_at"]
        )


def get_verification_service() -> VerificationService:
    """Get verification service instance."""
    return VerificationService()
