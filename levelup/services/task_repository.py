"""
GitHub Task Repository - PostgreSQL access for the verification workflow.

Tables used:
1. github_tasks          - Task definitions (code, title, scope, points_base, active)
2. github_user_tasks     - One row per (user, task, period) attempt
3. github_evidence       - User-submitted proof for a user task
4. github_signals        - Observed GitHub activity events
5. notifications         - In-app notifications
6. user_activity_points  - Activity points ledger
7. github_scores         - Per-period point rollups
8. user_inputs           - Profile inputs (github_username)

All SQL lives here so services stay testable with an in-memory fake.
"""

import json
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import text

from levelup.db.postgres import get_db_session, execute_raw_sql
from levelup.schemas.schemas import EvidenceCreate, TaskStatus, VerificationResult


USER_TASK_COLUMNS = """
    ut.id, ut.user_id, ut.task_id, ut.period, ut.status, ut.score_awarded,
    ut.due_at, ut.updated_at, t.code AS task_code, t.title AS task_title
"""


class GitHubTaskRepository:
    """
    Reads and writes the GitHub task tables.
    Every method opens its own session; writes that must land together
    share one session.
    """

    # ------------------------------------------------------------
    # Task definitions & user tasks
    # ------------------------------------------------------------

    def get_tasks_for_verification(self, user_id: str, period: str) -> List[dict]:
        """User tasks for `period` plus tasks with no period (showcase tasks)."""
        return execute_raw_sql(f"""
            SELECT {USER_TASK_COLUMNS}
            FROM github_user_tasks ut
            JOIN github_tasks t ON ut.task_id = t.id
            WHERE ut.user_id = :user_id
                AND (ut.period = :period OR ut.period IS NULL)
            ORDER BY ut.created_at
        """, {"user_id": user_id, "period": period})

    def list_user_tasks(self, user_id: str, period: Optional[str] = None) -> List[dict]:
        sql = f"""
            SELECT {USER_TASK_COLUMNS}
            FROM github_user_tasks ut
            JOIN github_tasks t ON ut.task_id = t.id
            WHERE ut.user_id = :user_id
        """
        params = {"user_id": user_id}

        if period:
            sql += " AND ut.period = :period"
            params["period"] = period

        sql += " ORDER BY ut.period DESC NULLS LAST, t.code"
        return execute_raw_sql(sql, params)

    def get_user_task(self, user_task_id: str, user_id: str) -> Optional[dict]:
        results = execute_raw_sql(f"""
            SELECT {USER_TASK_COLUMNS}
            FROM github_user_tasks ut
            JOIN github_tasks t ON ut.task_id = t.id
            WHERE ut.id = :id AND ut.user_id = :user_id
        """, {"id": user_task_id, "user_id": user_id})
        return results[0] if results else None

    def has_tasks_for_period(self, user_id: str, period: str) -> bool:
        results = execute_raw_sql(
            "SELECT id FROM github_user_tasks WHERE user_id = :user_id AND period = :period LIMIT 1",
            {"user_id": user_id, "period": period}
        )
        return bool(results)

    def get_active_tasks(self, scope: str) -> List[dict]:
        return execute_raw_sql("""
            SELECT id, code, title, points_base
            FROM github_tasks
            WHERE scope = :scope AND active = TRUE
            ORDER BY code
        """, {"scope": scope})

    def create_user_tasks(self, user_id: str, task_ids: List[str], period: str, due_at: datetime) -> int:
        """Create NOT_STARTED user tasks. Returns number of rows created."""
        created = 0
        with get_db_session() as db:
            for task_id in task_ids:
                result = db.execute(
                    text("""
                        INSERT INTO github_user_tasks
                            (user_id, task_id, period, repo_id, due_at, status, score_awarded)
                        VALUES (:user_id, :task_id, :period, NULL, :due_at, :status, 0)
                        ON CONFLICT DO NOTHING
                    """),
                    {
                        "user_id": user_id, "task_id": task_id, "period": period,
                        "due_at": due_at, "status": TaskStatus.not_started.value
                    }
                )
                created += result.rowcount
        return created

    # ------------------------------------------------------------
    # Verification inputs
    # ------------------------------------------------------------

    def get_signals(self, user_id: str, until: datetime) -> List[dict]:
        """
        All signals up to `until`, newest first.
        No lower bound: showcase rules look at the whole history.
        """
        return execute_raw_sql("""
            SELECT kind, happened_at, subject, raw_meta
            FROM github_signals
            WHERE user_id = :user_id AND happened_at <= :until
            ORDER BY happened_at DESC
        """, {"user_id": user_id, "until": until})

    def get_evidence(self, user_task_id: str) -> List[dict]:
        return execute_raw_sql("""
            SELECT id, kind, url, parsed_json->>'description' AS description, created_at
            FROM github_evidence
            WHERE user_task_id = :user_task_id
            ORDER BY created_at
        """, {"user_task_id": user_task_id})

    # ------------------------------------------------------------
    # Verification outputs
    # ------------------------------------------------------------

    def save_result(
        self,
        user_id: str,
        user_task: dict,
        result: VerificationResult,
        activity_date: date
    ) -> bool:
        """
        Persist new status/score. On a fresh transition into VERIFIED also
        write the notification and the points ledger row, in the same
        transaction so a retried run cannot award twice.

        The update only applies while the row still holds the status read
        before scoring; returns False when another run changed it first.
        """
        title = user_task["task_title"]

        with get_db_session() as db:
            updated = db.execute(
                text("""
                    UPDATE github_user_tasks
                    SET status = :status, score_awarded = :score, updated_at = CURRENT_TIMESTAMP
                    WHERE id = :id AND status = :old_status
                """),
                {
                    "status": result.status.value, "score": result.points,
                    "id": user_task["id"], "old_status": user_task["status"]
                }
            )

            if updated.rowcount == 0:
                return False
            if not result.transitioned:
                return True

            db.execute(
                text("""
                    INSERT INTO notifications (user_id, title, message, type, related_id, is_read)
                    VALUES (:user_id, :title, :message, 'task_approved', :related_id, FALSE)
                """),
                {
                    "user_id": user_id,
                    "title": f"GitHub Task Completed: {title}",
                    "message": (
                        f'Excellent! Your GitHub task "{title}" has been automatically verified. '
                        f"You earned {result.points} points!"
                    ),
                    "related_id": user_task["id"]
                }
            )
            db.execute(
                text("""
                    INSERT INTO user_activity_points
                        (user_id, activity_date, activity_type, points_earned, activity_description)
                    VALUES (:user_id, :activity_date, 'github_task_completion', :points, :description)
                """),
                {
                    "user_id": user_id,
                    "activity_date": activity_date,
                    "points": result.points,
                    "description": f"Completed GitHub task: {title}"
                }
            )
        return True

    def upsert_period_score(self, user_id: str, period: str, points_total: int, updated_at: datetime) -> None:
        breakdown = {"weekly_tasks": points_total, "updated_at": updated_at.isoformat()}
        with get_db_session() as db:
            db.execute(
                text("""
                    INSERT INTO github_scores (user_id, period, points_total, breakdown)
                    VALUES (:user_id, :period, :points_total, CAST(:breakdown AS JSONB))
                    ON CONFLICT (user_id, period) DO UPDATE SET
                        points_total = EXCLUDED.points_total,
                        breakdown = EXCLUDED.breakdown,
                        updated_at = CURRENT_TIMESTAMP
                """),
                {
                    "user_id": user_id, "period": period,
                    "points_total": points_total, "breakdown": json.dumps(breakdown)
                }
            )

    def list_period_scores(self, user_id: str) -> List[dict]:
        return execute_raw_sql("""
            SELECT period, points_total, breakdown, updated_at
            FROM github_scores
            WHERE user_id = :user_id
            ORDER BY period DESC
        """, {"user_id": user_id})

    # ------------------------------------------------------------
    # Evidence submission
    # ------------------------------------------------------------

    def insert_evidence(self, user_task_id: str, evidence: EvidenceCreate) -> dict:
        """
        Store evidence and move the task to SUBMITTED unless it is
        already (partially) verified. Returns the new evidence row.
        """
        parsed_json = {
            "description": evidence.description,
            "weeklyMetrics": {"commits": evidence.commits, "readmeUpdates": evidence.readme_updates},
            "repo_url": evidence.url,
        }

        with get_db_session() as db:
            result = db.execute(
                text("""
                    INSERT INTO github_evidence (user_task_id, kind, url, parsed_json)
                    VALUES (:user_task_id, :kind, :url, CAST(:parsed_json AS JSONB))
                    RETURNING id, created_at
                """),
                {
                    "user_task_id": user_task_id, "kind": evidence.kind.value,
                    "url": evidence.url, "parsed_json": json.dumps(parsed_json)
                }
            )
            evidence_id, created_at = result.fetchone()

            result = db.execute(
                text("""
                    UPDATE github_user_tasks
                    SET status = :submitted, updated_at = CURRENT_TIMESTAMP
                    WHERE id = :id AND status NOT IN (:partial, :verified)
                    RETURNING status
                """),
                {
                    "id": user_task_id,
                    "submitted": TaskStatus.submitted.value,
                    "partial": TaskStatus.partially_verified.value,
                    "verified": TaskStatus.verified.value
                }
            )
            row = result.fetchone()
            if row is None:
                status_row = db.execute(
                    text("SELECT status FROM github_user_tasks WHERE id = :id"),
                    {"id": user_task_id}
                ).fetchone()
                task_status = status_row[0]
            else:
                task_status = row[0]

        return {
            "id": evidence_id,
            "created_at": created_at,
            "task_status": task_status
        }

    # ------------------------------------------------------------
    # Profile inputs & signals
    # ------------------------------------------------------------

    def get_github_username(self, user_id: str) -> Optional[str]:
        results = execute_raw_sql(
            "SELECT value FROM user_inputs WHERE user_id = :user_id AND key = 'github_username' LIMIT 1",
            {"user_id": user_id}
        )
        if not results or not results[0]["value"]:
            return None
        return results[0]["value"]

    def insert_signal(self, user_id: str, kind: str, subject: str, raw_meta: dict, happened_at: datetime) -> None:
        with get_db_session() as db:
            db.execute(
                text("""
                    INSERT INTO github_signals (user_id, kind, subject, raw_meta, happened_at)
                    VALUES (:user_id, :kind, :subject, CAST(:raw_meta AS JSONB), :happened_at)
                """),
                {
                    "user_id": user_id, "kind": kind, "subject": subject,
                    "raw_meta": json.dumps(raw_meta), "happened_at": happened_at
                }
            )


# ============================================================
# CONVENIENCE FUNCTIONS
# ============================================================

def get_task_repository() -> GitHubTaskRepository:
    """Get task repository instance."""
    return GitHubTaskRepository()
