"""Shared fixtures: in-memory stand-ins for PostgreSQL and MongoDB access."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import SQLAlchemyError

from levelup.schemas.schemas import TaskStatus

UTC = timezone.utc

# ISO week 2026-42
PERIOD = "2026-42"
PERIOD_START = datetime(2026, 10, 12, tzinfo=UTC)
PERIOD_END = datetime(2026, 10, 18, 23, 59, 59, 999999, tzinfo=UTC)


def day(n: int, hour: int = 12) -> datetime:
    """n-th day of the test period (0 = Monday) at `hour` UTC."""
    return PERIOD_START + timedelta(days=n, hours=hour)


def user_task(task_id, code, period=PERIOD, status="NOT_STARTED", score=0, user_id="user-1", title=None):
    return {
        "id": task_id,
        "user_id": user_id,
        "task_id": f"def-{code}",
        "task_code": code,
        "task_title": title or code.replace("_", " ").title(),
        "period": period,
        "status": status,
        "score_awarded": score,
        "due_at": PERIOD_END if period else None,
        "updated_at": None,
    }


class FakeTaskRepository:
    """Mirrors GitHubTaskRepository over plain lists and dicts."""

    def __init__(self, tasks=None, signals=None, evidence=None, active_tasks=None, username=None):
        self.tasks = tasks or []
        self.signals = signals or []
        self.evidence = evidence or {}
        self.active_tasks = active_tasks or []
        self.username = username
        self.failing_evidence = set()
        self.notifications = []
        self.points = []
        self.scores = {}
        self.inserted_signals = []

    def get_tasks_for_verification(self, user_id, period):
        return [dict(t) for t in self.tasks
                if t["user_id"] == user_id and (t["period"] == period or t["period"] is None)]

    def list_user_tasks(self, user_id, period=None):
        return [dict(t) for t in self.tasks
                if t["user_id"] == user_id and (period is None or t["period"] == period)]

    def get_user_task(self, user_task_id, user_id):
        for t in self.tasks:
            if t["id"] == user_task_id and t["user_id"] == user_id:
                return dict(t)
        return None

    def has_tasks_for_period(self, user_id, period):
        return any(t["user_id"] == user_id and t["period"] == period for t in self.tasks)

    def get_active_tasks(self, scope):
        return [t for t in self.active_tasks if t["scope"] == scope]

    def create_user_tasks(self, user_id, task_ids, period, due_at):
        for task_id in task_ids:
            task = next(t for t in self.active_tasks if t["id"] == task_id)
            self.tasks.append(user_task(f"ut-{len(self.tasks) + 1}", task["code"], period=period, user_id=user_id))
            self.tasks[-1]["due_at"] = due_at
        return len(task_ids)

    def get_signals(self, user_id, until):
        return [s for s in self.signals if s["happened_at"] <= until]

    def get_evidence(self, user_task_id):
        if user_task_id in self.failing_evidence:
            raise SQLAlchemyError("connection reset")
        return self.evidence.get(user_task_id, [])

    def save_result(self, user_id, user_task, result, activity_date):
        stored = next(t for t in self.tasks if t["id"] == user_task["id"])
        if stored["status"] != user_task["status"]:
            return False
        stored["status"] = result.status.value
        stored["score_awarded"] = result.points
        if result.transitioned:
            self.notifications.append({"user_id": user_id, "related_id": user_task["id"],
                                       "title": f"GitHub Task Completed: {user_task['task_title']}"})
            self.points.append({"user_id": user_id, "points_earned": result.points,
                                "activity_date": activity_date})
        return True

    def upsert_period_score(self, user_id, period, points_total, updated_at):
        self.scores[(user_id, period)] = points_total

    def list_period_scores(self, user_id):
        return [{"period": p, "points_total": total, "breakdown": {"weekly_tasks": total}, "updated_at": None}
                for (u, p), total in sorted(self.scores.items(), reverse=True) if u == user_id]

    def insert_evidence(self, user_task_id, evidence):
        stored = next(t for t in self.tasks if t["id"] == user_task_id)
        if stored["status"] not in (TaskStatus.partially_verified.value, TaskStatus.verified.value):
            stored["status"] = TaskStatus.submitted.value
        self.evidence.setdefault(user_task_id, []).append({"url": evidence.url, "kind": evidence.kind.value})
        return {"id": f"ev-{len(self.evidence[user_task_id])}",
                "created_at": datetime(2026, 10, 14, tzinfo=UTC),
                "task_status": stored["status"]}

    def get_github_username(self, user_id):
        return self.username

    def insert_signal(self, user_id, kind, subject, raw_meta, happened_at):
        self.inserted_signals.append({"user_id": user_id, "kind": kind, "subject": subject,
                                      "raw_meta": raw_meta, "happened_at": happened_at})


class FakeSnapshotStore:
    def __init__(self, docs=None):
        self.docs = docs or []

    def insert(self, user_id, snapshot, captured_at=None):
        self.docs.insert(0, {"user_id": user_id, **snapshot, "captured_at": captured_at})
        return f"snap-{len(self.docs)}"

    def latest(self, user_id, limit=10):
        return [d for d in self.docs if d["user_id"] == user_id][:limit]


@pytest.fixture
def repository():
    return FakeTaskRepository()


@pytest.fixture
def snapshot_store():
    return FakeSnapshotStore()
