"""
Pydantic Schemas - Domain records and Request/Response Validation

All schemas in one file for simplicity.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime
from enum import Enum


# ============================================================
# ENUMS
# ============================================================

class TaskStatus(str, Enum):
    not_started = "NOT_STARTED"
    submitted = "SUBMITTED"
    partially_verified = "PARTIALLY_VERIFIED"
    verified = "VERIFIED"


class SignalKind(str, Enum):
    commit_pushed = "COMMIT_PUSHED"
    pr_opened = "PR_OPENED"
    pr_merged = "PR_MERGED"
    issue_closed = "ISSUE_CLOSED"
    release_published = "RELEASE_PUBLISHED"
    readme_updated = "README_UPDATED"
    workflow_passed = "ACTIONS_WORKFLOW_PASSED"
    pages_deployed = "PAGES_DEPLOYED"
    profile_updated = "PROFILE_UPDATED"


class EvidenceKind(str, Enum):
    url = "URL"
    screenshot = "SCREENSHOT"
    data_export = "DATA_EXPORT"


class TaskScope(str, Enum):
    weekly = "WEEKLY"
    showcase = "SHOWCASE"


class UserRole(str, Enum):
    learner = "learner"
    admin = "admin"


# ============================================================
# VERIFICATION RECORDS (engine input/output)
# ============================================================

class Signal(BaseModel):
    # Kept as a plain string so newly ingested kinds never fail validation
    kind: str
    happened_at: datetime
    subject: Optional[str] = None
    raw_meta: Optional[dict] = None

class Evidence(BaseModel):
    url: Optional[str] = None
    kind: EvidenceKind = EvidenceKind.url
    description: Optional[str] = None

class Snapshot(BaseModel):
    topics: List[str] = []
    captured_at: Optional[datetime] = None

    @field_validator("topics", mode="before")
    @classmethod
    def none_topics_to_empty(cls, value):
        return value or []

class VerificationContext(BaseModel):
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    evidence: List[Evidence] = []
    signals: List[Signal] = []
    snapshots: List[Snapshot] = []

class VerificationResult(BaseModel):
    status: TaskStatus = TaskStatus.not_started
    points: int = Field(0, ge=0)
    notes: List[str] = []
    transitioned: bool = False


# ============================================================
# VERIFICATION API SCHEMAS
# ============================================================

class VerifyRequest(BaseModel):
    user_id: Optional[str] = None
    period: Optional[str] = Field(None, description="ISO week code, e.g. 2026-42")

class VerifyPreviewRequest(VerificationContext):
    task_code: str = Field(..., min_length=1)
    previous_status: Optional[TaskStatus] = None

class TaskUpdate(BaseModel):
    id: str
    task_code: str
    old_status: str
    new_status: TaskStatus
    old_score: int
    new_score: int
    notes: List[str] = []

class VerificationRunResponse(BaseModel):
    message: str
    period: str
    tasks_verified: int = 0
    tasks_updated: int = 0
    total_points_awarded: int = 0
    updated_tasks: List[TaskUpdate] = []


# ============================================================
# TASK SCHEMAS
# ============================================================

class InstantiateWeekRequest(BaseModel):
    user_id: Optional[str] = None

class InstantiateWeekResponse(BaseModel):
    message: str
    period: str
    tasks_created: int = 0
    due_at: Optional[datetime] = None

class UserTaskResponse(BaseModel):
    id: str
    task_id: str
    task_code: str
    task_title: str
    period: Optional[str] = None
    status: str
    score_awarded: int
    due_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class UserTaskListResponse(BaseModel):
    tasks: List[UserTaskResponse]
    total: int

class EvidenceCreate(BaseModel):
    kind: EvidenceKind = EvidenceKind.url
    url: Optional[str] = Field(None, max_length=2048)
    description: Optional[str] = Field(None, max_length=2000)
    commits: int = Field(0, ge=0)
    readme_updates: int = Field(0, ge=0)

class EvidenceResponse(BaseModel):
    evidence_id: str
    user_task_id: str
    kind: str
    url: Optional[str] = None
    task_status: str
    created_at: datetime


# ============================================================
# SNAPSHOT & SCORE SCHEMAS
# ============================================================

class ProfileSnapshot(BaseModel):
    username: str
    public_repos: int = 0
    has_portfolio_repo: bool = False
    has_profile_readme: bool = False
    total_topics: int = 0
    topics: List[str] = []
    recent_commit_days: int = 0
    followers: int = 0
    following: int = 0

class SnapshotResponse(BaseModel):
    success: bool = True
    message: str
    snapshot: ProfileSnapshot

class PeriodScoreResponse(BaseModel):
    period: str
    points_total: int
    breakdown: Optional[dict] = None
    updated_at: Optional[datetime] = None

class PeriodScoreListResponse(BaseModel):
    scores: List[PeriodScoreResponse]
    total: int
