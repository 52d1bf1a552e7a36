"""
GitHub Routes

POST /github/verify - Verify a user's GitHub tasks for a period
POST /github/verify/preview - Run the rule engine on a supplied context
POST /github/weeks - Create this week's GitHub tasks
GET /github/tasks - List the user's GitHub tasks
POST /github/tasks/{user_task_id}/evidence - Submit evidence for a task
POST /github/snapshot - Capture a GitHub profile snapshot
GET /github/scores - Per-period point totals
"""

from fastapi import APIRouter, HTTPException, Depends, Query
from sqlalchemy.exc import SQLAlchemyError
from typing import Optional

from levelup.core.auth import get_current_user, resolve_target_user
from levelup.core.config import get_settings
from levelup.core.logging_config import get_logger
from levelup.services.github_client import GitHubAPIError
from levelup.services.periods import InvalidPeriodError, normalize_period
from levelup.services.snapshot_service import GitHubUsernameNotFound, get_snapshot_service
from levelup.services.task_repository import get_task_repository
from levelup.services.verification_engine import get_verification_engine
from levelup.services.verification_service import TaskNotFoundError, get_verification_service
from levelup.schemas.schemas import (
    VerifyRequest, VerifyPreviewRequest, VerificationResult, VerificationRunResponse,
    InstantiateWeekRequest, InstantiateWeekResponse, UserTaskResponse, UserTaskListResponse,
    EvidenceCreate, EvidenceResponse, SnapshotResponse, PeriodScoreResponse, PeriodScoreListResponse
)

router = APIRouter(prefix="/github", tags=["GitHub"])
logger = get_logger(__name__)


@router.post("/verify", response_model=VerificationRunResponse)
async def verify_tasks(request: VerifyRequest, user: dict = Depends(get_current_user)):
    """
    Verify GitHub tasks for the current ISO week (or `period`).

    Status/score changes are persisted; tasks that newly reach VERIFIED
    trigger a notification and an activity points award.
    Admins may verify any user by passing `user_id`.
    """
    target_user_id = resolve_target_user(request.user_id, user)
    service = get_verification_service()

    try:
        return service.verify_user_tasks(target_user_id, period=request.period)
    except InvalidPeriodError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SQLAlchemyError as e:
        logger.error("Verification failed for user %s: %s", target_user_id, e)
        raise HTTPException(status_code=500, detail="Failed to fetch user tasks")


@router.post("/verify/preview", response_model=VerificationResult)
async def preview_verification(request: VerifyPreviewRequest, user: dict = Depends(get_current_user)):
    """
    Score one task against the supplied evidence, signals and snapshots.
    Nothing is read from or written to the database.
    """
    engine = get_verification_engine(tz=get_settings().tzinfo)
    return engine.verify(request.task_code, request, previous_status=request.previous_status)


@router.post("/weeks", response_model=InstantiateWeekResponse)
async def instantiate_week(request: InstantiateWeekRequest, user: dict = Depends(get_current_user)):
    """Create the current week's GitHub tasks. Does nothing if they already exist."""
    target_user_id = resolve_target_user(request.user_id, user)
    service = get_verification_service()
    return service.instantiate_week(target_user_id)


@router.get("/tasks", response_model=UserTaskListResponse)
async def list_tasks(
    period: Optional[str] = Query(None, description="ISO week, e.g. 2026-42"),
    user: dict = Depends(get_current_user)
):
    """List the current user's GitHub tasks, newest period first."""
    if period:
        try:
            period = normalize_period(period)
        except InvalidPeriodError as e:
            raise HTTPException(status_code=400, detail=str(e))

    results = get_task_repository().list_user_tasks(user["user_id"], period)

    tasks = [
        UserTaskResponse(
            id=str(r["id"]), task_id=str(r["task_id"]), task_code=r["task_code"],
            task_title=r["task_title"], period=r["period"], status=r["status"],
            score_awarded=r["score_awarded"] or 0, due_at=r["due_at"], updated_at=r["updated_at"]
        ) for r in results
    ]

    return UserTaskListResponse(tasks=tasks, total=len(tasks))


@router.post("/tasks/{user_task_id}/evidence", response_model=EvidenceResponse, status_code=201)
async def submit_evidence(user_task_id: str, evidence: EvidenceCreate, user: dict = Depends(get_current_user)):
    """Attach evidence to one of your tasks. The task moves to SUBMITTED."""
    service = get_verification_service()

    try:
        return service.submit_evidence(user["user_id"], user_task_id, evidence)
    except TaskNotFoundError:
        raise HTTPException(status_code=404, detail="Task not found")


@router.post("/snapshot", response_model=SnapshotResponse)
async def capture_snapshot(user: dict = Depends(get_current_user)):
    """
    Capture the current state of your GitHub profile.

    Requires a GitHub username in your profile inputs.
    """
    service = get_snapshot_service()

    try:
        snapshot = service.capture(user["user_id"])
    except GitHubUsernameNotFound:
        raise HTTPException(status_code=400, detail="GitHub username not found in user inputs")
    except GitHubAPIError as e:
        logger.error("GitHub snapshot failed for user %s: %s", user["user_id"], e)
        raise HTTPException(status_code=502, detail="GitHub API request failed")

    return SnapshotResponse(message="GitHub snapshot completed", snapshot=snapshot)


@router.get("/scores", response_model=PeriodScoreListResponse)
async def list_scores(user: dict = Depends(get_current_user)):
    """Per-period GitHub points, newest period first."""
    results = get_task_repository().list_period_scores(user["user_id"])

    scores = [
        PeriodScoreResponse(
            period=r["period"], points_total=r["points_total"] or 0,
            breakdown=r["breakdown"], updated_at=r["updated_at"]
        ) for r in results
    ]

    return PeriodScoreListResponse(scores=scores, total=len(scores))
