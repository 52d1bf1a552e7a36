"""
GitHub Activity Verification Engine

PURPOSE:
Score one weekly/showcase GitHub task for one user into a status
(NOT_STARTED / SUBMITTED / PARTIALLY_VERIFIED / VERIFIED), a point value
and a list of human-readable notes.

HOW IT WORKS:
1. Evidence present -> status starts at SUBMITTED
2. Look up the task code in the rule table (unknown codes -> manual review)
3. Measure the rule (signal count, distinct commit days, snapshot topics)
4. Measure >= threshold -> VERIFIED with base points (+ bonus)
5. Otherwise apply the rule's partial-credit policy, if any

The engine is a pure function of its inputs: no database, no network.
Adding a task type means adding an entry to RULES, not a new branch.
"""

import math
from dataclasses import dataclass
from datetime import date, datetime, timezone, tzinfo
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple, Union

from levelup.schemas.schemas import (
    Signal,
    SignalKind,
    TaskStatus,
    VerificationContext,
    VerificationResult,
)

UTC = timezone.utc

# Flat credit for task codes the rule table does not know yet
UNKNOWN_TASK_POINTS = 5
UNKNOWN_TASK_NOTE = "Evidence submitted for manual review"


# ============================================================
# TIME WINDOW HELPERS
# ============================================================

def as_utc_aware(moment: datetime) -> datetime:
    """Naive timestamps are taken to be UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment


def in_window(moment: datetime, start: Optional[datetime], end: Optional[datetime]) -> bool:
    """Inclusive window check. A missing bound means no window, so nothing is inside it."""
    if start is None or end is None:
        return False
    return as_utc_aware(start) <= as_utc_aware(moment) <= as_utc_aware(end)


def _kind_value(kind: Union[SignalKind, str]) -> str:
    return kind.value if isinstance(kind, SignalKind) else kind


def signals_of_kind(signals: Iterable[Signal], kind: Union[SignalKind, str]) -> List[Signal]:
    wanted = _kind_value(kind)
    return [s for s in signals if s.kind == wanted]


def signals_in_window(
    signals: Iterable[Signal],
    kind: Union[SignalKind, str],
    start: Optional[datetime],
    end: Optional[datetime]
) -> List[Signal]:
    """Signals of one kind whose happened_at lies within [start, end]."""
    return [s for s in signals_of_kind(signals, kind) if in_window(s.happened_at, start, end)]


def dedupe_by_calendar_day(
    items: Iterable[Union[Signal, datetime]],
    tz: tzinfo = UTC
) -> Set[date]:
    """
    Collapse signals (or bare timestamps) into the set of calendar days
    they fall on, as seen from timezone `tz`.
    """
    days = set()
    for item in items:
        moment = item.happened_at if isinstance(item, Signal) else item
        days.add(as_utc_aware(moment).astimezone(tz).date())
    return days


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (Python's round() is banker's)."""
    return int(math.floor(value + 0.5))


# ============================================================
# MEASURES
# A measure turns a context into the number a rule's threshold is
# compared against.
# ============================================================

Measure = Callable[[VerificationContext, tzinfo], int]


def _qualifying(context: VerificationContext, kind: SignalKind, windowed: bool) -> List[Signal]:
    if windowed:
        return signals_in_window(context.signals, kind, context.period_start, context.period_end)
    return signals_of_kind(context.signals, kind)


def count_signals(kind: SignalKind, windowed: bool = True) -> Measure:
    def measure(context: VerificationContext, tz: tzinfo) -> int:
        return len(_qualifying(context, kind, windowed))
    return measure


def count_signal_days(kind: SignalKind, windowed: bool = True) -> Measure:
    def measure(context: VerificationContext, tz: tzinfo) -> int:
        return len(dedupe_by_calendar_day(_qualifying(context, kind, windowed), tz))
    return measure


def latest_snapshot_topics(context: VerificationContext, tz: tzinfo) -> int:
    if not context.snapshots:
        return 0
    return len(context.snapshots[0].topics)


# ============================================================
# PARTIAL CREDIT POLICIES
# Each returns (points, note) when it applies, else None.
# ============================================================

Credit = Optional[Tuple[int, str]]


@dataclass(frozen=True)
class ProportionalCredit:
    """base_points * measure / threshold for any non-zero measure."""
    note: str

    def evaluate(self, rule: "VerificationRule", measure: int,
                 context: VerificationContext, tz: tzinfo) -> Credit:
        if measure <= 0:
            return None
        points = round_half_up(rule.base_points * measure / rule.threshold)
        return points, self.note.format(measure=measure, threshold=rule.threshold)


@dataclass(frozen=True)
class MeasureCredit:
    """Flat points once the measure reaches `minimum` (but not the threshold)."""
    points: int
    note: str
    minimum: int = 1

    def evaluate(self, rule: "VerificationRule", measure: int,
                 context: VerificationContext, tz: tzinfo) -> Credit:
        if measure < self.minimum:
            return None
        return self.points, self.note.format(measure=measure)


@dataclass(frozen=True)
class RelatedSignalCredit:
    """Flat points when a weaker signal (e.g. PR opened instead of merged) is seen."""
    kind: SignalKind
    points: int
    note: str
    windowed: bool = True

    def evaluate(self, rule: "VerificationRule", measure: int,
                 context: VerificationContext, tz: tzinfo) -> Credit:
        count = len(_qualifying(context, self.kind, self.windowed))
        if count == 0:
            return None
        return self.points, self.note.format(count=count)


@dataclass(frozen=True)
class EvidenceUrlCredit:
    """Flat points when any submitted evidence URL contains one of `patterns`."""
    patterns: Tuple[str, ...]
    points: int
    note: str
    case_sensitive: bool = True

    def evaluate(self, rule: "VerificationRule", measure: int,
                 context: VerificationContext, tz: tzinfo) -> Credit:
        for evidence in context.evidence:
            if not evidence.url:
                continue
            url = evidence.url if self.case_sensitive else evidence.url.lower()
            if any(pattern in url for pattern in self.patterns):
                return self.points, self.note
        return None


@dataclass(frozen=True)
class AnyEvidenceCredit:
    points: int
    note: str

    def evaluate(self, rule: "VerificationRule", measure: int,
                 context: VerificationContext, tz: tzinfo) -> Credit:
        if not context.evidence:
            return None
        return self.points, self.note


PartialCredit = Union[
    ProportionalCredit, MeasureCredit, RelatedSignalCredit, EvidenceUrlCredit, AnyEvidenceCredit
]


# ============================================================
# RULE TABLE
# ============================================================

@dataclass(frozen=True)
class VerificationRule:
    code: str
    measure: Measure
    threshold: int
    base_points: int
    verified_note: str
    bonus_threshold: Optional[int] = None
    bonus_points: int = 0
    partial_credit: Optional[PartialCredit] = None

    def points_for(self, measure: int) -> int:
        points = self.base_points
        if self.bonus_threshold is not None and measure >= self.bonus_threshold:
            points += self.bonus_points
        return points


RULES: Dict[str, VerificationRule] = {rule.code: rule for rule in [
    # Weekly tasks (window-scoped)
    VerificationRule(
        code="GHW_COMMIT_3DAYS",
        measure=count_signal_days(SignalKind.commit_pushed),
        threshold=3,
        base_points=15,
        bonus_threshold=5,
        bonus_points=5,  # consistency bonus
        verified_note="Committed on {measure} distinct days",
        partial_credit=ProportionalCredit(note="Committed on {measure}/{threshold} days"),
    ),
    VerificationRule(
        code="GHW_WEEKLY_CHANGELOG",
        measure=count_signals(SignalKind.release_published),
        threshold=1,
        base_points=12,
        verified_note="Release published with changelog",
        partial_credit=EvidenceUrlCredit(
            patterns=("CHANGELOG", "changelog", "releases"),
            points=8,
            note="Changelog evidence submitted",
        ),
    ),
    VerificationRule(
        code="GHW_MERGE_1PR",
        measure=count_signals(SignalKind.pr_merged),
        threshold=1,
        base_points=10,
        bonus_threshold=3,
        bonus_points=5,
        verified_note="{measure} PR(s) merged",
        partial_credit=RelatedSignalCredit(
            kind=SignalKind.pr_opened,
            points=5,
            note="{count} PR(s) opened but not merged",
        ),
    ),
    VerificationRule(
        code="GHW_CLOSE_2ISSUES",
        measure=count_signals(SignalKind.issue_closed),
        threshold=2,
        base_points=12,
        verified_note="{measure} issues closed",
        partial_credit=MeasureCredit(points=6, note="{measure} issue closed"),
    ),
    VerificationRule(
        code="GHW_README_TWEAK",
        measure=count_signals(SignalKind.readme_updated),
        threshold=1,
        base_points=8,
        verified_note="README updated via commit",
        partial_credit=EvidenceUrlCredit(
            patterns=("readme",),
            points=5,
            note="README evidence submitted",
            case_sensitive=False,
        ),
    ),
    VerificationRule(
        code="GHW_CI_GREEN",
        measure=count_signals(SignalKind.workflow_passed),
        threshold=1,
        base_points=10,
        verified_note="GitHub Actions workflow passed",
    ),
    VerificationRule(
        code="GHW_PAGES_DEPLOY",
        measure=count_signals(SignalKind.pages_deployed),
        threshold=1,
        base_points=15,
        verified_note="GitHub Pages deployed",
        partial_credit=AnyEvidenceCredit(points=10, note="Pages URL evidence submitted"),
    ),
    # Repository showcase tasks
    VerificationRule(
        code="GHS_ADD_TOPICS",
        measure=latest_snapshot_topics,
        threshold=5,
        base_points=8,
        verified_note="{measure} topics added",
        partial_credit=AnyEvidenceCredit(points=4, note="Topics evidence submitted"),
    ),
    VerificationRule(
        code="GHS_PAGES_SETUP",
        measure=count_signals(SignalKind.pages_deployed, windowed=False),
        threshold=1,
        base_points=15,
        verified_note="GitHub Pages set up",
        partial_credit=AnyEvidenceCredit(points=10, note="Pages setup evidence submitted"),
    ),
]}


# ============================================================
# ENGINE
# ============================================================

class ActivityVerificationEngine:
    """
    Interprets the rule table for one (user, task, period) at a time.

    Stateless: every call builds a fresh VerificationResult, so one
    instance can be shared across users and threads.
    """

    def __init__(self, rules: Optional[Dict[str, VerificationRule]] = None, tz: tzinfo = UTC):
        self.rules = RULES if rules is None else rules
        self.tz = tz

    def verify(
        self,
        task_code: str,
        context: VerificationContext,
        previous_status: Optional[Union[TaskStatus, str]] = None
    ) -> VerificationResult:
        """
        Verify one task.

        Args:
            task_code: Rule key, e.g. "GHW_COMMIT_3DAYS"
            context: Evidence, signals and snapshots for this user/period
            previous_status: Status stored before this run, used to flag
                a fresh transition into VERIFIED

        Returns:
            VerificationResult with status, points, notes and transitioned
        """
        has_evidence = bool(context.evidence)
        status = TaskStatus.submitted if has_evidence else TaskStatus.not_started
        points = 0
        notes: List[str] = []

        rule = self.rules.get(task_code)
        if rule is None:
            if has_evidence:
                status = TaskStatus.partially_verified
                points = UNKNOWN_TASK_POINTS
                notes.append(UNKNOWN_TASK_NOTE)
        else:
            measure = rule.measure(context, self.tz)
            if measure >= rule.threshold:
                status = TaskStatus.verified
                points = rule.points_for(measure)
                notes.append(rule.verified_note.format(measure=measure))
            elif rule.partial_credit is not None:
                credit = rule.partial_credit.evaluate(rule, measure, context, self.tz)
                if credit is not None:
                    points, note = credit
                    status = TaskStatus.partially_verified
                    notes.append(note)

        transitioned = status == TaskStatus.verified and previous_status != TaskStatus.verified

        return VerificationResult(
            status=status,
            points=points,
            notes=notes,
            transitioned=transitioned
        )


# ============================================================
# CONVENIENCE FUNCTIONS
# ============================================================

def get_verification_engine(tz: tzinfo = UTC) -> ActivityVerificationEngine:
    """Get engine instance using the default rule table."""
    return ActivityVerificationEngine(tz=tz)


def verify(
    task_code: str,
    context: VerificationContext,
    previous_status: Optional[Union[TaskStatus, str]] = None,
    tz: tzinfo = UTC
) -> VerificationResult:
    """Verify one task with the default rule table."""
    return ActivityVerificationEngine(tz=tz).verify(task_code, context, previous_status)
