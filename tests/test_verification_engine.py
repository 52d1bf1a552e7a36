"""Tests for the GitHub activity verification rule engine."""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from levelup.schemas.schemas import (
    Evidence,
    Signal,
    SignalKind,
    Snapshot,
    TaskStatus,
    VerificationContext,
)
from levelup.services.verification_engine import (
    RULES,
    ActivityVerificationEngine,
    MeasureCredit,
    VerificationRule,
    count_signals,
    dedupe_by_calendar_day,
    in_window,
    round_half_up,
    signals_in_window,
    verify,
)

from conftest import PERIOD_END, PERIOD_START, day

UTC = timezone.utc


def signal(kind, when):
    return Signal(kind=kind.value if isinstance(kind, SignalKind) else kind, happened_at=when)


def context(signals=(), evidence=(), snapshots=(), windowed=True):
    return VerificationContext(
        period_start=PERIOD_START if windowed else None,
        period_end=PERIOD_END if windowed else None,
        signals=list(signals),
        evidence=list(evidence),
        snapshots=list(snapshots),
    )


def commits_on(*days):
    return [signal(SignalKind.commit_pushed, day(d)) for d in days]


class TestEmptyContext:

    @pytest.mark.parametrize("task_code", sorted(RULES) + ["GHW_SOMETHING_NEW"])
    def test_nothing_submitted_is_not_started(self, task_code):
        result = verify(task_code, context())
        assert result.status == TaskStatus.not_started
        assert result.points == 0
        assert result.notes == []
        assert result.transitioned is False

    @pytest.mark.parametrize("task_code", ["GHW_COMMIT_3DAYS", "GHW_CLOSE_2ISSUES", "GHW_CI_GREEN"])
    def test_evidence_alone_is_submitted(self, task_code):
        result = verify(task_code, context(evidence=[Evidence(url="https://example.com/proof")]))
        assert result.status == TaskStatus.submitted
        assert result.points == 0


class TestCommitDays:

    def test_many_commits_on_one_day_count_once(self):
        signals = [signal(SignalKind.commit_pushed, day(2, hour=h % 24)) for h in range(10)]
        result = verify("GHW_COMMIT_3DAYS", context(signals))
        assert result.status == TaskStatus.partially_verified
        assert result.points == 5
        assert result.notes == ["Committed on 1/3 days"]

    def test_two_days_is_proportional(self):
        result = verify("GHW_COMMIT_3DAYS", context(commits_on(0, 4)))
        assert result.status == TaskStatus.partially_verified
        assert result.points == 10

    def test_three_days_verified(self):
        result = verify("GHW_COMMIT_3DAYS", context(commits_on(0, 2, 4)))
        assert result.status == TaskStatus.verified
        assert result.points == 15
        assert result.notes == ["Committed on 3 distinct days"]

    def test_five_days_earns_consistency_bonus(self):
        result = verify("GHW_COMMIT_3DAYS", context(commits_on(0, 1, 2, 3, 4)))
        assert result.status == TaskStatus.verified
        assert result.points == 20

    def test_no_window_means_no_credit(self):
        result = verify("GHW_COMMIT_3DAYS", context(commits_on(0, 1, 2), windowed=False))
        assert result.status == TaskStatus.not_started
        assert result.points == 0

    def test_other_signal_kinds_ignored(self):
        signals = [signal(SignalKind.pr_merged, day(d)) for d in range(5)] + [signal("STAR_ADDED", day(1))]
        assert verify("GHW_COMMIT_3DAYS", context(signals)).points == 0


class TestWindowBoundaries:

    def test_signal_exactly_at_period_end_counts(self):
        result = verify("GHW_CI_GREEN", context([signal(SignalKind.workflow_passed, PERIOD_END)]))
        assert result.status == TaskStatus.verified

    def test_signal_one_millisecond_after_end_does_not_count(self):
        late = PERIOD_END + timedelta(milliseconds=1)
        result = verify("GHW_CI_GREEN", context([signal(SignalKind.workflow_passed, late)]))
        assert result.status == TaskStatus.not_started

    def test_commit_at_end_counts_but_not_after(self):
        at_end = verify("GHW_COMMIT_3DAYS", context([signal(SignalKind.commit_pushed, PERIOD_END)]))
        after = verify("GHW_COMMIT_3DAYS",
                       context([signal(SignalKind.commit_pushed, PERIOD_END + timedelta(milliseconds=1))]))
        assert at_end.points == 5
        assert after.points == 0

    def test_period_start_is_inclusive(self):
        assert in_window(PERIOD_START, PERIOD_START, PERIOD_END)
        assert not in_window(PERIOD_START - timedelta(microseconds=1), PERIOD_START, PERIOD_END)

    def test_missing_bound_means_nothing_in_window(self):
        assert not in_window(day(1), None, PERIOD_END)
        assert signals_in_window(commits_on(1), SignalKind.commit_pushed, PERIOD_START, None) == []

    def test_naive_timestamps_are_utc(self):
        naive_end = PERIOD_END.replace(tzinfo=None)
        assert in_window(naive_end, PERIOD_START, PERIOD_END)


class TestCountRules:

    def test_merge_open_prs_only_is_partial(self):
        signals = [signal(SignalKind.pr_opened, day(1)), signal(SignalKind.pr_opened, day(3))]
        result = verify("GHW_MERGE_1PR", context(signals))
        assert result.status == TaskStatus.partially_verified
        assert result.points == 5
        assert result.notes == ["2 PR(s) opened but not merged"]

    def test_merge_one_pr_verified(self):
        result = verify("GHW_MERGE_1PR", context([signal(SignalKind.pr_merged, day(2))]))
        assert result.status == TaskStatus.verified
        assert result.points == 10

    def test_merge_three_prs_bonus(self):
        signals = [signal(SignalKind.pr_merged, day(d)) for d in (0, 1, 2)]
        assert verify("GHW_MERGE_1PR", context(signals)).points == 15

    def test_close_two_issues_verified(self):
        signals = [signal(SignalKind.issue_closed, day(1)), signal(SignalKind.issue_closed, day(1, hour=15))]
        result = verify("GHW_CLOSE_2ISSUES", context(signals))
        assert result.status == TaskStatus.verified
        assert result.points == 12

    def test_close_one_issue_partial(self):
        result = verify("GHW_CLOSE_2ISSUES", context([signal(SignalKind.issue_closed, day(1))]))
        assert result.status == TaskStatus.partially_verified
        assert result.points == 6
        assert result.notes == ["1 issue closed"]

    @pytest.mark.parametrize("evidence,expected", [
        ([], TaskStatus.not_started),
        ([Evidence(url="https://github.com/me/repo/issues/4")], TaskStatus.submitted),
    ])
    def test_close_no_issues(self, evidence, expected):
        result = verify("GHW_CLOSE_2ISSUES", context(evidence=evidence))
        assert result.status == expected
        assert result.points == 0

    def test_ci_green_has_no_partial_credit(self):
        result = verify("GHW_CI_GREEN", context(evidence=[Evidence(url="https://github.com/me/repo/actions")]))
        assert result.status == TaskStatus.submitted
        assert result.points == 0


class TestEvidenceRules:

    def test_release_verifies_changelog(self):
        result = verify("GHW_WEEKLY_CHANGELOG", context([signal(SignalKind.release_published, day(5))]))
        assert result.status == TaskStatus.verified
        assert result.points == 12

    @pytest.mark.parametrize("url", [
        "https://github.com/me/repo/blob/main/CHANGELOG.md",
        "https://github.com/me/repo/blob/main/docs/changelog.md",
        "https://github.com/me/repo/releases/tag/v1.2.0",
    ])
    def test_changelog_evidence_partial(self, url):
        result = verify("GHW_WEEKLY_CHANGELOG", context(evidence=[Evidence(url=url)]))
        assert result.status == TaskStatus.partially_verified
        assert result.points == 8

    def test_unrelated_changelog_evidence_only_submitted(self):
        result = verify("GHW_WEEKLY_CHANGELOG", context(evidence=[Evidence(url="https://github.com/me/repo")]))
        assert result.status == TaskStatus.submitted
        assert result.points == 0

    def test_evidence_without_url_is_skipped(self):
        evidence = [Evidence(url=None, description="see screenshot"),
                    Evidence(url="https://github.com/me/repo/blob/main/README.md")]
        result = verify("GHW_README_TWEAK", context(evidence=evidence))
        assert result.points == 5

    def test_readme_match_is_case_insensitive(self):
        result = verify("GHW_README_TWEAK", context(evidence=[Evidence(url="https://github.com/me/ReadMe")]))
        assert result.status == TaskStatus.partially_verified

    def test_readme_signal_verified(self):
        result = verify("GHW_README_TWEAK", context([signal(SignalKind.readme_updated, day(3))]))
        assert result.status == TaskStatus.verified
        assert result.points == 8

    def test_pages_deploy_any_evidence_partial(self):
        result = verify("GHW_PAGES_DEPLOY", context(evidence=[Evidence(url="https://me.github.io")]))
        assert result.status == TaskStatus.partially_verified
        assert result.points == 10


class TestShowcaseRules:

    def test_pages_setup_ignores_window(self):
        long_ago = datetime(2024, 3, 1, tzinfo=UTC)
        signals = [signal(SignalKind.pages_deployed, long_ago)]

        setup = verify("GHS_PAGES_SETUP", context(signals))
        weekly = verify("GHW_PAGES_DEPLOY", context(signals))

        assert setup.status == TaskStatus.verified
        assert setup.points == 15
        assert weekly.status == TaskStatus.not_started

    def test_pages_setup_without_period(self):
        signals = [signal(SignalKind.pages_deployed, day(1))]
        assert verify("GHS_PAGES_SETUP", context(signals, windowed=False)).status == TaskStatus.verified

    def test_topics_from_latest_snapshot(self):
        snapshots = [Snapshot(topics=["python", "fastapi", "sql", "docker", "ci"])]
        result = verify("GHS_ADD_TOPICS", context(snapshots=snapshots))
        assert result.status == TaskStatus.verified
        assert result.points == 8
        assert result.notes == ["5 topics added"]

    def test_only_latest_snapshot_is_consulted(self):
        snapshots = [Snapshot(topics=["python"]), Snapshot(topics=["a", "b", "c", "d", "e", "f"])]
        assert verify("GHS_ADD_TOPICS", context(snapshots=snapshots)).status == TaskStatus.not_started

    def test_topics_evidence_partial(self):
        result = verify("GHS_ADD_TOPICS", context(
            evidence=[Evidence(url="https://github.com/me/repo")],
            snapshots=[Snapshot(topics=None)]
        ))
        assert result.status == TaskStatus.partially_verified
        assert result.points == 4


class TestUnknownTaskCode:

    def test_evidence_gives_flat_partial_credit(self):
        signals = commits_on(0, 1, 2, 3, 4)
        result = verify("LI_POST_WEEKLY", context(signals, evidence=[Evidence(url="https://x.test")],
                                                  snapshots=[Snapshot(topics=["a"] * 9)]))
        assert result.status == TaskStatus.partially_verified
        assert result.points == 5
        assert result.notes == ["Evidence submitted for manual review"]

    def test_never_verified(self):
        assert verify("LI_POST_WEEKLY", context(commits_on(0, 1, 2, 3))).status == TaskStatus.not_started


class TestTransition:

    def test_first_verification_transitions(self):
        result = verify("GHW_CI_GREEN", context([signal(SignalKind.workflow_passed, day(1))]),
                        previous_status=TaskStatus.submitted)
        assert result.transitioned is True

    def test_already_verified_does_not_transition(self):
        result = verify("GHW_CI_GREEN", context([signal(SignalKind.workflow_passed, day(1))]),
                        previous_status="VERIFIED")
        assert result.transitioned is False

    def test_missing_previous_status_counts_as_unverified(self):
        result = verify("GHW_CI_GREEN", context([signal(SignalKind.workflow_passed, day(1))]))
        assert result.transitioned is True

    def test_partial_never_transitions(self):
        result = verify("GHW_CLOSE_2ISSUES", context([signal(SignalKind.issue_closed, day(1))]),
                        previous_status=TaskStatus.not_started)
        assert result.transitioned is False


class TestCalendarDays:

    def test_days_depend_on_timezone(self):
        late_monday = datetime(2026, 10, 12, 23, 30, tzinfo=UTC)
        early_tuesday = datetime(2026, 10, 13, 0, 30, tzinfo=UTC)

        assert len(dedupe_by_calendar_day([late_monday, early_tuesday])) == 2
        assert len(dedupe_by_calendar_day([late_monday, early_tuesday], ZoneInfo("Asia/Kolkata"))) == 1

    def test_accepts_signals(self):
        days = dedupe_by_calendar_day(commits_on(0, 0, 3))
        assert days == {PERIOD_START.date(), (PERIOD_START + timedelta(days=3)).date()}

    def test_engine_uses_its_timezone(self):
        signals = [signal(SignalKind.commit_pushed, datetime(2026, 10, 12, 23, 30, tzinfo=UTC)),
                   signal(SignalKind.commit_pushed, datetime(2026, 10, 13, 0, 30, tzinfo=UTC)),
                   signal(SignalKind.commit_pushed, datetime(2026, 10, 15, 9, 0, tzinfo=UTC))]

        assert ActivityVerificationEngine().verify("GHW_COMMIT_3DAYS", context(signals)).points == 15
        kolkata = ActivityVerificationEngine(tz=ZoneInfo("Asia/Kolkata"))
        assert kolkata.verify("GHW_COMMIT_3DAYS", context(signals)).points == 10


class TestRuleTable:

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(4.4999) == 4
        assert round_half_up(10.0) == 10

    def test_points_never_negative_and_only_with_credit(self):
        for code in RULES:
            for evidence in ([], [Evidence(url="https://github.com/me/repo/releases/README")]):
                result = verify(code, context(commits_on(0), evidence=evidence))
                assert result.points >= 0
                if result.points > 0:
                    assert result.status in (TaskStatus.partially_verified, TaskStatus.verified)

    def test_custom_rule_table(self):
        rules = {
            "GHW_STAR_5": VerificationRule(
                code="GHW_STAR_5",
                measure=count_signals("STAR_ADDED"),
                threshold=5,
                base_points=7,
                verified_note="{measure} stars",
                partial_credit=MeasureCredit(points=2, note="{measure} stars so far", minimum=2),
            )
        }
        engine = ActivityVerificationEngine(rules=rules)
        stars = [signal("STAR_ADDED", day(d)) for d in range(3)]

        result = engine.verify("GHW_STAR_5", context(stars))
        assert result.status == TaskStatus.partially_verified
        assert result.points == 2
        assert result.notes == ["3 stars so far"]
        # Built-in codes are unknown to a custom table
        assert engine.verify("GHW_CI_GREEN", context()).status == TaskStatus.not_started
