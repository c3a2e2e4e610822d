import pytest

from app.reports.severity import (
    RankedSeverity,
    SeverityCounts,
    aggregate,
    aggregate_snapshot,
    classify,
    display_group,
    group_issues,
)
from app.reports.snapshot import Issue


@pytest.mark.parametrize(
    "issue,expected",
    [
        ({"priority": "critical", "severity": "low"}, RankedSeverity.CRITICAL),
        ({"priority": "HIGH"}, RankedSeverity.HIGH),
        ({"severity": "medium"}, RankedSeverity.MEDIUM),
        ({"severity": "info"}, RankedSeverity.LOW),
        ({"priority": "urgent", "severity": "high"}, RankedSeverity.HIGH),
        ({"priority": "urgent", "severity": "bogus"}, RankedSeverity.LOW),
        ({}, RankedSeverity.LOW),
        ({"priority": 3}, RankedSeverity.LOW),
    ],
)
def test_classify(issue, expected):
    assert classify(issue) is expected


def test_classify_accepts_issue_objects():
    assert classify(Issue(title="x", priority="critical")) is RankedSeverity.CRITICAL


def test_display_group_keeps_info_separate():
    assert display_group({"severity": "info"}) is RankedSeverity.INFO
    assert display_group({"severity": "info", "priority": "high"}) is RankedSeverity.HIGH


def test_aggregate_counts_every_issue_once():
    issues = [
        {"priority": "critical"},
        {"severity": "high"},
        {"severity": "info"},
        {"severity": "unknown"},
        {"priority": "medium"},
    ]

    counts = aggregate(issues)

    assert counts.to_dict() == {
        "critical": 1,
        "high": 1,
        "medium": 1,
        "low": 2,
        "total": 5,
    }
    assert counts.total == len(issues)


def test_aggregate_is_additive_over_partitions():
    left = [{"priority": "high"}, {"severity": "info"}]
    right = [{"severity": "critical"}, {"priority": "low"}, {"priority": "high"}]

    assert aggregate(left) + aggregate(right) == aggregate(left + right)


def test_aggregate_empty():
    assert aggregate([]) == SeverityCounts()
    assert aggregate(None).total == 0


def test_aggregate_snapshot(snapshot):
    counts = aggregate_snapshot(snapshot)
    # high + medium meta descriptions, low title tag, info image folded into low
    assert counts.to_dict() == {
        "critical": 0,
        "high": 1,
        "medium": 1,
        "low": 2,
        "total": 4,
    }


def test_group_issues_fixed_order_and_non_empty_groups():
    issues = [
        {"title": "a", "severity": "low"},
        {"title": "b", "severity": "info"},
        {"title": "c", "priority": "critical"},
        {"title": "d", "severity": "low"},
    ]

    grouped = group_issues(issues)

    assert list(grouped) == [
        RankedSeverity.CRITICAL,
        RankedSeverity.LOW,
        RankedSeverity.INFO,
    ]
    assert [i["title"] for i in grouped[RankedSeverity.LOW]] == ["a", "d"]


def test_severity_counts_get_ignores_info():
    counts = SeverityCounts(critical=2, low=1)
    assert counts.get(RankedSeverity.CRITICAL) == 2
    assert counts.get(RankedSeverity.INFO) == 0
