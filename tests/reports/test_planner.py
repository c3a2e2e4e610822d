import itertools
import random

import pytest

from app.reports import planner
from app.reports.severity import aggregate
from app.reports.snapshot import AuditSnapshot
from app.reports.theme import SECTION_KEYS, resolve


def _theme(enabled=()):
    return resolve(None, {"includeOptions": {key: key in enabled for key in SECTION_KEYS}})


def _snapshot(issues=None, internal_links=None):
    raw = {"id": "a1", "report": {"issues": issues or {}}}
    if internal_links is not None:
        raw["report"]["internalLinkData"] = internal_links
    return AuditSnapshot.from_dict(raw)


def test_all_toggles_off_leaves_cover_and_end_page(snapshot):
    result = planner.plan(snapshot, _theme())

    assert [(e.section, e.page_number) for e in result.pages] == [
        (planner.COVER, 1),
        (planner.END_PAGE, 2),
    ]
    assert result.page_count == 2


def test_plan_lists_every_canonical_section(snapshot):
    result = planner.plan(snapshot, resolve())

    assert [e.section for e in result] == list(planner.CANONICAL_ORDER)
    for entry in result:
        assert (entry.page_number is not None) == entry.included


def test_structured_data_without_schema_issues_is_excluded():
    snapshot = _snapshot({"metaDescription": [{"severity": "high"}]})
    theme = _theme({"structuredData", "onPageSEO"})

    result = planner.plan(snapshot, theme)

    assert result.is_included(planner.STRUCTURED_DATA) is False
    assert result.page_of(planner.STRUCTURED_DATA) is None
    assert result.page_of(planner.ON_PAGE_SEO) == 2
    assert result.page_of(planner.END_PAGE) == 3


def test_internal_links_need_a_link_graph():
    theme = _theme({"internalLinks"})

    assert not planner.plan(_snapshot(), theme).is_included(planner.INTERNAL_LINKS)
    with_graph = planner.plan(_snapshot(internal_links={"orphanedPages": []}), theme)
    assert with_graph.page_of(planner.INTERNAL_LINKS) == 2


def test_issues_summary_follows_executive_summary_toggle_and_issue_count():
    theme = _theme({"executiveSummary"})

    empty = planner.plan(_snapshot(), theme)
    assert empty.is_included(planner.EXECUTIVE_SUMMARY)
    assert not empty.is_included(planner.ISSUES_SUMMARY)

    with_issues = planner.plan(_snapshot({"headings": [{"severity": "low"}]}), theme)
    assert with_issues.page_of(planner.ISSUES_SUMMARY) == 3


def test_excluded_section_does_not_renumber_earlier_sections(snapshot):
    before = planner.plan(snapshot, _theme({"executiveSummary", "performance"}))
    after = planner.plan(
        snapshot, _theme({"executiveSummary", "performance", "userExperience"})
    )

    for section in (planner.COVER, planner.EXECUTIVE_SUMMARY, planner.PERFORMANCE):
        assert before.page_of(section) == after.page_of(section)


def test_plan_is_deterministic(snapshot):
    theme = resolve()
    assert planner.plan(snapshot, theme) == planner.plan(snapshot, theme)


@pytest.mark.parametrize("with_schema", [True, False])
def test_page_numbers_are_contiguous_for_any_toggle_combination(with_schema):
    issues = {"metaDescription": [{"severity": "medium"}]}
    if with_schema:
        issues["schemaMarkup"] = [{"severity": "high"}]
    snapshot = _snapshot(issues, internal_links={"orphanedPages": ["/x"]})
    toggles = sorted(set(planner.SECTION_TOGGLES.values()))

    for flags in itertools.product([True, False], repeat=len(toggles)):
        enabled = {key for key, flag in zip(toggles, flags) if flag}
        result = planner.plan(snapshot, _theme(enabled))
        numbers = [entry.page_number for entry in result.pages]
        assert numbers == list(range(1, len(numbers) + 1))
        assert result.pages[0].section == planner.COVER
        assert result.pages[-1].section == planner.END_PAGE


def test_to_list_wire_shape(snapshot):
    entries = planner.plan(snapshot, _theme()).to_list()

    assert entries[0] == {"sectionName": "cover", "included": True, "pageNumber": 1}
    assert {"sectionName": "performance", "included": False, "pageNumber": None} in entries


def test_failing_content_check_excludes_section(monkeypatch, snapshot):
    def broken(_snapshot):
        raise RuntimeError("boom")

    monkeypatch.setitem(planner.CONTENT_PREDICATES, planner.INTERNAL_LINKS, broken)

    result = planner.plan(snapshot, _theme({"internalLinks"}))

    assert not result.is_included(planner.INTERNAL_LINKS)


def test_end_to_end_on_page_and_summary_only():
    meta_issues = [
        {"title": f"High {n}", "severity": "high"} for n in range(3)
    ] + [{"title": f"Medium {n}", "severity": "medium"} for n in range(2)]
    random.Random(4).shuffle(meta_issues)
    snapshot = _snapshot({"metaDescription": meta_issues})
    theme = _theme({"onPageSEO", "executiveSummary"})

    result = planner.plan(snapshot, theme)

    assert [(e.section, e.page_number) for e in result.pages] == [
        ("cover", 1),
        ("executiveSummary", 2),
        ("issuesSummary", 3),
        ("onPageSEO", 4),
        ("endPage", 5),
    ]
    assert aggregate(snapshot.all_issues()).to_dict() == {
        "critical": 0,
        "high": 3,
        "medium": 2,
        "low": 0,
        "total": 5,
    }
    assert aggregate(reversed(meta_issues)) == aggregate(meta_issues)
