"""
Section planning for SEO audit reports.

``plan()`` decides which sections a report contains and assigns page numbers.
It walks the sections in a fixed canonical order with a forward-only page
counter, so identical inputs always produce identical numbering and a
section's absence never renumbers sections evaluated before it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterator, Optional, Tuple

from app.utils.logger import get_logger

from .severity import aggregate_snapshot
from .snapshot import AuditSnapshot
from .theme import ResolvedTheme

logger = get_logger(__name__)

COVER = "cover"
EXECUTIVE_SUMMARY = "executiveSummary"
ISSUES_SUMMARY = "issuesSummary"
PERFORMANCE = "performance"
ON_PAGE_SEO = "onPageSEO"
TECHNICAL_SEO = "technicalSEO"
STRUCTURED_DATA = "structuredData"
INTERNAL_LINKS = "internalLinks"
USER_EXPERIENCE = "userExperience"
END_PAGE = "endPage"

CANONICAL_ORDER: Tuple[str, ...] = (
    COVER,
    EXECUTIVE_SUMMARY,
    ISSUES_SUMMARY,
    PERFORMANCE,
    ON_PAGE_SEO,
    TECHNICAL_SEO,
    STRUCTURED_DATA,
    INTERNAL_LINKS,
    USER_EXPERIENCE,
    END_PAGE,
)

# Sections that are always present and have no configuration toggle.
ALWAYS_INCLUDED = frozenset({COVER, END_PAGE})

# Configuration key gating each optional section. The issues summary shares
# the executive summary toggle.
SECTION_TOGGLES: Dict[str, str] = {
    EXECUTIVE_SUMMARY: "executiveSummary",
    ISSUES_SUMMARY: "executiveSummary",
    PERFORMANCE: "performance",
    ON_PAGE_SEO: "onPageSEO",
    TECHNICAL_SEO: "technicalSEO",
    STRUCTURED_DATA: "structuredData",
    INTERNAL_LINKS: "internalLinks",
    USER_EXPERIENCE: "userExperience",
}

# Physical pages each section occupies; the renderer fits every section on one.
SECTION_PAGES: Dict[str, int] = {section: 1 for section in CANONICAL_ORDER}

# Issue categories listed on each issue page.
SECTION_CATEGORIES: Dict[str, Tuple[str, ...]] = {
    ON_PAGE_SEO: ("metaDescription", "titleTags", "headings"),
    TECHNICAL_SEO: ("images", "links", "canonicalLinks", "performance"),
    STRUCTURED_DATA: ("schemaMarkup",),
    USER_EXPERIENCE: ("mobile", "security"),
}

SECTION_TITLES: Dict[str, str] = {
    COVER: "SEO Audit Report",
    EXECUTIVE_SUMMARY: "Executive Summary",
    ISSUES_SUMMARY: "Issues Summary",
    PERFORMANCE: "Performance Metrics",
    ON_PAGE_SEO: "On-Page SEO",
    TECHNICAL_SEO: "Technical SEO",
    STRUCTURED_DATA: "Structured Data",
    INTERNAL_LINKS: "Internal Links",
    USER_EXPERIENCE: "User Experience",
    END_PAGE: "Next Steps",
}


def _has_issues(snapshot: AuditSnapshot) -> bool:
    return aggregate_snapshot(snapshot).total > 0


def _has_schema_issues(snapshot: AuditSnapshot) -> bool:
    return len(snapshot.issues_for("schemaMarkup")) > 0


def _has_link_graph(snapshot: AuditSnapshot) -> bool:
    return snapshot.internal_links is not None


# Extra content requirements on top of the toggle. Sections not listed here
# only need their toggle.
CONTENT_PREDICATES: Dict[str, Callable[[AuditSnapshot], bool]] = {
    ISSUES_SUMMARY: _has_issues,
    STRUCTURED_DATA: _has_schema_issues,
    INTERNAL_LINKS: _has_link_graph,
}


@dataclass(frozen=True)
class PlanEntry:
    section: str
    included: bool
    page_number: Optional[int] = None

    @property
    def title(self) -> str:
        return SECTION_TITLES.get(self.section, self.section)


@dataclass(frozen=True)
class ReportPlan:
    """Every canonical section, in order, with its inclusion and page number."""

    entries: Tuple[PlanEntry, ...]

    def __iter__(self) -> Iterator[PlanEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def pages(self) -> Tuple[PlanEntry, ...]:
        """Included entries only, in page order."""
        return tuple(entry for entry in self.entries if entry.included)

    @property
    def page_count(self) -> int:
        return sum(SECTION_PAGES[entry.section] for entry in self.pages)

    def page_of(self, section: str) -> Optional[int]:
        for entry in self.entries:
            if entry.section == section:
                return entry.page_number
        return None

    def is_included(self, section: str) -> bool:
        return self.page_of(section) is not None

    def to_list(self):
        return [
            {
                "sectionName": entry.section,
                "included": entry.included,
                "pageNumber": entry.page_number,
            }
            for entry in self.entries
        ]


def _content_present(section: str, snapshot: AuditSnapshot) -> bool:
    predicate = CONTENT_PREDICATES.get(section)
    if predicate is None:
        return True
    try:
        return bool(predicate(snapshot))
    except Exception as e:
        logger.warning(
            "Content check failed, excluding section",
            section=section,
            error=str(e),
        )
        return False


def is_section_included(
    section: str, snapshot: AuditSnapshot, theme: ResolvedTheme
) -> bool:
    """Toggle AND content predicate; cover and end page are unconditional."""
    if section in ALWAYS_INCLUDED:
        return True
    toggle = SECTION_TOGGLES.get(section)
    if toggle is None or not theme.include(toggle):
        return False
    return _content_present(section, snapshot)


def plan(snapshot: AuditSnapshot, theme: ResolvedTheme) -> ReportPlan:
    """
    Compute the report plan.

    The counter starts at 1 for the cover. Each included section takes the
    current counter value and advances it by the pages it occupies; excluded
    sections get no number and do not advance it. The end page takes the
    final counter value.

    Args:
        snapshot: Audit snapshot being reported on
        theme: Resolved theme carrying the section toggles

    Returns:
        ReportPlan with one entry per canonical section
    """
    counter = 1
    entries = []

    for section in CANONICAL_ORDER:
        if is_section_included(section, snapshot, theme):
            entries.append(PlanEntry(section, True, counter))
            counter += SECTION_PAGES[section]
        else:
            entries.append(PlanEntry(section, False, None))

    result = ReportPlan(tuple(entries))
    logger.debug(
        "Report plan computed",
        audit_id=snapshot.audit_id,
        pages=[(e.section, e.page_number) for e in result.pages],
    )
    return result
