"""
Document assembly for SEO audit reports.

``render()`` walks a ``ReportPlan`` and asks each included section's builder
for its content blocks. Every included entry yields exactly one ``Page``
carrying the theme footer and the plan's page number. A builder that finds
its data missing, or fails outright, still produces its page with a
placeholder block so numbering never drifts from the plan.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional

from app.services import metrics
from app.utils.logger import get_logger

from . import planner
from .document import (
    NO_DATA_MESSAGE,
    Block,
    Document,
    Heading,
    Page,
    Placeholder,
    RenderOptions,
    SectionDataMissing,
)
from .planner import PlanEntry, ReportPlan
from .sections import (
    cover,
    end,
    internal_links,
    issues,
    issues_summary,
    performance,
    summary,
)
from .snapshot import AuditSnapshot
from .theme import ResolvedTheme

logger = get_logger(__name__)

SectionBuilder = Callable[[ResolvedTheme, AuditSnapshot, RenderOptions], List[Block]]

SECTION_BUILDERS: Dict[str, SectionBuilder] = {
    planner.COVER: cover.build,
    planner.EXECUTIVE_SUMMARY: summary.build,
    planner.ISSUES_SUMMARY: issues_summary.build,
    planner.PERFORMANCE: performance.build,
    planner.ON_PAGE_SEO: issues.build_section(planner.ON_PAGE_SEO),
    planner.TECHNICAL_SEO: issues.build_section(planner.TECHNICAL_SEO),
    planner.STRUCTURED_DATA: issues.build_section(planner.STRUCTURED_DATA),
    planner.INTERNAL_LINKS: internal_links.build,
    planner.USER_EXPERIENCE: issues.build_section(planner.USER_EXPERIENCE),
    planner.END_PAGE: end.build,
}


def _build_blocks(
    entry: PlanEntry,
    snapshot: AuditSnapshot,
    theme: ResolvedTheme,
    options: RenderOptions,
) -> List[Block]:
    builder = SECTION_BUILDERS.get(entry.section)
    try:
        if builder is None:
            raise SectionDataMissing(entry.section, "no builder registered")
        blocks = list(builder(theme, snapshot, options))
        if not blocks:
            raise SectionDataMissing(entry.section, "builder returned no content")
        return blocks
    except SectionDataMissing as e:
        logger.warning(
            "Section data missing, rendering placeholder",
            section=entry.section,
            audit_id=snapshot.audit_id,
            detail=e.detail,
        )
    except Exception as e:
        logger.error(
            "Section builder failed, rendering placeholder",
            section=entry.section,
            audit_id=snapshot.audit_id,
            error=str(e),
            exc_info=True,
        )
    metrics.PLACEHOLDER_PAGES_TOTAL.labels(section=entry.section).inc()
    return [Placeholder(NO_DATA_MESSAGE)]


def render(
    snapshot: AuditSnapshot,
    theme: ResolvedTheme,
    plan: ReportPlan,
    options: Optional[RenderOptions] = None,
) -> Document:
    """
    Assemble the document for an already computed plan.

    Args:
        snapshot: Audit snapshot (possibly enriched with AI content)
        theme: Resolved theme
        plan: Plan returned by ``planner.plan`` for the same snapshot/theme
        options: Per-report options; defaults to an empty ``RenderOptions``

    Returns:
        Document with one page per included plan entry, in plan order
    """
    options = options or RenderOptions()
    pages = []

    for entry in plan.pages:
        blocks = _build_blocks(entry, snapshot, theme, options)
        if entry.section != planner.COVER:
            blocks.insert(0, Heading(entry.title, level=1))
        pages.append(
            Page(
                section=entry.section,
                title=entry.title,
                blocks=tuple(blocks),
                footer=theme.footer_text,
                page_number=entry.page_number,
            )
        )

    document = Document(
        title=f"{snapshot.project_name} - SEO Audit Report",
        author=theme.company_name,
        subject=f"SEO audit of {snapshot.url or snapshot.project_name}",
        pages=tuple(pages),
        page_size=theme.page_size,
    )

    logger.info(
        "Report document assembled",
        audit_id=snapshot.audit_id,
        pages=len(pages),
        placeholders=sum(1 for p in pages if p.is_placeholder),
        enhanced=snapshot.ai_content is not None,
    )
    return document
