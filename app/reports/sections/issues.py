"""
Issue listing section builders.

On-page SEO, technical SEO, structured data and user experience pages share
one layout: one listing per issue category, grouped by display severity in
fixed order (critical, high, medium, low, info). A group gets a heading only
when it has issues; a category without issues says so.
"""

from __future__ import annotations

from typing import Callable, List

from ..document import Block, IssueGroup, RenderOptions, SectionDataMissing, TextBlock
from ..planner import SECTION_CATEGORIES, STRUCTURED_DATA
from ..severity import group_issues
from ..snapshot import AuditSnapshot
from ..theme import ResolvedTheme

CATEGORY_TITLES = {
    "metaDescription": "Meta Description Issues",
    "titleTags": "Title Tag Issues",
    "headings": "Heading Issues",
    "images": "Image Issues",
    "links": "Link Issues",
    "canonicalLinks": "Canonical Link Issues",
    "schemaMarkup": "Schema Markup Issues",
    "performance": "Performance Issues",
    "mobile": "Mobile Usability Issues",
    "security": "Security Issues",
}


def build_issue_group(snapshot: AuditSnapshot, category: str) -> IssueGroup:
    grouped = group_issues(snapshot.issues_for(category))
    return IssueGroup(
        title=CATEGORY_TITLES.get(category, category),
        groups=tuple((severity, tuple(items)) for severity, items in grouped.items()),
    )


def build_section(
    section: str,
) -> Callable[[ResolvedTheme, AuditSnapshot, RenderOptions], List[Block]]:
    """Return the builder for one issue-listing section."""
    categories = SECTION_CATEGORIES[section]

    def build(
        theme: ResolvedTheme, snapshot: AuditSnapshot, options: RenderOptions
    ) -> List[Block]:
        blocks: List[Block] = [
            build_issue_group(snapshot, category) for category in categories
        ]

        if section == STRUCTURED_DATA and not any(g.issue_count for g in blocks):
            raise SectionDataMissing(section, "no schema markup issues")

        content = snapshot.ai_content
        if content is not None:
            explanation = content.technical_explanations.get(section)
            if explanation:
                blocks.append(TextBlock(explanation, style="explanation"))
        return blocks

    build.__name__ = f"build_{section}"
    return build
