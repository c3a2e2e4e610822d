"""
Executive summary section builder for SEO audit reports.

This module creates the executive summary with:
- AI-written narrative when an enhancement has been merged
- Overall and per-category score bars
- Key figures (page speed, backlinks, keywords, issue totals)
"""

from __future__ import annotations

from typing import List

from ..document import Block, KeyValue, RenderOptions, ScoreBar, ScoreChart, TextBlock
from ..severity import aggregate_snapshot
from ..snapshot import SCORE_CATEGORIES, AuditSnapshot
from ..theme import ResolvedTheme

CATEGORY_LABELS = {
    "onPageSeo": "On-Page SEO",
    "performance": "Performance",
    "usability": "Usability",
    "links": "Links",
    "social": "Social",
}


def build(
    theme: ResolvedTheme, snapshot: AuditSnapshot, options: RenderOptions
) -> List[Block]:
    """
    Build executive summary section.

    Args:
        theme: Resolved theme
        snapshot: Audit snapshot, possibly carrying merged AI content
        options: Per-report render options

    Returns:
        List of content blocks
    """
    blocks: List[Block] = []

    if snapshot.ai_content is not None and snapshot.ai_content.executive_summary:
        blocks.append(TextBlock(snapshot.ai_content.executive_summary, style="lead"))
    elif theme.include("insights"):
        blocks.append(TextBlock(build_overview_text(snapshot)))

    blocks.append(build_score_chart(theme, snapshot))
    blocks.append(build_key_figures(snapshot))
    return blocks


def build_score_chart(theme: ResolvedTheme, snapshot: AuditSnapshot) -> ScoreChart:
    bars = [ScoreBar("Overall", snapshot.scores.overall)]
    categories = list(SCORE_CATEGORIES) + sorted(
        name for name in snapshot.scores.categories if name not in SCORE_CATEGORIES
    )
    for name in categories:
        if name in snapshot.scores.categories:
            bars.append(
                ScoreBar(CATEGORY_LABELS.get(name, name), snapshot.scores.category(name))
            )
    return ScoreChart("Scores", tuple(bars), as_chart=theme.include("charts"))


def build_key_figures(snapshot: AuditSnapshot) -> KeyValue:
    counts = aggregate_snapshot(snapshot)
    return KeyValue(
        title="Key Figures",
        pairs=(
            ("Mobile page speed", f"{snapshot.page_speed['mobile'].performance}/100"),
            ("Desktop page speed", f"{snapshot.page_speed['desktop'].performance}/100"),
            ("Linking domains", f"{snapshot.moz.linking_domains:,}"),
            ("Keywords tracked", f"{snapshot.keywords_count:,}"),
            ("Issues found", f"{counts.total:,}"),
        ),
    )


def build_overview_text(snapshot: AuditSnapshot) -> str:
    counts = aggregate_snapshot(snapshot)
    score = snapshot.scores.overall
    if score >= 80:
        verdict = "is in good shape"
    elif score >= 50:
        verdict = "has a solid base with clear room for improvement"
    else:
        verdict = "needs significant SEO work"

    site = snapshot.url or snapshot.project_name
    text = f"{site} scored {score}/100 overall and {verdict}."
    if counts.total:
        urgent = counts.critical + counts.high
        text += (
            f" The audit found {counts.total} issues, {urgent} of them critical"
            " or high priority."
        )
    else:
        text += " The audit found no outstanding issues."
    return text
