"""
End page section builder.

The end page carries the contact block, recommendations and custom notes.
Recommendations come from merged AI content when present, otherwise from
rules over the audit findings.
"""

from __future__ import annotations

from typing import List

from ..document import Block, BulletList, KeyValue, RenderOptions, TextBlock
from ..severity import RankedSeverity, classify
from ..snapshot import AuditSnapshot
from ..theme import ResolvedTheme

# (issue category, recommendation when it has critical/high issues)
CATEGORY_RECOMMENDATIONS = (
    ("metaDescription", "Fix critical meta description issues to improve search engine visibility"),
    ("titleTags", "Optimize title tags for better search engine rankings"),
    ("headings", "Improve heading structure for better content organization and SEO"),
    ("images", "Add alt tags to images to improve accessibility and SEO"),
    ("links", "Fix broken links and improve internal linking structure"),
    ("performance", "Optimize website performance for better user experience and SEO rankings"),
    ("schemaMarkup", "Correct structured data markup so search engines can show rich results"),
    ("security", "Resolve security issues such as mixed content and missing HTTPS"),
)

GENERAL_RECOMMENDATIONS = (
    "Continue monitoring your website's SEO performance",
    "Regularly update your content to keep it fresh and relevant",
    "Focus on building high-quality backlinks from authoritative websites",
)

URGENT = (RankedSeverity.CRITICAL, RankedSeverity.HIGH)


def generate_recommendations(snapshot: AuditSnapshot) -> List[str]:
    """
    Rule-based recommendations from the audit findings.

    Args:
        snapshot: Audit snapshot

    Returns:
        Ordered list of recommendation strings (never empty)
    """
    recommendations = []

    for category, text in CATEGORY_RECOMMENDATIONS:
        if any(classify(issue) in URGENT for issue in snapshot.issues_for(category)):
            recommendations.append(text)

    if 0 < snapshot.page_speed["mobile"].performance < 50:
        recommendations.append(
            "Improve mobile page speed for better user experience and SEO rankings"
        )

    if snapshot.moz.domain_authority and snapshot.moz.domain_authority < 30:
        recommendations.append(
            "Work on building more high-quality backlinks to improve domain authority"
        )

    if not recommendations:
        recommendations.extend(GENERAL_RECOMMENDATIONS)

    return recommendations


def build(
    theme: ResolvedTheme, snapshot: AuditSnapshot, options: RenderOptions
) -> List[Block]:
    """
    Build the end page.

    Args:
        theme: Resolved theme
        snapshot: Audit snapshot, possibly carrying merged AI content
        options: Per-report render options (client contact, notes)

    Returns:
        List of content blocks
    """
    blocks: List[Block] = []

    if options.include_recommendations and theme.include("recommendations"):
        content = snapshot.ai_content
        if content is not None and content.recommendations:
            items = content.recommendations
        else:
            items = tuple(generate_recommendations(snapshot))
        blocks.append(BulletList(title="Recommendations", items=tuple(items)))

    if options.custom_notes.strip():
        blocks.append(TextBlock(options.custom_notes.strip(), style="notes"))

    client = options.client_info
    pairs = [("Prepared by", str(client.get("company") or theme.company_name))]
    email = client.get("email") or theme.contact_info
    if email:
        pairs.append(("Email", str(email)))
    if client.get("phone"):
        pairs.append(("Phone", str(client["phone"])))
    if client.get("website"):
        pairs.append(("Website", str(client["website"])))
    blocks.append(KeyValue(title="Contact", pairs=tuple(pairs)))

    return blocks
