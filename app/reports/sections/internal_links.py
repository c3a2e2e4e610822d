"""Internal link structure section builder."""

from __future__ import annotations

from typing import List

from ..document import (
    Block,
    BulletList,
    MetricTable,
    RenderOptions,
    SectionDataMissing,
    TextBlock,
)
from ..snapshot import AuditSnapshot
from ..theme import ResolvedTheme

MAX_ROWS = 10


def build(
    theme: ResolvedTheme, snapshot: AuditSnapshot, options: RenderOptions
) -> List[Block]:
    """
    Build the internal links page from the crawler's link graph summary.

    Raises:
        SectionDataMissing: if the snapshot carries no link graph
    """
    data = snapshot.internal_links
    if data is None:
        raise SectionDataMissing("internalLinks", "no link graph")

    blocks: List[Block] = []

    if data.orphaned_pages:
        blocks.append(
            BulletList(
                title=f"Orphaned Pages ({len(data.orphaned_pages)})",
                items=data.orphaned_pages[:MAX_ROWS],
            )
        )
    else:
        blocks.append(TextBlock("No orphaned pages were found."))

    if data.top_pages:
        blocks.append(
            MetricTable(
                title="Most Linked Pages",
                headers=("Page", "Inbound links"),
                rows=tuple((url, str(count)) for url, count in data.top_pages[:MAX_ROWS]),
            )
        )

    if data.low_inbound_pages:
        blocks.append(
            MetricTable(
                title="Pages With Few Inbound Links",
                headers=("Page", "Inbound links"),
                rows=tuple(
                    (url, str(count)) for url, count in data.low_inbound_pages[:MAX_ROWS]
                ),
            )
        )

    if data.suggestions:
        items = []
        for suggestion in data.suggestions[:MAX_ROWS]:
            text = f"Link to {suggestion.target}"
            if suggestion.sources:
                text += f" from {', '.join(suggestion.sources[:3])}"
            if suggestion.reason:
                text += f": {suggestion.reason}"
            items.append(text)
        blocks.append(BulletList(title="Suggested Links", items=tuple(items)))

    content = snapshot.ai_content
    if content is not None and content.technical_explanations.get("internalLinks"):
        blocks.append(
            TextBlock(content.technical_explanations["internalLinks"], style="explanation")
        )
    return blocks
