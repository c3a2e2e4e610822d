"""Issues summary section builder: severity totals and per-category counts."""

from __future__ import annotations

from typing import List

from ..document import Block, MetricTable, RenderOptions, SectionDataMissing
from ..severity import aggregate, aggregate_snapshot
from ..snapshot import AuditSnapshot
from ..theme import ResolvedTheme
from .issues import CATEGORY_TITLES


def build(
    theme: ResolvedTheme, snapshot: AuditSnapshot, options: RenderOptions
) -> List[Block]:
    """
    Build the issues summary page.

    Raises:
        SectionDataMissing: if the snapshot has no issues at all
    """
    totals = aggregate_snapshot(snapshot)
    if totals.total == 0:
        raise SectionDataMissing("issuesSummary", "no issues in snapshot")

    severity_table = MetricTable(
        title="Issues by Severity",
        headers=("Critical", "High", "Medium", "Low", "Total"),
        rows=(
            (
                str(totals.critical),
                str(totals.high),
                str(totals.medium),
                str(totals.low),
                str(totals.total),
            ),
        ),
    )

    rows = []
    for category, items in snapshot.issues.items():
        if not items:
            continue
        counts = aggregate(items)
        rows.append(
            (
                CATEGORY_TITLES.get(category, category),
                str(counts.critical),
                str(counts.high),
                str(counts.medium),
                str(counts.low),
                str(counts.total),
            )
        )

    category_table = MetricTable(
        title="Issues by Category",
        headers=("Category", "Critical", "High", "Medium", "Low", "Total"),
        rows=tuple(rows),
    )
    return [severity_table, category_table]
