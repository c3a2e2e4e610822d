"""Performance metrics section builder (PageSpeed mobile and desktop)."""

from __future__ import annotations

from typing import List

from ..document import (
    Block,
    MetricTable,
    RenderOptions,
    ScoreBar,
    ScoreChart,
    SectionDataMissing,
    TextBlock,
)
from ..snapshot import DEVICES, AuditSnapshot, DeviceMetrics
from ..theme import ResolvedTheme


def _has_metrics(metrics: DeviceMetrics) -> bool:
    return any(
        (metrics.performance, metrics.fcp, metrics.lcp, metrics.cls, metrics.tbt)
    )


def _seconds(ms: float) -> str:
    return f"{ms / 1000:.1f} s"


def build(
    theme: ResolvedTheme, snapshot: AuditSnapshot, options: RenderOptions
) -> List[Block]:
    """
    Build the performance page.

    Raises:
        SectionDataMissing: if neither device has PageSpeed data
    """
    page_speed = snapshot.page_speed
    if not any(_has_metrics(page_speed[device]) for device in DEVICES):
        raise SectionDataMissing("performance", "no PageSpeed data")

    blocks: List[Block] = [
        ScoreChart(
            "Performance Score",
            tuple(
                ScoreBar(device.title(), page_speed[device].performance)
                for device in DEVICES
            ),
            as_chart=theme.include("charts"),
        )
    ]

    rows = []
    for label, fmt in (
        ("First Contentful Paint", lambda m: _seconds(m.fcp)),
        ("Largest Contentful Paint", lambda m: _seconds(m.lcp)),
        ("Cumulative Layout Shift", lambda m: f"{m.cls:.3f}"),
        ("Total Blocking Time", lambda m: f"{m.tbt:.0f} ms"),
        ("Speed Index", lambda m: _seconds(m.speed_index)),
    ):
        rows.append((label,) + tuple(fmt(page_speed[d]) for d in DEVICES))

    blocks.append(
        MetricTable(
            title="Core Web Vitals",
            headers=("Metric", "Mobile", "Desktop"),
            rows=tuple(rows),
        )
    )

    content = snapshot.ai_content
    if content is not None and content.technical_explanations.get("performance"):
        blocks.append(
            TextBlock(content.technical_explanations["performance"], style="explanation")
        )
    return blocks
