"""
Severity normalization for analyzer issues.

Upstream analyzers populate two independent vocabularies on each issue:
``priority`` (critical/high/medium/low) and ``severity``
(critical/high/medium/low/info). Everything that ranks, counts or groups
issues goes through this module so the two are reconciled in one place.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .snapshot import AuditSnapshot


class RankedSeverity(str, Enum):
    """Five-value total ordering used for classification and display."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"

    @property
    def rank(self) -> int:
        """0 for the most severe value."""
        return _RANK[self]


_RANK = {
    RankedSeverity.CRITICAL: 0,
    RankedSeverity.HIGH: 1,
    RankedSeverity.MEDIUM: 2,
    RankedSeverity.LOW: 3,
    RankedSeverity.INFO: 4,
}

# Fixed display order for grouped issue listings.
DISPLAY_ORDER = (
    RankedSeverity.CRITICAL,
    RankedSeverity.HIGH,
    RankedSeverity.MEDIUM,
    RankedSeverity.LOW,
    RankedSeverity.INFO,
)

PRIORITY_VALUES = frozenset({"critical", "high", "medium", "low"})
SEVERITY_VALUES = frozenset({"critical", "high", "medium", "low", "info"})


def _field(issue: Any, name: str) -> Any:
    if isinstance(issue, Mapping):
        return issue.get(name)
    return getattr(issue, name, None)


def _normalized(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return value.strip().lower() or None


def classify(issue: Any) -> RankedSeverity:
    """
    Resolve an issue to one ranked severity.

    ``priority`` is authoritative when it is one of the four ranked values;
    otherwise ``severity`` is used with ``info`` folded into ``low``; anything
    else is ``low``. Never raises.
    """
    priority = _normalized(_field(issue, "priority"))
    if priority in PRIORITY_VALUES:
        return RankedSeverity(priority)

    severity = _normalized(_field(issue, "severity"))
    if severity in SEVERITY_VALUES:
        if severity == "info":
            return RankedSeverity.LOW
        return RankedSeverity(severity)

    return RankedSeverity.LOW


def display_group(issue: Any) -> RankedSeverity:
    """Group used in issue listings: like ``classify`` but keeps ``info`` apart."""
    priority = _normalized(_field(issue, "priority"))
    if priority not in PRIORITY_VALUES and _normalized(_field(issue, "severity")) == "info":
        return RankedSeverity.INFO
    return classify(issue)


@dataclass(frozen=True)
class SeverityCounts:
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0

    @property
    def total(self) -> int:
        return self.critical + self.high + self.medium + self.low

    def __add__(self, other: "SeverityCounts") -> "SeverityCounts":
        if not isinstance(other, SeverityCounts):
            return NotImplemented
        return SeverityCounts(
            critical=self.critical + other.critical,
            high=self.high + other.high,
            medium=self.medium + other.medium,
            low=self.low + other.low,
        )

    def get(self, severity: RankedSeverity) -> int:
        if severity is RankedSeverity.INFO:
            return 0
        return getattr(self, severity.value)

    def to_dict(self) -> Dict[str, int]:
        return {
            "critical": self.critical,
            "high": self.high,
            "medium": self.medium,
            "low": self.low,
            "total": self.total,
        }


def aggregate(issues: Iterable[Any]) -> SeverityCounts:
    """
    Count issues by ranked severity.

    The result depends only on the multiset of inputs, so batches can be
    aggregated separately and summed with ``+``.
    """
    counts = {"critical": 0, "high": 0, "medium": 0, "low": 0}
    for issue in issues or ():
        counts[classify(issue).value] += 1
    return SeverityCounts(**counts)


def aggregate_snapshot(snapshot: AuditSnapshot) -> SeverityCounts:
    """Severity counts over every issue category of a snapshot."""
    total = SeverityCounts()
    for items in snapshot.issues.values():
        total = total + aggregate(items)
    return total


def group_issues(issues: Iterable[Any]) -> Dict[RankedSeverity, List[Any]]:
    """
    Group issues by display severity in fixed display order.

    Only non-empty groups are present; input order is kept inside a group.
    """
    buckets: Dict[RankedSeverity, List[Any]] = {s: [] for s in DISPLAY_ORDER}
    for issue in issues or ():
        buckets[display_group(issue)].append(issue)
    return {severity: items for severity, items in buckets.items() if items}
