"""
Assembled document model.

The assembler produces a ``Document``: an ordered list of ``Page`` objects,
each made of typed content blocks. The structure is renderer-independent;
``app.reports.renderer`` turns it into PDF bytes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple, Union

from .severity import RankedSeverity
from .snapshot import Issue

NO_DATA_MESSAGE = "No data available"


class SectionDataMissing(Exception):
    """Raised by a section builder when the data it renders is absent."""

    def __init__(self, section: str, detail: str = ""):
        super().__init__(f"{section}: {detail}" if detail else section)
        self.section = section
        self.detail = detail


@dataclass(frozen=True)
class Heading:
    text: str
    level: int = 2


@dataclass(frozen=True)
class TextBlock:
    text: str
    style: str = "body"


@dataclass(frozen=True)
class ScoreBar:
    label: str
    score: int


@dataclass(frozen=True)
class ScoreChart:
    title: str
    bars: Tuple[ScoreBar, ...]
    as_chart: bool = True


@dataclass(frozen=True)
class MetricTable:
    headers: Tuple[str, ...]
    rows: Tuple[Tuple[str, ...], ...]
    title: Optional[str] = None


@dataclass(frozen=True)
class KeyValue:
    pairs: Tuple[Tuple[str, str], ...]
    title: Optional[str] = None


@dataclass(frozen=True)
class IssueGroup:
    """Issues of one category grouped by display severity (non-empty groups only)."""

    title: str
    groups: Tuple[Tuple[RankedSeverity, Tuple[Issue, ...]], ...]
    empty_message: str = "No issues found"

    @property
    def issue_count(self) -> int:
        return sum(len(items) for _, items in self.groups)


@dataclass(frozen=True)
class BulletList:
    items: Tuple[str, ...]
    title: Optional[str] = None


@dataclass(frozen=True)
class Placeholder:
    message: str = NO_DATA_MESSAGE


@dataclass(frozen=True)
class CoverBlock:
    report_title: str
    project_name: str
    url: str
    report_date: str
    company_name: str
    client_name: str = ""
    logo_url: str = ""
    cover_style: int = 1


Block = Union[
    Heading,
    TextBlock,
    ScoreChart,
    MetricTable,
    KeyValue,
    IssueGroup,
    BulletList,
    Placeholder,
    CoverBlock,
]


@dataclass(frozen=True)
class Page:
    section: str
    title: str
    blocks: Tuple[Block, ...]
    footer: str
    page_number: Optional[int]

    @property
    def is_placeholder(self) -> bool:
        return any(isinstance(block, Placeholder) for block in self.blocks)


@dataclass(frozen=True)
class Document:
    title: str
    author: str
    subject: str
    pages: Tuple[Page, ...]
    page_size: str = "A4"
    keywords: Tuple[str, ...] = ("SEO", "Audit", "Report")

    @property
    def page_numbers(self) -> Tuple[Optional[int], ...]:
        return tuple(page.page_number for page in self.pages)

    def page(self, section: str) -> Optional[Page]:
        for page in self.pages:
            if page.section == section:
                return page
        return None


@dataclass(frozen=True)
class RenderOptions:
    """
    Per-report inputs that are neither audit data nor theme settings.

    Attributes:
        client_info: name, company, email, phone, website of the report's client
        custom_notes: Free text printed on the end page
        report_title: Title printed on the cover
        include_recommendations: Caller-level switch for end-page recommendations
    """

    client_info: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    custom_notes: str = ""
    report_title: str = "SEO Audit Report"
    include_recommendations: bool = True

    @classmethod
    def from_parameters(cls, parameters: Optional[Mapping[str, Any]]) -> "RenderOptions":
        parameters = parameters or {}
        client_info = parameters.get("clientInfo") or parameters.get("client_info") or {}
        return cls(
            client_info=MappingProxyType(
                dict(client_info) if isinstance(client_info, Mapping) else {}
            ),
            custom_notes=str(
                parameters.get("customNotes") or parameters.get("custom_notes") or ""
            ),
        )
