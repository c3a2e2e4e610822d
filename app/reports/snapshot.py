"""
Audit snapshot model for report composition.

The snapshot is the immutable input of one render. It is built from the raw
audit record produced by the crawl/audit collaborator, whose shape is not
schema-guaranteed, so ``AuditSnapshot.from_dict`` never raises: missing or
malformed fields are replaced by empty defaults.

Enhancement content produced by the worker is merged with
``AuditSnapshot.with_enhancement`` which returns a new snapshot and leaves the
original untouched.
"""

from __future__ import annotations

import dataclasses
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from app.utils.logger import get_logger

logger = get_logger(__name__)

# Issue categories every snapshot carries, in the order analyzers report them.
ISSUE_CATEGORIES: Tuple[str, ...] = (
    "metaDescription",
    "titleTags",
    "headings",
    "images",
    "links",
    "canonicalLinks",
    "schemaMarkup",
    "performance",
    "mobile",
    "security",
)

SCORE_CATEGORIES: Tuple[str, ...] = (
    "onPageSeo",
    "performance",
    "usability",
    "links",
    "social",
)

DEVICES: Tuple[str, ...] = ("mobile", "desktop")

_EMPTY: Mapping[str, Any] = MappingProxyType({})


def _frozen(mapping: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


def _as_mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else _EMPTY


def _clean_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def clamp_score(value: Any) -> int:
    """Coerce a score to an integer in 0-100; unparsable values become 0."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if number != number:  # NaN
        return 0
    return int(round(max(0.0, min(100.0, number))))


def _as_float(value: Any, default: float = 0.0) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str) and value.strip():
        text = value.strip().replace("Z", "+00:00")
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            logger.debug("Unparsable audit timestamp, using now", value=value)
        else:
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Issue:
    """
    One analyzer finding.

    ``severity`` and ``priority`` are kept exactly as the analyzer sent them so
    the wire vocabulary round-trips; ``app.reports.severity`` interprets them.
    """

    title: str
    description: Optional[str] = None
    url: Optional[str] = None
    severity: Optional[str] = None
    priority: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Any) -> "Issue":
        if isinstance(raw, Issue):
            return raw
        if not isinstance(raw, Mapping):
            return cls(title=_clean_str(raw) or "Untitled issue")
        return cls(
            title=_clean_str(raw.get("title")) or "Untitled issue",
            description=_clean_str(raw.get("description")),
            url=_clean_str(raw.get("url")),
            severity=raw.get("severity") if isinstance(raw.get("severity"), str) else None,
            priority=raw.get("priority") if isinstance(raw.get("priority"), str) else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"title": self.title}
        for key in ("description", "url", "severity", "priority"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


@dataclass(frozen=True)
class Scores:
    overall: int = 0
    categories: Mapping[str, int] = field(default_factory=lambda: _EMPTY)

    def category(self, name: str) -> int:
        return self.categories.get(name, 0)


@dataclass(frozen=True)
class DeviceMetrics:
    """PageSpeed metrics for one device. ``performance`` is a 0-100 score."""

    performance: int = 0
    fcp: float = 0.0
    lcp: float = 0.0
    cls: float = 0.0
    tbt: float = 0.0
    speed_index: float = 0.0

    @classmethod
    def from_dict(cls, raw: Any) -> "DeviceMetrics":
        raw = _as_mapping(raw)
        performance = _as_float(raw.get("performance"))
        # PageSpeed reports performance as 0-1; dashboards sometimes store 0-100.
        if 0 < performance <= 1:
            performance *= 100
        return cls(
            performance=clamp_score(performance),
            fcp=_as_float(raw.get("fcp")),
            lcp=_as_float(raw.get("lcp")),
            cls=_as_float(raw.get("cls")),
            tbt=_as_float(raw.get("tbt")),
            speed_index=_as_float(raw.get("speedIndex", raw.get("speed_index"))),
        )


@dataclass(frozen=True)
class MozMetrics:
    domain_authority: int = 0
    page_authority: int = 0
    linking_domains: int = 0
    total_links: int = 0

    @classmethod
    def from_dict(cls, raw: Any) -> "MozMetrics":
        raw = _as_mapping(raw)
        return cls(
            domain_authority=clamp_score(raw.get("domainAuthority")),
            page_authority=clamp_score(raw.get("pageAuthority")),
            linking_domains=int(_as_float(raw.get("linkingDomains"))),
            total_links=int(_as_float(raw.get("totalLinks"))),
        )


@dataclass(frozen=True)
class LinkSuggestion:
    target: str
    sources: Tuple[str, ...] = ()
    reason: str = ""


@dataclass(frozen=True)
class InternalLinkData:
    """Internal link graph summary produced by the crawler."""

    orphaned_pages: Tuple[str, ...] = ()
    low_inbound_pages: Tuple[Tuple[str, int], ...] = ()
    top_pages: Tuple[Tuple[str, int], ...] = ()
    suggestions: Tuple[LinkSuggestion, ...] = ()

    @classmethod
    def from_dict(cls, raw: Any) -> Optional["InternalLinkData"]:
        if not isinstance(raw, Mapping):
            return None

        def _pages(items: Any, count_key: str) -> Tuple[Tuple[str, int], ...]:
            pages = []
            for item in items if isinstance(items, list) else []:
                if isinstance(item, Mapping) and item.get("url"):
                    pages.append((str(item["url"]), int(_as_float(item.get(count_key)))))
            return tuple(pages)

        suggestions = []
        raw_suggestions = raw.get("suggestions")
        for item in raw_suggestions if isinstance(raw_suggestions, list) else []:
            if isinstance(item, Mapping) and item.get("target"):
                sources = item.get("sources") if isinstance(item.get("sources"), list) else []
                suggestions.append(
                    LinkSuggestion(
                        target=str(item["target"]),
                        sources=tuple(str(s) for s in sources),
                        reason=str(item.get("reason") or ""),
                    )
                )

        orphaned = raw.get("orphanedPages")
        return cls(
            orphaned_pages=tuple(str(p) for p in orphaned) if isinstance(orphaned, list) else (),
            low_inbound_pages=_pages(raw.get("lowInboundPages"), "count"),
            top_pages=_pages(raw.get("topPages"), "inboundCount"),
            suggestions=tuple(suggestions),
        )


@dataclass(frozen=True)
class EnhancementContent:
    """Narrative content produced by an enhancement job."""

    executive_summary: str = ""
    recommendations: Tuple[str, ...] = ()
    technical_explanations: Mapping[str, str] = field(default_factory=lambda: _EMPTY)
    generated_at: str = ""
    score_overrides: Mapping[str, int] = field(default_factory=lambda: _EMPTY)
    is_fallback: bool = False

    @classmethod
    def from_dict(cls, raw: Any) -> Optional["EnhancementContent"]:
        if isinstance(raw, EnhancementContent):
            return raw
        if not isinstance(raw, Mapping):
            return None

        recommendations = raw.get("recommendations")
        explanations = _as_mapping(
            raw.get("technicalExplanations", raw.get("technical_explanations"))
        )
        overrides = _as_mapping(raw.get("scoreOverrides", raw.get("score_overrides")))
        return cls(
            executive_summary=str(
                raw.get("executiveSummary", raw.get("executive_summary")) or ""
            ),
            recommendations=tuple(
                str(r) for r in recommendations if _clean_str(r)
            )
            if isinstance(recommendations, list)
            else (),
            technical_explanations=_frozen(
                {str(k): str(v) for k, v in explanations.items() if _clean_str(v)}
            ),
            generated_at=str(raw.get("generatedAt", raw.get("generated_at")) or ""),
            score_overrides=_frozen(
                {str(k): clamp_score(v) for k, v in overrides.items()}
            ),
            is_fallback=bool(raw.get("isFallback", raw.get("is_fallback", False))),
        )

    def missing_fields(self) -> List[str]:
        """Narrative fields a completed job is expected to carry but doesn't."""
        missing = []
        if not self.executive_summary.strip():
            missing.append("executiveSummary")
        if not self.recommendations:
            missing.append("recommendations")
        return missing

    def to_dict(self) -> Dict[str, Any]:
        return {
            "executiveSummary": self.executive_summary,
            "recommendations": list(self.recommendations),
            "technicalExplanations": dict(self.technical_explanations),
            "generatedAt": self.generated_at,
            "scoreOverrides": dict(self.score_overrides),
            "isFallback": self.is_fallback,
        }


@dataclass(frozen=True)
class AuditSnapshot:
    """Immutable per-render view of one website audit."""

    audit_id: str
    url: str = ""
    project_name: str = "Website"
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    scores: Scores = field(default_factory=Scores)
    page_speed: Mapping[str, DeviceMetrics] = field(default_factory=lambda: _EMPTY)
    issues: Mapping[str, Tuple[Issue, ...]] = field(default_factory=lambda: _EMPTY)
    internal_links: Optional[InternalLinkData] = None
    moz: MozMetrics = field(default_factory=MozMetrics)
    keywords_count: int = 0
    ai_content: Optional[EnhancementContent] = None
    ai_content_enabled: bool = False

    def __post_init__(self):
        # Every known category resolves to a tuple, never a missing key.
        issues = {category: () for category in ISSUE_CATEGORIES}
        for category, items in dict(self.issues).items():
            issues[category] = tuple(Issue.from_dict(i) for i in items or ())
        object.__setattr__(self, "issues", MappingProxyType(issues))

        devices = {device: DeviceMetrics() for device in DEVICES}
        devices.update(dict(self.page_speed))
        object.__setattr__(self, "page_speed", MappingProxyType(devices))

    @classmethod
    def from_dict(cls, raw: Any) -> "AuditSnapshot":
        """
        Build a snapshot from a raw audit record.

        Accepts the dashboard record shape (``report.issues``, ``report.score``,
        ``report.pageSpeed``, ``report.internalLinkData``) as well as the same
        keys at the top level.
        """
        raw = _as_mapping(raw)
        report = _as_mapping(raw.get("report"))

        def pick(*keys: str) -> Any:
            for source in (report, raw):
                for key in keys:
                    if source.get(key) is not None:
                        return source[key]
            return None

        raw_issues = _as_mapping(pick("issues"))
        issues: Dict[str, Tuple[Issue, ...]] = {}
        for category, items in raw_issues.items():
            if isinstance(items, list):
                issues[str(category)] = tuple(Issue.from_dict(i) for i in items)
            else:
                logger.debug(
                    "Issue category is not a list, treating as empty",
                    category=category,
                )

        score = _as_mapping(pick("score", "scores"))
        categories = _as_mapping(score.get("categories"))
        overall = score.get("overall", raw.get("score"))
        scores = Scores(
            overall=clamp_score(overall),
            categories=_frozen({str(k): clamp_score(v) for k, v in categories.items()}),
        )

        page_speed_raw = _as_mapping(pick("pageSpeed", "page_speed"))
        page_speed = {
            device: DeviceMetrics.from_dict(page_speed_raw.get(device))
            for device in DEVICES
        }

        keywords = _as_mapping(pick("keywords"))
        keywords_count = 0
        for key in ("found", "suggested"):
            if isinstance(keywords.get(key), list):
                keywords_count += len(keywords[key])

        project = _as_mapping(raw.get("projects") or raw.get("project"))
        project_name = (
            _clean_str(raw.get("project_name"))
            or _clean_str(project.get("name"))
            or "Website"
        )

        return cls(
            audit_id=str(raw.get("id") or raw.get("audit_id") or ""),
            url=_clean_str(raw.get("url")) or _clean_str(project.get("url")) or "",
            project_name=project_name,
            created_at=_parse_timestamp(raw.get("created_at") or raw.get("createdAt")),
            scores=scores,
            page_speed=page_speed,
            issues=issues,
            internal_links=InternalLinkData.from_dict(
                pick("internalLinkData", "internal_links")
            ),
            moz=MozMetrics.from_dict(pick("mozData", "moz")),
            keywords_count=keywords_count,
            ai_content=EnhancementContent.from_dict(raw.get("ai_content")),
            ai_content_enabled=bool(raw.get("ai_content_enabled", False)),
        )

    def issues_for(self, category: str) -> Tuple[Issue, ...]:
        return self.issues.get(category, ())

    def all_issues(self) -> Iterator[Issue]:
        for items in self.issues.values():
            yield from items

    def with_enhancement(self, content: EnhancementContent) -> "AuditSnapshot":
        """
        Return a new snapshot carrying ``content``.

        Score overrides replace the overall score (key ``overall``) or the named
        category score. The receiver is not modified.
        """
        overrides = dict(content.score_overrides)
        overall = overrides.pop("overall", self.scores.overall)
        categories = dict(self.scores.categories)
        categories.update(overrides)
        return dataclasses.replace(
            self,
            scores=Scores(overall=clamp_score(overall), categories=_frozen(categories)),
            ai_content=content,
            ai_content_enabled=True,
        )
