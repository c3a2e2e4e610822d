"""
AI narrative generation for enhancement jobs.

Builds a deterministic prompt from an audit snapshot, asks the LLM for a JSON
object (executive summary, recommendations, per-section explanations) and
parses it into ``EnhancementContent``. ``fallback_content`` produces the same
shape from the audit data alone, flagged ``is_fallback``.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urlparse

import structlog
import tenacity
from openai import APIError, APITimeoutError, AsyncOpenAI, RateLimitError

from app.core.config import settings
from app.reports.planner import INTERNAL_LINKS, PERFORMANCE, SECTION_CATEGORIES
from app.reports.sections.end import generate_recommendations
from app.reports.severity import RankedSeverity, classify
from app.reports.snapshot import AuditSnapshot, EnhancementContent
from app.services import metrics
from app.utils.error_handler import NarrativeGenerationError

logger = structlog.get_logger(__name__)

MAX_PROMPT_ISSUES = 10

# Sections an explanation may be written for.
EXPLAINED_SECTIONS = tuple(SECTION_CATEGORIES) + (PERFORMANCE, INTERNAL_LINKS)

_PROMPT_SEVERITIES = (RankedSeverity.CRITICAL, RankedSeverity.HIGH, RankedSeverity.MEDIUM)


def _domain(snapshot: AuditSnapshot) -> str:
    if snapshot.url:
        return urlparse(snapshot.url).hostname or snapshot.url
    return snapshot.project_name


def _notable_issues(snapshot: AuditSnapshot, limit: int) -> List[Dict[str, str]]:
    notable = []
    for category, items in snapshot.issues.items():
        for issue in items:
            severity = classify(issue)
            if severity in _PROMPT_SEVERITIES:
                notable.append(
                    {
                        "category": category,
                        "title": issue.title,
                        "description": issue.description or "",
                        "severity": severity.value,
                    }
                )
    notable.sort(key=lambda item: RankedSeverity(item["severity"]).rank)
    return notable[:limit]


class NarrativeGenerator:
    """
    Generates report narrative with the OpenAI chat completions API.

    Retries rate-limit and API errors with exponential back-off; anything
    still failing surfaces as ``NarrativeGenerationError``.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model or settings.LLM_MODEL
        self.max_tokens = max_tokens or settings.LLM_MAX_TOKENS
        self._api_key = api_key or settings.OPENAI_API_KEY
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self._api_key:
                raise NarrativeGenerationError(
                    "OPENAI_API_KEY is not configured",
                    technical_details={"model": self.model},
                )
            self._client = AsyncOpenAI(
                api_key=self._api_key, timeout=settings.LLM_TIMEOUT_SECONDS
            )
        return self._client

    def build_prompt(
        self, snapshot: AuditSnapshot, sections: Optional[Sequence[str]] = None
    ) -> str:
        """
        Constructs the LLM prompt.

        Args:
            snapshot: Audit being described
            sections: Sections to write technical explanations for; all
                explainable sections when omitted

        Returns:
            A formatted prompt string.
        """
        wanted = [s for s in (sections or EXPLAINED_SECTIONS) if s in EXPLAINED_SECTIONS]
        payload = {
            "url": snapshot.url,
            "domain": _domain(snapshot),
            "overallScore": snapshot.scores.overall,
            "categoryScores": dict(snapshot.scores.categories),
            "pageSpeed": {
                device: device_metrics.performance
                for device, device_metrics in snapshot.page_speed.items()
            },
            "issues": _notable_issues(snapshot, MAX_PROMPT_ISSUES),
        }
        prompt = (
            "You are an SEO consultant writing the narrative of a client-facing "
            "audit report.\n"
            "Audit data (JSON):\n"
            f"{json.dumps(payload, sort_keys=True)}\n\n"
            "Respond with a single JSON object with these keys:\n"
            '- "executiveSummary": 2-3 paragraphs for a non-technical reader\n'
            '- "recommendations": 5-8 short, actionable recommendations, '
            "most important first\n"
            '- "technicalExplanations": an object whose keys are taken from '
            f"{json.dumps(wanted)} and whose values explain the findings for "
            "that section in 2-4 sentences\n"
            "Do not invent metrics that are not in the audit data."
        )
        logger.debug("Built narrative prompt", length=len(prompt), sections=wanted)
        return prompt

    @tenacity.retry(
        wait=tenacity.wait_exponential(multiplier=1, min=2, max=30),
        stop=tenacity.stop_after_attempt(3),
        retry=tenacity.retry_if_exception_type((RateLimitError, APIError)),
        before_sleep=tenacity.before_sleep_log(logger, logging.INFO),
        reraise=True,
    )
    async def _complete(self, prompt: str) -> str:
        logger.info("Querying LLM", model=self.model)
        metrics.LLM_CALLS_TOTAL.labels(model=self.model).inc()
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=self.max_tokens,
                temperature=0.4,
                response_format={"type": "json_object"},
            )
        except (RateLimitError, APIError, APITimeoutError) as e:
            logger.warning("LLM API error, will retry", error=str(e))
            metrics.LLM_FAILURES_TOTAL.labels(
                model=self.model, error_type=type(e).__name__
            ).inc()
            raise
        return response.choices[0].message.content or ""

    def parse(self, raw_text: str) -> EnhancementContent:
        """
        Parse the LLM response into content.

        Raises:
            NarrativeGenerationError: not JSON, or no executive summary
        """
        try:
            data = json.loads(raw_text)
        except (TypeError, ValueError) as e:
            raise NarrativeGenerationError(f"LLM response is not valid JSON: {e}")
        if not isinstance(data, dict):
            raise NarrativeGenerationError("LLM response is not a JSON object")

        data["generatedAt"] = datetime.now(timezone.utc).isoformat()
        data.pop("scoreOverrides", None)
        data.pop("isFallback", None)
        explanations = data.get("technicalExplanations")
        if isinstance(explanations, dict):
            data["technicalExplanations"] = {
                k: v for k, v in explanations.items() if k in EXPLAINED_SECTIONS
            }

        content = EnhancementContent.from_dict(data)
        if content is None or not content.executive_summary.strip():
            raise NarrativeGenerationError("LLM response has no executive summary")
        return content

    async def generate(
        self, snapshot: AuditSnapshot, sections: Optional[Sequence[str]] = None
    ) -> EnhancementContent:
        """
        Generate narrative content for a snapshot.

        Raises:
            NarrativeGenerationError: LLM unavailable or returned unusable output
        """
        prompt = self.build_prompt(snapshot, sections)
        try:
            raw_text = await self._complete(prompt)
        except (RateLimitError, APIError, APITimeoutError) as e:
            raise NarrativeGenerationError(
                f"LLM request failed: {e}", technical_details={"model": self.model}
            ) from e

        content = self.parse(raw_text)
        logger.info(
            "Narrative generated",
            audit_id=snapshot.audit_id,
            recommendations=len(content.recommendations),
            explanations=len(content.technical_explanations),
        )
        return content


def _quality(score: int) -> str:
    if score >= 80:
        return "excellent"
    if score >= 60:
        return "good"
    if score >= 40:
        return "fair"
    return "needs improvement"


def fallback_content(snapshot: AuditSnapshot) -> EnhancementContent:
    """Narrative built from the audit data alone, used when the LLM fails."""
    score = snapshot.scores.overall
    urgent = [
        issue
        for issue in snapshot.all_issues()
        if classify(issue) in (RankedSeverity.CRITICAL, RankedSeverity.HIGH)
    ]

    if urgent:
        issues_text = (
            "The most critical issues identified include: "
            f"{', '.join(issue.title for issue in urgent[:3])}. "
        )
    else:
        issues_text = "No critical issues were identified. "

    summary = (
        f"This SEO audit for {_domain(snapshot)} reveals an overall score of "
        f"{score}/100, indicating {_quality(score)} performance. {issues_text}"
        "Addressing the recommendations in this report will help improve search "
        "visibility and user experience."
    )

    recommendations: List[Any] = [
        f"{issue['title']}: {issue['description'] or 'This issue affects your SEO performance.'}"
        for issue in _notable_issues(snapshot, 5)
    ]
    if not recommendations:
        recommendations = generate_recommendations(snapshot)

    return EnhancementContent(
        executive_summary=summary,
        recommendations=tuple(recommendations),
        generated_at=datetime.now(timezone.utc).isoformat(),
        is_fallback=True,
    )
