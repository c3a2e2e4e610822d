"""
Report generation entry points.

Ties the pure pipeline together: resolve theme -> plan -> assemble -> PDF.
Also maps enhancement job parameters onto theme overrides and render
options, and names the downloadable file.
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Tuple

from app.core.config import settings
from app.reports import assembler, planner, renderer
from app.reports.document import Document, RenderOptions
from app.reports.planner import ReportPlan
from app.reports.snapshot import AuditSnapshot
from app.reports.theme import SECTION_KEYS, ResolvedTheme, get_preset, resolve
from app.services import metrics
from app.utils.logger import get_logger

logger = get_logger(__name__)

# Toggles a job's ``sections`` list may switch off; presentation toggles
# (charts, branding, insights, recommendations) are left alone.
PAGE_SECTION_KEYS = (
    "executiveSummary",
    "technicalSEO",
    "onPageSEO",
    "offPageSEO",
    "performance",
    "userExperience",
    "structuredData",
    "internalLinks",
)


def report_filename(project_name: str, when: Optional[datetime] = None) -> str:
    """``<project-name-slug>-<YYYY-MM-DD>.pdf``"""
    slug = re.sub(r"[^a-z0-9]", "-", (project_name or "report").lower())
    when = when or datetime.now(timezone.utc)
    return f"{slug}-{when.strftime('%Y-%m-%d')}.pdf"


def overrides_from_parameters(parameters: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Translate job submission parameters into user theme overrides.

    ``customColors`` map onto brand colors, ``customLogo`` onto the logo,
    ``clientInfo.company`` onto the company name, ``template`` (1-5) onto
    the cover style and ``sections`` onto section toggles.
    """
    parameters = parameters or {}
    overrides: Dict[str, Any] = {}

    colors = parameters.get("customColors")
    if isinstance(colors, Mapping):
        for source, target in (
            ("primary", "primaryColor"),
            ("secondary", "secondaryColor"),
            ("accent", "accentColor"),
        ):
            if colors.get(source):
                overrides[target] = colors[source]

    if parameters.get("customLogo"):
        overrides["logoUrl"] = parameters["customLogo"]

    client_info = parameters.get("clientInfo")
    if isinstance(client_info, Mapping) and client_info.get("company"):
        overrides["companyName"] = client_info["company"]

    template = parameters.get("template")
    if template is not None:
        try:
            overrides["coverStyle"] = int(str(template).rsplit("-", 1)[-1])
        except ValueError:
            logger.warning("Ignoring unrecognized template", template=template)

    sections = parameters.get("sections")
    if isinstance(sections, Mapping):
        overrides["includeOptions"] = dict(sections)
    elif isinstance(sections, (list, tuple)):
        requested = {str(s) for s in sections}
        overrides["includeOptions"] = {key: key in requested for key in PAGE_SECTION_KEYS}

    for key in ("pageSize", "colorMode", "outputQuality", "includeOptions"):
        if key in parameters and key not in overrides:
            overrides[key] = parameters[key]

    return overrides


def resolve_job_theme(
    parameters: Optional[Mapping[str, Any]],
    tenant_settings: Optional[Mapping[str, Any]] = None,
) -> ResolvedTheme:
    """Theme for a job: white-label preset and tenant settings, then job overrides."""
    parameters = parameters or {}
    preset_key = parameters.get("whiteLabelProfileId") or settings.DEFAULT_THEME_PRESET
    tenant: Dict[str, Any] = dict(get_preset(str(preset_key)))
    tenant.update(tenant_settings or {})
    return resolve(tenant, overrides_from_parameters(parameters))


def _compose(
    snapshot: AuditSnapshot,
    theme: ResolvedTheme,
    options: Optional[RenderOptions],
) -> Tuple[ReportPlan, Document]:
    report_plan = planner.plan(snapshot, theme)
    document = assembler.render(snapshot, theme, report_plan, options)
    metrics.REPORTS_RENDERED_TOTAL.labels(output="document").inc()
    return report_plan, document


def build_document(
    snapshot: AuditSnapshot,
    theme: ResolvedTheme,
    options: Optional[RenderOptions] = None,
) -> Document:
    return _compose(snapshot, theme, options)[1]


def build_report(
    snapshot: AuditSnapshot,
    theme: ResolvedTheme,
    options: Optional[RenderOptions] = None,
) -> Tuple[ReportPlan, Document, bytes]:
    """
    Run the whole pipeline for one snapshot.

    Returns:
        The page plan, the assembled document and its PDF bytes
    """
    report_plan, document = _compose(snapshot, theme, options)
    pdf_bytes = renderer.to_pdf(document, theme)
    logger.info(
        "Report built",
        audit_id=snapshot.audit_id,
        pages=len(document.pages),
        enhanced=snapshot.ai_content is not None,
        include_options=sorted(k for k in SECTION_KEYS if theme.include(k)),
    )
    return report_plan, document, pdf_bytes
