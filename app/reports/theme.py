"""
Theme and branding resolution for SEO audit reports.

This module provides:
- ``resolve()``: merges built-in defaults, tenant defaults and user overrides
  into one immutable ``ResolvedTheme``
- Tenant presets for white-labeling
- ReportLab paragraph/table styles and color palettes derived from a theme

Resolution is pure. Invalid input never raises: bad colors and enumerations
fall back to documented defaults and are logged as configuration warnings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from reportlab.lib import colors
from reportlab.lib.styles import ParagraphStyle
from reportlab.pdfbase import pdfmetrics

from app.utils.logger import get_logger

from .colors import FALLBACK_PRIMARY, FALLBACK_SECONDARY, normalize_color, to_grayscale

logger = get_logger(__name__)

# Section configuration keys consumed by the planner and section builders.
SECTION_KEYS = (
    "executiveSummary",
    "technicalSEO",
    "onPageSEO",
    "offPageSEO",
    "performance",
    "userExperience",
    "insights",
    "recommendations",
    "charts",
    "branding",
    "structuredData",
    "internalLinks",
)

PAGE_SIZES = ("A4", "LETTER", "LEGAL")
COLOR_MODES = ("Full", "Grayscale")
OUTPUT_QUALITIES = ("Draft", "Standard", "High")
COVER_STYLES = (1, 2, 3, 4, 5)

FALLBACK_ACCENT = "#1abc9c"

DEFAULT_COMPANY_NAME = "SEO Audit"
DEFAULT_CONTACT_INFO = "support@example.com"
DEFAULT_FONT_FAMILY = "Helvetica"
DEFAULT_LOGO_URL = ""
DEFAULT_FOOTER_TEMPLATE = "© {year} {company}. All rights reserved."

DEFAULTS: Mapping[str, Any] = MappingProxyType(
    {
        "primary_color": FALLBACK_PRIMARY,
        "secondary_color": FALLBACK_SECONDARY,
        "accent_color": FALLBACK_ACCENT,
        "font_family": DEFAULT_FONT_FAMILY,
        "company_name": DEFAULT_COMPANY_NAME,
        "logo_url": DEFAULT_LOGO_URL,
        "contact_info": DEFAULT_CONTACT_INFO,
        "footer_text": None,
        "page_size": "A4",
        "color_mode": "Full",
        "output_quality": "Standard",
        "cover_style": 1,
    }
)

_ALIASES = {
    "primaryColor": "primary_color",
    "secondaryColor": "secondary_color",
    "accentColor": "accent_color",
    "fontFamily": "font_family",
    "companyName": "company_name",
    "logoUrl": "logo_url",
    "contactInfo": "contact_info",
    "footerText": "footer_text",
    "pageSize": "page_size",
    "colorMode": "color_mode",
    "outputQuality": "output_quality",
    "coverStyle": "cover_style",
    "includeOptions": "include_options",
}

_TRUE_STRINGS = frozenset({"true", "1", "yes", "on"})
_FALSE_STRINGS = frozenset({"false", "0", "no", "off"})


@dataclass(frozen=True)
class ResolvedTheme:
    """
    Complete, internally consistent presentation settings for one report.

    Attributes:
        primary_color: Primary brand color (``#rrggbb``)
        secondary_color: Secondary brand color (``#rrggbb``)
        accent_color: Accent color for highlights (``#rrggbb``)
        font_family: Requested font family; see ``font_regular``/``font_bold``
        company_name: Name printed on the cover and in the footer
        logo_url: Logo reference (path or URL), empty when unset
        contact_info: Contact line for the end page
        footer_text: Footer printed on every page
        page_size: ``A4``, ``LETTER`` or ``LEGAL``
        color_mode: ``Full`` or ``Grayscale``
        output_quality: ``Draft``, ``Standard`` or ``High``
        cover_style: Cover template number (1-5)
        include_options: Section key -> include flag
    """

    primary_color: str = FALLBACK_PRIMARY
    secondary_color: str = FALLBACK_SECONDARY
    accent_color: str = FALLBACK_ACCENT
    font_family: str = DEFAULT_FONT_FAMILY
    company_name: str = DEFAULT_COMPANY_NAME
    logo_url: str = DEFAULT_LOGO_URL
    contact_info: str = DEFAULT_CONTACT_INFO
    footer_text: str = ""
    page_size: str = "A4"
    color_mode: str = "Full"
    output_quality: str = "Standard"
    cover_style: int = 1
    include_options: Mapping[str, bool] = field(
        default_factory=lambda: MappingProxyType({key: True for key in SECTION_KEYS})
    )

    def include(self, section_key: str) -> bool:
        return bool(self.include_options.get(section_key, True))

    def effective_color(self, hex_color: str) -> str:
        if self.color_mode == "Grayscale":
            return to_grayscale(hex_color)
        return hex_color

    @property
    def primary(self) -> str:
        return self.effective_color(self.primary_color)

    @property
    def secondary(self) -> str:
        return self.effective_color(self.secondary_color)

    @property
    def accent(self) -> str:
        return self.effective_color(self.accent_color)

    @property
    def font_regular(self) -> str:
        return _reportlab_font(self.font_family, bold=False)

    @property
    def font_bold(self) -> str:
        return _reportlab_font(self.font_family, bold=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primaryColor": self.primary_color,
            "secondaryColor": self.secondary_color,
            "accentColor": self.accent_color,
            "fontFamily": self.font_family,
            "companyName": self.company_name,
            "logoUrl": self.logo_url,
            "contactInfo": self.contact_info,
            "footerText": self.footer_text,
            "pageSize": self.page_size,
            "colorMode": self.color_mode,
            "outputQuality": self.output_quality,
            "coverStyle": self.cover_style,
            "includeOptions": dict(self.include_options),
        }


# Tenant presets for white-labeling
THEMES: Dict[str, Mapping[str, Any]] = {
    "default": MappingProxyType({}),
    "corporate": MappingProxyType(
        {
            "primaryColor": "#1f4e79",
            "secondaryColor": "#5b9bd5",
            "accentColor": "#ff6b35",
        }
    ),
    "minimalist": MappingProxyType(
        {
            "primaryColor": "#333333",
            "secondaryColor": "#666666",
            "accentColor": "#0066ff",
            "coverStyle": 1,
        }
    ),
    "dark": MappingProxyType(
        {
            "primaryColor": "#111827",
            "secondaryColor": "#374151",
            "accentColor": "#10b981",
            "coverStyle": 3,
        }
    ),
}


def get_preset(theme_key: str) -> Mapping[str, Any]:
    """
    Get tenant preset by key, fallback to default if not found.

    Args:
        theme_key: Preset identifier

    Returns:
        Preset settings mapping (camelCase keys)
    """
    return THEMES.get(theme_key, THEMES["default"])


def _canonical_key(key: str) -> str:
    return _ALIASES.get(key, key)


def _coerce_toggle(section: str, value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    logger.warning(
        "Ignoring non-boolean section toggle", section=section, value=repr(value)
    )
    return None


def _merge_toggles(target: Dict[str, bool], layer: Any) -> None:
    if layer is None:
        return
    if not isinstance(layer, Mapping):
        logger.warning("includeOptions is not a mapping, ignoring", value=repr(layer))
        return
    for section, value in layer.items():
        section = str(section)
        if section not in SECTION_KEYS:
            logger.warning("Unknown section key in includeOptions", section=section)
        toggle = _coerce_toggle(section, value)
        if toggle is not None:
            target[section] = toggle


def _choice(name: str, value: Any, allowed: tuple, default: Any) -> Any:
    if isinstance(value, str):
        for option in allowed:
            if isinstance(option, str) and option.lower() == value.strip().lower():
                return option
    elif value in allowed and not isinstance(value, bool):
        return value
    logger.warning("Invalid theme setting, using default", setting=name, value=repr(value))
    return default


def resolve(
    tenant_defaults: Optional[Mapping[str, Any]] = None,
    user_overrides: Optional[Mapping[str, Any]] = None,
    *,
    now: Optional[datetime] = None,
) -> ResolvedTheme:
    """
    Merge defaults, tenant settings and user overrides into a ``ResolvedTheme``.

    Scalar settings are overridden shallowly; ``None`` and blank strings count
    as unset. ``includeOptions`` is merged key by key so a partial override
    keeps every key the other layers mention. Keys may be camelCase or
    snake_case.

    Args:
        tenant_defaults: Tenant/white-label settings
        user_overrides: Per-report settings from the user
        now: Clock used for the default footer year

    Returns:
        A fresh ResolvedTheme; inputs are not modified.
    """
    merged: Dict[str, Any] = dict(DEFAULTS)
    toggles: Dict[str, bool] = {key: True for key in SECTION_KEYS}

    for layer in (tenant_defaults, user_overrides):
        if not layer:
            continue
        if not isinstance(layer, Mapping):
            logger.warning("Theme layer is not a mapping, ignoring", value=repr(layer))
            continue
        for raw_key, value in layer.items():
            key = _canonical_key(str(raw_key))
            if key == "include_options":
                _merge_toggles(toggles, value)
            elif key in DEFAULTS:
                if value is None or (isinstance(value, str) and not value.strip()):
                    continue
                merged[key] = value.strip() if isinstance(value, str) else value

    company_name = str(merged["company_name"])
    footer_text = merged["footer_text"]
    if not footer_text:
        year = (now or datetime.now(timezone.utc)).year
        footer_text = DEFAULT_FOOTER_TEMPLATE.format(year=year, company=company_name)

    try:
        cover_style = int(merged["cover_style"])
    except (TypeError, ValueError):
        cover_style = -1

    return ResolvedTheme(
        primary_color=normalize_color(merged["primary_color"], FALLBACK_PRIMARY),
        secondary_color=normalize_color(merged["secondary_color"], FALLBACK_SECONDARY),
        accent_color=normalize_color(merged["accent_color"], FALLBACK_ACCENT),
        font_family=str(merged["font_family"]),
        company_name=company_name,
        logo_url=str(merged["logo_url"]),
        contact_info=str(merged["contact_info"]),
        footer_text=str(footer_text),
        page_size=_choice("page_size", merged["page_size"], PAGE_SIZES, "A4"),
        color_mode=_choice("color_mode", merged["color_mode"], COLOR_MODES, "Full"),
        output_quality=_choice(
            "output_quality", merged["output_quality"], OUTPUT_QUALITIES, "Standard"
        ),
        cover_style=_choice("cover_style", cover_style, COVER_STYLES, 1),
        include_options=MappingProxyType(toggles),
    )


_STANDARD_FONTS = {
    "helvetica": ("Helvetica", "Helvetica-Bold"),
    "arial": ("Helvetica", "Helvetica-Bold"),
    "sans-serif": ("Helvetica", "Helvetica-Bold"),
    "times": ("Times-Roman", "Times-Bold"),
    "times new roman": ("Times-Roman", "Times-Bold"),
    "serif": ("Times-Roman", "Times-Bold"),
    "courier": ("Courier", "Courier-Bold"),
    "monospace": ("Courier", "Courier-Bold"),
}


def _reportlab_font(font_family: str, bold: bool) -> str:
    """Pick the first family in a CSS font list that ReportLab can draw."""
    registered = set(pdfmetrics.getRegisteredFontNames())
    for candidate in (part.strip().strip("'\"") for part in font_family.split(",")):
        if not candidate:
            continue
        bold_name = f"{candidate}-Bold"
        if bold and bold_name in registered:
            return bold_name
        if candidate in registered and not bold:
            return candidate
        standard = _STANDARD_FONTS.get(candidate.lower())
        if standard:
            return standard[1] if bold else standard[0]
    return "Helvetica-Bold" if bold else "Helvetica"


def format_date(dt: datetime) -> str:
    return dt.strftime("%B %d, %Y")


def create_paragraph_styles(theme: ResolvedTheme) -> Dict[str, ParagraphStyle]:
    """
    Create paragraph styles based on theme.

    Args:
        theme: Resolved theme

    Returns:
        Dictionary of style name -> ParagraphStyle
    """
    styles = {}

    styles["title"] = ParagraphStyle(
        "Title",
        fontSize=26,
        leading=32,
        textColor=colors.HexColor(theme.primary),
        fontName=theme.font_bold,
        alignment=1,  # Center
        spaceAfter=24,
    )

    styles["cover_inverse"] = ParagraphStyle(
        "CoverInverse",
        parent=styles["title"],
        textColor=colors.white,
    )

    styles["heading1"] = ParagraphStyle(
        "Heading1",
        fontSize=18,
        leading=22,
        textColor=colors.HexColor(theme.primary),
        fontName=theme.font_bold,
        spaceBefore=4,
        spaceAfter=12,
        keepWithNext=1,
    )

    styles["heading2"] = ParagraphStyle(
        "Heading2",
        fontSize=14,
        leading=18,
        textColor=colors.HexColor(theme.secondary),
        fontName=theme.font_bold,
        spaceBefore=12,
        spaceAfter=8,
        keepWithNext=1,
    )

    styles["heading3"] = ParagraphStyle(
        "Heading3",
        fontSize=11,
        leading=14,
        textColor=colors.HexColor(theme.secondary),
        fontName=theme.font_bold,
        spaceBefore=8,
        spaceAfter=4,
        keepWithNext=1,
    )

    styles["body"] = ParagraphStyle(
        "Body",
        fontSize=10,
        leading=13,
        textColor=colors.black,
        fontName=theme.font_regular,
        spaceBefore=3,
        spaceAfter=3,
    )

    styles["lead"] = ParagraphStyle(
        "Lead",
        parent=styles["body"],
        fontSize=11.5,
        leading=15,
        spaceAfter=10,
    )

    styles["explanation"] = ParagraphStyle(
        "Explanation",
        parent=styles["body"],
        textColor=colors.HexColor(theme.secondary),
        borderColor=colors.HexColor(theme.accent),
        borderWidth=0.5,
        borderPadding=6,
        spaceBefore=12,
    )

    styles["notes"] = ParagraphStyle(
        "Notes",
        parent=styles["body"],
        fontName="Helvetica-Oblique",
        spaceBefore=10,
    )

    styles["cover_body_inverse"] = ParagraphStyle(
        "CoverBodyInverse",
        parent=styles["body"],
        fontSize=12,
        leading=16,
        textColor=colors.white,
    )

    styles["issue_title"] = ParagraphStyle(
        "IssueTitle", parent=styles["body"], fontName=theme.font_bold, leftIndent=10
    )

    styles["issue_detail"] = ParagraphStyle(
        "IssueDetail",
        parent=styles["body"],
        fontSize=8.5,
        leading=11,
        textColor=colors.HexColor("#4b5563"),
        leftIndent=10,
    )

    styles["placeholder"] = ParagraphStyle(
        "Placeholder",
        parent=styles["body"],
        textColor=colors.grey,
        fontName="Helvetica-Oblique",
        alignment=1,
        spaceBefore=40,
    )

    styles["caption"] = ParagraphStyle(
        "Caption",
        fontSize=9,
        leading=12,
        textColor=colors.grey,
        fontName=theme.font_regular,
        alignment=1,  # Center
        spaceBefore=6,
        spaceAfter=12,
    )

    styles["footer"] = ParagraphStyle(
        "Footer",
        fontSize=8,
        leading=10,
        textColor=colors.HexColor(theme.secondary),
        fontName=theme.font_regular,
        alignment=1,  # Center
    )

    return styles


def get_color_palette(theme: ResolvedTheme) -> Dict[str, colors.Color]:
    """
    Get color palette from theme.

    Severity colors follow the same grayscale rule as brand colors.
    """
    return {
        "primary": colors.HexColor(theme.primary),
        "secondary": colors.HexColor(theme.secondary),
        "accent": colors.HexColor(theme.accent),
        "light_gray": colors.lightgrey,
        "critical": colors.HexColor(theme.effective_color("#b91c1c")),
        "high": colors.HexColor(theme.effective_color("#ef4444")),
        "medium": colors.HexColor(theme.effective_color("#eab308")),
        "low": colors.HexColor(theme.effective_color("#22c55e")),
        "info": colors.HexColor(theme.effective_color("#3b82f6")),
    }


def create_table_styles(theme: ResolvedTheme):
    """
    Create table styles based on theme.

    Args:
        theme: Resolved theme

    Returns:
        Dictionary of table style configurations
    """
    from reportlab.platypus import TableStyle

    palette = get_color_palette(theme)

    styles = {}

    styles["standard"] = TableStyle(
        [
            ("BACKGROUND", (0, 0), (-1, 0), palette["primary"]),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
            ("ALIGN", (0, 0), (-1, 0), "CENTER"),
            ("ALIGN", (0, 1), (-1, -1), "LEFT"),
            ("FONTNAME", (0, 0), (-1, 0), theme.font_bold),
            ("FONTNAME", (0, 1), (-1, -1), theme.font_regular),
            ("FONTSIZE", (0, 0), (-1, -1), 9),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
            ("TOPPADDING", (0, 0), (-1, -1), 4),
            ("GRID", (0, 0), (-1, -1), 0.5, palette["light_gray"]),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ]
    )

    styles["minimal"] = TableStyle(
        [
            ("ALIGN", (0, 0), (-1, -1), "LEFT"),
            ("FONTNAME", (0, 0), (0, -1), theme.font_bold),
            ("FONTNAME", (1, 0), (-1, -1), theme.font_regular),
            ("FONTSIZE", (0, 0), (-1, -1), 10),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
            ("TEXTCOLOR", (0, 0), (0, -1), palette["primary"]),
        ]
    )

    return styles
