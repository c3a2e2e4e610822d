"""Cover page section builder."""

from __future__ import annotations

from typing import List

from ..document import Block, CoverBlock, RenderOptions
from ..snapshot import AuditSnapshot
from ..theme import ResolvedTheme, format_date


def build(
    theme: ResolvedTheme, snapshot: AuditSnapshot, options: RenderOptions
) -> List[Block]:
    """
    Build the cover page.

    The ``branding`` toggle controls whether the tenant logo is shown; the
    company name is always printed.
    """
    client_name = str(options.client_info.get("name") or "")
    logo_url = str(options.client_info.get("logo") or theme.logo_url)
    if not theme.include("branding"):
        logo_url = ""

    return [
        CoverBlock(
            report_title=options.report_title,
            project_name=snapshot.project_name,
            url=snapshot.url,
            report_date=format_date(snapshot.created_at),
            company_name=str(options.client_info.get("company") or theme.company_name),
            client_name=client_name,
            logo_url=logo_url,
            cover_style=theme.cover_style,
        )
    ]
