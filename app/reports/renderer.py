"""
PDF rendering for assembled report documents.

``to_pdf()`` lays every ``Page`` of a ``Document`` out on exactly one physical
PDF page: the page's flowables are wrapped in a shrinking ``KeepInFrame`` and
separated by ``PageBreak``. Footer text and page numbers are stamped in the
page callback from the document's own page map, so the printed numbers are
the planner's numbers.
"""

from __future__ import annotations

import io
from pathlib import Path
from typing import Any, List
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, LEGAL, LETTER
from reportlab.lib.units import inch
from reportlab.platypus import (
    Image,
    KeepInFrame,
    PageBreak,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from app.services import metrics
from app.utils.logger import get_logger

from . import charts
from .document import (
    NO_DATA_MESSAGE,
    BulletList,
    CoverBlock,
    Document,
    Heading,
    IssueGroup,
    KeyValue,
    MetricTable,
    Page,
    Placeholder,
    ScoreChart,
    TextBlock,
)
from .theme import (
    ResolvedTheme,
    create_paragraph_styles,
    create_table_styles,
    get_color_palette,
)

logger = get_logger(__name__)

PAGE_SIZES = {"A4": A4, "LETTER": LETTER, "LEGAL": LEGAL}

MARGIN_X = 0.75 * inch
MARGIN_TOP = 0.9 * inch
MARGIN_BOTTOM = 0.9 * inch
FRAME_PADDING = 12

MAX_ISSUES_PER_GROUP = 12

# Cover templates drawn on a dark or brand-colored background.
INVERSE_COVERS = frozenset({2, 3})
DARK_COVER_BACKGROUND = "#111827"


def _p(text: Any, style) -> Paragraph:
    return Paragraph(escape(str(text)), style)


class _PdfBuilder:
    """Turns document blocks into ReportLab flowables for one theme."""

    def __init__(self, theme: ResolvedTheme, content_width: float):
        self.theme = theme
        self.content_width = content_width
        self.styles = create_paragraph_styles(theme)
        self.table_styles = create_table_styles(theme)
        self.palette = get_color_palette(theme)
        self.dpi = charts.QUALITY_DPI.get(theme.output_quality, 150)

    def page_flowables(self, page: Page) -> List[Any]:
        story: List[Any] = []
        for block in page.blocks:
            story.extend(self.block_flowables(block))
        return story

    def block_flowables(self, block: Any) -> List[Any]:
        if isinstance(block, Heading):
            style = self.styles.get(f"heading{block.level}", self.styles["heading2"])
            return [_p(block.text, style)]
        if isinstance(block, TextBlock):
            return [_p(block.text, self.styles.get(block.style, self.styles["body"]))]
        if isinstance(block, ScoreChart):
            return self.score_chart(block)
        if isinstance(block, MetricTable):
            return self.metric_table(block)
        if isinstance(block, KeyValue):
            return self.key_value(block)
        if isinstance(block, IssueGroup):
            return self.issue_group(block)
        if isinstance(block, BulletList):
            return self.bullet_list(block)
        if isinstance(block, Placeholder):
            return [_p(block.message, self.styles["placeholder"])]
        if isinstance(block, CoverBlock):
            return self.cover(block)
        logger.warning("Unknown block type, skipping", block_type=type(block).__name__)
        return []

    def score_chart(self, block: ScoreChart) -> List[Any]:
        if block.as_chart and block.bars:
            try:
                return [
                    charts.create_score_bar_chart(
                        block.bars,
                        block.title,
                        self.theme.primary,
                        grayscale=self.theme.color_mode == "Grayscale",
                        dpi=self.dpi,
                    ),
                    Spacer(1, 8),
                ]
            except Exception as e:
                logger.warning(
                    "Score chart failed, falling back to table", error=str(e)
                )
        rows = tuple((bar.label, f"{bar.score}/100") for bar in block.bars)
        return self.metric_table(
            MetricTable(headers=("Category", "Score"), rows=rows, title=block.title)
        )

    def metric_table(self, block: MetricTable) -> List[Any]:
        story: List[Any] = []
        if block.title:
            story.append(_p(block.title, self.styles["heading3"]))
        cell = self.styles["issue_detail"]
        data = [list(block.headers)]
        data.extend([_p(value, cell) for value in row] for row in block.rows)
        table = Table(data, repeatRows=1, hAlign="LEFT")
        table.setStyle(self.table_styles["standard"])
        story.extend([table, Spacer(1, 8)])
        return story

    def key_value(self, block: KeyValue) -> List[Any]:
        story: List[Any] = []
        if block.title:
            story.append(_p(block.title, self.styles["heading3"]))
        data = [[label, _p(value, self.styles["body"])] for label, value in block.pairs]
        table = Table(data, colWidths=[1.8 * inch, None], hAlign="LEFT")
        table.setStyle(self.table_styles["minimal"])
        story.extend([table, Spacer(1, 8)])
        return story

    def issue_group(self, block: IssueGroup) -> List[Any]:
        story: List[Any] = [_p(block.title, self.styles["heading2"])]
        if not block.issue_count:
            story.append(_p(block.empty_message, self.styles["body"]))
            return story

        for severity, items in block.groups:
            color = self.palette.get(severity.value, self.palette["secondary"])
            heading = Paragraph(
                f'<font color="#{color.hexval()[2:]}">'
                f"{escape(severity.value.title())} ({len(items)})</font>",
                self.styles["heading3"],
            )
            story.append(heading)
            for issue in items[:MAX_ISSUES_PER_GROUP]:
                story.append(_p(issue.title, self.styles["issue_title"]))
                details = [d for d in (issue.description, issue.url) if d]
                if details:
                    story.append(_p(" | ".join(details), self.styles["issue_detail"]))
            hidden = len(items) - MAX_ISSUES_PER_GROUP
            if hidden > 0:
                story.append(
                    _p(f"...and {hidden} more", self.styles["issue_detail"])
                )
        return story

    def bullet_list(self, block: BulletList) -> List[Any]:
        story: List[Any] = []
        if block.title:
            story.append(_p(block.title, self.styles["heading3"]))
        for item in block.items:
            story.append(
                Paragraph(escape(str(item)), self.styles["body"], bulletText="•")
            )
        return story

    def _logo(self, logo_url: str) -> List[Any]:
        path = Path(logo_url) if logo_url else None
        if path is None or not path.is_file():
            if logo_url:
                logger.debug("Logo is not a local file, skipping", logo_url=logo_url)
            return []
        try:
            logo = Image(str(path), width=1.6 * inch, height=0.8 * inch, kind="proportional")
            return [logo, Spacer(1, 24)]
        except Exception as e:
            logger.warning("Failed to load logo", logo_url=logo_url, error=str(e))
            return []

    def cover(self, block: CoverBlock) -> List[Any]:
        inverse = block.cover_style in INVERSE_COVERS
        title_style = self.styles["cover_inverse" if inverse else "title"]
        body = self.styles["body"]
        if inverse:
            body = self.styles["cover_body_inverse"]

        details = [
            _p(block.project_name, title_style),
            _p(block.url, body),
            Spacer(1, 12),
            _p(block.report_date, body),
            _p(f"Prepared by {block.company_name}", body),
        ]
        if block.client_name:
            details.append(_p(f"Prepared for {block.client_name}", body))

        story: List[Any] = [Spacer(1, 1.2 * inch)]
        story.extend(self._logo(block.logo_url))

        if block.cover_style == 4:
            # Title sits inside the colored banner, details below it.
            story.append(_p(block.report_title, self.styles["cover_inverse"]))
            story.append(Spacer(1, 1.6 * inch))
            story.extend(details)
        elif block.cover_style == 5:
            left = [_p(block.report_title, self.styles["cover_inverse"])]
            table = Table(
                [[left, details]],
                colWidths=[self.content_width * 0.4, self.content_width * 0.6],
            )
            table.setStyle(
                TableStyle(
                    [
                        ("VALIGN", (0, 0), (-1, -1), "TOP"),
                        ("LEFTPADDING", (1, 0), (1, 0), 24),
                    ]
                )
            )
            story.append(table)
        else:
            story.append(_p(block.report_title, title_style))
            story.append(Spacer(1, 24))
            story.extend(details)
        return story


def _draw_cover_background(canvas, page_width: float, page_height: float, theme, style: int):
    primary = colors.HexColor(theme.primary)
    secondary = colors.HexColor(theme.secondary)

    canvas.saveState()
    if style == 2:
        steps = 48
        band = page_height / steps
        for i in range(steps):
            t = i / (steps - 1)
            canvas.setFillColor(
                colors.Color(
                    primary.red + (secondary.red - primary.red) * t,
                    primary.green + (secondary.green - primary.green) * t,
                    primary.blue + (secondary.blue - primary.blue) * t,
                )
            )
            canvas.rect(0, page_height - (i + 1) * band, page_width, band + 1, stroke=0, fill=1)
    elif style == 3:
        canvas.setFillColor(
            colors.HexColor(theme.effective_color(DARK_COVER_BACKGROUND))
        )
        canvas.rect(0, 0, page_width, page_height, stroke=0, fill=1)
    elif style == 4:
        banner = page_height * 0.38
        canvas.setFillColor(primary)
        canvas.rect(0, page_height - banner, page_width, banner, stroke=0, fill=1)
    elif style == 5:
        canvas.setFillColor(primary)
        canvas.rect(0, 0, MARGIN_X + (page_width - 2 * MARGIN_X) * 0.4, page_height, stroke=0, fill=1)
    else:
        canvas.setStrokeColor(primary)
        canvas.setLineWidth(4)
        canvas.line(MARGIN_X, page_height - 0.6 * inch, page_width - MARGIN_X, page_height - 0.6 * inch)
    canvas.restoreState()


def _make_page_callback(document: Document, theme: ResolvedTheme):
    pages = document.pages

    def on_page(canvas, doc):
        index = canvas.getPageNumber() - 1
        if index >= len(pages):
            logger.warning("Physical page beyond document pages", index=index)
            return
        page = pages[index]
        page_width, page_height = doc.pagesize

        inverse = False
        for block in page.blocks:
            if isinstance(block, CoverBlock):
                _draw_cover_background(canvas, page_width, page_height, theme, block.cover_style)
                inverse = block.cover_style in INVERSE_COVERS
                break

        canvas.saveState()
        text_color = colors.white if inverse else colors.HexColor(theme.secondary)
        canvas.setFillColor(text_color)
        canvas.setFont(theme.font_regular, 8)
        if page.footer:
            canvas.drawCentredString(page_width / 2, 0.5 * inch, page.footer)
        if page.page_number is not None:
            canvas.drawRightString(
                page_width - MARGIN_X, 0.5 * inch, f"Page {page.page_number}"
            )
        canvas.restoreState()

    return on_page


def to_pdf(document: Document, theme: ResolvedTheme) -> bytes:
    """
    Render an assembled document to PDF bytes.

    Args:
        document: Document from ``assembler.render``
        theme: Theme the document was assembled with

    Returns:
        PDF file content
    """
    with metrics.PDF_RENDER_SECONDS.time():
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=PAGE_SIZES.get(document.page_size, A4),
            leftMargin=MARGIN_X,
            rightMargin=MARGIN_X,
            topMargin=MARGIN_TOP,
            bottomMargin=MARGIN_BOTTOM,
            title=document.title,
            author=document.author,
            subject=document.subject,
            keywords=", ".join(document.keywords),
            creator=theme.company_name,
        )

        builder = _PdfBuilder(theme, doc.width - FRAME_PADDING)
        story: List[Any] = []
        for i, page in enumerate(document.pages):
            try:
                flowables = builder.page_flowables(page)
            except Exception as e:
                logger.error(
                    "Page layout failed, rendering placeholder",
                    section=page.section,
                    error=str(e),
                    exc_info=True,
                )
                flowables = [_p(NO_DATA_MESSAGE, builder.styles["placeholder"])]
            story.append(
                KeepInFrame(
                    maxWidth=doc.width - FRAME_PADDING,
                    maxHeight=doc.height - FRAME_PADDING,
                    content=flowables,
                    mode="shrink",
                )
            )
            if i < len(document.pages) - 1:
                story.append(PageBreak())

        on_page = _make_page_callback(document, theme)
        doc.build(story, onFirstPage=on_page, onLaterPages=on_page)

    metrics.REPORTS_RENDERED_TOTAL.labels(output="pdf").inc()
    pdf_bytes = buffer.getvalue()
    logger.info(
        "PDF rendered",
        title=document.title,
        pages=len(document.pages),
        size_bytes=len(pdf_bytes),
    )
    return pdf_bytes
