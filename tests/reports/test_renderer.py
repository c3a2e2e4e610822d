import base64
from unittest.mock import MagicMock

import pytest
from reportlab.lib.pagesizes import A4
from reportlab.platypus import Image, Table

from app.reports import assembler, planner, renderer
from app.reports.document import (
    CoverBlock,
    Document,
    IssueGroup,
    Page,
    ScoreBar,
    ScoreChart,
    TextBlock,
)
from app.reports.severity import RankedSeverity
from app.reports.snapshot import Issue
from app.reports.theme import resolve


def _write_logo(tmp_path):
    logo_bytes = base64.b64decode(
        b"iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR4nGNgYAAAAAMAASsJTYQAAAAASUVORK5CYII="
    )
    logo_path = tmp_path / "logo.png"
    logo_path.write_bytes(logo_bytes)
    return logo_path


def _cover(**kwargs):
    values = dict(
        report_title="SEO Audit Report",
        project_name="Acme",
        url="https://acme.test",
        report_date="March 14, 2026",
        company_name="Agency",
    )
    values.update(kwargs)
    return CoverBlock(**values)


def test_full_report_renders_pdf(snapshot):
    theme = resolve()
    document = assembler.render(snapshot, theme, planner.plan(snapshot, theme))

    pdf_bytes = renderer.to_pdf(document, theme)

    assert pdf_bytes.startswith(b"%PDF")
    assert b"/Title" in pdf_bytes


@pytest.mark.parametrize("cover_style", [1, 2, 3, 4, 5])
def test_every_cover_style_renders(snapshot, cover_style):
    theme = resolve(None, {"coverStyle": cover_style, "colorMode": "Grayscale"})
    document = assembler.render(snapshot, theme, planner.plan(snapshot, theme))

    assert renderer.to_pdf(document, theme).startswith(b"%PDF")


def test_cover_includes_logo(tmp_path):
    logo_path = _write_logo(tmp_path)
    builder = renderer._PdfBuilder(resolve(), 400)

    flowables = builder.cover(_cover(logo_url=str(logo_path)))

    assert any(isinstance(flowable, Image) for flowable in flowables)


def test_remote_logo_is_skipped():
    builder = renderer._PdfBuilder(resolve(), 400)

    flowables = builder.cover(_cover(logo_url="https://cdn.example.com/logo.png"))

    assert not any(isinstance(flowable, Image) for flowable in flowables)


def test_score_chart_as_table_when_charts_disabled():
    builder = renderer._PdfBuilder(resolve(), 400)
    block = ScoreChart("Scores", (ScoreBar("Overall", 70),), as_chart=False)

    flowables = builder.block_flowables(block)

    assert any(isinstance(flowable, Table) for flowable in flowables)


def test_score_chart_draws_image():
    builder = renderer._PdfBuilder(resolve(None, {"outputQuality": "Draft"}), 400)
    block = ScoreChart("Scores", (ScoreBar("Overall", 70), ScoreBar("Links", 30)))

    flowables = builder.block_flowables(block)

    assert isinstance(flowables[0], Image)


def test_issue_group_truncates_long_listings():
    builder = renderer._PdfBuilder(resolve(), 400)
    issues = tuple(Issue(title=f"Issue {n}", severity="low") for n in range(20))
    block = IssueGroup("Link Issues", ((RankedSeverity.LOW, issues),))

    flowables = builder.issue_group(block)

    texts = [f.getPlainText() for f in flowables]
    assert "Low (20)" in texts
    assert "...and 8 more" in texts


def test_page_callback_stamps_footer_and_plan_number():
    theme = resolve(None, {"footerText": "Confidential"})
    document = Document(
        title="t",
        author="a",
        subject="s",
        pages=(
            Page("cover", "Cover", (_cover(),), "Confidential", 1),
            Page("endPage", "Next Steps", (TextBlock("bye"),), "Confidential", 2),
        ),
    )
    canvas = MagicMock()
    canvas.getPageNumber.return_value = 2
    doc = MagicMock(pagesize=A4)

    renderer._make_page_callback(document, theme)(canvas, doc)

    canvas.drawCentredString.assert_called_once()
    assert canvas.drawCentredString.call_args[0][2] == "Confidential"
    canvas.drawRightString.assert_called_once()
    assert canvas.drawRightString.call_args[0][2] == "Page 2"


def test_failing_page_layout_still_renders(monkeypatch, snapshot):
    theme = resolve()
    document = assembler.render(snapshot, theme, planner.plan(snapshot, theme))
    original = renderer._PdfBuilder.page_flowables

    def flaky(self, page):
        if page.section == planner.PERFORMANCE:
            raise ValueError("layout")
        return original(self, page)

    monkeypatch.setattr(renderer._PdfBuilder, "page_flowables", flaky)

    assert renderer.to_pdf(document, theme).startswith(b"%PDF")
