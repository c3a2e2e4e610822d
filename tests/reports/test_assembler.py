from app.reports import assembler, planner
from app.reports.document import (
    NO_DATA_MESSAGE,
    BulletList,
    CoverBlock,
    Heading,
    IssueGroup,
    Placeholder,
    RenderOptions,
    SectionDataMissing,
    TextBlock,
)
from app.reports.severity import RankedSeverity
from app.reports.snapshot import EnhancementContent
from app.reports.theme import resolve


def _render(snapshot, theme, options=None):
    return assembler.render(snapshot, theme, planner.plan(snapshot, theme), options)


def test_one_page_per_included_entry_with_plan_numbers(snapshot):
    theme = resolve(None, {"footerText": "Acme Confidential"})
    plan = planner.plan(snapshot, theme)

    document = assembler.render(snapshot, theme, plan)

    assert [p.section for p in document.pages] == [e.section for e in plan.pages]
    assert list(document.page_numbers) == [e.page_number for e in plan.pages]
    assert {p.footer for p in document.pages} == {"Acme Confidential"}


def test_document_metadata(snapshot):
    theme = resolve(None, {"companyName": "Acme", "pageSize": "Letter"})

    document = _render(snapshot, theme)

    assert document.title == "Example Shop - SEO Audit Report"
    assert document.author == "Acme"
    assert document.page_size == "LETTER"


def test_cover_has_no_heading_other_pages_do(snapshot):
    document = _render(snapshot, resolve())

    cover = document.page(planner.COVER)
    assert isinstance(cover.blocks[0], CoverBlock)
    for page in document.pages[1:]:
        assert page.blocks[0] == Heading(page.title, level=1)


def test_missing_section_data_renders_placeholder(monkeypatch, snapshot):
    def missing(theme, snapshot, options):
        raise SectionDataMissing("performance", "gone")

    monkeypatch.setitem(assembler.SECTION_BUILDERS, planner.PERFORMANCE, missing)

    document = _render(snapshot, resolve())

    page = document.page(planner.PERFORMANCE)
    assert page.is_placeholder
    assert page.blocks[-1] == Placeholder(NO_DATA_MESSAGE)
    assert page.page_number == planner.plan(snapshot, resolve()).page_of("performance")


def test_crashing_builder_does_not_break_the_document(monkeypatch, snapshot):
    def crash(theme, snapshot, options):
        raise ZeroDivisionError

    monkeypatch.setitem(assembler.SECTION_BUILDERS, planner.ON_PAGE_SEO, crash)

    document = _render(snapshot, resolve())

    assert document.page(planner.ON_PAGE_SEO).is_placeholder
    assert document.page(planner.END_PAGE) is not None


def test_issue_listing_is_grouped_in_display_order(snapshot):
    document = _render(snapshot, resolve())

    groups = [
        block
        for block in document.page(planner.ON_PAGE_SEO).blocks
        if isinstance(block, IssueGroup)
    ]
    meta = groups[0]
    assert meta.title == "Meta Description Issues"
    assert [severity for severity, _ in meta.groups] == [
        RankedSeverity.HIGH,
        RankedSeverity.MEDIUM,
    ]
    headings = next(g for g in groups if g.title == "Heading Issues")
    assert headings.groups == ()


def test_enhanced_snapshot_uses_ai_narrative(snapshot):
    content = EnhancementContent(
        executive_summary="AI summary",
        recommendations=("AI recommendation",),
        technical_explanations={"onPageSEO": "Why titles matter"},
    )

    document = _render(snapshot.with_enhancement(content), resolve())

    summary = document.page(planner.EXECUTIVE_SUMMARY)
    assert TextBlock("AI summary", style="lead") in summary.blocks
    on_page = document.page(planner.ON_PAGE_SEO)
    assert TextBlock("Why titles matter", style="explanation") in on_page.blocks
    end = document.page(planner.END_PAGE)
    recommendations = next(b for b in end.blocks if isinstance(b, BulletList))
    assert recommendations.items == ("AI recommendation",)


def test_end_page_recommendations_can_be_turned_off(snapshot):
    theme = resolve(None, {"includeOptions": {"recommendations": False}})
    options = RenderOptions(custom_notes="Call us")

    document = _render(snapshot, theme, options)

    end = document.page(planner.END_PAGE)
    assert not any(isinstance(b, BulletList) for b in end.blocks)
    assert TextBlock("Call us", style="notes") in end.blocks
