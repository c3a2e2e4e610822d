import threading
from unittest.mock import MagicMock

from app.reports import planner
from app.reports.document import TextBlock
from app.reports.snapshot import EnhancementContent
from app.services.preview_session import PreviewSession


def _enhancing_client(snapshot_content):
    client = MagicMock()
    client.merge.side_effect = lambda job_id, snap: (
        snap.with_enhancement(snapshot_content) if job_id == "job-2" else snap
    )
    return client


def test_configuration_edit_produces_new_state(snapshot):
    session = PreviewSession(snapshot, tenant_defaults={"companyName": "Agency"})
    before = session.state

    after = session.update_configuration({"includeOptions": {"performance": False}})

    assert after is not before
    assert after.version == before.version + 1
    assert before.theme.include("performance") is True
    assert after.theme.include("performance") is False
    assert after.theme.company_name == "Agency"


def test_include_options_accumulate_across_edits(snapshot):
    session = PreviewSession(snapshot)

    session.update_configuration({"includeOptions": {"performance": False}})
    state = session.update_configuration({"includeOptions": {"charts": False}})

    assert state.theme.include("performance") is False
    assert state.theme.include("charts") is False


def test_merge_swaps_in_enhanced_snapshot(snapshot):
    content = EnhancementContent(executive_summary="AI text", recommendations=("x",))
    session = PreviewSession(snapshot, client=_enhancing_client(content))
    before = session.state

    assert session.apply_merge("job-2") is True

    state = session.state
    assert state.snapshot is snapshot
    assert state.enhanced.ai_content is content
    assert before.enhanced is None
    summary = session.render().page(planner.EXECUTIVE_SUMMARY)
    assert TextBlock("AI text", style="lead") in summary.blocks


def test_stale_merge_is_ignored(snapshot):
    session = PreviewSession(snapshot, client=_enhancing_client(EnhancementContent()))

    assert session.apply_merge("job-1") is False
    assert session.state.enhanced is None
    assert session.apply_merge("job-1") is False


def test_merge_without_client(snapshot):
    assert PreviewSession(snapshot).apply_merge("job-2") is False


def test_revert_enhancement(snapshot):
    content = EnhancementContent(executive_summary="AI text", recommendations=("x",))
    session = PreviewSession(snapshot, client=_enhancing_client(content))
    session.apply_merge("job-2")

    state = session.revert_enhancement()

    assert state.enhanced is None
    assert state.render_snapshot is snapshot


def test_render_sees_consistent_state_during_concurrent_edits(snapshot):
    content = EnhancementContent(executive_summary="AI text", recommendations=("x",))
    session = PreviewSession(snapshot, client=_enhancing_client(content))
    errors = []

    def edit():
        for n in range(20):
            session.update_configuration({"includeOptions": {"performance": n % 2 == 0}})

    def render():
        try:
            for _ in range(10):
                state = session.state
                document = session.render()
                assert document.pages[0].section == planner.COVER
                assert state.theme is not None
        except AssertionError as e:
            errors.append(e)

    threads = [threading.Thread(target=edit), threading.Thread(target=render)]
    for thread in threads:
        thread.start()
    session.apply_merge("job-2")
    for thread in threads:
        thread.join()

    assert errors == []
    assert session.state.enhanced is not None
    assert session.state.version == 21


def test_render_pdf(snapshot):
    assert PreviewSession(snapshot).render_pdf().startswith(b"%PDF")
