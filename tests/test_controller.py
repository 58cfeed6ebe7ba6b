"""
Tests for authority <-> surface reconciliation.
"""
from editing.controller import SyncState
from editing.utils.markup import ZERO_WIDTH_SPACE


class TestSyncFromAuthority:

    def test_mount_writes_surface(self, make_editor):
        surface, controller, _, changes = make_editor("<p>a</p>")
        assert surface.inner_html == "<p>a</p>"
        assert controller.state is SyncState.AUTHORITATIVE
        assert changes == []

    def test_unfocused_surface_is_overwritten(self, make_editor):
        surface, controller, _, _ = make_editor("<p>a</p>")
        assert controller.sync_from_authority("<p>b</p>") is True
        assert surface.inner_html == "<p>b</p>"

    def test_focused_surface_is_preserved(self, make_editor):
        surface, controller, _, _ = make_editor("<p>live</p>")
        surface.focus()
        surface.set_caret(2)
        assert controller.sync_from_authority("<p>external</p>") is False
        assert surface.inner_html == "<p>live</p>"
        assert surface.selection.start_offset == 2
        assert controller.state is SyncState.LIVE_DIVERGED
        assert controller.pending == "<p>external</p>"

    def test_hard_clear_wins_over_focus(self, make_editor):
        surface, controller, _, _ = make_editor("<p>live</p>")
        surface.focus()
        assert controller.sync_from_authority("") is True
        assert surface.inner_html == ""
        assert controller.state is SyncState.AUTHORITATIVE

    def test_unknown_focus_falls_back_to_overwrite(self, make_editor):
        surface, controller, _, _ = make_editor("<p>a</p>", focus_reporting=False)
        surface.focus()
        assert controller.sync_from_authority("<p>b</p>") is True
        assert surface.inner_html == "<p>b</p>"

    def test_equal_content_is_noop(self, make_editor):
        surface, controller, _, _ = make_editor("<p>a</p>")
        surface.set_caret(1)
        assert controller.sync_from_authority("<p>a</p>") is False
        assert surface.selection is not None


class TestInput:

    def test_typing_propagates(self, make_editor):
        surface, controller, _, changes = make_editor("<p>a</p>")
        surface.focus()
        surface.type_text("!")
        assert changes == ["<p>a!</p>"]
        assert controller.authoritative == "<p>a!</p>"
        assert controller.state is SyncState.LIVE_DIVERGED

    def test_unchanged_input_not_propagated(self, make_editor):
        surface, controller, _, changes = make_editor("<p>a</p>")
        surface.dispatch_input()
        assert changes == []
        assert controller.handle_input() is False

    def test_echo_from_authority_does_not_loop(self, make_editor):
        surface, controller, _, changes = make_editor("<p>a</p>")
        surface.focus()
        surface.type_text("b")
        controller.sync_from_authority(changes[-1])
        assert changes == ["<p>ab</p>"]
        assert surface.inner_html == "<p>ab</p>"


class TestBlur:

    def test_blur_strips_markers_and_propagates(self, make_editor):
        surface, controller, _, changes = make_editor(f"<p>a<span>{ZERO_WIDTH_SPACE}</span></p>")
        surface.focus()
        controller.handle_blur()
        assert surface.inner_html == "<p>a</p>"
        assert changes == ["<p>a</p>"]
        assert surface.has_focus() is False
        assert controller.state is SyncState.AUTHORITATIVE

    def test_live_content_wins_over_held_back_update(self, make_editor):
        surface, controller, _, changes = make_editor("<p>a</p>")
        surface.focus()
        surface.type_text("b")
        controller.sync_from_authority("<p>external</p>")
        controller.handle_blur()
        assert changes[-1] == "<p>ab</p>"
        assert controller.authoritative == "<p>ab</p>"
        assert controller.pending is None
