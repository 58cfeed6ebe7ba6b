"""
Reconciles the authoritative fragment (held in DocumentSettings) with a live Surface.

Two states:
  AUTHORITATIVE   the surface shows exactly the last authoritative value
  LIVE_DIVERGED   the user (or a command) changed the surface and the change was propagated,
                  or an authoritative update was held back because the surface had focus

Each direction has its own precondition: authority -> surface needs "not focused" (or a hard
clear), surface -> authority needs "content differs". Nothing is synced blindly after mount.
"""
import logging
from enum import Enum

from editing.surface import Surface

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    AUTHORITATIVE = "authoritative"
    LIVE_DIVERGED = "live_diverged"


class SurfaceController:

    def __init__(self, surface: Surface, on_change=None):
        self.surface = surface
        self._on_change = on_change
        self._authoritative = ""
        self._pending = None
        self.state = SyncState.AUTHORITATIVE
        self._mounted = False
        surface.on_input(self.handle_input)

    @property
    def authoritative(self) -> str:
        return self._authoritative

    @property
    def pending(self) -> str | None:
        """Authoritative value held back while the surface was focused, if any."""
        return self._pending

    def mount(self, fragment: str) -> None:
        """Initial write. The only unconditional overwrite."""
        self._authoritative = fragment or ""
        self.surface.set_inner_html(self._authoritative)
        self._pending = None
        self.state = SyncState.AUTHORITATIVE
        self._mounted = True

    def sync_from_authority(self, fragment: str) -> bool:
        """
        Apply an authoritative change coming from outside the surface.
        Returns True when the surface content was overwritten.
        """
        fragment = fragment or ""
        if not self._mounted:
            self.mount(fragment)
            return True

        self._authoritative = fragment
        live = self.surface.inner_html
        if fragment == live:
            self._pending = None
            self.state = SyncState.AUTHORITATIVE
            return False

        focused = self.surface.has_focus()
        if focused is None or not focused:
            return self._overwrite(fragment)
        if fragment == "" and live != "":
            # a hard clear always wins
            return self._overwrite(fragment)

        logger.debug("Surface %s focused, holding back authoritative update", self.surface.fragment_id)
        self._pending = fragment
        self.state = SyncState.LIVE_DIVERGED
        return False

    def _overwrite(self, fragment: str) -> bool:
        self.surface.set_inner_html(fragment)
        self._pending = None
        self.state = SyncState.AUTHORITATIVE
        return True

    def handle_input(self) -> bool:
        """Raw input path: propagate the live markup when it differs from the authoritative value."""
        live = self.surface.inner_html
        if live == self._authoritative:
            return False
        self._authoritative = live
        self._pending = None
        self.state = SyncState.LIVE_DIVERGED
        if self._on_change is not None:
            self._on_change(live)
        return True

    def handle_blur(self) -> bool:
        """Strip editor artifacts and propagate what is left. The live content wins over held-back updates."""
        self.surface.blur()
        self.surface.strip_zero_width()
        changed = self.handle_input()
        self._pending = None
        self.state = SyncState.AUTHORITATIVE
        return changed
