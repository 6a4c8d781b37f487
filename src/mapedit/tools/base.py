"""Subsystem interface for the tool mode controller.

Every editing subsystem receives the shared EditorContext and the
rendering surface.  The controller calls ``on_exit_mode`` on every
subsystem for the mode being left, then ``on_enter_mode`` for the mode
being entered, so reset ordering lives in one place.  Pointer handlers
are only called on the subsystem that owns the active mode.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mapedit.context import EditorContext, ToolMode
    from mapedit.surface import RenderingSurface

LatLng = tuple[float, float]


class Subsystem:
    """Common interface every editing subsystem implements."""

    #: Tool mode whose pointer events this subsystem receives.
    mode: "ToolMode | None" = None

    def __init__(self, ctx: "EditorContext", surface: "RenderingSurface") -> None:
        self.ctx = ctx
        self.surface = surface

    def on_enter_mode(self, mode: "ToolMode", previous: "ToolMode") -> None:
        pass

    def on_exit_mode(self, mode: "ToolMode", next_mode: "ToolMode") -> None:
        pass

    def click(self, latlng: LatLng) -> None:  # pragma: no cover - default no-op
        pass

    def dblclick(self, latlng: LatLng) -> bool:  # pragma: no cover - default no-op
        """Return True if the double-click was consumed."""
        return False

    def mousedown(self, latlng: LatLng) -> None:  # pragma: no cover - default no-op
        pass

    def mousemove(self, latlng: LatLng) -> None:  # pragma: no cover - default no-op
        pass

    def mouseup(self, latlng: LatLng) -> None:  # pragma: no cover - default no-op
        pass

    def key_press(self, key: str) -> bool:  # pragma: no cover - default no-op
        """Return True if the key was consumed."""
        return False
