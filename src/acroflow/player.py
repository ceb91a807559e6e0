"""Step-by-step playback of a saved flow."""

from __future__ import annotations

from collections.abc import Sequence

from .models import Flow, FlowStep


class FlowPlayer:
    """Cursor over the steps of one flow."""

    def __init__(self, steps: Sequence[FlowStep], start: int = 0) -> None:
        """Initialize player at `start`."""
        if not steps:
            raise ValueError("Flow has no steps to play.")
        self.steps: Flow = tuple(steps)
        self._index = 0
        self.go_to(start)

    @property
    def index(self) -> int:
        """Zero-based index of the current step."""
        return self._index

    @property
    def current(self) -> FlowStep:
        """Step at the cursor."""
        return self.steps[self._index]

    @property
    def has_next(self) -> bool:
        return self._index < len(self.steps) - 1

    @property
    def has_previous(self) -> bool:
        return self._index > 0

    @property
    def position_label(self) -> str:
        """Human-readable position, e.g. 'Step 2 of 5'."""
        return f"Step {self._index + 1} of {len(self.steps)}"

    def next(self) -> FlowStep:
        """Advance one step; stays on the last step."""
        if self.has_next:
            self._index += 1
        return self.current

    def previous(self) -> FlowStep:
        """Go back one step; stays on the first step."""
        if self.has_previous:
            self._index -= 1
        return self.current

    def go_to(self, index: int) -> FlowStep:
        """Jump to a step by zero-based index."""
        if not (0 <= index < len(self.steps)):
            raise IndexError(f"Step index {index} out of range for flow of {len(self.steps)} steps.")
        self._index = index
        return self.current
