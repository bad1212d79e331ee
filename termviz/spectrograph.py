"""
Terminal bar spectrograph.
Fall-off smoothing of column heights and full-screen grid rendering.
"""

import sys
from dataclasses import dataclass
from typing import List, Optional, Sequence, TextIO

import numpy as np


class Colors:
    """ANSI escape sequences used by the visualizer."""

    # Resets both colour and attributes
    SET_DEFAULT = "\033[0;0m"

    # Cursor control
    HIDE_CURSOR = "\033[?25l"
    SHOW_CURSOR = "\033[?25h"
    HOME = "\033[H"
    CLEAR_SCREEN = "\033[H\033[2J"

    # 256-colour foreground
    FOREGROUND_256 = "\033[38;5;{}m"


DEFAULT_GLYPH = "┃"


@dataclass
class VisualizerState:
    """Effective dimensions and the heights drawn on the previous frame."""

    width: int = 0
    height: int = 0
    previous_heights: Optional[List[int]] = None

    def reset(self):
        """Forget the previous frame."""
        self.previous_heights = None


def target_heights(levels: Sequence[float], rows: int) -> List[int]:
    """
    Scale normalized levels to whole rows.

    Rounds half away from zero; levels are non-negative so floor(x + 0.5)
    does it. Levels above 1 give heights above `rows`; an infinite level
    fills the column.
    """
    with np.errstate(over="ignore", invalid="ignore"):
        scaled = np.floor(np.asarray(levels, dtype=np.float64) * rows + 0.5)
    scaled = np.nan_to_num(scaled, nan=0.0, posinf=float(rows), neginf=0.0)
    return [int(h) for h in np.maximum(scaled, 0)]


class FallSmoother:
    """
    One-sided rate limiter on column height.

    Bars rise to their target immediately but fall by at most one row per
    frame, which hides most of the flicker from frame-to-frame FFT noise.
    """

    def __init__(self, state: Optional[VisualizerState] = None):
        self.state = state if state is not None else VisualizerState()

    def apply(self, targets: Sequence[int]) -> List[int]:
        """Return the heights to display this frame and remember them."""
        previous = self.state.previous_heights
        if previous is None or len(previous) != len(targets):
            # First frame or the column count changed (terminal resized)
            displayed = [int(h) for h in targets]
        else:
            displayed = []
            for prev, target in zip(previous, targets):
                if prev > target:
                    displayed.append(max(prev - 1, 0))
                else:
                    displayed.append(int(target))

        self.state.previous_heights = displayed
        return displayed

    def reset(self):
        self.state.reset()


def render_grid(heights: Sequence[int], rows: int, glyph: str = DEFAULT_GLYPH) -> str:
    """
    Render column heights as rows of text, top row first.

    A column of height k fills the bottom k rows. Rows are joined with
    newlines and there is no trailing newline, so the cursor never scrolls
    the screen.
    """
    lines = []
    for row in range(rows - 1, -1, -1):
        lines.append("".join(glyph if h > row else " " for h in heights))
    return "\n".join(lines)


def compose_frame(heights: Sequence[int], rows: int, glyph: str = DEFAULT_GLYPH) -> str:
    """Full frame: cursor home followed by the grid (no screen clear)."""
    return Colors.HOME + render_grid(heights, rows, glyph)


class BarSpectrograph:
    """Full-terminal bar spectrograph that redraws in place."""

    def __init__(self, glyph: str = DEFAULT_GLYPH, stream: Optional[TextIO] = None):
        self.glyph = glyph
        self._stream = stream if stream is not None else sys.stdout
        self._frame = 0

    @property
    def frames_drawn(self) -> int:
        return self._frame

    def display(self, heights: Sequence[int], rows: int) -> str:
        """Draw one frame with a single write. Returns the text written."""
        frame = compose_frame(heights, rows, self.glyph)
        # One write per frame so a partial frame never interleaves with the next
        self._stream.write(frame)
        self._stream.flush()
        self._frame += 1
        return frame
