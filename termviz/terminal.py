"""
Terminal collaborators: size queries and the startup/shutdown escape sequences.
"""

import logging
import os
import sys
from typing import Optional, TextIO, Tuple

from termviz.spectrograph import Colors

logger = logging.getLogger(__name__)


class DimensionProvider:
    """
    Supplies the (width, height) to render at.

    A fixed size always wins. Otherwise the live terminal size is queried on
    every call; None means the query failed and the frame should be skipped.
    """

    def __init__(self, fixed_size: Optional[Tuple[int, int]] = None, stream: Optional[TextIO] = None):
        self.fixed_size = fixed_size
        self._stream = stream if stream is not None else sys.stdout

    @property
    def is_fixed(self) -> bool:
        return self.fixed_size is not None

    def get_size(self) -> Optional[Tuple[int, int]]:
        if self.fixed_size is not None:
            return self.fixed_size

        # os.get_terminal_size raises instead of guessing like shutil does
        try:
            size = os.get_terminal_size(self._stream.fileno())
        except (OSError, ValueError, AttributeError) as e:
            logger.debug(f"Terminal size unavailable: {e}")
            return None
        return size.columns, size.lines


class TerminalSession:
    """
    Prepares the terminal for full-screen drawing and puts it back afterwards.

    Usage:
        with TerminalSession(font_colour="\\033[38;5;196m"):
            ...  # draw frames
    """

    def __init__(self, font_colour: Optional[str] = None, stream: Optional[TextIO] = None):
        self.font_colour = font_colour
        self._stream = stream if stream is not None else sys.stdout
        self._active = False

        # Enable ANSI on Windows
        if sys.platform == "win32":
            os.system("")  # Enables ANSI escape sequences

    @property
    def active(self) -> bool:
        return self._active

    def start(self):
        """Clear the screen, hide the cursor and apply the colour."""
        if self._active:
            return
        self._stream.write(Colors.CLEAR_SCREEN + Colors.HIDE_CURSOR)
        if self.font_colour:
            self._stream.write(self.font_colour)
        self._stream.flush()
        self._active = True

    def restore(self):
        """Show the cursor and reset the colour, in that order."""
        if not self._active:
            return
        self._active = False
        try:
            self._stream.write(Colors.SHOW_CURSOR + Colors.SET_DEFAULT + "\n")
            self._stream.flush()
        except (OSError, ValueError) as e:
            # stdout already closed during interpreter shutdown
            logger.debug(f"Could not restore terminal: {e}")

    def __enter__(self) -> "TerminalSession":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.restore()
        return False
