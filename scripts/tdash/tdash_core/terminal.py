"""Terminal adapter: full-screen rich Live plus non-blocking key polling."""

from __future__ import annotations

import logging
import os
import select
import sys
import time
from enum import Enum

from rich.console import Console, RenderableType
from rich.live import Live

from tdash_core.errors import FatalError

logger = logging.getLogger(__name__)

QUIT_KEYS = {"q", "Q", "\x03"}


class TerminalEvent(str, Enum):
    QUIT = "quit"
    RESIZE = "resize"


class Terminal:
    """Owns the screen. Only the render loop thread may call into it."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()
        self._live: Live | None = None
        self._fd: int | None = None
        self._saved_attrs = None
        self._last_size: tuple[int, int] | None = None

    def init(self) -> None:
        if not self.console.is_terminal:
            raise FatalError("stdout is not a terminal; use --json or run without --live")
        self._enter_cbreak()
        self._last_size = tuple(self.console.size)
        try:
            self._live = Live(console=self.console, screen=True, auto_refresh=False)
            self._live.start()
        except OSError as exc:
            self._restore()
            raise FatalError(f"initializing terminal failed: {exc}") from exc

    def close(self) -> None:
        if self._live is not None:
            self._live.stop()
            self._live = None
        self._restore()

    def _enter_cbreak(self) -> None:
        # Canonical mode and echo off only; Live's alternate screen needs the rest.
        try:
            import termios
        except ImportError:
            logger.warning("keyboard input unavailable (no termios); use Ctrl-C to quit")
            return
        try:
            fd = sys.stdin.fileno()
            self._saved_attrs = termios.tcgetattr(fd)
            attrs = termios.tcgetattr(fd)
            attrs[3] &= ~(termios.ICANON | termios.ECHO)
            attrs[6][termios.VMIN] = 0
            attrs[6][termios.VTIME] = 0
            termios.tcsetattr(fd, termios.TCSADRAIN, attrs)
            self._fd = fd
        except (termios.error, OSError, ValueError) as exc:
            logger.warning("keyboard input unavailable (%s); use Ctrl-C to quit", exc)
            self._saved_attrs = None
            self._fd = None

    def _restore(self) -> None:
        if self._fd is None or self._saved_attrs is None:
            return
        import termios

        termios.tcsetattr(self._fd, termios.TCSADRAIN, self._saved_attrs)
        self._fd = None
        self._saved_attrs = None

    def current_width(self) -> int:
        return self.console.size.width

    def poll_event(self, timeout: float) -> TerminalEvent | None:
        size = tuple(self.console.size)
        if size != self._last_size:
            self._last_size = size
            return TerminalEvent.RESIZE

        if self._fd is None:
            time.sleep(timeout)
            return None
        ready, _, _ = select.select([self._fd], [], [], timeout)
        if not ready:
            return None
        try:
            key = os.read(self._fd, 1).decode("utf-8", errors="ignore")
        except OSError:
            return None
        if key in QUIT_KEYS:
            return TerminalEvent.QUIT
        return None

    def render_grid(self, renderable: RenderableType) -> None:
        if self._live is None:
            self.console.print(renderable)
            return
        self._live.update(renderable, refresh=True)
