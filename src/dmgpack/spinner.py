# This file is part of dmgpack, a tool for packaging desktop applications as macOS disk images.
#
# Copyright 2025 Canonical Ltd.
#
# SPDX-License-Identifier: GPL-3.0-only
#
# dmgpack is free software: you can redistribute it and/or modify it under
# the terms of the GNU General Public License version 3, as published by the
# Free Software Foundation.
#
# dmgpack is distributed in the hope that it will be useful, but WITHOUT
# ANY WARRANTY; without even the implied warranties of MERCHANTABILITY,
# SATISFACTORY QUALITY, or FITNESS FOR A PARTICULAR PURPOSE. See the GNU
# General Public License for more details.
#
# You should have received a copy of the GNU General Public License along with
# dmgpack. If not, see <http://www.gnu.org/licenses/>.

"""Activity lines for the slow steps of a run: the build and image tools.

Each activity prints one line when it starts and one when it finishes,
carrying the elapsed time. On a TTY a Rich spinner animates in between and
is cleared before the finishing line is written.
"""

from __future__ import annotations

import contextlib
import sys
import time
from collections.abc import Iterator
from dataclasses import dataclass, field

from rich.console import Console
from rich.live import Live
from rich.spinner import Spinner


@dataclass
class ActivityTimer:
    """Wall-clock time spent inside one activity."""

    started: float = field(default_factory=time.monotonic)
    elapsed: float = 0.0

    def stop(self) -> float:
        self.elapsed = time.monotonic() - self.started
        return self.elapsed


def format_elapsed(seconds: float) -> str:
    """Format seconds as "4.2s" or "3m07s"."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}m{secs:02d}s"


def is_tty() -> bool:
    """Return True if stdout is a TTY."""
    try:
        return sys.stdout.isatty()
    except Exception:  # pragma: no cover
        return False


@contextlib.contextmanager
def activity_spinner(phase: str, description: str, disable: bool = False) -> Iterator[ActivityTimer]:
    """Announce a long-running activity and time it.

    Args:
        phase: Short phase label (e.g., "build", "package").
        description: Human-readable description of current activity.
        disable: Force disable the animation even on TTY.

    Yields an ActivityTimer whose ``elapsed`` is set once the block exits,
    also when it raises. The finishing line is printed only on success.
    """
    text = f"[{phase}] {description}"
    timer = ActivityTimer(started=time.monotonic())

    if disable or not is_tty():
        print(text, file=sys.stdout, flush=True)
        try:
            yield timer
        finally:
            timer.stop()
    else:
        console = Console(file=sys.stdout, force_terminal=True)
        try:
            with Live(Spinner("dots", text=text), console=console, refresh_per_second=12, transient=True):
                yield timer
        finally:
            timer.stop()

    print(f"[{phase}] done in {format_elapsed(timer.elapsed)}", file=sys.stdout, flush=True)
