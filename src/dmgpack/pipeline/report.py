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

"""Progress and outcome reporting for pipeline runs.

Every line printed for the user is mirrored as a structured event in the
run's events.jsonl so that a run can be inspected after the fact.
"""

from __future__ import annotations

import contextlib
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

from dmgpack.run import activity
from dmgpack.spinner import activity_spinner

if TYPE_CHECKING:
    from dmgpack.exceptions import DmgpackError
    from dmgpack.pipeline.types import PipelineOutcome, PipelineState
    from dmgpack.run import RunContext


def format_size(size_bytes: int) -> str:
    """Format a size in bytes as a human-readable string."""
    if size_bytes >= 1024 * 1024 * 1024:
        return f"{size_bytes / (1024 * 1024 * 1024):.1f} GB"
    elif size_bytes >= 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f} MB"
    elif size_bytes >= 1024:
        return f"{size_bytes / 1024:.1f} KB"
    else:
        return f"{size_bytes} bytes"


class Reporter:
    """Emits status lines and the final outcome of a run."""

    def __init__(self, run: RunContext | None = None, disable_spinner: bool = False) -> None:
        self.run = run
        self.disable_spinner = disable_spinner

    def event(self, event_key: str, **data: Any) -> None:
        if self.run is not None:
            self.run.log_event({"event": event_key, **data})

    def step(self, phase: str, message: str, **data: Any) -> None:
        """Report intermediate activity within a stage."""
        activity(phase, message)
        self.event(f"{phase}.step", message=message, **data)

    def warning(self, phase: str, message: str, **data: Any) -> None:
        activity(phase, f"Warning: {message}")
        self.event(f"{phase}.warning", message=message, **data)

    def transition(self, state: PipelineState, detail: str = "") -> None:
        """Report that the pipeline entered state."""
        activity(state.value, detail or "ok")
        self.event("pipeline.transition", state=state.value, detail=detail)

    @contextlib.contextmanager
    def spinner(self, phase: str, description: str) -> Iterator[None]:
        """Show activity around a slow tool call and record how long it took."""
        self.event(f"{phase}.start", message=description)
        timer = None
        try:
            with activity_spinner(phase, description, disable=self.disable_spinner) as timer:
                yield
        finally:
            if timer is not None:
                self.event(f"{phase}.finish", elapsed=round(timer.elapsed, 3))

    def success(self, outcome: PipelineOutcome) -> None:
        """Report the final artifacts of a successful run."""
        size = format_size(outcome.image_size)
        activity("report", f"App: {outcome.bundle_path}")
        activity("report", f"Image: {outcome.image_path} ({size})")
        activity("report", f"Version {outcome.version} verified in source, bundle and image")
        self.event(
            "pipeline.reported",
            version=outcome.version,
            bundle=outcome.bundle_path,
            image=outcome.image_path,
            size=outcome.image_size,
        )
        if self.run is not None:
            self.run.write_summary(
                status="success",
                exit_code=0,
                version=outcome.version,
                image=str(outcome.image_path),
                image_size=outcome.image_size,
                state=outcome.state.value,
            )

    def failure(self, error: DmgpackError, aborted_from: PipelineState | None = None) -> None:
        """Report why the run aborted."""
        where = f" after {aborted_from.value}" if aborted_from is not None else ""
        activity("aborted", f"ERROR{where}: {error.message}")
        self.event(
            "pipeline.aborted",
            error_type=type(error).__name__,
            message=error.message,
            aborted_from=aborted_from.value if aborted_from is not None else None,
            exit_code=error.exit_code,
        )
        if self.run is not None:
            self.run.write_summary(
                status="failed",
                error=error.message,
                error_type=type(error).__name__,
                exit_code=error.exit_code,
                state=aborted_from.value if aborted_from is not None else None,
            )
            activity("report", f"Logs: {self.run.run_path}")
