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

"""Implementation of `dmgpack package`, the default command.

Runs the full pipeline: clean, build with the source version injected,
verify the bundle version, stage and author the disk image, verify the
image version and report the result.
"""

from __future__ import annotations

import sys
from pathlib import Path

import typer

from dmgpack.commands.common import EXIT_INTERRUPTED, PROJECT_DIR_OPTION, load_project
from dmgpack.exceptions import ConfigError
from dmgpack.pipeline.imaging import ImageAuthor
from dmgpack.pipeline.orchestrator import Pipeline
from dmgpack.pipeline.probe import ImageMounter
from dmgpack.pipeline.report import Reporter
from dmgpack.run import RunContext, activity, interrupt_on_sigterm


def run_package(
    project_dir: Path,
    no_spinner: bool = False,
    timeout: float | None = None,
    authors: list[ImageAuthor] | None = None,
    mounter: ImageMounter | None = None,
) -> int:
    """Run the packaging pipeline and return the process exit code."""
    try:
        cfg, paths = load_project(project_dir)
        with interrupt_on_sigterm(), RunContext(
            "package", paths.runs_root, lock=bool(cfg["behavior"].get("lock", True))
        ) as run:
            reporter = Reporter(run, disable_spinner=no_spinner)
            pipeline = Pipeline.from_config(
                paths,
                cfg,
                reporter,
                run.logs_path,
                authors=authors,
                mounter=mounter,
                timeout=timeout,
            )
            outcome = pipeline.run()
            return outcome.exit_code
    except ConfigError as e:
        activity("config", f"ERROR: {e.message}")
        return e.exit_code
    except KeyboardInterrupt:
        activity("aborted", "Interrupted; staging area released")
        return EXIT_INTERRUPTED


def package(
    project_dir: Path = PROJECT_DIR_OPTION,
    no_spinner: bool = typer.Option(False, "--no-spinner", help="Disable the activity spinner"),
    timeout: float | None = typer.Option(
        None, "--timeout", min=1, help="Seconds to allow each external tool (default: no limit)"
    ),
) -> None:
    """Build the app and package it as a version-verified disk image."""
    sys.exit(run_package(project_dir, no_spinner=no_spinner, timeout=timeout))
