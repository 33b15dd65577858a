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

"""Implementation of `dmgpack clean`.

Runs only the clean stage: removes build outputs, stale staging and
bytecode caches. Optionally removes previously produced disk images.
"""

from __future__ import annotations

import sys
from pathlib import Path

import typer

from dmgpack.commands.common import PROJECT_DIR_OPTION, load_project
from dmgpack.exceptions import ConfigError
from dmgpack.pipeline.orchestrator import Pipeline
from dmgpack.pipeline.report import Reporter, format_size
from dmgpack.run import RunContext, activity


def remove_images(output: Path, app_name: str, extension: str) -> list[Path]:
    """Remove every ``<app_name>-*.<extension>`` image in output."""
    removed = []
    for image in sorted(output.glob(f"{app_name}-*.{extension}")):
        if image.is_file():
            size = image.stat().st_size
            image.unlink()
            activity("clean", f"Removed {image.name} ({format_size(size)})")
            removed.append(image)
    return removed


def run_clean(project_dir: Path, images: bool = False) -> int:
    """Run the clean stage and return the process exit code."""
    try:
        cfg, paths = load_project(project_dir)
        with RunContext("clean", paths.runs_root, lock=bool(cfg["behavior"].get("lock", True))) as run:
            reporter = Reporter(run, disable_spinner=True)
            pipeline = Pipeline.from_config(paths, cfg, reporter, run.logs_path)
            result = pipeline.runner.run("clean", pipeline.stage_state(version=""))
            if not result.success:
                reporter.failure(result.error)
                return result.error.exit_code
            if images:
                removed = remove_images(paths.output, paths.app_name, paths.image_extension)
                run.log_event({"event": "clean.images", "removed": [str(p) for p in removed]})
            run.write_summary(status="success", exit_code=0)
            return 0
    except ConfigError as e:
        activity("config", f"ERROR: {e.message}")
        return e.exit_code


def clean(
    project_dir: Path = PROJECT_DIR_OPTION,
    images: bool = typer.Option(False, "--images", help="Also remove previously built disk images"),
) -> None:
    """Remove build outputs, staging leftovers and bytecode caches."""
    sys.exit(run_clean(project_dir, images=images))
