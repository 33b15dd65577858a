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

"""Helpers shared by the dmgpack commands."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import typer

from dmgpack.config import load_config
from dmgpack.paths import ProjectPaths, resolve_paths

PROJECT_DIR_OPTION = typer.Option(
    Path("."),
    "--project-dir",
    "-C",
    help="Project checkout to operate on (default: current directory)",
    file_okay=False,
    dir_okay=True,
)

# Exit code for runs stopped by SIGINT/SIGTERM, following the shell convention.
EXIT_INTERRUPTED = 130


def load_project(project_dir: Path) -> tuple[dict[str, Any], ProjectPaths]:
    """Load configuration and resolve paths for a project checkout.

    Raises:
        ConfigError: If dmgpack.yaml is malformed.
    """
    root = project_dir.expanduser().resolve()
    cfg = load_config(root)
    return cfg, resolve_paths(root, cfg)
