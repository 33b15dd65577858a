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

"""Implementation of `dmgpack init`, `dmgpack version` and `dmgpack doctor`."""

from __future__ import annotations

from pathlib import Path

import typer

from dmgpack.commands.common import PROJECT_DIR_OPTION, load_project
from dmgpack.config import get_config_path, write_default_config
from dmgpack.exceptions import DmgpackError
from dmgpack.pipeline.tools import check_tools, get_missing_tools_message
from dmgpack.pipeline.version import VersionResolver


def init(project_dir: Path = PROJECT_DIR_OPTION) -> None:
    """Write a default dmgpack.yaml into the project if missing."""
    root = project_dir.expanduser().resolve()
    cfg_path = get_config_path(root)
    if write_default_config(root):
        typer.echo(f"[init] Wrote {cfg_path}")
    else:
        typer.echo(f"[init] {cfg_path} already exists; leaving it untouched")


def version(project_dir: Path = PROJECT_DIR_OPTION) -> None:
    """Print the application version declared in source."""
    try:
        cfg, paths = load_project(project_dir)
        resolved = VersionResolver(paths.version_source, str(cfg["version"]["symbol"])).resolve()
    except DmgpackError as e:
        typer.echo(f"[version] ERROR: {e.message}", err=True)
        raise typer.Exit(e.exit_code) from e
    typer.echo(resolved)


def doctor(project_dir: Path = PROJECT_DIR_OPTION) -> None:
    """Report which build and image-authoring tools are installed."""
    try:
        cfg, paths = load_project(project_dir)
    except DmgpackError as e:
        typer.echo(f"[doctor] ERROR: {e.message}", err=True)
        raise typer.Exit(e.exit_code) from e

    check = check_tools(str(cfg["build"]["command"][0]), paths.root)
    for tool, path in check.tools.items():
        typer.echo(f"[doctor] {tool}: {path if path else 'NOT FOUND'}")
    if not check.is_complete():
        typer.echo(get_missing_tools_message(check.missing))
        raise typer.Exit(1)
