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

"""CLI application definition for dmgpack."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from typer import Typer

from dmgpack.commands.clean import clean
from dmgpack.commands.common import PROJECT_DIR_OPTION
from dmgpack.commands.init import doctor, init, version
from dmgpack.commands.package import package, run_package
from dmgpack.commands.verify import verify

app: Typer = Typer(
    name="dmgpack",
    help="Build a desktop application and package it as a version-verified disk image.",
    add_completion=False,
    invoke_without_command=True,
)


def configure_logging(verbose: bool) -> None:
    """Send dmgpack diagnostics to stderr through Rich."""
    logger = logging.getLogger("dmgpack")
    logger.handlers.clear()
    handler = RichHandler(console=Console(stderr=True), show_path=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.propagate = False


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug diagnostics"),
    project_dir: Path = PROJECT_DIR_OPTION,
    no_spinner: bool = typer.Option(False, "--no-spinner", help="Disable the activity spinner"),
    timeout: float | None = typer.Option(
        None, "--timeout", min=1, help="Seconds to allow each external tool (default: no limit)"
    ),
) -> None:
    """Run the full pipeline when no command is given."""
    configure_logging(verbose)
    if ctx.invoked_subcommand is None:
        sys.exit(run_package(project_dir, no_spinner=no_spinner, timeout=timeout))


# Register commands
app.command(name="package")(package)
app.command(name="clean")(clean)
app.command(name="verify")(verify)
app.command(name="init")(init)
app.command(name="version")(version)
app.command(name="doctor")(doctor)


def main() -> None:
    app()
