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

"""Implementation of `dmgpack verify`.

Checks existing artifacts without building anything: the bundle in dist/
and the disk image for the current source version must both carry the
version declared in source.
"""

from __future__ import annotations

import sys
from pathlib import Path

import typer

from dmgpack.commands.common import PROJECT_DIR_OPTION, load_project
from dmgpack.exceptions import DmgpackError
from dmgpack.pipeline.orchestrator import check_version
from dmgpack.pipeline.probe import ArtifactProbe, ImageMounter
from dmgpack.pipeline.version import VersionResolver
from dmgpack.run import activity


def run_verify(
    project_dir: Path,
    bundle_only: bool = False,
    mounter: ImageMounter | None = None,
) -> int:
    """Verify existing artifacts and return the process exit code."""
    try:
        cfg, paths = load_project(project_dir)
        key = str(cfg["version"]["plist_key"])
        version = VersionResolver(paths.version_source, str(cfg["version"]["symbol"])).resolve()
        activity("verify", f"Source version: {version}")

        probe = ArtifactProbe(mounter)
        built = probe.read_version(paths.bundle, key)
        check_version(version, built, "build")
        activity("verify", f"Bundle {paths.bundle_name}: {built}")

        if not bundle_only:
            image = paths.image_path(version)
            packaged = probe.read_image_version(image, paths.bundle_name, key)
            check_version(version, packaged, "image")
            activity("verify", f"Image {image.name}: {packaged}")
    except DmgpackError as e:
        activity("verify", f"ERROR: {e.message}")
        return e.exit_code

    activity("verify", "All versions match")
    return 0


def verify(
    project_dir: Path = PROJECT_DIR_OPTION,
    bundle_only: bool = typer.Option(False, "--bundle-only", help="Skip checking the disk image"),
) -> None:
    """Check that existing artifacts carry the source version."""
    sys.exit(run_verify(project_dir, bundle_only=bundle_only))
