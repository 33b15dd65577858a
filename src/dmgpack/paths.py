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

"""Path helpers for a dmgpack project checkout."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dmgpack.exceptions import ConfigError


@dataclass(frozen=True)
class ProjectPaths:
    """Filesystem locations owned by one pipeline run.

    Attributes:
        root: Project checkout root.
        version_source: Source file declaring the version constant.
        dist: Build output directory.
        build: Build tool work directory.
        bundle: Application bundle produced by the build stage.
        staging: Transient directory assembled into the image.
        output: Directory receiving the final image.
        runs_root: Directory holding per-run logs.
        app_name: Application name used for bundle and image names.
        image_extension: File extension of the final image.
    """

    root: Path
    version_source: Path
    dist: Path
    build: Path
    bundle: Path
    staging: Path
    output: Path
    runs_root: Path
    app_name: str
    image_extension: str = "dmg"

    def image_path(self, version: str) -> Path:
        """Return the final image path for a version."""
        return self.output / f"{self.app_name}-{version}.{self.image_extension}"

    @property
    def bundle_name(self) -> str:
        return self.bundle.name


def _under(root: Path, value: Any) -> Path:
    path = Path(str(value)).expanduser()
    if not path.is_absolute():
        path = root / path
    return path.resolve()


def resolve_paths(project_root: Path, cfg: Mapping[str, Any]) -> ProjectPaths:
    """Return ProjectPaths for a project root and loaded configuration.

    Raises:
        ConfigError: If dist, build or staging could not be safely deleted.
    """
    root = project_root.expanduser().resolve()
    paths: Mapping[str, Any] = cfg.get("paths", {})
    app_name = str(cfg["app"]["name"])
    dist = _under(root, paths.get("dist", "dist"))
    resolved = ProjectPaths(
        root=root,
        version_source=_under(root, cfg["version"]["source"]),
        dist=dist,
        build=_under(root, paths.get("build", "build")),
        bundle=dist / f"{app_name}.app",
        staging=_under(root, paths.get("staging", "dmg_temp")),
        output=_under(root, paths.get("output", ".")),
        runs_root=_under(root, paths.get("runs_root", ".dmgpack/runs")),
        app_name=app_name,
        image_extension=str(cfg.get("dmg", {}).get("extension", "dmg")),
    )
    check_disposable(resolved)
    return resolved


def check_disposable(paths: ProjectPaths) -> None:
    """Refuse output directories whose removal would destroy the checkout.

    dist, build and staging are deleted wholesale by every run, so each must
    be a proper subdirectory of the root that holds neither the version
    source, the runs root nor the image output directory.

    Raises:
        ConfigError: If any of them fails that test.
    """
    keep = {
        "version source": paths.version_source,
        "runs_root": paths.runs_root,
        "output": paths.output,
    }
    for name, target in (("dist", paths.dist), ("build", paths.build), ("staging", paths.staging)):
        if target == paths.root or not target.is_relative_to(paths.root):
            raise ConfigError(
                message=f"paths.{name} must be a subdirectory of {paths.root}, got {target}"
            )
        for what, kept in keep.items():
            if kept == target or kept.is_relative_to(target):
                raise ConfigError(
                    message=f"paths.{name} ({target}) would delete the {what} at {kept}"
                )
