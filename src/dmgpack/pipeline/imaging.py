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

"""Image-authoring tool adapters.

Each adapter turns a directory into a compressed disk image. Adapters are
tried in order of preference; an adapter whose tool is not installed is
skipped. Exit codes are returned but callers decide success by checking
that the image file exists.
"""

from __future__ import annotations

import subprocess
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dmgpack.pipeline.tools import find_tool


@dataclass(frozen=True)
class ImageOptions:
    """Cosmetic image options; none of them affect the image contents."""

    volname: str
    app_bundle: str
    volicon: Path | None = None
    window_pos: tuple[int, int] = (200, 120)
    window_size: tuple[int, int] = (800, 400)
    icon_size: int = 100
    icon_pos: tuple[int, int] = (200, 190)
    app_drop_link: tuple[int, int] = (600, 185)
    install_link_name: str = "Applications"
    format: str = "UDZO"


def _pair(value: Any, default: tuple[int, int]) -> tuple[int, int]:
    if value is None:
        return default
    x, y = value
    return int(x), int(y)


def image_options_from_config(cfg: Mapping[str, Any], app_name: str, root: Path) -> ImageOptions:
    """Build ImageOptions from the ``dmg`` config section."""
    dmg: Mapping[str, Any] = cfg.get("dmg", {})
    volicon = dmg.get("volicon")
    icon_path = None
    if volicon:
        icon_path = Path(str(volicon))
        if not icon_path.is_absolute():
            icon_path = root / icon_path
    return ImageOptions(
        volname=str(dmg.get("volname") or app_name),
        app_bundle=f"{app_name}.app",
        volicon=icon_path,
        window_pos=_pair(dmg.get("window_pos"), (200, 120)),
        window_size=_pair(dmg.get("window_size"), (800, 400)),
        icon_size=int(dmg.get("icon_size", 100)),
        icon_pos=_pair(dmg.get("icon_pos"), (200, 190)),
        app_drop_link=_pair(dmg.get("app_drop_link"), (600, 185)),
        format=str(dmg.get("format", "UDZO")),
    )


class ImageAuthor(ABC):
    """A tool capable of producing a disk image from a directory."""

    name: str = ""

    def is_available(self) -> bool:
        """Return True if the tool is installed on this host."""
        return find_tool(self.name) is not None

    @abstractmethod
    def command(self, source_dir: Path, image_path: Path, options: ImageOptions) -> list[str]:
        """Return the argv that authors image_path from source_dir."""

    def author(
        self,
        source_dir: Path,
        image_path: Path,
        options: ImageOptions,
        log_path: Path,
        timeout: float | None = None,
    ) -> int:
        """Run the tool and return its exit code.

        Output is appended to log_path. Raises OSError if the tool cannot
        be started and subprocess.TimeoutExpired on timeout.
        """
        cmd = self.command(source_dir, image_path, options)
        with log_path.open("a") as f:
            f.write(f"$ {' '.join(cmd)}\n")
            f.flush()
            result = subprocess.run(
                cmd,
                stdout=f,
                stderr=subprocess.STDOUT,
                cwd=image_path.parent,
                timeout=timeout,
            )
        return result.returncode

    def cleanup_partial(self, image_path: Path) -> None:
        """Remove whatever a failed attempt left behind."""
        image_path.unlink(missing_ok=True)


class CreateDmgAuthor(ImageAuthor):
    """The create-dmg script, which also lays out the Finder window."""

    name = "create-dmg"

    def command(self, source_dir: Path, image_path: Path, options: ImageOptions) -> list[str]:
        cmd = ["create-dmg", "--volname", options.volname]
        if options.volicon is not None and options.volicon.is_file():
            cmd += ["--volicon", str(options.volicon)]
        cmd += [
            "--window-pos", str(options.window_pos[0]), str(options.window_pos[1]),
            "--window-size", str(options.window_size[0]), str(options.window_size[1]),
            "--icon-size", str(options.icon_size),
            "--icon", options.app_bundle, str(options.icon_pos[0]), str(options.icon_pos[1]),
            "--hide-extension", options.app_bundle,
            # The staging area already holds the Applications link; position it.
            "--icon", options.install_link_name,
            str(options.app_drop_link[0]), str(options.app_drop_link[1]),
            str(image_path),
            str(source_dir),
        ]
        return cmd

    def cleanup_partial(self, image_path: Path) -> None:
        super().cleanup_partial(image_path)
        # create-dmg works on a writable rw.<pid>.<name> image next to the target.
        for leftover in image_path.parent.glob(f"rw.*.{image_path.name}"):
            leftover.unlink(missing_ok=True)


class HdiutilAuthor(ImageAuthor):
    """hdiutil, built into macOS."""

    name = "hdiutil"

    def command(self, source_dir: Path, image_path: Path, options: ImageOptions) -> list[str]:
        return [
            "hdiutil", "create",
            "-volname", options.volname,
            "-srcfolder", str(source_dir),
            "-ov", "-format", options.format,
            str(image_path),
        ]


def default_authors() -> list[ImageAuthor]:
    """Return the image authors in order of preference."""
    return [CreateDmgAuthor(), HdiutilAuthor()]
