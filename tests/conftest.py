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

"""Pytest fixtures and configuration for dmgpack tests."""

from __future__ import annotations

import contextlib
import os
import plistlib
import sys
import tempfile
import zipfile
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest
import yaml

from dmgpack.pipeline.imaging import ImageAuthor, ImageOptions

APP_NAME = "KaTrain"
SOURCE_VERSION = "1.4.0"

# Stands in for PyInstaller: writes the bundle with the version it was given,
# unless FAKE_BUILT_VERSION forces a different one.
FAKE_BUILD_SCRIPT = """\
import os, pathlib, plistlib
version = os.environ.get("FAKE_BUILT_VERSION") or os.environ["KATRAIN_VERSION"]
contents = pathlib.Path("dist/KaTrain.app/Contents")
(contents / "MacOS").mkdir(parents=True)
(contents / "MacOS" / "KaTrain").write_text("#!/bin/sh\\n")
with open(contents / "Info.plist", "wb") as f:
    plistlib.dump({"CFBundleName": "KaTrain", "CFBundleShortVersionString": version}, f)
"""


def write_bundle(bundle: Path, version: str | None, **extra: Any) -> Path:
    """Create a minimal .app bundle whose Info.plist carries version."""
    contents = bundle / "Contents"
    contents.mkdir(parents=True, exist_ok=True)
    info: dict[str, Any] = {"CFBundleName": bundle.stem, **extra}
    if version is not None:
        info["CFBundleShortVersionString"] = version
    with (contents / "Info.plist").open("wb") as f:
        plistlib.dump(info, f)
    return bundle


def write_project(root: Path, version: str = SOURCE_VERSION, **overrides: Any) -> Path:
    """Lay out a project checkout with a version constant and dmgpack.yaml."""
    constants = root / "katrain" / "core" / "constants.py"
    constants.parent.mkdir(parents=True, exist_ok=True)
    constants.write_text(f'PROGRAM_NAME = "KaTrain"\nVERSION = "{version}"\n')
    cfg: dict[str, Any] = {
        "build": {"command": [sys.executable, "-c", FAKE_BUILD_SCRIPT]},
        "dmg": {"volicon": None},
    }
    for section, values in overrides.items():
        cfg.setdefault(section, {}).update(values)
    (root / "dmgpack.yaml").write_text(yaml.safe_dump(cfg))
    return root


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A project checkout whose fake build honours KATRAIN_VERSION."""
    root = tmp_path / "katrain"
    root.mkdir()
    return write_project(root)


class FakeAuthor(ImageAuthor):
    """Image author that zips the source directory instead of calling a tool.

    Behaviours:
        "ok": writes the image and exits 0.
        "ok-nonzero": writes the image but exits non-zero.
        "fail": writes nothing and exits non-zero.
        "silent-fail": writes nothing but exits 0.
    """

    def __init__(self, name: str, behaviour: str = "ok", available: bool = True) -> None:
        self.name = name
        self.behaviour = behaviour
        self.available = available
        self.calls: list[dict[str, Any]] = []

    def is_available(self) -> bool:
        return self.available

    def command(self, source_dir: Path, image_path: Path, options: ImageOptions) -> list[str]:
        return [self.name, str(image_path), str(source_dir)]

    def author(
        self,
        source_dir: Path,
        image_path: Path,
        options: ImageOptions,
        log_path: Path,
        timeout: float | None = None,
    ) -> int:
        link = source_dir / "Applications"
        self.calls.append(
            {
                "source_dir": source_dir,
                "image_path": image_path,
                "entries": sorted(p.name for p in source_dir.iterdir()),
                "link_target": os.readlink(link) if link.is_symlink() else None,
            }
        )
        if self.behaviour in ("ok", "ok-nonzero"):
            with zipfile.ZipFile(image_path, "w") as zf:
                for path in sorted(source_dir.rglob("*")):
                    if path.is_symlink() or not path.is_file():
                        continue
                    zf.write(path, path.relative_to(source_dir))
            return 0 if self.behaviour == "ok" else 2
        return 0 if self.behaviour == "silent-fail" else 1


class FakeMounter:
    """Exposes a FakeAuthor image by extracting it to a temporary directory."""

    def __init__(self) -> None:
        self.mounted: list[Path] = []
        self.mount_points: list[Path] = []

    @contextlib.contextmanager
    def mount(self, image_path: Path) -> Iterator[Path]:
        self.mounted.append(image_path)
        with tempfile.TemporaryDirectory() as tmpdir:
            with zipfile.ZipFile(image_path) as zf:
                zf.extractall(tmpdir)
            self.mount_points.append(Path(tmpdir))
            yield Path(tmpdir)


@pytest.fixture
def fake_mounter() -> FakeMounter:
    return FakeMounter()
