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

"""Transient staging directory assembled into the disk image.

The staging area is a scoped resource: acquiring it wipes any stale copy
left by an earlier run, and releasing it removes the directory on every
exit path, including errors and interrupts.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from dmgpack.exceptions import PackagingFailure

logger = logging.getLogger(__name__)

INSTALL_LINK_NAME = "Applications"


def remove_tree(path: Path) -> None:
    """Remove a file, symlink or directory tree if it exists."""
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.exists():
        shutil.rmtree(path)


class StagingArea:
    """Owns the staging directory for a single pipeline run.

    Usage:
        with StagingArea(paths.staging) as staging:
            staging.populate(paths.bundle, "/Applications")
            ...
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self.acquired = False

    def acquire(self) -> StagingArea:
        """Replace any existing directory at the staging path with an empty one."""
        if self.path.exists() or self.path.is_symlink():
            logger.debug(f"Removing stale staging area {self.path}")
            remove_tree(self.path)
        self.path.mkdir(parents=True)
        self.acquired = True
        return self

    def populate(self, bundle: Path, link_target: str) -> Path:
        """Copy the bundle in and add the installation-directory link.

        Returns the path of the staged bundle.
        """
        if not self.acquired:
            raise PackagingFailure(message="Staging area populated before it was acquired")
        if not bundle.is_dir():
            raise PackagingFailure(message=f"Bundle to stage not found: {bundle}")

        staged = self.path / bundle.name
        try:
            shutil.copytree(bundle, staged, symlinks=True, copy_function=shutil.copy2)
            (self.path / INSTALL_LINK_NAME).symlink_to(link_target)
        except OSError as e:
            raise PackagingFailure(message=f"Failed to populate staging area: {e}") from e
        return staged

    def release(self) -> None:
        """Remove the staging directory. Safe to call repeatedly."""
        remove_tree(self.path)
        self.acquired = False

    def __enter__(self) -> StagingArea:
        return self.acquire()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: object,
    ) -> None:
        self.release()
