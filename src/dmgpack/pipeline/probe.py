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

"""Read embedded version metadata out of built and packaged artifacts.

The same extraction runs at both checkpoints: a disk image is mounted
read-only and the bundle inside it is read exactly like the freshly built
bundle, so a disagreement between the two reads reflects the artifacts and
not the parsing.
"""

from __future__ import annotations

import contextlib
import logging
import plistlib
import shutil
import subprocess
import tempfile
from collections.abc import Iterator
from pathlib import Path
from typing import Protocol
from xml.parsers.expat import ExpatError

from dmgpack.exceptions import ProbeError

logger = logging.getLogger(__name__)

INFO_PLIST = Path("Contents") / "Info.plist"
DEFAULT_VERSION_KEY = "CFBundleShortVersionString"


class ImageMounter(Protocol):
    """Exposes the contents of a disk image as a directory."""

    def mount(self, image_path: Path) -> contextlib.AbstractContextManager[Path]: ...


class HdiutilMounter:
    """Attach an image read-only with hdiutil and detach it afterwards."""

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout

    @contextlib.contextmanager
    def mount(self, image_path: Path) -> Iterator[Path]:
        if shutil.which("hdiutil") is None:
            raise ProbeError(message="hdiutil is required to inspect disk images")

        mount_point = Path(tempfile.mkdtemp(prefix="dmgpack-mount-"))
        cmd = [
            "hdiutil", "attach", "-readonly", "-nobrowse", "-noautoopen",
            "-mountpoint", str(mount_point), str(image_path),
        ]
        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True, check=False, timeout=self.timeout
            )
        except subprocess.TimeoutExpired as e:
            mount_point.rmdir()
            raise ProbeError(message=f"Timed out attaching {image_path}") from e
        except OSError as e:
            mount_point.rmdir()
            raise ProbeError(message=f"Cannot run hdiutil: {e}") from e
        except BaseException:
            mount_point.rmdir()
            raise
        if result.returncode != 0:
            mount_point.rmdir()
            raise ProbeError(
                message=f"Cannot attach {image_path}: {result.stderr.strip() or result.returncode}"
            )

        try:
            yield mount_point
        finally:
            detach = subprocess.run(
                ["hdiutil", "detach", str(mount_point), "-quiet"], check=False
            )
            if detach.returncode != 0:
                logger.warning(f"Plain detach of {mount_point} failed; forcing")
                subprocess.run(
                    ["hdiutil", "detach", str(mount_point), "-force", "-quiet"], check=False
                )
            with contextlib.suppress(OSError):
                mount_point.rmdir()


class ArtifactProbe:
    """Reads a declared metadata key out of an application bundle."""

    def __init__(self, mounter: ImageMounter | None = None) -> None:
        self.mounter: ImageMounter = mounter if mounter is not None else HdiutilMounter()

    def read_version(self, artifact_path: Path, key: str = DEFAULT_VERSION_KEY) -> str:
        """Return the value of key from the bundle's Info.plist.

        Raises:
            ProbeError: If the bundle or its Info.plist is missing or
                unreadable, or key is absent or not a non-empty string.
        """
        if not artifact_path.exists():
            raise ProbeError(message=f"Artifact not found: {artifact_path}")

        plist_path = artifact_path / INFO_PLIST
        try:
            with plist_path.open("rb") as f:
                info = plistlib.load(f)
        except FileNotFoundError as e:
            raise ProbeError(message=f"No Info.plist in {artifact_path}") from e
        except (OSError, plistlib.InvalidFileException, ExpatError, ValueError) as e:
            raise ProbeError(message=f"Cannot parse {plist_path}: {e}") from e

        if not isinstance(info, dict) or key not in info:
            raise ProbeError(message=f"{key} is missing from {plist_path}")
        value = info[key]
        if not isinstance(value, str) or not value.strip():
            raise ProbeError(message=f"{key} in {plist_path} is not a version string: {value!r}")

        logger.debug(f"Probed {key}={value} from {artifact_path}")
        return value.strip()

    def read_image_version(
        self, image_path: Path, bundle_name: str, key: str = DEFAULT_VERSION_KEY
    ) -> str:
        """Return the version of the bundle packaged inside a disk image."""
        if not image_path.is_file():
            raise ProbeError(message=f"Image not found: {image_path}")
        with self.mounter.mount(image_path) as root:
            return self.read_version(root / bundle_name, key)
