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

"""dmgpack exception types with associated exit codes.

Every fatal pipeline condition has its own type so callers can tell them
apart, but all of them share the uniform exit code 1.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class DmgpackError(Exception):
    """Base class for dmgpack errors with an exit code."""

    message: str = "An error occurred"
    exit_code: int = field(default=1)

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.message


@dataclass
class ConfigError(DmgpackError):
    """Invalid project configuration or a concurrent run holding the lock."""


@dataclass
class ResolutionError(DmgpackError):
    """The version could not be determined from the source tree."""


@dataclass
class BuildFailure(DmgpackError):
    """The build tool failed or produced no application bundle."""


@dataclass
class ProbeError(DmgpackError):
    """Version metadata could not be read from an artifact."""


@dataclass
class PackagingFailure(DmgpackError):
    """No image-authoring tool produced the disk image."""


@dataclass
class VersionMismatchError(DmgpackError):
    """A built or packaged version disagrees with the resolved version."""

    expected: str = ""
    actual: str = ""
    checkpoint: str = ""
