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

"""Type definitions shared by the pipeline stages.

This module provides the pipeline state enum and the dataclasses passed
between stages, so each stage receives only the data it needs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from dmgpack.exceptions import DmgpackError
    from dmgpack.paths import ProjectPaths
    from dmgpack.pipeline.imaging import ImageOptions


class PipelineState(str, Enum):
    """States of a packaging run, in the order they are reached."""

    INIT = "init"
    CLEANED = "cleaned"
    BUILT = "built"
    BUILD_VERIFIED = "build-verified"
    STAGED = "staged"
    PACKAGED = "packaged"
    PACKAGE_VERIFIED = "package-verified"
    REPORTED = "reported"
    ABORTED = "aborted"


# Forward order; ABORTED is reachable from every state and is not listed.
STATE_ORDER: tuple[PipelineState, ...] = (
    PipelineState.INIT,
    PipelineState.CLEANED,
    PipelineState.BUILT,
    PipelineState.BUILD_VERIFIED,
    PipelineState.STAGED,
    PipelineState.PACKAGED,
    PipelineState.PACKAGE_VERIFIED,
    PipelineState.REPORTED,
)


@dataclass
class StageResult:
    """Outcome of one stage execution: Succeeded or Failed(reason).

    Attributes:
        success: Whether the stage completed successfully.
        error: The error that failed the stage, if any.
        data: Stage-specific data for subsequent stages.
    """

    success: bool
    error: DmgpackError | None = None
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def reason(self) -> str:
        return self.error.message if self.error is not None else ""

    @classmethod
    def ok(cls, **data: Any) -> StageResult:
        """Create a successful stage result."""
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: DmgpackError) -> StageResult:
        """Create a failed stage result."""
        return cls(success=False, error=error)


@dataclass
class StageState:
    """Working state handed to every stage.

    Attributes:
        paths: Resolved project paths.
        version: Version resolved from source.
        build_command: Build tool argv, relative executables resolved
            against the project root.
        version_env: Name of the environment variable carrying the version.
        image_options: Cosmetic options for the image-authoring tools.
        install_link: Target of the convenience link placed in staging.
        clean_exclude: Directory names skipped when sweeping caches.
        timeout: Optional per-tool timeout in seconds.
        image_path: Final image path, set by the package stage.
    """

    paths: ProjectPaths
    version: str
    build_command: list[str]
    version_env: str
    image_options: ImageOptions
    install_link: str = "/Applications"
    clean_exclude: tuple[str, ...] = ()
    timeout: float | None = None
    image_path: Path | None = None


@dataclass
class PipelineOutcome:
    """Final outcome of a pipeline run.

    Attributes:
        state: Terminal state (REPORTED or ABORTED).
        history: States reached, in order.
        version: Version resolved from source, if resolution succeeded.
        bundle_path: Built application bundle.
        image_path: Final disk image, on success.
        image_size: Final disk image size in bytes, on success.
        error: The error that aborted the run, if any.
        aborted_from: Last state reached before aborting.
    """

    state: PipelineState
    history: list[PipelineState] = field(default_factory=list)
    version: str | None = None
    bundle_path: Path | None = None
    image_path: Path | None = None
    image_size: int = 0
    error: DmgpackError | None = None
    aborted_from: PipelineState | None = None

    @property
    def success(self) -> bool:
        return self.state is PipelineState.REPORTED

    @property
    def exit_code(self) -> int:
        if self.success:
            return 0
        return self.error.exit_code if self.error is not None else 1
