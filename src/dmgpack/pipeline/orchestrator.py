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

"""Pipeline state machine: clean, build, verify, package, verify, report.

Each forward transition happens only when exactly one stage or check
succeeds. Any failure moves the pipeline straight to ABORTED, and no later
stage runs. The staging area is held in a scoped block, so it is released
on every exit path before the pipeline returns or an interrupt propagates.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from dmgpack.exceptions import DmgpackError, ProbeError, VersionMismatchError
from dmgpack.paths import ProjectPaths
from dmgpack.pipeline.imaging import ImageAuthor, image_options_from_config
from dmgpack.pipeline.probe import DEFAULT_VERSION_KEY, ArtifactProbe, HdiutilMounter, ImageMounter
from dmgpack.pipeline.report import Reporter
from dmgpack.pipeline.stages import StageRunner
from dmgpack.pipeline.staging import StagingArea
from dmgpack.pipeline.types import (
    STATE_ORDER,
    PipelineOutcome,
    PipelineState,
    StageResult,
    StageState,
)
from dmgpack.pipeline.version import VersionResolver

logger = logging.getLogger(__name__)


def resolve_build_command(command: list[str], root: Path) -> list[str]:
    """Anchor a relative executable path (e.g. .venv/bin/pyinstaller) at root."""
    exe = command[0]
    if "/" in exe and not Path(exe).is_absolute():
        exe = str(root / exe)
    return [exe, *[str(arg) for arg in command[1:]]]


def check_version(expected: str, actual: str, checkpoint: str) -> None:
    """Raise VersionMismatchError unless actual equals expected."""
    if actual != expected:
        raise VersionMismatchError(
            message=f"Version mismatch at {checkpoint}: source {expected}, {checkpoint} {actual}",
            expected=expected,
            actual=actual,
            checkpoint=checkpoint,
        )


class Pipeline:
    """Drives one packaging run through its states.

    Attributes:
        paths: Resolved project paths.
        resolver: Source of the authoritative version.
        probe: Reads embedded versions from the bundle and the image.
        runner: Executes the clean, build, stage and package stages.
        reporter: Emits one status line per transition.
        version_key: Info.plist key holding the version.
        state: Current state.
        history: States reached so far.
    """

    def __init__(
        self,
        paths: ProjectPaths,
        resolver: VersionResolver,
        probe: ArtifactProbe,
        runner: StageRunner,
        reporter: Reporter,
        stage_settings: Mapping[str, Any],
        version_key: str = DEFAULT_VERSION_KEY,
    ) -> None:
        self.paths = paths
        self.resolver = resolver
        self.probe = probe
        self.runner = runner
        self.reporter = reporter
        self.stage_settings = dict(stage_settings)
        self.version_key = version_key
        self.state = PipelineState.INIT
        self.history: list[PipelineState] = [PipelineState.INIT]

    @classmethod
    def from_config(
        cls,
        paths: ProjectPaths,
        cfg: Mapping[str, Any],
        reporter: Reporter,
        log_dir: Path,
        authors: list[ImageAuthor] | None = None,
        mounter: ImageMounter | None = None,
        timeout: float | None = None,
    ) -> Pipeline:
        """Assemble a pipeline from the loaded project configuration."""
        if timeout is None:
            timeout = cfg["behavior"].get("tool_timeout")
        stage_settings = {
            "build_command": resolve_build_command(list(cfg["build"]["command"]), paths.root),
            "version_env": str(cfg["build"]["version_env"]),
            "image_options": image_options_from_config(cfg, paths.app_name, paths.root),
            "install_link": str(cfg["app"].get("install_link", "/Applications")),
            "clean_exclude": tuple(cfg["clean"].get("exclude", ())),
            "timeout": timeout,
        }
        return cls(
            paths=paths,
            resolver=VersionResolver(paths.version_source, str(cfg["version"]["symbol"])),
            probe=ArtifactProbe(mounter if mounter is not None else HdiutilMounter(timeout)),
            runner=StageRunner(log_dir, reporter, authors),
            reporter=reporter,
            stage_settings=stage_settings,
            version_key=str(cfg["version"]["plist_key"]),
        )

    def stage_state(self, version: str) -> StageState:
        """Return the working state handed to each stage."""
        return StageState(paths=self.paths, version=version, **self.stage_settings)

    def _advance(self, target: PipelineState, detail: str = "") -> None:
        index = STATE_ORDER.index(self.state)
        if index + 1 >= len(STATE_ORDER) or STATE_ORDER[index + 1] is not target:
            raise RuntimeError(f"Illegal transition {self.state.value} -> {target.value}")
        self.state = target
        self.history.append(target)
        self.reporter.transition(target, detail)

    @staticmethod
    def _require(result: StageResult) -> StageResult:
        if not result.success:
            assert result.error is not None
            raise result.error
        return result

    def _abort(self, error: DmgpackError, outcome: PipelineOutcome) -> PipelineOutcome:
        aborted_from = self.state
        self.state = PipelineState.ABORTED
        self.history.append(PipelineState.ABORTED)
        outcome.state = PipelineState.ABORTED
        outcome.history = list(self.history)
        outcome.error = error
        outcome.aborted_from = aborted_from
        self.reporter.failure(error, aborted_from)
        return outcome

    def run(self) -> PipelineOutcome:
        """Run the pipeline to REPORTED or ABORTED.

        DmgpackError never escapes; it is recorded in the outcome.
        KeyboardInterrupt propagates once the staging area is released.
        """
        outcome = PipelineOutcome(state=self.state, bundle_path=self.paths.bundle)
        try:
            version = self.resolver.resolve()
            outcome.version = version
            self.reporter.step("version", f"Source version {version} ({self.paths.version_source.name})")
            state = self.stage_state(version)

            self._require(self.runner.run("clean", state))
            self._advance(PipelineState.CLEANED)

            self._require(self.runner.run("build", state))
            self._advance(PipelineState.BUILT, f"{self.paths.bundle}")

            built = self.probe.read_version(self.paths.bundle, self.version_key)
            check_version(version, built, "build")
            self._advance(PipelineState.BUILD_VERIFIED, f"Bundle version {built} matches source")

            with StagingArea(self.paths.staging) as staging:
                self.runner.staging = staging
                try:
                    self._require(self.runner.run("stage", state))
                    self._advance(PipelineState.STAGED, f"{staging.path}")
                    result = self._require(self.runner.run("package", state))
                    self._advance(PipelineState.PACKAGED, f"{result.data['image']} via {result.data['author']}")
                finally:
                    self.runner.staging = None

            image_path = state.image_path
            if image_path is None or not image_path.is_file():
                raise ProbeError(message=f"Disk image missing after packaging: {image_path}")
            packaged = self.probe.read_image_version(image_path, self.paths.bundle_name, self.version_key)
            check_version(version, packaged, "image")
            self._advance(PipelineState.PACKAGE_VERIFIED, f"Image version {packaged} matches source")

            outcome.image_path = image_path
            outcome.image_size = image_path.stat().st_size
            self._advance(PipelineState.REPORTED)
            outcome.state = self.state
            outcome.history = list(self.history)
            self.reporter.success(outcome)
            return outcome
        except DmgpackError as e:
            logger.debug(f"Pipeline aborted in state {self.state.value}: {e.message}")
            return self._abort(e, outcome)
