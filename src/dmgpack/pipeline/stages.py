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

"""Stage implementations and the runner that executes them.

Each stage function accepts the shared StageState and the StageRunner and
returns a StageResult. Stages signal fatal conditions by raising a
DmgpackError subclass; the runner turns that into a failed result so the
pipeline can abort without any later stage running.

Stages:
- clean: remove prior build outputs, stale staging and bytecode caches
- build: run the build tool with the version injected into its environment
- stage: copy the bundle and installation link into the staging area
- package: author the disk image, preferring create-dmg over hdiutil
"""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Callable
from pathlib import Path

from dmgpack.exceptions import BuildFailure, DmgpackError, PackagingFailure
from dmgpack.pipeline.imaging import ImageAuthor, default_authors
from dmgpack.pipeline.report import Reporter
from dmgpack.pipeline.staging import StagingArea, remove_tree
from dmgpack.pipeline.tools import get_missing_tools_message
from dmgpack.pipeline.types import StageResult, StageState

logger = logging.getLogger(__name__)

CACHE_DIR_NAMES = ("__pycache__",)
CACHE_FILE_SUFFIXES = (".pyc",)


def sweep_caches(root: Path, exclude: tuple[str, ...] = ()) -> int:
    """Delete bytecode caches under root, skipping excluded directory names.

    Returns the number of removed entries.
    """
    removed = 0
    for dirpath, dirnames, filenames in os.walk(root):
        kept = []
        for name in dirnames:
            if name in exclude:
                continue
            if name in CACHE_DIR_NAMES:
                remove_tree(Path(dirpath) / name)
                removed += 1
                continue
            kept.append(name)
        dirnames[:] = kept
        for name in filenames:
            if name.endswith(CACHE_FILE_SUFFIXES):
                (Path(dirpath) / name).unlink(missing_ok=True)
                removed += 1
    return removed


def clean_stage(state: StageState, runner: StageRunner) -> StageResult:
    """Remove prior outputs. Safe to run when nothing exists.

    Side Effects:
        - Deletes the dist, build and staging directories
        - Deletes *.pyc files and __pycache__ directories under the root
    """
    paths = state.paths
    for target in (paths.dist, paths.build, paths.staging):
        if target.exists() or target.is_symlink():
            runner.reporter.step("clean", f"Removing {target}")
            remove_tree(target)
    removed = sweep_caches(paths.root, state.clean_exclude)
    runner.reporter.step("clean", f"Removed {removed} bytecode cache entries", removed=removed)
    return StageResult.ok(removed=removed)


def build_environment(state: StageState) -> dict[str, str]:
    """Return the build tool environment: a copy of ours plus the version."""
    env = os.environ.copy()
    env[state.version_env] = state.version
    return env


def build_stage(state: StageState, runner: StageRunner) -> StageResult:
    """Run the build tool and check that it produced the bundle.

    Raises:
        BuildFailure: If the tool is missing, exits non-zero, times out, or
            leaves no bundle behind.
    """
    paths = state.paths
    cmd = state.build_command
    log_path = runner.log_path("build")
    runner.reporter.step("build", f"{state.version_env}={state.version}")

    try:
        with runner.reporter.spinner("build", f"Building {paths.app_name} with {Path(cmd[0]).name}"):
            with log_path.open("w") as f:
                result = subprocess.run(
                    cmd,
                    stdout=f,
                    stderr=subprocess.STDOUT,
                    env=build_environment(state),
                    cwd=paths.root,
                    timeout=state.timeout,
                )
    except FileNotFoundError as e:
        raise BuildFailure(
            message=f"Build tool not found: {cmd[0]}\n{get_missing_tools_message([cmd[0]])}"
        ) from e
    except subprocess.TimeoutExpired as e:
        raise BuildFailure(message=f"Build timed out after {state.timeout}s; see {log_path}") from e
    except OSError as e:
        raise BuildFailure(message=f"Cannot run build tool {cmd[0]}: {e}") from e

    if result.returncode != 0:
        raise BuildFailure(
            message=f"Build tool exited with status {result.returncode}; see {log_path}"
        )
    if not paths.bundle.is_dir():
        raise BuildFailure(message=f"Build failed - app not found at {paths.bundle}")

    return StageResult.ok(bundle=paths.bundle)


def stage_stage(state: StageState, runner: StageRunner) -> StageResult:
    """Populate the acquired staging area with the bundle and install link."""
    if runner.staging is None:
        raise PackagingFailure(message="No staging area has been acquired")
    staged = runner.staging.populate(state.paths.bundle, state.install_link)
    runner.reporter.step("stage", f"Copied {staged.name} and linked {state.install_link}")
    return StageResult.ok(staged=staged)


def _image_ready(image_path: Path) -> bool:
    return image_path.is_file() and image_path.stat().st_size > 0


def package_stage(state: StageState, runner: StageRunner) -> StageResult:
    """Author the disk image from the staging area.

    Authors are tried in order of preference, skipping those not installed.
    An attempt counts only if the image file exists afterwards; the exit
    status alone is never trusted.

    Raises:
        PackagingFailure: If no author is installed or every installed
            author failed to produce the image.
    """
    if runner.staging is None:
        raise PackagingFailure(message="No staging area has been acquired")

    image_path = state.paths.image_path(state.version)
    state.image_path = image_path
    if image_path.exists() or image_path.is_symlink():
        runner.reporter.step("package", f"Removing previous {image_path.name}")
        remove_tree(image_path)

    available: list[ImageAuthor] = []
    for author in runner.authors:
        if author.is_available():
            available.append(author)
        else:
            runner.reporter.step("package", f"{author.name} not installed; skipping")
    if not available:
        names = ", ".join(a.name for a in runner.authors)
        raise PackagingFailure(
            message=f"No image-authoring tool available (tried {names})\n"
            + get_missing_tools_message([a.name for a in runner.authors])
        )

    log_path = runner.log_path("package")
    failures: list[str] = []
    for author in available:
        try:
            with runner.reporter.spinner("package", f"Creating {image_path.name} with {author.name}"):
                returncode = author.author(
                    runner.staging.path, image_path, state.image_options, log_path, state.timeout
                )
        except subprocess.TimeoutExpired:
            failures.append(f"{author.name}: timed out after {state.timeout}s")
            author.cleanup_partial(image_path)
            continue
        except OSError as e:
            failures.append(f"{author.name}: {e}")
            author.cleanup_partial(image_path)
            continue

        if _image_ready(image_path):
            if returncode != 0:
                runner.reporter.warning(
                    "package",
                    f"{author.name} exited with status {returncode} but produced {image_path.name}",
                    tool=author.name,
                    returncode=returncode,
                )
            return StageResult.ok(image=image_path, author=author.name)

        failures.append(f"{author.name}: exit status {returncode}, no image produced")
        logger.debug(f"{author.name} produced no image at {image_path}")
        author.cleanup_partial(image_path)

    raise PackagingFailure(message=f"Disk image creation failed ({'; '.join(failures)}); see {log_path}")


StageFn = Callable[[StageState, "StageRunner"], StageResult]

STAGES: dict[str, StageFn] = {
    "clean": clean_stage,
    "build": build_stage,
    "stage": stage_stage,
    "package": package_stage,
}


class StageRunner:
    """Executes named stages and captures their success or failure.

    Attributes:
        log_dir: Directory receiving one log file per external tool.
        reporter: Reporter for progress lines and events.
        authors: Image authors in order of preference.
        staging: Staging area currently held by the pipeline, if any.
    """

    def __init__(
        self,
        log_dir: Path,
        reporter: Reporter,
        authors: list[ImageAuthor] | None = None,
    ) -> None:
        self.log_dir = log_dir
        self.reporter = reporter
        self.authors = authors if authors is not None else default_authors()
        self.staging: StagingArea | None = None

    def log_path(self, tool: str) -> Path:
        self.log_dir.mkdir(parents=True, exist_ok=True)
        return self.log_dir / f"{tool}.log"

    def run(self, stage: str, state: StageState) -> StageResult:
        """Run one stage and return its result.

        Only DmgpackError is converted into a failed result; anything else
        is a bug and propagates.
        """
        try:
            fn = STAGES[stage]
        except KeyError:
            raise ValueError(f"Unknown stage: {stage}") from None

        self.reporter.event(f"stage.{stage}.start")
        try:
            result = fn(state, self)
        except DmgpackError as e:
            self.reporter.event(f"stage.{stage}.end", success=False, error=e.message)
            return StageResult.fail(e)
        self.reporter.event(f"stage.{stage}.end", success=True)
        return result
