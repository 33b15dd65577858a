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

"""Tests for dmgpack.pipeline.orchestrator module."""

from __future__ import annotations

import json
from pathlib import Path
from unittest import mock

import pytest
from conftest import FakeAuthor, FakeMounter, write_bundle, write_project

from dmgpack.config import load_config
from dmgpack.exceptions import (
    BuildFailure,
    PackagingFailure,
    ProbeError,
    ResolutionError,
    VersionMismatchError,
)
from dmgpack.paths import resolve_paths
from dmgpack.pipeline.orchestrator import Pipeline, check_version, resolve_build_command
from dmgpack.pipeline.report import Reporter
from dmgpack.pipeline.types import PipelineState
from dmgpack.run import RunContext

S = PipelineState


def _pipeline(
    project: Path,
    tmp_path: Path,
    mounter: FakeMounter,
    authors: list[FakeAuthor] | None = None,
    reporter: Reporter | None = None,
) -> Pipeline:
    cfg = load_config(project)
    return Pipeline.from_config(
        resolve_paths(project, cfg),
        cfg,
        reporter or Reporter(disable_spinner=True),
        tmp_path / "logs",
        authors=authors if authors is not None else [FakeAuthor("create-dmg"), FakeAuthor("hdiutil")],
        mounter=mounter,
    )


class TestResolveBuildCommand:
    """Tests for resolve_build_command."""

    def test_relative_executable_anchored(self, tmp_path: Path) -> None:
        cmd = resolve_build_command([".venv/bin/pyinstaller", "spec/KaTrain.spec"], tmp_path)
        assert cmd == [str(tmp_path / ".venv/bin/pyinstaller"), "spec/KaTrain.spec"]

    def test_bare_and_absolute_untouched(self, tmp_path: Path) -> None:
        assert resolve_build_command(["pyinstaller"], tmp_path) == ["pyinstaller"]
        assert resolve_build_command(["/usr/bin/env", "x"], tmp_path) == ["/usr/bin/env", "x"]


class TestCheckVersion:
    """Tests for check_version."""

    def test_equal_versions_pass(self) -> None:
        check_version("1.4.0", "1.4.0", "build")

    def test_mismatch_names_both_versions(self) -> None:
        with pytest.raises(VersionMismatchError) as exc_info:
            check_version("1.4.0", "1.3.9", "build")
        err = exc_info.value
        assert (err.expected, err.actual, err.checkpoint) == ("1.4.0", "1.3.9", "build")
        assert "1.4.0" in err.message and "1.3.9" in err.message

    def test_comparison_is_textual(self) -> None:
        with pytest.raises(VersionMismatchError):
            check_version("1.4", "1.4.0", "image")


class TestPipelineSuccess:
    """A consistent project runs every stage and ends REPORTED."""

    def test_full_run(self, project: Path, tmp_path: Path, fake_mounter: FakeMounter) -> None:
        primary, fallback = FakeAuthor("create-dmg"), FakeAuthor("hdiutil")

        outcome = _pipeline(project, tmp_path, fake_mounter, [primary, fallback]).run()

        assert outcome.success
        assert outcome.exit_code == 0
        assert outcome.history == [
            S.INIT,
            S.CLEANED,
            S.BUILT,
            S.BUILD_VERIFIED,
            S.STAGED,
            S.PACKAGED,
            S.PACKAGE_VERIFIED,
            S.REPORTED,
        ]
        image = project.resolve() / "KaTrain-1.4.0.dmg"
        assert outcome.image_path == image
        assert outcome.image_size == image.stat().st_size > 0
        assert outcome.version == "1.4.0"
        assert fake_mounter.mounted == [image]
        assert fallback.calls == []

    def test_staging_released(self, project: Path, tmp_path: Path, fake_mounter: FakeMounter) -> None:
        pipeline = _pipeline(project, tmp_path, fake_mounter)
        pipeline.run()
        assert not (project / "dmg_temp").exists()
        assert pipeline.runner.staging is None

    def test_previous_outputs_replaced(
        self, project: Path, tmp_path: Path, fake_mounter: FakeMounter
    ) -> None:
        write_bundle(project / "dist" / "KaTrain.app", "1.3.0")
        (project / "KaTrain-1.4.0.dmg").write_bytes(b"stale")

        outcome = _pipeline(project, tmp_path, fake_mounter).run()

        assert outcome.success
        assert (project / "KaTrain-1.4.0.dmg").read_bytes() != b"stale"

    def test_one_line_per_transition(
        self, project: Path, tmp_path: Path, fake_mounter: FakeMounter, capsys: pytest.CaptureFixture[str]
    ) -> None:
        _pipeline(project, tmp_path, fake_mounter).run()

        out = capsys.readouterr().out
        for state in (S.CLEANED, S.BUILT, S.BUILD_VERIFIED, S.PACKAGED, S.PACKAGE_VERIFIED, S.REPORTED):
            assert f"[{state.value}]" in out
        assert "KaTrain-1.4.0.dmg" in out

    def test_summary_written(self, project: Path, tmp_path: Path, fake_mounter: FakeMounter) -> None:
        with RunContext("package", tmp_path / "runs", lock=False) as run:
            _pipeline(project, tmp_path, fake_mounter, reporter=Reporter(run, disable_spinner=True)).run()

        summary = json.loads((run.run_path / "summary.json").read_text())
        assert summary["status"] == "success"
        assert summary["version"] == "1.4.0"
        events = (run.run_path / "events.jsonl").read_text()
        assert "pipeline.transition" in events


class TestPipelineAbort:
    """Any failure aborts the run and prevents later stages."""

    def test_build_version_mismatch(
        self,
        project: Path,
        tmp_path: Path,
        fake_mounter: FakeMounter,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setenv("FAKE_BUILT_VERSION", "1.3.9")
        primary = FakeAuthor("create-dmg")

        outcome = _pipeline(project, tmp_path, fake_mounter, [primary]).run()

        assert outcome.state is S.ABORTED
        assert outcome.aborted_from is S.BUILT
        assert outcome.exit_code == 1
        assert isinstance(outcome.error, VersionMismatchError)
        assert outcome.error.checkpoint == "build"
        assert primary.calls == []
        assert not (project / "dmg_temp").exists()
        assert not (project / "KaTrain-1.4.0.dmg").exists()
        assert not (project / "KaTrain-1.3.9.dmg").exists()

    def test_unresolvable_version_runs_nothing(
        self, project: Path, tmp_path: Path, fake_mounter: FakeMounter
    ) -> None:
        (project / "katrain" / "core" / "constants.py").write_text("PROGRAM_NAME = 'KaTrain'\n")
        write_bundle(project / "dist" / "KaTrain.app", "1.0.0")

        outcome = _pipeline(project, tmp_path, fake_mounter).run()

        assert isinstance(outcome.error, ResolutionError)
        assert outcome.aborted_from is S.INIT
        assert outcome.history == [S.INIT, S.ABORTED]
        assert outcome.version is None
        # clean never ran
        assert (project / "dist" / "KaTrain.app").exists()

    def test_build_failure(self, tmp_path: Path, fake_mounter: FakeMounter) -> None:
        root = tmp_path / "katrain"
        write_project(root, build={"command": ["false-build-tool-that-does-not-exist"]})

        outcome = _pipeline(root, tmp_path, fake_mounter).run()

        assert isinstance(outcome.error, BuildFailure)
        assert outcome.aborted_from is S.CLEANED

    def test_bundle_without_version(
        self, project: Path, tmp_path: Path, fake_mounter: FakeMounter
    ) -> None:
        pipeline = _pipeline(project, tmp_path, fake_mounter)
        with mock.patch.object(pipeline.probe, "read_version", side_effect=ProbeError(message="no key")):
            outcome = pipeline.run()

        assert isinstance(outcome.error, ProbeError)
        assert outcome.aborted_from is S.BUILT

    def test_packaging_failure_releases_staging(
        self, project: Path, tmp_path: Path, fake_mounter: FakeMounter
    ) -> None:
        authors = [FakeAuthor("create-dmg", behaviour="fail"), FakeAuthor("hdiutil", behaviour="silent-fail")]
        pipeline = _pipeline(project, tmp_path, fake_mounter, authors)

        outcome = pipeline.run()

        assert isinstance(outcome.error, PackagingFailure)
        assert outcome.aborted_from is S.STAGED
        assert not (project / "dmg_temp").exists()
        assert pipeline.runner.staging is None
        assert fake_mounter.mounted == []

    def test_image_version_mismatch(
        self, project: Path, tmp_path: Path, fake_mounter: FakeMounter
    ) -> None:
        pipeline = _pipeline(project, tmp_path, fake_mounter)
        with mock.patch.object(pipeline.probe, "read_image_version", return_value="1.3.9"):
            outcome = pipeline.run()

        assert isinstance(outcome.error, VersionMismatchError)
        assert outcome.error.checkpoint == "image"
        assert outcome.aborted_from is S.PACKAGED

    def test_abort_reported(
        self,
        project: Path,
        tmp_path: Path,
        fake_mounter: FakeMounter,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        monkeypatch.setenv("FAKE_BUILT_VERSION", "1.3.9")
        with RunContext("package", tmp_path / "runs", lock=False) as run:
            _pipeline(project, tmp_path, fake_mounter, reporter=Reporter(run, disable_spinner=True)).run()

        out = capsys.readouterr().out
        assert "[aborted]" in out
        assert "1.3.9" in out
        summary = json.loads((run.run_path / "summary.json").read_text())
        assert summary["status"] == "failed"
        assert summary["error_type"] == "VersionMismatchError"

    def test_interrupt_releases_staging(
        self, project: Path, tmp_path: Path, fake_mounter: FakeMounter
    ) -> None:
        class InterruptingAuthor(FakeAuthor):
            def author(self, *args, **kwargs):  # type: ignore[no-untyped-def]
                raise KeyboardInterrupt

        pipeline = _pipeline(project, tmp_path, fake_mounter, [InterruptingAuthor("create-dmg")])

        with pytest.raises(KeyboardInterrupt):
            pipeline.run()

        assert not (project / "dmg_temp").exists()


class TestTransitions:
    """Tests for the state machine guard."""

    def test_skipping_a_state_is_rejected(
        self, project: Path, tmp_path: Path, fake_mounter: FakeMounter
    ) -> None:
        pipeline = _pipeline(project, tmp_path, fake_mounter)
        with pytest.raises(RuntimeError, match="Illegal transition"):
            pipeline._advance(S.BUILT)

    def test_no_transition_out_of_reported(
        self, project: Path, tmp_path: Path, fake_mounter: FakeMounter
    ) -> None:
        pipeline = _pipeline(project, tmp_path, fake_mounter)
        pipeline.run()
        with pytest.raises(RuntimeError):
            pipeline._advance(S.CLEANED)
