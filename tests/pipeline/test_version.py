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

"""Tests for dmgpack.pipeline.version module."""

from __future__ import annotations

from pathlib import Path

import pytest

from dmgpack.exceptions import ResolutionError
from dmgpack.pipeline.version import VersionResolver, validate_version


def _source(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "constants.py"
    path.write_text(text)
    return path


class TestVersionResolver:
    """Tests for VersionResolver.resolve."""

    def test_reads_plain_assignment(self, tmp_path: Path) -> None:
        src = _source(tmp_path, 'PROGRAM_NAME = "KaTrain"\nVERSION = "1.4.0"\n')
        assert VersionResolver(src).resolve() == "1.4.0"

    def test_reads_annotated_assignment(self, tmp_path: Path) -> None:
        src = _source(tmp_path, 'VERSION: str = "2.0.1"\n')
        assert VersionResolver(src).resolve() == "2.0.1"

    def test_custom_symbol(self, tmp_path: Path) -> None:
        src = _source(tmp_path, '__version__ = "0.9.0"\n')
        assert VersionResolver(src, symbol="__version__").resolve() == "0.9.0"

    def test_last_assignment_wins(self, tmp_path: Path) -> None:
        src = _source(tmp_path, 'VERSION = "1.0.0"\nVERSION = "1.0.1"\n')
        assert VersionResolver(src).resolve() == "1.0.1"

    def test_does_not_execute_module(self, tmp_path: Path) -> None:
        marker = tmp_path / "executed"
        src = _source(
            tmp_path,
            f'open({str(marker)!r}, "w").close()\nVERSION = "1.4.0"\n',
        )
        assert VersionResolver(src).resolve() == "1.4.0"
        assert not marker.exists()

    def test_ignores_nested_assignments(self, tmp_path: Path) -> None:
        src = _source(tmp_path, 'def f():\n    VERSION = "9.9.9"\n')
        with pytest.raises(ResolutionError, match="not declared"):
            VersionResolver(src).resolve()

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ResolutionError, match="Cannot read"):
            VersionResolver(tmp_path / "nope.py").resolve()

    def test_syntax_error(self, tmp_path: Path) -> None:
        src = _source(tmp_path, "VERSION = (\n")
        with pytest.raises(ResolutionError, match="Cannot parse"):
            VersionResolver(src).resolve()

    def test_non_literal_value(self, tmp_path: Path) -> None:
        src = _source(tmp_path, 'import os\nVERSION = os.environ["V"]\n')
        with pytest.raises(ResolutionError, match="string literal"):
            VersionResolver(src).resolve()

    def test_non_string_literal(self, tmp_path: Path) -> None:
        src = _source(tmp_path, "VERSION = 14\n")
        with pytest.raises(ResolutionError, match="string literal"):
            VersionResolver(src).resolve()

    def test_invalid_version(self, tmp_path: Path) -> None:
        src = _source(tmp_path, 'VERSION = "one point four"\n')
        with pytest.raises(ResolutionError, match="not a valid version"):
            VersionResolver(src).resolve()


class TestValidateVersion:
    """Tests for validate_version."""

    def test_strips_whitespace(self) -> None:
        assert validate_version(" 1.4.0 ") == "1.4.0"

    def test_accepts_prerelease(self) -> None:
        assert validate_version("1.5.0rc1") == "1.5.0rc1"

    def test_keeps_original_text(self) -> None:
        # PEP 440 would normalise this to 1.4.0b2; comparisons use the text.
        assert validate_version("1.4.0-beta.2") == "1.4.0-beta.2"

    def test_rejects_empty(self) -> None:
        with pytest.raises(ResolutionError):
            validate_version("")
