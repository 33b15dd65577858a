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

"""Build-and-package pipeline for macOS application disk images.

Provides the version resolver, artifact probe, stage runner, staging area,
reporter and the pipeline state machine that ties them together.
"""

from dmgpack.pipeline.imaging import (
    CreateDmgAuthor,
    HdiutilAuthor,
    ImageAuthor,
    ImageOptions,
    default_authors,
)
from dmgpack.pipeline.orchestrator import Pipeline, check_version
from dmgpack.pipeline.probe import ArtifactProbe, HdiutilMounter, ImageMounter
from dmgpack.pipeline.report import Reporter, format_size
from dmgpack.pipeline.stages import StageRunner
from dmgpack.pipeline.staging import StagingArea
from dmgpack.pipeline.types import PipelineOutcome, PipelineState, StageResult, StageState
from dmgpack.pipeline.version import VersionResolver

__all__ = [
    "ArtifactProbe",
    "CreateDmgAuthor",
    "HdiutilAuthor",
    "HdiutilMounter",
    "ImageAuthor",
    "ImageMounter",
    "ImageOptions",
    "Pipeline",
    "PipelineOutcome",
    "PipelineState",
    "Reporter",
    "StageResult",
    "StageRunner",
    "StageState",
    "StagingArea",
    "VersionResolver",
    "check_version",
    "default_authors",
    "format_size",
]
