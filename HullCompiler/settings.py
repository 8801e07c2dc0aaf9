"""Run-wide configuration with documented defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

DEFAULT_APPEND = "-shape"
DEFAULT_MAX_HULLS = 1024
DEFAULT_VOXEL_RESOLUTION = 128
PLACEHOLDER_MESH_NAME = "New Obj"


class FillMode(str, Enum):
    """How V-HACD treats the interior of the voxelized mesh."""

    FLOOD = "flood"      # flood fill from the outside, interior is solid
    SURFACE = "surface"  # surface voxels only
    RAYCAST = "raycast"  # raycast fill, detects interior cavities


def _positive_int(label, value) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{label} must be a positive integer, got {value!r}")
    if number != value or number < 1:
        raise ValueError(f"{label} must be a positive integer, got {value!r}")
    return number


@dataclass(frozen=True)
class DecompositionParameters:
    max_hulls: int = DEFAULT_MAX_HULLS
    voxel_resolution: int = DEFAULT_VOXEL_RESOLUTION
    fill_mode: FillMode = FillMode.FLOOD

    def __post_init__(self):
        object.__setattr__(self, "max_hulls", _positive_int("max_hulls", self.max_hulls))
        object.__setattr__(self, "voxel_resolution", _positive_int("voxel_resolution", self.voxel_resolution))
        # Accept plain strings such as "flood" from callers and the CLI.
        object.__setattr__(self, "fill_mode", FillMode(self.fill_mode))


@dataclass
class ConversionSettings:
    """Everything one conversion run needs besides the input path.

    ``output_directory`` of ``None`` means the current working directory,
    resolved when the run starts (see :meth:`resolved_output_directory`).
    """

    output_directory: Optional[str] = None
    append: str = DEFAULT_APPEND
    decomposition: DecompositionParameters = field(default_factory=DecompositionParameters)
    log_success: bool = True
    json_only: bool = False
    combine_meshes: bool = False

    def resolved_output_directory(self) -> str:
        if self.output_directory is None:
            return os.getcwd()
        return self.output_directory

    @classmethod
    def from_args(cls, args) -> "ConversionSettings":
        """Build settings from an ``argparse`` namespace."""
        return cls(
            output_directory=args.output_directory,
            append=args.append,
            decomposition=DecompositionParameters(
                max_hulls=args.max_hulls,
                voxel_resolution=args.voxel_resolution,
                fill_mode=args.fill_mode,
            ),
            log_success=args.log_success,
            json_only=args.json_only,
            combine_meshes=args.combine_meshes,
        )
