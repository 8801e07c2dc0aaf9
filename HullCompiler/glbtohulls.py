#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Command-line glTF/GLB -> convex collision hulls converter.

Walks the top-level nodes of every scene, moves each node's mesh into world
space, optionally fuses all meshes into one, runs V-HACD convex decomposition
and writes every hull as an OBJ file (default) or all hulls into one JSON file.

Usage:
  python -m HullCompiler scene.glb
  python -m HullCompiler scene.gltf -o out/ --max-hulls 16 --json-only
  python -m HullCompiler level.glb --combine-meshes --append -col

Exit codes: 0 success, 1 fatal error, 2 finished with per-mesh/per-file failures.
"""

from __future__ import annotations

import argparse
import sys
import traceback
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from .errors import HullCompilerError
from .gltfscene import load_scene, walk_scene
from .hulls import DecompositionService, decompose_groups, group_meshes
from .settings import (
    DEFAULT_APPEND,
    DEFAULT_MAX_HULLS,
    DEFAULT_VOXEL_RESOLUTION,
    ConversionSettings,
    FillMode,
)
from .writers import emit_json_document, emit_obj_files, ensure_output_directory

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_PARTIAL = 2


@dataclass
class ConversionReport:
    """Outcome of one conversion run."""
    input_path: str = ""
    output_directory: str = ""
    mesh_count: int = 0
    group_count: int = 0
    hull_count: int = 0
    written: List[str] = field(default_factory=list)
    failures: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failures

    @property
    def exit_code(self) -> int:
        return EXIT_OK if self.success else EXIT_PARTIAL

    def summary(self) -> str:
        lines = [
            f"{self.input_path}: {self.mesh_count} mesh(es), {self.group_count} group(s), "
            f"{self.hull_count} hull(s), {len(self.written)} file(s) written to {self.output_directory}",
        ]
        if self.failures:
            lines.append(f"Failures ({len(self.failures)}):")
            for unit, message in self.failures:
                lines.append(f"  {unit}: {message}")
        return "\n".join(lines)


class HullConverterCLI:

    def __init__(self, service: Optional[DecompositionService] = None,
                 log: Optional[Callable[[str], None]] = None):
        self.service = service
        self.log = log or print

    def run_conversion(self, gltf_path: str, settings: Optional[ConversionSettings] = None) -> ConversionReport:
        """Convert one glTF/GLB file. Raises SceneLoadError / WriteError for fatal problems."""
        settings = settings or ConversionSettings()
        output_directory = settings.resolved_output_directory()
        report = ConversionReport(input_path=gltf_path, output_directory=output_directory)

        scene = load_scene(gltf_path)
        ensure_output_directory(output_directory)

        walk = walk_scene(scene, self.log)
        report.mesh_count = len(walk.meshes)
        report.failures.extend(walk.failures)

        groups = group_meshes(walk.meshes, settings.combine_meshes, scene.stem)
        report.group_count = len(groups)

        results, failures = decompose_groups(groups, settings.decomposition, self.service, self.log)
        report.failures.extend(failures)
        report.hull_count = sum(len(hulls) for _, hulls in results)

        if settings.json_only:
            written, failures = emit_json_document(
                results, output_directory, scene.stem, settings.append, settings.log_success, self.log)
        else:
            written, failures = emit_obj_files(
                results, output_directory, settings.append, settings.log_success, self.log)
        report.written.extend(written)
        report.failures.extend(failures)
        return report


def _attach_append_value(argv):
    """Rewrite ``-a VALUE`` into ``--append=VALUE`` so suffixes such as ``-col`` parse."""
    out = []
    args = iter(argv)
    for arg in args:
        if arg in ("-a", "--append"):
            value = next(args, None)
            out.append(arg if value is None else f"--append={value}")
        else:
            out.append(arg)
    return out


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Convert the meshes of a glTF/GLB scene into convex collision hulls.")
    p.add_argument("gltf_file", help="Input .glb or .gltf")
    p.add_argument("-o", "--output-directory", default=None,
                   help="Output directory (default: current directory)")
    p.add_argument("-a", "--append", default=DEFAULT_APPEND,
                   help=f"String appended to created file names (default: {DEFAULT_APPEND})")
    p.add_argument("-m", "--max-hulls", type=int, default=DEFAULT_MAX_HULLS,
                   help=f"Max number of hulls per mesh group (default: {DEFAULT_MAX_HULLS})")
    p.add_argument("-r", "--voxel-resolution", type=int, default=DEFAULT_VOXEL_RESOLUTION,
                   help=f"Voxel grid resolution per axis (default: {DEFAULT_VOXEL_RESOLUTION})")
    p.add_argument("--fill-mode", choices=[m.value for m in FillMode], default=FillMode.FLOOD.value,
                   help="Voxel fill mode (default: flood)")
    p.add_argument("-l", "--log-success", action=argparse.BooleanOptionalAction, default=True,
                   help="Log each output file on creation")
    p.add_argument("-j", "--json-only", action="store_true",
                   help="Write all hulls into a single JSON file instead of OBJ files")
    p.add_argument("-c", "--combine-meshes", action="store_true",
                   help="Fuse all meshes into one before decomposition")
    if argv is None:
        argv = sys.argv[1:]
    return p.parse_args(_attach_append_value(argv))


def main(argv=None, service: Optional[DecompositionService] = None) -> int:
    args = parse_args(argv)
    try:
        settings = ConversionSettings.from_args(args)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_FATAL

    converter = HullConverterCLI(service=service)
    try:
        report = converter.run_conversion(args.gltf_file, settings)
    except HullCompilerError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_FATAL
    except Exception:
        traceback.print_exc()
        return EXIT_FATAL

    if report.failures:
        print(report.summary(), file=sys.stderr)
    elif settings.log_success:
        print(report.summary())
    return report.exit_code


if __name__ == "__main__":
    sys.exit(main())
