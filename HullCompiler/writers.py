"""Hull serialization: one Wavefront OBJ per hull, or one JSON shape document."""

from __future__ import annotations

import json
import os
from typing import Callable, List, Optional, Sequence, Tuple

from .errors import WriteError
from .hulls import ConvexHull, MeshGroup


def format_obj(name: str, hull: ConvexHull) -> str:
    """OBJ text for one hull. Face indices are 1-based."""
    lines = [f"o {name}"]
    for x, y, z in hull.vertices:
        lines.append(f"v {float(x)} {float(y)} {float(z)}")
    for a, b, c in hull.triangles:
        lines.append(f"f {int(a) + 1} {int(b) + 1} {int(c) + 1}")
    return "\n".join(lines) + "\n"


def shapes_document(hulls: Sequence[ConvexHull]) -> dict:
    """``{"shapes": [{"points": [...], "tris": [...]}]}`` with 0-based indices."""
    shapes = []
    for hull in hulls:
        shapes.append({
            "points": [{"x": float(x), "y": float(y), "z": float(z)} for x, y, z in hull.vertices],
            "tris": [[int(a), int(b), int(c)] for a, b, c in hull.triangles],
        })
    return {"shapes": shapes}


def _write_text(path: str, text: str) -> None:
    try:
        with open(path, 'w', encoding='utf-8', newline='\n') as f:
            f.write(text)
    except OSError as exc:
        raise WriteError(f"Failed to write {path}: {exc}") from exc


def write_hull_obj(directory: str, name: str, append: str, hull: ConvexHull) -> str:
    """Write ``<name><append>.obj`` into *directory* and return its path."""
    path = os.path.join(directory, f"{name}{append}.obj")
    _write_text(path, format_obj(name, hull))
    return path


def write_shapes_json(directory: str, input_stem: str, append: str, hulls: Sequence[ConvexHull]) -> str:
    """Write every hull into ``<input_stem><append>.json`` and return its path."""
    path = os.path.join(directory, f"{input_stem}{append}.json")
    _write_text(path, json.dumps(shapes_document(hulls), indent=2) + "\n")
    return path


def ensure_output_directory(directory: str) -> None:
    try:
        os.makedirs(directory, exist_ok=True)
    except OSError as exc:
        raise WriteError(f"Cannot create output directory {directory}: {exc}") from exc


# ----------------- Emitters -----------------

def emit_obj_files(results: Sequence[Tuple[MeshGroup, List[ConvexHull]]],
                   directory: str,
                   append: str,
                   log_success: bool = True,
                   log: Optional[Callable[[str], None]] = None,
                   ) -> Tuple[List[str], List[Tuple[str, str]]]:
    """Write one OBJ per hull. Returns (written paths, failures).

    A hull whose file name was already written during this call is reported
    as a failure instead of overwriting the earlier hull.
    """
    _log = log or print
    written: List[str] = []
    failures: List[Tuple[str, str]] = []
    seen = set()

    for group, hulls in results:
        for i, hull in enumerate(hulls):
            name = f"{group.name}{i}"
            key = os.path.normcase(os.path.abspath(os.path.join(directory, f"{name}{append}.obj")))
            if key in seen:
                exc = WriteError(f"Duplicate output name {name}{append}.obj; "
                                 f"an earlier hull of another '{group.name}' already uses it")
                failures.append((f"file {name}{append}.obj", str(exc)))
                _log(str(exc))
                continue
            seen.add(key)
            try:
                path = write_hull_obj(directory, name, append, hull)
            except WriteError as exc:
                failures.append((f"file {name}{append}.obj", str(exc)))
                _log(str(exc))
                continue
            written.append(path)
            if log_success:
                _log(f"Writing file {path}")
    return written, failures


def emit_json_document(results: Sequence[Tuple[MeshGroup, List[ConvexHull]]],
                       directory: str,
                       input_stem: str,
                       append: str,
                       log_success: bool = True,
                       log: Optional[Callable[[str], None]] = None,
                       ) -> Tuple[List[str], List[Tuple[str, str]]]:
    """Write all hulls of all groups, in group order, into one JSON document."""
    _log = log or print
    hulls = [hull for _, group_hulls in results for hull in group_hulls]
    try:
        path = write_shapes_json(directory, input_stem, append, hulls)
    except WriteError as exc:
        _log(str(exc))
        return [], [(f"file {input_stem}{append}.json", str(exc))]
    if log_success:
        _log(f"Writing file {path}")
    return [path], []
