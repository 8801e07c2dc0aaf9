"""glTF/GLB scene access: buffer resolution, accessor reading, mesh extraction
and the world-space scene walk.
"""

from __future__ import annotations

import base64
import os
import urllib.parse
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

import numpy
import pygltflib

from .errors import MalformedMesh, SceneLoadError
from .settings import PLACEHOLDER_MESH_NAME
from .transforms import node_transform

TRIANGLES = 4

COMPONENT_DTYPES = {
    5120: numpy.int8,
    5121: numpy.uint8,
    5122: numpy.int16,
    5123: numpy.uint16,
    5125: numpy.uint32,
    5126: numpy.float32,
}

TYPE_COMPONENTS = {
    'SCALAR': 1,
    'VEC2': 2,
    'VEC3': 3,
    'VEC4': 4,
    'MAT2': 4,
    'MAT3': 9,
    'MAT4': 16,
}


@dataclass(frozen=True)
class RawMesh:
    """Local-space geometry of one glTF mesh: (N, 3) float64 vertices, (M, 3) triangles."""
    vertices: numpy.ndarray
    triangles: numpy.ndarray

    def __post_init__(self):
        self.vertices.flags.writeable = False
        self.triangles.flags.writeable = False


@dataclass(frozen=True)
class WorldMesh:
    name: str
    vertices: numpy.ndarray
    triangles: numpy.ndarray

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)


@dataclass
class SceneWalk:
    """Result of walking a scene: the world meshes found and per-mesh failures."""
    meshes: List[WorldMesh] = field(default_factory=list)
    failures: List[Tuple[str, str]] = field(default_factory=list)


# ----------------- Loading -----------------

def _read_buffer_uri(gltf_path: str, uri: str) -> bytes:
    if uri.startswith("data:"):
        try:
            header, payload = uri.split(",", 1)
        except ValueError:
            raise SceneLoadError(f"Malformed data URI in buffer of {gltf_path}")
        if "base64" not in header:
            raise SceneLoadError(f"Only base64 data URIs are supported ({gltf_path})")
        try:
            return base64.b64decode(payload)
        except (ValueError, TypeError) as exc:
            raise SceneLoadError(f"Could not decode embedded buffer in {gltf_path}: {exc}") from exc

    bin_path = os.path.join(os.path.dirname(os.path.abspath(gltf_path)), urllib.parse.unquote(uri))
    try:
        with open(bin_path, 'rb') as f:
            return f.read()
    except OSError as exc:
        raise SceneLoadError(f"Could not read buffer {bin_path}: {exc}") from exc


def _resolve_buffers(gltf: pygltflib.GLTF2, gltf_path: str) -> List[bytes]:
    buffers: List[bytes] = []
    for i, buffer in enumerate(gltf.buffers or []):
        if buffer.uri:
            blob = _read_buffer_uri(gltf_path, buffer.uri)
        else:
            blob = gltf.binary_blob()
            if blob is None:
                if buffer.byteLength:
                    raise SceneLoadError(f"Buffer {i} has no URI and {gltf_path} has no binary chunk.")
                blob = b""
        if buffer.byteLength is not None and len(blob) < buffer.byteLength:
            raise SceneLoadError(
                f"Buffer {i} is truncated: expected {buffer.byteLength} bytes, got {len(blob)}")
        buffers.append(bytes(blob))
    return buffers


@dataclass
class GltfScene:
    """A loaded glTF document plus its resolved binary buffers."""
    path: str
    document: pygltflib.GLTF2
    buffers: List[bytes]

    @property
    def stem(self) -> str:
        return os.path.splitext(os.path.basename(self.path))[0]

    def reader(self) -> "AccessorReader":
        return AccessorReader(self.document, self.buffers)


def load_scene(gltf_path: str) -> GltfScene:
    """Load a .gltf or .glb file and all buffers it references."""
    if not os.path.isfile(gltf_path):
        raise SceneLoadError(f"Input glTF/GLB not found: {gltf_path}")
    if os.path.splitext(gltf_path)[1].lower() not in ('.gltf', '.glb'):
        raise SceneLoadError(f"Not a .gltf or .glb file: {gltf_path}")

    try:
        gltf = pygltflib.GLTF2.load(gltf_path)
    except Exception as exc:
        raise SceneLoadError(f"Failed to parse {gltf_path}: {exc}") from exc
    if gltf is None:
        raise SceneLoadError(f"Failed to parse {gltf_path}")

    return GltfScene(path=gltf_path, document=gltf, buffers=_resolve_buffers(gltf, gltf_path))


# ----------------- Accessors -----------------

class AccessorReader:
    """Reads glTF accessors into numpy arrays (handles byteStride)."""

    def __init__(self, gltf: pygltflib.GLTF2, buffers: List[bytes]):
        self.gltf = gltf
        self.buffers = buffers

    def read(self, accessor_id: int) -> numpy.ndarray:
        try:
            accessor = self.gltf.accessors[accessor_id]
            dtype = numpy.dtype(COMPONENT_DTYPES[accessor.componentType]).newbyteorder('<')
            num_components = TYPE_COMPONENTS[accessor.type]
        except (IndexError, KeyError, TypeError) as exc:
            raise MalformedMesh(f"Invalid accessor {accessor_id}: {exc}") from exc

        if accessor.sparse is not None:
            raise MalformedMesh(f"Sparse accessor {accessor_id} is not supported")

        count = accessor.count
        if accessor.bufferView is None:
            data = numpy.zeros(count * num_components, dtype=dtype)
        else:
            try:
                buffer_view = self.gltf.bufferViews[accessor.bufferView]
                blob = self.buffers[buffer_view.buffer]
            except (IndexError, TypeError) as exc:
                raise MalformedMesh(f"Accessor {accessor_id} points at a missing buffer: {exc}") from exc

            offset = (buffer_view.byteOffset or 0) + (accessor.byteOffset or 0)
            element_size = dtype.itemsize * num_components
            stride = buffer_view.byteStride or element_size
            try:
                if stride == element_size:
                    data = numpy.frombuffer(blob, dtype=dtype, count=count * num_components, offset=offset)
                else:
                    # interleaved vertex data
                    data = numpy.ndarray(
                        shape=(count, num_components),
                        dtype=dtype,
                        buffer=blob,
                        offset=offset,
                        strides=(stride, dtype.itemsize),
                    ).copy()
            except (ValueError, TypeError) as exc:
                raise MalformedMesh(f"Accessor {accessor_id} reads past the end of its buffer: {exc}") from exc

        return data.reshape(count, num_components) if num_components > 1 else data.reshape(count)


# ----------------- Mesh extraction -----------------

def _position_accessor(primitive: pygltflib.Primitive) -> Optional[int]:
    # pygltflib loads an empty "attributes" object back as a plain dict
    attributes = primitive.attributes
    if attributes is None:
        return None
    if isinstance(attributes, dict):
        return attributes.get("POSITION")
    return getattr(attributes, "POSITION", None)


def extract_mesh(mesh: pygltflib.Mesh, reader: AccessorReader,
                 log: Optional[Callable[[str], None]] = None) -> RawMesh:
    """Merge every triangle primitive of *mesh* into one local-space RawMesh.

    Vertices are concatenated without deduplication. Each primitive's indices are
    offset by the vertices already appended so they keep addressing their own
    positions. Raises MalformedMesh when an index stream is not a multiple of 3
    or points outside its primitive.
    """
    _log = log or print
    label = mesh.name or PLACEHOLDER_MESH_NAME

    vertex_parts: List[numpy.ndarray] = []
    triangle_parts: List[numpy.ndarray] = []
    base = 0

    for p_idx, primitive in enumerate(mesh.primitives or []):
        mode = TRIANGLES if primitive.mode is None else primitive.mode
        if mode != TRIANGLES:
            _log(f"Warning: {label} primitive {p_idx} uses mode {mode}, only triangles are supported; skipped.")
            continue

        position_id = _position_accessor(primitive)
        if position_id is None:
            continue
        positions = reader.read(position_id).astype(numpy.float64).reshape(-1, 3)

        if primitive.indices is None:
            _log(f"Warning: {label} primitive {p_idx} has no indices; its vertices carry no triangles.")
        else:
            indices = reader.read(primitive.indices).astype(numpy.int64).reshape(-1)
            if len(indices) % 3 != 0:
                raise MalformedMesh(
                    f"{label} primitive {p_idx}: index count {len(indices)} is not a multiple of 3")
            if len(indices) and (indices.min() < 0 or indices.max() >= len(positions)):
                raise MalformedMesh(
                    f"{label} primitive {p_idx}: index out of range for {len(positions)} vertices")
            triangle_parts.append(indices.reshape(-1, 3) + base)

        vertex_parts.append(positions)
        base += len(positions)

    vertices = numpy.concatenate(vertex_parts) if vertex_parts else numpy.zeros((0, 3), dtype=numpy.float64)
    triangles = numpy.concatenate(triangle_parts) if triangle_parts else numpy.zeros((0, 3), dtype=numpy.int64)

    distinct = ((triangles[:, 0] != triangles[:, 1])
                & (triangles[:, 1] != triangles[:, 2])
                & (triangles[:, 0] != triangles[:, 2]))
    if not distinct.all():
        _log(f"Warning: {label}: dropped {int((~distinct).sum())} degenerate triangle(s).")
        triangles = triangles[distinct]

    return RawMesh(vertices=vertices, triangles=triangles.astype(numpy.uint32))


# ----------------- Scene walk -----------------

def _node_mesh(gltf: pygltflib.GLTF2, node_index: int):
    """(node, mesh or None) for a scene node index; dangling references are MalformedMesh."""
    nodes = gltf.nodes or []
    if not isinstance(node_index, int) or not 0 <= node_index < len(nodes):
        raise MalformedMesh(f"scene references missing node {node_index} ({len(nodes)} nodes)")
    node = nodes[node_index]
    if node.mesh is None:
        return node, None

    meshes = gltf.meshes or []
    if not isinstance(node.mesh, int) or not 0 <= node.mesh < len(meshes):
        raise MalformedMesh(f"node references missing mesh {node.mesh} ({len(meshes)} meshes)")
    return node, meshes[node.mesh]


def walk_scene(scene: GltfScene, log: Optional[Callable[[str], None]] = None) -> SceneWalk:
    """Collect world-space meshes from the direct node list of every scene.

    Child nodes are not visited; only nodes listed in ``scene.nodes`` count.
    """
    _log = log or print
    gltf = scene.document
    reader = scene.reader()
    walk = SceneWalk()

    for scene_def in gltf.scenes or []:
        for node_index in scene_def.nodes or []:
            try:
                node, mesh = _node_mesh(gltf, node_index)
            except MalformedMesh as exc:
                unit = f"node {node_index}"
                walk.failures.append((unit, str(exc)))
                _log(f"Error resolving {unit}: {exc}")
                continue
            if mesh is None:
                continue

            name = mesh.name or PLACEHOLDER_MESH_NAME
            try:
                raw = extract_mesh(mesh, reader, _log)
            except MalformedMesh as exc:
                unit = f"mesh {name} (node {node_index})"
                walk.failures.append((unit, str(exc)))
                _log(f"Error extracting {unit}: {exc}")
                continue

            world = node_transform(node)
            walk.meshes.append(WorldMesh(name=name, vertices=world(raw.vertices), triangles=raw.triangles))

    return walk
