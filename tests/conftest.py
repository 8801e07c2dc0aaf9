import base64
import os

import numpy
import pygltflib
import pytest

TRIANGLE_POSITIONS = numpy.array([[0, 0, 0], [1, 0, 0], [0, 1, 0]], dtype=numpy.float32)
TRIANGLE_INDICES = numpy.array([0, 1, 2], dtype=numpy.uint32)

CUBE_POSITIONS = numpy.array([
    [0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0],
    [0, 0, 1], [1, 0, 1], [1, 1, 1], [0, 1, 1],
], dtype=numpy.float32)
CUBE_INDICES = numpy.array([
    0, 2, 1, 0, 3, 2,
    4, 5, 6, 4, 6, 7,
    0, 1, 5, 0, 5, 4,
    1, 2, 6, 1, 6, 5,
    2, 3, 7, 2, 7, 6,
    3, 0, 4, 3, 4, 7,
], dtype=numpy.uint32)


def _build_document(nodes, extra_nodes=()):
    """nodes: list of dicts with keys
    name, primitives [(positions, indices-or-None)], translation, rotation, scale, matrix, children.
    Every entry becomes a top-level scene node; extra_nodes are added but not listed in the scene.
    """
    blob = bytearray()
    accessors = []
    views = []

    def add_accessor(array, component_type, type_, target):
        data = array.tobytes()
        while len(blob) % 4:
            blob.append(0)
        views.append(pygltflib.BufferView(buffer=0, byteOffset=len(blob), byteLength=len(data), target=target))
        blob.extend(data)
        count = len(array) if array.ndim > 1 else array.size
        accessors.append(pygltflib.Accessor(
            bufferView=len(views) - 1, componentType=component_type, count=count, type=type_))
        return len(accessors) - 1

    gltf_nodes = []
    meshes = []
    for entry in list(nodes) + list(extra_nodes):
        node = pygltflib.Node(name=entry.get("node_name"))
        if "primitives" in entry:
            primitives = []
            for positions, indices in entry["primitives"]:
                attributes = pygltflib.Attributes()
                if positions is not None:
                    attributes.POSITION = add_accessor(
                        numpy.asarray(positions, dtype=numpy.float32).reshape(-1, 3),
                        pygltflib.FLOAT, pygltflib.VEC3, pygltflib.ARRAY_BUFFER)
                prim = pygltflib.Primitive(attributes=attributes)
                if indices is not None:
                    prim.indices = add_accessor(
                        numpy.asarray(indices, dtype=numpy.uint32).reshape(-1),
                        pygltflib.UNSIGNED_INT, pygltflib.SCALAR, pygltflib.ELEMENT_ARRAY_BUFFER)
                primitives.append(prim)
            meshes.append(pygltflib.Mesh(name=entry.get("name"), primitives=primitives))
            node.mesh = len(meshes) - 1
        for key in ("translation", "rotation", "scale", "matrix", "children"):
            if key in entry:
                setattr(node, key, list(entry[key]))
        gltf_nodes.append(node)

    while len(blob) % 4:
        blob.append(0)

    gltf = pygltflib.GLTF2(
        scene=0,
        scenes=[pygltflib.Scene(nodes=list(range(len(nodes))))],
        nodes=gltf_nodes,
        meshes=meshes,
        accessors=accessors,
        bufferViews=views,
        buffers=[pygltflib.Buffer(byteLength=len(blob))] if blob else [],
    )
    return gltf, bytes(blob)


@pytest.fixture
def build_glb(tmp_path):
    """Write a .glb built from node dicts and return its path."""
    def _build(nodes, filename="scene.glb", extra_nodes=()):
        gltf, blob = _build_document(nodes, extra_nodes)
        if blob:
            gltf.set_binary_blob(blob)
        path = os.path.join(str(tmp_path), filename)
        gltf.save(path)
        return path
    return _build


@pytest.fixture
def build_gltf(tmp_path):
    """Write a .gltf with an embedded base64 buffer and return its path."""
    def _build(nodes, filename="scene.gltf", extra_nodes=()):
        gltf, blob = _build_document(nodes, extra_nodes)
        if blob:
            gltf.buffers[0].uri = "data:application/octet-stream;base64," + base64.b64encode(blob).decode("ascii")
        path = os.path.join(str(tmp_path), filename)
        gltf.save(path)
        return path
    return _build


def single_hull_service(vertices, triangles, params):
    """Deterministic stand-in for V-HACD: the whole mesh is one hull."""
    return [(numpy.array(vertices), numpy.array(triangles))]


def per_triangle_service(vertices, triangles, params):
    """One hull per input triangle, up to params.max_hulls."""
    hulls = []
    for tri in numpy.asarray(triangles)[:params.max_hulls]:
        hulls.append((numpy.asarray(vertices)[tri], numpy.array([[0, 1, 2]])))
    return hulls
