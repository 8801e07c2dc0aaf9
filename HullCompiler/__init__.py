"""glTF/GLB scene -> convex collision hulls (OBJ or JSON)."""

from .errors import DecompositionError, HullCompilerError, MalformedMesh, SceneLoadError, WriteError  # noqa: F401
from .settings import ConversionSettings, DecompositionParameters, FillMode  # noqa: F401
from .gltfscene import RawMesh, WorldMesh, extract_mesh, load_scene, walk_scene  # noqa: F401
from .hulls import ConvexHull, MeshGroup, combine_meshes, decompose_group, decompose_groups, group_meshes  # noqa: F401
from .writers import emit_json_document, emit_obj_files  # noqa: F401
from .glbtohulls import ConversionReport, HullConverterCLI, main  # noqa: F401

__version__ = "1.0.0"
