"""Error taxonomy for the glTF -> convex hull converter.

Fatal:      SceneLoadError (and WriteError when the output directory itself
            cannot be prepared).
Per unit:   MalformedMesh (one mesh), DecompositionError (one group),
            WriteError (one file). These are reported and the run continues.
"""


class HullCompilerError(Exception):
    """Base class for every error raised by the converter."""


class SceneLoadError(HullCompilerError):
    """The input scene could not be read or parsed."""


class MalformedMesh(HullCompilerError, ValueError):
    """A mesh's index or position data cannot form valid triangles."""


class DecompositionError(HullCompilerError, RuntimeError):
    """The convex decomposition service failed for one mesh group."""


class WriteError(HullCompilerError, OSError):
    """An output file could not be written."""
