"""Node transform helpers: glTF TRS -> world-space point transform.

Quaternions are always glTF ordered: (x, y, z, w).

A node's transform is applied scale first, then rotation, then translation,
i.e. p' = T + R @ (S * p). The rotation is routed through an intrinsic Z-Y-X
Euler triple (R = Rz(yaw) @ Ry(pitch) @ Rx(roll)).
"""

from __future__ import annotations

import math
from typing import Sequence, Tuple

import numpy

IDENTITY_ROTATION = (0.0, 0.0, 0.0, 1.0)  # x, y, z, w
_GIMBAL_EPS = 1e-12


def quaternion_to_matrix(q: Sequence[float]) -> numpy.ndarray:
    """3x3 rotation matrix for an (x, y, z, w) quaternion."""
    q = numpy.asarray(q, dtype=numpy.float64)
    norm = numpy.linalg.norm(q)
    if norm <= 0.0:
        return numpy.eye(3)
    x, y, z, w = q / norm
    xx, yy, zz = x*x, y*y, z*z
    xy, xz, yz = x*y, x*z, y*z
    wx, wy, wz = w*x, w*y, w*z

    return numpy.array([
        [1.0 - 2.0*(yy + zz),     2.0*(xy - wz),         2.0*(xz + wy)],
        [    2.0*(xy + wz),   1.0 - 2.0*(xx + zz),       2.0*(yz - wx)],
        [    2.0*(xz - wy),       2.0*(yz + wx),     1.0 - 2.0*(xx + yy)],
    ], dtype=numpy.float64)


def quaternion_to_euler(q: Sequence[float]) -> Tuple[float, float, float]:
    """Return (roll, pitch, yaw) in radians for an (x, y, z, w) quaternion."""
    m = quaternion_to_matrix(q)
    cos_pitch = math.hypot(m[0, 0], m[1, 0])
    pitch = math.atan2(-m[2, 0], cos_pitch)
    if cos_pitch > _GIMBAL_EPS:
        yaw = math.atan2(m[1, 0], m[0, 0])
        # roll from Rz(yaw)^T @ m, whose entries stay O(1) near the lock
        cy, sy = math.cos(yaw), math.sin(yaw)
        roll = math.atan2(sy*m[0, 2] - cy*m[1, 2], cy*m[1, 1] - sy*m[0, 1])
    else:
        # Gimbal lock: only yaw - roll (or yaw + roll) is observable, pin roll to 0.
        roll = 0.0
        yaw = math.atan2(-m[0, 1], m[1, 1])
    return roll, pitch, yaw


def euler_to_matrix(roll: float, pitch: float, yaw: float) -> numpy.ndarray:
    """Rz(yaw) @ Ry(pitch) @ Rx(roll)."""
    cr, sr = math.cos(roll), math.sin(roll)
    cp, sp = math.cos(pitch), math.sin(pitch)
    cy, sy = math.cos(yaw), math.sin(yaw)

    return numpy.array([
        [cy*cp,  cy*sp*sr - sy*cr,  cy*sp*cr + sy*sr],
        [sy*cp,  sy*sp*sr + cy*cr,  sy*sp*cr - cy*sr],
        [  -sp,             cp*sr,             cp*cr],
    ], dtype=numpy.float64)


def matrix_to_quaternion(rot: numpy.ndarray) -> Tuple[float, float, float, float]:
    """(x, y, z, w) quaternion for a proper 3x3 rotation matrix."""
    m = numpy.asarray(rot, dtype=numpy.float64)
    trace = m[0, 0] + m[1, 1] + m[2, 2]
    if trace > 0.0:
        s = math.sqrt(trace + 1.0) * 2.0
        w = 0.25 * s
        x = (m[2, 1] - m[1, 2]) / s
        y = (m[0, 2] - m[2, 0]) / s
        z = (m[1, 0] - m[0, 1]) / s
    elif m[0, 0] > m[1, 1] and m[0, 0] > m[2, 2]:
        s = math.sqrt(1.0 + m[0, 0] - m[1, 1] - m[2, 2]) * 2.0
        w = (m[2, 1] - m[1, 2]) / s
        x = 0.25 * s
        y = (m[0, 1] + m[1, 0]) / s
        z = (m[0, 2] + m[2, 0]) / s
    elif m[1, 1] > m[2, 2]:
        s = math.sqrt(1.0 + m[1, 1] - m[0, 0] - m[2, 2]) * 2.0
        w = (m[0, 2] - m[2, 0]) / s
        x = (m[0, 1] + m[1, 0]) / s
        y = 0.25 * s
        z = (m[1, 2] + m[2, 1]) / s
    else:
        s = math.sqrt(1.0 + m[2, 2] - m[0, 0] - m[1, 1]) * 2.0
        w = (m[1, 0] - m[0, 1]) / s
        x = (m[0, 2] + m[2, 0]) / s
        y = (m[1, 2] + m[2, 1]) / s
        z = 0.25 * s
    return x, y, z, w


def decompose_matrix(matrix: Sequence[float]) -> Tuple[numpy.ndarray, Tuple[float, float, float, float], numpy.ndarray]:
    """Split a glTF column-major 4x4 matrix into (translation, rotation, scale).

    A mirroring matrix (negative determinant) is represented by a negative x scale.
    """
    # glTF stores column-major; transpose to row-major
    m = numpy.array(matrix, dtype=numpy.float64).reshape(4, 4).T
    translation = m[:3, 3].copy()
    basis = m[:3, :3].copy()

    scale = numpy.linalg.norm(basis, axis=0)
    if numpy.linalg.det(basis) < 0.0:
        scale[0] = -scale[0]

    safe = numpy.where(scale == 0.0, 1.0, scale)
    rot = basis / safe
    return translation, matrix_to_quaternion(rot), scale


class PointTransform:
    """World transform of one node: p' = translation + R @ (scale * p)."""

    def __init__(self, translation, rotation: numpy.ndarray, scale):
        self.translation = numpy.asarray(translation, dtype=numpy.float64).reshape(3)
        self.rotation = numpy.asarray(rotation, dtype=numpy.float64).reshape(3, 3)
        self.scale = numpy.asarray(scale, dtype=numpy.float64).reshape(3)

    @property
    def matrix(self) -> numpy.ndarray:
        """The same transform as a 4x4 row-major matrix."""
        m = numpy.eye(4, dtype=numpy.float64)
        m[:3, :3] = self.rotation @ numpy.diag(self.scale)
        m[:3, 3] = self.translation
        return m

    def __call__(self, points) -> numpy.ndarray:
        """points: (3,) or (N, 3). Returns transformed points of the same shape."""
        pts = numpy.asarray(points, dtype=numpy.float64)
        single = pts.ndim == 1
        pts = pts.reshape(-1, 3)
        out = (pts * self.scale) @ self.rotation.T + self.translation
        return out[0] if single else out


def compose_transform(translation: Sequence[float] = (0.0, 0.0, 0.0),
                      rotation: Sequence[float] = IDENTITY_ROTATION,
                      scale: Sequence[float] = (1.0, 1.0, 1.0)) -> PointTransform:
    """Build the scale -> rotate -> translate transform for a TRS triple."""
    roll, pitch, yaw = quaternion_to_euler(rotation)
    return PointTransform(translation, euler_to_matrix(roll, pitch, yaw), scale)


def node_transform(node) -> PointTransform:
    """World transform for a top-level pygltflib node (TRS or matrix)."""
    if node.matrix:
        t, r, s = decompose_matrix(node.matrix)
        return compose_transform(t, r, s)

    t = node.translation or [0.0, 0.0, 0.0]
    r = node.rotation or list(IDENTITY_ROTATION)  # x, y, z, w
    s = node.scale or [1.0, 1.0, 1.0]
    return compose_transform(t, r, s)
