# SPDX-FileCopyrightText: Copyright (c) 2025 The RigidLink Developers
# SPDX-License-Identifier: Apache-2.0
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Host-side conversions between the engine's raw buffers and structured poses.

Poses are a translation plus a unit quaternion in ``(x, y, z, w)`` order.
Every function is stateless; the engine and the client share them so that
both sides agree on the wire representation.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

import numpy as np

from ..core.errors import DimensionMismatchError, InvalidArgumentError
from ..core.types import FLOAT_DTYPE

EPSILON = 1e-12
"""Norm below which a quaternion is considered degenerate."""


def _as_vector(values, size: int, name: str) -> np.ndarray:
    arr = np.asarray(values, dtype=FLOAT_DTYPE).reshape(-1)
    if arr.shape[0] != size:
        raise DimensionMismatchError(f"{name} must have {size} elements, got {arr.shape[0]}")
    return arr


###
# Quaternions
###


def normalize_quat(q) -> np.ndarray:
    """Return ``q`` scaled to unit length.

    The sign is preserved: ``q`` and ``-q`` describe the same rotation and the
    caller's choice is never canonicalized.
    """
    q = _as_vector(q, 4, "quaternion")
    n = np.linalg.norm(q)
    if not np.isfinite(n) or n < EPSILON:
        raise InvalidArgumentError(f"degenerate quaternion {q.tolist()}")
    return q / n


def quat_identity() -> np.ndarray:
    return np.array([0.0, 0.0, 0.0, 1.0], dtype=FLOAT_DTYPE)


def quat_multiply(a, b) -> np.ndarray:
    """Hamilton product ``a * b`` (apply ``b`` first, then ``a``)."""
    ax, ay, az, aw = a
    bx, by, bz, bw = b
    return np.array(
        [
            aw * bx + ax * bw + ay * bz - az * by,
            aw * by - ax * bz + ay * bw + az * bx,
            aw * bz + ax * by - ay * bx + az * bw,
            aw * bw - ax * bx - ay * by - az * bz,
        ],
        dtype=FLOAT_DTYPE,
    )


def quat_conjugate(q) -> np.ndarray:
    return np.array([-q[0], -q[1], -q[2], q[3]], dtype=FLOAT_DTYPE)


def quat_rotate(q, v) -> np.ndarray:
    """Rotate the vector(s) ``v`` by the unit quaternion ``q``."""
    return np.asarray(v, dtype=FLOAT_DTYPE) @ quat_to_matrix(q).T


def quat_from_axis_angle(axis, angle: float) -> np.ndarray:
    axis = _as_vector(axis, 3, "axis")
    n = np.linalg.norm(axis)
    if n < EPSILON:
        raise InvalidArgumentError("rotation axis must be non-zero")
    s = np.sin(0.5 * angle)
    return np.concatenate([axis / n * s, [np.cos(0.5 * angle)]]).astype(FLOAT_DTYPE)


def quat_from_euler(roll: float, pitch: float, yaw: float) -> np.ndarray:
    """Quaternion of the extrinsic X-Y-Z rotation ``Rz(yaw) Ry(pitch) Rx(roll)``."""
    cr, sr = np.cos(0.5 * roll), np.sin(0.5 * roll)
    cp, sp = np.cos(0.5 * pitch), np.sin(0.5 * pitch)
    cy, sy = np.cos(0.5 * yaw), np.sin(0.5 * yaw)
    return np.array(
        [
            sr * cp * cy - cr * sp * sy,
            cr * sp * cy + sr * cp * sy,
            cr * cp * sy - sr * sp * cy,
            cr * cp * cy + sr * sp * sy,
        ],
        dtype=FLOAT_DTYPE,
    )


def quat_to_euler(q) -> np.ndarray:
    """Inverse of :func:`quat_from_euler`, returning ``(roll, pitch, yaw)``."""
    x, y, z, w = normalize_quat(q)
    roll = np.arctan2(2.0 * (w * x + y * z), 1.0 - 2.0 * (x * x + y * y))
    pitch = np.arcsin(np.clip(2.0 * (w * y - z * x), -1.0, 1.0))
    yaw = np.arctan2(2.0 * (w * z + x * y), 1.0 - 2.0 * (y * y + z * z))
    return np.array([roll, pitch, yaw], dtype=FLOAT_DTYPE)


def quat_to_matrix(q) -> np.ndarray:
    x, y, z, w = q
    return np.array(
        [
            [1.0 - 2.0 * (y * y + z * z), 2.0 * (x * y - z * w), 2.0 * (x * z + y * w)],
            [2.0 * (x * y + z * w), 1.0 - 2.0 * (x * x + z * z), 2.0 * (y * z - x * w)],
            [2.0 * (x * z - y * w), 2.0 * (y * z + x * w), 1.0 - 2.0 * (x * x + y * y)],
        ],
        dtype=FLOAT_DTYPE,
    )


def quat_from_matrix(m) -> np.ndarray:
    """Quaternion of a 3x3 rotation matrix (Shepperd's method)."""
    m = np.asarray(m, dtype=FLOAT_DTYPE)
    if m.shape != (3, 3):
        raise DimensionMismatchError(f"rotation matrix must be 3x3, got {m.shape}")
    trace = m[0, 0] + m[1, 1] + m[2, 2]
    if trace > 0.0:
        s = 2.0 * np.sqrt(trace + 1.0)
        q = [(m[2, 1] - m[1, 2]) / s, (m[0, 2] - m[2, 0]) / s, (m[1, 0] - m[0, 1]) / s, 0.25 * s]
    elif m[0, 0] > m[1, 1] and m[0, 0] > m[2, 2]:
        s = 2.0 * np.sqrt(1.0 + m[0, 0] - m[1, 1] - m[2, 2])
        q = [0.25 * s, (m[0, 1] + m[1, 0]) / s, (m[0, 2] + m[2, 0]) / s, (m[2, 1] - m[1, 2]) / s]
    elif m[1, 1] > m[2, 2]:
        s = 2.0 * np.sqrt(1.0 + m[1, 1] - m[0, 0] - m[2, 2])
        q = [(m[0, 1] + m[1, 0]) / s, 0.25 * s, (m[1, 2] + m[2, 1]) / s, (m[0, 2] - m[2, 0]) / s]
    else:
        s = 2.0 * np.sqrt(1.0 + m[2, 2] - m[0, 0] - m[1, 1])
        q = [(m[0, 2] + m[2, 0]) / s, (m[1, 2] + m[2, 1]) / s, 0.25 * s, (m[1, 0] - m[0, 1]) / s]
    return normalize_quat(q)


def quat_angular_error(current, target) -> np.ndarray:
    """Rotation vector that takes ``current`` onto ``target`` in world coordinates."""
    dq = quat_multiply(target, quat_conjugate(current))
    if dq[3] < 0.0:
        dq = -dq
    s = np.linalg.norm(dq[:3])
    if s < EPSILON:
        return 2.0 * dq[:3]
    angle = 2.0 * np.arctan2(s, dq[3])
    return dq[:3] / s * angle


def quat_integrate(q, omega, dt: float) -> np.ndarray:
    """Advance ``q`` by the angular velocity ``omega`` (expressed in the parent frame)."""
    omega = np.asarray(omega, dtype=FLOAT_DTYPE)
    dq = quat_multiply(np.concatenate([omega, [0.0]]), q)
    return normalize_quat(np.asarray(q, dtype=FLOAT_DTYPE) + 0.5 * dt * dq)


###
# Poses
###


@dataclass
class Pose:
    """A rigid transform: translation followed by a unit quaternion rotation."""

    position: np.ndarray = field(default_factory=lambda: np.zeros(3, dtype=FLOAT_DTYPE))
    """Translation ``(x, y, z)`` [m]."""

    orientation: np.ndarray = field(default_factory=quat_identity)
    """Unit quaternion ``(x, y, z, w)``."""

    def __post_init__(self):
        self.position = _as_vector(self.position, 3, "position").copy()
        self.orientation = normalize_quat(self.orientation)

    @staticmethod
    def identity() -> Pose:
        return Pose()

    @staticmethod
    def from_euler(position: Sequence[float], roll: float = 0.0, pitch: float = 0.0, yaw: float = 0.0) -> Pose:
        return Pose(position, quat_from_euler(roll, pitch, yaw))

    def __mul__(self, other: Pose) -> Pose:
        return Pose(
            self.position + quat_rotate(self.orientation, other.position),
            quat_multiply(self.orientation, other.orientation),
        )

    def inverse(self) -> Pose:
        q_inv = quat_conjugate(self.orientation)
        return Pose(-quat_rotate(q_inv, self.position), q_inv)

    def transform_point(self, p) -> np.ndarray:
        return self.position + quat_rotate(self.orientation, p)

    def transform_vector(self, v) -> np.ndarray:
        return quat_rotate(self.orientation, v)

    def to_matrix(self) -> np.ndarray:
        return pose_to_matrix(self)

    def to_array(self) -> np.ndarray:
        return pose_to_array(self)

    def is_close(self, other: Pose, atol: float = 1e-9) -> bool:
        """Compare two poses, treating ``q`` and ``-q`` as the same rotation."""
        if not np.allclose(self.position, other.position, atol=atol):
            return False
        return abs(abs(float(np.dot(self.orientation, other.orientation))) - 1.0) <= atol


def pose_to_array(pose: Pose) -> np.ndarray:
    """Pack a pose into the 7-element wire layout ``(px, py, pz, qx, qy, qz, qw)``."""
    return np.concatenate([pose.position, pose.orientation]).astype(FLOAT_DTYPE)


def pose_from_array(buf) -> Pose:
    """Unpack a 7-element buffer, renormalizing the quaternion."""
    buf = _as_vector(buf, 7, "pose buffer")
    return Pose(buf[:3], buf[3:])


def pose_to_matrix(pose: Pose) -> np.ndarray:
    """Row-major 4x4 homogeneous matrix of a pose."""
    m = np.eye(4, dtype=FLOAT_DTYPE)
    m[:3, :3] = quat_to_matrix(pose.orientation)
    m[:3, 3] = pose.position
    return m


def pose_from_matrix(m) -> Pose:
    m = np.asarray(m, dtype=FLOAT_DTYPE)
    if m.shape != (4, 4):
        raise DimensionMismatchError(f"homogeneous matrix must be 4x4, got {m.shape}")
    return Pose(m[:3, 3], quat_from_matrix(m[:3, :3]))


def velocity_from_array(buf) -> tuple[np.ndarray, np.ndarray]:
    """Split a 6-element ``(linear, angular)`` buffer."""
    buf = _as_vector(buf, 6, "velocity buffer")
    return buf[:3].copy(), buf[3:].copy()


def velocity_to_array(linear, angular) -> np.ndarray:
    return np.concatenate([_as_vector(linear, 3, "linear velocity"), _as_vector(angular, 3, "angular velocity")])


from .camera import (  # noqa: E402
    compute_projection_matrix,
    compute_projection_matrix_fov,
    compute_view_matrix,
    compute_view_matrix_from_yaw_pitch_roll,
    view_matrix_to_pose,
)

__all__ = [
    "EPSILON",
    "Pose",
    "compute_projection_matrix",
    "compute_projection_matrix_fov",
    "compute_view_matrix",
    "compute_view_matrix_from_yaw_pitch_roll",
    "normalize_quat",
    "pose_from_array",
    "pose_from_matrix",
    "pose_to_array",
    "pose_to_matrix",
    "quat_angular_error",
    "quat_conjugate",
    "quat_from_axis_angle",
    "quat_from_euler",
    "quat_from_matrix",
    "quat_identity",
    "quat_integrate",
    "quat_multiply",
    "quat_rotate",
    "quat_to_euler",
    "quat_to_matrix",
    "velocity_from_array",
    "velocity_to_array",
    "view_matrix_to_pose",
]
