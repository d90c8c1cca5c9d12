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

"""Camera view and projection matrices.

All matrices are returned as 16 ``float32`` values in column-major order, the
layout OpenGL-style renderers consume directly. They describe a camera, not a
rigid body, and are never represented as :class:`Pose`.
"""

from __future__ import annotations

import numpy as np

from ..core.errors import InvalidArgumentError

MATRIX_DTYPE = np.float32


def _normalized(v: np.ndarray, name: str) -> np.ndarray:
    n = np.linalg.norm(v)
    if n < 1e-12:
        raise InvalidArgumentError(f"{name} must be non-zero")
    return v / n


def _euler_zyx_matrix(z: float, y: float, x: float) -> np.ndarray:
    """Rotation ``Rz(z) Ry(y) Rx(x)``."""
    cz, sz = np.cos(z), np.sin(z)
    cy, sy = np.cos(y), np.sin(y)
    cx, sx = np.cos(x), np.sin(x)
    rz = np.array([[cz, -sz, 0.0], [sz, cz, 0.0], [0.0, 0.0, 1.0]])
    ry = np.array([[cy, 0.0, sy], [0.0, 1.0, 0.0], [-sy, 0.0, cy]])
    rx = np.array([[1.0, 0.0, 0.0], [0.0, cx, -sx], [0.0, sx, cx]])
    return rz @ ry @ rx


def compute_view_matrix(eye, target, up) -> np.ndarray:
    """Look-at view matrix of a camera at ``eye`` looking towards ``target``.

    Args:
        eye: Camera position in world coordinates.
        target: Point the camera looks at.
        up: Approximate up direction; it need not be orthogonal to the view direction.

    Returns:
        np.ndarray: 16 column-major ``float32`` values.
    """
    eye = np.asarray(eye, dtype=np.float64)
    target = np.asarray(target, dtype=np.float64)
    up = _normalized(np.asarray(up, dtype=np.float64), "up vector")

    f = _normalized(target - eye, "view direction")
    s = _normalized(np.cross(f, up), "camera side vector")
    u = np.cross(s, f)

    m = np.zeros(16, dtype=np.float64)
    m[0], m[4], m[8] = s
    m[1], m[5], m[9] = u
    m[2], m[6], m[10] = -f
    m[12] = -np.dot(s, eye)
    m[13] = -np.dot(u, eye)
    m[14] = np.dot(f, eye)
    m[15] = 1.0
    return m.astype(MATRIX_DTYPE)


def compute_view_matrix_from_yaw_pitch_roll(
    target,
    distance: float,
    yaw: float,
    pitch: float,
    roll: float,
    z_axis_up: bool = False,
) -> np.ndarray:
    """Orbit-camera view matrix around ``target``.

    Args:
        target: Point the camera orbits and looks at.
        distance: Distance from the camera to ``target``.
        yaw: Rotation about the up axis [deg].
        pitch: Elevation angle [deg].
        roll: Accepted for interface compatibility. The orbit camera keeps its
            horizon level, so the value does not affect the result.
        z_axis_up: ``True`` for a z-up world, ``False`` for a y-up world.

    Returns:
        np.ndarray: 16 column-major ``float32`` values.
    """
    del roll
    target = np.asarray(target, dtype=np.float64)
    yaw_rad = np.deg2rad(yaw)
    pitch_rad = np.deg2rad(pitch)

    eye = np.zeros(3, dtype=np.float64)
    if z_axis_up:
        forward_axis = 1
        up = np.array([0.0, 0.0, 1.0])
        rot = _euler_zyx_matrix(yaw_rad, 0.0, pitch_rad)
    else:
        forward_axis = 2
        up = np.array([0.0, 1.0, 0.0])
        rot = _euler_zyx_matrix(0.0, yaw_rad, -pitch_rad)

    eye[forward_axis] = -distance
    eye = rot @ eye
    up = rot @ up
    return compute_view_matrix(eye + target, target, up)


def compute_projection_matrix(left: float, right: float, bottom: float, top: float, near: float, far: float):
    """Perspective frustum projection matrix (column-major ``float32``)."""
    if right == left or top == bottom or far == near:
        raise InvalidArgumentError("projection frustum has zero extent")
    m = np.zeros(16, dtype=np.float64)
    m[0] = 2.0 * near / (right - left)
    m[5] = 2.0 * near / (top - bottom)
    m[8] = (right + left) / (right - left)
    m[9] = (top + bottom) / (top - bottom)
    m[10] = -(far + near) / (far - near)
    m[11] = -1.0
    m[14] = -(2.0 * far * near) / (far - near)
    return m.astype(MATRIX_DTYPE)


def compute_projection_matrix_fov(fov: float, aspect: float, near: float, far: float):
    """Perspective projection from a vertical field of view in degrees."""
    if aspect == 0.0 or far == near:
        raise InvalidArgumentError("aspect must be non-zero and near must differ from far")
    y_scale = 1.0 / np.tan(np.deg2rad(fov) / 2.0)
    x_scale = y_scale / aspect
    m = np.zeros(16, dtype=np.float64)
    m[0] = x_scale
    m[5] = y_scale
    m[10] = (near + far) / (near - far)
    m[11] = -1.0
    m[14] = (2.0 * far * near) / (near - far)
    return m.astype(MATRIX_DTYPE)


def view_matrix_to_pose(view_matrix):
    """Recover the camera pose from a column-major view matrix.

    The camera looks along its local ``-z`` axis with ``+y`` up.
    """
    from . import Pose, quat_from_matrix  # noqa: PLC0415

    m = np.asarray(view_matrix, dtype=np.float64).reshape(-1)
    if m.shape[0] != 16:
        raise InvalidArgumentError(f"view matrix must have 16 elements, got {m.shape[0]}")
    view = m.reshape(4, 4).T
    rot = view[:3, :3].T
    position = -rot @ view[:3, 3]
    # Orthonormalize to absorb float32 rounding of the stored matrix.
    u, _, vt = np.linalg.svd(rot)
    return Pose(position, quat_from_matrix(u @ vt))
