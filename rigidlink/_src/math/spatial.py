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

"""Double precision spatial algebra helpers used by the engine kernels.

Spatial vectors are stored as ``(linear, angular)`` for twists and
``(force, torque)`` for wrenches. World twists are expressed at the world
origin, so the velocity of a point ``x`` moving with a twist ``(v, w)`` is
``v + w x x``.
"""

from __future__ import annotations

import warp as wp

from ..core.types import float64, quat, spatial_matrix, spatial_vector, transform, vec3

wp.set_module_options({"enable_backward": False})


@wp.func
def twist(top: vec3, bottom: vec3) -> spatial_vector:
    """Assemble a spatial vector from its linear and angular parts."""
    return spatial_vector(top[0], top[1], top[2], bottom[0], bottom[1], bottom[2])


@wp.func
def twist_top(x: spatial_vector) -> vec3:
    return vec3(x[0], x[1], x[2])


@wp.func
def twist_bottom(x: spatial_vector) -> vec3:
    return vec3(x[3], x[4], x[5])


@wp.func
def identity_transform() -> transform:
    zero = float64(0.0)
    return transform(vec3(zero, zero, zero), quat(zero, zero, zero, float64(1.0)))


@wp.func
def spatial_cross_motion(a: spatial_vector, b: spatial_vector) -> spatial_vector:
    """Motion cross product ``a x b`` of two twists.

    .. math::
       (v_1, \\omega_1) \\times (v_2, \\omega_2) =
       (\\omega_1 \\times v_2 + v_1 \\times \\omega_2, \\omega_1 \\times \\omega_2)
    """
    v1 = twist_top(a)
    w1 = twist_bottom(a)
    v2 = twist_top(b)
    w2 = twist_bottom(b)
    return twist(wp.cross(w1, v2) + wp.cross(v1, w2), wp.cross(w1, w2))


@wp.func
def spatial_cross_force(a: spatial_vector, f: spatial_vector) -> spatial_vector:
    """Force cross product ``a x* f`` of a twist and a wrench."""
    v = twist_top(a)
    w = twist_bottom(a)
    lin = twist_top(f)
    ang = twist_bottom(f)
    return twist(wp.cross(w, lin), wp.cross(w, ang) + wp.cross(v, lin))


@wp.func
def point_velocity(x: spatial_vector, p: vec3) -> vec3:
    """Linear velocity of the world point ``p`` moving with the world twist ``x``."""
    return twist_top(x) + wp.cross(twist_bottom(x), p)


@wp.func
def orthonormal_basis(n: vec3):
    """Build two unit tangents spanning the plane orthogonal to ``n``.

    For ``n = +z`` the tangents are the world ``x`` and ``y`` axes.
    """
    one = float64(1.0)
    b1 = vec3()
    b2 = vec3()
    if n[2] < float64(0.0):
        a = one / (one - n[2])
        b = n[0] * n[1] * a
        b1[0] = one - n[0] * n[0] * a
        b1[1] = -b
        b1[2] = n[0]

        b2[0] = b
        b2[1] = n[1] * n[1] * a - one
        b2[2] = -n[1]
    else:
        a = one / (one + n[2])
        b = -n[0] * n[1] * a
        b1[0] = one - n[0] * n[0] * a
        b1[1] = b
        b1[2] = -n[0]

        b2[0] = b
        b2[1] = one - n[1] * n[1] * a
        b2[2] = -n[1]

    return b1, b2


@wp.func
def transform_spatial_inertia(t: transform, I: spatial_matrix) -> spatial_matrix:
    """Express a spatial inertia given in frame ``t`` at the world origin."""
    t_inv = wp.transform_inverse(t)

    R = wp.quat_to_matrix(wp.transform_get_rotation(t_inv))
    p = wp.transform_get_translation(t_inv)
    S = wp.skew(p) @ R
    z = float64(0.0)

    # fmt: off
    T = spatial_matrix(
        R[0, 0], R[0, 1], R[0, 2], S[0, 0], S[0, 1], S[0, 2],
        R[1, 0], R[1, 1], R[1, 2], S[1, 0], S[1, 1], S[1, 2],
        R[2, 0], R[2, 1], R[2, 2], S[2, 0], S[2, 1], S[2, 2],
        z,       z,       z,       R[0, 0], R[0, 1], R[0, 2],
        z,       z,       z,       R[1, 0], R[1, 1], R[1, 2],
        z,       z,       z,       R[2, 0], R[2, 1], R[2, 2],
    )
    # fmt: on

    return wp.transpose(T) @ I @ T


__all__ = [
    "identity_transform",
    "orthonormal_basis",
    "point_velocity",
    "spatial_cross_force",
    "spatial_cross_motion",
    "transform_spatial_inertia",
    "twist",
    "twist_bottom",
    "twist_top",
]
