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

"""Warp kernels evaluating the kinematics and dynamics of one articulation.

Internal joint ``i`` moves internal body ``i``. Joint ``0`` is the root joint
attaching the base to the world; its parent is ``-1``. Every other joint's
parent body precedes it. Twists are expressed at the world origin (see
:mod:`rigidlink._src.math.spatial`).
"""

from __future__ import annotations

import warp as wp

from ..core.types import float64, mat33, quat, spatial_matrix, spatial_vector, transform, vec3
from ..math.spatial import (
    identity_transform,
    orthonormal_basis,
    point_velocity,
    spatial_cross_force,
    spatial_cross_motion,
    transform_spatial_inertia,
    twist,
    twist_bottom,
)
from ..sim.joints import JointType

wp.set_module_options({"enable_backward": False})


@wp.func
def jcalc_transform(
    jtype: int,
    axis: vec3,
    joint_q: wp.array(dtype=float64),
    q_start: int,
) -> transform:
    """Transform across a joint, from the joint frame to the child link frame."""
    zero = float64(0.0)
    X_j = identity_transform()

    if jtype == JointType.REVOLUTE:
        X_j = transform(vec3(zero, zero, zero), wp.quat_from_axis_angle(axis, joint_q[q_start]))

    elif jtype == JointType.PRISMATIC:
        X_j = transform(axis * joint_q[q_start], quat(zero, zero, zero, float64(1.0)))

    elif jtype == JointType.SPHERICAL:
        r = quat(joint_q[q_start + 0], joint_q[q_start + 1], joint_q[q_start + 2], joint_q[q_start + 3])
        X_j = transform(vec3(zero, zero, zero), wp.normalize(r))

    elif jtype == JointType.PLANAR:
        b1, b2 = orthonormal_basis(axis)
        p = b1 * joint_q[q_start + 0] + b2 * joint_q[q_start + 1]
        X_j = transform(p, wp.quat_from_axis_angle(axis, joint_q[q_start + 2]))

    elif jtype == JointType.FREE:
        p = vec3(joint_q[q_start + 0], joint_q[q_start + 1], joint_q[q_start + 2])
        r = quat(joint_q[q_start + 3], joint_q[q_start + 4], joint_q[q_start + 5], joint_q[q_start + 6])
        X_j = transform(p, wp.normalize(r))

    return X_j


@wp.func
def jcalc_motion_subspace(
    jtype: int,
    axis: vec3,
    X_wpj: transform,
    X_wc: transform,
    com_world: vec3,
    qd_start: int,
    # outputs
    joint_S: wp.array(dtype=spatial_vector),
):
    """Compute the motion subspace (world twist per unit joint velocity) of a joint.

    Spherical joint velocities are angular velocities in the parent joint frame.
    Free joint velocities are the world velocity of the center of mass followed
    by the world angular velocity.
    """
    zero = float64(0.0)
    one = float64(1.0)
    z3 = vec3(zero, zero, zero)
    p = wp.transform_get_translation(X_wpj)

    if jtype == JointType.REVOLUTE:
        a = wp.transform_vector(X_wpj, axis)
        joint_S[qd_start] = twist(wp.cross(p, a), a)

    elif jtype == JointType.PRISMATIC:
        joint_S[qd_start] = twist(wp.transform_vector(X_wpj, axis), z3)

    elif jtype == JointType.SPHERICAL:
        e0 = wp.transform_vector(X_wpj, vec3(one, zero, zero))
        e1 = wp.transform_vector(X_wpj, vec3(zero, one, zero))
        e2 = wp.transform_vector(X_wpj, vec3(zero, zero, one))
        joint_S[qd_start + 0] = twist(wp.cross(p, e0), e0)
        joint_S[qd_start + 1] = twist(wp.cross(p, e1), e1)
        joint_S[qd_start + 2] = twist(wp.cross(p, e2), e2)

    elif jtype == JointType.PLANAR:
        b1, b2 = orthonormal_basis(axis)
        a = wp.transform_vector(X_wpj, axis)
        # the rotation axis passes through the translated joint origin
        p_c = wp.transform_get_translation(X_wc)
        joint_S[qd_start + 0] = twist(wp.transform_vector(X_wpj, b1), z3)
        joint_S[qd_start + 1] = twist(wp.transform_vector(X_wpj, b2), z3)
        joint_S[qd_start + 2] = twist(wp.cross(p_c, a), a)

    elif jtype == JointType.FREE:
        ex = vec3(one, zero, zero)
        ey = vec3(zero, one, zero)
        ez = vec3(zero, zero, one)
        joint_S[qd_start + 0] = twist(ex, z3)
        joint_S[qd_start + 1] = twist(ey, z3)
        joint_S[qd_start + 2] = twist(ez, z3)
        joint_S[qd_start + 3] = twist(wp.cross(com_world, ex), ex)
        joint_S[qd_start + 4] = twist(wp.cross(com_world, ey), ey)
        joint_S[qd_start + 5] = twist(wp.cross(com_world, ez), ez)


@wp.kernel
def eval_articulation_fk(
    joint_count: int,
    joint_type: wp.array(dtype=int),
    joint_parent: wp.array(dtype=int),
    joint_X_p: wp.array(dtype=transform),
    joint_axis: wp.array(dtype=vec3),
    joint_q_start: wp.array(dtype=int),
    joint_qd_start: wp.array(dtype=int),
    joint_q: wp.array(dtype=float64),
    joint_qd: wp.array(dtype=float64),
    body_com: wp.array(dtype=vec3),
    # outputs
    body_q: wp.array(dtype=transform),
    body_v: wp.array(dtype=spatial_vector),
    body_qd: wp.array(dtype=spatial_vector),
    joint_S: wp.array(dtype=spatial_vector),
):
    """Forward kinematics of link frames, world twists and motion subspaces.

    ``body_v`` holds world-origin twists, ``body_qd`` holds the center of mass
    velocity and the angular velocity of every body.
    """
    for i in range(joint_count):
        parent = joint_parent[i]
        jtype = joint_type[i]

        # parent anchor frame in world space
        X_wpj = joint_X_p[i]
        v = spatial_vector()
        if parent >= 0:
            X_wpj = body_q[parent] * X_wpj
            v = body_v[parent]

        q_start = joint_q_start[i]
        qd_start = joint_qd_start[i]
        qd_end = joint_qd_start[i + 1]

        X_wc = X_wpj * jcalc_transform(jtype, joint_axis[i], joint_q, q_start)
        com_world = wp.transform_point(X_wc, body_com[i])

        jcalc_motion_subspace(jtype, joint_axis[i], X_wpj, X_wc, com_world, qd_start, joint_S)

        for k in range(qd_start, qd_end):
            v = v + joint_S[k] * joint_qd[k]

        body_q[i] = X_wc
        body_v[i] = v
        body_qd[i] = twist(point_velocity(v, com_world), twist_bottom(v))


@wp.kernel
def eval_articulation_jacobian(
    joint_count: int,
    joint_parent: wp.array(dtype=int),
    joint_qd_start: wp.array(dtype=int),
    joint_S: wp.array(dtype=spatial_vector),
    # outputs
    J: wp.array2d(dtype=float64),
):
    """Fill the world-origin Jacobian of every body by walking up its ancestor chain.

    Output shape: (joint_count * 6, dof_count)
    """
    i = wp.tid()
    row_start = i * 6

    j = i
    while j != -1:
        for dof in range(joint_qd_start[j], joint_qd_start[j + 1]):
            S = joint_S[dof]
            for k in range(6):
                J[row_start + k, dof] = S[k]

        j = joint_parent[j]


@wp.kernel
def compute_body_spatial_inertia(
    body_inertia: wp.array(dtype=mat33),
    body_mass: wp.array(dtype=float64),
    body_com: wp.array(dtype=vec3),
    body_q: wp.array(dtype=transform),
    # outputs
    body_I_s: wp.array(dtype=spatial_matrix),
):
    """Compute the spatial inertia of each body at the world origin."""
    tid = wp.tid()

    I_local = body_inertia[tid]
    m = body_mass[tid]
    z = float64(0.0)

    # Build spatial inertia in body COM frame
    # fmt: off
    I_m = spatial_matrix(
        m, z, z, z,             z,             z,
        z, m, z, z,             z,             z,
        z, z, m, z,             z,             z,
        z, z, z, I_local[0, 0], I_local[0, 1], I_local[0, 2],
        z, z, z, I_local[1, 0], I_local[1, 1], I_local[1, 2],
        z, z, z, I_local[2, 0], I_local[2, 1], I_local[2, 2],
    )
    # fmt: on

    X_com = transform(body_com[tid], quat(z, z, z, float64(1.0)))
    body_I_s[tid] = transform_spatial_inertia(body_q[tid] * X_com, I_m)


@wp.kernel
def eval_articulation_mass_matrix(
    body_count: int,
    body_I_s: wp.array(dtype=spatial_matrix),
    J: wp.array2d(dtype=float64),
    # outputs
    H: wp.array2d(dtype=float64),
):
    """Compute one entry of the generalized mass matrix H = J^T * M * J.

    M is block diagonal with the 6x6 world spatial inertia of every body, so
    H[i, j] sums J_b[:, i]^T * I_b * J_b[:, j] over all bodies b.
    """
    dof_i, dof_j = wp.tid()

    sum_val = float64(0.0)
    for b in range(body_count):
        I_s = body_I_s[b]
        row_start = b * 6
        for k in range(6):
            J_ik = J[row_start + k, dof_i]
            if J_ik != float64(0.0):
                for l in range(6):
                    sum_val += J_ik * I_s[k, l] * J[row_start + l, dof_j]

    H[dof_i, dof_j] = sum_val


@wp.kernel
def eval_articulation_rnea(
    joint_count: int,
    joint_type: wp.array(dtype=int),
    joint_parent: wp.array(dtype=int),
    joint_qd_start: wp.array(dtype=int),
    joint_S: wp.array(dtype=spatial_vector),
    joint_qd: wp.array(dtype=float64),
    joint_qdd: wp.array(dtype=float64),
    body_q: wp.array(dtype=transform),
    body_v: wp.array(dtype=spatial_vector),
    body_com: wp.array(dtype=vec3),
    body_I_s: wp.array(dtype=spatial_matrix),
    gravity: vec3,
    # outputs
    body_a: wp.array(dtype=spatial_vector),
    body_f: wp.array(dtype=spatial_vector),
    joint_tau: wp.array(dtype=float64),
):
    """Recursive Newton-Euler inverse dynamics.

    Gravity enters as an upward acceleration of the world. The generalized
    forces of a free root joint are the world force and the torque about the
    center of mass.
    """
    zero = float64(0.0)
    z3 = vec3(zero, zero, zero)

    # forward pass: accelerations and body wrenches
    for i in range(joint_count):
        parent = joint_parent[i]
        jtype = joint_type[i]
        qd_start = joint_qd_start[i]
        qd_end = joint_qd_start[i + 1]

        a = twist(-gravity, z3)
        v_p = spatial_vector()
        if parent >= 0:
            a = body_a[parent]
            v_p = body_v[parent]

        v_j = spatial_vector()
        for k in range(qd_start, qd_end):
            v_j = v_j + joint_S[k] * joint_qd[k]
            a = a + joint_S[k] * joint_qdd[k]

        a = a + spatial_cross_motion(v_p, v_j)

        if jtype == JointType.FREE:
            # the angular columns move with the center of mass
            v = body_v[i]
            c = wp.transform_point(body_q[i], body_com[i])
            a = a + twist(wp.cross(point_velocity(v, c), twist_bottom(v)), z3)

        if jtype == JointType.PLANAR:
            # the rotation axis moves with the in-plane translation
            v_lin = joint_S[qd_start + 0] * joint_qd[qd_start + 0] + joint_S[qd_start + 1] * joint_qd[qd_start + 1]
            v_ang = joint_S[qd_start + 2] * joint_qd[qd_start + 2]
            a = a + spatial_cross_motion(v_lin, v_ang)

        body_a[i] = a

        I_s = body_I_s[i]
        v = body_v[i]
        body_f[i] = I_s @ a + spatial_cross_force(v, I_s @ v)

    # backward pass: project wrenches onto the joints and accumulate into parents
    for r in range(joint_count):
        i = joint_count - 1 - r
        f = body_f[i]
        for k in range(joint_qd_start[i], joint_qd_start[i + 1]):
            joint_tau[k] = wp.dot(joint_S[k], f)

        parent = joint_parent[i]
        if parent >= 0:
            body_f[parent] = body_f[parent] + f
