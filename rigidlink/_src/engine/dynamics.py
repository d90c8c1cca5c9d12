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

"""Time stepping and inverse kinematics on top of the articulation kernels."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from ..client.config import ControlMode, InverseKinematicsOptions
from ..client.protocol import StatusType
from ..core.types import FLOAT_DTYPE
from ..math import pose_from_array, quat_angular_error, quat_integrate
from ..sim.joints import JointType
from ..utils import logger as msg
from .articulation import Articulation, CommandError

DEFAULT_IK_DAMPING = 0.1
"""Damping of the least-squares step for DOFs without an explicit value."""


def _solve(M: np.ndarray, rhs: np.ndarray) -> np.ndarray:
    try:
        x = np.linalg.solve(M, rhs)
    except np.linalg.LinAlgError as e:
        raise CommandError(StatusType.COMPUTATION_FAILED, f"singular mass matrix: {e}") from e
    if not np.all(np.isfinite(x)):
        raise CommandError(StatusType.COMPUTATION_FAILED, "forward dynamics produced non-finite accelerations")
    return x


def _motor_rows(art: Articulation, dt: float) -> tuple[list[int], np.ndarray, np.ndarray]:
    """DOF indices, target velocities and force limits of the velocity motors."""
    dofs = []
    targets = []
    limits = []
    for j, cmd in art.motors.items():
        mode = cmd["mode"]
        if mode not in (ControlMode.POSITION, ControlMode.VELOCITY):
            continue
        joint = j + 1
        dof = art.joint_qd_start[joint]
        q = art.joint_q[art.joint_q_start[joint]]
        qd = art.joint_qd[dof]
        if mode == ControlMode.POSITION:
            target = (
                cmd["position_gain"] * (cmd["target_position"] - q) / dt
                + qd
                + cmd["velocity_gain"] * (cmd["target_velocity"] - qd)
            )
        else:
            target = cmd["target_velocity"]
        dofs.append(dof)
        targets.append(target)
        limits.append(cmd["max_force"])
    return dofs, np.asarray(targets, dtype=FLOAT_DTYPE), np.asarray(limits, dtype=FLOAT_DTYPE)


def _apply_damping(art: Articulation, qd: np.ndarray, dt: float):
    for i, jtype in enumerate(art.joint_type):
        ds = art.joint_dofs(i)
        lin = 1.0 / (1.0 + dt * art.link_linear_damping[i])
        ang = 1.0 / (1.0 + dt * art.link_angular_damping[i])
        if jtype == JointType.FREE:
            qd[ds][0:3] *= lin
            qd[ds][3:6] *= ang
        elif jtype == JointType.PLANAR:
            qd[ds][0:2] *= lin
            qd[ds][2] *= ang
        elif jtype == JointType.PRISMATIC:
            qd[ds] *= lin
        elif jtype in (JointType.REVOLUTE, JointType.SPHERICAL):
            qd[ds] *= ang


def _enforce_limits(art: Articulation, q: np.ndarray, qd: np.ndarray):
    for j, link in enumerate(art.description.links):
        if link.joint_type not in (JointType.REVOLUTE, JointType.PRISMATIC):
            continue
        if link.limit_lower > link.limit_upper:
            continue
        c = art.joint_q_start[j + 1]
        d = art.joint_qd_start[j + 1]
        if q[c] < link.limit_lower:
            q[c] = link.limit_lower
            qd[d] = max(qd[d], 0.0)
        elif q[c] > link.limit_upper:
            q[c] = link.limit_upper
            qd[d] = min(qd[d], 0.0)


def step_articulation(art: Articulation, dt: float, gravity, enable_joint_limits: bool = True):
    """Advance one articulation by ``dt`` with semi-implicit Euler integration.

    Velocity and position motors are solved as velocity targets on their DOFs,
    with each motor force clipped to its limit.
    """
    n = art.dof_count
    if n == 0:
        return

    kin = art.eval_fk()
    M = art.eval_mass_matrix(kin)
    h = art.eval_inverse_dynamics(kin, np.zeros(n, dtype=FLOAT_DTYPE), gravity)

    tau = np.zeros(n, dtype=FLOAT_DTYPE)
    for j, cmd in art.motors.items():
        if cmd["mode"] == ControlMode.TORQUE:
            tau[art.joint_qd_start[j + 1]] += cmd["force"]
    for i in range(1, art.body_count):
        ds = art.joint_dofs(i)
        tau[ds] -= art.joint_damping[i] * art.joint_qd[ds]
    applied = tau.copy()

    qdd = _solve(M, tau - h)
    qd = art.joint_qd + dt * qdd

    dofs, targets, limits = _motor_rows(art, dt)
    if dofs:
        # impulse needed on the motor DOFs to reach their target velocities
        M_inv_P = _solve(M, np.eye(n)[:, dofs])
        A = dt * M_inv_P[dofs, :]
        force = _solve(A, targets - qd[dofs])
        force = np.clip(force, -limits, limits)
        qd = qd + dt * (M_inv_P @ force)
        applied[dofs] += force

    _apply_damping(art, qd, dt)
    q = art.integrate(art.joint_q, qd, dt)
    if enable_joint_limits:
        _enforce_limits(art, q, qd)

    if not (np.all(np.isfinite(q)) and np.all(np.isfinite(qd))):
        msg.critical(f"Body {art.body_id} diverged; its state is left at the last finite step")
        raise CommandError(StatusType.COMPUTATION_FAILED, f"body {art.body_id} diverged")

    art.joint_q = q
    art.joint_qd = qd
    art.applied_forces = applied


###
# Inverse kinematics
###


@dataclass
class InverseKinematicsSolution:
    coordinates: np.ndarray
    """Joint coordinates (base excluded)."""
    residual: float
    iterations: int
    converged: bool


def _ik_error(art: Articulation, body: int, q: np.ndarray, target_position, target_orientation):
    kin = art.eval_fk(q, np.zeros(art.dof_count, dtype=FLOAT_DTYPE))
    frame = pose_from_array(kin.body_q[body])
    err = np.asarray(target_position, dtype=FLOAT_DTYPE) - frame.position
    if target_orientation is not None:
        err = np.concatenate([err, quat_angular_error(frame.orientation, target_orientation)])
    return kin, frame, err


def _integrate_ik_step(art: Articulation, q: np.ndarray, dq: np.ndarray) -> np.ndarray:
    q_new = q.copy()
    for i in range(1, art.body_count):
        jtype = art.joint_type[i]
        cs = art.joint_coords(i)
        ds = art.joint_dofs(i)
        if jtype == JointType.SPHERICAL:
            q_new[cs] = quat_integrate(q[cs], dq[ds], 1.0)
        elif jtype != JointType.FIXED:
            q_new[cs] = q[cs] + dq[ds]
    return q_new


def _clamp_ik(art: Articulation, q: np.ndarray, options: InverseKinematicsOptions):
    base = art.base_dof_count
    for j, link in enumerate(art.description.links):
        if link.joint_type not in (JointType.REVOLUTE, JointType.PRISMATIC):
            continue
        c = art.joint_q_start[j + 1]
        d = art.joint_qd_start[j + 1] - base
        lower, upper = link.limit_lower, link.limit_upper
        if options.uses_null_space and options.lower_limits[d] <= options.upper_limits[d]:
            lower, upper = options.lower_limits[d], options.upper_limits[d]
        if lower <= upper:
            q[c] = np.clip(q[c], lower, upper)


def solve_inverse_kinematics(
    art: Articulation,
    body: int,
    target_position,
    target_orientation,
    options: InverseKinematicsOptions,
) -> InverseKinematicsSolution:
    """Damped least-squares inverse kinematics of a link frame origin.

    The base stays where it is. When rest poses are given, the remaining
    redundancy is used to pull single-coordinate joints towards them.
    """
    n_base = art.base_dof_count
    n = art.dof_count - n_base
    if n == 0:
        raise CommandError(StatusType.INVALID_ARGUMENT, f"body {art.body_id} has no movable joints")

    damping = np.full(n, DEFAULT_IK_DAMPING, dtype=FLOAT_DTYPE)
    if options.joint_damping is not None:
        if len(options.joint_damping) != n:
            raise CommandError(StatusType.DIMENSION_MISMATCH, f"joint_damping needs {n} entries")
        damping = np.asarray(options.joint_damping, dtype=FLOAT_DTYPE)
    if options.uses_null_space and len(options.rest_poses) != n:
        raise CommandError(StatusType.DIMENSION_MISMATCH, f"null-space arrays need {n} entries")

    q = art.joint_q.copy()
    if options.current_positions is not None:
        if len(options.current_positions) != art.coord_count - art.base_coord_count:
            raise CommandError(StatusType.DIMENSION_MISMATCH, "current_positions does not match the joint coordinates")
        q = art.full_q(np.asarray(options.current_positions, dtype=FLOAT_DTYPE))

    # joints whose single coordinate can be attracted to a rest pose
    scalar_dofs = []
    for i in range(1, art.body_count):
        if JointType(art.joint_type[i]).dof_count() == (1, 1):
            scalar_dofs.append((art.joint_q_start[i], art.joint_qd_start[i] - n_base))

    iterations = 0
    converged = False
    kin, frame, err = _ik_error(art, body, q, target_position, target_orientation)
    for _ in range(options.max_iterations):
        if np.linalg.norm(err) <= options.residual_threshold:
            converged = True
            break

        linear, angular = art.point_jacobian(body, frame.position, art.eval_jacobian(kin))
        J = linear if target_orientation is None else np.vstack([linear, angular])
        J = J[:, n_base:]

        A = J.T @ J + np.diag(damping**2)
        try:
            dq = np.linalg.solve(A, J.T @ err)
        except np.linalg.LinAlgError as e:
            raise CommandError(StatusType.COMPUTATION_FAILED, f"inverse kinematics step failed: {e}") from e

        if options.uses_null_space:
            bias = np.zeros(n, dtype=FLOAT_DTYPE)
            for c, d in scalar_dofs:
                span = options.joint_ranges[d] if options.joint_ranges[d] > 0.0 else 1.0
                bias[d] = options.null_space_gain * (options.rest_poses[d] - q[c]) / span
            N = np.eye(n) - np.linalg.pinv(J) @ J
            dq = dq + N @ bias

        q_joints = _integrate_ik_step(art, q, np.concatenate([np.zeros(n_base), dq]))
        _clamp_ik(art, q_joints, options)
        q = q_joints
        iterations += 1
        kin, frame, err = _ik_error(art, body, q, target_position, target_orientation)
    else:
        converged = bool(np.linalg.norm(err) <= options.residual_threshold)

    if not np.all(np.isfinite(q)):
        raise CommandError(StatusType.COMPUTATION_FAILED, "inverse kinematics diverged")

    return InverseKinematicsSolution(
        coordinates=q[art.base_coord_count :].copy(),
        residual=float(np.linalg.norm(err)),
        iterations=iterations,
        converged=converged,
    )
