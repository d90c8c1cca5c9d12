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

"""Engine-side representation of one loaded multi-body."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any

import numpy as np
import warp as wp

from ..client.protocol import StatusType
from ..core.types import FLOAT_DTYPE, Devicelike, float64, mat33, spatial_matrix, spatial_vector, transform, vec3
from ..math import (
    Pose,
    pose_from_array,
    pose_to_array,
    quat_integrate,
    quat_rotate,
)
from ..sim.builder import BodyDescription
from ..sim.indexing import compute_joint_indices
from ..sim.joints import JointType
from ..sim.metadata import BodyInfo, DynamicsInfo, JointInfo, LinkState
from .kernels import (
    compute_body_spatial_inertia,
    eval_articulation_fk,
    eval_articulation_jacobian,
    eval_articulation_mass_matrix,
    eval_articulation_rnea,
)


class CommandError(Exception):
    """Raised by engine code to answer a command with an error status."""

    def __init__(self, status: StatusType, message: str):
        super().__init__(message)
        self.status = status


@dataclass
class Kinematics:
    """Host copy of the forward kinematics of an articulation at one configuration."""

    joint_q: np.ndarray
    joint_qd: np.ndarray
    body_q: np.ndarray
    """Link frames in world, shape ``(body_count, 7)``."""
    body_v: np.ndarray
    """World-origin twists, shape ``(body_count, 6)``."""
    body_qd: np.ndarray
    """Center of mass velocity and angular velocity, shape ``(body_count, 6)``."""
    joint_S: np.ndarray
    """Motion subspace, shape ``(dof_count, 6)``."""


class Articulation:
    """A body loaded into the engine.

    Internally the base is body ``0``, attached to the world by a root joint
    that is fixed (static base) or free (floating base). The body's joint
    ``j`` is internal joint ``j + 1`` and moves internal body ``j + 1``.
    """

    def __init__(
        self,
        body_id: int,
        description: BodyDescription,
        base_pose: Pose,
        fixed_base: bool,
        linear_damping: float = 0.0,
        angular_damping: float = 0.0,
        device: Devicelike = None,
    ):
        self.body_id = body_id
        self.description = description
        self.device = device
        # a massless base cannot be simulated as a floating body
        self.fixed_base = bool(fixed_base or description.base_mass == 0.0)
        self.base_pose = copy.deepcopy(base_pose)
        """Pose of the base link frame. Authoritative only for a fixed base."""

        links = description.links
        self.body_count = len(links) + 1
        root_type = JointType.FIXED if self.fixed_base else JointType.FREE

        self.joint_type = np.array([root_type] + [link.joint_type for link in links], dtype=np.int32)
        self.joint_parent = np.array([-1] + [link.parent + 1 for link in links], dtype=np.int32)
        self.joint_X_p = np.stack(
            [pose_to_array(self.base_pose)] + [pose_to_array(link.parent_xform) for link in links]
        )
        self.joint_axis = np.stack([np.array([0.0, 0.0, 1.0])] + [link.axis for link in links]).astype(FLOAT_DTYPE)

        counts = np.array([JointType(t).dof_count() for t in self.joint_type], dtype=np.int32).reshape(-1, 2)
        self.joint_qd_start = np.concatenate([[0], np.cumsum(counts[:, 0])]).astype(np.int32)
        self.joint_q_start = np.concatenate([[0], np.cumsum(counts[:, 1])]).astype(np.int32)

        self.body_mass = np.array([description.base_mass] + [link.mass for link in links], dtype=FLOAT_DTYPE)
        self.body_com = np.stack([description.base_com] + [link.com for link in links]).astype(FLOAT_DTYPE)
        self.body_inertia = np.stack([description.base_inertia] + [link.inertia for link in links]).astype(FLOAT_DTYPE)

        self.link_linear_damping = np.full(self.body_count, linear_damping, dtype=FLOAT_DTYPE)
        self.link_angular_damping = np.full(self.body_count, angular_damping, dtype=FLOAT_DTYPE)
        self.lateral_friction = np.full(self.body_count, 0.5, dtype=FLOAT_DTYPE)
        self.joint_damping = np.array([0.0] + [link.damping for link in links], dtype=FLOAT_DTYPE)

        self.joint_q = np.zeros(self.joint_q_start[-1], dtype=FLOAT_DTYPE)
        self.joint_qd = np.zeros(self.joint_qd_start[-1], dtype=FLOAT_DTYPE)
        for i, jtype in enumerate(self.joint_type):
            if jtype == JointType.SPHERICAL:
                self.joint_q[self.joint_q_start[i] + 3] = 1.0
        if not self.fixed_base:
            self.joint_q[0:7] = pose_to_array(self.base_pose)

        self.motors: dict[int, dict[str, Any]] = {}
        """Active motor command per joint index."""
        self.applied_forces = np.zeros(self.joint_qd_start[-1], dtype=FLOAT_DTYPE)
        """Generalized forces applied by motors and torque control during the last step."""

        q_indices, u_indices = compute_joint_indices(
            [link.joint_type for link in links], self.base_coord_count, self.base_dof_count
        )
        self.q_indices = q_indices
        self.u_indices = u_indices

    ###
    # Sizes
    ###

    @property
    def num_joints(self) -> int:
        return self.body_count - 1

    @property
    def base_coord_count(self) -> int:
        return 0 if self.fixed_base else 7

    @property
    def base_dof_count(self) -> int:
        return 0 if self.fixed_base else 6

    @property
    def coord_count(self) -> int:
        return len(self.joint_q)

    @property
    def dof_count(self) -> int:
        return len(self.joint_qd)

    def info(self) -> BodyInfo:
        return BodyInfo(
            body_id=self.body_id,
            body_name=self.description.name,
            base_name=self.description.base_name,
            num_joints=self.num_joints,
            num_coords=self.coord_count - self.base_coord_count,
            num_dofs=self.dof_count - self.base_dof_count,
            fixed_base=self.fixed_base,
        )

    def check_joint(self, joint_index: int) -> int:
        if not 0 <= joint_index < self.num_joints:
            raise CommandError(
                StatusType.INDEX_OUT_OF_RANGE,
                f"joint index {joint_index} out of range [0, {self.num_joints}) for body {self.body_id}",
            )
        return joint_index + 1

    def check_link(self, link_index: int, allow_base: bool = False) -> int:
        if allow_base and link_index == -1:
            return 0
        if not 0 <= link_index < self.num_joints:
            raise CommandError(
                StatusType.INDEX_OUT_OF_RANGE,
                f"link index {link_index} out of range [0, {self.num_joints}) for body {self.body_id}",
            )
        return link_index + 1

    def joint_coords(self, joint: int) -> slice:
        """Slice of the internal joint ``joint`` in the full position vector."""
        return slice(self.joint_q_start[joint], self.joint_q_start[joint + 1])

    def joint_dofs(self, joint: int) -> slice:
        return slice(self.joint_qd_start[joint], self.joint_qd_start[joint + 1])

    ###
    # Coordinate vectors
    ###

    def full_q(self, q_joints: np.ndarray | None) -> np.ndarray:
        """Prefix a joint position vector with the current base coordinates."""
        if q_joints is None:
            return self.joint_q.copy()
        return np.concatenate([self.joint_q[: self.base_coord_count], q_joints]).astype(FLOAT_DTYPE)

    def full_qd(self, qd_joints: np.ndarray | None, base: np.ndarray | None = None) -> np.ndarray:
        if qd_joints is None:
            return self.joint_qd.copy()
        if base is None:
            base = self.joint_qd[: self.base_dof_count]
        return np.concatenate([base, qd_joints]).astype(FLOAT_DTYPE)

    def integrate(self, q: np.ndarray, qd: np.ndarray, dt: float) -> np.ndarray:
        """Advance the positions ``q`` by the velocities ``qd`` over ``dt``."""
        q_new = q.copy()
        for i, jtype in enumerate(self.joint_type):
            cs = self.joint_coords(i)
            ds = self.joint_dofs(i)
            if jtype == JointType.SPHERICAL:
                q_new[cs] = quat_integrate(q[cs], qd[ds], dt)
            elif jtype == JointType.FREE:
                p = q[cs][0:3]
                r = q[cs][3:7]
                v_com = qd[ds][0:3]
                w = qd[ds][3:6]
                # the link origin moves with the center of mass velocity plus the rotation about the center of mass
                com_offset = quat_rotate(r, self.body_com[i])
                v_origin = v_com - np.cross(w, com_offset)
                q_new[cs][0:3] = p + dt * v_origin
                q_new[cs][3:7] = quat_integrate(r, w, dt)
            elif jtype != JointType.FIXED:
                q_new[cs] = q[cs] + dt * qd[ds]
        return q_new

    ###
    # Kinematics
    ###

    def _static_arrays(self):
        device = self.device
        return {
            "joint_type": wp.array(self.joint_type, dtype=int, device=device),
            "joint_parent": wp.array(self.joint_parent, dtype=int, device=device),
            "joint_X_p": wp.array(self._root_adjusted_X_p(), dtype=transform, device=device),
            "joint_axis": wp.array(self.joint_axis, dtype=vec3, device=device),
            "joint_q_start": wp.array(self.joint_q_start, dtype=int, device=device),
            "joint_qd_start": wp.array(self.joint_qd_start, dtype=int, device=device),
            "body_com": wp.array(self.body_com, dtype=vec3, device=device),
        }

    def _root_adjusted_X_p(self) -> np.ndarray:
        X_p = self.joint_X_p.copy()
        if self.fixed_base:
            X_p[0] = pose_to_array(self.base_pose)
        else:
            X_p[0] = pose_to_array(Pose())
        return X_p

    def eval_fk(self, q: np.ndarray | None = None, qd: np.ndarray | None = None) -> Kinematics:
        """Evaluate forward kinematics at full coordinate vectors (defaults to the current state)."""
        q = self.joint_q if q is None else q
        qd = self.joint_qd if qd is None else qd
        arrays = self._static_arrays()
        device = self.device

        body_q = wp.zeros(self.body_count, dtype=transform, device=device)
        body_v = wp.zeros(self.body_count, dtype=spatial_vector, device=device)
        body_qd = wp.zeros(self.body_count, dtype=spatial_vector, device=device)
        joint_S = wp.zeros(max(self.dof_count, 1), dtype=spatial_vector, device=device)

        wp.launch(
            kernel=eval_articulation_fk,
            dim=1,
            inputs=[
                self.body_count,
                arrays["joint_type"],
                arrays["joint_parent"],
                arrays["joint_X_p"],
                arrays["joint_axis"],
                arrays["joint_q_start"],
                arrays["joint_qd_start"],
                wp.array(np.asarray(q, dtype=FLOAT_DTYPE), dtype=float64, device=device),
                wp.array(np.asarray(qd, dtype=FLOAT_DTYPE), dtype=float64, device=device),
                arrays["body_com"],
            ],
            outputs=[body_q, body_v, body_qd, joint_S],
            device=device,
        )
        return Kinematics(
            joint_q=np.array(q, dtype=FLOAT_DTYPE),
            joint_qd=np.array(qd, dtype=FLOAT_DTYPE),
            body_q=body_q.numpy().reshape(self.body_count, 7),
            body_v=body_v.numpy().reshape(self.body_count, 6),
            body_qd=body_qd.numpy().reshape(self.body_count, 6),
            joint_S=joint_S.numpy().reshape(-1, 6)[: self.dof_count],
        )

    def eval_jacobian(self, kin: Kinematics) -> np.ndarray:
        """World-origin Jacobian of every body, shape ``(body_count * 6, dof_count)``."""
        device = self.device
        J = wp.zeros((self.body_count * 6, max(self.dof_count, 1)), dtype=float64, device=device)
        wp.launch(
            kernel=eval_articulation_jacobian,
            dim=self.body_count,
            inputs=[
                self.body_count,
                wp.array(self.joint_parent, dtype=int, device=device),
                wp.array(self.joint_qd_start, dtype=int, device=device),
                wp.array(self._subspace(kin), dtype=spatial_vector, device=device),
            ],
            outputs=[J],
            device=device,
        )
        return J.numpy()[:, : self.dof_count]

    def _subspace(self, kin: Kinematics) -> np.ndarray:
        if self.dof_count == 0:
            return np.zeros((1, 6), dtype=FLOAT_DTYPE)
        return kin.joint_S

    def _spatial_inertia(self, kin: Kinematics) -> wp.array:
        device = self.device
        body_I_s = wp.zeros(self.body_count, dtype=spatial_matrix, device=device)
        wp.launch(
            kernel=compute_body_spatial_inertia,
            dim=self.body_count,
            inputs=[
                wp.array(self.body_inertia, dtype=mat33, device=device),
                wp.array(self.body_mass, dtype=float64, device=device),
                wp.array(self.body_com, dtype=vec3, device=device),
                wp.array(kin.body_q, dtype=transform, device=device),
            ],
            outputs=[body_I_s],
            device=device,
        )
        return body_I_s

    def eval_mass_matrix(self, kin: Kinematics) -> np.ndarray:
        """Generalized mass matrix ``H = J^T M J`` at the configuration of ``kin``."""
        n = self.dof_count
        if n == 0:
            return np.zeros((0, 0), dtype=FLOAT_DTYPE)
        device = self.device
        J = wp.array(self.eval_jacobian(kin), dtype=float64, device=device)
        H = wp.zeros((n, n), dtype=float64, device=device)
        wp.launch(
            kernel=eval_articulation_mass_matrix,
            dim=(n, n),
            inputs=[self.body_count, self._spatial_inertia(kin), J],
            outputs=[H],
            device=device,
        )
        H = H.numpy()
        return 0.5 * (H + H.T)

    def eval_inverse_dynamics(self, kin: Kinematics, qdd: np.ndarray, gravity) -> np.ndarray:
        """Generalized forces producing the accelerations ``qdd`` at the state of ``kin``."""
        n = self.dof_count
        if n == 0:
            return np.zeros(0, dtype=FLOAT_DTYPE)
        device = self.device
        body_a = wp.zeros(self.body_count, dtype=spatial_vector, device=device)
        body_f = wp.zeros(self.body_count, dtype=spatial_vector, device=device)
        tau = wp.zeros(n, dtype=float64, device=device)
        wp.launch(
            kernel=eval_articulation_rnea,
            dim=1,
            inputs=[
                self.body_count,
                wp.array(self.joint_type, dtype=int, device=device),
                wp.array(self.joint_parent, dtype=int, device=device),
                wp.array(self.joint_qd_start, dtype=int, device=device),
                wp.array(kin.joint_S, dtype=spatial_vector, device=device),
                wp.array(kin.joint_qd, dtype=float64, device=device),
                wp.array(np.asarray(qdd, dtype=FLOAT_DTYPE), dtype=float64, device=device),
                wp.array(kin.body_q, dtype=transform, device=device),
                wp.array(kin.body_v, dtype=spatial_vector, device=device),
                wp.array(self.body_com, dtype=vec3, device=device),
                self._spatial_inertia(kin),
                vec3(*[float(g) for g in gravity]),
            ],
            outputs=[body_a, body_f, tau],
            device=device,
        )
        return tau.numpy()

    ###
    # Links
    ###

    def local_inertial_pose(self, body: int) -> Pose:
        return Pose(self.body_com[body])

    def link_state(self, body: int, kin: Kinematics, compute_velocity: bool) -> LinkState:
        frame = pose_from_array(kin.body_q[body])
        local = self.local_inertial_pose(body)
        state = LinkState(
            world_pose=frame * local,
            local_inertial_pose=local,
            world_link_frame_pose=frame,
        )
        if compute_velocity:
            state = LinkState(
                world_pose=state.world_pose,
                local_inertial_pose=local,
                world_link_frame_pose=frame,
                linear_world_velocity=kin.body_qd[body][0:3].copy(),
                angular_world_velocity=kin.body_qd[body][3:6].copy(),
            )
        return state

    def point_jacobian(self, body: int, point: np.ndarray, J_all: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Linear and angular Jacobian blocks of a world point attached to ``body``."""
        block = J_all[body * 6 : body * 6 + 6]
        top = block[0:3]
        bottom = block[3:6]
        linear = top - np.cross(point, bottom.T).T
        return linear, bottom.copy()

    ###
    # Base
    ###

    def base_frame(self) -> Pose:
        if self.fixed_base:
            return copy.deepcopy(self.base_pose)
        return pose_from_array(self.joint_q[0:7])

    def set_base_frame(self, frame: Pose):
        if self.fixed_base:
            self.base_pose = copy.deepcopy(frame)
        else:
            self.joint_q[0:7] = pose_to_array(frame)

    def base_com_velocity(self) -> np.ndarray:
        if self.fixed_base:
            return np.zeros(6, dtype=FLOAT_DTYPE)
        return self.joint_qd[0:6].copy()

    ###
    # Metadata
    ###

    def joint_info(self, joint_index: int) -> JointInfo:
        link = self.description.links[joint_index]
        return JointInfo(
            joint_index=joint_index,
            joint_name=link.joint_name,
            joint_type=JointType(link.joint_type),
            q_index=self.q_indices[joint_index],
            u_index=self.u_indices[joint_index],
            flags=0,
            damping=float(self.joint_damping[joint_index + 1]),
            friction=link.friction,
            lower_limit=link.limit_lower,
            upper_limit=link.limit_upper,
            max_force=link.effort_limit,
            max_velocity=link.velocity_limit,
            link_name=link.name,
            joint_axis=link.axis.copy(),
            parent_frame_pose=copy.deepcopy(link.parent_xform),
            parent_index=None if link.parent < 0 else link.parent,
        )

    def dynamics_info(self, body: int) -> DynamicsInfo:
        return DynamicsInfo(
            mass=float(self.body_mass[body]),
            lateral_friction=float(self.lateral_friction[body]),
            local_inertia_diagonal=np.diag(self.body_inertia[body]).copy(),
            local_inertial_pose=self.local_inertial_pose(body),
            linear_damping=float(self.link_linear_damping[body]),
            angular_damping=float(self.link_angular_damping[body]),
            joint_damping=float(self.joint_damping[body]),
        )

    def change_dynamics(self, body: int, values: dict[str, Any]):
        if "mass" in values:
            if body == 0 and not self.fixed_base and values["mass"] <= 0.0:
                raise CommandError(StatusType.INVALID_ARGUMENT, "a floating base needs a positive mass")
            self.body_mass[body] = values["mass"]
        if "local_inertia_diagonal" in values:
            self.body_inertia[body] = np.diag(np.asarray(values["local_inertia_diagonal"], dtype=FLOAT_DTYPE))
        if "lateral_friction" in values:
            self.lateral_friction[body] = values["lateral_friction"]
        if "linear_damping" in values:
            self.link_linear_damping[body] = values["linear_damping"]
        if "angular_damping" in values:
            self.link_angular_damping[body] = values["angular_damping"]
        if "joint_damping" in values:
            if body == 0:
                raise CommandError(StatusType.INVALID_ARGUMENT, "the base has no joint to damp")
            self.joint_damping[body] = values["joint_damping"]

    ###
    # Serialization
    ###

    _ARRAY_FIELDS = (
        "joint_q",
        "joint_qd",
        "body_mass",
        "body_com",
        "body_inertia",
        "link_linear_damping",
        "link_angular_damping",
        "lateral_friction",
        "joint_damping",
        "applied_forces",
    )

    def to_record(self) -> tuple[dict[str, Any], dict[str, np.ndarray]]:
        """Split the articulation into a JSON-compatible header and numeric arrays."""
        header = {
            "body_id": self.body_id,
            "description": self.description.to_wire(),
            "base_pose": pose_to_array(self.base_pose).tolist(),
            "fixed_base": self.fixed_base,
            "motors": {str(j): cmd for j, cmd in self.motors.items()},
        }
        arrays = {name: getattr(self, name).copy() for name in self._ARRAY_FIELDS}
        return header, arrays

    @staticmethod
    def from_record(header: dict[str, Any], arrays: dict[str, np.ndarray], device=None) -> Articulation:
        art = Articulation(
            body_id=int(header["body_id"]),
            description=BodyDescription.from_wire(header["description"]),
            base_pose=pose_from_array(header["base_pose"]),
            fixed_base=bool(header["fixed_base"]),
            device=device,
        )
        for name in Articulation._ARRAY_FIELDS:
            current = getattr(art, name)
            value = np.asarray(arrays[name], dtype=current.dtype)
            if value.shape != current.shape:
                raise ValueError(f"array '{name}' has shape {value.shape}, expected {current.shape}")
            setattr(art, name, value.copy())
        art.motors = {int(j): dict(cmd) for j, cmd in header["motors"].items()}
        return art

