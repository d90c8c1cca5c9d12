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

"""Engine-reported metadata of bodies, joints and links."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np

from ..core.types import FLOAT_DTYPE
from ..math import Pose, pose_from_array, pose_to_array
from .joints import JointType


@dataclass(frozen=True)
class BodyInfo:
    """Summary of one body instance inside the engine."""

    body_id: int
    """Handle of the body."""
    body_name: str
    """Name given in the body description."""
    base_name: str
    """Name of the base link."""
    num_joints: int
    """Number of joints, fixed joints included. Link ``i`` is moved by joint ``i``."""
    num_coords: int
    """Length of the joint position vector (base excluded)."""
    num_dofs: int
    """Length of the joint velocity vector (base excluded)."""
    fixed_base: bool
    """Whether the base link is welded to the world."""

    @property
    def base_coord_count(self) -> int:
        return 0 if self.fixed_base else 7

    @property
    def base_dof_count(self) -> int:
        return 0 if self.fixed_base else 6

    def to_wire(self) -> dict[str, Any]:
        return {
            "body_id": self.body_id,
            "body_name": self.body_name,
            "base_name": self.base_name,
            "num_joints": self.num_joints,
            "num_coords": self.num_coords,
            "num_dofs": self.num_dofs,
            "fixed_base": self.fixed_base,
        }

    @staticmethod
    def from_wire(values: dict[str, Any]) -> BodyInfo:
        return BodyInfo(
            body_id=int(values["body_id"]),
            body_name=str(values["body_name"]),
            base_name=str(values["base_name"]),
            num_joints=int(values["num_joints"]),
            num_coords=int(values["num_coords"]),
            num_dofs=int(values["num_dofs"]),
            fixed_base=bool(values["fixed_base"]),
        )


@dataclass(frozen=True)
class JointInfo:
    """Static description of one joint as reported by the engine."""

    joint_index: int
    joint_name: str
    joint_type: JointType
    q_index: int
    """Position in the engine's generalized position vector, or ``-1``."""
    u_index: int
    """Position in the engine's generalized velocity vector, or ``-1``."""
    flags: int
    damping: float
    friction: float
    lower_limit: float
    upper_limit: float
    """The joint is unlimited when ``lower_limit > upper_limit``."""
    max_force: float
    max_velocity: float
    link_name: str
    """Name of the link moved by this joint."""
    joint_axis: np.ndarray
    """Axis in the joint frame. Meaningful for 1-DOF joints and as the planar normal."""
    parent_frame_pose: Pose
    """Joint frame relative to the parent link frame."""
    parent_index: int | None
    """Parent link index, ``None`` when the parent is the base."""

    @property
    def has_limits(self) -> bool:
        return self.lower_limit <= self.upper_limit

    def to_wire(self) -> dict[str, Any]:
        return {
            "joint_index": self.joint_index,
            "joint_name": self.joint_name,
            "joint_type": int(self.joint_type),
            "q_index": self.q_index,
            "u_index": self.u_index,
            "flags": self.flags,
            "damping": self.damping,
            "friction": self.friction,
            "lower_limit": self.lower_limit,
            "upper_limit": self.upper_limit,
            "max_force": self.max_force,
            "max_velocity": self.max_velocity,
            "link_name": self.link_name,
            "joint_axis": [float(x) for x in self.joint_axis],
            "parent_frame_pose": pose_to_array(self.parent_frame_pose).tolist(),
            "parent_index": -1 if self.parent_index is None else self.parent_index,
        }

    @staticmethod
    def from_wire(values: dict[str, Any]) -> JointInfo:
        parent = int(values["parent_index"])
        return JointInfo(
            joint_index=int(values["joint_index"]),
            joint_name=str(values["joint_name"]),
            joint_type=JointType(int(values["joint_type"])),
            q_index=int(values["q_index"]),
            u_index=int(values["u_index"]),
            flags=int(values["flags"]),
            damping=float(values["damping"]),
            friction=float(values["friction"]),
            lower_limit=float(values["lower_limit"]),
            upper_limit=float(values["upper_limit"]),
            max_force=float(values["max_force"]),
            max_velocity=float(values["max_velocity"]),
            link_name=str(values["link_name"]),
            joint_axis=np.asarray(values["joint_axis"], dtype=FLOAT_DTYPE),
            parent_frame_pose=pose_from_array(values["parent_frame_pose"]),
            parent_index=None if parent < 0 else parent,
        )


@dataclass(frozen=True)
class JointState:
    """Position and velocity of a single-coordinate joint.

    Joints without coordinates report ``0.0`` for both. For multi-coordinate
    joints use :class:`JointStateMultiDof`.
    """

    position: float
    velocity: float
    applied_torque: float
    """Generalized force the motor applied during the last step."""


@dataclass(frozen=True)
class JointStateMultiDof:
    """Coordinates and velocities of a joint of any type.

    Spherical joints report a quaternion ``(x, y, z, w)`` and an angular
    velocity; fixed joints report empty arrays.
    """

    positions: np.ndarray
    velocities: np.ndarray
    applied_torques: np.ndarray


@dataclass(frozen=True)
class LinkState:
    """World-space state of a link.

    Velocity fields are ``None`` unless the query asked for velocities.
    """

    world_pose: Pose
    """Pose of the link's inertial (center of mass) frame in world."""
    local_inertial_pose: Pose
    """Offset of the inertial frame relative to the link frame."""
    world_link_frame_pose: Pose
    """Pose of the link frame in world; ``world_pose = world_link_frame_pose * local_inertial_pose``."""
    linear_world_velocity: np.ndarray | None = None
    """Linear velocity of the center of mass in world [m/s]."""
    angular_world_velocity: np.ndarray | None = None
    """Angular velocity in world [rad/s]."""


@dataclass(frozen=True)
class DynamicsInfo:
    """Inertial and damping properties of a link (``-1`` for the base)."""

    mass: float
    lateral_friction: float
    local_inertia_diagonal: np.ndarray
    local_inertial_pose: Pose
    linear_damping: float
    angular_damping: float
    joint_damping: float = field(default=0.0)
    """Damping of the joint moving the link. Always zero for the base."""

    def to_wire(self) -> dict[str, Any]:
        return {
            "mass": self.mass,
            "lateral_friction": self.lateral_friction,
            "local_inertia_diagonal": [float(x) for x in self.local_inertia_diagonal],
            "local_inertial_pose": pose_to_array(self.local_inertial_pose).tolist(),
            "linear_damping": self.linear_damping,
            "angular_damping": self.angular_damping,
            "joint_damping": self.joint_damping,
        }

    @staticmethod
    def from_wire(values: dict[str, Any]) -> DynamicsInfo:
        return DynamicsInfo(
            mass=float(values["mass"]),
            lateral_friction=float(values["lateral_friction"]),
            local_inertia_diagonal=np.asarray(values["local_inertia_diagonal"], dtype=FLOAT_DTYPE),
            local_inertial_pose=pose_from_array(values["local_inertial_pose"]),
            linear_damping=float(values["linear_damping"]),
            angular_damping=float(values["angular_damping"]),
            joint_damping=float(values["joint_damping"]),
        )


__all__ = [
    "BodyInfo",
    "DynamicsInfo",
    "JointInfo",
    "JointState",
    "JointStateMultiDof",
    "LinkState",
]
