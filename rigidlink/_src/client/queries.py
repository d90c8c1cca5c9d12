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

"""Kinematic and dynamic queries against loaded bodies."""

from __future__ import annotations

import warnings
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from ..core.errors import ConvergenceWarning, DimensionMismatchError
from ..core.types import FLOAT_DTYPE
from ..math import normalize_quat, pose_from_array
from ..sim.metadata import LinkState
from .channel import CommandChannel
from .config import InverseKinematicsOptions
from .protocol import Command, CommandType
from .registry import BodyRegistry

IK_PLACEHOLDER = 0.0
"""Value reported in :attr:`InverseKinematicsResult.joint_positions` for joints without a single coordinate."""


@dataclass(frozen=True)
class Jacobian:
    """Linear and angular Jacobian of a point on a link.

    Columns follow the generalized velocity vector: base DOFs first for a
    floating base, then the joint DOFs ordered by u-index.
    """

    linear: np.ndarray
    """Shape ``(3, n)``; maps generalized velocities to the point's linear velocity."""
    angular: np.ndarray
    """Shape ``(3, n)``; maps generalized velocities to the link's angular velocity."""

    @property
    def num_columns(self) -> int:
        return self.linear.shape[1]

    def velocity(self, qdot) -> tuple[np.ndarray, np.ndarray]:
        """Linear and angular velocity produced by the generalized velocity ``qdot``."""
        qdot = np.asarray(qdot, dtype=FLOAT_DTYPE).reshape(-1)
        if qdot.shape[0] != self.num_columns:
            raise DimensionMismatchError(f"qdot has length {qdot.shape[0]}, expected {self.num_columns}")
        return self.linear @ qdot, self.angular @ qdot


@dataclass(frozen=True)
class InverseKinematicsResult:
    """Outcome of an inverse kinematics query.

    Non-convergence is not an error: check :attr:`converged` and
    :attr:`residual` to judge the quality of the solution.
    """

    joint_positions: np.ndarray
    """One value per joint index. Joints that do not own exactly one coordinate carry :data:`IK_PLACEHOLDER`."""
    coordinates: np.ndarray
    """The complete joint position vector of the solution (base excluded)."""
    residual: float
    """Norm of the remaining pose error."""
    iterations: int
    converged: bool


class KinematicsQueries:
    """Validates query arguments locally, then asks the engine.

    Every index and vector length is checked against the body's cached
    metadata before a command is sent, so invalid requests never reach the
    engine.
    """

    def __init__(self, channel: CommandChannel, registry: BodyRegistry):
        self._channel = channel
        self._registry = registry

    def calculate_jacobian(self, body: int, link_index: int, local_position, q, qdot, qddot) -> Jacobian:
        """Jacobian of a point attached to a link.

        Args:
            body: Body handle.
            link_index: Link the point is attached to.
            local_position: Point relative to the link's center of mass frame.
            q: Joint positions, one entry per joint coordinate.
            qdot: Joint velocities, one entry per joint DOF.
            qddot: Joint accelerations, one entry per joint DOF.

        Returns:
            Jacobian: ``3 x n`` blocks with ``n`` the number of generalized velocities.
        """
        resolver = self._registry.resolver(body)
        link_index = resolver.check_link_index(link_index)
        buffers = {
            "local_position": resolver.check_vector("local_position", local_position, 3),
            "q": resolver.check_vector("q", q, resolver.num_coords),
            "qdot": resolver.check_vector("qdot", qdot, resolver.num_dofs),
            "qddot": resolver.check_vector("qddot", qddot, resolver.num_dofs),
        }
        status = self._channel.submit(
            Command(CommandType.CALCULATE_JACOBIAN, values={"body": int(body), "link": link_index}, buffers=buffers)
        )
        linear = status.buffers["linear"].reshape(3, -1)
        angular = status.buffers["angular"].reshape(3, -1)
        if linear.shape[1] != resolver.num_columns or angular.shape[1] != resolver.num_columns:
            raise DimensionMismatchError(
                f"engine returned {linear.shape[1]} Jacobian columns, expected {resolver.num_columns}"
            )
        return Jacobian(linear, angular)

    def calculate_mass_matrix(self, body: int, q) -> np.ndarray:
        """Symmetric positive semi-definite generalized mass matrix at the joint positions ``q``."""
        resolver = self._registry.resolver(body)
        q = resolver.check_vector("q", q, resolver.num_coords)
        status = self._channel.submit(
            Command(CommandType.CALCULATE_MASS_MATRIX, values={"body": int(body)}, buffers={"q": q})
        )
        n = resolver.num_columns
        return status.buffers["mass_matrix"].reshape(n, n)

    def calculate_inverse_dynamics(self, body: int, q, qdot, qddot) -> np.ndarray:
        """Generalized forces producing ``qddot`` at ``(q, qdot)``, gravity included.

        For a floating base the result starts with the base wrench (world force,
        then torque about the base center of mass), computed for the base's
        current velocity and zero base acceleration.
        """
        resolver = self._registry.resolver(body)
        buffers = {
            "q": resolver.check_vector("q", q, resolver.num_coords),
            "qdot": resolver.check_vector("qdot", qdot, resolver.num_dofs),
            "qddot": resolver.check_vector("qddot", qddot, resolver.num_dofs),
        }
        status = self._channel.submit(
            Command(CommandType.CALCULATE_INVERSE_DYNAMICS, values={"body": int(body)}, buffers=buffers)
        )
        return status.buffers["forces"].reshape(-1)

    def calculate_inverse_kinematics(
        self,
        body: int,
        link_index: int,
        target_position,
        target_orientation=None,
        options: InverseKinematicsOptions | None = None,
    ) -> InverseKinematicsResult:
        """Joint positions placing a link frame origin at ``target_position``.

        If ``target_orientation`` is given the link frame orientation is
        matched as well. A result is returned even if the solver stops before
        converging; a :class:`ConvergenceWarning` is issued in that case.
        """
        options = options if options is not None else InverseKinematicsOptions()
        resolver = self._registry.resolver(body)
        link_index = resolver.check_link_index(link_index)
        if options.uses_null_space:
            resolver.check_vector("rest_poses", options.rest_poses, resolver.num_dofs)
        if options.joint_damping is not None:
            resolver.check_vector("joint_damping", options.joint_damping, resolver.num_dofs)
        if options.current_positions is not None:
            resolver.check_vector("current_positions", options.current_positions, resolver.num_coords)

        buffers = {"target_position": resolver.check_vector("target_position", target_position, 3)}
        if target_orientation is not None:
            buffers["target_orientation"] = normalize_quat(target_orientation)
        status = self._channel.submit(
            Command(
                CommandType.CALCULATE_INVERSE_KINEMATICS,
                values={"body": int(body), "link": link_index, "options": options.to_wire()},
                buffers=buffers,
            )
        )

        coordinates = resolver.check_vector("coordinates", status.buffers["coordinates"], resolver.num_coords)
        result = InverseKinematicsResult(
            joint_positions=resolver.joint_vector_from_coordinates(coordinates, IK_PLACEHOLDER),
            coordinates=coordinates,
            residual=float(status.values["residual"]),
            iterations=int(status.values["iterations"]),
            converged=bool(status.values["converged"]),
        )
        if not result.converged:
            warnings.warn(
                f"inverse kinematics for body {body} link {link_index} stopped after {result.iterations} "
                f"iterations with residual {result.residual:.3g}",
                ConvergenceWarning,
                stacklevel=2,
            )
        return result

    def get_link_state(
        self,
        body: int,
        link_index: int,
        compute_velocity: bool = False,
        compute_forward_kinematics: bool = False,
    ) -> LinkState:
        """World state of one link; velocities are ``None`` unless ``compute_velocity``."""
        return self.get_link_states(body, [link_index], compute_velocity, compute_forward_kinematics)[0]

    def get_link_states(
        self,
        body: int,
        link_indices: Sequence[int],
        compute_velocity: bool = False,
        compute_forward_kinematics: bool = False,
    ) -> list[LinkState]:
        """World states of several links, in the order requested.

        The engine keeps link kinematics consistent with the current joint
        state, so ``compute_forward_kinematics`` never changes the result.
        """
        resolver = self._registry.resolver(body)
        links = [resolver.check_link_index(link) for link in link_indices]
        status = self._channel.submit(
            Command(
                CommandType.GET_LINK_STATES,
                values={
                    "body": int(body),
                    "links": links,
                    "compute_velocity": bool(compute_velocity),
                    "compute_forward_kinematics": bool(compute_forward_kinematics),
                },
            )
        )
        world = status.buffers["world_poses"].reshape(-1, 7)
        local = status.buffers["local_inertial_poses"].reshape(-1, 7)
        frame = status.buffers["link_frame_poses"].reshape(-1, 7)
        velocities = status.buffers["velocities"].reshape(-1, 6) if compute_velocity else None
        if world.shape[0] != len(links):
            raise DimensionMismatchError(f"engine returned {world.shape[0]} link states for {len(links)} links")

        states = []
        for i in range(len(links)):
            states.append(
                LinkState(
                    world_pose=pose_from_array(world[i]),
                    local_inertial_pose=pose_from_array(local[i]),
                    world_link_frame_pose=pose_from_array(frame[i]),
                    linear_world_velocity=velocities[i, 0:3].copy() if velocities is not None else None,
                    angular_world_velocity=velocities[i, 3:6].copy() if velocities is not None else None,
                )
            )
        return states


__all__ = ["IK_PLACEHOLDER", "InverseKinematicsResult", "Jacobian", "KinematicsQueries"]
