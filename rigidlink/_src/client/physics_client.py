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

"""
The user-facing client of a physics engine connection.
"""

from __future__ import annotations

import math
import os
from collections.abc import Sequence

import numpy as np

from ..core.errors import DimensionMismatchError, InvalidArgumentError, TransportError
from ..core.types import FLOAT_DTYPE, Devicelike
from ..math import (
    Pose,
    compute_projection_matrix,
    compute_projection_matrix_fov,
    compute_view_matrix,
    compute_view_matrix_from_yaw_pitch_roll,
    pose_from_array,
    pose_to_array,
    velocity_from_array,
    velocity_to_array,
)
from ..sim.builder import BodyDescription
from ..sim.metadata import BodyInfo, DynamicsInfo, JointInfo, JointState, JointStateMultiDof, LinkState
from ..utils import logger as msg
from .channel import CommandChannel, DirectTransport, FrameProcessor, Transport
from .config import (
    ChangeDynamicsOptions,
    InverseKinematicsOptions,
    MotorCommand,
    PhysicsEngineParameters,
    TorqueControl,
)
from .protocol import Command, CommandType
from .queries import InverseKinematicsResult, Jacobian, KinematicsQueries
from .registry import BodyRegistry
from .snapshots import SnapshotManager, StateId

###
# Module interface
###

__all__ = ["PhysicsClient"]


###
# Client
###


class PhysicsClient:
    """
    A connection to one physics engine instance.

    The client owns the command channel, a metadata cache of the loaded
    bodies, the kinematic and dynamic queries, and the snapshot manager.
    Every method is a blocking round trip to the engine; a client must not be
    shared between threads.

    Example:

    .. code-block:: python

        with PhysicsClient.connect() as client:
            body = client.load_body(description, use_fixed_base=True)
            client.reset_joint_state(body, 0, 0.1)
            client.step_simulation()
            state = client.get_link_state(body, 0, compute_velocity=True)
    """

    def __init__(self, channel: CommandChannel):
        self._channel = channel
        self._registry = BodyRegistry(channel)
        self._queries = KinematicsQueries(channel, self._registry)
        self._snapshots = SnapshotManager(channel, on_restore=self._registry.invalidate)

    @classmethod
    def connect(
        cls,
        transport: Transport | None = None,
        engine: FrameProcessor | None = None,
        device: Devicelike = None,
    ) -> PhysicsClient:
        """
        Connect to an engine.

        Args:
            transport: An open transport to use. Takes precedence over ``engine``.
            engine: An engine to drive in-process through a :class:`DirectTransport`.
            device: Warp device of the in-process engine created when neither
                ``transport`` nor ``engine`` is given.
        """
        if transport is None:
            if engine is None:
                from ..engine.server import DirectEngine  # noqa: PLC0415

                engine = DirectEngine(device=device)
            transport = DirectTransport(engine)
        if not transport.is_open:
            raise TransportError("cannot connect through a closed transport")
        msg.debug(f"Connected through {type(transport).__name__}")
        return cls(CommandChannel(transport))

    def disconnect(self):
        """Close the connection. Any later call raises :class:`TransportError`."""
        if self._channel.is_open:
            self._channel.close()
            self._registry.invalidate()
            msg.debug("Disconnected")

    @property
    def is_connected(self) -> bool:
        return self._channel.is_open

    def __enter__(self) -> PhysicsClient:
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.disconnect()

    @property
    def registry(self) -> BodyRegistry:
        return self._registry

    @property
    def queries(self) -> KinematicsQueries:
        return self._queries

    @property
    def snapshots(self) -> SnapshotManager:
        return self._snapshots

    ###
    # World
    ###

    def step_simulation(self) -> float:
        """Advance the simulation by one fixed time step and return the simulation time."""
        status = self._channel.submit(Command(CommandType.STEP_SIMULATION))
        return float(status.values["time"])

    def reset_simulation(self):
        """Remove every body and every in-memory snapshot. Engine parameters are kept."""
        self._channel.submit(Command(CommandType.RESET_SIMULATION))
        self._registry.invalidate()

    def get_physics_engine_parameters(self) -> PhysicsEngineParameters:
        status = self._channel.submit(Command(CommandType.GET_PHYSICS_PARAMETERS))
        return PhysicsEngineParameters.from_wire(status.values["params"])

    def set_physics_engine_parameters(self, params: PhysicsEngineParameters):
        params.check_values()
        self._channel.submit(Command(CommandType.SET_PHYSICS_PARAMETERS, values={"params": params.to_wire()}))

    def set_gravity(self, gravity: Sequence[float]):
        gravity = np.asarray(gravity, dtype=FLOAT_DTYPE).reshape(-1)
        if gravity.shape[0] != 3:
            raise DimensionMismatchError(f"gravity has length {gravity.shape[0]}, expected 3")
        params = self.get_physics_engine_parameters()
        params.gravity = tuple(float(g) for g in gravity)
        self.set_physics_engine_parameters(params)

    def set_time_step(self, time_step: float):
        params = self.get_physics_engine_parameters()
        params.fixed_time_step = float(time_step)
        self.set_physics_engine_parameters(params)

    ###
    # Bodies
    ###

    def load_body(
        self, description: BodyDescription, base_pose: Pose | None = None, use_fixed_base: bool = False
    ) -> int:
        """
        Create a body in the engine.

        Args:
            description: The link tree of the body, usually built with an
                :class:`ArticulationBuilder`.
            base_pose: Initial pose of the base link frame. Defaults to the identity.
            use_fixed_base: Weld the base to the world. A base with zero mass is
                always fixed.

        Returns:
            int: The handle of the new body.
        """
        return self._registry.load(description, base_pose, use_fixed_base)

    def remove_body(self, body: int):
        self._registry.remove(body)

    def get_body_ids(self) -> list[int]:
        return self._registry.body_ids()

    def get_num_bodies(self) -> int:
        return len(self._registry.body_ids())

    def get_body_info(self, body: int) -> BodyInfo:
        return self._registry.info(body)

    def get_base_transform(self, body: int) -> Pose:
        """World pose of the base link's center of mass."""
        status = self._channel.submit(Command(CommandType.GET_BASE_STATE, values={"body": int(body)}))
        return pose_from_array(status.buffers["pose"])

    def reset_base_transform(self, body: int, pose: Pose):
        """Teleport the base so its center of mass has the world pose ``pose``. Velocities are kept."""
        self._channel.submit(
            Command(CommandType.RESET_BASE_STATE, values={"body": int(body)}, buffers={"pose": pose_to_array(pose)})
        )

    def get_base_velocity(self, body: int) -> tuple[np.ndarray, np.ndarray]:
        """Linear velocity of the base center of mass and angular velocity of the base, in world."""
        status = self._channel.submit(Command(CommandType.GET_BASE_STATE, values={"body": int(body)}))
        return velocity_from_array(status.buffers["velocity"])

    def reset_base_velocity(self, body: int, linear=None, angular=None):
        """
        Set the base velocity. Components left at ``None`` keep their current value.

        Raises:
            InvalidArgumentError: If a nonzero velocity is requested for a fixed base.
        """
        if linear is None or angular is None:
            current_linear, current_angular = self.get_base_velocity(body)
            linear = current_linear if linear is None else linear
            angular = current_angular if angular is None else angular
        self._channel.submit(
            Command(
                CommandType.RESET_BASE_STATE,
                values={"body": int(body)},
                buffers={"velocity": velocity_to_array(linear, angular)},
            )
        )

    ###
    # Joints
    ###

    def get_num_joints(self, body: int) -> int:
        return self._registry.info(body).num_joints

    def get_joint_info(self, body: int, joint_index: int) -> JointInfo:
        return self._registry.joint_info(body, joint_index)

    def _joint_states(self, body: int, joint_indices: Sequence[int]) -> list[tuple[np.ndarray, ...]]:
        resolver = self._registry.resolver(body)
        joints = [resolver.check_joint_index(j) for j in joint_indices]
        if not joints:
            return []
        status = self._channel.submit(
            Command(CommandType.GET_JOINT_STATES, values={"body": int(body), "joints": joints})
        )
        positions = np.split(status.buffers["positions"], np.cumsum(status.buffers["q_counts"])[:-1])
        velocities = np.split(status.buffers["velocities"], np.cumsum(status.buffers["u_counts"])[:-1])
        torques = np.split(status.buffers["applied_torques"], np.cumsum(status.buffers["u_counts"])[:-1])
        return list(zip(positions, velocities, torques, strict=True))

    def get_joint_states(self, body: int, joint_indices: Sequence[int]) -> list[JointState]:
        """
        Scalar states of several joints.

        Joints without coordinates report zeros.

        Raises:
            InvalidArgumentError: If a joint has more than one coordinate. Use
                :meth:`get_joint_states_multi_dof` for those.
        """
        states = []
        for j, (q, qd, tau) in zip(joint_indices, self._joint_states(body, joint_indices), strict=True):
            if q.shape[0] > 1 or qd.shape[0] > 1:
                raise InvalidArgumentError(f"joint {j} has {q.shape[0]} coordinates; use get_joint_states_multi_dof")
            states.append(
                JointState(
                    position=float(q[0]) if q.shape[0] else 0.0,
                    velocity=float(qd[0]) if qd.shape[0] else 0.0,
                    applied_torque=float(tau[0]) if tau.shape[0] else 0.0,
                )
            )
        return states

    def get_joint_state(self, body: int, joint_index: int) -> JointState:
        return self.get_joint_states(body, [joint_index])[0]

    def get_joint_states_multi_dof(self, body: int, joint_indices: Sequence[int]) -> list[JointStateMultiDof]:
        """States of joints with any number of coordinates; spherical positions are (x, y, z, w) quaternions."""
        return [
            JointStateMultiDof(positions=q, velocities=qd, applied_torques=tau)
            for q, qd, tau in self._joint_states(body, joint_indices)
        ]

    def reset_joint_state_multi_dof(self, body: int, joint_index: int, positions, velocities=None):
        """
        Overwrite the coordinates of one joint. Motor commands are not affected.

        Args:
            positions: One value per joint coordinate.
            velocities: One value per joint DOF. Defaults to zeros.
        """
        resolver = self._registry.resolver(body)
        span = resolver.span(joint_index)
        q_count = span.q_count if span is not None else 0
        u_count = span.u_count if span is not None else 0
        positions = resolver.check_vector("positions", positions, q_count)
        if velocities is None:
            velocities = np.zeros(u_count, dtype=FLOAT_DTYPE)
        velocities = resolver.check_vector("velocities", velocities, u_count)
        self._channel.submit(
            Command(
                CommandType.RESET_JOINT_STATE,
                values={"body": int(body), "joint": int(joint_index)},
                buffers={"positions": positions, "velocities": velocities},
            )
        )

    def reset_joint_state(self, body: int, joint_index: int, position: float, velocity: float = 0.0):
        """
        Overwrite the position and velocity of a single-coordinate joint.

        Raises:
            InvalidArgumentError: If the joint does not have exactly one coordinate.
        """
        span = self._registry.resolver(body).span(joint_index)
        if span is None or span.q_count != 1 or span.u_count != 1:
            raise InvalidArgumentError(
                f"joint {joint_index} of body {body} is not a single-coordinate joint; "
                "use reset_joint_state_multi_dof"
            )
        self.reset_joint_state_multi_dof(body, joint_index, [position], [velocity])

    def set_joint_motor_control_array(
        self,
        body: int,
        joint_indices: Sequence[int],
        commands: Sequence[MotorCommand],
        max_forces: Sequence[float | None] | None = None,
    ):
        """
        Set the motor commands of several single-DOF joints.

        Commands stay active until replaced. A ``max_force`` of ``None`` uses
        the joint's force limit, and an unset limit (``0``) leaves the motor
        unbounded. Torque commands ignore ``max_force``.

        Raises:
            DimensionMismatchError: If the argument lists differ in length.
            InvalidArgumentError: If a joint is not a single-DOF joint.
        """
        record = self._registry.record(body)
        joints = [record.resolver.check_joint_index(j) for j in joint_indices]
        if len(commands) != len(joints):
            raise DimensionMismatchError(f"{len(commands)} commands given for {len(joints)} joints")
        if max_forces is None:
            max_forces = [None] * len(joints)
        if len(max_forces) != len(joints):
            raise DimensionMismatchError(f"{len(max_forces)} force limits given for {len(joints)} joints")

        limits = []
        for j, command, max_force in zip(joints, commands, max_forces, strict=True):
            if not isinstance(command, MotorCommand):
                raise InvalidArgumentError(f"motor command for joint {j} must be a MotorCommand, got {command!r}")
            if isinstance(command, TorqueControl) or max_force is None:
                joint_limit = record.joints[j].max_force
                max_force = joint_limit if joint_limit > 0.0 else math.inf
            limits.append(float(max_force))

        self._channel.submit(
            Command(
                CommandType.SET_JOINT_MOTOR_CONTROL,
                values={"body": int(body), "joints": joints, "commands": [c.to_wire() for c in commands]},
                buffers={"max_forces": np.asarray(limits, dtype=FLOAT_DTYPE)},
            )
        )

    def set_joint_motor_control(
        self, body: int, joint_index: int, command: MotorCommand, max_force: float | None = None
    ):
        self.set_joint_motor_control_array(body, [joint_index], [command], [max_force])

    ###
    # Dynamics
    ###

    def change_dynamics(self, body: int, link_index: int, options: ChangeDynamicsOptions):
        """Overwrite mass properties or damping of a link. ``link_index = -1`` is the base."""
        link_index = self._registry.resolver(body).check_link_index(link_index, allow_base=True)
        options.check_values()
        self._channel.submit(
            Command(
                CommandType.CHANGE_DYNAMICS,
                values={"body": int(body), "link": link_index, "options": options.to_wire()},
            )
        )
        # joint damping is part of the cached joint metadata
        self._registry.forget(body)

    def get_dynamics_info(self, body: int, link_index: int) -> DynamicsInfo:
        link_index = self._registry.resolver(body).check_link_index(link_index, allow_base=True)
        status = self._channel.submit(
            Command(CommandType.GET_DYNAMICS_INFO, values={"body": int(body), "link": link_index})
        )
        return DynamicsInfo.from_wire(status.values["info"])

    ###
    # Queries
    ###

    def get_link_state(
        self, body: int, link_index: int, compute_velocity: bool = False, compute_forward_kinematics: bool = False
    ) -> LinkState:
        return self._queries.get_link_state(body, link_index, compute_velocity, compute_forward_kinematics)

    def get_link_states(
        self,
        body: int,
        link_indices: Sequence[int],
        compute_velocity: bool = False,
        compute_forward_kinematics: bool = False,
    ) -> list[LinkState]:
        return self._queries.get_link_states(body, link_indices, compute_velocity, compute_forward_kinematics)

    def calculate_jacobian(self, body: int, link_index: int, local_position, q, qdot, qddot) -> Jacobian:
        return self._queries.calculate_jacobian(body, link_index, local_position, q, qdot, qddot)

    def calculate_mass_matrix(self, body: int, q) -> np.ndarray:
        return self._queries.calculate_mass_matrix(body, q)

    def calculate_inverse_dynamics(self, body: int, q, qdot, qddot) -> np.ndarray:
        return self._queries.calculate_inverse_dynamics(body, q, qdot, qddot)

    def calculate_inverse_kinematics(
        self,
        body: int,
        link_index: int,
        target_position,
        target_orientation=None,
        options: InverseKinematicsOptions | None = None,
    ) -> InverseKinematicsResult:
        return self._queries.calculate_inverse_kinematics(
            body, link_index, target_position, target_orientation, options
        )

    ###
    # Snapshots
    ###

    def save_state(self) -> StateId:
        return self._snapshots.save()

    def restore_state(self, state: StateId):
        self._snapshots.restore(state)

    def remove_state(self, state: StateId):
        self._snapshots.remove(state)

    def save_state_to_file(self, path: str | os.PathLike):
        self._snapshots.save_to_file(path)

    def restore_state_from_file(self, path: str | os.PathLike):
        self._snapshots.restore_from_file(path)

    ###
    # Camera
    ###

    compute_view_matrix = staticmethod(compute_view_matrix)
    compute_view_matrix_from_yaw_pitch_roll = staticmethod(compute_view_matrix_from_yaw_pitch_roll)
    compute_projection_matrix = staticmethod(compute_projection_matrix)
    compute_projection_matrix_fov = staticmethod(compute_projection_matrix_fov)
