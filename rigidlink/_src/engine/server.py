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

"""In-process engine answering protocol frames."""

from __future__ import annotations

from collections.abc import Callable

import numpy as np

from ..client.config import ControlMode, InverseKinematicsOptions, PhysicsEngineParameters
from ..client.protocol import (
    Command,
    CommandType,
    Status,
    StatusType,
    decode_frame,
    encode_status,
)
from ..core.errors import (
    DimensionMismatchError,
    IndexOutOfRangeError,
    InvalidArgumentError,
    ProtocolError,
    RigidLinkError,
)
from ..core.types import FLOAT_DTYPE, INT_DTYPE, Devicelike
from ..math import normalize_quat, pose_from_array, pose_to_array
from ..sim.builder import BodyDescription
from ..sim.joints import JointType
from ..utils import logger as msg
from .articulation import Articulation, CommandError
from .dynamics import solve_inverse_kinematics
from .world import World


def _value(command: Command, name: str):
    try:
        return command.values[name]
    except KeyError:
        raise CommandError(StatusType.MALFORMED_REQUEST, f"{command.type.name} is missing '{name}'") from None


def _buffer(command: Command, name: str, size: int | None = None) -> np.ndarray:
    try:
        buf = np.asarray(command.buffers[name], dtype=FLOAT_DTYPE).reshape(-1)
    except KeyError:
        raise CommandError(StatusType.MALFORMED_REQUEST, f"{command.type.name} is missing buffer '{name}'") from None
    if size is not None and buf.shape[0] != size:
        raise CommandError(
            StatusType.DIMENSION_MISMATCH, f"buffer '{name}' has {buf.shape[0]} values, expected {size}"
        )
    return buf


def _int(command: Command, name: str) -> int:
    value = _value(command, name)
    if isinstance(value, bool) or not isinstance(value, int):
        raise CommandError(StatusType.MALFORMED_REQUEST, f"'{name}' must be an integer")
    return value


class DirectEngine:
    """Reference engine running in the caller's process.

    It processes one command frame at a time and always answers with a status
    frame, converting every failure into an error status.

    Args:
        device: Warp device the kernels run on. Defaults to Warp's default device.
    """

    def __init__(self, device: Devicelike = None):
        self.world = World(device)
        self._handlers: dict[CommandType, Callable[[Command], Status]] = {
            CommandType.RESET_SIMULATION: self._reset_simulation,
            CommandType.STEP_SIMULATION: self._step_simulation,
            CommandType.SET_PHYSICS_PARAMETERS: self._set_physics_parameters,
            CommandType.GET_PHYSICS_PARAMETERS: self._get_physics_parameters,
            CommandType.LOAD_BODY: self._load_body,
            CommandType.REMOVE_BODY: self._remove_body,
            CommandType.GET_BODY_IDS: self._get_body_ids,
            CommandType.GET_BODY_INFO: self._get_body_info,
            CommandType.GET_JOINT_INFO: self._get_joint_info,
            CommandType.GET_BASE_STATE: self._get_base_state,
            CommandType.RESET_BASE_STATE: self._reset_base_state,
            CommandType.GET_JOINT_STATES: self._get_joint_states,
            CommandType.RESET_JOINT_STATE: self._reset_joint_state,
            CommandType.SET_JOINT_MOTOR_CONTROL: self._set_joint_motor_control,
            CommandType.CHANGE_DYNAMICS: self._change_dynamics,
            CommandType.GET_DYNAMICS_INFO: self._get_dynamics_info,
            CommandType.GET_LINK_STATES: self._get_link_states,
            CommandType.CALCULATE_JACOBIAN: self._calculate_jacobian,
            CommandType.CALCULATE_MASS_MATRIX: self._calculate_mass_matrix,
            CommandType.CALCULATE_INVERSE_DYNAMICS: self._calculate_inverse_dynamics,
            CommandType.CALCULATE_INVERSE_KINEMATICS: self._calculate_inverse_kinematics,
            CommandType.SAVE_STATE: self._save_state,
            CommandType.RESTORE_STATE: self._restore_state,
            CommandType.REMOVE_STATE: self._remove_state,
            CommandType.SAVE_STATE_TO_FILE: self._save_state_to_file,
            CommandType.RESTORE_STATE_FROM_FILE: self._restore_state_from_file,
        }

    def process(self, frame: bytes) -> bytes:
        """Execute one command frame and return the encoded status frame."""
        try:
            kind, sequence, values, buffers, _ = decode_frame(frame)
        except ProtocolError as e:
            msg.warning(f"Dropped malformed frame: {e}")
            return encode_status(Status(StatusType.MALFORMED_REQUEST, message=str(e)))

        try:
            command_type = CommandType(kind)
        except ValueError:
            msg.warning(f"Dropped frame with unknown command type {kind}")
            return encode_status(
                Status(StatusType.UNKNOWN_COMMAND, sequence=sequence, message=f"unknown command type {kind}")
            )

        command = Command(command_type, values if isinstance(values, dict) else {}, buffers, sequence)
        status = self.execute(command)
        status.sequence = sequence
        return encode_status(status)

    def execute(self, command: Command) -> Status:
        """Run a decoded command against the world."""
        handler = self._handlers.get(command.type)
        if handler is None:
            return Status(StatusType.UNKNOWN_COMMAND, message=f"no handler for {command.type.name}")
        try:
            return handler(command)
        except CommandError as e:
            return Status(e.status, message=str(e))
        except RigidLinkError as e:
            # validation errors raised by shared data types
            return Status(_status_of(e), message=str(e))
        except np.linalg.LinAlgError as e:
            msg.error(f"{command.type.name} failed: {e}")
            return Status(StatusType.COMPUTATION_FAILED, message=f"{command.type.name}: {e}")
        except (KeyError, TypeError, ValueError) as e:
            msg.debug(f"Malformed {command.type.name}: {e}")
            return Status(StatusType.MALFORMED_REQUEST, message=f"{command.type.name}: {e}")

    ###
    # World
    ###

    def _reset_simulation(self, command: Command) -> Status:
        self.world.reset()
        return Status(StatusType.OK)

    def _step_simulation(self, command: Command) -> Status:
        self.world.step()
        return Status(StatusType.OK, values={"time": self.world.time})

    def _set_physics_parameters(self, command: Command) -> Status:
        self.world.params = PhysicsEngineParameters.from_wire(_value(command, "params"))
        return Status(StatusType.OK)

    def _get_physics_parameters(self, command: Command) -> Status:
        return Status(StatusType.OK, values={"params": self.world.params.to_wire()})

    ###
    # Bodies
    ###

    def _body(self, command: Command) -> Articulation:
        return self.world.body(_int(command, "body"))

    def _load_body(self, command: Command) -> Status:
        description = BodyDescription.from_wire(_value(command, "description"))
        base_pose = pose_from_array(_buffer(command, "base_pose", 7))
        art = self.world.load_body(description, base_pose, bool(command.values.get("use_fixed_base", False)))
        return Status(StatusType.OK, values={"body": art.body_id})

    def _remove_body(self, command: Command) -> Status:
        self.world.remove_body(_int(command, "body"))
        return Status(StatusType.OK)

    def _get_body_ids(self, command: Command) -> Status:
        return Status(StatusType.OK, buffers={"bodies": np.asarray(list(self.world.bodies), dtype=INT_DTYPE)})

    def _get_body_info(self, command: Command) -> Status:
        return Status(StatusType.OK, values={"info": self._body(command).info().to_wire()})

    def _get_joint_info(self, command: Command) -> Status:
        art = self._body(command)
        joints = [art.joint_info(j).to_wire() for j in range(art.num_joints)]
        return Status(StatusType.OK, values={"joints": joints})

    def _get_base_state(self, command: Command) -> Status:
        art = self._body(command)
        com_pose = art.base_frame() * art.local_inertial_pose(0)
        return Status(
            StatusType.OK,
            buffers={"pose": pose_to_array(com_pose), "velocity": art.base_com_velocity()},
        )

    def _reset_base_state(self, command: Command) -> Status:
        art = self._body(command)
        if "pose" in command.buffers:
            com_pose = pose_from_array(_buffer(command, "pose", 7))
            art.set_base_frame(com_pose * art.local_inertial_pose(0).inverse())
        if "velocity" in command.buffers:
            velocity = _buffer(command, "velocity", 6)
            if art.fixed_base:
                if np.any(velocity != 0.0):
                    raise CommandError(StatusType.INVALID_ARGUMENT, f"body {art.body_id} has a fixed base")
            else:
                art.joint_qd[0:6] = velocity
        return Status(StatusType.OK)

    ###
    # Joints
    ###

    def _get_joint_states(self, command: Command) -> Status:
        art = self._body(command)
        joints = [art.check_joint(int(j)) for j in _value(command, "joints")]
        positions, velocities, forces, q_counts, u_counts = [], [], [], [], []
        for joint in joints:
            cs = art.joint_coords(joint)
            ds = art.joint_dofs(joint)
            positions.append(art.joint_q[cs])
            velocities.append(art.joint_qd[ds])
            forces.append(art.applied_forces[ds])
            q_counts.append(cs.stop - cs.start)
            u_counts.append(ds.stop - ds.start)
        empty = np.zeros(0, dtype=FLOAT_DTYPE)
        return Status(
            StatusType.OK,
            buffers={
                "positions": np.concatenate(positions) if positions else empty,
                "velocities": np.concatenate(velocities) if velocities else empty,
                "applied_torques": np.concatenate(forces) if forces else empty,
                "q_counts": np.asarray(q_counts, dtype=INT_DTYPE),
                "u_counts": np.asarray(u_counts, dtype=INT_DTYPE),
            },
        )

    def _reset_joint_state(self, command: Command) -> Status:
        art = self._body(command)
        joint = art.check_joint(_int(command, "joint"))
        cs = art.joint_coords(joint)
        ds = art.joint_dofs(joint)
        positions = _buffer(command, "positions", cs.stop - cs.start)
        velocities = _buffer(command, "velocities", ds.stop - ds.start)
        if art.joint_type[joint] == JointType.SPHERICAL:
            positions = normalize_quat(positions)
        art.joint_q[cs] = positions
        art.joint_qd[ds] = velocities
        return Status(StatusType.OK)

    def _set_joint_motor_control(self, command: Command) -> Status:
        art = self._body(command)
        joints = [int(j) for j in _value(command, "joints")]
        commands = _value(command, "commands")
        max_forces = _buffer(command, "max_forces", len(joints))
        if len(commands) != len(joints):
            raise CommandError(StatusType.DIMENSION_MISMATCH, "one motor command is needed per joint")

        updates = {}
        for j, cmd, max_force in zip(joints, commands, max_forces, strict=True):
            joint = art.check_joint(j)
            if JointType(art.joint_type[joint]).dof_count() != (1, 1):
                raise CommandError(
                    StatusType.INVALID_ARGUMENT, f"joint {j} of body {art.body_id} is not a single-DOF joint"
                )
            mode = cmd.get("mode")
            if mode not in (ControlMode.POSITION, ControlMode.VELOCITY, ControlMode.TORQUE, ControlMode.NONE):
                raise CommandError(StatusType.INVALID_ARGUMENT, f"unknown control mode '{mode}'")
            if max_force < 0.0:
                raise CommandError(StatusType.INVALID_ARGUMENT, "max_force must be non-negative")
            updates[j] = dict(cmd, max_force=float(max_force))

        for j, cmd in updates.items():
            if cmd["mode"] == ControlMode.NONE:
                art.motors.pop(j, None)
            else:
                art.motors[j] = cmd
        return Status(StatusType.OK)

    ###
    # Dynamics
    ###

    def _change_dynamics(self, command: Command) -> Status:
        art = self._body(command)
        body = art.check_link(_int(command, "link"), allow_base=True)
        art.change_dynamics(body, _value(command, "options"))
        return Status(StatusType.OK)

    def _get_dynamics_info(self, command: Command) -> Status:
        art = self._body(command)
        body = art.check_link(_int(command, "link"), allow_base=True)
        return Status(StatusType.OK, values={"info": art.dynamics_info(body).to_wire()})

    ###
    # Queries
    ###

    def _get_link_states(self, command: Command) -> Status:
        art = self._body(command)
        bodies = [art.check_link(int(link)) for link in _value(command, "links")]
        compute_velocity = bool(command.values.get("compute_velocity", False))
        kin = art.eval_fk()

        world, local, frame, velocity = [], [], [], []
        for body in bodies:
            state = art.link_state(body, kin, compute_velocity)
            world.append(pose_to_array(state.world_pose))
            local.append(pose_to_array(state.local_inertial_pose))
            frame.append(pose_to_array(state.world_link_frame_pose))
            if compute_velocity:
                velocity.append(np.concatenate([state.linear_world_velocity, state.angular_world_velocity]))

        buffers = {
            "world_poses": np.asarray(world, dtype=FLOAT_DTYPE).reshape(-1, 7),
            "local_inertial_poses": np.asarray(local, dtype=FLOAT_DTYPE).reshape(-1, 7),
            "link_frame_poses": np.asarray(frame, dtype=FLOAT_DTYPE).reshape(-1, 7),
        }
        if compute_velocity:
            buffers["velocities"] = np.asarray(velocity, dtype=FLOAT_DTYPE).reshape(-1, 6)
        return Status(StatusType.OK, buffers=buffers)

    def _query_state(self, command: Command, art: Articulation, need_velocity: bool = False):
        n_q = art.coord_count - art.base_coord_count
        n_u = art.dof_count - art.base_dof_count
        q = art.full_q(_buffer(command, "q", n_q))
        qd = art.full_qd(_buffer(command, "qdot", n_u)) if need_velocity else art.joint_qd.copy()
        return q, qd

    def _calculate_jacobian(self, command: Command) -> Status:
        art = self._body(command)
        body = art.check_link(_int(command, "link"))
        local_position = _buffer(command, "local_position", 3)
        n_u = art.dof_count - art.base_dof_count
        q, qd = self._query_state(command, art, need_velocity=True)
        _buffer(command, "qddot", n_u)

        kin = art.eval_fk(q, qd)
        com_pose = pose_from_array(kin.body_q[body]) * art.local_inertial_pose(body)
        point = com_pose.transform_point(local_position)
        linear, angular = art.point_jacobian(body, point, art.eval_jacobian(kin))
        return Status(StatusType.OK, buffers={"linear": linear, "angular": angular})

    def _calculate_mass_matrix(self, command: Command) -> Status:
        art = self._body(command)
        q, _ = self._query_state(command, art)
        kin = art.eval_fk(q, np.zeros(art.dof_count, dtype=FLOAT_DTYPE))
        return Status(StatusType.OK, buffers={"mass_matrix": art.eval_mass_matrix(kin)})

    def _calculate_inverse_dynamics(self, command: Command) -> Status:
        art = self._body(command)
        n_u = art.dof_count - art.base_dof_count
        q, qd = self._query_state(command, art, need_velocity=True)
        qdd = np.concatenate([np.zeros(art.base_dof_count), _buffer(command, "qddot", n_u)])
        kin = art.eval_fk(q, qd)
        tau = art.eval_inverse_dynamics(kin, qdd, self.world.params.gravity)
        if not np.all(np.isfinite(tau)):
            raise CommandError(StatusType.COMPUTATION_FAILED, "inverse dynamics produced non-finite forces")
        return Status(StatusType.OK, buffers={"forces": tau})

    def _calculate_inverse_kinematics(self, command: Command) -> Status:
        art = self._body(command)
        body = art.check_link(_int(command, "link"))
        target_position = _buffer(command, "target_position", 3)
        target_orientation = None
        if "target_orientation" in command.buffers:
            target_orientation = normalize_quat(_buffer(command, "target_orientation", 4))
        options = InverseKinematicsOptions.from_wire(command.values.get("options", {}))

        solution = solve_inverse_kinematics(art, body, target_position, target_orientation, options)
        return Status(
            StatusType.OK,
            values={
                "residual": solution.residual,
                "iterations": solution.iterations,
                "converged": solution.converged,
            },
            buffers={"coordinates": solution.coordinates},
        )

    ###
    # Snapshots
    ###

    def _save_state(self, command: Command) -> Status:
        return Status(StatusType.OK, values={"state": self.world.save_state()})

    def _restore_state(self, command: Command) -> Status:
        self.world.restore_state(_int(command, "state"))
        return Status(StatusType.OK)

    def _remove_state(self, command: Command) -> Status:
        self.world.remove_state(_int(command, "state"))
        return Status(StatusType.OK)

    def _save_state_to_file(self, command: Command) -> Status:
        self.world.save_state_to_file(str(_value(command, "path")))
        return Status(StatusType.OK)

    def _restore_state_from_file(self, command: Command) -> Status:
        self.world.restore_state_from_file(str(_value(command, "path")))
        return Status(StatusType.OK)


def _status_of(error: RigidLinkError) -> StatusType:
    if isinstance(error, DimensionMismatchError):
        return StatusType.DIMENSION_MISMATCH
    if isinstance(error, IndexOutOfRangeError):
        return StatusType.INDEX_OUT_OF_RANGE
    if isinstance(error, InvalidArgumentError):
        return StatusType.INVALID_ARGUMENT
    return StatusType.COMPUTATION_FAILED
