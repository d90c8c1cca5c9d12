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
Provides containers for engine parameters, query options and motor commands.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, fields
from typing import Any

import numpy as np

from ..core.errors import DimensionMismatchError, InvalidArgumentError

###
# Module interface
###

__all__ = [
    "ChangeDynamicsOptions",
    "ControlMode",
    "DisableMotor",
    "InverseKinematicsOptions",
    "MotorCommand",
    "PhysicsEngineParameters",
    "PositionControl",
    "TorqueControl",
    "VelocityControl",
]


def _optional_array(value) -> list[float] | None:
    if value is None:
        return None
    return [float(x) for x in np.asarray(value, dtype=float).reshape(-1)]


###
# Engine parameters
###


@dataclass
class PhysicsEngineParameters:
    """
    Global simulation parameters of an engine instance.
    """

    fixed_time_step: float = 1.0 / 240.0
    """
    Duration of one call to ``step_simulation`` [s].\n
    Must be positive.\n
    Defaults to `1/240`.
    """

    num_sub_steps: int = 1
    """
    Number of integration sub-steps per step.\n
    Must be at least `1`.\n
    Defaults to `1`.
    """

    gravity: tuple[float, float, float] = (0.0, 0.0, 0.0)
    """
    Gravity vector in world coordinates [m/s^2].\n
    Defaults to zero gravity.
    """

    default_linear_damping: float = 0.0
    """
    Linear damping applied to newly loaded links.\n
    Must be non-negative.\n
    Defaults to `0.0`.
    """

    default_angular_damping: float = 0.0
    """
    Angular damping applied to newly loaded links.\n
    Must be non-negative.\n
    Defaults to `0.0`.
    """

    enable_joint_limits: bool = True
    """
    Set to `False` to let limited joints move past their limits.\n
    Defaults to `True`.
    """

    def __post_init__(self) -> None:
        """
        Performs validation checks on the configuration values after initialization.
        """
        self.gravity = tuple(float(g) for g in self.gravity)
        self.check_values()

    def check_values(self) -> None:
        """
        Validates configuration values.
        """
        if not (self.fixed_time_step > 0.0 and math.isfinite(self.fixed_time_step)):
            raise InvalidArgumentError(f"Invalid fixed_time_step: {self.fixed_time_step}. Must be positive.")
        if int(self.num_sub_steps) != self.num_sub_steps or self.num_sub_steps < 1:
            raise InvalidArgumentError(f"Invalid num_sub_steps: {self.num_sub_steps}. Must be an integer >= 1.")
        if len(self.gravity) != 3:
            raise DimensionMismatchError(f"Invalid gravity: {self.gravity}. Must have 3 components.")
        if self.default_linear_damping < 0.0:
            raise InvalidArgumentError(f"Invalid default_linear_damping: {self.default_linear_damping}.")
        if self.default_angular_damping < 0.0:
            raise InvalidArgumentError(f"Invalid default_angular_damping: {self.default_angular_damping}.")

    def to_wire(self) -> dict[str, Any]:
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values["gravity"] = list(self.gravity)
        return values

    @staticmethod
    def from_wire(values: dict[str, Any]) -> PhysicsEngineParameters:
        return PhysicsEngineParameters(
            fixed_time_step=float(values["fixed_time_step"]),
            num_sub_steps=int(values["num_sub_steps"]),
            gravity=tuple(values["gravity"]),
            default_linear_damping=float(values["default_linear_damping"]),
            default_angular_damping=float(values["default_angular_damping"]),
            enable_joint_limits=bool(values["enable_joint_limits"]),
        )


###
# Inverse kinematics
###


@dataclass
class InverseKinematicsOptions:
    """
    Options of an inverse kinematics query.

    The null-space arrays ``lower_limits``, ``upper_limits``, ``joint_ranges``
    and ``rest_poses`` bias the solution towards the rest pose. They are
    indexed by DOF (one entry per generalized velocity) and must be given
    together.
    """

    max_iterations: int = 20
    """Maximum number of solver iterations. Defaults to `20`."""

    residual_threshold: float = 1.0e-4
    """Target error norm at which the solver stops. Defaults to `1e-4`."""

    joint_damping: list[float] | None = None
    """Per-DOF damping of the least-squares step. Defaults to `0.1` for every DOF."""

    lower_limits: list[float] | None = None
    upper_limits: list[float] | None = None
    joint_ranges: list[float] | None = None
    rest_poses: list[float] | None = None

    current_positions: list[float] | None = None
    """Joint coordinates to start from. Defaults to the body's current coordinates."""

    null_space_gain: float = 0.5
    """Gain of the null-space attraction towards ``rest_poses``."""

    def __post_init__(self) -> None:
        self.joint_damping = _optional_array(self.joint_damping)
        self.lower_limits = _optional_array(self.lower_limits)
        self.upper_limits = _optional_array(self.upper_limits)
        self.joint_ranges = _optional_array(self.joint_ranges)
        self.rest_poses = _optional_array(self.rest_poses)
        self.current_positions = _optional_array(self.current_positions)
        self.check_values()

    @property
    def uses_null_space(self) -> bool:
        return self.rest_poses is not None

    def check_values(self) -> None:
        if int(self.max_iterations) != self.max_iterations or self.max_iterations < 1:
            raise InvalidArgumentError(f"Invalid max_iterations: {self.max_iterations}. Must be an integer >= 1.")
        if self.residual_threshold < 0.0:
            raise InvalidArgumentError(f"Invalid residual_threshold: {self.residual_threshold}.")
        null_space = [self.lower_limits, self.upper_limits, self.joint_ranges, self.rest_poses]
        given = [a is not None for a in null_space]
        if any(given) and not all(given):
            raise InvalidArgumentError(
                "lower_limits, upper_limits, joint_ranges and rest_poses must be given together"
            )
        if all(given) and len({len(a) for a in null_space}) != 1:
            raise DimensionMismatchError("null-space arrays must all have the same length")
        if self.joint_damping is not None and any(d < 0.0 for d in self.joint_damping):
            raise InvalidArgumentError("joint_damping must be non-negative")

    def to_wire(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @staticmethod
    def from_wire(values: dict[str, Any]) -> InverseKinematicsOptions:
        return InverseKinematicsOptions(**values)


###
# Dynamics
###


@dataclass
class ChangeDynamicsOptions:
    """
    Properties to overwrite with ``change_dynamics``. Fields left at `None` are not changed.
    """

    mass: float | None = None
    local_inertia_diagonal: tuple[float, float, float] | None = None
    lateral_friction: float | None = None
    linear_damping: float | None = None
    angular_damping: float | None = None
    joint_damping: float | None = None

    def __post_init__(self) -> None:
        if self.local_inertia_diagonal is not None:
            self.local_inertia_diagonal = tuple(float(x) for x in self.local_inertia_diagonal)
        self.check_values()

    def check_values(self) -> None:
        for name in ("mass", "lateral_friction", "linear_damping", "angular_damping", "joint_damping"):
            value = getattr(self, name)
            if value is not None and value < 0.0:
                raise InvalidArgumentError(f"Invalid {name}: {value}. Must be non-negative.")
        if self.local_inertia_diagonal is not None:
            if len(self.local_inertia_diagonal) != 3:
                raise DimensionMismatchError("local_inertia_diagonal must have 3 components")
            if any(x < 0.0 for x in self.local_inertia_diagonal):
                raise InvalidArgumentError("local_inertia_diagonal must be non-negative")

    def to_wire(self) -> dict[str, Any]:
        values = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not None:
                values[f.name] = list(value) if isinstance(value, tuple) else value
        return values


###
# Motor commands
###


class ControlMode:
    """Names of the motor control modes on the wire."""

    NONE = "none"
    POSITION = "position"
    VELOCITY = "velocity"
    TORQUE = "torque"


class MotorCommand(ABC):
    """Base class of joint motor commands."""

    mode: str = ControlMode.NONE

    @abstractmethod
    def to_wire(self) -> dict[str, Any]:
        """Encode the command as protocol values."""


@dataclass
class DisableMotor(MotorCommand):
    """Switch off the motor of a joint so that it moves freely again."""

    mode = ControlMode.NONE

    def to_wire(self) -> dict[str, Any]:
        return {"mode": self.mode}


@dataclass
class PositionControl(MotorCommand):
    """
    Drive a joint towards a target position with a PD velocity motor.

    The motor solves for the velocity
    ``position_gain * (target_position - q) / dt + qd + velocity_gain * (target_velocity - qd)``
    subject to the joint's force limit.
    """

    target_position: float
    target_velocity: float = 0.0
    position_gain: float = 0.1
    velocity_gain: float = 1.0
    mode = ControlMode.POSITION

    def to_wire(self) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "target_position": float(self.target_position),
            "target_velocity": float(self.target_velocity),
            "position_gain": float(self.position_gain),
            "velocity_gain": float(self.velocity_gain),
        }


@dataclass
class VelocityControl(MotorCommand):
    """Drive a joint at a target velocity, subject to the joint's force limit."""

    target_velocity: float
    mode = ControlMode.VELOCITY

    def to_wire(self) -> dict[str, Any]:
        return {"mode": self.mode, "target_velocity": float(self.target_velocity)}


@dataclass
class TorqueControl(MotorCommand):
    """Apply a constant generalized force during the following steps."""

    force: float
    mode = ControlMode.TORQUE

    def to_wire(self) -> dict[str, Any]:
        return {"mode": self.mode, "force": float(self.force)}
