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

from .channel import CommandChannel, DirectTransport, FrameProcessor, Transport
from .config import (
    ChangeDynamicsOptions,
    ControlMode,
    DisableMotor,
    InverseKinematicsOptions,
    MotorCommand,
    PhysicsEngineParameters,
    PositionControl,
    TorqueControl,
    VelocityControl,
)
from .protocol import Command, CommandType, Status, StatusType

__all__ = [
    "ChangeDynamicsOptions",
    "Command",
    "CommandChannel",
    "CommandType",
    "ControlMode",
    "DisableMotor",
    "DirectTransport",
    "FrameProcessor",
    "InverseKinematicsOptions",
    "MotorCommand",
    "PhysicsEngineParameters",
    "PositionControl",
    "Status",
    "StatusType",
    "TorqueControl",
    "Transport",
    "VelocityControl",
]
