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

# ==================================================================================
# core
# ==================================================================================
from ._src.core import (
    ConvergenceWarning,
    DimensionMismatchError,
    EngineError,
    IncompatibleSnapshotError,
    IndexOutOfRangeError,
    InvalidArgumentError,
    ProtocolError,
    RigidLinkError,
    TransportError,
    UnknownBodyError,
    UnknownHandleError,
    UnknownStateError,
)
from ._version import __version__

__all__ = [
    "ConvergenceWarning",
    "DimensionMismatchError",
    "EngineError",
    "IncompatibleSnapshotError",
    "IndexOutOfRangeError",
    "InvalidArgumentError",
    "ProtocolError",
    "RigidLinkError",
    "TransportError",
    "UnknownBodyError",
    "UnknownHandleError",
    "UnknownStateError",
    "__version__",
]

# ==================================================================================
# geometry
# ==================================================================================
from ._src.math import Pose  # noqa: E402

__all__ += [
    "Pose",
]

# ==================================================================================
# sim
# ==================================================================================
from ._src.sim import (  # noqa: E402
    ArticulationBuilder,
    BodyDescription,
    BodyInfo,
    DynamicsInfo,
    JointIndexResolver,
    JointInfo,
    JointState,
    JointStateMultiDof,
    JointType,
    LinkDescription,
    LinkState,
    compute_joint_indices,
)

__all__ += [
    "ArticulationBuilder",
    "BodyDescription",
    "BodyInfo",
    "DynamicsInfo",
    "JointIndexResolver",
    "JointInfo",
    "JointState",
    "JointStateMultiDof",
    "JointType",
    "LinkDescription",
    "LinkState",
    "compute_joint_indices",
]

# ==================================================================================
# client
# ==================================================================================
from ._src.client import (  # noqa: E402
    ChangeDynamicsOptions,
    CommandChannel,
    ControlMode,
    DisableMotor,
    DirectTransport,
    InverseKinematicsOptions,
    MotorCommand,
    PhysicsEngineParameters,
    PositionControl,
    TorqueControl,
    Transport,
    VelocityControl,
)
from ._src.client.physics_client import PhysicsClient  # noqa: E402
from ._src.client.queries import IK_PLACEHOLDER, InverseKinematicsResult, Jacobian  # noqa: E402
from ._src.client.snapshots import StateId  # noqa: E402

__all__ += [
    "IK_PLACEHOLDER",
    "ChangeDynamicsOptions",
    "CommandChannel",
    "ControlMode",
    "DisableMotor",
    "DirectTransport",
    "InverseKinematicsOptions",
    "InverseKinematicsResult",
    "Jacobian",
    "MotorCommand",
    "PhysicsClient",
    "PhysicsEngineParameters",
    "PositionControl",
    "StateId",
    "TorqueControl",
    "Transport",
    "VelocityControl",
]

# ==================================================================================
# submodule APIs
# ==================================================================================
from . import engine, math, utils  # noqa: E402

__all__ += [
    "engine",
    "math",
    "utils",
]
