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

from __future__ import annotations

from enum import IntEnum


# Types of joints linking rigid bodies
class JointType(IntEnum):
    """
    Enumeration of joint types supported by the engine.

    The numeric values are part of the wire protocol.
    """

    REVOLUTE = 0
    """Revolute joint: one rotational degree of freedom about the joint axis."""

    PRISMATIC = 1
    """Prismatic joint: one translational degree of freedom along the joint axis."""

    SPHERICAL = 2
    """Spherical joint: three rotational degrees of freedom, parameterized by a quaternion."""

    PLANAR = 3
    """Planar joint: two translations in the plane orthogonal to the axis plus a rotation about it."""

    FIXED = 4
    """Fixed joint: locks all relative motion; contributes no generalized coordinate."""

    POINT2POINT = 5
    """Point-to-point constraint: contributes no generalized coordinate."""

    GEAR = 6
    """Gear constraint: contributes no generalized coordinate."""

    FREE = 7
    """Free joint attaching a floating base to the world. Never reported as a body joint."""

    def dof_count(self) -> tuple[int, int]:
        """
        Return the number of velocity DOFs and position coordinates for this joint type.

        Returns:
            tuple[int, int]: (num_dofs, num_coords) where
                - num_dofs: Number of velocity degrees of freedom.
                - num_coords: Number of position coordinates (spherical and free
                  joints store a quaternion and therefore have one more coordinate).
        """
        if self in (JointType.REVOLUTE, JointType.PRISMATIC):
            return 1, 1
        elif self == JointType.SPHERICAL:
            return 3, 4
        elif self == JointType.PLANAR:
            return 3, 3
        elif self == JointType.FREE:
            return 6, 7
        return 0, 0

    @property
    def is_movable(self) -> bool:
        return self.dof_count()[0] > 0


__all__ = ["JointType"]
