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
Ready-made body descriptions for tests and examples.
"""

from __future__ import annotations

import numpy as np

from ..math import Pose, quat_from_axis_angle
from ..sim.builder import ArticulationBuilder, BodyDescription

###
# Module interface
###

__all__ = [
    "create_cube",
    "create_planar_slider",
    "create_seven_joint_arm",
    "create_spherical_pendulum",
    "create_two_joint_arm",
    "create_wheeled_rover",
]


def _box_inertia(mass: float, hx: float, hy: float, hz: float) -> np.ndarray:
    """Principal inertia of a solid box with half extents ``(hx, hy, hz)``."""
    return (mass / 3.0) * np.array([hy * hy + hz * hz, hx * hx + hz * hz, hx * hx + hy * hy])


def _rod_inertia(mass: float, length: float, radius: float = 0.02) -> np.ndarray:
    """Principal inertia of a solid cylinder along the local x-axis."""
    axial = 0.5 * mass * radius * radius
    transverse = mass * (3.0 * radius * radius + length * length) / 12.0
    return np.array([axial, transverse, transverse])


def create_cube(mass: float = 1.0, half_extent: float = 0.5, name: str = "cube") -> BodyDescription:
    """A single rigid box with no joints."""
    builder = ArticulationBuilder(name)
    builder.set_base(mass=mass, inertia=_box_inertia(mass, half_extent, half_extent, half_extent), name="cube_link")
    return builder.finalize()


def create_two_joint_arm(
    link_length: float = 0.5, link_mass: float = 1.0, name: str = "two_joint_arm"
) -> BodyDescription:
    """
    A planar arm with two revolute joints about z.

    Joints: ``0`` shoulder (revolute), ``1`` elbow (revolute), ``2`` tool (fixed).
    Each arm segment extends along its local x-axis with the center of mass
    at its middle. The tool link sits at the tip of the forearm.
    """
    builder = ArticulationBuilder(name)
    builder.set_base(mass=0.0, name="shoulder_mount")
    inertia = _rod_inertia(link_mass, link_length)
    com = (0.5 * link_length, 0.0, 0.0)
    upper = builder.add_joint_revolute(
        -1, Pose([0.0, 0.0, 0.1]), axis=(0.0, 0.0, 1.0), mass=link_mass, com=com, inertia=inertia,
        key="upper_arm", joint_key="shoulder",
    )
    fore = builder.add_joint_revolute(
        upper, Pose([link_length, 0.0, 0.0]), axis=(0.0, 0.0, 1.0), mass=link_mass, com=com, inertia=inertia,
        key="forearm", joint_key="elbow",
    )
    builder.add_joint_fixed(
        fore, Pose([link_length, 0.0, 0.0]), mass=0.1, inertia=(1e-4, 1e-4, 1e-4), key="tool", joint_key="tool_mount"
    )
    return builder.finalize()


def create_seven_joint_arm(name: str = "seven_joint_arm") -> BodyDescription:
    """
    A fixed-base manipulator with seven revolute joints and a fixed flange.

    The joint axes alternate between z and y, with joint limits of
    ``+-2.9`` rad on the z joints and ``+-2.0`` rad on the y joints, which
    gives the arm a redundant degree of freedom for null-space tests.
    """
    builder = ArticulationBuilder(name)
    builder.set_base(mass=0.0, name="arm_base")
    offsets = [0.1575, 0.2025, 0.2045, 0.2155, 0.1845, 0.2155, 0.081]
    masses = [4.0, 4.0, 3.0, 2.7, 1.7, 1.8, 0.3]
    parent = -1
    for i, (offset, mass) in enumerate(zip(offsets, masses, strict=True)):
        axis = (0.0, 0.0, 1.0) if i % 2 == 0 else (0.0, 1.0, 0.0)
        limit = 2.9 if i % 2 == 0 else 2.0
        parent = builder.add_joint_revolute(
            parent,
            Pose([0.0, 0.0, offset]),
            axis=axis,
            mass=mass,
            com=(0.0, 0.01, 0.5 * offset),
            inertia=(0.1 * mass * offset, 0.1 * mass * offset, 0.05 * mass * offset),
            limit_lower=-limit,
            limit_upper=limit,
            effort_limit=300.0,
            velocity_limit=10.0,
            damping=0.5,
            key=f"arm_link_{i + 1}",
            joint_key=f"arm_joint_{i + 1}",
        )
    builder.add_joint_fixed(parent, Pose([0.0, 0.0, 0.045]), mass=0.0, key="flange", joint_key="flange_joint")
    return builder.finalize()


def create_wheeled_rover(name: str = "rover") -> BodyDescription:
    """
    A floating-base vehicle with fixed struts and revolute wheels.

    Joint layout: ``0`` right strut (fixed), ``1`` right wheel (revolute),
    ``2`` left strut (fixed), ``3`` left wheel (revolute), ``4`` head (revolute
    about z). Joint q-indices start at 7 because of the floating base.
    """
    builder = ArticulationBuilder(name)
    builder.set_base(mass=10.0, inertia=_box_inertia(10.0, 0.3, 0.2, 0.1), name="chassis")
    wheel_inertia = (0.02, 0.02, 0.04)
    strut_rot = quat_from_axis_angle((1.0, 0.0, 0.0), 0.5 * np.pi)
    for side, y in (("right", -0.22), ("left", 0.22)):
        strut = builder.add_joint_fixed(
            -1, Pose([0.0, y, 0.0]), mass=0.5, inertia=(1e-3, 1e-3, 1e-3), key=f"{side}_strut",
            joint_key=f"{side}_strut_joint",
        )
        builder.add_joint_revolute(
            strut,
            Pose([0.0, 0.0, -0.1], strut_rot),
            axis=(0.0, 0.0, 1.0),
            mass=0.8,
            inertia=wheel_inertia,
            effort_limit=100.0,
            velocity_limit=20.0,
            key=f"{side}_wheel",
            joint_key=f"{side}_wheel_joint",
        )
    builder.add_joint_revolute(
        -1, Pose([0.0, 0.0, 0.15]), axis=(0.0, 0.0, 1.0), mass=1.0, inertia=(0.01, 0.01, 0.01),
        limit_lower=-1.5, limit_upper=1.5, key="head", joint_key="head_swivel",
    )
    return builder.finalize()


def create_spherical_pendulum(
    length: float = 1.0, mass: float = 1.0, name: str = "spherical_pendulum"
) -> BodyDescription:
    """A point-like bob hanging below a fixed pivot on a spherical joint."""
    builder = ArticulationBuilder(name)
    builder.set_base(mass=0.0, name="pivot")
    builder.add_joint_spherical(
        -1, Pose(), mass=mass, com=(0.0, 0.0, -length), inertia=(1e-3, 1e-3, 1e-3), key="bob", joint_key="pivot_joint"
    )
    return builder.finalize()


def create_planar_slider(mass: float = 1.0, name: str = "planar_slider") -> BodyDescription:
    """A box moving in the world xy-plane on a planar joint."""
    builder = ArticulationBuilder(name)
    builder.set_base(mass=0.0, name="ground")
    builder.add_joint_planar(
        -1, Pose(), axis=(0.0, 0.0, 1.0), mass=mass, com=(0.1, 0.0, 0.0),
        inertia=_box_inertia(mass, 0.2, 0.1, 0.05), key="puck", joint_key="plane",
    )
    return builder.finalize()
