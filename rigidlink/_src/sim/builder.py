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

"""Programmatic construction of multi-body descriptions."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from ..core.errors import InvalidArgumentError
from ..core.types import FLOAT_DTYPE, Vec3
from ..math import Pose, pose_from_array, pose_to_array
from .joints import JointType


def _coerce_mat33(value) -> np.ndarray:
    m = np.asarray(value, dtype=FLOAT_DTYPE)
    if m.shape == (3,):
        m = np.diag(m)
    if m.shape == (9,):
        m = m.reshape(3, 3)
    if m.shape != (3, 3):
        raise InvalidArgumentError(f"inertia must be a 3x3 matrix or a diagonal, got shape {m.shape}")
    return m


@dataclass
class LinkDescription:
    """A link together with the joint that attaches it to its parent."""

    name: str
    parent: int
    """Index of the parent link, ``-1`` for the base."""
    joint_type: JointType
    joint_name: str
    parent_xform: Pose = field(default_factory=Pose)
    """Joint frame relative to the parent link frame. The child link frame coincides with the joint frame."""
    axis: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0, 1.0], dtype=FLOAT_DTYPE))
    mass: float = 1.0
    com: np.ndarray = field(default_factory=lambda: np.zeros(3, dtype=FLOAT_DTYPE))
    """Center of mass in the link frame."""
    inertia: np.ndarray = field(default_factory=lambda: np.eye(3, dtype=FLOAT_DTYPE) * 0.01)
    """Inertia tensor about the center of mass, in link frame axes."""
    limit_lower: float = 0.0
    limit_upper: float = -1.0
    effort_limit: float = 0.0
    velocity_limit: float = 0.0
    damping: float = 0.0
    friction: float = 0.0

    def to_wire(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "parent": self.parent,
            "joint_type": int(self.joint_type),
            "joint_name": self.joint_name,
            "parent_xform": pose_to_array(self.parent_xform).tolist(),
            "axis": self.axis.tolist(),
            "mass": self.mass,
            "com": self.com.tolist(),
            "inertia": self.inertia.reshape(-1).tolist(),
            "limit_lower": self.limit_lower,
            "limit_upper": self.limit_upper,
            "effort_limit": self.effort_limit,
            "velocity_limit": self.velocity_limit,
            "damping": self.damping,
            "friction": self.friction,
        }

    @staticmethod
    def from_wire(values: dict[str, Any]) -> LinkDescription:
        return LinkDescription(
            name=str(values["name"]),
            parent=int(values["parent"]),
            joint_type=JointType(int(values["joint_type"])),
            joint_name=str(values["joint_name"]),
            parent_xform=pose_from_array(values["parent_xform"]),
            axis=np.asarray(values["axis"], dtype=FLOAT_DTYPE),
            mass=float(values["mass"]),
            com=np.asarray(values["com"], dtype=FLOAT_DTYPE),
            inertia=_coerce_mat33(values["inertia"]),
            limit_lower=float(values["limit_lower"]),
            limit_upper=float(values["limit_upper"]),
            effort_limit=float(values["effort_limit"]),
            velocity_limit=float(values["velocity_limit"]),
            damping=float(values["damping"]),
            friction=float(values["friction"]),
        )


@dataclass
class BodyDescription:
    """Complete description of a multi-body, ready to be loaded by the engine.

    Links are stored in joint index order; every link's parent precedes it.
    """

    name: str = "body"
    base_name: str = "base"
    base_mass: float = 1.0
    """Mass of the base link. A zero mass makes the base static regardless of the loading options."""
    base_com: np.ndarray = field(default_factory=lambda: np.zeros(3, dtype=FLOAT_DTYPE))
    base_inertia: np.ndarray = field(default_factory=lambda: np.eye(3, dtype=FLOAT_DTYPE) * 0.01)
    links: list[LinkDescription] = field(default_factory=list)

    @property
    def num_joints(self) -> int:
        return len(self.links)

    def to_wire(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "base_name": self.base_name,
            "base_mass": self.base_mass,
            "base_com": self.base_com.tolist(),
            "base_inertia": self.base_inertia.reshape(-1).tolist(),
            "links": [link.to_wire() for link in self.links],
        }

    @staticmethod
    def from_wire(values: dict[str, Any]) -> BodyDescription:
        desc = BodyDescription(
            name=str(values["name"]),
            base_name=str(values["base_name"]),
            base_mass=float(values["base_mass"]),
            base_com=np.asarray(values["base_com"], dtype=FLOAT_DTYPE),
            base_inertia=_coerce_mat33(values["base_inertia"]),
            links=[LinkDescription.from_wire(link) for link in values["links"]],
        )
        desc.validate()
        return desc

    def validate(self):
        """Check the tree structure and the inertial data."""
        if self.base_mass < 0.0:
            raise InvalidArgumentError(f"base mass must be non-negative, got {self.base_mass}")
        names = {self.base_name}
        for i, link in enumerate(self.links):
            if not -1 <= link.parent < i:
                raise InvalidArgumentError(f"link {i} ({link.name}) must have a parent in [-1, {i}), got {link.parent}")
            if link.joint_type == JointType.FREE:
                raise InvalidArgumentError(f"link {i} ({link.name}): free joints can only attach a base to the world")
            if link.mass < 0.0:
                raise InvalidArgumentError(f"link {i} ({link.name}) has negative mass")
            if link.name in names:
                raise InvalidArgumentError(f"duplicate link name '{link.name}'")
            names.add(link.name)
            if link.joint_type in (JointType.REVOLUTE, JointType.PRISMATIC, JointType.PLANAR):
                if np.linalg.norm(link.axis) < 1e-9:
                    raise InvalidArgumentError(f"joint {i} ({link.joint_name}) needs a non-zero axis")


class ArticulationBuilder:
    """Helper class for assembling a :class:`BodyDescription` link by link.

    Example:

    .. code-block:: python

        builder = rigidlink.ArticulationBuilder("arm")
        builder.set_base(mass=0.0)
        upper = builder.add_joint_revolute(-1, parent_xform=Pose([0.0, 0.0, 0.1]), axis=(0.0, 0.0, 1.0))
        builder.add_joint_fixed(upper, parent_xform=Pose([1.0, 0.0, 0.0]))
        description = builder.finalize()

    Each joint method creates the link moved by the joint and returns its
    index, which equals the joint index.
    """

    def __init__(self, name: str = "body"):
        self.name = name

        # Default link settings used when the corresponding argument is None
        self.default_link_mass = 1.0
        """The default mass of new links."""
        self.default_link_inertia = 0.01
        """The default principal moment of inertia of new links."""
        self.default_joint_limit_lower = 0.0
        self.default_joint_limit_upper = -1.0
        """Default joint limits. ``lower > upper`` leaves the joint unlimited."""

        self._base = {"name": "base", "mass": 1.0, "com": np.zeros(3), "inertia": np.eye(3) * 0.01}
        self._links: list[LinkDescription] = []

    @property
    def link_count(self) -> int:
        return len(self._links)

    def set_base(
        self,
        mass: float | None = None,
        com: Vec3 | None = None,
        inertia=None,
        name: str | None = None,
    ):
        """Set the inertial properties of the base link.

        Args:
            mass: Mass of the base. Zero makes the base static.
            com: Center of mass in the base frame.
            inertia: Inertia about the center of mass, as a 3x3 matrix or its diagonal.
            name: Name of the base link.
        """
        if mass is not None:
            self._base["mass"] = float(mass)
        if com is not None:
            self._base["com"] = np.asarray(com, dtype=FLOAT_DTYPE)
        if inertia is not None:
            self._base["inertia"] = _coerce_mat33(inertia)
        if name is not None:
            self._base["name"] = name

    def add_link(
        self,
        joint_type: JointType,
        parent: int,
        parent_xform: Pose | None = None,
        axis: Vec3 | None = None,
        mass: float | None = None,
        com: Vec3 | None = None,
        inertia=None,
        limit_lower: float | None = None,
        limit_upper: float | None = None,
        effort_limit: float = 0.0,
        velocity_limit: float = 0.0,
        damping: float = 0.0,
        friction: float = 0.0,
        key: str | None = None,
        joint_key: str | None = None,
    ) -> int:
        """Adds a link and the joint connecting it to ``parent``.

        Args:
            joint_type: Type of the joint moving the new link.
            parent: Index of the parent link, ``-1`` for the base.
            parent_xform: Joint frame relative to the parent link frame.
            axis: Joint axis in the joint frame (normal of the plane for planar joints).
            mass: Link mass. If None, :attr:`default_link_mass` is used.
            com: Center of mass in the link frame.
            inertia: Inertia about the center of mass as a 3x3 matrix or diagonal.
            limit_lower: Lower joint limit. If None, :attr:`default_joint_limit_lower` is used.
            limit_upper: Upper joint limit. If None, :attr:`default_joint_limit_upper` is used.
            effort_limit: Maximum force or torque of the joint motor.
            velocity_limit: Maximum joint velocity reported in the joint info.
            damping: Viscous joint damping.
            friction: Joint friction reported in the joint info.
            key: Name of the link.
            joint_key: Name of the joint.

        Returns:
            The index of the new link and joint.
        """
        index = len(self._links)
        if not -1 <= parent < index:
            raise InvalidArgumentError(f"parent link {parent} does not exist yet")
        if inertia is None:
            inertia = np.eye(3) * self.default_link_inertia
        link = LinkDescription(
            name=key or f"link_{index}",
            parent=parent,
            joint_type=JointType(joint_type),
            joint_name=joint_key or f"joint_{index}",
            parent_xform=copy.deepcopy(parent_xform) if parent_xform is not None else Pose(),
            axis=np.asarray(axis if axis is not None else (0.0, 0.0, 1.0), dtype=FLOAT_DTYPE),
            mass=self.default_link_mass if mass is None else float(mass),
            com=np.asarray(com if com is not None else (0.0, 0.0, 0.0), dtype=FLOAT_DTYPE),
            inertia=_coerce_mat33(inertia),
            limit_lower=self.default_joint_limit_lower if limit_lower is None else float(limit_lower),
            limit_upper=self.default_joint_limit_upper if limit_upper is None else float(limit_upper),
            effort_limit=float(effort_limit),
            velocity_limit=float(velocity_limit),
            damping=float(damping),
            friction=float(friction),
        )
        if link.joint_type in (JointType.REVOLUTE, JointType.PRISMATIC, JointType.PLANAR):
            n = np.linalg.norm(link.axis)
            if n < 1e-9:
                raise InvalidArgumentError("joint axis must be non-zero")
            link.axis = link.axis / n
        self._links.append(link)
        return index

    def add_joint_revolute(
        self, parent: int, parent_xform: Pose | None = None, axis: Vec3 | None = None, **kwargs
    ) -> int:
        """Adds a link rotating about ``axis``. It has one degree of freedom."""
        return self.add_link(JointType.REVOLUTE, parent, parent_xform, axis, **kwargs)

    def add_joint_prismatic(
        self, parent: int, parent_xform: Pose | None = None, axis: Vec3 | None = None, **kwargs
    ) -> int:
        """Adds a link sliding along ``axis``. It has one degree of freedom."""
        return self.add_link(JointType.PRISMATIC, parent, parent_xform, axis, **kwargs)

    def add_joint_spherical(self, parent: int, parent_xform: Pose | None = None, **kwargs) -> int:
        """Adds a link rotating freely about the joint origin. It has three degrees of freedom."""
        return self.add_link(JointType.SPHERICAL, parent, parent_xform, None, **kwargs)

    def add_joint_planar(
        self, parent: int, parent_xform: Pose | None = None, axis: Vec3 | None = None, **kwargs
    ) -> int:
        """Adds a link moving in the plane orthogonal to ``axis`` (two translations and one rotation)."""
        return self.add_link(JointType.PLANAR, parent, parent_xform, axis, **kwargs)

    def add_joint_fixed(self, parent: int, parent_xform: Pose | None = None, **kwargs) -> int:
        """Adds a link welded to its parent. It has no degrees of freedom."""
        return self.add_link(JointType.FIXED, parent, parent_xform, None, **kwargs)

    def finalize(self) -> BodyDescription:
        """Returns a validated, independent copy of the description built so far."""
        desc = BodyDescription(
            name=self.name,
            base_name=self._base["name"],
            base_mass=self._base["mass"],
            base_com=np.asarray(self._base["com"], dtype=FLOAT_DTYPE).copy(),
            base_inertia=np.asarray(self._base["inertia"], dtype=FLOAT_DTYPE).copy(),
            links=copy.deepcopy(self._links),
        )
        desc.validate()
        return desc


__all__ = ["ArticulationBuilder", "BodyDescription", "LinkDescription"]
