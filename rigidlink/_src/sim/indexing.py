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

"""Mapping between joint indices and generalized coordinate indices.

Every joint of a body has a joint index in ``[0, num_joints)``, including
fixed joints. Only movable joints own entries in the generalized position
vector (q-index) and the generalized velocity vector (u-index). Joints
without coordinates report ``-1`` for both.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from ..core.errors import DimensionMismatchError, IndexOutOfRangeError, ProtocolError
from ..core.types import FLOAT_DTYPE
from .joints import JointType


def compute_joint_indices(
    joint_types: Sequence[JointType | int],
    base_coord_count: int = 0,
    base_dof_count: int = 0,
) -> tuple[list[int], list[int]]:
    """Assign q-indices and u-indices to joints in ascending joint index order.

    Joints without degrees of freedom get ``-1`` and do not advance the counters.

    Args:
        joint_types: Joint types ordered by joint index.
        base_coord_count: Coordinates owned by the base (7 for a floating base, else 0).
        base_dof_count: Velocity DOFs owned by the base (6 for a floating base, else 0).

    Returns:
        tuple[list[int], list[int]]: The q-indices and u-indices of every joint.
    """
    q_indices = []
    u_indices = []
    q_next = base_coord_count
    u_next = base_dof_count
    for joint_type in joint_types:
        dofs, coords = JointType(joint_type).dof_count()
        if dofs == 0:
            q_indices.append(-1)
            u_indices.append(-1)
            continue
        q_indices.append(q_next)
        u_indices.append(u_next)
        q_next += coords
        u_next += dofs
    return q_indices, u_indices


@dataclass(frozen=True)
class JointSpan:
    """Location of one movable joint inside the caller-facing coordinate vectors."""

    joint_index: int
    q_start: int
    q_count: int
    u_start: int
    u_count: int

    @property
    def q_slice(self) -> slice:
        return slice(self.q_start, self.q_start + self.q_count)

    @property
    def u_slice(self) -> slice:
        return slice(self.u_start, self.u_start + self.u_count)


class JointIndexResolver:
    """Resolves joint indices against the engine-reported coordinate layout of one body.

    The layout comes from the engine and is never recomputed from joint types:
    the engine is the authority on which joints own coordinates. Spans are
    derived by ordering the movable joints by q-index and taking the distance
    to the next one (or to the end of the vector), after which the resolver
    checks that the velocity layout tiles in the same order.

    Caller-facing vectors exclude the floating base, so ``q`` has
    :attr:`num_coords` entries and ``qdot``/``qddot`` have :attr:`num_dofs`.
    Jacobians and mass matrices returned by the engine include the
    :attr:`base_dof_count` base columns first.
    """

    def __init__(
        self,
        q_indices: Sequence[int],
        u_indices: Sequence[int],
        num_coords: int,
        num_dofs: int,
        base_coord_count: int = 0,
        base_dof_count: int = 0,
    ):
        if len(q_indices) != len(u_indices):
            raise ProtocolError("q-index and u-index tables differ in length")

        self.num_joints = len(q_indices)
        """Number of joints, including joints without coordinates."""
        self.num_coords = int(num_coords)
        """Length of the joint position vector (base excluded)."""
        self.num_dofs = int(num_dofs)
        """Length of the joint velocity vector (base excluded)."""
        self.base_coord_count = int(base_coord_count)
        self.base_dof_count = int(base_dof_count)

        self._q_index = [int(i) for i in q_indices]
        self._u_index = [int(i) for i in u_indices]
        self._spans: dict[int, JointSpan] = {}
        self._build_spans()

    @classmethod
    def from_metadata(cls, body_info, joint_infos) -> JointIndexResolver:
        """Build a resolver from a :class:`BodyInfo` and its ordered :class:`JointInfo` records."""
        return cls(
            [joint.q_index for joint in joint_infos],
            [joint.u_index for joint in joint_infos],
            num_coords=body_info.num_coords,
            num_dofs=body_info.num_dofs,
            base_coord_count=body_info.base_coord_count,
            base_dof_count=body_info.base_dof_count,
        )

    def _build_spans(self):
        movable = [j for j in range(self.num_joints) if self._q_index[j] >= 0]
        for j in range(self.num_joints):
            if (self._q_index[j] < 0) != (self._u_index[j] < 0):
                raise ProtocolError(f"joint {j} has q-index {self._q_index[j]} but u-index {self._u_index[j]}")

        movable.sort(key=lambda j: self._q_index[j])
        q_end = self.base_coord_count + self.num_coords
        u_end = self.base_dof_count + self.num_dofs
        q_expected = self.base_coord_count
        u_expected = self.base_dof_count
        for k, j in enumerate(movable):
            q_start = self._q_index[j]
            u_start = self._u_index[j]
            if q_start != q_expected or u_start != u_expected:
                raise ProtocolError(
                    f"joint {j} coordinates start at q={q_start}, u={u_start}; expected q={q_expected}, u={u_expected}"
                )
            if k + 1 < len(movable):
                q_next = self._q_index[movable[k + 1]]
                u_next = self._u_index[movable[k + 1]]
            else:
                q_next = q_end
                u_next = u_end
            if q_next <= q_start or u_next <= u_start:
                raise ProtocolError(f"joint {j} owns no coordinates in the reported layout")
            self._spans[j] = JointSpan(
                joint_index=j,
                q_start=q_start - self.base_coord_count,
                q_count=q_next - q_start,
                u_start=u_start - self.base_dof_count,
                u_count=u_next - u_start,
            )
            q_expected = q_next
            u_expected = u_next
        if q_expected != q_end or u_expected != u_end:
            raise ProtocolError("joint coordinates do not cover the reported vector lengths")

    @property
    def movable_joints(self) -> list[int]:
        """Joint indices that own coordinates, in ascending q-index order."""
        return list(self._spans)

    @property
    def num_columns(self) -> int:
        """Column count of Jacobians and mass matrices (base DOFs included)."""
        return self.base_dof_count + self.num_dofs

    def check_joint_index(self, joint_index: int) -> int:
        if not isinstance(joint_index, (int, np.integer)) or not 0 <= joint_index < self.num_joints:
            raise IndexOutOfRangeError(f"joint index {joint_index} out of range [0, {self.num_joints})")
        return int(joint_index)

    def check_link_index(self, link_index: int, allow_base: bool = False) -> int:
        """Validate a link index; ``-1`` (the base) is accepted only if ``allow_base``."""
        if allow_base and link_index == -1:
            return -1
        if not isinstance(link_index, (int, np.integer)) or not 0 <= link_index < self.num_joints:
            raise IndexOutOfRangeError(f"link index {link_index} out of range [0, {self.num_joints})")
        return int(link_index)

    def q_index(self, joint_index: int) -> int:
        """The engine q-index of a joint (base offset included), or ``-1``."""
        return self._q_index[self.check_joint_index(joint_index)]

    def u_index(self, joint_index: int) -> int:
        """The engine u-index of a joint (base offset included), or ``-1``."""
        return self._u_index[self.check_joint_index(joint_index)]

    def span(self, joint_index: int) -> JointSpan | None:
        return self._spans.get(self.check_joint_index(joint_index))

    def q_slice(self, joint_index: int) -> slice | None:
        span = self.span(joint_index)
        return span.q_slice if span is not None else None

    def u_slice(self, joint_index: int) -> slice | None:
        span = self.span(joint_index)
        return span.u_slice if span is not None else None

    def column_of(self, joint_index: int) -> int:
        """Jacobian column of the first DOF of a movable joint."""
        span = self.span(joint_index)
        if span is None:
            raise IndexOutOfRangeError(f"joint {joint_index} has no degrees of freedom")
        return self.base_dof_count + span.u_start

    @staticmethod
    def check_vector(name: str, values, expected: int) -> np.ndarray:
        """Convert ``values`` to a flat float array and check its length."""
        arr = np.asarray(values, dtype=FLOAT_DTYPE).reshape(-1)
        if arr.shape[0] != expected:
            raise DimensionMismatchError(f"{name} has length {arr.shape[0]}, expected {expected}")
        return arr

    def joint_vector_from_coordinates(self, q, placeholder: float = 0.0) -> np.ndarray:
        """Spread a coordinate vector over joint indices.

        Joints with exactly one coordinate receive it; every other joint,
        including fixed joints and multi-coordinate joints, receives ``placeholder``.
        """
        q = self.check_vector("q", q, self.num_coords)
        out = np.full(self.num_joints, placeholder, dtype=FLOAT_DTYPE)
        for j, span in self._spans.items():
            if span.q_count == 1:
                out[j] = q[span.q_start]
        return out


__all__ = ["JointIndexResolver", "JointSpan", "compute_joint_indices"]
