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

"""Connection-scoped cache of body, joint and index metadata."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from ..math import Pose, pose_to_array
from ..sim.builder import BodyDescription
from ..sim.indexing import JointIndexResolver
from ..sim.metadata import BodyInfo, JointInfo
from ..utils import logger as msg
from .channel import CommandChannel
from .protocol import Command, CommandType


@dataclass(frozen=True)
class BodyRecord:
    """Everything the client knows about one body."""

    info: BodyInfo
    joints: tuple[JointInfo, ...]
    resolver: JointIndexResolver


class BodyRegistry:
    """Resolves body handles to cached metadata.

    Metadata is fetched from the engine on first use and kept until a
    structural change (body added or removed, simulation reset, snapshot
    restored) invalidates it. Listeners registered with :meth:`add_listener`
    are told about every invalidation.
    """

    def __init__(self, channel: CommandChannel):
        self._channel = channel
        self._records: dict[int, BodyRecord] = {}
        self._listeners: list[Callable[[], None]] = []
        self.generation = 0
        """Incremented on every invalidation."""

    def add_listener(self, callback: Callable[[], None]):
        self._listeners.append(callback)

    def invalidate(self):
        """Discard all cached metadata."""
        self._records.clear()
        self.generation += 1
        msg.debug(f"Body metadata invalidated (generation {self.generation})")
        for callback in self._listeners:
            callback()

    def forget(self, body_id: int):
        """Drop the cached metadata of one body, for changes that keep the body layout."""
        self._records.pop(int(body_id), None)

    def __contains__(self, body_id: int) -> bool:
        return body_id in self._records

    ###
    # Structural changes
    ###

    def load(self, description: BodyDescription, base_pose: Pose | None = None, use_fixed_base: bool = False) -> int:
        description.validate()
        base_pose = base_pose if base_pose is not None else Pose()
        status = self._channel.submit(
            Command(
                CommandType.LOAD_BODY,
                values={"description": description.to_wire(), "use_fixed_base": bool(use_fixed_base)},
                buffers={"base_pose": pose_to_array(base_pose)},
            )
        )
        self.invalidate()
        return int(status.values["body"])

    def remove(self, body_id: int):
        self._channel.submit(Command(CommandType.REMOVE_BODY, values={"body": int(body_id)}))
        self.invalidate()

    ###
    # Lookups
    ###

    def body_ids(self) -> list[int]:
        status = self._channel.submit(Command(CommandType.GET_BODY_IDS))
        return [int(b) for b in status.buffers["bodies"]]

    def record(self, body_id: int) -> BodyRecord:
        """Cached metadata of ``body_id``, fetched from the engine if needed.

        Raises:
            UnknownBodyError: If the engine does not know the body.
        """
        body_id = int(body_id)
        record = self._records.get(body_id)
        if record is None:
            record = self._fetch(body_id)
            self._records[body_id] = record
        return record

    def _fetch(self, body_id: int) -> BodyRecord:
        status = self._channel.submit(Command(CommandType.GET_BODY_INFO, values={"body": body_id}))
        info = BodyInfo.from_wire(status.values["info"])
        status = self._channel.submit(Command(CommandType.GET_JOINT_INFO, values={"body": body_id}))
        joints = tuple(JointInfo.from_wire(values) for values in status.values["joints"])
        return BodyRecord(info, joints, JointIndexResolver.from_metadata(info, joints))

    def info(self, body_id: int) -> BodyInfo:
        return self.record(body_id).info

    def resolver(self, body_id: int) -> JointIndexResolver:
        return self.record(body_id).resolver

    def joint_info(self, body_id: int, joint_index: int) -> JointInfo:
        record = self.record(body_id)
        return record.joints[record.resolver.check_joint_index(joint_index)]


__all__ = ["BodyRecord", "BodyRegistry"]
