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

"""Saving and restoring complete simulation states."""

from __future__ import annotations

import os
from collections.abc import Callable
from typing import NewType

from ..utils import logger as msg
from .channel import CommandChannel
from .protocol import Command, CommandType

StateId = NewType("StateId", int)
"""Handle of an in-memory snapshot held by the engine."""


class SnapshotManager:
    """Creates, restores and removes engine snapshots.

    In-memory snapshots live inside the engine and are identified by a
    :data:`StateId`. They are dropped when the simulation is reset. File
    snapshots survive the engine and can be restored into any engine holding
    the same bodies.

    ``on_restore`` is called after every successful restore, since restoring
    may change the set of loaded bodies.
    """

    def __init__(self, channel: CommandChannel, on_restore: Callable[[], None] | None = None):
        self._channel = channel
        self._on_restore = on_restore

    def _restored(self):
        if self._on_restore is not None:
            self._on_restore()

    def save(self) -> StateId:
        status = self._channel.submit(Command(CommandType.SAVE_STATE))
        state = StateId(int(status.values["state"]))
        msg.debug(f"Saved state {state}")
        return state

    def restore(self, state: StateId):
        """Return the engine to the snapshot ``state``.

        Raises:
            UnknownStateError: If ``state`` was never saved, was removed, or
                was discarded by a reset.
        """
        self._channel.submit(Command(CommandType.RESTORE_STATE, values={"state": int(state)}))
        self._restored()

    def remove(self, state: StateId):
        self._channel.submit(Command(CommandType.REMOVE_STATE, values={"state": int(state)}))

    def save_to_file(self, path: str | os.PathLike):
        path = os.fspath(path)
        self._channel.submit(Command(CommandType.SAVE_STATE_TO_FILE, values={"path": path}))

    def restore_from_file(self, path: str | os.PathLike):
        """Restore a snapshot written by :meth:`save_to_file`.

        Raises:
            EngineError: If the file cannot be read.
            IncompatibleSnapshotError: If the file is not a snapshot, was
                written by another snapshot version, or does not match the
                loaded bodies.
        """
        path = os.fspath(path)
        self._channel.submit(Command(CommandType.RESTORE_STATE_FROM_FILE, values={"path": path}))
        self._restored()
        msg.debug(f"Restored state from '{path}'")


__all__ = ["SnapshotManager", "StateId"]
