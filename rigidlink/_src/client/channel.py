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

"""Blocking request/response channel to the engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Protocol

from ..core.errors import (
    DimensionMismatchError,
    EngineError,
    IncompatibleSnapshotError,
    IndexOutOfRangeError,
    InvalidArgumentError,
    ProtocolError,
    TransportError,
    UnknownBodyError,
    UnknownStateError,
)
from ..utils import logger as msg
from .protocol import Command, Status, StatusType, decode_status, encode_command


class FrameProcessor(Protocol):
    """Anything that turns one command frame into one status frame."""

    def process(self, frame: bytes) -> bytes: ...


class Transport(ABC):
    """Point-to-point, ordered delivery of frames to a single engine."""

    @abstractmethod
    def send(self, frame: bytes) -> None:
        """Deliver one command frame."""

    @abstractmethod
    def receive(self) -> bytes:
        """Block until the reply to the last sent frame is available."""

    @abstractmethod
    def close(self) -> None:
        """Release the connection. Further use raises :class:`TransportError`."""

    @property
    @abstractmethod
    def is_open(self) -> bool: ...


class DirectTransport(Transport):
    """In-process transport that hands frames straight to an engine object.

    Args:
        engine: The engine processing the frames, usually a
            :class:`rigidlink.engine.DirectEngine`.
    """

    def __init__(self, engine: FrameProcessor):
        self._engine = engine
        self._pending: bytes | None = None
        self._open = True

    @property
    def is_open(self) -> bool:
        return self._open

    def send(self, frame: bytes) -> None:
        if not self._open:
            raise TransportError("transport is closed")
        if self._pending is not None:
            raise TransportError("previous reply was never received")
        self._pending = self._engine.process(frame)

    def receive(self) -> bytes:
        if not self._open:
            raise TransportError("transport is closed")
        if self._pending is None:
            raise TransportError("no reply pending")
        frame, self._pending = self._pending, None
        return frame

    def close(self) -> None:
        self._open = False
        self._pending = None


_STATUS_ERRORS = {
    StatusType.UNKNOWN_COMMAND: ProtocolError,
    StatusType.MALFORMED_REQUEST: ProtocolError,
    StatusType.UNKNOWN_BODY: UnknownBodyError,
    StatusType.UNKNOWN_STATE: UnknownStateError,
    StatusType.INDEX_OUT_OF_RANGE: IndexOutOfRangeError,
    StatusType.DIMENSION_MISMATCH: DimensionMismatchError,
    StatusType.INVALID_ARGUMENT: InvalidArgumentError,
    StatusType.INCOMPATIBLE_SNAPSHOT: IncompatibleSnapshotError,
    StatusType.IO_ERROR: EngineError,
    StatusType.COMPUTATION_FAILED: EngineError,
}


class CommandChannel:
    """Serializes commands over a :class:`Transport` and maps error statuses to exceptions.

    Each call to :meth:`submit` is one complete round trip: the command is
    sent, the caller blocks until the matching status arrives, and only then
    can the next command be issued. Commands are never retried.
    """

    def __init__(self, transport: Transport):
        self._transport = transport
        self._sequence = 0

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def is_open(self) -> bool:
        return self._transport.is_open

    def submit(self, command: Command) -> Status:
        """Send ``command`` and wait for its status.

        Returns:
            Status: The successful reply.

        Raises:
            TransportError: If the connection is closed or the reply cannot be matched.
            RigidLinkError: The subclass matching the engine's error status.
        """
        if not self._transport.is_open:
            raise TransportError("not connected to an engine")

        self._sequence += 1
        command.sequence = self._sequence
        msg.debug("-> %s #%d", command.type.name, command.sequence)

        self._transport.send(encode_command(command))
        status = decode_status(self._transport.receive())

        if status.sequence != command.sequence:
            raise ProtocolError(f"reply #{status.sequence} does not answer command #{command.sequence}")
        msg.debug("<- %s #%d", status.type.name, status.sequence)

        if not status.ok:
            error = _STATUS_ERRORS.get(status.type, EngineError)
            raise error(status.message or f"{command.type.name} failed with {status.type.name}")
        return status

    def close(self) -> None:
        self._transport.close()


__all__ = ["CommandChannel", "DirectTransport", "FrameProcessor", "Transport"]
