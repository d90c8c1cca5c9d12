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

"""Binary framing of engine commands and status replies.

A frame is laid out as::

    magic (4 bytes) | version (uint16) | header length (uint32) | JSON header | buffers

The JSON header carries the command or status kind, the sequence number,
scalar values and a manifest of the raw buffers that follow. Buffers are
little-endian ``float64`` or ``int64`` arrays, stored back to back in the
order of the manifest.
"""

from __future__ import annotations

import json
import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

import numpy as np

from ..core.errors import ProtocolError

MAGIC = b"RLNK"
PROTOCOL_VERSION = 1
_PREAMBLE = struct.Struct("<4sHI")
_DTYPES = {"f8": np.dtype("<f8"), "i8": np.dtype("<i8")}


class CommandType(IntEnum):
    """Commands understood by the engine."""

    RESET_SIMULATION = 1
    STEP_SIMULATION = 2
    SET_PHYSICS_PARAMETERS = 3
    GET_PHYSICS_PARAMETERS = 4

    LOAD_BODY = 10
    REMOVE_BODY = 11
    GET_BODY_IDS = 12
    GET_BODY_INFO = 13
    GET_JOINT_INFO = 14
    GET_BASE_STATE = 15
    RESET_BASE_STATE = 16

    GET_JOINT_STATES = 20
    RESET_JOINT_STATE = 21
    SET_JOINT_MOTOR_CONTROL = 22

    CHANGE_DYNAMICS = 30
    GET_DYNAMICS_INFO = 31

    GET_LINK_STATES = 40
    CALCULATE_JACOBIAN = 41
    CALCULATE_MASS_MATRIX = 42
    CALCULATE_INVERSE_DYNAMICS = 43
    CALCULATE_INVERSE_KINEMATICS = 44

    SAVE_STATE = 50
    RESTORE_STATE = 51
    REMOVE_STATE = 52
    SAVE_STATE_TO_FILE = 53
    RESTORE_STATE_FROM_FILE = 54


class StatusType(IntEnum):
    """Outcome of a command as reported by the engine."""

    OK = 0
    UNKNOWN_COMMAND = 1
    MALFORMED_REQUEST = 2
    UNKNOWN_BODY = 3
    UNKNOWN_STATE = 4
    INDEX_OUT_OF_RANGE = 5
    DIMENSION_MISMATCH = 6
    INVALID_ARGUMENT = 7
    INCOMPATIBLE_SNAPSHOT = 8
    IO_ERROR = 9
    COMPUTATION_FAILED = 10


@dataclass
class Command:
    """A request to the engine."""

    type: CommandType
    values: dict[str, Any] = field(default_factory=dict)
    """JSON-serializable scalar and small structured arguments."""
    buffers: dict[str, np.ndarray] = field(default_factory=dict)
    """Numeric array arguments, sent as raw little-endian data."""
    sequence: int = 0
    """Sequence number, assigned by the channel."""


@dataclass
class Status:
    """The engine's reply to one command."""

    type: StatusType
    values: dict[str, Any] = field(default_factory=dict)
    buffers: dict[str, np.ndarray] = field(default_factory=dict)
    sequence: int = 0
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.type == StatusType.OK


###
# Encoding
###


def encode_frame(kind: int, sequence: int, values: dict[str, Any], buffers: dict[str, np.ndarray], message: str | None):
    manifest = []
    payload = []
    for name, buf in buffers.items():
        arr = np.asarray(buf)
        if np.issubdtype(arr.dtype, np.floating):
            code = "f8"
        elif np.issubdtype(arr.dtype, np.integer) or arr.dtype == np.bool_:
            code = "i8"
        else:
            raise ProtocolError(f"buffer '{name}' has unsupported dtype {arr.dtype}")
        arr = np.ascontiguousarray(arr, dtype=_DTYPES[code])
        manifest.append([name, code, list(arr.shape)])
        payload.append(arr.tobytes())

    header = {"kind": int(kind), "sequence": int(sequence), "values": values, "buffers": manifest}
    if message is not None:
        header["message"] = message
    try:
        header_bytes = json.dumps(header, allow_nan=True).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise ProtocolError(f"cannot serialize frame header: {e}") from e
    return _PREAMBLE.pack(MAGIC, PROTOCOL_VERSION, len(header_bytes)) + header_bytes + b"".join(payload)


def decode_frame(frame: bytes):
    """Split a frame into ``(kind, sequence, values, buffers, message)`` without interpreting ``kind``."""
    if len(frame) < _PREAMBLE.size:
        raise ProtocolError(f"frame of {len(frame)} bytes is shorter than its preamble")
    magic, version, header_len = _PREAMBLE.unpack_from(frame, 0)
    if magic != MAGIC:
        raise ProtocolError(f"bad frame magic {magic!r}")
    if version != PROTOCOL_VERSION:
        raise ProtocolError(f"unsupported protocol version {version}")
    offset = _PREAMBLE.size
    try:
        header = json.loads(frame[offset : offset + header_len].decode("utf-8"))
        kind = int(header["kind"])
        sequence = int(header["sequence"])
        values = header["values"]
        manifest = header["buffers"]
    except (UnicodeDecodeError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        raise ProtocolError(f"malformed frame header: {e}") from e
    offset += header_len

    buffers = {}
    for entry in manifest:
        try:
            name, code, shape = entry
            dtype = _DTYPES[code]
        except (KeyError, ValueError, TypeError) as e:
            raise ProtocolError(f"malformed buffer manifest entry {entry!r}") from e
        count = int(np.prod(shape)) if shape else 1
        nbytes = count * dtype.itemsize
        if offset + nbytes > len(frame):
            raise ProtocolError(f"buffer '{name}' extends past the end of the frame")
        buffers[name] = np.frombuffer(frame, dtype=dtype, count=count, offset=offset).reshape(shape).copy()
        offset += nbytes
    if offset != len(frame):
        raise ProtocolError(f"{len(frame) - offset} trailing bytes after the last buffer")
    return kind, sequence, values, buffers, header.get("message", "")


def encode_command(command: Command) -> bytes:
    return encode_frame(command.type, command.sequence, command.values, command.buffers, None)


def decode_command(frame: bytes) -> Command:
    """Decode a command frame.

    Raises:
        ProtocolError: If the frame is malformed or names an unknown command.
    """
    kind, sequence, values, buffers, _ = decode_frame(frame)
    try:
        command_type = CommandType(kind)
    except ValueError as e:
        raise ProtocolError(f"unknown command type {kind}") from e
    return Command(command_type, values, buffers, sequence)


def encode_status(status: Status) -> bytes:
    return encode_frame(status.type, status.sequence, status.values, status.buffers, status.message)


def decode_status(frame: bytes) -> Status:
    kind, sequence, values, buffers, message = decode_frame(frame)
    try:
        status_type = StatusType(kind)
    except ValueError as e:
        raise ProtocolError(f"unknown status type {kind}") from e
    return Status(status_type, values, buffers, sequence, message)


__all__ = [
    "MAGIC",
    "PROTOCOL_VERSION",
    "Command",
    "CommandType",
    "Status",
    "StatusType",
    "decode_command",
    "decode_frame",
    "decode_status",
    "encode_command",
    "encode_frame",
    "encode_status",
]
