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

"""Exception and warning types raised by the client layer."""

from __future__ import annotations

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
]


class RigidLinkError(Exception):
    """Base class of all errors raised by rigidlink."""


class TransportError(RigidLinkError):
    """The engine connection is closed or a round trip failed.

    The client never retries a command; the caller decides whether to reconnect.
    """


class ProtocolError(TransportError):
    """A frame could not be decoded or a reply does not match its request."""


class UnknownHandleError(RigidLinkError):
    """A handle does not refer to a live engine object."""


class UnknownBodyError(UnknownHandleError):
    """The body handle was removed, never existed or was dropped by a reset."""


class UnknownStateError(UnknownHandleError):
    """The snapshot token was removed or never issued by this connection."""


class IndexOutOfRangeError(RigidLinkError, IndexError):
    """A joint or link index lies outside ``[0, num_joints)``."""


class DimensionMismatchError(RigidLinkError, ValueError):
    """A caller-supplied vector does not have the length the body requires."""


class InvalidArgumentError(RigidLinkError, ValueError):
    """An argument has the right shape but an unusable value."""


class IncompatibleSnapshotError(RigidLinkError):
    """A snapshot file is corrupt or was written by an incompatible version."""


class EngineError(RigidLinkError):
    """The engine reported a failure while executing a command."""


class ConvergenceWarning(UserWarning):
    """An iterative query returned before reaching its residual threshold."""
