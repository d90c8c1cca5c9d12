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

"""The engine world: loaded bodies, global parameters and saved states."""

from __future__ import annotations

import copy
import json
import zipfile
from typing import Any

import numpy as np

from ..client.config import PhysicsEngineParameters
from ..client.protocol import StatusType
from ..core.types import Devicelike
from ..math import Pose
from ..sim.builder import BodyDescription
from ..utils import logger as msg
from .articulation import Articulation, CommandError
from .dynamics import step_articulation

SNAPSHOT_FORMAT = "rigidlink-snapshot"
"""Format tag stored in every snapshot file."""

SNAPSHOT_VERSION = 1
"""Layout version of snapshot files. Files with another version are rejected."""


class World:
    """All mutable engine state behind one connection."""

    def __init__(self, device: Devicelike = None):
        self.device = device
        self.params = PhysicsEngineParameters()
        self.bodies: dict[int, Articulation] = {}
        self.time = 0.0
        self._next_body_id = 0
        self._snapshots: dict[int, dict[str, Any]] = {}
        self._next_state_id = 0

    def reset(self):
        """Remove every body and every saved in-memory state. Parameters are kept.

        Body handles keep increasing across resets, so a handle from before the
        reset is reported as unknown instead of reaching a new body.
        """
        self.bodies.clear()
        self.time = 0.0
        self._snapshots.clear()
        msg.notif("World reset")

    ###
    # Bodies
    ###

    def body(self, body_id: int) -> Articulation:
        try:
            return self.bodies[body_id]
        except KeyError:
            raise CommandError(StatusType.UNKNOWN_BODY, f"unknown body {body_id}") from None

    def load_body(self, description: BodyDescription, base_pose: Pose, use_fixed_base: bool) -> Articulation:
        body_id = self._next_body_id
        art = Articulation(
            body_id,
            description,
            base_pose,
            use_fixed_base,
            linear_damping=self.params.default_linear_damping,
            angular_damping=self.params.default_angular_damping,
            device=self.device,
        )
        self.bodies[body_id] = art
        self._next_body_id += 1
        msg.info(
            f"Loaded body {body_id} '{description.name}' with {art.num_joints} joints "
            f"({'fixed' if art.fixed_base else 'floating'} base)"
        )
        return art

    def remove_body(self, body_id: int):
        self.body(body_id)
        del self.bodies[body_id]
        msg.debug(f"Removed body {body_id}")

    ###
    # Simulation
    ###

    def step(self):
        params = self.params
        dt = params.fixed_time_step / params.num_sub_steps
        for _ in range(params.num_sub_steps):
            for art in self.bodies.values():
                step_articulation(art, dt, params.gravity, params.enable_joint_limits)
            self.time += dt

    ###
    # Snapshots
    ###

    def _capture(self) -> dict[str, Any]:
        bodies = []
        for art in self.bodies.values():
            header, arrays = art.to_record()
            bodies.append({"header": copy.deepcopy(header), "arrays": arrays})
        return {
            "params": self.params.to_wire(),
            "time": self.time,
            "next_body_id": self._next_body_id,
            "bodies": bodies,
        }

    def _apply(self, record: dict[str, Any]):
        # build everything first so a failure leaves the world untouched
        bodies = {}
        for entry in record["bodies"]:
            art = Articulation.from_record(copy.deepcopy(entry["header"]), entry["arrays"], device=self.device)
            bodies[art.body_id] = art
        params = PhysicsEngineParameters.from_wire(record["params"])

        self.params = params
        self.bodies = bodies
        self.time = float(record["time"])
        # handles issued after the capture stay retired
        self._next_body_id = max(self._next_body_id, int(record["next_body_id"]))

    def save_state(self) -> int:
        state_id = self._next_state_id
        self._snapshots[state_id] = self._capture()
        self._next_state_id += 1
        msg.debug(f"Saved state {state_id}")
        return state_id

    def restore_state(self, state_id: int):
        try:
            record = self._snapshots[state_id]
        except KeyError:
            raise CommandError(StatusType.UNKNOWN_STATE, f"unknown state {state_id}") from None
        self._apply(record)
        msg.debug(f"Restored state {state_id}")

    def remove_state(self, state_id: int):
        if self._snapshots.pop(state_id, None) is None:
            raise CommandError(StatusType.UNKNOWN_STATE, f"unknown state {state_id}")

    def save_state_to_file(self, path: str):
        record = self._capture()
        header = {key: value for key, value in record.items() if key != "bodies"}
        header["bodies"] = [entry["header"] for entry in record["bodies"]]
        arrays = {}
        for i, entry in enumerate(record["bodies"]):
            for name, value in entry["arrays"].items():
                arrays[f"body{i}/{name}"] = value
        try:
            with open(path, "wb") as f:
                np.savez(
                    f,
                    format=np.array(SNAPSHOT_FORMAT),
                    version=np.array(SNAPSHOT_VERSION),
                    header=np.array(json.dumps(header)),
                    **arrays,
                )
        except OSError as e:
            raise CommandError(StatusType.IO_ERROR, f"cannot write snapshot '{path}': {e}") from e
        msg.info(f"Saved state to '{path}'")

    def restore_state_from_file(self, path: str):
        try:
            with np.load(path, allow_pickle=False) as data:
                files = {name: data[name] for name in data.files}
        except FileNotFoundError as e:
            raise CommandError(StatusType.IO_ERROR, f"snapshot file '{path}' does not exist") from e
        except (OSError, ValueError, EOFError, zipfile.BadZipFile) as e:
            raise CommandError(StatusType.INCOMPATIBLE_SNAPSHOT, f"cannot read snapshot '{path}': {e}") from e

        try:
            if str(files["format"]) != SNAPSHOT_FORMAT:
                raise CommandError(StatusType.INCOMPATIBLE_SNAPSHOT, f"'{path}' is not a rigidlink snapshot")
            version = int(files["version"])
            if version != SNAPSHOT_VERSION:
                raise CommandError(
                    StatusType.INCOMPATIBLE_SNAPSHOT,
                    f"snapshot version {version} is not supported (expected {SNAPSHOT_VERSION})",
                )
            header = json.loads(str(files["header"]))
            record = {key: value for key, value in header.items() if key != "bodies"}
            record["bodies"] = [
                {
                    "header": body_header,
                    "arrays": {
                        name: files[f"body{i}/{name}"] for name in Articulation._ARRAY_FIELDS
                    },
                }
                for i, body_header in enumerate(header["bodies"])
            ]
            self._apply(record)
        except CommandError:
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise CommandError(StatusType.INCOMPATIBLE_SNAPSHOT, f"corrupt snapshot '{path}': {e}") from e
        msg.info(f"Restored state from '{path}'")
