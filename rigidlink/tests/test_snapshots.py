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

import json
import unittest

import numpy as np

import rigidlink
from rigidlink import Pose, VelocityControl
from rigidlink.engine import SNAPSHOT_FORMAT, SNAPSHOT_VERSION
from rigidlink.math import quat_from_euler
from rigidlink.tests.unittest_utils import (
    TemporaryDirectoryMixin,
    add_function_test,
    assert_np_equal,
    assert_pose_close,
    get_test_devices,
)
from rigidlink.utils import create_cube, create_two_joint_arm, create_wheeled_rover


def _setup_rover(client):
    client.set_gravity([0.0, 0.0, -9.81])
    rover = client.load_body(create_wheeled_rover(), base_pose=Pose([0.0, 0.0, 0.5]))
    client.reset_base_velocity(rover, [0.5, 0.1, 2.0], [0.1, -0.2, 0.3])
    client.set_joint_motor_control_array(rover, [1, 3], [VelocityControl(4.0), VelocityControl(-3.0)])
    client.reset_joint_state(rover, 4, 0.2, 1.0)
    return rover


def _trajectory(client, body, steps):
    samples = []
    links = list(range(client.get_num_joints(body)))
    for _ in range(steps):
        client.step_simulation()
        for state in client.get_link_states(body, links, compute_velocity=True):
            samples.append(state.world_pose.to_array())
            samples.append(state.linear_world_velocity)
    return np.concatenate(samples)


def test_save_and_restore(test, device):
    client = rigidlink.PhysicsClient.connect(device=device)
    cube = client.load_body(create_cube())
    state = client.save_state()

    client.reset_base_transform(cube, Pose([1.0, 1.0, 1.0], quat_from_euler(0.1, 0.2, 0.3)))
    client.reset_base_velocity(cube, [1.0, 0.0, 0.0], [0.0, 0.0, 1.0])
    client.step_simulation()

    client.restore_state(state)
    assert_pose_close(test, client.get_base_transform(cube), Pose(), tol=0.0)
    linear, angular = client.get_base_velocity(cube)
    assert_np_equal(linear, np.zeros(3))
    assert_np_equal(angular, np.zeros(3))

    # a snapshot can be restored any number of times
    client.reset_base_transform(cube, Pose([2.0, 0.0, 0.0]))
    client.restore_state(state)
    assert_pose_close(test, client.get_base_transform(cube), Pose(), tol=0.0)


def test_restored_trajectories_are_identical(test, device):
    client = rigidlink.PhysicsClient.connect(device=device)
    rover = _setup_rover(client)
    for _ in range(5):
        client.step_simulation()

    state = client.save_state()
    first = _trajectory(client, rover, 50)
    client.restore_state(state)
    second = _trajectory(client, rover, 50)
    assert_np_equal(first, second, tol=1e-10)


def test_unknown_states(test, device):
    client = rigidlink.PhysicsClient.connect(device=device)
    client.load_body(create_cube())
    state = client.save_state()
    other = client.save_state()
    test.assertNotEqual(state, other)

    client.remove_state(state)
    with test.assertRaises(rigidlink.UnknownStateError):
        client.restore_state(state)
    with test.assertRaises(rigidlink.UnknownStateError):
        client.remove_state(state)
    with test.assertRaises(rigidlink.UnknownStateError):
        client.restore_state(rigidlink.StateId(1234))

    # a reset discards saved states but keeps the parameters
    client.set_time_step(0.01)
    client.reset_simulation()
    with test.assertRaises(rigidlink.UnknownStateError):
        client.restore_state(other)
    test.assertEqual(client.get_physics_engine_parameters().fixed_time_step, 0.01)
    test.assertEqual(client.get_num_bodies(), 0)


def test_restore_refreshes_body_metadata(test, device):
    client = rigidlink.PhysicsClient.connect(device=device)
    empty = client.save_state()
    arm = client.load_body(create_two_joint_arm())
    test.assertEqual(client.get_num_joints(arm), 3)
    test.assertIn(arm, client.registry)

    generation = client.registry.generation
    client.restore_state(empty)
    test.assertGreater(client.registry.generation, generation)
    test.assertNotIn(arm, client.registry)
    test.assertEqual(client.get_num_bodies(), 0)
    with test.assertRaises(rigidlink.UnknownBodyError):
        client.get_num_joints(arm)


def test_file_round_trip(test, device):
    path = test.tmp_path("rover.npz")
    source = rigidlink.PhysicsClient.connect(device=device)
    rover = _setup_rover(source)
    source.set_time_step(1.0 / 120.0)
    for _ in range(10):
        source.step_simulation()
    source.save_state_to_file(path)
    expected = _trajectory(source, rover, 20)

    target = rigidlink.PhysicsClient.connect(device=device)
    target.load_body(create_cube())
    target.restore_state_from_file(path)
    test.assertEqual(target.get_body_ids(), [rover])
    test.assertEqual(target.get_body_info(rover).body_name, "rover")
    test.assertEqual(target.get_physics_engine_parameters(), source.get_physics_engine_parameters())
    assert_np_equal(_trajectory(target, rover, 20), expected, tol=1e-10)


def test_missing_file(test, device):
    client = rigidlink.PhysicsClient.connect(device=device)
    with test.assertRaises(rigidlink.EngineError):
        client.restore_state_from_file(test.tmp_path("missing.npz"))


def test_corrupt_file(test, device):
    path = test.tmp_path("garbage.npz")
    with open(path, "wb") as f:
        f.write(b"this is not a snapshot")
    client = rigidlink.PhysicsClient.connect(device=device)
    cube = client.load_body(create_cube())
    with test.assertRaises(rigidlink.IncompatibleSnapshotError):
        client.restore_state_from_file(path)
    # a failed restore leaves the world untouched
    test.assertEqual(client.get_body_ids(), [cube])


def test_incompatible_version(test, device):
    path = test.tmp_path("future.npz")
    with open(path, "wb") as f:
        np.savez(
            f,
            format=np.array(SNAPSHOT_FORMAT),
            version=np.array(SNAPSHOT_VERSION + 1),
            header=np.array(json.dumps({"bodies": []})),
        )
    client = rigidlink.PhysicsClient.connect(device=device)
    with test.assertRaises(rigidlink.IncompatibleSnapshotError):
        client.restore_state_from_file(path)


class TestSnapshots(unittest.TestCase):
    pass


class TestSnapshotFiles(TemporaryDirectoryMixin, unittest.TestCase):
    pass


devices = get_test_devices()
for name, func in [
    ("test_save_and_restore", test_save_and_restore),
    ("test_restored_trajectories_are_identical", test_restored_trajectories_are_identical),
    ("test_unknown_states", test_unknown_states),
    ("test_restore_refreshes_body_metadata", test_restore_refreshes_body_metadata),
]:
    add_function_test(TestSnapshots, name, func, devices=devices)

for name, func in [
    ("test_file_round_trip", test_file_round_trip),
    ("test_missing_file", test_missing_file),
    ("test_corrupt_file", test_corrupt_file),
    ("test_incompatible_version", test_incompatible_version),
]:
    add_function_test(TestSnapshotFiles, name, func, devices=devices)


if __name__ == "__main__":
    unittest.main(verbosity=2)
