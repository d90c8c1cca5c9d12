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

import unittest
from collections import Counter

import rigidlink
from rigidlink._src.client.protocol import CommandType, decode_command
from rigidlink.engine import DirectEngine
from rigidlink.tests.unittest_utils import add_function_test, get_test_devices
from rigidlink.utils import create_two_joint_arm, create_wheeled_rover


class CountingEngine(DirectEngine):
    """Reference engine that counts the commands it receives."""

    def __init__(self, device=None):
        super().__init__(device)
        self.counts = Counter()

    def process(self, frame: bytes) -> bytes:
        self.counts[decode_command(frame).type] += 1
        return super().process(frame)


def test_metadata_is_cached(test, device):
    engine = CountingEngine(device)
    client = rigidlink.PhysicsClient.connect(engine=engine)
    body = client.load_body(create_two_joint_arm())

    info = client.get_body_info(body)
    test.assertEqual(info.num_joints, 3)
    client.get_num_joints(body)
    client.get_joint_info(body, 1)
    client.get_link_state(body, 2)
    test.assertEqual(engine.counts[CommandType.GET_BODY_INFO], 1)
    test.assertEqual(engine.counts[CommandType.GET_JOINT_INFO], 1)
    test.assertIn(body, client.registry)


def test_structural_changes_invalidate(test, device):
    engine = CountingEngine(device)
    client = rigidlink.PhysicsClient.connect(engine=engine)
    calls = []
    client.registry.add_listener(lambda: calls.append(client.registry.generation))

    arm = client.load_body(create_two_joint_arm())
    client.get_body_info(arm)
    rover = client.load_body(create_wheeled_rover())
    test.assertNotIn(arm, client.registry)
    client.get_body_info(arm)
    test.assertEqual(engine.counts[CommandType.GET_BODY_INFO], 2)

    client.remove_body(rover)
    with test.assertRaises(rigidlink.UnknownBodyError):
        client.get_body_info(rover)
    with test.assertRaises(rigidlink.UnknownBodyError):
        client.get_joint_state(rover, 1)

    client.reset_simulation()
    with test.assertRaises(rigidlink.UnknownBodyError):
        client.get_body_info(arm)
    test.assertEqual(calls, [1, 2, 3, 4])


def test_clients_are_isolated(test, device):
    a = rigidlink.PhysicsClient.connect(device=device)
    b = rigidlink.PhysicsClient.connect(device=device)
    body_a = a.load_body(create_two_joint_arm())
    body_b = b.load_body(create_wheeled_rover())
    test.assertEqual(body_a, body_b)
    test.assertEqual(a.get_body_info(body_a).body_name, "two_joint_arm")
    test.assertEqual(b.get_body_info(body_b).body_name, "rover")

    a.reset_simulation()
    test.assertEqual(a.get_body_ids(), [])
    test.assertEqual(b.get_body_ids(), [body_b])
    test.assertEqual(b.get_num_joints(body_b), 5)


def test_resolver_from_engine_layout(test, device):
    client = rigidlink.PhysicsClient.connect(device=device)
    rover = client.load_body(create_wheeled_rover(), rigidlink.Pose([0.0, 0.0, 0.5]))
    resolver = client.registry.resolver(rover)
    test.assertEqual(resolver.base_coord_count, 7)
    test.assertEqual(resolver.base_dof_count, 6)
    test.assertEqual(resolver.num_coords, 3)
    test.assertEqual(resolver.num_dofs, 3)
    test.assertEqual(resolver.movable_joints, [1, 3, 4])
    test.assertEqual([resolver.q_index(j) for j in range(5)], [-1, 7, -1, 8, 9])
    test.assertEqual([resolver.u_index(j) for j in range(5)], [-1, 6, -1, 7, 8])


def test_dynamics_change_refreshes_joint_metadata(test, device):
    engine = CountingEngine(device)
    client = rigidlink.PhysicsClient.connect(engine=engine)
    arm = client.load_body(create_two_joint_arm())
    rover = client.load_body(create_wheeled_rover())
    test.assertEqual(client.get_joint_info(arm, 1).damping, 0.0)
    client.get_joint_info(rover, 4)
    generation = client.registry.generation

    client.change_dynamics(arm, 1, rigidlink.ChangeDynamicsOptions(joint_damping=0.4))
    test.assertNotIn(arm, client.registry)
    test.assertIn(rover, client.registry)
    test.assertEqual(client.registry.generation, generation)
    test.assertEqual(client.get_joint_info(arm, 1).damping, 0.4)
    test.assertEqual(client.get_dynamics_info(arm, 1).joint_damping, 0.4)
    # only the changed body is fetched again
    client.get_joint_info(rover, 4)
    test.assertEqual(engine.counts[CommandType.GET_JOINT_INFO], 3)


def test_reset_retires_body_handles(test, device):
    client = rigidlink.PhysicsClient.connect(device=device)
    old = client.load_body(create_two_joint_arm())
    client.reset_simulation()
    new = client.load_body(create_wheeled_rover())
    test.assertNotEqual(old, new)
    test.assertEqual(client.get_body_ids(), [new])
    with test.assertRaises(rigidlink.UnknownBodyError):
        client.get_body_info(old)
    with test.assertRaises(rigidlink.UnknownBodyError):
        client.remove_body(old)

    # restoring an older state does not hand out its handles again
    state = client.save_state()
    later = client.load_body(create_two_joint_arm())
    client.restore_state(state)
    test.assertEqual(client.get_body_ids(), [new])
    test.assertNotIn(client.load_body(create_two_joint_arm()), (old, new, later))


class TestBodyRegistry(unittest.TestCase):
    pass


devices = get_test_devices()
add_function_test(TestBodyRegistry, "test_metadata_is_cached", test_metadata_is_cached, devices=devices)
add_function_test(
    TestBodyRegistry, "test_structural_changes_invalidate", test_structural_changes_invalidate, devices=devices
)
add_function_test(TestBodyRegistry, "test_clients_are_isolated", test_clients_are_isolated, devices=devices)
add_function_test(
    TestBodyRegistry, "test_resolver_from_engine_layout", test_resolver_from_engine_layout, devices=devices
)
add_function_test(
    TestBodyRegistry,
    "test_dynamics_change_refreshes_joint_metadata",
    test_dynamics_change_refreshes_joint_metadata,
    devices=devices,
)
add_function_test(TestBodyRegistry, "test_reset_retires_body_handles", test_reset_retires_body_handles, devices=devices)


if __name__ == "__main__":
    unittest.main(verbosity=2)
