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

import rigidlink
from rigidlink import PhysicsEngineParameters, Pose
from rigidlink.tests.unittest_utils import add_function_test, get_test_devices
from rigidlink.utils import create_cube


def test_default_parameters(test, device):
    client = rigidlink.PhysicsClient.connect(device=device)
    params = client.get_physics_engine_parameters()
    test.assertEqual(params, PhysicsEngineParameters())
    test.assertAlmostEqual(params.fixed_time_step, 1.0 / 240.0, places=15)
    test.assertEqual(params.num_sub_steps, 1)
    test.assertEqual(params.gravity, (0.0, 0.0, 0.0))
    test.assertTrue(params.enable_joint_limits)


def test_set_gravity(test, device):
    client = rigidlink.PhysicsClient.connect(device=device)
    client.set_gravity([0.0, 0.0, -9.81])
    test.assertEqual(client.get_physics_engine_parameters().gravity, (0.0, 0.0, -9.81))
    with test.assertRaises(rigidlink.DimensionMismatchError):
        client.set_gravity([0.0, -9.81])
    test.assertEqual(client.get_physics_engine_parameters().gravity, (0.0, 0.0, -9.81))


def test_time_step_and_simulation_time(test, device):
    client = rigidlink.PhysicsClient.connect(device=device)
    client.set_time_step(0.01)
    test.assertEqual(client.get_physics_engine_parameters().fixed_time_step, 0.01)
    test.assertAlmostEqual(client.step_simulation(), 0.01, places=12)
    test.assertAlmostEqual(client.step_simulation(), 0.02, places=12)

    with test.assertRaises(rigidlink.InvalidArgumentError):
        client.set_time_step(0.0)
    with test.assertRaises(rigidlink.InvalidArgumentError):
        client.set_time_step(-0.01)
    test.assertEqual(client.get_physics_engine_parameters().fixed_time_step, 0.01)

    client.reset_simulation()
    test.assertEqual(client.get_physics_engine_parameters().fixed_time_step, 0.01)
    test.assertAlmostEqual(client.step_simulation(), 0.01, places=12)


def test_falling_cube(test, device):
    client = rigidlink.PhysicsClient.connect(device=device)
    client.set_time_step(0.01)
    client.set_gravity([0.0, 0.0, -10.0])
    cube = client.load_body(create_cube(), base_pose=Pose([0.0, 0.0, 1.0]))
    for _ in range(10):
        client.step_simulation()
    linear, angular = client.get_base_velocity(cube)
    test.assertAlmostEqual(linear[2], -1.0, places=12)
    test.assertAlmostEqual(linear[0], 0.0, places=12)
    test.assertAlmostEqual(abs(angular).max(), 0.0, places=12)
    # semi-implicit Euler: z = z0 - g * dt^2 * (1 + 2 + ... + n)
    test.assertAlmostEqual(client.get_base_transform(cube).position[2], 1.0 - 10.0 * 1e-4 * 55, places=10)


def test_sub_steps(test, device):
    client = rigidlink.PhysicsClient.connect(device=device)
    params = PhysicsEngineParameters(fixed_time_step=0.01, num_sub_steps=4, gravity=(0.0, 0.0, -10.0))
    client.set_physics_engine_parameters(params)
    test.assertEqual(client.get_physics_engine_parameters(), params)

    cube = client.load_body(create_cube())
    test.assertAlmostEqual(client.step_simulation(), 0.01, places=12)
    linear, _ = client.get_base_velocity(cube)
    test.assertAlmostEqual(linear[2], -0.1, places=12)
    test.assertAlmostEqual(client.get_base_transform(cube).position[2], -10.0 * 0.0025**2 * 10, places=12)

    with test.assertRaises(rigidlink.InvalidArgumentError):
        PhysicsEngineParameters(num_sub_steps=0)


def test_default_damping_applies_to_new_bodies(test, device):
    client = rigidlink.PhysicsClient.connect(device=device)
    before = client.load_body(create_cube())
    params = PhysicsEngineParameters(default_linear_damping=0.2, default_angular_damping=0.3)
    client.set_physics_engine_parameters(params)
    after = client.load_body(create_cube())
    test.assertEqual(client.get_dynamics_info(before, -1).linear_damping, 0.0)
    info = client.get_dynamics_info(after, -1)
    test.assertEqual(info.linear_damping, 0.2)
    test.assertEqual(info.angular_damping, 0.3)

    with test.assertRaises(rigidlink.InvalidArgumentError):
        PhysicsEngineParameters(default_angular_damping=-1.0)


class TestEngineParameters(unittest.TestCase):
    pass


devices = get_test_devices()
for name, func in [
    ("test_default_parameters", test_default_parameters),
    ("test_set_gravity", test_set_gravity),
    ("test_time_step_and_simulation_time", test_time_step_and_simulation_time),
    ("test_falling_cube", test_falling_cube),
    ("test_sub_steps", test_sub_steps),
    ("test_default_damping_applies_to_new_bodies", test_default_damping_applies_to_new_bodies),
]:
    add_function_test(TestEngineParameters, name, func, devices=devices)


if __name__ == "__main__":
    unittest.main(verbosity=2)
