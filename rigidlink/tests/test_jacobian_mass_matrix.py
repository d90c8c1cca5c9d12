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

import numpy as np

import rigidlink
from rigidlink import Jacobian, PositionControl
from rigidlink.tests.unittest_utils import add_function_test, assert_np_equal, get_test_devices
from rigidlink.utils import create_seven_joint_arm, create_two_joint_arm, create_wheeled_rover


def _joint_vectors(client, body):
    """Current joint positions and velocities of all single-DOF joints, ordered by joint index."""
    resolver = client.registry.resolver(body)
    states = client.get_joint_states(body, list(range(resolver.num_joints)))
    q = [s.position for j, s in enumerate(states) if resolver.q_index(j) >= 0]
    qd = [s.velocity for j, s in enumerate(states) if resolver.u_index(j) >= 0]
    return np.array(q), np.array(qd)


def _check_jacobian_against_link_velocity(test, client, body, link):
    resolver = client.registry.resolver(body)
    joints = list(range(resolver.num_joints))
    targets = [PositionControl(0.1, position_gain=1.0, velocity_gain=0.3) for _ in joints]
    movable = [j for j in joints if resolver.u_index(j) >= 0]
    client.set_joint_motor_control_array(body, movable, [targets[j] for j in movable])
    client.step_simulation()

    q, qd = _joint_vectors(client, body)
    test.assertGreater(np.linalg.norm(qd), 0.0)
    jac = client.calculate_jacobian(body, link, [0.0, 0.0, 0.0], q, qd, np.zeros_like(qd))
    test.assertEqual(jac.linear.shape, (3, resolver.num_columns))
    test.assertEqual(jac.angular.shape, (3, resolver.num_columns))

    linear, angular = jac.velocity(qd)
    state = client.get_link_state(body, link, compute_velocity=True)
    assert_np_equal(linear, state.linear_world_velocity, tol=1e-6)
    assert_np_equal(angular, state.angular_world_velocity, tol=1e-6)


def test_jacobian_two_joint_arm(test, device):
    client = rigidlink.PhysicsClient.connect(device=device)
    arm = client.load_body(create_two_joint_arm())
    _check_jacobian_against_link_velocity(test, client, arm, 2)


def test_jacobian_seven_joint_arm(test, device):
    client = rigidlink.PhysicsClient.connect(device=device)
    arm = client.load_body(create_seven_joint_arm())
    _check_jacobian_against_link_velocity(test, client, arm, 7)


def test_jacobian_local_position(test, device):
    client = rigidlink.PhysicsClient.connect(device=device)
    arm = client.load_body(create_two_joint_arm())
    q = np.zeros(2)
    # a point 0.25 m beyond the forearm center of mass is the tool point
    jac = client.calculate_jacobian(arm, 1, [0.25, 0.0, 0.0], q, np.zeros(2), np.zeros(2))
    expect_linear = np.array([[0.0, 0.0], [1.0, 0.5], [0.0, 0.0]])
    expect_angular = np.array([[0.0, 0.0], [0.0, 0.0], [1.0, 1.0]])
    assert_np_equal(jac.linear, expect_linear, tol=1e-12)
    assert_np_equal(jac.angular, expect_angular, tol=1e-12)


def test_jacobian_floating_base(test, device):
    client = rigidlink.PhysicsClient.connect(device=device)
    rover = client.load_body(create_wheeled_rover())
    client.reset_base_velocity(rover, [0.1, -0.2, 0.3], [0.2, 0.1, -0.4])
    client.reset_joint_state(rover, 4, 0.3, 0.7)

    q, qd = _joint_vectors(client, rover)
    jac = client.calculate_jacobian(rover, 4, [0.0, 0.0, 0.0], q, qd, np.zeros_like(qd))
    test.assertEqual(jac.num_columns, 6 + 3)
    assert_np_equal(jac.linear[:, 0:3], np.eye(3), tol=1e-12)
    assert_np_equal(jac.angular[:, 0:3], np.zeros((3, 3)), tol=1e-12)
    assert_np_equal(jac.angular[:, 3:6], np.eye(3), tol=1e-12)

    linear, angular = client.get_base_velocity(rover)
    lin, ang = jac.velocity(np.concatenate([linear, angular, qd]))
    state = client.get_link_state(rover, 4, compute_velocity=True)
    assert_np_equal(lin, state.linear_world_velocity, tol=1e-10)
    assert_np_equal(ang, state.angular_world_velocity, tol=1e-10)


def test_jacobian_finite_difference(test, device):
    client = rigidlink.PhysicsClient.connect(device=device)
    arm = client.load_body(create_two_joint_arm())
    q = np.array([0.3, -0.7])
    offset = [0.05, 0.02, 0.0]
    jac = client.calculate_jacobian(arm, 2, offset, q, np.zeros(2), np.zeros(2))

    def point(positions):
        for j, position in enumerate(positions):
            client.reset_joint_state(arm, j, float(position))
        state = client.get_link_state(arm, 2, compute_forward_kinematics=True)
        return state.world_pose.transform_point(offset)

    # central differences of the world point, one joint at a time
    h = 1.0e-6
    columns = []
    for j in range(2):
        step = np.zeros(2)
        step[j] = h
        columns.append((point(q + step) - point(q - step)) / (2.0 * h))
    assert_np_equal(jac.linear, np.stack(columns, axis=1), tol=1.0e-7)


def test_jacobian_argument_errors(test, device):
    client = rigidlink.PhysicsClient.connect(device=device)
    arm = client.load_body(create_two_joint_arm())
    zeros = np.zeros(2)
    with test.assertRaises(rigidlink.DimensionMismatchError):
        client.calculate_jacobian(arm, 2, [0.0, 0.0], zeros, zeros, zeros)
    with test.assertRaises(rigidlink.DimensionMismatchError):
        client.calculate_jacobian(arm, 2, [0.0, 0.0, 0.0], np.zeros(3), zeros, zeros)
    with test.assertRaises(rigidlink.DimensionMismatchError):
        client.calculate_jacobian(arm, 2, [0.0, 0.0, 0.0], zeros, zeros, np.zeros(1))
    with test.assertRaises(rigidlink.IndexOutOfRangeError):
        client.calculate_jacobian(arm, 3, [0.0, 0.0, 0.0], zeros, zeros, zeros)

    jac = Jacobian(np.ones((3, 2)), np.ones((3, 2)))
    with test.assertRaises(rigidlink.DimensionMismatchError):
        jac.velocity([1.0, 2.0, 3.0])
    linear, angular = jac.velocity([1.0, 2.0])
    assert_np_equal(linear, np.full(3, 3.0))
    assert_np_equal(angular, np.full(3, 3.0))


def test_mass_matrix_two_joint_arm(test, device):
    client = rigidlink.PhysicsClient.connect(device=device)
    arm = client.load_body(create_two_joint_arm())
    length, mass, radius = 0.5, 1.0, 0.02
    inertia = mass * (3.0 * radius * radius + length * length) / 12.0
    tool_mass, tool_inertia = 0.1, 1e-4

    M = client.calculate_mass_matrix(arm, [0.0, 0.0])
    test.assertEqual(M.shape, (2, 2))
    m11 = inertia + mass * (0.5 * length) ** 2 + tool_mass * length**2 + tool_inertia
    m00 = (
        2.0 * inertia
        + mass * (0.5 * length) ** 2
        + mass * (1.5 * length) ** 2
        + tool_mass * (2.0 * length) ** 2
        + tool_inertia
    )
    test.assertAlmostEqual(M[1, 1], m11, places=10)
    test.assertAlmostEqual(M[0, 0], m00, places=10)

    # the elbow block does not depend on the elbow angle
    M = client.calculate_mass_matrix(arm, [0.4, 1.1])
    test.assertAlmostEqual(M[1, 1], m11, places=10)
    test.assertLess(M[0, 0], m00)


def test_mass_matrix_symmetric_positive(test, device):
    client = rigidlink.PhysicsClient.connect(device=device)
    arm = client.load_body(create_seven_joint_arm())
    rng = np.random.default_rng(42)
    for _ in range(5):
        q = rng.uniform(-1.5, 1.5, size=7)
        M = client.calculate_mass_matrix(arm, q)
        test.assertEqual(M.shape, (7, 7))
        assert_np_equal(M, M.T, tol=1e-10)
        test.assertGreater(np.linalg.eigvalsh(M).min(), 0.0)

    with test.assertRaises(rigidlink.DimensionMismatchError):
        client.calculate_mass_matrix(arm, np.zeros(6))


def test_mass_matrix_floating_base(test, device):
    client = rigidlink.PhysicsClient.connect(device=device)
    rover = client.load_body(create_wheeled_rover())
    M = client.calculate_mass_matrix(rover, [0.0, 0.0, 0.3])
    test.assertEqual(M.shape, (9, 9))
    assert_np_equal(M[0:3, 0:3], 13.6 * np.eye(3), tol=1e-10)
    assert_np_equal(M, M.T, tol=1e-10)
    test.assertGreaterEqual(np.linalg.eigvalsh(M).min(), -1e-10)


class TestJacobianMassMatrix(unittest.TestCase):
    pass


devices = get_test_devices()
for name, func in [
    ("test_jacobian_two_joint_arm", test_jacobian_two_joint_arm),
    ("test_jacobian_seven_joint_arm", test_jacobian_seven_joint_arm),
    ("test_jacobian_local_position", test_jacobian_local_position),
    ("test_jacobian_floating_base", test_jacobian_floating_base),
    ("test_jacobian_finite_difference", test_jacobian_finite_difference),
    ("test_jacobian_argument_errors", test_jacobian_argument_errors),
    ("test_mass_matrix_two_joint_arm", test_mass_matrix_two_joint_arm),
    ("test_mass_matrix_symmetric_positive", test_mass_matrix_symmetric_positive),
    ("test_mass_matrix_floating_base", test_mass_matrix_floating_base),
]:
    add_function_test(TestJacobianMassMatrix, name, func, devices=devices)


if __name__ == "__main__":
    unittest.main(verbosity=2)
