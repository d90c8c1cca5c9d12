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
import warnings

import numpy as np

import rigidlink
from rigidlink import IK_PLACEHOLDER, InverseKinematicsOptions
from rigidlink.math import quat_from_axis_angle
from rigidlink.tests.unittest_utils import add_function_test, assert_np_equal, get_test_devices
from rigidlink.utils import create_seven_joint_arm, create_spherical_pendulum, create_two_joint_arm


def _frame_at(client, body, link, q):
    """World pose of a link frame with the body's joints set to ``q``."""
    movable = [j for j in range(client.get_num_joints(body)) if client.registry.resolver(body).q_index(j) >= 0]
    for joint, value in zip(movable, q, strict=True):
        client.reset_joint_state(body, joint, float(value))
    return client.get_link_state(body, link).world_link_frame_pose


def test_two_joint_arm_reaches_target(test, device):
    client = rigidlink.PhysicsClient.connect(device=device)
    arm = client.load_body(create_two_joint_arm())
    target = _frame_at(client, arm, 2, [0.4, 0.8]).position
    _frame_at(client, arm, 2, [0.0, 0.0])

    options = InverseKinematicsOptions(max_iterations=100, current_positions=[0.2, 0.2])
    result = client.calculate_inverse_kinematics(arm, 2, target, options=options)
    test.assertTrue(result.converged)
    test.assertLessEqual(result.residual, options.residual_threshold)
    test.assertGreater(result.iterations, 0)
    test.assertEqual(result.joint_positions.shape, (3,))
    test.assertEqual(result.joint_positions[2], IK_PLACEHOLDER)
    assert_np_equal(result.joint_positions[0:2], result.coordinates, tol=0.0)

    # the query leaves the body untouched
    test.assertEqual(client.get_joint_state(arm, 0).position, 0.0)
    test.assertEqual(client.get_joint_state(arm, 1).position, 0.0)

    reached = _frame_at(client, arm, 2, result.coordinates).position
    assert_np_equal(reached, target, tol=1e-3)


def test_unreachable_target_warns(test, device):
    client = rigidlink.PhysicsClient.connect(device=device)
    arm = client.load_body(create_two_joint_arm())
    options = InverseKinematicsOptions(max_iterations=20)
    with test.assertWarns(rigidlink.ConvergenceWarning):
        result = client.calculate_inverse_kinematics(arm, 2, [3.0, 0.0, 0.1], options=options)
    test.assertFalse(result.converged)
    test.assertEqual(result.iterations, 20)
    # the best effort is the stretched arm
    test.assertAlmostEqual(result.residual, 2.0, places=2)


def test_already_at_target(test, device):
    client = rigidlink.PhysicsClient.connect(device=device)
    arm = client.load_body(create_two_joint_arm())
    with warnings.catch_warnings():
        warnings.simplefilter("error", rigidlink.ConvergenceWarning)
        result = client.calculate_inverse_kinematics(arm, 2, [1.0, 0.0, 0.1])
    test.assertTrue(result.converged)
    test.assertEqual(result.iterations, 0)
    assert_np_equal(result.coordinates, np.zeros(2))


def test_seven_joint_arm_with_orientation_and_null_space(test, device):
    client = rigidlink.PhysicsClient.connect(device=device)
    arm = client.load_body(create_seven_joint_arm())
    solution = np.array([0.3, 0.6, -0.2, -1.0, 0.4, 0.8, 0.1])
    goal = _frame_at(client, arm, 7, solution)

    lower = [-2.9, -2.0, -2.9, -2.0, -2.9, -2.0, -2.9]
    upper = [2.9, 2.0, 2.9, 2.0, 2.9, 2.0, 2.9]
    options = InverseKinematicsOptions(
        max_iterations=300,
        residual_threshold=1e-3,
        lower_limits=lower,
        upper_limits=upper,
        joint_ranges=[u - lo for lo, u in zip(lower, upper, strict=True)],
        rest_poses=(solution + 0.05).tolist(),
        current_positions=(solution + 0.1).tolist(),
    )
    result = client.calculate_inverse_kinematics(arm, 7, goal.position, goal.orientation, options=options)
    test.assertTrue(result.converged)
    test.assertEqual(result.joint_positions.shape, (8,))
    test.assertEqual(result.joint_positions[7], IK_PLACEHOLDER)
    test.assertTrue(np.all(result.coordinates >= np.array(lower)))
    test.assertTrue(np.all(result.coordinates <= np.array(upper)))

    reached = _frame_at(client, arm, 7, result.coordinates)
    assert_np_equal(reached.position, goal.position, tol=1e-3)
    test.assertTrue(reached.is_close(goal, atol=1e-3))


def test_spherical_joint_orientation(test, device):
    client = rigidlink.PhysicsClient.connect(device=device)
    pendulum = client.load_body(create_spherical_pendulum())
    target = quat_from_axis_angle((1.0, 0.0, 0.0), 0.3)
    result = client.calculate_inverse_kinematics(pendulum, 0, [0.0, 0.0, 0.0], target)
    test.assertTrue(result.converged)
    test.assertEqual(result.coordinates.shape, (4,))
    assert_np_equal(result.joint_positions, [IK_PLACEHOLDER])
    q = result.coordinates if np.dot(result.coordinates, target) >= 0.0 else -result.coordinates
    assert_np_equal(q, target, tol=1e-3)


def test_option_validation(test, device):
    with test.assertRaises(rigidlink.InvalidArgumentError):
        InverseKinematicsOptions(max_iterations=0)
    with test.assertRaises(rigidlink.InvalidArgumentError):
        InverseKinematicsOptions(residual_threshold=-1.0)
    with test.assertRaises(rigidlink.InvalidArgumentError):
        InverseKinematicsOptions(rest_poses=[0.0, 0.0])
    with test.assertRaises(rigidlink.DimensionMismatchError):
        InverseKinematicsOptions(lower_limits=[0.0], upper_limits=[1.0], joint_ranges=[1.0], rest_poses=[0.0, 0.0])
    with test.assertRaises(rigidlink.InvalidArgumentError):
        InverseKinematicsOptions(joint_damping=[0.1, -0.1])

    client = rigidlink.PhysicsClient.connect(device=device)
    arm = client.load_body(create_two_joint_arm())
    target = [0.5, 0.5, 0.1]
    with test.assertRaises(rigidlink.DimensionMismatchError):
        client.calculate_inverse_kinematics(arm, 2, [0.5, 0.5])
    with test.assertRaises(rigidlink.IndexOutOfRangeError):
        client.calculate_inverse_kinematics(arm, 3, target)
    with test.assertRaises(rigidlink.DimensionMismatchError):
        client.calculate_inverse_kinematics(arm, 2, target, options=InverseKinematicsOptions(current_positions=[0.0]))
    with test.assertRaises(rigidlink.DimensionMismatchError):
        client.calculate_inverse_kinematics(
            arm, 2, target, options=InverseKinematicsOptions(joint_damping=[0.1, 0.1, 0.1])
        )
    null_space = InverseKinematicsOptions(
        lower_limits=[-1.0] * 3, upper_limits=[1.0] * 3, joint_ranges=[2.0] * 3, rest_poses=[0.0] * 3
    )
    with test.assertRaises(rigidlink.DimensionMismatchError):
        client.calculate_inverse_kinematics(arm, 2, target, options=null_space)


class TestInverseKinematics(unittest.TestCase):
    pass


devices = get_test_devices()
for name, func in [
    ("test_two_joint_arm_reaches_target", test_two_joint_arm_reaches_target),
    ("test_unreachable_target_warns", test_unreachable_target_warns),
    ("test_already_at_target", test_already_at_target),
    ("test_seven_joint_arm_with_orientation_and_null_space", test_seven_joint_arm_with_orientation_and_null_space),
    ("test_spherical_joint_orientation", test_spherical_joint_orientation),
    ("test_option_validation", test_option_validation),
]:
    add_function_test(TestInverseKinematics, name, func, devices=devices)


if __name__ == "__main__":
    unittest.main(verbosity=2)
