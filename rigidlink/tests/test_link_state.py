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

import math
import unittest

import numpy as np

import rigidlink
from rigidlink import Pose
from rigidlink.tests.unittest_utils import add_function_test, assert_np_equal, assert_pose_close, get_test_devices
from rigidlink.utils import create_two_joint_arm, create_wheeled_rover


def test_link_frames_at_rest(test, device):
    client = rigidlink.PhysicsClient.connect(device=device)
    arm = client.load_body(create_two_joint_arm())
    upper, fore, tool = client.get_link_states(arm, [0, 1, 2])

    assert_np_equal(upper.world_link_frame_pose.position, np.array([0.0, 0.0, 0.1]), tol=1e-12)
    assert_np_equal(fore.world_link_frame_pose.position, np.array([0.5, 0.0, 0.1]), tol=1e-12)
    assert_np_equal(tool.world_link_frame_pose.position, np.array([1.0, 0.0, 0.1]), tol=1e-12)

    # centers of mass sit in the middle of the segments
    assert_np_equal(upper.world_pose.position, np.array([0.25, 0.0, 0.1]), tol=1e-12)
    assert_np_equal(fore.world_pose.position, np.array([0.75, 0.0, 0.1]), tol=1e-12)
    assert_np_equal(upper.local_inertial_pose.position, np.array([0.25, 0.0, 0.0]), tol=1e-12)


def test_world_pose_composes_frame_and_inertial_offset(test, device):
    client = rigidlink.PhysicsClient.connect(device=device)
    rover = client.load_body(create_wheeled_rover(), base_pose=Pose.from_euler([0.3, -0.2, 0.5], yaw=0.4))
    client.reset_joint_state(rover, 4, 0.7)
    for link in range(client.get_num_joints(rover)):
        state = client.get_link_state(rover, link)
        assert_pose_close(test, state.world_pose, state.world_link_frame_pose * state.local_inertial_pose, tol=1e-10)


def test_link_frames_follow_joints(test, device):
    client = rigidlink.PhysicsClient.connect(device=device)
    arm = client.load_body(create_two_joint_arm())
    client.reset_joint_state(arm, 0, 0.5 * math.pi)
    fore = client.get_link_state(arm, 1)
    assert_np_equal(fore.world_link_frame_pose.position, np.array([0.0, 0.5, 0.1]), tol=1e-10)

    client.reset_joint_state(arm, 1, -0.5 * math.pi)
    tool = client.get_link_state(arm, 2)
    assert_np_equal(tool.world_link_frame_pose.position, np.array([0.5, 0.5, 0.1]), tol=1e-10)
    # the two rotations cancel
    test.assertTrue(tool.world_link_frame_pose.is_close(Pose([0.5, 0.5, 0.1]), atol=1e-10))


def test_link_velocities(test, device):
    client = rigidlink.PhysicsClient.connect(device=device)
    arm = client.load_body(create_two_joint_arm())

    state = client.get_link_state(arm, 0)
    test.assertIsNone(state.linear_world_velocity)
    test.assertIsNone(state.angular_world_velocity)

    client.reset_joint_state(arm, 0, 0.0, 1.0)
    upper, fore, tool = client.get_link_states(arm, [0, 1, 2], compute_velocity=True)
    assert_np_equal(upper.linear_world_velocity, np.array([0.0, 0.25, 0.0]), tol=1e-10)
    assert_np_equal(upper.angular_world_velocity, np.array([0.0, 0.0, 1.0]), tol=1e-10)
    assert_np_equal(fore.linear_world_velocity, np.array([0.0, 0.75, 0.0]), tol=1e-10)
    assert_np_equal(tool.linear_world_velocity, np.array([0.0, 1.0, 0.0]), tol=1e-10)
    assert_np_equal(tool.angular_world_velocity, np.array([0.0, 0.0, 1.0]), tol=1e-10)


def test_forward_kinematics_flag_does_not_change_result(test, device):
    client = rigidlink.PhysicsClient.connect(device=device)
    arm = client.load_body(create_two_joint_arm())
    client.reset_joint_state(arm, 0, 0.3, 0.2)
    client.reset_joint_state(arm, 1, -0.8, 0.1)
    a = client.get_link_state(arm, 2, compute_velocity=True)
    b = client.get_link_state(arm, 2, compute_velocity=True, compute_forward_kinematics=True)
    assert_np_equal(a.world_pose.to_array(), b.world_pose.to_array())
    assert_np_equal(a.linear_world_velocity, b.linear_world_velocity)


def test_batch_matches_individual_queries(test, device):
    client = rigidlink.PhysicsClient.connect(device=device)
    rover = client.load_body(create_wheeled_rover())
    client.reset_base_velocity(rover, [0.2, 0.0, 0.1], [0.0, 0.3, 0.1])
    client.reset_joint_state(rover, 1, 0.4, 2.0)
    client.reset_joint_state(rover, 4, -0.2, 0.5)

    links = [4, 1, 0, 3]
    batch = client.get_link_states(rover, links, compute_velocity=True)
    test.assertEqual(len(batch), len(links))
    for link, state in zip(links, batch, strict=True):
        single = client.get_link_state(rover, link, compute_velocity=True)
        assert_np_equal(state.world_pose.to_array(), single.world_pose.to_array())
        assert_np_equal(state.world_link_frame_pose.to_array(), single.world_link_frame_pose.to_array())
        assert_np_equal(state.linear_world_velocity, single.linear_world_velocity)
        assert_np_equal(state.angular_world_velocity, single.angular_world_velocity)

    test.assertEqual(client.get_link_states(rover, []), [])


def test_link_index_out_of_range(test, device):
    client = rigidlink.PhysicsClient.connect(device=device)
    arm = client.load_body(create_two_joint_arm())
    with test.assertRaises(rigidlink.IndexOutOfRangeError):
        client.get_link_state(arm, 3)
    with test.assertRaises(rigidlink.IndexOutOfRangeError):
        client.get_link_state(arm, -1)
    with test.assertRaises(rigidlink.IndexOutOfRangeError):
        client.get_link_states(arm, [0, 7])
    with test.assertRaises(rigidlink.UnknownBodyError):
        client.get_link_state(arm + 1, 0)


class TestLinkState(unittest.TestCase):
    pass


devices = get_test_devices()
for name, func in [
    ("test_link_frames_at_rest", test_link_frames_at_rest),
    ("test_world_pose_composes_frame_and_inertial_offset", test_world_pose_composes_frame_and_inertial_offset),
    ("test_link_frames_follow_joints", test_link_frames_follow_joints),
    ("test_link_velocities", test_link_velocities),
    ("test_forward_kinematics_flag_does_not_change_result", test_forward_kinematics_flag_does_not_change_result),
    ("test_batch_matches_individual_queries", test_batch_matches_individual_queries),
    ("test_link_index_out_of_range", test_link_index_out_of_range),
]:
    add_function_test(TestLinkState, name, func, devices=devices)


if __name__ == "__main__":
    unittest.main(verbosity=2)
