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
from rigidlink import JointIndexResolver, JointType, compute_joint_indices
from rigidlink.tests.unittest_utils import assert_np_equal


class TestComputeJointIndices(unittest.TestCase):
    def test_fixed_joints_are_skipped(self):
        q, u = compute_joint_indices([JointType.FIXED, JointType.REVOLUTE, JointType.FIXED, JointType.REVOLUTE])
        self.assertEqual(q, [-1, 0, -1, 1])
        self.assertEqual(u, [-1, 0, -1, 1])

    def test_multi_dof_joints(self):
        q, u = compute_joint_indices(
            [JointType.SPHERICAL, JointType.PRISMATIC, JointType.PLANAR, JointType.GEAR, JointType.REVOLUTE]
        )
        self.assertEqual(q, [0, 4, 5, -1, 8])
        self.assertEqual(u, [0, 3, 4, -1, 7])

    def test_floating_base_offset(self):
        q, u = compute_joint_indices([JointType.FIXED, JointType.REVOLUTE], base_coord_count=7, base_dof_count=6)
        self.assertEqual(q, [-1, 7])
        self.assertEqual(u, [-1, 6])

    def test_dof_table(self):
        expected = {
            JointType.REVOLUTE: (1, 1),
            JointType.PRISMATIC: (1, 1),
            JointType.SPHERICAL: (3, 4),
            JointType.PLANAR: (3, 3),
            JointType.FIXED: (0, 0),
            JointType.POINT2POINT: (0, 0),
            JointType.GEAR: (0, 0),
            JointType.FREE: (6, 7),
        }
        for joint_type, counts in expected.items():
            self.assertEqual(joint_type.dof_count(), counts)
        self.assertFalse(JointType.FIXED.is_movable)
        self.assertTrue(JointType.SPHERICAL.is_movable)


class TestJointIndexResolver(unittest.TestCase):
    def setUp(self):
        # fixed, revolute, spherical, fixed, prismatic behind a floating base
        self.resolver = JointIndexResolver(
            [-1, 7, 8, -1, 12], [-1, 6, 7, -1, 10], num_coords=6, num_dofs=5, base_coord_count=7, base_dof_count=6
        )

    def test_spans(self):
        r = self.resolver
        self.assertEqual(r.num_joints, 5)
        self.assertEqual(r.movable_joints, [1, 2, 4])
        self.assertEqual(r.num_columns, 11)
        self.assertEqual(r.q_slice(1), slice(0, 1))
        self.assertEqual(r.q_slice(2), slice(1, 5))
        self.assertEqual(r.u_slice(2), slice(1, 4))
        self.assertEqual(r.q_slice(4), slice(5, 6))
        self.assertEqual(r.u_slice(4), slice(4, 5))
        self.assertIsNone(r.q_slice(0))
        self.assertIsNone(r.span(3))
        self.assertEqual(r.q_index(2), 8)
        self.assertEqual(r.u_index(3), -1)
        self.assertEqual(r.column_of(4), 10)

    def test_index_checks(self):
        r = self.resolver
        for bad in (-1, 5, 100):
            with self.assertRaises(rigidlink.IndexOutOfRangeError):
                r.check_joint_index(bad)
        with self.assertRaises(rigidlink.IndexOutOfRangeError):
            r.check_link_index(5)
        with self.assertRaises(rigidlink.IndexOutOfRangeError):
            r.check_link_index(-1)
        self.assertEqual(r.check_link_index(-1, allow_base=True), -1)
        with self.assertRaises(rigidlink.IndexOutOfRangeError):
            r.column_of(0)
        # out-of-range errors are also IndexErrors
        with self.assertRaises(IndexError):
            r.q_index(7)

    def test_check_vector(self):
        out = JointIndexResolver.check_vector("q", [1, 2, 3], 3)
        self.assertEqual(out.dtype, np.float64)
        with self.assertRaises(rigidlink.DimensionMismatchError):
            JointIndexResolver.check_vector("q", [1.0, 2.0], 3)
        with self.assertRaises(ValueError):
            JointIndexResolver.check_vector("q", np.zeros(4), 3)

    def test_joint_vector_from_coordinates(self):
        q = np.array([0.5, 0.0, 0.0, 0.0, 1.0, -0.25])
        out = self.resolver.joint_vector_from_coordinates(q, placeholder=0.0)
        assert_np_equal(out, [0.0, 0.5, 0.0, 0.0, -0.25])
        out = self.resolver.joint_vector_from_coordinates(q, placeholder=np.nan)
        self.assertTrue(np.isnan(out[2]))

    def test_layout_must_tile(self):
        # the last joint starts where the vectors end
        with self.assertRaises(rigidlink.ProtocolError):
            JointIndexResolver([0, 2], [0, 2], num_coords=2, num_dofs=2)
        # the first joint does not start at the beginning of the vectors
        with self.assertRaises(rigidlink.ProtocolError):
            JointIndexResolver([1, 2], [1, 2], num_coords=3, num_dofs=3)
        # q-index without a u-index
        with self.assertRaises(rigidlink.ProtocolError):
            JointIndexResolver([0, -1], [0, 1], num_coords=2, num_dofs=2)
        # total counts that do not match the spans
        with self.assertRaises(rigidlink.ProtocolError):
            JointIndexResolver([0, 1], [0, 1], num_coords=1, num_dofs=2)
        # tables of different lengths
        with self.assertRaises(rigidlink.ProtocolError):
            JointIndexResolver([0], [0, 1], num_coords=2, num_dofs=2)

    def test_layout_not_recomputed_from_types(self):
        # a layout that compute_joint_indices would never produce is still accepted when it tiles
        r = JointIndexResolver([1, 0], [1, 0], num_coords=2, num_dofs=2)
        self.assertEqual(r.movable_joints, [1, 0])
        self.assertEqual(r.q_slice(0), slice(1, 2))


if __name__ == "__main__":
    unittest.main(verbosity=2)
