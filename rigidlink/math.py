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

from ._src.math import (
    EPSILON,
    Pose,
    compute_projection_matrix,
    compute_projection_matrix_fov,
    compute_view_matrix,
    compute_view_matrix_from_yaw_pitch_roll,
    normalize_quat,
    pose_from_array,
    pose_from_matrix,
    pose_to_array,
    pose_to_matrix,
    quat_angular_error,
    quat_conjugate,
    quat_from_axis_angle,
    quat_from_euler,
    quat_from_matrix,
    quat_identity,
    quat_integrate,
    quat_multiply,
    quat_rotate,
    quat_to_euler,
    quat_to_matrix,
    velocity_from_array,
    velocity_to_array,
    view_matrix_to_pose,
)

__all__ = [
    "EPSILON",
    "Pose",
    "compute_projection_matrix",
    "compute_projection_matrix_fov",
    "compute_view_matrix",
    "compute_view_matrix_from_yaw_pitch_roll",
    "normalize_quat",
    "pose_from_array",
    "pose_from_matrix",
    "pose_to_array",
    "pose_to_matrix",
    "quat_angular_error",
    "quat_conjugate",
    "quat_from_axis_angle",
    "quat_from_euler",
    "quat_from_matrix",
    "quat_identity",
    "quat_integrate",
    "quat_multiply",
    "quat_rotate",
    "quat_to_euler",
    "quat_to_matrix",
    "velocity_from_array",
    "velocity_to_array",
    "view_matrix_to_pose",
]
