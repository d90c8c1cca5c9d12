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

"""Scalar and vector aliases shared by the engine kernels and the client."""

from __future__ import annotations

import numpy as np
import warp as wp

###
# Module configs
###

wp.set_module_options({"enable_backward": False})


###
# Generics
###

Vec3 = list[float]
Quat = list[float]
Transform = tuple[Vec3, Quat]
Devicelike = wp.Device | str | None


###
# Scalars
###

int32 = wp.int32
float64 = wp.float64


###
# Vectors and matrices
###

# The engine evaluates everything in double precision so that kinematic
# queries agree with the link states it reports to well below 1e-6.
vec3 = wp.vec3d
quat = wp.quatd
mat33 = wp.mat33d
transform = wp.transformd
spatial_vector = wp.spatial_vectord
spatial_matrix = wp.spatial_matrixd


###
# Host-side
###

FLOAT_DTYPE = np.float64
"""NumPy dtype used for every floating point buffer that crosses the wire."""

INT_DTYPE = np.int64
"""NumPy dtype used for every integer buffer that crosses the wire."""
