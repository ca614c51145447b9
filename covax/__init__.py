# © Crown Copyright GCHQ
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

r"""
Covax library for differentiable, composable covariance kernels.

A Gaussian process is specified by a covariance function :math:`k_\theta(x_1, x_2)`.
The covax library provides the evaluation core of such covariance functions: kernels
that return their value and the gradient of that value w.r.t. a flat vector of
hyperparameters :math:`\theta`, and that compose by addition and multiplication into
arbitrarily complex kernels addressed through a single parameter vector.
"""

__version__ = "0.1.0"

import jax

# Kernel values and gradients are double precision, whatever JAX defaults to
jax.config.update("jax_enable_x64", True)

# pylint: disable=wrong-import-position
from covax.kernels import (
    AxisKernel,
    ConstantKernel,
    Kernel,
    Product,
    StationaryKernel,
    Sum,
)
from covax.metrics import AxisAlignedMetric, EuclideanMetric, IsotropicMetric, Metric
from covax.subspace import Subspace
from covax.util import DimensionMismatchError, NdimMismatchError, ParameterIndexError

# pylint: enable=wrong-import-position

__all__ = [
    "AxisKernel",
    "ConstantKernel",
    "Kernel",
    "Product",
    "StationaryKernel",
    "Sum",
    "AxisAlignedMetric",
    "EuclideanMetric",
    "IsotropicMetric",
    "Metric",
    "Subspace",
    "DimensionMismatchError",
    "NdimMismatchError",
    "ParameterIndexError",
]
