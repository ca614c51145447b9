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

"""Covariance kernels, their composition and a reference catalog of formulas."""

from covax.kernels.axis import AxisFormula, AxisKernel
from covax.kernels.base import ConstantKernel, Kernel, Operator, Product, Sum
from covax.kernels.formulas import (
    Cosine,
    ExpSine2,
    ExpSquared,
    Matern32,
    Matern52,
    RationalQuadratic,
)
from covax.kernels.stationary import RadialFormula, StationaryKernel

__all__ = [
    "Kernel",
    "Operator",
    "Sum",
    "Product",
    "ConstantKernel",
    "RadialFormula",
    "StationaryKernel",
    "AxisFormula",
    "AxisKernel",
    "ExpSquared",
    "Matern32",
    "Matern52",
    "RationalQuadratic",
    "Cosine",
    "ExpSine2",
]
