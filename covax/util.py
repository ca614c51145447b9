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

"""
Functionality to perform simple, generic tasks and operations.

The functions within this module are simple solutions to various problems or
requirements that are sufficiently generic to be useful across multiple areas of the
codebase. Examples of this include computation of squared distances, the error types
raised when a kernel is misused and a finite-difference check of kernel gradients.
"""

import logging
import sys
from typing import TYPE_CHECKING, Union

import jax.numpy as jnp
import numpy as np
from jax import Array
from jaxtyping import Shaped

if TYPE_CHECKING:
    from covax.kernels.base import Kernel

_logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO, stream=sys.stdout)


class ParameterIndexError(IndexError):
    """Raise when a flat parameter index falls outside ``[0, size)``."""


class DimensionMismatchError(ValueError):
    """Raise when a feature vector does not have the length a kernel requires."""


class NdimMismatchError(ValueError):
    """Raise when the two children of an operator disagree on ``ndim``."""


def squared_distance(
    x: Union[Shaped[Array, " d"], Shaped[Array, ""], float, int],
    y: Union[Shaped[Array, " d"], Shaped[Array, ""], float, int],
) -> Shaped[Array, ""]:
    """
    Calculate the squared distance between two vectors.

    :param x: First vector argument
    :param y: Second vector argument
    :return: Dot product of ``x - y`` and ``x - y``, the square distance between ``x``
        and ``y``
    """
    x = jnp.atleast_1d(x)
    y = jnp.atleast_1d(y)
    return jnp.dot(x - y, x - y)


def difference(
    x: Union[Shaped[Array, " d"], Shaped[Array, ""], float, int],
    y: Union[Shaped[Array, " d"], Shaped[Array, ""], float, int],
) -> Shaped[Array, " d"]:
    """
    Calculate vector difference for a pair of vectors.

    :param x: First vector
    :param y: Second vector
    :return: Vector difference ``x - y``
    """
    x = jnp.atleast_1d(x)
    y = jnp.atleast_1d(y)
    return x - y


def finite_difference_gradient(
    kernel: "Kernel",
    x1: Shaped[Array, " d"],
    x2: Shaped[Array, " d"],
    step: float = 1e-6,
) -> np.ndarray:
    r"""
    Approximate the parameter gradient of a kernel by central finite differences.

    Every entry of the flat parameter vector is perturbed by :math:`\pm` ``step`` in
    turn, and restored to its original value afterwards, so the kernel is left exactly
    as it was found.

    :param kernel: Kernel whose gradient to approximate
    :param x1: First feature vector
    :param x2: Second feature vector
    :param step: Perturbation applied to each parameter, must be positive
    :return: Array of ``kernel.size`` approximate partial derivatives
    """
    if step <= 0:
        raise ValueError("'step' must be positive")
    _logger.debug(
        "Approximating %d partial derivatives of %s with step %g",
        kernel.size,
        type(kernel).__name__,
        step,
    )
    approximation = np.zeros(kernel.size)
    for index in range(kernel.size):
        original = kernel.get_parameter(index)
        try:
            kernel.set_parameter(index, original + step)
            upper = float(kernel.value(x1, x2))
            kernel.set_parameter(index, original - step)
            lower = float(kernel.value(x1, x2))
        finally:
            kernel.set_parameter(index, original)
        approximation[index] = (upper - lower) / (2 * step)
    return approximation
