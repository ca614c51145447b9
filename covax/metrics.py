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
Classes and associated functionality to compute squared distances between inputs.

A :class:`Metric` maps a pair of feature vectors :math:`x_1, x_2 \in \mathbb{R}^d` to a
squared distance :math:`r^2 \ge 0`, and may itself be parameterised, for example by a
length scale. Stationary kernels are functions of :math:`r^2` only, and chain their own
gradient through :meth:`Metric.gradient`, which returns
:math:`\partial r^2 / \partial \theta` for the metric's own parameters :math:`\theta`.

Metrics take part in the same flat parameter vector addressing as kernels, see
:mod:`covax.parameters`.
"""

# Support annotations with | in Python < 3.10
from __future__ import annotations

from abc import abstractmethod
from collections.abc import Iterator, Sequence
from typing import Optional

import equinox as eqx
import jax.numpy as jnp
import numpy as np
from jax import Array
from jax.typing import ArrayLike
from jaxtyping import Shaped
from typing_extensions import override

from covax.parameters import Parameterised, as_parameter_buffer
from covax.util import squared_distance
from covax.validation import (
    cast_as_type,
    validate_feature_vector,
    validate_in_range,
    validate_parameter_index,
)


class Metric(Parameterised):
    """
    Abstract base class for parameterised squared distances.

    Implementations provide :attr:`parameter_names`, :meth:`compute_value` and
    :meth:`compute_gradient`; input validation and parameter addressing are handled
    here.

    :param ndim: Length of the feature vectors the metric acts on, must be positive
    :param parameters: Initial values of the metric's parameters, one for each entry of
        :attr:`parameter_names`
    """

    ndim: int = eqx.field(static=True)
    parameters: np.ndarray

    def __init__(self, ndim: int, parameters: Sequence[float] | ArrayLike = ()):
        """Validate ``ndim`` and copy ``parameters`` into a parameter buffer."""
        ndim = cast_as_type(ndim, "ndim", int)
        validate_in_range(ndim, "ndim", strict_inequalities=True, lower_bound=0)
        self.ndim = ndim
        self.parameters = as_parameter_buffer(
            parameters, "parameters", len(self.parameter_names)
        )

    @property
    @abstractmethod
    def parameter_names(self) -> tuple[str, ...]:
        """Return the names of the metric's own parameters."""

    @abstractmethod
    def compute_value(
        self, x1: Shaped[Array, " d"], x2: Shaped[Array, " d"]
    ) -> Shaped[Array, ""]:
        r"""
        Evaluate the squared distance between validated feature vectors.

        :param x1: Vector :math:`x_1 \in \mathbb{R}^d`
        :param x2: Vector :math:`x_2 \in \mathbb{R}^d`
        :return: Squared distance :math:`r^2`
        """

    @abstractmethod
    def compute_gradient(
        self, x1: Shaped[Array, " d"], x2: Shaped[Array, " d"]
    ) -> Shaped[Array, " p"]:
        r"""
        Evaluate :math:`\partial r^2 / \partial \theta` for validated feature vectors.

        :param x1: Vector :math:`x_1 \in \mathbb{R}^d`
        :param x2: Vector :math:`x_2 \in \mathbb{R}^d`
        :return: One partial derivative for each of the metric's parameters
        """

    def value(self, x1: ArrayLike, x2: ArrayLike) -> Shaped[Array, ""]:
        """
        Evaluate the squared distance between ``x1`` and ``x2``.

        :param x1: Feature vector of length :attr:`ndim`
        :param x2: Feature vector of length :attr:`ndim`
        :return: Squared distance as a zero-dimensional array
        :raises DimensionMismatchError: Raised if either input has the wrong length
        """
        x1 = validate_feature_vector(x1, "x1", self.ndim)
        x2 = validate_feature_vector(x2, "x2", self.ndim)
        return self.compute_value(x1, x2)

    def gradient(self, x1: ArrayLike, x2: ArrayLike) -> Shaped[Array, " p"]:
        """
        Evaluate the gradient of the squared distance w.r.t. the metric's parameters.

        :param x1: Feature vector of length :attr:`ndim`
        :param x2: Feature vector of length :attr:`ndim`
        :return: Array of :attr:`size` partial derivatives
        :raises DimensionMismatchError: Raised if either input has the wrong length
        """
        x1 = validate_feature_vector(x1, "x1", self.ndim)
        x2 = validate_feature_vector(x2, "x2", self.ndim)
        return self.compute_gradient(x1, x2)

    def value_and_gradient(
        self, x1: ArrayLike, x2: ArrayLike
    ) -> tuple[Shaped[Array, ""], Shaped[Array, " p"]]:
        """
        Evaluate the squared distance and its gradient w.r.t. the metric's parameters.

        :param x1: Feature vector of length :attr:`ndim`
        :param x2: Feature vector of length :attr:`ndim`
        :return: Squared distance and an array of :attr:`size` partial derivatives
        :raises DimensionMismatchError: Raised if either input has the wrong length
        """
        x1 = validate_feature_vector(x1, "x1", self.ndim)
        x2 = validate_feature_vector(x2, "x2", self.ndim)
        return self.compute_value(x1, x2), self.compute_gradient(x1, x2)

    @property
    @override
    def size(self) -> int:
        return self.parameters.shape[0]

    @override
    def get_parameter(self, index: int) -> float:
        index = validate_parameter_index(index, self.size)
        return float(self.parameters[index])

    @override
    def set_parameter(self, index: int, value: float) -> None:
        index = validate_parameter_index(index, self.size)
        self.parameters[index] = cast_as_type(value, "value", float)

    @override
    def get_parameter_names(self) -> tuple[str, ...]:
        return self.parameter_names

    @override
    def _parameter_buffers(self) -> Iterator[np.ndarray]:
        yield self.parameters


class EuclideanMetric(Metric):
    r"""
    Define the plain squared Euclidean distance, :math:`r^2 = \|x_1 - x_2\|^2`.

    The metric has no parameters.

    :param ndim: Length of the feature vectors, must be positive
    """

    def __init__(self, ndim: int):
        """Initialise a parameter-free metric on ``ndim``-vectors."""
        super().__init__(ndim)

    @property
    @override
    def parameter_names(self) -> tuple[str, ...]:
        return ()

    @override
    def compute_value(self, x1, x2):
        return squared_distance(x1, x2)

    @override
    def compute_gradient(self, x1, x2):
        return jnp.zeros(0, dtype=x1.dtype)


class IsotropicMetric(Metric):
    r"""
    Define a squared distance with a single, shared length scale.

    Given :math:`s =` ``log_scale``,
    :math:`r^2 = \|x_1 - x_2\|^2 / \exp(s)`, so that
    :math:`\partial r^2 / \partial s = -r^2`.

    :param ndim: Length of the feature vectors, must be positive
    :param log_scale: Logarithm of the squared length scale
    """

    def __init__(self, ndim: int, log_scale: float = 0.0):
        """Initialise the metric with its single log scale."""
        super().__init__(ndim, [log_scale])

    @property
    @override
    def parameter_names(self) -> tuple[str, ...]:
        return ("log_scale",)

    @override
    def compute_value(self, x1, x2):
        log_scale = jnp.asarray(self.parameters[0], dtype=jnp.float64)
        return squared_distance(x1, x2) / jnp.exp(log_scale)

    @override
    def compute_gradient(self, x1, x2):
        return -jnp.atleast_1d(self.compute_value(x1, x2))


class AxisAlignedMetric(Metric):
    r"""
    Define a squared distance with an independent length scale along each axis.

    Given :math:`s_j =` ``log_scales[j]``,
    :math:`r^2 = \sum_j (x_{1j} - x_{2j})^2 / \exp(s_j)`, so that
    :math:`\partial r^2 / \partial s_j = -(x_{1j} - x_{2j})^2 / \exp(s_j)`.

    :param ndim: Length of the feature vectors, must be positive
    :param log_scales: Logarithm of the squared length scale of each axis; defaults to
        zeros, i.e. unit length scales
    """

    def __init__(
        self, ndim: int, log_scales: Optional[Sequence[float] | ArrayLike] = None
    ):
        """Initialise the metric with one log scale for each axis."""
        if log_scales is None:
            log_scales = np.zeros(cast_as_type(ndim, "ndim", int))
        super().__init__(ndim, log_scales)

    @property
    @override
    def parameter_names(self) -> tuple[str, ...]:
        return tuple(f"log_scale_{axis}" for axis in range(self.ndim))

    @override
    def compute_value(self, x1, x2):
        return jnp.sum(self._scaled_squares(x1, x2))

    @override
    def compute_gradient(self, x1, x2):
        return -self._scaled_squares(x1, x2)

    def _scaled_squares(
        self, x1: Shaped[Array, " d"], x2: Shaped[Array, " d"]
    ) -> Shaped[Array, " d"]:
        """Return the squared differences along each axis divided by their scales."""
        log_scales = jnp.asarray(self.parameters, dtype=jnp.float64)
        return jnp.square(x1 - x2) / jnp.exp(log_scales)
