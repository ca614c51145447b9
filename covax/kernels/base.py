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
Classes and associated functionality to use covariance kernel functions.

A kernel is a pairwise function :math:`k_\theta(x_1, x_2)` of two feature vectors of
length :attr:`Kernel.ndim`, differentiable with respect to a flat vector of
hyperparameters :math:`\theta` of length :attr:`Kernel.size`. Kernels compose: the sum
and the product of two kernels are again kernels, built with :class:`Sum` and
:class:`Product` or the ``+`` and ``*`` operators, so an arbitrarily deep tree of
kernels is evaluated exactly like a single primitive kernel.

The flat parameter vector of a composed kernel is the parameter vector of its left
child followed by that of its right child. For example,

.. code-block:: python

    kernel = StationaryKernel(ExpSquared(), IsotropicMetric(2)) * 2.0

has :math:`\theta = (\text{log\_scale}, \text{log\_constant})` and
:meth:`Kernel.gradient` returns the two partial derivatives in that order.

A :class:`Kernel` must implement :meth:`Kernel.compute_value` and
:meth:`Kernel.compute_value_and_gradient` on already validated feature vectors; the
public :meth:`Kernel.value`, :meth:`Kernel.gradient` and
:meth:`Kernel.value_and_gradient` validate their inputs and delegate to them.
"""

import logging
import math
import numbers
from abc import abstractmethod
from collections.abc import Iterator
from typing import Optional, Union

import equinox as eqx
import jax.numpy as jnp
import numpy as np
from jax import Array
from jax.typing import ArrayLike
from jaxtyping import Shaped
from typing_extensions import override

from covax.parameters import Parameterised, as_parameter_buffer, shares_parameters
from covax.util import NdimMismatchError
from covax.validation import (
    cast_as_type,
    validate_array_size,
    validate_feature_vector,
    validate_in_range,
    validate_is_instance,
    validate_parameter_index,
)

_logger = logging.getLogger(__name__)


def _is_number(operand: object) -> bool:
    """Return whether ``operand`` is a real number that is not a boolean."""
    if isinstance(operand, (bool, np.bool_)):
        return False
    return isinstance(operand, numbers.Real)


class Kernel(Parameterised):
    """Abstract base class for covariance kernels with a flat parameter vector."""

    def __add__(self, addition: Union["Kernel", numbers.Real]) -> "Sum":
        """Overload `+` operator, a number is promoted to a :class:`ConstantKernel`."""
        if _is_number(addition):
            return Sum(self, ConstantKernel.from_value(addition, self.ndim))
        if isinstance(addition, Kernel):
            return Sum(self, addition)
        return NotImplemented

    def __radd__(self, addition: Union["Kernel", numbers.Real]) -> "Sum":
        """Overload right `+` operator, the left operand's parameters come first."""
        if _is_number(addition):
            return Sum(ConstantKernel.from_value(addition, self.ndim), self)
        return NotImplemented

    def __mul__(self, product: Union["Kernel", numbers.Real]) -> "Product":
        """Overload `*` operator, a number is promoted to a :class:`ConstantKernel`."""
        if _is_number(product):
            return Product(self, ConstantKernel.from_value(product, self.ndim))
        if isinstance(product, Kernel):
            return Product(self, product)
        return NotImplemented

    def __rmul__(self, product: Union["Kernel", numbers.Real]) -> "Product":
        """Overload right `*` operator, the left operand's parameters come first."""
        if _is_number(product):
            return Product(ConstantKernel.from_value(product, self.ndim), self)
        return NotImplemented

    @property
    @abstractmethod
    def ndim(self) -> int:
        """Return the length of the feature vectors the kernel acts on."""

    @abstractmethod
    def compute_value(
        self, x1: Shaped[Array, " d"], x2: Shaped[Array, " d"]
    ) -> Shaped[Array, ""]:
        r"""
        Evaluate the kernel on validated feature vectors ``x1`` and ``x2``.

        :param x1: Vector :math:`x_1 \in \mathbb{R}^d`
        :param x2: Vector :math:`x_2 \in \mathbb{R}^d`
        :return: Kernel evaluated at (``x1``, ``x2``)
        """

    @abstractmethod
    def compute_value_and_gradient(
        self, x1: Shaped[Array, " d"], x2: Shaped[Array, " d"]
    ) -> tuple[Shaped[Array, ""], Shaped[Array, " p"]]:
        r"""
        Evaluate the kernel and its parameter gradient on validated feature vectors.

        Implementations evaluate each child kernel at most once per call.

        :param x1: Vector :math:`x_1 \in \mathbb{R}^d`
        :param x2: Vector :math:`x_2 \in \mathbb{R}^d`
        :return: Kernel value and the :attr:`size` partial derivatives
            :math:`\partial k / \partial \theta_i`
        """

    def value(self, x1: ArrayLike, x2: ArrayLike) -> Shaped[Array, ""]:
        """
        Evaluate the kernel on feature vectors ``x1`` and ``x2``.

        :param x1: Feature vector of length :attr:`ndim`
        :param x2: Feature vector of length :attr:`ndim`
        :return: Kernel evaluated at (``x1``, ``x2``) as a zero-dimensional array
        :raises DimensionMismatchError: Raised if either input has the wrong length
        """
        x1, x2 = self._validate_inputs(x1, x2)
        return self.compute_value(x1, x2)

    def value_and_gradient(
        self, x1: ArrayLike, x2: ArrayLike
    ) -> tuple[Shaped[Array, ""], Shaped[Array, " p"]]:
        """
        Evaluate the kernel and its gradient w.r.t. the flat parameter vector.

        :param x1: Feature vector of length :attr:`ndim`
        :param x2: Feature vector of length :attr:`ndim`
        :return: Kernel value and an array of :attr:`size` partial derivatives, ordered
            as :meth:`get_parameter` indexes the parameters
        :raises DimensionMismatchError: Raised if either input has the wrong length
        """
        x1, x2 = self._validate_inputs(x1, x2)
        return self.compute_value_and_gradient(x1, x2)

    def gradient(
        self, x1: ArrayLike, x2: ArrayLike, out: Optional[np.ndarray] = None
    ) -> Union[Shaped[Array, " p"], np.ndarray]:
        """
        Evaluate the gradient of the kernel w.r.t. the flat parameter vector.

        :param x1: Feature vector of length :attr:`ndim`
        :param x2: Feature vector of length :attr:`ndim`
        :param out: Optional buffer of :attr:`size` values to write the gradient into;
            nothing else is mutated
        :return: Array of :attr:`size` partial derivatives, ordered as
            :meth:`get_parameter` indexes the parameters; ``out`` if it was given
        :raises DimensionMismatchError: Raised if either input has the wrong length
        :raises ValueError: Raised if ``out`` is not a vector of :attr:`size` values
        """
        _, gradient = self.value_and_gradient(x1, x2)
        if out is None:
            return gradient
        validate_is_instance(out, "out", np.ndarray)
        if out.ndim != 1:
            raise ValueError("out must be one-dimensional")
        validate_array_size(out, "out", 0, self.size)
        out[:] = np.asarray(gradient)
        return out

    def _validate_inputs(self, x1: ArrayLike, x2: ArrayLike) -> tuple[Array, Array]:
        """Convert both inputs to feature vectors of length :attr:`ndim`."""
        return (
            validate_feature_vector(x1, "x1", self.ndim),
            validate_feature_vector(x2, "x2", self.ndim),
        )


class ConstantKernel(Kernel):
    r"""
    Define a kernel which takes the same value for every pair of inputs.

    Given :math:`c =` ``log_constant``, :math:`k(x_1, x_2) = \exp(c)`.

    :param ndim: Length of the feature vectors the kernel accepts, must be positive
    :param log_constant: Logarithm of the constant value
    """

    dimension: int = eqx.field(static=True)
    parameters: np.ndarray

    def __init__(self, ndim: int, log_constant: float = 0.0):
        """Validate ``ndim`` and store the log constant in a parameter buffer."""
        ndim = cast_as_type(ndim, "ndim", int)
        validate_in_range(ndim, "ndim", strict_inequalities=True, lower_bound=0)
        self.dimension = ndim
        self.parameters = as_parameter_buffer([log_constant], "log_constant", 1)

    @classmethod
    def from_value(cls, constant: Union[int, float], ndim: int) -> "ConstantKernel":
        """
        Build a constant kernel from its (positive) value rather than its logarithm.

        :param constant: Value of the kernel, must be positive
        :param ndim: Length of the feature vectors the kernel accepts
        :return: Constant kernel with ``log_constant = log(constant)``
        """
        validate_in_range(constant, "constant", strict_inequalities=True, lower_bound=0)
        return cls(ndim, math.log(constant))

    @property
    @override
    def ndim(self) -> int:
        return self.dimension

    @property
    @override
    def size(self) -> int:
        return 1

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
        return ("log_constant",)

    @override
    def _parameter_buffers(self) -> Iterator[np.ndarray]:
        yield self.parameters

    @override
    def compute_value(self, x1, x2):
        return jnp.exp(jnp.asarray(self.parameters[0], dtype=jnp.float64))

    @override
    def compute_value_and_gradient(self, x1, x2):
        value = self.compute_value(x1, x2)
        return value, jnp.atleast_1d(value)


class Operator(Kernel):
    """
    Abstract base class for kernels that compose two kernels.

    The operator owns both children; its flat parameter vector is the parameter vector
    of ``left`` followed by that of ``right``, and an index is routed to ``left`` if it
    is below ``left.size`` and to ``right``, shifted down by ``left.size``, otherwise.

    :param left: Instance of :class:`Kernel`
    :param right: Instance of :class:`Kernel`, acting on feature vectors of the same
        length as ``left``
    """

    left: Kernel
    right: Kernel

    def __check_init__(self):
        """Ensure both children are kernels over the same inputs with own parameters."""
        if not (isinstance(self.left, Kernel) and isinstance(self.right, Kernel)):
            raise TypeError(
                "'left' and 'right' must be instances of "
                + f"'{Kernel.__module__}.{Kernel.__qualname__}'"
            )
        if self.left.ndim != self.right.ndim:
            raise NdimMismatchError(
                f"'left' acts on vectors of length {self.left.ndim} but 'right' acts "
                f"on vectors of length {self.right.ndim}"
            )
        if shares_parameters(self.left, self.right):
            raise ValueError(
                "'left' and 'right' must not share parameters; compose a copy of the "
                "kernel instead"
            )
        _logger.debug(
            "Built %s with %d + %d parameters",
            type(self).__name__,
            self.left.size,
            self.right.size,
        )

    @property
    @override
    def ndim(self) -> int:
        return self.left.ndim

    @property
    @override
    def size(self) -> int:
        return self.left.size + self.right.size

    @override
    def get_parameter(self, index: int) -> float:
        index = validate_parameter_index(index, self.size)
        offset = self.left.size
        if index < offset:
            return self.left.get_parameter(index)
        return self.right.get_parameter(index - offset)

    @override
    def set_parameter(self, index: int, value: float) -> None:
        index = validate_parameter_index(index, self.size)
        offset = self.left.size
        if index < offset:
            self.left.set_parameter(index, value)
        else:
            self.right.set_parameter(index - offset, value)

    @override
    def get_parameter_names(self) -> tuple[str, ...]:
        left_names = tuple(f"left:{name}" for name in self.left.get_parameter_names())
        right_names = tuple(
            f"right:{name}" for name in self.right.get_parameter_names()
        )
        return left_names + right_names

    @override
    def _parameter_buffers(self) -> Iterator[np.ndarray]:
        # pylint: disable=protected-access
        yield from self.left._parameter_buffers()
        yield from self.right._parameter_buffers()
        # pylint: enable=protected-access


class Sum(Operator):
    r"""
    Define a kernel which is a summation of two kernels.

    Given kernel functions :math:`k` and :math:`l`, define the sum kernel
    :math:`p(x_1, x_2) := k(x_1, x_2) + l(x_1, x_2)`. Each parameter belongs to exactly
    one of the two kernels, so the gradient is the gradient of ``left`` followed by the
    gradient of ``right``, with no cross terms.

    :param left: Instance of :class:`Kernel`
    :param right: Instance of :class:`Kernel`
    """

    @override
    def compute_value(self, x1, x2):
        return self.left.compute_value(x1, x2) + self.right.compute_value(x1, x2)

    @override
    def compute_value_and_gradient(self, x1, x2):
        left_value, left_gradient = self.left.compute_value_and_gradient(x1, x2)
        right_value, right_gradient = self.right.compute_value_and_gradient(x1, x2)
        return left_value + right_value, jnp.concatenate(
            [left_gradient, right_gradient]
        )


class Product(Operator):
    r"""
    Define a kernel which is a product of two kernels.

    Given kernel functions :math:`k` and :math:`l`, define the product kernel
    :math:`p(x_1, x_2) := k(x_1, x_2) l(x_1, x_2)`. By the product rule, the gradient
    of ``left`` is scaled by the value of ``right`` and vice versa.

    :param left: Instance of :class:`Kernel`
    :param right: Instance of :class:`Kernel`
    """

    @override
    def compute_value(self, x1, x2):
        return self.left.compute_value(x1, x2) * self.right.compute_value(x1, x2)

    @override
    def compute_value_and_gradient(self, x1, x2):
        left_value, left_gradient = self.left.compute_value_and_gradient(x1, x2)
        right_value, right_gradient = self.right.compute_value_and_gradient(x1, x2)
        return left_value * right_value, jnp.concatenate(
            [left_gradient * right_value, right_gradient * left_value]
        )
