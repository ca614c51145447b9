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
Axis kernels, sums of independent one-dimensional contributions.

An :class:`AxisKernel` bridges a closed-form :class:`AxisFormula` :math:`g_\phi(a, b)`
of two scalar coordinates to a :class:`~covax.subspace.Subspace` selecting axes
:math:`j_1, \dots, j_m`:

.. math::

    k(x_1, x_2) = \sum_{i=1}^{m} g_\phi(x_{1 j_i}, x_{2 j_i}).

No distance is formed; each axis contributes additively and independently, and the
gradient w.r.t. each hyperparameter is the sum of the per-axis partial derivatives. An
empty subspace gives a kernel that is identically zero.
"""

from abc import abstractmethod
from collections.abc import Iterator, Sequence
from typing import ClassVar, Optional, Union

import equinox as eqx
import jax
import jax.numpy as jnp
import numpy as np
from jax import Array
from jax.typing import ArrayLike
from jaxtyping import Shaped
from typing_extensions import override

from covax.kernels.base import Kernel
from covax.parameters import as_parameter_buffer
from covax.subspace import Subspace
from covax.validation import (
    cast_as_type,
    validate_is_instance,
    validate_parameter_index,
)


class AxisFormula(eqx.Module):
    """
    Abstract base class for closed-form functions of a pair of scalar coordinates.

    As with :class:`~covax.kernels.stationary.RadialFormula`, hyperparameter values are
    held by the kernel and passed in on every call.
    """

    #: Names of the formula's hyperparameters, in flat parameter vector order
    parameter_names: ClassVar[tuple[str, ...]] = ()
    #: Values used when a kernel is built without explicit hyperparameters
    default_parameters: ClassVar[tuple[float, ...]] = ()

    @abstractmethod
    def value(
        self,
        parameters: Shaped[Array, " k"],
        x1: Shaped[Array, ""],
        x2: Shaped[Array, ""],
    ) -> Shaped[Array, ""]:
        r"""
        Evaluate the formula on one coordinate of each input.

        :param parameters: Hyperparameter values :math:`\phi`
        :param x1: Coordinate of the first input along one axis
        :param x2: Coordinate of the second input along the same axis
        :return: :math:`g_\phi(x_1, x_2)`
        """

    def parameter_gradient(
        self,
        parameters: Shaped[Array, " k"],
        x1: Shaped[Array, ""],
        x2: Shaped[Array, ""],
    ) -> Shaped[Array, " k"]:
        r"""
        Evaluate :math:`\partial g / \partial \phi_j` for every hyperparameter.

        :param parameters: Hyperparameter values :math:`\phi`
        :param x1: Coordinate of the first input along one axis
        :param x2: Coordinate of the second input along the same axis
        :return: One partial derivative for each hyperparameter
        """
        if not self.parameter_names:
            return jnp.zeros(0, dtype=jnp.result_type(x1))
        return jax.grad(self.value, argnums=0)(parameters, x1, x2)


class AxisKernel(Kernel):
    """
    Define a kernel which sums a one-dimensional formula over selected axes.

    :param formula: Instance of :class:`AxisFormula`
    :param subspace: Instance of :class:`~covax.subspace.Subspace`, owned by the kernel
    :param parameters: Initial hyperparameter values of the formula, in the order of
        ``formula.parameter_names``; defaults to ``formula.default_parameters``
    """

    formula: AxisFormula
    subspace: Subspace
    parameters: np.ndarray

    def __init__(
        self,
        formula: AxisFormula,
        subspace: Subspace,
        parameters: Optional[Union[Sequence[float], ArrayLike]] = None,
    ):
        """Validate the collaborators and copy the hyperparameters into a buffer."""
        validate_is_instance(formula, "formula", AxisFormula)
        validate_is_instance(subspace, "subspace", Subspace)
        if parameters is None:
            parameters = formula.default_parameters
        self.formula = formula
        self.subspace = subspace
        self.parameters = as_parameter_buffer(
            parameters, "parameters", len(formula.parameter_names)
        )

    @property
    @override
    def ndim(self) -> int:
        return self.subspace.ndim

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
        return self.formula.parameter_names

    @override
    def _parameter_buffers(self) -> Iterator[np.ndarray]:
        yield self.parameters

    @override
    def compute_value(self, x1, x2):
        if self.subspace.naxes == 0:
            return jnp.zeros((), dtype=x1.dtype)
        x1_axes, x2_axes = self._select_axes(x1, x2)
        contributions = jax.vmap(self.formula.value, in_axes=(None, 0, 0))(
            jnp.asarray(self.parameters, dtype=jnp.float64), x1_axes, x2_axes
        )
        return jnp.sum(contributions)

    @override
    def compute_value_and_gradient(self, x1, x2):
        value = self.compute_value(x1, x2)
        if self.subspace.naxes == 0 or self.size == 0:
            return value, jnp.zeros(self.size, dtype=x1.dtype)
        x1_axes, x2_axes = self._select_axes(x1, x2)
        per_axis_gradient = jax.vmap(
            self.formula.parameter_gradient, in_axes=(None, 0, 0)
        )(jnp.asarray(self.parameters, dtype=jnp.float64), x1_axes, x2_axes)
        return value, jnp.sum(per_axis_gradient, axis=0)

    def _select_axes(
        self, x1: Shaped[Array, " d"], x2: Shaped[Array, " d"]
    ) -> tuple[Shaped[Array, " m"], Shaped[Array, " m"]]:
        """Return the coordinates of both inputs along the selected axes."""
        axes = jnp.asarray(
            [self.subspace.get_axis(i) for i in range(self.subspace.naxes)],
            dtype=jnp.int32,
        )
        return x1[axes], x2[axes]
