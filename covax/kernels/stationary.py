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
Stationary kernels, functions of a (parameterised) squared distance.

A :class:`StationaryKernel` bridges a closed-form :class:`RadialFormula`
:math:`f_\phi(r^2)` to a :class:`~covax.metrics.Metric` :math:`r^2_\theta(x_1, x_2)`,
so that :math:`k(x_1, x_2) = f_\phi(r^2_\theta(x_1, x_2))`. Its flat parameter vector
is :math:`(\phi, \theta)`: the formula's own hyperparameters followed by the metric's
parameters. The gradient w.r.t. :math:`\theta` follows from the chain rule,

.. math::

    \frac{\partial k}{\partial \theta_i} = \frac{\partial f}{\partial r^2}
    \frac{\partial r^2}{\partial \theta_i}.

A :class:`RadialFormula` must implement :meth:`RadialFormula.value`. The partial
derivatives :meth:`RadialFormula.parameter_gradient` and
:meth:`RadialFormula.radial_gradient` default to automatic differentiation of the value
and can be overridden with closed forms, as the formulas in
:mod:`covax.kernels.formulas` do.
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
from covax.metrics import Metric
from covax.parameters import as_parameter_buffer
from covax.validation import (
    cast_as_type,
    validate_is_instance,
    validate_parameter_index,
)


class RadialFormula(eqx.Module):
    r"""
    Abstract base class for closed-form functions of a squared distance.

    A formula is a stateless strategy: its hyperparameter values are held by the kernel
    that uses it and passed in on every call, in the order of
    :attr:`parameter_names`.
    """

    #: Names of the formula's hyperparameters, in flat parameter vector order
    parameter_names: ClassVar[tuple[str, ...]] = ()
    #: Values used when a kernel is built without explicit hyperparameters
    default_parameters: ClassVar[tuple[float, ...]] = ()

    @abstractmethod
    def value(
        self, parameters: Shaped[Array, " k"], r2: Shaped[Array, ""]
    ) -> Shaped[Array, ""]:
        r"""
        Evaluate the formula at squared distance ``r2``.

        :param parameters: Hyperparameter values :math:`\phi`
        :param r2: Squared distance :math:`r^2`
        :return: :math:`f_\phi(r^2)`
        """

    def parameter_gradient(
        self, parameters: Shaped[Array, " k"], r2: Shaped[Array, ""]
    ) -> Shaped[Array, " k"]:
        r"""
        Evaluate :math:`\partial f / \partial \phi_j` for every hyperparameter.

        :param parameters: Hyperparameter values :math:`\phi`
        :param r2: Squared distance :math:`r^2`
        :return: One partial derivative for each hyperparameter
        """
        if not self.parameter_names:
            return jnp.zeros(0, dtype=jnp.result_type(r2))
        return jax.grad(self.value, argnums=0)(parameters, r2)

    def radial_gradient(
        self, parameters: Shaped[Array, " k"], r2: Shaped[Array, ""]
    ) -> Shaped[Array, ""]:
        r"""
        Evaluate the radial gradient :math:`\partial f / \partial r^2`.

        :param parameters: Hyperparameter values :math:`\phi`
        :param r2: Squared distance :math:`r^2`
        :return: Derivative of the formula w.r.t. the squared distance
        """
        return jax.grad(self.value, argnums=1)(parameters, r2)


class StationaryKernel(Kernel):
    """
    Define a kernel which is a function of the squared distance between its inputs.

    :param formula: Instance of :class:`RadialFormula`
    :param metric: Instance of :class:`~covax.metrics.Metric`, owned by the kernel
    :param parameters: Initial hyperparameter values of the formula, in the order of
        ``formula.parameter_names``; defaults to ``formula.default_parameters``
    """

    formula: RadialFormula
    metric: Metric
    parameters: np.ndarray

    def __init__(
        self,
        formula: RadialFormula,
        metric: Metric,
        parameters: Optional[Union[Sequence[float], ArrayLike]] = None,
    ):
        """Validate the collaborators and copy the hyperparameters into a buffer."""
        validate_is_instance(formula, "formula", RadialFormula)
        validate_is_instance(metric, "metric", Metric)
        if parameters is None:
            parameters = formula.default_parameters
        self.formula = formula
        self.metric = metric
        self.parameters = as_parameter_buffer(
            parameters, "parameters", len(formula.parameter_names)
        )

    @property
    @override
    def ndim(self) -> int:
        return self.metric.ndim

    @property
    @override
    def size(self) -> int:
        return self.parameters.shape[0] + self.metric.size

    @override
    def get_parameter(self, index: int) -> float:
        index = validate_parameter_index(index, self.size)
        offset = self.parameters.shape[0]
        if index < offset:
            return float(self.parameters[index])
        return self.metric.get_parameter(index - offset)

    @override
    def set_parameter(self, index: int, value: float) -> None:
        index = validate_parameter_index(index, self.size)
        offset = self.parameters.shape[0]
        if index < offset:
            self.parameters[index] = cast_as_type(value, "value", float)
        else:
            self.metric.set_parameter(index - offset, value)

    @override
    def get_parameter_names(self) -> tuple[str, ...]:
        metric_names = tuple(
            f"metric:{name}" for name in self.metric.get_parameter_names()
        )
        return self.formula.parameter_names + metric_names

    @override
    def _parameter_buffers(self) -> Iterator[np.ndarray]:
        yield self.parameters
        yield from self.metric._parameter_buffers()  # pylint: disable=protected-access

    @override
    def compute_value(self, x1, x2):
        r2 = self.metric.compute_value(x1, x2)
        return self.formula.value(jnp.asarray(self.parameters, dtype=jnp.float64), r2)

    @override
    def compute_value_and_gradient(self, x1, x2):
        parameters = jnp.asarray(self.parameters, dtype=jnp.float64)
        r2 = self.metric.compute_value(x1, x2)
        value = self.formula.value(parameters, r2)
        formula_gradient = self.formula.parameter_gradient(parameters, r2)
        # Chain rule through the squared distance
        metric_gradient = self.metric.compute_gradient(
            x1, x2
        ) * self.formula.radial_gradient(parameters, r2)
        return value, jnp.concatenate(
            [jnp.atleast_1d(formula_gradient), metric_gradient]
        )
