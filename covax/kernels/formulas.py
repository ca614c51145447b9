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
Reference catalog of closed-form kernel formulas.

Radial formulas (for :class:`~covax.kernels.StationaryKernel`) are written in terms of
the squared distance :math:`r^2` produced by a metric, so length scales belong to the
metric rather than to the formula. Axis formulas (for
:class:`~covax.kernels.AxisKernel`) act on a single coordinate of each input, with
:math:`\delta = x_1 - x_2`.

Every formula overrides the automatic differentiation defaults of its base class with
the closed-form partial derivatives.
"""

import jax.numpy as jnp
from typing_extensions import override

from covax.kernels.axis import AxisFormula
from covax.kernels.stationary import RadialFormula


class ExpSquared(RadialFormula):
    r"""
    Define the squared exponential formula, :math:`f(r^2) = \exp(-r^2 / 2)`.

    Paired with an :class:`~covax.metrics.AxisAlignedMetric` this is the
    squared exponential (RBF) kernel with one length scale per axis.
    """

    @override
    def value(self, parameters, r2):
        return jnp.exp(-0.5 * r2)

    @override
    def radial_gradient(self, parameters, r2):
        return -0.5 * jnp.exp(-0.5 * r2)


class Matern32(RadialFormula):
    r"""
    Define the Matérn formula with :math:`\nu = 3/2`.

    With :math:`r = \sqrt{3 r^2}`, :math:`f(r^2) = (1 + r)\exp(-r)` and
    :math:`\partial f / \partial r^2 = -\frac{3}{2}\exp(-r)`.
    """

    @override
    def value(self, parameters, r2):
        r = jnp.sqrt(3.0 * r2)
        return (1.0 + r) * jnp.exp(-r)

    @override
    def radial_gradient(self, parameters, r2):
        return -1.5 * jnp.exp(-jnp.sqrt(3.0 * r2))


class Matern52(RadialFormula):
    r"""
    Define the Matérn formula with :math:`\nu = 5/2`.

    With :math:`r = \sqrt{5 r^2}`, :math:`f(r^2) = (1 + r + r^2/3)\exp(-r)` and
    :math:`\partial f / \partial r^2 = -\frac{5}{6}(1 + r)\exp(-r)`.
    """

    @override
    def value(self, parameters, r2):
        r = jnp.sqrt(5.0 * r2)
        return (1.0 + r + r**2 / 3.0) * jnp.exp(-r)

    @override
    def radial_gradient(self, parameters, r2):
        r = jnp.sqrt(5.0 * r2)
        return -5.0 / 6.0 * (1.0 + r) * jnp.exp(-r)


class RationalQuadratic(RadialFormula):
    r"""
    Define the rational quadratic formula.

    Given :math:`\alpha = \exp(` ``log_alpha`` :math:`)` and
    :math:`b = 1 + r^2 / (2\alpha)`, :math:`f(r^2) = b^{-\alpha}`.
    """

    parameter_names = ("log_alpha",)
    default_parameters = (0.0,)

    @override
    def value(self, parameters, r2):
        alpha = jnp.exp(parameters[0])
        return (1.0 + 0.5 * r2 / alpha) ** -alpha

    @override
    def parameter_gradient(self, parameters, r2):
        alpha = jnp.exp(parameters[0])
        base = 1.0 + 0.5 * r2 / alpha
        value = base**-alpha
        return jnp.atleast_1d(value * (0.5 * r2 / base - alpha * jnp.log(base)))

    @override
    def radial_gradient(self, parameters, r2):
        alpha = jnp.exp(parameters[0])
        return -0.5 * (1.0 + 0.5 * r2 / alpha) ** (-alpha - 1.0)


class Cosine(AxisFormula):
    r"""
    Define the cosine formula, :math:`g(x_1, x_2) = \cos(2\pi\delta / P)`.

    The period is :math:`P = \exp(` ``log_period`` :math:`)`.
    """

    parameter_names = ("log_period",)
    default_parameters = (0.0,)

    @override
    def value(self, parameters, x1, x2):
        return jnp.cos(2.0 * jnp.pi * (x1 - x2) / jnp.exp(parameters[0]))

    @override
    def parameter_gradient(self, parameters, x1, x2):
        phase = 2.0 * jnp.pi * (x1 - x2) / jnp.exp(parameters[0])
        return jnp.atleast_1d(phase * jnp.sin(phase))


class ExpSine2(AxisFormula):
    r"""
    Define the periodic (exp-sine-squared) formula.

    Given :math:`\gamma =` ``gamma`` and period :math:`P = \exp(` ``log_period``
    :math:`)`, :math:`g(x_1, x_2) = \exp(-\gamma \sin^2(\pi\delta / P))`.
    """

    parameter_names = ("gamma", "log_period")
    default_parameters = (1.0, 0.0)

    @override
    def value(self, parameters, x1, x2):
        gamma, log_period = parameters[0], parameters[1]
        sine = jnp.sin(jnp.pi * (x1 - x2) / jnp.exp(log_period))
        return jnp.exp(-gamma * sine**2)

    @override
    def parameter_gradient(self, parameters, x1, x2):
        gamma, log_period = parameters[0], parameters[1]
        phase = jnp.pi * (x1 - x2) / jnp.exp(log_period)
        sine = jnp.sin(phase)
        value = jnp.exp(-gamma * sine**2)
        return jnp.stack(
            [-(sine**2) * value, gamma * phase * jnp.sin(2.0 * phase) * value]
        )
