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
Tests for kernel implementations.

The tests within this file verify that the kernels, and the operators composing them,
produce the expected values and parameter gradients on simple examples, route flat
parameter indices to the right leaf, and reject invalid inputs.
"""

import copy
import subprocess
import sys
import textwrap
from collections.abc import Callable
from pathlib import Path
from unittest.mock import MagicMock

import jax.numpy as jnp
import numpy as np
import pytest

from covax.kernels import (
    AxisKernel,
    ConstantKernel,
    Cosine,
    ExpSine2,
    ExpSquared,
    Kernel,
    Matern32,
    Matern52,
    Product,
    RationalQuadratic,
    StationaryKernel,
    Sum,
)
from covax.metrics import AxisAlignedMetric, EuclideanMetric, IsotropicMetric
from covax.subspace import Subspace
from covax.util import (
    DimensionMismatchError,
    NdimMismatchError,
    ParameterIndexError,
    finite_difference_gradient,
)


def _random_leaf(generator: np.random.Generator, ndim: int) -> Kernel:
    """Return a randomly chosen leaf kernel with random hyperparameters."""
    choice = generator.integers(5)
    if choice == 0:
        return ConstantKernel(ndim, generator.uniform(-0.5, 0.5))
    if choice == 1:
        formula = (ExpSquared, Matern32, Matern52)[generator.integers(3)]()
        metric = AxisAlignedMetric(ndim, generator.uniform(-0.5, 0.5, ndim))
        return StationaryKernel(formula, metric)
    if choice == 2:
        metric = IsotropicMetric(ndim, generator.uniform(-0.5, 0.5))
        return StationaryKernel(
            RationalQuadratic(), metric, [generator.uniform(-0.5, 0.5)]
        )
    axes = generator.choice(ndim, size=generator.integers(1, ndim + 1), replace=False)
    subspace = Subspace(ndim, axes.tolist())
    if choice == 3:
        return AxisKernel(Cosine(), subspace, [generator.uniform(0.5, 1.5)])
    return AxisKernel(
        ExpSine2(),
        subspace,
        [generator.uniform(0.5, 1.5), generator.uniform(-0.5, 0.5)],
    )


def _random_kernel(generator: np.random.Generator, ndim: int, depth: int) -> Kernel:
    """Return a random tree of sums and products of depth ``depth``."""
    if depth == 0:
        return _random_leaf(generator, ndim)
    operator = Sum if generator.integers(2) else Product
    return operator(
        _random_kernel(generator, ndim, depth - 1),
        _random_kernel(generator, ndim, depth - 1),
    )


def _squared_exponential(ndim: int = 2, log_scale: float = 0.0) -> StationaryKernel:
    """Return a squared exponential kernel with an isotropic length scale."""
    return StationaryKernel(ExpSquared(), IsotropicMetric(ndim, log_scale))


class TestConstantKernel:
    """Tests for the constant kernel."""

    def test_value_and_gradient(self) -> None:
        """The value is ``exp(log_constant)``, and so is its derivative."""
        kernel = ConstantKernel(2, np.log(3.0))
        value, gradient = kernel.value_and_gradient([0.0, 1.0], [5.0, -2.0])
        np.testing.assert_array_almost_equal(value, 3.0)
        np.testing.assert_array_almost_equal(gradient, [3.0])
        assert kernel.size == 1
        assert kernel.ndim == 2
        assert kernel.get_parameter_names() == ("log_constant",)

    def test_from_value(self) -> None:
        """A constant built from its value stores the logarithm of the value."""
        kernel = ConstantKernel.from_value(2.5, 3)
        assert kernel.get_parameter(0) == pytest.approx(np.log(2.5))
        np.testing.assert_array_almost_equal(kernel.value(np.zeros(3), np.ones(3)), 2.5)

    @pytest.mark.parametrize("constant", [0, -1.0], ids=["zero", "negative"])
    def test_from_value_non_positive(self, constant: float) -> None:
        """Only a positive constant has a logarithm."""
        with pytest.raises(ValueError, match="constant must be strictly above 0"):
            ConstantKernel.from_value(constant, 1)

    @pytest.mark.parametrize("ndim", [0, -2])
    def test_invalid_ndim(self, ndim: int) -> None:
        """Feature vectors must have a positive length."""
        with pytest.raises(ValueError, match="ndim must be strictly above 0"):
            ConstantKernel(ndim)


class TestStationaryKernel:
    """Tests for kernels that are functions of a squared distance."""

    def test_value_euclidean(self) -> None:
        """Check ``exp(-r2 / 2)`` at zero distance and at a distance of two."""
        kernel = StationaryKernel(ExpSquared(), EuclideanMetric(1))
        assert kernel.size == 0
        np.testing.assert_array_almost_equal(kernel.value([0.0], [0.0]), 1.0)
        np.testing.assert_array_almost_equal(
            kernel.value([0.0], [2.0]), np.exp(-2.0)
        )
        assert kernel.gradient([0.0], [2.0]).shape == (0,)

    def test_isotropic_gradient(self) -> None:
        """Check the chain rule through an isotropic metric against a closed form."""
        log_scale = 0.4
        x1, x2 = jnp.array([0.5, -1.0]), jnp.array([1.5, 0.25])
        kernel = _squared_exponential(log_scale=log_scale)
        r2 = float(jnp.sum((x1 - x2) ** 2)) / np.exp(log_scale)
        value, gradient = kernel.value_and_gradient(x1, x2)
        np.testing.assert_array_almost_equal(value, np.exp(-0.5 * r2))
        np.testing.assert_array_almost_equal(gradient, [0.5 * r2 * np.exp(-0.5 * r2)])

    def test_chain_rule(self) -> None:
        """The metric part of the gradient is the radial derivative times dr2."""
        metric = AxisAlignedMetric(3, [0.1, -0.2, 0.3])
        formula = RationalQuadratic()
        kernel = StationaryKernel(formula, metric, [0.7])
        x1, x2 = jnp.array([0.0, 1.0, 2.0]), jnp.array([0.5, -1.0, 1.0])
        r2 = metric.value(x1, x2)
        expected = formula.radial_gradient(jnp.array([0.7]), r2) * metric.gradient(
            x1, x2
        )
        gradient = kernel.gradient(x1, x2)
        assert gradient.shape == (4,)
        np.testing.assert_array_almost_equal(gradient[1:], expected)
        np.testing.assert_allclose(
            gradient, finite_difference_gradient(kernel, x1, x2), rtol=1e-5, atol=1e-8
        )

    def test_parameter_layout(self) -> None:
        """Formula hyperparameters come first, followed by those of the metric."""
        metric = AxisAlignedMetric(2, [0.1, 0.2])
        kernel = StationaryKernel(RationalQuadratic(), metric, [0.3])
        assert kernel.size == 3
        assert kernel.get_parameter_names() == (
            "log_alpha",
            "metric:log_scale_0",
            "metric:log_scale_1",
        )
        np.testing.assert_array_equal(kernel.get_parameter_vector(), [0.3, 0.1, 0.2])
        kernel.set_parameter(2, -1.0)
        assert metric.get_parameter(1) == -1.0

    def test_default_parameters(self) -> None:
        """Omitted hyperparameters take the formula defaults."""
        kernel = StationaryKernel(RationalQuadratic(), IsotropicMetric(1))
        np.testing.assert_array_equal(kernel.get_parameter_vector(), [0.0, 0.0])

    def test_invalid_collaborators(self) -> None:
        """Formulas and metrics are checked by type, hyperparameters by length."""
        with pytest.raises(TypeError, match="formula must be of type"):
            StationaryKernel(Cosine(), EuclideanMetric(1))
        with pytest.raises(TypeError, match="metric must be of type"):
            StationaryKernel(ExpSquared(), Subspace(1))
        with pytest.raises(ValueError, match="not the expected size of 1"):
            StationaryKernel(RationalQuadratic(), EuclideanMetric(1), [0.0, 1.0])


class TestAxisKernel:
    """Tests for kernels that sum a one-dimensional formula over selected axes."""

    def test_value_is_sum_over_axes(self) -> None:
        """Only the selected axes contribute, each independently."""
        period = 1.7
        kernel = AxisKernel(Cosine(), Subspace(3, [0, 2]), [np.log(period)])
        x1, x2 = jnp.array([0.1, 5.0, -0.4]), jnp.array([0.6, -3.0, 0.2])
        expected = np.cos(2 * np.pi * -0.5 / period) + np.cos(
            2 * np.pi * -0.6 / period
        )
        np.testing.assert_array_almost_equal(kernel.value(x1, x2), expected)

    def test_gradient(self) -> None:
        """The gradient is the sum of the per-axis partial derivatives."""
        kernel = AxisKernel(ExpSine2(), Subspace(3), [1.2, 0.3])
        x1, x2 = jnp.array([0.1, 0.7, -0.4]), jnp.array([0.6, -0.3, 0.2])
        gradient = kernel.gradient(x1, x2)
        assert gradient.shape == (2,)
        np.testing.assert_allclose(
            gradient, finite_difference_gradient(kernel, x1, x2), rtol=1e-5, atol=1e-8
        )

    def test_empty_subspace(self) -> None:
        """A kernel over no axes is identically zero, as is its gradient."""
        kernel = AxisKernel(ExpSine2(), Subspace(2, []))
        value, gradient = kernel.value_and_gradient([1.0, 2.0], [3.0, 4.0])
        np.testing.assert_array_equal(value, 0.0)
        np.testing.assert_array_equal(gradient, [0.0, 0.0])

    def test_axes_read_through_subspace(self) -> None:
        """Selected axes are resolved one at a time through ``Subspace.get_axis``."""
        subspace = MagicMock(spec=Subspace)
        subspace.ndim, subspace.naxes = 3, 2
        subspace.get_axis.side_effect = lambda index: (2, 0)[index]
        period = 1.3
        kernel = AxisKernel(Cosine(), subspace, [np.log(period)])
        x1, x2 = jnp.array([0.1, 5.0, -0.4]), jnp.array([0.6, -3.0, 0.2])
        expected = np.cos(2 * np.pi * -0.6 / period) + np.cos(
            2 * np.pi * -0.5 / period
        )
        np.testing.assert_array_almost_equal(kernel.value(x1, x2), expected)
        subspace.get_axis.assert_any_call(0)
        subspace.get_axis.assert_any_call(1)

    def test_parameter_layout(self) -> None:
        """An axis kernel exposes exactly the formula hyperparameters."""
        kernel = AxisKernel(ExpSine2(), Subspace(4, [3]))
        assert kernel.ndim == 4
        assert kernel.size == 2
        assert kernel.get_parameter_names() == ("gamma", "log_period")
        np.testing.assert_array_equal(kernel.get_parameter_vector(), [1.0, 0.0])

    def test_invalid_collaborators(self) -> None:
        """Formulas and subspaces are checked by type."""
        with pytest.raises(TypeError, match="formula must be of type"):
            AxisKernel(ExpSquared(), Subspace(1))
        with pytest.raises(TypeError, match="subspace must be of type"):
            AxisKernel(Cosine(), EuclideanMetric(1))


class TestSum:
    """Tests for the sum of two kernels."""

    @pytest.fixture
    def kernels(self) -> tuple[Kernel, Kernel]:
        """Return two kernels on 2-vectors with one and two parameters."""
        return (
            ConstantKernel(2, 0.5),
            StationaryKernel(ExpSquared(), AxisAlignedMetric(2, [0.2, -0.3])),
        )

    def test_value_and_gradient(self, kernels: tuple[Kernel, Kernel]) -> None:
        """Values add and gradients concatenate without cross terms."""
        left, right = kernels
        kernel = Sum(left, right)
        x1, x2 = jnp.array([0.3, 1.0]), jnp.array([-0.2, 0.4])
        value, gradient = kernel.value_and_gradient(x1, x2)
        np.testing.assert_array_almost_equal(
            value, left.value(x1, x2) + right.value(x1, x2)
        )
        np.testing.assert_array_almost_equal(
            gradient,
            jnp.concatenate([left.gradient(x1, x2), right.gradient(x1, x2)]),
        )

    def test_parameter_routing(self, kernels: tuple[Kernel, Kernel]) -> None:
        """Indices below ``left.size`` go left, the rest go right shifted down."""
        left, right = kernels
        kernel = Sum(left, right)
        assert kernel.size == 3
        assert kernel.ndim == 2
        assert kernel.get_parameter(0) == 0.5
        assert kernel.get_parameter(2) == -0.3
        kernel.set_parameter(1, 4.0)
        assert right.get_parameter(0) == 4.0
        assert left.get_parameter(0) == 0.5
        assert kernel.get_parameter_names() == (
            "left:log_constant",
            "right:metric:log_scale_0",
            "right:metric:log_scale_1",
        )


class TestProduct:
    """Tests for the product of two kernels."""

    def test_value_and_gradient(self) -> None:
        """Values multiply, and each gradient is scaled by the other value."""
        left = _squared_exponential(log_scale=0.3)
        right = StationaryKernel(RationalQuadratic(), IsotropicMetric(2), [0.2])
        kernel = Product(left, right)
        x1, x2 = jnp.array([0.3, 1.0]), jnp.array([-0.2, 0.4])
        left_value, left_gradient = left.value_and_gradient(x1, x2)
        right_value, right_gradient = right.value_and_gradient(x1, x2)
        value, gradient = kernel.value_and_gradient(x1, x2)
        np.testing.assert_array_almost_equal(value, left_value * right_value)
        np.testing.assert_array_almost_equal(gradient[:1], left_gradient * right_value)
        np.testing.assert_array_almost_equal(gradient[1:], right_gradient * left_value)

    def test_scaling_by_constant(self) -> None:
        """Multiplying by a constant ``c`` scales both value and gradient by ``c``."""
        base = _squared_exponential(log_scale=-0.1)
        x1, x2 = jnp.array([0.3, 1.0]), jnp.array([-0.2, 0.4])
        value, gradient = base.value_and_gradient(x1, x2)
        scaled = base * 3.0
        scaled_value, scaled_gradient = scaled.value_and_gradient(x1, x2)
        np.testing.assert_array_almost_equal(scaled_value, 3.0 * value)
        np.testing.assert_array_almost_equal(scaled_gradient[:1], 3.0 * gradient)
        np.testing.assert_array_almost_equal(scaled_gradient[1:], [3.0 * value])

    def test_children_evaluated_once(self) -> None:
        """Each child is evaluated exactly once per gradient evaluation."""
        left = MagicMock(spec=Kernel)
        right = MagicMock(spec=Kernel)
        left.ndim, left.size = 2, 1
        right.ndim, right.size = 2, 2
        left.compute_value_and_gradient.return_value = (
            jnp.asarray(2.0),
            jnp.array([1.0]),
        )
        right.compute_value_and_gradient.return_value = (
            jnp.asarray(3.0),
            jnp.array([1.0, -1.0]),
        )
        kernel = Product(left, right)
        value, gradient = kernel.value_and_gradient([0.0, 0.0], [1.0, 1.0])
        np.testing.assert_array_almost_equal(value, 6.0)
        np.testing.assert_array_almost_equal(gradient, [3.0, 2.0, -2.0])
        left.compute_value_and_gradient.assert_called_once()
        right.compute_value_and_gradient.assert_called_once()
        left.compute_value.assert_not_called()
        right.compute_value.assert_not_called()


class TestOperatorConstruction:
    """Tests for the checks made when two kernels are composed."""

    @pytest.mark.parametrize("operator", [Sum, Product])
    def test_ndim_mismatch(self, operator: type) -> None:
        """Children acting on vectors of different lengths cannot be composed."""
        with pytest.raises(NdimMismatchError, match="length 2 but 'right'"):
            operator(ConstantKernel(2), ConstantKernel(3))

    @pytest.mark.parametrize("operator", [Sum, Product])
    def test_shared_subtree(self, operator: type) -> None:
        """A kernel cannot appear twice in the same tree."""
        kernel = _squared_exponential()
        with pytest.raises(ValueError, match="must not share parameters"):
            operator(kernel, kernel)
        with pytest.raises(ValueError, match="must not share parameters"):
            operator(kernel, Sum(ConstantKernel(2), kernel))

    def test_copied_subtree(self) -> None:
        """A deep copy holds its own parameters and may join the original."""
        kernel = _squared_exponential(log_scale=0.5)
        composed = Sum(kernel, copy.deepcopy(kernel))
        composed.set_parameter(1, -0.5)
        assert kernel.get_parameter(0) == 0.5
        np.testing.assert_array_equal(composed.get_parameter_vector(), [0.5, -0.5])

    def test_shared_parameter_free_kernel(self) -> None:
        """A kernel without parameters has nothing to alias and may be reused."""
        kernel = StationaryKernel(Matern32(), EuclideanMetric(1))
        composed = Sum(kernel, kernel)
        assert composed.size == 0
        np.testing.assert_array_almost_equal(
            composed.value([0.0], [1.0]), 2 * kernel.value([0.0], [1.0])
        )

    def test_not_a_kernel(self) -> None:
        """Only kernels can be composed by the operator classes."""
        with pytest.raises(TypeError, match="must be instances of"):
            Sum(ConstantKernel(1), 1.0)


class TestArithmetic:
    """Tests for building operators with ``+`` and ``*``."""

    def test_add_kernels(self) -> None:
        """Adding two kernels builds a sum with the left operand first."""
        left, right = _squared_exponential(), ConstantKernel(2)
        kernel = left + right
        assert isinstance(kernel, Sum)
        assert kernel.left is left
        assert kernel.right is right

    def test_multiply_kernels(self) -> None:
        """Multiplying two kernels builds a product with the left operand first."""
        left, right = _squared_exponential(), ConstantKernel(2)
        kernel = left * right
        assert isinstance(kernel, Product)
        assert kernel.left is left
        assert kernel.right is right

    @pytest.mark.parametrize(
        "build",
        [lambda k: k + 2.0, lambda k: k * 2, lambda k: 2 + k, lambda k: 2.0 * k],
        ids=["add", "multiply", "right_add", "right_multiply"],
    )
    def test_numbers_become_constants(
        self, build: Callable[[Kernel], Kernel]
    ) -> None:
        """A number is promoted to a constant kernel on the side it was written."""
        base = _squared_exponential()
        kernel = build(base)
        constant = kernel.right if kernel.left is base else kernel.left
        assert isinstance(constant, ConstantKernel)
        assert constant.ndim == base.ndim
        assert constant.get_parameter(0) == pytest.approx(np.log(2.0))

    def test_right_operand_order(self) -> None:
        """A number on the left of the operator contributes the first parameter."""
        kernel = 2.0 * _squared_exponential(log_scale=0.7)
        assert kernel.get_parameter_names() == (
            "left:log_constant",
            "right:metric:log_scale",
        )
        assert kernel.get_parameter(1) == 0.7

    def test_invalid_operand(self) -> None:
        """Anything other than a kernel or a number is rejected."""
        with pytest.raises(TypeError):
            _ = _squared_exponential() + "kernel"
        with pytest.raises(TypeError):
            _ = [1.0] * _squared_exponential()

    def test_non_positive_constant(self) -> None:
        """A constant must be positive to be stored by its logarithm."""
        with pytest.raises(ValueError, match="constant must be strictly above 0"):
            _ = _squared_exponential() * -1.0

    @pytest.mark.parametrize(
        "number",
        [np.float32(2.0), np.float64(2.0), np.int64(2)],
        ids=["float32", "float64", "int64"],
    )
    def test_numpy_numbers_become_constants(self, number: np.number) -> None:
        """NumPy scalars are promoted to constant kernels like Python numbers."""
        kernel = _squared_exponential() * number
        assert isinstance(kernel, Product)
        assert isinstance(kernel.right, ConstantKernel)
        assert kernel.right.get_parameter(0) == pytest.approx(np.log(2.0))
        assert isinstance(_squared_exponential() + number, Sum)

    def test_booleans_rejected(self) -> None:
        """Booleans are not numbers a kernel can be combined with."""
        with pytest.raises(TypeError):
            _ = _squared_exponential() + True
        with pytest.raises(TypeError):
            _ = False * _squared_exponential()


class TestKernelInputs:
    """Tests for the validation of feature vectors, indices and output buffers."""

    @pytest.mark.parametrize(
        "x",
        [np.zeros(3), np.zeros(1), np.zeros((2, 1)), 0.0],
        ids=["too_long", "too_short", "matrix", "scalar"],
    )
    def test_dimension_mismatch(self, x: np.ndarray) -> None:
        """Feature vectors must have shape ``(ndim,)``."""
        kernel = _squared_exponential()
        with pytest.raises(DimensionMismatchError, match="x1 must be a vector"):
            kernel.value(x, np.zeros(2))
        with pytest.raises(DimensionMismatchError, match="x2 must be a vector"):
            kernel.gradient(np.zeros(2), x)
        with pytest.raises(ValueError):
            kernel.value_and_gradient(x, x)

    def test_scalar_input_one_dimension(self) -> None:
        """Scalars are accepted as feature vectors of length one."""
        kernel = StationaryKernel(ExpSquared(), EuclideanMetric(1))
        np.testing.assert_array_almost_equal(kernel.value(0.0, 2.0), np.exp(-2.0))

    @pytest.mark.parametrize("index", [-1, 3, 10], ids=["negative", "size", "beyond"])
    def test_index_out_of_range(self, index: int) -> None:
        """Indices outside ``[0, size)`` raise, at every level of the tree."""
        kernel = ConstantKernel(2) + _squared_exponential() * 2.0
        with pytest.raises(ParameterIndexError, match="out of range"):
            kernel.get_parameter(index)
        with pytest.raises(IndexError):
            kernel.set_parameter(index, 1.0)

    def test_non_integer_index(self) -> None:
        """Indices must be integers."""
        with pytest.raises(ParameterIndexError, match="must be an integer"):
            ConstantKernel(1).get_parameter(0.0)

    def test_gradient_into_buffer(self) -> None:
        """An output buffer is filled in place and returned."""
        kernel = ConstantKernel(2, 0.1) * _squared_exponential(log_scale=0.2)
        x1, x2 = np.array([0.0, 1.0]), np.array([1.0, 0.0])
        out = np.full(2, np.nan)
        result = kernel.gradient(x1, x2, out=out)
        assert result is out
        np.testing.assert_array_almost_equal(out, kernel.gradient(x1, x2))

    def test_gradient_into_invalid_buffer(self) -> None:
        """The output buffer must be a vector of ``size`` values."""
        kernel = _squared_exponential()
        x = np.zeros(2)
        with pytest.raises(ValueError, match="not the expected size of 1"):
            kernel.gradient(x, x, out=np.zeros(2))
        with pytest.raises(ValueError, match="one-dimensional"):
            kernel.gradient(x, x, out=np.zeros((1, 1)))
        with pytest.raises(TypeError, match="out must be of type"):
            kernel.gradient(x, x, out=[0.0])


class TestParameterVector:
    """Tests for whole-vector access to the parameters of a kernel tree."""

    def test_round_trip(self, generator: np.random.Generator) -> None:
        """Writing back the vector read from a tree leaves it unchanged."""
        kernel = _random_kernel(generator, 3, 3)
        vector = kernel.get_parameter_vector()
        assert vector.shape == (kernel.size,)
        assert len(kernel.get_parameter_names()) == kernel.size
        kernel.set_parameter_vector(vector)
        np.testing.assert_array_equal(kernel.get_parameter_vector(), vector)

    def test_writes_reach_leaves(self) -> None:
        """Every entry of a written vector lands in the leaf that owns it."""
        constant = ConstantKernel(2)
        stationary = _squared_exponential()
        axis = AxisKernel(ExpSine2(), Subspace(2, [1]))
        kernel = (constant + stationary) * axis
        kernel.set_parameter_vector([1.0, 2.0, 3.0, 4.0])
        assert constant.get_parameter(0) == 1.0
        assert stationary.metric.get_parameter(0) == 2.0
        np.testing.assert_array_equal(axis.get_parameter_vector(), [3.0, 4.0])
        assert kernel.get_parameter_names() == (
            "left:left:log_constant",
            "left:right:metric:log_scale",
            "right:gamma",
            "right:log_period",
        )

    def test_wrong_length(self) -> None:
        """A vector of the wrong length is rejected before anything is written."""
        kernel = ConstantKernel(1) + ConstantKernel(1)
        with pytest.raises(ValueError, match="not the expected size of 2"):
            kernel.set_parameter_vector([1.0, 2.0, 3.0])
        np.testing.assert_array_equal(kernel.get_parameter_vector(), [0.0, 0.0])

    def test_evaluation_does_not_mutate(self, generator: np.random.Generator) -> None:
        """Evaluating a kernel leaves its parameters untouched."""
        kernel = _random_kernel(generator, 2, 2)
        vector = kernel.get_parameter_vector()
        kernel.value_and_gradient(generator.normal(size=2), generator.normal(size=2))
        kernel.gradient(generator.normal(size=2), generator.normal(size=2))
        np.testing.assert_array_equal(kernel.get_parameter_vector(), vector)


class TestRandomTrees:
    """Tests comparing gradients of random kernel trees to finite differences."""

    @pytest.mark.parametrize("seed", range(6))
    @pytest.mark.parametrize("depth", [1, 3])
    def test_gradient(self, seed: int, depth: int) -> None:
        """The analytic gradient of any tree agrees with central differences."""
        generator = np.random.default_rng(seed)
        ndim = 3
        kernel = _random_kernel(generator, ndim, depth)
        x1, x2 = generator.normal(size=ndim), generator.normal(size=ndim)
        value, gradient = kernel.value_and_gradient(x1, x2)
        assert gradient.shape == (kernel.size,)
        np.testing.assert_array_almost_equal(value, kernel.value(x1, x2))
        np.testing.assert_allclose(
            gradient, finite_difference_gradient(kernel, x1, x2), rtol=1e-5, atol=1e-7
        )

    @pytest.mark.parametrize("seed", range(3))
    def test_symmetry(self, seed: int) -> None:
        """All reference kernels are symmetric in their inputs."""
        generator = np.random.default_rng(seed)
        kernel = _random_kernel(generator, 2, 2)
        x1, x2 = generator.normal(size=2), generator.normal(size=2)
        np.testing.assert_array_almost_equal(kernel.value(x1, x2), kernel.value(x2, x1))
        np.testing.assert_array_almost_equal(
            kernel.gradient(x1, x2), kernel.gradient(x2, x1)
        )


class TestPrecision:
    """Tests that kernels evaluate in double precision."""

    def test_double_precision(self) -> None:
        """Values and gradients are float64, and parameters are not truncated."""
        kernel = ConstantKernel(1, np.log1p(1e-9)) * _squared_exponential(1, 0.3)
        value, gradient = kernel.value_and_gradient([0.0], [1e-4])
        assert value.dtype == np.float64
        assert gradient.dtype == np.float64
        assert float(ConstantKernel(1, np.log1p(1e-9)).value([0.0], [0.0])) != 1.0

    def test_double_precision_default_configuration(self) -> None:
        """
        Check precision in a fresh interpreter with JAX left at its defaults.

        The unit tests share one interpreter, so a separate process is used to see
        exactly what a user importing covax sees.
        """
        script = textwrap.dedent(
            """
            import numpy as np

            from covax import ConstantKernel, IsotropicMetric, StationaryKernel
            from covax.kernels import ExpSquared
            from covax.util import finite_difference_gradient

            kernel = ConstantKernel(2) * StationaryKernel(
                ExpSquared(), IsotropicMetric(2, 0.3)
            )
            x1, x2 = np.array([0.1, -0.4]), np.array([0.9, 0.5])
            value, gradient = kernel.value_and_gradient(x1, x2)
            assert value.dtype == np.float64, value.dtype
            assert gradient.dtype == np.float64, gradient.dtype
            np.testing.assert_allclose(
                gradient, finite_difference_gradient(kernel, x1, x2), rtol=1e-5
            )
            """
        )
        result = subprocess.run(
            [sys.executable, "-c", script],
            capture_output=True,
            check=False,
            cwd=Path(__file__).resolve().parents[2],
            text=True,
        )
        assert result.returncode == 0, result.stderr
