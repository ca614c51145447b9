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
Example hyperparameter fit of a composed covariance kernel.

This example showcases how the values and parameter gradients of a kernel are assembled
into the negative log marginal likelihood of a Gaussian process, and how an optax
optimiser uses its gradient to tune the kernel's flat parameter vector in place.

The data are noisy samples of a sine wave. The kernel is a constant times a squared
exponential, started from a length scale that is far too short. Observation noise has a
fixed, known variance.
"""

import numpy as np
import optax
from jax import numpy as jnp

from covax import ConstantKernel, IsotropicMetric, Kernel, StationaryKernel
from covax.kernels import ExpSquared


def kernel_matrices(kernel: Kernel, x: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """
    Evaluate a kernel and its parameter gradient on every pair of rows of ``x``.

    :param kernel: Kernel to evaluate
    :param x: Array of shape ``(n, kernel.ndim)``
    :return: Gram matrix of shape ``(n, n)`` and its derivatives w.r.t. each parameter,
        of shape ``(kernel.size, n, n)``
    """
    num_points = x.shape[0]
    values = np.zeros((num_points, num_points))
    gradients = np.zeros((kernel.size, num_points, num_points))
    for i in range(num_points):
        for j in range(i, num_points):
            value, gradient = kernel.value_and_gradient(x[i], x[j])
            values[i, j] = values[j, i] = value
            gradients[:, i, j] = gradients[:, j, i] = gradient
    return values, gradients


def negative_log_likelihood(
    kernel: Kernel, x: np.ndarray, y: np.ndarray, noise_variance: float
) -> tuple[float, np.ndarray]:
    """
    Compute the negative log marginal likelihood of ``y`` and its parameter gradient.

    :param kernel: Covariance kernel of the Gaussian process
    :param x: Inputs of shape ``(n, kernel.ndim)``
    :param y: Observations of shape ``(n,)``
    :param noise_variance: Variance of the observation noise
    :return: Negative log marginal likelihood, and its gradient w.r.t. the kernel's flat
        parameter vector
    """
    values, gradients = kernel_matrices(kernel, x)
    covariance = values + noise_variance * np.eye(len(y))
    cholesky = np.linalg.cholesky(covariance)
    alpha = np.linalg.solve(covariance, y)
    nll = (
        0.5 * y @ alpha
        + np.sum(np.log(np.diag(cholesky)))
        + 0.5 * len(y) * np.log(2 * np.pi)
    )
    # d nll / d theta_k = tr((K^-1 - alpha alpha^T) dK / d theta_k) / 2
    weights = np.linalg.inv(covariance) - np.outer(alpha, alpha)
    return float(nll), 0.5 * np.einsum("ij,kij->k", weights, gradients)


# Examples are written to be easy to read, copy and paste by users, so we ignore the
# pylint warnings raised that go against this approach
# pylint: disable=too-many-locals
def main(num_steps: int = 25) -> tuple[float, float]:
    """
    Run the hyperparameter fitting example.

    Sample noisy observations of a sine wave, then minimise the negative log marginal
    likelihood w.r.t. the kernel hyperparameters with Adam.

    :param num_steps: Number of optimisation steps
    :return: Negative log marginal likelihood before and after fitting
    """
    # Create some data. Here we'll use 15 noisy samples of a sine wave.
    num_data_points = 15
    noise_variance = 0.01
    generator = np.random.default_rng(1_989)
    x = np.sort(generator.uniform(0.0, 5.0, size=(num_data_points, 1)), axis=0)
    y = np.sin(x[:, 0]) + np.sqrt(noise_variance) * generator.normal(
        size=num_data_points
    )

    # Define a kernel to fit, starting from a length scale of 0.1
    kernel = ConstantKernel(1) * StationaryKernel(
        ExpSquared(), IsotropicMetric(1, log_scale=2 * np.log(0.1))
    )
    print(f"Fitting parameters {kernel.get_parameter_names()}...")

    optimiser = optax.adam(learning_rate=0.05)
    parameters = jnp.asarray(kernel.get_parameter_vector())
    optimiser_state = optimiser.init(parameters)
    initial_nll, _ = negative_log_likelihood(kernel, x, y, noise_variance)
    for _ in range(num_steps):
        _, gradient = negative_log_likelihood(kernel, x, y, noise_variance)
        updates, optimiser_state = optimiser.update(
            jnp.asarray(gradient), optimiser_state
        )
        parameters = optax.apply_updates(parameters, updates)
        kernel.set_parameter_vector(np.asarray(parameters))
    final_nll, _ = negative_log_likelihood(kernel, x, y, noise_variance)

    # Print the fitted hyperparameters
    print(f"Initial negative log likelihood: {initial_nll}")
    print(f"Final negative log likelihood: {final_nll}")
    print(f"Fitted parameters: {kernel.get_parameter_vector()}")

    return initial_nll, final_nll


# pylint: enable=too-many-locals


if __name__ == "__main__":
    main()
