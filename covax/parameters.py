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
Addressing of hyperparameters through a flat parameter vector.

Every kernel and every metric exposes its tunable values as a single flat vector of
length :attr:`Parameterised.size`. Composite objects never store a vector of their own;
the vector is the concatenation, in a fixed traversal order, of the values held by the
leaves of the tree, and an index is resolved by walking the tree and subtracting the
sizes of the subtrees it skips.

Leaves hold their values in a one-dimensional :class:`numpy.ndarray` of double
precision, the *parameter buffer*. The surrounding :class:`equinox.Module` is frozen,
but the buffer is not, which is what allows :meth:`Parameterised.set_parameter` to
update a value in place.
"""

# Support annotations with | in Python < 3.10
from __future__ import annotations

import logging
from abc import abstractmethod
from collections.abc import Iterator, Sequence

import equinox as eqx
import numpy as np
from jax.typing import ArrayLike

from covax.validation import validate_array_size

_logger = logging.getLogger(__name__)


def as_parameter_buffer(
    values: Sequence[float] | ArrayLike, object_name: str, expected_size: int
) -> np.ndarray:
    """
    Copy ``values`` into a fresh, writable, double precision parameter buffer.

    :param values: Initial parameter values
    :param object_name: Name of ``values`` to display if it has the wrong shape
    :param expected_size: Number of values required
    :return: One-dimensional :class:`numpy.ndarray` of ``expected_size`` values
    :raises ValueError: Raised if ``values`` is not a vector of ``expected_size``
        values
    """
    buffer = np.array(values, dtype=np.float64, ndmin=1)
    if buffer.ndim != 1:
        raise ValueError(f"{object_name} must be one-dimensional")
    validate_array_size(buffer, object_name, 0, expected_size)
    return buffer


class Parameterised(eqx.Module):
    """
    Abstract base class for objects addressable through a flat parameter vector.

    Implementations supply :attr:`size`, element access and names; whole-vector access
    is built on top of element access so that composite objects only need to route a
    single index.
    """

    @property
    @abstractmethod
    def size(self) -> int:
        """Return the number of tunable parameters held by this object and its tree."""

    @abstractmethod
    def get_parameter(self, index: int) -> float:
        """
        Return entry ``index`` of the flat parameter vector.

        :param index: Index into the flat parameter vector, ``0 <= index < size``
        :return: The parameter value
        :raises ParameterIndexError: Raised if ``index`` is out of range
        """

    @abstractmethod
    def set_parameter(self, index: int, value: float) -> None:
        """
        Overwrite entry ``index`` of the flat parameter vector in place.

        :param index: Index into the flat parameter vector, ``0 <= index < size``
        :param value: New parameter value
        :raises ParameterIndexError: Raised if ``index`` is out of range
        """

    @abstractmethod
    def get_parameter_names(self) -> tuple[str, ...]:
        """Return the names of the flat parameter vector entries, in order."""

    @abstractmethod
    def _parameter_buffers(self) -> Iterator[np.ndarray]:
        """Yield every parameter buffer reachable from this object."""

    def get_parameter_vector(self) -> np.ndarray:
        """
        Return a copy of the whole flat parameter vector.

        :return: Array of :attr:`size` parameter values
        """
        return np.array(
            [self.get_parameter(index) for index in range(self.size)],
            dtype=np.float64,
        )

    def set_parameter_vector(self, vector: Sequence[float] | ArrayLike) -> None:
        """
        Overwrite the whole flat parameter vector in place.

        :param vector: New values, one for each entry of the flat parameter vector
        :raises ValueError: Raised if ``vector`` does not hold exactly :attr:`size`
            values
        """
        vector = as_parameter_buffer(vector, "vector", self.size)
        for index, value in enumerate(vector):
            self.set_parameter(index, float(value))
        _logger.debug("Set %d parameters of %s", self.size, type(self).__name__)


def shares_parameters(first: Parameterised, second: Parameterised) -> bool:
    """
    Check whether two parameterised objects hold any parameter buffer in common.

    Empty buffers are ignored, as they cannot alias a parameter.

    :param first: First object
    :param second: Second object
    :return: :data:`True` if any non-empty buffer is reachable from both objects
    """
    # pylint: disable=protected-access
    first_buffers = {id(buffer) for buffer in first._parameter_buffers() if buffer.size}
    return any(
        id(buffer) in first_buffers
        for buffer in second._parameter_buffers()
        if buffer.size
    )
    # pylint: enable=protected-access
