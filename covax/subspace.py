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

"""Selection of an ordered subset of the axes of a feature vector."""

# Support annotations with | in Python < 3.10
from __future__ import annotations

from collections.abc import Iterable
from typing import Optional

import equinox as eqx

from covax.validation import cast_as_type, validate_in_range


class Subspace(eqx.Module):
    """
    Define an ordered selection of axes from feature vectors of length ``ndim``.

    Axis kernels sum an independent contribution over the selected axes. A subspace
    carries no tunable parameters.

    :param ndim: Length of the full feature vectors, must be positive
    :param axes: Indices of the selected axes, each in ``[0, ndim)``; :data:`None`
        selects every axis in order, an empty collection selects none
    """

    ndim: int = eqx.field(static=True)
    axes: tuple[int, ...] = eqx.field(static=True)

    def __init__(self, ndim: int, axes: Optional[Iterable[int]] = None):
        """Validate ``ndim`` and the selected axes."""
        ndim = cast_as_type(ndim, "ndim", int)
        validate_in_range(ndim, "ndim", strict_inequalities=True, lower_bound=0)
        if axes is None:
            axes = range(ndim)
        axes = tuple(cast_as_type(axis, "axis", int) for axis in axes)
        for axis in axes:
            validate_in_range(
                axis,
                "axis",
                strict_inequalities=False,
                lower_bound=0,
                upper_bound=ndim - 1,
            )
        self.ndim = ndim
        self.axes = axes

    @property
    def naxes(self) -> int:
        """Return the number of selected axes."""
        return len(self.axes)

    def get_axis(self, index: int) -> int:
        """
        Return the feature index of the ``index``-th selected axis.

        :param index: Position in the selection, ``0 <= index < naxes``
        :return: Index into the full feature vector
        :raises IndexError: Raised if ``index`` is out of range
        """
        if not 0 <= index < self.naxes:
            raise IndexError(
                f"axis index {index} is out of range for a subspace of "
                f"{self.naxes} axes"
            )
        return self.axes[index]
