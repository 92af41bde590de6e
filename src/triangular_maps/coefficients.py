"""
Shared coefficient storage.

A block-triangular map owns one flat coefficient vector. Each component reads
and writes its own contiguous slice of that vector through a ``CoeffView``, so
a single write to the map's buffer is seen by every component, and a component
can never touch coefficients outside its slice.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np


class CoeffBuffer:
    """
    Owner of a flat float64 coefficient array.

    Parameters
    ----------
    values : array_like
        Initial coefficient values. The buffer keeps its own copy.
    """

    def __init__(self, values):
        self.values = np.array(values, dtype=float).ravel()

    @classmethod
    def empty(cls, size: int) -> CoeffBuffer:
        return cls(np.zeros(size))

    def view(self, start: int, stop: int) -> CoeffView:
        return CoeffView(self, start, stop)

    def partition(self, sizes: Sequence[int]) -> list[CoeffView]:
        """
        Split the buffer into contiguous, non-overlapping views of the given
        sizes, in order. The sizes must add up to the buffer length.
        """
        if sum(sizes) != len(self):
            raise ValueError(
                f"Cannot partition a coefficient buffer of length {len(self)} "
                f"into slices of total length {sum(sizes)}."
            )

        views = []
        start = 0
        for size in sizes:
            views.append(self.view(start, start + size))
            start += size
        return views

    def __len__(self) -> int:
        return self.values.shape[0]


class CoeffView:
    """
    Range-checked window [start, stop) into a ``CoeffBuffer``.

    Indexing is relative to ``start``. The ``array`` property returns a
    writable numpy view, so in-place updates go straight to the buffer.
    """

    def __init__(self, buffer: CoeffBuffer, start: int, stop: int):
        if not 0 <= start <= stop <= len(buffer):
            raise ValueError(
                f"Invalid coefficient range [{start}, {stop}) for a buffer of "
                f"length {len(buffer)}."
            )
        self.buffer = buffer
        self.start = start
        self.stop = stop

    @property
    def array(self) -> np.ndarray:
        return self.buffer.values[self.start : self.stop]

    def assign(self, values):
        values = np.asarray(values, dtype=float).ravel()
        if values.shape[0] != len(self):
            raise ValueError(
                f"Expected {len(self)} coefficients, got {values.shape[0]}."
            )
        self.array[:] = values

    def _check(self, ind: int) -> int:
        if ind < 0:
            ind += len(self)
        if ind < 0 or ind >= len(self):
            raise IndexError(
                f"Coefficient index out of range for a view of length {len(self)}."
            )
        return self.start + ind

    def __getitem__(self, ind: int) -> float:
        return self.buffer.values[self._check(ind)]

    def __setitem__(self, ind: int, value: float):
        self.buffer.values[self._check(ind)] = value

    def __len__(self) -> int:
        return self.stop - self.start

    def __array__(self, dtype=None, copy=None):
        if dtype is None:
            return self.array
        return self.array.astype(dtype)

    def __repr__(self) -> str:
        return f"CoeffView([{self.start}, {self.stop}), values={self.array})"
