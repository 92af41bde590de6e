"""
Sparse multi-indices and multi-index sets.

A multi-index is a vector of nonnegative integers [j_1, ..., j_D] that
defines the powers of one term in a multivariate polynomial expansion. Only
the nonzero entries are stored, which is advantageous for expansions with few
cross terms, e.g. diagonal transport maps.

Classes
-------
MultiIndex
    Sparse multi-index with a total order used for canonical sorting.
MultiIndexSet
    Ordered, duplicate-free collection of multi-indices of a common length.
"""

from __future__ import annotations

import itertools
from typing import Callable, Iterable, Iterator, Optional

import numpy as np


def _as_integer(value) -> int:
    """Convert an integral number to int, rejecting fractional values."""
    try:
        integer = int(value)
    except (TypeError, ValueError):
        raise ValueError(
            f"Multi-index values must be integers, got {value!r}"
        ) from None
    if integer != value:
        raise ValueError(f"Multi-index values must be integers, got {value!r}")
    return integer


class MultiIndex:
    """
    Sparse nonnegative integer vector.

    Parameters
    ----------
    values : int or sequence of int, optional
        Either the length of the multi-index (combined with ``fill``) or a
        dense description of the multi-index, e.g. ``MultiIndex([1, 0, 2, 3])``.
        If omitted, an empty multi-index of length zero is created.
    fill : int, default=0
        Value of every entry when ``values`` is a length.

    Examples
    --------
    >>> multi = MultiIndex([1, 0, 2, 3])
    >>> multi.sum(), multi.max(), multi.num_nz()
    (6, 3, 3)
    >>> str(multi)
    '[1,0,2,3]'
    """

    __slots__ = ("_length", "_nz_inds", "_nz_vals", "_max_value", "_total_order")

    def __init__(self, values=None, fill: int = 0):
        self._nz_inds: list[int] = []
        self._nz_vals: list[int] = []
        self._max_value = 0
        self._total_order = 0

        if values is None:
            self._length = 0

        elif np.ndim(values) == 0:
            length = _as_integer(values)
            fill = _as_integer(fill)
            if length < 0:
                raise ValueError(f"Length of a multi-index must be >= 0, got {length}")
            if fill < 0:
                raise ValueError(f"Multi-index entries must be nonnegative, got {fill}")

            self._length = length
            if fill != 0:
                self._nz_inds = list(range(length))
                self._nz_vals = [fill] * length
                self._max_value = fill if length > 0 else 0
                self._total_order = fill * length

        else:
            dense = [_as_integer(v) for v in np.asarray(values).ravel()]
            if any(v < 0 for v in dense):
                raise ValueError(f"Multi-index entries must be nonnegative, got {dense}")

            self._length = len(dense)
            for ind, val in enumerate(dense):
                if val != 0:
                    self._nz_inds.append(ind)
                    self._nz_vals.append(val)

            self._max_value = max(self._nz_vals, default=0)
            self._total_order = sum(self._nz_vals)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def length(self) -> int:
        """Number of components, i.e. the dimension of the polynomial."""
        return self._length

    def sum(self) -> int:
        """Total order of the multi-index (the l1 norm)."""
        return self._total_order

    def max(self) -> int:
        """Maximum degree of the multi-index (the l-infinity norm)."""
        return self._max_value

    def num_nz(self) -> int:
        """Number of nonzero entries."""
        return len(self._nz_inds)

    def get(self, ind: int) -> int:
        """
        Return the value of component ``ind``.

        This requires a linear scan over the nonzero entries.
        """
        self._check_index(ind)
        for nz_ind, nz_val in zip(self._nz_inds, self._nz_vals):
            if nz_ind == ind:
                return nz_val
        return 0

    def vector(self) -> list[int]:
        """Dense representation of the multi-index."""
        dense = [0] * self._length
        for ind, val in zip(self._nz_inds, self._nz_vals):
            dense[ind] = val
        return dense

    def nonzero_items(self) -> tuple[tuple[int, int], ...]:
        """Read-only (dimension, value) pairs of the nonzero entries."""
        return tuple(zip(self._nz_inds, self._nz_vals))

    def string(self) -> str:
        return "[" + ",".join(str(v) for v in self.vector()) + "]"

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def set(self, ind: int, val: int) -> bool:
        """
        Set the value of component ``ind``.

        Parameters
        ----------
        ind : int
            The component to set (starting with 0).
        val : int
            Nonnegative value for the component. Setting zero removes the entry
            from the sparse storage.

        Returns
        -------
        bool
            True if an already nonzero component was updated, False otherwise.
        """
        self._check_index(ind)
        val = _as_integer(val)
        if val < 0:
            raise ValueError(f"Multi-index entries must be nonnegative, got {val}")

        # Locate the entry; nz_inds is kept sorted
        pos = 0
        while pos < len(self._nz_inds) and self._nz_inds[pos] < ind:
            pos += 1
        existed = pos < len(self._nz_inds) and self._nz_inds[pos] == ind

        if existed:
            old_val = self._nz_vals[pos]

            if val == 0:
                del self._nz_inds[pos]
                del self._nz_vals[pos]
                self._total_order -= old_val
                self._max_value = max(self._nz_vals, default=0)
            else:
                self._nz_vals[pos] = val
                self._total_order += val - old_val
                if val >= self._max_value:
                    self._max_value = val
                elif old_val == self._max_value:
                    self._max_value = max(self._nz_vals)

        elif val != 0:
            self._nz_inds.insert(pos, ind)
            self._nz_vals.insert(pos, val)
            self._total_order += val
            self._max_value = max(self._max_value, val)

        return existed

    def copy(self) -> MultiIndex:
        other = MultiIndex()
        other._length = self._length
        other._nz_inds = list(self._nz_inds)
        other._nz_vals = list(self._nz_vals)
        other._max_value = self._max_value
        other._total_order = self._total_order
        return other

    def _check_index(self, ind: int):
        if ind < 0 or ind >= self._length:
            raise IndexError(
                f"Index {ind} is out of range for a multi-index of length "
                f"{self._length}."
            )

    # -------------------------------------------------------------------------
    # Ordering
    # -------------------------------------------------------------------------

    def __eq__(self, other) -> bool:
        if not isinstance(other, MultiIndex):
            return NotImplemented
        return self._length == other._length and sorted(
            self.nonzero_items()
        ) == sorted(other.nonzero_items())

    def __lt__(self, other: MultiIndex) -> bool:
        """
        Multi-indices are ordered by length, then total order, then maximum
        value, then lexicographically by their dense vectors.
        """
        if not isinstance(other, MultiIndex):
            return NotImplemented
        if self._length != other._length:
            return self._length < other._length
        if self._total_order != other._total_order:
            return self._total_order < other._total_order
        if self._max_value != other._max_value:
            return self._max_value < other._max_value
        return self.vector() < other.vector()

    def __ne__(self, other) -> bool:
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    def __gt__(self, other: MultiIndex) -> bool:
        if not isinstance(other, MultiIndex):
            return NotImplemented
        return other.__lt__(self)

    def __ge__(self, other: MultiIndex) -> bool:
        if not isinstance(other, MultiIndex):
            return NotImplemented
        return not self.__lt__(other)

    def __le__(self, other: MultiIndex) -> bool:
        if not isinstance(other, MultiIndex):
            return NotImplemented
        return not self.__gt__(other)

    def __hash__(self) -> int:
        return hash((self._length, self.nonzero_items()))

    def __len__(self) -> int:
        return self._length

    def __str__(self) -> str:
        return self.string()

    def __repr__(self) -> str:
        return f"MultiIndex({self.vector()})"


class MultiIndexSet:
    """
    Collection of multi-indices of a common length.

    The set stores each multi-index once. Factory methods return sets in the
    canonical order defined by the ``MultiIndex`` comparison operators, so the
    position of a term in the set can be used as its coefficient index.

    Parameters
    ----------
    length : int
        Length of every multi-index in the set.
    """

    def __init__(self, length: int):
        if length < 0:
            raise ValueError(f"Length of a multi-index set must be >= 0, got {length}")
        self.length = length
        self._indices: list[MultiIndex] = []
        self._positions: dict[MultiIndex, int] = {}

    @classmethod
    def create_total_order(
        cls,
        length: int,
        max_order: int,
        limiter: Optional[Callable[[MultiIndex], bool]] = None,
    ) -> MultiIndexSet:
        """All multi-indices with total order <= max_order accepted by limiter."""
        candidates = (
            combo
            for combo in itertools.product(range(max_order + 1), repeat=length)
            if sum(combo) <= max_order
        )
        return cls._from_candidates(length, candidates, limiter)

    @classmethod
    def create_tensor_product(
        cls,
        length: int,
        max_order: int,
        limiter: Optional[Callable[[MultiIndex], bool]] = None,
    ) -> MultiIndexSet:
        """All multi-indices with max value <= max_order accepted by limiter."""
        candidates = itertools.product(range(max_order + 1), repeat=length)
        return cls._from_candidates(length, candidates, limiter)

    @classmethod
    def _from_candidates(cls, length, candidates: Iterable, limiter):
        mset = cls(length)
        for combo in candidates:
            multi = MultiIndex(list(combo))
            if limiter is None or limiter(multi):
                mset.add(multi)
        mset.sort()
        return mset

    def add(self, multi: MultiIndex) -> int:
        """
        Add a multi-index and return its position. Duplicates are not stored
        twice; the position of the existing entry is returned instead.
        """
        if multi.length != self.length:
            raise ValueError(
                f"Cannot add a multi-index of length {multi.length} to a set "
                f"of length {self.length}."
            )
        if multi in self._positions:
            return self._positions[multi]

        self._indices.append(multi.copy())
        self._positions[self._indices[-1]] = len(self._indices) - 1
        return len(self._indices) - 1

    def sort(self):
        """Put the entries into canonical order."""
        self._indices.sort()
        self._positions = {multi: pos for pos, multi in enumerate(self._indices)}

    def index(self, multi: MultiIndex) -> int:
        return self._positions[multi]

    def to_array(self) -> np.ndarray:
        """Dense (num_terms, length) integer array of all multi-indices."""
        dense = np.zeros((len(self._indices), self.length), dtype=int)
        for row, multi in enumerate(self._indices):
            for ind, val in multi.nonzero_items():
                dense[row, ind] = val
        return dense

    def max_orders(self) -> np.ndarray:
        """Maximum degree in each dimension over all entries."""
        if len(self._indices) == 0:
            return np.zeros(self.length, dtype=int)
        return np.max(self.to_array(), axis=0)

    def __len__(self) -> int:
        return len(self._indices)

    def __getitem__(self, pos: int) -> MultiIndex:
        return self._indices[pos].copy()

    def __iter__(self) -> Iterator[MultiIndex]:
        return (multi.copy() for multi in self._indices)

    def __contains__(self, multi) -> bool:
        return multi in self._positions

    def __repr__(self) -> str:
        return f"MultiIndexSet(length={self.length}, size={len(self)})"
