"""
Tensor shape value type.

A `Shape` describes the per-sample extents of a tensor together with a batch
multiplicity (mini-batch size). Trailing axes of extent 1 are never stored:
any axis beyond the stored depth is implicitly 1, so `Shape([3, 1])` and
`Shape([3])` are the same shape.

Examples
--------
    Shape()          # scalar, batch size 1
    Shape([])        # same as above
    Shape([n])       # column vector
    Shape([n, m])    # matrix
    Shape([n], k)    # k samples of a vector (mini-batch)

Broadcast rule
--------------
Two shapes are batch-compatible when their batch sizes are equal or either
of them is 1. A batch size of 1 stands for "repeat across the batch".

Notes
-----
Shapes handed to a graph node are never modified. `resize_dim` and
`resize_batch` derive new shapes; `update_dim` and `update_batch` mutate in
place and are reserved for owners that exclusively control the shape (e.g.,
standalone parameters).
"""

from __future__ import annotations

from typing import Iterable, Tuple


class Shape:
    """
    Per-sample extents plus batch size.

    Parameters
    ----------
    dims : Iterable[int], optional
        Extent of each axis. Trailing extents of 1 are stripped. Defaults to
        an empty sequence (a scalar).
    batch_size : int, optional
        Batch multiplicity. Must be >= 1. Defaults to 1.

    Raises
    ------
    ValueError
        If `batch_size` is less than 1.
    """

    __slots__ = ("_dims", "_k", "_num_elms_per_sample")

    def __init__(self, dims: Iterable[int] = (), batch_size: int = 1) -> None:
        self._dims = [int(d) for d in dims]
        self._k = int(batch_size)
        self._num_elms_per_sample = 1
        self._adjust()

    def _adjust(self) -> None:
        """Strip trailing unit extents and refresh the cached element count."""
        if self._k < 1:
            raise ValueError(f"Batch size must be >= 1, got {self._k}")
        while self._dims and self._dims[-1] == 1:
            self._dims.pop()
        n = 1
        for d in self._dims:
            n *= d
        self._num_elms_per_sample = n

    def __getitem__(self, i: int) -> int:
        """
        Return the extent of axis `i` (1 beyond the stored depth).

        Raises
        ------
        ValueError
            If `i` is negative.
        """
        i = int(i)
        if i < 0:
            raise ValueError(f"Axis must be >= 0, got {i}")
        return self._dims[i] if i < len(self._dims) else 1

    def depth(self) -> int:
        """Return the number of stored (non-trailing-unit) axes."""
        return len(self._dims)

    def dims(self) -> Tuple[int, ...]:
        """Return the stored extents."""
        return tuple(self._dims)

    def batch_size(self) -> int:
        """Return the batch multiplicity."""
        return self._k

    def num_elements_per_sample(self) -> int:
        """
        Return the number of elements in one sample.

        Returns
        -------
        int
            Product of all stored extents (1 for a scalar).
        """
        return self._num_elms_per_sample

    def num_elements_under_rank(self, rank: int) -> int:
        """
        Return the number of elements spanned by the first `rank` axes.

        Parameters
        ----------
        rank : int
            Upper bound (exclusive) of the axes to multiply.

        Returns
        -------
        int
            ``self[0] * self[1] * ... * self[rank - 1]``.
        """
        n = 1
        for d in self._dims[: max(0, int(rank))]:
            n *= d
        return n

    def num_total_elements(self) -> int:
        """Return ``batch_size() * num_elements_per_sample()``."""
        return self._k * self._num_elms_per_sample

    def to_string(self) -> str:
        """
        Render the shape for diagnostics.

        Returns
        -------
        str
            ``"[n,m,...]xk"``.
        """
        return "[" + ",".join(str(d) for d in self._dims) + f"]x{self._k}"

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"Shape({list(self._dims)}, batch_size={self._k})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Shape):
            return NotImplemented
        return self.has_same_dims(other) and self._k == other._k

    # Shapes may be updated in place by their owner.
    __hash__ = None  # type: ignore[assignment]

    def has_compatible_batch(self, rhs: "Shape") -> bool:
        """
        Check whether two batch sizes can be broadcast against each other.

        Parameters
        ----------
        rhs : Shape
            Shape to compare with.

        Returns
        -------
        bool
            True if the batch sizes are equal or either of them is 1.
        """
        return self._k == rhs._k or self._k == 1 or rhs._k == 1

    def has_same_dims(self, rhs: "Shape") -> bool:
        """Check whether both shapes store identical extents."""
        return self._dims == rhs._dims

    def has_same_loo_dims(self, rhs: "Shape", dim: int) -> bool:
        """
        Check whether both shapes match on every axis except `dim`.

        This "leave-one-out" comparison is used by operations that vary a
        single axis (concatenation, slicing) while requiring all other axes
        to agree.

        Parameters
        ----------
        rhs : Shape
            Shape to compare with.
        dim : int
            Axis to ignore.

        Returns
        -------
        bool
            True if ``self[i] == rhs[i]`` for every ``i != dim``.
        """
        nmax = max(len(self._dims), len(rhs._dims))
        return all(self[i] == rhs[i] for i in range(nmax) if i != dim)

    def resize_dim(self, dim: int, m: int) -> "Shape":
        """
        Derive a new shape with axis `dim` resized to `m`.

        The source shape is left untouched.
        """
        ret = Shape(self._dims, self._k)
        ret.update_dim(dim, m)
        return ret

    def resize_batch(self, k: int) -> "Shape":
        """
        Derive a new shape with batch size `k`.

        Raises
        ------
        ValueError
            If `k` is less than 1.
        """
        ret = Shape(self._dims, self._k)
        ret.update_batch(k)
        return ret

    def update_dim(self, dim: int, m: int) -> None:
        """Resize axis `dim` to `m` in place."""
        dim = int(dim)
        if dim < 0:
            raise ValueError(f"Axis must be >= 0, got {dim}")
        if dim >= len(self._dims):
            self._dims.extend([1] * (dim + 1 - len(self._dims)))
        self._dims[dim] = int(m)
        self._adjust()

    def update_batch(self, k: int) -> None:
        """Set the batch size to `k` in place."""
        if int(k) < 1:
            raise ValueError(f"Batch size must be >= 1, got {k}")
        self._k = int(k)
        self._adjust()
