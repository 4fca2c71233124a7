"""The numerical part of the problem: initial field and 4-point update formula."""

from numpy.typing import NDArray
import numpy

__all__ = ["initial_field", "relax_point", "relax_field"]


def initial_field(x: NDArray, y: NDArray) -> NDArray:
    """Initial field. Defined on the (0, 1) x (0, 1) square; it is 0 on the boundary of that square."""
    return numpy.sin(numpy.pi * x) * numpy.sin(numpy.pi * y)


def relax_point(left, down, right, up):
    """Works on scalars as well as on arrays of the same shape."""
    return 0.25 * (left + down + right + up)


def relax_field(padded: NDArray) -> NDArray:
    """Apply :func:`relax_point` to every interior point of a tile surrounded by a 1-point halo (corners unused)."""
    return relax_point(padded[:-2, 1:-1], padded[1:-1, :-2], padded[2:, 1:-1], padded[1:-1, 2:])
