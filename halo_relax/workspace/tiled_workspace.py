from enum import Enum
from typing import Dict, Optional, Tuple, Union

import numpy
from numpy.typing import NDArray

from ..common.rank_logger import RankLoggerAdapter
from ..parallel.exchange import ExchangeChannel
from ..parallel.process_topology import Direction, ProcessTopology

__all__ = ["CornerAccessError", "TiledWorkspace", "WorkspaceState"]

# Position of each edge within an N x N tile buffer, indexed [x - 1, y - 1]
_EDGE_SLICES: Dict[Direction, Tuple[Union[int, slice], Union[int, slice]]] = {
    Direction.UP: (slice(None), -1),  # y = N
    Direction.DOWN: (slice(None), 0),  # y = 1
    Direction.LEFT: (0, slice(None)),  # x = 1
    Direction.RIGHT: (-1, slice(None)),  # x = N
}


class CornerAccessError(IndexError):
    """Both coordinates are outside the tile. The 4-point stencil never needs corner values."""


class WorkspaceState(Enum):
    IDLE = 0
    EXCHANGE_PENDING = 1


class TiledWorkspace:
    """Local tile of the global field, seen as a window into that field.

    Interior points have coordinates ``1 <= x, y <= N``, with `x` growing towards the RIGHT neighbor and `y` towards
    the UP neighbor. Coordinates `0` and `N + 1` (on a single axis) are *virtual*: they designate the first
    line of the adjacent tile, as received during the last exchange, or the boundary value when there is no tile in
    that direction.

    There are two tile buffers. :meth:`write` goes to the *front* buffer (next iteration), :meth:`read` comes from
    the *back* buffer (current iteration). :meth:`synchronize` exchanges the edges of the front buffer with the
    neighbors, then swaps the two buffers, so that what was written becomes readable.

    For each direction with a neighbor there is one *inner edge* buffer (copy of our edge, sent) and one *outer edge*
    buffer (edge of the neighbor, received). They exist if and only if that neighbor exists.
    """

    inner_edges: Dict[Direction, NDArray]
    outer_edges: Dict[Direction, NDArray]

    def __init__(
        self,
        tile_edge_length: int,
        boundary_value: float,
        topology: ProcessTopology,
        channel: ExchangeChannel,
        logger: Optional[RankLoggerAdapter] = None,
    ):
        if tile_edge_length < 1:
            raise ValueError(f"Tile edge length must be positive (got {tile_edge_length})")
        if channel.edge_length != tile_edge_length:
            raise ValueError(
                f"Exchange channel transmits lines of {channel.edge_length} values, "
                f"but the tile edge has {tile_edge_length}"
            )

        self._edge_length = tile_edge_length
        self.boundary_value = float(boundary_value)
        self.topology = topology
        self.channel = channel
        self.logger = topology.logger if logger is None else logger

        shape = (tile_edge_length, tile_edge_length)
        self._front = numpy.zeros(shape, dtype=numpy.float64)
        self._back = numpy.zeros(shape, dtype=numpy.float64)

        self.inner_edges = {d: numpy.zeros(tile_edge_length) for d in topology.existing_directions}
        self.outer_edges = {d: numpy.zeros(tile_edge_length) for d in topology.existing_directions}

        self.state = WorkspaceState.IDLE
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *_):
        self.close()

    def close(self) -> None:
        """Release the buffers. Not allowed while an exchange is in progress, since MPI may still be using them."""
        if self.state is WorkspaceState.EXCHANGE_PENDING:
            raise RuntimeError("Cannot release the workspace while an exchange is pending")
        self._front = None
        self._back = None
        self.inner_edges = {}
        self.outer_edges = {}
        self.closed = True

    @property
    def tile_edge_length(self) -> int:
        return self._edge_length

    def _check_usable(self):
        if self.closed:
            raise RuntimeError("This workspace has been closed")

    def _is_interior(self, c: int) -> bool:
        return 1 <= c <= self._edge_length

    def write(self, x: int, y: int, value: float) -> None:
        """Store a value for the next iteration. Only interior coordinates can be written."""
        self._check_usable()
        if not (self._is_interior(x) and self._is_interior(y)):
            raise IndexError(f"Can only write inside the tile (1..{self._edge_length}), not at ({x}, {y})")
        if self.state is not WorkspaceState.IDLE:
            raise RuntimeError("Cannot write into the workspace while an exchange is pending")
        self._front[x - 1, y - 1] = value

    def read(self, x: int, y: int) -> float:
        """Value of the current iteration at the given coordinates, which can be interior or virtual (exactly one
        step outside the tile, on one axis only).

        :raise CornerAccessError: If both coordinates are virtual
        :raise IndexError: If a coordinate is further than one step outside the tile
        """
        self._check_usable()
        n = self._edge_length
        x_inside = self._is_interior(x)
        y_inside = self._is_interior(y)

        if x_inside and y_inside:
            return float(self._back[x - 1, y - 1])

        if not (0 <= x <= n + 1 and 0 <= y <= n + 1):
            raise IndexError(f"Coordinates ({x}, {y}) are outside of the tile and its halo (0..{n + 1})")

        if not (x_inside or y_inside):
            raise CornerAccessError(f"Corner access at ({x}, {y})")

        if y_inside:
            return self._virtual_value(Direction.LEFT if x == 0 else Direction.RIGHT, y)
        return self._virtual_value(Direction.DOWN if y == 0 else Direction.UP, x)

    def _virtual_value(self, direction: Direction, index: int) -> float:
        edge = self.outer_edges.get(direction)
        if edge is None:
            return self.boundary_value
        return float(edge[index - 1])

    def _halo_line(self, direction: Direction) -> NDArray:
        edge = self.outer_edges.get(direction)
        if edge is None:
            return numpy.full(self._edge_length, self.boundary_value)
        return edge

    def with_halo(self) -> NDArray:
        """Copy of the current iteration, surrounded by the virtual values of every side. Element [x, y] of the result
        is what ``read(x, y)`` would return. Corners are NaN."""
        self._check_usable()
        n = self._edge_length
        padded = numpy.full((n + 2, n + 2), numpy.nan)
        padded[1:-1, 1:-1] = self._back
        padded[0, 1:-1] = self._halo_line(Direction.LEFT)
        padded[-1, 1:-1] = self._halo_line(Direction.RIGHT)
        padded[1:-1, 0] = self._halo_line(Direction.DOWN)
        padded[1:-1, -1] = self._halo_line(Direction.UP)
        return padded

    def interior(self) -> NDArray:
        """Copy of the current iteration (interior points only)."""
        self._check_usable()
        return self._back.copy()

    def write_interior(self, values: NDArray) -> None:
        """Store a whole tile for the next iteration."""
        self._check_usable()
        if values.shape != self._front.shape:
            raise ValueError(f"Expected a {self._front.shape} array, got {values.shape}")
        if self.state is not WorkspaceState.IDLE:
            raise RuntimeError("Cannot write into the workspace while an exchange is pending")
        numpy.copyto(self._front, values)

    def _snapshot_edge(self, direction: Direction, destination: NDArray) -> None:
        numpy.copyto(destination, self._front[_EDGE_SLICES[direction]])

    def begin_synchronize(self) -> None:
        """Copy the edges of the front buffer and start exchanging them with the neighbors.

        If starting one of the exchanges fails, the workspace stays pending: the exchanges already started may
        still use the edge buffers.
        """
        self._check_usable()
        if self.state is not WorkspaceState.IDLE:
            raise RuntimeError("An exchange is already pending on this workspace")

        for direction, buffer in self.inner_edges.items():
            self._snapshot_edge(direction, buffer)

        self.channel.reset()
        self.state = WorkspaceState.EXCHANGE_PENDING
        for direction in self.topology.existing_directions:
            self.channel.enqueue(
                self.topology.neighbor(direction), self.inner_edges[direction], self.outer_edges[direction]
            )

    def end_synchronize(self) -> None:
        """Wait for the exchange started by :meth:`begin_synchronize`, then make the front buffer readable."""
        if self.state is not WorkspaceState.EXCHANGE_PENDING:
            raise RuntimeError("No exchange was started on this workspace")

        self.channel.drain_all()

        self._front, self._back = self._back, self._front
        self.state = WorkspaceState.IDLE

    def synchronize(self) -> None:
        """Perform a full exchange with the neighbors and swap the buffers. Blocks until every neighbor has
        exchanged."""
        self.begin_synchronize()
        self.end_synchronize()
