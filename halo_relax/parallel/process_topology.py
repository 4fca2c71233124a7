from enum import IntEnum
import math
from typing import Dict, Optional, Tuple

from mpi4py import MPI

from ..common.rank_logger import RankLoggerAdapter, make_rank_logger

__all__ = ["ALL_DIRECTIONS", "Direction", "ProcessTopology", "TopologyError"]


class Direction(IntEnum):
    """The 4 sides of a tile. Values can be used to index fixed-size per-direction containers."""

    UP = 0
    DOWN = 1
    LEFT = 2
    RIGHT = 3

    @property
    def opposite(self) -> "Direction":
        return _OPPOSITES[self]


_OPPOSITES = {
    Direction.UP: Direction.DOWN,
    Direction.DOWN: Direction.UP,
    Direction.LEFT: Direction.RIGHT,
    Direction.RIGHT: Direction.LEFT,
}

ALL_DIRECTIONS = (Direction.UP, Direction.DOWN, Direction.LEFT, Direction.RIGHT)


class TopologyError(ValueError):
    """The number of processes cannot be arranged into a square grid."""


class ProcessTopology:
    """Describes a square grid of processes, where each process (tile) is linked to its (up to) 4 neighbors.

    Ranks are numbered row by row, starting at the top left corner. Row 0 is the top of the domain, so the UP
    neighbor of a tile has a *lower* rank. With 9 processes:

    .. code-block::

         +---+---+---+
         | 0 | 1 | 2 |      UP
         |---+---+---|       ^
         | 3 | 4 | 5 |       |
         |---+---+---|  LEFT-+-> RIGHT
         | 6 | 7 | 8 |       |
         +---+---+---+      DOWN

    A tile on the edge of the grid has no neighbor on that side (`None`): the corresponding side of the tile lies
    on the boundary of the global domain.
    """

    neighbors: Dict[Direction, Optional[int]]

    def __init__(
        self,
        comm: MPI.Comm = MPI.COMM_WORLD,
        rank: Optional[int] = None,
        size: Optional[int] = None,
        logger: Optional[RankLoggerAdapter] = None,
    ):
        """Compute the position of a tile in the process grid, and the ranks of its neighbors.

        :param comm: MPI communicator that groups all tiles. Exchanges with neighbors go through it.
        :param rank: Rank of the tile the topology will describe. Defaults to the rank of this process in `comm`.
            This is useful for describing a tile other than our own, for debugging purposes.
        :param size: Total number of tiles. Defaults to the size of `comm`.
        :param logger: Logging handle of this process. One is created from `comm` if not given.

        :raise TopologyError: If the number of processes is not a perfect square.
        """
        self.comm = comm
        self.size = comm.Get_size() if size is None else size
        self.rank = comm.Get_rank() if rank is None else rank
        self.logger = make_rank_logger(comm, self.rank) if logger is None else logger

        if self.size < 1:
            raise TopologyError(f"Need at least one process (got {self.size})")

        self.side_length = math.isqrt(self.size)
        if self.side_length**2 != self.size:
            allowed_low = self.side_length**2
            allowed_high = (self.side_length + 1) ** 2
            raise TopologyError(
                f"Number of processes must be a perfect square (got {self.size}). "
                f"Closest allowed processor counts are {allowed_low} and {allowed_high}"
            )

        if not 0 <= self.rank < self.size:
            raise ValueError(f"Rank {self.rank} is outside of the process grid (size {self.size})")

        self.row, self.col = self.location_from_rank(self.rank)

        self.neighbors = {
            Direction.UP: self.rank_from_location(self.row - 1, self.col),
            Direction.DOWN: self.rank_from_location(self.row + 1, self.col),
            Direction.LEFT: self.rank_from_location(self.row, self.col - 1),
            Direction.RIGHT: self.rank_from_location(self.row, self.col + 1),
        }

        self.logger.info(
            f"Tile at ({self.row}, {self.col}) of a {self.side_length}x{self.side_length} grid. Neighbors: "
            + ", ".join(f"{d.name}: {self._neighbor_str(d)}" for d in ALL_DIRECTIONS)
        )

    def _neighbor_str(self, direction: Direction) -> str:
        n = self.neighbors[direction]
        return "none" if n is None else str(n)

    def location_from_rank(self, rank: int) -> Tuple[int, int]:
        """(row, column) of the given rank in the process grid."""
        return divmod(rank, self.side_length)

    def rank_from_location(self, row: int, col: int) -> Optional[int]:
        """Rank of the tile at the given position, or None if that position lies outside the grid."""
        if not (0 <= row < self.side_length and 0 <= col < self.side_length):
            return None
        return row * self.side_length + col

    def neighbor(self, direction: Direction) -> Optional[int]:
        return self.neighbors[direction]

    def has_neighbor(self, direction: Direction) -> bool:
        return self.neighbors[direction] is not None

    @property
    def existing_directions(self) -> Tuple[Direction, ...]:
        """Directions in which this tile has a neighbor, in a fixed order."""
        return tuple(d for d in ALL_DIRECTIONS if self.neighbors[d] is not None)
