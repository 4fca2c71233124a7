from typing import List, Optional

from mpi4py import MPI
import numpy
from numpy.typing import NDArray

from ..parallel.process_topology import ProcessTopology

__all__ = ["assemble_tiles", "plot_field"]


def assemble_tiles(tiles: List[NDArray], topology: ProcessTopology) -> NDArray:
    """Put the interior of every tile (indexed by rank) at its place in the global field. The result is indexed
    [global x, global y], with y growing upwards (row 0 of the process grid is at the top)."""
    n = tiles[0].shape[0]
    side = topology.side_length
    field = numpy.empty((side * n, side * n), dtype=tiles[0].dtype)
    for rank, tile in enumerate(tiles):
        row, col = topology.location_from_rank(rank)
        x_start = col * n
        y_start = (side - 1 - row) * n
        field[x_start : x_start + n, y_start : y_start + n] = tile
    return field


def plot_field(
    tile: NDArray, topology: ProcessTopology, filename: str, comm: MPI.Comm = MPI.COMM_WORLD
) -> Optional[NDArray]:
    """Gather the tiles of every process and draw the global field in the given image file (from the root process).

    :return: The global field on the root process, None elsewhere
    """
    all_tiles = comm.gather(tile, root=0)

    field = None
    if comm.rank == 0:
        import matplotlib

        matplotlib.use("Agg")
        import matplotlib.pyplot as plt

        field = assemble_tiles(all_tiles, topology)

        fig, ax = plt.subplots()
        im = ax.imshow(field.T, origin="lower", extent=(0.0, 1.0, 0.0, 1.0), interpolation="nearest")
        fig.colorbar(im, ax=ax)
        ax.set_xlabel("x")
        ax.set_ylabel("y")
        fig.tight_layout()
        fig.savefig(filename)
        plt.close(fig)

    comm.Barrier()
    return field
