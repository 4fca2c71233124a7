import os
from typing import List, Optional

from mpi4py import MPI

from ..common.configuration import Configuration
from ..common.rank_logger import RankLoggerAdapter
from ..parallel.mpi_context import SingleProcess, Conditional
from ..parallel.process_topology import ProcessTopology
from ..workspace.tiled_workspace import TiledWorkspace

__all__ = ["OutputManager", "sample_indices"]


def sample_indices(edge_length: int, density: int) -> List[int]:
    """Interior indices (1-based) at which a tile is sampled: about `density` of them, always including the last
    one."""
    stride = max(1, edge_length // density)
    indices = list(range(1, edge_length + 1, stride))
    if indices[-1] != edge_length:
        indices.append(edge_length)
    return indices


class OutputManager:
    """Periodically dump the local tile of each process to a text file.

    Each file contains one ``x y t value`` line per sampled point, with a blank line between columns of
    constant x, so that it can be plotted directly as a surface. Only :meth:`TiledWorkspace.read` and
    :attr:`TiledWorkspace.tile_edge_length` are used, so dumping must happen between iterations.
    """

    def __init__(
        self,
        config: Configuration,
        topology: ProcessTopology,
        comm: MPI.Comm = MPI.COMM_WORLD,
        logger: Optional[RankLoggerAdapter] = None,
    ):
        self.config = config
        self.topology = topology
        self.comm = comm
        self.logger = topology.logger if logger is None else logger

        self.output_freq = config.output_freq
        self.density = config.output_density
        self.prefix = config.output_prefix

        with SingleProcess(self.comm) as s, Conditional(s):
            output_dir = self.config.output_dir
            try:
                os.makedirs(os.path.abspath(output_dir), exist_ok=True)
            except PermissionError:
                new_name = "results"
                self.logger.warning(f"Unable to create directory {output_dir} for output. Will use './{new_name}'")
                output_dir = new_name
                os.makedirs(os.path.abspath(output_dir), exist_ok=True)

            s.return_value = output_dir

        self.output_dir = s.return_value

    def should_dump(self, step_id: int, is_last: bool = False) -> bool:
        return is_last or step_id % self.output_freq == 0

    def filename(self, step_id: int) -> str:
        return os.path.join(self.output_dir, f"{self.prefix}_{self.topology.rank:04d}_{step_id:08d}")

    def dump(self, workspace: TiledWorkspace, step_id: int, x_coords, y_coords) -> str:
        """Write the sampled current iteration of the given workspace.

        :param x_coords: Physical coordinate of each interior x index (0-based array of length N)
        :param y_coords: Physical coordinate of each interior y index
        :return: Name of the file that was written
        """
        indices = sample_indices(workspace.tile_edge_length, self.density)
        filename = self.filename(step_id)

        with open(filename, "w") as f:
            for i in indices:
                for j in indices:
                    f.write(f"{x_coords[i - 1]:.17g} {y_coords[j - 1]:.17g} {step_id} {workspace.read(i, j):.17g}\n")
                f.write("\n")

        self.logger.debug(f"Dumped step {step_id} to {filename}")
        return filename
