from typing import Dict, Optional, Tuple

from mpi4py import MPI
import numpy
from numpy.typing import NDArray

from ..common.configuration import Configuration
from ..common.rank_logger import RankLoggerAdapter, make_rank_logger
from ..common.timer import Timer
from ..output.graphx import plot_field
from ..output.output_manager import OutputManager
from ..parallel.exchange import ExchangeChannel
from ..parallel.process_topology import ProcessTopology
from ..workspace.tiled_workspace import TiledWorkspace
from .relaxation import initial_field, relax_field


class Simulation:
    """Encapsulate the structures needed to run a distributed relaxation.

    The global domain is the unit square. Its interior is discretized with ``M = side_length * N`` points along each
    axis (spacing ``h = 1 / (M + 1)``), and each process owns one N x N tile of it. Once the object is created, it
    can be used to step through the problem one iteration at a time, or to run it entirely.
    """

    config: Configuration
    output: Optional[OutputManager]

    def __init__(
        self,
        config: Configuration,
        comm: MPI.Comm = MPI.COMM_WORLD,
        topology: Optional[ProcessTopology] = None,
        channel: Optional[ExchangeChannel] = None,
        logger: Optional[RankLoggerAdapter] = None,
    ) -> None:
        """Create a Simulation from a certain configuration.

        :param topology: Process grid to use. By default, built from `comm`
        :param channel: Exchange mechanism between neighbors. By default, an :class:`ExchangeChannel` over `comm`
        """
        self.config = config
        self.comm = comm
        self.logger = make_rank_logger(comm) if logger is None else logger

        self.topology = ProcessTopology(comm, logger=self.logger) if topology is None else topology
        self.rank = self.topology.rank
        self.num_points = config.tile_edge_length

        if channel is None:
            channel = ExchangeChannel(comm, self.num_points, logger=self.logger)
        self.workspace = TiledWorkspace(self.num_points, config.boundary_value, self.topology, channel, self.logger)

        self.output = OutputManager(config, self.topology, comm, self.logger) if config.output_enabled else None

        self.x_coords, self.y_coords = self.global_coordinates()
        self.step_id = 0
        self.started = False
        self.step_timer = Timer()

    def global_coordinates(self) -> Tuple[NDArray, NDArray]:
        """Physical coordinates of the interior points of this tile, along x and along y."""
        n = self.num_points
        side = self.topology.side_length
        spacing = 1.0 / (side * n + 1)
        local = numpy.arange(1, n + 1)
        x_indices = self.topology.col * n + local
        y_indices = (side - 1 - self.topology.row) * n + local
        return x_indices * spacing, y_indices * spacing

    def seed(self) -> None:
        """Write the initial condition into the next-iteration buffer."""
        x, y = numpy.meshgrid(self.x_coords, self.y_coords, indexing="ij")
        self.workspace.write_interior(initial_field(x, y))

    def start(self) -> None:
        """Seed the tile and make the initial condition readable (including the halo)."""
        self.seed()
        self.workspace.synchronize()
        self.started = True

    def relax_tile(self) -> None:
        """Compute the next iteration of the tile, from the current one and its halo."""
        self.workspace.write_interior(relax_field(self.workspace.with_halo()))

    def step(self) -> None:
        self.relax_tile()
        self.workspace.synchronize()
        self.step_id += 1

    def run(self) -> Dict[str, float]:
        """Perform every iteration, with periodic dumps if enabled.

        :return: Global statistics of the final field
        """
        if not self.started:
            self.start()

        num_iterations = self.config.num_iterations
        if self.output is not None and self.output.should_dump(self.step_id):
            self.output.dump(self.workspace, self.step_id, self.x_coords, self.y_coords)

        for i in range(num_iterations):
            self.step_timer.start()
            self.step()
            self.step_timer.stop()

            if self.output is not None and self.output.should_dump(self.step_id, is_last=(i == num_iterations - 1)):
                self.output.dump(self.workspace, self.step_id, self.x_coords, self.y_coords)

        total_time = self.comm.reduce(self.step_timer.total_time(), op=MPI.MAX, root=0)
        stats = self.field_stats()

        if self.comm.rank == 0:
            self.logger.info(
                f"Ran {num_iterations} iteration{'s' if num_iterations > 1 else ''} in {total_time:.3f} s "
                f"(average step {self.step_timer.average_time() * 1e3:.3f} ms on this process)"
            )
            self.logger.info(
                f"Field after step {self.step_id}: min {stats['min']:.6e}  max {stats['max']:.6e}  "
                f"mean {stats['mean']:.6e}"
            )

        if self.config.plot_file != "":
            plot_field(self.workspace.interior(), self.topology, self.config.plot_file, self.comm)

        return stats

    def field_stats(self) -> Dict[str, float]:
        """Minimum, maximum and mean of the current iteration over every tile."""
        tile = self.workspace.interior()
        global_min = self.comm.allreduce(float(tile.min()), op=MPI.MIN)
        global_max = self.comm.allreduce(float(tile.max()), op=MPI.MAX)
        global_sum = self.comm.allreduce(float(tile.sum()), op=MPI.SUM)
        global_count = self.comm.allreduce(tile.size, op=MPI.SUM)
        return {"min": global_min, "max": global_max, "mean": global_sum / global_count}
