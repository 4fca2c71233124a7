"""In-process replacement for :class:`ExchangeChannel`, so that several tiles of a process grid can live in a single
test process. Messages are copied at enqueue time and delivered when the receiving side drains."""

from typing import Dict, List, Tuple

from mpi4py import MPI
from numpy.typing import NDArray

from halo_relax.common import make_rank_logger
from halo_relax.parallel import ExchangeError, ProcessTopology
from halo_relax.workspace import TiledWorkspace


class LoopbackNetwork:
    """Mailboxes shared by every channel of a simulated process grid, keyed by (source, destination)."""

    def __init__(self):
        self.mailboxes: Dict[Tuple[int, int], NDArray] = {}

    def post(self, source: int, destination: int, data: NDArray) -> None:
        key = (source, destination)
        if key in self.mailboxes:
            raise ExchangeError(f"Process {source} already has an undelivered message for {destination}")
        self.mailboxes[key] = data.copy()

    def collect(self, source: int, destination: int) -> NDArray:
        try:
            return self.mailboxes.pop((source, destination))
        except KeyError as e:
            raise ExchangeError(f"No message from {source} to {destination}: it has not enqueued yet") from e

    def channel(self, rank: int, edge_length: int) -> "LoopbackChannel":
        return LoopbackChannel(self, rank, edge_length)


class LoopbackChannel:
    """Same interface as :class:`ExchangeChannel`. Draining only works once every neighbor has enqueued."""

    MAX_EXCHANGES = 4

    def __init__(self, network: LoopbackNetwork, rank: int, edge_length: int):
        self.network = network
        self.rank = rank
        self.edge_length = edge_length
        self.receives: List[Tuple[int, NDArray]] = []
        self.history: List[int] = []

    @property
    def num_pending(self) -> int:
        return 2 * len(self.receives)

    def reset(self) -> None:
        if self.receives:
            raise ExchangeError("Cannot reset the channel while requests are pending")

    def enqueue(self, target_rank: int, send_buffer: NDArray, recv_buffer: NDArray) -> None:
        if len(self.receives) >= self.MAX_EXCHANGES:
            raise ValueError(f"At most {self.MAX_EXCHANGES} exchanges can be enqueued before a reset")
        self.network.post(self.rank, target_rank, send_buffer)
        self.receives.append((target_rank, recv_buffer))
        self.history.append(target_rank)

    def drain_all(self) -> None:
        for source, buffer in self.receives:
            buffer[:] = self.network.collect(source, self.rank)
        self.receives = []


def make_topologies(size: int) -> List[ProcessTopology]:
    """One topology per tile of a grid of `size` processes, all described from this process."""
    return [
        ProcessTopology(MPI.COMM_SELF, rank=r, size=size, logger=make_rank_logger(MPI.COMM_SELF, r))
        for r in range(size)
    ]


def make_workspaces(size: int, edge_length: int, boundary_value: float) -> List[TiledWorkspace]:
    network = LoopbackNetwork()
    return [
        TiledWorkspace(edge_length, boundary_value, topo, network.channel(topo.rank, edge_length))
        for topo in make_topologies(size)
    ]


def synchronize_all(workspaces: List[TiledWorkspace]) -> None:
    """Exchange the edges of every tile, then swap all buffers."""
    for w in workspaces:
        w.begin_synchronize()
    for w in workspaces:
        w.end_synchronize()
