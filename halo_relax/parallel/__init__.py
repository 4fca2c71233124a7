from .exchange import EXCHANGE_TAG, ExchangeChannel, ExchangeError
from .mpi_context import Conditional, SingleProcess, do_once
from .process_topology import ALL_DIRECTIONS, Direction, ProcessTopology, TopologyError

__all__ = [
    "ALL_DIRECTIONS",
    "Conditional",
    "Direction",
    "EXCHANGE_TAG",
    "ExchangeChannel",
    "ExchangeError",
    "ProcessTopology",
    "SingleProcess",
    "TopologyError",
    "do_once",
]
