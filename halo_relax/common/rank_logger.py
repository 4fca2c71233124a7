"""Per-process logging. Every message is tagged with the rank of the process that emits it, so that the interleaved
output of a multi-process run can be attributed."""

import logging
import sys
from typing import Optional

from mpi4py import MPI

__all__ = ["RankLoggerAdapter", "configure_logging", "make_rank_logger"]

LOGGER_NAME = "halo_relax"
LOG_FORMAT = "%(levelname)-7s %(message)s"


class RankLoggerAdapter(logging.LoggerAdapter):
    """Logger handle given to each component of one process. Prefixes messages with ``[rank]``."""

    def __init__(self, logger: logging.Logger, rank: int):
        super().__init__(logger, {"rank": rank})
        self.rank = rank

    def process(self, msg, kwargs):
        return f"[{self.rank}] {msg}", kwargs


def make_rank_logger(comm: MPI.Comm = MPI.COMM_WORLD, rank: Optional[int] = None) -> RankLoggerAdapter:
    """Create the logging handle for this process (or for the given rank, when simulating another process)."""
    return RankLoggerAdapter(logging.getLogger(LOGGER_NAME), comm.rank if rank is None else rank)


def configure_logging(level: str = "info") -> None:
    """Send the messages of this package to stderr, with the given minimum severity."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level.upper())
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
