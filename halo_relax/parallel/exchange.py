from typing import List, Optional

from mpi4py import MPI
import numpy
from numpy.typing import NDArray

from ..common.rank_logger import RankLoggerAdapter, make_rank_logger

__all__ = ["EXCHANGE_TAG", "ExchangeChannel", "ExchangeError"]

EXCHANGE_TAG = 1


class ExchangeError(RuntimeError):
    """A communication primitive failed. Not recoverable: the whole run must stop."""


class ExchangeChannel:
    """Reusable set of non-blocking boundary exchanges with neighboring processes.

    Each iteration goes through :meth:`reset`, then 0 to :attr:`MAX_EXCHANGES` calls to :meth:`enqueue`
    (one per neighbor), then :meth:`drain_all`. A message is a raw line of `edge_length` float64 values,
    without header.

    Every receive is bound to the rank it exchanges with. With `any_source`, receives are matched by arrival
    instead; this is only correct if the transport delivers at most one message per posted receive, in order.
    """

    MAX_EXCHANGES = 4

    requests: List[MPI.Request]

    def __init__(
        self,
        comm: MPI.Comm,
        edge_length: int,
        tag: int = EXCHANGE_TAG,
        any_source: bool = False,
        logger: Optional[RankLoggerAdapter] = None,
    ):
        if edge_length < 1:
            raise ValueError(f"Edge length must be positive (got {edge_length})")

        self.comm = comm
        self.edge_length = edge_length
        self.tag = tag
        self.any_source = any_source
        self.logger = make_rank_logger(comm) if logger is None else logger

        self.requests = []
        self._num_finished = 0

    @property
    def num_exchanges(self) -> int:
        return len(self.requests) // 2

    @property
    def num_pending(self) -> int:
        """Number of enqueued send/receive requests that have not been seen completed by :meth:`drain_all`."""
        return len(self.requests) - self._num_finished

    def reset(self) -> None:
        """Forget about all exchanges of the previous iteration.

        :raise ExchangeError: If some requests have not completed yet. Their buffers would still be in use.
        """
        if self.num_pending > 0:
            raise ExchangeError(f"Cannot reset the channel while {self.num_pending} request(s) are pending")
        self.requests = []
        self._num_finished = 0

    def _check_buffer(self, buffer: NDArray, name: str) -> None:
        if buffer.dtype != numpy.float64 or buffer.shape != (self.edge_length,) or not buffer.flags.c_contiguous:
            raise ValueError(
                f"{name} must be a contiguous float64 array of length {self.edge_length} "
                f"(got {buffer.dtype} array of shape {buffer.shape})"
            )

    def enqueue(self, target_rank: int, send_buffer: NDArray, recv_buffer: NDArray) -> None:
        """Start sending `send_buffer` to `target_rank` and receiving into `recv_buffer`. Neither buffer may be touched
        until :meth:`drain_all` returns.

        :raise ValueError: If the buffers have the wrong size or type, or if too many exchanges are enqueued
        :raise ExchangeError: If MPI fails to start the transfers
        """
        if self.num_exchanges >= self.MAX_EXCHANGES:
            raise ValueError(f"At most {self.MAX_EXCHANGES} exchanges can be enqueued before a reset")
        self._check_buffer(send_buffer, "Send buffer")
        self._check_buffer(recv_buffer, "Receive buffer")

        source = MPI.ANY_SOURCE if self.any_source else target_rank
        tag = MPI.ANY_TAG if self.any_source else self.tag

        try:
            send_request = self.comm.Isend([send_buffer, MPI.DOUBLE], dest=target_rank, tag=self.tag)
            recv_request = self.comm.Irecv([recv_buffer, MPI.DOUBLE], source=source, tag=tag)
        except MPI.Exception as e:
            raise ExchangeError(f"Unable to start exchange with process {target_rank}: {e.Get_error_string()}") from e

        self.requests.extend([send_request, recv_request])
        self.logger.debug(f"Enqueued exchange with {target_rank}")

    def drain_all(self) -> None:
        """Block until every send and receive enqueued since the last reset has completed. Requests may complete in
        any order.

        :raise ExchangeError: If MPI reports a failure while waiting
        """
        while self.num_pending > 0:
            try:
                finished = MPI.Request.Waitsome(self.requests)
            except MPI.Exception as e:
                raise ExchangeError(f"Boundary exchange failed: {e.Get_error_string()}") from e

            if finished is None:
                raise ExchangeError(f"{self.num_pending} request(s) were lost before completing")

            self._num_finished += len(finished)
