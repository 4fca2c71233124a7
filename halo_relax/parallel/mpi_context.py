"""Context managers for work that only one process of a communicator must do (reading a file, creating a
directory), with the result shared with everyone."""

from typing import Any, Callable

from mpi4py import MPI

__all__ = ["Conditional", "SingleProcess", "do_once"]


class _Skip(SystemExit):
    """Raised in the processes that are inactive in the associated SingleProcess context."""


class _SkippableFailure(Exception):
    """Broadcast in place of a result when the active process of a SingleProcess context has failed."""


class SingleProcess:
    """
    Use in combination with :class:`Conditional` to create a context where only one process of the communicator
    executes the body. That process can set :attr:`return_value`, which is broadcast to every other process when
    leaving the context. *Leaving this context is a synchronization point*.

    .. code-block:: python

        with SingleProcess(comm) as s, Conditional(s):
            s.return_value = readfile(config_file)

        content = s.return_value  # Available everywhere

    If the working process raises an exception, every process in the context raises one as well.
    """

    def __init__(self, comm: MPI.Comm = MPI.COMM_WORLD, root_rank: int = 0):
        self.comm = comm
        self.rank = self.comm.rank
        self.root_rank = root_rank
        self.return_value = None
        self.should_skip = self.rank != self.root_rank

    def __enter__(self):
        return self

    def __exit__(self, exception_type, *_):
        """Broadcast the result from the working process.

        :return: Whether to ignore the potential exception that was raised inside the context
        """
        is_ok = exception_type is None or self.should_skip
        transmit = self.return_value if is_ok else _SkippableFailure()
        self.return_value = self.comm.bcast(transmit, root=self.root_rank)

        if isinstance(self.return_value, _SkippableFailure):
            if self.should_skip:
                raise RuntimeError(f"Process {self.root_rank} failed inside a single-process context")
            return False

        return exception_type is None or issubclass(exception_type, _Skip)


class Conditional:
    """Skip the content of the context for everyone except the root of the associated :class:`SingleProcess`."""

    def __init__(self, context: SingleProcess):
        self.should_skip = context.should_skip

    def __enter__(self):
        if self.should_skip:
            raise _Skip

        return self

    def __exit__(self, *_):
        pass


def do_once(action: Callable, *args, comm: MPI.Comm = MPI.COMM_WORLD) -> Any:
    """Perform the given action with exactly one process in the communicator and return its result on every
    process."""
    with SingleProcess(comm) as s, Conditional(s):
        s.return_value = action(*args)

    return s.return_value
