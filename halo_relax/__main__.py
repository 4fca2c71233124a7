#!/usr/bin/env python3

""" Distributed relaxation on a square grid of processes.

Run with e.g. ``mpirun -n 4 python -m halo_relax -n 40 -t 400 [config.ini]``
"""

import argparse
import cProfile
import os
import sys
import traceback

from mpi4py import MPI
import numpy

from .common import Configuration, ConfigurationSchema, configure_logging, default_schema_path, readfile
from .common import make_rank_logger
from .parallel import ExchangeError, TopologyError, do_once
from .simulation import Simulation


def make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Relax a 2-D field distributed over a square grid of processes")
    parser.add_argument("config", type=str, nargs="?", default=None, help="File that contains simulation parameters")
    parser.add_argument("-n", "--tile-edge-length", type=int, help="Size of the tile owned by each process")
    parser.add_argument("-t", "--num-iterations", type=int, help="Number of iterations to perform")
    parser.add_argument("-o", "--output", action="store_true", help="Periodically dump every tile to a file")
    parser.add_argument("--list-options", action="store_true", help="Print every available config option and exit")
    parser.add_argument("--profile", action="store_true", help="Produce an execution profile when running")
    parser.add_argument(
        "--show-every-crash", action="store_true", help="In case of an exception, show output from all processes"
    )
    return parser


def command_line_overrides(args: argparse.Namespace) -> dict:
    overrides = {}
    if args.tile_edge_length is not None:
        overrides["tile_edge_length"] = str(args.tile_edge_length)
    if args.num_iterations is not None:
        overrides["num_iterations"] = str(args.num_iterations)
    if args.output:
        overrides["output_enabled"] = "1"
    return overrides


def load_configuration(args: argparse.Namespace, comm: MPI.Comm) -> Configuration:
    """Read the schema and the config file with a single process, then build the configuration everywhere."""
    if args.config is not None and not do_once(os.path.exists, args.config, comm=comm):
        raise ValueError(f"Config file does not seem valid: {args.config}")

    schema = ConfigurationSchema(do_once(readfile, default_schema_path, comm=comm))
    content = "" if args.config is None else do_once(readfile, args.config, comm=comm)
    return Configuration(content, schema, command_line_overrides(args))


def main(argv=None) -> int:
    comm = MPI.COMM_WORLD
    rank = comm.rank
    logger = make_rank_logger(comm)
    args = make_parser().parse_args(argv)
    configure_logging()

    try:
        if args.list_options:
            if rank == 0:
                print(ConfigurationSchema(readfile(default_schema_path)))
            return 0

        config = load_configuration(args, comm)
        configure_logging(config.log_level)

        if rank == 0:
            logger.info(f"{config}")

        pr = None
        if args.profile:
            pr = cProfile.Profile()
            pr.enable()

        numpy.seterr(all="raise", under="ignore")
        Simulation(config, comm, logger=logger).run()

        if pr is not None:
            pr.disable()
            pr.dump_stats(f"prof_{rank:04d}.out")

    except TopologyError as e:
        # Raised on every process
        logger.error(f"{e}")
        return -1

    except ExchangeError:
        traceback.print_exc()
        logger.error("Communication with a neighbor failed, aborting the whole run")
        comm.Abort(-1)

    except Exception:
        sys.stdout.flush()
        if args.show_every_crash or rank == 0:
            traceback.print_exc()
        if not args.show_every_crash and rank == 0:
            logger.error("There was an error while running. Only rank 0 is printing the traceback.")
        return -1

    return 0


if __name__ == "__main__":
    sys.exit(main())
