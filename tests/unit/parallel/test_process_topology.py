import unittest

from mpi4py import MPI

from halo_relax.common import make_rank_logger
from halo_relax.parallel import ALL_DIRECTIONS, Direction, ProcessTopology, TopologyError

from tests.unit.mpi_test import MpiTestCase


def make_topology(rank: int, size: int) -> ProcessTopology:
    return ProcessTopology(MPI.COMM_SELF, rank=rank, size=size, logger=make_rank_logger(MPI.COMM_SELF, rank))


class ProcessTopologyTestCases(unittest.TestCase):
    def test_square_counts_map_onto_grid(self):
        for side in range(1, 6):
            size = side * side
            with self.subTest(size=size):
                topos = [make_topology(r, size) for r in range(size)]
                locations = {(t.row, t.col) for t in topos}
                self.assertEqual(len(locations), size)
                self.assertEqual(locations, {(r, c) for r in range(side) for c in range(side)})
                for t in topos:
                    self.assertEqual(t.side_length, side)
                    self.assertEqual(t.rank_from_location(t.row, t.col), t.rank)
                    self.assertEqual(t.location_from_rank(t.rank), (t.row, t.col))

    def test_non_square_counts_fail(self):
        for size in [2, 3, 5, 8, 10, 24]:
            with self.subTest(size=size):
                with self.assertRaises(TopologyError):
                    make_topology(0, size)

        # Closest allowed counts are part of the message
        with self.assertRaises(TopologyError) as cm:
            make_topology(0, 10)
        self.assertIn("9", str(cm.exception))
        self.assertIn("16", str(cm.exception))

        with self.assertRaises(ValueError):
            make_topology(0, 0)

    def test_rank_outside_grid(self):
        with self.assertRaises(ValueError):
            make_topology(4, 4)
        with self.assertRaises(ValueError):
            make_topology(-1, 4)

    def test_3x3_neighbors(self):
        topos = [make_topology(r, 9) for r in range(9)]

        corner = topos[0]
        self.assertEqual(corner.existing_directions, (Direction.DOWN, Direction.RIGHT))
        self.assertEqual(corner.neighbor(Direction.RIGHT), 1)
        self.assertEqual(corner.neighbor(Direction.DOWN), 3)
        self.assertIsNone(corner.neighbor(Direction.UP))
        self.assertIsNone(corner.neighbor(Direction.LEFT))

        center = topos[4]
        self.assertEqual(
            center.neighbors, {Direction.UP: 1, Direction.DOWN: 7, Direction.LEFT: 3, Direction.RIGHT: 5}
        )

        bottom_right = topos[8]
        self.assertEqual(bottom_right.neighbor(Direction.UP), 5)
        self.assertEqual(bottom_right.neighbor(Direction.LEFT), 7)
        self.assertFalse(bottom_right.has_neighbor(Direction.DOWN))
        self.assertFalse(bottom_right.has_neighbor(Direction.RIGHT))

        num_neighbors = [len(t.existing_directions) for t in topos]
        self.assertEqual(num_neighbors, [2, 3, 2, 3, 4, 3, 2, 3, 2])

    def test_neighbors_are_symmetric(self):
        size = 16
        topos = [make_topology(r, size) for r in range(size)]
        for t in topos:
            for d in t.existing_directions:
                other = topos[t.neighbor(d)]
                self.assertEqual(other.neighbor(d.opposite), t.rank)

    def test_single_process_has_no_neighbor(self):
        t = make_topology(0, 1)
        self.assertEqual(t.existing_directions, ())
        self.assertTrue(all(t.neighbor(d) is None for d in ALL_DIRECTIONS))

    def test_opposite(self):
        self.assertIs(Direction.UP.opposite, Direction.DOWN)
        self.assertIs(Direction.DOWN.opposite, Direction.UP)
        self.assertIs(Direction.LEFT.opposite, Direction.RIGHT)
        self.assertIs(Direction.RIGHT.opposite, Direction.LEFT)
        for d in ALL_DIRECTIONS:
            self.assertIs(d.opposite.opposite, d)

    def test_rank_from_location_outside(self):
        t = make_topology(0, 4)
        self.assertIsNone(t.rank_from_location(-1, 0))
        self.assertIsNone(t.rank_from_location(0, 2))
        self.assertEqual(t.rank_from_location(1, 1), 3)

    def test_logs_position(self):
        with self.assertLogs("halo_relax", level="INFO") as logs:
            make_topology(3, 4)
        self.assertEqual(len(logs.output), 1)
        self.assertIn("[3]", logs.output[0])
        self.assertIn("UP: 1", logs.output[0])
        self.assertIn("RIGHT: none", logs.output[0])


class ProcessTopologyMpiTest(MpiTestCase):
    def from_communicator(self):
        topo = ProcessTopology(self.comm)
        self.assertEqual(topo.rank, self.comm.rank)
        self.assertEqual(topo.size, self.comm.size)

        all_locations = self.comm.allgather((topo.row, topo.col))
        self.assertEqual(len(set(all_locations)), self.comm.size)

    def fail_not_square(self):
        with self.assertRaises(TopologyError):
            ProcessTopology(self.comm)
