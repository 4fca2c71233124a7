import os
import tempfile
import unittest

from mpi4py import MPI
import numpy

from halo_relax.common import Configuration, load_default_schema, make_rank_logger
from halo_relax.output import OutputManager, assemble_tiles, plot_field, sample_indices
from halo_relax.parallel import ExchangeChannel, ProcessTopology
from halo_relax.workspace import TiledWorkspace

from tests.unit.loopback import make_topologies


class SampleIndicesTestCases(unittest.TestCase):
    def test_small_tile_is_fully_sampled(self):
        self.assertEqual(sample_indices(10, 25), list(range(1, 11)))
        self.assertEqual(sample_indices(1, 1), [1])
        self.assertEqual(sample_indices(5, 5), [1, 2, 3, 4, 5])

    def test_last_index_always_included(self):
        indices = sample_indices(100, 25)
        self.assertEqual(indices[:3], [1, 5, 9])
        self.assertEqual(indices[-2:], [97, 100])

        self.assertEqual(sample_indices(9, 2), [1, 5, 9])
        self.assertEqual(sample_indices(8, 4), [1, 3, 5, 7, 8])


class OutputManagerTestCases(unittest.TestCase):
    def setUp(self):
        super().setUp()
        self.tmp_dir = tempfile.TemporaryDirectory()
        self.logger = make_rank_logger(MPI.COMM_SELF)
        self.topology = ProcessTopology(MPI.COMM_SELF, logger=self.logger)

    def tearDown(self):
        self.tmp_dir.cleanup()
        super().tearDown()

    def make_config(self, **options):
        overrides = {"output_enabled": "1", "output_dir": os.path.join(self.tmp_dir.name, "dumps")}
        overrides.update({name: str(value) for name, value in options.items()})
        return Configuration("", load_default_schema(), overrides)

    def test_creates_directory(self):
        output = OutputManager(self.make_config(), self.topology, MPI.COMM_SELF, self.logger)
        self.assertTrue(os.path.isdir(output.output_dir))
        self.assertEqual(
            output.filename(12), os.path.join(self.tmp_dir.name, "dumps", "relax_0000_00000012")
        )

    def test_should_dump(self):
        output = OutputManager(self.make_config(output_freq=3), self.topology, MPI.COMM_SELF, self.logger)
        self.assertEqual([s for s in range(10) if output.should_dump(s)], [0, 3, 6, 9])
        self.assertTrue(output.should_dump(7, is_last=True))

    def test_dump_format(self):
        n = 4
        output = OutputManager(
            self.make_config(output_density=2, output_prefix="tile"), self.topology, MPI.COMM_SELF, self.logger
        )

        with TiledWorkspace(n, 0.0, self.topology, ExchangeChannel(MPI.COMM_SELF, n, logger=self.logger)) as ws:
            ws.write_interior(numpy.fromfunction(lambda x, y: 10.0 * (x + 1) + (y + 1) + 0.1, (n, n)))
            ws.synchronize()

            coords = numpy.linspace(0.1, 0.4, n)
            filename = output.dump(ws, 7, coords, coords * 2.0)

        self.assertEqual(os.path.basename(filename), "tile_0000_00000007")
        with open(filename) as f:
            blocks = f.read().split("\n\n")

        # Sampled indices are 1, 3 and 4
        self.assertEqual(blocks[-1], "")
        blocks = blocks[:-1]
        self.assertEqual(len(blocks), 3)
        for block, i in zip(blocks, [1, 3, 4]):
            lines = block.strip("\n").split("\n")
            self.assertEqual(len(lines), 3)
            for line, j in zip(lines, [1, 3, 4]):
                x, y, t, value = line.split(" ")
                self.assertEqual(float(x), coords[i - 1])
                self.assertEqual(float(y), coords[j - 1] * 2.0)
                self.assertEqual(t, "7")
                self.assertEqual(float(value), 10.0 * i + j + 0.1)


class GraphxTestCases(unittest.TestCase):
    def test_assemble_tiles(self):
        topology = make_topologies(4)[0]
        tiles = [numpy.full((2, 2), float(r)) for r in range(4)]
        field = assemble_tiles(tiles, topology)
        self.assertEqual(field.shape, (4, 4))

        # [x, y] with y growing upwards: rank 0 is top left, rank 3 bottom right
        numpy.testing.assert_array_equal(field[:2, 2:], tiles[0])
        numpy.testing.assert_array_equal(field[2:, 2:], tiles[1])
        numpy.testing.assert_array_equal(field[:2, :2], tiles[2])
        numpy.testing.assert_array_equal(field[2:, :2], tiles[3])

    def test_plot_field(self):
        logger = make_rank_logger(MPI.COMM_SELF)
        topology = ProcessTopology(MPI.COMM_SELF, logger=logger)
        tile = numpy.arange(9, dtype=numpy.float64).reshape(3, 3)
        with tempfile.TemporaryDirectory() as tmp_dir:
            filename = os.path.join(tmp_dir, "field.png")
            field = plot_field(tile, topology, filename, MPI.COMM_SELF)
            self.assertTrue(os.path.isfile(filename))
        numpy.testing.assert_array_equal(field, tile)
