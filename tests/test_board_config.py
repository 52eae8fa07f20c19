import threading
import time
import unittest
from unittest import mock

from SX127x.board_config import BOARD, EdgeWatch, Pin, parse_pin, parse_spi_dev
from tests.chip_sim import SimulatedBoard


class ParseTestCase(unittest.TestCase):
    def test_parse_spi_dev(self):
        self.assertEqual(parse_spi_dev("0.0"), (0, 0))
        self.assertEqual(parse_spi_dev("/dev/spidev1.2"), (1, 2))
        self.assertEqual(parse_spi_dev("SPI0.1"), (0, 1))
        with self.assertRaises(ValueError):
            parse_spi_dev("spi")

    def test_parse_pin(self):
        self.assertEqual(parse_pin(4), 4)
        self.assertEqual(parse_pin("17"), 17)
        self.assertEqual(parse_pin("GPIO25"), 25)
        self.assertEqual(parse_pin("bcm22"), 22)
        with self.assertRaises(ValueError):
            parse_pin("P1_7")


class EdgeWatchTestCase(unittest.TestCase):
    def setUp(self):
        self.attached = []
        self.pin = Pin(4)
        self.pin.set_rising_handler = self.attached.append
        self.pin.detach_irq_trigger = lambda: self.attached.append(None)

    def test_edge_before_wait_is_kept(self):
        with self.pin.arm() as watch:
            self.attached[0](4)
            self.assertTrue(watch.wait(0.01))
            self.assertFalse(watch.wait(0.01))
        self.assertEqual(self.attached[-1], None)
        self.assertIsNone(self.pin.watch)

    def test_edge_from_other_thread(self):
        with self.pin.arm() as watch:
            timer = threading.Timer(0.02, watch.trigger)
            timer.start()
            self.assertTrue(watch.wait(1.0))

    def test_timeout(self):
        with self.pin.arm() as watch:
            start = time.monotonic()
            self.assertFalse(watch.wait(0.05))
            self.assertGreaterEqual(time.monotonic() - start, 0.04)

    def test_cancel(self):
        watch = EdgeWatch(self.pin)
        watch.cancel()
        self.assertFalse(watch.wait(1.0))

    def test_single_owner(self):
        with self.pin.arm():
            with self.assertRaises(RuntimeError):
                self.pin.arm()
        self.pin.arm().close()


class BoardTestCase(unittest.TestCase):
    def test_pins(self):
        board = SimulatedBoard(spi_dev="/dev/spidev0.1", dio0="25", rst="GPIO22")
        self.assertEqual((board.spi_bus, board.spi_cs), (0, 1))
        self.assertEqual(board.dio0_pin.pin_num, 25)
        self.assertEqual(board.reset_pin.pin_num, 22)

    def test_defaults(self):
        board = SimulatedBoard()
        self.assertEqual(board.dio0_pin.pin_num, 4)
        self.assertEqual(board.reset_pin.pin_num, 17)

    def test_dio0_required(self):
        with self.assertRaises(ValueError):
            BOARD()

    @mock.patch("SX127x.board_config.time.sleep")
    def test_reset(self, sleep):
        board = SimulatedBoard()
        self.assertTrue(board.reset())
        self.assertEqual(board.levels, [(17, 0), (17, 1)])
        self.assertEqual(sleep.call_args_list, [mock.call(0.01), mock.call(0.01)])

    def test_reset_without_pin(self):
        board = SimulatedBoard()
        board.reset_pin = None
        self.assertFalse(board.reset())

    def test_context_manager(self):
        with SimulatedBoard() as board:
            pass
        self.assertTrue(board.torn_down)
