import unittest
from unittest import mock

from SX127x.constants import REG
from SX127x.errors import ReceiveTimeoutError
from SX127x.pyLora import pyLora
from tests.chip_sim import SimulatedBoard


class PyLoraTestCase(unittest.TestCase):
    def setUp(self):
        self.board = SimulatedBoard()
        self.chip = self.board.chip
        self.socket = pyLora(board=self.board, frequency=433000000)

    def test_configured(self):
        self.assertEqual(self.chip.registers[REG.LORA.OP_MODE], 0x81)
        self.assertEqual(self.socket.lora.get_freq(), 433000000)

    def test_send(self):
        self.chip.on_mode = lambda op_mode: self.board.raise_dio0() if op_mode == 0x83 else None
        self.assertEqual(self.socket.send("Adios"), 5)
        self.assertEqual(bytes(self.chip.fifo[:5]), b"Adios")

    def test_recv(self):
        def on_mode(op_mode):
            if op_mode == 0x86:
                self.chip.deliver(b"hola mundo", rssi=70)
                self.board.raise_dio0()

        self.chip.on_mode = on_mode
        self.socket.settimeout(1.0)
        self.assertEqual(self.socket.recv(), b"hola mundo")
        self.assertEqual(self.socket.gettimeout(), 1.0)

    def test_recv_truncates(self):
        def on_mode(op_mode):
            if op_mode == 0x86:
                self.chip.deliver(b"0123456789")
                self.board.raise_dio0()

        self.chip.on_mode = on_mode
        self.socket.settimeout(1.0)
        self.assertEqual(self.socket.recv(4), b"0123")

    def test_recv_non_blocking(self):
        self.socket.setblocking(False)
        self.assertEqual(self.socket.gettimeout(), 0.0)
        with self.assertRaises(ReceiveTimeoutError):
            self.socket.recv()
        self.socket.setblocking(True)
        self.assertIsNone(self.socket.gettimeout())

    def test_close(self):
        with self.socket:
            pass
        self.assertEqual(self.chip.registers[REG.LORA.OP_MODE], 0x80)
        self.assertTrue(self.board.torn_down)

    def test_no_board(self):
        with mock.patch.object(pyLora, "IS_RPi", False):
            with self.assertRaises(RuntimeError):
                pyLora()
