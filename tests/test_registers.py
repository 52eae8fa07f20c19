import unittest

from SX127x.errors import BusError
from SX127x.registers import RegisterAccess


class RecordingTransfer:
    def __init__(self, response=None):
        self.sent = []
        self.response = response

    def __call__(self, data):
        self.sent.append(bytes(data))
        if self.response is not None:
            return self.response(data)
        return bytes(range(0xA0, 0xA0 + len(data)))


class RegisterAccessTestCase(unittest.TestCase):
    def test_read_register(self):
        transfer = RecordingTransfer()
        spi = RegisterAccess(transfer)
        self.assertEqual(spi.read_register(0x42), 0xA1)
        self.assertEqual(transfer.sent, [b'\x42\x00'])

    def test_read_clears_write_bit(self):
        transfer = RecordingTransfer()
        RegisterAccess(transfer).read_register(0xC2)
        self.assertEqual(transfer.sent[0][0], 0x42)

    def test_read_register_burst(self):
        transfer = RecordingTransfer()
        spi = RegisterAccess(transfer)
        self.assertEqual(spi.read_register_burst(0x00, 3), b'\xa1\xa2\xa3')
        self.assertEqual(transfer.sent, [b'\x00\x00\x00\x00'])

    def test_read_register_burst_empty(self):
        transfer = RecordingTransfer()
        self.assertEqual(RegisterAccess(transfer).read_register_burst(0x00, 0), b'')
        self.assertEqual(transfer.sent, [])

    def test_write_register(self):
        transfer = RecordingTransfer()
        RegisterAccess(transfer).write_register(0x00, 1, 2, 3)
        self.assertEqual(transfer.sent, [b'\x80\x01\x02\x03'])

    def test_bus_error(self):
        def broken(data):
            raise OSError(5, "Input/output error")

        spi = RegisterAccess(broken)
        with self.assertRaises(BusError) as cm:
            spi.read_register(0x42)
        self.assertIsInstance(cm.exception.__cause__, OSError)
        with self.assertRaises(BusError):
            spi.write_register(0x01, 0x81)

    def test_short_response(self):
        spi = RegisterAccess(RecordingTransfer(response=lambda data: b'\x00'))
        with self.assertRaises(BusError):
            spi.read_register(0x42)
