""" SPI framing of SX127x register reads and writes. """

import logging

from .errors import BusError

logger = logging.getLogger(__name__)


class RegisterAccess:
    """ Turns register addresses and payloads into SPI exchanges.
        The first byte of every exchange is the register address, with the MSB set for a write
        and cleared for a read. The chip answers one byte per byte clocked in, so the useful
        response starts after the echoed address byte.
    :param transfer: Callable taking the outgoing bytes and returning as many incoming bytes
    """

    def __init__(self, transfer):
        self.transfer = transfer

    def _exchange(self, data):
        try:
            response = self.transfer(bytes(data))
        except OSError as e:
            raise BusError("SPI exchange with register 0x%02x failed: %s" % (data[0] & 0x7F, e)) from e
        if response is None or len(response) != len(data):
            raise BusError("SPI exchange with register 0x%02x returned %s bytes, expected %d" %
                           (data[0] & 0x7F, None if response is None else len(response), len(data)))
        return bytes(response)

    def read_register(self, address):
        """ Read a single register
        :param address: Register address
        :return: Register value
        :rtype: int
        """
        value = self._exchange([address & 0x7F, 0x00])[1]
        logger.debug("read [%02x]=<%02x>", address, value)
        return value

    def read_register_burst(self, address, length):
        """ Read `length` bytes from the same register, used on the FIFO
        :rtype: bytes
        """
        if length <= 0:
            return b''
        data = self._exchange([address & 0x7F] + [0x00] * length)[1:]
        logger.debug("read [%02x]=<%s>", address, data.hex())
        return data

    def write_register(self, address, *values):
        logger.debug("write [%02x]=<%s>", address, bytes(values).hex())
        self._exchange([address | 0x80] + list(values))
