""" Socket-like wrapper around LoRa: send()/recv() with settimeout() and setblocking(). """

import logging
import os

from .LoRa import LoRa

logger = logging.getLogger(__name__)

try:
    machine = os.uname().machine
except AttributeError:
    machine = os.name


class pyLora:
    IS_RPi = machine.startswith('armv') or machine == 'aarch64'

    # used by send() while the socket is blocking, a TX never takes this long
    DEFAULT_TX_TIMEOUT = 10.0

    timeout_socket = None

    def __init__(self, spi_dev=None, dio0=None, rst=None, board=None, verbose=False, **settings):
        if board is None:
            if not self.IS_RPi:
                raise RuntimeError("No board given and no Raspberry Pi detected (machine=%s)" % machine)
            from .board_config_rpi import BOARD_RPI
            board = BOARD_RPI(spi_dev, dio0, rst)

        self.lora = LoRa(board, verbose=verbose, **settings)
        self.lora.configure()

    def send(self, content):
        """ Transmit `content` (bytes or str) as one packet """
        if isinstance(content, str):
            content = content.encode()
        timeout = self.timeout_socket or self.DEFAULT_TX_TIMEOUT
        self.lora.transmit(content, timeout)
        return len(content)

    def recv(self, size=255):
        """ Util Method for recv
            Waits for one packet, honouring the socket timeout
        :return: At most `size` bytes of the payload
        """
        message = self.lora.receive(self.timeout_socket)
        logger.debug("recv rssi=%d snr=%.2f", message.rssi, message.snr)
        return bytes(message.payload[:size])

    def settimeout(self, value):
        """ set timeout for operations, None blocks """
        self.timeout_socket = value

    def gettimeout(self):
        return self.timeout_socket

    def setblocking(self, value):
        self.timeout_socket = None if value else 0.0

    def close(self):
        self.lora.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
