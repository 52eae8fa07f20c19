""" Defines the BOARD class that hands the SX127x its SPI channel, reset line and DIO0 line. """

import logging
import re
import threading
import time

from .constants import RESET_PULSE

logger = logging.getLogger(__name__)


def parse_spi_dev(spi_dev):
    """ Resolve an SPI device identifier into (bus, chip select)
        Accepts "0.1", "SPI0.1" and "/dev/spidev0.1".
    :rtype: tuple[int, int]
    """
    m = re.fullmatch(r"(?:/dev/spidev|SPI)?(\d+)\.(\d+)", str(spi_dev).strip(), re.IGNORECASE)
    if m is None:
        raise ValueError("cannot parse SPI device %r" % (spi_dev,))
    return int(m.group(1)), int(m.group(2))


def parse_pin(pin):
    """ Resolve a line identifier ("4", "GPIO4", "BCM4" or 4) into a BCM pin number """
    if isinstance(pin, int):
        return pin
    m = re.fullmatch(r"(?:GPIO|BCM)?(\d+)", str(pin).strip(), re.IGNORECASE)
    if m is None:
        raise ValueError("cannot parse pin %r" % (pin,))
    return int(m.group(1))


class EdgeWatch:
    """ Latches rising edges of an interrupt line until wait() consumes them.
        The rising handler runs on whatever thread the GPIO library calls back from, so an edge
        raised between arming and waiting is kept rather than lost.
    """

    def __init__(self, pin):
        self.pin = pin
        self.cancelled = False
        self._edge = threading.Event()

    def trigger(self, channel=None):
        self._edge.set()

    def wait(self, timeout):
        """ Block until an edge was latched or `timeout` seconds passed (None waits forever)
        :return: True if an edge was consumed
        :rtype: bool
        """
        raised = self._edge.wait(timeout)
        self._edge.clear()
        return raised and not self.cancelled

    def cancel(self):
        """ Release a pending wait() without an edge """
        self.cancelled = True
        self._edge.set()

    def close(self):
        self.pin.disarm(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class Pin:
    """ A digital line of the board. The board fills in the callables it supports:
        low/high for outputs, set_rising_handler/detach_irq_trigger for interrupt inputs.
    """

    def __init__(self, pin_num):
        self.pin_num = pin_num
        self.low = None
        self.high = None
        self.set_rising_handler = None
        self.detach_irq_trigger = None
        self.watch = None

    def arm(self):
        """ Start latching rising edges; only one watch may own the line at a time
        :rtype: EdgeWatch
        """
        if self.watch is not None:
            raise RuntimeError("pin %s is already armed" % self.pin_num)
        watch = EdgeWatch(self)
        self.set_rising_handler(watch.trigger)
        self.watch = watch
        return watch

    def disarm(self, watch):
        if self.watch is watch:
            self.detach_irq_trigger()
            self.watch = None


class BOARD:
    """ Board initialisation/teardown and pin configuration is kept here.
        Subclasses bind the abstract setup functions to a GPIO and SPI library.
    """
    SPI_DEV = "0.0"
    DIO0 = None
    RST = None

    def __init__(self, spi_dev=None, dio0=None, rst=None):
        spi_dev = self.SPI_DEV if spi_dev is None else spi_dev
        dio0 = self.DIO0 if dio0 is None else dio0
        rst = self.RST if rst is None else rst
        if dio0 is None:
            raise ValueError("a DIO0 pin is needed for SX127x to work")

        self.spi_bus, self.spi_cs = parse_spi_dev(spi_dev)
        self.spi = self.init_spi(self.spi_bus, self.spi_cs)
        self.dio0_pin = self.setup_irq_pin(parse_pin(dio0))
        self.reset_pin = self.setup_pin(parse_pin(rst)) if rst is not None else None

    def setup_pin(self, pin_num):
        """ Configure an output line driven high
        :rtype: Pin
        """
        raise NotImplementedError()

    def setup_irq_pin(self, pin_num):
        """ Configure an input line able to report rising edges
        :rtype: Pin
        """
        raise NotImplementedError()

    def init_spi(self, spi_bus, spi_cs):
        raise NotImplementedError()

    def get_spi(self):
        """ Return the transfer function: bytes out, as many bytes in """
        raise NotImplementedError()

    def teardown(self):
        raise NotImplementedError()

    def reset(self):
        """ Pulse the reset line low, then leave the chip time to start """
        if self.reset_pin is None:
            logger.warning("no reset pin configured, skipping reset")
            return False
        self.reset_pin.low()
        time.sleep(RESET_PULSE)
        self.reset_pin.high()
        time.sleep(RESET_PULSE)
        return True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.teardown()
