""" Defines the BOARD_RPI class: SX127x wired to a Raspberry Pi through spidev and RPi.GPIO. """

import RPi.GPIO as GPIO
import spidev

from .board_config import BOARD, Pin


class BOARD_RPI(BOARD):
    """ Pin mapped for Rpi with dragino Hat Lora/GPS v1.4
        Fo reference of mapping see : https://pinout.xyz/pinout/pin7_gpio4
        with :
            https://github.com/dragino/Lora/blob/master/Lora_GPS%20HAT/v1.4/
    """
    # Note that the BCM numbering for the GPIOs is used.
    SPI_DEV = "0.0"
    DIO0 = 4
    RST = 17

    # SX127x can go up to 10MHz, pick half that to be safe
    SPI_MAX_SPEED_HZ = 5000000

    def __init__(self, spi_dev=None, dio0=None, rst=None):
        GPIO.setmode(GPIO.BCM)
        GPIO.setwarnings(False)
        self.pins = []
        super().__init__(spi_dev, dio0, rst)

    def setup_pin(self, pin_num):
        GPIO.setup(pin_num, GPIO.OUT, initial=GPIO.HIGH)
        self.pins.append(pin_num)
        pin = Pin(pin_num)
        pin.low = lambda: GPIO.output(pin_num, GPIO.LOW)
        pin.high = lambda: GPIO.output(pin_num, GPIO.HIGH)
        return pin

    def setup_irq_pin(self, pin_num):
        GPIO.setup(pin_num, GPIO.IN, pull_up_down=GPIO.PUD_DOWN)
        self.pins.append(pin_num)
        pin = Pin(pin_num)
        pin.set_rising_handler = \
            lambda handler: GPIO.add_event_detect(pin_num, GPIO.RISING, callback=handler)
        pin.detach_irq_trigger = lambda: GPIO.remove_event_detect(pin_num)
        return pin

    def init_spi(self, spi_bus, spi_cs):
        spi = spidev.SpiDev()
        spi.open(spi_bus, spi_cs)
        spi.max_speed_hz = self.SPI_MAX_SPEED_HZ
        spi.mode = 0b00
        return spi

    def get_spi(self):
        def transfer(data):
            return bytes(self.spi.xfer2(list(data)))

        return transfer

    def teardown(self):
        """ Cleanup GPIO and SpiDev """
        if self.pins:
            GPIO.cleanup(self.pins)
            self.pins = []
        self.spi.close()
