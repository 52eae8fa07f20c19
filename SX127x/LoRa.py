""" Defines the LoRa class driving an SX127x, plus its Config and Message types. """

import collections
import contextlib
import logging
import time

from .constants import *
from .errors import *
from .registers import RegisterAccess

logger = logging.getLogger(__name__)


################################################## Some utility functions ##############################################

def getter(register_address):
    """ The getter decorator reads the register content and calls the decorated function to do
        post-processing.
    :param register_address: Register address
    :return: Register value
    :rtype: int
    """

    def decorator(func):
        def wrapper(self):
            v = self.spi.read_register(register_address)
            return func(self, v)

        wrapper.__doc__ = func.__doc__
        return wrapper

    return decorator


def setter(register_address):
    """ The setter decorator calls the decorated function for pre-processing and
        then writes the result to the register
    :param register_address: Register address
    :return: New register value
    :rtype: int
    """

    def decorator(func):
        def wrapper(self, val):
            v = func(self, val)
            self.spi.write_register(register_address, v)
            return v

        wrapper.__doc__ = func.__doc__
        return wrapper

    return decorator


def frequency_to_frf(frequency):
    """ Convert a carrier frequency in Hz into the 24 bit RegFrf word (Fstep = FXOSC / 2^19) """
    frf = (int(frequency) << FSTEP_SHIFT) // FXOSC
    if frequency <= 0 or frf > FRF_MAX:
        raise ValueError("frequency %s Hz cannot be programmed" % frequency)
    return frf


def frf_to_frequency(frf):
    return (frf * FXOSC) >> FSTEP_SHIFT


def bandwidth_to_bw(bandwidth):
    """ Pick the narrowest bandwidth step that is not narrower than `bandwidth` (Hz) """
    for upper, bw in BW_STEPS:
        if bandwidth <= upper:
            return bw
    return BW.BW500


def coding_rate_to_denominator(coding_rate):
    """ Pick the 4/n coding rate closest to `coding_rate` without exceeding it, n in 5..8 """
    for denominator in range(5, 8):
        if 4 / denominator <= coding_rate:
            return denominator
    return 8


def rssi_offset(frequency):
    return RSSI_OFFSET_LF_PORT if frequency < RF_MID_BAND_THRESHOLD else RSSI_OFFSET_HF_PORT


Message = collections.namedtuple("Message", ["payload", "rssi", "snr"])


class Config:
    """ In-memory mirror of the session parameters programmed into the chip. """

    def __init__(self,
                 spreading_factor=7,
                 signal_bandwidth=125e3,
                 frequency=915000000,
                 coding_rate=4 / 5,
                 preamble_length=8,
                 sync_word=0x12,
                 tx_power=17,
                 crc=True,
                 implicit_header=False):
        self.spreading_factor = spreading_factor
        self.signal_bandwidth = signal_bandwidth
        self.frequency = frequency
        self.coding_rate = coding_rate
        self.preamble_length = preamble_length
        self.sync_word = sync_word
        self.tx_power = tx_power
        self.crc = crc
        self.implicit_header = implicit_header

    def __repr__(self):
        return "Config(%s)" % ", ".join("%s=%r" % item for item in vars(self).items())


############################################### Definition of the LoRa class ###########################################

class LoRa:
    """ Mode state machine and TX/RX logic of one SX127x.
        The instance has a single owner: transmit and receive share the FIFO pointers and DIO0,
        so calls must not overlap.
    :param board: A BOARD instance providing the SPI transfer function, dio0_pin and reset_pin
    :param config: Initial Config, pushed to the chip by configure()
    :param verbose: Log mode changes and configuration at INFO instead of DEBUG
    """

    def __init__(self, board, config=None, verbose=False, **settings):
        if board is None:
            raise RuntimeError("A Board specification is needed for SX127X to work.")
        if config is None:
            config = Config(**settings)
        elif settings:
            raise TypeError("pass either config or individual settings, not both")

        self.board = board
        self.spi = RegisterAccess(board.get_spi())
        self.config = config
        self.mode = None  # advisory, the chip holds the real one
        self.verbose = verbose
        self._level = logging.INFO if verbose else logging.DEBUG

    def _log(self, message, *args):
        logger.log(self._level, "SX127x: " + message, *args)

    # Lifecycle

    def reset(self):
        self._log("reset")
        self.mode = None
        return self.board.reset()

    def configure(self):
        """ Reset and identify the chip, then program the whole configuration. Leaves STDBY. """
        self.reset()

        version = self.get_version()
        if version != CHIP_VERSION:
            raise VersionMismatchError("expected version 0x%02x, found 0x%02x" % (CHIP_VERSION, version))
        self._log("version=%02x", version)

        self.set_mode(MODE.SLEEP)
        self.set_freq(self.config.frequency)
        self.set_rx_crc(self.config.crc)
        self.set_spreading_factor(self.config.spreading_factor)
        self.set_bw(self.config.signal_bandwidth)
        self.set_coding_rate(self.config.coding_rate)
        self.set_preamble(self.config.preamble_length)
        self.set_sync_word(self.config.sync_word)

        self.set_fifo_tx_base_addr(FIFO_TX_BASE)
        self.set_fifo_rx_base_addr(FIFO_RX_BASE)
        self.set_lna_boost(True)
        self.spi.write_register(REG.LORA.MODEM_CONFIG_3, MODEM_CONFIG_3_AGC_AUTO_ON)
        self.set_tx_power(self.config.tx_power)

        self.set_mode(MODE.STDBY)
        self._log("configured %r", self.config)

    def close(self):
        self.sleep()
        self.board.teardown()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    # Modes

    def get_mode(self):
        """ Read the mode from RegOpMode
        :return: The mode, or None if the chip is not in LoRa mode
        """
        v = self.spi.read_register(REG.LORA.OP_MODE)
        if not v & LONG_RANGE_MODE:
            return None
        try:
            self.mode = MODE(v & 0x07)
        except ValueError:
            self.mode = None
        return self.mode

    def set_mode(self, mode):
        """ Set the mode. The long range flag is always added.
        :param mode: A MODE member
        """
        mode = MODE(mode)
        self._log("mode <- %s", mode.name)
        self.spi.write_register(REG.LORA.OP_MODE, LONG_RANGE_MODE | mode)
        self.mode = mode
        return mode

    def sleep(self):
        return self.set_mode(MODE.SLEEP)

    def standby(self):
        return self.set_mode(MODE.STDBY)

    @contextlib.contextmanager
    def operating(self, mode):
        """ Enter `mode` for the duration of the block, STDBY is restored on every exit """
        try:
            self.set_mode(mode)
            yield mode
        finally:
            self.set_mode(MODE.STDBY)

    # Configuration

    @getter(REG.LORA.VERSION)
    def get_version(self, version):
        """ Version code of the chip.
            Bits 7-4 give the full revision number; bits 3-0 give the metal mask revision number.
        :return: Version code
        :rtype: int
        """
        return version

    def get_freq(self):
        """ Get the frequency programmed into the chip (Hz) """
        msb = self.spi.read_register(REG.LORA.FR_MSB)
        mid = self.spi.read_register(REG.LORA.FR_MID)
        lsb = self.spi.read_register(REG.LORA.FR_LSB)
        return frf_to_frequency(msb << 16 | mid << 8 | lsb)

    def set_freq(self, frequency):
        """ Set the carrier frequency
        :param frequency: Frequency in Hz
        :return: New register settings (3 bytes [msb, mid, lsb])
        :rtype: list[int]
        """
        frf = frequency_to_frf(frequency)
        regs = [frf >> 16 & 0xFF, frf >> 8 & 0xFF, frf & 0xFF]
        self.spi.write_register(REG.LORA.FR_MSB, regs[0])
        self.spi.write_register(REG.LORA.FR_MID, regs[1])
        self.spi.write_register(REG.LORA.FR_LSB, regs[2])
        self.config.frequency = frequency
        return regs

    def _modify_register(self, register_address, keep, bits):
        v = self.spi.read_register(register_address)
        v = (v & keep) | bits
        self.spi.write_register(register_address, v)
        return v

    def set_bw(self, bandwidth):
        """ Set the signal bandwidth
        :param bandwidth: Bandwidth in Hz, rounded up to the next step (7.8kHz ... 500kHz)
        :return: New register value
        """
        bw = bandwidth_to_bw(bandwidth)
        v = self._modify_register(REG.LORA.MODEM_CONFIG_1, MASK.MODEM_CONFIG_1.KEEP_BW, bw << 4)
        self.config.signal_bandwidth = bandwidth
        return v

    def set_coding_rate(self, coding_rate):
        """ Set the coding rate 4/5, 4/6, 4/7, 4/8
        :param coding_rate: The rate as a ratio, e.g. 4 / 5
        :return: New register value
        """
        denominator = coding_rate_to_denominator(coding_rate)
        v = self._modify_register(REG.LORA.MODEM_CONFIG_1, MASK.MODEM_CONFIG_1.KEEP_CODING_RATE,
                                  (denominator - 4) << 1)
        self.config.coding_rate = coding_rate
        return v

    def set_spreading_factor(self, spreading_factor):
        spreading_factor = min(max(spreading_factor, SPREADING_FACTOR_MIN), SPREADING_FACTOR_MAX)

        detect_optimize, detection_threshold = DETECTION_SF6 if spreading_factor == 6 else DETECTION_SF7_12
        self.spi.write_register(REG.LORA.DETECT_OPTIMIZE, detect_optimize)
        self.spi.write_register(REG.LORA.DETECTION_THRESH, detection_threshold)

        v = self._modify_register(REG.LORA.MODEM_CONFIG_2, MASK.MODEM_CONFIG_2.KEEP_SPREADING_FACTOR,
                                  spreading_factor << 4)
        self.config.spreading_factor = spreading_factor
        return v

    def set_rx_crc(self, rx_crc):
        v = self.spi.read_register(REG.LORA.MODEM_CONFIG_2)
        v = v | MASK.MODEM_CONFIG_2.RX_CRC if rx_crc else v & ~MASK.MODEM_CONFIG_2.RX_CRC & 0xFF
        self.spi.write_register(REG.LORA.MODEM_CONFIG_2, v)
        self.config.crc = bool(rx_crc)
        return v

    def set_lna_boost(self, boost):
        v = self.spi.read_register(REG.LORA.LNA)
        v = v | MASK.LNA.BOOST_HF if boost else v & ~MASK.LNA.BOOST_HF & 0xFF
        self.spi.write_register(REG.LORA.LNA, v)
        return v

    def set_tx_power(self, power):
        """ Set the output power on the PA_BOOST pin
        :param power: Power in dBm, clamped to 2..17
        :return: New register value
        """
        power = min(max(int(power), TX_POWER_MIN), TX_POWER_MAX)
        # Pout = 17 - (15 - OutputPower) on PA_BOOST
        v = PA_BOOST | (power - 2)
        self.spi.write_register(REG.LORA.PA_CONFIG, v)
        self.config.tx_power = power
        return v

    def get_preamble(self):
        msb = self.spi.read_register(REG.LORA.PREAMBLE_MSB)
        lsb = self.spi.read_register(REG.LORA.PREAMBLE_LSB)
        return lsb + 256 * msb

    def set_preamble(self, preamble):
        preamble &= 0xFFFF
        self.spi.write_register(REG.LORA.PREAMBLE_MSB, preamble >> 8)
        self.spi.write_register(REG.LORA.PREAMBLE_LSB, preamble & 0xFF)
        self.config.preamble_length = preamble
        return preamble

    @getter(REG.LORA.SYNC_WORD)
    def get_sync_word(self, sync_word):
        return sync_word

    def set_sync_word(self, sync_word):
        sync_word &= 0xFF
        self.spi.write_register(REG.LORA.SYNC_WORD, sync_word)
        self.config.sync_word = sync_word
        return sync_word

    def explicit_header_mode(self):
        v = self.spi.read_register(REG.LORA.MODEM_CONFIG_1)
        v &= ~MASK.MODEM_CONFIG_1.IMPLICIT_HEADER & 0xFF
        self.spi.write_register(REG.LORA.MODEM_CONFIG_1, v)
        self.config.implicit_header = False
        return v

    def implicit_header_mode(self):
        v = self.spi.read_register(REG.LORA.MODEM_CONFIG_1)
        v |= MASK.MODEM_CONFIG_1.IMPLICIT_HEADER
        self.spi.write_register(REG.LORA.MODEM_CONFIG_1, v)
        self.config.implicit_header = True
        return v

    def get_modem_config_1(self):
        val = self.spi.read_register(REG.LORA.MODEM_CONFIG_1)
        return dict(
            bw=val >> 4 & 0x0F,
            coding_rate=val >> 1 & 0x07,
            implicit_header_mode=val & 0x01
        )

    def get_modem_config_2(self):
        val = self.spi.read_register(REG.LORA.MODEM_CONFIG_2)
        return dict(
            spreading_factor=val >> 4 & 0x0F,
            tx_cont_mode=val >> 3 & 0x01,
            rx_crc=val >> 2 & 0x01,
        )

    # FIFO

    @setter(REG.LORA.FIFO_ADDR_PTR)
    def set_fifo_addr_ptr(self, ptr):
        return ptr

    @setter(REG.LORA.FIFO_TX_BASE_ADDR)
    def set_fifo_tx_base_addr(self, ptr):
        return ptr

    @setter(REG.LORA.FIFO_RX_BASE_ADDR)
    def set_fifo_rx_base_addr(self, ptr):
        return ptr

    @getter(REG.LORA.FIFO_RX_CURR_ADDR)
    def get_fifo_rx_current_addr(self, addr):
        return addr

    @getter(REG.LORA.RX_NB_BYTES)
    def get_rx_nb_bytes(self, nb_bytes):
        return nb_bytes

    @getter(REG.LORA.PAYLOAD_LENGTH)
    def get_payload_length(self, payload_length):
        return payload_length

    @setter(REG.LORA.PAYLOAD_LENGTH)
    def set_payload_length(self, payload_length):
        return payload_length

    @setter(REG.LORA.DIO_MAPPING_1)
    def set_dio_mapping_1(self, mapping):
        return mapping

    def write_payload(self, payload):
        """ Get FIFO ready for TX: point FifoAddrPtr at the TX base and fill in the payload
        :param payload: Payload to write (bytes)
        :return: Written payload
        """
        payload = bytes(payload)
        if len(payload) > MAX_PKT_LENGTH:
            raise ValueError("payload of %d bytes exceeds %d" % (len(payload), MAX_PKT_LENGTH))
        self.set_fifo_addr_ptr(FIFO_TX_BASE)
        self.set_payload_length(len(payload))
        self.spi.write_register(REG.LORA.FIFO, *payload)
        return payload

    def read_fifo(self):
        """ Read the last received payload from the FIFO
            FifoAddrPtr must be pointed at FifoRxCurrentAddr first, otherwise the FIFO register
            returns whatever the pointer was last left at.
        :rtype: bytes
        """
        if self.config.implicit_header:
            nb_bytes = self.get_payload_length()
        else:
            nb_bytes = self.get_rx_nb_bytes()
        self.set_fifo_addr_ptr(self.get_fifo_rx_current_addr())
        return self.spi.read_register_burst(REG.LORA.FIFO, nb_bytes)

    # Status

    def get_irq_flags(self):
        v = self.spi.read_register(REG.LORA.IRQ_FLAGS)
        return dict(
            rx_timeout=v >> 7 & 0x01,
            rx_done=v >> 6 & 0x01,
            crc_error=v >> 5 & 0x01,
            valid_header=v >> 4 & 0x01,
            tx_done=v >> 3 & 0x01,
            cad_done=v >> 2 & 0x01,
            fhss_change_ch=v >> 1 & 0x01,
            cad_detected=v >> 0 & 0x01,
        )

    def clear_irq_flags(self):
        """ Clear every latched IRQ flag (flags are cleared by writing them back)
        :return: The flags as they were before clearing
        :rtype: int
        """
        flags = self.spi.read_register(REG.LORA.IRQ_FLAGS)
        self.spi.write_register(REG.LORA.IRQ_FLAGS, flags)
        return flags

    def wait_rx_done(self, limit=RX_DONE_POLL_LIMIT):
        """ Poll RegIrqFlags until RxDone shows up, guards against a spurious DIO0 edge """
        for _ in range(limit):
            flags = self.spi.read_register(REG.LORA.IRQ_FLAGS)
            if flags & MASK.IRQ_FLAGS.RxDone:
                return flags
            time.sleep(RX_DONE_POLL_INTERVAL)
        raise ReceiveNotDoneError("RxDone not set after %d polls" % limit)

    def get_pkt_rssi_value(self):
        v = self.spi.read_register(REG.LORA.PKT_RSSI_VALUE)
        return v - rssi_offset(self.config.frequency)  # See datasheet 5.5.5. p. 87

    def get_rssi_value(self):
        v = self.spi.read_register(REG.LORA.RSSI_VALUE)
        return v - rssi_offset(self.config.frequency)

    def get_pkt_snr_value(self):
        v = self.spi.read_register(REG.LORA.PKT_SNR_VALUE)
        return (float(v - 256) if v > 127 else float(v)) / 4.

    def get_message(self):
        payload = self.read_fifo()
        rssi = self.get_pkt_rssi_value()
        snr = self.get_pkt_snr_value()
        return Message(payload, rssi, snr)

    # Transmit / receive

    def transmit(self, payload, timeout):
        """ Send `payload` and wait for TxDone on DIO0
            DIO0 is armed before TX is entered, so an edge raised right after the mode change is
            not lost.
        :param payload: Payload bytes, at most 255
        :param timeout: Seconds to wait for TxDone
        """
        self.implicit_header_mode()
        self.clear_irq_flags()
        payload = self.write_payload(payload)
        self._log("tx %d bytes", len(payload))

        with self.board.dio0_pin.arm() as edge:
            self.set_dio_mapping_1(DIO0.TX_DONE)
            with self.operating(MODE.TX):
                if not edge.wait(timeout):
                    raise TransmitTimeoutError("DIO0 was not raised within %s s" % timeout)

    def _start_receive(self):
        self.clear_irq_flags()
        self.set_dio_mapping_1(DIO0.RX_DONE)
        self.explicit_header_mode()

    def _receive_message(self):
        self.wait_rx_done()
        flags = self.clear_irq_flags()
        if flags & MASK.IRQ_FLAGS.PayloadCrcError:
            raise CrcMismatchError("payload CRC error (irq flags 0x%02x)" % flags)
        message = self.get_message()
        self._log("rx %d bytes, rssi=%d dBm, snr=%.2f dB", len(message.payload), message.rssi, message.snr)
        return message

    def receive(self, timeout=None):
        """ Receive a single packet in RXSINGLE mode
        :param timeout: Seconds to wait for RxDone, None waits forever
        :rtype: Message
        """
        self._start_receive()
        with self.board.dio0_pin.arm() as edge, self.operating(MODE.RXSINGLE):
            if not edge.wait(timeout):
                raise ReceiveTimeoutError("no packet within %s s" % timeout)
            return self._receive_message()

    def receive_loop(self, stop, timeout, output):
        """ Receive continuously, putting each Message on `output`
            The loop ends cleanly once `stop` is set; `stop` is only looked at between two waits
            for DIO0, so it takes effect at the latest after `timeout`.
        :param stop: threading.Event ending the loop
        :param timeout: Seconds to wait for each packet
        :param output: Object with a put() method, e.g. queue.Queue
        """
        self._start_receive()
        with self.board.dio0_pin.arm() as edge, self.operating(MODE.RXCONT):
            while not stop.is_set():
                if not edge.wait(timeout):
                    if stop.is_set():
                        break
                    raise ReceiveTimeoutError("no packet within %s s" % timeout)
                output.put(self._receive_message())

    def __str__(self):
        onoff = lambda i: 'ON' if i else 'OFF'
        cfg1 = self.get_modem_config_1()
        cfg2 = self.get_modem_config_2()
        s = "SX127x LoRa registers:\n"
        s += " mode               %s\n" % self.get_mode()
        s += " freq               %d Hz\n" % self.get_freq()
        s += " coding_rate        4/%d\n" % (cfg1['coding_rate'] + 4)
        s += " bw                 %s\n" % cfg1['bw']
        s += " spreading_factor   %s chips/symb\n" % (1 << cfg2['spreading_factor'])
        s += " implicit_hdr_mode  %s\n" % onoff(cfg1['implicit_header_mode'])
        s += " rx_payload_crc     %s\n" % onoff(cfg2['rx_crc'])
        s += " preamble           %d\n" % self.get_preamble()
        s += " sync_word          0x%02x\n" % self.get_sync_word()
        s += " irq_flags          %s\n" % self.get_irq_flags()
        s += " rx_nb_byte         %d\n" % self.get_rx_nb_bytes()
        return s
