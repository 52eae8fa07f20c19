""" Register map and fixed values of the SX127x in LoRa mode. """
# See SX1276/77/78/79 datasheet, section 6.4 "LoRa Mode Register Map".

import enum


class MODE(enum.IntEnum):
    """ RegOpMode mode bits. The long range flag is added by LoRa.set_mode, never here. """
    SLEEP = 0x00
    STDBY = 0x01
    TX = 0x03
    RXCONT = 0x05
    RXSINGLE = 0x06


LONG_RANGE_MODE = 0x80


class REG:

    class LORA:
        FIFO = 0x00
        OP_MODE = 0x01
        FR_MSB = 0x06
        FR_MID = 0x07
        FR_LSB = 0x08
        PA_CONFIG = 0x09
        PA_RAMP = 0x0A
        OCP = 0x0B
        LNA = 0x0C
        FIFO_ADDR_PTR = 0x0D
        FIFO_TX_BASE_ADDR = 0x0E
        FIFO_RX_BASE_ADDR = 0x0F
        FIFO_RX_CURR_ADDR = 0x10
        IRQ_FLAGS_MASK = 0x11
        IRQ_FLAGS = 0x12
        RX_NB_BYTES = 0x13
        PKT_SNR_VALUE = 0x19
        PKT_RSSI_VALUE = 0x1A
        RSSI_VALUE = 0x1B
        MODEM_CONFIG_1 = 0x1D
        MODEM_CONFIG_2 = 0x1E
        PREAMBLE_MSB = 0x20
        PREAMBLE_LSB = 0x21
        PAYLOAD_LENGTH = 0x22
        MODEM_CONFIG_3 = 0x26
        DETECT_OPTIMIZE = 0x31
        DETECTION_THRESH = 0x37
        SYNC_WORD = 0x39
        DIO_MAPPING_1 = 0x40
        VERSION = 0x42
        PA_DAC = 0x4D


class MASK:

    class IRQ_FLAGS:
        RxTimeout = 0x80
        RxDone = 0x40
        PayloadCrcError = 0x20
        ValidHeader = 0x10
        TxDone = 0x08
        CadDone = 0x04
        FhssChangeChannel = 0x02
        CadDetected = 0x01

    class MODEM_CONFIG_1:
        # bits kept when a field of the register is rewritten
        KEEP_BW = 0x0F
        KEEP_CODING_RATE = 0xF1
        IMPLICIT_HEADER = 0x01

    class MODEM_CONFIG_2:
        KEEP_SPREADING_FACTOR = 0x0F
        RX_CRC = 0x04

    class LNA:
        BOOST_HF = 0x03


class DIO0:
    """ DIO_MAPPING_1 values routing DIO0 """
    RX_DONE = 0x00
    TX_DONE = 0x40


class BW(enum.IntEnum):
    BW7_8 = 0
    BW10_4 = 1
    BW15_6 = 2
    BW20_8 = 3
    BW31_25 = 4
    BW41_7 = 5
    BW62_5 = 6
    BW125 = 7
    BW250 = 8
    BW500 = 9


# upper edge of each bandwidth step in Hz, in register order
BW_STEPS = [
    (7.8e3, BW.BW7_8),
    (10.4e3, BW.BW10_4),
    (15.6e3, BW.BW15_6),
    (20.8e3, BW.BW20_8),
    (31.25e3, BW.BW31_25),
    (41.7e3, BW.BW41_7),
    (62.5e3, BW.BW62_5),
    (125e3, BW.BW125),
    (250e3, BW.BW250),
]

PA_BOOST = 0x80

CHIP_VERSION = 0x12

FXOSC = 32000000
FSTEP_SHIFT = 19
FRF_MAX = 0xFFFFFF

# the LF port (bands 1 and 2) ends here, see datasheet 5.5.5
RF_MID_BAND_THRESHOLD = 525e6
RSSI_OFFSET_LF_PORT = 164
RSSI_OFFSET_HF_PORT = 157

MAX_PKT_LENGTH = 255
FIFO_TX_BASE = 0x00
FIFO_RX_BASE = 0x00

MODEM_CONFIG_3_AGC_AUTO_ON = 0x04

SPREADING_FACTOR_MIN = 6
SPREADING_FACTOR_MAX = 12
TX_POWER_MIN = 2
TX_POWER_MAX = 17

# (detection optimize, detection threshold)
DETECTION_SF6 = (0xC5, 0x0C)
DETECTION_SF7_12 = (0xC3, 0x0A)

RX_DONE_POLL_LIMIT = 5
RX_DONE_POLL_INTERVAL = 0.001

RESET_PULSE = 0.01
