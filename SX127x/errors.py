""" Exceptions raised by the SX127x driver. """


class LoRaError(Exception):
    pass


class BusError(LoRaError):
    """ An SPI exchange with the chip failed. """


class VersionMismatchError(LoRaError):
    """ RegVersion did not hold the expected silicon revision. """


class TransmitTimeoutError(LoRaError, TimeoutError):
    """ DIO0 was not raised for TxDone within the timeout. """


class ReceiveTimeoutError(LoRaError, TimeoutError):
    """ DIO0 was not raised for RxDone within the timeout. """


class ReceiveNotDoneError(LoRaError):
    """ DIO0 was raised but the RxDone flag never showed up. """


class CrcMismatchError(LoRaError):
    pass
