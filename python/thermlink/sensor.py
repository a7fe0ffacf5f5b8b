"""Temperature reading sources and raw-sample conversion.

Raw samples are 10-bit ADC counts from a Grove temperature sensor
(NTC thermistor, B = 4275, R0 = 100k).  Conversion uses float64 IEEE
arithmetic, so the singular samples 0 and 1023 give ``ln(R/R0) = +-inf``
and come out at exactly absolute zero instead of raising.
"""

from __future__ import annotations

import enum
import logging
from typing import Protocol

import numpy as np

logger = logging.getLogger(__name__)

ADC_MAX = 1023
THERMISTOR_B = 4275.0
THERMISTOR_R0 = 100_000.0
T0_KELVIN = 298.15
KELVIN_OFFSET = 273.15


class Scale(enum.Enum):
    FAHRENHEIT = "F"
    CELSIUS = "C"

    @classmethod
    def parse(cls, text: str) -> "Scale":
        """Map ``"F"``/``"C"`` to a Scale.  Raises ValueError otherwise."""
        return cls(text)


def celsius_to_fahrenheit(celsius):
    return celsius * 9.0 / 5.0 + 32.0


def convert(raw, scale: Scale):
    """Convert raw ADC counts to a temperature in *scale*.

    Scalars give a float, array-likes an ndarray of float64.
    """
    r = np.asarray(raw, dtype=np.float64)
    with np.errstate(divide="ignore", invalid="ignore"):
        resistance = THERMISTOR_R0 * (ADC_MAX / r - 1.0)
        celsius = 1.0 / (np.log(resistance / THERMISTOR_R0) / THERMISTOR_B
                         + 1.0 / T0_KELVIN) - KELVIN_OFFSET
    if scale is Scale.FAHRENHEIT:
        result = celsius_to_fahrenheit(celsius)
    else:
        result = celsius
    if result.ndim == 0:
        return float(result)
    return result


class ReadingSource(Protocol):
    """Anything that produces a raw sample on demand."""

    def sample(self) -> int: ...


class FixedSource:
    """Constant sample, for running without sensor hardware."""

    def __init__(self, raw: int = 100):
        self.raw = raw

    def sample(self) -> int:
        return self.raw

    def close(self) -> None:
        pass


class SerialSource:
    """Raw ADC counts streamed by a microcontroller over UART (requires pyserial).

    The device prints one integer per line.  The most recent complete
    line wins; if nothing parseable has arrived since the last sample the
    previous value is returned again.

    *port* is a device path or any pyserial URL (``loop://``, ``rfc2217://...``).
    """

    def __init__(self, port: str, baudrate: int = 9600, initial: int = 512):
        import serial
        self._ser = serial.serial_for_url(port, baudrate=baudrate, timeout=0)
        self._buf = bytearray()
        self._last = initial

    def _drain(self) -> None:
        waiting = self._ser.in_waiting
        if waiting:
            self._buf.extend(self._ser.read(waiting))

    def sample(self) -> int:
        self._drain()
        while True:
            idx = self._buf.find(b"\n")
            if idx < 0:
                break
            line = bytes(self._buf[:idx]).strip()
            del self._buf[:idx + 1]
            try:
                value = int(line)
            except ValueError:
                logger.warning("ignoring unparseable sensor line %r", line)
                continue
            if 0 <= value <= ADC_MAX:
                self._last = value
            else:
                logger.warning("sensor value %d out of range", value)
        return self._last

    def close(self) -> None:
        self._ser.close()
