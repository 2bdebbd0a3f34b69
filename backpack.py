#!/usr/bin/env python
"""backpack.py: HT16K33 LED backpack driver - command protocol, display buffer, startup sequence."""

import asyncio
import enum
import logging
from dataclasses import dataclass

from periphery.i2c import I2CError

from handler_i2c import MAX_ADDRESS, HandlerI2C

logger = logging.getLogger(__name__)

HT16K33_CMD_OSCILLATOR = 0x20
HT16K33_CMD_OSCILLATOR_ON = 0x01
HT16K33_CMD_OSCILLATOR_OFF = 0x00

HT16K33_CMD_DISPLAY = 0x80
HT16K33_CMD_DISPLAY_ON = 0x01
HT16K33_CMD_DISPLAY_OFF = 0x00

HT16K33_CMD_BRIGHTNESS = 0xE0
HT16K33_MAX_BRIGHTNESS = 15

HT16K33_DISPLAY_RAM = 0x00

DEFAULT_ADDRESS = 0x70
DEFAULT_BRIGHTNESS = 10
BUFFER_SIZE = 8     #uint16 cells


class Blinkrate(enum.IntEnum):
    OFF = 0
    DOUBLE = 1     #2 Hz
    NORMAL = 2     #1 Hz
    HALF = 3       #0.5 Hz


class DriverStatus(enum.Enum):
    UNINITIALIZED = "uninitialized"
    OPENING = "opening"
    READY = "ready"
    FAILED = "failed"


class BackpackError(Exception):
    """Base for backpack failures"""


class TransportOpenError(BackpackError):
    """Bus could not be opened"""


class CommandError(BackpackError):
    """A write to the chip failed"""
    def __init__(self, label:str, msg:str):
        super().__init__(msg)
        self.label:str = label


class StartupError(BackpackError):
    """A step of the startup sequence failed, remaining steps were not run"""


class BackpackStateError(BackpackError):
    pass


class BufferRangeError(BackpackError, IndexError):
    pass


@dataclass
class DeviceState:
    """Local cache of chip state, tracks the last acknowledged display command. Never read back from the chip."""
    display_on: bool = True
    blink_rate: Blinkrate = Blinkrate.OFF

    @property
    def on_bit(self) -> int:
        return HT16K33_CMD_DISPLAY_ON if self.display_on else HT16K33_CMD_DISPLAY_OFF


@dataclass(frozen=True)
class Command:
    opcode: int
    argument: int = 0x00
    label: str = 'command'


class BackpackObserver:
    """Receives exactly one of on_ready / on_error per driver lifetime. Override either."""
    def on_ready(self) -> None:
        pass

    def on_error(self, exc:BaseException) -> None:
        pass


class Backpack:
    """
    HT16K33 16x8 LED controller, used here as an 8 x uint16 display buffer.
    Wire protocol:
        oscillator on   0x21
        display setup   0x80 | on_bit | blink_rate << 1
        dimming         0xE0 | level (0 - 15)
        display RAM     block write at 0x00, 16 bytes, cell lo then hi
    """
    def __init__(self, bus:int=1, address:int=DEFAULT_ADDRESS, transport:HandlerI2C=None, observer:BackpackObserver=None):
        if not 0 <= address <= MAX_ADDRESS:
            raise ValueError(f'Address out of 7-bit range: {address}')
        self.address:int = address
        self.wire = HandlerI2C(index=bus) if transport is None else transport
        self.observer = observer
        self.state = DeviceState()
        self._buffer:list = [0] * BUFFER_SIZE
        self._status = DriverStatus.UNINITIALIZED
        logger.debug(f'initializing backpack at 0x{address:02x} on bus {bus}...')

    @property
    def status(self) -> DriverStatus:
        return self._status

    @property
    def buffer(self) -> tuple:
        """Snapshot of the display buffer"""
        return tuple(self._buffer)

    async def open(self) -> None:
        """
        Opens the bus then runs the startup sequence: oscillator on, blink off,
        default brightness, clear. Notifies the observer once, either way;
        on_error gets the underlying transport error, not the wrapper.
        Raises:
            BackpackStateError: open() already called
            TransportOpenError: bus could not be opened, nothing was sent
            StartupError: a startup step failed, later steps were not run
        """
        if self._status is not DriverStatus.UNINITIALIZED:
            raise BackpackStateError(f'open() called while {self._status.value}')
        self._status = DriverStatus.OPENING
        try:
            await self.wire.open()
        except Exception as e:
            self._fail(e)
            raise TransportOpenError(f'unable to open bus {self.wire.devpath}: {e}') from e
        logger.info(f'successfully opened the bus {self.wire.devpath}')

        logger.debug('initializing the segmented display...')
        try:
            await self.execute_command(HT16K33_CMD_OSCILLATOR | HT16K33_CMD_OSCILLATOR_ON, 'HT16K33_CMD_OSCILLATOR_ON')
            await self.set_blinkrate(Blinkrate.OFF)
            await self.set_brightness(DEFAULT_BRIGHTNESS)
            await self.clear()
        except Exception as e:
            logger.error(f'unable to complete system startup: {e}')
            cause = e.__cause__ if isinstance(e, CommandError) and e.__cause__ is not None else e
            self._fail(cause)
            raise StartupError(f'startup aborted at {getattr(e, "label", type(e).__name__)}') from e

        self._status = DriverStatus.READY
        logger.info('successfully initialized the segmented display.')
        if self.observer is not None:
            self.observer.on_ready()

    def _fail(self, exc:BaseException) -> None:
        self._status = DriverStatus.FAILED
        if self.observer is not None:
            self.observer.on_error(exc)

    async def set_blinkrate(self, rate) -> None:
        """Anything outside Blinkrate degrades to Blinkrate.OFF"""
        try:
            rate = Blinkrate(rate)
        except ValueError:
            rate = Blinkrate.OFF

        logger.debug(f'changing blinkrate to "{rate.name}"...')
        await self.execute_command(HT16K33_CMD_DISPLAY | self.state.on_bit | (rate << 1), 'HT16K33_CMD_DISPLAY')
        self.state.blink_rate = rate

    async def set_display(self, on:bool) -> None:
        """Turn the whole display on or off, keeping the current blink rate"""
        on_bit = HT16K33_CMD_DISPLAY_ON if on else HT16K33_CMD_DISPLAY_OFF
        logger.debug(f'turning display {"on" if on else "off"}...')
        await self.execute_command(HT16K33_CMD_DISPLAY | on_bit | (self.state.blink_rate << 1), 'HT16K33_CMD_DISPLAY')
        self.state.display_on = bool(on)

    async def set_brightness(self, brightness:int) -> None:
        """
        Args:
            brightness: 0 - 15, clamped. NaN or non-numeric input pins to 0
        """
        try:
            brightness = max(0, min(HT16K33_MAX_BRIGHTNESS, int(brightness)))
        except OverflowError:   #+-inf
            brightness = HT16K33_MAX_BRIGHTNESS if brightness > 0 else 0
        except (TypeError, ValueError):     #nan, None, non-numeric
            brightness = 0
        logger.debug(f'changing brightness to level {brightness}...')
        await self.execute_command(HT16K33_CMD_BRIGHTNESS | brightness, 'HT16K33_CMD_BRIGHTNESS')

    def set_buffer_block(self, block:int, value:int) -> None:
        """Updates a single 16-bit entry in the 8*16-bit buffer"""
        if not 0 <= block < BUFFER_SIZE:
            raise BufferRangeError(f'Buffer over- or underflow, tried to write block {block}, which is out of range of 0-{BUFFER_SIZE - 1}.')
        self._buffer[block] = value & 0xFFFF

    def to_bytes(self) -> bytes:
        """Buffer as 16 bytes, each cell low byte first"""
        payload = bytearray()
        for item in self._buffer:
            payload.append(item & 0xFF)
            payload.append((item >> 8) & 0xFF)
        return bytes(payload)

    async def write_display(self) -> None:
        logger.debug('writing buffer to display...')
        payload = self.to_bytes()
        try:
            written = await self.wire.write_block(self.address, HT16K33_DISPLAY_RAM, payload)
        except (I2CError, OSError) as e:
            logger.exception(f'unable to write buffer to 0x{self.address:02x}')
            raise CommandError('HT16K33_DISPLAY_RAM', f'unable to write buffer: {e}') from e
        logger.debug(f'successfully wrote buffer with size {written}')

    async def clear(self) -> None:
        for i in range(BUFFER_SIZE):
            self._buffer[i] = 0
        await self.write_display()

    async def execute_command(self, cmd:int, label:str='command', arg:int=0x00) -> None:
        """
        Execute a single command byte on the backpack. Every control command goes through here.
        Args:
            cmd: command byte
            label: name used in logs and in CommandError
            arg: optional argument byte
        Raises:
            CommandError: write was not acknowledged, not retried
        """
        command = Command(opcode=cmd & 0xFF, argument=arg & 0xFF, label=label)
        try:
            await self.wire.write_byte(self.address, command.opcode, command.argument)
        except (I2CError, OSError) as e:
            logger.exception(f'unable to execute command "{command.label}" (0x{command.opcode:02x})')
            raise CommandError(command.label, f'unable to execute command "{command.label}": {e}') from e
        logger.debug(f'successfully executed command "{command.label}" (0x{command.opcode:02x})')

    def close(self) -> None:
        self.wire.close()


if __name__ == "__main__":
    import sys

    FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s:%(funcName)s] %(message)s"
    logging.basicConfig(format=FORMAT, level=logging.DEBUG)

    async def main(bus:int, address:int):
        backpack = Backpack(bus=bus, address=address)
        await backpack.open()
        for block in range(BUFFER_SIZE):
            backpack.set_buffer_block(block, 0xFFFF)
        await backpack.write_display()
        await backpack.set_blinkrate(Blinkrate.NORMAL)
        await asyncio.sleep(3)
        await backpack.set_blinkrate(Blinkrate.OFF)
        await backpack.clear()
        backpack.close()

    bus = int(sys.argv[1]) if len(sys.argv) > 1 else 1
    address = int(sys.argv[2], 16) if len(sys.argv) > 2 else DEFAULT_ADDRESS
    asyncio.run(main(bus, address))
