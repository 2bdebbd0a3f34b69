#!/usr/bin/env python
"""seven_segment.py: digits, colon and time on a 7-segment display behind an HT16K33 backpack."""

import datetime
import logging

from backpack import DEFAULT_ADDRESS, Backpack, BackpackObserver

logger = logging.getLogger(__name__)

DOT_BIT = 7
COLON_BLOCK = 2     #colon has its own RAM row, shared with nothing
COLON_ON = 0x02

#Hexadecimal character lookup table (0..9, A..F)
DIGITS:tuple = (0x3F, 0x06, 0x5B, 0x4F, 0x66, 0x6D, 0x7D, 0x07, 0x7F, 0x6F, 0x77, 0x7C, 0x39, 0x5E, 0x79, 0x71)

#Map of ascii characters to segment patterns
NUMBER_TABLE:dict = {
    '0': 0x3F,
    '1': 0x06,
    '2': 0x5B,
    '3': 0x4F,
    '4': 0x66,
    '5': 0x6D,
    '6': 0x7D,
    '7': 0x07,
    '8': 0x7F,
    '9': 0x6F,
    'a': 0x77,
    'b': 0x7C,
    'C': 0x39,
    'd': 0x5E,
    'E': 0x79,
    'F': 0x71,
}

LAST_POSITION = 7


class SevenSegment:
    """
    4-digit 7-segment display with middle colon.
    Buffer positions: 0, 1 = left digits, 2 = colon, 3, 4 = right digits.
    Out of range positions / glyphs are ignored, not raised - the backpack's own
    set_buffer_block is the strict path.
    """
    def __init__(self, bus:int=0, address:int=DEFAULT_ADDRESS, backpack:Backpack=None, observer:BackpackObserver=None):
        self.display = Backpack(bus, address, observer=observer) if backpack is None else backpack

    async def open(self) -> None:
        await self.display.open()

    def write_digit(self, position:int, glyph:int, dot:int=0) -> None:
        """
        Sets a single decimal or hexadecimal value (0..9 and A..F)
        Args:
            position: buffer position 0 - 7
            glyph: index into DIGITS, 0 - 15
            dot: 1 to light the decimal point, only bit 0 counts
        """
        if not 0 <= position <= LAST_POSITION:
            return
        if not 0 <= glyph < len(DIGITS):
            return
        self.display.set_buffer_block(position, DIGITS[glyph] | ((dot & 0x01) << DOT_BIT))

    def write_digit_raw(self, position:int, value:int) -> None:
        """Sets a position using the raw 16-bit value"""
        if not 0 <= position <= LAST_POSITION:
            return
        self.display.set_buffer_block(position, value)

    def write_char(self, position:int, char:str, dot:bool=False) -> None:
        """Sets a position from NUMBER_TABLE, unknown characters are ignored"""
        pattern = NUMBER_TABLE.get(char)
        if pattern is None:
            return
        self.write_digit_raw(position, pattern | (int(bool(dot)) << DOT_BIT))

    def set_colon(self, state:bool) -> None:
        """
        Enables or disables the middle colon.
        WARN: overwrites anything else written to the colon position.
        """
        self.display.set_buffer_block(COLON_BLOCK, COLON_ON if state else 0)

    def write_time(self, when:datetime.datetime=None) -> None:
        """Write HH:MM into the buffer, defaults to now. Call flush() to show it."""
        when = datetime.datetime.now() if when is None else when
        hour, minute = when.hour, when.minute

        logger.debug(f'wrote time: {hour // 10}{hour % 10}:{minute // 10}{minute % 10}')

        # Hours
        self.write_digit(0, hour // 10)
        self.write_digit(1, hour % 10)

        # Minutes
        self.write_digit(3, minute // 10)
        self.write_digit(4, minute % 10)

        self.set_colon(True)

    async def clear(self) -> None:
        await self.display.clear()

    async def flush(self) -> None:
        """Write the current buffer to the display"""
        await self.display.write_display()

    def close(self) -> None:
        self.display.close()


if __name__ == "__main__":
    import asyncio
    import sys

    FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s:%(funcName)s] %(message)s"
    logging.basicConfig(format=FORMAT, level=logging.DEBUG)

    async def main(bus:int):
        clock = SevenSegment(bus=bus)
        await clock.open()
        try:
            while True:
                clock.write_time()
                await clock.flush()
                await asyncio.sleep(1)
        finally:
            clock.close()

    try:
        asyncio.run(main(int(sys.argv[1]) if len(sys.argv) > 1 else 1))
    except KeyboardInterrupt:
        pass
