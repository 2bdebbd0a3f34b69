import asyncio
import datetime

import pytest

from backpack import Backpack
from seven_segment import DIGITS, NUMBER_TABLE, SevenSegment


@pytest.fixture
def segment(transport):
    return SevenSegment(backpack=Backpack(transport=transport))


def test_tables():
    assert len(DIGITS) == 16
    assert DIGITS[0] == 0x3F and DIGITS[0xF] == 0x71
    assert [NUMBER_TABLE[c] for c in '0123456789abCdEF'] == list(DIGITS)


def test_write_digit_zero(segment):
    segment.write_digit(1, 0)
    assert segment.display.buffer[1] == 0x3F


def test_write_digit_with_dot(segment):
    segment.write_digit(1, 0, dot=1)
    assert segment.display.buffer[1] == 0xBF


@pytest.mark.parametrize('position, glyph', [(-1, 0), (8, 0), (0, 16), (0, -1)])
def test_write_digit_out_of_range_is_ignored(segment, position, glyph):
    segment.write_digit(position, glyph)
    assert segment.display.buffer == (0,) * 8


def test_write_digit_raw(segment):
    segment.write_digit_raw(7, 0xFFFF)
    segment.write_digit_raw(8, 0xFFFF)
    assert segment.display.buffer == (0,) * 7 + (0xFFFF,)


def test_write_char(segment):
    segment.write_char(0, 'E')
    segment.write_char(1, 'd', dot=True)
    segment.write_char(3, 'z')
    assert segment.display.buffer[:4] == (0x79, 0xDE, 0, 0)


def test_colon_round_trip(segment):
    segment.write_digit(2, 8)
    segment.set_colon(True)
    assert segment.display.buffer[2] == 0x02
    segment.set_colon(False)
    assert segment.display.buffer[2] == 0


def test_write_time(segment):
    segment.write_time(datetime.datetime(2024, 5, 1, 9, 47))
    assert segment.display.buffer == (DIGITS[0], DIGITS[9], 0x02, DIGITS[4], DIGITS[7], 0, 0, 0)


def test_write_time_defaults_to_now(segment):
    segment.write_time()
    assert segment.display.buffer[2] == 0x02
    assert segment.display.buffer[0] in DIGITS[:3]


def test_flush_writes_buffer(transport, segment):
    asyncio.run(segment.open())
    transport.writes.clear()
    segment.write_time(datetime.datetime(2024, 5, 1, 23, 59))
    asyncio.run(segment.flush())
    (kind, _, payload), = transport.writes
    assert kind == 'block'
    assert payload[1:11] == bytes([0x5B, 0, 0x4F, 0, 0x02, 0, 0x6D, 0, 0x6F, 0])


def test_clear_delegates(transport, segment):
    segment.write_digit(0, 8)
    asyncio.run(segment.open())
    segment.write_digit(0, 8)
    transport.writes.clear()
    asyncio.run(segment.clear())
    assert transport.writes == [('block', 0x70, bytes(17))]
    segment.close()
    assert transport.closed is True


def test_default_backpack_address(fake_i2c):
    segment = SevenSegment()
    assert segment.display.address == 0x70
    assert segment.display.wire.devpath == '/dev/i2c-0'


def test_write_digit_uses_low_bit_of_dot(segment):
    segment.write_digit(0, 1, dot=3)
    segment.write_digit(1, 1, dot=2)
    assert segment.display.buffer[:2] == (0x86, 0x06)
