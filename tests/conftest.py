"""Fakes for the I2C transport and for periphery's I2C class."""
import pytest
from periphery import I2C
from periphery.i2c import I2CError

import handler_i2c


def remote_io_error() -> I2CError:
    return I2CError(121, 'I2C transfer: Remote I/O error')


class FakeTransport:
    """Stands in for HandlerI2C, records every write as (kind, address, bytes)"""
    def __init__(self, fail_open:bool=False, fail_at:int=None, error:Exception=None):
        self.fail_open = fail_open
        self.fail_at = fail_at      #index of the write call to reject
        self.error = error          #raised instead of I2CError when set
        self.opened = 0
        self.closed = False
        self.writes:list = []
        self.attempts:int = 0

    devpath = '/dev/i2c-fake'

    async def open(self) -> None:
        self.opened += 1
        if self.fail_open:
            raise self.error or remote_io_error()

    async def write_byte(self, address:int, command:int, value:int=0x00) -> None:
        self._check()
        self.writes.append(('byte', address, bytes([command, value])))

    async def write_block(self, address:int, register:int, data) -> int:
        self._check()
        self.writes.append(('block', address, bytes([register]) + bytes(data)))
        return len(data)

    def close(self) -> None:
        self.closed = True

    def _check(self) -> None:
        attempt = self.attempts
        self.attempts += 1
        if self.fail_at is not None and attempt == self.fail_at:
            raise self.error or remote_io_error()

    @property
    def opcodes(self) -> list:
        return [payload[0] for kind, _, payload in self.writes if kind == 'byte']


class FakeI2C:
    """Replaces periphery.I2C inside handler_i2c"""
    Message = I2C.Message
    instances:list = []
    fail_open = False
    fail_transfer = False

    def __init__(self, devpath:str):
        if FakeI2C.fail_open:
            raise I2CError(2, 'Opening I2C device: No such file or directory')
        self.devpath = devpath
        self.transfers:list = []
        self.closed = False
        FakeI2C.instances.append(self)

    def transfer(self, address:int, messages:list) -> None:
        if FakeI2C.fail_transfer:
            raise remote_io_error()
        self.transfers.append((address, [bytes(m.data) for m in messages]))

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def fake_i2c(monkeypatch):
    FakeI2C.instances = []
    FakeI2C.fail_open = False
    FakeI2C.fail_transfer = False
    monkeypatch.setattr(handler_i2c, 'I2C', FakeI2C)
    return FakeI2C
