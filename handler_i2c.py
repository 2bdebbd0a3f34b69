#!/usr/bin/env python
"""handler_i2c.py: asyncio wrapper for I2C from periphery."""

import asyncio
import functools
import logging

from periphery import I2C   #write_bytes direct - reference - #https://python-periphery.readthedocs.io/en/latest/i2c.html
from periphery.i2c import I2CError

logger = logging.getLogger(__name__)

MAX_ADDRESS = 0x7F  #7-bit addressing only


class HandlerI2C:
    """Wrapper for I2C from periphery that runs each blocking transfer in the loop's executor.

    One awaitable per bus call, completes exactly once. No queueing: callers await
    each call before issuing the next."""
    def __init__(self, index:int=1):
        self.index:int = index
        self.exists:bool = False    #set once open() succeeds
        self.bus = None

    @property
    def devpath(self) -> str:
        return f"/dev/i2c-{self.index}"

    async def open(self) -> None:
        """Creates instance of I2C peripheral bus, raises I2CError / OSError from periphery on failure"""
        loop = asyncio.get_running_loop()
        try:
            bus = await loop.run_in_executor(None, I2C, self.devpath)
        except (I2CError, OSError) as e:
            logger.exception(f'Check i2cbus enabled & index - Typically 1 on RPi, arg was {self.index}: {e} - {e.args}')
            self.exists = False
            raise
        self.bus = bus
        self.exists = True
        logger.info(f'Bus created: {self.devpath}')

    async def write_byte(self, address:int, command:int, value:int=0x00) -> None:
        """Single write transaction: [command, value]
        Args:
            address: i2c address (0 - 127)
            command: command / register byte
            value: data byte following the command
        """
        await self._transfer(address, [command & 0xFF, value & 0xFF])

    async def write_block(self, address:int, register:int, data) -> int:
        """Single write transaction: [register, *data]
        Returns:
            number of data bytes written"""
        payload:list = [register & 0xFF] + [b & 0xFF for b in data]
        await self._transfer(address, payload)
        return len(payload) - 1

    def close(self) -> None:
        if self.bus is not None:
            self.bus.close()
            logger.info(f'Bus closed: {self.devpath}')
        self.bus = None
        self.exists = False

    async def _transfer(self, address:int, payload:list) -> None:
        if self.bus is None:
            raise RuntimeError(f'{self.devpath} not open - await open() first')
        if not 0 <= address <= MAX_ADDRESS:
            raise ValueError(f'Address out of 7-bit range: 0x{address:02x}')
        msgs:list = [I2C.Message(payload)]
        loop = asyncio.get_running_loop()
        #periphery.i2c.I2CError: [Errno 121] I2C transfer: Remote I/O error
        await loop.run_in_executor(None, functools.partial(self.bus.transfer, address, msgs))


if __name__ == "__main__":
    FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s:%(funcName)s] %(message)s"
    logging.basicConfig(format=FORMAT, level=logging.DEBUG)

    async def main():
        handler_i2c = HandlerI2C(index=1)
        await handler_i2c.open()
        logger.info(f'Opened {handler_i2c.devpath}, exists: {handler_i2c.exists}')
        handler_i2c.close()

    asyncio.run(main())
