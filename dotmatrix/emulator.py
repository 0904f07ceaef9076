"""The emulator core: ties the CPU, PPU, timer and memory together."""

from __future__ import annotations

import logging
import os
import sys
import time
from typing import TextIO

from . import rom
from .cpu import Cpu
from .memory import Memory
from .ppu import Ppu, State
from .timer import Timer

logger = logging.getLogger(__name__)

FRAME_TIME = 1 / 60
T_CYCLES_PER_M_CYCLE = 4

SERIAL_DATA = 0xFF01
SERIAL_CONTROL = 0xFF02
_SERIAL_TRANSFER_REQUEST = 0x81
_TIMER_INTERRUPT = 1 << 2


class Emulator:
    """A headless machine built around one cartridge image."""

    def __init__(self, rom_path: str | os.PathLike[str]) -> None:
        self.timer = Timer()
        self.memory = Memory(rom.load(rom_path), self.timer)
        self.cpu = Cpu(self.memory)
        self.ppu = Ppu(self.memory)
        # Bytes sent over the serial port are echoed here as they arrive.
        self.serial_stream: TextIO | None = sys.stderr
        self._serial: list[str] = []
        self._running = False
        self._limit_speed = False
        self._frame_start = time.monotonic()

    @property
    def running(self) -> bool:
        return self._running

    @property
    def serial_output(self) -> str:
        """Everything the program has sent over the serial port so far."""
        return "".join(self._serial)

    def start(self) -> None:
        """Prepare for stepping with :meth:`update` instead of :meth:`run`."""
        self._running = True
        self._limit_speed = False

    def run(self) -> None:
        """Run at full-frame pace until stopped or an instruction fails."""
        self._running = True
        self._limit_speed = True
        self._frame_start = time.monotonic()
        try:
            while self._running:
                self._core_update()
        except BaseException:
            self._running = False
            raise

    def update(self) -> bool:
        """Execute one instruction and the cycles it took."""
        if not self.cpu.update():
            return False
        return self.process_cycles(self.cpu.update_cycles)

    def set_dump(self, long_dump: bool, short_dump: bool = False) -> None:
        """Choose which CPU state dump is logged before each instruction."""
        self.cpu.dump_long = long_dump
        self.cpu.dump_short = short_dump

    def process_cycles(self, m_cycles: int) -> bool:
        """Advance the timer, PPU and DMA by ``m_cycles`` machine cycles."""
        for _ in range(m_cycles):
            for _ in range(T_CYCLES_PER_M_CYCLE):
                if self.timer.tick():
                    flags = self.memory.interrupt_flags
                    flags.assign(int(flags) | _TIMER_INTERRUPT)
                if self.ppu.update() is State.END_FRAME and self._limit_speed:
                    self._wait_for_frame()
            if self.memory.dma_active:
                self.memory.dma_transfer_tick()
        return True

    def _core_update(self) -> None:
        if not self.update():
            self._running = False
            return
        self._poll_serial()

    def _poll_serial(self) -> None:
        if self.memory.read(SERIAL_CONTROL) != _SERIAL_TRANSFER_REQUEST:
            return
        char = chr(self.memory.read(SERIAL_DATA))
        self._serial.append(char)
        self.memory.write(SERIAL_CONTROL, 0)
        if self.serial_stream is not None:
            self.serial_stream.write(char)
            self.serial_stream.flush()

    def _wait_for_frame(self) -> None:
        elapsed = time.monotonic() - self._frame_start
        if elapsed < FRAME_TIME:
            time.sleep(FRAME_TIME - elapsed)
        self._frame_start = time.monotonic()