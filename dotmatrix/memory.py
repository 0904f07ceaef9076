"""The address space: cartridge, video RAM, work RAM, OAM, I/O and high RAM."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from .bits import (
    ECHO_RAM_END,
    HEADER_END,
    HRAM_END,
    IO_END,
    OAM_END,
    RAM_CART_END,
    RAMN_END,
    REG_IE,
    ROMN_END,
    UNUSABLE_END,
    VRAM_END,
    BitField,
    BitfieldByte,
)
from .hwregs import HWRegs, InterruptFlags
from .mapper import MapperChip, MapperInfo, create_mapper, mapper_chip_type
from .timer import Timer

logger = logging.getLogger(__name__)

DMA_REGISTER = 0xFF46
_DMA_LENGTH = 0xA0
_INVALID_READ = 0xFF
_OAM_BASE = 0xFE00


class AttribFlags(BitfieldByte):
    """Byte 3 of an object attribute entry."""

    __slots__ = ()
    cgb_palette = BitField(0, 3)
    cgb_bank = BitField(3)
    dmg_palette = BitField(4)
    x_flip = BitField(5)
    y_flip = BitField(6)
    priority = BitField(7)


class ObjectAttribute:
    """One four-byte OAM entry describing a movable object."""

    __slots__ = ("data",)

    def __init__(self, data: Iterable[int] = (0, 0, 0, 0)) -> None:
        self.data = bytearray(data)
        if len(self.data) != 4:
            raise ValueError("an object attribute is exactly four bytes")

    def __getitem__(self, index: int) -> int:
        return self.data[index]

    def __setitem__(self, index: int, value: int) -> None:
        self.data[index] = value & 0xFF

    @property
    def y_pos(self) -> int:
        """Y position plus 16."""
        return self.data[0]

    @y_pos.setter
    def y_pos(self, value: int) -> None:
        self.data[0] = value & 0xFF

    @property
    def x_pos(self) -> int:
        """X position plus 8."""
        return self.data[1]

    @x_pos.setter
    def x_pos(self, value: int) -> None:
        self.data[1] = value & 0xFF

    @property
    def tile_index(self) -> int:
        return self.data[2]

    @tile_index.setter
    def tile_index(self, value: int) -> None:
        self.data[2] = value & 0xFF

    @property
    def attribs(self) -> AttribFlags:
        return AttribFlags(self.data[3])

    @attribs.setter
    def attribs(self, value: int) -> None:
        self.data[3] = int(value) & 0xFF


@dataclass
class DMATransfer:
    """Progress of an OAM DMA transfer."""

    src_addr: int = 0
    active: bool = True
    cur_byte: int = 0


class MemoryAccessError(Exception):
    """A read from an address that has nothing behind it."""


class Memory:
    """The 16-bit address space seen by the CPU."""

    def __init__(self, rom: bytes, timer: Timer) -> None:
        self._rom = bytes(rom)
        if len(self._rom) < HEADER_END:
            raise ValueError("ROM is too small to hold a cartridge header")
        self.io = HWRegs(timer)
        self.vram = bytearray(0x2000)
        self.hram = bytearray(0x80)
        self.oam = [ObjectAttribute() for _ in range(40)]
        self.wram = bytearray(0x2000)
        self.mapper: MapperInfo = create_mapper(self._rom[0x0147], self._rom[0x0149])
        self.mapper_chip: MapperChip = mapper_chip_type(self._rom[0x0147])
        self.dma = DMATransfer(active=False)

    @property
    def dma_active(self) -> bool:
        return self.dma.active

    @property
    def interrupt_flags(self) -> InterruptFlags:
        return self.io.iflags

    @property
    def interrupt_enable(self) -> InterruptFlags:
        return self.io.ie

    @property
    def ppu_mode(self) -> int:
        return self.io.stat.ppu_mode

    def __getitem__(self, addr: int) -> int:
        return self.read(addr)

    def __setitem__(self, addr: int, val: int) -> None:
        self.write(addr, val)

    def _blocked_by_dma(self, addr: int) -> bool:
        # During OAM DMA the CPU can only reach high RAM.
        return self.dma.active and (addr < IO_END or addr == REG_IE)

    def read_rom(self, addr: int) -> int:
        """Byte at a physical ROM offset, bypassing the mapper."""
        return self._rom[addr]

    def debug_read_vram(self, addr: int) -> int:
        """Read VRAM regardless of PPU mode or DMA."""
        return self.vram[addr - 0x8000]

    def read(self, addr: int) -> int:
        """Read a byte as the CPU would see it."""
        addr &= 0xFFFF
        if self._blocked_by_dma(addr):
            return _INVALID_READ

        if addr < ROMN_END:
            try:
                value = self.mapper.read_rom(self._rom, addr)
            except IndexError:
                value = None
            if value is not None:
                return value
        elif addr < VRAM_END:
            if self.io.stat.ppu_mode == 3:
                return _INVALID_READ
            return self.vram[addr - 0x8000]
        elif addr < RAM_CART_END:
            value = self.mapper.read_ram(addr)
            if value is not None:
                return value
        elif addr < RAMN_END:
            return self.wram[addr - 0xC000]
        elif addr < ECHO_RAM_END:
            return self.wram[addr - 0xE000]
        elif addr < OAM_END:
            if self.io.stat.ppu_mode in (2, 3):
                return _INVALID_READ
            offset = addr - _OAM_BASE
            return self.oam[offset // 4][offset % 4]
        elif addr < UNUSABLE_END:
            pass
        elif addr < IO_END:
            return self.io.read(addr)
        elif addr < HRAM_END:
            return self.hram[addr - 0xFF80]
        else:
            return int(self.io.ie)

        raise MemoryAccessError(f"unimplemented or invalid memory access at {addr:#06x}")

    def write(self, addr: int, val: int) -> None:
        """Write a byte as the CPU would; writes with no effect are ignored."""
        addr &= 0xFFFF
        val &= 0xFF
        if self._blocked_by_dma(addr):
            return

        if addr < ROMN_END:
            if self.mapper.attempt_write_ram(addr, val):
                return
        elif addr < VRAM_END:
            self.vram[addr - 0x8000] = val
            return
        elif addr < RAM_CART_END:
            if self.mapper.attempt_write_ram(addr, val):
                return
        elif addr < RAMN_END:
            self.wram[addr - 0xC000] = val
            return
        elif addr < ECHO_RAM_END:
            self.wram[addr - 0xE000] = val
            return
        elif addr < OAM_END:
            if self.io.stat.ppu_mode in (2, 3):
                return
            offset = addr - _OAM_BASE
            self.oam[offset // 4][offset % 4] = val
            return
        elif addr < UNUSABLE_END:
            pass
        elif addr < IO_END:
            if addr == DMA_REGISTER:
                self.dma = DMATransfer(src_addr=val)
            self.io.write(addr, val)
            return
        elif addr < HRAM_END:
            self.hram[addr - 0xFF80] = val
            return
        else:
            self.io.ie.assign(val)
            return

        logger.debug("unimplemented or invalid memory write at %#06x", addr)

    def dma_transfer_tick(self) -> None:
        """Copy the next byte of an active OAM DMA transfer."""
        if not self.dma.active:
            raise RuntimeError("no DMA transfer is active")
        src = self.dma.src_addr * 0x100
        self.write(_OAM_BASE + self.dma.cur_byte, self.read(src + self.dma.cur_byte))
        self.dma.cur_byte += 1
        if self.dma.cur_byte == _DMA_LENGTH:
            self.dma.active = False