"""Memory-mapped hardware registers in the $FF00-$FF7F range and IE."""

from __future__ import annotations

import logging

from .bits import BitField, BitfieldByte
from .timer import Timer

logger = logging.getLogger(__name__)

STAT = 0xFF41
LY = 0xFF44
OBP0 = 0xFF48
OBP1 = 0xFF49


class SerialControl(BitfieldByte):
    """SC ($FF02)."""

    __slots__ = ()
    clock_select = BitField(0)
    clock_speed = BitField(1)
    transfer_enable = BitField(7)


class InterruptFlags(BitfieldByte):
    """IF ($FF0F) and IE ($FFFF)."""

    __slots__ = ()
    vblank = BitField(0)
    lcd = BitField(1)
    timer = BitField(2)
    serial = BitField(3)
    joypad = BitField(4)


class LCDControl(BitfieldByte):
    """LCDC ($FF40)."""

    __slots__ = ()
    bg_window_enable = BitField(0)
    obj_enable = BitField(1)
    obj_size = BitField(2)
    bg_tile_map_area = BitField(3)
    bg_window_tilemap_area = BitField(4)
    window_enable = BitField(5)
    window_tilemap_area = BitField(6)
    lcd_enable = BitField(7)


class LCDStatus(BitfieldByte):
    """STAT ($FF41)."""

    __slots__ = ()
    ppu_mode = BitField(0, 2)
    lyc_eq_ly = BitField(2)
    m0_select = BitField(3)
    m1_select = BitField(4)
    m2_select = BitField(5)
    lyc_int_select = BitField(6)


class PaletteData(BitfieldByte):
    """BGP/OBP0/OBP1: four 2-bit shade indices."""

    __slots__ = ()
    id0 = BitField(0, 2)
    id1 = BitField(2, 2)
    id2 = BitField(4, 2)
    id3 = BitField(6, 2)


_REGISTERS = {
    0xFF01: "sb",
    0xFF02: "sc",
    0xFF0F: "iflags",
    0xFF40: "lcdc",
    0xFF41: "stat",
    0xFF42: "scy",
    0xFF43: "scx",
    0xFF44: "ly",
    0xFF45: "lyc",
    0xFF46: "dma",
    0xFF47: "bgp",
    0xFF48: "obp0",
    0xFF49: "obp1",
    0xFF4A: "wy",
    0xFF4B: "wx",
    0xFFFF: "ie",
}

_INVALID_READ = 0xFF


class HWRegs:
    """The I/O registers, with the timer registers delegated to a Timer."""

    def __init__(self, timer: Timer, is_cgb: bool = False) -> None:
        self.timer = timer
        self.sb = 0x00
        self.sc = SerialControl(0x7E)
        self.iflags = InterruptFlags(0xE1)
        self.lcdc = LCDControl(0x91)
        self.stat = LCDStatus(0x85)
        self.scy = 0x00
        self.scx = 0x00
        self.ly = 0x00
        self.lyc = 0x00
        self.dma = 0xFF
        self.bgp = PaletteData(0xFC)
        self.obp0 = PaletteData(0xFF)
        self.obp1 = PaletteData(0xFF)
        self.wy = 0x00
        self.wx = 0x00
        self.ie = InterruptFlags(0x00)

    def read(self, addr: int) -> int:
        """Read a register; unknown addresses read as $FF."""
        if 0xFF04 <= addr <= 0xFF07:
            return self.timer.read(addr)
        name = _REGISTERS.get(addr)
        if name is None:
            logger.debug("unimplemented or invalid io read at %#06x", addr)
            return _INVALID_READ
        return int(getattr(self, name))

    def write(self, addr: int, val: int) -> None:
        """Write a register, honouring read-only bits and ignored addresses."""
        val &= 0xFF
        if 0xFF04 <= addr <= 0xFF07:
            self.timer.write(addr, val)
            return

        if addr == STAT:
            # Writing STAT in HBlank/VBlank with the LCD on raises a STAT interrupt.
            if self.stat.ppu_mode < 2 and self.lcdc.lcd_enable == 1:
                self.iflags.lcd = 1
            new = LCDStatus(val)
            self.stat.lyc_int_select = new.lyc_int_select
            self.stat.m0_select = new.m0_select
            self.stat.m1_select = new.m1_select
            self.stat.m2_select = new.m2_select
            return

        if addr in (OBP0, OBP1):
            # The lowest shade of an object palette is always transparent.
            val &= ~3 & 0xFF

        name = _REGISTERS.get(addr)
        if name is None or addr == LY:
            logger.debug("unimplemented or invalid io write at %#06x", addr)
            return

        reg = getattr(self, name)
        if isinstance(reg, BitfieldByte):
            reg.assign(val)
        else:
            setattr(self, name, val)