"""The picture processing unit's mode state machine."""

from __future__ import annotations

import enum

from .hwregs import PaletteData
from .memory import Memory

LYC = 0xFF45
BGP = 0xFF47

LINE_MAX = 153
VBLANK_START = 144
DOTS_PER_LINE = 456
HBLANK_MAX_DOTS = 376 - 172
OAM_SCAN_DOTS = 80
PIXEL_DRAW_MAX_DOTS = 289

# RGBA shades for the four monochrome colour indices, lightest first.
DMG_COLORS = (
    (1.0, 1.0, 1.0, 1.0),
    (0.6666, 0.6666, 0.6666, 1.0),
    (0.3333, 0.3333, 0.3333, 1.0),
    (0.0, 0.0, 0.0, 1.0),
)


class State(enum.Enum):
    PROCESSING = 0
    END_FRAME = 1


class Mode(enum.IntEnum):
    HBLANK = 0
    VBLANK = 1
    OAM_SCAN = 2
    PIXEL_DRAW = 3


class Palette(enum.IntEnum):
    BGP = 0
    OBP0 = 1
    OBP1 = 2


class Ppu:
    """Steps the LCD through its modes one dot at a time."""

    def __init__(self, memory: Memory) -> None:
        self._memory = memory
        self._dot = 0
        self._pixel_draw_dots = PIXEL_DRAW_MAX_DOTS
        self.mode = Mode.OAM_SCAN

    @property
    def dot(self) -> int:
        return self._dot

    @property
    def mode(self) -> Mode:
        return Mode(self._memory.io.stat.ppu_mode)

    @mode.setter
    def mode(self, new_mode: Mode) -> None:
        io = self._memory.io
        io.stat.ppu_mode = new_mode
        if new_mode is Mode.VBLANK:
            io.iflags.vblank = 1
        if new_mode is not Mode.PIXEL_DRAW:
            stat_int_bit = (1 << 3) << int(new_mode)
            if int(io.stat) & stat_int_bit:
                io.iflags.lcd = 1

    def update(self) -> State:
        """Advance one dot. Return END_FRAME on entering VBlank."""
        io = self._memory.io
        mode = self.mode

        if mode is Mode.HBLANK:
            if self._dot != DOTS_PER_LINE:
                self._dot += 1
                return State.PROCESSING
            self._update_line()
            self._dot = 0
            if io.ly == VBLANK_START:
                self.mode = Mode.VBLANK
                return State.END_FRAME
            self.mode = Mode.OAM_SCAN
        elif mode is Mode.VBLANK:
            if self._dot != DOTS_PER_LINE:
                self._dot += 1
                return State.PROCESSING
            if io.ly == LINE_MAX:
                self.mode = Mode.OAM_SCAN
                io.ly = 0
            else:
                self._update_line()
            self._dot = 0
        elif mode is Mode.OAM_SCAN:
            if self._dot == OAM_SCAN_DOTS:
                self.mode = Mode.PIXEL_DRAW
            else:
                self._dot += 1
        else:
            if self._dot == self._pixel_draw_dots:
                self.mode = Mode.HBLANK
            else:
                self._dot += 1

        return State.PROCESSING

    def _update_line(self) -> None:
        io = self._memory.io
        io.ly = (io.ly + 1) & 0xFF
        if io.ly == self._memory.read(LYC):
            io.stat.lyc_eq_ly = 1
            if io.stat.lyc_int_select == 1:
                io.iflags.lcd = 1
        else:
            io.stat.lyc_eq_ly = 0

    def get_palette(self, palette: Palette) -> PaletteData:
        """The shade indices of one palette register."""
        return PaletteData(self._memory.read(BGP + int(palette)))

    def set_palette(self, palette: Palette, data: int) -> None:
        """Write one palette register."""
        self._memory.write(BGP + int(palette), int(data))