"""The divider and timer registers ($FF04-$FF07)."""

from __future__ import annotations

from .bits import BitField, BitfieldByte

DIV = 0xFF04
TIMA = 0xFF05
TMA = 0xFF06
TAC = 0xFF07

# Bit of the internal counter watched for a falling edge, per clock select.
_INC_RATE = (256 << 1, 4 << 1, 16 << 1, 64 << 1)


class TimerControl(BitfieldByte):
    """TAC: clock select and enable."""

    __slots__ = ()
    clock_select = BitField(0, 2)
    enable = BitField(2)


class Timer:
    """Internal 16-bit divider plus the TIMA/TMA/TAC registers."""

    def __init__(self, is_cgb: bool = False) -> None:
        self.div_whole = 0x0000 if is_cgb else 0xAB00
        self.tima = 0x00
        self.tma = 0x00
        self.tac = TimerControl(0xF8)

    @property
    def div(self) -> int:
        """The byte the DIV register exposes (the low byte of the counter)."""
        return self.div_whole & 0xFF

    def tick(self) -> bool:
        """Advance one T-cycle. Return True when a timer interrupt is requested."""
        prev = self.div_whole
        self.div_whole = (self.div_whole + 1) & 0xFFFF

        if not self.tac.enable:
            return False

        rate = _INC_RATE[self.tac.clock_select]
        if prev & rate and not self.div_whole & rate:
            return self._increment()
        return False

    def _increment(self) -> bool:
        self.tima = (self.tima + 1) & 0xFF
        if self.tima == 0xFF:
            self.tima = self.tma
            return True
        return False

    def read(self, addr: int) -> int:
        """Read one of the timer registers."""
        if addr == DIV:
            return self.div
        if addr == TIMA:
            return self.tima
        if addr == TMA:
            return self.tma
        if addr == TAC:
            return int(self.tac)
        raise ValueError(f"invalid timer read at {addr:#06x}")

    def write(self, addr: int, data: int) -> None:
        """Write one of the timer registers; any write to DIV resets it."""
        data &= 0xFF
        if addr == DIV:
            self.div_whole = 0
        elif addr == TIMA:
            self.tima = data
        elif addr == TMA:
            self.tma = data
        elif addr == TAC:
            self.tac.assign(data)
        else:
            raise ValueError(f"invalid timer write at {addr:#06x}")