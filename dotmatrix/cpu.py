"""The SM83 processor core: register file, fetch/execute loop and interrupts."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from .decoder import InvalidOpcodeError, decode

logger = logging.getLogger(__name__)

_INTERRUPT_COUNT = 5
_INTERRUPT_VECTOR_BASE = 0x40


class Flags:
    """The flag register F: zero, subtract, half carry and carry in bits 7 to 4."""

    __slots__ = ("zero", "subtract", "half_carry", "carry")

    def __init__(self, zero: int = 0, subtract: int = 0, half_carry: int = 0, carry: int = 0) -> None:
        self.set_all(zero, subtract, half_carry, carry)

    def __setattr__(self, name: str, value: object) -> None:
        object.__setattr__(self, name, int(bool(value)))

    def __int__(self) -> int:
        return self.zero << 7 | self.subtract << 6 | self.half_carry << 5 | self.carry << 4

    def __index__(self) -> int:
        return int(self)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, (Flags, int)):
            return int(self) == int(other)
        return NotImplemented

    __hash__ = None  # mutable

    def load(self, value: int) -> Flags:
        """Set all four flags from the high nibble of a byte."""
        value = int(value)
        self.zero = value & 0x80
        self.subtract = value & 0x40
        self.half_carry = value & 0x20
        self.carry = value & 0x10
        return self

    def set_all(self, z: object, n: object, h: object, c: object) -> None:
        """Set every flag at once."""
        self.zero = z
        self.subtract = n
        self.half_carry = h
        self.carry = c

    def __repr__(self) -> str:
        return (f"Flags(zero={self.zero}, subtract={self.subtract}, "
                f"half_carry={self.half_carry}, carry={self.carry})")


@dataclass
class RegisterFile:
    """The CPU registers, with the 16-bit pairs exposed as properties."""

    pc: int = 0
    sp: int = 0
    a: int = 0
    f: Flags = field(default_factory=Flags)
    b: int = 0
    c: int = 0
    d: int = 0
    e: int = 0
    h: int = 0
    l: int = 0  # noqa: E741

    @property
    def af(self) -> int:
        return (self.a << 8) | int(self.f)

    @af.setter
    def af(self, value: int) -> None:
        self.a = (value >> 8) & 0xFF
        self.f.load(value & 0xFF)

    @property
    def bc(self) -> int:
        return (self.b << 8) | self.c

    @bc.setter
    def bc(self, value: int) -> None:
        self.b = (value >> 8) & 0xFF
        self.c = value & 0xFF

    @property
    def de(self) -> int:
        return (self.d << 8) | self.e

    @de.setter
    def de(self, value: int) -> None:
        self.d = (value >> 8) & 0xFF
        self.e = value & 0xFF

    @property
    def hl(self) -> int:
        return (self.h << 8) | self.l

    @hl.setter
    def hl(self, value: int) -> None:
        self.h = (value >> 8) & 0xFF
        self.l = value & 0xFF

    def hl_plus(self) -> int:
        """Return hl, then increment it."""
        value = self.hl
        self.hl = (value + 1) & 0xFFFF
        return value

    def hl_minus(self) -> int:
        """Return hl, then decrement it."""
        value = self.hl
        self.hl = (value - 1) & 0xFFFF
        return value


class Cpu:
    """Fetches, decodes and executes instructions and dispatches interrupts."""

    def __init__(self, memory) -> None:
        self.memory = memory
        # Register values left behind by the DMG boot ROM.
        self.reg = RegisterFile(
            pc=0x0100, sp=0xFFFE, a=0x01, f=Flags(1, 0, 1, 1),
            b=0x00, c=0x13, d=0x00, e=0xD8, h=0x01, l=0x4D,
        )
        self.ir = memory.read(0x0100)
        # Whether to log the state of the CPU before each instruction.
        self.dump_long = True
        self.dump_short = True
        self._m_cycles = 0
        self._handler: Callable | None = None
        self._halted = False
        self._hung = False
        self._ime = False
        self._enabling_ime = False

    @property
    def update_cycles(self) -> int:
        """M-cycles taken by the most recent update."""
        return self._m_cycles

    @property
    def halted(self) -> bool:
        return self._halted

    @property
    def hung(self) -> bool:
        return self._hung

    @property
    def ime(self) -> bool:
        """The interrupt master enable flag."""
        return self._ime

    def update(self) -> bool:
        """Run one instruction (or one halted cycle) and service interrupts.

        Raises InvalidOpcodeError, after hanging the CPU, on an undefined opcode.
        """
        self._m_cycles = 0

        if self._halted:
            self.m_cycle()
            if int(self.memory.interrupt_enable) & int(self.memory.interrupt_flags):
                self._halted = False
        else:
            if logger.isEnabledFor(logging.DEBUG):
                if self.dump_long:
                    logger.debug("%s", self.long_dump())
                elif self.dump_short:
                    logger.debug("%s", self.short_dump())
            self._fetch()
            self._execute()

        if self._ime:
            self._handle_interrupts()
        elif self._enabling_ime:
            self._ime = True

        return True

    def _fetch(self) -> None:
        self.ir = self.memory.read(self.reg.pc)
        self.reg.pc = (self.reg.pc + 1) & 0xFFFF
        self.m_cycle()
        try:
            op = decode(self.ir)
        except InvalidOpcodeError:
            self.hang()
            raise
        self._handler = op.handler

    def _execute(self) -> None:
        if self._handler is None:
            raise RuntimeError("no instruction has been fetched")
        self._handler(self, self.memory)

    def _handle_interrupts(self) -> None:
        self._enabling_ime = False
        self.m_cycle(1)

        enabled = int(self.memory.interrupt_enable)
        requested = self.memory.interrupt_flags
        for i in range(_INTERRUPT_COUNT):
            bit = 1 << i
            if enabled & bit and int(requested) & bit:
                self._ime = False
                self._halted = False
                self.push_stack(self.reg.pc)
                self.reg.pc = _INTERRUPT_VECTOR_BASE + i * 8
                requested.assign(int(requested) & ~bit)
                self.m_cycle()
                return

    def _pair_named(self, reg16: int) -> str:
        for name in ("bc", "de", "hl"):
            if getattr(self.reg, name) == reg16:
                return name
        raise ValueError(f"{reg16:#06x} is the value of no register pair")

    def inc(self, reg16: int) -> None:
        """Increment the register pair (bc, de or hl) currently holding ``reg16``."""
        name = self._pair_named(reg16)
        setattr(self.reg, name, (reg16 + 1) & 0xFFFF)

    def dec(self, reg16: int) -> None:
        """Decrement the register pair (bc, de or hl) currently holding ``reg16``."""
        name = self._pair_named(reg16)
        setattr(self.reg, name, (reg16 - 1) & 0xFFFF)

    def push_stack(self, value: int) -> None:
        """Push a 16-bit value, high byte first."""
        self.m_cycle()
        self.reg.sp = (self.reg.sp - 1) & 0xFFFF
        self.memory.write(self.reg.sp, (value >> 8) & 0xFF)
        self.m_cycle()
        self.reg.sp = (self.reg.sp - 1) & 0xFFFF
        self.memory.write(self.reg.sp, value & 0xFF)
        self.m_cycle()

    def pop_stack(self) -> int:
        """Pop a 16-bit value, low byte first."""
        lo = self.memory.read(self.reg.sp)
        self.reg.sp = (self.reg.sp + 1) & 0xFFFF
        self.m_cycle()
        hi = self.memory.read(self.reg.sp)
        self.reg.sp = (self.reg.sp + 1) & 0xFFFF
        self.m_cycle()
        return (hi << 8) | lo

    def m_cycle(self, cycles: int = 1) -> None:
        """Account for ``cycles`` machine cycles."""
        self._m_cycles += cycles

    def halt(self) -> None:
        """Stop executing until an enabled interrupt is requested."""
        self._halted = True

    def hang(self) -> None:
        """Lock the CPU up, as an undefined opcode does."""
        logger.error("CPU hung on opcode %#04x", self.ir)
        self._handler = None
        self._hung = True

    def enable_interrupts(self) -> None:
        self._enabling_ime = True

    def disable_interrupts(self) -> None:
        self._enabling_ime = False
        self._ime = False

    def force_enable_interrupts(self) -> None:
        self._ime = True

    def long_dump(self) -> str:
        """A multi-line description of the CPU state."""
        reg = self.reg
        data = self.memory.read(reg.pc)
        ie = int(self.memory.interrupt_enable)
        return (
            "\n---Current CPU State---\n"
            f"pc ({reg.pc:#06x}): {data:#04x}\n"
            f"flags: {int(reg.f) >> 4:04b}\n"
            f"registers: a: {reg.a:#04x}, bc: {reg.bc:#06x}, de: {reg.de:#06x}, hl: {reg.hl:#06x}\n"
            f"ir: {self.ir:#010b}\tie: {ie:#010b}\n"
        )

    def short_dump(self) -> str:
        """A one-line description of the CPU state and the next four bytes at pc."""
        reg = self.reg
        pcmem = ",".join(f"{self.memory.read((reg.pc + i) & 0xFFFF):02X}" for i in range(4))
        return (
            f"A:{reg.a:02X} F:{int(reg.f):02X} B:{reg.b:02X} C:{reg.c:02X} "
            f"D:{reg.d:02X} E:{reg.e:02X} H:{reg.h:02X} L:{reg.l:02X} "
            f"SP:{reg.sp:04X} PC:{reg.pc:04X} PCMEM:{pcmem}"
        )