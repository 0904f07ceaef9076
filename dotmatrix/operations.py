"""Operand decoding, ALU helpers and the load and arithmetic instruction handlers.

Every handler takes the CPU and the memory it is attached to. The CPU exposes
``reg``, which holds the 8-bit registers ``a`` to ``l``, ``sp``, ``pc``, the flags
``f`` and the 16-bit pairs ``af``, ``bc``, ``de`` and ``hl``. It also exposes the
instruction register ``ir`` and the methods ``m_cycle``, ``push_stack`` and
``pop_stack``.
"""

from __future__ import annotations

# Register order used by the three-bit r8 operand field; 6 means [hl].
_R8_NAMES = ("b", "c", "d", "e", "h", "l", None, "a")
_INDIRECT_HL = 6

# Register order of the two-bit r16 and r16stk operand fields.
_R16 = ("bc", "de", "hl", "sp")
_R16_STK = ("bc", "de", "hl", "af")


class R8Operand:
    """An 8-bit operand: a register, or the byte that hl points at."""

    __slots__ = ("cpu", "memory", "index", "name")

    def __init__(self, cpu, memory, index: int) -> None:
        if not 0 <= index < len(_R8_NAMES):
            raise ValueError(f"r8 operand index {index} is out of range")
        self.cpu = cpu
        self.memory = memory
        self.index = index
        self.name = _R8_NAMES[index]

    @property
    def indirect(self) -> bool:
        """True when the operand is the memory byte addressed by hl."""
        return self.index == _INDIRECT_HL

    @property
    def value(self) -> int:
        if self.indirect:
            return self.memory.read(self.cpu.reg.hl)
        return getattr(self.cpu.reg, self.name)

    def assign(self, value: int) -> R8Operand:
        """Store a byte. Writing through hl takes one extra M-cycle."""
        value = int(value) & 0xFF
        if self.indirect:
            self.memory.write(self.cpu.reg.hl, value)
            self.cpu.m_cycle(1)
        else:
            setattr(self.cpu.reg, self.name, value)
        return self

    def __repr__(self) -> str:
        return f"R8Operand({'[hl]' if self.indirect else self.name})"


def _check_carry(carry: int) -> int:
    carry = int(carry)
    if carry not in (0, 1):
        raise ValueError(f"carry must be 0 or 1, not {carry}")
    return carry


def add_bytes_flags(b1: int, b2: int, carry: int = 0) -> tuple[bool, bool]:
    """Half-carry and carry of ``b1 + b2 + carry``."""
    carry = _check_carry(carry)
    return (
        (b1 & 0x0F) + (b2 & 0x0F) + carry >= 0x10,
        b1 + b2 + carry >= 0x100,
    )


def add_bytes(b1: int, b2: int, carry: int = 0) -> tuple[int, bool, bool]:
    """The byte sum ``b1 + b2 + carry`` with its half-carry and carry."""
    h, c = add_bytes_flags(b1, b2, carry)
    return (b1 + b2 + int(carry)) & 0xFF, h, c


def sub_bytes_flags(b1: int, b2: int, carry: int = 0) -> tuple[bool, bool]:
    """Half-borrow and borrow of ``b1 - b2 - carry``."""
    carry = _check_carry(carry)
    return (
        (b1 & 0x0F) - (b2 & 0x0F) - carry < 0,
        b2 + carry > b1,
    )


def sub_bytes(b1: int, b2: int, carry: int = 0) -> tuple[int, bool, bool]:
    """The byte difference ``b1 - b2 - carry`` with its half-borrow and borrow."""
    h, c = sub_bytes_flags(b1, b2, carry)
    return (b1 - b2 - int(carry)) & 0xFF, h, c


def flag_condition(flags, val: int) -> bool:
    """Evaluate condition code ``val``: 0 NZ, 1 Z, 2 NC, 3 C."""
    if val == 0:
        return not flags.zero
    if val == 1:
        return bool(flags.zero)
    if val == 2:
        return not flags.carry
    if val == 3:
        return bool(flags.carry)
    raise ValueError(f"condition code {val} is out of range")


def read_imm8(cpu, mem) -> int:
    """Fetch the byte at pc and advance pc, taking one M-cycle."""
    cpu.m_cycle(1)
    value = mem.read(cpu.reg.pc)
    cpu.reg.pc = (cpu.reg.pc + 1) & 0xFFFF
    return value


def read_imm16(cpu, mem) -> int:
    """Fetch a little-endian word at pc and advance pc, taking two M-cycles."""
    lo = mem.read(cpu.reg.pc)
    cpu.reg.pc = (cpu.reg.pc + 1) & 0xFFFF
    cpu.m_cycle(1)
    hi = mem.read(cpu.reg.pc)
    cpu.reg.pc = (cpu.reg.pc + 1) & 0xFFFF
    cpu.m_cycle(1)
    return hi << 8 | lo


def _r8_low(cpu, mem) -> R8Operand:
    return R8Operand(cpu, mem, cpu.ir & 0b111)


def _r8_mid(cpu, mem) -> R8Operand:
    return R8Operand(cpu, mem, (cpu.ir >> 3) & 0b111)


def _r16_index(cpu) -> int:
    return (cpu.ir >> 4) & 0b11


def _r16mem_address(cpu) -> int:
    index = _r16_index(cpu)
    if index == 2:
        return cpu.reg.hl_plus()
    if index == 3:
        return cpu.reg.hl_minus()
    return getattr(cpu.reg, _R16[index])


def _set_carry_flags(cpu, h: bool, c: bool) -> None:
    cpu.reg.f.half_carry = int(h)
    cpu.reg.f.carry = int(c)


def nop(cpu, mem) -> None:
    """Do nothing."""


# 8-bit loads

def ld_r8_r8(cpu, mem) -> None:
    dest = _r8_mid(cpu, mem)
    src = _r8_low(cpu, mem)
    dest.assign(src.value)


def ld_r8_imm8(cpu, mem) -> None:
    dest = _r8_mid(cpu, mem)
    dest.assign(read_imm8(cpu, mem))
    cpu.m_cycle(1)


def ld_acc_r16mem(cpu, mem) -> None:
    data = mem.read(_r16mem_address(cpu))
    cpu.m_cycle(1)
    cpu.reg.a = data


def ld_r16mem_acc(cpu, mem) -> None:
    mem.write(_r16mem_address(cpu), cpu.reg.a)
    cpu.m_cycle(1)


def ld_acc_imm16(cpu, mem) -> None:
    cpu.reg.a = mem.read(read_imm16(cpu, mem))
    cpu.m_cycle(1)


def ld_imm16_acc(cpu, mem) -> None:
    addr = read_imm16(cpu, mem)
    mem.write(addr, cpu.reg.a)
    cpu.m_cycle(1)


def ldh_acc_ffc(cpu, mem) -> None:
    cpu.reg.a = mem.read(0xFF00 | cpu.reg.c)
    cpu.m_cycle(1)


def ldh_ffc_acc(cpu, mem) -> None:
    mem.write(0xFF00 | cpu.reg.c, cpu.reg.a)
    cpu.m_cycle(1)


def ldh_acc_ffimm8(cpu, mem) -> None:
    lo = read_imm8(cpu, mem)
    cpu.reg.a = mem.read(0xFF00 | lo)
    cpu.m_cycle(1)


def ldh_ffimm8_acc(cpu, mem) -> None:
    lo = read_imm8(cpu, mem)
    mem.write(0xFF00 | lo, cpu.reg.a)
    cpu.m_cycle(1)


# 16-bit loads

def ld_r16_imm16(cpu, mem) -> None:
    data = read_imm16(cpu, mem)
    setattr(cpu.reg, _R16[_r16_index(cpu)], data)


def ld_imm16_sp(cpu, mem) -> None:
    addr = read_imm16(cpu, mem)
    mem.write(addr, cpu.reg.sp & 0xFF)
    cpu.m_cycle(1)
    mem.write((addr + 1) & 0xFFFF, (cpu.reg.sp >> 8) & 0xFF)
    cpu.m_cycle(1)


def ld_sp_hl(cpu, mem) -> None:
    cpu.reg.sp = cpu.reg.hl
    cpu.m_cycle(1)


def ld_hl_spimm8(cpu, mem) -> None:
    e = read_imm8(cpu, mem)
    msb = (cpu.reg.sp >> 8) & 0xFF
    lsb = cpu.reg.sp & 0xFF

    low, h, c = add_bytes(lsb, e)
    cpu.reg.l = low
    cpu.reg.f.set_all(False, False, h, c)
    cpu.m_cycle(1)

    # Adding 0xFF to the high byte subtracts one when e is negative.
    minus1 = 0xFF if e & 0x80 else 0x00
    cpu.reg.h = (msb + minus1 + cpu.reg.f.carry) & 0xFF


def push_r16stk(cpu, mem) -> None:
    cpu.push_stack(getattr(cpu.reg, _R16_STK[_r16_index(cpu)]))


def pop_r16stk(cpu, mem) -> None:
    name = _R16_STK[_r16_index(cpu)]
    setattr(cpu.reg, name, cpu.pop_stack())


# 8-bit arithmetic and logic

def add_r8(cpu, mem) -> None:
    value = _r8_low(cpu, mem).value
    h, c = add_bytes_flags(cpu.reg.a, value)
    cpu.reg.a = (cpu.reg.a + value) & 0xFF
    cpu.reg.f.set_all(cpu.reg.a == 0, False, h, c)


def add_imm8(cpu, mem) -> None:
    data = read_imm8(cpu, mem)
    cpu.reg.a, h, c = add_bytes(cpu.reg.a, data)
    cpu.reg.f.set_all(cpu.reg.a == 0, False, h, c)


def adc_r8(cpu, mem) -> None:
    value = _r8_low(cpu, mem).value
    carry = int(cpu.reg.f.carry)
    h, c = add_bytes_flags(cpu.reg.a, value, carry)
    cpu.reg.a = (cpu.reg.a + value + carry) & 0xFF
    cpu.reg.f.set_all(cpu.reg.a == 0, False, h, c)


def adc_imm8(cpu, mem) -> None:
    data = read_imm8(cpu, mem)
    carry = int(cpu.reg.f.carry)
    cpu.reg.a, h, c = add_bytes(cpu.reg.a, data, carry)
    cpu.reg.f.set_all(cpu.reg.a == 0, False, h, c)


def sub_r8(cpu, mem) -> None:
    value = _r8_low(cpu, mem).value
    h, c = sub_bytes_flags(cpu.reg.a, value)
    cpu.reg.a = (cpu.reg.a - value) & 0xFF
    cpu.reg.f.set_all(cpu.reg.a == 0, True, h, c)


def sub_imm8(cpu, mem) -> None:
    data = read_imm8(cpu, mem)
    cpu.reg.a, h, c = sub_bytes(cpu.reg.a, data)
    cpu.reg.f.set_all(cpu.reg.a == 0, True, h, c)


def sbc_r8(cpu, mem) -> None:
    value = _r8_low(cpu, mem).value
    carry = int(cpu.reg.f.carry)
    h, c = sub_bytes_flags(cpu.reg.a, value, carry)
    cpu.reg.a = (cpu.reg.a - value - carry) & 0xFF
    cpu.reg.f.set_all(cpu.reg.a == 0, True, h, c)


def sbc_imm8(cpu, mem) -> None:
    data = read_imm8(cpu, mem)
    carry = int(cpu.reg.f.carry)
    cpu.reg.a, h, c = sub_bytes(cpu.reg.a, data, carry)
    cpu.reg.f.set_all(cpu.reg.a == 0, True, h, c)


def cp_r8(cpu, mem) -> None:
    value = _r8_low(cpu, mem).value
    h, c = sub_bytes_flags(cpu.reg.a, value)
    cpu.reg.f.set_all(cpu.reg.a == value, True, h, c)


def cp_imm8(cpu, mem) -> None:
    data = read_imm8(cpu, mem)
    h, c = sub_bytes_flags(cpu.reg.a, data)
    cpu.reg.f.set_all(cpu.reg.a == data, True, h, c)


def inc_r8(cpu, mem) -> None:
    operand = _r8_mid(cpu, mem)
    old = operand.value
    operand.assign(old + 1)
    f = cpu.reg.f
    f.set_all(operand.value == 0, False, (old & 0x0F) + 1 >= 0x10, f.carry)


def dec_r8(cpu, mem) -> None:
    operand = _r8_mid(cpu, mem)
    old = operand.value
    operand.assign(old - 1)
    f = cpu.reg.f
    f.set_all(operand.value == 0, True, (old & 0x0F) - 1 < 0, f.carry)


def and_r8(cpu, mem) -> None:
    cpu.reg.a &= _r8_low(cpu, mem).value
    cpu.reg.f.set_all(cpu.reg.a == 0, False, True, False)


def and_imm8(cpu, mem) -> None:
    cpu.reg.a &= read_imm8(cpu, mem)
    cpu.reg.f.set_all(cpu.reg.a == 0, False, True, False)


def or_r8(cpu, mem) -> None:
    cpu.reg.a |= _r8_low(cpu, mem).value
    cpu.reg.f.set_all(cpu.reg.a == 0, False, False, False)


def or_imm8(cpu, mem) -> None:
    cpu.reg.a |= read_imm8(cpu, mem)
    cpu.reg.f.set_all(cpu.reg.a == 0, False, False, False)


def xor_r8(cpu, mem) -> None:
    cpu.reg.a ^= _r8_low(cpu, mem).value
    cpu.reg.f.set_all(cpu.reg.a == 0, False, False, False)


def xor_imm8(cpu, mem) -> None:
    cpu.reg.a ^= read_imm8(cpu, mem)
    cpu.reg.f.set_all(cpu.reg.a == 0, False, False, False)


def ccf(cpu, mem) -> None:
    f = cpu.reg.f
    f.set_all(f.zero, False, False, not f.carry)


def scf(cpu, mem) -> None:
    f = cpu.reg.f
    f.set_all(f.zero, False, False, True)


def daa(cpu, mem) -> None:
    f = cpu.reg.f
    a = cpu.reg.a
    adjustment = 0

    if f.subtract:
        if f.half_carry:
            adjustment += 0x06
        if f.carry:
            adjustment += 0x60
        a = (a - adjustment) & 0xFF
    else:
        if f.half_carry or (a & 0x0F) > 0x09:
            adjustment += 0x06
        if f.carry or a > 0x99:
            adjustment += 0x60
            f.carry = 1
        a = (a + adjustment) & 0xFF

    cpu.reg.a = a
    f.zero = int(a == 0)
    f.half_carry = 0


def cpl(cpu, mem) -> None:
    cpu.reg.a = ~cpu.reg.a & 0xFF
    cpu.reg.f.subtract = 1
    cpu.reg.f.half_carry = 1


# 16-bit arithmetic

def inc_r16(cpu, mem) -> None:
    name = _R16[_r16_index(cpu)]
    setattr(cpu.reg, name, (getattr(cpu.reg, name) + 1) & 0xFFFF)


def dec_r16(cpu, mem) -> None:
    name = _R16[_r16_index(cpu)]
    setattr(cpu.reg, name, (getattr(cpu.reg, name) - 1) & 0xFFFF)


def add_hl_r16(cpu, mem) -> None:
    value = getattr(cpu.reg, _R16[_r16_index(cpu)])

    cpu.reg.l, h1, c1 = add_bytes(cpu.reg.l, value & 0xFF)
    cpu.reg.f.subtract = 0
    _set_carry_flags(cpu, h1, c1)
    cpu.m_cycle(1)

    cpu.reg.h, h2, c2 = add_bytes(cpu.reg.h, (value >> 8) & 0xFF, int(cpu.reg.f.carry))
    _set_carry_flags(cpu, h2, c2)


def add_sp_imm8(cpu, mem) -> None:
    e = read_imm8(cpu, mem)
    msb = (cpu.reg.sp >> 8) & 0xFF
    lsb = cpu.reg.sp & 0xFF

    lsb, h, c = add_bytes(lsb, e)
    cpu.reg.f.set_all(False, False, h, c)
    cpu.m_cycle(1)

    minus1 = 0xFF if e & 0x80 else 0x00
    msb = (msb + minus1 + cpu.reg.f.carry) & 0xFF
    cpu.reg.sp = msb << 8 | lsb