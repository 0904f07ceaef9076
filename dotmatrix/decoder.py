"""Opcode decoding and the rotate, control-flow, interrupt and CB-prefixed handlers.

Handlers take the CPU and the memory it is attached to, like those in
:mod:`dotmatrix.operations`. Besides the register file, the CPU must provide
``halt``, ``enable_interrupts``, ``disable_interrupts`` and
``force_enable_interrupts``.
"""

from __future__ import annotations

import enum

from .operations import (
    R8Operand,
    adc_imm8,
    adc_r8,
    add_hl_r16,
    add_imm8,
    add_r8,
    add_sp_imm8,
    and_imm8,
    and_r8,
    ccf,
    cp_imm8,
    cp_r8,
    cpl,
    daa,
    dec_r8,
    dec_r16,
    flag_condition,
    inc_r8,
    inc_r16,
    ld_acc_imm16,
    ld_acc_r16mem,
    ld_hl_spimm8,
    ld_imm16_acc,
    ld_imm16_sp,
    ld_r8_imm8,
    ld_r8_r8,
    ld_r16_imm16,
    ld_r16mem_acc,
    ld_sp_hl,
    ldh_acc_ffc,
    ldh_acc_ffimm8,
    ldh_ffc_acc,
    ldh_ffimm8_acc,
    nop,
    or_imm8,
    or_r8,
    pop_r16stk,
    push_r16stk,
    read_imm8,
    read_imm16,
    sbc_imm8,
    sbc_r8,
    scf,
    sub_imm8,
    sub_r8,
    xor_imm8,
    xor_r8,
)

# Opcodes the CPU does not define; fetching one hangs it.
INVALID_OPCODES = frozenset({0xD3, 0xDB, 0xDD, 0xE3, 0xE4, 0xEB, 0xEC, 0xED, 0xF4, 0xFC, 0xFD})


class OpCode(enum.Enum):
    """Instruction encodings: base code, whether CB-prefixed, and the operand bits."""

    nop = (0b00000000, False, 0)

    # 8-bit loads
    ld_r8_r8 = (0b01000000, False, 0b00111111)
    ld_r8_imm8 = (0b00000110, False, 0b00111000)
    ld_acc_r16mem = (0b00001010, False, 0b00110000)
    ld_r16mem_acc = (0b00000010, False, 0b00110000)
    ld_acc_imm16 = (0b11111010, False, 0)
    ld_imm16_acc = (0b11101010, False, 0)
    ldh_acc_ffc = (0b11110010, False, 0)
    ldh_ffc_acc = (0b11100010, False, 0)
    ldh_acc_ffimm8 = (0b11110000, False, 0)
    ldh_ffimm8_acc = (0b11100000, False, 0)

    # 16-bit loads
    ld_r16_imm16 = (0b00000001, False, 0b00110000)
    ld_imm16_sp = (0b00001000, False, 0)
    ld_sp_hl = (0b11111001, False, 0)
    ld_hl_spimm8 = (0b11111000, False, 0)
    push_r16stk = (0b11000101, False, 0b00110000)
    pop_r16stk = (0b11000001, False, 0b00110000)

    # 8-bit arithmetic and logic
    add_r8 = (0b10000000, False, 0b00000111)
    add_imm8 = (0b11000110, False, 0)
    adc_r8 = (0b10001000, False, 0b00000111)
    adc_imm8 = (0b11001110, False, 0)
    sub_r8 = (0b10010000, False, 0b00000111)
    sub_imm8 = (0b11010110, False, 0)
    sbc_r8 = (0b10011000, False, 0b00000111)
    sbc_imm8 = (0b11011110, False, 0)
    cp_r8 = (0b10111000, False, 0b00000111)
    cp_imm8 = (0b11111110, False, 0)
    inc_r8 = (0b00000100, False, 0b00111000)
    dec_r8 = (0b00000101, False, 0b00111000)
    and_r8 = (0b10100000, False, 0b00000111)
    and_imm8 = (0b11100110, False, 0)
    or_r8 = (0b10110000, False, 0b00000111)
    or_imm8 = (0b11110110, False, 0)
    xor_r8 = (0b10101000, False, 0b00000111)
    xor_imm8 = (0b11101110, False, 0)
    ccf = (0b00111111, False, 0)
    scf = (0b00110111, False, 0)
    daa = (0b00100111, False, 0)
    cpl = (0b00101111, False, 0)

    # 16-bit arithmetic
    inc_r16 = (0b00000011, False, 0b00110000)
    dec_r16 = (0b00001011, False, 0b00110000)
    add_hl_r16 = (0b00001001, False, 0b00110000)
    add_sp_imm8 = (0b11101000, False, 0)

    # rotate, shift, bit manipulation
    rlca = (0b00000111, False, 0)
    rrca = (0b00001111, False, 0)
    rla = (0b00010111, False, 0)
    rra = (0b00011111, False, 0)
    cb_prefix = (0b11001011, False, 0)
    cb_rlc_r8 = (0b00000000, True, 0b00000111)
    cb_rrc_r8 = (0b00001000, True, 0b00000111)
    cb_rl_r8 = (0b00010000, True, 0b00000111)
    cb_rr_r8 = (0b00011000, True, 0b00000111)
    cb_sla_r8 = (0b00100000, True, 0b00000111)
    cb_sra_r8 = (0b00101000, True, 0b00000111)
    cb_swap_r8 = (0b00110000, True, 0b00000111)
    cb_srl_r8 = (0b00111000, True, 0b00000111)
    cb_bit_b3_r8 = (0b01000000, True, 0b00111111)
    cb_res_b3_r8 = (0b10000000, True, 0b00111111)
    cb_set_b3_r8 = (0b11000000, True, 0b00111111)

    # control flow
    jp_imm16 = (0b11000011, False, 0)
    jp_hl = (0b11101001, False, 0)
    jp_cond_imm16 = (0b11000010, False, 0b00011000)
    jr_imm8 = (0b00011000, False, 0)
    jr_cond_imm8 = (0b00100000, False, 0b00011000)
    call_imm16 = (0b11001101, False, 0)
    call_cond_imm16 = (0b11000100, False, 0b00011000)
    ret = (0b11001001, False, 0)
    ret_cond = (0b11000000, False, 0b00011000)
    reti = (0b11011001, False, 0)
    rst_tgt3 = (0b11000111, False, 0b00111000)

    # interrupts and halting
    stop = (0b00010000, False, 0)
    halt = (0b01110110, False, 0)
    di = (0b11110011, False, 0)
    ei = (0b11111011, False, 0)

    def __init__(self, code: int, prefixed: bool, ignore_bits: int) -> None:
        self.code = code
        self.prefixed = prefixed
        self.ignore_bits = ignore_bits

    def matches(self, opcode: int) -> bool:
        """True if ``opcode`` encodes this instruction once its operand bits are masked."""
        return opcode & ~self.ignore_bits & 0xFF == self.code

    @property
    def handler(self):
        """The function that executes this instruction."""
        return _HANDLERS[self]


class InvalidOpcodeError(ValueError):
    """The fetched byte encodes no instruction; the CPU hangs on it."""

    def __init__(self, opcode: int, prefixed: bool = False) -> None:
        self.opcode = opcode
        self.prefixed = prefixed
        prefix = "CB " if prefixed else ""
        super().__init__(f"invalid {prefix}opcode {opcode:#010b} ({opcode:#04x})")


def _signed(value: int) -> int:
    return value - 0x100 if value & 0x80 else value


def _rotl(value: int, count: int) -> int:
    return ((value << count) | (value >> (8 - count))) & 0xFF


def _rotr(value: int, count: int) -> int:
    return ((value >> count) | (value << (8 - count))) & 0xFF


def _condition(cpu) -> int:
    return (cpu.ir >> 3) & 0b11


def _cb_operand(cpu, mem) -> R8Operand:
    return R8Operand(cpu, mem, cpu.ir & 0b111)


def _bit_number(cpu) -> int:
    return (cpu.ir >> 3) & 0b111


# rotate accumulator

def rlca(cpu, mem) -> None:
    cpu.reg.a = _rotl(cpu.reg.a, 1)
    cpu.reg.f.set_all(False, False, False, bool(cpu.reg.a & 1))


def rrca(cpu, mem) -> None:
    carry = bool(cpu.reg.a & 1)
    cpu.reg.a = _rotr(cpu.reg.a, 1)
    cpu.reg.f.set_all(False, False, False, carry)


def rla(cpu, mem) -> None:
    carry = bool(cpu.reg.a & 0x80)
    cpu.reg.a = ((cpu.reg.a << 1) | int(cpu.reg.f.carry)) & 0xFF
    cpu.reg.f.set_all(False, False, False, carry)


def rra(cpu, mem) -> None:
    carry = bool(cpu.reg.a & 1)
    cpu.reg.a = (cpu.reg.a >> 1) | (int(cpu.reg.f.carry) << 7)
    cpu.reg.f.set_all(False, False, False, carry)


# control flow

def jp_imm16(cpu, mem) -> None:
    cpu.reg.pc = read_imm16(cpu, mem)
    cpu.m_cycle(1)


def jp_hl(cpu, mem) -> None:
    cpu.reg.pc = cpu.reg.hl


def jp_cond_imm16(cpu, mem) -> None:
    addr = read_imm16(cpu, mem)
    if flag_condition(cpu.reg.f, _condition(cpu)):
        cpu.reg.pc = addr
        cpu.m_cycle(1)


def jr_imm8(cpu, mem) -> None:
    offset = _signed(read_imm8(cpu, mem))
    cpu.reg.pc = (cpu.reg.pc + offset) & 0xFFFF


def jr_cond_imm8(cpu, mem) -> None:
    offset = _signed(read_imm8(cpu, mem))
    if flag_condition(cpu.reg.f, _condition(cpu)):
        cpu.reg.pc = (cpu.reg.pc + offset) & 0xFFFF
        cpu.m_cycle(1)


def call_imm16(cpu, mem) -> None:
    target = read_imm16(cpu, mem)
    cpu.push_stack(cpu.reg.pc)
    cpu.reg.pc = target


def call_cond_imm16(cpu, mem) -> None:
    target = read_imm16(cpu, mem)
    if flag_condition(cpu.reg.f, _condition(cpu)):
        cpu.push_stack(cpu.reg.pc)
        cpu.reg.pc = target


def ret(cpu, mem) -> None:
    cpu.reg.pc = cpu.pop_stack()
    cpu.m_cycle(1)


def ret_cond(cpu, mem) -> None:
    cpu.m_cycle(1)
    if not flag_condition(cpu.reg.f, _condition(cpu)):
        return
    cpu.reg.pc = cpu.pop_stack()
    cpu.m_cycle(1)


def reti(cpu, mem) -> None:
    cpu.reg.pc = cpu.pop_stack()
    cpu.force_enable_interrupts()
    cpu.m_cycle(1)


def rst_tgt3(cpu, mem) -> None:
    cpu.push_stack(cpu.reg.pc)
    cpu.reg.pc = cpu.ir & 0b00111000


# interrupts and halting

def stop(cpu, mem) -> None:
    """Enter very-low-power mode; this is not emulated and leaves the CPU running."""


def halt(cpu, mem) -> None:
    cpu.halt()


def di(cpu, mem) -> None:
    cpu.disable_interrupts()


def ei(cpu, mem) -> None:
    cpu.enable_interrupts()


# CB-prefixed instructions

def cb_rlc_r8(cpu, mem) -> None:
    operand = _cb_operand(cpu, mem)
    result = _rotl(operand.value, 1)
    operand.assign(result)
    cpu.reg.f.set_all(result == 0, False, False, bool(result & 1))


def cb_rrc_r8(cpu, mem) -> None:
    operand = _cb_operand(cpu, mem)
    value = operand.value
    result = _rotr(value, 1)
    operand.assign(result)
    cpu.reg.f.set_all(result == 0, False, False, bool(value & 1))


def cb_rl_r8(cpu, mem) -> None:
    operand = _cb_operand(cpu, mem)
    value = operand.value
    result = ((value << 1) | int(cpu.reg.f.carry)) & 0xFF
    operand.assign(result)
    cpu.reg.f.set_all(result == 0, False, False, bool(value & 0x80))


def cb_rr_r8(cpu, mem) -> None:
    operand = _cb_operand(cpu, mem)
    value = operand.value
    result = (value >> 1) | (int(cpu.reg.f.carry) << 7)
    operand.assign(result)
    cpu.reg.f.set_all(result == 0, False, False, bool(value & 1))


def cb_sla_r8(cpu, mem) -> None:
    operand = _cb_operand(cpu, mem)
    value = operand.value
    result = (value << 1) & 0xFF
    operand.assign(result)
    cpu.reg.f.set_all(result == 0, False, False, bool(value & 0x80))


def cb_sra_r8(cpu, mem) -> None:
    operand = _cb_operand(cpu, mem)
    value = operand.value
    result = (value >> 1) | (value & 0x80)
    operand.assign(result)
    cpu.reg.f.set_all(result == 0, False, False, bool(value & 1))


def cb_swap_r8(cpu, mem) -> None:
    operand = _cb_operand(cpu, mem)
    result = _rotl(operand.value, 4)
    operand.assign(result)
    cpu.reg.f.set_all(result == 0, False, False, False)


def cb_srl_r8(cpu, mem) -> None:
    operand = _cb_operand(cpu, mem)
    value = operand.value
    result = value >> 1
    operand.assign(result)
    cpu.reg.f.set_all(result == 0, False, False, bool(value & 1))


def cb_bit_b3_r8(cpu, mem) -> None:
    value = _cb_operand(cpu, mem).value
    f = cpu.reg.f
    f.set_all(not value & (1 << _bit_number(cpu)), False, True, f.carry)


def cb_res_b3_r8(cpu, mem) -> None:
    operand = _cb_operand(cpu, mem)
    operand.assign(operand.value & ~(1 << _bit_number(cpu)))


def cb_set_b3_r8(cpu, mem) -> None:
    operand = _cb_operand(cpu, mem)
    operand.assign(operand.value | (1 << _bit_number(cpu)))


def cb_prefix(cpu, mem) -> None:
    """Fetch the second opcode byte and execute the CB-prefixed instruction it names."""
    cpu.ir = mem.read(cpu.reg.pc)
    cpu.reg.pc = (cpu.reg.pc + 1) & 0xFFFF
    cpu.m_cycle(1)
    decode_cb(cpu.ir).handler(cpu, mem)


_HANDLERS = {
    OpCode.nop: nop,
    OpCode.ld_r8_r8: ld_r8_r8,
    OpCode.ld_r8_imm8: ld_r8_imm8,
    OpCode.ld_acc_r16mem: ld_acc_r16mem,
    OpCode.ld_r16mem_acc: ld_r16mem_acc,
    OpCode.ld_acc_imm16: ld_acc_imm16,
    OpCode.ld_imm16_acc: ld_imm16_acc,
    OpCode.ldh_acc_ffc: ldh_acc_ffc,
    OpCode.ldh_ffc_acc: ldh_ffc_acc,
    OpCode.ldh_acc_ffimm8: ldh_acc_ffimm8,
    OpCode.ldh_ffimm8_acc: ldh_ffimm8_acc,
    OpCode.ld_r16_imm16: ld_r16_imm16,
    OpCode.ld_imm16_sp: ld_imm16_sp,
    OpCode.ld_sp_hl: ld_sp_hl,
    OpCode.ld_hl_spimm8: ld_hl_spimm8,
    OpCode.push_r16stk: push_r16stk,
    OpCode.pop_r16stk: pop_r16stk,
    OpCode.add_r8: add_r8,
    OpCode.add_imm8: add_imm8,
    OpCode.adc_r8: adc_r8,
    OpCode.adc_imm8: adc_imm8,
    OpCode.sub_r8: sub_r8,
    OpCode.sub_imm8: sub_imm8,
    OpCode.sbc_r8: sbc_r8,
    OpCode.sbc_imm8: sbc_imm8,
    OpCode.cp_r8: cp_r8,
    OpCode.cp_imm8: cp_imm8,
    OpCode.inc_r8: inc_r8,
    OpCode.dec_r8: dec_r8,
    OpCode.and_r8: and_r8,
    OpCode.and_imm8: and_imm8,
    OpCode.or_r8: or_r8,
    OpCode.or_imm8: or_imm8,
    OpCode.xor_r8: xor_r8,
    OpCode.xor_imm8: xor_imm8,
    OpCode.ccf: ccf,
    OpCode.scf: scf,
    OpCode.daa: daa,
    OpCode.cpl: cpl,
    OpCode.inc_r16: inc_r16,
    OpCode.dec_r16: dec_r16,
    OpCode.add_hl_r16: add_hl_r16,
    OpCode.add_sp_imm8: add_sp_imm8,
    OpCode.rlca: rlca,
    OpCode.rrca: rrca,
    OpCode.rla: rla,
    OpCode.rra: rra,
    OpCode.cb_prefix: cb_prefix,
    OpCode.cb_rlc_r8: cb_rlc_r8,
    OpCode.cb_rrc_r8: cb_rrc_r8,
    OpCode.cb_rl_r8: cb_rl_r8,
    OpCode.cb_rr_r8: cb_rr_r8,
    OpCode.cb_sla_r8: cb_sla_r8,
    OpCode.cb_sra_r8: cb_sra_r8,
    OpCode.cb_swap_r8: cb_swap_r8,
    OpCode.cb_srl_r8: cb_srl_r8,
    OpCode.cb_bit_b3_r8: cb_bit_b3_r8,
    OpCode.cb_res_b3_r8: cb_res_b3_r8,
    OpCode.cb_set_b3_r8: cb_set_b3_r8,
    OpCode.jp_imm16: jp_imm16,
    OpCode.jp_hl: jp_hl,
    OpCode.jp_cond_imm16: jp_cond_imm16,
    OpCode.jr_imm8: jr_imm8,
    OpCode.jr_cond_imm8: jr_cond_imm8,
    OpCode.call_imm16: call_imm16,
    OpCode.call_cond_imm16: call_cond_imm16,
    OpCode.ret: ret,
    OpCode.ret_cond: ret_cond,
    OpCode.reti: reti,
    OpCode.rst_tgt3: rst_tgt3,
    OpCode.stop: stop,
    OpCode.halt: halt,
    OpCode.di: di,
    OpCode.ei: ei,
}

# Instructions with a single encoding, looked up directly.
_FIXED = {op.code: op for op in OpCode if not op.prefixed and not op.ignore_bits}

# Instructions with operand bits, tried in this order.
_VARIABLE = (
    OpCode.ld_r8_r8,
    OpCode.ld_r8_imm8,
    OpCode.ld_acc_r16mem,
    OpCode.ld_r16mem_acc,
    OpCode.ld_r16_imm16,
    OpCode.push_r16stk,
    OpCode.pop_r16stk,
    OpCode.add_r8,
    OpCode.adc_r8,
    OpCode.sub_r8,
    OpCode.sbc_r8,
    OpCode.cp_r8,
    OpCode.inc_r8,
    OpCode.dec_r8,
    OpCode.and_r8,
    OpCode.or_r8,
    OpCode.xor_r8,
    OpCode.inc_r16,
    OpCode.dec_r16,
    OpCode.add_hl_r16,
    OpCode.jp_cond_imm16,
    OpCode.jr_cond_imm8,
    OpCode.call_cond_imm16,
    OpCode.ret_cond,
    OpCode.rst_tgt3,
)

_CB = (
    OpCode.cb_rlc_r8,
    OpCode.cb_rrc_r8,
    OpCode.cb_rl_r8,
    OpCode.cb_rr_r8,
    OpCode.cb_sla_r8,
    OpCode.cb_sra_r8,
    OpCode.cb_swap_r8,
    OpCode.cb_srl_r8,
    OpCode.cb_bit_b3_r8,
    OpCode.cb_res_b3_r8,
    OpCode.cb_set_b3_r8,
)


def _check_byte(opcode: int) -> int:
    opcode = int(opcode)
    if not 0 <= opcode <= 0xFF:
        raise ValueError(f"opcode {opcode} is not a byte")
    return opcode


def decode(opcode: int) -> OpCode:
    """The unprefixed instruction encoded by ``opcode``."""
    opcode = _check_byte(opcode)
    if opcode in INVALID_OPCODES:
        raise InvalidOpcodeError(opcode)
    fixed = _FIXED.get(opcode)
    if fixed is not None:
        return fixed
    for op in _VARIABLE:
        if op.matches(opcode):
            return op
    raise InvalidOpcodeError(opcode)


def decode_cb(opcode: int) -> OpCode:
    """The instruction encoded by ``opcode`` after a CB prefix."""
    opcode = _check_byte(opcode)
    for op in _CB:
        if op.matches(opcode):
            return op
    raise InvalidOpcodeError(opcode, prefixed=True)