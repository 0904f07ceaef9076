import pytest

from dotmatrix.decoder import (
    INVALID_OPCODES,
    InvalidOpcodeError,
    OpCode,
    call_cond_imm16,
    call_imm16,
    cb_bit_b3_r8,
    cb_prefix,
    cb_res_b3_r8,
    cb_rl_r8,
    cb_rlc_r8,
    cb_rr_r8,
    cb_rrc_r8,
    cb_set_b3_r8,
    cb_sra_r8,
    cb_srl_r8,
    cb_swap_r8,
    decode,
    decode_cb,
    di,
    ei,
    halt,
    jp_cond_imm16,
    jp_hl,
    jr_imm8,
    rla,
    rlca,
    ret,
    ret_cond,
    reti,
    rra,
    rrca,
    rst_tgt3,
)


class FakeFlags:
    def __init__(self):
        self.zero = self.subtract = self.half_carry = self.carry = 0

    def set_all(self, z, n, h, c):
        self.zero, self.subtract = int(bool(z)), int(bool(n))
        self.half_carry, self.carry = int(bool(h)), int(bool(c))


class FakeRegs:
    def __init__(self):
        self.a = self.b = self.c = self.d = self.e = self.h = self.l = 0
        self.sp = 0xFFFE
        self.pc = 0xC000
        self.f = FakeFlags()

    @property
    def hl(self):
        return self.h << 8 | self.l

    @hl.setter
    def hl(self, value):
        self.h, self.l = (value >> 8) & 0xFF, value & 0xFF


class FakeMemory:
    def __init__(self):
        self.data = bytearray(0x10000)

    def read(self, addr):
        return self.data[addr & 0xFFFF]

    def write(self, addr, val):
        self.data[addr & 0xFFFF] = val & 0xFF


class FakeCpu:
    def __init__(self, mem):
        self.mem = mem
        self.reg = FakeRegs()
        self.ir = 0
        self.cycles = 0
        self.halted = False
        self.ime = False
        self.enabling = False

    def m_cycle(self, n=1):
        self.cycles += n

    def push_stack(self, value):
        self.reg.sp -= 1
        self.mem.write(self.reg.sp, value >> 8)
        self.reg.sp -= 1
        self.mem.write(self.reg.sp, value)
        self.cycles += 3

    def pop_stack(self):
        lo = self.mem.read(self.reg.sp)
        hi = self.mem.read(self.reg.sp + 1)
        self.reg.sp += 2
        self.cycles += 2
        return hi << 8 | lo

    def halt(self):
        self.halted = True

    def enable_interrupts(self):
        self.enabling = True

    def disable_interrupts(self):
        self.enabling = False
        self.ime = False

    def force_enable_interrupts(self):
        self.ime = True


@pytest.fixture
def env():
    mem = FakeMemory()
    return FakeCpu(mem), mem


def test_fixed_opcodes_decode():
    assert decode(0x00) is OpCode.nop
    assert decode(0x76) is OpCode.halt
    assert decode(0xCB) is OpCode.cb_prefix
    assert decode(0xC9) is OpCode.ret


def test_variable_opcodes_decode():
    assert decode(0x41) is OpCode.ld_r8_r8
    assert decode(0xFF) is OpCode.rst_tgt3
    assert decode(0x28) is OpCode.jr_cond_imm8


@pytest.mark.parametrize("opcode", sorted(INVALID_OPCODES))
def test_invalid_opcodes_raise(opcode):
    with pytest.raises(InvalidOpcodeError) as info:
        decode(opcode)
    assert info.value.opcode == opcode


def test_every_defined_opcode_decodes_to_matching_instruction():
    for opcode in range(256):
        if opcode in INVALID_OPCODES:
            continue
        op = decode(opcode)
        assert not op.prefixed
        assert op.matches(opcode)


def test_every_cb_opcode_decodes():
    for opcode in range(256):
        op = decode_cb(opcode)
        assert op.prefixed
        assert op.matches(opcode)


def test_cb_decode_examples():
    assert decode_cb(0x37) is OpCode.cb_swap_r8
    assert decode_cb(0x7C) is OpCode.cb_bit_b3_r8
    assert decode_cb(0x00) is OpCode.cb_rlc_r8


def test_out_of_range_opcode():
    with pytest.raises(ValueError):
        decode(0x100)
    with pytest.raises(ValueError):
        decode_cb(-1)


def test_handler_property():
    assert decode(0x07).handler is rlca
    assert decode_cb(0x37).handler is cb_swap_r8
    assert OpCode.cb_rlc_r8 is not OpCode.nop


def test_rlca_rrca_round_trip(env):
    cpu, mem = env
    cpu.reg.a = 0x85
    rlca(cpu, mem)
    assert cpu.reg.f.carry == 1
    rrca(cpu, mem)
    assert cpu.reg.a == 0x85


def test_rla_rra_round_trip(env):
    cpu, mem = env
    cpu.reg.a = 0x5A
    cpu.reg.f.carry = 1
    rla(cpu, mem)
    rra(cpu, mem)
    assert cpu.reg.a == 0x5A
    assert cpu.reg.f.carry == 1


def test_jr_negative_offset(env):
    cpu, mem = env
    mem.write(0xC001, 0xFE)
    cpu.reg.pc = 0xC001
    jr_imm8(cpu, mem)
    assert cpu.reg.pc == 0xC000


def test_call_ret_round_trip(env):
    cpu, mem = env
    mem.write(0xC000, 0x34)
    mem.write(0xC001, 0x12)
    sp = cpu.reg.sp
    call_imm16(cpu, mem)
    assert cpu.reg.pc == 0x1234
    ret(cpu, mem)
    assert cpu.reg.pc == 0xC002
    assert cpu.reg.sp == sp


def test_conditional_call_not_taken(env):
    cpu, mem = env
    cpu.ir = 0xCC  # call z
    cpu.reg.f.zero = 0
    sp = cpu.reg.sp
    call_cond_imm16(cpu, mem)
    assert cpu.reg.pc == 0xC002
    assert cpu.reg.sp == sp


def test_jp_cond_taken(env):
    cpu, mem = env
    cpu.ir = 0xDA  # jp c
    cpu.reg.f.carry = 1
    mem.write(0xC000, 0x00)
    mem.write(0xC001, 0x40)
    jp_cond_imm16(cpu, mem)
    assert cpu.reg.pc == 0x4000


def test_jp_hl(env):
    cpu, mem = env
    cpu.reg.hl = 0x2345
    jp_hl(cpu, mem)
    assert cpu.reg.pc == 0x2345


def test_ret_cond_not_taken(env):
    cpu, mem = env
    cpu.ir = 0xC0  # ret nz
    cpu.reg.f.zero = 1
    ret_cond(cpu, mem)
    assert cpu.reg.pc == 0xC000
    assert cpu.reg.sp == 0xFFFE


def test_reti_enables_ime(env):
    cpu, mem = env
    cpu.push_stack(0x1234)
    reti(cpu, mem)
    assert cpu.ime is True
    assert cpu.reg.pc == 0x1234


@pytest.mark.parametrize("opcode,target", [(0xC7, 0x0000), (0xFF, 0x0038)])
def test_rst(env, opcode, target):
    cpu, mem = env
    cpu.ir = opcode
    rst_tgt3(cpu, mem)
    assert cpu.reg.pc == target
    assert cpu.pop_stack() == 0xC000


def test_interrupt_control(env):
    cpu, mem = env
    ei(cpu, mem)
    assert cpu.enabling
    di(cpu, mem)
    assert not cpu.enabling and not cpu.ime
    halt(cpu, mem)
    assert cpu.halted


def test_cb_prefix_swap(env):
    cpu, mem = env
    mem.write(0xC000, 0x37)  # swap a
    cpu.reg.a = 0xF0
    cb_prefix(cpu, mem)
    assert cpu.ir == 0x37
    assert cpu.reg.a == 0x0F
    assert cpu.reg.pc == 0xC001


def test_swap_twice_restores(env):
    cpu, mem = env
    cpu.ir = 0x30  # swap b
    cpu.reg.b = 0x9C
    cb_swap_r8(cpu, mem)
    cb_swap_r8(cpu, mem)
    assert cpu.reg.b == 0x9C


def test_rlc_rrc_round_trip_indirect(env):
    cpu, mem = env
    cpu.reg.hl = 0xC100
    mem.write(0xC100, 0xB3)
    cpu.ir = 0x06  # rlc [hl]
    cb_rlc_r8(cpu, mem)
    cpu.ir = 0x0E  # rrc [hl]
    cb_rrc_r8(cpu, mem)
    assert mem.read(0xC100) == 0xB3


def test_rl_rr_round_trip(env):
    cpu, mem = env
    cpu.ir = 0x11  # rl c
    cpu.reg.c = 0xC3
    cpu.reg.f.carry = 0
    cb_rl_r8(cpu, mem)
    cpu.ir = 0x19  # rr c
    cb_rr_r8(cpu, mem)
    assert cpu.reg.c == 0xC3
    assert cpu.reg.f.carry == 0


def test_sra_keeps_sign(env):
    cpu, mem = env
    cpu.ir = 0x2F  # sra a
    cpu.reg.a = 0x80
    cb_sra_r8(cpu, mem)
    assert cpu.reg.a == 0xC0


def test_srl_to_zero(env):
    cpu, mem = env
    cpu.ir = 0x3F  # srl a
    cpu.reg.a = 0x01
    cb_srl_r8(cpu, mem)
    assert cpu.reg.a == 0
    assert cpu.reg.f.zero == 1
    assert cpu.reg.f.carry == 1


def test_set_bit_res(env):
    cpu, mem = env
    cpu.reg.d = 0
    cpu.ir = 0xFA  # set 7, d
    cb_set_b3_r8(cpu, mem)
    cpu.ir = 0x7A  # bit 7, d
    cb_bit_b3_r8(cpu, mem)
    assert cpu.reg.f.zero == 0
    assert cpu.reg.f.half_carry == 1
    cpu.ir = 0xBA  # res 7, d
    cb_res_b3_r8(cpu, mem)
    assert cpu.reg.d == 0
    cpu.ir = 0x7A
    cb_bit_b3_r8(cpu, mem)
    assert cpu.reg.f.zero == 1


def test_bit_preserves_carry(env):
    cpu, mem = env
    cpu.reg.f.carry = 1
    cpu.ir = 0x47  # bit 0, a
    cb_bit_b3_r8(cpu, mem)
    assert cpu.reg.f.carry == 1
    assert cpu.reg.f.subtract == 0