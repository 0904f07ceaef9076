import pytest

from dotmatrix.cpu import Cpu, Flags, RegisterFile
from dotmatrix.decoder import InvalidOpcodeError
from dotmatrix.memory import Memory
from dotmatrix.timer import Timer


def make_cpu(program=b"", at=0x0100, extra=None):
    rom = bytearray(0x8000)
    rom[at:at + len(program)] = program
    for addr, data in (extra or {}).items():
        rom[addr:addr + len(data)] = data
    memory = Memory(bytes(rom), Timer())
    return Cpu(memory), memory


def test_power_up_registers():
    cpu, _ = make_cpu(bytes([0x3E]))
    assert cpu.reg.af == 0x01B0
    assert cpu.reg.bc == 0x0013
    assert cpu.reg.de == 0x00D8
    assert cpu.reg.hl == 0x014D
    assert cpu.reg.sp == 0xFFFE
    assert cpu.reg.pc == 0x0100
    assert cpu.ir == 0x3E


def test_flags_round_trip_and_low_nibble_dropped():
    flags = Flags()
    assert int(flags.load(0xB0)) == 0xB0
    assert int(flags.load(0xFF)) == 0xF0
    flags.set_all(False, True, False, True)
    assert (flags.zero, flags.subtract, flags.half_carry, flags.carry) == (0, 1, 0, 1)


def test_register_pairs_split_into_bytes():
    reg = RegisterFile()
    reg.bc = 0x1234
    assert (reg.b, reg.c) == (0x12, 0x34)
    reg.de = 0xABCD
    assert reg.de == 0xABCD
    reg.af = 0x12FF
    assert reg.a == 0x12
    assert reg.af == 0x12F0


def test_hl_plus_and_minus():
    reg = RegisterFile()
    reg.hl = 0xFFFF
    assert reg.hl_plus() == 0xFFFF
    assert reg.hl == 0x0000
    assert reg.hl_minus() == 0x0000
    assert reg.hl == 0xFFFF


def test_push_pop_round_trip_counts_cycles():
    cpu, _ = make_cpu()
    sp = cpu.reg.sp
    cpu.push_stack(0xBEEF)
    assert cpu.reg.sp == sp - 2
    assert cpu.update_cycles == 3
    assert cpu.pop_stack() == 0xBEEF
    assert cpu.reg.sp == sp
    assert cpu.update_cycles == 5


def test_nop_update():
    cpu, _ = make_cpu(bytes([0x00]))
    assert cpu.update() is True
    assert cpu.reg.pc == 0x0101
    assert cpu.update_cycles == 1


def test_load_immediate():
    cpu, _ = make_cpu(bytes([0x3E, 0x42]))
    cpu.update()
    assert cpu.reg.a == 0x42
    assert cpu.reg.pc == 0x0102
    assert cpu.update_cycles == 3


def test_call_and_return():
    cpu, _ = make_cpu(bytes([0xCD, 0x00, 0x02]), extra={0x0200: bytes([0xC9])})
    cpu.update()
    assert cpu.reg.pc == 0x0200
    cpu.update()
    assert cpu.reg.pc == 0x0103
    assert cpu.reg.sp == 0xFFFE


def test_invalid_opcode_hangs():
    cpu, _ = make_cpu(bytes([0xD3]))
    with pytest.raises(InvalidOpcodeError):
        cpu.update()
    assert cpu.hung is True


def test_halt_waits_for_interrupt():
    cpu, memory = make_cpu(bytes([0x76, 0x00]))
    memory.write(0xFFFF, 0x00)
    cpu.update()
    assert cpu.halted is True
    pc = cpu.reg.pc
    cpu.update()
    assert cpu.halted is True
    assert cpu.reg.pc == pc
    memory.write(0xFFFF, 0x01)
    memory.interrupt_flags.vblank = 1
    cpu.update()
    assert cpu.halted is False


def test_interrupt_dispatch_to_vector():
    cpu, memory = make_cpu(bytes([0xFB, 0x00, 0x00]))
    memory.write(0xFFFF, 0x01)
    memory.interrupt_flags.vblank = 1
    cpu.update()
    assert cpu.ime is True
    cpu.update()
    assert cpu.reg.pc == 0x40
    assert memory.interrupt_flags.vblank == 0
    assert cpu.ime is False
    assert cpu.pop_stack() == 0x0102


def test_disable_interrupts():
    cpu, _ = make_cpu(bytes([0xFB, 0xF3]))
    cpu.update()
    assert cpu.ime is True
    cpu.update()
    assert cpu.ime is False


def test_inc_dec_by_pair_value():
    cpu, _ = make_cpu()
    cpu.inc(cpu.reg.bc)
    assert cpu.reg.bc == 0x0014
    cpu.dec(cpu.reg.hl)
    assert cpu.reg.hl == 0x014C
    with pytest.raises(ValueError):
        cpu.inc(0x9999)


def test_short_dump_format():
    cpu, _ = make_cpu(bytes([0x00, 0x01, 0x02, 0x03]))
    assert cpu.short_dump() == (
        "A:01 F:B0 B:00 C:13 D:00 E:D8 H:01 L:4D SP:FFFE PC:0100 PCMEM:00,01,02,03"
    )


def test_long_dump_contents():
    cpu, _ = make_cpu(bytes([0x00]))
    text = cpu.long_dump()
    assert "pc (0x0100): 0x00" in text
    assert "flags: 1011" in text
    assert "hl: 0x014d" in text