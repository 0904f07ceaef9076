import pytest

from dotmatrix.mapper import MapperChip, UnknownMapperError
from dotmatrix.memory import (
    AttribFlags,
    Memory,
    MemoryAccessError,
    ObjectAttribute,
)
from dotmatrix.timer import Timer


def make_rom(type_code=0x00, size=0x8000, ram_code=0x00):
    data = bytearray(size)
    data[0x147] = type_code
    data[0x149] = ram_code
    return data


def make_memory(rom=None):
    return Memory(bytes(rom if rom is not None else make_rom()), Timer())


def test_rom_read_goes_through_mapper():
    rom = make_rom()
    rom[0x150] = 0x42
    mem = make_memory(rom)
    assert mem[0x150] == 0x42
    assert mem.read_rom(0x150) == 0x42
    assert mem.mapper_chip is MapperChip.ROM_ONLY


def test_work_ram_and_echo_mirror():
    mem = make_memory()
    mem[0xC010] = 0x12
    assert mem[0xC010] == 0x12
    assert mem[0xE010] == 0x12
    mem[0xE020] = 0x34
    assert mem[0xC020] == 0x34


def test_high_ram_and_interrupt_enable():
    mem = make_memory()
    mem[0xFF90] = 0x99
    assert mem[0xFF90] == 0x99
    mem[0xFFFF] = 0x1F
    assert mem[0xFFFF] == 0x1F
    assert int(mem.interrupt_enable) == 0x1F


def test_vram_blocked_in_pixel_draw():
    mem = make_memory()
    mem[0x8001] = 0x3C
    assert mem[0x8001] == 0x3C
    mem.io.stat.ppu_mode = 3
    assert mem[0x8001] == 0xFF
    assert mem.debug_read_vram(0x8001) == 0x3C


def test_oam_access_and_attribute_fields():
    mem = make_memory()
    mem.io.stat.ppu_mode = 0
    for offset, value in enumerate((0x20, 0x18, 0x05, 0x60)):
        mem[0xFE04 + offset] = value
    entry = mem.oam[1]
    assert (entry.y_pos, entry.x_pos, entry.tile_index) == (0x20, 0x18, 0x05)
    assert entry.attribs.x_flip == 1
    assert entry.attribs.y_flip == 1
    assert mem[0xFE06] == 0x05


def test_oam_blocked_during_scan():
    mem = make_memory()
    mem.io.stat.ppu_mode = 0
    mem[0xFE00] = 0x11
    mem.io.stat.ppu_mode = 2
    assert mem[0xFE00] == 0xFF
    mem[0xFE00] = 0x22
    mem.io.stat.ppu_mode = 0
    assert mem[0xFE00] == 0x11


def test_object_attribute_requires_four_bytes():
    with pytest.raises(ValueError):
        ObjectAttribute(b"\x00\x00")
    entry = ObjectAttribute()
    entry.attribs = AttribFlags(0x80)
    assert entry.attribs.priority == 1


def test_unusable_region_read_raises():
    mem = make_memory()
    with pytest.raises(MemoryAccessError):
        mem.read(0xFEA0)


def test_cartridge_ram_without_mapper_ram_raises():
    mem = make_memory()
    with pytest.raises(MemoryAccessError):
        mem.read(0xA000)


def test_io_registers_route_to_timer():
    mem = make_memory()
    mem[0xFF05] = 7
    assert mem[0xFF05] == 7
    assert mem.io.timer.tima == 7


def test_dma_transfer_blocks_and_completes():
    mem = make_memory()
    mem[0xFF80] = 0x55
    mem[0xFF46] = 0xC0
    assert mem.dma_active
    assert mem[0xC000] == 0xFF
    assert mem[0xFF80] == 0x55
    for _ in range(0xA0):
        mem.dma_transfer_tick()
    assert not mem.dma_active
    with pytest.raises(RuntimeError):
        mem.dma_transfer_tick()


def test_unknown_mapper_rejected():
    with pytest.raises(UnknownMapperError):
        make_memory(make_rom(type_code=0x05))


def test_rom_too_small_rejected():
    with pytest.raises(ValueError):
        Memory(bytes(0x100), Timer())


def test_mbc1_bank_switching():
    rom = make_rom(type_code=0x01, size=0x10000)
    rom[0x4000] = 0x11
    rom[0x8000] = 0x5A
    mem = make_memory(rom)
    assert mem[0x4000] == 0x11
    mem[0x2000] = 2
    assert mem[0x4000] == 0x5A


def test_mbc1_cartridge_ram():
    mem = make_memory(make_rom(type_code=0x03, ram_code=0x02))
    mem[0xA005] = 0x66
    assert mem[0xA005] == 0x66