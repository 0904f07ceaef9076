"""Cartridge mapper chips: ROM banking and cartridge RAM."""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from collections.abc import Sequence

from .bits import RAM_CART_END, ROM0_END, ROMN_END, VRAM_END

_RAM_BANK_BYTES = 8192


class MapperChip(enum.Enum):
    UNKNOWN = enum.auto()
    ROM_ONLY = enum.auto()
    MBC1 = enum.auto()
    MBC1_MULTI = enum.auto()
    MBC2 = enum.auto()
    MBC3 = enum.auto()
    MBC30 = enum.auto()
    MBC5 = enum.auto()
    MBC6 = enum.auto()
    MBC7 = enum.auto()
    HuC1 = enum.auto()
    HuC3 = enum.auto()
    MMM01 = enum.auto()
    TAMA5 = enum.auto()


class UnknownMapperError(ValueError):
    """The cartridge type names a mapper chip that is not supported."""


def ram_size(code: int) -> int:
    """Cartridge RAM size in bytes for the header's RAM size code."""
    return {
        2: _RAM_BANK_BYTES,
        3: 4 * _RAM_BANK_BYTES,
        4: 16 * _RAM_BANK_BYTES,
        5: 8 * _RAM_BANK_BYTES,
    }.get(code, 0)


_CHIP_BY_TYPE = {
    0x00: MapperChip.ROM_ONLY,
    **dict.fromkeys((0x01, 0x02, 0x03), MapperChip.MBC1),
    **dict.fromkeys((0x05, 0x06), MapperChip.MBC2),
    **dict.fromkeys((0x0B, 0x0C, 0x0D), MapperChip.MMM01),
    **dict.fromkeys((0x0F, 0x11), MapperChip.MBC3),
    **dict.fromkeys((0x10, 0x12, 0x13), MapperChip.MBC30),
    **dict.fromkeys((0x19, 0x1A, 0x1B, 0x1C, 0x1D, 0x1E), MapperChip.MBC5),
    0x20: MapperChip.MBC6,
    0x22: MapperChip.MBC7,
    0xFD: MapperChip.TAMA5,
    0xFE: MapperChip.HuC3,
    0xFF: MapperChip.HuC1,
}


def mapper_chip_type(type_code: int) -> MapperChip:
    """The mapper chip named by the header's cartridge type byte."""
    return _CHIP_BY_TYPE.get(type_code, MapperChip.UNKNOWN)


class MapperInfo(ABC):
    """Banking behaviour shared by every cartridge controller."""

    def __init__(self, ram_size_code: int = 0) -> None:
        self.ram_available = ram_size_code != 0
        self._ram = bytearray(ram_size(ram_size_code))

    @abstractmethod
    def bank(self, addr: int) -> int:
        """ROM bank mapped at ``addr``."""

    @abstractmethod
    def read_rom(self, rom: Sequence[int], addr: int) -> int | None:
        """Byte of ``rom`` visible at ``addr``, or None outside ROM space."""

    @abstractmethod
    def attempt_write_ram(self, addr: int, val: int) -> bool:
        """Update a chip register or cartridge RAM; False if nothing took the write."""

    @abstractmethod
    def read_ram(self, addr: int) -> int | None:
        """Byte of cartridge RAM at ``addr``, or None if RAM is not readable."""


class NoMBC(MapperInfo):
    """A cartridge with no banking: 32 KiB of ROM mapped directly."""

    def bank(self, addr: int) -> int:
        return 0

    def read_rom(self, rom: Sequence[int], addr: int) -> int | None:
        if addr < ROMN_END:
            return rom[addr]
        return None

    def attempt_write_ram(self, addr: int, val: int) -> bool:
        return False

    def read_ram(self, addr: int) -> int | None:
        return None


class MBC1(MapperInfo):
    """The MBC1 controller: 5-bit BANK1, 2-bit BANK2 and a banking mode."""

    _RAM_ENABLE_END = 0x2000
    _ROM_BANK1_END = 0x4000
    _ROM_BANK2_END = 0x6000
    _BANKING_MODE_END = 0x8000

    def __init__(self, ram_size_code: int = 0) -> None:
        super().__init__(ram_size_code)
        self.bank1 = 1
        self.bank2 = 0
        self._ram_enabled = False
        self._mode = 0

    @property
    def ram_enabled(self) -> bool:
        return self._ram_enabled

    @property
    def mode(self) -> int:
        return self._mode

    def bank(self, addr: int) -> int:
        if addr < ROM0_END:
            return 0 if self._mode == 0 else self.bank2 << 5
        return self.bank2 << 5 | self.bank1

    def read_rom(self, rom: Sequence[int], addr: int) -> int | None:
        if addr < ROMN_END:
            return rom[(self.bank(addr) << 14) | (addr & 0x3FFF)]
        return None

    def _ram_index(self, addr: int) -> int:
        return (self.bank2 << 13 | (addr & 0x1FFF)) % len(self._ram)

    def _in_ram(self, addr: int) -> bool:
        return self.ram_available and VRAM_END <= addr < RAM_CART_END

    def attempt_write_ram(self, addr: int, val: int) -> bool:
        val &= 0xFF
        if addr < self._RAM_ENABLE_END:
            self._ram_enabled = (val & 0xF) == 0b1010
            return True
        if addr < self._ROM_BANK1_END:
            self.bank1 = max(val & 0b11111, 1)
            return True
        if addr < self._ROM_BANK2_END:
            self.bank2 = val & 0b11
            return True
        if addr < self._BANKING_MODE_END:
            self._mode = val & 1
            return True

        if not self._in_ram(addr):
            return False
        self._ram[self._ram_index(addr)] = val
        return True

    def read_ram(self, addr: int) -> int | None:
        if not self._in_ram(addr):
            return None
        return self._ram[self._ram_index(addr)]


def create_mapper(type_code: int, ram_size_code: int) -> MapperInfo:
    """Build the mapper for a cartridge type byte and RAM size code."""
    if type_code == 0x00:
        return NoMBC()
    if type_code == 0x01:
        return MBC1()
    if type_code in (0x02, 0x03):
        return MBC1(ram_size_code)
    if type_code in (0x08, 0x09):
        return NoMBC(ram_size_code)
    raise UnknownMapperError(f"unknown mapper chip for cartridge type {type_code:#04x}")