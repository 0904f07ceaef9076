"""Byte-sized bitfield registers and the memory map boundaries."""

from __future__ import annotations

# Upper (exclusive) bounds of the regions of the 16-bit address space.
INTERRUPT_END = 0x0100  # restarts and interrupts [$0000, $00FF]
HEADER_END = 0x0150  # cartridge header [$0100, $014F]
ROM0_END = 0x4000  # fixed rom bank [$0150, $3FFF]
ROMN_END = 0x8000  # switchable rom bank [$4000, $7FFF]
VRAM_END = 0xA000  # video ram [$8000, $9FFF]
RAM_CART_END = 0xC000  # cartridge ram [$A000, $BFFF]
RAM0_END = 0xD000  # internal ram [$C000, $CFFF]
RAMN_END = 0xE000  # internal ram [$D000, $DFFF]
ECHO_RAM_END = 0xFE00  # mirror of internal ram [$E000, $FDFF]
OAM_END = 0xFEA0  # object attribute memory [$FE00, $FE9F]
UNUSABLE_END = 0xFF00  # prohibited [$FEA0, $FEFF]
IO_END = 0xFF80  # io registers [$FF00, $FF7F]
HRAM_END = 0xFFFF  # high ram [$FF80, $FFFE]
REG_IE = 0xFFFF  # interrupt enable register

ROM_BANK_SIZE = 1 << 14
RAM_BANK_SIZE = 1 << 12


def get_bits(value: int, offset: int, width: int) -> int:
    """Return the ``width`` bits of ``value`` starting at bit ``offset``."""
    return (value >> offset) & ((1 << width) - 1)


def set_bits(value: int, offset: int, width: int, field: int) -> int:
    """Return ``value`` with ``width`` bits at ``offset`` replaced by ``field``.

    ``field`` is truncated to ``width`` bits, as a C bitfield assignment would be.
    """
    mask = ((1 << width) - 1) << offset
    return (value & ~mask) | ((int(field) << offset) & mask)


class BitField:
    """Descriptor exposing a run of bits of a :class:`BitfieldByte`."""

    __slots__ = ("offset", "width", "name")

    def __init__(self, offset: int, width: int = 1) -> None:
        if width < 1 or offset < 0 or offset + width > 8:
            raise ValueError(f"bitfield [{offset}, {offset + width}) does not fit in a byte")
        self.offset = offset
        self.width = width
        self.name = ""

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, obj: BitfieldByte | None, objtype: type | None = None):
        if obj is None:
            return self
        return get_bits(obj.value, self.offset, self.width)

    def __set__(self, obj: BitfieldByte, field: int) -> None:
        obj.value = set_bits(obj.value, self.offset, self.width, field)


class BitfieldByte:
    """A byte register whose bits are also reachable through named fields."""

    __slots__ = ("value",)

    def __init__(self, value: int = 0) -> None:
        self.value = int(value) & 0xFF

    def __int__(self) -> int:
        return self.value

    def __index__(self) -> int:
        return self.value

    def assign(self, value: int) -> BitfieldByte:
        """Replace the whole byte, keeping only its low eight bits."""
        self.value = int(value) & 0xFF
        return self

    def __eq__(self, other: object) -> bool:
        if isinstance(other, (int, BitfieldByte)):
            return self.value == int(other)
        return NotImplemented

    __hash__ = None  # mutable

    def _fields(self) -> dict[str, int]:
        found: dict[str, int] = {}
        for cls in reversed(type(self).__mro__):
            for name, attr in vars(cls).items():
                if isinstance(attr, BitField):
                    found[name] = getattr(self, name)
        return found

    def __repr__(self) -> str:
        fields = ", ".join(f"{k}={v}" for k, v in self._fields().items())
        return f"{type(self).__name__}({self.value:#04x}{', ' if fields else ''}{fields})"