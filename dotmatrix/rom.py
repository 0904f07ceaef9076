"""Loading cartridge ROM images and reading their headers."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .mapper import mapper_chip_type

logger = logging.getLogger(__name__)

# The Nintendo logo bitmap stored at $0104-$0133 of every licensed cartridge.
LOGO = bytes((
    0xCE, 0xED, 0x66, 0x66, 0xCC, 0x0D, 0x00, 0x0B, 0x03, 0x73, 0x00, 0x83, 0x00,
    0x0C, 0x00, 0x0D, 0x00, 0x08, 0x11, 0x1F, 0x88, 0x89, 0x00, 0x0E, 0xDC, 0xCC,
    0x6E, 0xE6, 0xDD, 0xDD, 0xD9, 0x99, 0xBB, 0xBB, 0x67, 0x63, 0x6E, 0x0E, 0xEC,
    0xCC, 0xDD, 0xDC, 0x99, 0x9F, 0xBB, 0xB9, 0x33, 0x3E,
))

MIN_ROM_SIZE = 0x0150
MAX_ROM_SIZE = 1 << 25

_CHECKSUM_START = 0x0134
_CHECKSUM_END = 0x014C  # inclusive
_CHECKSUM_ADDR = 0x014D
_NEW_LICENSEE_MARKER = 0x33

_RAM_SIZE_TEXT = {
    0x00: "N/A",
    0x02: "8 KiB -- 1 bank",
    0x03: "32 KiB -- 4 banks, 8 KiB each",
    0x04: "128 KiB -- 16 banks, 8 KiB each",
    0x05: "64 KiB -- 8 banks, 8 KiB each",
}


class RomError(Exception):
    """The file is missing, unreadable, or not a valid cartridge image."""


def _text(raw: bytes) -> str:
    return raw.rstrip(b"\0").decode("latin-1")


@dataclass(frozen=True)
class RomHeader:
    """The cartridge header found at $0100-$014F."""

    entry_point: bytes
    logo: bytes
    title: str
    manufacturer_code: str | None
    cgb_flag: int | None
    new_licensee_code: str
    sgb_flag: int
    cartridge_type: int
    rom_size_code: int
    ram_size_code: int
    destination_code: int
    old_licensee_code: int
    rom_version: int
    header_checksum: int
    global_checksum: int

    @property
    def logo_matches(self) -> bool:
        return self.logo == LOGO

    @property
    def uses_new_licensee(self) -> bool:
        return self.old_licensee_code == _NEW_LICENSEE_MARKER

    @property
    def color_support(self) -> bool | None:
        """Whether the cartridge supports colour mode, None when the header cannot say."""
        if self.cgb_flag is None:
            return None
        return self.cgb_flag == 0x80

    @property
    def rom_size_kib(self) -> int:
        return 32 * (1 << self.rom_size_code)


def header_checksum(data: bytes) -> int:
    """The header checksum computed over $0134-$014C."""
    checksum = 0
    for value in data[_CHECKSUM_START:_CHECKSUM_END + 1]:
        checksum = (checksum - value - 1) & 0xFF
    return checksum


def parse_header(data: bytes) -> RomHeader:
    """Decode the cartridge header of a ROM image."""
    if len(data) < MIN_ROM_SIZE:
        raise RomError("ROM is too small to hold a cartridge header")

    old_licensee = data[0x014B]
    if old_licensee == _NEW_LICENSEE_MARKER:
        cgb_flag: int | None = data[0x0143]
        if data[0x013E] != 0:
            title = _text(data[0x0134:0x0143])
            manufacturer: str | None = None
        else:
            title = _text(data[0x0134:0x013F])
            manufacturer = _text(data[0x013F:0x0143])
    else:
        title = _text(data[0x0134:0x0144])
        manufacturer = None
        cgb_flag = None

    return RomHeader(
        entry_point=bytes(data[0x0100:0x0104]),
        logo=bytes(data[0x0104:0x0134]),
        title=title,
        manufacturer_code=manufacturer,
        cgb_flag=cgb_flag,
        new_licensee_code=bytes(data[0x0144:0x0146]).decode("latin-1"),
        sgb_flag=data[0x0146],
        cartridge_type=data[0x0147],
        rom_size_code=data[0x0148],
        ram_size_code=data[0x0149],
        destination_code=data[0x014A],
        old_licensee_code=old_licensee,
        rom_version=data[0x014C],
        header_checksum=data[_CHECKSUM_ADDR],
        global_checksum=int.from_bytes(data[0x014E:0x0150], "big"),
    )


def _flag(value: bool) -> str:
    return "true" if value else "false"


def describe_header(header: RomHeader) -> str:
    """A human-readable summary of a cartridge header, one field per line."""
    lines = [f"Logo Check -- Matching? : {_flag(header.logo_matches)}",
             f"Title: {header.title}",
             f"Manufacturing Code: {header.manufacturer_code or 'N/A'}"]

    support = header.color_support
    lines.append(f"Color Mode Support: {'N/A' if support is None else _flag(support)}")

    if header.uses_new_licensee:
        lines.append(f"Publisher: Unknown ({header.new_licensee_code})")
    else:
        lines.append(f"Publisher: Unknown ({header.old_licensee_code:#04X})")

    lines.append(f"SGB Flag: {header.sgb_flag:#04X}")
    chip = mapper_chip_type(header.cartridge_type)
    lines.append(f"Cartridge Type: {chip.name} ({header.cartridge_type:#04X})")
    lines.append(f"ROM Size: {header.rom_size_kib} KiB")

    ram_text = _RAM_SIZE_TEXT.get(header.ram_size_code)
    if ram_text is not None:
        lines.append(f"RAM Size: {ram_text}")

    region = "Japan+" if header.destination_code == 0x00 else "Overseas"
    lines.append(f"Region Code: {region}")
    lines.append(f"ROM Version: {header.rom_version}")
    return "\n".join(lines)


def load(rom_path: str | os.PathLike[str]) -> bytes:
    """Read a ROM image, checking its size and header checksum."""
    path = Path(rom_path)
    if not path.exists():
        raise RomError(f"ROM at {path} doesn't exist.")
    if not path.is_file():
        raise RomError("A regular ROM file is needed.")

    size = path.stat().st_size
    if size < MIN_ROM_SIZE:
        raise RomError("ROM is too small to hold a cartridge header")
    if size > MAX_ROM_SIZE:
        raise RomError("ROM is too large to be a cartridge image")

    data = path.read_bytes()
    header = parse_header(data)
    logger.info("----- Rom Loaded -----\n%s", describe_header(header))

    checksum = header_checksum(data)
    if checksum != header.header_checksum:
        raise RomError(
            f"header checksum {checksum:#04X} does not match {header.header_checksum:#04X}"
        )
    logger.info("Checksum: %#04X (vs $014D) %#04X", checksum, header.header_checksum)
    return data