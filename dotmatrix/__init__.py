"""Headless Game Boy (DMG) emulator core: CPU, memory map, timer, PPU mode machine and cartridge mappers."""

__version__ = "0.1.0"

__all__ = [
    "bits",
    "timer",
    "hwregs",
    "mapper",
    "rom",
    "memory",
    "ppu",
    "operations",
    "decoder",
    "cpu",
    "emulator",
    "cli",
]