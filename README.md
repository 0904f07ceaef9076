# dotmatrix

A headless emulator core for the original Game Boy (DMG). It covers:

- the SM83 CPU (`dotmatrix.cpu.Cpu`): the base and `CB`-prefixed instruction sets, interrupts, `EI`/`DI`/`RETI` and HALT
- the memory map (`dotmatrix.memory.Memory`): cartridge ROM and RAM, VRAM, work RAM and its echo, OAM, I/O registers, high RAM and OAM DMA
- the DIV/TIMA timer (`dotmatrix.timer.Timer`)
- the PPU mode state machine (`dotmatrix.ppu.Ppu`): OAM scan, pixel draw, HBlank and VBlank, with LY/LYC and STAT interrupts
- cartridge loading with header checks (`dotmatrix.rom`), and the ROM-only and MBC1 mappers (`dotmatrix.mapper`)

Its main use is running test ROMs that report their results over the serial port.

## Installation

```
pip install .
```

With the test dependencies:

```
pip install .[test]
```

## Running test ROMs

`dotmatrix-tests` collects every `.gb` and `.gbc` file below a test directory, sorted by path. The directory is `tests` unless the `DOTMATRIX_TESTS` environment variable or the `--root` option names another.

With no arguments it lists the ROMs it found, numbered from 1, and exits with status 1:

```
dotmatrix-tests
dotmatrix-tests --root path/to/roms
```

To run one ROM, pass its number or a path to the file:

```
dotmatrix-tests 3
dotmatrix-tests path/to/cpu_instrs.gb
```

A ROM runs at about 60 frames per second until it hits an undefined opcode (exit status 1) or you press Ctrl-C (exit status 0). Characters it sends over the serial port are written to standard error as they arrive.

Add `step` as a second argument to execute one instruction for each character read from standard input (so one per press of Enter):

```
dotmatrix-tests 3 step
```

## Using the library

```python
from dotmatrix.emulator import Emulator

emu = Emulator("game.gb")
emu.set_dump(False, True)   # log a one-line CPU state before each instruction
emu.start()
for _ in range(10_000):
    emu.update()
print(emu.cpu.reg.pc)
```

`Emulator.update` executes one instruction and advances the timer, PPU and DMA by the cycles it took. `Emulator.run` loops without end at frame pace and echoes serial output to `serial_stream` (standard error by default); everything sent so far is in `serial_output`. The CPU state dumps go to the `dotmatrix.cpu` logger at DEBUG level.

The parts also work on their own:

```python
from dotmatrix.rom import load, parse_header, describe_header
from dotmatrix.timer import Timer
from dotmatrix.memory import Memory
from dotmatrix.cpu import Cpu
from dotmatrix.decoder import decode

data = load("game.gb")             # raises RomError if the file is not a valid ROM
print(describe_header(parse_header(data)))

memory = Memory(data, Timer())
cpu = Cpu(memory)
cpu.update()
print(cpu.short_dump())
print(decode(0x3E))                # OpCode.ld_r8_imm8
```

## Errors

- `rom.RomError`: the file is missing, not a regular file, under 0x150 bytes, over 32 MiB, or its header checksum at `$014D` does not match.
- `mapper.UnknownMapperError`: the cartridge type byte names a mapper other than ROM-only (`$00`, `$08`, `$09`) or MBC1 (`$01`-`$03`).
- `decoder.InvalidOpcodeError`: the CPU fetched an undefined opcode; the CPU is marked as hung before it is raised.
- `memory.MemoryAccessError`: a read from an address with nothing behind it, such as `$FEA0`-`$FEFF`, or cartridge RAM that the mapper does not provide.

## What it does not do

- Nothing is drawn: the PPU steps through its modes and raises interrupts but produces no pixels, and there is no window.
- There is no sound, no joypad input and no Game Boy Color support.
- `STOP` is not emulated and leaves the CPU running.
- Cartridge RAM is not saved to disk, and MBC1 RAM accepts reads and writes whether or not it has been enabled.