[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "dotmatrix"
version = "0.1.0"
description = "A headless Game Boy (DMG) emulator core: SM83 CPU, memory map, timer, PPU mode machine and cartridge mappers."
requires-python = ">=3.10"
dependencies = []
keywords = ["gameboy", "dmg", "emulator", "sm83", "test-roms"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Emulators",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
dotmatrix-tests = "dotmatrix.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["dotmatrix"]

[tool.pytest.ini_options]
addopts = "-ra"
