"""Command line runner for test ROMs."""

from __future__ import annotations

import argparse
import errno
import os
import re
import sys
from pathlib import Path

from .decoder import InvalidOpcodeError
from .emulator import Emulator
from .rom import RomError

ROM_SUFFIXES = (".gb", ".gbc")
_MAX_TEST_NUMBER = 2**64 - 1
_LEADING_DIGITS = re.compile(r"\d*")


def discover_tests(root: str | os.PathLike[str]) -> list[Path]:
    """All ROM files below ``root``, in a stable order."""
    return sorted(
        path for path in Path(root).rglob("*")
        if path.is_file() and path.suffix in ROM_SUFFIXES
    )


def run_test(path: str | os.PathLike[str], step: bool = False) -> int:
    """Run one ROM, either freely or one instruction per character of input."""
    print(f"Running test: {path}")
    emu = Emulator(path)
    try:
        if step:
            print("\n-----Press Enter to execute the next instruction-----\n")
            emu.start()
            while sys.stdin.read(1):
                if not emu.update():
                    break
        else:
            emu.set_dump(False, True)
            emu.run()
    except InvalidOpcodeError as exc:
        print(f"Something in the emulator went wrong! {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        pass
    return 0


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dotmatrix", description="Run test ROMs.")
    parser.add_argument("test", nargs="?", help="a test number or a ROM path")
    parser.add_argument("mode", nargs="?", help='"step" to step through the program')
    parser.add_argument("--root", default=os.environ.get("DOTMATRIX_TESTS", "tests"),
                        help="directory searched for test ROMs")
    return parser


def _list_tests(root: Path, tests: list[Path]) -> None:
    print("To run a specific test, input either a file path or a number. Tests available:",
          file=sys.stderr)
    print('To step through the program, add "step" as the second argument.', file=sys.stderr)
    for number, test in enumerate(tests, start=1):
        print(f"\t{number:02}. {test.relative_to(root)}", file=sys.stderr)


def main(argv: list[str] | None = None) -> int:
    args = _parser().parse_args(argv)
    root = Path(args.root)
    tests = discover_tests(root) if root.is_dir() else []

    if args.test is None:
        _list_tests(root, tests)
        return 1

    step = args.mode == "step"
    text = args.test
    digits = _LEADING_DIGITS.match(text).group()

    try:
        if digits and len(digits) < len(text):
            # Starts with a number but is more than one: treat it as a path.
            path = Path(text)
            if not path.exists():
                print("Not a valid filepath.", file=sys.stderr)
                return 1
            return run_test(path, step)

        if not digits:
            print("Not a valid test number.", file=sys.stderr)
            return errno.EINVAL

        number = int(digits)
        if number > _MAX_TEST_NUMBER:
            print("Number is too big, there aren't that many tests.", file=sys.stderr)
            return errno.ERANGE
        if number < 1:
            print("Not a valid test number.", file=sys.stderr)
            return errno.EINVAL
        if number > len(tests):
            print(f"Number is too big, there are only {len(tests)} tests.", file=sys.stderr)
            return 1
        return run_test(tests[number - 1], step)
    except RomError as exc:
        print(exc, file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())