"""Command line entry: compile an AtomC file and run its main function."""

from __future__ import annotations

import sys
from typing import List, Optional, Sequence

from .errors import AtomCError, CompileError, load_file
from .lexer import show_tokens, tokenize
from .parser import parse
from .symbols import SymbolTable
from .vm import VM, Code, Opcode, vm_init

LOG_FILE = "log.txt"

_SEPARATOR = "---------------------------------------"


def _run(args: List[str]) -> int:
    if not args:
        raise AtomCError("Did not provide input file: ./main input")
    tokens = tokenize(load_file(args[0]))
    try:
        log = open(LOG_FILE, "w", encoding="utf-8")
    except OSError as exc:
        raise AtomCError(f"Could not create log file: {exc}") from exc
    with log:
        log.write("Tokens:\n\n")
        show_tokens(tokens, log)
        log.write(f"\n{_SEPARATOR}\nConsumed tokens\n{_SEPARATOR}\n")

        table = SymbolTable()
        table.push_domain()
        vm = VM(out=sys.stdout)
        vm_init(table, vm)
        parse(tokens, table, log)
        print("Success!")

        main_fn = table.find_in_current("main")
        if main_fn is None or main_fn.code is None:
            raise AtomCError("missing main function")
        entry = Code()
        entry.add(Opcode.CALL, main_fn.code.head)
        entry.add(Opcode.HALT)
        vm.run(entry)
        table.drop_domain()
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Compile the file named by the first argument and run it; return an exit code."""
    args = list(sys.argv[1:] if argv is None else argv)
    try:
        return _run(args)
    except CompileError as exc:
        if exc.line is not None:
            print(f"error in line {exc.line}: {exc.message}", file=sys.stderr)
        else:
            print(f"error: {exc.message}", file=sys.stderr)
        return 1
    except AtomCError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())