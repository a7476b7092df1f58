"""Exceptions raised by the compiler and virtual machine, and source loading."""

from __future__ import annotations

import os
from typing import Optional, Union


class AtomCError(Exception):
    """Base class for every error reported by the package."""


class CompileError(AtomCError):
    """A lexical, syntactic or semantic error in the compiled source."""

    def __init__(self, message: str, line: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.line = line


class VMError(AtomCError):
    """A run-time error of the virtual machine."""


def load_file(path: Union[str, os.PathLike]) -> str:
    """Return the whole content of a source file, decoded byte for byte."""
    try:
        with open(path, "rb") as stream:
            data = stream.read()
    except OSError as exc:
        raise AtomCError(f"unable to open {os.fspath(path)}") from exc
    return data.decode("latin-1")