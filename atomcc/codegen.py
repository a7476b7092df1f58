"""Helpers for generating conversions and right-values."""

from __future__ import annotations

from typing import Optional

from .symbols import Type, TypeBase
from .vm import Code, Instr, Opcode

_CONVERSIONS = {
    (TypeBase.INT, TypeBase.DOUBLE): Opcode.CONV_I_F,
    (TypeBase.DOUBLE, TypeBase.INT): Opcode.CONV_F_I,
}

_LOADS = {TypeBase.INT: Opcode.LOAD_I, TypeBase.DOUBLE: Opcode.LOAD_F}


def insert_conv_if_needed(code: Code, before: Optional[Instr], src: Type, dst: Type) -> None:
    """Insert a conversion after ``before`` when ``src`` and ``dst`` need one.

    With ``before`` None the conversion goes at the start of the code.
    """
    op = _CONVERSIONS.get((src.tb, dst.tb))
    if op is None:
        return
    if before is None:
        code.head = Instr(op, next=code.head)
    else:
        code.insert_after(before, op)


def add_rval(code: Code, lval: bool, type: Type) -> None:
    """For a left-value, append the load that turns its address into a value."""
    if not lval:
        return
    op = _LOADS.get(type.tb)
    if op is not None:
        code.add(op)