"""Type analysis: conversions, arithmetic result types and scalar checks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from .symbols import Symbol, Type, TypeBase

_NUMERIC = (TypeBase.INT, TypeBase.DOUBLE, TypeBase.CHAR)


@dataclass(frozen=True)
class Ret:
    """The type of an expression, whether it is a left-value and a constant."""

    type: Type
    lval: bool
    ct: bool


def can_be_scalar(r: Ret) -> bool:
    """True if the expression's type converts to int, double, char or an address."""
    return r.type.n < 0 and r.type.tb is not TypeBase.VOID


def conv_to(src: Type, dst: Type) -> bool:
    """True if a value of type ``src`` can be converted to type ``dst``."""
    if src.n >= 0:
        return dst.n >= 0
    if dst.n >= 0:
        return False
    if src.tb in _NUMERIC:
        return dst.tb in _NUMERIC
    if src.tb is TypeBase.STRUCT:
        return dst.tb is TypeBase.STRUCT and src.s is dst.s
    return False


def arith_type_to(t1: Type, t2: Type) -> Optional[Type]:
    """Return the result type of an arithmetic operation, or None if invalid."""
    if t1.n >= 0 or t2.n >= 0:
        return None
    if t1.tb not in _NUMERIC or t2.tb not in _NUMERIC:
        return None
    if t1.tb is TypeBase.INT:
        tb = TypeBase.DOUBLE if t2.tb is TypeBase.DOUBLE else TypeBase.INT
    elif t1.tb is TypeBase.DOUBLE:
        tb = TypeBase.DOUBLE
    else:
        tb = t2.tb
    return Type(tb)


def find_symbol_in_list(symbols: Iterable[Symbol], name: str) -> Optional[Symbol]:
    """Return the first symbol with the given name, or None."""
    return next((s for s in symbols if s.name == name), None)