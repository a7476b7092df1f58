"""Symbols, types and the stack of lexical domains."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING, Any, Callable, List, Optional, TextIO

from .errors import AtomCError

if TYPE_CHECKING:
    from .vm import Code

_INT_SIZE = 4
_DOUBLE_SIZE = 8
_CHAR_SIZE = 1
_POINTER_SIZE = 8


class TypeBase(Enum):
    """The base of a type."""

    INT = auto()
    DOUBLE = auto()
    CHAR = auto()
    VOID = auto()
    STRUCT = auto()


@dataclass(frozen=True)
class Type:
    """A type: base, struct symbol for structs, and array dimension.

    ``n < 0`` is a scalar, ``n == 0`` an array without a dimension and
    ``n > 0`` an array of ``n`` elements.
    """

    tb: TypeBase
    s: Optional[Symbol] = None
    n: int = -1


class SymKind(Enum):
    """The kind of a symbol."""

    VAR = auto()
    PARAM = auto()
    FN = auto()
    STRUCT = auto()


@dataclass(eq=False)
class Symbol:
    """A named entity: variable, parameter, function or struct.

    ``owner`` is None for globals, the struct for struct members and the
    function for its parameters and locals.
    """

    name: str
    kind: SymKind
    type: Type = field(default_factory=lambda: Type(TypeBase.VOID))
    owner: Optional[Symbol] = field(default=None, repr=False)
    var_idx: int = 0
    var_mem: Any = field(default=None, repr=False)
    param_idx: int = 0
    members: List[Symbol] = field(default_factory=list, repr=False)
    params: List[Symbol] = field(default_factory=list, repr=False)
    locals: List[Symbol] = field(default_factory=list, repr=False)
    ext_fn: Optional[Callable[[], None]] = field(default=None, repr=False)
    code: Optional[Code] = field(default=None, repr=False)


_BASE_SIZES = {
    TypeBase.INT: _INT_SIZE,
    TypeBase.DOUBLE: _DOUBLE_SIZE,
    TypeBase.CHAR: _CHAR_SIZE,
    TypeBase.VOID: 0,
}


def _base_size(t: Type) -> int:
    if t.tb is TypeBase.STRUCT:
        if t.s is None:
            raise AtomCError("struct type without a struct symbol")
        return sum(type_size(member.type) for member in t.s.members)
    return _BASE_SIZES[t.tb]


def type_size(t: Type) -> int:
    """Return the size of a type in bytes."""
    if t.n < 0:
        return _base_size(t)
    if t.n == 0:
        return _POINTER_SIZE
    return t.n * _base_size(t)


_BASE_NAMES = {
    TypeBase.INT: "int",
    TypeBase.DOUBLE: "double",
    TypeBase.CHAR: "char",
    TypeBase.VOID: "void",
}


def _named_type(t: Type, name: Optional[str]) -> str:
    if t.tb is TypeBase.STRUCT:
        text = f"struct {t.s.name if t.s is not None else '?'}"
    else:
        text = _BASE_NAMES[t.tb]
    if name:
        text += f" {name}"
    if t.n == 0:
        text += "[]"
    elif t.n > 0:
        text += f"[{t.n}]"
    return text


def _address(obj: Any) -> str:
    return "(nil)" if obj is None else f"{id(obj):#x}"


def _symbol_text(symbol: Symbol) -> str:
    size = type_size(symbol.type)
    if symbol.kind is SymKind.VAR:
        text = _named_type(symbol.type, symbol.name)
        if symbol.owner is not None:
            return text + f";\t// size={size}, idx={symbol.var_idx}\n"
        return text + f";\t// size={size}, mem={_address(symbol.var_mem)}\n"
    if symbol.kind is SymKind.PARAM:
        return _named_type(symbol.type, symbol.name) + f" /*size={size}, idx={symbol.param_idx}*/"
    if symbol.kind is SymKind.FN:
        params = ", ".join(_symbol_text(param) for param in symbol.params)
        body = "".join("\t" + _symbol_text(local) for local in symbol.locals)
        return f"{_named_type(symbol.type, symbol.name)}({params}){{\n{body}\t}}\n"
    members = "".join("\t" + _symbol_text(member) for member in symbol.members)
    return f"struct {symbol.name}{{\n{members}\t}};\t// size={size}\n"


def show_symbol(symbol: Symbol, out: Optional[TextIO] = None) -> None:
    """Write a C-like description of a symbol."""
    (out if out is not None else sys.stdout).write(_symbol_text(symbol))


@dataclass(eq=False)
class Domain:
    """A lexical domain: its symbols in definition order and its parent."""

    parent: Optional[Domain] = None
    symbols: List[Symbol] = field(default_factory=list)

    def find(self, name: str) -> Optional[Symbol]:
        """Return the symbol with this name defined in this domain, if any."""
        return next((s for s in self.symbols if s.name == name), None)

    def add(self, symbol: Symbol) -> Symbol:
        """Append a symbol to this domain and return it."""
        self.symbols.append(symbol)
        return symbol


def show_domain(domain: Domain, name: str, out: Optional[TextIO] = None) -> None:
    """Write all symbols of a domain under a heading."""
    stream = out if out is not None else sys.stdout
    stream.write(f"// domain: {name}\n")
    for symbol in domain.symbols:
        stream.write(_symbol_text(symbol))
    stream.write("\n\n")


class SymbolTable:
    """A stack of domains; lookups go from the innermost outwards."""

    def __init__(self) -> None:
        self.current: Optional[Domain] = None

    def push_domain(self) -> Domain:
        """Open a new innermost domain and return it."""
        self.current = Domain(self.current)
        return self.current

    def drop_domain(self) -> None:
        """Close the innermost domain."""
        if self.current is None:
            raise AtomCError("no domain to drop")
        self.current = self.current.parent

    def find(self, name: str) -> Optional[Symbol]:
        """Search a name in all domains, starting with the innermost."""
        domain = self.current
        while domain is not None:
            symbol = domain.find(name)
            if symbol is not None:
                return symbol
            domain = domain.parent
        return None

    def find_in_current(self, name: str) -> Optional[Symbol]:
        """Search a name in the innermost domain only."""
        return self.current.find(name) if self.current is not None else None

    def add(self, symbol: Symbol) -> Symbol:
        """Add a symbol to the innermost domain."""
        if self.current is None:
            raise AtomCError("no domain to add a symbol to")
        return self.current.add(symbol)

    def add_ext_fn(self, name: str, func: Callable[[], None], ret: Type) -> Symbol:
        """Register a host function with the given name and return type."""
        fn = Symbol(name, SymKind.FN, type=ret, ext_fn=func)
        return self.add(fn)


def add_fn_param(fn: Symbol, name: str, type: Type) -> Symbol:
    """Append a parameter to a function, without a redefinition check."""
    param = Symbol(name, SymKind.PARAM, type=type, param_idx=len(fn.params))
    fn.params.append(param)
    return param