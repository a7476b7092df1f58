import pytest

from atomcc.symbols import SymKind, Symbol, Type, TypeBase
from atomcc.typecheck import Ret, arith_type_to, can_be_scalar, conv_to, find_symbol_in_list

INT = Type(TypeBase.INT)
DOUBLE = Type(TypeBase.DOUBLE)
CHAR = Type(TypeBase.CHAR)
VOID = Type(TypeBase.VOID)


def _struct(name):
    s = Symbol(name, SymKind.STRUCT)
    s.type = Type(TypeBase.STRUCT, s)
    return s


def test_can_be_scalar():
    assert can_be_scalar(Ret(INT, False, True)) is True
    assert can_be_scalar(Ret(VOID, False, True)) is False
    assert can_be_scalar(Ret(Type(TypeBase.INT, None, 10), True, True)) is False


@pytest.mark.parametrize("src", [INT, DOUBLE, CHAR])
@pytest.mark.parametrize("dst", [INT, DOUBLE, CHAR])
def test_numeric_conversions(src, dst):
    assert conv_to(src, dst) is True


def test_array_conversions():
    arr = Type(TypeBase.INT, None, 5)
    other = Type(TypeBase.DOUBLE, None, 0)
    assert conv_to(arr, other) is True
    assert conv_to(arr, INT) is False
    assert conv_to(INT, arr) is False


def test_struct_conversion_only_to_itself():
    a, b = _struct("A"), _struct("B")
    assert conv_to(a.type, a.type) is True
    assert conv_to(a.type, b.type) is False
    assert conv_to(a.type, INT) is False
    assert conv_to(INT, a.type) is False


def test_arith_types():
    assert arith_type_to(INT, DOUBLE).tb is TypeBase.DOUBLE
    assert arith_type_to(INT, CHAR).tb is TypeBase.INT
    assert arith_type_to(CHAR, INT).tb is TypeBase.INT
    assert arith_type_to(CHAR, CHAR).tb is TypeBase.CHAR
    assert arith_type_to(DOUBLE, CHAR).tb is TypeBase.DOUBLE
    assert arith_type_to(INT, INT).n == -1


def test_arith_invalid():
    s = _struct("S")
    assert arith_type_to(s.type, INT) is None
    assert arith_type_to(INT, Type(TypeBase.INT, None, 3)) is None
    assert arith_type_to(VOID, INT) is None


def test_find_symbol_in_list():
    x = Symbol("x", SymKind.VAR)
    y = Symbol("y", SymKind.VAR)
    assert find_symbol_in_list([x, y], "y") is y
    assert find_symbol_in_list([x, y], "z") is None