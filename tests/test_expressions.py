import pytest

from atomcc.errors import CompileError
from atomcc.expressions import ExpressionParser
from atomcc.lexer import TokenCode, tokenize
from atomcc.symbols import SymKind, Symbol, SymbolTable, Type, TypeBase, add_fn_param
from atomcc.vm import VM, Code, Opcode, vm_init


def _setup(src):
    table = SymbolTable()
    table.push_domain()
    vm_init(table, VM())
    s = Symbol("S", SymKind.STRUCT)
    s.type = Type(TypeBase.STRUCT, s)
    s.members = [
        Symbol("n", SymKind.VAR, Type(TypeBase.INT), owner=s),
        Symbol("text", SymKind.VAR, Type(TypeBase.CHAR, None, 16), owner=s),
    ]
    table.add(s)
    table.add(Symbol("a", SymKind.VAR, Type(TypeBase.STRUCT, s), var_mem=bytearray(20)))
    table.add(Symbol("v", SymKind.VAR, Type(TypeBase.STRUCT, s, 10), var_mem=bytearray(200)))
    fn = Symbol("f", SymKind.FN, Type(TypeBase.VOID))
    fn.code = Code()
    fn.code.add(Opcode.ENTER, 0)
    table.add(fn)
    add_fn_param(fn, "b", Type(TypeBase.INT))
    table.push_domain()
    table.add(Symbol("x", SymKind.VAR, Type(TypeBase.INT), owner=fn, var_idx=0))
    table.add(Symbol("arr", SymKind.VAR, Type(TypeBase.INT, None, 20), owner=fn, var_idx=1))
    parser = ExpressionParser(tokenize(src), table)
    parser.owner = fn
    return parser, fn


def _ops(fn):
    return [i.op for i in fn.code][1:]


def test_consume():
    parser, _ = _setup("x ;")
    assert parser.consume(TokenCode.SEMICOLON) is False
    assert parser.consume(TokenCode.ID) is True
    assert parser.current.code == TokenCode.SEMICOLON


def test_assignment_code():
    parser, fn = _setup("x = 3")
    r = parser.expr()
    assert r.type.tb is TypeBase.INT and not r.lval
    assert _ops(fn) == [Opcode.FPADDR_I, Opcode.PUSH_I, Opcode.STORE_I]
    assert list(fn.code)[1].arg == 1


def test_less_with_conversion():
    parser, fn = _setup("1 < 2.5")
    r = parser.expr()
    assert r.type.tb is TypeBase.INT
    assert _ops(fn) == [Opcode.PUSH_I, Opcode.CONV_I_F, Opcode.PUSH_F, Opcode.LESS_F]


def test_ext_call_converts_argument():
    parser, fn = _setup("put_i(4.9)")
    r = parser.expr()
    assert r.type.tb is TypeBase.VOID
    assert _ops(fn) == [Opcode.PUSH_F, Opcode.CONV_F_I, Opcode.CALL_EXT]


def test_no_expression():
    parser, _ = _setup(";")
    assert parser.expr() is None


@pytest.mark.parametrize(
    "src,message",
    [
        ("5 = a", "the assign destination must be a left-value"),
        ("a.text = 5", "the assign destination cannot be constant"),
        ("a = v", "the assign source must be scalar"),
        ("a = 5", "the assign source cannot be converted to destination"),
        ("x = a || a", "invalid operand type for ||"),
        ("x = a && a", "invalid operand type for &&"),
        ("a == 3", "invalid operand type for =="),
        ("a != 4", "invalid operand type for !="),
        ("a > 4", "invalid operand type for >"),
        ("a >= 4", "invalid operand type for >="),
        ("a < 4", "invalid operand type for <"),
        ("a <= 4", "invalid operand type for <="),
        ("a + 4", "invalid operand type for +"),
        ("a - 4", "invalid operand type for -"),
        ("a*4", "invalid operand type for *"),
        ("a/4", "invalid operand type for /"),
        ("(int)a", "cannot convert a struct"),
        ("(struct S)a", "cannot convert to a struct type"),
        ("(double)arr", "an array can be converted only to another array"),
        ("(double[])x", "a scalar can be converted only to another scalar"),
        ("-v", "unary - must have a scalar operand"),
        ("!v", "unary ! must have a scalar operand"),
        ("a[2]", "only an array can be indexed"),
        ("v[a]", "the index is not convertible to int"),
        ("x.n", "a field can only be selected from a struct"),
        ("a.asd", "the structure S does not have a field asd"),
        ("q + 4", "undefined id: q"),
        ("a(2)", "only a function can be called"),
        ("f + 2", "a function can only be called"),
        ("f()", "too few arguments in function call"),
        ("f(2,3)", "too many arguments in function call"),
        ("f(a)", "in call, cannot convert the argument type to the parameter type"),
    ],
)
def test_semantic_errors(src, message):
    parser, _ = _setup(src)
    with pytest.raises(CompileError) as info:
        parser.expr()
    assert info.value.message == message
    assert info.value.line == 1


def test_field_of_indexed_array():
    parser, _ = _setup("v[1].n")
    r = parser.expr()
    assert r.type.tb is TypeBase.INT
    assert r.lval is True and r.ct is False