from atomcc.codegen import add_rval, insert_conv_if_needed
from atomcc.symbols import Type, TypeBase
from atomcc.vm import Code, Opcode

INT = Type(TypeBase.INT)
DOUBLE = Type(TypeBase.DOUBLE)
CHAR = Type(TypeBase.CHAR)


def _ops(code):
    return [i.op for i in code]


def test_int_to_double_inserted_after():
    code = Code()
    first = code.add(Opcode.PUSH_I, 1)
    code.add(Opcode.PUSH_F, 2.0)
    insert_conv_if_needed(code, first, INT, DOUBLE)
    assert _ops(code) == [Opcode.PUSH_I, Opcode.CONV_I_F, Opcode.PUSH_F]


def test_double_to_int():
    code = Code()
    first = code.add(Opcode.PUSH_F, 4.9)
    insert_conv_if_needed(code, first, DOUBLE, INT)
    assert _ops(code) == [Opcode.PUSH_F, Opcode.CONV_F_I]


def test_no_conversion_needed():
    code = Code()
    first = code.add(Opcode.PUSH_I, 1)
    insert_conv_if_needed(code, first, INT, INT)
    insert_conv_if_needed(code, first, CHAR, DOUBLE)
    assert _ops(code) == [Opcode.PUSH_I]


def test_conversion_at_start():
    code = Code()
    code.add(Opcode.PUSH_F, 1.0)
    insert_conv_if_needed(code, None, INT, DOUBLE)
    assert _ops(code) == [Opcode.CONV_I_F, Opcode.PUSH_F]


def test_add_rval():
    code = Code()
    add_rval(code, False, INT)
    assert _ops(code) == []
    add_rval(code, True, INT)
    add_rval(code, True, DOUBLE)
    add_rval(code, True, CHAR)
    assert _ops(code) == [Opcode.LOAD_I, Opcode.LOAD_F]