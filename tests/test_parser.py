import io
import re

import pytest

from atomcc.errors import CompileError
from atomcc.lexer import tokenize
from atomcc.parser import Parser, parse
from atomcc.symbols import SymKind, SymbolTable
from atomcc.vm import VM, Code, Opcode, vm_init

TESTGC = """// implementare recursiva pentru factorial
int fact(int n){
\tif(n<3)return n;
\treturn n*fact(n-1);
\t}

void main(){
\tput_i(4.9);\t\t// se afiseaza 4
\t
\tput_i(fact(3));\t// se afiseaza 6

\t// implementare nerecursiva pentru factorial
\tint r;
\tr=1;
\tint i;
\ti=2;
\twhile(i<5){
\t\tr=r*i;
\t\ti=i+1;
\t\t}
\tput_i(r);\t\t// se afiseaza 24
\t}
"""

TESTPARSER = """struct as{
\tint x;
\tdouble y;
};

struct Pt asd;
int x;
int x[23];
void s(struct ptk a){a=2;}
struct Pt points[10];
"""

TESTAD = """int x;
char y;
double z;
double p[100];


struct S1{
\tint i;
\tdouble d[2];
\tchar x;
\t};


struct S1 p1;
struct S1 vp[10];



double sum(double x[5],int n){
\tdouble r;
\tint i;
\tr=0;
\ti=0;
\twhile(i<n){
\t\tdouble n;
\t\tn=x[i];
\t\tr=r+n;
\t\ti=i+1;
\t\t}
\treturn r;
\t}


void f(struct S1 p){
\tputi(p.i);
\t}
"""


def compile_source(source, log=None):
    table = SymbolTable()
    table.push_domain()
    out = io.StringIO()
    vm = VM(out=out)
    vm_init(table, vm)
    parse(tokenize(source), table, log)
    return table, vm, out


def run_main(table, vm, out):
    main = table.find_in_current("main")
    entry = Code()
    entry.add(Opcode.CALL, main.code.head)
    entry.add(Opcode.HALT)
    vm.run(entry)
    return re.findall(r"=> (\S+)", out.getvalue())


def ops(symbol):
    return [instr.op for instr in symbol.code]


def test_testgc_program_prints_expected_values():
    table, vm, out = compile_source(TESTGC)
    assert run_main(table, vm, out) == ["4", "6", "24"]


def test_testgc_main_has_two_locals():
    table, _, _ = compile_source(TESTGC)
    main = table.find_in_current("main")
    assert [local.name for local in main.locals] == ["r", "i"]
    assert main.code.head.op is Opcode.ENTER
    assert main.code.head.arg == 2


def test_recursive_call_targets_function_entry():
    table, _, _ = compile_source(TESTGC)
    fact = table.find_in_current("fact")
    calls = [instr for instr in fact.code if instr.op is Opcode.CALL]
    assert len(calls) == 1
    assert calls[0].arg is fact.code.head
    assert fact.code.head.op is Opcode.ENTER


def test_testparser_reports_undefined_struct():
    with pytest.raises(CompileError) as info:
        compile_source(TESTPARSER)
    assert info.value.message == "structura nedefinita: Pt"
    assert info.value.line == 6


def test_testad_reports_undefined_function():
    with pytest.raises(CompileError) as info:
        compile_source(TESTAD)
    assert info.value.message == "undefined id: puti"
    assert info.value.line == 35


def test_struct_member_offsets_and_global_sizes():
    source = (
        "int x; char y; double p[100];"
        "struct S1{ int i; double d[2]; char x; };"
        "struct S1 vp[10];"
    )
    table, _, _ = compile_source(source)
    s1 = table.find("S1")
    assert s1.kind is SymKind.STRUCT
    assert [(m.name, m.var_idx) for m in s1.members] == [("i", 0), ("d", 4), ("x", 20)]
    assert len(table.find("x").var_mem) == 4
    assert len(table.find("y").var_mem) == 1
    assert len(table.find("p").var_mem) == 800
    assert len(table.find("vp").var_mem) == 210


def test_void_function_params_and_final_ret_void():
    table, _, _ = compile_source("void g(int a, double b){}")
    g = table.find("g")
    assert [(p.name, p.param_idx) for p in g.params] == [("a", 0), ("b", 1)]
    assert ops(g) == [Opcode.ENTER, Opcode.RET_VOID]
    assert g.code.head.arg == 0
    assert g.code.last().arg == 2


def test_locals_include_inner_domains():
    table, _, _ = compile_source("void f(){ int a; { double b; } int c; }")
    f = table.find("f")
    assert [(v.name, v.var_idx) for v in f.locals] == [("a", 0), ("b", 1), ("c", 2)]
    assert f.code.head.arg == 3


def test_return_value_code():
    table, _, _ = compile_source("int one(){ return 1; }")
    one = table.find("one")
    assert ops(one) == [Opcode.ENTER, Opcode.PUSH_I, Opcode.RET]
    assert one.code.last().arg == 0


def test_if_else_code_layout():
    table, _, _ = compile_source("void f(int a){ if(a) a=1; else a=2; }")
    f = table.find("f")
    assert ops(f) == [
        Opcode.ENTER,
        Opcode.FPADDR_I, Opcode.LOAD_I, Opcode.JF,
        Opcode.FPADDR_I, Opcode.PUSH_I, Opcode.STORE_I, Opcode.DROP,
        Opcode.JMP, Opcode.NOP,
        Opcode.FPADDR_I, Opcode.PUSH_I, Opcode.STORE_I, Opcode.DROP,
        Opcode.NOP,
        Opcode.RET_VOID,
    ]
    code = list(f.code)
    assert code[1].arg == -2
    assert code[3].arg is code[9]
    assert code[8].arg is code[14]


def test_while_loop_runs():
    source = "void main(){ int i; i=0; while(i<3){ put_i(i); i=i+1; } }"
    table, vm, out = compile_source(source)
    assert run_main(table, vm, out) == ["0", "1", "2"]


@pytest.mark.parametrize(
    "source, message",
    [
        ("int v[];", "a vector variable must have a specified dimension"),
        ("int x; int x;", "symbol redefinition: x"),
        ("void f(int a, int a){}", "symbol redefinition: a"),
        ("void f(){return 5;}", "a void function cannot return a value"),
        ("int f(){return;}", "a non-void function must return a value"),
        ("int f(){ return 1 }", "Missing ; after return"),
        ("void f(){ if 1; }", "Missing ( from if statement"),
        ("void f(){ while(1) }", "Missing body from while"),
        (
            "void f(){ int a; ",
            "Invalid statement, need to close with } or end with ; found instead: end",
        ),
        ("struct S{int a;}", "Struct declaration missing ;"),
        ("void f(int a,){}", "Missing parameter after comma, or invalid parameter"),
        ("void (){}", "Function missing name"),
        ("int;", "Variable missing name"),
        ("void f(){ int a; a(1); }", "only a function can be called"),
        ("5;", "syntax error, invalid variable/struct/function declaration, found: 5"),
    ],
)
def test_compile_errors(source, message):
    with pytest.raises(CompileError) as info:
        compile_source(source)
    assert info.value.message == message


def test_parser_class_returns_table_and_logs_restores():
    table = SymbolTable()
    table.push_domain()
    log = io.StringIO()
    result = Parser(tokenize("int x;"), table, log).parse()
    assert result is table
    assert table.find("x").kind is SymKind.VAR
    text = log.getvalue()
    assert "RESTORED to:" in text
    assert "ID: x" in text