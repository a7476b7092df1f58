# atomcc

`atomcc` compiles and runs programs written in AtomC, a small teaching subset of C.
It is made of these modules:

- `atomcc.lexer` turns source text into a list of `Token`s (`tokenize`), and
  describes tokens for logs and messages (`token_string`, `token_name`, `show_tokens`).
- `atomcc.symbols` holds types (`Type`, `TypeBase`), symbols (`Symbol`, `SymKind`)
  and the stack of nested domains (`Domain`, `SymbolTable`), with `type_size`,
  `show_symbol` and `show_domain`.
- `atomcc.typecheck` decides conversions and result types (`conv_to`,
  `arith_type_to`, `can_be_scalar`) and carries an expression's type in `Ret`.
- `atomcc.expressions` (`ExpressionParser`) and `atomcc.parser` (`Parser`, `parse`)
  parse by recursive descent, check types and generate code while parsing;
  `atomcc.codegen` inserts conversions and loads.
- `atomcc.vm` is the stack-based virtual machine (`VM`) with its instruction lists
  (`Code`, `Instr`, `Opcode`), the built-in functions (`vm_init`) and two
  hand-built sample programs (`gen_test_program`, `gen_test_program2`).
- `atomcc.errors` defines the exceptions and `load_file`.

## Installing

```
pip install .
```

For the test suite:

```
pip install ".[test]"
pytest
```

## Running a program

```
atomcc program.c
```

The command loads the file, tokenizes it, parses it and generates code, prints
`Success!`, then calls the program's `main` function in the virtual machine. Every
instruction is traced to standard output as it runs. The token list and the
parser's trail of consumed tokens are written to `log.txt` in the current
directory.

The exit status is 0 on success and 1 on any error. A compilation error is printed
to standard error as `error in line N: ...`; other errors (a missing input file
argument, a file that cannot be opened, a missing `main` function, a run-time
error of the machine) as `error: ...`.

The built-in functions `put_i(int)` and `put_d(double)` print a value:

```c
int fact(int n){
	if(n<3)return n;
	return n*fact(n-1);
	}

void main(){
	put_i(4.9);
	put_i(fact(3));
	int r;
	r=1;
	int i;
	i=2;
	while(i<5){
		r=r*i;
		i=i+1;
		}
	put_i(r);
	}
```

## Using it from Python

```python
import io

from atomcc.lexer import tokenize, token_name
from atomcc.parser import parse
from atomcc.symbols import SymbolTable
from atomcc.vm import VM, Code, Opcode, vm_init

tokens = tokenize("void main(){ put_i(2+3); }")
print([token_name(t) for t in tokens])

table = SymbolTable()
table.push_domain()          # the global domain
out = io.StringIO()
vm = VM(out=out)
vm_init(table, vm)           # registers put_i and put_d
parse(tokens, table)         # an optional third argument is a log stream

entry = Code()
entry.add(Opcode.CALL, table.find("main").code.head)
entry.add(Opcode.HALT)
vm.run(entry)
print(out.getvalue())
```

Compilation errors are raised as `atomcc.errors.CompileError`, which carries the
`line` of the error; run-time errors of the virtual machine are raised as
`atomcc.errors.VMError`. Both derive from `atomcc.errors.AtomCError`.

## What it does not do

The parser accepts and type-checks the whole AtomC grammar: structs, arrays,
casts, `if`/`else`, `while`, `return` and all operators. Code is generated and
run only for a part of it:

- Code is generated for `int` and `double` values: constants, variables and
  parameters, calls, assignment, `+`, `-`, `*`, `/` and `<`. The operators `<=`,
  `>`, `>=`, `==`, `!=`, `&&`, `||`, unary `-` and `!`, casts, `char` and string
  constants, array indexing and struct fields are checked but generate no
  instructions of their own.
- The machine does not execute every opcode that the code generator emits:
  `CONV_I_F`, `LOAD_F`, `STORE_F`, `ADDR`, `FPADDR_F`, `ADD_F`, `SUB_F`, `MUL_F`,
  `DIV_I`, `DIV_F`, `LESS_F` and `JT` stop the run with a `VMError`. In practice
  running programs use `int` variables, and `double` values only as constants
  converted to `int`.
- Global variables are given storage but cannot be read or written at run time.
- There are no other built-in functions than `put_i` and `put_d`, and no input.