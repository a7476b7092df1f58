"""AtomC compiler: lexer, symbol table, type checks, parser with code generation, and a stack VM."""

__version__ = "0.1.0"