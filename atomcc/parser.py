"""Recursive-descent parsing of whole AtomC units: structs, functions, statements."""

from __future__ import annotations

from dataclasses import replace
from typing import Optional, Sequence, TextIO

from .codegen import add_rval, insert_conv_if_needed
from .expressions import ExpressionParser
from .lexer import Token, TokenCode, token_name
from .symbols import SymKind, Symbol, SymbolTable, Type, TypeBase, type_size
from .typecheck import can_be_scalar, conv_to
from .vm import Instr, Opcode

_INT = Type(TypeBase.INT)


class Parser(ExpressionParser):
    """Parses a token list into symbols and VM code, checking types on the way."""

    def parse(self) -> SymbolTable:
        """Parse the whole unit; raise CompileError on the first error."""
        self.pos = 0
        if not self.unit():
            raise self.error(
                "syntax error, invalid variable/struct/function declaration, "
                f"found: {token_name(self.current)}"
            )
        return self.table

    # declarations

    def unit(self) -> bool:
        """unit: ( structDef | fnDef | varDef )* END"""
        with self._rule("unit"):
            while self.struct_def() or self.fn_def() or self.var_def():
                pass
            return self.consume(TokenCode.END)

    def _check_redefinition(self, name: str) -> None:
        if self.table.find_in_current(name) is not None:
            raise self.error(f"symbol redefinition: {name}")

    def struct_def(self) -> bool:
        """structDef: STRUCT ID LACC varDef* RACC SEMICOLON"""
        with self._rule("structDef"):
            mark = self._mark()
            if not self.consume(TokenCode.STRUCT):
                return False
            if not self.consume(TokenCode.ID):
                self.restore(mark)
                return False
            name = self.consumed.value
            if not self.consume(TokenCode.LACC):
                self.restore(mark)
                return False
            self._check_redefinition(name)
            struct = Symbol(name, SymKind.STRUCT)
            struct.type = Type(TypeBase.STRUCT, struct)
            self.table.add(struct)
            self.table.push_domain()
            self.owner = struct
            while self.var_def():
                pass
            if not self.consume(TokenCode.RACC):
                raise self.error("Struct declaration missing }")
            if not self.consume(TokenCode.SEMICOLON):
                raise self.error("Struct declaration missing ;")
            self.owner = None
            self.table.drop_domain()
            return True

    def var_def(self) -> bool:
        """varDef: typeBase ID arrayDecl? SEMICOLON"""
        with self._rule("varDef"):
            t = self.type_base()
            if t is None:
                return False
            if not self.consume(TokenCode.ID):
                if self.consumed is not None and self.consumed.code == TokenCode.ID:
                    raise self.error("Struct variable missing name")
                raise self.error("Variable missing name")
            name = self.consumed.value
            array = self.array_decl(t)
            if array is not None:
                if array.n == 0:
                    raise self.error("a vector variable must have a specified dimension")
                t = array
            if not self.consume(TokenCode.SEMICOLON):
                raise self.error("Missing ; after variable declaration")
            self._check_redefinition(name)
            owner = self.owner
            var = Symbol(name, SymKind.VAR, type=t, owner=owner)
            self.table.add(var)
            if owner is None:
                var.var_mem = bytearray(type_size(t))
            elif owner.kind is SymKind.FN:
                var.var_idx = len(owner.locals)
                owner.locals.append(var)
            elif owner.kind is SymKind.STRUCT:
                var.var_idx = type_size(owner.type)
                owner.members.append(var)
            return True

    def fn_param(self) -> bool:
        """fnParam: typeBase ID arrayDecl?"""
        with self._rule("fnParam"):
            t = self.type_base()
            if t is None:
                return False
            if not self.consume(TokenCode.ID):
                raise self.error("Missing parameter name")
            name = self.consumed.value
            if self.array_decl(t) is not None:
                t = replace(t, n=0)
            self._check_redefinition(name)
            fn = self.owner
            param = Symbol(name, SymKind.PARAM, type=t, owner=fn, param_idx=len(fn.params))
            self.table.add(param)
            fn.params.append(param)
            return True

    def fn_def(self) -> bool:
        """fnDef: ( typeBase | VOID ) ID LPAR ( fnParam ( COMMA fnParam )* )? RPAR stmCompound"""
        with self._rule("fnDef"):
            mark = self._mark()
            name: Optional[str] = None
            t = self.type_base()
            passed_type = t is not None and self.consume(TokenCode.ID)
            if passed_type:
                name = self.consumed.value
            passed_void = False
            if self.consume(TokenCode.VOID):
                if passed_type:
                    raise self.error("A function can't both return a type and return void")
                t = Type(TypeBase.VOID)
                if not self.consume(TokenCode.ID):
                    raise self.error("Function missing name")
                name = self.consumed.value
                passed_void = True
            if not (passed_type or passed_void):
                self.restore(mark)
                return False
            if not self.consume(TokenCode.LPAR):
                if passed_void:
                    raise self.error("Must open function parameter list with (")
                self.restore(mark)
                return False
            self._check_redefinition(name)
            fn = Symbol(name, SymKind.FN, type=t)
            self.table.add(fn)
            self.owner = fn
            self.table.push_domain()
            if self.fn_param():
                while self.consume(TokenCode.COMMA):
                    if not self.fn_param():
                        raise self.error("Missing parameter after comma, or invalid parameter")
            if not self.consume(TokenCode.RPAR):
                raise self.error("Must close function parameters with ) or invalid parameter")
            enter = self.code.add(Opcode.ENTER)
            if not self.stm_compound(False):
                raise self.error("Missing function body")
            enter.arg = len(fn.locals)
            if fn.type.tb is TypeBase.VOID:
                self.code.add(Opcode.RET_VOID, len(fn.params))
            self.table.drop_domain()
            self.owner = None
            return True

    # statements

    def stm_compound(self, new_domain: bool) -> bool:
        """stmCompound: LACC ( varDef | stm )* RACC"""
        with self._rule("stmCompound"):
            if not self.consume(TokenCode.LACC):
                return False
            if new_domain:
                self.table.push_domain()
            while self.var_def() or self.stm():
                pass
            if not self.consume(TokenCode.RACC):
                raise self.error(
                    "Invalid statement, need to close with } or end with ; "
                    f"found instead: {token_name(self.current)}"
                )
            if new_domain:
                self.table.drop_domain()
            return True

    def _condition(self, keyword: str, where: str) -> Instr:
        if not self.consume(TokenCode.LPAR):
            raise self.error(f"Missing ( from {where}")
        cond = self.expr()
        if cond is None:
            raise self.error(f"Missing expression from {where}")
        if not can_be_scalar(cond):
            raise self.error(f"the {keyword} condition must be a scalar value")
        if not self.consume(TokenCode.RPAR):
            raise self.error(f"Missing ) from {where} or invalid expression")
        add_rval(self.code, cond.lval, cond.type)
        insert_conv_if_needed(self.code, self.code.last(), cond.type, _INT)
        return self.code.add(Opcode.JF)

    def _if(self) -> None:
        jump_false = self._condition("if", "if statement")
        if not self.stm():
            raise self.error("Missing body from if statement")
        if self.consume(TokenCode.ELSE):
            jump = self.code.add(Opcode.JMP)
            jump_false.arg = self.code.add(Opcode.NOP)
            if not self.stm():
                raise self.error("Missing body after else")
            jump.arg = self.code.add(Opcode.NOP)
        else:
            jump_false.arg = self.code.add(Opcode.NOP)

    def _while(self) -> None:
        before = self.code.last()
        jump_false = self._condition("while", "while")
        if not self.stm():
            raise self.error("Missing body from while")
        loop_start = before.next if before is not None else self.code.head
        self.code.add(Opcode.JMP, loop_start)
        jump_false.arg = self.code.add(Opcode.NOP)

    def _return(self) -> None:
        fn = self.owner
        r = self.expr()
        if r is not None:
            if fn.type.tb is TypeBase.VOID:
                raise self.error("a void function cannot return a value")
            if not can_be_scalar(r):
                raise self.error("the return value must be a scalar value")
            if not conv_to(r.type, fn.type):
                raise self.error(
                    "cannot convert the return expression type to the function return type"
                )
            add_rval(self.code, r.lval, r.type)
            insert_conv_if_needed(self.code, self.code.last(), r.type, fn.type)
            self.code.add(Opcode.RET, len(fn.params))
        else:
            if fn.type.tb is not TypeBase.VOID:
                raise self.error("a non-void function must return a value")
            self.code.add(Opcode.RET_VOID, len(fn.params))
        if not self.consume(TokenCode.SEMICOLON):
            raise self.error("Missing ; after return")

    def stm(self) -> bool:
        """stm: stmCompound | IF ... | WHILE ... | RETURN expr? SEMICOLON | expr? SEMICOLON"""
        with self._rule("stm"):
            mark = self._mark()
            if self.stm_compound(True):
                return True
            if self.consume(TokenCode.IF):
                self._if()
                return True
            if self.consume(TokenCode.WHILE):
                self._while()
                return True
            if self.consume(TokenCode.RETURN):
                self._return()
                return True
            r = self.expr()
            if r is not None and r.type.tb is not TypeBase.VOID:
                self.code.add(Opcode.DROP)
            if self.consume(TokenCode.SEMICOLON):
                return True
            self.restore(mark)
            return False


def parse(
    tokens: Sequence[Token], table: SymbolTable, log: Optional[TextIO] = None
) -> SymbolTable:
    """Parse tokens into ``table`` (which must have a domain open) and return it."""
    return Parser(tokens, table, log).parse()