"""Recursive-descent parsing, type checking and code generation of expressions."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import replace
from typing import Callable, Dict, Iterator, List, Optional, Sequence, TextIO, Tuple

from .codegen import add_rval, insert_conv_if_needed
from .errors import CompileError
from .lexer import Token, TokenCode, token_string
from .symbols import SymKind, Symbol, SymbolTable, Type, TypeBase
from .typecheck import Ret, arith_type_to, can_be_scalar, conv_to, find_symbol_in_list
from .vm import Code, Instr, Opcode

_INT = Type(TypeBase.INT)

_OpTable = Dict[TypeBase, Opcode]

_ADD_OPS: Dict[TokenCode, Tuple[str, _OpTable]] = {
    TokenCode.ADD: ("+", {TypeBase.INT: Opcode.ADD_I, TypeBase.DOUBLE: Opcode.ADD_F}),
    TokenCode.SUB: ("-", {TypeBase.INT: Opcode.SUB_I, TypeBase.DOUBLE: Opcode.SUB_F}),
}
_MUL_OPS: Dict[TokenCode, Tuple[str, _OpTable]] = {
    TokenCode.MUL: ("*", {TypeBase.INT: Opcode.MUL_I, TypeBase.DOUBLE: Opcode.MUL_F}),
    TokenCode.DIV: ("/", {TypeBase.INT: Opcode.DIV_I, TypeBase.DOUBLE: Opcode.DIV_F}),
}
# only < generates a comparison instruction
_REL_OPS: Dict[TokenCode, Tuple[str, _OpTable]] = {
    TokenCode.LESS: ("<", {TypeBase.INT: Opcode.LESS_I, TypeBase.DOUBLE: Opcode.LESS_F}),
    TokenCode.LESSEQ: ("<=", {}),
    TokenCode.GREATER: (">", {}),
    TokenCode.GREATEREQ: (">=", {}),
}
_FPADDR = {TypeBase.INT: Opcode.FPADDR_I, TypeBase.DOUBLE: Opcode.FPADDR_F}
_STORE = {TypeBase.INT: Opcode.STORE_I, TypeBase.DOUBLE: Opcode.STORE_F}


class ExpressionParser:
    """Parses expressions from a token list inside the function ``owner``."""

    def __init__(
        self, tokens: Sequence[Token], table: SymbolTable, log: Optional[TextIO] = None
    ) -> None:
        self.tokens: List[Token] = list(tokens)
        self.table = table
        self.log = log
        self.pos = 0
        self.consumed: Optional[Token] = None
        self.owner: Optional[Symbol] = None
        self._path: List[str] = []

    # infrastructure

    @property
    def current(self) -> Token:
        return self.tokens[min(self.pos, len(self.tokens) - 1)]

    @property
    def code(self) -> Code:
        if self.owner is None:
            raise CompileError("code generated outside of a function", self.current.line)
        if self.owner.code is None:
            self.owner.code = Code()
        return self.owner.code

    def error(self, message: str) -> CompileError:
        return CompileError(message, self.current.line)

    @contextmanager
    def _rule(self, name: str) -> Iterator[None]:
        self._path.append(name)
        try:
            yield
        finally:
            self._path.pop()

    def _log_path(self) -> None:
        if self.log is None:
            return
        head = f"{token_string(self.consumed):<20}" if self.consumed is not None else ""
        trail = "".join(f"{name} <- " for name in reversed(self._path))
        self.log.write(head + trail + "\n")

    def _mark(self) -> Tuple[int, Optional[Instr]]:
        start_instr = self.owner.code.last() if self.owner and self.owner.code else None
        return self.pos, start_instr

    def restore(self, mark: Tuple[int, Optional[Instr]]) -> None:
        """Go back to a saved token position, dropping code generated since."""
        self.pos, start_instr = mark
        if self.owner is not None and self.owner.code is not None:
            self.owner.code.delete_after(start_instr)
        if self.log is not None:
            self.log.write("\nRESTORED to:")
            self._log_path()
            self.log.write("\n")

    def consume(self, code: TokenCode) -> bool:
        """Consume the current token if it has the given code."""
        if self.pos < len(self.tokens) and self.tokens[self.pos].code == code:
            self.consumed = self.tokens[self.pos]
            self.pos += 1
            self._log_path()
            return True
        return False

    # types

    def type_base(self) -> Optional[Type]:
        with self._rule("typeBase"):
            if self.consume(TokenCode.TYPE_INT):
                return Type(TypeBase.INT)
            if self.consume(TokenCode.TYPE_DOUBLE):
                return Type(TypeBase.DOUBLE)
            if self.consume(TokenCode.TYPE_CHAR):
                return Type(TypeBase.CHAR)
            if self.consume(TokenCode.STRUCT):
                if not self.consume(TokenCode.ID):
                    raise self.error("Must specify the struct name")
                name = self.consumed.value
                s = self.table.find(name)
                if s is None:
                    raise self.error(f"structura nedefinita: {name}")
                return Type(TypeBase.STRUCT, s)
            return None

    def array_decl(self, t: Type) -> Optional[Type]:
        with self._rule("arrayDecl"):
            if not self.consume(TokenCode.LBRACKET):
                return None
            n = self.consumed_int() if self.consume(TokenCode.INT) else 0
            if not self.consume(TokenCode.RBRACKET):
                raise self.error(
                    "Missing ] in array declaration or invalid expression inside [...]"
                )
            return replace(t, n=n)

    def consumed_int(self) -> int:
        return int(self.consumed.value)

    # expressions

    def expr(self) -> Optional[Ret]:
        """Parse an expression; return its type info or None if none starts here."""
        with self._rule("expr"):
            return self.expr_assign()

    def _call_arg(self, arg: Ret, param: Optional[Symbol]) -> None:
        if param is None:
            raise self.error("too many arguments in function call")
        if not conv_to(arg.type, param.type):
            raise self.error("in call, cannot convert the argument type to the parameter type")
        add_rval(self.code, arg.lval, arg.type)
        insert_conv_if_needed(self.code, self.code.last(), arg.type, param.type)

    def expr_primary(self) -> Optional[Ret]:
        with self._rule("exprPrimary"):
            mark = self._mark()
            if self.consume(TokenCode.ID):
                name = self.consumed.value
                s = self.table.find(name)
                if s is None:
                    raise self.error(f"undefined id: {name}")
                if self.consume(TokenCode.LPAR):
                    return self._call(s)
                if s.kind is SymKind.FN:
                    raise self.error("a function can only be called")
                self._address_of(s)
                return Ret(s.type, True, s.type.n >= 0)
            if self.consume(TokenCode.INT):
                self.code.add(Opcode.PUSH_I, self.consumed.value)
                return Ret(Type(TypeBase.INT), False, True)
            if self.consume(TokenCode.DOUBLE):
                self.code.add(Opcode.PUSH_F, self.consumed.value)
                return Ret(Type(TypeBase.DOUBLE), False, True)
            if self.consume(TokenCode.CHAR):
                return Ret(Type(TypeBase.CHAR), False, True)
            if self.consume(TokenCode.STRING):
                return Ret(Type(TypeBase.CHAR, None, 0), False, True)
            if self.consume(TokenCode.LPAR):
                r = self.expr()
                if r is None:
                    self.restore(mark)
                    return None
                if not self.consume(TokenCode.RPAR):
                    raise self.error("Missing closing ) or invalid parameters")
                return r
            return None

    def _call(self, s: Symbol) -> Ret:
        if s.kind is not SymKind.FN:
            raise self.error("only a function can be called")
        params = iter(s.params)
        arg = self.expr()
        if arg is not None:
            self._call_arg(arg, next(params, None))
            while self.consume(TokenCode.COMMA):
                arg = self.expr()
                if arg is None:
                    raise self.error("Missing expression after , in function call")
                self._call_arg(arg, next(params, None))
        if not self.consume(TokenCode.RPAR):
            raise self.error("Missing closing ) or invalid parameters in function call")
        if next(params, None) is not None:
            raise self.error("too few arguments in function call")
        if s.ext_fn is not None:
            self.code.add(Opcode.CALL_EXT, s.ext_fn)
        else:
            if s.code is None:
                s.code = Code()
            self.code.add(Opcode.CALL, s.code.head)
        return Ret(s.type, False, True)

    def _address_of(self, s: Symbol) -> None:
        if s.kind is SymKind.VAR:
            if s.owner is None:
                self.code.add(Opcode.ADDR, s.var_mem)
            elif s.type.tb in _FPADDR:
                self.code.add(_FPADDR[s.type.tb], s.var_idx + 1)
        elif s.kind is SymKind.PARAM and s.type.tb in _FPADDR:
            n_params = len(s.owner.params) if s.owner is not None else 0
            self.code.add(_FPADDR[s.type.tb], s.param_idx - n_params - 1)

    def expr_postfix(self) -> Optional[Ret]:
        with self._rule("exprPostfix"):
            r = self.expr_primary()
            return None if r is None else self.expr_postfix_prim(r)

    def expr_postfix_prim(self, r: Ret) -> Ret:
        with self._rule("exprPostfixPrim"):
            while True:
                mark = self._mark()
                if self.consume(TokenCode.LBRACKET):
                    idx = self.expr()
                    if idx is None or not self.consume(TokenCode.RBRACKET):
                        self.restore(mark)
                        return r
                    if r.type.n < 0:
                        raise self.error("only an array can be indexed")
                    if not conv_to(idx.type, _INT):
                        raise self.error("the index is not convertible to int")
                    r = Ret(replace(r.type, n=-1), True, False)
                elif self.consume(TokenCode.DOT):
                    if not self.consume(TokenCode.ID):
                        self.restore(mark)
                        return r
                    name = self.consumed.value
                    if r.type.tb is not TypeBase.STRUCT:
                        raise self.error("a field can only be selected from a struct")
                    struct = r.type.s
                    member = find_symbol_in_list(struct.members, name)
                    if member is None:
                        raise self.error(
                            f"the structure {struct.name} does not have a field {name}"
                        )
                    r = Ret(member.type, True, member.type.n >= 0)
                else:
                    return r

    def expr_unary(self) -> Optional[Ret]:
        with self._rule("exprUnary"):
            for code, sign in ((TokenCode.SUB, "-"), (TokenCode.NOT, "!")):
                if self.consume(code):
                    r = self.expr_unary()
                    if r is None:
                        raise self.error(f"Unary expression missing after {sign}")
                    if not can_be_scalar(r):
                        raise self.error(f"unary {sign} must have a scalar operand")
                    return Ret(r.type, False, True)
            return self.expr_postfix()

    def expr_cast(self) -> Optional[Ret]:
        with self._rule("exprCast"):
            if self.consume(TokenCode.LPAR):
                t = self.type_base()
                if t is None:
                    raise self.error("Missing type for cast")
                t = self.array_decl(t) or t
                if not self.consume(TokenCode.RPAR):
                    raise self.error("Did not close ) in cast")
                op = self.expr_cast()
                if op is None:
                    raise self.error("Cast must continue with unary expression or another cast")
                if t.tb is TypeBase.STRUCT:
                    raise self.error("cannot convert to a struct type")
                if op.type.tb is TypeBase.STRUCT:
                    raise self.error("cannot convert a struct")
                if op.type.n >= 0 and t.n < 0:
                    raise self.error("an array can be converted only to another array")
                if op.type.n < 0 and t.n >= 0:
                    raise self.error("a scalar can be converted only to another scalar")
                return Ret(t, False, True)
            return self.expr_unary()

    def _arith_chain(
        self,
        r: Ret,
        operand: Callable[[], Optional[Ret]],
        ops: Dict[TokenCode, Tuple[str, _OpTable]],
        keep_type: bool,
    ) -> Ret:
        while True:
            code = next((c for c in ops if self.consume(c)), None)
            if code is None:
                return r
            sign, table = ops[code]
            last_left = self.code.last()
            add_rval(self.code, r.lval, r.type)
            right = operand()
            if right is None:
                raise self.error(f"Invalid expression after {sign}")
            dst = arith_type_to(r.type, right.type)
            if dst is None:
                raise self.error(f"invalid operand type for {sign}")
            add_rval(self.code, right.lval, right.type)
            insert_conv_if_needed(self.code, last_left, r.type, dst)
            insert_conv_if_needed(self.code, self.code.last(), right.type, dst)
            if dst.tb in table:
                self.code.add(table[dst.tb])
            r = Ret(dst if keep_type else Type(TypeBase.INT), False, True)

    def _logic_chain(
        self, r: Ret, operand: Callable[[], Optional[Ret]], ops: Dict[TokenCode, str]
    ) -> Ret:
        while True:
            code = next((c for c in ops if self.consume(c)), None)
            if code is None:
                return r
            sign, message = ops[code].split("|")
            right = operand()
            if right is None:
                raise self.error(message)
            if arith_type_to(r.type, right.type) is None:
                raise self.error(f"invalid operand type for {sign}")
            r = Ret(Type(TypeBase.INT), False, True)

    def expr_mul(self) -> Optional[Ret]:
        with self._rule("exprMul"):
            r = self.expr_cast()
            return None if r is None else self._arith_chain(r, self.expr_cast, _MUL_OPS, True)

    def expr_add(self) -> Optional[Ret]:
        with self._rule("exprAdd"):
            r = self.expr_mul()
            return None if r is None else self._arith_chain(r, self.expr_mul, _ADD_OPS, True)

    def expr_rel(self) -> Optional[Ret]:
        with self._rule("exprRel"):
            r = self.expr_add()
            return None if r is None else self._arith_chain(r, self.expr_add, _REL_OPS, False)

    def expr_eq(self) -> Optional[Ret]:
        with self._rule("exprEq"):
            r = self.expr_rel()
            ops = {
                TokenCode.EQUAL: "==|Invalid expression after =",
                TokenCode.NOTEQ: "!=|Invalid expression after !=",
            }
            return None if r is None else self._logic_chain(r, self.expr_rel, ops)

    def expr_and(self) -> Optional[Ret]:
        with self._rule("exprAnd"):
            r = self.expr_eq()
            ops = {TokenCode.AND: "&&|Invalid expression after &&"}
            return None if r is None else self._logic_chain(r, self.expr_eq, ops)

    def expr_or(self) -> Optional[Ret]:
        with self._rule("exprOr"):
            r = self.expr_and()
            ops = {TokenCode.OR: "|||Invalid expression after || "}
            if r is None:
                return None
            return self._logic_chain_or(r, ops)

    def _logic_chain_or(self, r: Ret, ops: Dict[TokenCode, str]) -> Ret:
        while self.consume(TokenCode.OR):
            right = self.expr_and()
            if right is None:
                raise self.error("Invalid expression after || ")
            if arith_type_to(r.type, right.type) is None:
                raise self.error("invalid operand type for ||")
            r = Ret(Type(TypeBase.INT), False, True)
        return r

    def expr_assign(self) -> Optional[Ret]:
        with self._rule("exprAssign"):
            mark = self._mark()
            dst = self.expr_unary()
            if dst is not None:
                if self.consume(TokenCode.ASSIGN):
                    r = self.expr_assign()
                    if r is None:
                        raise self.error(
                            "Assignment needs to continue with another assignment "
                            "or with an expression"
                        )
                    if not dst.lval:
                        raise self.error("the assign destination must be a left-value")
                    if dst.ct:
                        raise self.error("the assign destination cannot be constant")
                    if not can_be_scalar(dst):
                        raise self.error("the assign destination must be scalar")
                    if not can_be_scalar(r):
                        raise self.error("the assign source must be scalar")
                    if not conv_to(r.type, dst.type):
                        raise self.error("the assign source cannot be converted to destination")
                    insert_conv_if_needed(self.code, self.code.last(), r.type, dst.type)
                    if dst.type.tb in _STORE:
                        self.code.add(_STORE[dst.type.tb])
                    return Ret(r.type, False, True)
                self.restore(mark)
            return self.expr_or()