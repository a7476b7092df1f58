"""A stack-based virtual machine and its instruction lists."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from enum import IntEnum, auto
from typing import Any, Iterator, List, Optional, TextIO, Union

from .errors import AtomCError, VMError
from .symbols import SymbolTable, Type, TypeBase, add_fn_param

MAX_STACK = 10000


class Opcode(IntEnum):
    """The instructions of the virtual machine."""

    HALT = 0
    PUSH_I = auto()
    CALL = auto()
    CALL_EXT = auto()
    ENTER = auto()
    RET = auto()
    RET_VOID = auto()
    CONV_I_F = auto()
    JMP = auto()
    JF = auto()
    JT = auto()
    FPLOAD = auto()
    FPSTORE = auto()
    ADD_I = auto()
    LESS_I = auto()
    PUSH_D = auto()
    ADD_D = auto()
    LESS_D = auto()
    PUSH_F = auto()
    CONV_F_I = auto()
    LOAD_I = auto()
    LOAD_F = auto()
    STORE_I = auto()
    STORE_F = auto()
    ADDR = auto()
    FPADDR_I = auto()
    FPADDR_F = auto()
    ADD_F = auto()
    SUB_I = auto()
    SUB_F = auto()
    MUL_I = auto()
    MUL_F = auto()
    DIV_I = auto()
    DIV_F = auto()
    LESS_F = auto()
    DROP = auto()
    NOP = auto()


@dataclass(eq=False)
class Instr:
    """One instruction; ``next`` links it to the following one."""

    op: Opcode
    arg: Any = None
    next: Optional[Instr] = field(default=None, repr=False)


class Code:
    """A linked list of instructions."""

    def __init__(self) -> None:
        self.head: Optional[Instr] = None

    def __iter__(self) -> Iterator[Instr]:
        node = self.head
        while node is not None:
            yield node
            node = node.next

    def last(self) -> Optional[Instr]:
        """Return the last instruction, or None for empty code."""
        tail = None
        for tail in self:
            pass
        return tail

    def add(self, op: Opcode, arg: Any = None) -> Instr:
        """Append an instruction and return it."""
        instr = Instr(op, arg)
        tail = self.last()
        if tail is None:
            self.head = instr
        else:
            tail.next = instr
        return instr

    def insert_after(self, instr: Instr, op: Opcode) -> Instr:
        """Insert a new instruction right after ``instr`` and return it."""
        new = Instr(op, next=instr.next)
        instr.next = new
        return new

    def delete_after(self, instr: Optional[Instr]) -> None:
        """Remove every instruction that follows ``instr``."""
        if instr is not None:
            instr.next = None


class _Ref:
    """The address of a cell in a list of cells."""

    __slots__ = ("cells", "index")

    def __init__(self, cells: List[Any], index: int) -> None:
        self.cells = cells
        self.index = index

    def load(self) -> Any:
        return self.cells[self.index]

    def store(self, value: Any) -> None:
        self.cells[self.index] = value

    def __str__(self) -> str:
        return f"{id(self.cells) + 8 * self.index:#x}"


def _address(obj: Any) -> str:
    if obj is None:
        return "(nil)"
    if isinstance(obj, _Ref):
        return str(obj)
    return f"{id(obj):#x}"


def _wrap(value: int) -> int:
    return (value + 2**31) % 2**32 - 2**31


def _as_int(value: Any) -> int:
    return int(value) if isinstance(value, (int, float)) else 0


def _as_float(value: Any) -> float:
    return float(value) if isinstance(value, (int, float)) else 0.0


def _deref(pointer: Any) -> _Ref:
    if not isinstance(pointer, _Ref):
        raise VMError(f"invalid address: {pointer!r}")
    return pointer


class VM:
    """The machine state: a value stack, a stack pointer and a frame pointer."""

    def __init__(self, out: Optional[TextIO] = None, stack_size: int = MAX_STACK) -> None:
        self.out = out if out is not None else sys.stdout
        self.stack: List[Any] = [0] * stack_size
        self.sp = -1
        self.fp: Optional[int] = None

    def _write(self, text: str) -> None:
        self.out.write(text)

    def _push(self, value: Any) -> None:
        if self.sp + 1 == len(self.stack):
            raise VMError("trying to push into a full stack")
        self.sp += 1
        self.stack[self.sp] = value

    def _pop(self) -> Any:
        if self.sp == -1:
            raise VMError("trying to pop from empty stack")
        value = self.stack[self.sp]
        self.sp -= 1
        return value

    def _frame_index(self, offset: int) -> int:
        if self.fp is None:
            raise VMError("no active stack frame")
        index = self.fp + offset
        if not 0 <= index < len(self.stack):
            raise VMError(f"frame access out of the stack: {offset}")
        return index

    def _leave(self, n_params: int) -> Any:
        fp = self._frame_index(0)
        ret_addr = self.stack[self._frame_index(-1)]
        self.sp = fp - n_params - 2
        self.fp = self.stack[fp]
        return ret_addr

    def _put_i(self) -> None:
        self._write(f"=> {_as_int(self._pop())}")

    def _put_d(self) -> None:
        self._write(f"=> {_as_float(self._pop()):g}")

    def run(self, entry: Union[Code, Instr, None]) -> None:
        """Execute from the given instruction until HALT, tracing each step."""
        ip = entry.head if isinstance(entry, Code) else entry
        while True:
            if ip is None:
                raise VMError("run: execution went past the end of the code")
            self._write(f"{_address(ip)}/{self.sp + 1}\t")
            op, arg = ip.op, ip.arg
            if op is Opcode.HALT:
                self._write("HALT")
                return
            nxt = ip.next
            if op is Opcode.PUSH_I:
                self._write(f"PUSH.i\t{arg}")
                self._push(arg)
            elif op is Opcode.CALL:
                self._push(ip.next)
                self._write(f"CALL\t{_address(arg)}")
                nxt = arg
            elif op is Opcode.CALL_EXT:
                self._write(f"CALL_EXT\t{_address(arg)}\n")
                arg()
            elif op is Opcode.ENTER:
                self._push(self.fp)
                self.fp = self.sp
                if self.sp + arg >= len(self.stack):
                    raise VMError("trying to push into a full stack")
                self.sp += arg
                self._write(f"ENTER\t{arg}")
            elif op is Opcode.RET_VOID:
                self._write(f"RET_VOID\t{arg}")
                nxt = self._leave(arg)
            elif op is Opcode.JMP:
                self._write(f"JMP\t{_address(arg)}")
                nxt = arg
            elif op is Opcode.JF:
                top = self._pop()
                self._write(f"JF\t{_address(arg)}\t// {_as_int(top)}")
                nxt = ip.next if top else arg
            elif op is Opcode.FPLOAD:
                value = self.stack[self._frame_index(arg)]
                self._push(value)
                self._write(f"FPLOAD\t{arg}\t// i:{_as_int(value)}, f:{_as_float(value):g}")
            elif op is Opcode.FPSTORE:
                value = self._pop()
                self.stack[self._frame_index(arg)] = value
                self._write(f"FPSTORE\t{arg}\t// i:{_as_int(value)}, f:{_as_float(value):g}")
            elif op in (Opcode.ADD_I, Opcode.SUB_I, Opcode.MUL_I, Opcode.LESS_I):
                top = _as_int(self._pop())
                before = _as_int(self._pop())
                if op is Opcode.ADD_I:
                    name, sign, result = "ADD.i", "+", _wrap(before + top)
                elif op is Opcode.SUB_I:
                    name, sign, result = "SUB.i", "-", _wrap(before - top)
                elif op is Opcode.MUL_I:
                    name, sign, result = "MUL.i", "*", _wrap(before * top)
                else:
                    name, sign, result = "LESS.i", "<", int(before < top)
                self._push(result)
                self._write(f"{name}\t// {before}{sign}{top} -> {result}")
            elif op is Opcode.PUSH_D:
                self._write(f"PUSH.d\t{arg:.1f}")
                self._push(float(arg))
            elif op is Opcode.ADD_D:
                top = _as_float(self._pop())
                before = _as_float(self._pop())
                self._push(before + top)
                self._write(f"ADD.d\t// {before:g}+{top:g} -> {before + top:g}")
            elif op is Opcode.LESS_D:
                top = _as_float(self._pop())
                before = _as_float(self._pop())
                result = int(before < top)
                self._push(result)
                self._write(f"LESS.d\t// {before:g} < {top:g} -> {result}")
            elif op is Opcode.CONV_F_I:
                top = _as_float(self._pop())
                result = _wrap(int(top))
                self._push(result)
                self._write(f"CONV.f.i\t// {top:g} -> {result}")
            elif op is Opcode.DROP:
                self._pop()
                self._write("DROP")
            elif op is Opcode.PUSH_F:
                self._write(f"PUSH.f\t{arg:g}")
                self._push(float(arg))
            elif op is Opcode.FPADDR_I:
                ref = _Ref(self.stack, self._frame_index(arg))
                self._push(ref)
                self._write(f"FPADDR\t{arg}\t// {ref}")
            elif op is Opcode.LOAD_I:
                ref = _deref(self._pop())
                value = _as_int(ref.load())
                self._push(value)
                self._write(f"LOAD.i\t// *(int*){ref} -> {value}")
            elif op is Opcode.NOP:
                self._write("NOP")
            elif op is Opcode.RET:
                value = self._pop()
                self._write(f"RET\t{arg}\t// i:{_as_int(value)}, f:{_as_float(value):g}")
                nxt = self._leave(arg)
                self._push(value)
            elif op is Opcode.STORE_I:
                top = _as_int(self._pop())
                ref = _deref(self._pop())
                ref.store(top)
                self._push(top)
                self._write(f"STORE.i\t// *(int*){ref}={top}")
            else:
                raise VMError(f"run: unimplemented instruction: {op.name}")
            ip = nxt
            self._write("\n")


def vm_init(table: SymbolTable, vm: VM) -> None:
    """Register the host functions put_i and put_d of ``vm`` in the table."""
    put_i = table.add_ext_fn("put_i", vm._put_i, Type(TypeBase.VOID))
    add_fn_param(put_i, "i", Type(TypeBase.INT))
    put_d = table.add_ext_fn("put_d", vm._put_d, Type(TypeBase.VOID))
    add_fn_param(put_d, "d", Type(TypeBase.DOUBLE))


def _host_fn(table: SymbolTable, name: str):
    symbol = table.find(name)
    if symbol is None:
        raise AtomCError(f"undefined: {name}")
    return symbol.ext_fn


def _gen_counting_loop(table, push_op, start, limit, step, host, add_op, less_op) -> Code:
    code = Code()
    code.add(push_op, limit)
    call = code.add(Opcode.CALL)
    code.add(Opcode.HALT)
    call.arg = code.add(Opcode.ENTER, 1)
    code.add(push_op, start)
    code.add(Opcode.FPSTORE, 1)
    loop = code.add(Opcode.FPLOAD, 1)
    code.add(Opcode.FPLOAD, -2)
    code.add(less_op)
    jump_out = code.add(Opcode.JF)
    code.add(Opcode.FPLOAD, 1)
    code.add(Opcode.CALL_EXT, _host_fn(table, host))
    code.add(Opcode.FPLOAD, 1)
    code.add(push_op, step)
    code.add(add_op)
    code.add(Opcode.FPSTORE, 1)
    code.add(Opcode.JMP, loop)
    jump_out.arg = code.add(Opcode.RET_VOID, 1)
    return code


def gen_test_program(table: SymbolTable) -> Code:
    """Build f(2) where f prints 0..n-1 with put_i in a while loop."""
    return _gen_counting_loop(
        table, Opcode.PUSH_I, 0, 2, 1, "put_i", Opcode.ADD_I, Opcode.LESS_I
    )


def gen_test_program2(table: SymbolTable) -> Code:
    """Build f(2.0) where f prints 0, 0.5, ... below n with put_d."""
    return _gen_counting_loop(
        table, Opcode.PUSH_D, 0.0, 2.0, 0.5, "put_d", Opcode.ADD_D, Opcode.LESS_D
    )