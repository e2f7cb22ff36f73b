"""
Instruction emitter for the Little Man Computer.

Lowers IR statements into a linear list of symbolic LMC instructions. The
machine has a single accumulator, so every expression is computed into it
and every operand of ADD/SUB must live in a mailbox; literals become shared
constant mailboxes and complex right-hand operands are spilled into fresh
temporaries.

Branch targets are label names. A label placed with ``place_label()`` is
bound to the next instruction emitted; a trailing HLT is always emitted, so
every placed label ends up on an instruction.
"""

from typing import Callable, Dict, List, Optional

from ..abi import OPTION_DIRECTIVE, TRUE, FALSE, Builtin, get_builtin
from ..errors import BuiltinInvocationError, InvalidIR, UnknownBuiltin
from ..ir.nodes import (
    IRNode, Const, String, Var, BinOp, Compare,
    Declare, Assign, Call, Option, If, While, Program,
)
from ..lmc.instructions import Instruction, InstructionList
from ..lmc.memory import GENERATED_PREFIX, Mailbox, MailboxAllocator
from ..lmc.opcodes import Opcode


class CodeGenerator:
    """Emits symbolic LMC code for one compilation unit."""

    def __init__(self, allocator: Optional[MailboxAllocator] = None):
        self.allocator = allocator or MailboxAllocator()
        self.code = InstructionList()
        self.pending_labels: List[str] = []
        self.label_counter = 0

        # Library builtins that need more than one instruction
        self.lowerings: Dict[str, Callable[[List[IRNode]], None]] = {
            'output': self.gen_output,
            'input': self.gen_input,
        }

    # Emission helpers

    def emit(self, instr: Instruction):
        if self.pending_labels:
            instr = instr.with_labels(self.pending_labels)
            self.pending_labels = []
        self.code.add_instruction(instr)

    def new_label(self, hint: str) -> str:
        label = f"{GENERATED_PREFIX}{hint}{self.label_counter}"
        self.label_counter += 1
        return label

    def place_label(self, label: str):
        """Bind a label to the next instruction emitted."""
        self.pending_labels.append(label)

    # Entry point

    def generate(self, program: Program) -> InstructionList:
        """Generate code for a program; data mailboxes come from the allocator."""
        self.code = InstructionList()
        self.pending_labels = []

        for stmt in program.statements:
            self.generate_statement(stmt)
        self.emit(Instruction.nullary(Opcode.HLT))

        for box in self.allocator.mailboxes():
            self.code.add_data(box)
        return self.code

    # Statements

    def generate_statement(self, node: IRNode):
        if isinstance(node, Declare):
            self.allocator.allocate(node.name, node.value)
        elif isinstance(node, Assign):
            self.gen_assign(node)
        elif isinstance(node, Call):
            self.gen_call(node)
        elif isinstance(node, If):
            self.gen_if(node)
        elif isinstance(node, While):
            self.gen_while(node)
        elif isinstance(node, Option):
            pass  # consumed before emission
        else:
            raise InvalidIR(f"line {node.line}: {node!r} is not a statement")

    def gen_assign(self, node: Assign):
        # Evaluate first: reading the target inside its own initializer is undefined
        self.gen_expression(node.value)
        self.emit(Instruction.store(self.allocator.allocate(node.target)))

    def gen_if(self, node: If):
        end_label = self.new_label('endif')
        false_label = self.new_label('else') if node.else_body else end_label

        self.gen_condition(node.condition, false_label)
        for stmt in node.then_body:
            self.generate_statement(stmt)

        if node.else_body:
            self.emit(Instruction.branch(Opcode.BRA, end_label))
            self.place_label(false_label)
            for stmt in node.else_body:
                self.generate_statement(stmt)

        self.place_label(end_label)

    def gen_while(self, node: While):
        top_label = self.new_label('loop')
        done_label = self.new_label('done')

        self.place_label(top_label)
        self.gen_condition(node.condition, done_label)
        for stmt in node.body:
            self.generate_statement(stmt)
        self.emit(Instruction.branch(Opcode.BRA, top_label))
        self.place_label(done_label)

    # Builtin calls

    def gen_call(self, node: Call):
        if node.name == OPTION_DIRECTIVE:
            return  # consumed before emission

        builtin = get_builtin(node.name)
        if builtin is None:
            raise UnknownBuiltin(node.name, len(node.args))
        if not builtin.accepts(len(node.args)):
            raise BuiltinInvocationError(
                f"{builtin} called with {len(node.args)} argument(s)"
            )

        if builtin.mnemonic is not None:
            self.gen_instruction_builtin(builtin, node.args)
        else:
            self.lowerings[builtin.name](node.args)

    def gen_instruction_builtin(self, builtin: Builtin, args: List[IRNode]):
        """Builtins that map onto exactly one instruction."""
        opcode = Opcode(builtin.mnemonic)
        if not args:
            self.emit(Instruction.nullary(opcode))
            return
        self.emit(Instruction(opcode, mailbox=self._target_box(builtin, args[0])))

    def gen_output(self, args: List[IRNode]):
        value = args[0]
        if isinstance(value, (Var, Const)):
            self.emit(Instruction.load(self.operand_box(value)))
        else:
            # Computed values are staged through TEMP
            temp = self.allocator.temp()
            self.gen_expression(value)
            self.emit(Instruction.store(temp))
            self.emit(Instruction.load(temp))
        self.emit(Instruction.nullary(Opcode.OUT))

    def gen_input(self, args: List[IRNode]):
        if args:
            box = self._target_box(get_builtin('input'), args[0])
        else:
            box = self.allocator.temp()
        self.emit(Instruction.nullary(Opcode.INP))
        self.emit(Instruction.store(box))

    def _target_box(self, builtin: Builtin, arg: IRNode) -> Mailbox:
        if not isinstance(arg, Var):
            raise BuiltinInvocationError(f"{builtin} needs a variable argument, got {arg!r}")
        return self.allocator.allocate(arg.name)

    # Expressions

    def operand_box(self, node: IRNode) -> Mailbox:
        """Mailbox holding a plain variable or literal."""
        if isinstance(node, Const):
            return self.allocator.constant(node.value)
        if isinstance(node, Var):
            return self.allocator.lookup(node.name)
        raise InvalidIR(f"{node!r} is not a simple operand")

    def gen_expression(self, node: IRNode):
        """Leave the value of an expression in the accumulator."""
        if isinstance(node, (Const, Var)):
            self.emit(Instruction.load(self.operand_box(node)))
        elif isinstance(node, BinOp):
            self.gen_binop(node)
        elif isinstance(node, Compare):
            self.gen_compare_value(node)
        elif isinstance(node, String):
            raise InvalidIR(f"line {node.line}: string literal {node.value!r} used as a value")
        else:
            raise InvalidIR(f"line {node.line}: {node!r} is not an expression")

    def value_box(self, node: IRNode) -> Mailbox:
        """Mailbox holding the value of an expression; computed values get a temporary."""
        if isinstance(node, (Const, Var)):
            return self.operand_box(node)
        box = self.allocator.temporary()
        self.gen_expression(node)
        self.emit(Instruction.store(box))
        return box

    def gen_binop(self, node: BinOp):
        if node.op == '*':
            self.gen_multiply(self.value_box(node.left), self.value_box(node.right))
            return
        if node.op in ('/', '%'):
            self.gen_divide(self.value_box(node.left), self.value_box(node.right), node.op)
            return

        if isinstance(node.right, (Const, Var)):
            self.gen_expression(node.left)
            right = self.operand_box(node.right)
        else:
            right = self.allocator.temporary()
            self.gen_expression(node.right)
            self.emit(Instruction.store(right))
            self.gen_expression(node.left)

        if node.op == '+':
            self.emit(Instruction.add(right))
        elif node.op == '-':
            self.emit(Instruction.sub(right))
        else:
            raise InvalidIR(f"unsupported arithmetic operator '{node.op}'")

    def _negate(self, box: Mailbox):
        """Turn an accumulator holding box's value into its negation."""
        self.emit(Instruction.sub(box))
        self.emit(Instruction.sub(box))

    def gen_multiply(self, x: Mailbox, y: Mailbox):
        """
        ``x * y`` by repeated addition.

        The loop adds x to the product |y| times; when y is negative both
        operands are negated first so the counter runs down to zero.
        """
        count = self.allocator.temporary()
        step = self.allocator.temporary()
        product = self.allocator.temporary()
        zero = self.allocator.constant(0)
        one = self.allocator.constant(1)
        positive = self.new_label('mulpos')
        start = self.new_label('mul')
        loop = self.new_label('mulloop')
        done = self.new_label('muldone')

        self.emit(Instruction.load(y))
        self.emit(Instruction.branch(Opcode.BRP, positive))
        self._negate(y)
        self.emit(Instruction.store(count))
        self.emit(Instruction.load(x))
        self._negate(x)
        self.emit(Instruction.store(step))
        self.emit(Instruction.branch(Opcode.BRA, start))
        self.place_label(positive)
        self.emit(Instruction.store(count))
        self.emit(Instruction.load(x))
        self.emit(Instruction.store(step))

        self.place_label(start)
        self.emit(Instruction.load(zero))
        self.emit(Instruction.store(product))
        self.place_label(loop)
        self.emit(Instruction.load(count))
        self.emit(Instruction.branch(Opcode.BRZ, done))
        self.emit(Instruction.sub(one))
        self.emit(Instruction.store(count))
        self.emit(Instruction.load(product))
        self.emit(Instruction.add(step))
        self.emit(Instruction.store(product))
        self.emit(Instruction.branch(Opcode.BRA, loop))
        self.place_label(done)
        self.emit(Instruction.load(product))

    def gen_divide(self, x: Mailbox, y: Mailbox, op: str):
        """
        ``x / y`` or ``x % y`` by repeated subtraction.

        Works on magnitudes and fixes the sign afterwards: the quotient
        truncates toward zero and the remainder takes the sign of x. A zero
        divisor never leaves the loop.
        """
        remainder = self.allocator.temporary()
        divisor = self.allocator.temporary()
        quotient = self.allocator.temporary() if op == '/' else None
        x_positive = self.new_label('divx')
        y_positive = self.new_label('divy')
        loop = self.new_label('divloop')
        step = self.new_label('divstep')
        done = self.new_label('divdone')
        keep = self.new_label('divkeep')
        end = self.new_label('divend')

        if quotient is not None:
            self.emit(Instruction.load(self.allocator.constant(0)))
            self.emit(Instruction.store(quotient))
        self.emit(Instruction.load(x))
        self.emit(Instruction.branch(Opcode.BRP, x_positive))
        self._negate(x)
        self.place_label(x_positive)
        self.emit(Instruction.store(remainder))
        self.emit(Instruction.load(y))
        self.emit(Instruction.branch(Opcode.BRP, y_positive))
        self._negate(y)
        self.place_label(y_positive)
        self.emit(Instruction.store(divisor))

        self.place_label(loop)
        self.emit(Instruction.load(remainder))
        self.emit(Instruction.sub(divisor))
        self.emit(Instruction.branch(Opcode.BRP, step))
        self.emit(Instruction.branch(Opcode.BRA, done))
        self.place_label(step)
        self.emit(Instruction.store(remainder))
        if quotient is not None:
            self.emit(Instruction.load(quotient))
            self.emit(Instruction.add(self.allocator.constant(1)))
            self.emit(Instruction.store(quotient))
        self.emit(Instruction.branch(Opcode.BRA, loop))

        self.place_label(done)
        result = remainder
        if quotient is None:
            self.emit(Instruction.load(x))
            self.emit(Instruction.branch(Opcode.BRP, keep))
        else:
            result = quotient
            x_nonnegative = self.new_label('divxnn')
            negate = self.new_label('divneg')
            # Negative exactly when the operand signs differ
            self.emit(Instruction.load(x))
            self.emit(Instruction.branch(Opcode.BRP, x_nonnegative))
            self.emit(Instruction.load(y))
            self.emit(Instruction.branch(Opcode.BRP, negate))
            self.emit(Instruction.branch(Opcode.BRA, keep))
            self.place_label(x_nonnegative)
            self.emit(Instruction.load(y))
            self.emit(Instruction.branch(Opcode.BRP, keep))
            self.place_label(negate)
        self.emit(Instruction.load(result))
        self._negate(result)
        self.emit(Instruction.branch(Opcode.BRA, end))
        self.place_label(keep)
        self.emit(Instruction.load(result))
        self.place_label(end)

    def gen_compare_value(self, node: Compare):
        """Materialize a comparison as TRUE or FALSE in the accumulator."""
        false_label = self.new_label('false')
        end_label = self.new_label('endcmp')

        self.gen_condition(node, false_label)
        self.emit(Instruction.load(self.allocator.constant(TRUE)))
        self.emit(Instruction.branch(Opcode.BRA, end_label))
        self.place_label(false_label)
        self.emit(Instruction.load(self.allocator.constant(FALSE)))
        self.place_label(end_label)

    # Conditions

    def gen_condition(self, node: IRNode, false_label: str):
        """
        Fall through when the condition holds, branch to false_label otherwise.

        Comparisons subtract and test the sign of the difference: BRP takes
        the branch when the accumulator is zero or positive, BRZ when it is
        zero. ``>`` and ``<=`` subtract the other way round so every case
        is decided by those two tests.
        """
        if not isinstance(node, Compare):
            self.gen_expression(node)
            self.emit(Instruction.branch(Opcode.BRZ, false_label))
            return

        if node.op in ('>', '<='):
            self.gen_binop(BinOp('-', node.right, node.left, node.line))
        else:
            self.gen_binop(BinOp('-', node.left, node.right, node.line))

        if node.op == '!=':
            self.emit(Instruction.branch(Opcode.BRZ, false_label))
        elif node.op in ('<', '>'):
            self.emit(Instruction.branch(Opcode.BRP, false_label))
        elif node.op in ('==', '>=', '<='):
            test = Opcode.BRZ if node.op == '==' else Opcode.BRP
            true_label = self.new_label('true')
            self.emit(Instruction.branch(test, true_label))
            self.emit(Instruction.branch(Opcode.BRA, false_label))
            self.place_label(true_label)
        else:
            raise InvalidIR(f"unsupported comparison operator '{node.op}'")
