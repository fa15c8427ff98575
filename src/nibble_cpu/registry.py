"""InstructionSet: verified primitives for the nibble CPU.

This module implements the registry pattern for instruction semantics:
each operation key maps to a frozen handler that applies one instruction
to the processor state.

Registry Keys:
    OP_HALT: Stop execution
    OP_RET: Return from subroutine
    OP_CALL: Call subroutine at nnn
    OP_ADD_XY: Add Vy to Vx, VF = carry
    OP_JUMP: Jump to nnn
    OP_LOAD_IMM: Load kk into Vx
    OP_ADD_IMM: Add kk to Vx, VF untouched
    OP_LOAD_XY: Copy Vy into Vx
    OP_SUB_XY: Subtract Vy from Vx, VF = not borrow
    OP_INVALID: Fault on unimplemented opcodes

Handlers run after the PC has been advanced past the instruction, so the
PC they see is the address of the following instruction.
"""

from typing import Callable, Dict, Optional

from .decode import Instruction
from .errors import UnimplementedOpcodeError
from .state import ProcessorState, FLAG_REGISTER, BYTE_MAX, INSTRUCTION_SIZE


Handler = Callable[[ProcessorState, Instruction], None]


class InstructionSet:
    """Verified registry of instruction primitives.

    The registry is frozen after initialization to ensure
    no runtime modifications can occur.

    Attributes:
        _primitives: Dictionary mapping operation keys to handler functions
        _frozen: Whether the registry is locked against modifications
    """

    def __init__(self):
        """Initialize registry with all instruction primitives."""
        self._primitives: Dict[str, Handler] = {}
        self._frozen = False
        self._register_all_primitives()
        self.freeze()

    def _register_all_primitives(self) -> None:
        """Register all instruction primitives."""
        # Control flow
        self.register("OP_HALT", self._op_halt)
        self.register("OP_RET", self._op_ret)
        self.register("OP_CALL", self._op_call)
        self.register("OP_JUMP", self._op_jump)

        # Data movement
        self.register("OP_LOAD_IMM", self._op_load_imm)
        self.register("OP_LOAD_XY", self._op_load_xy)

        # Arithmetic
        self.register("OP_ADD_XY", self._op_add_xy)
        self.register("OP_ADD_IMM", self._op_add_imm)
        self.register("OP_SUB_XY", self._op_sub_xy)

        # Special
        self.register("OP_INVALID", self._op_invalid)

    def register(self, key: str, handler: Handler) -> None:
        """Register a primitive operation.

        Args:
            key: Operation key (e.g., "OP_ADD_XY")
            handler: Function that takes (state, instruction) and mutates state

        Raises:
            RuntimeError: If registry is frozen
            ValueError: If key already registered
        """
        if self._frozen:
            raise RuntimeError("Cannot register primitives: registry is frozen")
        if key in self._primitives:
            raise ValueError(f"Primitive already registered: {key}")
        self._primitives[key] = handler

    def freeze(self) -> None:
        """Freeze the registry to prevent further modifications."""
        self._frozen = True

    def is_frozen(self) -> bool:
        """Check if registry is frozen."""
        return self._frozen

    def get_valid_keys(self) -> set:
        """Get set of all valid operation keys."""
        return set(self._primitives.keys())

    def execute(self, state: ProcessorState, key: str, instruction: Instruction) -> None:
        """Execute a registered primitive against state.

        Args:
            state: Processor state, mutated in place
            key: Operation key
            instruction: Decoded instruction fields

        Raises:
            KeyError: If key not in registry
            ProcessorFault: If the instruction faults
        """
        if key not in self._primitives:
            raise KeyError(f"Unknown operation key: {key}")

        self._primitives[key](state, instruction)

        # Only completed instructions count
        state.cycle_count += 1

    # =========================================================================
    # Control Flow Primitives
    # =========================================================================

    def _op_halt(self, state: ProcessorState, instruction: Instruction) -> None:
        """HALT (0000) - Stop execution."""
        state.halted = True

    def _op_ret(self, state: ProcessorState, instruction: Instruction) -> None:
        """RET (00EE) - Pop a return address into the PC.

        Raises:
            StackUnderflowError: If no CALL is outstanding
        """
        state.pc = state.pop()

    def _op_call(self, state: ProcessorState, instruction: Instruction) -> None:
        """CALL nnn (2nnn) - Save the PC and jump to nnn.

        The saved PC already points past the CALL, so RET resumes at the
        following instruction.

        Raises:
            StackOverflowError: If the call stack is full
        """
        state.push(state.pc)
        state.pc = instruction.nnn

    def _op_jump(self, state: ProcessorState, instruction: Instruction) -> None:
        """JP nnn (1nnn) - Unconditional jump to nnn."""
        state.pc = instruction.nnn

    # =========================================================================
    # Data Movement Primitives
    # =========================================================================

    def _op_load_imm(self, state: ProcessorState, instruction: Instruction) -> None:
        """LD Vx, kk (6xkk) - Load immediate byte into Vx."""
        state.registers[instruction.x] = instruction.kk

    def _op_load_xy(self, state: ProcessorState, instruction: Instruction) -> None:
        """LD Vx, Vy (8xy0) - Copy Vy into Vx."""
        state.registers[instruction.x] = state.registers[instruction.y]

    # =========================================================================
    # Arithmetic Primitives
    # =========================================================================

    def _op_add_xy(self, state: ProcessorState, instruction: Instruction) -> None:
        """ADD Vx, Vy (8xy4) - Wrapping add, VF set to the carry.

        VF is always overwritten: 1 if the sum exceeded 8 bits, else 0.
        """
        total = state.registers[instruction.x] + state.registers[instruction.y]
        state.registers[instruction.x] = total & BYTE_MAX
        state.registers[FLAG_REGISTER] = 1 if total > BYTE_MAX else 0

    def _op_add_imm(self, state: ProcessorState, instruction: Instruction) -> None:
        """ADD Vx, kk (7xkk) - Wrapping add of an immediate. VF untouched."""
        total = state.registers[instruction.x] + instruction.kk
        state.registers[instruction.x] = total & BYTE_MAX

    def _op_sub_xy(self, state: ProcessorState, instruction: Instruction) -> None:
        """SUB Vx, Vy (8xy5) - Wrapping subtract, VF set to NOT borrow."""
        vx = state.registers[instruction.x]
        vy = state.registers[instruction.y]
        state.registers[instruction.x] = (vx - vy) & BYTE_MAX
        state.registers[FLAG_REGISTER] = 1 if vx >= vy else 0

    # =========================================================================
    # Special Primitives
    # =========================================================================

    def _op_invalid(self, state: ProcessorState, instruction: Instruction) -> None:
        """INVALID - Unimplemented opcode.

        The PC has already moved past the word, so it was fetched from
        the previous instruction slot.

        Raises:
            UnimplementedOpcodeError: Always
        """
        raise UnimplementedOpcodeError(instruction.word, state.pc - INSTRUCTION_SIZE)


# Singleton registry instance
_registry: Optional[InstructionSet] = None


def get_instruction_set() -> InstructionSet:
    """Get the singleton instruction set instance.

    Returns:
        The frozen InstructionSet instance
    """
    global _registry
    if _registry is None:
        _registry = InstructionSet()
    return _registry
