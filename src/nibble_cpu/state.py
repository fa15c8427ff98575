"""ProcessorState: machine state for the nibble CPU.

This module defines the single aggregate that holds everything the processor
owns. The state is mutated in place: the caller seeds registers and memory
directly, and the run loop updates them as instructions execute.

State Components:
    - Registers: V0-VF (16 unsigned 8-bit values, VF doubles as carry flag)
    - Memory: 4096 bytes, code and data undistinguished
    - PC: Offset of the next instruction's first byte
    - Stack: 16 return addresses (unsigned 16-bit)
    - SP: Index of the next free stack slot (0-16)
    - Halted: Execution termination flag
    - Cycle count: Total executed instructions
"""

from dataclasses import dataclass, field
from typing import Dict, List
from copy import deepcopy

from .errors import MemoryAccessError, StackOverflowError, StackUnderflowError


MEMORY_SIZE = 4096
REGISTER_COUNT = 16
STACK_SIZE = 16
INSTRUCTION_SIZE = 2

# VF is overwritten by arithmetic to report carry/borrow
FLAG_REGISTER = 0xF

BYTE_MAX = 0xFF
ADDRESS_MAX = 0xFFFF


@dataclass
class ProcessorState:
    """Mutable processor state.

    Attributes:
        registers: 16 unsigned 8-bit register values
        memory: 4096-byte addressable memory
        pc: Program counter (offset of the next instruction)
        stack: Fixed-capacity storage for return addresses
        sp: Stack pointer, index of the next free stack slot
        halted: Whether the processor has stopped
        cycle_count: Number of instructions executed
    """
    registers: List[int] = field(default_factory=lambda: [0] * REGISTER_COUNT)
    memory: bytearray = field(default_factory=lambda: bytearray(MEMORY_SIZE))
    pc: int = 0
    stack: List[int] = field(default_factory=lambda: [0] * STACK_SIZE)
    sp: int = 0
    halted: bool = False
    cycle_count: int = 0

    # =========================================================================
    # Memory
    # =========================================================================

    def fetch(self) -> int:
        """Read the 16-bit instruction word at the program counter.

        The first byte is the high byte. Fetch does not move the PC.

        Returns:
            Instruction word

        Raises:
            MemoryAccessError: If either byte lies outside memory
        """
        p = self.pc
        if p < 0 or p + 1 >= len(self.memory):
            bad = p if p < 0 or p >= len(self.memory) else p + 1
            raise MemoryAccessError(bad, f"Instruction fetch out of bounds at 0x{p:x}")
        return (self.memory[p] << 8) | self.memory[p + 1]

    def advance_pc(self) -> None:
        """Move the PC past the instruction just fetched."""
        self.pc += INSTRUCTION_SIZE

    def write_memory(self, address: int, data: bytes) -> None:
        """Copy raw bytes into memory starting at address.

        Raises:
            MemoryAccessError: If any byte would land outside memory
        """
        end = address + len(data)
        if address < 0 or end > len(self.memory):
            raise MemoryAccessError(
                address if address < 0 else len(self.memory),
                f"Cannot write {len(data)} bytes at 0x{address:x}",
            )
        self.memory[address:end] = data

    # =========================================================================
    # Call stack
    # =========================================================================

    def push(self, address: int) -> None:
        """Push a return address onto the call stack.

        Raises:
            StackOverflowError: If every slot is in use (stack left unchanged)
        """
        if self.sp >= len(self.stack):
            raise StackOverflowError(
                f"Stack overflow: {len(self.stack)} return addresses already saved"
            )
        self.stack[self.sp] = address & ADDRESS_MAX
        self.sp += 1

    def pop(self) -> int:
        """Pop the most recent return address.

        Raises:
            StackUnderflowError: If the stack is empty
        """
        if self.sp == 0:
            raise StackUnderflowError("Stack underflow: return with empty call stack")
        self.sp -= 1
        return self.stack[self.sp]

    # =========================================================================
    # Registers
    # =========================================================================

    def get_register(self, index: int) -> int:
        """Get value of a register.

        Raises:
            IndexError: If the register doesn't exist
        """
        if not 0 <= index < len(self.registers):
            raise IndexError(f"Invalid register: {index}")
        return self.registers[index]

    def set_register(self, index: int, value: int) -> None:
        """Set a register to an unsigned 8-bit value.

        Raises:
            IndexError: If the register doesn't exist
            ValueError: If value doesn't fit in 8 bits
        """
        if not 0 <= index < len(self.registers):
            raise IndexError(f"Invalid register: {index}")
        if not 0 <= value <= BYTE_MAX:
            raise ValueError(f"Register value out of range: {value}")
        self.registers[index] = value

    def dump_registers(self) -> Dict[str, int]:
        """Get a copy of all register values keyed V0-VF."""
        return {f"V{i:X}": v for i, v in enumerate(self.registers)}

    # =========================================================================
    # Inspection
    # =========================================================================

    def snapshot(self) -> dict:
        """Create a snapshot of current state for tracing.

        Returns:
            Dictionary containing deep copy of all state components
        """
        return {
            "registers": deepcopy(self.registers),
            "pc": self.pc,
            "stack": deepcopy(self.stack[:self.sp]),
            "sp": self.sp,
            "halted": self.halted,
            "cycle_count": self.cycle_count,
            # memory excluded
        }

    def validate(self) -> bool:
        """Validate state integrity.

        Checks:
            - Register file, memory and stack have their fixed sizes
            - Registers hold 8-bit values, stack entries 16-bit values
            - PC lies within memory, or one past it after the last word, and
              SP within 0..STACK_SIZE

        Returns:
            True if state is valid, False otherwise
        """
        if len(self.registers) != REGISTER_COUNT:
            return False
        if len(self.memory) != MEMORY_SIZE:
            return False
        if len(self.stack) != STACK_SIZE:
            return False

        for value in self.registers:
            if not isinstance(value, int) or not 0 <= value <= BYTE_MAX:
                return False
        for value in self.stack:
            if not isinstance(value, int) or not 0 <= value <= ADDRESS_MAX:
                return False

        # HALT in the last word leaves the PC at MEMORY_SIZE
        if not 0 <= self.pc <= MEMORY_SIZE:
            return False
        if not 0 <= self.sp <= STACK_SIZE:
            return False
        if self.cycle_count < 0:
            return False

        return True

    def __str__(self) -> str:
        """Human-readable state representation."""
        regs = " ".join(f"V{i:X}={v:02x}" for i, v in enumerate(self.registers))
        return (
            f"[Cycle {self.cycle_count}] PC={self.pc:03x} SP={self.sp} {regs}"
            f"{' HALTED' if self.halted else ''}"
        )


def create_initial_state(program: bytes = b"", entry_point: int = 0) -> ProcessorState:
    """Create a zeroed state with a program image copied into memory.

    Args:
        program: Raw instruction bytes, placed at entry_point
        entry_point: Initial PC and load address

    Returns:
        Fresh ProcessorState with program loaded
    """
    state = ProcessorState(pc=entry_point)
    if program:
        state.write_memory(entry_point, program)
    return state
