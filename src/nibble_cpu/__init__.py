"""nibble-cpu: a minimal 16-bit instruction virtual machine.

This package implements the execution core of a small byte-code processor:
4096 bytes of memory, sixteen 8-bit registers (VF doubles as the carry flag)
and a 16-entry call stack. Instructions are 16 bits wide, big-endian, split
into four nibbles.

Pipeline:
    MEMORY -> FETCH -> PC += 2 -> DECODE -> KEY -> REGISTRY -> EXECUTE -> STATE
                |                  |          |        |
            [2 bytes]          [nibbles]  "OP_ADD_XY" [Verified]
                                                     Primitives

Modules:
    state: ProcessorState dataclass (registers, memory, stack, PC, SP)
    decode: Instruction fields and operation-key resolution
    registry: Verified instruction primitives (OP_CALL, OP_ADD_XY, etc.)
    cpu: Main Processor run loop
    config: YAML/dict configuration and logging setup
    errors: Fault exception hierarchy
"""

__version__ = "0.1.0"

from .state import ProcessorState
from .decode import Decoder, DecodeResult, Instruction
from .registry import InstructionSet
from .cpu import ExecutionTraceEntry, Processor
from .config import ConfigError, init_logging, load_config
from .errors import (
    CycleLimitExceeded,
    MemoryAccessError,
    ProcessorFault,
    ProcessorHalted,
    StackOverflowError,
    StackUnderflowError,
    UnimplementedOpcodeError,
)

__all__ = [
    "ProcessorState",
    "Decoder",
    "DecodeResult",
    "Instruction",
    "InstructionSet",
    "ExecutionTraceEntry",
    "Processor",
    "ConfigError",
    "init_logging",
    "load_config",
    "CycleLimitExceeded",
    "MemoryAccessError",
    "ProcessorFault",
    "ProcessorHalted",
    "StackOverflowError",
    "StackUnderflowError",
    "UnimplementedOpcodeError",
]
