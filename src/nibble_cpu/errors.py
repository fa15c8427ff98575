"""Fault types raised by the processor.

Every fault is fatal: the run loop stops, the state is marked halted and the
exception propagates to whoever called ``run``/``step``.
"""

from typing import Optional


class ProcessorFault(RuntimeError):
    """Base class for all fatal execution faults."""


class StackOverflowError(ProcessorFault):
    """CALL executed with no free call-stack slot."""


class StackUnderflowError(ProcessorFault):
    """RETURN executed with an empty call stack."""


class UnimplementedOpcodeError(ProcessorFault):
    """Decoded instruction word has no defined semantics.

    Attributes:
        opcode: The offending 16-bit instruction word
        address: Address the word was fetched from, if known
    """

    def __init__(self, opcode: int, address: Optional[int] = None):
        self.opcode = opcode
        self.address = address
        where = f" at 0x{address:03x}" if address is not None else ""
        super().__init__(f"Unimplemented opcode 0x{opcode:04x}{where}")


class MemoryAccessError(ProcessorFault):
    """Memory access outside the addressable range.

    Attributes:
        address: First address that fell outside memory
    """

    def __init__(self, address: int, message: Optional[str] = None):
        self.address = address
        super().__init__(message or f"Memory access out of bounds: 0x{address:x}")


class CycleLimitExceeded(ProcessorFault):
    """Opt-in safety limit on executed instructions was reached."""


class ProcessorHalted(RuntimeError):
    """Raised when stepping a processor that has already stopped."""
