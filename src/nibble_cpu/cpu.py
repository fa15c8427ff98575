"""Processor: fetch-decode-execute orchestrator for the nibble CPU.

This module implements the execution pipeline:
    MEMORY → FETCH → PC += 2 → DECODE → KEY → REGISTRY → EXECUTE → STATE

The run loop has three states. It starts Running, stops in Halted when a
HALT (0000) executes, and stops in Faulted when any ProcessorFault is
raised. Faults propagate to the caller; there is no recovery path.
"""

import logging
from typing import Any, Dict, List, Optional, Union
from dataclasses import dataclass
from pathlib import Path

from .config import load_config
from .decode import Decoder, Instruction
from .errors import CycleLimitExceeded, ProcessorFault, ProcessorHalted
from .registry import InstructionSet, get_instruction_set
from .state import create_initial_state


logger = logging.getLogger(__name__)


@dataclass
class ExecutionTraceEntry:
    """Single entry in the execution trace.

    Attributes:
        cycle: Cycle number (0-indexed)
        pc: Address the instruction was fetched from
        opcode: Raw instruction word (None if fetch faulted)
        instruction: Decoded fields (None if fetch faulted)
        key: Registry key the instruction resolved to
        pre_state: State before execution
        post_state: State after execution
        error: Error message if execution faulted
    """
    cycle: int
    pc: int
    opcode: Optional[int]
    instruction: Optional[Instruction]
    key: Optional[str]
    pre_state: dict
    post_state: dict
    error: Optional[str] = None


class Processor:
    """Nibble CPU with 16 registers, 4 KiB memory and a 16-deep call stack.

    Callers seed ``state.registers`` / ``state.memory`` (or use ``load``)
    and then call ``run``.

    Attributes:
        config: Normalized configuration dict
        decoder: Decoder resolving instruction words to registry keys
        registry: InstructionSet with verified primitives
        state: Current processor state
        trace: Execution trace entries (only filled when tracing is on)
        max_cycles: Optional safety limit, None for unlimited
    """

    def __init__(
        self,
        config: Union[str, Path, Dict[str, Any], None] = None,
        registry: Optional[InstructionSet] = None,
        decoder: Optional[Decoder] = None,
    ):
        """Initialize a zeroed processor.

        Args:
            config: Anything load_config accepts
            registry: Instruction set (defaults to the shared frozen one)
            decoder: Decoder (defaults to the standard pattern table)
        """
        self.config = load_config(config)
        self.decoder = decoder or Decoder()
        self.registry = registry or get_instruction_set()
        self.max_cycles: Optional[int] = self.config["max_cycles"]
        self.trace_enabled: bool = self.config["trace"]
        self.state = create_initial_state(entry_point=self.config["entry_point"])
        self.trace: List[ExecutionTraceEntry] = []

        if self.config["log_level"] is not None:
            logging.getLogger("nibble_cpu").setLevel(self.config["log_level"])

    def reset(self) -> None:
        """Discard all state and start over from a zeroed machine."""
        self.state = create_initial_state(entry_point=self.config["entry_point"])
        self.trace = []

    def load(self, data: bytes, address: int = 0) -> None:
        """Copy raw program bytes into memory.

        Args:
            data: Encoded instructions or data
            address: First byte's destination

        Raises:
            MemoryAccessError: If the bytes don't fit
        """
        self.state.write_memory(address, bytes(data))
        logger.debug("Loaded %d bytes at 0x%03x", len(data), address)

    def step(self) -> ExecutionTraceEntry:
        """Execute a single instruction cycle.

        Performs: FETCH → PC += 2 → DECODE → EXECUTE

        Returns:
            ExecutionTraceEntry for the cycle. Its state snapshots are
            empty unless tracing is enabled.

        Raises:
            ProcessorHalted: If the processor already stopped
            ProcessorFault: If the instruction faults (state is left halted)
            KeyError: If the decoder produced a key the registry lacks
                (state is left halted)
        """
        state = self.state
        if state.halted:
            raise ProcessorHalted("Processor is halted")

        if self.max_cycles is not None and state.cycle_count >= self.max_cycles:
            state.halted = True
            error = CycleLimitExceeded(f"Max cycles ({self.max_cycles}) exceeded")
            logger.error("%s", error)
            raise error

        cycle = state.cycle_count
        pc = state.pc
        pre_state = self._snapshot()
        opcode: Optional[int] = None
        instruction: Optional[Instruction] = None
        key: Optional[str] = None

        try:
            # FETCH
            opcode = state.fetch()
            state.advance_pc()

            # DECODE (unimplemented words resolve to OP_INVALID, which faults)
            result = self.decoder.decode(opcode)
            instruction = result.instruction
            key = result.key

            # EXECUTE
            self.registry.execute(state, key, instruction)
        except (ProcessorFault, KeyError) as e:
            state.halted = True
            logger.error("Fault at pc=0x%03x: %s", pc, e)
            self._record(ExecutionTraceEntry(
                cycle=cycle,
                pc=pc,
                opcode=opcode,
                instruction=instruction,
                key=key,
                pre_state=pre_state,
                post_state=self._snapshot(),
                error=str(e),
            ))
            raise

        logger.debug("pc=0x%03x op=%04x %s", pc, opcode, key)
        if state.halted:
            logger.info("Halted at pc=0x%03x after %d cycles", pc, state.cycle_count)

        entry = ExecutionTraceEntry(
            cycle=cycle,
            pc=pc,
            opcode=opcode,
            instruction=instruction,
            key=key,
            pre_state=pre_state,
            post_state=self._snapshot(),
        )
        self._record(entry)
        return entry

    def run(self) -> None:
        """Run until HALT.

        Raises:
            ProcessorFault: On any fatal condition, including the optional
                cycle limit
        """
        while not self.state.halted:
            self.step()

    def _snapshot(self) -> dict:
        return self.state.snapshot() if self.trace_enabled else {}

    def _record(self, entry: ExecutionTraceEntry) -> None:
        if self.trace_enabled:
            self.trace.append(entry)

    # =========================================================================
    # Inspection
    # =========================================================================

    def get_register(self, index: int) -> int:
        """Get value of register Vindex."""
        return self.state.get_register(index)

    def dump_registers(self) -> Dict[str, int]:
        """Get all register values keyed V0-VF."""
        return self.state.dump_registers()

    def get_pc(self) -> int:
        return self.state.pc

    def get_sp(self) -> int:
        return self.state.sp

    def get_cycle_count(self) -> int:
        return self.state.cycle_count

    def is_halted(self) -> bool:
        return self.state.halted

    def get_summary(self) -> Dict[str, Any]:
        """Get execution summary.

        Returns:
            Dictionary with execution statistics and final state
        """
        return {
            "cycles": self.get_cycle_count(),
            "halted": self.is_halted(),
            "registers": self.dump_registers(),
            "pc": self.get_pc(),
            "sp": self.get_sp(),
            "trace_length": len(self.trace),
            "errors": [e.error for e in self.trace if e.error],
        }

    def format_trace(self) -> str:
        """Render the execution trace in human-readable form."""
        lines = ["=" * 60, "EXECUTION TRACE", "=" * 60]

        for entry in self.trace:
            status = "OK" if not entry.error else f"FAULT: {entry.error}"
            op = f"{entry.opcode:04x}" if entry.opcode is not None else "----"
            lines.append(f"[Cycle {entry.cycle}] pc={entry.pc:03x} op={op} {entry.key or '-'} {status}")

            pre_regs = entry.pre_state["registers"]
            post_regs = entry.post_state["registers"]
            changes = [
                f"V{i:X}: {before} → {after}"
                for i, (before, after) in enumerate(zip(pre_regs, post_regs))
                if before != after
            ]
            if changes:
                lines.append(f"  Changes: {', '.join(changes)}")
            if entry.pre_state["sp"] != entry.post_state["sp"]:
                lines.append(f"  SP: {entry.pre_state['sp']} → {entry.post_state['sp']}")

        lines.extend(["=" * 60, "FINAL STATE", "=" * 60, f"  {self.state}"])
        return "\n".join(lines)

    def print_trace(self) -> None:
        """Print execution trace in human-readable format."""
        print(self.format_trace())
