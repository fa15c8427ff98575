"""Instruction decode for the nibble CPU.

An instruction word is 16 bits split into four nibbles, most significant first:

    15      12 11       8 7        4 3        0
    +---------+----------+----------+----------+
    |    c    |    x     |    y     |    d     |
    +---------+----------+----------+----------+
              |<------------- nnn ------------>|
                         |<------- kk -------->|

``c`` selects the instruction family, ``x`` and ``y`` are register indices,
``nnn`` is a 12-bit address and ``kk`` an 8-bit immediate. Which fields are
meaningful depends on the family.

The decoder maps the nibble tuple to an operation key understood by the
instruction registry. Words that match no pattern resolve to OP_INVALID.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple


# Wildcard marker for pattern nibbles
ANY = None

Pattern = Tuple[Optional[int], Optional[int], Optional[int], Optional[int]]


@dataclass(frozen=True)
class Instruction:
    """Fields of a decoded instruction word.

    Attributes:
        word: Raw 16-bit instruction word
        c: Opcode class (bits 12-15)
        x: First register index (bits 8-11)
        y: Second register index (bits 4-7)
        d: Low nibble (bits 0-3)
        nnn: 12-bit address (bits 0-11)
        kk: 8-bit immediate (bits 0-7)
    """
    word: int
    c: int
    x: int
    y: int
    d: int
    nnn: int
    kk: int

    @property
    def nibbles(self) -> Tuple[int, int, int, int]:
        return (self.c, self.x, self.y, self.d)


def decode(word: int) -> Instruction:
    """Split an instruction word into its fields.

    Args:
        word: 16-bit instruction word

    Returns:
        Instruction with all fields populated

    Raises:
        ValueError: If word doesn't fit in 16 bits
    """
    if not 0 <= word <= 0xFFFF:
        raise ValueError(f"Instruction word out of range: {word:#x}")
    return Instruction(
        word=word,
        c=(word & 0xF000) >> 12,
        x=(word & 0x0F00) >> 8,
        y=(word & 0x00F0) >> 4,
        d=word & 0x000F,
        nnn=word & 0x0FFF,
        kk=word & 0x00FF,
    )


@dataclass
class DecodeResult:
    """Result of resolving an instruction to an operation key.

    Attributes:
        key: Registry key (e.g., "OP_ADD_XY")
        instruction: Decoded instruction fields
        valid: Whether the word matched a known pattern
        error: Error message if invalid
    """
    key: str
    instruction: Instruction
    valid: bool
    error: Optional[str] = None


# Checked in order, first match wins
PATTERNS: List[Tuple[Pattern, str]] = [
    ((0x0, 0x0, 0x0, 0x0), "OP_HALT"),
    ((0x0, 0x0, 0xE, 0xE), "OP_RET"),
    ((0x1, ANY, ANY, ANY), "OP_JUMP"),
    ((0x2, ANY, ANY, ANY), "OP_CALL"),
    ((0x6, ANY, ANY, ANY), "OP_LOAD_IMM"),
    ((0x7, ANY, ANY, ANY), "OP_ADD_IMM"),
    ((0x8, ANY, ANY, 0x0), "OP_LOAD_XY"),
    ((0x8, ANY, ANY, 0x4), "OP_ADD_XY"),
    ((0x8, ANY, ANY, 0x5), "OP_SUB_XY"),
]


def _matches(pattern: Pattern, nibbles: Tuple[int, int, int, int]) -> bool:
    return all(p is ANY or p == n for p, n in zip(pattern, nibbles))


class Decoder:
    """Resolves instruction words to registry operation keys.

    Attributes:
        patterns: Ordered (pattern, key) pairs; None in a pattern matches any nibble
    """

    def __init__(self, patterns: Optional[List[Tuple[Pattern, str]]] = None):
        self.patterns = list(patterns if patterns is not None else PATTERNS)

    def decode(self, word: int) -> DecodeResult:
        """Decode a word and resolve its operation key.

        Args:
            word: 16-bit instruction word

        Returns:
            DecodeResult; OP_INVALID with valid=False if nothing matches
        """
        instruction = decode(word)
        for pattern, key in self.patterns:
            if _matches(pattern, instruction.nibbles):
                return DecodeResult(key, instruction, True)

        return DecodeResult(
            "OP_INVALID",
            instruction,
            False,
            error=f"Unimplemented opcode 0x{word:04x}",
        )

    def get_keys(self) -> set:
        """Get set of all keys this decoder can produce (excluding OP_INVALID)."""
        return {key for _, key in self.patterns}
