"""
Clarity Values
==============
Typed arguments for Stacks contract calls.

Callers build each argument explicitly, so the encoding never depends
on inspecting a Python value at runtime.
"""

import re
from dataclasses import dataclass
from typing import Union

# Standard principal, optionally followed by .contract-name
PRINCIPAL_RE = re.compile(r"^S[A-Za-z0-9]{28,}(\.[a-zA-Z][a-zA-Z0-9\-]{0,127})?$")

MAX_UINT = 2 ** 128 - 1


@dataclass(frozen=True)
class UInt:
    """Clarity uint (u128)."""
    value: int

    def __post_init__(self):
        if not 0 <= self.value <= MAX_UINT:
            raise ValueError(f"uint out of range: {self.value}")

    def to_dict(self) -> dict:
        return {"type": "uint", "value": str(self.value)}


@dataclass(frozen=True)
class Principal:
    """Standard or contract principal."""
    value: str

    def __post_init__(self):
        if not PRINCIPAL_RE.match(self.value):
            raise ValueError(f"Invalid principal: {self.value}")

    def to_dict(self) -> dict:
        kind = "contract_principal" if "." in self.value else "principal"
        return {"type": kind, "value": self.value}


@dataclass(frozen=True)
class AsciiString:
    """Clarity string-ascii."""
    value: str

    def __post_init__(self):
        if not self.value.isascii():
            raise ValueError("string-ascii must be ASCII")

    def to_dict(self) -> dict:
        return {"type": "string_ascii", "value": self.value}


@dataclass(frozen=True)
class Buffer:
    """Clarity buff."""
    value: bytes

    def to_dict(self) -> dict:
        return {"type": "buff", "value": self.value.hex()}


ClarityValue = Union[UInt, Principal, AsciiString, Buffer]
