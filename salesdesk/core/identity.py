"""
Operator identity passed explicitly into every fulfillment operation.
"""

import re
from dataclasses import dataclass
from typing import Optional

_NON_NAME_CHARS = re.compile(r"[^A-Za-z ]")

REP_NAME_MAX_LENGTH = 30


def name_only(value: Optional[str]) -> str:
    """Strip everything but letters and spaces, trimmed to rep-name length."""
    return _NON_NAME_CHARS.sub("", value or "").strip()[:REP_NAME_MAX_LENGTH]


@dataclass(frozen=True)
class OperatorIdentity:
    """The back-office user performing an action."""

    email: str
    role: str = "unknown"
    name: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.email or not self.email.strip():
            raise ValueError("Operator email is required")

    @property
    def display_name(self) -> str:
        return self.name or self.email

    @property
    def rep_name(self) -> str:
        """Default sales rep name derived from the operator's name."""
        return name_only(self.name)
