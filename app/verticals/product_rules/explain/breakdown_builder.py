from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import re
from typing import Iterator, List, Tuple


# -----------------------------
# Public contract (API)
# -----------------------------


class BreakdownKind(str, Enum):
    STEP = "STEP"
    META = "META"


_CODE_RE = re.compile(r"^[A-Z][A-Z0-9_]{2,63}$")  # e.g. UNIT_PRICE, EXTRA_CHARGE
_WS_RE = re.compile(r"\s+")

MAX_MESSAGE_LEN = 240


def clean_message(text: str) -> str:
    """
    Make free text (rule names, notes) render-safe: single line, capped length.
    """
    msg = _WS_RE.sub(" ", str(text)).strip()
    if len(msg) > MAX_MESSAGE_LEN:
        msg = msg[: MAX_MESSAGE_LEN - 3].rstrip() + "..."
    return msg


def _validate_code(code: str) -> str:
    if not isinstance(code, str):
        raise TypeError("breakdown code must be str")
    code = code.strip()
    if not _CODE_RE.match(code):
        raise ValueError(
            f"invalid breakdown code '{code}'. Expected UPPER_SNAKE (3-64 chars), e.g. UNIT_PRICE"
        )
    return code


def _validate_message(message: str) -> str:
    if not isinstance(message, str):
        raise TypeError("breakdown message must be str")
    msg = message.strip()
    if not msg:
        raise ValueError("breakdown message must be non-empty")
    if "\n" in msg or "\r" in msg or "\t" in msg:
        raise ValueError("breakdown message must be a single line")
    if len(msg) > MAX_MESSAGE_LEN:
        raise ValueError(f"breakdown message too long (max {MAX_MESSAGE_LEN} chars)")
    return msg


@dataclass(frozen=True)
class BreakdownEntry:
    seq: int
    kind: BreakdownKind
    code: str
    message: str


@dataclass
class Breakdown:
    """
    Ordered audit trail of one evaluation. The evaluator writes into it,
    consumers read rendered strings.
    """

    _entries: List[BreakdownEntry] = field(default_factory=list)
    _seq: int = 0

    @property
    def entries(self) -> List[BreakdownEntry]:
        return list(self._entries)

    def as_strings(self) -> List[str]:
        return BreakdownBuilder().build(self)

    def __iter__(self) -> Iterator[str]:
        return iter(self.as_strings())

    def __len__(self) -> int:
        return len(self._entries)

    def add_step(self, code: str, message: str) -> None:
        self._append(kind=BreakdownKind.STEP, code=code, message=message)

    def add_meta(self, code: str, message: str) -> None:
        self._append(kind=BreakdownKind.META, code=code, message=message)

    def _append(self, *, kind: BreakdownKind, code: str, message: str) -> None:
        c = _validate_code(code)
        m = _validate_message(message)

        self._seq += 1
        self._entries.append(BreakdownEntry(seq=self._seq, kind=kind, code=c, message=m))


# -----------------------------
# Render / Output builder
# -----------------------------


class BreakdownBuilder:
    """Converts a Breakdown to the output contract: ordered strings."""

    def build(self, breakdown: Breakdown) -> List[str]:
        if not isinstance(breakdown, Breakdown):
            raise TypeError("BreakdownBuilder.build expects a Breakdown instance")

        entries = sorted(breakdown.entries, key=lambda e: e.seq)
        return [self._render(e) for e in entries]

    def build_tuple(self, breakdown: Breakdown) -> Tuple[str, ...]:
        return tuple(self.build(breakdown))

    def _render(self, e: BreakdownEntry) -> str:
        if e.kind == BreakdownKind.META:
            return f"META: {e.message}"
        return e.message
