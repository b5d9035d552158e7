"""Fixed-point monetary amounts."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from functools import total_ordering

from auctionhouse.errors import InvalidAmount

MONEY_SCALE = 2
_MINOR_PER_MAJOR = 10**MONEY_SCALE
_QUANTUM = Decimal(1).scaleb(-MONEY_SCALE)
# Largest value a DECIMAL(15, 2) column holds.
MAX_MINOR_UNITS = 10**15 - 1


@total_ordering
@dataclass(frozen=True, slots=True)
class Money:
    """Non-negative amount held as an exact count of minor units (cents).

    Arithmetic and comparisons are integer operations, so no value ever passes
    through binary floating point. Parsing rejects anything that cannot be
    represented at two decimals without rounding.
    """

    minor_units: int

    def __post_init__(self) -> None:
        if isinstance(self.minor_units, bool) or not isinstance(self.minor_units, int):
            raise InvalidAmount(f"Minor units must be an integer, got {self.minor_units!r}")
        if self.minor_units < 0:
            raise InvalidAmount("Monetary amounts cannot be negative")
        if self.minor_units > MAX_MINOR_UNITS:
            raise InvalidAmount("Monetary amount exceeds the supported range")

    # ------------------------------------------------------------------
    # Construction

    @classmethod
    def zero(cls) -> Money:
        return cls(0)

    @classmethod
    def from_minor_units(cls, units: int) -> Money:
        return cls(units)

    @classmethod
    def parse(cls, value: str | Decimal | int | Money) -> Money:
        if isinstance(value, Money):
            return value
        if isinstance(value, bool) or not isinstance(value, (str, Decimal, int)):
            raise InvalidAmount(f"Cannot interpret {value!r} as a monetary amount")
        try:
            amount = Decimal(value.strip()) if isinstance(value, str) else Decimal(value)
        except InvalidOperation as exc:
            raise InvalidAmount(f"Malformed monetary amount: {value!r}") from exc
        if not amount.is_finite():
            raise InvalidAmount(f"Malformed monetary amount: {value!r}")
        try:
            quantized = amount.quantize(_QUANTUM)
        except InvalidOperation as exc:
            raise InvalidAmount("Monetary amount exceeds the supported range") from exc
        if quantized != amount:
            raise InvalidAmount(
                f"Monetary amounts support at most {MONEY_SCALE} decimal places: {value!r}"
            )
        return cls(int(quantized.scaleb(MONEY_SCALE)))

    # ------------------------------------------------------------------
    # Arithmetic

    def __add__(self, other: object) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.minor_units + other.minor_units)

    def __sub__(self, other: object) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.minor_units - other.minor_units)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.minor_units < other.minor_units

    def __bool__(self) -> bool:
        return self.minor_units != 0

    # ------------------------------------------------------------------
    # Rendering

    @property
    def amount(self) -> Decimal:
        return Decimal(self.minor_units).scaleb(-MONEY_SCALE)

    def to_display_string(self) -> str:
        major, minor = divmod(self.minor_units, _MINOR_PER_MAJOR)
        return f"{major}.{minor:0{MONEY_SCALE}d}"

    def __str__(self) -> str:
        return self.to_display_string()

    def __repr__(self) -> str:
        return f"Money('{self.to_display_string()}')"


__all__ = ["MAX_MINOR_UNITS", "MONEY_SCALE", "Money"]
