"""Filters deciding which telemetry items reach a receiver.

Filters attached to one receiver compose by conjunction: every filter must
accept an item for the receiver to see it.
"""

from collections.abc import Iterable
from typing import Protocol

from .models import SignalType, TelemetryItem


class TelemetryFilter(Protocol):
    """Stateless predicate over a telemetry item."""

    def should_write(self, item: TelemetryItem) -> bool: ...


class AllSignalsFilter:
    """Accepts every item."""

    def should_write(self, item: TelemetryItem) -> bool:
        return True

    def __repr__(self) -> str:
        return "AllSignalsFilter()"


class ErrorsOnlyFilter:
    """Accepts only items classified as errors."""

    def should_write(self, item: TelemetryItem) -> bool:
        return item.is_error

    def __repr__(self) -> str:
        return "ErrorsOnlyFilter()"


class SignalFilter:
    """Accepts items of the given signal types."""

    def __init__(self, *signals: SignalType | str):
        if not signals:
            raise ValueError("SignalFilter needs at least one signal type")
        self.signals = frozenset(SignalType.parse(s) for s in signals)

    def should_write(self, item: TelemetryItem) -> bool:
        return item.signal in self.signals

    def __repr__(self) -> str:
        names = ", ".join(sorted(s.value for s in self.signals))
        return f"SignalFilter({names})"


def accepts_all(filters: Iterable[TelemetryFilter], item: TelemetryItem) -> bool:
    """True when every filter accepts the item (vacuously true for none)."""
    return all(f.should_write(item) for f in filters)
