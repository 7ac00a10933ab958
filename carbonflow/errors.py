# MIT License
"""Exceptions raised by the carbon flow engine."""

from __future__ import annotations
from typing import Optional


class ProcessorGraphError(Exception):
    """A configuration error in the processor graph.

    Raised by the validation pass (and by routing when the graph has not
    been validated).  The offending processor is available through
    :attr:`processor_name` so that callers can point the user at it.
    """

    def __init__(self, message: str, processor_name: Optional[str] = None):
        super().__init__(message if processor_name is None else f"{message}: {processor_name}")
        self.processor_name = processor_name


class UnknownEntryError(KeyError):
    """The entry lookup key is not bound to any processor."""


class NegativeReleaseError(ArithmeticError):
    """A carbon unit released a negative amount of carbon.

    The decay functions are non-increasing so this can only come from a
    decay or caching defect.  The current actualization is aborted.
    """

    def __init__(self, released: float, elapsed: int, unit_label: str = ""):
        super().__init__(f"Negative carbon release ({released!r}) at elapsed year {elapsed} {unit_label}".strip())
        self.released = released
        self.elapsed = elapsed
