"""Exception types raised by the codec."""

from __future__ import annotations


class BlockbasisError(Exception):
    """Base class for codec errors."""


class ContainerDecodeError(BlockbasisError, ValueError):
    """A compressed container could not be parsed.

    Attributes:
        field: Name of the field that was missing or invalid
    """

    def __init__(self, field: str, message: str | None = None) -> None:
        self.field = field
        super().__init__(message or f"missing {field} field")


class EigenDecompositionError(BlockbasisError, RuntimeError):
    """No eigensolver produced a usable decomposition."""
