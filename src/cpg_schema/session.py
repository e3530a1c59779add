"""Declaration session state shared by the registries of one builder."""

from __future__ import annotations

from dataclasses import dataclass, field

from cpg_schema.enums import SchemaState
from cpg_schema.errors import SchemaFrozenError


@dataclass
class DeclarationSession:
    """Track lifecycle state and declaration order for one construction session."""

    state: SchemaState = SchemaState.DECLARED
    _sequence: int = field(default=0, repr=False)

    def ensure_mutable(self, action: str) -> None:
        """Raise when declarations can no longer change.

        Raises
        ------
        SchemaFrozenError
            Raised when the session is compiling or already frozen.
        """
        if self.state is not SchemaState.DECLARED:
            msg = f"Cannot {action}: schema is {self.state.value}."
            raise SchemaFrozenError(msg)

    def next_sequence(self) -> int:
        """Return the next declaration sequence number.

        Returns
        -------
        int
            Monotonic sequence number.
        """
        value = self._sequence
        self._sequence += 1
        return value


__all__ = ["DeclarationSession"]
