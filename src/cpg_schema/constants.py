"""Named constant groups declared alongside the schema."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field

from cpg_schema.enums import ValueType
from cpg_schema.errors import DuplicateNameError
from cpg_schema.properties import ScalarValue
from cpg_schema.session import DeclarationSession
from utils.registry_protocol import MutableRegistry


@dataclass(eq=False)
class Constant:
    """A named value in a constant category, such as an operator name."""

    name: str
    value: ScalarValue
    value_type: ValueType = ValueType.STRING
    comment: str = ""
    proto_id_value: int | None = None

    def proto_id(self, value: int) -> Constant:
        """Assign the protocol id.

        Returns
        -------
        Constant
            This constant.
        """
        self.proto_id_value = value
        return self


@dataclass(frozen=True)
class ConstantEntry:
    """A constant bound to its category and declaration position."""

    category: str
    constant: Constant
    declaration_index: int


@dataclass
class ConstantRegistry:
    """Constants grouped by category; names are unique within a category."""

    session: DeclarationSession = field(default_factory=DeclarationSession)
    _categories: MutableRegistry[str, dict[str, ConstantEntry]] = field(
        default_factory=MutableRegistry
    )

    def add_constants(self, category: str, *constants: Constant) -> tuple[Constant, ...]:
        """Add constants to a category, creating the category on first use.

        Values are checked against their value type when the schema compiles.

        Returns
        -------
        tuple[Constant, ...]
            The added constants.

        Raises
        ------
        DuplicateNameError
            Raised when a constant name repeats within the category.
        """
        self.session.ensure_mutable(f"add constants to {category}")
        entries = self._categories.get(category)
        if entries is None:
            entries = {}
            self._categories.register(category, entries)
        for constant in constants:
            if constant.name in entries:
                msg = f"Constant {constant.name!r} is already declared in {category!r}."
                raise DuplicateNameError(msg, element=constant.name)
            entries[constant.name] = ConstantEntry(
                category=category,
                constant=constant,
                declaration_index=self.session.next_sequence(),
            )
        return constants

    def categories(self) -> tuple[str, ...]:
        """Return category names in declaration order.

        Returns
        -------
        tuple[str, ...]
            Category names.
        """
        return tuple(self._categories)

    def entries(self) -> Iterator[ConstantEntry]:
        """Iterate over all constants, category by category.

        Yields
        ------
        ConstantEntry
            Declared constants in declaration order.
        """
        for values in self._categories.values():
            yield from values.values()

    def __len__(self) -> int:
        return sum(len(values) for values in self._categories.values())


__all__ = ["Constant", "ConstantEntry", "ConstantRegistry"]
