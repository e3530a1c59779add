"""Property declarations and the property registry."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field

from cpg_schema.enums import Cardinality, ValueType
from cpg_schema.errors import DuplicatePropertyError, InvalidValueError
from cpg_schema.session import DeclarationSession
from serde_msgspec import StructBaseStrict
from utils.registry_protocol import MutableRegistry

logger = logging.getLogger(__name__)

ScalarValue = str | int | float | bool

_INT_BOUNDS: dict[ValueType, tuple[int, int]] = {
    ValueType.BYTE: (-(2**7), 2**7 - 1),
    ValueType.SHORT: (-(2**15), 2**15 - 1),
    ValueType.INT: (-(2**31), 2**31 - 1),
    ValueType.LONG: (-(2**63), 2**63 - 1),
}


def value_matches_type(value_type: ValueType, value: object) -> bool:
    """Return whether a scalar value is of the given value type.

    ``bool`` is never accepted for numeric types, integers are range checked,
    and floating types accept integers.

    Returns
    -------
    bool
        ``True`` when the value conforms to the value type.
    """
    if value_type is ValueType.BOOLEAN:
        return isinstance(value, bool)
    if value_type is ValueType.STRING:
        return isinstance(value, str)
    if value_type is ValueType.CHAR:
        return isinstance(value, str) and len(value) == 1
    if isinstance(value, bool):
        return False
    bounds = _INT_BOUNDS.get(value_type)
    if bounds is not None:
        return isinstance(value, int) and bounds[0] <= value <= bounds[1]
    return isinstance(value, (int, float))


class PropertySpec(StructBaseStrict):
    """Immutable definition of a declared property."""

    name: str
    value_type: ValueType
    cardinality: Cardinality = Cardinality.ZERO_OR_ONE
    default: ScalarValue | None = None
    comment: str = ""
    proto_id: int | None = None

    @property
    def mandatory(self) -> bool:
        """Return whether the property must carry a value."""
        return self.cardinality is Cardinality.ONE

    @property
    def is_list(self) -> bool:
        """Return whether the property holds an ordered sequence."""
        return self.cardinality is Cardinality.LIST

    def same_definition(self, other: PropertySpec) -> bool:
        """Return whether two specs agree on value type, cardinality and default.

        Returns
        -------
        bool
            ``True`` when the definitions are interchangeable.
        """
        return (
            self.value_type is other.value_type
            and self.cardinality is other.cardinality
            and self.default == other.default
            and type(self.default) is type(other.default)
        )


@dataclass(eq=False)
class PropertyDecl:
    """Mutable declaration handle returned by ``PropertyRegistry.register``.

    The fluent methods change the registered definition in place and return the
    handle, so declarations read ``add_property(...).mandatory("").proto_id(21)``.
    """

    name: str
    value_type: ValueType
    cardinality: Cardinality = Cardinality.ZERO_OR_ONE
    default: ScalarValue | None = None
    comment: str = ""
    proto_id_value: int | None = None
    _session: DeclarationSession = field(default_factory=DeclarationSession, repr=False)

    def mandatory(self, default: ScalarValue) -> PropertyDecl:
        """Mark the property mandatory with the default used for omitted values.

        Returns
        -------
        PropertyDecl
            This handle.
        """
        self._session.ensure_mutable(f"change property {self.name}")
        _check_default(self.name, self.value_type, default)
        self.cardinality = Cardinality.ONE
        self.default = default
        return self

    def optional(self) -> PropertyDecl:
        """Mark the property optional.

        Returns
        -------
        PropertyDecl
            This handle.
        """
        self._session.ensure_mutable(f"change property {self.name}")
        self.cardinality = Cardinality.ZERO_OR_ONE
        self.default = None
        return self

    def as_list(self) -> PropertyDecl:
        """Mark the property as an ordered list of values.

        Returns
        -------
        PropertyDecl
            This handle.
        """
        self._session.ensure_mutable(f"change property {self.name}")
        self.cardinality = Cardinality.LIST
        self.default = None
        return self

    def proto_id(self, value: int) -> PropertyDecl:
        """Assign the protocol id.

        Returns
        -------
        PropertyDecl
            This handle.
        """
        self._session.ensure_mutable(f"change property {self.name}")
        self.proto_id_value = value
        return self

    def spec(self) -> PropertySpec:
        """Return the immutable definition for this declaration.

        Returns
        -------
        PropertySpec
            Snapshot of the current declaration.
        """
        return PropertySpec(
            name=self.name,
            value_type=self.value_type,
            cardinality=self.cardinality,
            default=self.default,
            comment=self.comment,
            proto_id=self.proto_id_value,
        )


def _check_default(name: str, value_type: ValueType, default: object) -> None:
    if default is None or not value_matches_type(value_type, default):
        msg = f"Default {default!r} for property {name!r} is not a valid {value_type.value}."
        raise InvalidValueError(msg, element=name)


def _resolve_cardinality(name: str, *, mandatory: bool, is_list: bool) -> Cardinality:
    if is_list and mandatory:
        msg = f"List property {name!r} cannot be mandatory."
        raise InvalidValueError(msg, element=name)
    if is_list:
        return Cardinality.LIST
    return Cardinality.ONE if mandatory else Cardinality.ZERO_OR_ONE


@dataclass
class PropertyRegistry:
    """Registry of property declarations keyed by globally unique name."""

    session: DeclarationSession = field(default_factory=DeclarationSession)
    _entries: MutableRegistry[str, PropertyDecl] = field(default_factory=MutableRegistry)

    def register(
        self,
        name: str,
        value_type: ValueType,
        *,
        mandatory: bool = False,
        default: ScalarValue | None = None,
        is_list: bool = False,
        comment: str = "",
    ) -> PropertyDecl:
        """Register a property, or return the existing identical declaration.

        Parameters
        ----------
        name
            Registry-wide unique property name.
        value_type
            Value type of each property value.
        mandatory
            Whether instances must carry the property; requires ``default``.
        default
            Value substituted when an instance omits a mandatory property.
        is_list
            Whether the property holds an ordered sequence of values.
        comment
            Free-form documentation.

        Returns
        -------
        PropertyDecl
            Declaration handle.

        Raises
        ------
        DuplicatePropertyError
            Raised when ``name`` is registered with a different definition.
        """
        self.session.ensure_mutable(f"register property {name}")
        cardinality = _resolve_cardinality(name, mandatory=mandatory, is_list=is_list)
        if cardinality is Cardinality.ONE:
            _check_default(name, value_type, default)
        elif default is not None:
            msg = f"Only mandatory properties carry a default; got {default!r} for {name!r}."
            raise InvalidValueError(msg, element=name)
        candidate = PropertyDecl(
            name=name,
            value_type=value_type,
            cardinality=cardinality,
            default=default,
            comment=comment,
            _session=self.session,
        )
        existing = self._entries.get(name)
        if existing is not None:
            if existing.spec().same_definition(candidate.spec()):
                if comment and not existing.comment:
                    existing.comment = comment
                return existing
            msg = (
                f"Property {name!r} already registered as {_describe(existing.spec())}; "
                f"cannot redeclare as {_describe(candidate.spec())}."
            )
            raise DuplicatePropertyError(msg, element=name)
        self._entries.register(name, candidate)
        logger.debug("Registered property %s (%s)", name, value_type.value)
        return candidate

    def get(self, name: str) -> PropertyDecl | None:
        """Return the declaration registered under ``name``.

        Returns
        -------
        PropertyDecl | None
            Declaration, or ``None`` when missing.
        """
        return self._entries.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[PropertyDecl]:
        return self._entries.values()

    def __len__(self) -> int:
        return len(self._entries)


def _describe(spec: PropertySpec) -> str:
    text = f"{spec.value_type.value}/{spec.cardinality.value}"
    if spec.default is not None:
        text += f" default={spec.default!r}"
    return text


__all__ = [
    "PropertyDecl",
    "PropertyRegistry",
    "PropertySpec",
    "ScalarValue",
    "value_matches_type",
]
