"""Schema builder: one declaration session and its compile lifecycle."""

from __future__ import annotations

import logging

from cpg_schema.compiled import CompiledSchema
from cpg_schema.compiler import SchemaCompiler, SchemaLayer
from cpg_schema.config import SchemaSettings, schema_settings_from_env
from cpg_schema.constants import Constant, ConstantRegistry
from cpg_schema.edge_types import EdgeRuleDecl, EdgeTypeDecl, EdgeTypeRegistry
from cpg_schema.enums import Cardinality, SchemaState, ValueType
from cpg_schema.errors import DuplicateNameError, SchemaError
from cpg_schema.node_types import NodeTypeDecl, NodeTypeRef, NodeTypeRegistry
from cpg_schema.properties import PropertyDecl, PropertyRegistry, ScalarValue
from cpg_schema.session import DeclarationSession

logger = logging.getLogger(__name__)


class SchemaBuilder:
    """Mutable registries for one schema, frozen by ``compile``.

    Declarations may be added until ``compile`` succeeds; afterwards every
    mutating call raises ``SchemaFrozenError`` and ``compile`` returns the same
    ``CompiledSchema``. Without explicit ``settings`` the compiler settings
    are read from the ``CPG_SCHEMA_*`` environment variables.
    """

    def __init__(
        self,
        name: str = "cpg",
        version: str = "1.0",
        *,
        settings: SchemaSettings | None = None,
    ) -> None:
        self.name = name
        self.version = version
        self.settings = settings or schema_settings_from_env()
        self.session = DeclarationSession()
        self.properties = PropertyRegistry(self.session)
        self.edge_types = EdgeTypeRegistry(self.session)
        self.node_types = NodeTypeRegistry(self.session, edges=self.edge_types)
        self.constants = ConstantRegistry(self.session)
        self._layers: list[SchemaLayer] = []
        self._compiled: CompiledSchema | None = None

    @property
    def state(self) -> SchemaState:
        """Return the lifecycle state of this session."""
        return self.session.state

    @property
    def layers(self) -> tuple[SchemaLayer, ...]:
        """Return the recorded layers in declaration order."""
        return tuple(self._layers)

    def add_property(
        self,
        name: str,
        value_type: ValueType,
        *,
        mandatory: bool = False,
        default: ScalarValue | None = None,
        is_list: bool = False,
        comment: str = "",
    ) -> PropertyDecl:
        """Register a property.

        Returns
        -------
        PropertyDecl
            Declaration handle supporting ``mandatory``, ``as_list`` and ``proto_id``.
        """
        return self.properties.register(
            name,
            value_type,
            mandatory=mandatory,
            default=default,
            is_list=is_list,
            comment=comment,
        )

    def add_base_type(self, name: str, *, comment: str = "") -> NodeTypeDecl:
        """Declare an abstract base type.

        Returns
        -------
        NodeTypeDecl
            Declaration handle.
        """
        return self.node_types.add_base_type(name, comment=comment)

    def add_node_type(self, name: str, *, comment: str = "") -> NodeTypeDecl:
        """Declare a concrete node type.

        Returns
        -------
        NodeTypeDecl
            Declaration handle.
        """
        return self.node_types.add_node_type(name, comment=comment)

    def add_edge_type(self, name: str, *, comment: str = "") -> EdgeTypeDecl:
        """Declare an edge type.

        Returns
        -------
        EdgeTypeDecl
            Declaration handle.
        """
        return self.edge_types.add_edge_type(name, comment=comment)

    def add_out_edge(
        self,
        edge: EdgeTypeDecl | str,
        source: NodeTypeRef,
        target: NodeTypeRef,
        *,
        cardinality_out: Cardinality = Cardinality.LIST,
        cardinality_in: Cardinality = Cardinality.LIST,
        step_name_out: str | None = None,
        step_name_out_doc: str = "",
        step_name_in: str | None = None,
        step_name_in_doc: str = "",
    ) -> EdgeRuleDecl:
        """Declare an edge rule.

        Returns
        -------
        EdgeRuleDecl
            The recorded rule.
        """
        return self.edge_types.add_out_edge(
            edge,
            source,
            target,
            cardinality_out=cardinality_out,
            cardinality_in=cardinality_in,
            step_name_out=step_name_out,
            step_name_out_doc=step_name_out_doc,
            step_name_in=step_name_in,
            step_name_in_doc=step_name_in_doc,
        )

    def add_constants(self, category: str, *constants: Constant) -> tuple[Constant, ...]:
        """Add named constants to a category.

        Returns
        -------
        tuple[Constant, ...]
            The added constants.
        """
        return self.constants.add_constants(category, *constants)

    def add_layer(
        self,
        name: str,
        *,
        doc_index: int = 0,
        description: str = "",
        provided_by_frontend: bool = False,
    ) -> SchemaLayer:
        """Record layer metadata.

        Returns
        -------
        SchemaLayer
            The recorded layer.

        Raises
        ------
        DuplicateNameError
            Raised when a layer with the same name was already recorded.
        """
        self.session.ensure_mutable(f"add layer {name}")
        if any(layer.name == name for layer in self._layers):
            msg = f"Layer {name!r} is already declared."
            raise DuplicateNameError(msg, element=name)
        layer = SchemaLayer(
            name=name,
            doc_index=doc_index,
            description=description,
            provided_by_frontend=provided_by_frontend,
        )
        self._layers.append(layer)
        return layer

    def compile(self) -> CompiledSchema:
        """Compile and freeze the declarations.

        Returns
        -------
        CompiledSchema
            Compiled schema; repeated calls return the same instance.

        Raises
        ------
        SchemaError
            Raised when the declarations are invalid. The session is left
            mutable so the declarations can be corrected.
        """
        if self._compiled is not None:
            return self._compiled
        self.session.ensure_mutable("compile")
        self.session.state = SchemaState.RESOLVING
        compiler = SchemaCompiler(
            name=self.name,
            version=self.version,
            properties=self.properties,
            node_types=self.node_types,
            edge_types=self.edge_types,
            constants=self.constants,
            layers=tuple(self._layers),
            settings=self.settings,
        )
        try:
            compiled = compiler.compile()
        except SchemaError as exc:
            self.session.state = SchemaState.DECLARED
            logger.warning("Compiling schema %s failed: %s", self.name, exc)
            raise
        self.session.state = SchemaState.COMPILED
        self._compiled = compiled
        self.session.state = SchemaState.FROZEN
        return compiled


def compile_schema(builder: SchemaBuilder) -> CompiledSchema:
    """Compile a builder's declarations.

    Returns
    -------
    CompiledSchema
        Compiled schema.
    """
    return builder.compile()


__all__ = ["SchemaBuilder", "SchemaLayer", "compile_schema"]
