"""Instance graph validation against a compiled schema."""

from validation.config import ValidationSettings, validation_settings_from_env
from validation.instance import (
    EdgeInstance,
    InstanceGraph,
    InstanceGraphBuilder,
    NodeInstance,
    graph_from_json,
    graph_from_msgpack,
)
from validation.validator import GraphValidator, materialize_properties, validate
from validation.violations import NodeId, ValidationViolation, ViolationList, ViolationType

__all__ = [
    "EdgeInstance",
    "GraphValidator",
    "InstanceGraph",
    "InstanceGraphBuilder",
    "NodeId",
    "NodeInstance",
    "ValidationSettings",
    "ValidationViolation",
    "ViolationList",
    "ViolationType",
    "graph_from_json",
    "graph_from_msgpack",
    "materialize_properties",
    "validate",
    "validation_settings_from_env",
]
