"""Backends for flowschema output generation (flow DSL source)."""

from .builders_generator import build_builders_declaration
from .flow_generator import generate_flow_source
from .gwt_generator import build_gwt_chain, build_gwt_spec_block
from .imports_generator import build_imports

__all__ = [
    "build_builders_declaration",
    "build_gwt_chain",
    "build_gwt_spec_block",
    "build_imports",
    "generate_flow_source",
]
