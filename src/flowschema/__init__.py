"""
Flow Schema Compiler (flowschema) Package

Bidirectional compiler between the flow DSL and the canonical schema model.

    flow source  --extract_schema-->        SchemaModel  --model_to_json-->  schema.json
    flow source  <--generate_flow_source--  SchemaModel  <--model_from_json-- schema.json

ARCHITECTURAL GUARANTEE:
------------------------
The model (flowschema.model) contains ZERO knowledge of:
    - DSL surface syntax
    - Import conventions
    - File system layout

Extraction and code generation live in separate layers, and every
compile or decompile call works on fresh state.
"""

__version__ = "0.1.0"
