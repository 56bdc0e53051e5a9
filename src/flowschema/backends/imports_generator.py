"""
Imports Generator

Computes the import declarations of a generated flow file. Up to four
kinds of declaration are emitted, each with alphabetically sorted
specifiers:

    import { command, given, specs, when } from '@auto-engineer/flow';
    import type { Command, Event } from '@auto-engineer/flow';
    /** @integration ProductCatalog Product lookup */
    import { ProductCatalog } from '@examples/product-catalogue';
    import type { Products } from '../server/src/integrations';

A declaration whose specifier list would be empty is never emitted.
"""

from itertools import groupby
from typing import Iterable, List, Optional

from flowschema.config import FlowSchemaConfig
from flowschema.doc_comments import format_doc_comment
from flowschema.errors import CodegenError
from flowschema.model import Integration, MessageKind


DSL_FUNCTIONS = frozenset({
    "command", "query", "react", "experience", "narrative", "should", "specs",
    "rule", "example", "gql", "source", "data", "sink",
    "flow", "given", "when", "createBuilders",
})

MESSAGE_KIND_ALIASES = {
    MessageKind.COMMAND: "Command",
    MessageKind.EVENT: "Event",
    MessageKind.STATE: "State",
}


def format_import(names: Iterable[str], module: str, type_only: bool = False) -> Optional[str]:
    """Render one import declaration, or None when there is nothing to import."""
    specifiers = sorted(set(names))
    if not specifiers:
        return None
    keyword = "import type" if type_only else "import"
    return f"{keyword} {{ {', '.join(specifiers)} }} from '{module}';"


def build_imports(
    functions: Iterable[str],
    message_kinds: Iterable[MessageKind],
    integrations: Iterable[Integration] = (),
    integration_type_names: Iterable[str] = (),
    config: Optional[FlowSchemaConfig] = None,
) -> List[str]:
    """
    Build the import section of a flow file.

    Args:
        functions: DSL functions invoked by the generated code
        message_kinds: Kinds of the declared message types
        integrations: Integrations used as runtime values
        integration_type_names: Names used only as types
        config: Import module locations

    Returns:
        Source lines (doc comments included)

    Raises:
        CodegenError: A function outside the DSL vocabulary was requested
    """
    config = config or FlowSchemaConfig()
    functions = set(functions)
    unknown = sorted(functions - DSL_FUNCTIONS)
    if unknown:
        raise CodegenError(f"Not DSL functions: {', '.join(unknown)}")

    lines: List[str] = []

    value_import = format_import(functions, config.flow_import)
    if value_import:
        lines.append(value_import)

    aliases = [MESSAGE_KIND_ALIASES[kind] for kind in set(message_kinds)]
    type_import = format_import(aliases, config.flow_import, type_only=True)
    if type_import:
        lines.append(type_import)

    by_source = sorted(integrations, key=lambda i: (i.source, i.name))
    for source, group in groupby(by_source, key=lambda i: i.source):
        group = list(group)
        tags = [("integration", f"{i.name} {i.description}") for i in group if i.description]
        lines.extend(format_doc_comment(None, tags))
        lines.append(format_import([i.name for i in group], source))

    type_names = format_import(integration_type_names, config.integration_import, type_only=True)
    if type_names:
        lines.append(type_names)

    return lines
