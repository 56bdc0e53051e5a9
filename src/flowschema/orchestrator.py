"""
Compile/Decompile Orchestrator

Sequences extraction and code generation per file and aggregates results
across a project:

    store = LocalFileStore("my-app")
    result = compile_project(store, "flows")
    if result.ok:
        write_schema(store, result.model)

One bad file never aborts a batch: its FlowParseError (or a file that is
not valid UTF-8) becomes a CompileFailure and the next file is compiled.
CodegenError is not caught here; it signals a defective model.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from flowschema.backends.flow_generator import generate_flow_source
from flowschema.config import FlowSchemaConfig
from flowschema.errors import FlowParseError
from flowschema.extractor import extract_schema
from flowschema.filestore import FileStore
from flowschema.model import Flow, Integration, Message, SchemaModel
from flowschema.serialization import model_from_json, model_to_json

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompileFailure:
    """
    One file that could not be compiled (or merged into the project).

    Properties:
        path: Store path of the file
        reason: What went wrong
        slice_name: Slice being extracted, if known
        line: 1-based source line, if known
    """

    path: str
    reason: str
    slice_name: Optional[str] = None
    line: Optional[int] = None

    def __str__(self) -> str:
        location = self.path if self.line is None else f"{self.path}:{self.line}"
        if self.slice_name is not None:
            return f"{location} [slice '{self.slice_name}']: {self.reason}"
        return f"{location}: {self.reason}"


@dataclass
class ProjectResult:
    """Outcome of compiling every flow file of a project."""

    model: SchemaModel = field(default_factory=SchemaModel)
    compiled: List[str] = field(default_factory=list)
    failures: List[CompileFailure] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def stopped_early(self) -> bool:
        return bool(self.skipped)


def compile_source(source: str, file_path: str = "<source>",
                   config: Optional[FlowSchemaConfig] = None) -> SchemaModel:
    """Compile one flow source text into a schema model."""
    return extract_schema(source, file_path, config)


def decompile_model(model: SchemaModel, config: Optional[FlowSchemaConfig] = None) -> str:
    """Render a schema model as flow source text."""
    return generate_flow_source(model, config)


class _ProjectMerge:
    """Accumulates per-file models, rejecting cross-file conflicts."""

    def __init__(self):
        self.flows: List[Flow] = []
        self.flow_origin: Dict[str, str] = {}
        self.messages: Dict[str, Message] = {}
        self.message_origin: Dict[str, str] = {}
        self.integrations: Dict[str, Integration] = {}
        self.integration_origin: Dict[str, str] = {}

    def conflict(self, path: str, model: SchemaModel) -> Optional[str]:
        for flow in model.flows:
            if flow.name in self.flow_origin:
                return f"Flow '{flow.name}' is already defined in {self.flow_origin[flow.name]}"
        for message in model.messages:
            existing = self.messages.get(message.name)
            if existing is not None and existing != message:
                return (
                    f"Message '{message.name}' conflicts with its definition in "
                    f"{self.message_origin[message.name]}"
                )
        for integration in model.integrations:
            existing = self.integrations.get(integration.name)
            if existing is not None and existing != integration:
                return (
                    f"Integration '{integration.name}' conflicts with its definition in "
                    f"{self.integration_origin[integration.name]}"
                )
        return None

    def add(self, path: str, model: SchemaModel) -> None:
        for flow in model.flows:
            self.flows.append(flow)
            self.flow_origin[flow.name] = path
        for message in model.messages:
            if message.name not in self.messages:
                self.messages[message.name] = message
                self.message_origin[message.name] = path
        for integration in model.integrations:
            if integration.name not in self.integrations:
                self.integrations[integration.name] = integration
                self.integration_origin[integration.name] = path

    def model(self) -> SchemaModel:
        return SchemaModel(
            flows=tuple(self.flows),
            messages=tuple(self.messages.values()),
            integrations=tuple(self.integrations.values()),
        )


def compile_project(
    store: FileStore,
    root: str = "",
    config: Optional[FlowSchemaConfig] = None,
) -> ProjectResult:
    """
    Compile every flow file under `root` and merge the results.

    Files are processed in sorted path order. A file that fails to parse,
    or that conflicts with an earlier file, contributes nothing to the
    merged model and is recorded as a failure.

    Args:
        store: Where the flow files live
        root: Store directory to search
        config: Import conventions, file suffix and failure limit

    Returns:
        ProjectResult with the merged model, compiled paths and failures
    """
    config = config or FlowSchemaConfig()
    paths = [p for p in store.list_tree(root) if p.endswith(config.flow_file_suffix)]
    logger.debug("Compiling %d flow file(s) under '%s'", len(paths), root or ".")

    result = ProjectResult()
    merge = _ProjectMerge()

    for index, path in enumerate(paths):
        if config.max_failures is not None and len(result.failures) >= config.max_failures:
            result.skipped = paths[index:]
            logger.warning(
                "Stopping after %d failure(s); %d file(s) not compiled",
                len(result.failures), len(result.skipped),
            )
            break

        logger.debug("Compiling %s", path)
        try:
            model = extract_schema(store.read(path), path, config)
        except UnicodeDecodeError as e:
            failure = CompileFailure(path, f"Not valid UTF-8 text ({e.reason} at byte {e.start})")
            logger.warning("Failed to read %s", failure)
            result.failures.append(failure)
            continue
        except FlowParseError as e:
            failure = CompileFailure(path, e.reason, e.slice_name, e.line)
            logger.warning("Failed to compile %s", failure)
            result.failures.append(failure)
            continue

        conflict = merge.conflict(path, model)
        if conflict is not None:
            failure = CompileFailure(path, conflict)
            logger.warning("Failed to merge %s", failure)
            result.failures.append(failure)
            continue

        merge.add(path, model)
        result.compiled.append(path)

    result.model = merge.model()
    return result


def write_schema(store: FileStore, model: SchemaModel,
                 config: Optional[FlowSchemaConfig] = None, path: Optional[str] = None) -> str:
    """
    Write the schema JSON for `model`.

    Returns:
        The store path written to (config.schema_path unless `path` is given)
    """
    config = config or FlowSchemaConfig()
    target = path or config.schema_path
    store.write(target, model_to_json(model))
    logger.debug("Wrote schema to %s", target)
    return target


def read_schema(store: FileStore, path: Optional[str] = None,
                config: Optional[FlowSchemaConfig] = None) -> SchemaModel:
    config = config or FlowSchemaConfig()
    return model_from_json(store.read(path or config.schema_path))


def decompile_to_store(store: FileStore, model: SchemaModel, path: str,
                       config: Optional[FlowSchemaConfig] = None) -> str:
    """Render `model` and hand the source to the store. Returns the path."""
    store.write(path, generate_flow_source(model, config))
    logger.debug("Wrote flow source to %s", path)
    return path
