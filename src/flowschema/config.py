"""
Configuration for compiling and decompiling flow projects.

Settings can be given in code or loaded from a YAML file:

    flow_import: "@auto-engineer/flow"
    integration_import: "../server/src/integrations"
    flow_file_suffix: ".flow.ts"
    schema_path: ".context/schema.json"
    max_failures: 5
"""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional, Tuple, Union

import yaml

from flowschema.errors import ConfigError


DEFAULT_DSL_MODULES = (
    "@auto-engineer/flow",
    "@auto-engineer/flowlang",
    "@auto-engineer/narrative",
)


@dataclass(frozen=True)
class FlowSchemaConfig:
    """
    Import conventions and project layout.

    Properties:
        flow_import: Module generated code imports DSL functions and
            message-kind aliases from
        integration_import: Module generated code imports integration-only
            type names from
        dsl_modules: Modules whose imports are never integrations
        flow_file_suffix: Suffix identifying flow files in a project
        schema_path: Project-relative path the compiled schema is written to
        max_failures: Stop a project compile after this many failures
            (None means never stop early)
    """

    flow_import: str = "@auto-engineer/flow"
    integration_import: str = "../server/src/integrations"
    dsl_modules: Tuple[str, ...] = field(default=DEFAULT_DSL_MODULES)
    flow_file_suffix: str = ".flow.ts"
    schema_path: str = ".context/schema.json"
    max_failures: Optional[int] = None


def config_from_dict(data: dict) -> FlowSchemaConfig:
    """
    Build a config from a plain mapping.

    Raises:
        ConfigError: Unknown keys or values of the wrong type
    """
    if data is None:
        return FlowSchemaConfig()
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping")

    known = {f.name for f in fields(FlowSchemaConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")

    values = dict(data)
    for key in ("flow_import", "integration_import", "flow_file_suffix", "schema_path"):
        if key in values and not isinstance(values[key], str):
            raise ConfigError(f"'{key}' must be a string")

    if "dsl_modules" in values:
        modules = values["dsl_modules"]
        if not isinstance(modules, list) or not all(isinstance(m, str) for m in modules):
            raise ConfigError("'dsl_modules' must be a list of strings")
        values["dsl_modules"] = tuple(modules)

    max_failures = values.get("max_failures")
    if max_failures is not None and (
        isinstance(max_failures, bool) or not isinstance(max_failures, int) or max_failures < 1
    ):
        raise ConfigError("'max_failures' must be a positive integer")

    return FlowSchemaConfig(**values)


def load_config(path: Union[str, Path]) -> FlowSchemaConfig:
    """
    Load configuration from a YAML file.

    An empty file yields the defaults.

    Raises:
        FileNotFoundError: If the file does not exist
        ConfigError: If the YAML is malformed or contains invalid settings
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    return config_from_dict(data)
