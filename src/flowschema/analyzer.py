"""
Model Analyzer: early diagnostics and inventory of schema models.

This module provides lightweight analysis of SchemaModel objects:
    - Message usage inventory
    - Referential integrity (undefined references, duplicates)
    - Shape checks (GWT blocks that do not fit their slice kind)
    - Coverage (slices without specs)
    - Warning flags for code generation risk

IMPORTANT: This is the analysis layer. It does NOT modify the model.
It only produces read-only reports.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Set

from flowschema.model import (
    GWT,
    DataSink,
    DataSource,
    Example,
    IntegrationDestination,
    IntegrationOrigin,
    MessageKind,
    SchemaModel,
    SliceKind,
    iter_gwt_examples,
)


@dataclass
class ModelReport:
    """Analysis report for a schema model."""

    total_flows: int = 0
    total_slices: int = 0
    total_messages: int = 0
    total_integrations: int = 0
    total_gwt_blocks: int = 0
    slices_by_kind: Dict[str, int] = field(default_factory=dict)

    # Message usage
    message_usage: Dict[str, int] = field(default_factory=dict)
    undefined_references: Set[str] = field(default_factory=set)
    unused_messages: Set[str] = field(default_factory=set)
    duplicate_messages: Set[str] = field(default_factory=set)
    duplicate_flows: Set[str] = field(default_factory=set)

    # Integrations
    unused_integrations: Set[str] = field(default_factory=set)
    undefined_integrations: Set[str] = field(default_factory=set)

    # Shape and coverage
    shape_mismatches: List[str] = field(default_factory=list)
    slices_without_specs: List[str] = field(default_factory=list)

    warnings: List[str] = field(default_factory=list)

    def add_warning(self, msg: str) -> None:
        """Add a warning to the report."""
        if msg not in self.warnings:
            self.warnings.append(msg)


def _shape_problem(gwt: GWT, kind: SliceKind, model: SchemaModel) -> str | None:
    """Describe why a GWT block does not fit its slice kind, or None."""
    if kind == SliceKind.COMMAND:
        if not isinstance(gwt.when, Example):
            return "command slice without a single 'when' command"
        message = model.get_message(gwt.when.ref)
        if message is not None and message.kind != MessageKind.COMMAND:
            return f"'when' references {message.kind.value} '{message.name}'"
    elif kind == SliceKind.REACT:
        if not isinstance(gwt.when, tuple):
            return "react slice without a list of 'when' events"
        for example in gwt.when:
            message = model.get_message(example.ref)
            if message is not None and message.kind != MessageKind.EVENT:
                return f"'when' references {message.kind.value} '{message.name}'"
    elif gwt.when is not None:
        return "query slice with a 'when'"
    return None


def _pipeline_systems(entry) -> List[str]:
    systems: List[str] = []
    if isinstance(entry, DataSink):
        if isinstance(entry.destination, IntegrationDestination):
            systems.extend(entry.destination.systems)
        if entry.with_state is not None:
            systems.extend(_pipeline_systems(entry.with_state))
    elif isinstance(entry, DataSource) and isinstance(entry.origin, IntegrationOrigin):
        systems.extend(entry.origin.systems)
    return systems


def analyze_model(model: SchemaModel) -> ModelReport:
    """
    Perform analysis of a SchemaModel.

    Checks for:
    - Message definitions and usage
    - Duplicate message and flow names
    - GWT shapes against slice kinds
    - Integration usage

    Returns a ModelReport with metrics and warnings.
    """
    report = ModelReport()

    # Basic counts
    report.total_flows = len(model.flows)
    report.total_messages = len(model.messages)
    report.total_integrations = len(model.integrations)

    slice_kinds: Counter = Counter()
    for flow in model.flows:
        for slice_ in flow.slices:
            slice_kinds[slice_.kind.value] += 1
            report.total_gwt_blocks += len(slice_.server.gwt)
    report.total_slices = sum(slice_kinds.values())
    report.slices_by_kind = dict(sorted(slice_kinds.items()))

    # =========================================================================
    # 1. DUPLICATES
    # =========================================================================

    message_counts = Counter(m.name for m in model.messages)
    report.duplicate_messages = {name for name, count in message_counts.items() if count > 1}
    flow_counts = Counter(f.name for f in model.flows)
    report.duplicate_flows = {name for name, count in flow_counts.items() if count > 1}

    # =========================================================================
    # 2. MESSAGE USAGE
    # =========================================================================

    declared: Set[str] = set(message_counts)
    usage: Dict[str, int] = defaultdict(int)
    for flow in model.flows:
        for slice_ in flow.slices:
            for gwt in slice_.server.gwt:
                for example in iter_gwt_examples(gwt):
                    usage[example.ref] += 1

    report.message_usage = dict(sorted(usage.items()))
    report.undefined_references = set(usage) - declared
    report.unused_messages = declared - set(usage)

    # =========================================================================
    # 3. SHAPES AND COVERAGE
    # =========================================================================

    for flow in model.flows:
        for slice_ in flow.slices:
            location = f"{flow.name} / {slice_.name}"
            if not slice_.server.gwt:
                report.slices_without_specs.append(location)
            for gwt in slice_.server.gwt:
                problem = _shape_problem(gwt, slice_.kind, model)
                if problem:
                    report.shape_mismatches.append(f"{location}: {problem}")

    # =========================================================================
    # 4. INTEGRATIONS
    # =========================================================================

    used_systems: Set[str] = set()
    for flow in model.flows:
        for slice_ in flow.slices:
            for entry in slice_.server.data:
                used_systems.update(_pipeline_systems(entry))

    integration_names = {i.name for i in model.integrations}
    report.unused_integrations = integration_names - used_systems
    report.undefined_integrations = used_systems - integration_names

    # =========================================================================
    # 5. WARNING FLAGS
    # =========================================================================

    if report.duplicate_messages:
        report.add_warning(
            f"Duplicate message names: {', '.join(sorted(report.duplicate_messages))}"
        )

    if report.duplicate_flows:
        report.add_warning(
            f"Duplicate flow names: {', '.join(sorted(report.duplicate_flows))}"
        )

    if report.undefined_references:
        report.add_warning(
            f"Undefined message references: {', '.join(sorted(report.undefined_references))}"
        )

    if report.unused_messages:
        report.add_warning(
            f"Unused messages: {', '.join(sorted(report.unused_messages))}"
        )

    if report.undefined_integrations:
        report.add_warning(
            f"Undefined integrations: {', '.join(sorted(report.undefined_integrations))}"
        )

    if report.unused_integrations:
        report.add_warning(
            f"Unused integrations: {', '.join(sorted(report.unused_integrations))}"
        )

    for mismatch in report.shape_mismatches:
        report.add_warning(f"Shape mismatch in {mismatch}")

    if report.slices_without_specs:
        report.add_warning(
            f"Slices without specs: {len(report.slices_without_specs)} of {report.total_slices}"
        )

    return report
