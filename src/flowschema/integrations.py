"""
Integration Extractor

Finds the message names a slice's data pipeline exchanges with external
integrations. Generated flow files import these names as types.
"""

from typing import Iterable, List

from flowschema.model import DataSink, Flow, IntegrationDestination, IntegrationOrigin, PipelineEntry


def extract_integration_type_names(entries: Iterable[PipelineEntry]) -> List[str]:
    """
    Collect integration-referenced message names from pipeline entries.

    Two independent checks per entry:
        - destination is an integration with a message -> the message name
        - withState origin is an integration -> the withState target name

    Returns:
        Sorted list without duplicates
    """
    names = set()
    for entry in entries:
        if not isinstance(entry, DataSink):
            continue
        destination = entry.destination
        if isinstance(destination, IntegrationDestination) and destination.message is not None:
            names.add(destination.message.name)
        if entry.with_state is not None and isinstance(entry.with_state.origin, IntegrationOrigin):
            names.add(entry.with_state.target.name)
    return sorted(names)


def collect_integration_type_names(flows: Iterable[Flow]) -> List[str]:
    """Apply extract_integration_type_names across every slice of every flow."""
    names = set()
    for flow in flows:
        for slice_ in flow.slices:
            names.update(extract_integration_type_names(slice_.server.data))
    return sorted(names)
