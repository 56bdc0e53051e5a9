"""
Serialization helpers for schema model objects (SchemaModel, Flow, Message, etc.).

Provides lossless JSON/YAML round-trip via intermediate dict representation.
The dict layout is the schema JSON contract consumed by downstream
generators, so keys are camelCase and optional values are omitted when unset.
"""
from __future__ import annotations

import json
from typing import Any, Dict

import yaml

from flowschema.model import (
    GWT,
    ApiOrigin,
    Client,
    DatabaseDestination,
    DatabaseOrigin,
    DataSink,
    DataSource,
    ErrorSpec,
    ErrorType,
    Example,
    Field,
    Flow,
    Integration,
    IntegrationDestination,
    IntegrationMessage,
    IntegrationOrigin,
    Message,
    MessageKind,
    MessageMetadata,
    MessageTarget,
    PipelineEntry,
    ProjectionOrigin,
    ReadModelOrigin,
    SchemaModel,
    Server,
    Slice,
    SliceKind,
    StreamDestination,
    TopicDestination,
)


TARGET_TYPES = {
    MessageKind.EVENT: "Event",
    MessageKind.COMMAND: "Command",
    MessageKind.STATE: "State",
}
_TARGET_KINDS = {value: key for key, value in TARGET_TYPES.items()}


def _put(d: Dict[str, Any], key: str, value: Any) -> None:
    if value is not None:
        d[key] = value


# =============================================================================
# MESSAGES AND INTEGRATIONS
# =============================================================================


def field_to_dict(f: Field) -> Dict[str, Any]:
    d = {"name": f.name, "type": f.type, "required": f.required}
    _put(d, "description", f.description)
    _put(d, "defaultValue", f.default_value)
    return d


def field_from_dict(d: Dict[str, Any]) -> Field:
    return Field(
        name=d["name"],
        type=d["type"],
        required=d.get("required", True),
        description=d.get("description"),
        default_value=d.get("defaultValue"),
    )


def message_to_dict(m: Message) -> Dict[str, Any]:
    d = {
        "name": m.name,
        "type": m.kind.value,
        "fields": [field_to_dict(f) for f in m.fields],
        "metadata": {"version": m.metadata.version},
    }
    _put(d, "description", m.description)
    return d


def message_from_dict(d: Dict[str, Any]) -> Message:
    metadata = d.get("metadata") or {}
    return Message(
        name=d["name"],
        kind=MessageKind(d["type"]),
        fields=tuple(field_from_dict(f) for f in d.get("fields", [])),
        description=d.get("description"),
        metadata=MessageMetadata(version=metadata.get("version", 1)),
    )


def integration_to_dict(i: Integration) -> Dict[str, Any]:
    d = {"name": i.name, "source": i.source}
    _put(d, "description", i.description)
    return d


def integration_from_dict(d: Dict[str, Any]) -> Integration:
    return Integration(name=d["name"], source=d["source"], description=d.get("description"))


# =============================================================================
# EXAMPLES AND GWT
# =============================================================================


def example_to_dict(e: Example) -> Dict[str, Any]:
    return {"ref": e.ref, "exampleData": e.example_data}


def example_from_dict(d: Dict[str, Any]) -> Example:
    return Example(ref=d["ref"], example_data=d.get("exampleData", {}))


def then_item_to_dict(item: Example | ErrorSpec) -> Dict[str, Any]:
    if isinstance(item, ErrorSpec):
        d = {"errorType": item.error_type.value}
        _put(d, "message", item.message)
        return d
    if isinstance(item, Example):
        return example_to_dict(item)
    raise TypeError(f"Unsupported then item: {type(item)}")


def then_item_from_dict(d: Dict[str, Any]) -> Example | ErrorSpec:
    if "errorType" in d:
        return ErrorSpec(error_type=ErrorType(d["errorType"]), message=d.get("message"))
    return example_from_dict(d)


def gwt_to_dict(g: GWT) -> Dict[str, Any]:
    d: Dict[str, Any] = {}
    if g.given:
        d["given"] = [example_to_dict(e) for e in g.given]
    if isinstance(g.when, Example):
        d["when"] = example_to_dict(g.when)
    elif g.when is not None:
        d["when"] = [example_to_dict(e) for e in g.when]
    d["then"] = [then_item_to_dict(t) for t in g.then]
    return d


def gwt_from_dict(d: Dict[str, Any]) -> GWT:
    when = d.get("when")
    if isinstance(when, list):
        when = tuple(example_from_dict(e) for e in when)
    elif when is not None:
        when = example_from_dict(when)
    return GWT(
        then=tuple(then_item_from_dict(t) for t in d.get("then", [])),
        given=tuple(example_from_dict(e) for e in d.get("given", [])),
        when=when,
    )


# =============================================================================
# DATA PIPELINE
# =============================================================================


def target_to_dict(t: MessageTarget) -> Dict[str, Any]:
    return {"type": TARGET_TYPES[t.kind], "name": t.name}


def target_from_dict(d: Dict[str, Any]) -> MessageTarget:
    return MessageTarget(kind=_TARGET_KINDS[d["type"]], name=d["name"])


def destination_to_dict(dest: Any) -> Dict[str, Any]:
    if isinstance(dest, StreamDestination):
        return {"type": "stream", "pattern": dest.pattern}
    if isinstance(dest, IntegrationDestination):
        d: Dict[str, Any] = {"type": "integration", "systems": list(dest.systems)}
        if dest.message is not None:
            d["message"] = {"name": dest.message.name, "type": dest.message.type}
        return d
    if isinstance(dest, DatabaseDestination):
        return {"type": "database", "collection": dest.collection}
    if isinstance(dest, TopicDestination):
        return {"type": "topic", "name": dest.name}
    raise TypeError(f"Unsupported destination type: {type(dest)}")


def destination_from_dict(d: Dict[str, Any]) -> Any:
    t = d.get("type")
    if t == "stream":
        return StreamDestination(d["pattern"])
    if t == "integration":
        message = d.get("message")
        if message is not None:
            message = IntegrationMessage(name=message["name"], type=message["type"])
        return IntegrationDestination(systems=tuple(d["systems"]), message=message)
    if t == "database":
        return DatabaseDestination(d["collection"])
    if t == "topic":
        return TopicDestination(d["name"])
    raise TypeError(f"Unsupported destination dict type: {t}")


def origin_to_dict(o: Any) -> Dict[str, Any]:
    if isinstance(o, ProjectionOrigin):
        return {"type": "projection", "name": o.name, "idField": o.id_field}
    if isinstance(o, ReadModelOrigin):
        return {"type": "readModel", "name": o.name}
    if isinstance(o, DatabaseOrigin):
        d = {"type": "database", "collection": o.collection}
        _put(d, "query", o.query)
        return d
    if isinstance(o, ApiOrigin):
        d = {"type": "api", "endpoint": o.endpoint}
        _put(d, "method", o.method)
        return d
    if isinstance(o, IntegrationOrigin):
        return {"type": "integration", "systems": list(o.systems)}
    raise TypeError(f"Unsupported origin type: {type(o)}")


def origin_from_dict(d: Dict[str, Any]) -> Any:
    t = d.get("type")
    if t == "projection":
        return ProjectionOrigin(name=d["name"], id_field=d["idField"])
    if t == "readModel":
        return ReadModelOrigin(d["name"])
    if t == "database":
        return DatabaseOrigin(collection=d["collection"], query=d.get("query"))
    if t == "api":
        return ApiOrigin(endpoint=d["endpoint"], method=d.get("method"))
    if t == "integration":
        return IntegrationOrigin(systems=tuple(d["systems"]))
    raise TypeError(f"Unsupported origin dict type: {t}")


def pipeline_entry_to_dict(entry: PipelineEntry) -> Dict[str, Any]:
    if isinstance(entry, DataSink):
        d = {"target": target_to_dict(entry.target), "destination": destination_to_dict(entry.destination)}
        if entry.with_state is not None:
            d["_withState"] = pipeline_entry_to_dict(entry.with_state)
    elif isinstance(entry, DataSource):
        d = {"target": target_to_dict(entry.target), "origin": origin_to_dict(entry.origin)}
    else:
        raise TypeError(f"Unsupported pipeline entry: {type(entry)}")
    _put(d, "_additionalInstructions", entry.additional_instructions)
    return d


def pipeline_entry_from_dict(d: Dict[str, Any]) -> PipelineEntry:
    instructions = d.get("_additionalInstructions")
    if "destination" in d:
        with_state = d.get("_withState")
        return DataSink(
            target=target_from_dict(d["target"]),
            destination=destination_from_dict(d["destination"]),
            with_state=pipeline_entry_from_dict(with_state) if with_state is not None else None,
            additional_instructions=instructions,
        )
    if "origin" in d:
        return DataSource(
            target=target_from_dict(d["target"]),
            origin=origin_from_dict(d["origin"]),
            additional_instructions=instructions,
        )
    raise TypeError("Pipeline entry needs a destination or an origin")


# =============================================================================
# SLICES, FLOWS, MODEL
# =============================================================================


def slice_to_dict(s: Slice) -> Dict[str, Any]:
    server: Dict[str, Any] = {
        "description": s.server.description,
        "gwt": [gwt_to_dict(g) for g in s.server.gwt],
    }
    if s.server.data:
        server["data"] = [pipeline_entry_to_dict(e) for e in s.server.data]

    d: Dict[str, Any] = {"type": s.kind.value, "name": s.name}
    _put(d, "id", s.id)
    _put(d, "stream", s.stream)
    if s.client is not None:
        d["client"] = {"description": s.client.description, "specs": list(s.client.specs)}
    _put(d, "request", s.request)
    d["server"] = server
    return d


def slice_from_dict(d: Dict[str, Any]) -> Slice:
    server = d.get("server") or {}
    client = d.get("client")
    if client is not None:
        client = Client(description=client.get("description", ""), specs=tuple(client.get("specs", [])))
    return Slice(
        kind=SliceKind(d["type"]),
        name=d["name"],
        server=Server(
            description=server.get("description", ""),
            gwt=tuple(gwt_from_dict(g) for g in server.get("gwt", [])),
            data=tuple(pipeline_entry_from_dict(e) for e in server.get("data", [])),
        ),
        id=d.get("id"),
        stream=d.get("stream"),
        client=client,
        request=d.get("request"),
    )


def flow_to_dict(f: Flow) -> Dict[str, Any]:
    d: Dict[str, Any] = {"name": f.name}
    _put(d, "id", f.id)
    _put(d, "description", f.description)
    d["slices"] = [slice_to_dict(s) for s in f.slices]
    return d


def flow_from_dict(d: Dict[str, Any]) -> Flow:
    return Flow(
        name=d["name"],
        slices=tuple(slice_from_dict(s) for s in d.get("slices", [])),
        id=d.get("id"),
        description=d.get("description"),
    )


def model_to_dict(m: SchemaModel) -> Dict[str, Any]:
    return {
        "flows": [flow_to_dict(f) for f in m.flows],
        "messages": [message_to_dict(msg) for msg in m.messages],
        "integrations": [integration_to_dict(i) for i in m.integrations],
    }


def model_from_dict(d: Dict[str, Any]) -> SchemaModel:
    return SchemaModel(
        flows=tuple(flow_from_dict(f) for f in d.get("flows", [])),
        messages=tuple(message_from_dict(m) for m in d.get("messages", [])),
        integrations=tuple(integration_from_dict(i) for i in d.get("integrations") or []),
    )


def model_to_json(m: SchemaModel) -> str:
    return json.dumps(model_to_dict(m), sort_keys=True)


def model_from_json(s: str) -> SchemaModel:
    d = json.loads(s)
    return model_from_dict(d)


def model_to_yaml(m: SchemaModel) -> str:
    return yaml.safe_dump(model_to_dict(m))


def model_from_yaml(s: str) -> SchemaModel:
    d = yaml.safe_load(s)
    return model_from_dict(d)
