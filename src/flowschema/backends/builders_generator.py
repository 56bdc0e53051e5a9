"""
Builders Generator

Emits the declaration that exposes typed example constructors:

    const { Events, Commands, State } = createBuilders()
      .events<ItemCreated | ItemRemoved>()
      .commands<CreateItem>()
      .state<{ AvailableItems: AvailableItems['data'] }>();
"""

from typing import Iterable, List, Sequence


NEVER = "never"


def to_union_type(names: Iterable[str]) -> str:
    """
    Build a union type from names.

    Rules:
        0 names  -> "never"
        1 name   -> the bare name
        N names  -> "A | B | ...", input order, duplicates dropped
    """
    unique: List[str] = []
    for name in names:
        if name not in unique:
            unique.append(name)
    if not unique:
        return NEVER
    return " | ".join(unique)


def to_state_map_type(names: Iterable[str]) -> str:
    """`{ A: A['data']; B: B['data'] }`, or `{}` for no names."""
    unique: List[str] = []
    for name in names:
        if name not in unique:
            unique.append(name)
    if not unique:
        return "{}"
    return "{ " + "; ".join(f"{name}: {name}['data']" for name in unique) + " }"


def build_builders_declaration(
    events: Sequence[str],
    commands: Sequence[str],
    states: Sequence[str],
) -> List[str]:
    """
    Render the `createBuilders()` declaration as source lines.

    Callers emit it at most once per file, after every slice has been
    rendered, and only when at least one message is referenced.
    """
    return [
        "const { Events, Commands, State } = createBuilders()",
        f"  .events<{to_union_type(events)}>()",
        f"  .commands<{to_union_type(commands)}>()",
        f"  .state<{to_state_map_type(states)}>();",
    ]
