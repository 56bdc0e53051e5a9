"""
JSDoc-style doc comments.

Flow source carries descriptive metadata in `/** ... */` blocks:

    /**
     * Raised once an item is listed.
     * @version 2
     */
    type ItemCreated = Event<'ItemCreated', {
      /** Catalogue identifier
       * @default "item-0"
       */
      id: string;
    }>;

This module splits such a block into free text and `@tag value` pairs, and
renders them back. It is shared by the extractor and the code generator so
that both directions agree on the format.
"""

from typing import List, Optional, Sequence, Tuple


Tag = Tuple[str, str]


def _escape_text_line(line: str) -> str:
    line = line.replace("*/", "*\\/")
    if line.lstrip().startswith("@"):
        return line.replace("@", "\\@", 1)
    return line


def _unescape_text_line(line: str) -> str:
    if line.lstrip().startswith("\\@"):
        line = line.replace("\\@", "@", 1)
    return line.replace("*\\/", "*/")


def parse_doc_comment(raw: str) -> Tuple[Optional[str], List[Tag]]:
    """
    Split a raw `/** ... */` comment into description text and tags.

    Args:
        raw: Comment text including the `/**` and `*/` delimiters

    Returns:
        (text, tags) where text is None when the comment has no free text,
        and tags is a list of (name, value) pairs in source order.
    """
    body = raw.strip()
    if body.startswith("/**"):
        body = body[3:]
    if body.endswith("*/"):
        body = body[:-2]

    if "\n" in body:
        lines = []
        for line in body.split("\n"):
            line = line.strip()
            if line.startswith("*"):
                line = line[1:]
                if line.startswith(" "):
                    line = line[1:]
            lines.append(line.rstrip())
    else:
        lines = [body.strip()]

    text_lines: List[str] = []
    tags: List[Tag] = []
    for line in lines:
        if line.startswith("@"):
            name, _, value = line[1:].partition(" ")
            tags.append((name, value.strip()))
        elif tags:
            # continuation of the previous tag value
            if line:
                name, value = tags[-1]
                tags[-1] = (name, f"{value} {line.strip()}".strip())
        else:
            text_lines.append(_unescape_text_line(line))

    while text_lines and not text_lines[0]:
        text_lines.pop(0)
    while text_lines and not text_lines[-1]:
        text_lines.pop()

    text = "\n".join(text_lines) if text_lines else None
    return text, tags


def tag_value(tags: Sequence[Tag], name: str) -> Optional[str]:
    """Return the value of the first tag called `name`, or None."""
    for tag_name, value in tags:
        if tag_name == name:
            return value
    return None


def format_doc_comment(text: Optional[str], tags: Sequence[Tag] = (), indent: str = "") -> List[str]:
    """
    Render a doc comment as source lines.

    A single line of content renders as `/** content */`; anything longer
    uses the block form. Returns an empty list when there is nothing to say.
    """
    content: List[str] = []
    if text:
        content.extend(_escape_text_line(line) for line in text.split("\n"))
    for name, value in tags:
        content.append(f"@{name} {value}".rstrip())

    if not content:
        return []
    if len(content) == 1 and not (text and tags):
        return [f"{indent}/** {content[0]} */"]

    lines = [f"{indent}/**"]
    for line in content:
        lines.append(f"{indent} * {line}".rstrip())
    lines.append(f"{indent} */")
    return lines
