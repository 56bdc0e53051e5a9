"""
Type Declaration Scanner

Locates the textual span of every top-level `type Name = ...;` declaration
in a flow source file, line by line.

The scanner is bracket- and string-aware:
    - `{` `}` and `<` `>` are counted only outside string literals
    - a string opens and closes only on an unescaped matching quote
      (`"`, `'` or backtick)
    - `//` line comments and `/* */` block comments are skipped

A declaration ends on the first line (the start line included) where both
depths are back to zero and the trimmed line, minus any trailing `//`
comment, ends with `;`. Extra closing brackets (`}>>;`) drive a depth
below zero; that still counts as closed.

If another `type` line shows up before that happens, the open declaration
is force-terminated on the previous line and a warning is logged. This is a
heuristic guard against unbalanced input, not a proof of correctness.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

logger = logging.getLogger(__name__)

TYPE_DECLARATION_RE = re.compile(r"^(?:export\s+)?type\s+([A-Za-z_$][\w$]*)")


@dataclass(frozen=True)
class TypeDeclaration:
    """
    Span of one type declaration.

    Properties:
        name: Declared type name
        start_line_idx: 0-based index of the `type` line
        end_line_idx: 0-based index of the closing line (inclusive)
        terminated: False when end of file was reached before closure
    """

    name: str
    start_line_idx: int
    end_line_idx: int
    terminated: bool = True


@dataclass
class _ScanState:
    """Character-level state carried from one line to the next."""

    brace_depth: int = 0
    angle_depth: int = 0
    quote: Optional[str] = None
    in_block_comment: bool = False
    # column of the `//` comment on the last consumed line
    comment_start: Optional[int] = None

    def consume(self, line: str) -> None:
        self.comment_start = None
        index = 0
        length = len(line)
        while index < length:
            char = line[index]

            if self.in_block_comment:
                if line.startswith("*/", index):
                    self.in_block_comment = False
                    index += 2
                    continue
                index += 1
                continue

            if self.quote is not None:
                if char == "\\":
                    index += 2
                    continue
                if char == self.quote:
                    self.quote = None
                index += 1
                continue

            if line.startswith("//", index):
                self.comment_start = index
                return
            if line.startswith("/*", index):
                self.in_block_comment = True
                index += 2
                continue

            if char in "\"'`":
                self.quote = char
            elif char == "{":
                self.brace_depth += 1
            elif char == "}":
                self.brace_depth -= 1
            elif char == "<":
                self.angle_depth += 1
            elif char == ">" and not (index > 0 and line[index - 1] == "="):
                self.angle_depth -= 1
            index += 1

        # single and double quoted strings cannot span lines
        if self.quote in ("'", '"'):
            self.quote = None

    @property
    def balanced(self) -> bool:
        """Depths at or below zero count as closed; stray closing brackets are tolerated."""
        return self.brace_depth <= 0 and self.angle_depth <= 0 and self.quote is None

    def code_part(self, line: str) -> str:
        """The last consumed line without its trailing `//` comment, trimmed."""
        if self.comment_start is None:
            return line.strip()
        return line[:self.comment_start].strip()


def collect_type_declarations(lines: Sequence[str]) -> List[TypeDeclaration]:
    """
    Find all top-level type declarations.

    Args:
        lines: Source text split into lines

    Returns:
        Declarations in source order

    Example:
        >>> collect_type_declarations(['type X = { label: "}" };'])
        [TypeDeclaration(name='X', start_line_idx=0, end_line_idx=0, terminated=True)]
    """
    declarations: List[TypeDeclaration] = []
    current_name: Optional[str] = None
    start_idx = 0
    state = _ScanState()
    # comment and template state of the code between declarations
    outer = _ScanState()

    for idx, line in enumerate(lines):
        if current_name is None:
            inside_text = outer.in_block_comment or outer.quote is not None
        else:
            inside_text = state.in_block_comment or state.quote is not None
        match = None if inside_text else TYPE_DECLARATION_RE.match(line)

        if match and current_name is not None:
            logger.warning(
                "Type declaration '%s' (line %d) not closed before '%s' (line %d); "
                "terminating it at line %d",
                current_name, start_idx + 1, match.group(1), idx + 1, idx,
            )
            declarations.append(TypeDeclaration(current_name, start_idx, idx - 1))
            current_name = None

        if current_name is None:
            if match is None:
                outer.consume(line)
                continue
            current_name = match.group(1)
            start_idx = idx
            state = _ScanState()

        state.consume(line)
        if state.balanced and not state.in_block_comment and state.code_part(line).endswith(";"):
            declarations.append(TypeDeclaration(current_name, start_idx, idx))
            current_name = None

    if current_name is not None:
        declarations.append(TypeDeclaration(current_name, start_idx, len(lines) - 1, terminated=False))

    return declarations


def leading_doc_comment(lines: Sequence[str], idx: int) -> Optional[tuple]:
    """
    Find the `/** ... */` block directly above line `idx`.

    Returns:
        (start_idx, end_idx, raw_text) or None when the previous line does
        not close a doc comment.
    """
    end = idx - 1
    if end < 0 or not lines[end].rstrip().endswith("*/"):
        return None

    start = end
    while start >= 0:
        stripped = lines[start].lstrip()
        if stripped.startswith("/**"):
            raw = "\n".join(lines[start:end + 1]).strip()
            return start, end, raw
        if start != end and "*/" in lines[start]:
            return None
        if stripped.startswith("/*"):
            return None
        start -= 1
    return None
