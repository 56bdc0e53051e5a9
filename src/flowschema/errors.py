"""
Error types for flow DSL extraction, code generation and configuration.
"""

from typing import Optional


class FlowSchemaError(Exception):
    """Base exception for all flowschema errors."""
    pass


class FlowParseError(FlowSchemaError):
    """
    Raised when flow-DSL source cannot be turned into a schema model.

    Examples:
        - Malformed Given-When-Then chain
        - Non-literal example data
        - Duplicate message declarations
        - Unterminated type declaration

    Properties:
        reason: What went wrong
        file_path: Source file (filled in by the extractor)
        slice_name: Slice being extracted when the error happened, if any
        line: 1-based source line, if known
    """

    def __init__(
        self,
        reason: str,
        file_path: Optional[str] = None,
        slice_name: Optional[str] = None,
        line: Optional[int] = None,
    ):
        self.reason = reason
        self.file_path = file_path
        self.slice_name = slice_name
        self.line = line
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        location = self.file_path or "<source>"
        if self.line is not None:
            location = f"{location}:{self.line}"
        if self.slice_name is not None:
            return f"{location} [slice '{self.slice_name}']: {self.reason}"
        return f"{location}: {self.reason}"

    def located(self, file_path: str) -> "FlowParseError":
        """Return a copy of this error attributed to ``file_path``."""
        return FlowParseError(self.reason, file_path=file_path, slice_name=self.slice_name, line=self.line)


class CodegenError(FlowSchemaError):
    """
    Raised when a schema model cannot be rendered as flow-DSL source.

    This always indicates a model-integrity defect (for example a `then`
    item referencing a message that is not declared). It is never recovered
    from inside the core.
    """
    pass


class ConfigError(FlowSchemaError):
    """Raised when a configuration file is invalid."""
    pass
