"""
blockgraph Custom Exceptions

All module-specific exceptions inherit from BlockGraphError.

Fatal errors (ParseError, RegistrationError) always propagate. Soft
problems found while parsing are collected as ParseIssue records on the
ParseResult instead of being raised.
"""


class BlockGraphError(Exception):
    """Base exception for all blockgraph errors."""

    pass


# Parse Exceptions
class ParseError(BlockGraphError):
    """Base exception for fatal, per-document parse errors."""

    pass


class MarkupSyntaxError(ParseError):
    """Raised when the markup is not well-formed."""

    def __init__(self, message: str, line: int | None = None, column: int | None = None):
        super().__init__(message)
        self.line = line
        self.column = column


class ReferenceNodeError(ParseError):
    """Raised when a <Use ref="..."> node is malformed."""

    pass


class ContentError(BlockGraphError):
    """
    Raised by a parser plugin when a node's content is not what it accepts.

    Not fatal: the document parser stores an ErrorNode entry in place of
    the node and records a content_error issue.
    """

    pass


class DuplicateIdError(ParseError):
    """Raised when two nodes claim the same id."""

    def __init__(self, message: str, node_id: str, existing_tag: str, duplicate_tag: str):
        super().__init__(message)
        self.node_id = node_id
        self.existing_tag = existing_tag
        self.duplicate_tag = duplicate_tag


# Registration Exceptions
class RegistrationError(BlockGraphError):
    """Base exception for registration defects (always fatal)."""

    pass


class UnregisteredFieldError(RegistrationError):
    """Raised when state is accessed through a field nobody registered."""

    pass


class FieldConflictError(RegistrationError):
    """Raised when a field name or mutation event is registered twice."""

    pass


class BlockRegistrationError(RegistrationError):
    """Raised for invalid blueprints, duplicate tags or hard lookup failures."""

    pass


# Resolution Exceptions
class ResolutionError(BlockGraphError):
    """
    Base exception for failed relationship lookups.

    The inference engine itself returns an empty list when nothing
    matches. Callers that treat absence as an error raise these.
    """

    pass


class GraderNotFoundError(ResolutionError):
    """Raised when no grader governs a block."""

    pass


class AmbiguousGraderError(ResolutionError):
    """Raised when more than one grader governs a block."""

    pass


# Argument Exceptions
class InvalidReferenceError(BlockGraphError, ValueError):
    """Raised when a user-authored id reference is malformed."""

    pass


class InvalidInferError(BlockGraphError, ValueError):
    """Raised when an infer= value names an unknown direction."""

    pass
