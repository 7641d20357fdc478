"""
Error handling for the Enigma Programming Language
Includes diagnostics, error codes, and the host-level exception hierarchy
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import List, Optional

from source_map import Span


class Severity(Enum):
    """Error severity levels"""
    ERROR = "error"
    WARNING = "warning"
    NOTE = "note"
    HELP = "help"


@dataclass
class LabeledSpan:
    """A span with an optional label"""
    span: Span
    label: Optional[str] = None
    is_primary: bool = False


class ErrorCode:
    """Error code constants"""
    # Lexical errors (ENG1xxx)
    UNTERMINATED_STRING = "ENG1001"
    UNTERMINATED_FSTRING = "ENG1002"
    UNMATCHED_FSTRING_BRACE = "ENG1003"
    UNCLOSED_FSTRING_EXPRESSION = "ENG1004"

    # Parser errors (ENG2xxx)
    UNEXPECTED_TOKEN = "ENG2001"
    EXPECTED_TOKEN = "ENG2002"
    NO_PREFIX_PARSER = "ENG2003"
    INVALID_ASSIGNMENT_TARGET = "ENG2004"
    OUTSIDE_LOOP = "ENG2005"
    INVALID_HASH_KEY = "ENG2006"
    INVALID_FSTRING = "ENG2007"
    DUPLICATE_CONSTRUCTOR = "ENG2008"
    INTEGER_OUT_OF_RANGE = "ENG2009"

    # Type errors (ENG3xxx)
    TYPE_MISMATCH = "ENG3001"
    UNKNOWN_OPERATOR = "ENG3002"
    NOT_A_FUNCTION = "ENG3003"
    WRONG_ARITY = "ENG3004"
    NO_PROPERTY = "ENG3005"
    NOT_INDEXABLE = "ENG3006"
    INDEX_OUT_OF_BOUNDS = "ENG3007"
    DIVISION_BY_ZERO = "ENG3008"
    INTEGER_OVERFLOW = "ENG3009"

    # Runtime errors (ENG4xxx)
    UNDEFINED_VARIABLE = "ENG4001"
    REDECLARATION = "ENG4002"
    ASSIGN_TO_CONSTANT = "ENG4003"
    CONSTRUCTOR_MISMATCH = "ENG4004"
    CIRCULAR_INHERITANCE = "ENG4005"
    INVALID_CLASS = "ENG4006"
    MISSING_CONTEXT = "ENG4007"
    LOOP_LIMIT = "ENG4008"
    STACK_OVERFLOW = "ENG4009"
    BUILTIN_FAILURE = "ENG4010"
    USER_ERROR = "ENG4011"
    RUNTIME_ERROR = "ENG4000"

    # Internal errors (ENG9xxx)
    INTERNAL_ERROR = "ENG9001"


@dataclass
class Diagnostic:
    """Diagnostic information for one reported problem"""
    code: str
    severity: Severity
    message: str
    labels: List[LabeledSpan] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)
    help: Optional[str] = None

    def __post_init__(self):
        # Ensure exactly one primary label
        primary = [label for label in self.labels if label.is_primary]
        if not primary and self.labels:
            self.labels[0].is_primary = True
        for label in primary[1:]:
            label.is_primary = False

    def primary_span(self) -> Optional[Span]:
        """Get the primary span for this diagnostic"""
        for label in self.labels:
            if label.is_primary:
                return label.span
        return None

    def to_json(self):
        """Convert diagnostic to JSON-serializable format"""
        def position(pos):
            return {'line': pos.line, 'column': pos.column}

        return {
            'code': self.code,
            'severity': self.severity.value,
            'message': self.message,
            'labels': [{
                'start': position(label.span.start),
                'end': position(label.span.end),
                'label': label.label,
                'is_primary': label.is_primary,
            } for label in self.labels],
            'notes': list(self.notes),
            'help': self.help,
        }


class EnigmaError(Exception):
    """Base exception class for all Enigma host-level errors"""

    def __init__(self, diagnostic: Diagnostic):
        self.diagnostic = diagnostic
        super().__init__(self._format_simple_message())

    def _format_simple_message(self) -> str:
        """Format a simple message for the exception"""
        header = f"{self.diagnostic.severity.value.title()} [{self.diagnostic.code}]: {self.diagnostic.message}"
        primary_span = self.diagnostic.primary_span()
        if primary_span:
            return f"{header} at {primary_span.start}"
        return header

    @property
    def message(self) -> str:
        return self.diagnostic.message

    @property
    def line(self) -> int:
        span = self.diagnostic.primary_span()
        return span.start.line if span else 0

    @property
    def column(self) -> int:
        span = self.diagnostic.primary_span()
        return span.start.column if span else 0

    @classmethod
    def from_simple(cls, code: str, message: str, span: Optional[Span] = None,
                    severity: Severity = Severity.ERROR, help_text: Optional[str] = None):
        """Create error from simple parameters"""
        labels = []
        if span:
            labels.append(LabeledSpan(span, message, is_primary=True))

        diagnostic = Diagnostic(
            code=code,
            severity=severity,
            message=message,
            labels=labels,
            help=help_text
        )
        return cls(diagnostic)


class LexError(EnigmaError):
    """Lexical errors: the source cannot be tokenized at all"""

    @classmethod
    def unterminated_string(cls, span: Span):
        return cls.from_simple(
            ErrorCode.UNTERMINATED_STRING, "unterminated string literal", span,
            help_text="add a closing '\"' to terminate the string"
        )

    @classmethod
    def unterminated_fstring(cls, span: Span):
        return cls.from_simple(
            ErrorCode.UNTERMINATED_FSTRING, "unterminated f-string literal", span,
            help_text="add a closing '\"' to terminate the f-string"
        )

    @classmethod
    def unmatched_brace(cls, span: Span):
        return cls.from_simple(
            ErrorCode.UNMATCHED_FSTRING_BRACE, "unmatched '}' in f-string", span,
            help_text="every '}' in an f-string must close an opening '{'"
        )

    @classmethod
    def unclosed_expression(cls, span: Span):
        return cls.from_simple(
            ErrorCode.UNCLOSED_FSTRING_EXPRESSION, "unclosed '{' in f-string", span,
            help_text="close the embedded expression with '}'"
        )


class ParseError(EnigmaError):
    """Parser errors, collected by the parser instead of propagating"""

    def __init__(self, diagnostic: Diagnostic, token=None):
        super().__init__(diagnostic)
        self.token = token

    @classmethod
    def at_token(cls, code: str, message: str, token, help_text: Optional[str] = None):
        """Create a parse error pointing at the offending token"""
        span = Span.at(token.position, len(token.literal))
        error = cls.from_simple(code, message, span, help_text=help_text)
        error.token = token
        return error

    @classmethod
    def expected_token(cls, token, expected: str):
        found = token.literal if token.literal else token.type.name
        return cls.at_token(
            ErrorCode.EXPECTED_TOKEN,
            f"expected next token to be {expected}, got {token.type.name} ('{found}') instead",
            token
        )

    @classmethod
    def no_prefix_parser(cls, token):
        return cls.at_token(
            ErrorCode.NO_PREFIX_PARSER,
            f"no prefix parse function for {token.type.name} found",
            token,
            help_text="expected an expression here"
        )

    @classmethod
    def invalid_assignment_target(cls, token):
        return cls.at_token(
            ErrorCode.INVALID_ASSIGNMENT_TARGET,
            "invalid assignment target",
            token,
            help_text="only variables, properties, and array elements can be assigned to"
        )

    @classmethod
    def outside_loop(cls, token):
        keyword = token.literal
        return cls.at_token(
            ErrorCode.OUTSIDE_LOOP,
            f"'{keyword}' outside of a loop",
            token,
            help_text=f"'{keyword}' may only appear inside 'while' or 'for' bodies"
        )

    @classmethod
    def invalid_hash_key(cls, token):
        return cls.at_token(
            ErrorCode.INVALID_HASH_KEY,
            f"hash keys must be string or integer literals, got {token.type.name}",
            token
        )


class InternalError(EnigmaError):
    """Raised when the evaluator meets a node it has no rule for"""

    @classmethod
    def unknown_node(cls, node):
        return cls.from_simple(
            ErrorCode.INTERNAL_ERROR,
            f"no evaluation rule for node {type(node).__name__}"
        )
