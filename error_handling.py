"""
Error types and diagnostics for the Tiny Language parser and interpreter
Parse errors and evaluation errors are disjoint; both are terminal
"""

import re
from typing import TYPE_CHECKING, List, Optional

from pyparsing import ParseBaseException, ParseFatalException

from utilities import line_and_column

if TYPE_CHECKING:
    from parsing import SourceSpan


END_OF_INPUT = "end of input"

# One lexeme of the language, or any other single non-space character
_LEXEME_PATTERN = re.compile(r'[0-9]+|[a-z_]+|\S')


# ============================================================================
# ERROR TYPES
# ============================================================================

def _rebuild_error(cls, args, state):
    error = cls.__new__(cls)
    error.args = args
    error.__dict__.update(state)
    return error


class TinyLangError(Exception):
    """Base class for every error raised or returned by the core"""

    def __reduce__(self):
        # Subclass constructors take structured fields, not the message,
        # so errors crossing a process boundary are rebuilt from their state
        return _rebuild_error, (self.__class__, self.args, self.__dict__)


class ParseError(TinyLangError):
    """Source text does not conform to the grammar"""

    def __init__(self, message: str, position: int = 0, line: int = 0, column: int = 0,
                 filename: str = "<input>", suggestions: Optional[List[str]] = None):
        self.message = message
        self.position = position
        self.line = line
        self.column = column
        self.filename = filename
        self.suggestions = suggestions or []
        super().__init__(message)

    def __str__(self) -> str:
        if self.line:
            return f"Parse error at {self.filename}:{self.line}:{self.column}: {self.message}"
        return f"Parse error: {self.message}"


class UnexpectedToken(ParseError):
    """No grammar alternative matches at position"""

    def __init__(self, expected: str, found: str, position: int, line: int = 0, column: int = 0,
                 filename: str = "<input>", suggestions: Optional[List[str]] = None):
        self.expected = expected
        self.found = found
        super().__init__(f"Expected {expected}, found {describe_found(found)}",
                         position, line, column, filename, suggestions)


class TrailingInput(ParseError):
    """Input remains after the last complete statement"""

    def __init__(self, found: str, position: int, line: int = 0, column: int = 0,
                 filename: str = "<input>", suggestions: Optional[List[str]] = None):
        self.found = found
        super().__init__(f"Unexpected {describe_found(found)} after the last complete statement",
                         position, line, column, filename, suggestions)


class LiteralOverflow(ParseError):
    """Integer literal does not fit the configured integer width"""

    def __init__(self, literal: str, position: int, limit: int, line: int = 0, column: int = 0,
                 filename: str = "<input>"):
        self.literal = literal
        self.limit = limit
        super().__init__(f"Integer literal {literal} exceeds the maximum value {limit}",
                         position, line, column, filename)


class SourceTooLarge(ParseError):
    """Source text is longer than the configured limit"""

    def __init__(self, length: int, limit: int, filename: str = "<input>"):
        self.length = length
        self.limit = limit
        super().__init__(f"Source is {length} characters long, limit is {limit}",
                         0, 0, 0, filename)


class EvalError(TinyLangError):
    """Evaluation of a statement failed"""

    def __init__(self, message: str, span: Optional["SourceSpan"] = None):
        self.message = message
        self.span = span
        # Index of the failing statement in its program, set by the interpreter
        self.statement_index: Optional[int] = None
        super().__init__(message)

    def __str__(self) -> str:
        if self.span:
            return f"{self.message} (line {self.span.start_line}, column {self.span.start_col})"
        return self.message


class UndefinedVariable(EvalError):
    def __init__(self, identifier: str, span: Optional["SourceSpan"] = None):
        self.identifier = identifier
        super().__init__(f"Undefined variable '{identifier}'", span)


class DivisionByZero(EvalError):
    def __init__(self, span: Optional["SourceSpan"] = None):
        super().__init__("Division by zero", span)


class ArithmeticOverflow(EvalError):
    def __init__(self, operation: str, left: int, right: int, span: Optional["SourceSpan"] = None):
        self.operation = operation
        self.left = left
        self.right = right
        super().__init__(f"Arithmetic overflow in {left} {operation} {right}", span)


# ============================================================================
# PURE FUNCTIONS
# ============================================================================

def describe_found(found: str) -> str:
    return found if found == END_OF_INPUT else f"'{found}'"


def get_context_lines(source_text: str, line_num: int, col_num: int, context_lines: int = 2,
                      width: int = 1) -> str:
    """Get context lines around the error with a marker under the offending column"""
    lines = source_text.split('\n')
    start_line = max(0, line_num - context_lines - 1)
    end_line = min(len(lines), line_num + context_lines)

    context_parts = []
    for i in range(start_line, end_line):
        line_prefix = f"{i+1:4d}: "
        context_parts.append(f"{line_prefix}{lines[i]}")
        if i == line_num - 1:
            marker = "^" + "~" * (max(width, 1) - 1)
            context_parts.append(f"{'':6}{' ' * (col_num - 1)}{marker}")

    return '\n'.join(context_parts)


def extract_expected(exc: ParseBaseException) -> str:
    """Extract the expected grammar element from a pyparsing exception"""
    msg = getattr(exc, 'msg', '') or ''
    expected_match = re.match(r"Expected\s+(.+)", msg)
    if expected_match:
        return expected_match.group(1).strip()
    return "valid syntax"


def extract_found(source_text: str, position: int) -> str:
    """Extract the lexeme actually present at the error position"""
    lexeme_match = _LEXEME_PATTERN.match(source_text, position)
    if position >= len(source_text) or lexeme_match is None:
        return END_OF_INPUT
    return lexeme_match.group(0)


def generate_suggestions(expected: str, found: str) -> List[str]:
    """Generate hints for the most common mistakes"""
    suggestions = []

    if found == END_OF_INPUT and "';'" in expected:
        suggestions.append("Every statement must end with ';'")

    if found == "-":
        suggestions.append("Unary minus is not supported - write (0 - x) instead")

    if re.search(r'[A-Z]', found):
        suggestions.append("Identifiers may only contain lowercase letters and underscores")

    if found == ".":
        suggestions.append("Only integer literals are supported")

    if found == "=" and "';'" in expected:
        suggestions.append("The left side of '=' must be a single identifier")

    if found == "(" and "';'" in expected:
        suggestions.append("Multiplication must be written explicitly with '*'")

    if found.isdigit() and "';'" in expected:
        suggestions.append("Identifiers cannot contain digits")

    return suggestions


def enhance_parse_exception(exc: ParseBaseException, source_text: str,
                            filename: str = "<input>") -> ParseError:
    """Convert a pyparsing exception into a Tiny Language parse error

    Fatal exceptions come from a grammar commit point and mean a statement
    was started but could not be completed. A non-fatal exception can only
    escape from the end-of-input check, so the rest of the text is trailing
    input.
    """
    position = exc.loc
    line, column = line_and_column(source_text, position)
    found = extract_found(source_text, position)

    if isinstance(exc, ParseFatalException):
        expected = extract_expected(exc)
        return UnexpectedToken(expected, found, position, line, column, filename,
                               generate_suggestions(expected, found))

    return TrailingInput(found, position, line, column, filename,
                         generate_suggestions("statement", found))


def format_error(error: TinyLangError, source_text: str) -> str:
    """Format any core error with source context"""
    if isinstance(error, ParseError):
        error_msg = f"{error}\n"
        if error.line:
            found = getattr(error, 'found', None)
            width = len(found) if found and found != END_OF_INPUT else 1
            error_msg += get_context_lines(source_text, error.line, error.column, width=width) + "\n"
        if error.suggestions:
            error_msg += "  Suggestions:\n"
            for suggestion in error.suggestions:
                error_msg += f"    - {suggestion}\n"
        return error_msg

    error_msg = f"Runtime error: {error}\n"
    span = getattr(error, 'span', None)
    if span is not None:
        error_msg += get_context_lines(source_text, span.start_line, span.start_col,
                                       width=len(span.text.split('\n')[0])) + "\n"
    statement_index = getattr(error, 'statement_index', None)
    if statement_index is not None:
        error_msg += f"  In statement {statement_index + 1}\n"
    return error_msg


# ============================================================================
# ERROR HANDLER
# ============================================================================

class TinyErrorHandler:
    """Binds diagnostics formatting to one source text"""

    def __init__(self, source_text: str, filename: str = "<input>"):
        self.source_text = source_text
        self.filename = filename

    def enhance_parse_exception(self, exc: ParseBaseException) -> ParseError:
        return enhance_parse_exception(exc, self.source_text, self.filename)

    def format(self, error: TinyLangError) -> str:
        return format_error(error, self.source_text)
