"""
Tiny Language Parser
Grammar-driven parser producing a concrete syntax tree with source spans
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pyparsing import (
    Forward, Literal, ParseBaseException, ParserElement, Regex, StringEnd,
    ZeroOrMore, one_of,
)

from config import DEFAULT_CONFIG, TinyLangConfig
from error_handling import SourceTooLarge, enhance_parse_exception
from utilities import Err, Ok, Result, line_and_column

# Enable packrat parsing for performance
ParserElement.enable_packrat()

logger = logging.getLogger(__name__)


GRAMMAR_DESCRIPTION = """\
program    = statement* EOF
statement  = (assignment | expression) ";"
assignment = identifier "=" expression
expression = term (("+" | "-") term)*
term       = factor (("*" | "/") factor)*
factor     = number | identifier | "(" expression ")"
identifier = (lower_letter | "_")+
number     = digit+"""


@dataclass(frozen=True)
class SourceSpan:
    """Source location of a matched piece of text"""
    start: int
    end: int
    start_line: int
    start_col: int
    end_line: int
    end_col: int
    text: str = ""

    def __str__(self) -> str:
        if self.start_line == self.end_line:
            return f"{self.start_line}:{self.start_col}-{self.end_col}"
        return f"{self.start_line}:{self.start_col}-{self.end_line}:{self.end_col}"


@dataclass(frozen=True)
class CSTNode:
    """Concrete Syntax Tree node; keeps punctuation and grammar repetition as matched"""
    type: str
    value: Any = None
    children: List['CSTNode'] = field(default_factory=list)
    span: Optional[SourceSpan] = None

    @property
    def text(self) -> str:
        return self.span.text if self.span else ""

    def __str__(self) -> str:
        if self.children:
            children_str = ", ".join(str(child) for child in self.children)
            return f"{self.type}([{children_str}])"
        return f"{self.type}({self.value})"


def make_span(source: str, start: int, end: int) -> SourceSpan:
    start_line, start_col = line_and_column(source, start)
    end_line, end_col = line_and_column(source, end)
    return SourceSpan(start, end, start_line, start_col, end_line, end_col, source[start:end])


# Parse actions building CST nodes. pyparsing passes the location after
# whitespace skipping, so leaf spans start at the token itself.

def _make_leaf(node_type: str):
    def action(source, loc, tokens):
        text = tokens[0]
        return CSTNode(node_type, text, [], make_span(source, loc, loc + len(text)))
    return action


def _make_branch(node_type: str):
    def action(source, loc, tokens):
        children = list(tokens)
        if children:
            start, end = children[0].span.start, children[-1].span.end
        else:
            start = end = loc
        return CSTNode(node_type, None, children, make_span(source, start, end))
    return action


def _make_program(source, loc, tokens):
    return CSTNode("program", None, list(tokens), make_span(source, 0, len(source)))


class TinyGrammar:
    """Tiny Language grammar definition using pyparsing"""

    def __init__(self, debug: bool = False):
        self.debug = debug
        self._setup_grammar()

    def _setup_grammar(self):
        """Setup the grammar

        The '-' operator marks commit points: once the text before it has
        matched, a failure after it is fatal instead of backtracking. This
        makes the reported error position the place where matching actually
        broke down (e.g. the ';' in 'x = ;') rather than the statement start.
        """

        # Forward declaration for parenthesized sub-expressions
        expression = Forward().set_name("expression")

        # Punctuation is kept in the concrete tree and dropped by lowering
        semicolon = Literal(";").set_parse_action(_make_leaf("punct"))
        equals = Literal("=").set_parse_action(_make_leaf("punct"))
        lparen = Literal("(").set_parse_action(_make_leaf("punct"))
        rparen = Literal(")").set_parse_action(_make_leaf("punct"))

        identifier = Regex(r'[a-z_]+').set_name("identifier").set_parse_action(_make_leaf("identifier"))
        number = Regex(r'[0-9]+').set_name("number").set_parse_action(_make_leaf("number"))

        add_op = one_of("+ -").set_name("'+' or '-'").set_parse_action(_make_leaf("add_op"))
        mul_op = one_of("* /").set_name("'*' or '/'").set_parse_action(_make_leaf("mul_op"))

        parenthesized = lparen - expression - rparen

        factor = (
            number | identifier | parenthesized
        ).set_name("factor").set_parse_action(_make_branch("factor"))

        term = (
            factor + ZeroOrMore(mul_op - factor)
        ).set_name("term").set_parse_action(_make_branch("term"))

        expression <<= (
            term + ZeroOrMore(add_op - term)
        ).set_parse_action(_make_branch("expression"))

        # Assignment is tried first; 'x;' falls back to an expression because
        # nothing is committed until '=' has matched
        assignment = (
            identifier + equals - expression
        ).set_name("assignment").set_parse_action(_make_branch("assignment"))

        statement = (
            (assignment | expression) - semicolon
        ).set_name("statement").set_parse_action(_make_branch("statement"))

        program = (ZeroOrMore(statement) + StringEnd()).set_parse_action(_make_program)
        # Keep tabs so error positions are offsets into the caller's text
        program.parse_with_tabs()

        # Store the main parsers
        self.program = program
        self.statement = statement
        self.assignment = assignment
        self.expression = expression
        self.term = term
        self.factor = factor
        self.identifier = identifier
        self.number = number

    def parse_program(self, text: str, filename: str = "<input>",
                      config: Optional[TinyLangConfig] = None) -> Result:
        """Parse a complete program into a 'program' CST node

        Returns:
            Ok(CSTNode) or Err(ParseError)
        """
        config = config or DEFAULT_CONFIG
        if config.max_source_length is not None and len(text) > config.max_source_length:
            return Err(SourceTooLarge(len(text), config.max_source_length, filename))

        try:
            result = self.program.parse_string(text)
        except ParseBaseException as e:
            error = enhance_parse_exception(e, text, filename)
            if self.debug:
                logger.debug("Parsing %s failed: %s", filename, error)
            return Err(error)

        cst = result[0]
        if self.debug:
            logger.debug("Parsed %s: %d statements\n%s", filename, len(cst.children),
                         pretty_print_cst(cst))
        return Ok(cst)


class TinyParser:
    """Main Tiny Language parser"""

    def __init__(self, debug: bool = False, config: Optional[TinyLangConfig] = None):
        self.debug = debug
        self.config = config or DEFAULT_CONFIG
        self.grammar = TinyGrammar(debug)

    def parse_file(self, filepath: str) -> Result:
        """Parse a source file; I/O errors propagate to the caller"""
        with open(filepath, 'r', encoding='utf-8') as f:
            content = f.read()
        return self.parse_string(content, filepath)

    def parse_string(self, text: str, filename: str = "<input>") -> Result:
        """Parse source code from string"""
        return self.grammar.parse_program(text, filename, self.config)


# Factory functions for creating parsers
def create_parser(debug: bool = False, config: Optional[TinyLangConfig] = None) -> TinyParser:
    """Create a Tiny Language parser"""
    return TinyParser(debug=debug, config=config)


def create_debug_parser(config: Optional[TinyLangConfig] = None) -> TinyParser:
    """Create a Tiny Language parser with debug enabled"""
    return TinyParser(debug=True, config=config)


# Utility functions for working with CST
def find_nodes_by_type(cst: CSTNode, node_type: str) -> List[CSTNode]:
    """Find all nodes of a specific type in CST, in source order"""
    result = []

    def search(node: CSTNode):
        if node.type == node_type:
            result.append(node)
        for child in node.children:
            search(child)

    search(cst)
    return result


def pretty_print_cst(cst: CSTNode, indent: int = 0) -> str:
    """Pretty print a CST node for debugging"""
    result = "  " * indent + f"{cst.type}"
    if cst.value is not None:
        result += f"({repr(cst.value)})"
    result += "\n"

    for child in cst.children:
        result += pretty_print_cst(child, indent + 1)

    return result


def cst_to_dict(cst: CSTNode) -> Dict[str, Any]:
    """Convert CST to dictionary representation"""
    return {
        "type": cst.type,
        "value": cst.value,
        "span": {
            "start": cst.span.start,
            "end": cst.span.end,
            "start_line": cst.span.start_line,
            "start_col": cst.span.start_col,
            "end_line": cst.span.end_line,
            "end_col": cst.span.end_col,
        } if cst.span else None,
        "children": [cst_to_dict(child) for child in cst.children]
    }
