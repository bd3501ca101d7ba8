"""Low-level nginx config parser based on pyparsing.

The parser builds a tree of `Directive` and `Block` nodes that remember
where they start and end in the source text. Edits are expressed as
replacements of those spans, so everything that is not edited (comments,
indentation, quoting) is written back byte for byte.

"""
import logging
from typing import Iterator
from typing import List
from typing import Sequence
from typing import Union

from pyparsing import Forward
from pyparsing import Group
from pyparsing import Literal
from pyparsing import Located
from pyparsing import OneOrMore
from pyparsing import ParseBaseException
from pyparsing import ParseResults
from pyparsing import QuotedString
from pyparsing import Regex
from pyparsing import StringEnd
from pyparsing import Suppress
from pyparsing import ZeroOrMore

from trustctl import errors

logger = logging.getLogger(__name__)


class Directive:
    """A simple directive such as ``listen 80;``.

    :ivar str name: directive name
    :ivar list args: raw arguments, quotes included
    :ivar int start: offset of the directive name
    :ivar int end: offset just past the terminating semicolon

    """
    def __init__(self, words: Sequence[str], start: int, end: int) -> None:
        self.name = words[0]
        self.args = list(words[1:])
        self.start = start
        self.end = end

    def __repr__(self) -> str:
        return "<Directive {0} {1}>".format(self.name, self.args)


class Block:
    """A block directive such as ``server { ... }``.

    :ivar int body_start: offset just past the opening brace
    :ivar int body_end: offset of the closing brace

    """
    def __init__(self, words: Sequence[str], start: int, body_start: int,
                 children: Sequence["Node"], end: int) -> None:
        self.name = words[0]
        self.args = list(words[1:])
        self.start = start
        self.body_start = body_start
        self.children = list(children)
        self.end = end
        self.body_end = end - 1

    def directives(self, name: str) -> List[Directive]:
        """Direct child directives called ``name``."""
        return [child for child in self.children
                if isinstance(child, Directive) and child.name == name]

    def __repr__(self) -> str:
        return "<Block {0} {1} ({2} children)>".format(self.name, self.args, len(self.children))


Node = Union[Directive, Block]


def _make_directive(toks: ParseResults) -> Directive:
    start, value, end = toks[0], toks[1], toks[2]
    return Directive(list(value[0]), start, end)


def _make_block(toks: ParseResults) -> Block:
    start, value, end = toks[0], toks[1], toks[2]
    words, brace, children = value[0], value[1], value[2]
    return Block(list(words), start, brace + 1, list(children), end)


class NginxParser:
    # pylint: disable=pointless-statement
    """A class that parses nginx configuration with pyparsing."""

    comment = Suppress(Regex(r"#[^\n]*"))
    semicolon = Suppress(Literal(";"))
    right_bracket = Suppress(Literal("}"))
    left_bracket = Located(Literal("{")).set_parse_action(lambda toks: toks[0])

    dquoted = QuotedString('"', multiline=True, unquote_results=False, esc_char='\\')
    squoted = QuotedString("'", multiline=True, unquote_results=False, esc_char='\\')
    # ${var} may contain braces; anything else stops at structural characters
    bare = Regex(r"(?:\$\{[^}]*\}|[^\s{};'\"#])(?:\$\{[^}]*\}|[^\s{};])*")
    word = dquoted | squoted | bare

    statement = Located(Group(OneOrMore(word)) + semicolon).set_parse_action(_make_directive)

    block = Forward()
    block_body = Group(ZeroOrMore(block | statement))
    block <<= Located(Group(OneOrMore(word)) + left_bracket + block_body +
                      right_bracket).set_parse_action(_make_block)

    script = ZeroOrMore(block | statement) + StringEnd()
    script.ignore(comment)
    script.parse_with_tabs()

    def __init__(self, source: str) -> None:
        self.source = source

    def parse(self) -> List[Node]:
        """Returns the parsed tree."""
        return list(self.script.parse_string(self.source))


def loads(source: str) -> List[Node]:
    """Parses from a string.

    :param str source: The string to parse
    :returns: The parsed tree
    :rtype: list

    :raises .ConfigParseError: if the text is not valid nginx syntax

    """
    try:
        return NginxParser(source).parse()
    except ParseBaseException as error:
        raise errors.ConfigParseError(
            "Invalid nginx configuration at line {0}, column {1}: {2}".format(
                error.lineno, error.col, error.msg)) from error


def iter_blocks(nodes: Sequence[Node], name: str) -> Iterator[Block]:
    """Yield every block called ``name``, at any depth, in source order."""
    for node in nodes:
        if isinstance(node, Block):
            if node.name == name:
                yield node
            yield from iter_blocks(node.children, name)
