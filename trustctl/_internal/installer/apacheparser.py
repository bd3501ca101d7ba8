"""Line based Apache config parser.

Apache configuration is a sequence of one-line directives grouped by
``<Section args>`` / ``</Section>`` containers. The parser keeps the
offsets of every line so edits can be expressed against the source
text.

"""
import re
from typing import Iterator
from typing import List
from typing import Optional
from typing import Sequence
from typing import Union

from trustctl import errors

_SECTION_OPEN = re.compile(r"^<\s*([A-Za-z][\w.-]*)\s*([^>]*)>\s*$")
_SECTION_CLOSE = re.compile(r"^<\s*/\s*([A-Za-z][\w.-]*)\s*>\s*$")
_ARG = re.compile(r'"(?:[^"\\]|\\.)*"|\'(?:[^\'\\]|\\.)*\'|\S+')


def split_args(value: str) -> List[str]:
    """Split directive arguments, keeping quoted strings whole."""
    return _ARG.findall(value)


class Directive:
    """A directive line such as ``ServerName example.com``.

    :ivar int start: offset of the first character of the line
    :ivar int end: offset of the line's newline, or of the end of text

    """
    def __init__(self, name: str, args: Sequence[str], start: int, end: int) -> None:
        self.name = name
        self.args = list(args)
        self.start = start
        self.end = end

    def __repr__(self) -> str:
        return "<Directive {0} {1}>".format(self.name, self.args)


class Section:
    """A container such as ``<VirtualHost *:80> ... </VirtualHost>``.

    :ivar int start: offset of the opening line
    :ivar int close_start: offset of the closing line
    :ivar int end: offset just past the closing line's newline

    """
    def __init__(self, name: str, args: Sequence[str], start: int) -> None:
        self.name = name
        self.args = list(args)
        self.start = start
        self.close_start = start
        self.end = start
        self.children: List[Node] = []

    def directives(self, name: str) -> List[Directive]:
        """Direct child directives called ``name``, case-insensitively."""
        name = name.lower()
        return [child for child in self.children
                if isinstance(child, Directive) and child.name.lower() == name]

    def __repr__(self) -> str:
        return "<Section {0} {1} ({2} children)>".format(
            self.name, self.args, len(self.children))


Node = Union[Directive, Section]


def _lines(text: str) -> Iterator[tuple]:
    """Yield ``(start, end, logical_line)``, joining continuation lines."""
    pos = 0
    pending: Optional[int] = None
    parts: List[str] = []
    while pos < len(text):
        newline = text.find("\n", pos)
        end = len(text) if newline == -1 else newline
        line = text[pos:end]
        if pending is None:
            pending = pos
        if line.rstrip().endswith("\\"):
            parts.append(line.rstrip()[:-1])
        else:
            parts.append(line)
            yield pending, end, " ".join(part.strip() for part in parts)
            pending, parts = None, []
        pos = end + 1
    if pending is not None:
        yield pending, len(text), " ".join(part.strip() for part in parts)


def loads(text: str) -> List[Node]:
    """Parse Apache configuration text.

    :returns: top level nodes
    :rtype: list

    :raises .ConfigParseError: if sections are not properly nested

    """
    root = Section("", [], 0)
    stack = [root]
    for start, end, line in _lines(text):
        if not line or line.startswith("#"):
            continue
        close = _SECTION_CLOSE.match(line)
        if close:
            section = stack[-1]
            if len(stack) == 1 or section.name.lower() != close.group(1).lower():
                raise errors.ConfigParseError(
                    "Unexpected </{0}> at offset {1}".format(close.group(1), start))
            stack.pop()
            section.close_start = start
            section.end = min(end + 1, len(text))
            continue
        opening = _SECTION_OPEN.match(line)
        if opening:
            section = Section(opening.group(1), split_args(opening.group(2)), start)
            stack[-1].children.append(section)
            stack.append(section)
            continue
        words = line.split(None, 1)
        rest = words[1] if len(words) > 1 else ""
        stack[-1].children.append(Directive(words[0], split_args(rest), start, end))
    if len(stack) > 1:
        raise errors.ConfigParseError("Unclosed <{0}> section".format(stack[-1].name))
    return root.children


def iter_sections(nodes: Sequence[Node], name: str) -> Iterator[Section]:
    """Yield every section called ``name`` (case-insensitively), at any depth."""
    for node in nodes:
        if isinstance(node, Section):
            if node.name.lower() == name.lower():
                yield node
            yield from iter_sections(node.children, name)
