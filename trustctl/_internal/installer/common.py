"""Pieces shared by the webserver configurators."""
from typing import Iterable
from typing import List
from typing import Tuple

NEW_LINE = "\n"


def unquote(value: str) -> str:
    """Strip one level of matching single or double quotes."""
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    return value


def name_matches(pattern: str, domain: str) -> bool:
    """Does a configured server name cover ``domain``?

    Names compare case-insensitively. ``*.example.com`` covers any
    subdomain of example.com and ``.example.com`` additionally covers
    example.com itself. Regular expression names (``~...``) never match.

    """
    pattern = unquote(pattern).lower()
    domain = domain.lower()
    if not pattern or pattern.startswith("~"):
        return False
    if pattern.startswith("*."):
        return domain.endswith(pattern[1:]) and len(domain) > len(pattern) - 1
    if pattern.startswith("."):
        return domain == pattern[1:] or domain.endswith(pattern)
    return pattern == domain


def any_name_matches(patterns: Iterable[str], domain: str) -> bool:
    """Does any of ``patterns`` cover ``domain``?"""
    return any(name_matches(pattern, domain) for pattern in patterns)


def indentation_at(text: str, pos: int) -> str:
    """Leading whitespace of the line containing ``pos``."""
    line_start = text.rfind(NEW_LINE, 0, pos) + 1
    end = line_start
    while end < len(text) and text[end] in " \t":
        end += 1
    return text[line_start:end]


class TextPatch:
    """Set of non-overlapping replacements applied to a source text.

    Offsets always refer to the original text, so edits can be collected
    in any order from a model built on that text.

    """
    def __init__(self, text: str) -> None:
        self.text = text
        self._edits: List[Tuple[int, int, str]] = []

    def replace(self, start: int, end: int, replacement: str) -> None:
        """Replace ``text[start:end]`` with ``replacement``."""
        self._edits.append((start, end, replacement))

    def insert(self, pos: int, addition: str) -> None:
        """Insert ``addition`` at ``pos``."""
        self._edits.append((pos, pos, addition))

    def append(self, addition: str) -> None:
        """Append ``addition`` on a new line at the end of the text."""
        if self.text and not self.text.endswith(NEW_LINE):
            addition = NEW_LINE + addition
        self.insert(len(self.text), addition)

    def __bool__(self) -> bool:
        return bool(self._edits)

    def apply(self) -> str:
        """Return the patched text."""
        result = self.text
        # Later offsets first keeps earlier offsets valid; stable for equal starts.
        for start, end, replacement in sorted(
                reversed(self._edits), key=lambda edit: edit[0], reverse=True):
            result = result[:start] + replacement + result[end:]
        return result
