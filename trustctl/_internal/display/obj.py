"""The display implementation used by trustctl."""
import logging
import os
import sys
import textwrap
from typing import Optional
from typing import TextIO

logger = logging.getLogger(__name__)

SIDE_FRAME = ("- " * 39) + "-"
"""Display boundary (alternates spaces, so when copy-pasted, markdown doesn't interpret
it as a heading)"""


def wrap_lines(msg: str) -> str:
    """Format lines nicely to 80 chars.

    :param str msg: Original message

    :returns: Formatted message respecting newlines in message
    :rtype: str

    """
    return '\n'.join(textwrap.fill(line, 80, break_long_words=False, break_on_hyphens=False)
                     for line in msg.splitlines())


# Holding the display in an object attribute avoids `global` statements
# in the functions that swap it.
class _DisplayService:
    def __init__(self) -> None:
        self.display: Optional[FileDisplay] = None


_SERVICE = _DisplayService()


class FileDisplay:
    """File-based display."""

    def __init__(self, outfile: TextIO) -> None:
        self.outfile = outfile

    def notification(self, message: str, wrap: bool = True, decorate: bool = False) -> None:
        """Displays a notification.

        :param str message: Message to display
        :param bool wrap: Whether or not the application should wrap text
        :param bool decorate: Whether to surround the message with a
            decorated frame

        """
        if wrap:
            message = wrap_lines(message)

        logger.debug("Notifying user: %s", message)

        self.outfile.write(
            (("{line}{frame}{line}" if decorate else "") +
             "{msg}{line}" +
             ("{frame}{line}" if decorate else ""))
                .format(line=os.linesep, frame=SIDE_FRAME, msg=message)
        )
        self.outfile.flush()


def get_display() -> FileDisplay:
    """Get the display utility, defaulting to standard output."""
    if _SERVICE.display is None:
        _SERVICE.display = FileDisplay(sys.stdout)
    return _SERVICE.display


def set_display(display: FileDisplay) -> None:
    """Set the display service."""
    _SERVICE.display = display
