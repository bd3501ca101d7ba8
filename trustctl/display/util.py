"""trustctl display.

This module should be used whenever status information is displayed to
the user on the terminal. Other messages can use the `logging` module.
See `log.py`.

"""
from trustctl._internal.display import obj


def notify(msg: str) -> None:
    """Display a basic status message.

    :param str msg: message to display

    """
    obj.get_display().notification(msg, wrap=False, decorate=False)


def notification(message: str, wrap: bool = True, decorate: bool = True) -> None:
    """Displays a notification framed for attention.

    :param str message: Message to display
    :param bool wrap: Whether or not the application should wrap text
    :param bool decorate: Whether to surround the message with a
        decorated frame

    """
    obj.get_display().notification(message, wrap=wrap, decorate=decorate)
