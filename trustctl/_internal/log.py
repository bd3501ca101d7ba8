"""Logging setup for trustctl.

Logging is configured in two steps:

1. `pre_arg_parse_setup` runs first. Records reach a quiet stderr handler
   and are also held in memory, because the log directory is not known
   until the configuration has been parsed.
2. `post_arg_parse_setup` opens the rotating log file below
   ``config.logs_dir``, replays the held records into it and sets the
   terminal level from ``-v``/``-q``.

A fatal exception raised before the second step has no log file to point
at. With ``--debug`` the held records are written to the terminal instead.

Messages meant for the user go through `trustctl.display.util`, not
through logging.

"""
import functools
import logging
import logging.handlers
import os
import sys
import traceback
from types import TracebackType
from typing import IO
from typing import Optional
from typing import Tuple
from typing import Type
from typing import TypeVar

from trustctl import configuration
from trustctl import errors
from trustctl import util
from trustctl._internal import constants

CLI_FMT = "%(message)s"
FILE_FMT = "%(asctime)s:%(levelname)s:%(name)s:%(message)s"

MAX_LOG_BYTES = 2 ** 20
"""Size cap of one log file; a run never comes close, so each run gets a file."""

logger = logging.getLogger(__name__)

HandlerT = TypeVar('HandlerT', bound=logging.Handler)


def pre_arg_parse_setup() -> None:
    """Start logging before the command line is parsed.

    Only errors reach the terminal at this point; every record is kept in
    memory for the log file. Uncaught exceptions are reported through
    `pre_arg_parse_except_hook`.

    """
    memory_handler = MemoryHandler()
    stderr_handler = ColoredStreamHandler()
    stderr_handler.setFormatter(logging.Formatter(CLI_FMT))
    stderr_handler.setLevel(constants.QUIET_LOGGING_LEVEL)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(memory_handler)
    root_logger.addHandler(stderr_handler)

    util.atexit_register(logging.shutdown)
    sys.excepthook = functools.partial(
        pre_arg_parse_except_hook, memory_handler, stderr_handler,
        debug='--debug' in sys.argv)


def post_arg_parse_setup(config: configuration.NamespaceConfig) -> None:
    """Finish logging setup once ``config`` is known.

    :param trustctl.configuration.NamespaceConfig config: parsed configuration

    :raises .errors.Error: if the log file cannot be opened

    """
    root_logger = logging.getLogger()
    memory_handler = _installed(root_logger, MemoryHandler)
    stderr_handler = _installed(root_logger, ColoredStreamHandler)

    file_handler, log_path = setup_log_file_handler(config, constants.LOG_FILE, FILE_FMT)
    root_logger.addHandler(file_handler)
    root_logger.removeHandler(memory_handler)
    memory_handler.replay(file_handler)
    memory_handler.close()

    level = terminal_level(config)
    stderr_handler.setLevel(level)
    logger.debug("Terminal logging level set to %s", logging.getLevelName(level))

    sys.excepthook = functools.partial(
        post_arg_parse_except_hook,
        debug=config.debug, quiet=config.quiet, log_path=log_path)


def _installed(root_logger: logging.Logger, handler_class: Type[HandlerT]) -> HandlerT:
    for handler in root_logger.handlers:
        if isinstance(handler, handler_class):
            return handler
    raise errors.Error("Logging was not started with pre_arg_parse_setup; "
                       "no {0} installed".format(handler_class.__name__))


def terminal_level(config: configuration.NamespaceConfig) -> int:
    """Terminal logging level: WARNING, lowered by each ``-v``, ERROR with ``-q``."""
    if config.quiet:
        return constants.QUIET_LOGGING_LEVEL
    return max(constants.DEFAULT_LOGGING_LEVEL - 10 * config.verbose_count, logging.DEBUG)


def setup_log_file_handler(config: configuration.NamespaceConfig, logfile: str,
                           fmt: str) -> Tuple[logging.Handler, str]:
    """Open ``logfile`` below ``config.logs_dir`` for this run.

    The previous run's file is rotated away first, keeping at most
    ``config.max_log_backups`` old files.

    :returns: the file handler and the path of the log file
    :rtype: tuple

    """
    path = os.path.join(config.logs_dir, logfile)
    try:
        util.make_or_verify_dir(config.logs_dir, constants.CONFIG_DIRS_MODE)
        handler = logging.handlers.RotatingFileHandler(
            path, maxBytes=MAX_LOG_BYTES, backupCount=config.max_log_backups)
        if config.max_log_backups:
            handler.doRollover()
    except OSError as error:
        raise errors.Error(util.PERM_ERR_FMT.format(error)) from error
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(fmt))
    return handler, path


class ColoredStreamHandler(logging.StreamHandler):
    """Terminal handler printing warnings and errors in red.

    Color is only used when the stream is a terminal.

    """
    red_level = logging.WARNING

    def __init__(self, stream: Optional[IO] = None) -> None:
        super().__init__(stream)
        self.colored = self.stream.isatty()

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        if self.colored and record.levelno >= self.red_level:
            text = util.ANSI_SGR_RED + text + util.ANSI_SGR_RESET
        return text


class MemoryHandler(logging.handlers.MemoryHandler):
    """Holds records until `replay` hands them to another handler.

    Only the most recent ``capacity`` records are kept. Ordinary flushes,
    including the one from `logging.shutdown`, discard nothing and send
    nothing.

    """
    def __init__(self, capacity: int = 10000) -> None:
        super().__init__(capacity)

    def shouldFlush(self, record: logging.LogRecord) -> bool:
        if len(self.buffer) > self.capacity:
            del self.buffer[0]
        return False

    def flush(self) -> None:
        """Records leave the buffer only through `replay`."""

    def replay(self, target: logging.Handler) -> None:
        """Send the held records that ``target`` accepts, then forget them all."""
        self.acquire()
        try:
            for record in self.buffer:
                if record.levelno >= target.level:
                    target.handle(record)
            self.buffer = []
        finally:
            self.release()


def pre_arg_parse_except_hook(memory_handler: MemoryHandler,
                              stderr_handler: logging.Handler,
                              exc_type: Type[BaseException], exc_value: BaseException,
                              trace: Optional[TracebackType], debug: bool = False) -> None:
    """Report an exception raised before the log file was opened.

    With ``debug`` the records held so far are written to the terminal.

    """
    if debug:
        stderr_handler.setLevel(logging.DEBUG)
        memory_handler.replay(stderr_handler)
    post_arg_parse_except_hook(exc_type, exc_value, trace,
                               debug=debug, quiet=False, log_path=None)


def post_arg_parse_except_hook(exc_type: Type[BaseException], exc_value: BaseException,
                               trace: Optional[TracebackType], debug: bool, quiet: bool,
                               log_path: Optional[str]) -> None:
    """Log a fatal exception and exit with a nonzero status.

    trustctl errors are shown by their message and other exceptions by
    their type and message. The traceback always goes to the log file and
    reaches the terminal only with ``debug``.

    """
    exc_info = (exc_type, exc_value, trace)
    if exc_type is KeyboardInterrupt:
        logger.error("Exiting due to user request.")
        sys.exit(1)
    if debug or not issubclass(exc_type, Exception):
        logger.error("Exiting abnormally:", exc_info=exc_info)
    else:
        logger.debug("Exiting abnormally:", exc_info=exc_info)
        if issubclass(exc_type, errors.Error):
            logger.error("%s", exc_value)
        else:
            logger.error("An unexpected error occurred: %s", "".join(
                traceback.format_exception_only(exc_type, exc_value)).rstrip())
    if quiet:
        sys.exit(1)
    exit_with_advice(log_path)


def exit_with_advice(log_path: Optional[str]) -> None:
    """Exit with a message telling the user where to find details."""
    if log_path is None:
        sys.exit("Re-run trustctl with --debug for more details.")
    sys.exit("See the logfile {0} or re-run trustctl with -v for more details.".format(
        log_path))
