"""Test utilities."""
import argparse
import io
import logging
import os
import shutil
import sys
import tempfile
from typing import Any
from typing import Callable
from typing import cast
from typing import IO
from typing import Optional
import unittest
from unittest import mock

from trustctl import configuration
from trustctl._internal import constants
from trustctl._internal.display import obj as display_obj


def patch_display_util() -> mock.MagicMock:
    """Patch trustctl.display.util to use a mock display utility.

    :returns: patch on the function used internally by trustctl.display.util
        to get a display utility instance
    :rtype: mock.MagicMock

    """
    display = mock.MagicMock(spec=display_obj.FileDisplay)
    return cast(mock.MagicMock, mock.patch('trustctl._internal.display.obj.get_display',
                                           return_value=display))


def patch_display_util_with_stdout(stdout: Optional[IO] = None) -> mock.MagicMock:
    """Patch trustctl.display.util to write notifications to ``stdout``.

    :param object stdout: object to write standard output to; it is
        expected to have `write` and `flush` methods
    :returns: patch on the function used internally by trustctl.display.util
        to get a display utility instance
    :rtype: mock.MagicMock

    """
    stdout = stdout if stdout else io.StringIO()
    return cast(mock.MagicMock, mock.patch('trustctl._internal.display.obj.get_display',
                                           return_value=display_obj.FileDisplay(stdout)))


def write_file(path: str, content: str, mode: Optional[int] = None) -> str:
    """Write ``content`` to ``path``, creating parent directories."""
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, 'w') as file_h:
        file_h.write(content)
    if mode is not None:
        os.chmod(path, mode)
    return path


def read_file(path: str) -> str:
    """Content of the text file at ``path``."""
    with open(path) as file_h:
        return file_h.read()


def make_namespace(config_dir: str, **kwargs: Any) -> argparse.Namespace:
    """Namespace holding the CLI defaults, rooted at ``config_dir``."""
    values = dict(constants.CLI_DEFAULTS)
    values.update(config_dir=config_dir, verb="request")
    values.update(kwargs)
    return argparse.Namespace(**values)


class TempDirTestCase(unittest.TestCase):
    """Base test class which sets up and tears down a temporary directory"""

    def setUp(self) -> None:
        """Execute before test"""
        self.tempdir = tempfile.mkdtemp()

    def tearDown(self) -> None:
        """Execute after test"""
        # Cleanup opened resources after a test. This is usually done through atexit handlers in
        # trustctl, but during tests, atexit will not run registered functions before tearDown
        # is called and instead will run them right before the entire test process exits.
        logging.shutdown()
        # Remove logging handlers that have been closed so they won't be
        # accidentally used in future tests.
        logging.getLogger().handlers = []

        shutil.rmtree(self.tempdir)


class ConfigTestCase(TempDirTestCase):
    """Test class which sets up a NamespaceConfig object.

    Every filesystem root, the webroot and the webserver configuration
    directories live below the temporary directory.

    """
    def setUp(self) -> None:
        super().setUp()
        self.nginx_dir = os.path.join(self.tempdir, 'nginx', 'sites-enabled')
        self.apache_dir = os.path.join(self.tempdir, 'apache2', 'sites-enabled')
        self.config = configuration.NamespaceConfig(make_namespace(
            os.path.join(self.tempdir, 'config'),
            webroot=os.path.join(self.tempdir, 'www'),
            nginx_dirs=[self.nginx_dir],
            apache_dirs=[self.apache_dir],
            enterprise_latency=0,
        ))


def skip_on_windows(reason: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorator to skip permanently a test on Windows. A reason is required."""
    def wrapper(function: Callable[..., Any]) -> Callable[..., Any]:
        """Wrapped version"""
        return unittest.skipIf(sys.platform == 'win32', reason)(function)
    return wrapper
