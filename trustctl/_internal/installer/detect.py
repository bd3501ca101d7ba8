"""Detects which supported webserver runs on this host."""
import logging
import os
from typing import Sequence
from typing import Set

from trustctl import errors
from trustctl import util

logger = logging.getLogger(__name__)

SYSTEMD_UNITS = (
    ("nginx", "nginx"),
    ("apache2", "apache"),
    ("httpd", "apache"),
)
"""systemd units checked, in order, and the configurator serving each."""


def _unit_active(unit: str) -> bool:
    try:
        util.run_script(["systemctl", "is-active", "--quiet", unit], log=logger.debug)
    except errors.SubprocessError:
        return False
    return True


def _process_names() -> Set[str]:
    try:
        stdout, _ = util.run_script(["ps", "-e", "-o", "comm="], log=logger.debug)
    except errors.SubprocessError:
        return set()
    return {os.path.basename(line.strip()) for line in stdout.splitlines() if line.strip()}


def detect_running_server(nginx_dirs: Sequence[str], apache_dirs: Sequence[str]) -> str:
    """Find the webserver to configure.

    Running services are preferred: systemd is asked when ``systemctl``
    exists, the process table is scanned otherwise. As a last resort the
    presence of configuration directories decides, nginx first.

    :returns: ``nginx`` or ``apache``
    :rtype: str

    :raises .NoSupportedServer: if no supported webserver is found

    """
    if util.exe_exists("systemctl"):
        for unit, kind in SYSTEMD_UNITS:
            if _unit_active(unit):
                logger.debug("systemd unit %s is active", unit)
                return kind
    else:
        running = _process_names()
        for unit, kind in SYSTEMD_UNITS:
            if unit in running:
                logger.debug("Found running %s process", unit)
                return kind

    for kind, dirs in (("nginx", nginx_dirs), ("apache", apache_dirs)):
        if any(os.path.isdir(directory) for directory in dirs):
            logger.debug("No running webserver found, using %s configuration directories", kind)
            return kind

    raise errors.NoSupportedServer(
        "No supported webserver (nginx or Apache) was found on this host")
