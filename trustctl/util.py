"""Utilities for all of trustctl."""
import atexit
import datetime
import errno
import ipaddress
import logging
import os
import subprocess
import tempfile
import time
from typing import Callable
from typing import List
from typing import Tuple

from trustctl import errors
from trustctl.compat import filesystem

logger = logging.getLogger(__name__)


# ANSI SGR escape codes
# Colors text red
ANSI_SGR_RED = "\033[31m"
# Resets output format
ANSI_SGR_RESET = "\033[0m"


PERM_ERR_FMT = os.linesep.join((
    "The following error was encountered:", "{0}",
    "Either run as root, or set --config-dir, --credentials-dir, "
    "--certs-dir, and --logs-dir to writeable paths."))


# Stores importing process ID to be used by atexit_register()
_INITIAL_PID = os.getpid()


def atexit_register(func: Callable, *args, **kwargs) -> None:
    """Sets func to be called before the program exits.

    Special care is taken to ensure func is only called when the process
    that first imports this module exits rather than any child processes.

    :param function func: function to be called in case of an error

    """
    atexit.register(_atexit_call, func, *args, **kwargs)


def _atexit_call(func: Callable, *args, **kwargs) -> None:
    if _INITIAL_PID == os.getpid():
        func(*args, **kwargs)


def now() -> datetime.datetime:
    """Current UTC time truncated to whole seconds.

    RFC 3339 serialization drops sub-second precision, so timestamps are
    truncated up front and compare equal after a round trip.

    """
    return datetime.datetime.now(tz=datetime.timezone.utc).replace(microsecond=0)


def run_script(params: List[str], log: Callable[[str], None] = logger.error) -> Tuple[str, str]:
    """Run the script with the given params.

    :param list params: List of parameters to pass to Popen
    :param callable log: Logger method to use for errors

    :returns: stdout and stderr of the process
    :rtype: tuple

    :raises .errors.SubprocessError: if the command cannot be run or
        exits with a non-zero status

    """
    try:
        proc = subprocess.run(params, stdout=subprocess.PIPE, stderr=subprocess.PIPE,
                              universal_newlines=True, check=False)
    except (OSError, ValueError):
        msg = "Unable to run the command: %s" % " ".join(params)
        log(msg)
        raise errors.SubprocessError(msg)

    if proc.returncode != 0:
        msg = "Error while running %s.\n%s\n%s" % (
            " ".join(params), proc.stdout, proc.stderr)
        log(msg)
        raise errors.SubprocessError(msg)

    return proc.stdout, proc.stderr


def exe_exists(exe: str) -> bool:
    """Determine whether path/name refers to an executable.

    :param str exe: Executable path or name

    :returns: If exe is a valid executable
    :rtype: bool

    """
    path, _ = os.path.split(exe)
    if path:
        return os.path.isfile(exe) and os.access(exe, os.X_OK)
    for path in os.environ.get("PATH", "").split(os.pathsep):
        candidate = os.path.join(path, exe)
        if os.path.isfile(candidate) and os.access(candidate, os.X_OK):
            return True

    return False


def make_or_verify_dir(directory: str, mode: int = 0o755, strict: bool = False) -> None:
    """Make sure directory exists with proper permissions.

    :param str directory: Path to a directory.
    :param int mode: Directory mode.
    :param bool strict: require directory to be owned by current user
        with exactly the given mode

    :raises .errors.Error: if a directory already exists,
        but has wrong permissions or owner

    :raises OSError: if invalid or inaccessible file names and
        paths, or other arguments that have the correct type,
        but are not accepted by the operating system.

    """
    if os.path.isdir(directory):
        if strict and not (filesystem.check_owner(directory) and
                           filesystem.check_mode(directory, mode)):
            raise errors.Error(
                "%s exists, but it should be owned by current user with"
                " permissions %s" % (directory, oct(mode)))
        return
    filesystem.makedirs(directory, mode)


def atomic_write(path: str, data: bytes, chmod: int = 0o644) -> None:
    """Atomically replace the content of ``path``.

    The data is written to a temporary file in the destination directory,
    flushed to disk and then renamed over ``path``. Readers observe either
    the old content or the new content, never a mix of both.

    :param str path: destination file
    :param bytes data: new content
    :param int chmod: mode of the resulting file

    :raises OSError: if any step fails; the destination is left untouched

    """
    directory, name = os.path.split(os.path.abspath(path))
    fd, tmp_path = tempfile.mkstemp(prefix='.{0}.'.format(name), suffix='.tmp', dir=directory)
    try:
        with os.fdopen(fd, 'wb') as tmp_file:
            tmp_file.write(data)
            tmp_file.flush()
            os.fsync(tmp_file.fileno())
        filesystem.chmod(tmp_path, chmod)
        filesystem.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


def unique_backup_path(path: str, stamp: str) -> str:
    """Find an unused ``<path>.bak.<stamp>`` name.

    A numeric suffix is appended when a backup with the same stamp already
    exists.

    :param str path: file being backed up
    :param str stamp: timestamp label

    :rtype: str

    """
    candidate = "{0}.bak.{1}".format(path, stamp)
    count = 1
    while os.path.exists(candidate):
        candidate = "{0}.bak.{1}.{2}".format(path, stamp, count)
        count += 1
    return candidate


def copy_to_backup(path: str, stamp: str) -> str:
    """Copy ``path`` to a fresh backup file, keeping its mode.

    :returns: path of the backup
    :rtype: str

    """
    while True:
        backup = unique_backup_path(path, stamp)
        try:
            with open(path, 'rb') as original:
                data = original.read()
            with safe_open(backup, mode='wb', chmod=filesystem.file_mode(path)) as copy:
                copy.write(data)
            return backup
        except OSError as err:
            # "File exists," is okay, try a different name.
            if err.errno != errno.EEXIST:
                raise


def enforce_domain_sanity(domain: str) -> str:
    """Method which validates domain value and errors out if
    the requirements are not met.

    :param str domain: Domain to check
    :raises ConfigurationError: for invalid domains

    :returns: The domain lower-cased, with ASCII-only contents and
        without a trailing dot
    :rtype: str
    """
    domain = domain.strip()
    try:
        domain.encode('ascii')
    except UnicodeError:
        raise errors.ConfigurationError("Non-ASCII domain names not supported. "
            "To issue for an Internationalized Domain Name, use Punycode.")

    domain = domain.lower()

    # Remove trailing dot
    domain = domain[:-1] if domain.endswith('.') else domain

    # Separately check for odd "domains" like "http://example.com" to fail
    # fast and provide a clear error message
    for scheme in ["http", "https"]:
        if domain.startswith("{0}://".format(scheme)):
            raise errors.ConfigurationError(
                "Requested name {0} appears to be a URL, not a FQDN. "
                "Try again without the leading \"{1}://\".".format(domain, scheme))

    try:
        ipaddress.ip_address(domain)
    except ValueError:
        pass
    else:
        raise errors.ConfigurationError(
            "Requested name {0} is an IP address. Certificates are only "
            "issued for domain names.".format(domain))

    # FQDN checks according to RFC 2181: domain name should be less than 255
    # octets (inclusive). And each label is 1 - 63 octets (inclusive).
    msg = "Requested domain {0} is not a FQDN because".format(domain)
    if not domain:
        raise errors.ConfigurationError("Requested domain is empty.")
    if len(domain) > 255:
        raise errors.ConfigurationError("{0} it is too long.".format(msg))
    for label in domain.split('.'):
        if not label:
            raise errors.ConfigurationError("{0} it contains an empty label.".format(msg))
        if len(label) > 63:
            raise errors.ConfigurationError("{0} label {1} is too long.".format(msg, label))

    return domain


def parse_domains(value: str) -> List[str]:
    """Split a comma separated list of domains into a sanitized domain set.

    Order is kept and duplicates are not removed, so the first entry stays
    the primary domain.

    :raises ConfigurationError: if the list is empty or a name is invalid

    """
    domains = [enforce_domain_sanity(name) for name in value.split(',') if name.strip()]
    if not domains:
        raise errors.ConfigurationError("At least one domain is required (--domains).")
    return domains


def wait_for(condition: Callable[[], bool], timeout: float, interval: float) -> bool:
    """Poll ``condition`` until it holds or ``timeout`` seconds have passed.

    The number of polls is fixed up front from ``timeout`` and ``interval``
    so the loop terminates even if the clock does not advance.

    :returns: True if the condition held before the timeout
    :rtype: bool

    """
    interval = max(interval, 0.001)
    attempts = max(int(timeout / interval), 0) + 1
    for attempt in range(attempts):
        if condition():
            return True
        if attempt + 1 < attempts:
            time.sleep(interval)
    return False
