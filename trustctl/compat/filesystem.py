"""Compat module to handle file security on POSIX systems.

Owner-only permissions are the basis of every secret trustctl keeps on
disk. They can only be checked where POSIX mode bits are meaningful, so
callers consult `POSIX_MODE` before trusting a mode comparison.
"""
import os  # pylint: disable=os-module-forbidden
import stat

POSIX_MODE = os.name == 'posix'

GROUP_OTHER_MASK = stat.S_IRWXG | stat.S_IRWXO
"""Permission bits that must be clear on owner-only files."""


def chmod(file_path: str, mode: int) -> None:
    """
    Apply a POSIX mode on given file_path.

    :param str file_path: Path of the file
    :param int mode: POSIX mode to apply
    """
    os.chmod(file_path, mode)


def file_mode(file_path: str) -> int:
    """
    Permission bits of the given file, without the file type bits.

    :param str file_path: Path of the file
    :rtype: int
    """
    return stat.S_IMODE(os.stat(file_path).st_mode)


def check_mode(file_path: str, mode: int) -> bool:
    """
    Check if the given mode matches the permissions of the given file.

    :param str file_path: Path of the file
    :param int mode: POSIX mode to test
    :rtype: bool
    :return: True if the POSIX mode matches the file permissions
    """
    return file_mode(file_path) == mode


def check_owner(file_path: str) -> bool:
    """
    Check if given file is owned by current user.

    :param str file_path: File path to check
    :rtype: bool
    :return: True if given file is owned by current user, False otherwise.
    """
    return os.stat(file_path).st_uid == os.getuid()


def has_group_or_world_permissions(path: str) -> bool:
    """
    Check if group or everybody/world has any right (read/write/execute) on a file.

    :param str path: path to test
    :return: True if the file is not owner-only
    :rtype: bool
    """
    return bool(file_mode(path) & GROUP_OTHER_MASK)


def makedirs(file_path: str, mode: int = 0o777) -> None:
    """
    Create a directory and its parents, then apply the mode on the leaf
    directory regardless of the process umask.

    :param str file_path: The directory path to create
    :param int mode: POSIX mode to apply on the leaf directory
    """
    os.makedirs(file_path, mode, exist_ok=True)
    chmod(file_path, mode)


def replace(src: str, dst: str) -> None:
    """
    Rename a file to a destination path and handles situations where the destination exists.

    :param str src: The current file path.
    :param str dst: The new file path.
    """
    os.replace(src, dst)
