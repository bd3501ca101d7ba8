"""Credential guard and enterprise CA credential files.

Secrets kept in the credentials directory must only be readable by
their owner. `assert_permissions` is run before any operation that
reads secret material from that directory.

"""
import hashlib
import logging
import os
import stat
from typing import Tuple

import configobj

from trustctl import errors
from trustctl import util
from trustctl._internal import constants
from trustctl.compat import filesystem
from trustctl.plugins import dns_common

logger = logging.getLogger(__name__)


def assert_permissions(path: str) -> None:
    """Verify that every credential file in ``path`` is owner-only.

    Only regular files directly inside ``path`` are inspected, in sorted
    name order. The check has no side effects.

    :param str path: credentials directory

    :raises .CredentialsNotFound: if ``path`` does not exist
    :raises .CredentialsNotADirectory: if ``path`` is not a directory
    :raises .InsecurePermissions: for the first file granting any
        permission to group or others

    """
    if not os.path.exists(path):
        raise errors.CredentialsNotFound(
            "Credentials directory {0} does not exist".format(path))
    if not os.path.isdir(path):
        raise errors.CredentialsNotADirectory(
            "Credentials path {0} is not a directory".format(path))

    for name in sorted(os.listdir(path)):
        file_path = os.path.join(path, name)
        # lstat: a symlink is judged by itself, not by what it points to
        st = os.lstat(file_path)
        if not stat.S_ISREG(st.st_mode):
            continue
        mode = stat.S_IMODE(st.st_mode)
        if mode & filesystem.GROUP_OTHER_MASK:
            raise errors.InsecurePermissions(file_path, mode)
    logger.debug("Credentials directory %s is owner-only", path)


def hmac_credentials_path(credentials_dir: str, server_url: str) -> str:
    """Path of the file holding HMAC credentials for ``server_url``."""
    digest = hashlib.sha256(server_url.encode('utf-8')).hexdigest()[:12]
    return os.path.join(credentials_dir, "hmac-{0}.ini".format(digest))


def save_hmac_credentials(credentials_dir: str, server_url: str,
                          hmac_id: str, hmac_key: str) -> str:
    """Store enterprise CA credentials as an owner-only INI file.

    :returns: path of the written file
    :rtype: str

    """
    util.make_or_verify_dir(credentials_dir, constants.CONFIG_DIRS_MODE)
    path = hmac_credentials_path(credentials_dir, server_url)
    conf = configobj.ConfigObj()
    conf['server_url'] = server_url
    conf['hmac_id'] = hmac_id
    conf['hmac_key'] = hmac_key
    content = "\n".join(conf.write()) + "\n"
    try:
        util.atomic_write(path, content.encode('utf-8'), chmod=constants.PRIVATE_FILE_MODE)
    except OSError as error:
        raise errors.ConfigurationError(
            "Unable to store enterprise CA credentials in {0}: {1}".format(path, error)) from error
    logger.debug("Stored enterprise CA credentials for %s in %s", server_url, path)
    return path


def load_hmac_credentials(path: str) -> Tuple[str, str]:
    """Read the HMAC id and key written by `save_hmac_credentials`.

    :raises .ConfigurationError: if the file is missing or incomplete

    """
    try:
        credentials = dns_common.CredentialsConfiguration(path)
        credentials.require({
            'hmac_id': 'HMAC key identifier issued by the enterprise CA',
            'hmac_key': 'HMAC secret issued by the enterprise CA',
        })
    except errors.PluginError as error:
        raise errors.ConfigurationError(str(error)) from error
    return credentials.conf('hmac_id') or "", credentials.conf('hmac_key') or ""
