"""Creates and stores CA accounts."""
import datetime
import json
import logging
import os
from typing import Optional

import josepy as jose

from trustctl import crypto_util
from trustctl import errors
from trustctl import interfaces
from trustctl import util
from trustctl._internal import constants
from trustctl._internal import fields

logger = logging.getLogger(__name__)

ACCOUNT_URL_FMT = "urn:trustctl:account:{ca}:{thumbprint}"
"""Placeholder account URL; a protocol client would store the URL
returned by the CA here."""


class AccountInfo(jose.JSONObjectWithFields):
    """Account registered with a certificate authority.

    :ivar str ca: CA name the account belongs to
    :ivar str email: contact email
    :ivar str account_url: account location at the CA
    :ivar str account_key: path to the PEM account key
    :ivar datetime.datetime created_at: Creation date and time (UTC).
    :ivar datetime.datetime last_updated_at: Last update date and time (UTC).

    """
    ca: str = jose.field("ca")
    email: str = jose.field("email")
    account_url: str = jose.field("account_url")
    account_key: str = jose.field("account_key")
    created_at: datetime.datetime = fields.rfc3339("created_at")
    last_updated_at: datetime.datetime = fields.rfc3339("last_updated_at")

    def load_key(self) -> bytes:
        """Read the PEM account key.

        :raises .AccountStorageError: if the key cannot be read

        """
        try:
            with open(self.account_key, 'rb') as key_file:
                return key_file.read()
        except OSError as error:
            raise errors.AccountStorageError(
                "Unable to read account key {0}: {1}".format(self.account_key, error)) from error


class AccountFileStorage(interfaces.AccountStorage):
    """Accounts file storage.

    Each account lives in ``<credentials_dir>/<ca>-account.json`` next to
    its key ``<credentials_dir>/<ca>-account-key.pem``; both are owner-only.

    :ivar str credentials_dir: directory holding account records

    """
    def __init__(self, credentials_dir: str) -> None:
        self.credentials_dir = credentials_dir

    def _account_path(self, ca_name: str) -> str:
        return os.path.join(self.credentials_dir, "{0}-account.json".format(ca_name))

    def _key_path(self, ca_name: str) -> str:
        return os.path.join(self.credentials_dir, "{0}-account-key.pem".format(ca_name))

    def exists(self, ca_name: str) -> bool:
        """Is there an account for ``ca_name``?"""
        return os.path.isfile(self._account_path(ca_name))

    def load(self, ca_name: str) -> AccountInfo:
        path = self._account_path(ca_name)
        if not os.path.isfile(path):
            raise errors.AccountNotFound(f"Account at {path} does not exist")
        try:
            with open(path) as account_file:
                data = json.load(account_file)
            if not isinstance(data, dict):
                raise jose.DeserializationError("expected a JSON object")
            return AccountInfo.from_json(data)
        except OSError as error:
            raise errors.AccountStorageError(error)
        except (jose.DeserializationError, ValueError) as error:
            raise errors.AccountStorageError(
                "Malformed account record {0}: {1}".format(path, error)) from error

    def save(self, account: AccountInfo) -> None:
        try:
            util.make_or_verify_dir(self.credentials_dir, constants.CONFIG_DIRS_MODE)
            util.atomic_write(self._account_path(account.ca),
                              account.json_dumps_pretty().encode('utf-8'),
                              chmod=constants.PRIVATE_FILE_MODE)
        except OSError as error:
            raise errors.AccountStorageError(error)

    def create(self, ca_name: str, email: str) -> AccountInfo:
        """Register a new account with a freshly generated account key.

        :raises .AccountStorageError: if the account cannot be saved

        """
        key_pem = crypto_util.make_key(constants.KEY_SIZE)
        key_path = self._key_path(ca_name)
        try:
            util.make_or_verify_dir(self.credentials_dir, constants.CONFIG_DIRS_MODE)
            util.atomic_write(key_path, key_pem, chmod=constants.PRIVATE_FILE_MODE)
        except OSError as error:
            raise errors.AccountStorageError(error)

        thumbprint = jose.b64encode(crypto_util.load_jwk(key_pem).thumbprint()).decode('ascii')
        created = util.now()
        account = AccountInfo(
            ca=ca_name, email=email,
            account_url=ACCOUNT_URL_FMT.format(ca=ca_name, thumbprint=thumbprint),
            account_key=key_path, created_at=created, last_updated_at=created)
        self.save(account)
        logger.info("Created %s account for %s", ca_name, email)
        return account


def ensure_account(storage: AccountFileStorage, ca_name: str,
                   email: Optional[str], primary: str) -> AccountInfo:
    """Load the account for ``ca_name``, creating it on first use.

    :param str email: contact email, defaults to ``admin@<primary>``

    """
    if storage.exists(ca_name):
        account = storage.load(ca_name)
        logger.debug("Using existing %s account %s", ca_name, account.account_url)
        return account
    return storage.create(ca_name, email or "admin@{0}".format(primary))
