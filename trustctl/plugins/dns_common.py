"""Common code for DNS provider plugins."""
import abc
import hashlib
import logging
import os
from typing import Callable
from typing import List
from typing import Mapping
from typing import Optional

import configobj
import josepy as jose

from trustctl import errors
from trustctl import interfaces
from trustctl.compat import filesystem

logger = logging.getLogger(__name__)

CHALLENGE_LABEL = "_acme-challenge"
"""Label prepended to the domain to name the challenge TXT record."""


class DNSProviderBase(interfaces.DNSProvider, metaclass=abc.ABCMeta):
    """Base class for DNS providers publishing TXT challenge records.

    Subclasses implement `_perform` and `_cleanup` in terms of the record
    name and the TXT value instead of the raw challenge.

    :ivar str credentials_dir: directory holding provider credentials

    """

    credentials_file: str = NotImplemented
    """Basename of the credentials INI file inside ``credentials_dir``."""

    def __init__(self, credentials_dir: str) -> None:
        self.credentials_dir = credentials_dir
        self._credentials: Optional[CredentialsConfiguration] = None

    def present(self, domain: str, token: str, key_authorization: str) -> None:
        self._perform(domain, validation_domain_name(domain),
                      txt_record_value(key_authorization))

    def cleanup(self, domain: str, token: str, key_authorization: str) -> None:
        self._cleanup(domain, validation_domain_name(domain),
                      txt_record_value(key_authorization))

    @abc.abstractmethod
    def _perform(self, domain: str, validation_name: str, validation: str) -> None:
        """
        Performs a dns-01 challenge by creating a DNS TXT record.

        :param str domain: The domain being validated.
        :param str validation_name: The validation record domain name.
        :param str validation: The validation record content.
        :raises errors.PluginError: If the challenge cannot be performed
        """

    @abc.abstractmethod
    def _cleanup(self, domain: str, validation_name: str, validation: str) -> None:
        """
        Deletes the DNS TXT record which would have been created by `_perform`.

        Fails gracefully if no such record exists.

        :param str domain: The domain being validated.
        :param str validation_name: The validation record domain name.
        :param str validation: The validation record content.
        """

    def _configure_credentials(self, required_variables: Mapping[str, str]
                               ) -> 'CredentialsConfiguration':
        """Load and check the provider credentials file once.

        :raises errors.PluginError: If the file is missing or incomplete.
        """
        if self._credentials is None:
            path = os.path.join(self.credentials_dir, self.credentials_file)
            credentials = CredentialsConfiguration(path)
            credentials.require(required_variables)
            self._credentials = credentials
        return self._credentials


def validation_domain_name(domain: str) -> str:
    """Name of the TXT record answering the challenge for ``domain``."""
    return "{0}.{1}".format(CHALLENGE_LABEL, domain)


def txt_record_value(key_authorization: str) -> str:
    """TXT record content for a key authorization.

    :returns: base64url encoded SHA-256 digest of the key authorization
    :rtype: str
    """
    digest = hashlib.sha256(key_authorization.encode('utf-8')).digest()
    return jose.b64encode(digest).decode('ascii')


class CredentialsConfiguration:
    """Represents a user-supplied file which stores API credentials."""

    def __init__(self, filename: str, mapper: Callable[[str], str] = lambda x: x) -> None:
        """
        :param str filename: A path to the configuration file.
        :param callable mapper: A transformation to apply to configuration key names
        :raises errors.PluginError: If the file does not exist or is not a valid format.
        """
        validate_file_permissions(filename)

        try:
            self.confobj = configobj.ConfigObj(filename)
        except configobj.ConfigObjError as e:
            logger.debug(
                "Error parsing credentials configuration '%s': %s",
                filename,
                e,
                exc_info=True
            )
            raise errors.PluginError(
                "Error parsing credentials configuration '{}': {}".format(
                    filename,
                    e
                )
            )

        self.mapper = mapper

    def require(self, required_variables: Mapping[str, str]) -> None:
        """Ensures that the supplied set of variables are all present in the file.

        :param dict required_variables: Map of variable which must be present to error to display.
        :raises errors.PluginError: If one or more are missing.
        """
        messages = []

        for var in required_variables:
            if not self._has(var):
                messages.append('Property "{0}" not found (should be {1}).'
                                .format(self.mapper(var), required_variables[var]))
            elif not self._get(var):
                messages.append('Property "{0}" not set (should be {1}).'
                                .format(self.mapper(var), required_variables[var]))

        if messages:
            raise errors.PluginError(
                'Missing {0} in credentials configuration file {1}:\n * {2}'.format(
                        'property' if len(messages) == 1 else 'properties',
                        self.confobj.filename,
                        '\n * '.join(messages)
                    )
            )

    def conf(self, var: str) -> Optional[str]:
        """Find a configuration value for variable `var`, as transformed by `mapper`.

        :param str var: The variable to get.
        :returns: The value of the variable, if it exists.
        :rtype: str or None
        """

        return self._get(var)

    def _has(self, var: str) -> bool:
        return self.mapper(var) in self.confobj

    def _get(self, var: str) -> Optional[str]:
        return self.confobj.get(self.mapper(var))


def validate_file(filename: str) -> None:
    """Ensure that the specified file exists."""

    if not os.path.exists(filename):
        raise errors.PluginError('File not found: {0}'.format(filename))

    if os.path.isdir(filename):
        raise errors.PluginError('Path is a directory: {0}'.format(filename))


def validate_file_permissions(filename: str) -> None:
    """Ensure that the specified file exists and warn about unsafe permissions."""

    validate_file(filename)

    if filesystem.has_group_or_world_permissions(filename):
        logger.warning('Unsafe permissions on credentials configuration file: %s', filename)


def base_domain_name_guesses(domain: str) -> List[str]:
    """Return a list of progressively less-specific domain names.

    One of these will probably be the domain name known to the DNS provider.

    :Example:

    >>> base_domain_name_guesses('foo.bar.baz.example.com')
    ['foo.bar.baz.example.com', 'bar.baz.example.com', 'baz.example.com', 'example.com', 'com']

    :param str domain: The domain for which to return guesses.
    :returns: The a list of less specific domain names.
    :rtype: list
    """

    fragments = domain.split('.')
    return ['.'.join(fragments[i:]) for i in range(0, len(fragments))]
