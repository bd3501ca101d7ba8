"""trustctl client interfaces."""
from abc import ABCMeta
from abc import abstractmethod
from typing import Optional
from typing import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from trustctl._internal.ca import CertificateMeta


class DNSProvider(metaclass=ABCMeta):
    """DNS provider used to answer dns challenges.

    Implementations are found by name, either through the
    ``trustctl.dns_providers`` entry point group, for example (excerpt
    from a ``setup.py`` script)::

      setup(
          ...
          entry_points={
              'trustctl.dns_providers': [
                  'example = example_project.provider:Provider',
              ],
          },
      )

    or as a ``<name>.py`` module in the plugins directory that exports a
    ``Provider`` attribute. When ``Provider`` is a class or a factory it is
    called with the path of the credentials directory.

    Duck-typed objects with callable ``present`` and ``cleanup`` methods
    are accepted as well; inheriting from this class is not required.

    """

    @abstractmethod
    def present(self, domain: str, token: str, key_authorization: str) -> None:
        """Publish the challenge record for ``domain``.

        :param str domain: domain being validated
        :param str token: challenge token
        :param str key_authorization: key authorization to publish

        :raises Exception: if the record could not be published

        """

    @abstractmethod
    def cleanup(self, domain: str, token: str, key_authorization: str) -> None:
        """Remove the challenge record published by `present`.

        Errors are logged by the caller and otherwise ignored.

        """

    def check_propagation(self, domain: str, token: str,
                          key_authorization: str) -> Optional[bool]:
        """Report whether the published record is visible.

        :returns: True or False if visibility can be observed, None if
            this provider cannot tell
        :rtype: bool or None

        """
        return None


class CAClient(metaclass=ABCMeta):
    """Certificate authority able to issue certificates for domains."""

    issuer: str = NotImplemented
    """Human readable name of the issuing authority."""

    @abstractmethod
    def request_certificate(self, domains: Sequence[str]) -> 'CertificateMeta':
        """Obtain a certificate covering ``domains``.

        Either the full certificate material is returned or a single
        descriptive error is raised; there are no partial results.

        :param list domains: domain set; the first entry is the primary domain

        :raises .IssuanceError: if no certificate could be obtained

        :returns: issued certificate material
        :rtype: `.CertificateMeta`

        """
        raise NotImplementedError()


class AccountStorage(metaclass=ABCMeta):
    """Accounts storage interface."""

    @abstractmethod
    def load(self, ca_name: str):  # pragma: no cover
        """Load the account registered with ``ca_name``.

        :raises .AccountNotFound: if account could not be found
        :raises .AccountStorageError: if account could not be loaded

        """
        raise NotImplementedError()

    @abstractmethod
    def save(self, account) -> None:  # pragma: no cover
        """Save account.

        :raises .AccountStorageError: if account could not be saved

        """
        raise NotImplementedError()
