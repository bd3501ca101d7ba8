"""trustctl user-supplied configuration."""
import argparse
import os
from typing import Any
from typing import List
from typing import Optional
from typing import Sequence

from trustctl import util
from trustctl._internal import constants


class NamespaceConfig:
    """Configuration wrapper around :class:`argparse.Namespace`.

    The following paths default to directories under
    :attr:`~trustctl.configuration.NamespaceConfig.config_dir` named in
    :py:mod:`trustctl._internal.constants`, unless they were set
    explicitly:

      - `plugins_dir`
      - `credentials_dir`
      - `certs_dir`
      - `logs_dir`

    Any other attribute is looked up on the wrapped namespace.

    :ivar namespace: Namespace typically produced by
        :meth:`argparse.ArgumentParser.parse_args`.
    :type namespace: :class:`argparse.Namespace`

    """

    def __init__(self, namespace: argparse.Namespace) -> None:
        self.namespace: argparse.Namespace
        # Avoid recursion loop because of the delegation defined in __setattr__
        object.__setattr__(self, 'namespace', namespace)

        self.namespace.config_dir = os.path.abspath(self.namespace.config_dir)
        for name, relative in (('plugins_dir', constants.PLUGINS_DIR),
                               ('credentials_dir', constants.CREDENTIALS_DIR),
                               ('certs_dir', constants.CERTS_DIR),
                               ('logs_dir', constants.LOGS_DIR)):
            value = getattr(self.namespace, name, None)
            if value:
                setattr(self.namespace, name, os.path.abspath(value))
            else:
                setattr(self.namespace, name,
                        os.path.join(self.namespace.config_dir, relative))

    # Delegate any attribute not explicitly defined to the underlying namespace object.

    def __getattr__(self, name: str) -> Any:
        return getattr(self.namespace, name)

    def __setattr__(self, name: str, value: Any) -> None:
        setattr(self.namespace, name, value)

    @property
    def config_dir(self) -> str:
        """Configuration directory."""
        return self.namespace.config_dir

    @property
    def plugins_dir(self) -> str:
        """Directory searched for DNS provider plugins."""
        return self.namespace.plugins_dir

    @property
    def credentials_dir(self) -> str:
        """Directory where account records and provider credentials are stored."""
        return self.namespace.credentials_dir

    @property
    def certs_dir(self) -> str:
        """Directory where issued certificates and their metadata are stored."""
        return self.namespace.certs_dir

    @property
    def logs_dir(self) -> str:
        """Logs directory."""
        return self.namespace.logs_dir

    @property
    def domains(self) -> List[str]:
        """Requested domain set; the first entry is the primary domain.

        A comma separated flag value is split and sanity checked on access.

        :raises .ConfigurationError: if a domain is invalid or the flag
            value holds no domain

        """
        domains = getattr(self.namespace, 'domains', None)
        if isinstance(domains, str):
            return util.parse_domains(domains)
        return list(domains or [])

    @property
    def validation(self) -> str:
        """Domain validation method, lower-cased."""
        return (self.namespace.validation or "").lower()

    @property
    def server_url(self) -> str:
        """Enterprise CA URL, empty for the default public CA."""
        return self.namespace.server_url or ""

    @property
    def email(self) -> Optional[str]:
        """Account contact email."""
        return self.namespace.email

    @property
    def nginx_dirs(self) -> Sequence[str]:
        """nginx configuration directories searched for virtual hosts."""
        return getattr(self.namespace, 'nginx_dirs', None) or constants.NGINX_DIRS

    @property
    def apache_dirs(self) -> Sequence[str]:
        """Apache configuration directories searched for virtual hosts."""
        return getattr(self.namespace, 'apache_dirs', None) or constants.APACHE_DIRS

    def cert_dir(self, primary: str) -> str:
        """Directory holding the certificate material for ``primary``."""
        return os.path.join(self.certs_dir, primary)
