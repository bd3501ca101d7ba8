"""Steps shared by the request and renew flows."""
import datetime
import logging
from typing import Optional
from typing import Sequence

from trustctl import configuration
from trustctl import crypto_util
from trustctl import errors
from trustctl import interfaces
from trustctl._internal import account
from trustctl._internal import ca
from trustctl._internal import installer
from trustctl._internal import validation
from trustctl._internal.plugins import loader

logger = logging.getLogger(__name__)


def load_provider(config: configuration.NamespaceConfig, method: str,
                  name: Optional[str], credentials_dir: str
                  ) -> Optional[interfaces.DNSProvider]:
    """Load the DNS provider needed by ``method``, if any.

    :raises .ProviderNotConfigured: for ``dns`` without a provider name

    """
    if (method or "").lower() != "dns":
        return None
    if not name:
        raise errors.ProviderNotConfigured(
            "dns validation requires a DNS provider (--dns-provider)")
    return loader.PluginLoader(config.plugins_dir, credentials_dir).load(name)


def make_validator(config: configuration.NamespaceConfig, method: str,
                   provider: Optional[interfaces.DNSProvider],
                   acc: account.AccountInfo) -> validation.Validator:
    """Validator answering challenges with the key of ``acc``."""
    return validation.Validator(
        method, provider,
        webroot=config.webroot,
        propagation_seconds=config.dns_propagation_seconds,
        propagation_timeout=config.propagation_timeout,
        propagation_interval=config.propagation_interval,
        http_wait_seconds=config.http_wait_seconds,
        account_key=acc.load_key())


def run_installer(config: configuration.NamespaceConfig, mode: str,
                  domains: Sequence[str], paths: ca.CertificatePaths) -> Optional[str]:
    """Install the certificate into the webserver selected by ``mode``.

    ``auto`` detects the webserver and only warns when none is found;
    ``nginx`` and ``apache`` fail instead. ``none`` skips installation.

    :returns: the webserver that was configured, ``none`` when skipped,
        or None when no webserver was found
    :rtype: str or None

    """
    if mode == "none":
        logger.info("Skipping webserver installation")
        return mode

    server = None if mode == "auto" else mode
    inst = installer.Installer(config.nginx_dirs, config.apache_dirs)
    try:
        return inst.install(domains, paths.fullchain_path, paths.key_path, server)
    except errors.NoSupportedServer as error:
        if server is not None:
            raise
        logger.warning("%s. Configure your webserver to use the certificate %s "
                       "and the key %s.", error, paths.fullchain_path, paths.key_path)
        return None


def expiry(meta: ca.CertificateMeta) -> Optional[datetime.datetime]:
    """notAfter of the issued certificate, or None when it cannot be read."""
    try:
        return crypto_util.not_after_from_pem(meta.cert_pem)
    except ValueError as error:
        logger.warning("Unable to read the expiry date of the certificate for %s: %s",
                       meta.domains[0], error)
        return None
