"""trustctl main entry point."""
from contextlib import contextmanager
import logging
import os
import sys
from typing import Callable
from typing import Dict
from typing import Generator
from typing import IO
from typing import List
from typing import Optional
from typing import Union

import trustctl
from trustctl import configuration
from trustctl import errors
from trustctl._internal import account
from trustctl._internal import ca
from trustctl._internal import cli
from trustctl._internal import client
from trustctl._internal import constants
from trustctl._internal import creds
from trustctl._internal import log
from trustctl._internal import renewal
from trustctl._internal import storage
from trustctl._internal.display import obj as display_obj
from trustctl.display import util as display_util

logger = logging.getLogger(__name__)


def _check_request_flags(config: configuration.NamespaceConfig) -> List[str]:
    """Validate the request flags before anything touches the disk.

    :returns: the sanitized domain set
    :rtype: list

    :raises .ConfigurationError: if a flag is missing, unknown or invalid

    """
    domains = config.domains
    if not domains:
        raise errors.ConfigurationError("request requires at least one domain (--domains)")
    if config.validation not in constants.VALIDATION_METHODS:
        raise errors.ConfigurationError(
            "Unknown validation method {0!r}; choose from {1}".format(
                config.validation, ", ".join(constants.VALIDATION_METHODS)))
    if config.validation == "dns" and not config.dns_provider:
        raise errors.ConfigurationError("--validation dns requires --dns-provider")
    if config.validation != "dns" and config.dns_provider:
        raise errors.ConfigurationError(
            "--dns-provider can only be used with --validation dns")
    if config.installer not in constants.INSTALLER_CHOICES:
        raise errors.ConfigurationError(
            "Unknown installer {0!r}; choose from {1}".format(
                config.installer, ", ".join(constants.INSTALLER_CHOICES)))
    if config.server_url and not (config.hmac_id and config.hmac_key):
        raise errors.MissingEnterpriseCredentials(
            "--serverurl {0} requires both --hmac-id and --hmac-key".format(config.server_url))
    return domains


def request(config: configuration.NamespaceConfig) -> None:
    """Obtain a certificate, install it and record how to renew it.

    This implements the 'request' subcommand.

    :param config: Configuration object
    :type config: configuration.NamespaceConfig

    :returns: `None`
    :rtype: None

    """
    domains = _check_request_flags(config)
    primary = domains[0]
    server_url = config.server_url

    accounts = account.AccountFileStorage(config.credentials_dir)
    acc = account.ensure_account(accounts, ca.ca_name(server_url), config.email, primary)
    hmac_cred = None
    if server_url:
        hmac_cred = creds.save_hmac_credentials(
            config.credentials_dir, server_url, config.hmac_id, config.hmac_key)

    creds.assert_permissions(config.credentials_dir)
    ca_client = ca.Resolver(config.enterprise_latency).resolve(
        server_url, config.hmac_id, config.hmac_key)
    provider = client.load_provider(config, config.validation, config.dns_provider,
                                    config.credentials_dir)

    client.make_validator(config, config.validation, provider, acc).validate(domains)
    meta = ca_client.request_certificate(domains)
    paths = ca.install_certificate(meta, config.cert_dir(primary))
    display_util.notify("Certificate for {0} saved at {1}".format(
        ", ".join(domains), paths.fullchain_path))

    server = client.run_installer(config, config.installer, domains, paths)

    record = storage.new_record(
        domains,
        validation_method=config.validation,
        dns_provider=config.dns_provider or None,
        server_url=server_url or None,
        hmac_id_cred=hmac_cred,
        credentials_path=config.credentials_dir,
        installer_type=server,
        cert_path=paths.fullchain_path,
        key_path=paths.key_path,
        chain_path=paths.chain_path,
        expires_at=client.expiry(meta))
    try:
        storage.MetadataStore(config.certs_dir).store(record)
    except errors.PersistenceError as error:
        logger.warning("The certificate was issued but its renewal metadata could not "
                       "be saved: %s", error)
        return

    display_util.notification(
        "Successfully received certificate.\n"
        "Certificate is saved at: {0}\n"
        "Key is saved at:         {1}\n"
        "Run 'trustctl renew' periodically to keep it up to date.".format(
            paths.fullchain_path, paths.key_path), wrap=False)


def renew(config: configuration.NamespaceConfig) -> None:
    """Renew previously-obtained certificates.

    This implements the 'renew' subcommand.

    :param config: Configuration object
    :type config: configuration.NamespaceConfig

    :returns: `None`
    :rtype: None

    """
    renewal.handle_renewal_request(config)


VERBS: Dict[str, Callable[[configuration.NamespaceConfig], None]] = {
    "request": request,
    "renew": renew,
}


@contextmanager
def make_displayer(config: configuration.NamespaceConfig
                   ) -> Generator[display_obj.FileDisplay, None, None]:
    """Creates a display object appropriate to the flags in the supplied config.

    :param config: Configuration object

    :returns: Display object

    """
    devnull: Optional[IO] = None

    if config.quiet:
        devnull = open(os.devnull, "w")  # pylint: disable=consider-using-with
        displayer = display_obj.FileDisplay(devnull)
    else:
        displayer = display_obj.FileDisplay(sys.stdout)

    try:
        yield displayer
    finally:
        if devnull:
            devnull.close()


def main(cli_args: Optional[List[str]] = None) -> Optional[Union[str, int]]:
    """Run trustctl.

    :param cli_args: command line to trustctl, defaults to ``sys.argv[1:]``
    :type cli_args: `list` of `str`

    :returns: value for `sys.exit` about the exit status of trustctl
    :rtype: `str` or `int` or `None`

    """
    if not cli_args:
        cli_args = sys.argv[1:]

    log.pre_arg_parse_setup()

    logger.debug("trustctl version: %s", trustctl.__version__)
    # do not log the arguments, they may contain the HMAC key
    logger.debug("Location of trustctl entry point: %s", sys.argv[0])

    # note: arg parser internally handles --help (and exits afterwards)
    config = cli.prepare_and_parse_args(cli_args)
    log.post_arg_parse_setup(config)

    with make_displayer(config) as displayer:
        display_obj.set_display(displayer)

        try:
            VERBS[config.verb](config)
        except errors.Error as error:
            logger.debug("%s failed:", config.verb, exc_info=True)
            return "{0} failed: {1}".format(config.verb, error)
    return 0
