"""Functionality for autorenewal and associated juggling of configurations"""
import logging
import os
import traceback
from typing import Iterable
from typing import List
from typing import Tuple

from trustctl import configuration
from trustctl import errors
from trustctl import util
from trustctl._internal import account
from trustctl._internal import ca
from trustctl._internal import client
from trustctl._internal import creds
from trustctl._internal import storage
from trustctl._internal.display import obj as display_obj
from trustctl.display import util as display_util

logger = logging.getLogger(__name__)


def _hmac_credentials(record: storage.CertMetadata) -> Tuple[str, str]:
    if not record.server_url:
        return "", ""
    if not record.hmac_id_cred:
        raise errors.MissingEnterpriseCredentials(
            "No stored enterprise CA credentials for {0}; run request again with "
            "--serverurl, --hmac-id and --hmac-key".format(record.primary))
    return creds.load_hmac_credentials(record.hmac_id_cred)


def renew_cert(config: configuration.NamespaceConfig,
               record: storage.CertMetadata) -> storage.CertMetadata:
    """Obtain and install a new certificate for a stored record.

    Every input is taken from ``record``; only filesystem roots, waits and
    the account email come from ``config``.

    :returns: ``record`` updated with the new certificate
    :rtype: trustctl._internal.storage.CertMetadata

    """
    creds.assert_permissions(record.credentials_path)
    server_url = record.server_url or ""
    accounts = account.AccountFileStorage(record.credentials_path)
    acc = account.ensure_account(accounts, ca.ca_name(server_url), config.email,
                                 record.primary)
    hmac_id, hmac_key = _hmac_credentials(record)
    ca_client = ca.Resolver(config.enterprise_latency).resolve(server_url, hmac_id, hmac_key)
    provider = client.load_provider(config, record.validation_method, record.dns_provider,
                                    record.credentials_path)

    client.make_validator(config, record.validation_method, provider, acc).validate(
        record.domains)
    meta = ca_client.request_certificate(record.domains)
    paths = ca.install_certificate(meta, os.path.dirname(record.cert_path))
    server = client.run_installer(config, record.installer_type or "auto",
                                  record.domains, paths)
    return record.update(
        cert_path=paths.fullchain_path, key_path=paths.key_path,
        chain_path=paths.chain_path, issued_at=util.now(),
        expires_at=client.expiry(meta),
        installer_type=server or record.installer_type)


def renew_one(config: configuration.NamespaceConfig, metadata: storage.MetadataStore,
              domain: str) -> storage.CertMetadata:
    """Renew the certificate of ``domain`` and record the attempt.

    The attempt counter and ``last_renewal_at`` are stored whether or not
    the renewal succeeds.

    """
    record = metadata.load(domain)
    outcome = record
    try:
        outcome = renew_cert(config, record)
    finally:
        outcome = outcome.update(renewal_attempts=record.renewal_attempts + 1,
                                 last_renewal_at=util.now())
        try:
            metadata.store(outcome)
        except errors.PersistenceError as error:
            logger.warning("Unable to record the renewal attempt for %s: %s", domain, error)
    return outcome


def report(msgs: Iterable[str], category: str) -> str:
    """Format a results report for a category of renewal outcomes"""
    lines = ("%s (%s)" % (m, category) for m in msgs)
    return "  " + "\n  ".join(lines)


def _renew_describe_results(renew_successes: List[str], renew_failures: List[str]) -> None:
    """Print a report to the terminal about the results of the renewal process.

    :param list renew_successes: primary domains which were renewed
    :param list renew_failures: primary domains which failed to be renewed

    """
    notify = display_util.notify
    notify_error = logger.error

    notify(f'\n{display_obj.SIDE_FRAME}')

    if renew_successes and not renew_failures:
        notify("Congratulations, all renewals succeeded: ")
        notify(report(renew_successes, "success"))
    elif renew_failures and not renew_successes:
        notify_error("All renewals failed. The following certificates could "
                     "not be renewed:")
        notify_error(report(renew_failures, "failure"))
    elif renew_failures and renew_successes:
        notify("The following renewals succeeded:")
        notify(report(renew_successes, "success") + "\n")
        notify_error("The following renewals failed:")
        notify_error(report(renew_failures, "failure"))

    notify(display_obj.SIDE_FRAME)


def handle_renewal_request(config: configuration.NamespaceConfig) -> None:
    """Renew every stored certificate and report results.

    Domains are processed one at a time. A failure is logged and reported
    in the summary without stopping the remaining domains.

    """
    metadata = storage.MetadataStore(config.certs_dir)
    domains = metadata.list_all()
    if not domains:
        display_util.notify("No certificates found in {0}; nothing to renew.".format(
            config.certs_dir))
        return

    renew_successes = []
    renew_failures = []

    for domain in domains:
        display_util.notify("Processing " + domain)
        try:
            renew_one(config, metadata, domain)
        except Exception as e:  # pylint: disable=broad-except
            logger.error("Failed to renew certificate %s with error: %s", domain, e)
            logger.debug("Traceback was:\n%s", traceback.format_exc())
            renew_failures.append(domain)
        else:
            renew_successes.append(domain)

    _renew_describe_results(renew_successes, renew_failures)

    logger.debug("%d renewal(s) succeeded, %d failed",
                 len(renew_successes), len(renew_failures))
