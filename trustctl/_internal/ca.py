"""Certificate authority selection and clients.

`Resolver` picks the certificate authority for a request: the default
public ACME CA, or an HMAC authenticated enterprise CA when a server URL
is configured. Both clients expose the single
`~trustctl.interfaces.CAClient.request_certificate` operation.

Neither client speaks a wire protocol. They generate the key and CSR a
real client would submit and return a certificate signed by a throwaway
issuer, which keeps every surrounding contract (file layout, metadata,
installation) exercised end to end.

"""
import hashlib
import hmac
import json
import logging
import os
import time
from typing import NamedTuple
from typing import Optional
from typing import Sequence
from typing import Tuple

from trustctl import crypto_util
from trustctl import errors
from trustctl import interfaces
from trustctl import util
from trustctl._internal import constants
from trustctl.compat import filesystem

logger = logging.getLogger(__name__)


class CertificateMeta(NamedTuple):
    """Material returned by a successful certificate request."""
    domains: Tuple[str, ...]
    cert_pem: bytes
    """Full chain: leaf certificate followed by the chain."""
    key_pem: bytes
    csr_pem: bytes
    chain_pem: bytes
    issuer: str


class CertificatePaths(NamedTuple):
    """Where `install_certificate` put the material."""
    cert_dir: str
    key_path: str
    csr_path: str
    fullchain_path: str
    chain_path: Optional[str]


class _PlaceholderClient(interfaces.CAClient):
    """Issues locally signed certificates under the client's issuer name."""

    def request_certificate(self, domains: Sequence[str]) -> CertificateMeta:
        domains = tuple(domains)
        if not domains:
            raise errors.IssuanceError("Cannot request a certificate without domains")
        try:
            key_pem = crypto_util.make_key(constants.KEY_SIZE)
            csr_pem = crypto_util.make_csr(key_pem, domains)
            self._submit(domains, csr_pem)
            cert_pem, chain_pem = crypto_util.sign_csr(csr_pem, self.issuer)
        except errors.IssuanceError:
            raise
        except Exception as error:  # pylint: disable=broad-except
            logger.debug("Certificate request failed:", exc_info=True)
            raise errors.IssuanceError(
                "{0} failed to issue a certificate for {1}: {2}".format(
                    self.issuer, ", ".join(domains), error)) from error
        logger.info("%s issued a certificate for %s", self.issuer, ", ".join(domains))
        return CertificateMeta(domains=domains, cert_pem=cert_pem + chain_pem,
                               key_pem=key_pem, csr_pem=csr_pem,
                               chain_pem=chain_pem, issuer=self.issuer)

    def _submit(self, domains: Tuple[str, ...], csr_pem: bytes) -> None:
        """Hand the CSR to the authority."""


class ACMEClient(_PlaceholderClient):
    """Default public ACME certificate authority."""

    issuer = "Let's Encrypt"

    def _submit(self, domains: Tuple[str, ...], csr_pem: bytes) -> None:
        logger.debug("Finalizing order for %s", ", ".join(domains))


class EnterpriseClient(_PlaceholderClient):
    """Enterprise certificate authority authenticated with an HMAC key pair.

    :ivar str server_url: enterprise CA endpoint
    :ivar str hmac_id: key identifier sent with each request
    :ivar float latency: simulated round trip time, in seconds

    """

    issuer = "EnterpriseCA"

    def __init__(self, server_url: str, hmac_id: str, hmac_key: str,
                 latency: float = constants.CLI_DEFAULTS['enterprise_latency']) -> None:
        if not server_url:
            raise errors.MissingServerURL("The enterprise CA client requires a server URL")
        self.server_url = server_url
        self.hmac_id = hmac_id
        self._hmac_key = hmac_key
        self.latency = latency

    def sign(self, body: bytes) -> str:
        """HMAC-SHA256 signature of a request body, hex encoded."""
        return hmac.new(self._hmac_key.encode('utf-8'), body, hashlib.sha256).hexdigest()

    def _submit(self, domains: Tuple[str, ...], csr_pem: bytes) -> None:
        body = json.dumps({
            "domains": list(domains),
            "csr": csr_pem.decode('ascii'),
            "timestamp": util.now().isoformat(),
        }, sort_keys=True).encode('utf-8')
        signature = self.sign(body)
        logger.debug("POST %s key_id=%s signature=%s", self.server_url, self.hmac_id, signature)
        time.sleep(self.latency)


class Resolver:
    """Chooses the certificate authority for a request.

    :ivar float enterprise_latency: latency passed to `EnterpriseClient`

    """
    def __init__(self, enterprise_latency: float =
                 constants.CLI_DEFAULTS['enterprise_latency']) -> None:
        self.enterprise_latency = enterprise_latency

    def resolve(self, server_url: str, hmac_id: str, hmac_key: str) -> interfaces.CAClient:
        """Return the client for ``server_url``.

        An empty ``server_url`` always selects the default ACME client, even
        when HMAC credentials are given.

        :raises .MissingEnterpriseCredentials: if ``server_url`` is set but
            the HMAC id or key is empty

        """
        if not server_url:
            return ACMEClient()
        if not hmac_id or not hmac_key:
            raise errors.MissingEnterpriseCredentials(
                "The enterprise CA at {0} requires both --hmac-id and --hmac-key".format(
                    server_url))
        return EnterpriseClient(server_url, hmac_id, hmac_key, latency=self.enterprise_latency)


def ca_name(server_url: str) -> str:
    """Account name of the CA selected by ``server_url``."""
    return constants.ENTERPRISE_CA if server_url else constants.LETSENCRYPT_CA


def install_certificate(meta: Optional[CertificateMeta], cert_dir: str) -> CertificatePaths:
    """Write issued material into ``cert_dir``.

    Every file is replaced atomically; the private key is owner-only.

    :raises .NilCertificate: if ``meta`` is None
    :raises .InstallationError: if a file cannot be written

    """
    if meta is None:
        raise errors.NilCertificate("No certificate to install")

    key_path = os.path.join(cert_dir, "privkey.pem")
    csr_path = os.path.join(cert_dir, "csr.pem")
    fullchain_path = os.path.join(cert_dir, "fullchain.pem")
    chain_path = os.path.join(cert_dir, "chain.pem") if meta.chain_pem else None
    files = [(key_path, meta.key_pem, constants.PRIVATE_FILE_MODE),
             (csr_path, meta.csr_pem, constants.PUBLIC_FILE_MODE),
             (fullchain_path, meta.cert_pem, constants.PUBLIC_FILE_MODE)]
    if chain_path:
        files.append((chain_path, meta.chain_pem, constants.PUBLIC_FILE_MODE))

    try:
        for directory in filter(None, (os.path.dirname(cert_dir), cert_dir)):
            util.make_or_verify_dir(directory, constants.CONFIG_DIRS_MODE)
            if filesystem.has_group_or_world_permissions(directory):
                logger.warning("Restricting permissions of %s to %s",
                               directory, oct(constants.CONFIG_DIRS_MODE))
                filesystem.chmod(directory, constants.CONFIG_DIRS_MODE)
        for path, data, mode in files:
            util.atomic_write(path, data, chmod=mode)
    except OSError as error:
        raise errors.InstallationError(
            "Unable to write certificate material to {0}: {1}".format(cert_dir, error)) from error
    logger.debug("Certificate material for %s written to %s", meta.domains[0], cert_dir)
    return CertificatePaths(cert_dir, key_path, csr_path, fullchain_path, chain_path)
