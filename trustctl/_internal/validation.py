"""Domain validation engine.

A `Validator` proves control of every domain in a set using one method:

- ``http``: the key authorization is written below the webroot, where
  the CA would fetch it.
- ``dns``: a DNS provider publishes a TXT record for every domain
  concurrently; the records are removed once propagation is over.
- ``email``: reserved, not implemented.

"""
import concurrent.futures
import logging
import os
import time
from typing import Dict
from typing import List
from typing import NamedTuple
from typing import Optional
from typing import Sequence

import josepy as jose

from trustctl import crypto_util
from trustctl import errors
from trustctl import interfaces
from trustctl import util
from trustctl._internal import constants

logger = logging.getLogger(__name__)

TOKEN_SIZE = 32
"""Number of random bytes in a challenge token."""


class Challenge(NamedTuple):
    """Challenge to answer for one domain."""
    domain: str
    token: str
    key_authorization: str


def make_challenge(domain: str, account_key: jose.JWK) -> Challenge:
    """Create a fresh challenge for ``domain``.

    The key authorization is ``token.thumbprint`` where the thumbprint is
    the base64url encoded JWK thumbprint of the account key.

    """
    token = jose.b64encode(os.urandom(TOKEN_SIZE)).decode('ascii')
    thumbprint = jose.b64encode(account_key.thumbprint()).decode('ascii')
    return Challenge(domain, token, "{0}.{1}".format(token, thumbprint))


class Validator:
    """Drives domain control proof for a set of domains.

    :ivar str method: validation method, matched case-insensitively
    :ivar provider: DNS provider, required for ``dns``
    :ivar str webroot: document root served for ``http``

    """
    def __init__(self, method: str, provider: Optional[interfaces.DNSProvider] = None, *,
                 webroot: str = constants.CLI_DEFAULTS['webroot'],
                 propagation_seconds: float = constants.CLI_DEFAULTS['dns_propagation_seconds'],
                 propagation_timeout: float = constants.CLI_DEFAULTS['propagation_timeout'],
                 propagation_interval: float = constants.CLI_DEFAULTS['propagation_interval'],
                 http_wait_seconds: float = constants.CLI_DEFAULTS['http_wait_seconds'],
                 account_key: Optional[bytes] = None) -> None:
        self.method = (method or "").lower()
        self.provider = provider
        self.webroot = webroot
        self.propagation_seconds = propagation_seconds
        self.propagation_timeout = propagation_timeout
        self.propagation_interval = propagation_interval
        self.http_wait_seconds = http_wait_seconds
        self._account_key = account_key

    def _jwk(self) -> jose.JWK:
        if self._account_key is None:
            logger.debug("No account key given, using an ephemeral key")
            self._account_key = crypto_util.make_key(constants.KEY_SIZE)
        return crypto_util.load_jwk(self._account_key)

    def validate(self, domains: Sequence[str]) -> None:
        """Prove control of every domain in ``domains``.

        Every call creates fresh challenges; retrying simply repeats the
        side effects.

        :raises .UnknownValidationMethod: for an unknown method
        :raises .ValidationNotImplemented: for ``email``
        :raises .ProviderNotConfigured: for ``dns`` without a provider
        :raises .FailedChallenges: if any DNS challenge cannot be presented
        :raises .ValidationError: if a HTTP challenge cannot be written

        """
        if self.method == "dns":
            self._validate_dns(domains)
        elif self.method == "http":
            self._validate_http(domains)
        elif self.method == "email":
            raise errors.ValidationNotImplemented("Email validation is not implemented")
        else:
            raise errors.UnknownValidationMethod(
                "Unknown validation method: {0!r} (choose from {1})".format(
                    self.method, ", ".join(constants.VALIDATION_METHODS)))

    def _validate_http(self, domains: Sequence[str]) -> None:
        key = self._jwk()
        challenge_dir = os.path.join(self.webroot, constants.CHALLENGE_PATH)
        try:
            util.make_or_verify_dir(challenge_dir, constants.CHALLENGE_DIR_MODE)
            for domain in domains:
                challenge = make_challenge(domain, key)
                path = os.path.join(challenge_dir, "{0}.token".format(domain))
                util.atomic_write(path, challenge.key_authorization.encode('ascii'),
                                  chmod=constants.PUBLIC_FILE_MODE)
                logger.debug("Wrote http challenge for %s to %s", domain, path)
        except OSError as error:
            raise errors.ValidationError(
                "Unable to write http challenge below {0}: {1}".format(
                    challenge_dir, error)) from error
        logger.info("Waiting %s seconds for the webserver to serve challenges",
                    self.http_wait_seconds)
        time.sleep(self.http_wait_seconds)

    def _validate_dns(self, domains: Sequence[str]) -> None:
        if self.provider is None:
            raise errors.ProviderNotConfigured(
                "dns validation requires a DNS provider (--dns-provider)")
        key = self._jwk()
        challenges = [make_challenge(domain, key) for domain in domains]

        presented: List[Challenge] = []
        failures: Dict[str, BaseException] = {}
        with concurrent.futures.ThreadPoolExecutor(max_workers=max(len(challenges), 1)) as pool:
            futures = {pool.submit(self.provider.present, *challenge): challenge
                       for challenge in challenges}
            for future in concurrent.futures.as_completed(futures):
                challenge = futures[future]
                error = future.exception()
                if error is None:
                    presented.append(challenge)
                else:
                    logger.debug("Presenting challenge for %s failed", challenge.domain,
                                 exc_info=(type(error), error, error.__traceback__))
                    failures[challenge.domain] = error

        if failures:
            self._cleanup(presented)
            raise errors.FailedChallenges(failures)

        try:
            self._wait_for_propagation(challenges)
        finally:
            self._cleanup(challenges)

    def _wait_for_propagation(self, challenges: Sequence[Challenge]) -> None:
        assert self.provider is not None
        check_propagation = getattr(self.provider, 'check_propagation', None)
        pending = list(challenges)

        def check(domain: str, token: str, key_authorization: str) -> Optional[bool]:
            try:
                return check_propagation(domain, token, key_authorization)
            except Exception as error:  # pylint: disable=broad-except
                raise errors.ValidationError(
                    "Unable to check DNS propagation for {0}: {1}".format(
                        domain, error)) from error

        def _all_visible() -> bool:
            pending[:] = [challenge for challenge in pending
                          if check(*challenge) is not True]
            return not pending

        if check_propagation is not None and all(
                check(*challenge) is not None for challenge in challenges):
            logger.info("Waiting up to %s seconds for DNS records to propagate",
                        self.propagation_timeout)
            if not util.wait_for(_all_visible, self.propagation_timeout,
                                 self.propagation_interval):
                logger.warning("DNS records for %s were not visible after %s seconds; "
                               "continuing anyway",
                               ", ".join(c.domain for c in pending), self.propagation_timeout)
            return

        logger.info("Waiting %s seconds for DNS records to propagate", self.propagation_seconds)
        time.sleep(self.propagation_seconds)

    def _cleanup(self, challenges: Sequence[Challenge]) -> None:
        assert self.provider is not None
        for challenge in challenges:
            try:
                self.provider.cleanup(*challenge)
            except Exception:  # pylint: disable=broad-except
                logger.warning("Failed to clean up the challenge for %s",
                               challenge.domain, exc_info=True)
