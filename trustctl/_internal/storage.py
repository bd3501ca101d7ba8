"""Renewal metadata storage."""
import datetime
import json
import logging
import os
from typing import Any
from typing import List
from typing import Optional
from typing import Sequence
from typing import Tuple

import josepy as jose

from trustctl import errors
from trustctl import util
from trustctl._internal import constants
from trustctl._internal import fields

logger = logging.getLogger(__name__)

METADATA_FILE = "metadata.json"


def _decode_domains(value: Any) -> Tuple[str, ...]:
    if not isinstance(value, list) or not all(
            isinstance(domain, str) and domain for domain in value):
        raise jose.DeserializationError("domains must be a list of hostnames")
    return tuple(value)


class CertMetadata(jose.JSONObjectWithFields):
    """Everything needed to renew a certificate unattended.

    One record exists per primary domain; it is created at first issuance
    and updated by every renewal attempt.

    """
    domains: Tuple[str, ...] = jose.field("domains", decoder=_decode_domains)
    validation_method: str = jose.field("validation_method")
    dns_provider: Optional[str] = jose.field("dns_provider", omitempty=True)
    server_url: Optional[str] = jose.field("server_url", omitempty=True)
    hmac_id_cred: Optional[str] = jose.field("hmac_id_cred", omitempty=True)
    credentials_path: str = jose.field("credentials_path")
    installer_type: Optional[str] = jose.field("installer_type", omitempty=True)
    cert_path: str = jose.field("cert_path")
    key_path: str = jose.field("key_path")
    chain_path: Optional[str] = jose.field("chain_path", omitempty=True)
    issued_at: datetime.datetime = fields.rfc3339("issued_at")
    expires_at: Optional[datetime.datetime] = fields.rfc3339("expires_at", omitempty=True)
    renewal_attempts: int = jose.field("renewal_attempts", default=0)
    last_renewal_at: Optional[datetime.datetime] = fields.rfc3339(
        "last_renewal_at", omitempty=True)

    def __init__(self, **kwargs: Any) -> None:
        # JSON arrays decode to tuples; keep both construction paths equal
        if 'domains' in kwargs and kwargs['domains'] is not None:
            kwargs['domains'] = tuple(kwargs['domains'])
        super().__init__(**kwargs)

    @property
    def primary(self) -> str:
        """Primary domain of the record."""
        return self.domains[0]


class MetadataStore:
    """Metadata records stored as ``<certs_dir>/<primary>/metadata.json``.

    :ivar str certs_dir: root of the per-domain certificate directories

    """
    def __init__(self, certs_dir: str) -> None:
        self.certs_dir = certs_dir

    def path(self, domain: str) -> str:
        """Location of the record for ``domain``."""
        return os.path.join(self.certs_dir, domain, METADATA_FILE)

    def store(self, record: CertMetadata) -> None:
        """Persist ``record``, replacing any previous record atomically.

        :raises .EmptyDomainSet: if the record has no domains
        :raises .PersistenceError: if the record cannot be written

        """
        if not record.domains:
            raise errors.EmptyDomainSet("Cannot store certificate metadata without domains")
        path = self.path(record.primary)
        try:
            util.make_or_verify_dir(self.certs_dir, constants.CONFIG_DIRS_MODE)
            util.make_or_verify_dir(os.path.dirname(path), constants.CONFIG_DIRS_MODE)
            util.atomic_write(path, record.json_dumps_pretty().encode('utf-8'),
                              chmod=constants.PRIVATE_FILE_MODE)
        except OSError as error:
            raise errors.PersistenceError(
                "Unable to store metadata for {0} in {1}: {2}".format(
                    record.primary, path, error)) from error
        logger.debug("Stored metadata for %s in %s", record.primary, path)

    def load(self, domain: str) -> CertMetadata:
        """Load the record of a primary domain.

        :raises .MetadataNotFound: if no record exists
        :raises .PersistenceError: if the record is unreadable or malformed

        """
        path = self.path(domain)
        if not os.path.isfile(path):
            raise errors.MetadataNotFound("No metadata found for {0} at {1}".format(domain, path))
        try:
            with open(path) as metadata_file:
                data = json.load(metadata_file)
            if not isinstance(data, dict):
                raise jose.DeserializationError("expected a JSON object")
            record = CertMetadata.from_json(data)
        except OSError as error:
            raise errors.PersistenceError(
                "Unable to read metadata {0}: {1}".format(path, error)) from error
        except (jose.DeserializationError, ValueError) as error:
            raise errors.PersistenceError(
                "Malformed metadata {0}: {1}".format(path, error)) from error
        if not record.domains:
            raise errors.PersistenceError("Malformed metadata {0}: no domains".format(path))
        return record

    def list_all(self) -> List[str]:
        """Primary domains of every well-formed record.

        A missing certificate root yields an empty list; malformed records
        are skipped with a warning.

        """
        try:
            candidates = os.listdir(self.certs_dir)
        except FileNotFoundError:
            return []
        except OSError as error:
            raise errors.PersistenceError(
                "Unable to list {0}: {1}".format(self.certs_dir, error)) from error

        domains = []
        for name in candidates:
            if not os.path.isfile(self.path(name)):
                continue
            try:
                self.load(name)
            except errors.PersistenceError as error:
                logger.warning("Skipping %s: %s", name, error)
                continue
            domains.append(name)
        return domains


def new_record(domains: Sequence[str], **kwargs: Any) -> CertMetadata:
    """Build the record for a first issuance."""
    kwargs.setdefault('renewal_attempts', 0)
    kwargs.setdefault('issued_at', util.now())
    return CertMetadata(domains=tuple(domains), **kwargs)
