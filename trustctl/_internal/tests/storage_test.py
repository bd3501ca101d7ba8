"""Tests for trustctl._internal.storage."""
import datetime
import json
import os
import stat
import sys
from unittest import mock

import pytest

from trustctl import errors
from trustctl._internal import storage
import trustctl.tests.util as test_util


def _record(*domains, **kwargs):
    values = dict(
        validation_method="http",
        credentials_path="/opt/trustctl/credentials",
        cert_path="/opt/trustctl/certs/{0}/fullchain.pem".format(domains[0]),
        key_path="/opt/trustctl/certs/{0}/privkey.pem".format(domains[0]),
        issued_at=datetime.datetime(2024, 5, 1, 12, 0, 0, tzinfo=datetime.timezone.utc),
    )
    values.update(kwargs)
    return storage.new_record(domains, **values)


class CertMetadataTest(test_util.TempDirTestCase):
    """Tests for trustctl._internal.storage.CertMetadata."""

    def test_optional_fields_are_omitted(self):
        data = json.loads(_record("example.com").json_dumps())
        assert set(data) == {"domains", "validation_method", "credentials_path",
                             "cert_path", "key_path", "issued_at", "renewal_attempts"}
        assert data["renewal_attempts"] == 0
        assert data["issued_at"] == "2024-05-01T12:00:00Z"

    def test_primary(self):
        assert _record("a.example.com", "b.example.com").primary == "a.example.com"


class MetadataStoreTest(test_util.TempDirTestCase):
    """Tests for trustctl._internal.storage.MetadataStore."""

    def setUp(self):
        super().setUp()
        self.certs_dir = os.path.join(self.tempdir, "certs")
        self.store = storage.MetadataStore(self.certs_dir)

    def test_round_trip(self):
        record = _record(
            "example.com", "www.example.com",
            validation_method="dns", dns_provider="rfc2136",
            server_url="https://ca.example.com", hmac_id_cred="/creds/hmac-abc.ini",
            installer_type="nginx", chain_path="/opt/trustctl/certs/example.com/chain.pem",
            expires_at=datetime.datetime(2024, 7, 30, 12, 0, 0, tzinfo=datetime.timezone.utc),
            renewal_attempts=3,
            last_renewal_at=datetime.datetime(2024, 6, 1, tzinfo=datetime.timezone.utc))
        self.store.store(record)
        loaded = self.store.load("example.com")
        assert loaded == record
        assert loaded.domains == ("example.com", "www.example.com")

    def test_round_trip_with_now(self):
        from trustctl import util
        record = _record("example.com", issued_at=util.now(), last_renewal_at=util.now())
        self.store.store(record)
        assert self.store.load("example.com") == record

    @test_util.skip_on_windows("Owner-only permissions are a POSIX concept")
    def test_modes(self):
        self.store.store(_record("example.com"))
        path = self.store.path("example.com")
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600
        assert stat.S_IMODE(os.stat(os.path.dirname(path)).st_mode) == 0o700

    def test_last_write_wins(self):
        self.store.store(_record("example.com"))
        self.store.store(_record("example.com", renewal_attempts=1))
        assert self.store.load("example.com").renewal_attempts == 1

    def test_empty_domain_set(self):
        record = _record("example.com").update(domains=())
        with pytest.raises(errors.EmptyDomainSet):
            self.store.store(record)

    def test_store_os_error(self):
        with mock.patch("trustctl._internal.storage.util.atomic_write",
                        side_effect=OSError("disk full")):
            with pytest.raises(errors.PersistenceError, match="disk full"):
                self.store.store(_record("example.com"))

    def test_load_missing(self):
        with pytest.raises(errors.MetadataNotFound):
            self.store.load("example.com")

    def test_load_malformed(self):
        test_util.write_file(self.store.path("example.com"), '{"domains": ')
        with pytest.raises(errors.PersistenceError):
            self.store.load("example.com")

    def test_load_missing_field(self):
        test_util.write_file(self.store.path("example.com"), '{"domains": ["example.com"]}')
        with pytest.raises(errors.PersistenceError):
            self.store.load("example.com")

    def test_load_not_an_object(self):
        for content in ("5", "null", '["example.com"]'):
            test_util.write_file(self.store.path("example.com"), content)
            with pytest.raises(errors.PersistenceError):
                self.store.load("example.com")

    def test_load_domains_must_be_a_list(self):
        data = json.loads(_record("example.com").json_dumps())
        for domains in ("x.example.com", ["example.com", 5], ["example.com", ""]):
            data["domains"] = domains
            test_util.write_file(self.store.path("example.com"), json.dumps(data))
            with pytest.raises(errors.PersistenceError, match="domains"):
                self.store.load("example.com")

    def test_load_bad_timestamp(self):
        data = json.loads(_record("example.com").json_dumps())
        data["issued_at"] = 5
        test_util.write_file(self.store.path("example.com"), json.dumps(data))
        with pytest.raises(errors.PersistenceError):
            self.store.load("example.com")

    def test_list_all_skips_non_objects(self):
        self.store.store(_record("a.example.com"))
        test_util.write_file(self.store.path("five.example.com"), "5")
        test_util.write_file(self.store.path("null.example.com"), "null")
        with mock.patch("trustctl._internal.storage.logger") as mock_logger:
            assert self.store.list_all() == ["a.example.com"]
        assert mock_logger.warning.call_count == 2

    def test_list_all_missing_root(self):
        assert self.store.list_all() == []

    def test_list_all_skips_malformed(self):
        self.store.store(_record("a.example.com"))
        self.store.store(_record("b.example.com"))
        test_util.write_file(self.store.path("bad.example.com"), "not json")
        os.makedirs(os.path.join(self.certs_dir, "empty.example.com"))
        with mock.patch("trustctl._internal.storage.logger") as mock_logger:
            assert sorted(self.store.list_all()) == ["a.example.com", "b.example.com"]
        assert mock_logger.warning.call_count == 1


if __name__ == "__main__":
    sys.exit(pytest.main(sys.argv[1:] + [__file__]))  # pragma: no cover
