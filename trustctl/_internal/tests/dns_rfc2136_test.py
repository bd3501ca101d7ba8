"""Tests for trustctl._internal.plugins.dns_rfc2136."""
import os
import sys
import unittest
from unittest import mock

import dns.flags
import dns.name
import dns.rcode
import dns.tsig
import pytest

from trustctl import errors
from trustctl.plugins import dns_common
import trustctl.tests.util as test_util

DOMAIN = 'example.com'
SERVER = '192.0.2.1'
PORT = 53
NAME = 'a-tsig-key.'
SECRET = 'SSB3b25kZXIgd2hvIHdpbGwgYm90aGVyIHRvIGRlY29kZSB0aGlzIHRleHQK'
VALID_CONFIG = {"server": SERVER, "name": NAME, "secret": SECRET}
TIMEOUT = 45


def write(values, path):
    """Write the given values to an owner-only credentials INI file."""
    test_util.write_file(path, "".join("{0} = {1}\n".format(key, value)
                                       for key, value in values.items()), mode=0o600)


class ProviderTest(test_util.TempDirTestCase):

    def setUp(self):
        from trustctl._internal.plugins.dns_rfc2136 import Provider

        super().setUp()
        self.path = os.path.join(self.tempdir, 'rfc2136.ini')
        write(VALID_CONFIG, self.path)
        self.provider = Provider(self.tempdir)

        patcher = mock.patch('trustctl._internal.plugins.dns_rfc2136._RFC2136Client')
        self.mock_client_class = patcher.start()
        self.addCleanup(patcher.stop)
        self.mock_client = self.mock_client_class.return_value

    def test_present(self):
        self.provider.present(DOMAIN, "token", "token.thumbprint")

        expected = [mock.call.add_txt_record('_acme-challenge.' + DOMAIN,
                                             dns_common.txt_record_value("token.thumbprint"),
                                             120)]
        assert expected == self.mock_client.mock_calls

    def test_cleanup(self):
        self.provider.cleanup(DOMAIN, "token", "token.thumbprint")

        expected = [mock.call.del_txt_record('_acme-challenge.' + DOMAIN, mock.ANY)]
        assert expected == self.mock_client.mock_calls

    def test_check_propagation(self):
        self.mock_client.has_txt_record.return_value = True
        assert self.provider.check_propagation(DOMAIN, "token", "token.thumbprint") is True

    def test_default_conf_values(self):
        self.provider.present(DOMAIN, "token", "token.thumbprint")
        self.mock_client_class.assert_called_once_with(
            SERVER, PORT, NAME, SECRET, dns.tsig.HMAC_MD5)

    def test_invalid_algorithm_raises(self):
        config = VALID_CONFIG.copy()
        config["algorithm"] = "INVALID"
        write(config, self.path)

        with pytest.raises(errors.PluginError):
            self.provider.present(DOMAIN, "token", "token.thumbprint")

    def test_valid_algorithm_passes(self):
        config = VALID_CONFIG.copy()
        config["algorithm"] = "HMAC-sha512"
        write(config, self.path)

        self.provider.present(DOMAIN, "token", "token.thumbprint")
        assert self.mock_client_class.call_args[0][4] == dns.tsig.HMAC_SHA512

    def test_invalid_server_raises(self):
        config = VALID_CONFIG.copy()
        config["server"] = "example.com"
        write(config, self.path)

        with pytest.raises(errors.PluginError):
            self.provider.present(DOMAIN, "token", "token.thumbprint")

    def test_ipv6_server_passes(self):
        config = VALID_CONFIG.copy()
        config["server"] = "2001:db8:3333:4444:cccc:dddd:eeee:ffff"
        write(config, self.path)

        self.provider.present(DOMAIN, "token", "token.thumbprint")

    def test_missing_credentials(self):
        os.remove(self.path)
        with pytest.raises(errors.PluginError):
            self.provider.present(DOMAIN, "token", "token.thumbprint")


class RFC2136ClientTest(unittest.TestCase):

    def setUp(self):
        from trustctl._internal.plugins.dns_rfc2136 import _RFC2136Client

        self.rfc2136_client = _RFC2136Client(SERVER, PORT, NAME, SECRET, dns.tsig.HMAC_MD5,
                                             TIMEOUT)
        self.domain = dns.name.from_text(DOMAIN)
        # _find_domain stub -> (bar, DOMAIN.)
        self._mock_find_domain = mock.MagicMock(
            return_value=(dns.name.from_text('bar', dns.name.empty), self.domain))

    @mock.patch("dns.query.tcp")
    def test_add_txt_record(self, query_mock):
        query_mock.return_value.rcode.return_value = dns.rcode.NOERROR
        # _find_domain | pylint: disable=protected-access
        self.rfc2136_client._find_domain = self._mock_find_domain

        self.rfc2136_client.add_txt_record("bar." + DOMAIN, "baz", 42)

        query_mock.assert_called_with(mock.ANY, SERVER, TIMEOUT, PORT)
        assert "bar 42 IN TXT \"baz\"" in str(query_mock.call_args[0][0])

    @mock.patch("dns.query.tcp")
    def test_add_txt_record_wraps_errors(self, query_mock):
        query_mock.side_effect = Exception
        # _find_domain | pylint: disable=protected-access
        self.rfc2136_client._find_domain = self._mock_find_domain

        with pytest.raises(errors.PluginError):
            self.rfc2136_client.add_txt_record("bar", "baz", 42)

    @mock.patch("dns.query.tcp")
    def test_add_txt_record_server_error(self, query_mock):
        query_mock.return_value.rcode.return_value = dns.rcode.NXDOMAIN
        # _find_domain | pylint: disable=protected-access
        self.rfc2136_client._find_domain = self._mock_find_domain

        with pytest.raises(errors.PluginError):
            self.rfc2136_client.add_txt_record("bar", "baz", 42)

    @mock.patch("dns.query.tcp")
    def test_del_txt_record(self, query_mock):
        query_mock.return_value.rcode.return_value = dns.rcode.NOERROR
        # _find_domain | pylint: disable=protected-access
        self.rfc2136_client._find_domain = self._mock_find_domain

        self.rfc2136_client.del_txt_record("bar", "baz")

        query_mock.assert_called_with(mock.ANY, SERVER, TIMEOUT, PORT)
        assert "bar 0 NONE TXT \"baz\"" in str(query_mock.call_args[0][0])

    @mock.patch("dns.query.tcp")
    def test_del_txt_record_server_error(self, query_mock):
        query_mock.return_value.rcode.return_value = dns.rcode.NXDOMAIN
        # _find_domain | pylint: disable=protected-access
        self.rfc2136_client._find_domain = self._mock_find_domain

        with pytest.raises(errors.PluginError):
            self.rfc2136_client.del_txt_record("bar", "baz")

    def test_find_domain(self):
        # _query_soa | pylint: disable=protected-access
        self.rfc2136_client._query_soa = mock.MagicMock(
            side_effect=lambda name: name == DOMAIN)

        # _find_domain | pylint: disable=protected-access
        prefix, domain = self.rfc2136_client._find_domain('foo.bar.' + DOMAIN)

        assert domain == self.domain
        assert prefix == dns.name.from_text('foo.bar', dns.name.empty)

    def test_find_domain_wraps_errors(self):
        # _query_soa | pylint: disable=protected-access
        self.rfc2136_client._query_soa = mock.MagicMock(return_value=False)

        with pytest.raises(errors.PluginError):
            # _find_domain | pylint: disable=protected-access
            self.rfc2136_client._find_domain('error.bad.domain')

    @mock.patch("dns.query.tcp")
    def test_query_soa_found(self, query_mock):
        query_mock.return_value = mock.MagicMock(answer=[mock.MagicMock()], flags=dns.flags.AA)
        query_mock.return_value.rcode.return_value = dns.rcode.NOERROR

        # _query_soa | pylint: disable=protected-access
        assert self.rfc2136_client._query_soa(DOMAIN)
        query_mock.assert_called_with(mock.ANY, SERVER, TIMEOUT, PORT)

    @mock.patch("dns.query.tcp")
    def test_query_soa_not_authoritative(self, query_mock):
        query_mock.return_value = mock.MagicMock(answer=[mock.MagicMock()], flags=0)
        query_mock.return_value.rcode.return_value = dns.rcode.NOERROR

        # _query_soa | pylint: disable=protected-access
        assert not self.rfc2136_client._query_soa(DOMAIN)

    @mock.patch("dns.query.tcp")
    def test_query_soa_wraps_errors(self, query_mock):
        query_mock.side_effect = Exception

        with pytest.raises(errors.PluginError):
            # _query_soa | pylint: disable=protected-access
            self.rfc2136_client._query_soa(DOMAIN)

    @mock.patch("dns.query.udp")
    @mock.patch("dns.query.tcp")
    def test_query_soa_fallback_to_udp(self, tcp_mock, udp_mock):
        tcp_mock.side_effect = OSError
        udp_mock.return_value = mock.MagicMock(answer=[mock.MagicMock()], flags=dns.flags.AA)
        udp_mock.return_value.rcode.return_value = dns.rcode.NOERROR

        # _query_soa | pylint: disable=protected-access
        result = self.rfc2136_client._query_soa(DOMAIN)

        tcp_mock.assert_called_with(mock.ANY, SERVER, TIMEOUT, PORT)
        udp_mock.assert_called_with(mock.ANY, SERVER, TIMEOUT, PORT)
        assert result

    @mock.patch("dns.query.tcp")
    def test_has_txt_record(self, query_mock):
        query_mock.return_value.answer = [[mock.MagicMock(strings=(b"ba", b"z"))]]
        assert self.rfc2136_client.has_txt_record("_acme-challenge." + DOMAIN, "baz")
        assert not self.rfc2136_client.has_txt_record("_acme-challenge." + DOMAIN, "qux")

    @mock.patch("dns.query.tcp")
    def test_has_txt_record_query_error(self, query_mock):
        query_mock.side_effect = OSError
        assert not self.rfc2136_client.has_txt_record("_acme-challenge." + DOMAIN, "baz")


if __name__ == "__main__":
    sys.exit(pytest.main(sys.argv[1:] + [__file__]))  # pragma: no cover
