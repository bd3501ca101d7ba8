"""Tests for trustctl._internal.cli."""
import argparse
import io
import os
import sys
import unittest
from unittest import mock

import pytest

from trustctl._internal import cli
from trustctl._internal import constants
import trustctl.tests.util as test_util


class ParseTest(test_util.TempDirTestCase):
    """Tests for trustctl._internal.cli.prepare_and_parse_args."""

    def setUp(self):
        super().setUp()
        self.config_dir = os.path.join(self.tempdir, "config")

    def _parse(self, args):
        return cli.prepare_and_parse_args(args + ["--config-dir", self.config_dir])

    def _parse_error(self, args):
        with mock.patch("sys.stderr", new_callable=io.StringIO) as stderr:
            with pytest.raises(SystemExit):
                self._parse(args)
        return stderr.getvalue()

    def test_defaults(self):
        config = self._parse(["request"])
        assert config.verb == "request"
        assert config.validation == "http"
        assert config.installer == "auto"
        assert config.server_url == ""
        assert config.domains == []
        assert config.verbose_count == 0
        assert config.max_log_backups == constants.CLI_DEFAULTS["max_log_backups"]
        assert config.credentials_dir == os.path.join(self.config_dir, "credentials")

    def test_request_flags(self):
        config = self._parse([
            "request", "-d", "example.com,www.example.com", "--validation", "DNS",
            "--dns-provider", "rfc2136", "--serverurl", "https://ca.example.com",
            "--hmac-id", "key-id", "--hmac-key", "s3cr3t", "-m", "ops@example.com",
            "--installer", "Nginx", "--dns-propagation-seconds", "1.5", "-vvv"])
        assert config.domains == ["example.com", "www.example.com"]
        assert config.validation == "dns"
        assert config.dns_provider == "rfc2136"
        assert config.server_url == "https://ca.example.com"
        assert config.hmac_id == "key-id"
        assert config.hmac_key == "s3cr3t"
        assert config.email == "ops@example.com"
        assert config.installer == "nginx"
        assert config.dns_propagation_seconds == 1.5
        assert config.verbose_count == 3

    def test_unknown_verb(self):
        assert "invalid choice" in self._parse_error(["revoke"])

    def test_invalid_validation(self):
        assert "carrier-pigeon" in self._parse_error(
            ["request", "--validation", "carrier-pigeon"])

    def test_invalid_installer(self):
        assert "invalid choice" in self._parse_error(["request", "--installer", "iis"])

    def test_negative_log_backups(self):
        assert "non-negative" in self._parse_error(["renew", "--max-log-backups", "-1"])

    def test_config_file(self):
        config_file = test_util.write_file(
            os.path.join(self.tempdir, "cli.ini"),
            "domains = example.com\nvalidation = dns\ndns-provider = rfc2136\n")
        config = self._parse(["request", "-c", config_file])
        assert config.domains == ["example.com"]
        assert config.validation == "dns"
        assert config.dns_provider == "rfc2136"

    def test_command_line_wins_over_config_file(self):
        config_file = test_util.write_file(
            os.path.join(self.tempdir, "cli.ini"), "installer = apache\n")
        config = self._parse(["request", "-c", config_file, "--installer", "none"])
        assert config.installer == "none"


class NonnegativeIntTest(unittest.TestCase):
    """Tests for trustctl._internal.cli.nonnegative_int."""

    def test_it(self):
        assert cli.nonnegative_int("0") == 0
        assert cli.nonnegative_int("3") == 3

    def test_invalid(self):
        with pytest.raises(argparse.ArgumentTypeError):
            cli.nonnegative_int("three")
        with pytest.raises(argparse.ArgumentTypeError):
            cli.nonnegative_int("-3")


if __name__ == "__main__":
    sys.exit(pytest.main(sys.argv[1:] + [__file__]))  # pragma: no cover
