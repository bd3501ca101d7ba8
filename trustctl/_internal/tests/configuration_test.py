"""Tests for trustctl.configuration."""
import os
import sys

import pytest

from trustctl import configuration
from trustctl import errors
from trustctl._internal import constants
import trustctl.tests.util as test_util


class NamespaceConfigTest(test_util.TempDirTestCase):
    """Tests for trustctl.configuration.NamespaceConfig."""

    def _config(self, **kwargs):
        return configuration.NamespaceConfig(test_util.make_namespace(
            os.path.join(self.tempdir, "config"), **kwargs))

    def test_default_directories(self):
        config = self._config()
        config_dir = os.path.join(self.tempdir, "config")
        assert config.config_dir == config_dir
        assert config.plugins_dir == os.path.join(config_dir, constants.PLUGINS_DIR)
        assert config.credentials_dir == os.path.join(config_dir, constants.CREDENTIALS_DIR)
        assert config.certs_dir == os.path.join(config_dir, constants.CERTS_DIR)
        assert config.logs_dir == os.path.join(config_dir, constants.LOGS_DIR)
        assert config.cert_dir("example.com") == os.path.join(
            config_dir, constants.CERTS_DIR, "example.com")

    def test_explicit_directories_are_absolute(self):
        config = self._config(certs_dir="relative/certs")
        assert os.path.isabs(config.certs_dir)
        assert config.certs_dir.endswith(os.path.join("relative", "certs"))

    def test_domains(self):
        assert self._config(domains="A.example.com,b.example.com").domains == [
            "a.example.com", "b.example.com"]
        assert self._config(domains=["x.example.com"]).domains == ["x.example.com"]
        assert self._config().domains == []

    def test_bad_domains_raise_on_access(self):
        config = self._config(domains="192.0.2.1")
        with pytest.raises(errors.ConfigurationError):
            config.domains  # pylint: disable=pointless-statement

    def test_normalized_values(self):
        config = self._config(validation="DNS", server_url=None)
        assert config.validation == "dns"
        assert config.server_url == ""

    def test_webserver_dirs(self):
        assert tuple(self._config().nginx_dirs) == constants.NGINX_DIRS
        assert self._config(apache_dirs=["/srv/apache"]).apache_dirs == ["/srv/apache"]

    def test_delegation(self):
        config = self._config()
        config.installer = "nginx"
        assert config.namespace.installer == "nginx"
        assert config.installer == "nginx"


if __name__ == "__main__":
    sys.exit(pytest.main(sys.argv[1:] + [__file__]))  # pragma: no cover
