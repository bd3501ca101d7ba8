"""Tests for trustctl._internal.plugins.loader."""
import os
import sys
import unittest
from unittest import mock

import pytest

from trustctl import errors
from trustctl import interfaces
from trustctl._internal.plugins import loader
from trustctl.plugins import dns_common
import trustctl.tests.util as test_util

PROVIDER_CLASS = """
class Provider:
    def __init__(self, credentials_dir):
        self.credentials_dir = credentials_dir

    def present(self, domain, token, key_authorization):
        pass

    def cleanup(self, domain, token, key_authorization):
        pass
"""

PROVIDER_INSTANCE = PROVIDER_CLASS.replace("class Provider:", "class _Impl:") + """
Provider = _Impl("unused")
"""

PROVIDER_FACTORY = PROVIDER_CLASS.replace("class Provider:", "class _Impl:") + """
def Provider(credentials_dir):
    return _Impl(credentials_dir + "/factory")
"""


class _Provider(interfaces.DNSProvider):
    def __init__(self, credentials_dir):
        self.credentials_dir = credentials_dir

    def present(self, domain, token, key_authorization):
        pass  # pragma: no cover

    def cleanup(self, domain, token, key_authorization):
        pass  # pragma: no cover


class FindRegisteredTest(unittest.TestCase):
    """Tests for trustctl._internal.plugins.loader.find_registered."""

    def test_builtin_rfc2136(self):
        entry_point = mock.MagicMock()
        entry_point.name = "rfc2136"
        with mock.patch("trustctl._internal.plugins.loader.importlib_metadata.entry_points",
                        return_value=[entry_point]):
            assert loader.find_registered() == {"rfc2136": entry_point}

    def test_duplicates_keep_first(self):
        first, second = mock.MagicMock(), mock.MagicMock()
        first.name = second.name = "dup"
        with mock.patch("trustctl._internal.plugins.loader.importlib_metadata.entry_points",
                        return_value=[first, second]):
            with mock.patch("trustctl._internal.plugins.loader.logger") as mock_logger:
                assert loader.find_registered() == {"dup": first}
        assert mock_logger.warning.call_count == 1


class PluginLoaderTest(test_util.TempDirTestCase):
    """Tests for trustctl._internal.plugins.loader.PluginLoader."""

    def setUp(self):
        super().setUp()
        self.plugins_dir = os.path.join(self.tempdir, "plugins")
        self.creds_dir = os.path.join(self.tempdir, "credentials")
        os.mkdir(self.plugins_dir, 0o700)
        self.loader = loader.PluginLoader(self.plugins_dir, self.creds_dir)
        patcher = mock.patch("trustctl._internal.plugins.loader.find_registered",
                             return_value={})
        self.mock_registered = patcher.start()
        self.addCleanup(patcher.stop)

    def _plugin(self, name, source):
        test_util.write_file(os.path.join(self.plugins_dir, name + ".py"), source)

    def test_invalid_names(self):
        for name in ("", "../evil", "a/b", "a.b"):
            with pytest.raises(errors.PluginOpenFailed):
                self.loader.load(name)

    def test_registered_class(self):
        entry_point = mock.MagicMock()
        entry_point.load.return_value = _Provider
        self.mock_registered.return_value = {"fake": entry_point}
        provider = self.loader.load("fake")
        assert isinstance(provider, _Provider)
        assert provider.credentials_dir == self.creds_dir

    def test_registered_load_failure(self):
        entry_point = mock.MagicMock()
        entry_point.load.side_effect = ImportError("no module")
        self.mock_registered.return_value = {"fake": entry_point}
        with pytest.raises(errors.PluginOpenFailed, match="no module"):
            self.loader.load("fake")

    def test_registry_wins_over_directory(self):
        self._plugin("fake", "Provider = 42\n")
        entry_point = mock.MagicMock()
        entry_point.load.return_value = _Provider
        self.mock_registered.return_value = {"fake": entry_point}
        assert isinstance(self.loader.load("fake"), _Provider)

    def test_unknown(self):
        with pytest.raises(errors.PluginOpenFailed, match="not registered"):
            self.loader.load("missing")

    @test_util.skip_on_windows("Plugin files are only loaded on POSIX platforms")
    def test_directory_class(self):
        self._plugin("local", PROVIDER_CLASS)
        provider = self.loader.load("local")
        assert provider.credentials_dir == self.creds_dir

    @test_util.skip_on_windows("Plugin files are only loaded on POSIX platforms")
    def test_directory_instance(self):
        self._plugin("local", PROVIDER_INSTANCE)
        assert self.loader.load("local").credentials_dir == "unused"

    @test_util.skip_on_windows("Plugin files are only loaded on POSIX platforms")
    def test_directory_factory(self):
        self._plugin("local", PROVIDER_FACTORY)
        assert self.loader.load("local").credentials_dir == self.creds_dir + "/factory"

    @test_util.skip_on_windows("Plugin files are only loaded on POSIX platforms")
    def test_import_error(self):
        self._plugin("broken", "def oops(:\n")
        with pytest.raises(errors.PluginOpenFailed):
            self.loader.load("broken")

    @test_util.skip_on_windows("Plugin files are only loaded on POSIX platforms")
    def test_symbol_not_found(self):
        self._plugin("empty", "x = 1\n")
        with pytest.raises(errors.PluginSymbolNotFound):
            self.loader.load("empty")

    @test_util.skip_on_windows("Plugin files are only loaded on POSIX platforms")
    def test_type_mismatch(self):
        self._plugin("wrong", "Provider = 42\n")
        with pytest.raises(errors.PluginTypeMismatch):
            self.loader.load("wrong")

    @test_util.skip_on_windows("Plugin files are only loaded on POSIX platforms")
    def test_class_without_methods(self):
        self._plugin("wrong", "class Provider:\n    def __init__(self, creds):\n        pass\n")
        with pytest.raises(errors.PluginTypeMismatch):
            self.loader.load("wrong")

    @test_util.skip_on_windows("Plugin files are only loaded on POSIX platforms")
    def test_constructor_failure(self):
        self._plugin("wrong", "class Provider:\n    def __init__(self):\n        pass\n")
        with pytest.raises(errors.PluginTypeMismatch):
            self.loader.load("wrong")

    @test_util.skip_on_windows("Plugin files are only loaded on POSIX platforms")
    def test_world_writable_dir_warns(self):
        self._plugin("local", PROVIDER_CLASS)
        os.chmod(self.plugins_dir, 0o777)
        with mock.patch("trustctl._internal.plugins.loader.logger") as mock_logger:
            self.loader.load("local")
        assert mock_logger.warning.call_count == 1

    def test_unsupported_platform(self):
        self._plugin("local", PROVIDER_CLASS)
        with mock.patch("trustctl._internal.plugins.loader.filesystem.POSIX_MODE", False):
            with pytest.raises(errors.PluginUnsupportedPlatform):
                self.loader.load("local")

    def test_base_class_provider(self):
        class Base(dns_common.DNSProviderBase):
            def _perform(self, domain, validation_name, validation):
                pass  # pragma: no cover

            def _cleanup(self, domain, validation_name, validation):
                pass  # pragma: no cover

        entry_point = mock.MagicMock()
        entry_point.load.return_value = Base
        self.mock_registered.return_value = {"base": entry_point}
        assert self.loader.load("base").credentials_dir == self.creds_dir


if __name__ == "__main__":
    sys.exit(pytest.main(sys.argv[1:] + [__file__]))  # pragma: no cover
