"""Locates and loads DNS provider plugins by name."""
import importlib.util
import inspect
import logging
import os
import re
import sys
from typing import Any
from typing import Dict
from typing import Optional

from trustctl import errors
from trustctl import interfaces
from trustctl._internal import constants
from trustctl.compat import filesystem

if sys.version_info >= (3, 10):  # pragma: no cover
    import importlib.metadata as importlib_metadata
else:
    import importlib_metadata

logger = logging.getLogger(__name__)

PROVIDER_SYMBOL = "Provider"
"""Attribute a plugin module must export."""

_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def find_registered() -> Dict[str, importlib_metadata.EntryPoint]:
    """DNS providers registered through the entry point group."""
    registered: Dict[str, importlib_metadata.EntryPoint] = {}
    for entry_point in importlib_metadata.entry_points(  # pylint: disable=unexpected-keyword-arg
            group=constants.DNS_PROVIDERS_ENTRY_POINT):
        if entry_point.name in registered:
            logger.warning("Duplicate DNS provider %s, keeping %s",
                           entry_point.name, registered[entry_point.name].value)
            continue
        registered[entry_point.name] = entry_point
    return registered


class PluginLoader:
    """Loads `~trustctl.interfaces.DNSProvider` implementations.

    The entry point registry is consulted first; a ``<name>.py`` module in
    the plugins directory is the fallback.

    :ivar str plugins_dir: directory searched for plugin modules
    :ivar str credentials_dir: passed to provider classes and factories

    """
    def __init__(self, plugins_dir: str, credentials_dir: str) -> None:
        self.plugins_dir = plugins_dir
        self.credentials_dir = credentials_dir

    def load(self, name: str) -> interfaces.DNSProvider:
        """Load the DNS provider called ``name``.

        :raises .PluginOpenFailed: if the name is invalid, unknown, or its
            module cannot be imported
        :raises .PluginUnsupportedPlatform: if a plugin file would be
            loaded on a platform without POSIX permissions
        :raises .PluginSymbolNotFound: if the module exports no ``Provider``
        :raises .PluginTypeMismatch: if the export is not a DNS provider

        """
        if not name or not _NAME_RE.match(name):
            raise errors.PluginOpenFailed("Invalid DNS provider name: {0!r}".format(name))

        entry_point = find_registered().get(name)
        if entry_point is not None:
            try:
                export = entry_point.load()
            except Exception as error:  # pylint: disable=broad-except
                raise errors.PluginOpenFailed(
                    "DNS provider {0} ({1}) failed to load: {2}".format(
                        name, entry_point.value, error)) from error
            logger.debug("Loaded DNS provider %s from %s", name, entry_point.value)
        else:
            export = self._load_from_dir(name)
        return self._instantiate(name, export)

    def _load_from_dir(self, name: str) -> Any:
        path = os.path.join(self.plugins_dir, "{0}.py".format(name))
        if not os.path.isfile(path):
            raise errors.PluginOpenFailed(
                "No DNS provider named {0}: not registered and {1} does not exist".format(
                    name, path))
        if not filesystem.POSIX_MODE:
            raise errors.PluginUnsupportedPlatform(
                "Loading DNS providers from {0} requires a POSIX platform".format(
                    self.plugins_dir))
        if filesystem.has_group_or_world_permissions(self.plugins_dir):
            logger.warning("Plugins directory %s is accessible by group or others; "
                           "anything placed there runs with full privileges", self.plugins_dir)

        spec = importlib.util.spec_from_file_location("trustctl_plugin_{0}".format(
            name.replace('-', '_')), path)
        if spec is None or spec.loader is None:
            raise errors.PluginOpenFailed("Cannot import DNS provider from {0}".format(path))
        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)
        except Exception as error:  # pylint: disable=broad-except
            logger.debug("Error importing %s:", path, exc_info=True)
            raise errors.PluginOpenFailed(
                "DNS provider {0} failed to load from {1}: {2}".format(name, path, error)
            ) from error

        try:
            export = getattr(module, PROVIDER_SYMBOL)
        except AttributeError:
            raise errors.PluginSymbolNotFound(
                "{0} does not export {1}".format(path, PROVIDER_SYMBOL))
        logger.debug("Loaded DNS provider %s from %s", name, path)
        return export

    def _instantiate(self, name: str, export: Any) -> interfaces.DNSProvider:
        provider: Optional[Any] = export
        if inspect.isclass(export) or (callable(export) and not _is_provider(export)):
            try:
                provider = export(self.credentials_dir)
            except errors.PluginError:
                raise
            except Exception as error:  # pylint: disable=broad-except
                raise errors.PluginTypeMismatch(
                    "DNS provider {0} could not be created: {1}".format(name, error)) from error
        if not _is_provider(provider):
            raise errors.PluginTypeMismatch(
                "DNS provider {0} does not implement callable present() and cleanup()".format(
                    name))
        return provider


def _is_provider(obj: Any) -> bool:
    if inspect.isclass(obj):
        return False
    return callable(getattr(obj, 'present', None)) and callable(getattr(obj, 'cleanup', None))
