"""Installs certificates into webserver virtual hosts.

Every configuration file of the detected webserver is parsed into a
structured model. For each domain served over plain HTTP, the TLS virtual
host in the same file is pointed at the new certificate, or created when
missing. Files are backed up before they change and replaced atomically.

"""
import datetime
import logging
import os
from typing import Callable
from typing import Dict
from typing import List
from typing import Optional
from typing import Sequence

from trustctl import errors
from trustctl import util
from trustctl._internal.installer import apache
from trustctl._internal.installer import detect
from trustctl._internal.installer import nginx
from trustctl.compat import filesystem
from trustctl.display import util as display_util

logger = logging.getLogger(__name__)

UpdateFunc = Callable[[str, str, str, str], Optional[str]]

CONFIGURATORS: Dict[str, UpdateFunc] = {
    nginx.NAME: nginx.update,
    apache.NAME: apache.update,
}

RELOAD_COMMANDS = {
    nginx.NAME: nginx.RELOAD_COMMAND,
    apache.NAME: apache.RELOAD_COMMAND,
}


class Installer:
    """Webserver certificate installer.

    :ivar list nginx_dirs: nginx configuration directories
    :ivar list apache_dirs: Apache configuration directories

    """
    def __init__(self, nginx_dirs: Sequence[str], apache_dirs: Sequence[str]) -> None:
        self.nginx_dirs = list(nginx_dirs)
        self.apache_dirs = list(apache_dirs)

    def _dirs(self, server: str) -> List[str]:
        return self.nginx_dirs if server == nginx.NAME else self.apache_dirs

    def config_files(self, server: str) -> List[str]:
        """Real paths of the configuration files of ``server``.

        Directories are searched in order and files sorted by name. Links
        are resolved so a file enabled through a symlink is listed once;
        backups and temporary files are left out.

        """
        files: List[str] = []
        for directory in self._dirs(server):
            try:
                names = sorted(os.listdir(directory))
            except OSError:
                continue
            for name in names:
                if name.startswith(".") or ".bak." in name:
                    continue
                path = os.path.realpath(os.path.join(directory, name))
                if os.path.isfile(path) and path not in files:
                    files.append(path)
        return files

    def install(self, domains: Sequence[str], cert_path: str, key_path: str,
                server: Optional[str] = None) -> str:
        """Deploy the certificate for every domain in ``domains``.

        Domains without a plain HTTP virtual host are skipped with a
        warning. Nothing is written for files that already point at the
        certificate.

        :param str server: ``nginx`` or ``apache``; detected when None

        :returns: the webserver that was configured
        :rtype: str

        :raises .NoSupportedServer: if no supported webserver is found
        :raises .InstallationError: if a configuration file cannot be
            read or written

        """
        if server is None:
            server = detect.detect_running_server(self.nginx_dirs, self.apache_dirs)
        elif server not in CONFIGURATORS:
            raise errors.NoSupportedServer("Unsupported webserver: {0}".format(server))
        update = CONFIGURATORS[server]
        files = self.config_files(server)
        changed: List[str] = []

        for domain in domains:
            matched = False
            for path in files:
                text = self._read(path)
                try:
                    new_text = update(text, domain, cert_path, key_path)
                except errors.ConfigParseError as error:
                    logger.warning("Skipping %s: %s", path, error)
                    continue
                if new_text is None:
                    continue
                matched = True
                if new_text == text:
                    logger.debug("%s already uses the certificate for %s", path, domain)
                    continue
                self._write(path, new_text)
                if path not in changed:
                    changed.append(path)
                display_util.notify("Deployed certificate for {0} to {1}".format(domain, path))
            if not matched:
                logger.warning("No %s virtual host serving %s over HTTP was found; "
                               "skipping installation for this domain", server, domain)

        if changed:
            display_util.notify("Run '{0}' to load the new configuration.".format(
                RELOAD_COMMANDS[server]))
        return server

    def _read(self, path: str) -> str:
        try:
            with open(path, encoding="utf-8") as config_file:
                return config_file.read()
        except (OSError, UnicodeDecodeError) as error:
            raise errors.InstallationError(
                "Unable to read {0}: {1}".format(path, error)) from error

    def _write(self, path: str, text: str) -> None:
        stamp = datetime.datetime.now(tz=datetime.timezone.utc).strftime("%Y%m%d%H%M%S")
        try:
            backup = util.copy_to_backup(path, stamp)
            util.atomic_write(path, text.encode("utf-8"), chmod=filesystem.file_mode(path))
        except OSError as error:
            raise errors.InstallationError(
                "Unable to update {0}: {1}".format(path, error)) from error
        logger.info("Updated %s (backup saved to %s)", path, backup)
