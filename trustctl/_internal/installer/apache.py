"""Apache virtual host configurator."""
import logging
from typing import List
from typing import Optional
from typing import Set

from trustctl._internal.installer import apacheparser
from trustctl._internal.installer import common

logger = logging.getLogger(__name__)

NAME = "apache"
RELOAD_COMMAND = "systemctl reload apache2"

NEW_VIRTUAL_HOST = (
    "<VirtualHost *:443>\n"
    "\tServerName {name}\n"
    "{aliases}"
    "\tSSLEngine on\n"
    "\tSSLCertificateFile {cert}\n"
    "\tSSLCertificateKeyFile {key}\n"
    "</VirtualHost>\n"
)


def _port(addr: str) -> Optional[int]:
    addr = common.unquote(addr)
    if addr.startswith("[") and "]:" in addr:
        port = addr.rsplit("]:", 1)[1]
    elif ":" in addr and not addr.startswith("["):
        port = addr.rsplit(":", 1)[1]
    else:
        return None
    return int(port) if port.isdigit() else None


class VirtualHost:
    """A ``<VirtualHost>`` section and what it serves.

    :ivar section: parsed section
    :ivar set ports: ports of the section addresses, 80 when unspecified
    :ivar str server_name: ServerName without port, if any
    :ivar list aliases: ServerAlias values

    """
    def __init__(self, section: apacheparser.Section) -> None:
        self.section = section
        self.ports: Set[int] = {_port(addr) or 80 for addr in section.args} or {80}
        self.server_name: Optional[str] = None
        for directive in section.directives("ServerName"):
            if directive.args:
                # ServerName may carry scheme and port: https://example.com:443
                name = common.unquote(directive.args[0]).split("://")[-1]
                self.server_name = name.rsplit(":", 1)[0] if ":" in name else name
        self.aliases: List[str] = []
        for directive in section.directives("ServerAlias"):
            self.aliases.extend(common.unquote(arg) for arg in directive.args)
        engine_on = any(d.args and d.args[0].lower() == "on"
                        for d in section.directives("SSLEngine"))
        self.ssl = engine_on or 443 in self.ports
        self.plaintext = not engine_on and 80 in self.ports

    @property
    def names(self) -> List[str]:
        """ServerName followed by the aliases."""
        return ([self.server_name] if self.server_name else []) + self.aliases

    def serves(self, domain: str) -> bool:
        """Is ``domain`` one of this virtual host's names?"""
        return common.any_name_matches(self.names, domain)


def get_vhosts(text: str) -> List[VirtualHost]:
    """Every virtual host of a configuration file, in source order.

    :raises .ConfigParseError: if sections are not properly nested

    """
    return [VirtualHost(section) for section in
            apacheparser.iter_sections(apacheparser.loads(text), "VirtualHost")]


def _set_directive(patch: common.TextPatch, section: apacheparser.Section,
                   name: str, value: str) -> None:
    """Update or add a single valued directive in ``section``."""
    text = patch.text
    existing = section.directives(name)
    if existing:
        for directive in existing:
            if [common.unquote(arg) for arg in directive.args] != [value]:
                indent = common.indentation_at(text, directive.start)
                patch.replace(directive.start, directive.end,
                              "{0}{1} {2}".format(indent, name, value))
        return
    if section.children:
        last = section.children[-1]
        anchor = last.end if isinstance(last, apacheparser.Directive) else \
            last.end - 1 if text[last.end - 1:last.end] == "\n" else last.end
        indent = common.indentation_at(text, last.start)
        patch.insert(anchor, "\n{0}{1} {2}".format(indent, name, value))
    else:
        indent = common.indentation_at(text, section.start) + "\t"
        patch.insert(section.close_start, "{0}{1} {2}\n".format(indent, name, value))


def update(text: str, domain: str, cert_path: str, key_path: str) -> Optional[str]:
    """Point the TLS virtual host of ``domain`` at the certificate.

    When the file serves ``domain`` over plain HTTP, the matching TLS
    virtual hosts get ``SSLCertificateFile`` and ``SSLCertificateKeyFile``
    updated or added. If the file has no TLS virtual host for ``domain`` a
    new one is appended, using the names of the plain HTTP virtual host.

    :returns: the new text, identical to ``text`` when nothing had to
        change, or None if no plain HTTP virtual host serves ``domain``
    :rtype: str or None

    :raises .ConfigParseError: if sections are not properly nested

    """
    vhosts = get_vhosts(text)
    plaintext = [vhost for vhost in vhosts if vhost.plaintext and vhost.serves(domain)]
    if not plaintext:
        return None

    patch = common.TextPatch(text)
    tls = [vhost for vhost in vhosts if vhost.ssl and vhost.serves(domain)]
    if tls:
        for vhost in tls:
            _set_directive(patch, vhost.section, "SSLCertificateFile", cert_path)
            _set_directive(patch, vhost.section, "SSLCertificateKeyFile", key_path)
    else:
        source = plaintext[0]
        aliases = "".join("\tServerAlias {0}\n".format(alias) for alias in source.aliases)
        patch.append("\n" + NEW_VIRTUAL_HOST.format(
            name=source.server_name or domain, aliases=aliases, cert=cert_path, key=key_path))
    return patch.apply()
