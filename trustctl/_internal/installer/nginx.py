"""nginx virtual host configurator."""
import logging
from typing import List
from typing import NamedTuple
from typing import Optional
from typing import Sequence
from typing import Set

from trustctl._internal.installer import common
from trustctl._internal.installer import nginxparser

logger = logging.getLogger(__name__)

NAME = "nginx"
RELOAD_COMMAND = "systemctl reload nginx"

NEW_SERVER_BLOCK = (
    "server {{\n"
    "\tlisten 443 ssl;\n"
    "\tserver_name {names};\n"
    "\tssl_certificate {cert};\n"
    "\tssl_certificate_key {key};\n"
    "}}\n"
)


class Addr(NamedTuple):
    """Address a server block listens on."""
    host: str
    port: int
    ssl: bool

    @classmethod
    def fromstring(cls, args: Sequence[str]) -> Optional["Addr"]:
        """Build an address from the arguments of a ``listen`` directive."""
        if not args:
            return None
        spec = common.unquote(args[0])
        if spec.startswith("unix:"):
            return None
        host, port = "", spec
        if spec.startswith("["):
            host, _, rest = spec.partition("]")
            host += "]"
            port = rest[1:] if rest.startswith(":") else ""
        elif ":" in spec:
            host, _, port = spec.rpartition(":")
        elif not spec.isdigit():
            host, port = spec, ""
        try:
            port_number = int(port) if port else 80
        except ValueError:
            return None
        return cls(host, port_number, "ssl" in args[1:])


class VirtualHost:
    """A ``server`` block and what it serves.

    :ivar block: parsed server block
    :ivar list addrs: listen addresses; port 80 when none is configured
    :ivar set names: configured server names, lower-cased

    """
    def __init__(self, block: nginxparser.Block) -> None:
        self.block = block
        self.addrs: List[Addr] = []
        for listen in block.directives("listen"):
            addr = Addr.fromstring(listen.args)
            if addr is not None:
                self.addrs.append(addr)
        if not block.directives("listen"):
            self.addrs.append(Addr("", 80, False))
        legacy_ssl = any(d.args and d.args[0].lower() == "on" for d in block.directives("ssl"))
        self.names: Set[str] = set()
        self.raw_names: List[str] = []
        for server_name in block.directives("server_name"):
            self.raw_names.extend(server_name.args)
            self.names.update(common.unquote(name).lower() for name in server_name.args)
        self.ssl = legacy_ssl or any(addr.ssl or addr.port == 443 for addr in self.addrs)
        self.plaintext = not legacy_ssl and any(
            addr.port == 80 and not addr.ssl for addr in self.addrs)

    def serves(self, domain: str) -> bool:
        """Is ``domain`` one of this server's names?"""
        return common.any_name_matches(self.names, domain)


def get_vhosts(text: str) -> List[VirtualHost]:
    """Every server block of a configuration file, in source order.

    :raises .ConfigParseError: if the text is not valid nginx syntax

    """
    return [VirtualHost(block) for block in
            nginxparser.iter_blocks(nginxparser.loads(text), "server")]


def _set_directive(patch: common.TextPatch, block: nginxparser.Block,
                   name: str, value: str) -> None:
    """Update or add a single valued directive in ``block``."""
    existing = block.directives(name)
    if existing:
        for directive in existing:
            if [common.unquote(arg) for arg in directive.args] != [value]:
                patch.replace(directive.start, directive.end, "{0} {1};".format(name, value))
        return
    text = patch.text
    if block.children:
        last = block.children[-1]
        indent = common.indentation_at(text, last.start)
        patch.insert(last.end, "\n{0}{1} {2};".format(indent, name, value))
    else:
        indent = common.indentation_at(text, block.start) + "\t"
        patch.insert(block.body_start, "\n{0}{1} {2};\n".format(indent, name, value))


def update(text: str, domain: str, cert_path: str, key_path: str) -> Optional[str]:
    """Point the TLS virtual host of ``domain`` at the certificate.

    When the file serves ``domain`` over plain HTTP, the matching TLS
    server blocks get ``ssl_certificate`` and ``ssl_certificate_key``
    updated or added. If the file has no TLS block for ``domain`` a new
    one is appended, using the names of the plain HTTP block.

    :returns: the new text, identical to ``text`` when nothing had to
        change, or None if no plain HTTP server block serves ``domain``
    :rtype: str or None

    :raises .ConfigParseError: if the text is not valid nginx syntax

    """
    vhosts = get_vhosts(text)
    plaintext = [vhost for vhost in vhosts if vhost.plaintext and vhost.serves(domain)]
    if not plaintext:
        return None

    patch = common.TextPatch(text)
    tls = [vhost for vhost in vhosts if vhost.ssl and vhost.serves(domain)]
    if tls:
        for vhost in tls:
            _set_directive(patch, vhost.block, "ssl_certificate", cert_path)
            _set_directive(patch, vhost.block, "ssl_certificate_key", key_path)
    else:
        names = " ".join(plaintext[0].raw_names) or domain
        patch.append("\n" + NEW_SERVER_BLOCK.format(names=names, cert=cert_path, key=key_path))
    return patch.apply()
