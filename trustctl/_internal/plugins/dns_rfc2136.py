"""DNS provider using RFC 2136 Dynamic Updates."""
import ipaddress
import logging
from typing import Optional
from typing import Tuple

import dns.exception
import dns.flags
import dns.message
import dns.name
import dns.query
import dns.rcode
import dns.rdataclass
import dns.rdatatype
import dns.tsig
import dns.tsigkeyring
import dns.update

from trustctl import errors
from trustctl.plugins import dns_common

logger = logging.getLogger(__name__)

DEFAULT_NETWORK_TIMEOUT = 45


class Provider(dns_common.DNSProviderBase):
    """DNS provider using RFC 2136 Dynamic Updates

    Credentials are read from ``rfc2136.ini`` in the credentials directory::

      server = 192.0.2.1
      port = 53
      name = keyname.
      secret = 4q4wM/2I180UXoMyN4INVhJNi8V9BCV+jMw2mXgZw/CSuxUT8C7NKKFs
      algorithm = HMAC-SHA512
    """

    ALGORITHMS = {
      'HMAC-MD5': dns.tsig.HMAC_MD5,
      'HMAC-SHA1': dns.tsig.HMAC_SHA1,
      'HMAC-SHA224': dns.tsig.HMAC_SHA224,
      'HMAC-SHA256': dns.tsig.HMAC_SHA256,
      'HMAC-SHA384': dns.tsig.HMAC_SHA384,
      'HMAC-SHA512': dns.tsig.HMAC_SHA512
    }

    PORT = 53

    credentials_file = "rfc2136.ini"
    ttl = 120

    def _perform(self, domain: str, validation_name: str, validation: str) -> None:
        self._get_rfc2136_client().add_txt_record(validation_name, validation, self.ttl)

    def _cleanup(self, domain: str, validation_name: str, validation: str) -> None:
        self._get_rfc2136_client().del_txt_record(validation_name, validation)

    def check_propagation(self, domain: str, token: str,
                          key_authorization: str) -> Optional[bool]:
        return self._get_rfc2136_client().has_txt_record(
            dns_common.validation_domain_name(domain),
            dns_common.txt_record_value(key_authorization))

    def _get_rfc2136_client(self) -> "_RFC2136Client":
        credentials = self._configure_credentials({
            'name': 'TSIG key name',
            'secret': 'TSIG key secret',
            'server': 'The target DNS server'
        })
        server = credentials.conf('server') or ''
        try:
            ipaddress.ip_address(server)
        except ValueError:
            raise errors.PluginError("The configured target DNS server ({0}) is not a valid IPv4 "
                                     "or IPv6 address. A hostname is not allowed.".format(server))
        algorithm = credentials.conf('algorithm')
        if algorithm and not self.ALGORITHMS.get(algorithm.upper()):
            raise errors.PluginError("Unknown algorithm: {0}.".format(algorithm))

        return _RFC2136Client(server,
                              int(credentials.conf('port') or self.PORT),
                              credentials.conf('name') or '',
                              credentials.conf('secret') or '',
                              self.ALGORITHMS.get((algorithm or '').upper(), dns.tsig.HMAC_MD5))


class _RFC2136Client:
    """
    Encapsulates all communication with the target DNS server.
    """
    def __init__(self, server: str, port: int, key_name: str, key_secret: str,
                 key_algorithm: dns.name.Name, timeout: int = DEFAULT_NETWORK_TIMEOUT) -> None:
        self.server = server
        self.port = port
        self.keyring = dns.tsigkeyring.from_text({
            key_name: key_secret
        })
        self.algorithm = key_algorithm
        self._default_timeout = timeout

    def add_txt_record(self, record_name: str, record_content: str, record_ttl: int) -> None:
        """
        Add a TXT record using the supplied information.

        :param str record_name: The record name (typically beginning with '_acme-challenge.').
        :param str record_content: The record content (typically the challenge validation).
        :param int record_ttl: The record TTL (number of seconds that the record may be cached).
        :raises trustctl.errors.PluginError: if an error occurs communicating with the DNS server
        """

        logger.debug('Adding TXT record: %s %d "%s"', record_name, record_ttl, record_content)

        rel, zone = self._find_domain(record_name)

        update = dns.update.Update(zone, keyring=self.keyring, keyalgorithm=self.algorithm)
        update.add(rel, record_ttl, dns.rdatatype.TXT, record_content)
        self._send(update, 'adding', record_name)

    def del_txt_record(self, record_name: str, record_content: str) -> None:
        """
        Delete a TXT record using the supplied information.

        :param str record_name: The record name (typically beginning with '_acme-challenge.').
        :param str record_content: The record content (typically the challenge validation).
        :raises trustctl.errors.PluginError: if an error occurs communicating with the DNS server
        """

        rel, zone = self._find_domain(record_name)

        update = dns.update.Update(zone, keyring=self.keyring, keyalgorithm=self.algorithm)
        update.delete(rel, dns.rdatatype.TXT, record_content)
        self._send(update, 'deleting', record_name)

    def has_txt_record(self, record_name: str, record_content: str) -> bool:
        """Does the target server answer ``record_name`` with ``record_content``?"""
        request = dns.message.make_query(record_name, dns.rdatatype.TXT, dns.rdataclass.IN)
        try:
            response = dns.query.tcp(request, self.server, self._default_timeout, self.port)
        except Exception as e:  # pylint: disable=broad-except
            logger.debug('TXT query for %s failed: %s', record_name, e)
            return False
        for rrset in response.answer:
            for rdata in rrset:
                if getattr(rdata, 'strings', None) and \
                        b''.join(rdata.strings).decode('ascii', 'replace') == record_content:
                    return True
        return False

    def _send(self, update: dns.update.Update, action: str, record_name: str) -> None:
        try:
            response = dns.query.tcp(update, self.server, self._default_timeout, self.port)
        except Exception as e:
            raise errors.PluginError('Encountered error {0} TXT record: {1}'.format(action, e))
        rcode = response.rcode()

        if rcode == dns.rcode.NOERROR:
            logger.debug('Successfully finished %s TXT record %s', action, record_name)
        else:
            raise errors.PluginError('Received response from server: {0}'
                                     .format(dns.rcode.to_text(rcode)))

    def _find_domain(self, record_name: str) -> Tuple[dns.name.Name, dns.name.Name]:
        """
        Find the closest domain with an authoritative SOA record for a given domain name.

        :param str record_name: The record name for which to find the closest SOA record.
        :returns: tuple of (`entry`, `zone`) where
                `entry` - canonical relative entry into the target zone;
                `zone` - canonical absolute name of the zone to be modified.
        :rtype: (`dns.name.Name`, `dns.name.Name`)
        :raises trustctl.errors.PluginError: if the search failed for any reason.
        """

        domain_name_guesses = dns_common.base_domain_name_guesses(record_name)

        for guess in domain_name_guesses:
            if self._query_soa(guess):
                zone = dns.name.from_text(guess)
                rel = dns.name.from_text(record_name).relativize(zone)
                return rel, zone

        raise errors.PluginError('Unable to determine base domain for {0} using names: {1}.'
                                 .format(record_name, domain_name_guesses))

    def _query_soa(self, domain_name: str) -> bool:
        """
        Query a domain name for an authoritative SOA record.

        :param str domain_name: The domain name to query for an SOA record.
        :returns: True if found, False otherwise.
        :rtype: bool
        :raises trustctl.errors.PluginError: if no response is received.
        """

        domain = dns.name.from_text(domain_name)

        request = dns.message.make_query(domain, dns.rdatatype.SOA, dns.rdataclass.IN)
        # Turn off Recursion Desired bit in query
        request.flags ^= dns.flags.RD

        try:
            try:
                response = dns.query.tcp(request, self.server, self._default_timeout, self.port)
            except (OSError, dns.exception.Timeout) as e:
                logger.debug('TCP query failed, fallback to UDP: %s', e)
                response = dns.query.udp(request, self.server, self._default_timeout, self.port)
            rcode = response.rcode()

            # Authoritative Answer bit should be set
            if (rcode == dns.rcode.NOERROR and response.get_rrset(response.answer,
                    domain, dns.rdataclass.IN, dns.rdatatype.SOA) and response.flags & dns.flags.AA):
                logger.debug('Received authoritative SOA response for %s', domain_name)
                return True

            logger.debug('No authoritative SOA record found for %s', domain_name)
            return False
        except Exception as e:
            raise errors.PluginError('Encountered error when making query: {0}'
                                     .format(e))
