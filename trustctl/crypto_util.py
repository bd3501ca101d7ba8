"""trustctl crypto utility functions.

Keys, CSRs and the locally signed certificates returned by the
placeholder CA clients are all produced here with ``cryptography``.

"""
import datetime
import logging
from typing import List
from typing import Sequence
from typing import Tuple

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.hazmat.primitives.serialization import NoEncryption
from cryptography.hazmat.primitives.serialization import PrivateFormat
from cryptography.x509.oid import NameOID
import josepy as jose

from trustctl import errors

logger = logging.getLogger(__name__)

CERT_LIFETIME = datetime.timedelta(days=90)
"""Validity period of issued certificates."""


def make_key(bits: int = 2048) -> bytes:
    """Generate PEM encoded RSA key.

    :param int bits: Number of bits. At least 2048.

    :returns: new RSA key in PKCS#8 PEM form with specified number of bits
    :rtype: bytes

    """
    if bits < 2048:
        raise errors.Error("Unsupported RSA key length: {}".format(bits))
    key = rsa.generate_private_key(public_exponent=65537, key_size=bits)
    return key.private_bytes(
        encoding=Encoding.PEM,
        format=PrivateFormat.PKCS8,
        encryption_algorithm=NoEncryption()
    )


def make_csr(private_key_pem: bytes, domains: Sequence[str]) -> bytes:
    """Generate a CSR containing domains as subjectAltNames.

    The first domain is also used as the subject common name.

    :param bytes private_key_pem: Private key, in PEM PKCS#8 format.
    :param list domains: List of DNS names to include in subjectAltNames of CSR.

    :returns: PEM-encoded Certificate Signing Request.
    :rtype: bytes

    """
    if not domains:
        raise ValueError("At least one domain is required to build a CSR")
    private_key = serialization.load_pem_private_key(private_key_pem, password=None)
    builder = x509.CertificateSigningRequestBuilder().subject_name(
        x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, domains[0])])
    ).add_extension(
        x509.SubjectAlternativeName([x509.DNSName(name) for name in domains]),
        critical=False,
    )
    csr = builder.sign(private_key, hashes.SHA256())
    return csr.public_bytes(Encoding.PEM)


def get_names_from_csr(csr_pem: bytes) -> List[str]:
    """Get the DNS subjectAltNames of a PEM CSR."""
    csr = x509.load_pem_x509_csr(csr_pem)
    try:
        san = csr.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    except x509.ExtensionNotFound:
        return []
    return san.value.get_values_for_type(x509.DNSName)


def sign_csr(csr_pem: bytes, issuer_name: str,
             lifetime: datetime.timedelta = CERT_LIFETIME) -> Tuple[bytes, bytes]:
    """Issue a certificate for a CSR from a freshly generated issuer.

    The issuer key is discarded once the certificate is signed, so the
    result only stands in for material a real CA would return.

    :param bytes csr_pem: PEM-encoded CSR
    :param str issuer_name: common name of the issuing authority
    :param datetime.timedelta lifetime: validity of the leaf certificate

    :returns: PEM leaf certificate and PEM issuer certificate
    :rtype: tuple

    """
    csr = x509.load_pem_x509_csr(csr_pem)
    issuer_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    issuer = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, issuer_name)])
    now = datetime.datetime.now(tz=datetime.timezone.utc)

    issuer_cert = x509.CertificateBuilder().subject_name(issuer).issuer_name(
        issuer
    ).public_key(issuer_key.public_key()).serial_number(
        x509.random_serial_number()
    ).not_valid_before(now).not_valid_after(now + 5 * lifetime).add_extension(
        x509.BasicConstraints(ca=True, path_length=0), critical=True,
    ).sign(issuer_key, hashes.SHA256())

    builder = x509.CertificateBuilder().subject_name(csr.subject).issuer_name(
        issuer
    ).public_key(csr.public_key()).serial_number(
        x509.random_serial_number()
    ).not_valid_before(now).not_valid_after(now + lifetime).add_extension(
        x509.BasicConstraints(ca=False, path_length=None), critical=True,
    )
    names = get_names_from_csr(csr_pem)
    if names:
        builder = builder.add_extension(
            x509.SubjectAlternativeName([x509.DNSName(name) for name in names]),
            critical=False)
    cert = builder.sign(issuer_key, hashes.SHA256())
    return cert.public_bytes(Encoding.PEM), issuer_cert.public_bytes(Encoding.PEM)


def not_after_from_pem(cert_pem: bytes) -> datetime.datetime:
    """When does the first certificate in ``cert_pem`` stop being valid?

    :param bytes cert_pem: certificate (or full chain) in PEM format

    :returns: the notAfter value, as an aware UTC datetime
    :rtype: :class:`datetime.datetime`

    """
    cert = x509.load_pem_x509_certificate(cert_pem)
    return cert.not_valid_after_utc


def load_jwk(private_key_pem: bytes) -> jose.JWK:
    """Load a PEM private key as a JWK, as used for key authorizations."""
    return jose.JWKRSA.load(private_key_pem)
