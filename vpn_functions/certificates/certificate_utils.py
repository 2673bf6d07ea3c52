"""
Certificate authority and leaf certificate generation for Client VPN mutual TLS
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from ..common.errors import ConfigError, CryptoError

logger = logging.getLogger(__name__)

AUTHORITY_COMMON_NAME = 'VPN-CA'
ALLOWED_KEY_SIZES = (2048, 4096)
PUBLIC_EXPONENT = 65537

CA_SERIAL_NUMBER = 1
SERVER_SERIAL_NUMBER = 2
CLIENT_SERIAL_NUMBER = 3


class CertificateRole(str, Enum):
    SERVER = 'server'
    CLIENT = 'client'


LEAF_SERIAL_NUMBERS = {
    CertificateRole.SERVER: SERVER_SERIAL_NUMBER,
    CertificateRole.CLIENT: CLIENT_SERIAL_NUMBER,
}

LEAF_EXTENDED_KEY_USAGES = {
    CertificateRole.SERVER: ExtendedKeyUsageOID.SERVER_AUTH,
    CertificateRole.CLIENT: ExtendedKeyUsageOID.CLIENT_AUTH,
}

# Wire key, attribute name
CONFIG_STRING_FIELDS = (
    ('organizationName', 'organization_name'),
    ('organizationalUnit', 'organizational_unit'),
    ('country', 'country'),
    ('state', 'state'),
    ('city', 'city'),
)


def _read_field(config: Optional[Dict[str, Any]], key: str) -> Any:
    if config is None:
        raise ConfigError(f"Cannot read property '{key}' of null config")
    if not isinstance(config, dict):
        raise ConfigError(f"Certificate config must be an object, got {type(config).__name__}")
    return config.get(key)


def _to_int(key: str, value: Any) -> int:
    # CloudFormation delivers custom resource properties as strings
    if isinstance(value, bool):
        raise ConfigError(f"{key} must be an integer, got {value}")
    if isinstance(value, float) and not value.is_integer():
        raise ConfigError(f"{key} must be an integer, got {value}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{key} must be an integer, got {value!r}")


@dataclass(frozen=True)
class CertificateConfig:
    organization_name: str
    organizational_unit: str
    country: str
    state: str
    city: str
    key_size: int = 2048
    validity_period_days: int = 365

    def __post_init__(self):
        if self.key_size not in ALLOWED_KEY_SIZES:
            raise ConfigError(
                f"keySize must be one of {', '.join(map(str, ALLOWED_KEY_SIZES))}, got {self.key_size}"
            )
        if self.validity_period_days < 1:
            raise ConfigError(
                f"validityPeriodDays must be a positive integer, got {self.validity_period_days}"
            )
        if len(self.country) != 2:
            raise ConfigError(f"country must be a two-letter code, got '{self.country}'")

    @classmethod
    def from_dict(cls, config: Optional[Dict[str, Any]]) -> 'CertificateConfig':
        """
        Build a config from the camelCase properties of a custom resource

        Args:
            config: Config object from ResourceProperties, may be None

        Returns:
            Validated CertificateConfig

        Raises:
            ConfigError: on the first missing or invalid field
        """
        # Key size is needed first, before any subject field
        values = {
            'key_size': _to_int('keySize', _read_field(config, 'keySize')),
            'validity_period_days': _to_int(
                'validityPeriodDays', _read_field(config, 'validityPeriodDays')
            ),
        }
        for key, attribute in CONFIG_STRING_FIELDS:
            value = _read_field(config, key)
            if value is None or str(value).strip() == '':
                raise ConfigError(f"Missing required certificate config field: {key}")
            values[attribute] = str(value)

        return cls(**values)


@dataclass(frozen=True)
class CertificateAuthority:
    private_key: rsa.RSAPrivateKey
    certificate: x509.Certificate

    @property
    def certificate_pem(self) -> str:
        return certificate_to_pem(self.certificate)

    @property
    def private_key_pem(self) -> str:
        return private_key_to_pem(self.private_key)


@dataclass(frozen=True)
class LeafCertificate:
    role: CertificateRole
    private_key: rsa.RSAPrivateKey
    certificate: x509.Certificate

    @property
    def certificate_pem(self) -> str:
        return certificate_to_pem(self.certificate)

    @property
    def private_key_pem(self) -> str:
        return private_key_to_pem(self.private_key)


@dataclass(frozen=True)
class CertificateBatch:
    authority: CertificateAuthority
    server: LeafCertificate
    client: LeafCertificate


def certificate_to_pem(certificate: x509.Certificate) -> str:
    return certificate.public_bytes(serialization.Encoding.PEM).decode('ascii')


def private_key_to_pem(private_key: rsa.RSAPrivateKey) -> str:
    """Unencrypted PKCS#1 PEM, the format ACM accepts for imports"""
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode('ascii')


def build_subject(common_name: str, config: CertificateConfig) -> x509.Name:
    return x509.Name([
        x509.NameAttribute(NameOID.COMMON_NAME, common_name),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, config.organization_name),
        x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, config.organizational_unit),
        x509.NameAttribute(NameOID.COUNTRY_NAME, config.country),
        x509.NameAttribute(NameOID.STATE_OR_PROVINCE_NAME, config.state),
        x509.NameAttribute(NameOID.LOCALITY_NAME, config.city),
    ])


def validity_window(config: CertificateConfig, now: Optional[datetime] = None):
    """
    Return (not_before, not_after) spanning exactly validity_period_days

    X.509 times carry whole seconds, so microseconds are dropped up front.
    """
    not_before = (now or datetime.now(timezone.utc)).replace(microsecond=0)
    return not_before, not_before + timedelta(days=config.validity_period_days)


def generate_private_key(key_size: int) -> rsa.RSAPrivateKey:
    try:
        return rsa.generate_private_key(public_exponent=PUBLIC_EXPONENT, key_size=key_size)
    except (ValueError, UnsupportedAlgorithm) as error:
        raise CryptoError(f"Failed to generate {key_size}-bit RSA key: {error}") from error


def _sign(builder: x509.CertificateBuilder, signing_key: rsa.RSAPrivateKey) -> x509.Certificate:
    try:
        return builder.sign(private_key=signing_key, algorithm=hashes.SHA256())
    except (ValueError, TypeError, UnsupportedAlgorithm) as error:
        raise CryptoError(f"Failed to sign certificate: {error}") from error


def generate_authority(config: CertificateConfig) -> CertificateAuthority:
    """
    Create the self-signed certificate authority

    Args:
        config: Certificate configuration

    Returns:
        CertificateAuthority with subject == issuer and BasicConstraints CA=true

    Raises:
        CryptoError: if key generation or signing fails
    """
    private_key = generate_private_key(config.key_size)
    subject = build_subject(AUTHORITY_COMMON_NAME, config)
    not_before, not_after = validity_window(config)

    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(subject)
        .public_key(private_key.public_key())
        .serial_number(CA_SERIAL_NUMBER)
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
    )
    certificate = _sign(builder, private_key)

    logger.info(f"Generated certificate authority {AUTHORITY_COMMON_NAME} valid until {not_after.isoformat()}")
    return CertificateAuthority(private_key=private_key, certificate=certificate)


def issue_leaf(authority: CertificateAuthority, role: CertificateRole,
               config: CertificateConfig) -> LeafCertificate:
    """
    Issue a server or client certificate signed by the authority

    Args:
        authority: Signing certificate authority
        role: server or client, selects the common name, serial and extended key usage
        config: Certificate configuration

    Returns:
        LeafCertificate whose issuer is the authority's subject

    Raises:
        ConfigError: if role is neither server nor client
        CryptoError: if key generation or signing fails
    """
    try:
        role = CertificateRole(role)
    except ValueError:
        raise ConfigError(f"Unsupported certificate role: {role}")
    private_key = generate_private_key(config.key_size)
    not_before, not_after = validity_window(config)

    builder = (
        x509.CertificateBuilder()
        .subject_name(build_subject(role.value, config))
        .issuer_name(authority.certificate.subject)
        .public_key(private_key.public_key())
        .serial_number(LEAF_SERIAL_NUMBERS[role])
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=True,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=False,
                crl_sign=False,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=False,
        )
        .add_extension(x509.ExtendedKeyUsage([LEAF_EXTENDED_KEY_USAGES[role]]), critical=False)
    )
    certificate = _sign(builder, authority.private_key)

    logger.info(f"Issued {role.value} certificate with serial {LEAF_SERIAL_NUMBERS[role]}")
    return LeafCertificate(role=role, private_key=private_key, certificate=certificate)


def generate_certificate_batch(config: CertificateConfig) -> CertificateBatch:
    """
    Generate the CA and both leaves; a failure anywhere discards the whole batch
    """
    authority = generate_authority(config)
    return CertificateBatch(
        authority=authority,
        server=issue_leaf(authority, CertificateRole.SERVER, config),
        client=issue_leaf(authority, CertificateRole.CLIENT, config),
    )
