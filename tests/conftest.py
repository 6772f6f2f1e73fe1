"""测试用证书链生成（根CA -> 中间CA -> 服务器证书）"""

import ipaddress
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence, Tuple

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed448, ed25519, rsa
from cryptography.x509.oid import NameOID

from tls_trust import ServerTrustChain, StrictTrustPolicy, TrustStore

NOW = datetime(2026, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def fixed_clock(moment: datetime = NOW):
    return lambda: moment


def _signature_hash(key, default=None):
    # EdDSA 不使用独立哈希
    if isinstance(key, (ed25519.Ed25519PrivateKey, ed448.Ed448PrivateKey)):
        return None
    return default or hashes.SHA256()


@dataclass
class Issued:
    cert: x509.Certificate
    key: object

    @property
    def der(self) -> bytes:
        return self.cert.public_bytes(serialization.Encoding.DER)

    @property
    def pem(self) -> bytes:
        return self.cert.public_bytes(serialization.Encoding.PEM)


def _name(common_name: str, unit: str = "Test") -> x509.Name:
    return x509.Name([
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, "TLS Trust Test Lab"),
        x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, unit),
        x509.NameAttribute(NameOID.COMMON_NAME, common_name),
    ])


def make_ca(common_name: str = "Test Root CA",
            issuer: Optional[Issued] = None,
            path_length: Optional[int] = 1,
            not_before: datetime = NOW - timedelta(days=365),
            not_after: datetime = NOW + timedelta(days=3650),
            key=None,
            ca: bool = True,
            extensions: Sequence[Tuple[x509.ExtensionType, bool]] = ()) -> Issued:
    """生成CA证书；issuer 为 None 时自签名；extensions 为附加的 (扩展, 是否关键)"""
    key = key or ec.generate_private_key(ec.SECP256R1())
    subject = _name(common_name, "CA")
    builder = x509.CertificateBuilder().subject_name(
        subject
    ).issuer_name(
        issuer.cert.subject if issuer else subject
    ).public_key(
        key.public_key()
    ).serial_number(
        x509.random_serial_number()
    ).not_valid_before(
        not_before
    ).not_valid_after(
        not_after
    ).add_extension(
        x509.BasicConstraints(ca=ca, path_length=path_length if ca else None),
        critical=True,
    ).add_extension(
        x509.SubjectKeyIdentifier.from_public_key(key.public_key()),
        critical=False,
    )
    for extension, critical in extensions:
        builder = builder.add_extension(extension, critical=critical)
    signing_key = issuer.key if issuer else key
    return Issued(builder.sign(signing_key, _signature_hash(signing_key)), key)


def make_leaf(issuer: Issued,
              common_name: str = "example.com",
              dns_names: Optional[Sequence[str]] = ("example.com",),
              ip_addresses: Sequence[str] = (),
              not_before: datetime = NOW - timedelta(days=30),
              not_after: datetime = NOW + timedelta(days=365),
              hash_algorithm=None,
              key=None,
              extensions: Sequence[Tuple[x509.ExtensionType, bool]] = ()) -> Issued:
    """生成服务器证书；dns_names 为 None 且无 ip_addresses 时不带SAN扩展"""
    key = key or ec.generate_private_key(ec.SECP256R1())
    builder = x509.CertificateBuilder().subject_name(
        _name(common_name, "Server")
    ).issuer_name(
        issuer.cert.subject
    ).public_key(
        key.public_key()
    ).serial_number(
        x509.random_serial_number()
    ).not_valid_before(
        not_before
    ).not_valid_after(
        not_after
    ).add_extension(
        x509.BasicConstraints(ca=False, path_length=None),
        critical=True,
    )

    general_names: List[x509.GeneralName] = [x509.DNSName(n) for n in (dns_names or ())]
    general_names += [x509.IPAddress(ipaddress.ip_address(ip)) for ip in ip_addresses]
    if general_names:
        builder = builder.add_extension(x509.SubjectAlternativeName(general_names), critical=False)
    for extension, critical in extensions:
        builder = builder.add_extension(extension, critical=critical)

    return Issued(builder.sign(issuer.key, _signature_hash(issuer.key, hash_algorithm)), key)


def make_self_signed(common_name: str = "example.com",
                     dns_names: Sequence[str] = ("example.com",)) -> Issued:
    key = ec.generate_private_key(ec.SECP256R1())
    subject = _name(common_name, "Self-Signed")
    cert = x509.CertificateBuilder().subject_name(
        subject
    ).issuer_name(
        subject
    ).public_key(
        key.public_key()
    ).serial_number(
        x509.random_serial_number()
    ).not_valid_before(
        NOW - timedelta(days=1)
    ).not_valid_after(
        NOW + timedelta(days=30)
    ).add_extension(
        x509.SubjectAlternativeName([x509.DNSName(n) for n in dns_names]),
        critical=False,
    ).sign(key, hashes.SHA256())
    return Issued(cert, key)


def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@dataclass
class Pki:
    root: Issued
    intermediate: Issued
    leaf: Issued

    @property
    def trust_store(self) -> TrustStore:
        return TrustStore([self.root.cert])

    @property
    def chain(self) -> ServerTrustChain:
        return ServerTrustChain.from_certificates([self.leaf.cert, self.intermediate.cert])


def build_pki(now: datetime = NOW) -> Pki:
    validity = dict(not_before=now - timedelta(days=365), not_after=now + timedelta(days=3650))
    root = make_ca("Test Root CA", path_length=1, **validity)
    intermediate = make_ca("Test Intermediate CA", issuer=root, path_length=0, **validity)
    leaf = make_leaf(intermediate, "example.com", dns_names=["example.com", "www.example.com"],
                     not_before=now - timedelta(days=30), not_after=now + timedelta(days=365))
    return Pki(root=root, intermediate=intermediate, leaf=leaf)


@pytest.fixture(scope="session")
def pki() -> Pki:
    return build_pki()


@pytest.fixture(scope="session")
def live_pki() -> Pki:
    """有效期以真实当前时间为基准（供使用系统时钟的代码路径）"""
    return build_pki(datetime.now(timezone.utc))


@pytest.fixture()
def strict_policy(pki: Pki) -> StrictTrustPolicy:
    return StrictTrustPolicy(pki.trust_store, clock=fixed_clock())
