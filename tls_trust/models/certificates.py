import hashlib
import ipaddress
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Tuple, Union

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.x509.oid import NameOID

from ..exceptions import CertificateParseError

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

_PEM_BEGIN = b"-----BEGIN CERTIFICATE-----"


@dataclass(frozen=True)
class CertificateInfo:
    """证书信息抽象（只读）"""
    certificate: x509.Certificate
    der: bytes
    spki: bytes

    @classmethod
    def from_x509(cls, certificate: x509.Certificate) -> "CertificateInfo":
        try:
            der = certificate.public_bytes(serialization.Encoding.DER)
            spki = certificate.public_key().public_bytes(
                serialization.Encoding.DER,
                serialization.PublicFormat.SubjectPublicKeyInfo,
            )
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise CertificateParseError(f"Cannot encode certificate: {e}") from e
        return cls(certificate=certificate, der=der, spki=spki)

    @classmethod
    def from_der(cls, data: bytes) -> "CertificateInfo":
        try:
            certificate = x509.load_der_x509_certificate(data)
        except ValueError as e:
            raise CertificateParseError(f"Malformed DER certificate: {e}") from e
        return cls.from_x509(certificate)

    @property
    def subject(self) -> x509.Name:
        return self.certificate.subject

    @property
    def issuer(self) -> x509.Name:
        return self.certificate.issuer

    @property
    def subject_text(self) -> str:
        return self.certificate.subject.rfc4514_string()

    @property
    def not_valid_before(self) -> datetime:
        return self.certificate.not_valid_before_utc

    @property
    def not_valid_after(self) -> datetime:
        return self.certificate.not_valid_after_utc

    @property
    def is_self_issued(self) -> bool:
        return self.certificate.subject == self.certificate.issuer

    def extension(self, extension_class):
        """返回指定类型扩展的值；不存在时返回 None"""
        try:
            return self.certificate.extensions.get_extension_for_class(extension_class).value
        except x509.ExtensionNotFound:
            return None

    @property
    def critical_extension_oids(self) -> List[x509.ObjectIdentifier]:
        return [ext.oid for ext in self.certificate.extensions if ext.critical]

    def _basic_constraints(self) -> Optional[x509.BasicConstraints]:
        return self.extension(x509.BasicConstraints)

    @property
    def has_basic_constraints(self) -> bool:
        return self._basic_constraints() is not None

    @property
    def is_ca(self) -> bool:
        constraints = self._basic_constraints()
        return constraints is not None and constraints.ca

    @property
    def path_length_constraint(self) -> Optional[int]:
        constraints = self._basic_constraints()
        return constraints.path_length if constraints is not None else None

    @property
    def key_usage(self) -> Optional[x509.KeyUsage]:
        return self.extension(x509.KeyUsage)

    @property
    def extended_key_usage(self) -> Optional[x509.ExtendedKeyUsage]:
        return self.extension(x509.ExtendedKeyUsage)

    @property
    def name_constraints(self) -> Optional[x509.NameConstraints]:
        return self.extension(x509.NameConstraints)

    def _san(self) -> Optional[x509.SubjectAlternativeName]:
        return self.extension(x509.SubjectAlternativeName)

    @property
    def has_san(self) -> bool:
        return self._san() is not None

    @property
    def dns_names(self) -> List[str]:
        san = self._san()
        return san.get_values_for_type(x509.DNSName) if san is not None else []

    @property
    def ip_addresses(self) -> List[IPAddress]:
        san = self._san()
        return san.get_values_for_type(x509.IPAddress) if san is not None else []

    @property
    def common_names(self) -> List[str]:
        return [
            attr.value for attr in self.certificate.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
            if isinstance(attr.value, str)
        ]

    @property
    def fingerprint_sha256(self) -> bytes:
        return hashlib.sha256(self.der).digest()

    @property
    def spki_sha256(self) -> bytes:
        return hashlib.sha256(self.spki).digest()


CertificateInput = Union[bytes, x509.Certificate, CertificateInfo]


class ServerTrustChain:
    """
    服务器证书链（叶子证书在前）

    握手期间由传输层创建，创建后不可修改；策略只读取
    """

    __slots__ = ("_certificates",)

    def __init__(self, certificates: Iterable[CertificateInput] = ()):
        object.__setattr__(self, "_certificates", tuple(_to_info(c) for c in certificates))

    def __setattr__(self, name, value):
        raise AttributeError("ServerTrustChain is immutable")

    @classmethod
    def from_der(cls, der_certificates: Iterable[bytes]) -> "ServerTrustChain":
        return cls(CertificateInfo.from_der(data) for data in der_certificates)

    @classmethod
    def from_pem(cls, pem_data: Union[bytes, str]) -> "ServerTrustChain":
        if isinstance(pem_data, str):
            pem_data = pem_data.encode("ascii")
        if _PEM_BEGIN not in pem_data:
            return cls()
        try:
            certificates = x509.load_pem_x509_certificates(pem_data)
        except ValueError as e:
            raise CertificateParseError(f"Malformed PEM certificate chain: {e}") from e
        return cls(certificates)

    @classmethod
    def from_certificates(cls, certificates: Iterable[x509.Certificate]) -> "ServerTrustChain":
        return cls(certificates)

    @property
    def certificates(self) -> Tuple[CertificateInfo, ...]:
        return self._certificates

    @property
    def leaf(self) -> Optional[CertificateInfo]:
        return self._certificates[0] if self._certificates else None

    @property
    def intermediates(self) -> Tuple[CertificateInfo, ...]:
        return self._certificates[1:]

    def __len__(self) -> int:
        return len(self._certificates)

    def __bool__(self) -> bool:
        return bool(self._certificates)

    def __iter__(self):
        return iter(self._certificates)

    def __getitem__(self, index):
        return self._certificates[index]

    def __eq__(self, other) -> bool:
        if not isinstance(other, ServerTrustChain):
            return NotImplemented
        return [c.der for c in self] == [c.der for c in other]

    def __hash__(self) -> int:
        return hash(tuple(c.der for c in self))

    def __repr__(self) -> str:
        return f"ServerTrustChain({[c.subject_text for c in self]!r})"


def _to_info(value: CertificateInput) -> CertificateInfo:
    if isinstance(value, CertificateInfo):
        return value
    if isinstance(value, x509.Certificate):
        return CertificateInfo.from_x509(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return CertificateInfo.from_der(bytes(value))
    raise CertificateParseError(f"Unsupported certificate input: {type(value).__name__}")
