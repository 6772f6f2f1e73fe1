"""
信任存储
加载本地根CA（信任锚），根据证书的issuer动态匹配对应的根CA
"""

import logging
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import certifi
from cryptography import x509

from .exceptions import TrustStoreError
from .models.certificates import CertificateInfo

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class TrustStore:
    """
    信任存储

    功能：
    1. 存储多个根CA（信任锚），构造后不可修改
    2. 根据证书的issuer查找候选根CA
    3. 判断某个证书本身是否为信任锚
    """

    def __init__(self, anchors: Iterable[Union[x509.Certificate, CertificateInfo]]):
        by_subject: Dict[x509.Name, List[CertificateInfo]] = {}
        fingerprints = set()
        for anchor in anchors:
            info = anchor if isinstance(anchor, CertificateInfo) else CertificateInfo.from_x509(anchor)
            if info.fingerprint_sha256 in fingerprints:
                continue
            fingerprints.add(info.fingerprint_sha256)
            by_subject.setdefault(info.subject, []).append(info)

        if not fingerprints:
            raise TrustStoreError("Trust store contains no root certificates")

        self._by_subject = MappingProxyType({k: tuple(v) for k, v in by_subject.items()})
        self._fingerprints = frozenset(fingerprints)

    @classmethod
    def from_pem(cls, pem_data: Union[bytes, str]) -> "TrustStore":
        if isinstance(pem_data, str):
            pem_data = pem_data.encode("ascii")
        try:
            certificates = x509.load_pem_x509_certificates(pem_data)
        except ValueError as e:
            raise TrustStoreError(f"Cannot parse trust bundle: {e}") from e
        return cls(certificates)

    @classmethod
    def from_files(cls, paths: Sequence[PathLike]) -> "TrustStore":
        """从一个或多个PEM文件加载信任锚"""
        certificates: List[x509.Certificate] = []
        for path in paths:
            path = Path(path)
            try:
                data = path.read_bytes()
            except OSError as e:
                raise TrustStoreError(f"Cannot read trust bundle {path}: {e}") from e
            try:
                loaded = x509.load_pem_x509_certificates(data)
            except ValueError as e:
                raise TrustStoreError(f"Cannot parse trust bundle {path}: {e}") from e
            logger.debug("Loaded %d root certificates from %s", len(loaded), path)
            certificates.extend(loaded)
        return cls(certificates)

    @classmethod
    def default(cls) -> "TrustStore":
        """certifi 提供的 Mozilla 根证书集合"""
        return cls.from_files([certifi.where()])

    def find_issuers(self, certificate: CertificateInfo) -> Tuple[CertificateInfo, ...]:
        """查找subject与证书issuer匹配的根CA（可能有多个，例如密钥轮换）"""
        return self._by_subject.get(certificate.issuer, ())

    def contains(self, certificate: CertificateInfo) -> bool:
        """检查证书本身是否为信任锚（DER完全一致）"""
        return certificate.fingerprint_sha256 in self._fingerprints

    @property
    def anchors(self) -> Tuple[CertificateInfo, ...]:
        return tuple(info for infos in self._by_subject.values() for info in infos)

    def __len__(self) -> int:
        return len(self._fingerprints)

    def __repr__(self) -> str:
        return f"TrustStore({len(self)} anchors)"


def load_trust_store(bundle_path: Optional[PathLike] = None) -> TrustStore:
    """加载信任存储：指定的PEM文件，或certifi默认集合"""
    if bundle_path is None:
        store = TrustStore.default()
    else:
        store = TrustStore.from_files([bundle_path])
    logger.info("Trust store ready: %d anchors", len(store))
    return store
