"""
证书固定（Pinning）配置

每个主机（或全局 "*"）配置一组期望的指纹；只要某个主机存在适用的固定条目，
已验证的证书链中必须至少有一个证书与其中之一匹配。
固定只能收窄信任范围，永远不能让本来无效的证书链被接受。
"""

import base64
import binascii
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Union

from pydantic import BaseModel, ValidationError

from ..exceptions import PinningConfigError
from ..models.certificates import CertificateInfo
from ..types import FingerprintType
from .hostname import dnsname_match, normalize_hostname

logger = logging.getLogger(__name__)

GLOBAL_PIN_KEY = "*"
SHA256_DIGEST_SIZE = 32

# 前缀 -> 指纹类型（OkHttp / HPKP 风格的 "sha256/" 表示SPKI哈希）
_PIN_PREFIXES = {
    "sha256/": FingerprintType.SPKI_SHA256,
    "spki-sha256/": FingerprintType.SPKI_SHA256,
    "cert-sha256/": FingerprintType.CERT_SHA256,
}


@dataclass(frozen=True)
class Pin:
    """单个固定指纹"""
    kind: FingerprintType
    digest: bytes

    def matches(self, cert: CertificateInfo) -> bool:
        if self.kind is FingerprintType.SPKI_SHA256:
            return cert.spki_sha256 == self.digest
        return cert.fingerprint_sha256 == self.digest

    def __str__(self) -> str:
        prefix = "sha256/" if self.kind is FingerprintType.SPKI_SHA256 else "cert-sha256/"
        return prefix + base64.b64encode(self.digest).decode("ascii")


# Pydantic模型用于固定配置文件
class PinFile(BaseModel):
    fingerprint_type: FingerprintType = FingerprintType.SPKI_SHA256
    pins: Dict[str, List[str]] = {}


def parse_pin(value: Union[str, Pin], default_kind: FingerprintType = FingerprintType.SPKI_SHA256) -> Pin:
    """
    解析指纹字符串

    支持的格式：
        sha256/<base64>         SPKI SHA-256
        cert-sha256/<base64>    证书 SHA-256
        <hex>、AA:BB:...        使用 default_kind
        <base64>                使用 default_kind
    """
    if isinstance(value, Pin):
        return value
    if not isinstance(value, str) or not value.strip():
        raise PinningConfigError(f"Invalid pin: {value!r}")

    text = value.strip()
    kind = default_kind
    for prefix, prefix_kind in _PIN_PREFIXES.items():
        if text.lower().startswith(prefix):
            kind = prefix_kind
            text = text[len(prefix):]
            break

    digest = _decode_digest(text)
    if digest is None:
        raise PinningConfigError(f"Pin is not a SHA-256 digest: {value!r}")
    return Pin(kind=kind, digest=digest)


def _decode_digest(text: str) -> Optional[bytes]:
    hex_text = text.replace(":", "")
    if len(hex_text) == SHA256_DIGEST_SIZE * 2:
        try:
            return bytes.fromhex(hex_text)
        except ValueError:
            pass
    try:
        digest = base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError):
        return None
    return digest if len(digest) == SHA256_DIGEST_SIZE else None


class PinningConfiguration:
    """
    主机 -> 固定指纹集合（不可变）

    主机键可以是精确主机名，"*.example.com" 通配模式，或全局键 "*"。
    适用于某主机的指纹 = 所有匹配的主机条目 ∪ 全局条目。
    """

    def __init__(self, pins: Optional[Mapping[str, Iterable[Union[str, Pin]]]] = None,
                 default_kind: FingerprintType = FingerprintType.SPKI_SHA256):
        self.default_kind = default_kind

        entries: Dict[str, FrozenSet[Pin]] = {}
        for host, host_pins in (pins or {}).items():
            if isinstance(host_pins, (str, Pin)):
                host_pins = [host_pins]
            key = self._normalize_key(host)
            parsed = frozenset(parse_pin(p, default_kind) for p in host_pins)
            if not parsed:
                continue
            entries[key] = entries.get(key, frozenset()) | parsed

        self._entries = MappingProxyType(entries)

    @staticmethod
    def _normalize_key(host: str) -> str:
        if host == GLOBAL_PIN_KEY:
            return host
        if not isinstance(host, str):
            raise PinningConfigError(f"Invalid pinned host: {host!r}")
        if host.startswith("*."):
            try:
                return "*." + normalize_hostname(host[2:])
            except ValueError as e:
                raise PinningConfigError(f"Invalid pinned host {host!r}: {e}") from e
        try:
            return normalize_hostname(host)
        except ValueError as e:
            raise PinningConfigError(f"Invalid pinned host {host!r}: {e}") from e

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PinningConfiguration":
        """
        从字典构建，格式：
            {"fingerprint_type": "spki" | "certificate",
             "pins": {"example.com": ["sha256/..."], "*": ["..."]}}
        """
        if not isinstance(data, Mapping):
            raise PinningConfigError("Pinning configuration must be an object")

        try:
            pin_file = PinFile.model_validate(dict(data))
        except ValidationError as e:
            raise PinningConfigError(f"Invalid pinning configuration: {e}") from e
        return cls(pin_file.pins, default_kind=pin_file.fingerprint_type)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "PinningConfiguration":
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except OSError as e:
            raise PinningConfigError(f"Cannot read pinning file {path}: {e}") from e
        except json.JSONDecodeError as e:
            raise PinningConfigError(f"Invalid JSON in pinning file {path}: {e}") from e
        config = cls.from_mapping(data)
        logger.info("Loaded pinning configuration from %s: %d entries", path, len(config))
        return config

    def pins_for(self, hostname: str) -> FrozenSet[Pin]:
        """返回适用于主机名（已规范化）的全部固定指纹；为空表示不做固定检查"""
        applicable = set(self._entries.get(GLOBAL_PIN_KEY, frozenset()))
        for key, pins in self._entries.items():
            if key == GLOBAL_PIN_KEY:
                continue
            if key == hostname or (key.startswith("*.") and dnsname_match(key, hostname)):
                applicable |= pins
        return frozenset(applicable)

    def check(self, hostname: str, chain: Sequence[CertificateInfo]) -> Optional[bool]:
        """
        None: 没有适用的固定条目（跳过）
        True/False: 证书链中是否至少有一个证书匹配
        """
        pins = self.pins_for(hostname)
        if not pins:
            return None
        return any(pin.matches(cert) for cert in chain for pin in pins)

    @property
    def hosts(self):
        return tuple(self._entries.keys())

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def __repr__(self) -> str:
        return f"PinningConfiguration(hosts={list(self._entries)!r}, default_kind={self.default_kind.value!r})"
