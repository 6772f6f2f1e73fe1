"""信任策略类型定义"""
from enum import IntEnum, Enum
from dataclasses import dataclass
from typing import Optional


class PolicyMode(str, Enum):
    """信任策略模式"""
    STRICT = "strict"            # 生产环境：链验证 + 主机名验证 + 可选证书固定
    PERMISSIVE = "permissive"    # 仅测试环境：跳过所有验证


class FingerprintType(str, Enum):
    """证书固定使用的指纹类型"""
    SPKI_SHA256 = "spki"          # SubjectPublicKeyInfo 的 SHA-256
    CERT_SHA256 = "certificate"   # 整个DER证书的 SHA-256


class AlertDescription(IntEnum):
    """TLS警报描述（证书相关子集）"""
    handshake_failure = 40
    bad_certificate = 42
    unsupported_certificate = 43
    certificate_revoked = 44
    certificate_expired = 45
    certificate_unknown = 46
    unknown_ca = 48
    internal_error = 80
    unrecognized_name = 112
    certificate_required = 116


class RejectionReason(str, Enum):
    """拒绝原因"""
    EMPTY_CHAIN = "no certificate presented"
    INVALID_HOSTNAME = "invalid hostname"
    CHAIN_VALIDATION_FAILED = "chain validation failed"
    HOSTNAME_MISMATCH = "hostname mismatch"
    PIN_MISMATCH = "pin mismatch"


# 链验证子原因 -> 警报
_CHAIN_DETAIL_ALERTS = {
    "expired": AlertDescription.certificate_expired,
    "not yet valid": AlertDescription.certificate_expired,
    "untrusted root": AlertDescription.unknown_ca,
    "unknown issuer": AlertDescription.unknown_ca,
    "unsupported algorithm": AlertDescription.unsupported_certificate,
    "weak signature algorithm": AlertDescription.unsupported_certificate,
    "extended key usage": AlertDescription.unsupported_certificate,
    "unsupported critical extension": AlertDescription.unsupported_certificate,
}

_REASON_ALERTS = {
    RejectionReason.EMPTY_CHAIN: AlertDescription.certificate_required,
    RejectionReason.INVALID_HOSTNAME: AlertDescription.unrecognized_name,
    RejectionReason.CHAIN_VALIDATION_FAILED: AlertDescription.bad_certificate,
    RejectionReason.HOSTNAME_MISMATCH: AlertDescription.certificate_unknown,
    RejectionReason.PIN_MISMATCH: AlertDescription.certificate_unknown,
}


@dataclass(frozen=True)
class Decision:
    """
    信任决策：Trusted 或 Rejected，没有中间状态

    reason 仅在 Rejected 时存在；detail 为链验证的具体子原因
    """
    trusted: bool
    reason: Optional[RejectionReason] = None
    detail: Optional[str] = None

    def __post_init__(self):
        if self.trusted and self.reason is not None:
            raise ValueError("A trusted decision cannot carry a rejection reason")
        if not self.trusted and self.reason is None:
            raise ValueError("A rejected decision requires a reason")

    @classmethod
    def accept(cls) -> "Decision":
        return cls(trusted=True)

    @classmethod
    def reject(cls, reason: RejectionReason, detail: Optional[str] = None) -> "Decision":
        return cls(trusted=False, reason=reason, detail=detail)

    @property
    def rejected(self) -> bool:
        return not self.trusted

    @property
    def alert(self) -> Optional[AlertDescription]:
        """拒绝时应发送的TLS致命警报"""
        if self.trusted:
            return None
        if self.reason is RejectionReason.CHAIN_VALIDATION_FAILED and self.detail in _CHAIN_DETAIL_ALERTS:
            return _CHAIN_DETAIL_ALERTS[self.detail]
        return _REASON_ALERTS[self.reason]

    def __str__(self) -> str:
        if self.trusted:
            return "Trusted"
        if self.detail:
            return f"Rejected({self.reason.value}: {self.detail})"
        return f"Rejected({self.reason.value})"
