import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, FrozenSet, Iterable, Optional, Protocol, Union, runtime_checkable

from cryptography import x509

from ..exceptions import ChainValidationError, PolicyConfigurationError
from ..models.certificates import CertificateInfo, ServerTrustChain
from ..trust_store import TrustStore
from ..types import Decision, PolicyMode, RejectionReason
from .algorithms import AlgorithmRegistry, DEFAULT_ALLOWED_HASHES
from .chain_builder import DEFAULT_MAX_DEPTH
from .hostname import match_hostname, normalize_hostname
from .pinning import PinningConfiguration
from .verifier import ChainVerifier

logger = logging.getLogger(__name__)

ChainInput = Union[ServerTrustChain, Iterable[Union[bytes, x509.Certificate, CertificateInfo]]]
Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_chain(chain: ChainInput) -> ServerTrustChain:
    if isinstance(chain, ServerTrustChain):
        return chain
    if chain is None:
        return ServerTrustChain()
    return ServerTrustChain(chain)


def _is_non_empty(chain) -> bool:
    if chain is None:
        return False
    if isinstance(chain, ServerTrustChain):
        return bool(chain)
    return any(True for _ in chain)


@runtime_checkable
class TrustPolicy(Protocol):
    """
    信任评估契约

    evaluate 是输入与策略自身不可变配置的纯函数：
    不做网络请求、不修改共享状态，可被多个握手并发调用。
    不可信的证书通过 Rejected 决策表达，而不是异常。
    """

    mode: PolicyMode

    def evaluate(self, chain: ChainInput, hostname: str) -> Decision:
        ...


@dataclass(frozen=True)
class VerificationOptions:
    """严格策略的验证选项"""
    allowed_signature_hashes: FrozenSet[str] = field(default=DEFAULT_ALLOWED_HASHES)
    max_chain_depth: int = DEFAULT_MAX_DEPTH


class StrictTrustPolicy:
    """
    生产环境策略

    按顺序执行，遇到第一个失败即返回：
    1. 证书链验证（信任锚、签名、有效期、CA约束）
    2. 主机名验证
    3. 证书固定（仅当该主机或全局存在固定条目）
    """

    mode = PolicyMode.STRICT

    def __init__(self,
                 trust_store: TrustStore,
                 pinning: Optional[PinningConfiguration] = None,
                 options: Optional[VerificationOptions] = None,
                 clock: Optional[Clock] = None):

        self.trust_store = trust_store
        self.pinning = pinning or PinningConfiguration()
        self.options = options or VerificationOptions()
        self.clock = clock or _utc_now

        self._verifier = ChainVerifier(
            trust_store,
            AlgorithmRegistry(self.options.allowed_signature_hashes),
            self.options.max_chain_depth,
        )

    def with_pinning(self, pinning: Optional[PinningConfiguration]) -> "StrictTrustPolicy":
        """返回使用新固定配置的新策略实例（整体替换，不原地修改）"""
        return StrictTrustPolicy(self.trust_store, pinning, self.options, self.clock)

    def evaluate(self, chain: ChainInput, hostname: str) -> Decision:
        server_chain = _as_chain(chain)
        if not server_chain:
            return self._reject(RejectionReason.EMPTY_CHAIN, hostname)

        # 输入约束：主机名必须是非空字符串
        if not isinstance(hostname, str) or not hostname.strip():
            return self._reject(RejectionReason.INVALID_HOSTNAME, hostname)

        # 1. 证书链验证（与主机名无关）
        try:
            validated_chain = self._verifier.verify_certificate_chain(
                server_chain.leaf,
                server_chain.intermediates,
                self.clock(),
            )
        except ChainValidationError as e:
            return self._reject(RejectionReason.CHAIN_VALIDATION_FAILED, hostname, e.detail)

        # 2. 主机名验证；无法规范化的主机名不可能匹配任何证书
        try:
            host = normalize_hostname(hostname)
        except ValueError as e:
            return self._reject(RejectionReason.HOSTNAME_MISMATCH, hostname, str(e))
        if not match_hostname(server_chain.leaf, host):
            return self._reject(RejectionReason.HOSTNAME_MISMATCH, host)

        # 3. 证书固定
        pinned = self.pinning.check(host, validated_chain)
        if pinned is False:
            return self._reject(RejectionReason.PIN_MISMATCH, host)

        logger.debug("Trusted %s (chain depth %d, pinned=%s)", host, len(validated_chain), pinned)
        return Decision.accept()

    def _reject(self, reason: RejectionReason, hostname, detail: Optional[str] = None) -> Decision:
        logger.info("Rejected certificate for %r: %s%s", hostname, reason.value,
                    f" ({detail})" if detail else "")
        return Decision.reject(reason, detail)

    def __repr__(self) -> str:
        return f"StrictTrustPolicy(trust_store={self.trust_store!r}, pinning={self.pinning!r})"


class PermissiveTrustPolicy:
    """
    仅用于测试的策略：任何非空证书链、任何主机名都被信任

    用于连接使用自签名或主机名不匹配证书的测试端点。
    必须显式传入 test_mode=True，否则视为配置错误。
    """

    mode = PolicyMode.PERMISSIVE

    def __init__(self, test_mode: bool = False):
        if not test_mode:
            raise PolicyConfigurationError(
                "PermissiveTrustPolicy disables certificate validation and "
                "may only be constructed with test_mode=True"
            )
        logger.warning("Permissive TLS trust policy active: certificate validation is DISABLED")

    def evaluate(self, chain: ChainInput, hostname: str) -> Decision:
        # 不解析证书内容：畸形证书同样被接受
        if not _is_non_empty(chain):
            logger.info("Rejected certificate for %r: %s", hostname, RejectionReason.EMPTY_CHAIN.value)
            return Decision.reject(RejectionReason.EMPTY_CHAIN)
        return Decision.accept()

    def __repr__(self) -> str:
        return "PermissiveTrustPolicy()"
