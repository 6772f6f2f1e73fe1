"""
TLS 信任策略模块

为TLS握手提供可插拔的证书信任判断，与具体HTTP传输层无关。

主要功能：
- 严格策略：证书链验证、主机名验证（RFC 6125）、可选证书/公钥固定
- 宽松策略：仅用于测试，接受自签名或主机名不匹配的证书
- 启动时一次性选择策略，之后注入传输层

使用示例：
    from tls_trust import load_trust_policy, ServerTrustChain

    policy = load_trust_policy()
    decision = policy.evaluate(ServerTrustChain.from_der(der_certs), "example.com")
    if decision.rejected:
        ...
"""

from .core import (
    TrustPolicy,
    StrictTrustPolicy,
    PermissiveTrustPolicy,
    VerificationOptions,
    Pin,
    PinningConfiguration,
)

from .models import (
    CertificateInfo,
    ServerTrustChain,
)

from .types import (
    AlertDescription,
    Decision,
    FingerprintType,
    PolicyMode,
    RejectionReason,
)

from .trust_store import TrustStore, load_trust_store
from .config import TrustSettings, load_trust_policy

from .exceptions import (
    TrustPolicyError,
    CertificateParseError,
    ChainValidationError,
    AlgorithmNotSupportedError,
    TrustStoreError,
    PinningConfigError,
    PolicyConfigurationError,
    TrustRejectedError,
)

__all__ = [
    # 信任策略
    'TrustPolicy',
    'StrictTrustPolicy',
    'PermissiveTrustPolicy',
    'VerificationOptions',
    'Pin',
    'PinningConfiguration',
    'TrustStore',
    'load_trust_store',
    'TrustSettings',
    'load_trust_policy',

    # 数据模型
    'CertificateInfo',
    'ServerTrustChain',
    'AlertDescription',
    'Decision',
    'FingerprintType',
    'PolicyMode',
    'RejectionReason',

    # 异常类
    'TrustPolicyError',
    'CertificateParseError',
    'ChainValidationError',
    'AlgorithmNotSupportedError',
    'TrustStoreError',
    'PinningConfigError',
    'PolicyConfigurationError',
    'TrustRejectedError',
]

__version__ = "1.0.0"
