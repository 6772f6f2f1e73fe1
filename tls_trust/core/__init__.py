"""
信任策略 - 核心包

提供信任评估契约、严格/宽松两种策略，以及链验证、主机名验证和证书固定。
"""

from .policies import TrustPolicy, StrictTrustPolicy, PermissiveTrustPolicy, VerificationOptions
from .verifier import ChainVerifier
from .algorithms import AlgorithmRegistry
from .chain_builder import CertificateChainBuilder
from .hostname import match_hostname, normalize_hostname
from .pinning import Pin, PinningConfiguration, parse_pin

__all__ = [
    'TrustPolicy',
    'StrictTrustPolicy',
    'PermissiveTrustPolicy',
    'VerificationOptions',
    'ChainVerifier',
    'AlgorithmRegistry',
    'CertificateChainBuilder',
    'match_hostname',
    'normalize_hostname',
    'Pin',
    'PinningConfiguration',
    'parse_pin',
]
