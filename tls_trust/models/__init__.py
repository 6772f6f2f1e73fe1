"""
信任策略 - 数据模型包

定义证书与服务器证书链的只读数据模型。
"""

from .certificates import CertificateInfo, ServerTrustChain

__all__ = [
    'CertificateInfo',
    'ServerTrustChain',
]
