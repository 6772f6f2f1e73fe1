from typing import Optional


class TrustPolicyError(Exception):
    """信任策略基础异常"""
    pass


class CertificateParseError(TrustPolicyError):
    """证书数据无法解析（环境/库故障，而非信任判断）"""
    pass


class ChainValidationError(TrustPolicyError):
    """证书链验证失败，detail 为具体原因（expired、untrusted root 等）"""

    def __init__(self, detail: str, message: Optional[str] = None):
        super().__init__(message or detail)
        self.detail = detail


class AlgorithmNotSupportedError(ChainValidationError):
    """签名算法不支持"""

    def __init__(self, message: str):
        super().__init__("unsupported algorithm", message)


class TrustStoreError(TrustPolicyError):
    """信任存储加载失败"""
    pass


class PinningConfigError(TrustPolicyError):
    """证书固定配置无效"""
    pass


class PolicyConfigurationError(TrustPolicyError):
    """策略选择配置错误（例如在非测试环境启用宽松策略）"""
    pass


class TrustRejectedError(TrustPolicyError):
    """传输层拒绝连接：服务器证书未通过信任策略"""

    def __init__(self, decision, message: str = "secure connection failed"):
        super().__init__(message)
        self.decision = decision
