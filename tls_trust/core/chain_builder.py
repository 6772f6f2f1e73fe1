from typing import Dict, List, Optional, Sequence

from cryptography import x509

from ..exceptions import ChainValidationError
from ..models.certificates import CertificateInfo
from ..trust_store import TrustStore
from .algorithms import AlgorithmRegistry

DEFAULT_MAX_DEPTH = 10


class CertificateChainBuilder:
    """证书链构建器：从叶子证书经中间证书构建到信任锚的路径"""

    def __init__(self, trust_store: TrustStore,
                 algorithm_registry: Optional[AlgorithmRegistry] = None,
                 max_depth: int = DEFAULT_MAX_DEPTH):
        self.trust_store = trust_store
        self.algorithm_registry = algorithm_registry or AlgorithmRegistry()
        self.max_depth = max_depth

    def build_chain(self, leaf_cert: CertificateInfo,
                    intermediate_certs: Sequence[CertificateInfo]) -> List[CertificateInfo]:
        """
        构建从叶子证书到信任锚的完整证书链

        中间证书顺序任意，多余的证书会被忽略。
        每一步都用候选颁发者的公钥验证签名，因此交叉签名时会尝试所有候选。
        返回: [叶子, 中间..., 信任锚]；失败抛出 ChainValidationError
        """
        # 缓存只在本次调用内有效，实例本身不持有可变状态
        cert_cache = self._build_cert_cache(intermediate_certs)
        return self._extend([leaf_cert], cert_cache)

    def _extend(self, chain: List[CertificateInfo],
                cert_cache: Dict[x509.Name, List[CertificateInfo]]) -> List[CertificateInfo]:
        current_cert = chain[-1]

        if self.trust_store.contains(current_cert):
            return chain

        # max_depth 计入链上的每个证书（含信任锚）；再追加一个颁发者不能超出
        if len(chain) >= self.max_depth:
            raise ChainValidationError(
                "chain too long",
                f"Certificate chain exceeds maximum depth {self.max_depth}",
            )

        anchors = self.trust_store.find_issuers(current_cert)
        intermediates = [
            cert for cert in cert_cache.get(current_cert.issuer, [])
            if cert not in chain  # 检查循环引用
        ]

        if not anchors and not intermediates:
            if current_cert.is_self_issued:
                raise ChainValidationError(
                    "untrusted root",
                    f"Self-signed certificate is not trusted: {current_cert.subject_text}",
                )
            raise ChainValidationError(
                "unknown issuer",
                f"Cannot find issuer for certificate: {current_cert.subject_text}",
            )

        first_error: Optional[ChainValidationError] = None

        # 优先直接匹配信任锚
        for anchor in anchors:
            if self.algorithm_registry.verify_signature(current_cert, anchor):
                return chain + [anchor]

        for issuer in intermediates:
            if not self.algorithm_registry.verify_signature(current_cert, issuer):
                continue
            try:
                return self._extend(chain + [issuer], cert_cache)
            except ChainValidationError as e:
                if first_error is None:
                    first_error = e

        if first_error is not None:
            raise first_error
        raise ChainValidationError(
            "bad signature",
            f"Signature verification failed for: {current_cert.subject_text}",
        )

    def _build_cert_cache(self, certificates: Sequence[CertificateInfo]) -> Dict[x509.Name, List[CertificateInfo]]:
        """构建主题到证书的映射以加速查找"""
        cert_cache: Dict[x509.Name, List[CertificateInfo]] = {}
        for cert in certificates:
            cert_cache.setdefault(cert.subject, []).append(cert)
        return cert_cache
