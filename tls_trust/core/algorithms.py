from typing import Callable, Dict, FrozenSet, Iterable

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import ec, ed448, ed25519, rsa

from ..exceptions import AlgorithmNotSupportedError, ChainValidationError
from ..models.certificates import CertificateInfo

# 默认允许的签名哈希（MD5 / SHA-1 视为弱算法）
DEFAULT_ALLOWED_HASHES: FrozenSet[str] = frozenset({"sha224", "sha256", "sha384", "sha512"})


class AlgorithmRegistry:
    """算法注册器 - 按颁发者公钥类型分派证书签名验证"""

    def __init__(self, allowed_hashes: Iterable[str] = DEFAULT_ALLOWED_HASHES):
        self.allowed_hashes = frozenset(h.lower() for h in allowed_hashes)
        self._verifiers: Dict[type, Callable[[CertificateInfo, object], None]] = {}
        self._setup_verifiers()

    def _setup_verifiers(self):
        """注册验证器"""
        self._verifiers.update({
            rsa.RSAPublicKey: self._verify_with_parameters,
            ec.EllipticCurvePublicKey: self._verify_with_parameters,
            ed25519.Ed25519PublicKey: self._verify_eddsa,
            ed448.Ed448PublicKey: self._verify_eddsa,
        })

    def check_signature_hash(self, certificate: CertificateInfo) -> None:
        """检查证书签名所用哈希是否在允许列表中（EdDSA 无独立哈希）"""
        try:
            hash_algorithm = certificate.certificate.signature_hash_algorithm
        except UnsupportedAlgorithm as e:
            raise AlgorithmNotSupportedError(
                f"Unsupported signature algorithm for {certificate.subject_text}: {e}"
            ) from e

        if hash_algorithm is None:
            return
        if hash_algorithm.name.lower() not in self.allowed_hashes:
            raise ChainValidationError(
                "weak signature algorithm",
                f"Signature hash {hash_algorithm.name} not allowed for {certificate.subject_text}",
            )

    def verify_signature(self, subject: CertificateInfo, issuer: CertificateInfo) -> bool:
        """使用颁发者公钥验证证书签名"""
        try:
            public_key = issuer.certificate.public_key()
        except UnsupportedAlgorithm as e:
            raise AlgorithmNotSupportedError(
                f"Unsupported issuer key for {issuer.subject_text}: {e}"
            ) from e
        for key_type, verifier in self._verifiers.items():
            if isinstance(public_key, key_type):
                try:
                    verifier(subject, public_key)
                except UnsupportedAlgorithm as e:
                    raise AlgorithmNotSupportedError(
                        f"Unsupported signature algorithm for {subject.subject_text}: {e}"
                    ) from e
                except (InvalidSignature, TypeError, ValueError):
                    # 签名无效，或签名算法与颁发者密钥类型不匹配
                    return False
                return True

        raise AlgorithmNotSupportedError(
            f"Unsupported issuer key type: {type(public_key).__name__}"
        )

    def _verify_with_parameters(self, subject: CertificateInfo, public_key) -> None:
        # RSA 返回 PKCS1v15/PSS 填充，EC 返回 ECDSA(hash)
        certificate = subject.certificate
        parameters = certificate.signature_algorithm_parameters
        if isinstance(public_key, rsa.RSAPublicKey):
            public_key.verify(
                certificate.signature,
                certificate.tbs_certificate_bytes,
                parameters,
                certificate.signature_hash_algorithm,
            )
        else:
            public_key.verify(
                certificate.signature,
                certificate.tbs_certificate_bytes,
                parameters,
            )

    def _verify_eddsa(self, subject: CertificateInfo, public_key) -> None:
        certificate = subject.certificate
        public_key.verify(certificate.signature, certificate.tbs_certificate_bytes)
