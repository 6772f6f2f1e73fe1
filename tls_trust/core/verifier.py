import logging
from datetime import datetime
from typing import List, Optional, Sequence

from cryptography import x509
from cryptography.x509.oid import ExtendedKeyUsageOID, ExtensionOID

from ..exceptions import ChainValidationError
from ..models.certificates import CertificateInfo
from ..trust_store import TrustStore
from .algorithms import AlgorithmRegistry
from .chain_builder import CertificateChainBuilder, DEFAULT_MAX_DEPTH
from .hostname import dns_name_within

logger = logging.getLogger(__name__)

# 验证器能够理解的关键扩展；其余关键扩展一律拒绝
HANDLED_CRITICAL_EXTENSIONS = frozenset({
    ExtensionOID.BASIC_CONSTRAINTS,
    ExtensionOID.KEY_USAGE,
    ExtensionOID.EXTENDED_KEY_USAGE,
    ExtensionOID.SUBJECT_ALTERNATIVE_NAME,
    ExtensionOID.NAME_CONSTRAINTS,
})

_SERVER_AUTH_USAGES = frozenset({
    ExtendedKeyUsageOID.SERVER_AUTH,
    ExtendedKeyUsageOID.ANY_EXTENDED_KEY_USAGE,
})


class ChainVerifier:
    """
    证书链验证器 - 核心类
    构建到信任锚的证书链，并检查有效期、关键扩展、CA约束、名称约束、
    叶子证书用途与签名算法
    """

    def __init__(self,
                 trust_store: TrustStore,
                 algorithm_registry: Optional[AlgorithmRegistry] = None,
                 max_depth: int = DEFAULT_MAX_DEPTH):

        self.trust_store = trust_store
        self.algorithm_registry = algorithm_registry or AlgorithmRegistry()
        self.chain_builder = CertificateChainBuilder(trust_store, self.algorithm_registry, max_depth)

    def verify_certificate_chain(self,
                                 leaf_cert: CertificateInfo,
                                 intermediate_certs: Sequence[CertificateInfo],
                                 now: datetime) -> List[CertificateInfo]:
        """
        验证完整的证书链
        返回: 已验证的证书链 [叶子, 中间..., 信任锚]，否则抛出 ChainValidationError
        """
        try:
            # 1. 构建证书链（包含逐级签名验证）
            chain = self.chain_builder.build_chain(leaf_cert, intermediate_certs)

            # 2. 有效期
            for cert in chain:
                self._validate_validity_period(cert, now)

            # 3. 关键扩展（信任锚本身不检查）
            for cert in chain[:-1]:
                self._validate_critical_extensions(cert)

            # 4. CA约束
            for depth, ca_cert in enumerate(chain[1:], start=1):
                self._validate_ca_certificate(ca_cert, depth, is_anchor=depth == len(chain) - 1)

            # 5. 名称约束：CA的约束作用于其下的每个证书
            for depth, ca_cert in enumerate(chain[1:], start=1):
                constraints = ca_cert.name_constraints
                if constraints is None:
                    continue
                for index, cert in enumerate(chain[:depth]):
                    # 自颁发的中间证书不受名称约束（RFC 5280 4.2.1.10）
                    if index > 0 and cert.is_self_issued:
                        continue
                    self._apply_name_constraints(constraints, cert, is_leaf=index == 0)

            # 6. 叶子证书用途
            self._validate_leaf_usage(chain[0])

            # 7. 签名算法强度（信任锚的自签名不参与验证）
            for cert in chain[:-1]:
                self.algorithm_registry.check_signature_hash(cert)

            return chain

        except ChainValidationError as e:
            self._log_verification_error(e, leaf_cert, intermediate_certs)
            raise

    def _validate_validity_period(self, cert: CertificateInfo, now: datetime) -> None:
        if now < cert.not_valid_before:
            raise ChainValidationError(
                "not yet valid",
                f"Certificate not valid before {cert.not_valid_before.isoformat()}: {cert.subject_text}",
            )
        if now > cert.not_valid_after:
            raise ChainValidationError(
                "expired",
                f"Certificate expired at {cert.not_valid_after.isoformat()}: {cert.subject_text}",
            )

    def _validate_critical_extensions(self, cert: CertificateInfo) -> None:
        for oid in cert.critical_extension_oids:
            if oid not in HANDLED_CRITICAL_EXTENSIONS:
                raise ChainValidationError(
                    "unsupported critical extension",
                    f"Unhandled critical extension {oid.dotted_string}: {cert.subject_text}",
                )

    def _validate_ca_certificate(self, cert: CertificateInfo, depth: int, is_anchor: bool = False) -> None:
        """验证CA证书（信任锚可以是没有BasicConstraints的v1根证书）"""
        if not cert.is_ca and not (is_anchor and not cert.has_basic_constraints):
            raise ChainValidationError(
                "not a CA",
                f"Issuer certificate at depth {depth} is not a CA: {cert.subject_text}",
            )

        # 存在KeyUsage时必须允许签发证书
        key_usage = cert.key_usage
        if key_usage is not None and not key_usage.key_cert_sign:
            raise ChainValidationError(
                "key usage",
                f"Issuer certificate at depth {depth} lacks keyCertSign: {cert.subject_text}",
            )

        # 路径长度约束：该CA之下最多允许 path_length 个中间CA
        if (cert.path_length_constraint is not None and
                depth - 1 > cert.path_length_constraint):
            raise ChainValidationError(
                "path length exceeded",
                f"Path length constraint violated at depth {depth}: {cert.subject_text}",
            )

    def _apply_name_constraints(self, constraints: x509.NameConstraints,
                                cert: CertificateInfo, is_leaf: bool) -> None:
        """检查证书的DNS与IP名称是否落在 permitted 子树内且不在 excluded 子树内"""
        dns_names = list(cert.dns_names)
        if is_leaf and not cert.has_san:
            # 无SAN时主机名匹配会回退到CN，约束同样作用于CN
            dns_names += cert.common_names

        permitted = constraints.permitted_subtrees or []
        excluded = constraints.excluded_subtrees or []

        permitted_dns = [s.value for s in permitted if isinstance(s, x509.DNSName)]
        excluded_dns = [s.value for s in excluded if isinstance(s, x509.DNSName)]
        for name in dns_names:
            if any(dns_name_within(name, base) for base in excluded_dns):
                self._name_constraint_violation(cert, name, "excluded")
            if permitted_dns and not any(dns_name_within(name, base) for base in permitted_dns):
                self._name_constraint_violation(cert, name, "not permitted")

        permitted_ips = [s.value for s in permitted if isinstance(s, x509.IPAddress)]
        excluded_ips = [s.value for s in excluded if isinstance(s, x509.IPAddress)]
        for ip in cert.ip_addresses:
            if any(ip in network for network in excluded_ips):
                self._name_constraint_violation(cert, str(ip), "excluded")
            if permitted_ips and not any(ip in network for network in permitted_ips):
                self._name_constraint_violation(cert, str(ip), "not permitted")

    def _name_constraint_violation(self, cert: CertificateInfo, name: str, why: str) -> None:
        raise ChainValidationError(
            "name constraints",
            f"Name {name!r} is {why} by issuer name constraints: {cert.subject_text}",
        )

    def _validate_leaf_usage(self, cert: CertificateInfo) -> None:
        """存在ExtendedKeyUsage时必须包含 serverAuth（或 anyExtendedKeyUsage）"""
        usages = cert.extended_key_usage
        if usages is not None and not _SERVER_AUTH_USAGES.intersection(usages):
            raise ChainValidationError(
                "extended key usage",
                f"Certificate is not valid for server authentication: {cert.subject_text}",
            )

    def _log_verification_error(self, error: ChainValidationError,
                                leaf_cert: CertificateInfo,
                                intermediate_certs: Sequence[CertificateInfo]) -> None:
        """记录验证错误详情"""
        logger.debug(
            "Chain validation failed (%s): leaf=%s intermediates=%d: %s",
            error.detail, leaf_cert.subject_text, len(intermediate_certs), error,
        )
