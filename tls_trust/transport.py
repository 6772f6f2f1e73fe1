"""
传输层适配
将 Python ssl 连接上收到的服务器证书链交给信任策略判断
"""

import logging
import ssl
from typing import List, Union

from .core.policies import TrustPolicy
from .exceptions import CertificateParseError, TrustRejectedError
from .models.certificates import ServerTrustChain
from .types import Decision

logger = logging.getLogger(__name__)

SSLConnection = Union[ssl.SSLSocket, ssl.SSLObject]


def create_client_context() -> ssl.SSLContext:
    """
    创建客户端 SSLContext

    OpenSSL 只负责握手，不做证书与主机名验证；
    握手完成后由 verify_peer 调用信任策略做出决定。
    """
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


def _to_der(item) -> bytes:
    if isinstance(item, (bytes, bytearray)):
        return bytes(item)
    # 部分版本返回证书对象，默认导出PEM
    return ssl.PEM_cert_to_DER_cert(item.public_bytes())


def peer_chain(connection: SSLConnection) -> ServerTrustChain:
    """
    读取服务器发送的证书链（叶子在前）

    Python 3.13+ 提供 get_unverified_chain()，更早版本只能取得叶子证书，
    此时中间证书需要在信任存储中才能构建出完整链。
    """
    der_certificates: List[bytes] = []

    get_unverified_chain = getattr(connection, "get_unverified_chain", None)
    if get_unverified_chain is not None:
        der_certificates = [_to_der(item) for item in (get_unverified_chain() or [])]

    if not der_certificates:
        leaf = connection.getpeercert(binary_form=True)
        if leaf:
            der_certificates = [leaf]

    return ServerTrustChain.from_der(der_certificates)


def verify_peer(connection: SSLConnection, hostname: str, policy: TrustPolicy) -> Decision:
    """
    对已完成握手的连接执行信任判断

    Rejected 时抛出 TrustRejectedError（对外只给出通用错误信息，具体原因写入日志）；
    证书无法解析属于环境故障，CertificateParseError 原样抛出。
    """
    try:
        chain = peer_chain(connection)
    except CertificateParseError:
        logger.error("Cannot parse certificate chain presented by %s", hostname)
        raise

    decision = policy.evaluate(chain, hostname)
    if decision.rejected:
        logger.warning("TLS trust rejected for %s: %s", hostname, decision)
        raise TrustRejectedError(decision)
    return decision
