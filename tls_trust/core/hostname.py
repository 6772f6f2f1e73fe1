"""
主机名验证

规则（RFC 6125）：
- DNS SAN 精确匹配（不区分大小写），或最左侧标签的完整通配符 "*.example.com"
- "*.example.com" 不匹配 "example.com"，也不匹配 "a.b.example.com"
- 部分标签通配符（如 "f*.example.com"）不被接受
- IP 地址只与 IP SAN 比较，不使用通配符
- 仅当证书没有 SAN 扩展时才回退到 Common Name
"""

import ipaddress
from typing import Optional

from ..models.certificates import CertificateInfo, IPAddress


def normalize_hostname(hostname: str) -> str:
    """小写、去掉末尾的点、去掉IPv6方括号、IDNA编码；无效时抛出 ValueError"""
    if not isinstance(hostname, str):
        raise ValueError("hostname must be a string")

    host = hostname.strip()
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    host = host.rstrip(".").lower()
    if not host:
        raise ValueError("hostname must not be empty")
    if "*" in host:
        raise ValueError(f"wildcard is not allowed in hostname {hostname!r}")

    if parse_ip(host) is not None:
        return host

    try:
        host = host.encode("idna").decode("ascii")
    except UnicodeError as e:
        raise ValueError(f"invalid hostname {hostname!r}: {e}") from e
    return host


def parse_ip(host: str) -> Optional[IPAddress]:
    try:
        return ipaddress.ip_address(host)
    except ValueError:
        return None


def dnsname_match(pattern: str, host: str) -> bool:
    """证书中的DNS名称（可含通配符）是否匹配已规范化的主机名"""
    pattern = pattern.rstrip(".").lower()
    if not pattern or not host:
        return False

    pattern_labels = pattern.split(".")
    host_labels = host.split(".")

    leftmost = pattern_labels[0]
    if leftmost != "*":
        # 非通配符；部分标签通配符一律不匹配
        if "*" in pattern:
            return False
        return pattern == host

    # 通配符至少覆盖两级域名（拒绝 "*" 和 "*.com" 这类过宽模式）
    if len(pattern_labels) < 3 or "*" in ".".join(pattern_labels[1:]):
        return False
    if len(host_labels) != len(pattern_labels):
        return False
    if parse_ip(host) is not None:
        return False
    return host_labels[1:] == pattern_labels[1:] and bool(host_labels[0])


def dns_name_within(name: str, base: str) -> bool:
    """
    DNS名称是否位于名称约束子树内（RFC 5280 4.2.1.10）

    "example.com" 覆盖其自身及所有子域；".example.com" 只覆盖子域；空约束覆盖一切
    """
    name = name.rstrip(".").lower()
    base = base.rstrip(".").lower()
    if not base:
        return True
    if base.startswith("."):
        return name.endswith(base)
    return name == base or name.endswith("." + base)


def match_hostname(cert: CertificateInfo, hostname: str) -> bool:
    """叶子证书的身份字段是否匹配主机名（hostname 需已规范化）"""
    ip = parse_ip(hostname)
    if ip is not None:
        return any(ip == candidate for candidate in cert.ip_addresses)

    if cert.has_san:
        return any(dnsname_match(name, hostname) for name in cert.dns_names)

    # 旧式CN回退：仅在没有SAN时
    return any(dnsname_match(name, hostname) for name in cert.common_names)
