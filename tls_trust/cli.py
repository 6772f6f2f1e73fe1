#!/usr/bin/env python3
"""
信任策略命令行工具

    python -m tls_trust check --host example.com --chain chain.pem [--ca-bundle roots.pem] [--pins pins.json]
    python -m tls_trust fingerprint chain.pem
"""

import argparse
import base64
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from .config import TrustSettings, load_trust_policy
from .exceptions import TrustPolicyError
from .models.certificates import ServerTrustChain
from .types import PolicyMode

EXIT_TRUSTED = 0
EXIT_REJECTED = 1
EXIT_CONFIG_ERROR = 2


def _load_chain(path: str) -> ServerTrustChain:
    return ServerTrustChain.from_pem(Path(path).read_bytes())


def cmd_check(args: argparse.Namespace) -> int:
    """离线评估一个PEM证书链"""
    settings = TrustSettings(
        mode=PolicyMode.PERMISSIVE if args.permissive else PolicyMode.STRICT,
        test_mode=args.test_mode,
        ca_bundle=Path(args.ca_bundle) if args.ca_bundle else None,
        pins_file=Path(args.pins) if args.pins else None,
    )

    try:
        policy = load_trust_policy(settings)
        chain = _load_chain(args.chain)
    except (TrustPolicyError, OSError) as e:
        print(f"[FAIL] 配置错误: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    print(f"策略: {policy.mode.value}")
    print(f"主机: {args.host}")
    print(f"证书链: {len(chain)} 个证书")
    for i, cert in enumerate(chain):
        print(f"  [{i}] {cert.subject_text}")

    decision = policy.evaluate(chain, args.host)
    if decision.trusted:
        print(f"[OK] {decision}")
        return EXIT_TRUSTED

    print(f"[FAIL] {decision}")
    if decision.alert is not None:
        print(f"  TLS警报: {decision.alert.name} ({int(decision.alert)})")
    return EXIT_REJECTED


def cmd_fingerprint(args: argparse.Namespace) -> int:
    """打印证书链中每个证书的固定指纹，用于编写pins配置"""
    try:
        chain = _load_chain(args.chain)
    except (TrustPolicyError, OSError) as e:
        print(f"[FAIL] {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    if not chain:
        print("[WARN] 文件中没有证书", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    for i, cert in enumerate(chain):
        print(f"[{i}] {cert.subject_text}")
        print(f"    sha256/{base64.b64encode(cert.spki_sha256).decode('ascii')}")
        print(f"    cert-sha256/{base64.b64encode(cert.fingerprint_sha256).decode('ascii')}")
    return EXIT_TRUSTED


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tls_trust", description='TLS证书信任策略工具')
    parser.add_argument('-v', '--verbose', action='store_true', help='输出调试日志')
    subparsers = parser.add_subparsers(dest='command', required=True)

    check = subparsers.add_parser('check', help='评估证书链是否可信')
    check.add_argument('--host', required=True, help='目标主机名')
    check.add_argument('--chain', required=True, help='PEM证书链文件（叶子在前）')
    check.add_argument('--ca-bundle', help='根CA证书文件，默认使用certifi')
    check.add_argument('--pins', help='证书固定配置（JSON）')
    check.add_argument('--permissive', action='store_true', help='使用宽松策略（仅测试）')
    check.add_argument('--test-mode', action='store_true', help='声明当前为测试环境')
    check.set_defaults(func=cmd_check)

    fingerprint = subparsers.add_parser('fingerprint', help='打印证书指纹')
    fingerprint.add_argument('chain', help='PEM证书文件')
    fingerprint.set_defaults(func=cmd_fingerprint)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """主函数"""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    return args.func(args)


if __name__ == '__main__':
    sys.exit(main())
