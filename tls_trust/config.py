"""
信任策略配置
进程启动时选择一次策略（严格 / 宽松），之后不再变更
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .core.pinning import PinningConfiguration
from .core.policies import PermissiveTrustPolicy, StrictTrustPolicy, TrustPolicy
from .exceptions import PolicyConfigurationError
from .trust_store import load_trust_store
from .types import PolicyMode

logger = logging.getLogger(__name__)

# 环境变量
ENV_POLICY = "TLS_TRUST_POLICY"          # strict | permissive
ENV_TEST_MODE = "TLS_TRUST_TEST_MODE"    # 1/true/yes/on 允许宽松策略
ENV_CA_BUNDLE = "TLS_TRUST_CA_BUNDLE"    # PEM根证书文件，默认certifi
ENV_PINS = "TLS_TRUST_PINS"              # JSON证书固定配置文件

# 默认配置
DEFAULT_POLICY_MODE = PolicyMode.STRICT

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _is_true(value: Optional[str]) -> bool:
    return value is not None and value.strip().lower() in _TRUE_VALUES


def get_policy_mode_from_env(environ: Optional[Mapping[str, str]] = None) -> PolicyMode:
    """从环境变量获取策略模式"""
    environ = os.environ if environ is None else environ
    value = environ.get(ENV_POLICY, DEFAULT_POLICY_MODE.value).strip().lower()
    try:
        return PolicyMode(value)
    except ValueError:
        raise PolicyConfigurationError(
            f"Unknown {ENV_POLICY} value {value!r}; expected one of: "
            f"{', '.join(m.value for m in PolicyMode)}"
        ) from None


@dataclass(frozen=True)
class TrustSettings:
    """信任策略配置"""
    mode: PolicyMode = DEFAULT_POLICY_MODE
    test_mode: bool = False
    ca_bundle: Optional[Path] = None
    pins_file: Optional[Path] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "TrustSettings":
        environ = os.environ if environ is None else environ
        ca_bundle = environ.get(ENV_CA_BUNDLE)
        pins_file = environ.get(ENV_PINS)
        return cls(
            mode=get_policy_mode_from_env(environ),
            test_mode=_is_true(environ.get(ENV_TEST_MODE)),
            ca_bundle=Path(ca_bundle) if ca_bundle else None,
            pins_file=Path(pins_file) if pins_file else None,
        )

    def validate(self) -> None:
        """宽松策略只允许在显式的测试环境中启用"""
        if self.mode is PolicyMode.PERMISSIVE and not self.test_mode:
            raise PolicyConfigurationError(
                f"Permissive trust policy requested without {ENV_TEST_MODE}; "
                "refusing to disable certificate validation outside a test environment"
            )


def load_pinning(pins_file: Optional[Path]) -> Optional[PinningConfiguration]:
    if pins_file is None:
        return None
    return PinningConfiguration.from_file(pins_file)


def load_trust_policy(settings: Optional[TrustSettings] = None) -> TrustPolicy:
    """
    根据配置构建信任策略（启动时调用一次，然后注入传输层）

    Args:
        settings: 配置，None则从环境变量读取

    Returns:
        StrictTrustPolicy 或 PermissiveTrustPolicy
    """
    if settings is None:
        settings = TrustSettings.from_env()
    settings.validate()

    if settings.mode is PolicyMode.PERMISSIVE:
        if settings.pins_file is not None:
            logger.warning("%s is ignored by the permissive trust policy", ENV_PINS)
        return PermissiveTrustPolicy(test_mode=settings.test_mode)

    trust_store = load_trust_store(settings.ca_bundle)
    pinning = load_pinning(settings.pins_file)
    policy = StrictTrustPolicy(trust_store, pinning=pinning)
    logger.info("Strict TLS trust policy active (%d anchors, %d pinned hosts)",
                len(trust_store), len(policy.pinning))
    return policy
