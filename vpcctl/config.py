"""
Runtime settings for vpcctl, read from VPCCTL_* environment variables.
"""

import ipaddress
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional

from .tags import parse_user_tags


DEFAULT_REGION = "us-east-1"
DEFAULT_LEDGER = "vpc_resources.txt"


@dataclass(frozen=True)
class Settings:
    """Topology and runtime settings for a single vpcctl invocation."""
    region: str = DEFAULT_REGION
    vpc_name: str = "MyVPC"
    vpc_cidr: str = "10.0.0.0/16"
    public_subnet_1_cidr: str = "10.0.1.0/24"
    public_subnet_2_cidr: str = "10.0.2.0/24"
    private_subnet_1_cidr: str = "10.0.3.0/24"
    private_subnet_2_cidr: str = "10.0.4.0/24"
    az1: str = "us-east-1a"
    az2: str = "us-east-1b"
    ledger_path: Path = Path(DEFAULT_LEDGER)
    poll_interval: float = 15.0
    poll_attempts: int = 40
    extra_tags: Dict[str, str] = field(default_factory=dict)


def _get_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {raw!r}")
    return value


def _get_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")
    if value < 1:
        raise ValueError(f"{name} must be at least 1, got {raw!r}")
    return value


def _get_cidr(env: Mapping[str, str], name: str, default: str) -> str:
    raw = env.get(name) or default
    try:
        ipaddress.ip_network(raw)
    except ValueError:
        raise ValueError(f"{name} is not a valid CIDR block: {raw!r}")
    return raw


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build settings from environment variables.

    Args:
        env: Mapping to read from (defaults to os.environ)

    Returns:
        Settings: Populated settings

    Raises:
        ValueError: If a variable holds an invalid value
    """
    if env is None:
        env = os.environ

    region = env.get("VPCCTL_REGION") or DEFAULT_REGION
    extra_tags = {}
    if env.get("VPCCTL_TAGS"):
        extra_tags = parse_user_tags(env["VPCCTL_TAGS"].split(","))

    return Settings(
        region=region,
        vpc_name=env.get("VPCCTL_VPC_NAME") or "MyVPC",
        vpc_cidr=_get_cidr(env, "VPCCTL_VPC_CIDR", "10.0.0.0/16"),
        public_subnet_1_cidr=_get_cidr(env, "VPCCTL_PUBLIC_SUBNET_1_CIDR", "10.0.1.0/24"),
        public_subnet_2_cidr=_get_cidr(env, "VPCCTL_PUBLIC_SUBNET_2_CIDR", "10.0.2.0/24"),
        private_subnet_1_cidr=_get_cidr(env, "VPCCTL_PRIVATE_SUBNET_1_CIDR", "10.0.3.0/24"),
        private_subnet_2_cidr=_get_cidr(env, "VPCCTL_PRIVATE_SUBNET_2_CIDR", "10.0.4.0/24"),
        az1=env.get("VPCCTL_AZ1") or f"{region}a",
        az2=env.get("VPCCTL_AZ2") or f"{region}b",
        ledger_path=Path(env.get("VPCCTL_LEDGER") or DEFAULT_LEDGER),
        poll_interval=_get_float(env, "VPCCTL_POLL_INTERVAL", 15.0),
        poll_attempts=_get_int(env, "VPCCTL_POLL_ATTEMPTS", 40),
        extra_tags=extra_tags,
    )
