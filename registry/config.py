"""
Registry configuration.

Values come from configs/registry.yaml and can be overridden through the
environment (a .env file is loaded first):

    REGISTRY_CONFIG_PATH            path of the YAML file
    REGISTRY_OWNING_TENANT_ID       owner used when a create carries no tenant
    REGISTRY_TENANT_HEADER          header carrying the accessor tenant
    REGISTRY_PUBLIC_WILDCARD        sentinel marking a public-candidate grant
    REGISTRY_PUBLIC_ALLOWED_TYPES   comma-separated public allow-list
    AUTH_CLIENT_ID                  client whose roles are read from the token

Settings objects are immutable. reload_settings() builds a fresh one and
publishes it with a single assignment, so concurrent requests see either
the old or the new settings, never a mix.
"""

import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional

import dotenv
import yaml
from loguru import logger

from security.policy.visibility import DEFAULT_PUBLIC_WILDCARD, PublicVisibilityPolicy

dotenv.load_dotenv()

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "configs" / "registry.yaml"


@dataclass(frozen=True)
class TenancySettings:
    owning_tenant_id: Optional[str] = None
    tenant_header: str = "Edc-Bpn"
    policy: PublicVisibilityPolicy = field(default_factory=PublicVisibilityPolicy)


@dataclass(frozen=True)
class PagingSettings:
    default_limit: int = 100
    max_limit: int = 10000


@dataclass(frozen=True)
class RegistrySettings:
    tenancy: TenancySettings = field(default_factory=TenancySettings)
    paging: PagingSettings = field(default_factory=PagingSettings)
    auth_client_id: str = "digital-twin-registry"

    @property
    def policy(self) -> PublicVisibilityPolicy:
        return self.tenancy.policy


def _load_yaml(config_path: Path) -> Dict[str, Any]:
    try:
        with open(config_path, "r") as f:
            return yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning(f"Registry config {config_path} not found, using defaults")
        return {}


def _split_csv(raw: str) -> FrozenSet[str]:
    return frozenset(item.strip() for item in raw.split(",") if item.strip())


def load_settings(config_path: Optional[str] = None) -> RegistrySettings:
    """
    Build settings from YAML defaults plus environment overrides.

    Args:
        config_path: YAML path (falls back to REGISTRY_CONFIG_PATH, then
            configs/registry.yaml)

    Returns:
        A new immutable RegistrySettings
    """
    path = Path(config_path or os.getenv("REGISTRY_CONFIG_PATH") or DEFAULT_CONFIG_PATH)
    raw = _load_yaml(path)

    tenancy = raw.get("tenancy") or {}
    paging = raw.get("paging") or {}
    auth = raw.get("auth") or {}

    allowed_env = os.getenv("REGISTRY_PUBLIC_ALLOWED_TYPES")
    if allowed_env is not None:
        allowed_types = _split_csv(allowed_env)
    else:
        allowed_types = frozenset(tenancy.get("public_allowed_types") or [])

    policy = PublicVisibilityPolicy(
        allowed_types=allowed_types,
        wildcard=os.getenv(
            "REGISTRY_PUBLIC_WILDCARD",
            tenancy.get("external_subject_id_wildcard", DEFAULT_PUBLIC_WILDCARD)
        ),
    )

    settings = RegistrySettings(
        tenancy=TenancySettings(
            owning_tenant_id=os.getenv("REGISTRY_OWNING_TENANT_ID", tenancy.get("owning_tenant_id")) or None,
            tenant_header=os.getenv("REGISTRY_TENANT_HEADER", tenancy.get("tenant_header", "Edc-Bpn")),
            policy=policy,
        ),
        paging=PagingSettings(
            default_limit=int(paging.get("default_limit", 100)),
            max_limit=int(paging.get("max_limit", 10000)),
        ),
        auth_client_id=os.getenv("AUTH_CLIENT_ID", auth.get("client_id", "digital-twin-registry")),
    )

    logger.info(
        f"Registry settings loaded from {path}: "
        f"public_allowed_types={sorted(policy.allowed_types)}, "
        f"tenant_header={settings.tenancy.tenant_header}"
    )
    return settings


_settings: Optional[RegistrySettings] = None
_reload_lock = threading.Lock()


def get_settings() -> RegistrySettings:
    """Return the currently published settings, loading them on first use"""
    current = _settings
    if current is None:
        return reload_settings()
    return current


def reload_settings(config_path: Optional[str] = None) -> RegistrySettings:
    """Load settings again and swap them in as one reference assignment"""
    global _settings
    with _reload_lock:
        fresh = load_settings(config_path)
        _settings = fresh
    return fresh
