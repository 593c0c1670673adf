from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

from dotenv import load_dotenv
from omegaconf import DictConfig, OmegaConf

# Load environment variables from .env file before interpolation happens
load_dotenv()

_HERE = Path(__file__).resolve()
CONFIG_PATH = _HERE.parent / "config" / "config.yaml"

SECRET_KEYS = {"secret", "management_token", "delivery_token", "linked_space_token", "permanent_token"}
MASK = "***"

MISSING_IDENTIFIER_POLICIES = ("reject", "skip_link")
DAM_BACKENDS = ("bynder", "s3")


@lru_cache(maxsize=1)
def _load_default_config() -> DictConfig:
    if not CONFIG_PATH.exists():
        raise FileNotFoundError(f"Default config not found at {CONFIG_PATH}")
    return OmegaConf.load(CONFIG_PATH)


def make_runtime_config(overrides: Dict[str, Any] | None = None) -> DictConfig:
    base_container = OmegaConf.to_container(_load_default_config(), resolve=False)
    base = OmegaConf.create(base_container)
    OmegaConf.set_struct(base, True)

    merged = DictConfig(OmegaConf.merge(base, OmegaConf.create(overrides or {})))
    _validate(merged)
    return merged


def _validate(config: DictConfig) -> None:
    policy = config.webhook.missing_identifiers
    if policy not in MISSING_IDENTIFIER_POLICIES:
        raise ValueError(f"webhook.missing_identifiers must be one of {MISSING_IDENTIFIER_POLICIES}, got {policy!r}")
    backend = config.dam.backend
    if backend not in DAM_BACKENDS:
        raise ValueError(f"dam.backend must be one of {DAM_BACKENDS}, got {backend!r}")


def _mask(node: Any) -> Any:
    if isinstance(node, dict):
        return {key: (MASK if key in SECRET_KEYS and value else _mask(value)) for key, value in node.items()}
    if isinstance(node, list):
        return [_mask(item) for item in node]
    return node


def masked_container(config: DictConfig) -> Dict[str, Any]:
    """Resolved configuration with credentials replaced by a mask."""
    container = OmegaConf.to_container(config, resolve=True, enum_to_str=True)
    return _mask(container)  # type: ignore[return-value]
