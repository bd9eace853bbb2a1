"""
Validation config resolution.

Three layers, highest priority first:
1. Per-scheme override
2. Global override
3. Built-in defaults

Layers merge per key. A stored layer that cannot be parsed is skipped
and the next layer applies; resolution never raises.
"""

import json
from typing import Any, Optional

import structlog
from pydantic import ValidationError

from meterflags.config import settings
from meterflags.errors import InvalidConfigError
from meterflags.observability.metrics import config_layer_fallbacks_total
from meterflags.schemas.validation_config import (
    PartialValidationConfig,
    ValidationConfig,
)
from meterflags.storage.config_store import ConfigStore

logger = structlog.get_logger(__name__)


DEFAULT_CONFIG = ValidationConfig()


class ConfigResolver:
    """Resolves the effective ValidationConfig from an injected store."""

    def __init__(self, store: ConfigStore, global_scope: Optional[str] = None):
        self.store = store
        self.global_scope = global_scope or settings.CONFIG_GLOBAL_SCOPE

    def resolve_config(self, scheme_id: Optional[str] = None) -> ValidationConfig:
        merged = DEFAULT_CONFIG.model_dump()
        merged.update(self._load_layer(self.global_scope, layer="global"))
        if scheme_id:
            merged.update(self._load_layer(scheme_id, layer="scheme"))
        return ValidationConfig(**merged)

    def set_config(self, partial: dict, scheme_id: Optional[str] = None) -> None:
        """
        Store an override for a scheme (or the global scope).
        Invalid overrides are rejected here so they never reach the store.
        """
        try:
            parsed = PartialValidationConfig.model_validate(partial)
        except ValidationError as e:
            raise InvalidConfigError(str(e)) from e

        scope = scheme_id or self.global_scope
        self.store.set(scope, parsed.overrides())
        logger.info("validation_config_saved", scope=scope, keys=sorted(parsed.overrides()))

    def _load_layer(self, scope: str, layer: str) -> dict:
        raw = self.store.get(scope)
        if raw is None:
            return {}
        try:
            return _parse_layer(raw).overrides()
        except (ValidationError, ValueError, TypeError) as e:
            logger.warning(
                "validation_config_layer_skipped",
                scope=scope,
                layer=layer,
                error=str(e),
            )
            config_layer_fallbacks_total.labels(layer=layer).inc()
            return {}


def _parse_layer(raw: Any) -> PartialValidationConfig:
    if isinstance(raw, (str, bytes)):
        raw = json.loads(raw)
    if not isinstance(raw, dict):
        raise TypeError(f"Config override must be a mapping, got {type(raw).__name__}")
    return PartialValidationConfig.model_validate(raw)
