"""
This module loads the per-run configuration: the addresses to check and who to tell.
"""
import json
import logging
import re
from typing import Any, Mapping, Optional

from .config import ADDRESS_CONFIG_PATH, FORCE_NOTIFY, MESSAGE_SUFFIX, TIMEZONE
from .date_normalizer import resolve_zone
from .exceptions import ConfigError
from .models import AddressConfig, RunConfig

logger = logging.getLogger(__name__)

truthy_pattern = re.compile(r"^(1|true|yes)$", re.IGNORECASE)


def _parse_address(raw: Any, position: int) -> AddressConfig:
    if not isinstance(raw, dict):
        raise ConfigError(f"addresses[{position}] must be an object")
    label = raw.get("label")
    if not isinstance(label, str) or not label.strip():
        raise ConfigError(f"addresses[{position}].label must be a non-empty string")
    recipients = raw.get("recipients")
    if not isinstance(recipients, list) or not all(isinstance(r, str) for r in recipients):
        raise ConfigError(f"addresses[{position}].recipients must be a list of strings")
    return AddressConfig(label=label.strip(), recipients=tuple(recipients))


def parse_run_config(raw: Any, default_timezone: str = TIMEZONE, default_suffix: str = MESSAGE_SUFFIX) -> RunConfig:
    """
    Validates a decoded configuration document.

    Raises:
        ConfigError: If the document does not have the expected shape.
    """
    if not isinstance(raw, dict):
        raise ConfigError("config must be a JSON object")
    addresses = raw.get("addresses")
    if not isinstance(addresses, list):
        raise ConfigError("config.addresses must be an array")

    timezone = raw.get("timezone") or default_timezone
    if resolve_zone(timezone) is None:
        raise ConfigError(f"Unknown timezone: {timezone}")

    notify = raw.get("notify") or {}
    suffix = (notify.get("messageSuffix") if isinstance(notify, dict) else None) or default_suffix or ""

    return RunConfig(
        addresses=tuple(_parse_address(item, i) for i, item in enumerate(addresses)),
        timezone=timezone,
        message_suffix=suffix,
    )


def load_run_config(path: str = ADDRESS_CONFIG_PATH) -> RunConfig:
    """
    Loads the address configuration file.

    Args:
        path: Path to the JSON configuration.

    Returns:
        The validated RunConfig.

    Raises:
        ConfigError: If the file is missing, unreadable or malformed.
    """
    try:
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {path}") from e
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Could not read config file {path}: {e}") from e

    config = parse_run_config(raw)
    logger.info(f"Loaded config for {len(config.addresses)} addresses (timezone {config.timezone}).")
    return config


def get_force_notify(event: Optional[Mapping[str, Any]] = None, env_value: str = FORCE_NOTIFY) -> bool:
    """Returns True if the environment or the invoking event asks for force mode."""
    if env_value and truthy_pattern.match(env_value.strip()):
        return True
    if not event:
        return False
    value = event.get("forceNotify")
    if value is True:
        return True
    return bool(truthy_pattern.match(str(value or "").strip()))
