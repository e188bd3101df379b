# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Client configuration.

Configuration is loaded from a YAML file.  The default location follows
the XDG Base Directory Specification:

    ``$XDG_CONFIG_HOME/ossclient/ossclient.yaml``
    (typically ``~/.config/ossclient/ossclient.yaml``)

``!env`` tags resolve values from environment variables, after ``.env``
files have been loaded::

    access_id: !env OSS_ACCESS_ID
    access_secret: !env OSS_ACCESS_SECRET
    region: hangzhou
    bucket: my-bucket
    timeout: 30
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from platformdirs import user_config_path

from ossclient.dotenv_loader import load_dotenv_once
from ossclient.logging import SecretFilter
from ossclient.region import Region


logger = logging.getLogger(__name__)

#: Application name for XDG path resolution.
_APP_NAME = "ossclient"

_MISSING = object()


class ConfigError(Exception):
    """Configuration is missing or invalid."""


def get_config_path() -> Path:
    """Return the default config file path."""
    return user_config_path(_APP_NAME) / "ossclient.yaml"


def get_dotenv_path() -> Path:
    """Return the ``.env`` path inside the XDG config directory."""
    return user_config_path(_APP_NAME) / ".env"


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------


class _EnvVar:
    """Placeholder for an unresolved ``!env VAR_NAME`` tag."""

    def __init__(self, var_name: str) -> None:
        self.var_name = var_name


def _env_constructor(loader: yaml.SafeLoader, node: yaml.Node) -> _EnvVar:
    """Handle ``!env VAR_NAME`` in YAML."""
    value = loader.construct_scalar(node)
    return _EnvVar(str(value))


def _make_loader() -> type[yaml.SafeLoader]:
    """Create a YAML loader that understands ``!env``."""

    class EnvLoader(yaml.SafeLoader):
        pass

    EnvLoader.add_constructor("!env", _env_constructor)
    return EnvLoader


def _raw_resolve(value: object) -> str | None:
    """Resolve an ``_EnvVar`` to its string value, or stringify literals.

    Unset and empty environment variables both resolve to None.
    """
    if isinstance(value, _EnvVar):
        return os.environ.get(value.var_name) or None
    if value is None:
        return None
    return str(value)


def _resolve(
    value: object,
    coerce: type[Any],
    *,
    default: object = _MISSING,
    required: str = "",
) -> Any:
    """Resolve a YAML value, handling ``!env`` tags and type coercion.

    Args:
        value: Raw value from YAML (``_EnvVar``, None or a literal).
        coerce: Target type (``str``, ``int``, ``float``).
        default: Value used when absent.
        required: Field name.  When set, an absent value raises.

    Returns:
        The resolved value, the default, or None.

    Raises:
        ConfigError: If a required value is absent or coercion fails.
    """
    if (
        not isinstance(value, _EnvVar)
        and value is not None
        and not isinstance(value, bool)
        and isinstance(value, coerce)
    ):
        return value

    resolved = _raw_resolve(value)
    if resolved is None:
        if required:
            if isinstance(value, _EnvVar):
                raise ConfigError(
                    f"Required config '{required}': environment variable "
                    f"'{value.var_name}' is not set"
                )
            raise ConfigError(f"Required config '{required}' is missing")
        if default is not _MISSING:
            return default
        return None

    try:
        return coerce(resolved)
    except ValueError as e:
        raise ConfigError(
            f"Cannot convert {resolved!r} to {coerce.__name__}"
        ) from e


# ---------------------------------------------------------------------------
# Config dataclass
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClientConfig:
    """Settings for an ``OSSClient``.

    Attributes:
        access_id: Public access key ID.
        access_secret: Secret used to sign requests.
        region: Region endpoint.
        bucket: Default bucket for uploads, if any.
        timeout: HTTP timeout in seconds.  None keeps the httpx default.
    """

    access_id: str
    access_secret: str = field(repr=False)
    region: Region = Region.HANGZHOU
    bucket: str | None = None
    timeout: float | None = None

    def __post_init__(self) -> None:
        SecretFilter.register_secret(self.access_secret)

    @classmethod
    def from_yaml(cls, config_path: Path | None = None) -> "ClientConfig":
        """Load configuration from a YAML file.

        Args:
            config_path: Path to the YAML file.  Defaults to the XDG path.

        Raises:
            ConfigError: If the file is missing or values are invalid.
        """
        load_dotenv_once()

        if config_path is None:
            config_path = get_config_path()

        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            try:
                raw = yaml.load(f, Loader=_make_loader())
            except yaml.YAMLError as e:
                raise ConfigError(
                    f"Invalid YAML in {config_path}: {e}"
                ) from e

        if not isinstance(raw, dict):
            raise ConfigError(
                f"Config file must be a YAML mapping: {config_path}"
            )

        config = cls._from_raw(raw)
        logger.info(
            "Config loaded from %s: region=%s, bucket=%s",
            config_path,
            config.region.name.lower(),
            config.bucket,
        )
        return config

    @classmethod
    def _from_raw(cls, raw: dict) -> "ClientConfig":
        """Build config from a parsed (but unresolved) YAML dict."""
        region_name = _resolve(raw.get("region"), str, default="hangzhou")
        try:
            region = Region.from_name(region_name)
        except ValueError as e:
            raise ConfigError(str(e)) from e

        timeout = _resolve(raw.get("timeout"), float)
        if timeout is not None and timeout <= 0:
            raise ConfigError(f"timeout must be positive, got {timeout}")

        return cls(
            access_id=_resolve(raw.get("access_id"), str, required="access_id"),
            access_secret=_resolve(
                raw.get("access_secret"), str, required="access_secret"
            ),
            region=region,
            bucket=_resolve(raw.get("bucket"), str),
            timeout=timeout,
        )


STUB_CONFIG = """\
# ossclient configuration
#
# Values tagged with !env are read from the environment (or a .env file
# next to this one).

access_id: !env OSS_ACCESS_ID
access_secret: !env OSS_ACCESS_SECRET

# Region endpoint (hangzhou)
region: hangzhou

# Default bucket for `ossclient upload`
# bucket: my-bucket

# HTTP timeout in seconds
# timeout: 30
"""
