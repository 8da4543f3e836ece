# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Client configuration.

Configuration is an explicit ``ClientConfig`` value handed to the client;
there is no process-wide settings object.  It can be built from:

* the environment (``ClientConfig.from_env``), after loading ``.env`` files;
* a YAML file (``ClientConfig.from_yaml``), by default
  ``$XDG_CONFIG_HOME/s3vectors/config.yaml``, where ``!env VAR`` tags
  resolve values from the environment;
* a named profile in the shared AWS credentials file
  (``load_profile_credentials``).

Example config file::

    region: us-west-2
    timeout: 60
    retry:
      max_retries: 5
    credentials:
      access_key_id: !env MY_KEY_ID
      secret_access_key: !env MY_SECRET
"""

import configparser
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TypeVar, overload

import yaml
from platformdirs import user_config_path

from s3vectors.dotenv_loader import APP_NAME, load_dotenv_once
from s3vectors.executor import DEFAULT_TIMEOUT_SECONDS, RetryPolicy
from s3vectors.logging import SecretFilter
from s3vectors.signing import Credentials


logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"

#: Environment variable overriding the service endpoint.
ENDPOINT_ENV_VAR = "S3VECTORS_ENDPOINT_URL"

_BOOL_TRUTHY = frozenset({"true", "1", "yes", "on"})
_BOOL_FALSY = frozenset({"false", "0", "no", "off"})


class ConfigError(Exception):
    """Base exception for configuration errors."""


def get_config_path() -> Path:
    """Return the default config file path.

    Uses XDG: ``$XDG_CONFIG_HOME/s3vectors/config.yaml`` (typically
    ``~/.config/s3vectors/config.yaml``).
    """
    return user_config_path(APP_NAME) / "config.yaml"


def get_credentials_path(environ: Mapping[str, str] | None = None) -> Path:
    """Return the shared AWS credentials file path.

    Honours ``AWS_SHARED_CREDENTIALS_FILE``; defaults to
    ``~/.aws/credentials``.
    """
    env = os.environ if environ is None else environ
    override = env.get("AWS_SHARED_CREDENTIALS_FILE")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".aws" / "credentials"


def default_endpoint(region: str) -> str:
    return f"https://s3vectors.{region}.api.aws"


# ---------------------------------------------------------------------------
# ClientConfig
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClientConfig:
    """Everything needed to construct a client.

    Attributes:
        region: AWS region.
        credentials: Signing credentials, or None for an anonymous client.
        endpoint_url: Endpoint override (e.g. a local mock service).
        retry: Retry policy for every call.
        timeout_seconds: Per-request HTTP timeout.
        verify_ssl: Verify TLS certificates.
    """

    region: str = DEFAULT_REGION
    credentials: Credentials | None = None
    endpoint_url: str | None = None
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        if not self.region:
            raise ConfigError("region must not be empty")
        if self.timeout_seconds <= 0:
            raise ConfigError(
                f"timeout_seconds must be positive: {self.timeout_seconds}"
            )
        if self.credentials is not None:
            SecretFilter.register_secret(self.credentials.secret_access_key)
            SecretFilter.register_secret(self.credentials.session_token)

    @property
    def endpoint(self) -> str:
        return self.endpoint_url or default_endpoint(self.region)

    @classmethod
    def from_env(
        cls,
        region: str | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> "ClientConfig":
        """Build configuration from environment variables.

        ``.env`` files are loaded first unless an explicit *environ* is
        given.  Credentials are set only when both the key id and the
        secret are present.

        Args:
            region: Region override; otherwise ``AWS_REGION``, then
                ``AWS_DEFAULT_REGION``, then ``us-east-1``.
            environ: Mapping to read instead of ``os.environ``.
        """
        if environ is None:
            load_dotenv_once()
            environ = os.environ

        region = (
            region
            or environ.get("AWS_REGION")
            or environ.get("AWS_DEFAULT_REGION")
            or DEFAULT_REGION
        )
        key_id = environ.get("AWS_ACCESS_KEY_ID")
        secret = environ.get("AWS_SECRET_ACCESS_KEY")
        credentials = None
        if key_id and secret:
            credentials = Credentials(
                access_key_id=key_id,
                secret_access_key=secret,
                session_token=environ.get("AWS_SESSION_TOKEN") or None,
                region=region,
            )
        else:
            logger.debug("No AWS credentials found in environment")

        return cls(
            region=region,
            credentials=credentials,
            endpoint_url=environ.get(ENDPOINT_ENV_VAR) or None,
        )

    @classmethod
    def from_yaml(
        cls,
        config_path: Path | None = None,
        *,
        region: str | None = None,
        profile: str | None = None,
    ) -> "ClientConfig":
        """Load configuration from a YAML file.

        A missing file yields defaults layered over the environment.
        Credentials come from, in order: the ``credentials`` mapping, the
        profile (argument or ``profile`` key), then the environment.

        Args:
            config_path: Path to the YAML file.  Defaults to
                ``~/.config/s3vectors/config.yaml`` (XDG).
            region: Region override.
            profile: Profile override.

        Raises:
            ConfigError: If the file is malformed or a value is invalid.
        """
        load_dotenv_once()

        if config_path is None:
            config_path = get_config_path()

        raw: Any = {}
        if config_path.exists():
            with open(config_path) as f:
                try:
                    raw = yaml.load(f, Loader=_make_loader())
                except yaml.YAMLError as e:
                    raise ConfigError(
                        f"Invalid YAML in {config_path}: {e}"
                    ) from e
            if raw is None:
                raw = {}
            if not isinstance(raw, dict):
                raise ConfigError(
                    f"Config file must be a YAML mapping: {config_path}"
                )
            logger.debug("Loaded config from %s", config_path)
        else:
            logger.debug("No config file at %s, using defaults", config_path)

        return cls._from_raw(raw, region=region, profile=profile)

    @classmethod
    def _from_raw(
        cls,
        raw: dict,
        *,
        region: str | None = None,
        profile: str | None = None,
    ) -> "ClientConfig":
        """Build config from parsed (but unresolved) YAML dict."""
        region = (
            region
            or _resolve(raw.get("region"), str)
            or os.environ.get("AWS_REGION")
            or os.environ.get("AWS_DEFAULT_REGION")
            or DEFAULT_REGION
        )
        profile = profile or _resolve(raw.get("profile"), str)

        retry_raw = _mapping(raw.get("retry"), "retry")
        try:
            retry = RetryPolicy(
                max_retries=_resolve(
                    retry_raw.get("max_retries"), int, default=3
                ),
                initial_backoff_ms=_resolve(
                    retry_raw.get("initial_backoff_ms"), int, default=100
                ),
                max_backoff_ms=_resolve(
                    retry_raw.get("max_backoff_ms"), int, default=5000
                ),
            )
        except ValueError as e:
            raise ConfigError(f"Invalid retry configuration: {e}") from e

        creds_raw = _mapping(raw.get("credentials"), "credentials")
        credentials: Credentials | None
        if creds_raw:
            try:
                credentials = _credentials_from_raw(creds_raw, region)
            except ValueError as e:
                raise ConfigError(f"Invalid credentials: {e}") from e
        elif profile:
            credentials = load_profile_credentials(profile, region)
        else:
            credentials = ClientConfig.from_env(region=region).credentials

        endpoint_url = _resolve(raw.get("endpoint_url"), str) or os.environ.get(
            ENDPOINT_ENV_VAR
        )

        return cls(
            region=region,
            credentials=credentials,
            endpoint_url=endpoint_url or None,
            retry=retry,
            timeout_seconds=_resolve(
                raw.get("timeout"), float, default=DEFAULT_TIMEOUT_SECONDS
            ),
            verify_ssl=_resolve(raw.get("verify_ssl"), bool, default=True),
        )

    def with_overrides(
        self,
        *,
        region: str | None = None,
        endpoint_url: str | None = None,
        verify_ssl: bool | None = None,
    ) -> "ClientConfig":
        """Return a copy with command-line overrides applied.

        Changing the region rebinds the credentials to the new region.
        """
        new_region = region or self.region
        credentials = self.credentials
        if credentials is not None and credentials.region != new_region:
            credentials = Credentials(
                access_key_id=credentials.access_key_id,
                secret_access_key=credentials.secret_access_key,
                session_token=credentials.session_token,
                region=new_region,
            )
        return ClientConfig(
            region=new_region,
            credentials=credentials,
            endpoint_url=endpoint_url or self.endpoint_url,
            retry=self.retry,
            timeout_seconds=self.timeout_seconds,
            verify_ssl=self.verify_ssl if verify_ssl is None else verify_ssl,
        )

    def __repr__(self) -> str:
        has_creds = "Some(***)" if self.credentials else "None"
        return (
            f"ClientConfig(region={self.region!r}, credentials={has_creds}, "
            f"endpoint_url={self.endpoint_url!r}, retry={self.retry!r}, "
            f"timeout_seconds={self.timeout_seconds!r}, "
            f"verify_ssl={self.verify_ssl!r})"
        )


# ---------------------------------------------------------------------------
# Shared credentials file
# ---------------------------------------------------------------------------


def load_profile_credentials(
    profile: str,
    region: str,
    path: Path | None = None,
) -> Credentials:
    """Read one profile from the shared AWS credentials file.

    Args:
        profile: Section name (e.g. ``default``).
        region: Region to bind the credentials to.
        path: Credentials file; defaults to ``get_credentials_path()``.

    Raises:
        ConfigError: If the file, the profile or a required key is missing.
    """
    if path is None:
        path = get_credentials_path()
    if not path.exists():
        raise ConfigError(f"AWS credentials file not found: {path}")

    parser = configparser.ConfigParser(interpolation=None)
    try:
        parser.read(path)
    except configparser.Error as e:
        raise ConfigError(f"Failed to parse {path}: {e}") from e

    if not parser.has_section(profile):
        raise ConfigError(f"Profile '{profile}' not found in {path}")
    section = parser[profile]

    key_id = section.get("aws_access_key_id", "").strip()
    secret = section.get("aws_secret_access_key", "").strip()
    if not key_id:
        raise ConfigError(
            f"aws_access_key_id not found for profile '{profile}'"
        )
    if not secret:
        raise ConfigError(
            f"aws_secret_access_key not found for profile '{profile}'"
        )
    token = section.get("aws_session_token", "").strip() or None

    logger.debug("Loaded credentials for profile %s from %s", profile, path)
    SecretFilter.register_secret(secret)
    SecretFilter.register_secret(token)
    return Credentials(
        access_key_id=key_id,
        secret_access_key=secret,
        session_token=token,
        region=region,
    )


# ---------------------------------------------------------------------------
# YAML tag placeholders and value resolution
# ---------------------------------------------------------------------------


class _EnvVar:
    """Placeholder for an unresolved ``!env VAR_NAME`` tag."""

    def __init__(self, var_name: str) -> None:
        self.var_name = var_name


def _env_constructor(loader: yaml.SafeLoader, node: yaml.Node) -> _EnvVar:
    """Handle ``!env VAR_NAME`` in YAML."""
    value = loader.construct_scalar(node)  # type: ignore[arg-type]
    return _EnvVar(str(value))


def _make_loader() -> type[yaml.SafeLoader]:
    """Create a YAML loader that understands ``!env``."""

    class EnvLoader(yaml.SafeLoader):
        pass

    EnvLoader.add_constructor("!env", _env_constructor)
    return EnvLoader


def _credentials_from_raw(raw: dict, region: str) -> Credentials:
    return Credentials(
        access_key_id=_resolve(
            raw.get("access_key_id"), str, required="credentials.access_key_id"
        ),
        secret_access_key=_resolve(
            raw.get("secret_access_key"),
            str,
            required="credentials.secret_access_key",
        ),
        session_token=_resolve(raw.get("session_token"), str) or None,
        region=region,
    )


def _mapping(value: object, name: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{name}' must be a mapping")
    return value


def _coerce_bool(value: object) -> bool:
    """Coerce a value to bool, handling string representations."""
    if isinstance(value, bool):
        return value
    s = str(value).lower().strip()
    if s in _BOOL_TRUTHY:
        return True
    if s in _BOOL_FALSY:
        return False
    raise ConfigError(f"Cannot convert {value!r} to bool")


def _raw_resolve(value: object) -> str | None:
    """Resolve an ``_EnvVar`` to its string value, or stringify literals.

    Returns None if the value is None or the env var is not set.
    """
    if isinstance(value, _EnvVar):
        return os.environ.get(value.var_name)
    if value is None:
        return None
    return str(value)


_MISSING = object()

T = TypeVar("T")


@overload
def _resolve(value: object, coerce: type[T], *, default: T) -> T: ...


@overload
def _resolve(value: object, coerce: type[T], *, required: str) -> T: ...


@overload
def _resolve(value: object, coerce: type[T]) -> T | None: ...


def _resolve(
    value: object,
    coerce: type[Any],
    *,
    default: object = _MISSING,
    required: str = "",
) -> Any:
    """Resolve a YAML value, handling ``!env`` tags and type coercion.

    Args:
        value: Raw value from YAML (may be ``_EnvVar``, None, or a
            literal already parsed by PyYAML).
        coerce: Target type (``str``, ``int``, ``float``, ``bool``).
        default: Default when value is absent.
        required: Human-readable field name.  When set, raises
            ``ConfigError`` if the value is absent.

    Returns:
        The resolved, coerced value, or None when optional and absent.
    """
    if not isinstance(value, _EnvVar) and value is not None:
        if coerce is bool:
            return _coerce_bool(value)
        if isinstance(value, coerce) and not isinstance(value, bool):
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

    if coerce is bool:
        return _coerce_bool(resolved)
    try:
        return coerce(resolved)
    except ValueError as e:
        raise ConfigError(
            f"Cannot convert {resolved!r} to {coerce.__name__}"
        ) from e
