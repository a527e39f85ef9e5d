"""
merge.py — Hierarchical Configuration Merge
=============================================
Layered configuration builder. Every layer ("source") flattens itself into
a nested key -> value mapping; layers are folded left to right with later
keys winning, and the merged mapping is decoded once into a typed model.

Typical layering:
    defaults (a config model) -> TOML file -> environment -> overrides
"""

import copy
import functools
import logging
import tomllib
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Type, TypeVar

from pydantic import BaseModel, ValidationError, create_model
from pydantic_settings import BaseSettings, EnvSettingsSource, SettingsError

from storage_node.core.errors import ConfigError

logger = logging.getLogger(__name__)

ConfigMap = Dict[str, Any]
ModelT = TypeVar("ModelT", bound=BaseModel)


class Source(Protocol):
    """A layer that can take part in a configuration merge."""

    def collect(self) -> ConfigMap:
        ...

    def clone_into_box(self) -> "Source":
        ...


def insert_into_config_map(config_map: ConfigMap, key: str, value: Any) -> None:
    """Insert a value under key, ignoring unset (None) values."""
    if value is None:
        return
    config_map[key] = value


def _expand_dotted(key: str, value: Any) -> ConfigMap:
    """Turn ``"a.b.c", v`` into ``{"a": {"b": {"c": v}}}``."""
    parts = [part for part in key.split(".") if part]
    if not parts:
        raise ConfigError(f"Invalid configuration key: {key!r}")
    nested: Any = value
    for part in reversed(parts):
        nested = {part: nested}
    return nested


def _merge_into(base: ConfigMap, layer: Mapping[str, Any]) -> None:
    for key, value in layer.items():
        current = base.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            _merge_into(current, value)
        elif isinstance(value, Mapping):
            base[key] = copy.deepcopy(dict(value))
        else:
            base[key] = value


def merge_layers(layers: Iterable[Mapping[str, Any]]) -> ConfigMap:
    """
    Fold configuration layers left to right.

    Nested mappings are merged key by key; any other value in a later
    layer replaces the earlier one. Inputs are not modified.

    Args:
        layers: Mappings in increasing order of precedence.

    Returns:
        A new merged mapping.
    """
    merged: ConfigMap = {}
    for layer in layers:
        _merge_into(merged, layer)
    return merged


# ── Sources ────────────────────────────────────────────────

class MapSource:
    """A fixed mapping; dotted keys address nested values."""

    def __init__(self, values: Mapping[str, Any]):
        self._values = dict(values)

    def clone_into_box(self) -> "MapSource":
        return MapSource(copy.deepcopy(self._values))

    def collect(self) -> ConfigMap:
        return merge_layers(
            _expand_dotted(key, value) for key, value in self._values.items()
        )


class FileSource:
    """
    A TOML configuration file.

    An optional file that does not exist contributes nothing; a required
    one raises ConfigError.
    """

    def __init__(self, path, required: bool = False):
        self.path = Path(path)
        self.required = required

    def clone_into_box(self) -> "FileSource":
        return FileSource(self.path, self.required)

    def collect(self) -> ConfigMap:
        if not self.path.is_file():
            if self.required:
                raise ConfigError(f"Configuration file {self.path} not found")
            logger.debug("Optional config file %s not found, skipping", self.path)
            return {}

        try:
            with self.path.open("rb") as f:
                values = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in {self.path}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Cannot read {self.path}: {e}") from e

        logger.debug("Loaded config file %s (%d keys)", self.path, len(values))
        return values


@functools.lru_cache(maxsize=None)
def settings_model(model: Type[BaseModel]) -> Type[BaseSettings]:
    """A BaseSettings twin of model, used to look its fields up in the environment."""
    fields = {
        name: (field.annotation, field) for name, field in model.model_fields.items()
    }
    return create_model(f"{model.__name__}Settings", __base__=BaseSettings, **fields)


class EnvironmentSource:
    """
    Environment variables sharing a prefix, read with pydantic-settings.

    ``<PREFIX>_PATH`` sets ``path``; ``separator`` splits nested keys, so
    ``<PREFIX>_RPC_CLIENT__STORE_ADDR`` sets ``rpc_client.store_addr``.
    Only fields of model are picked up. Values stay text; the typed
    decode coerces them.
    """

    def __init__(self, model: Type[BaseModel], prefix: str, separator: str = "__"):
        self.model = model
        self.prefix = prefix
        self.separator = separator

    def clone_into_box(self) -> "EnvironmentSource":
        return EnvironmentSource(self.model, self.prefix, self.separator)

    def collect(self) -> ConfigMap:
        source = EnvSettingsSource(
            settings_model(self.model),
            case_sensitive=False,
            env_prefix=f"{self.prefix}_",
            env_nested_delimiter=self.separator,
        )
        try:
            values = source()
        except SettingsError as e:
            raise ConfigError(f"Invalid {self.prefix}_* environment: {e}") from e

        logger.debug("Environment overrides for %s", sorted(values))
        return values


# ── Builder ────────────────────────────────────────────────

class MergedConfig:
    """The merged result of a ConfigBuilder."""

    def __init__(self, values: ConfigMap):
        self.values = values

    def try_deserialize(self, model: Type[ModelT]) -> ModelT:
        """
        Decode the merged mapping into a typed model.

        Raises:
            ConfigError: If a required field is missing or a value is invalid.
        """
        try:
            return model.model_validate(self.values)
        except ValidationError as e:
            raise ConfigError(
                f"Invalid {model.__name__} configuration: {e}"
            ) from e


class ConfigBuilder:
    """
    Collects sources in registration order and merges them.

    Overrides set with set_override() are applied after every source.
    """

    def __init__(self):
        self._sources: List[Source] = []
        self._overrides: ConfigMap = {}

    def add_source(self, source: Source) -> "ConfigBuilder":
        self._sources.append(source.clone_into_box())
        return self

    def set_override(self, key: str, value: Any) -> "ConfigBuilder":
        self._overrides[key] = value
        return self

    def build(self) -> MergedConfig:
        layers = [source.collect() for source in self._sources]
        layers.append(MapSource(self._overrides).collect())
        merged = merge_layers(layers)
        logger.debug(
            "Merged %d configuration layers into keys %s",
            len(layers),
            sorted(merged),
        )
        return MergedConfig(merged)


def make_config(
    model: Type[ModelT],
    default: Source,
    config_files: Iterable = (),
    env_prefix: Optional[str] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> ModelT:
    """
    Build a configuration from defaults, files, environment and overrides.

    Args:
        model: Pydantic model to decode the merged result into.
        default: Lowest-priority layer, usually a default config instance.
        config_files: Optional TOML files, later files win. None entries
                      are skipped.
        env_prefix: Environment variable prefix; None disables the layer.
        overrides: Dotted keys applied last (e.g. command-line flags).

    Returns:
        The decoded model.

    Raises:
        ConfigError: If any layer cannot be collected or the result
                     does not decode.
    """
    builder = ConfigBuilder().add_source(default)

    for path in config_files:
        if path is None:
            continue
        builder.add_source(FileSource(path, required=False))

    if env_prefix is not None:
        builder.add_source(EnvironmentSource(model, env_prefix))

    for key, value in (overrides or {}).items():
        builder.set_override(key, value)

    return builder.build().try_deserialize(model)
