"""
servectl configuration management (YAML layers + environment overrides).
"""
from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

import jsonschema
import yaml

from servectl.core.exceptions import ConfigError
from servectl.core.utils.io import read_yaml
from servectl.core.utils.merge import deep_merge
from servectl.data import get_data_path, read_json

from .settings import ManagerSettings

logger = logging.getLogger(__name__)

ENV_PREFIX = "SERVECTL_"
CONFIG_PATH_ENV = "SERVECTL_CONFIG"


class ConfigManager:
    """Load, merge, and validate servectl configuration.

    Configuration sources (highest to lowest priority):
    1. Environment variables: SERVECTL_<section>__<key>
    2. Explicit config file (``--config``)
    3. User config: $SERVECTL_CONFIG or $XDG_CONFIG_HOME/servectl/config.yaml
    4. Bundled defaults: servectl.data/config/defaults.yaml
    """

    def __init__(
        self,
        config_path: Optional[Path] = None,
        *,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.environ: Mapping[str, str] = os.environ if environ is None else environ
        self.config_path = Path(config_path).expanduser() if config_path else None
        self.defaults_path = get_data_path("config", "defaults.yaml")

    @property
    def user_config_path(self) -> Path:
        explicit = self.environ.get(CONFIG_PATH_ENV)
        if explicit:
            return Path(explicit).expanduser()
        base = self.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
        return Path(base).expanduser() / "servectl" / "config.yaml"

    def load_yaml(self, path: Path) -> Dict[str, Any]:
        # Fail closed: configuration must never silently ignore invalid YAML.
        try:
            data = read_yaml(path, default={})
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {path}: {exc}", context={"path": str(path)}) from exc
        except OSError as exc:
            raise ConfigError(f"Cannot read config file {path}: {exc}", context={"path": str(path)}) from exc
        if not isinstance(data, dict):
            raise ConfigError(f"Config file must contain a mapping: {path}", context={"path": str(path)})
        return data

    # ---------- environment overrides ----------

    def _as_bool(self, v: str) -> Optional[bool]:
        low = v.strip().lower()
        if low in {"true", "false"}:
            return low == "true"
        return None

    def _as_int(self, v: str) -> Optional[int]:
        if re.fullmatch(r"[-+]?\d+", v.strip() or " "):
            return int(v)
        return None

    def _as_float(self, v: str) -> Optional[float]:
        s = v.strip()
        if re.fullmatch(r"[-+]?\d*\.\d+", s) or re.fullmatch(r"[-+]?\d+\.\d*", s):
            return float(s)
        return None

    def _as_json(self, v: str) -> Optional[Any]:
        s = v.strip()
        if (s.startswith("{") and s.endswith("}")) or (s.startswith("[") and s.endswith("]")):
            try:
                return json.loads(s)
            except ValueError:
                return None
        return None

    def _coerce_type(self, value: str) -> Any:
        if value.strip() == "null":
            return None
        for caster in (self._as_bool, self._as_int, self._as_float, self._as_json):
            result = caster(value)
            if result is not None:
                return result
        return value.strip()

    def _iter_env_overrides(self) -> Iterator[Tuple[List[str], Any]]:
        for key in sorted(self.environ.keys()):
            if not key.startswith(ENV_PREFIX) or key == CONFIG_PATH_ENV:
                continue
            raw = key[len(ENV_PREFIX) :]
            segs = raw.split("__")
            if not raw or any(seg == "" for seg in segs):
                raise ConfigError(
                    f"Malformed {ENV_PREFIX}* key: '{key}' (use {ENV_PREFIX}<section>__<key>)",
                    context={"key": key},
                )
            yield [seg.lower() for seg in segs], self._coerce_type(self.environ[key])

    def apply_env_overrides(self, cfg: Dict[str, Any]) -> Dict[str, Any]:
        result = dict(cfg)
        for path, value in self._iter_env_overrides():
            override: Dict[str, Any] = {path[-1]: value}
            for seg in reversed(path[:-1]):
                override = {seg: override}
            result = deep_merge(result, override)
        return result

    # ---------- loading ----------

    def validate(self, cfg: Dict[str, Any]) -> None:
        schema = read_json("schemas", "config.schema.json")
        try:
            jsonschema.validate(instance=cfg, schema=schema)
        except jsonschema.ValidationError as exc:
            where = ".".join(str(p) for p in exc.absolute_path) or "<root>"
            raise ConfigError(
                f"Invalid configuration at {where}: {exc.message}",
                context={"path": where},
            ) from exc

    def load_config(self, validate: bool = True) -> Dict[str, Any]:
        cfg = self.load_yaml(self.defaults_path)

        user_path = self.user_config_path
        if user_path.exists():
            logger.debug("Loading user config %s", user_path)
            cfg = deep_merge(cfg, self.load_yaml(user_path))

        if self.config_path is not None:
            if not self.config_path.exists():
                raise ConfigError(
                    f"Config file not found: {self.config_path}",
                    context={"path": str(self.config_path)},
                )
            logger.debug("Loading config %s", self.config_path)
            cfg = deep_merge(cfg, self.load_yaml(self.config_path))

        cfg = self.apply_env_overrides(cfg)
        if validate:
            self.validate(cfg)
        return cfg

    def load_settings(self) -> ManagerSettings:
        return ManagerSettings.from_config(self.load_config())


__all__ = ["ConfigManager", "ENV_PREFIX", "CONFIG_PATH_ENV"]
