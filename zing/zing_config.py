"""
Interpreter and request options.

Options are layered: built-in defaults, then a YAML file, then environment
variables. The YAML file is the explicit path if one is given, else the file
named by $ZING_CONFIG, else ./zing.yaml when it exists.

    # zing.yaml
    header-buffer-size-kb: 64
    max-response-mem-mb: 8
    evaluate-expressions: true
"""
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

VERSION = "0.1.0"
USER_AGENT = f"ZingTTP/{VERSION}"

CONFIG_ENV = "ZING_CONFIG"
DEFAULT_CONFIG_FILE = "zing.yaml"


class ConfigError(ValueError):
    pass


@dataclass
class Options:
    header_buffer_size_kb: int = 32
    max_response_mem_mb: int = 32
    evaluate_expressions: bool = False
    user_agent: str = USER_AGENT


ENV_OVERRIDES = {
    "ZING_HEADER_BUFFER_SIZE_KB": "header_buffer_size_kb",
    "ZING_MAX_RESPONSE_MEM_MB": "max_response_mem_mb",
    "ZING_EVALUATE_EXPRESSIONS": "evaluate_expressions",
}

_TRUE_WORDS = ("1", "true", "yes", "on")
_FALSE_WORDS = ("0", "false", "no", "off", "")


def _coerce(name: str, expected: type, value: Any) -> Any:
    if expected is bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in _TRUE_WORDS + _FALSE_WORDS:
            return value.strip().lower() in _TRUE_WORDS
    elif expected is int:
        if isinstance(value, int) and not isinstance(value, bool):
            if value <= 0:
                raise ConfigError(f"Option '{name}' must be positive, got {value}")
            return value
        if isinstance(value, str):
            try:
                number = int(value.strip())
            except ValueError:
                number = None
            if number is not None:
                return _coerce(name, int, number)
    elif isinstance(value, str):
        return value
    raise ConfigError(f"Option '{name}' expects {expected.__name__}, got {value!r}")


def _apply(options: Options, values: Dict[str, Any], source: str) -> Options:
    known = {f.name: f for f in fields(Options)}
    for key, value in values.items():
        name = str(key).replace("-", "_")
        if name not in known:
            raise ConfigError(f"Unknown option '{key}' in {source}")
        # Annotations are plain types here, not strings.
        setattr(options, name, _coerce(name, known[name].type, value))
    return options


def _config_path(path: Optional[str]) -> Optional[Path]:
    if path:
        return Path(path)
    env_path = os.environ.get(CONFIG_ENV)
    if env_path:
        return Path(env_path)
    default = Path(DEFAULT_CONFIG_FILE)
    return default if default.is_file() else None


def load_options(path: Optional[str] = None) -> Options:
    """Builds Options from defaults, the YAML config file and the environment."""
    options = Options()

    config_path = _config_path(path)
    if config_path is not None:
        try:
            data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            raise ConfigError(f"Config file not found: {config_path}")
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}")
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {config_path} must contain a mapping")
        _apply(options, data, str(config_path))

    overrides = {
        name: os.environ[env]
        for env, name in ENV_OVERRIDES.items()
        if env in os.environ
    }
    return _apply(options, overrides, "environment")
