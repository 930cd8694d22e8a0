"""
Pipeline Settings
=================

Resolves configuration once at startup: built-in defaults, then an optional
YAML file, then environment variables (after ``load_dotenv``). The resulting
``Settings`` object is passed explicitly to every component.
"""

import os
import tempfile
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

CONFIG_ENV_VAR = "PIPELINE_CONFIG_PATH"
DEFAULT_CONFIG_FILE = "pipeline.yaml"

# Fixed compiler settings, not configurable.
EVM_VERSION = "paris"
OPTIMIZER_RUNS = 200


class ConfigurationError(RuntimeError):
    """Raised when the configuration file is unreadable or malformed"""


@dataclass(frozen=True)
class Settings:
    api_key: str = ""
    api_base_url: str = "https://openrouter.ai/api/v1"
    model: str = "deepseek/deepseek-chat-v3-0324"
    max_tokens: int = 2048
    temperature: float = 0.2
    request_timeout: int = 120
    client_max_retries: int = 1

    solc_version: str = "0.8.29"

    max_generation_attempts: int = 3
    analysis_batch_size: int = 5
    endpoint_max_retries: int = 3
    endpoint_backoff_seconds: float = 1.0

    flatten_command: List[str] = field(default_factory=lambda: ["npx", "hardhat", "flatten"])
    flatten_timeout: int = 120
    contracts_dir: str = field(default_factory=tempfile.gettempdir)
    project_root: str = field(default_factory=os.getcwd)

    host: str = "0.0.0.0"
    port: int = 8080

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary with the API key masked"""
        data = asdict(self)
        data["api_key"] = "***" if self.api_key else ""
        return data


# Environment variable -> (field, converter)
_ENV_FIELDS = {
    "OPENROUTER_API_URL": ("api_base_url", str),
    "LLM_MODEL": ("model", str),
    "LLM_MAX_TOKENS": ("max_tokens", int),
    "LLM_TEMPERATURE": ("temperature", float),
    "LLM_TIMEOUT": ("request_timeout", int),
    "SOLC_VERSION": ("solc_version", str),
    "CONTRACTS_DIR": ("contracts_dir", str),
    "PROJECT_ROOT": ("project_root", str),
    "HOST": ("host", str),
    "PORT": ("port", int),
}


def _read_config_file(path: Path) -> Dict[str, Any]:
    """Read the YAML config, returning an empty mapping when it does not exist."""
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f'Failed to read config "{path}": {e}') from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f'Config file "{path}" must be a YAML mapping at top level')
    return data


def _resolve_config_path(environ) -> Path:
    override = environ.get(CONFIG_ENV_VAR, "").strip()
    if override:
        return Path(override).expanduser().resolve()
    return Path.cwd() / DEFAULT_CONFIG_FILE


def load_settings(
    config_path: Optional[str] = None,
    environ: Optional[Dict[str, str]] = None,
    use_dotenv: bool = True,
) -> Settings:
    """
    Build the settings object.

    Args:
        config_path: Explicit YAML path (overrides PIPELINE_CONFIG_PATH)
        environ: Environment mapping (default: os.environ)
        use_dotenv: Load a .env file into the process environment first

    Returns:
        Immutable Settings
    """
    if use_dotenv:
        load_dotenv()
    if environ is None:
        environ = dict(os.environ)

    path = Path(config_path) if config_path else _resolve_config_path(environ)
    file_values = _read_config_file(path)

    known = set(Settings.__dataclass_fields__) - {"api_key"}
    unknown = set(file_values) - known
    if unknown:
        raise ConfigurationError(f"Unknown config keys in {path}: {', '.join(sorted(unknown))}")

    settings = replace(Settings(), **file_values)

    overrides: Dict[str, Any] = {}
    for var, (name, convert) in _ENV_FIELDS.items():
        raw = environ.get(var)
        if raw is None or not raw.strip():
            continue
        try:
            overrides[name] = convert(raw.strip())
        except ValueError as e:
            raise ConfigurationError(f"Invalid value for {var}: {raw!r}") from e

    api_key = (
        environ.get("OPENROUTER_API_KEY")
        or environ.get("OPENAI_API_KEY")
        or environ.get("API_KEY")
        or ""
    )
    overrides["api_key"] = api_key.strip()

    return replace(settings, **overrides)
