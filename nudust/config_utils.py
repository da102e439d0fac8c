"""Helper utilities for loading and normalising run configurations."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from pydantic import ValidationError

from .errors import ConfigurationError
from .schema import Config

logger = logging.getLogger(__name__)

# (rank variable, rank-count variable), in order of precedence
RANK_ENV_VARS: Tuple[Tuple[str, str], ...] = (
    ("NUDUST_RANK", "NUDUST_RANKS"),
    ("OMPI_COMM_WORLD_RANK", "OMPI_COMM_WORLD_SIZE"),
    ("PMI_RANK", "PMI_SIZE"),
)


def parse_override_value(raw: str) -> Any:
    """Parse a CLI override value into a Python object."""

    text = raw.strip()
    lower = text.lower()
    if lower in {"true", "false"}:
        return lower == "true"
    if lower in {"none", "null"}:
        return None
    try:
        return int(text)
    except ValueError:
        try:
            return float(text)
        except ValueError:
            pass
    if (text.startswith('"') and text.endswith('"')) or (text.startswith("'") and text.endswith("'")):
        return text[1:-1]
    return text


def apply_overrides_dict(payload: Dict[str, Any], overrides: Sequence[str]) -> Dict[str, Any]:
    """Apply dotted-path ``path=value`` overrides to a configuration dictionary."""

    if not overrides:
        return payload
    for item in overrides:
        key, sep, value_str = item.partition("=")
        if not sep:
            raise ConfigurationError(f"Invalid override '{item}'; expected path=value")
        parts = [segment for segment in key.strip().split(".") if segment]
        if not parts:
            raise ConfigurationError(f"Invalid override '{item}'; empty path")
        target: Any = payload
        for segment in parts[:-1]:
            if not isinstance(target, dict):
                raise ConfigurationError(f"Cannot traverse into non-mapping for override '{item}' at '{segment}'")
            if segment not in target or target[segment] is None:
                target[segment] = {}
            target = target[segment]
        if not isinstance(target, dict):
            raise ConfigurationError(f"Cannot set override '{item}'; target is not a mapping")
        target[parts[-1]] = parse_override_value(value_str)
    return payload


def _env_int(environ: Mapping[str, str], name: str) -> Optional[int]:
    raw = environ.get(name)
    if raw is None:
        return None
    try:
        return int(raw.strip())
    except ValueError:
        logger.warning("ignoring non-integer %s=%r", name, raw)
        return None


def rank_from_environment(environ: Optional[Mapping[str, str]] = None) -> Tuple[Optional[int], Optional[int]]:
    """Return ``(rank, ranks)`` from the first launcher variable pair that is set."""

    env = os.environ if environ is None else environ
    for rank_var, size_var in RANK_ENV_VARS:
        rank = _env_int(env, rank_var)
        ranks = _env_int(env, size_var)
        if rank is not None or ranks is not None:
            return rank, ranks
    return None, None


def load_config(
    path: Path,
    overrides: Optional[Sequence[str]] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> Config:
    """Load a YAML configuration file into a :class:`Config` instance.

    Rank variables from the environment are applied before the explicit
    ``overrides``, so command-line values win over the launcher, which wins
    over the file.
    """

    from ruamel.yaml import YAML

    yaml = YAML(typ="safe")
    source_path = Path(path)
    if not source_path.is_file():
        raise ConfigurationError(f"Cannot open configuration file {source_path}")
    with source_path.open("r", encoding="utf-8") as fh:
        data = yaml.load(fh)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError("Configuration root must be a mapping")

    env_overrides = []
    rank, ranks = rank_from_environment(environ)
    if rank is not None:
        env_overrides.append(f"parallel.rank={rank}")
    if ranks is not None:
        env_overrides.append(f"parallel.ranks={ranks}")
    data = apply_overrides_dict(data, [*env_overrides, *(overrides or [])])
    try:
        return Config(**data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration {source_path}:\n{exc}") from exc


def configure_logging(level: int) -> None:
    """Configure root logging for command-line runs."""

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s",
    )
    logging.getLogger().setLevel(level)
    logging.captureWarnings(True)


__all__ = [
    "RANK_ENV_VARS",
    "parse_override_value",
    "apply_overrides_dict",
    "rank_from_environment",
    "load_config",
    "configure_logging",
]
