from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Type, TypeVar

import yaml
from pydantic import BaseModel, ValidationError

M = TypeVar("M", bound=BaseModel)


def load_args(args_path: Path, model: Type[M]) -> M:
    """Load + validate command arguments from a YAML (or JSON) file.

    Validation:
    - top level must be a mapping
    - pydantic schema validation (required keys, types)
    """
    try:
        raw: Dict[str, Any] = yaml.safe_load(args_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid arguments file: {args_path}\n{e}") from e
    if not isinstance(raw, dict):
        raise ValueError(f"Invalid arguments file: {args_path}\nexpected a mapping, got {type(raw).__name__}")
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        # Re-raise with a cleaner message for CLI usage
        raise ValueError(f"Invalid arguments file: {args_path}\n{e}") from e
