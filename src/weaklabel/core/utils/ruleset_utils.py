from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml
from loguru import logger

from ..weak_supervision.labeling_functions import (
    LabelingFunction,
    LabelingFunctionRegistry,
    create_keyword_lf,
    create_length_lf,
    create_regex_lf,
)

_FACTORIES = {
    "keyword": create_keyword_lf,
    "regex": create_regex_lf,
    "length": create_length_lf,
}


def load_labeling_functions(
    ruleset_file: str | Path | None, rulesets_dir: Path = Path("rulesets")
) -> LabelingFunctionRegistry:
    """
    Build a labeling function registry from a YAML or JSON rule file.

    The file holds a ``labeling_functions`` list; each entry needs a
    ``name``, a ``type`` (keyword, regex or length) and a ``label``, and
    any remaining keys are passed to the matching factory:

    .. code-block:: yaml

        labeling_functions:
          - name: fear_framing
            type: keyword
            label: fear_framing
            keywords: [dangerous, threat, crisis]
            phrases: [time is running out]

    Args:
        ruleset_file: The path to the rule file.
        rulesets_dir: The base directory where rule files are stored.

    Returns:
        A registry in file order. Files that cannot be read and entries that
        cannot be built are logged and skipped.
    """
    registry = LabelingFunctionRegistry()
    if not ruleset_file:
        return registry

    try:
        ruleset_path = _resolve_path(ruleset_file, rulesets_dir)
        ruleset = _read(ruleset_path)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
        logger.error(f"Failed to load or parse rule file {ruleset_file}: {e}")
        return registry

    if not _is_valid(ruleset):
        logger.error(f"Invalid rule file, expected a 'labeling_functions' list: {ruleset_path}")
        return registry

    for position, definition in enumerate(ruleset["labeling_functions"]):
        try:
            registry.register(build_labeling_function(definition))
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Skipping labeling function #{position} in {ruleset_path.name}: {e}")

    logger.info(f"Loaded {len(registry)} labeling functions from {ruleset_path}")
    return registry


def build_labeling_function(definition: dict[str, Any]) -> LabelingFunction:
    """Create one labeling function from a rule definition."""
    params = dict(definition)
    lf_type = params.pop("type", "keyword")
    if lf_type not in _FACTORIES:
        raise ValueError(f"Unknown labeling function type: {lf_type!r}")
    name = params.pop("name")
    label = params.pop("label", name)
    return _FACTORIES[lf_type](name, label, **params)


def _resolve_path(file_path: str | Path, base_dir: Path) -> Path:
    """Resolve a file path, checking both absolute and relative paths."""
    path = Path(file_path)
    if path.is_absolute():
        return path

    relative_path = base_dir / path
    if relative_path.exists():
        return relative_path

    return path


def _read(path: Path) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        if path.suffix.lower() in (".yaml", ".yml"):
            return yaml.safe_load(f)
        return json.load(f)


def _is_valid(ruleset: Any) -> bool:
    """Validate the basic structure of a rule file."""
    return isinstance(ruleset, dict) and isinstance(ruleset.get("labeling_functions"), list)
