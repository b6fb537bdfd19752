"""Configuration for legacyxref"""

import copy
from pathlib import Path
from typing import Dict, Any, Optional, Union
import logging

import yaml
from jsonschema import Draft7Validator

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised when a configuration override file is unusable"""


# ===========================================
# Source discovery
# ===========================================

SOURCE_EXTENSIONS = {
    "program": [".cbl", ".cob", ".cobol"],
    "copybook": [".cpy", ".copy"],
    "jcl": [".jcl", ".prc", ".proc"],
}

# ===========================================
# Scan windows
# ===========================================
# Bounded forward lookahead used by the line scanners. A construct whose
# closing marker is not found inside its window is truncated.

LOOKAHEAD_WINDOWS = {
    "if_else": 20,          # IF ... ELSE / END-IF
    "evaluate_when": 30,    # EVALUATE ... WHEN labels / END-EVALUATE
    "rule_context": 4,      # IF followed by an error DISPLAY
    "error_context": 4,     # SQLCODE check followed by its handler
}

JCL_SETTINGS = {
    "max_column": 72,       # columns 73-80 carry sequence numbers
}

# ===========================================
# Per-program migration complexity (logic / data / risk)
# ===========================================
# overall = 0.35 x logic + 0.35 x data + 0.30 x risk
# Each factor contributes min(count x weight, cap).

PROGRAM_SCORE_WEIGHTS = {
    "logic": 0.35,
    "data": 0.35,
    "risk": 0.30,
}

PROGRAM_SCORE_FACTORS = {
    "logic": {
        "cyclomatic_density": {"weight": 2, "cap": 40},   # decisions per 100 LOC
        "goto": {"weight": 10, "cap": 30},
        "evaluate": {"weight": 2, "cap": 10},
    },
    "data": {
        "copybook": {"weight": 5, "cap": 25},
        "sql_density": {"weight": 5, "cap": 30},          # SQL blocks per 100 LOC
        "file_operation": {"weight": 2, "cap": 20},
        "occurs": {"weight": 3, "cap": 15},
        "redefines": {"weight": 3, "cap": 10},
    },
    "risk": {
        "packed_decimal": {"weight": 5, "cap": 25},
        "assembler_call": {"weight": 20, "cap": 40},
        "complex_picture": {"weight": 3, "cap": 15},
        "sort_merge": {"weight": 3, "cap": 10},
        "report_writer": {"weight": 10, "cap": 10},
    },
}

# (depth greater than, points) evaluated top-down, first match wins
NESTED_IF_BANDS = [
    [5, 20],
    [3, 10],
    [2, 5],
]

# ===========================================
# Project migration complexity (six dimensions)
# ===========================================

PROJECT_SCORE_WEIGHTS = {
    "data_structure": 0.20,
    "query_rewrite": 0.20,
    "procedural_logic": 0.20,
    "data_volume": 0.15,
    "application_dependency": 0.15,
    "operational_risk": 0.10,
}

PROJECT_SCORE_FACTORS = {
    "data_structure": {
        "packed_decimal": {"weight": 2, "cap": 30},
        "redefines": {"weight": 3, "cap": 20},
        "occurs": {"weight": 2, "cap": 15},
        "complex_picture": {"weight": 1, "cap": 15},
        "copybook": {"weight": 2, "cap": 20},
    },
    "query_rewrite": {
        "sql_statement": {"weight": 1, "cap": 30},
        "distinct_table": {"weight": 3, "cap": 30},
        "filtered_query": {"weight": 1, "cap": 15},
        "mixed_entity_access": {"weight": 5, "cap": 25},
    },
    "procedural_logic": {
        "cyclomatic_density": {"weight": 2, "cap": 40},
        "deeply_nested_program": {"weight": 5, "cap": 20},
        "goto": {"weight": 3, "cap": 30},
        "evaluate": {"weight": 1, "cap": 10},
    },
    "data_volume": {
        "entity": {"weight": 2, "cap": 30},
        "dataset": {"weight": 2, "cap": 20},
        "generation_dataset": {"weight": 5, "cap": 20},
        "indexed_dataset": {"weight": 5, "cap": 20},
        "kloc": {"weight": 1, "cap": 10},
    },
    "application_dependency": {
        "call_edge": {"weight": 2, "cap": 30},
        "external_program": {"weight": 5, "cap": 20},
        "call_depth": {"weight": 5, "cap": 20},
        "shared_copybook": {"weight": 3, "cap": 15},
        "dynamic_call": {"weight": 5, "cap": 15},
    },
    "operational_risk": {
        "job": {"weight": 3, "cap": 15},
        "job_step": {"weight": 1, "cap": 15},
        "conditional_step": {"weight": 3, "cap": 15},
        "high_risk_feature": {"weight": 10, "cap": 30},
        "assembler_call": {"weight": 10, "cap": 20},
        "sort_merge": {"weight": 2, "cap": 5},
    },
}

# Difficulty tiers (upper bounds, exclusive)
TIER_THRESHOLDS = {
    "low": 30,
    "medium": 60,
    "high": 80,
}

# ===========================================
# System-level floor rules
# ===========================================
# Floors may only raise a tier. "medium" thresholds force at least Medium,
# "high" thresholds force at least High.

FLOOR_THRESHOLDS = {
    "job_chain_steps": 2,               # any job with more steps than this
    "master_entities": 5,
    "high_risk_features_medium": 2,
    "high_risk_features_high": 4,
    "portability_medium": 40,
    "portability_high": 25,
    "programs_medium": 50,
    "programs_high": 100,
}

# Estimated migration days per program by three-factor difficulty
EFFORT_DAYS = {
    "Low": 3,
    "Medium": 7,
    "High": 15,
}

PLATFORM_SETTINGS = {
    "high_feature_penalty": 15,
}


DEFAULT_CONFIG: Dict[str, Any] = {
    "source_extensions": SOURCE_EXTENSIONS,
    "lookahead_windows": LOOKAHEAD_WINDOWS,
    "jcl": JCL_SETTINGS,
    "program_score_weights": PROGRAM_SCORE_WEIGHTS,
    "program_score_factors": PROGRAM_SCORE_FACTORS,
    "nested_if_bands": NESTED_IF_BANDS,
    "project_score_weights": PROJECT_SCORE_WEIGHTS,
    "project_score_factors": PROJECT_SCORE_FACTORS,
    "tier_thresholds": TIER_THRESHOLDS,
    "floor_thresholds": FLOOR_THRESHOLDS,
    "effort_days": EFFORT_DAYS,
    "platform": PLATFORM_SETTINGS,
}


_NUMBER_MAP = {"type": "object", "additionalProperties": {"type": "number"}}
_FACTOR_TABLE = {
    "type": "object",
    "additionalProperties": {
        "type": "object",
        "additionalProperties": {
            "type": "object",
            "properties": {
                "weight": {"type": "number", "minimum": 0},
                "cap": {"type": "number", "minimum": 0, "maximum": 100},
            },
            "additionalProperties": False,
        },
    },
}

CONFIG_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "source_extensions": {
            "type": "object",
            "additionalProperties": {"type": "array", "items": {"type": "string", "pattern": r"^\."}},
        },
        "lookahead_windows": {
            "type": "object",
            "additionalProperties": {"type": "integer", "minimum": 1},
        },
        "jcl": {
            "type": "object",
            "properties": {"max_column": {"type": "integer", "minimum": 1}},
            "additionalProperties": False,
        },
        "program_score_weights": _NUMBER_MAP,
        "program_score_factors": _FACTOR_TABLE,
        "nested_if_bands": {
            "type": "array",
            "items": {"type": "array", "items": {"type": "number"}, "minItems": 2, "maxItems": 2},
        },
        "project_score_weights": _NUMBER_MAP,
        "project_score_factors": _FACTOR_TABLE,
        "tier_thresholds": {
            "type": "object",
            "properties": {
                "low": {"type": "number"},
                "medium": {"type": "number"},
                "high": {"type": "number"},
            },
            "additionalProperties": False,
        },
        "floor_thresholds": _NUMBER_MAP,
        "effort_days": _NUMBER_MAP,
        "platform": _NUMBER_MAP,
    },
    "additionalProperties": False,
}


def get_config() -> Dict[str, Any]:
    """Get a private copy of the default configuration"""
    return copy.deepcopy(DEFAULT_CONFIG)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def validate_config(overrides: Dict[str, Any]) -> None:
    """Validate an override mapping against CONFIG_SCHEMA"""
    validator = Draft7Validator(CONFIG_SCHEMA)
    errors = sorted(validator.iter_errors(overrides), key=lambda e: list(e.path))
    if errors:
        first = errors[0]
        location = "/".join(str(p) for p in first.path) or "<root>"
        raise ConfigError(f"Invalid configuration at {location}: {first.message}")


def load_config(path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Load configuration, optionally merging a YAML override file.

    Args:
        path: YAML file with a subset of DEFAULT_CONFIG keys

    Returns:
        Full configuration dictionary
    """
    config = get_config()
    if path is None:
        return config

    path = Path(path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            overrides = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read configuration file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Malformed YAML in {path}: {e}") from e

    if overrides is None:
        return config
    if not isinstance(overrides, dict):
        raise ConfigError(f"Configuration file {path} must contain a mapping")

    validate_config(overrides)
    logger.info(f"Loaded configuration overrides from {path}: {sorted(overrides)}")
    return _deep_merge(config, overrides)
