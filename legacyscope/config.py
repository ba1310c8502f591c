"""Configuration for LegacyScope"""

import copy
from pathlib import Path
from typing import Dict, Any, Optional
import logging

import yaml

logger = logging.getLogger(__name__)

# Base paths
BASE_DIR = Path(__file__).parent.parent
DEFAULT_CONFIG_FILE = BASE_DIR / "legacyscope.yaml"

# ===========================================
# Source routing
# ===========================================
# Extension -> analyzer kind used by the project driver

SOURCE_EXTENSIONS = {
    ".cbl": "program",
    ".cob": "program",
    ".cpy": "copybook",
    ".xml": "orm",
}

PROGRAM_TYPE = "COBOL Program"

# ===========================================
# Program analysis
# ===========================================
# CALL targets containing one of these tokens are treated as
# assembler linkage (no direct Java equivalent)

ASSEMBLY_LINKAGE_TOKENS = ["ILBOA", "ASMX"]

# ===========================================
# Migration Complexity Scoring
# ===========================================
# Overall = (0.35 x Logic) + (0.35 x Data) + (0.30 x Risk)

SCORING_WEIGHTS = {
    "logic": 0.35,
    "data": 0.35,
    "risk": 0.30,
}

# (multiplier, cap) per scored term
SCORING_CAPS = {
    "logic": {
        "complexity_per_100_loc": (2, 40),
        "goto": (10, 30),
        "evaluate": (2, 10),
    },
    "data": {
        "copybook": (5, 25),
        "sql_per_100_loc": (5, 30),
        "file_operations": (2, 20),
        "occurs": (3, 15),
        "redefines": (3, 10),
    },
    "risk": {
        "comp3": (5, 25),
        "assembly_calls": (20, 40),
        "complex_pic": (3, 15),
        "sort_merge": (3, 10),
    },
}

# (depth greater than, bonus) checked top to bottom
NESTING_BONUS = [
    (5, 20),
    (3, 10),
    (2, 5),
]

REPORT_WRITER_BONUS = 10

# Upper bounds (exclusive) for each difficulty tier
DIFFICULTY_THRESHOLDS = {
    "Low": 30,
    "Medium": 60,
    "High": 80,
}

DIFFICULTY_DESCRIPTIONS = {
    "Low": "Low migration difficulty - straightforward conversion expected with minimal refactoring",
    "Medium": "Medium migration difficulty - moderate refactoring required, standard migration patterns applicable",
    "High": "High migration difficulty - significant redesign needed, complex legacy patterns present",
    "Very High": "Very high migration difficulty - extensive redesign required, critical COBOL-specific features in use",
}

EMPTY_PROJECT_DESCRIPTION = "No files analyzed"

# A finding is emitted when the counter is strictly greater than the threshold
FINDING_THRESHOLDS = {
    "cyclomatic_complexity": 20,
    "nested_if_depth": 3,
    "goto_count": 0,
    "evaluate_count": 5,
    "copybook_count": 3,
    "sql_statement_count": 10,
    "file_operation_count": 10,
    "occurs_count": 2,
    "redefines_count": 2,
    "comp3_count": 0,
    "assembly_call_count": 0,
    "complex_pic_count": 5,
    "sort_merge_count": 0,
}

# ===========================================
# Project metadata
# ===========================================

PRIORITY_THRESHOLDS = {
    "high": {"complexity": 30, "loc": 1000},
    "medium": {"complexity": 15, "loc": 500},
}

HIGH_COMPLEXITY_MODULES = {
    "min_complexity": 20,
    "high_risk_complexity": 40,
    "limit": 10,
}

RISK_THRESHOLDS = {
    "overall": 60,
    "overall_critical": 80,
    "category": 60,
    "total_loc": 100000,
    "total_dependencies": 50,
}


def get_config() -> Dict[str, Any]:
    """Get full configuration dictionary"""
    return {
        "base_dir": str(BASE_DIR),
        "source_extensions": dict(SOURCE_EXTENSIONS),
        "assembly_linkage_tokens": list(ASSEMBLY_LINKAGE_TOKENS),
        "scoring_weights": dict(SCORING_WEIGHTS),
        "scoring_caps": copy.deepcopy(SCORING_CAPS),
        "nesting_bonus": list(NESTING_BONUS),
        "report_writer_bonus": REPORT_WRITER_BONUS,
        "difficulty_thresholds": dict(DIFFICULTY_THRESHOLDS),
        "difficulty_descriptions": dict(DIFFICULTY_DESCRIPTIONS),
        "empty_project_description": EMPTY_PROJECT_DESCRIPTION,
        "finding_thresholds": dict(FINDING_THRESHOLDS),
        "priority_thresholds": copy.deepcopy(PRIORITY_THRESHOLDS),
        "high_complexity_modules": dict(HIGH_COMPLEXITY_MODULES),
        "risk_thresholds": dict(RISK_THRESHOLDS),
    }


def _deep_merge(base: Dict, overrides: Dict) -> Dict:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load configuration, applying YAML overrides on top of the defaults.

    Args:
        config_path: Optional path to a YAML file. Falls back to
            ``legacyscope.yaml`` at the project root when it exists.

    Returns:
        Configuration dictionary (same shape as get_config())
    """
    config = get_config()

    if config_path is None:
        if not DEFAULT_CONFIG_FILE.exists():
            return config
        config_path = DEFAULT_CONFIG_FILE

    config_path = Path(config_path)
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            overrides = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid configuration file {config_path}: {e}") from e

    if not overrides:
        return config
    if not isinstance(overrides, dict):
        raise ValueError(f"Configuration file {config_path} must contain a mapping")

    logger.info(f"Loaded configuration overrides from {config_path}")
    return _deep_merge(config, overrides)
