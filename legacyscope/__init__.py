"""LegacyScope - static analysis and migration-difficulty scoring for legacy COBOL estates"""

__version__ = "1.0.0"
