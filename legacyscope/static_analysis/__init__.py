"""Static Analysis Module for legacy migration assessment

- Line classification shared by every analyzer
- COBOL program structure and migration counters
- Copybook record layouts with offsets, keys and entity inference
- ORM mapping files with PostgreSQL feature detection
"""

from .line_classifier import SourceFile, SourceLine, SourceReadError, classify_lines, read_source
from .program_analyzer import ProgramStructureAnalyzer, ProgramAnalysisResult, MigrationMetrics
from .copybook_analyzer import CopybookAnalyzer, calculate_picture_length
from .orm_config_analyzer import ORMConfigAnalyzer, ORMFileType, classify_orm_file

__all__ = [
    "SourceFile",
    "SourceLine",
    "SourceReadError",
    "classify_lines",
    "read_source",
    "ProgramStructureAnalyzer",
    "ProgramAnalysisResult",
    "MigrationMetrics",
    "CopybookAnalyzer",
    "calculate_picture_length",
    "ORMConfigAnalyzer",
    "ORMFileType",
    "classify_orm_file",
]
