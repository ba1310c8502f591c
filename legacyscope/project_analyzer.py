"""Project driver: route every source file in a tree to its analyzer"""

from pathlib import Path
from typing import Dict, List, Optional, Union
from dataclasses import dataclass, field
import logging

from tqdm import tqdm

from legacyscope.config import get_config
from legacyscope.metadata_extractor import MetadataExtractor
from legacyscope.scoring import MigrationComplexityScore, MigrationComplexityScorer
from legacyscope.static_analysis import (
    CopybookAnalyzer,
    ORMConfigAnalyzer,
    ProgramStructureAnalyzer,
    SourceReadError,
)
from legacyscope.static_analysis.copybook_analyzer import CopybookAnalysisResult
from legacyscope.static_analysis.orm_config_analyzer import ORMConfigAnalysisResult
from legacyscope.static_analysis.program_analyzer import ProgramAnalysisResult

logger = logging.getLogger(__name__)


@dataclass
class ProjectAnalysisResult:
    root: str
    programs: List[ProgramAnalysisResult] = field(default_factory=list)
    copybooks: List[CopybookAnalysisResult] = field(default_factory=list)
    orm_configs: List[ORMConfigAnalysisResult] = field(default_factory=list)
    migration_complexity: MigrationComplexityScore = field(default_factory=MigrationComplexityScore)
    metadata: Dict = field(default_factory=dict)
    failures: List[Dict] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "root": self.root,
            "programs": [p.to_dict() for p in self.programs],
            "copybooks": [c.to_dict() for c in self.copybooks],
            "ormConfigs": [o.to_dict() for o in self.orm_configs],
            "migrationComplexity": self.migration_complexity.to_dict(),
            "metadata": self.metadata,
            "failures": list(self.failures),
        }


class ProjectAnalyzer:
    """
    Analyze a directory of legacy sources.

    Programs, copybooks and ORM files are analyzed independently; programs
    are then scored together. A file that cannot be read is logged and
    listed under failures, and the remaining files are still analyzed.
    """

    def __init__(self, config: Optional[Dict] = None, show_progress: bool = True):
        self.config = config or get_config()
        self.show_progress = show_progress
        self.extensions = self.config["source_extensions"]
        self.program_analyzer = ProgramStructureAnalyzer(
            assembly_tokens=self.config["assembly_linkage_tokens"]
        )
        self.copybook_analyzer = CopybookAnalyzer()
        self.orm_analyzer = ORMConfigAnalyzer()
        self.scorer = MigrationComplexityScorer(self.config)
        self.metadata_extractor = MetadataExtractor(self.config)

    def classify_source_file(self, file_path: Path) -> Optional[str]:
        """Analyzer kind for a file ('program', 'copybook', 'orm') or None"""
        return self.extensions.get(file_path.suffix.lower())

    def discover(self, root: Path) -> List[Path]:
        return sorted(
            p for p in root.rglob('*')
            if p.is_file() and self.classify_source_file(p) is not None
        )

    def analyze_directory(self, root: Union[str, Path]) -> ProjectAnalysisResult:
        root = Path(root)
        if not root.is_dir():
            raise NotADirectoryError(f"Not a directory: {root}")

        files = self.discover(root)
        logger.info(f"Found {len(files)} analyzable file(s) under {root}")
        return self.analyze_files(files, root=root)

    def analyze_files(self, files: List[Path], root: Union[str, Path] = '.') -> ProjectAnalysisResult:
        result = ProjectAnalysisResult(root=str(root))

        for file_path in tqdm(files, desc="Analyzing", unit="file", disable=not self.show_progress):
            kind = self.classify_source_file(Path(file_path))
            try:
                if kind == "program":
                    result.programs.append(self.program_analyzer.analyze(file_path))
                elif kind == "copybook":
                    result.copybooks.append(self.copybook_analyzer.analyze(file_path))
                elif kind == "orm":
                    result.orm_configs.append(self.orm_analyzer.analyze(file_path))
                else:
                    logger.debug(f"Skipping unsupported file: {file_path}")
            except SourceReadError as e:
                logger.warning(str(e))
                result.failures.append({"path": e.path, "error": e.reason})

        result.migration_complexity = self.scorer.score_project(result.programs)
        result.metadata = self.metadata_extractor.extract(result.programs, result.migration_complexity)

        logger.info(f"Analyzed {len(result.programs)} program(s), {len(result.copybooks)} copybook(s), "
                    f"{len(result.orm_configs)} ORM file(s); {len(result.failures)} failure(s)")
        return result
