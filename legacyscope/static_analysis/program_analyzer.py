"""Program Structure Analyzer for COBOL

Line-oriented recognition of program structure and migration risk:
- Divisions, paragraph labels, CALL/COPY dependencies
- Lines of code (non-comment, non-blank)
- Migration counters (control flow, data access, COBOL-specific constructs)

No AST is built; every construct is recognized one line at a time.
"""

import re
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union
from dataclasses import dataclass, field
import logging

from legacyscope.config import ASSEMBLY_LINKAGE_TOKENS, PROGRAM_TYPE
from .line_classifier import SourceLine, classify_lines, read_source

logger = logging.getLogger(__name__)


def _token(word: str) -> str:
    # COBOL identifiers contain hyphens, so END-IF must not match IF
    return rf'(?<![A-Z0-9-]){word}(?![A-Z0-9-])'


@dataclass
class MigrationMetrics:
    """Raw migration counters for one program"""
    # Logic complexity
    cyclomatic_complexity: int = 1
    nested_if_depth: int = 0
    goto_count: int = 0
    evaluate_count: int = 0
    perform_count: int = 0

    # Data & SQL complexity
    copybook_count: int = 0
    sql_statement_count: int = 0
    file_operation_count: int = 0
    occurs_count: int = 0
    redefines_count: int = 0

    # COBOL-specific risk
    comp3_count: int = 0
    assembly_call_count: int = 0
    complex_pic_count: int = 0
    sort_merge_count: int = 0
    report_writer_usage: bool = False

    def to_dict(self) -> Dict:
        return {
            "cyclomaticComplexity": self.cyclomatic_complexity,
            "nestedIfDepth": self.nested_if_depth,
            "gotoCount": self.goto_count,
            "evaluateCount": self.evaluate_count,
            "performCount": self.perform_count,
            "copybookCount": self.copybook_count,
            "sqlStatementCount": self.sql_statement_count,
            "fileOperationCount": self.file_operation_count,
            "occursCount": self.occurs_count,
            "redefinesCount": self.redefines_count,
            "comp3Count": self.comp3_count,
            "assemblyCallCount": self.assembly_call_count,
            "complexPicCount": self.complex_pic_count,
            "sortMergeCount": self.sort_merge_count,
            "reportWriterUsage": self.report_writer_usage,
        }


@dataclass
class ProgramAnalysisResult:
    """Structural metadata for one COBOL program"""
    name: str
    path: str
    loc: int
    complexity: int
    divisions: List[str] = field(default_factory=list)
    paragraphs: List[str] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)
    migration_metrics: MigrationMetrics = field(default_factory=MigrationMetrics)
    type: str = PROGRAM_TYPE

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "path": self.path,
            "type": self.type,
            "loc": self.loc,
            "complexity": self.complexity,
            "divisions": list(self.divisions),
            "paragraphs": list(self.paragraphs),
            "dependencies": list(self.dependencies),
            "migrationMetrics": self.migration_metrics.to_dict(),
        }


class ProgramStructureAnalyzer:
    """
    Analyze COBOL program source for structure and migration metrics.

    Each public method is a pure function of the classified lines; the
    analyzer keeps no state between calls.
    """

    def __init__(self, assembly_tokens: Optional[Sequence[str]] = None):
        tokens = ASSEMBLY_LINKAGE_TOKENS if assembly_tokens is None else assembly_tokens
        self.assembly_tokens = [t.upper() for t in tokens]

        self.division_pattern = re.compile(
            r'(IDENTIFICATION|ENVIRONMENT|DATA|PROCEDURE)\s+DIVISION',
            re.IGNORECASE
        )
        self.paragraph_pattern = re.compile(r'^([A-Za-z][A-Za-z0-9-]*)\.$')
        self.call_pattern = re.compile(r'CALL\s+[\'"]([^\'"]+)[\'"]', re.IGNORECASE)
        self.copy_pattern = re.compile(r'\bCOPY\s+([A-Z0-9-]+)', re.IGNORECASE)

        # Migration counters, matched against the uppercased line
        self.if_pattern = re.compile(_token('IF'))
        self.end_if_pattern = re.compile(_token('END-IF'))
        self.evaluate_pattern = re.compile(_token('EVALUATE'))
        self.when_pattern = re.compile(_token('WHEN'))
        self.perform_pattern = re.compile(_token('PERFORM'))
        self.until_pattern = re.compile(_token('UNTIL'))
        self.goto_pattern = re.compile(r'\bGO\s+TO\b|' + _token('GOTO'))
        self.copy_statement_pattern = re.compile(_token('COPY'))
        self.exec_sql_pattern = re.compile(r'\bEXEC(?:\s+|-)SQL\b')
        self.file_op_pattern = re.compile(_token('(?:OPEN|READ|WRITE|CLOSE|REWRITE|DELETE)'))
        self.occurs_pattern = re.compile(_token('OCCURS'))
        self.redefines_pattern = re.compile(_token('REDEFINES'))
        self.comp3_pattern = re.compile(_token('(?:COMP-3|PACKED-DECIMAL)'))
        self.call_verb_pattern = re.compile(_token('CALL'))
        self.complex_pic_pattern = re.compile(r'\bPIC(?:TURE)?\s+(?:IS\s+)?[^.\s]*[SVP9X]{5,}')
        self.sort_merge_pattern = re.compile(_token('(?:SORT|MERGE|RELEASE|RETURN)'))
        self.report_pattern = re.compile(_token('REPORT'))
        self.section_pattern = re.compile(_token('SECTION'))

    def analyze(self, file_path: Union[str, Path]) -> ProgramAnalysisResult:
        """
        Read and analyze a COBOL program file.

        Raises:
            SourceReadError: the file could not be read
        """
        source = read_source(file_path)
        return self.analyze_lines(source.lines, file_path)

    def analyze_text(self, content: str, file_path: Union[str, Path]) -> ProgramAnalysisResult:
        """Analyze program text already in memory"""
        return self.analyze_lines(classify_lines(content), file_path)

    def analyze_lines(self, lines: List[SourceLine],
                      file_path: Union[str, Path]) -> ProgramAnalysisResult:
        file_path = Path(file_path)
        logger.info(f"Analyzing COBOL program: {file_path.name}")

        metrics = self.migration_metrics(lines)
        result = ProgramAnalysisResult(
            name=file_path.stem.upper(),
            path=str(file_path),
            loc=self.line_count(lines),
            complexity=metrics.cyclomatic_complexity,
            divisions=self.extract_divisions(lines),
            paragraphs=self.extract_paragraphs(lines),
            dependencies=self.extract_dependencies(lines),
            migration_metrics=metrics,
        )

        logger.info(f"Found {len(result.divisions)} divisions, {len(result.paragraphs)} paragraphs, "
                    f"{len(result.dependencies)} dependencies ({result.loc} LOC)")
        return result

    def line_count(self, lines: List[SourceLine]) -> int:
        """Count lines that are neither comment nor blank"""
        return sum(1 for line in lines if line.is_code)

    def extract_divisions(self, lines: List[SourceLine]) -> List[str]:
        """Division headers in source order, e.g. 'DATA DIVISION'"""
        divisions = []
        for line in lines:
            if not line.is_code:
                continue
            match = self.division_pattern.search(line.text)
            if match:
                divisions.append(f"{match.group(1).upper()} DIVISION")
        return divisions

    def extract_paragraphs(self, lines: List[SourceLine]) -> List[str]:
        """Lines consisting solely of a label followed by a period"""
        paragraphs = []
        for line in lines:
            if not line.is_code:
                continue
            match = self.paragraph_pattern.match(line.stripped)
            if match and match.group(1).upper() != 'DIVISION':
                paragraphs.append(match.group(1))
        return paragraphs

    def extract_dependencies(self, lines: List[SourceLine]) -> List[str]:
        """CALL literal targets and COPY members, deduplicated"""
        dependencies = []
        for line in lines:
            if not line.is_code:
                continue
            upper = line.upper
            for match in self.call_pattern.finditer(upper):
                dependencies.append(match.group(1))
            for match in self.copy_pattern.finditer(upper):
                dependencies.append(match.group(1))

        # Remove duplicates while preserving order
        return list(dict.fromkeys(dependencies))

    def migration_metrics(self, lines: List[SourceLine]) -> MigrationMetrics:
        """
        Accumulate every migration counter in a single pass.

        A line may feed several counters; each counter measures presence of
        its construct on the line independently of the others.
        """
        metrics = MigrationMetrics()
        current_if_depth = 0

        for line in lines:
            if not line.is_code:
                continue
            upper = line.upper

            # Logic complexity
            if self.if_pattern.search(upper):
                metrics.cyclomatic_complexity += 1
                current_if_depth += 1
                metrics.nested_if_depth = max(metrics.nested_if_depth, current_if_depth)
            if self.end_if_pattern.search(upper):
                current_if_depth = max(0, current_if_depth - 1)
            if self.evaluate_pattern.search(upper):
                metrics.cyclomatic_complexity += 1
                metrics.evaluate_count += 1
            if self.perform_pattern.search(upper):
                metrics.perform_count += 1
                if self.until_pattern.search(upper):
                    metrics.cyclomatic_complexity += 1
            if self.when_pattern.search(upper):
                metrics.cyclomatic_complexity += 1
            if self.goto_pattern.search(upper):
                metrics.goto_count += 1
                metrics.cyclomatic_complexity += 1

            # Data & SQL complexity
            if self.copy_statement_pattern.search(upper):
                metrics.copybook_count += 1
            if self.exec_sql_pattern.search(upper):
                metrics.sql_statement_count += 1
            if self.file_op_pattern.search(upper):
                metrics.file_operation_count += 1
            if self.occurs_pattern.search(upper):
                metrics.occurs_count += 1
            if self.redefines_pattern.search(upper):
                metrics.redefines_count += 1

            # COBOL-specific risk
            if self.comp3_pattern.search(upper):
                metrics.comp3_count += 1
            if self.call_verb_pattern.search(upper) and any(t in upper for t in self.assembly_tokens):
                metrics.assembly_call_count += 1
            if self.complex_pic_pattern.search(upper):
                metrics.complex_pic_count += 1
            if self.sort_merge_pattern.search(upper):
                metrics.sort_merge_count += 1
            if self.report_pattern.search(upper) and self.section_pattern.search(upper):
                metrics.report_writer_usage = True

        return metrics
