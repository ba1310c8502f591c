"""Migration complexity scoring for COBOL programs

Overall = (0.35 x Logic) + (0.35 x Data) + (0.30 x Risk)

Each category score is a sum of capped terms, clamped to 0-100:
- Logic: cyclomatic density, IF nesting, GO TO, EVALUATE
- Data: COPY, embedded SQL density, file I/O, OCCURS, REDEFINES
- Risk: COMP-3, assembler calls, complex PIC, SORT/MERGE, Report Writer
"""

import math
from typing import Dict, List, Optional
from dataclasses import dataclass, field
import logging

from legacyscope.config import get_config
from legacyscope.static_analysis.program_analyzer import MigrationMetrics, ProgramAnalysisResult

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    """Round .5 away from zero so scores do not depend on banker's rounding"""
    return int(math.floor(value + 0.5))


@dataclass
class MigrationComplexityScore:
    """Migration difficulty for one program or a whole project"""
    overall: int = 0
    logic_complexity: int = 0
    data_complexity: int = 0
    cobol_specific_risk: int = 0
    difficulty: str = "Low"  # Low, Medium, High, Very High
    description: str = ""
    logic_details: List[str] = field(default_factory=list)
    data_details: List[str] = field(default_factory=list)
    risk_details: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "overall": self.overall,
            "logicComplexity": self.logic_complexity,
            "dataComplexity": self.data_complexity,
            "cobolSpecificRisk": self.cobol_specific_risk,
            "difficulty": self.difficulty,
            "description": self.description,
            "details": {
                "logic": list(self.logic_details),
                "data": list(self.data_details),
                "risk": list(self.risk_details),
            },
        }


class MigrationComplexityScorer:
    """Score COBOL-to-Java migration difficulty from program metrics"""

    def __init__(self, config: Optional[Dict] = None):
        self.config = config or get_config()
        self.weights = self.config["scoring_weights"]
        self.caps = self.config["scoring_caps"]
        self.thresholds = self.config["finding_thresholds"]

    def score_file(self, result: ProgramAnalysisResult) -> MigrationComplexityScore:
        """Calculate migration complexity score for a single program"""
        metrics = result.migration_metrics
        loc = result.loc

        logic_score = self.calculate_logic_complexity(metrics, loc)
        data_score = self.calculate_data_complexity(metrics, loc)
        risk_score = self.calculate_cobol_risk(metrics)
        overall = self.weighted_overall(logic_score, data_score, risk_score)

        return MigrationComplexityScore(
            overall=overall,
            logic_complexity=logic_score,
            data_complexity=data_score,
            cobol_specific_risk=risk_score,
            difficulty=self.get_difficulty_level(overall),
            description=self.get_description(overall),
            logic_details=self.get_logic_details(metrics),
            data_details=self.get_data_details(metrics),
            risk_details=self.get_risk_details(metrics),
        )

    def score_project(self, results: List[ProgramAnalysisResult]) -> MigrationComplexityScore:
        """
        Aggregate score across programs.

        Category scores are averaged; the overall score is recomputed from
        the averaged categories rather than averaging per-file overalls.
        Findings are merged without duplicates, in file order.
        """
        if not results:
            return self.empty_score()

        file_scores = [self.score_file(r) for r in results]
        count = len(file_scores)

        avg_logic = round_half_up(sum(s.logic_complexity for s in file_scores) / count)
        avg_data = round_half_up(sum(s.data_complexity for s in file_scores) / count)
        avg_risk = round_half_up(sum(s.cobol_specific_risk for s in file_scores) / count)
        overall = self.weighted_overall(avg_logic, avg_data, avg_risk)

        logger.info(f"Scored {count} program(s): overall {overall}/100")

        return MigrationComplexityScore(
            overall=overall,
            logic_complexity=avg_logic,
            data_complexity=avg_data,
            cobol_specific_risk=avg_risk,
            difficulty=self.get_difficulty_level(overall),
            description=self.get_description(overall),
            logic_details=self._merge_details(s.logic_details for s in file_scores),
            data_details=self._merge_details(s.data_details for s in file_scores),
            risk_details=self._merge_details(s.risk_details for s in file_scores),
        )

    def weighted_overall(self, logic: float, data: float, risk: float) -> int:
        return round_half_up(
            logic * self.weights["logic"] +
            data * self.weights["data"] +
            risk * self.weights["risk"]
        )

    def _capped(self, category: str, term: str, value: float) -> float:
        multiplier, cap = self.caps[category][term]
        return min(value * multiplier, cap)

    def _clamp(self, score: float) -> int:
        return max(0, min(round_half_up(score), 100))

    def calculate_logic_complexity(self, metrics: MigrationMetrics, loc: int) -> int:
        score = 0.0

        # Cyclomatic complexity normalized per 100 LOC
        complexity_ratio = (metrics.cyclomatic_complexity / max(loc, 1)) * 100
        score += self._capped("logic", "complexity_per_100_loc", complexity_ratio)

        for depth, bonus in self.config["nesting_bonus"]:
            if metrics.nested_if_depth > depth:
                score += bonus
                break

        score += self._capped("logic", "goto", metrics.goto_count)
        score += self._capped("logic", "evaluate", metrics.evaluate_count)

        return self._clamp(score)

    def calculate_data_complexity(self, metrics: MigrationMetrics, loc: int) -> int:
        score = 0.0

        score += self._capped("data", "copybook", metrics.copybook_count)

        sql_ratio = (metrics.sql_statement_count / max(loc, 1)) * 100
        score += self._capped("data", "sql_per_100_loc", sql_ratio)

        score += self._capped("data", "file_operations", metrics.file_operation_count)
        score += self._capped("data", "occurs", metrics.occurs_count)
        score += self._capped("data", "redefines", metrics.redefines_count)

        return self._clamp(score)

    def calculate_cobol_risk(self, metrics: MigrationMetrics) -> int:
        score = 0.0

        score += self._capped("risk", "comp3", metrics.comp3_count)
        score += self._capped("risk", "assembly_calls", metrics.assembly_call_count)
        score += self._capped("risk", "complex_pic", metrics.complex_pic_count)
        score += self._capped("risk", "sort_merge", metrics.sort_merge_count)

        if metrics.report_writer_usage:
            score += self.config["report_writer_bonus"]

        return self._clamp(score)

    def get_difficulty_level(self, overall: int) -> str:
        thresholds = self.config["difficulty_thresholds"]
        for level in ("Low", "Medium", "High"):
            if overall < thresholds[level]:
                return level
        return "Very High"

    def get_description(self, overall: int) -> str:
        return self.config["difficulty_descriptions"][self.get_difficulty_level(overall)]

    def get_logic_details(self, metrics: MigrationMetrics) -> List[str]:
        details = []
        t = self.thresholds

        if metrics.cyclomatic_complexity > t["cyclomatic_complexity"]:
            details.append(f"High cyclomatic complexity ({metrics.cyclomatic_complexity})")
        if metrics.nested_if_depth > t["nested_if_depth"]:
            details.append(f"Deep nesting detected ({metrics.nested_if_depth} levels)")
        if metrics.goto_count > t["goto_count"]:
            details.append(f"GOTO statements present ({metrics.goto_count}) - requires refactoring")
        if metrics.evaluate_count > t["evaluate_count"]:
            details.append(f"Multiple EVALUATE statements ({metrics.evaluate_count})")

        return details

    def get_data_details(self, metrics: MigrationMetrics) -> List[str]:
        details = []
        t = self.thresholds

        if metrics.copybook_count > t["copybook_count"]:
            details.append(f"High COPYBOOK usage ({metrics.copybook_count}) - data structure mapping needed")
        if metrics.sql_statement_count > t["sql_statement_count"]:
            details.append(f"Embedded SQL detected ({metrics.sql_statement_count} statements)")
        if metrics.file_operation_count > t["file_operation_count"]:
            details.append(f"Multiple file operations ({metrics.file_operation_count})")
        if metrics.occurs_count > t["occurs_count"]:
            details.append(f"Arrays/tables present ({metrics.occurs_count} OCCURS clauses)")
        if metrics.redefines_count > t["redefines_count"]:
            details.append(f"Union types detected ({metrics.redefines_count} REDEFINES)")

        return details

    def get_risk_details(self, metrics: MigrationMetrics) -> List[str]:
        details = []
        t = self.thresholds

        if metrics.comp3_count > t["comp3_count"]:
            details.append(f"COMP-3/Packed decimal fields ({metrics.comp3_count}) - custom conversion required")
        if metrics.assembly_call_count > t["assembly_call_count"]:
            details.append(f"Assembly language calls detected ({metrics.assembly_call_count}) - critical risk")
        if metrics.complex_pic_count > t["complex_pic_count"]:
            details.append(f"Complex PIC clauses ({metrics.complex_pic_count})")
        if metrics.sort_merge_count > t["sort_merge_count"]:
            details.append(f"SORT/MERGE operations ({metrics.sort_merge_count})")
        if metrics.report_writer_usage:
            details.append("Report Writer in use - requires complete redesign")

        return details

    def _merge_details(self, detail_lists) -> List[str]:
        merged = []
        for details in detail_lists:
            merged.extend(details)
        return list(dict.fromkeys(merged))

    def empty_score(self) -> MigrationComplexityScore:
        return MigrationComplexityScore(
            overall=0,
            logic_complexity=0,
            data_complexity=0,
            cobol_specific_risk=0,
            difficulty="Low",
            description=self.config["empty_project_description"],
        )
