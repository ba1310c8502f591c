"""Project-level metadata for migration documentation"""

from collections import Counter
from typing import Dict, List, Optional
import logging

from legacyscope.config import get_config
from legacyscope.scoring import MigrationComplexityScore, MigrationComplexityScorer, round_half_up
from legacyscope.static_analysis.program_analyzer import ProgramAnalysisResult

logger = logging.getLogger(__name__)


class MetadataExtractor:
    """
    Summarize a set of analyzed programs for the document generator.

    Produces LOC totals, per-program priority, the project migration score,
    the most complex modules and a list of migration risks.
    """

    def __init__(self, config: Optional[Dict] = None):
        self.config = config or get_config()
        self.scorer = MigrationComplexityScorer(self.config)

    def extract(self, results: List[ProgramAnalysisResult],
                migration_complexity: Optional[MigrationComplexityScore] = None) -> Dict:
        if migration_complexity is None:
            migration_complexity = self.scorer.score_project(results)

        total_loc = self.calculate_total_loc(results)
        logger.info(f"Extracting metadata for {len(results)} program(s), {total_loc} LOC")

        return {
            "source_analysis": {
                "total_files": len(results),
                "total_loc": total_loc,
                "programs": self.extract_program_info(results),
            },
            "complexity_summary": (
                f"{migration_complexity.difficulty} difficulty "
                f"(score: {migration_complexity.overall}/100) - {migration_complexity.description}"
            ),
            "migrationComplexity": migration_complexity.to_dict(),
            "file_type_distribution": self.calculate_file_type_distribution(results),
            "dependencies": self.extract_dependencies(results),
            "high_complexity_modules": self.identify_high_complexity_modules(results),
            "risks": self.assess_risks(results, migration_complexity),
        }

    def calculate_total_loc(self, results: List[ProgramAnalysisResult]) -> int:
        return sum(r.loc for r in results)

    def determine_priority(self, result: ProgramAnalysisResult) -> str:
        """High/Medium/Low migration priority from complexity or size"""
        thresholds = self.config["priority_thresholds"]
        for level in ("high", "medium"):
            limits = thresholds[level]
            if result.complexity > limits["complexity"] or result.loc > limits["loc"]:
                return level.capitalize()
        return "Low"

    def extract_program_info(self, results: List[ProgramAnalysisResult]) -> List[Dict]:
        return [
            {
                "name": r.name,
                "path": r.path,
                "type": r.type,
                "loc": r.loc,
                "complexity": r.complexity,
                "priority": self.determine_priority(r),
            }
            for r in results
        ]

    def calculate_file_type_distribution(self, results: List[ProgramAnalysisResult]) -> List[Dict]:
        counts = Counter(r.type for r in results)
        total = len(results)
        return [
            {
                "type": file_type,
                "count": count,
                "percentage": round_half_up(count / total * 100),
            }
            for file_type, count in counts.items()
        ]

    def extract_dependencies(self, results: List[ProgramAnalysisResult]) -> List[Dict]:
        return [
            {"source": r.name, "targets": ", ".join(r.dependencies)}
            for r in results
            if r.dependencies
        ]

    def identify_high_complexity_modules(self, results: List[ProgramAnalysisResult]) -> List[Dict]:
        settings = self.config["high_complexity_modules"]
        modules = []

        for r in results:
            if r.complexity <= settings["min_complexity"]:
                continue
            high_risk = r.complexity > settings["high_risk_complexity"]
            modules.append({
                "name": r.name,
                "score": r.complexity,
                "risk": "High" if high_risk else "Medium",
                "recommendation": (
                    "Consider breaking into smaller modules during migration"
                    if high_risk else
                    "Review and simplify logic where possible"
                ),
            })

        modules.sort(key=lambda m: m["score"], reverse=True)
        return modules[:settings["limit"]]

    def assess_risks(self, results: List[ProgramAnalysisResult],
                     migration_complexity: MigrationComplexityScore) -> List[Dict]:
        t = self.config["risk_thresholds"]
        risks = []

        if migration_complexity.overall >= t["overall"]:
            risks.append({
                "id": "R-001",
                "category": "Migration Complexity",
                "description": (f"Migration difficulty score is {migration_complexity.overall}/100 "
                                f"({migration_complexity.difficulty})"),
                "severity": "Critical" if migration_complexity.overall >= t["overall_critical"] else "High",
                "impact": "May lead to longer migration timeline, higher defect rate, and increased resource requirements",
                "mitigation": ("Allocate experienced developers, plan for refactoring, increase code review "
                               "frequency, consider phased migration"),
            })

        if migration_complexity.logic_complexity >= t["category"]:
            risks.append({
                "id": "R-002",
                "category": "Logic Complexity",
                "description": (f"Logic complexity score: {migration_complexity.logic_complexity}/100. "
                                f"{'; '.join(migration_complexity.logic_details)}"),
                "severity": "High",
                "impact": "Complex control flow increases risk of logic errors during migration",
                "mitigation": "Comprehensive unit testing, code refactoring to simplify logic, peer review of critical sections",
            })

        if migration_complexity.data_complexity >= t["category"]:
            risks.append({
                "id": "R-003",
                "category": "Data Complexity",
                "description": (f"Data complexity score: {migration_complexity.data_complexity}/100. "
                                f"{'; '.join(migration_complexity.data_details)}"),
                "severity": "High",
                "impact": "Complex data structures and database operations require careful mapping",
                "mitigation": "Create detailed data mapping documents, implement data validation tests, use ORM frameworks",
            })

        if migration_complexity.cobol_specific_risk >= t["category"]:
            risks.append({
                "id": "R-004",
                "category": "COBOL-specific Risk",
                "description": (f"COBOL-specific risk score: {migration_complexity.cobol_specific_risk}/100. "
                                f"{'; '.join(migration_complexity.risk_details)}"),
                "severity": "Critical",
                "impact": "Legacy COBOL features may not have direct Java equivalents, requiring custom solutions",
                "mitigation": ("Research migration patterns for specific features, develop custom libraries, "
                               "plan for redesign where necessary"),
            })

        total_loc = self.calculate_total_loc(results)
        if total_loc > t["total_loc"]:
            risks.append({
                "id": "R-005",
                "category": "Scale",
                "description": f"Large codebase with {total_loc:,} lines of code",
                "severity": "Medium",
                "impact": "Extended timeline, higher resource requirements",
                "mitigation": "Use phased migration approach, consider automated conversion tools",
            })

        total_deps = sum(len(r.dependencies) for r in results)
        if total_deps > t["total_dependencies"]:
            risks.append({
                "id": "R-006",
                "category": "Dependencies",
                "description": f"High number of inter-module dependencies ({total_deps})",
                "severity": "Medium",
                "impact": "Complex integration testing, potential circular dependencies",
                "mitigation": "Map dependencies early, identify and break circular references",
            })

        return risks
