"""
Project metadata tests
"""
import pytest
from legacyscope.metadata_extractor import MetadataExtractor
from legacyscope.scoring import MigrationComplexityScore
from legacyscope.static_analysis import MigrationMetrics, ProgramAnalysisResult


def program(name, complexity=1, loc=100, dependencies=None):
    return ProgramAnalysisResult(
        name=name,
        path=f"src/{name}.cbl",
        loc=loc,
        complexity=complexity,
        dependencies=list(dependencies or []),
        migration_metrics=MigrationMetrics(cyclomatic_complexity=complexity),
    )


@pytest.fixture
def extractor():
    return MetadataExtractor()


@pytest.fixture
def programs():
    return [
        program("ACCTPOST", complexity=45, loc=200, dependencies=["ACCTREC", "DATEUTIL"]),
        program("CUSTUPD", complexity=25, loc=600, dependencies=["CUSTREC"]),
        program("RPTHDR", complexity=5, loc=50),
    ]


class TestPriorityAndModules:

    def test_priority(self, extractor, programs):
        assert [extractor.determine_priority(p) for p in programs] == ["High", "Medium", "Low"]

    def test_priority_from_size_alone(self, extractor):
        assert extractor.determine_priority(program("BIG", complexity=1, loc=1500)) == "High"
        assert extractor.determine_priority(program("MID", complexity=1, loc=501)) == "Medium"

    def test_high_complexity_modules(self, extractor, programs):
        modules = extractor.identify_high_complexity_modules(programs)
        assert [(m["name"], m["score"], m["risk"]) for m in modules] == [
            ("ACCTPOST", 45, "High"),
            ("CUSTUPD", 25, "Medium"),
        ]
        assert modules[0]["recommendation"] == "Consider breaking into smaller modules during migration"

    def test_high_complexity_modules_are_limited(self, extractor):
        many = [program(f"P{i:02d}", complexity=21 + i) for i in range(15)]
        modules = extractor.identify_high_complexity_modules(many)
        assert len(modules) == 10
        assert modules[0]["score"] == 35


class TestExtract:

    def test_source_analysis(self, extractor, programs):
        metadata = extractor.extract(programs)
        source = metadata["source_analysis"]
        assert source["total_files"] == 3
        assert source["total_loc"] == 850
        assert source["programs"][0] == {
            "name": "ACCTPOST",
            "path": "src/ACCTPOST.cbl",
            "type": "COBOL Program",
            "loc": 200,
            "complexity": 45,
            "priority": "High",
        }

    def test_file_type_distribution(self, extractor, programs):
        metadata = extractor.extract(programs)
        assert metadata["file_type_distribution"] == [
            {"type": "COBOL Program", "count": 3, "percentage": 100},
        ]

    def test_dependencies(self, extractor, programs):
        metadata = extractor.extract(programs)
        assert metadata["dependencies"] == [
            {"source": "ACCTPOST", "targets": "ACCTREC, DATEUTIL"},
            {"source": "CUSTUPD", "targets": "CUSTREC"},
        ]

    def test_scores_when_not_given(self, extractor, programs):
        metadata = extractor.extract(programs)
        assert "overall" in metadata["migrationComplexity"]
        assert "difficulty" in metadata["complexity_summary"]

    def test_empty_project(self, extractor):
        metadata = extractor.extract([])
        assert metadata["source_analysis"]["total_files"] == 0
        assert metadata["file_type_distribution"] == []
        assert metadata["complexity_summary"] == "Low difficulty (score: 0/100) - No files analyzed"
        assert metadata["risks"] == []


class TestRisks:

    def test_critical_overall_and_category_risks(self, extractor, programs):
        score = MigrationComplexityScore(
            overall=85,
            logic_complexity=70,
            data_complexity=10,
            cobol_specific_risk=65,
            difficulty="Very High",
            logic_details=["GOTO statements present (4) - requires refactoring"],
            risk_details=["Report Writer in use - requires complete redesign"],
        )
        risks = extractor.assess_risks(programs, score)

        assert [r["id"] for r in risks] == ["R-001", "R-002", "R-004"]
        assert risks[0]["severity"] == "Critical"
        assert risks[0]["description"] == "Migration difficulty score is 85/100 (Very High)"
        assert risks[1]["description"] == (
            "Logic complexity score: 70/100. GOTO statements present (4) - requires refactoring"
        )
        assert risks[2]["severity"] == "Critical"

    def test_high_overall_below_critical(self, extractor, programs):
        score = MigrationComplexityScore(overall=65, difficulty="High", data_complexity=60)
        risks = extractor.assess_risks(programs, score)
        assert [(r["id"], r["severity"]) for r in risks] == [("R-001", "High"), ("R-003", "High")]

    def test_scale_and_dependency_risks(self, extractor):
        programs = [
            program("HUGE", loc=150000, dependencies=[f"DEP{i}" for i in range(51)]),
        ]
        risks = extractor.assess_risks(programs, MigrationComplexityScore())
        assert [r["id"] for r in risks] == ["R-005", "R-006"]
        assert risks[0]["description"] == "Large codebase with 150,000 lines of code"
        assert risks[1]["description"] == "High number of inter-module dependencies (51)"
