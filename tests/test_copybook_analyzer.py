"""
Copybook record layout tests
"""
import pytest
from legacyscope.static_analysis import CopybookAnalyzer, SourceReadError, calculate_picture_length
from legacyscope.static_analysis.copybook_analyzer import (
    classify_key,
    infer_data_type,
    infer_entity_type,
    infer_field_meaning,
)


CUSTMAST = """\
      *****************************************************
      * CUSTOMER MASTER RECORD
      *****************************************************
       01  CUST-MASTER-REC.
           05  CUST-KEY.
               10  CUST-ID              PIC X(10).
               10  CUST-BRANCH-CD       PIC 9(3).
           05  CUST-NAME                PIC X(30).
           05  CUST-BALANCE             PIC S9(7)V99 COMP-3.
           05  CUST-STATUS              PIC X.
               88  CUST-ACTIVE          VALUE 'A'.
               88  CUST-CLOSED          VALUE 'C'.
           05  FILLER                   PIC X(5).
           05  CUST-PHONE               PIC 9(10) OCCURS 3 TIMES.
           05  CUST-OPEN-DATE           PIC 9(8).
           05  CUST-OPEN-DATE-R REDEFINES CUST-OPEN-DATE.
               10  OPEN-YYYY            PIC 9(4).
               10  OPEN-MM              PIC 99.
               10  OPEN-DD              PIC 99.
"""


@pytest.fixture
def analyzer():
    return CopybookAnalyzer()


@pytest.fixture
def custmast(analyzer):
    return analyzer.analyze_text(CUSTMAST, "copy/CUSTMAST.cpy")


def _field(fields, name):
    for f in fields:
        if f.name == name:
            return f
        found = _field(f.children, name)
        if found:
            return found
    return None


class TestPictureLength:
    """PIC storage length (DISPLAY usage)."""

    @pytest.mark.parametrize("picture,expected", [
        ("9(5)V99", 7),
        ("X(10)", 10),
        ("X", 1),
        ("99", 2),
        ("S9(7)V99", 10),
        ("ZZZ9.99", 7),
        ("A(3)X(2)", 5),
        ("-9(4)", 5),
    ])
    def test_picture_lengths(self, picture, expected):
        assert calculate_picture_length(picture) == expected

    def test_lowercase_picture(self):
        assert calculate_picture_length("x(8)") == 8


class TestClauseHelpers:
    """Data type, key and meaning heuristics."""

    def test_data_types(self):
        assert infer_data_type("X(10)", "PIC X(10).") == "ALPHANUMERIC"
        assert infer_data_type("9(5)", "PIC 9(5).") == "NUMERIC"
        assert infer_data_type("S9(7)V99", "PIC S9(7)V99 COMP-3.") == "PACKED"
        assert infer_data_type("S9(4)", "PIC S9(4) COMP.") == "BINARY"
        assert infer_data_type("S9(9)", "PIC S9(9) USAGE IS BINARY.") == "BINARY"
        assert infer_data_type("X", "PIC X VALUE 'COMP'.") == "ALPHANUMERIC"

    def test_classify_key(self):
        assert classify_key("CUST-KEY") == "PRIMARY"
        assert classify_key("ALT-KEY") == "ALTERNATE"
        assert classify_key("ACCT-FK-ID") == "FOREIGN"
        assert classify_key("CUST-ID") == "ALTERNATE"

    def test_field_meaning(self):
        assert infer_field_meaning("CUST-NAME") == "Customer identifier/data"
        assert infer_field_meaning("WS-AMOUNT") == "Monetary amount"
        assert infer_field_meaning("ZZZ") == "Business data"

    def test_record_entity_type(self):
        assert infer_entity_type("CUST-MASTER-REC") == "MASTER"
        assert infer_entity_type("DAILY-TXN-REC") == "TRANSACTION"
        assert infer_entity_type("STATE-CODE-TBL") == "REFERENCE"
        assert infer_entity_type("INVOICE") == "DATA"


class TestRecordLayout:
    """Hierarchy, offsets and total length."""

    def test_single_record(self, custmast):
        assert len(custmast.record_layouts) == 1
        layout = custmast.record_layouts[0]
        assert layout.record_name == "CUST-MASTER-REC"
        assert layout.entity_type == "MASTER"

    def test_total_length(self, custmast):
        """Leaves sum with OCCURS multiplied; FILLER and 88s excluded"""
        # 10 + 3 + 30 + 10 + 1 + 10*3 + 8 + (4 + 2 + 2)
        assert custmast.record_layouts[0].total_length == 100

    def test_hierarchy(self, custmast):
        record = custmast.record_layouts[0].fields[0]
        assert [c.name for c in record.children] == [
            "CUST-KEY",
            "CUST-NAME",
            "CUST-BALANCE",
            "CUST-STATUS",
            "CUST-PHONE",
            "CUST-OPEN-DATE",
            "CUST-OPEN-DATE-R",
        ]
        key = record.children[0]
        assert [c.name for c in key.children] == ["CUST-ID", "CUST-BRANCH-CD"]

    def test_group_items(self, custmast):
        fields = custmast.record_layouts[0].fields
        key = _field(fields, "CUST-KEY")
        assert key.data_type == "GROUP"
        assert key.length == 0
        assert key.picture is None

    def test_offsets(self, custmast):
        fields = custmast.record_layouts[0].fields
        expected = {
            "CUST-MASTER-REC": 0,
            "CUST-KEY": 0,
            "CUST-ID": 0,
            "CUST-BRANCH-CD": 10,
            "CUST-NAME": 13,
            "CUST-BALANCE": 43,
            "CUST-STATUS": 53,
            "CUST-PHONE": 59,
            "CUST-OPEN-DATE": 89,
            "CUST-OPEN-DATE-R": 97,
            "OPEN-YYYY": 97,
            "OPEN-MM": 101,
            "OPEN-DD": 103,
        }
        for name, offset in expected.items():
            assert _field(fields, name).offset == offset, name

    def test_filler_advances_offset_but_is_not_a_field(self, custmast):
        fields = custmast.record_layouts[0].fields
        assert _field(fields, "FILLER") is None
        assert _field(fields, "CUST-PHONE").offset == _field(fields, "CUST-STATUS").offset + 1 + 5

    def test_clauses(self, custmast):
        fields = custmast.record_layouts[0].fields

        balance = _field(fields, "CUST-BALANCE")
        assert balance.picture == "S9(7)V99"
        assert balance.length == 10
        assert balance.usage == "COMP-3"
        assert balance.data_type == "PACKED"

        phone = _field(fields, "CUST-PHONE")
        assert phone.occurs == 3
        assert phone.length == 10

        redefined = _field(fields, "CUST-OPEN-DATE-R")
        assert redefined.redefines == "CUST-OPEN-DATE"

        active = _field(fields, "CUST-ACTIVE")
        assert active.level == 88
        assert active.value == "'A'"

    def test_condition_names_hang_off_their_item(self, custmast):
        status = _field(custmast.record_layouts[0].fields, "CUST-STATUS")
        assert [c.name for c in status.children] == ["CUST-ACTIVE", "CUST-CLOSED"]
        assert not status.is_group
        assert status.data_type == "ALPHANUMERIC"
        assert status.length == 1

    def test_offsets_reset_per_record(self, analyzer):
        text = """\
       01  HDR-REC.
           05  HDR-TYPE     PIC X(2).
           05  HDR-DATE     PIC 9(8).
       01  DTL-REC.
           05  DTL-TYPE     PIC X(2).
           05  DTL-AMT      PIC 9(5)V99.
"""
        result = analyzer.analyze_text(text, "FILEREC.cpy")
        assert [l.record_name for l in result.record_layouts] == ["HDR-REC", "DTL-REC"]
        assert [l.total_length for l in result.record_layouts] == [10, 9]
        assert [l.entity_type for l in result.record_layouts] == ["HEADER", "DETAIL"]

        dtl = result.record_layouts[1].fields[0]
        assert [c.offset for c in dtl.children] == [0, 2]

    def test_sequence_numbers_are_ignored(self, analyzer):
        text = """\
000100 01  SEQ-REC.
000200     05  SEQ-A        PIC X(4).
000300*    05  SEQ-OLD      PIC X(9).
000400     05  SEQ-B        PIC 9(2).
"""
        result = analyzer.analyze_text(text, "SEQREC.cpy")
        layout = result.record_layouts[0]
        assert layout.total_length == 6
        assert [c.name for c in layout.fields[0].children] == ["SEQ-A", "SEQ-B"]

    def test_unnamed_item_is_filler(self, analyzer):
        text = """\
       01  PAD-REC.
           05  PAD-A        PIC X(3).
           05               PIC X(7).
           05  PAD-B        PIC X(2).
"""
        layout = analyzer.analyze_text(text, "PAD.cpy").record_layouts[0]
        assert layout.total_length == 5
        assert _field(layout.fields, "PAD-B").offset == 10

    def test_declarations_before_first_record_are_not_in_a_layout(self, analyzer):
        text = """\
       05  STRAY-FIELD      PIC X(4).
       01  REAL-REC.
           05  REAL-FIELD   PIC X(6).
"""
        result = analyzer.analyze_text(text, "STRAY.cpy")
        assert len(result.record_layouts) == 1
        assert result.record_layouts[0].total_length == 6
        assert result.total_fields == 3

    def test_independent_item_closes_the_record(self, analyzer):
        text = """\
       01  REC.
           05  A            PIC X(3).
           05  B            PIC X(2).
       77  WS-CTR           PIC 9(4).
"""
        result = analyzer.analyze_text(text, "INDEP.cpy")
        layout = result.record_layouts[0]
        assert layout.total_length == 5
        assert [c.name for c in layout.fields[0].children] == ["A", "B"]
        assert _field(layout.fields, "B").children == []
        assert _field(layout.fields, "WS-CTR") is None
        assert result.total_fields == 4

    def test_renames_takes_no_storage(self, analyzer):
        text = """\
       01  REC.
           05  A            PIC X(3).
           05  B            PIC X(2).
       66  AB RENAMES A THRU B.
"""
        result = analyzer.analyze_text(text, "RENAME.cpy")
        layout = result.record_layouts[0]
        assert layout.total_length == 5
        assert [c.name for c in layout.fields[0].children] == ["A", "B", "AB"]
        assert not _field(layout.fields, "B").is_group
        assert _field(layout.fields, "AB").length == 0
        assert result.metrics.group_items == 1
        assert result.metrics.elementary_items == 2

    def test_value_continuation_line_is_not_a_field(self, analyzer):
        text = """\
       01  STAT-REC.
           05  STAT-CODE        PIC 99.
               88  STAT-VALID   VALUES 10 20
                                30 40.
           05  STAT-DESC        PIC X(8).
"""
        result = analyzer.analyze_text(text, "STAT.cpy")
        layout = result.record_layouts[0]
        assert layout.total_length == 10
        assert [c.name for c in layout.fields[0].children] == ["STAT-CODE", "STAT-DESC"]
        assert result.total_fields == 4

    def test_usage_words_inside_literals_are_ignored(self, analyzer):
        text = "       01  LIT-REC.\n           05  LIT-A  PIC X(4) VALUE 'COMP'.\n"
        field = _field(analyzer.analyze_text(text, "LIT.cpy").record_layouts[0].fields, "LIT-A")
        assert field.data_type == "ALPHANUMERIC"
        assert field.usage is None
        assert field.value == "'COMP'"

    def test_empty_copybook(self, analyzer):
        result = analyzer.analyze_text("      * NOTHING HERE\n", "EMPTY.cpy")
        assert result.record_layouts == []
        assert result.inferred_entity is None
        assert result.total_fields == 0


class TestKeys:
    """Key structures inferred from naming."""

    def test_keys(self, custmast):
        keys = custmast.record_layouts[0].keys
        assert [(k.key_name, k.key_type) for k in keys] == [
            ("CUST-MASTER-REC.CUST-KEY", "PRIMARY"),
            ("CUST-KEY.CUST-ID", "ALTERNATE"),
            ("CUST-KEY.CUST-BRANCH-CD", "ALTERNATE"),
        ]

    def test_composite_key_lists_its_leaves(self, custmast):
        primary = custmast.record_layouts[0].keys[0]
        assert primary.fields == ["CUST-ID", "CUST-BRANCH-CD"]
        assert primary.is_unique is True

    def test_cust_id_participates_in_primary_key(self, custmast):
        keys = custmast.record_layouts[0].keys
        assert any(k.key_type == "PRIMARY" and "CUST-ID" in k.fields for k in keys)

    def test_key_flags_on_fields(self, custmast):
        fields = custmast.record_layouts[0].fields
        assert _field(fields, "CUST-ID").is_key
        assert _field(fields, "CUST-KEY").is_key
        assert not _field(fields, "CUST-NAME").is_key


class TestEntityInference:
    """Business entity guess from the first record."""

    def test_customer_master(self, custmast):
        entity = custmast.inferred_entity
        assert entity.entity_name == "Customer"
        assert entity.entity_type == "MASTER"
        assert entity.confidence == 1.0
        assert len(entity.evidence) == 3

    def test_transaction_overrides_master(self, analyzer):
        text = "       01  MAST-TRANS-REC.\n           05  FLD-A  PIC X.\n"
        entity = analyzer.analyze_text(text, "MTREC.cpy").inferred_entity
        assert entity.entity_type == "TRANSACTION"
        assert entity.entity_name == "MTREC"
        assert entity.confidence == 0.9

    def test_no_signals(self, analyzer):
        text = "       01  MISC-REC.\n           05  FLD-A  PIC X.\n"
        entity = analyzer.analyze_text(text, "misc.cpy").inferred_entity
        assert entity.entity_type == "UNKNOWN"
        assert entity.entity_name == "misc"
        assert entity.confidence == 0.5
        assert entity.evidence == []

    def test_confidence_is_capped(self, analyzer):
        text = """\
       01  ORDER-TRANS-MAST-REC.
           05  ORDER-KEY.
               10  ORDER-ID     PIC 9(9).
"""
        entity = analyzer.analyze_text(text, "ORDERS.cpy").inferred_entity
        assert entity.confidence == 1.0
        assert entity.entity_name == "Order"


class TestMetricsAndReferences:

    def test_metrics(self, custmast):
        metrics = custmast.metrics
        assert metrics.total_lines == 19
        assert metrics.group_items == 3
        assert metrics.elementary_items == 10
        assert metrics.redefinitions == 1
        assert metrics.occurs_count == 1

    def test_total_fields_counts_every_named_declaration(self, custmast):
        assert custmast.total_fields == 15

    def test_referenced_copybooks(self, analyzer):
        text = """\
       01  WRAP-REC.
           COPY ADDRREC.
           COPY PHONEREC.
      *    COPY OLDREC.
           COPY ADDRREC.
"""
        result = analyzer.analyze_text(text, "WRAP.cpy")
        assert result.referenced_copybooks == ["ADDRREC", "PHONEREC"]

    def test_analyze_file(self, analyzer, tmp_path):
        path = tmp_path / "CUSTMAST.cpy"
        path.write_text(CUSTMAST, encoding="utf-8")
        result = analyzer.analyze(path)
        assert result.file_name == "CUSTMAST.cpy"
        assert result.record_layouts[0].total_length == 100

    def test_analyze_file_with_byte_order_mark(self, analyzer, tmp_path):
        path = tmp_path / "BOMREC.cpy"
        path.write_text("\ufeff       01  BOM-REC.\n           05  BOM-A  PIC X(4).\n", encoding="utf-8")
        result = analyzer.analyze(path)
        assert [l.record_name for l in result.record_layouts] == ["BOM-REC"]
        assert result.record_layouts[0].total_length == 4
        assert result.total_fields == 2

    def test_same_input_gives_same_result(self, analyzer):
        first = analyzer.analyze_text(CUSTMAST, "CUSTMAST.cpy").to_dict()
        second = analyzer.analyze_text(CUSTMAST, "CUSTMAST.cpy").to_dict()
        assert first == second
        assert CopybookAnalyzer().analyze_text(CUSTMAST, "CUSTMAST.cpy").to_dict() == first

    def test_analyze_missing_file(self, analyzer, tmp_path):
        with pytest.raises(SourceReadError):
            analyzer.analyze(tmp_path / "GONE.cpy")

    def test_to_dict(self, custmast):
        data = custmast.to_dict()
        assert data["fileName"] == "CUSTMAST.cpy"
        layout = data["recordLayouts"][0]
        assert layout["totalLength"] == 100
        assert layout["keys"][0]["keyType"] == "PRIMARY"
        record = layout["fields"][0]
        assert record["dataType"] == "GROUP"
        assert "picture" not in record
        assert data["inferredEntity"]["entityName"] == "Customer"
        assert data["metrics"]["groupItems"] == 3
