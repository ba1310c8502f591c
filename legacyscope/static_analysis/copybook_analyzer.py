"""Copybook Layout Analyzer

Rebuilds record layouts from flat, level-numbered copybook declarations:
- Field extraction with PIC/USAGE/OCCURS/REDEFINES/VALUE clauses
- Byte offsets and lengths from PICTURE clauses
- Level-stack hierarchy reconstruction (one RecordLayout per 01-level)
- Key structures, business meaning and entity inference by naming heuristics
"""

import re
from functools import reduce
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union
from dataclasses import dataclass, field
import logging

from .line_classifier import SourceLine, classify_lines, read_source

logger = logging.getLogger(__name__)

# Levels that never advance the running byte offset
NON_STORAGE_LEVELS = (1, 66, 77, 88)
RENAMES_LEVEL = 66
INDEPENDENT_LEVEL = 77
CONDITION_LEVEL = 88
# Items that describe other storage instead of occupying their own
ALIAS_LEVELS = (RENAMES_LEVEL, CONDITION_LEVEL)

FIELD_PATTERN = re.compile(r'^(\d{2})\s+([A-Z0-9-]*[A-Z][A-Z0-9-]*)', re.IGNORECASE)
QUOTED_LITERAL_PATTERN = re.compile(r'\'[^\']*\'|"[^"]*"')
SEQUENCE_AREA_PATTERN = re.compile(r'^\d{6}')
PIC_PATTERN = re.compile(r'\bPIC(?:TURE)?\s+(?:IS\s+)?(\S+)')
USAGE_PATTERN = re.compile(
    r'\bUSAGE\s+(?:IS\s+)?(DISPLAY|COMP-[1-5]|COMP|COMPUTATIONAL(?:-[1-5])?|BINARY|PACKED-DECIMAL)\b'
)
BARE_USAGE_PATTERN = re.compile(
    r'(?<![A-Z0-9-])(COMP-[1-5]|COMP|COMPUTATIONAL(?:-[1-5])?|BINARY|PACKED-DECIMAL)(?![A-Z0-9-])'
)
OCCURS_PATTERN = re.compile(r'\bOCCURS\s+(\d+)')
REDEFINES_PATTERN = re.compile(r'\bREDEFINES\s+([A-Z0-9-]+)')
VALUE_PATTERN = re.compile(r'\bVALUES?\s+(?:(?:IS|ARE)\s+)?(\'[^\']*\'|"[^"]*"|[^\s.]+)')
COPY_PATTERN = re.compile(r'\bCOPY\s+([A-Z0-9-]+)')

PIC_REPEAT_PATTERN = re.compile(r'([X9AZS\-V+,.])\((\d+)\)')
PIC_STORAGE_CHARS = 'X9AZBS+-.'

PACKED_PATTERN = re.compile(r'(?<![A-Z0-9-])(?:COMP-3|COMPUTATIONAL-3|PACKED(?:-DECIMAL)?)(?![A-Z0-9-])')
BINARY_PATTERN = re.compile(r'(?<![A-Z0-9-])(?:COMP(?:-[1-5])?|COMPUTATIONAL(?:-[1-5])?|BINARY)(?![A-Z0-9-])')

KEY_PATTERNS = ['KEY', '-ID', '-CD', '-CODE', '-NO', '-NUM', '-NBR']

# Ordered (name substrings, label) pairs; first match wins
FIELD_MEANINGS: List[Tuple[List[str], str]] = [
    (['CUST', 'CUSTOMER'], 'Customer identifier/data'),
    (['ACCT', 'ACCOUNT'], 'Account identifier/data'),
    (['TRANS', 'TXN'], 'Transaction data'),
    (['DATE', 'DT', 'YMD'], 'Date value'),
    (['TIME', 'TM', 'HMS'], 'Time value'),
    (['AMOUNT', 'AMT', 'BAL'], 'Monetary amount'),
    (['STATUS', 'STAT', 'STS'], 'Status indicator'),
    (['FLAG', 'IND', 'SW'], 'Boolean flag'),
    (['CODE', 'CD', 'TYPE', 'TYP'], 'Code/type value'),
    (['NAME', 'NM'], 'Name field'),
    (['ADDR', 'ADDRESS'], 'Address data'),
    (['PHONE', 'TEL'], 'Phone number'),
    (['EMAIL', 'MAIL'], 'Email address'),
    (['COUNT', 'CNT', 'CTR'], 'Counter'),
    (['TOTAL', 'TOT', 'SUM'], 'Total/sum value'),
    (['DESC', 'DESCRIPTION'], 'Description text'),
    (['ERROR', 'ERR'], 'Error information'),
    (['SEQ', 'SEQUENCE'], 'Sequence number'),
    (['REC', 'RECORD'], 'Record identifier'),
]
DEFAULT_FIELD_MEANING = 'Business data'

# Ordered (record-name substrings, entity type); first match wins
RECORD_ENTITY_TYPES: List[Tuple[List[str], str]] = [
    (['MAST', 'MST'], 'MASTER'),
    (['TRANS', 'TXN', 'TRN'], 'TRANSACTION'),
    (['REF', 'CODE', 'TBL'], 'REFERENCE'),
    (['WORK', 'WRK', 'TEMP'], 'WORK'),
    (['HDR', 'HEADER'], 'HEADER'),
    (['DTL', 'DETAIL'], 'DETAIL'),
]
DEFAULT_RECORD_ENTITY_TYPE = 'DATA'

MASTER_NAME_PATTERNS = ['MAST', 'MST']
TRANSACTION_NAME_PATTERNS = ['TRANS', 'TXN']

# Canonical identifier fields -> (entity name, entity type)
ENTITY_FIELD_PATTERNS: List[Tuple[List[str], str, str]] = [
    (['CUST-ID', 'CUSTOMER-ID', 'CUST-NO'], 'Customer', 'MASTER'),
    (['ACCT-ID', 'ACCOUNT-ID', 'ACCT-NO'], 'Account', 'MASTER'),
    (['EMP-ID', 'EMPLOYEE-ID', 'EMP-NO'], 'Employee', 'MASTER'),
    (['PROD-ID', 'PRODUCT-ID', 'PROD-CD'], 'Product', 'MASTER'),
    (['ORDER-ID', 'ORDER-NO', 'ORD-NO'], 'Order', 'TRANSACTION'),
    (['TRANS-ID', 'TXN-ID', 'TRANS-NO'], 'Transaction', 'TRANSACTION'),
]


@dataclass
class CopybookField:
    """A single data item declared in a copybook"""
    name: str
    level: int
    offset: int = 0
    length: int = 0
    data_type: str = 'GROUP'  # ALPHANUMERIC, NUMERIC, PACKED, BINARY, GROUP
    picture: Optional[str] = None
    usage: Optional[str] = None
    occurs: Optional[int] = None
    redefines: Optional[str] = None
    value: Optional[str] = None
    is_key: bool = False
    business_meaning: str = DEFAULT_FIELD_MEANING
    line_number: int = 0
    children: List['CopybookField'] = field(default_factory=list)

    @property
    def storage_children(self) -> List['CopybookField']:
        """Children that occupy storage; 66 and 88 items do not"""
        return [child for child in self.children if child.level not in ALIAS_LEVELS]

    @property
    def is_group(self) -> bool:
        return bool(self.storage_children)

    def to_dict(self) -> Dict:
        data = {
            "name": self.name,
            "level": self.level,
            "offset": self.offset,
            "length": self.length,
            "dataType": self.data_type,
            "isKey": self.is_key,
            "businessMeaning": self.business_meaning,
            "children": [child.to_dict() for child in self.children],
        }
        for key, value in (("picture", self.picture), ("usage", self.usage),
                           ("occurs", self.occurs), ("redefines", self.redefines),
                           ("value", self.value)):
            if value is not None:
                data[key] = value
        return data


@dataclass
class KeyStructure:
    """A key inferred from field naming"""
    key_name: str
    key_type: str  # PRIMARY, ALTERNATE, FOREIGN
    fields: List[str]
    is_unique: bool

    def to_dict(self) -> Dict:
        return {
            "keyName": self.key_name,
            "keyType": self.key_type,
            "fields": list(self.fields),
            "isUnique": self.is_unique,
        }


@dataclass
class RecordLayout:
    """One 01-level record structure"""
    record_name: str
    fields: List[CopybookField] = field(default_factory=list)
    total_length: int = 0
    keys: List[KeyStructure] = field(default_factory=list)
    entity_type: str = DEFAULT_RECORD_ENTITY_TYPE
    copybooks: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "recordName": self.record_name,
            "copybooks": list(self.copybooks),
            "totalLength": self.total_length,
            "fields": [f.to_dict() for f in self.fields],
            "keys": [k.to_dict() for k in self.keys],
            "entityType": self.entity_type,
        }


@dataclass
class InferredEntity:
    """Best-guess business entity behind a copybook"""
    entity_name: str
    entity_type: str  # MASTER, TRANSACTION, REFERENCE, WORK, UNKNOWN
    confidence: float
    evidence: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "entityName": self.entity_name,
            "entityType": self.entity_type,
            "confidence": self.confidence,
            "evidence": list(self.evidence),
        }


@dataclass
class CopybookMetrics:
    total_lines: int = 0
    group_items: int = 0
    elementary_items: int = 0
    redefinitions: int = 0
    occurs_count: int = 0

    def to_dict(self) -> Dict:
        return {
            "totalLines": self.total_lines,
            "groupItems": self.group_items,
            "elementaryItems": self.elementary_items,
            "redefinitions": self.redefinitions,
            "occursCount": self.occurs_count,
        }


@dataclass
class CopybookAnalysisResult:
    file_name: str
    file_path: str
    record_layouts: List[RecordLayout] = field(default_factory=list)
    inferred_entity: Optional[InferredEntity] = None
    total_fields: int = 0
    referenced_copybooks: List[str] = field(default_factory=list)
    metrics: CopybookMetrics = field(default_factory=CopybookMetrics)

    def to_dict(self) -> Dict:
        return {
            "fileName": self.file_name,
            "filePath": self.file_path,
            "recordLayouts": [layout.to_dict() for layout in self.record_layouts],
            "inferredEntity": self.inferred_entity.to_dict() if self.inferred_entity else None,
            "totalFields": self.total_fields,
            "referencedCopybooks": list(self.referenced_copybooks),
            "metrics": self.metrics.to_dict(),
        }


# ===================================================================
# Clause-level helpers
# ===================================================================

def calculate_picture_length(picture: str) -> int:
    """
    Storage length of a PICTURE string in bytes (DISPLAY usage).

    Repetition groups such as X(10) are expanded first. The implied
    decimal point V occupies no storage; an actual '.' does.
    """
    expanded = PIC_REPEAT_PATTERN.sub(
        lambda m: m.group(1) * int(m.group(2)),
        picture.upper()
    )
    return sum(1 for char in expanded if char in PIC_STORAGE_CHARS)


def infer_data_type(picture: str, clauses: str) -> str:
    """Classify an elementary item from its PIC and remaining clauses"""
    clauses = strip_literals(clauses.upper())
    if PACKED_PATTERN.search(clauses):
        return 'PACKED'
    if BINARY_PATTERN.search(clauses):
        return 'BINARY'

    pic = picture.upper()
    if 'X' in pic or 'A' in pic:
        return 'ALPHANUMERIC'
    if '9' in pic or 'S' in pic or 'V' in pic:
        return 'NUMERIC'
    return 'ALPHANUMERIC'


def strip_literals(clauses: str) -> str:
    return QUOTED_LITERAL_PATTERN.sub('', clauses)


def is_probable_key(name: str) -> bool:
    upper = name.upper()
    return any(p in upper or upper.endswith(p) for p in KEY_PATTERNS)


def classify_key(name: str) -> str:
    """PRIMARY, FOREIGN or ALTERNATE by naming convention"""
    upper = name.upper()
    if 'PRIMARY' in upper or ('KEY' in upper and 'ALT' not in upper):
        return 'PRIMARY'
    if 'FK' in upper or 'FOREIGN' in upper:
        return 'FOREIGN'
    return 'ALTERNATE'


def infer_field_meaning(name: str) -> str:
    upper = name.upper()
    for patterns, meaning in FIELD_MEANINGS:
        if any(p in upper for p in patterns):
            return meaning
    return DEFAULT_FIELD_MEANING


def infer_entity_type(record_name: str) -> str:
    upper = record_name.upper()
    for patterns, entity_type in RECORD_ENTITY_TYPES:
        if any(p in upper for p in patterns):
            return entity_type
    return DEFAULT_RECORD_ENTITY_TYPE


def _picture_of(clauses: str) -> Optional[str]:
    match = PIC_PATTERN.search(clauses)
    if not match:
        return None
    picture = match.group(1)
    # Drop the statement terminator, keep embedded decimal points
    if picture.endswith('.'):
        picture = picture[:-1]
    return picture or None


def _code_text(line: SourceLine) -> str:
    text = line.text
    # Fixed-format sequence numbers in columns 1-6
    if SEQUENCE_AREA_PATTERN.match(text):
        text = text[7:]
    return text.strip()


@dataclass
class FieldDeclaration:
    """A recognized level-number declaration, before layout placement"""
    level: int
    name: str
    clauses: str
    line_number: int


def parse_field_declaration(line: SourceLine) -> Optional[FieldDeclaration]:
    """Recognize '<level> <name> ...' on a code line"""
    if not line.is_code:
        return None
    text = _code_text(line)
    match = FIELD_PATTERN.match(text)
    if not match:
        return None
    name = match.group(2).upper()
    clauses = text[match.end():].upper()
    # Unnamed item: "05 PIC X(5)." is an implicit FILLER
    if name in ('PIC', 'PICTURE'):
        clauses = f"{name} {clauses}"
        name = 'FILLER'
    return FieldDeclaration(
        level=int(match.group(1)),
        name=name,
        clauses=clauses,
        line_number=line.number,
    )


def build_field(declaration: FieldDeclaration, offset: int) -> CopybookField:
    """Materialize a CopybookField from a declaration at the given offset"""
    clauses = declaration.clauses
    copybook_field = CopybookField(
        name=declaration.name,
        level=declaration.level,
        offset=offset,
        is_key=is_probable_key(declaration.name),
        business_meaning=infer_field_meaning(declaration.name),
        line_number=declaration.line_number,
    )

    picture = _picture_of(clauses)
    if picture:
        copybook_field.picture = picture
        copybook_field.length = calculate_picture_length(picture)
        copybook_field.data_type = infer_data_type(picture, clauses)

    keywords = strip_literals(clauses)
    usage_match = USAGE_PATTERN.search(keywords) or BARE_USAGE_PATTERN.search(keywords)
    if usage_match:
        copybook_field.usage = usage_match.group(1)

    occurs_match = OCCURS_PATTERN.search(keywords)
    if occurs_match:
        copybook_field.occurs = int(occurs_match.group(1))

    redefines_match = REDEFINES_PATTERN.search(keywords)
    if redefines_match:
        copybook_field.redefines = redefines_match.group(1)

    value_match = VALUE_PATTERN.search(clauses)
    if value_match:
        copybook_field.value = value_match.group(1)

    # Group items have no PIC; their length comes from children
    if not picture:
        copybook_field.data_type = 'GROUP'
        copybook_field.length = 0

    return copybook_field


# ===================================================================
# Layout construction
# ===================================================================

def effective_length(fields: List[CopybookField]) -> int:
    """Recursive storage sum: groups sum children, leaves use length x occurs"""
    total = 0
    for f in fields:
        if f.is_group:
            total += effective_length(f.storage_children)
        elif f.level not in ALIAS_LEVELS:
            total += f.length * (f.occurs or 1)
    return total


def _leaf_names(f: CopybookField) -> List[str]:
    if not f.is_group:
        return [f.name]
    names = []
    for child in f.storage_children:
        names.extend(_leaf_names(child))
    return names


def extract_keys(fields: List[CopybookField], parent_name: str = '') -> List[KeyStructure]:
    """Key structures in tree order, named '<parent>.<field>'"""
    keys = []
    for f in fields:
        if f.is_key and f.level not in ALIAS_LEVELS:
            key_type = classify_key(f.name)
            keys.append(KeyStructure(
                key_name=f"{parent_name}.{f.name}" if parent_name else f.name,
                key_type=key_type,
                fields=_leaf_names(f),
                is_unique=key_type == 'PRIMARY',
            ))
        if f.children:
            keys.extend(extract_keys(f.children, f.name))
    return keys


def close_layout(layout: RecordLayout) -> RecordLayout:
    layout.total_length = effective_length(layout.fields)
    layout.keys = extract_keys(layout.fields)
    return layout


@dataclass
class LayoutParserState:
    """
    Parser state threaded through the fold over copybook lines.

    offset is the running byte offset inside the current record; stack
    holds the open ancestors of the next field.
    """
    offset: int = 0
    fields: List[CopybookField] = field(default_factory=list)
    layouts: List[RecordLayout] = field(default_factory=list)
    current: Optional[RecordLayout] = None
    stack: List[CopybookField] = field(default_factory=list)

    def step(self, line: SourceLine) -> 'LayoutParserState':
        declaration = parse_field_declaration(line)
        if declaration is None:
            return self

        if declaration.name == 'FILLER':
            picture = _picture_of(declaration.clauses)
            if picture:
                occurs_match = OCCURS_PATTERN.search(declaration.clauses)
                multiplier = int(occurs_match.group(1)) if occurs_match else 1
                self.offset += calculate_picture_length(picture) * multiplier
            return self

        if declaration.level == 1:
            self.offset = 0

        new_field = build_field(declaration, self.offset)
        if new_field.level not in NON_STORAGE_LEVELS and new_field.picture:
            self.offset += new_field.length * (new_field.occurs or 1)
        self.fields.append(new_field)
        self._place(new_field)
        return self

    def _place(self, new_field: CopybookField):
        if new_field.level == 1:
            if self.current is not None:
                self.layouts.append(close_layout(self.current))
            self.current = RecordLayout(
                record_name=new_field.name,
                fields=[new_field],
                entity_type=infer_entity_type(new_field.name),
            )
            self.stack = [new_field]
            return

        # A 77 is a standalone item: it ends the open record and never nests
        if new_field.level == INDEPENDENT_LEVEL:
            self.finish()
            return

        # Declarations before the first 01 belong to no record
        if self.current is None:
            return

        # RENAMES regroups existing storage; it hangs off the record root
        if new_field.level == RENAMES_LEVEL:
            self.current.fields[0].children.append(new_field)
            return

        while self.stack and self.stack[-1].level >= new_field.level:
            self.stack.pop()

        if self.stack:
            self.stack[-1].children.append(new_field)
        else:
            self.current.fields.append(new_field)

        if new_field.level != CONDITION_LEVEL:
            self.stack.append(new_field)

    def finish(self) -> List[RecordLayout]:
        if self.current is not None:
            self.layouts.append(close_layout(self.current))
            self.current = None
            self.stack = []
        return self.layouts


def build_record_layouts(lines: List[SourceLine]) -> Tuple[List[CopybookField], List[RecordLayout]]:
    """Fold the line sequence into (flat field list, record layouts)"""
    state = reduce(lambda s, line: s.step(line), lines, LayoutParserState())
    layouts = state.finish()
    return state.fields, layouts


# ===================================================================
# Analyzer
# ===================================================================

class CopybookAnalyzer:
    """
    Analyze copybook record layouts.

    Handles fixed-format sources (column 7 comment indicator, optional
    sequence numbers) as well as free-form declarations.
    """

    def analyze(self, file_path: Union[str, Path]) -> CopybookAnalysisResult:
        """
        Read and analyze a copybook file.

        Raises:
            SourceReadError: the file could not be read
        """
        source = read_source(file_path, fixed_format=True)
        return self.analyze_lines(source.lines, file_path)

    def analyze_text(self, content: str, file_path: Union[str, Path]) -> CopybookAnalysisResult:
        return self.analyze_lines(classify_lines(content, fixed_format=True), file_path)

    def analyze_lines(self, lines: List[SourceLine],
                      file_path: Union[str, Path]) -> CopybookAnalysisResult:
        file_path = Path(file_path)
        logger.info(f"Analyzing copybook: {file_path.name}")

        fields, layouts = build_record_layouts(lines)
        result = CopybookAnalysisResult(
            file_name=file_path.name,
            file_path=str(file_path),
            record_layouts=layouts,
            inferred_entity=self.infer_business_entity(layouts, file_path.name),
            total_fields=len(fields),
            referenced_copybooks=self.extract_referenced_copybooks(lines),
            metrics=self.calculate_metrics(fields, len(lines)),
        )

        logger.info(f"Extracted {len(layouts)} record layouts with {len(fields)} fields")
        return result

    def infer_business_entity(self, layouts: List[RecordLayout],
                              file_name: str) -> Optional[InferredEntity]:
        """
        Guess the business entity from the first record layout.

        Confidence starts at 0.5 and each independent signal adds to it.
        The transaction check runs after the master check, so a record name
        matching both patterns ends up TRANSACTION.
        """
        if not layouts:
            return None

        evidence = []
        entity_type = 'UNKNOWN'
        confidence = 0.5
        entity_name = re.sub(r'\.cpy$', '', file_name, flags=re.IGNORECASE)

        primary_record = layouts[0]
        record_name = primary_record.record_name.upper()

        if any(p in record_name for p in MASTER_NAME_PATTERNS):
            entity_type = 'MASTER'
            confidence += 0.2
            evidence.append(f"Record name contains master pattern: {primary_record.record_name}")

        # TODO: confirm with data owners whether MASTER should win over TRANSACTION here
        if any(p in record_name for p in TRANSACTION_NAME_PATTERNS):
            entity_type = 'TRANSACTION'
            confidence += 0.2
            evidence.append(f"Record name contains transaction pattern: {primary_record.record_name}")

        if any(k.key_type == 'PRIMARY' for k in primary_record.keys):
            confidence += 0.15
            evidence.append("Has primary key structure")

        all_field_names = self._all_field_names(primary_record.fields)
        for patterns, name, pattern_type in ENTITY_FIELD_PATTERNS:
            if any(p in f for p in patterns for f in all_field_names):
                entity_name = name
                entity_type = pattern_type
                confidence += 0.15
                evidence.append(f"Field pattern suggests {name} entity")
                break

        return InferredEntity(
            entity_name=entity_name,
            entity_type=entity_type,
            confidence=round(min(confidence, 1.0), 2),
            evidence=evidence,
        )

    def _all_field_names(self, fields: List[CopybookField]) -> List[str]:
        names = []
        for f in fields:
            names.append(f.name)
            if f.children:
                names.extend(self._all_field_names(f.children))
        return names

    def extract_referenced_copybooks(self, lines: List[SourceLine]) -> List[str]:
        """COPY members in order of first appearance"""
        copybooks = []
        for line in lines:
            if not line.is_code:
                continue
            for match in COPY_PATTERN.finditer(line.upper):
                copybooks.append(match.group(1))
        return list(dict.fromkeys(copybooks))

    def calculate_metrics(self, fields: List[CopybookField], total_lines: int) -> CopybookMetrics:
        metrics = CopybookMetrics(total_lines=total_lines)
        for f in fields:
            if f.is_group:
                metrics.group_items += 1
            elif f.level not in ALIAS_LEVELS:
                metrics.elementary_items += 1
            if f.redefines:
                metrics.redefinitions += 1
            if f.occurs:
                metrics.occurs_count += 1
        return metrics
