"""ORM Configuration Analyzer

Scans ORM mapping files (MyBatis mappers, JPA orm.xml/persistence.xml,
Hibernate hbm.xml) for embedded SQL and PostgreSQL-specific constructs.

The mapping flavour is sniffed from content; each flavour has its own
query extractor, selected from a fixed table.
"""

import re
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Tuple, Union
from dataclasses import dataclass, field
import logging

from .line_classifier import read_source

logger = logging.getLogger(__name__)


class ORMFileType(str, Enum):
    MYBATIS = "MyBatis"
    JPA = "JPA"
    HIBERNATE = "Hibernate"
    UNKNOWN = "Unknown"


XML_ENTITIES = [
    ('&lt;', '<'),
    ('&gt;', '>'),
    ('&quot;', '"'),
    ('&apos;', "'"),
    ('&amp;', '&'),
]

MYBATIS_STATEMENT_TAGS = ['select', 'insert', 'update', 'delete']

MYBATIS_STATEMENT_PATTERNS = [
    (tag, re.compile(
        rf'<{tag}\b[^>]*\bid=["\']([^"\']+)["\'][^>]*>(.*?)</{tag}>',
        re.IGNORECASE | re.DOTALL
    ))
    for tag in MYBATIS_STATEMENT_TAGS
]

JPA_QUERY_PATTERN = re.compile(
    r'<(named-query|named-native-query)\b[^>]*\bname=["\']([^"\']+)["\'][^>]*>\s*'
    r'<query>\s*(?:<!\[CDATA\[(.*?)\]\]>|([^<]+))\s*</query>',
    re.IGNORECASE | re.DOTALL
)

HIBERNATE_QUERY_PATTERN = re.compile(
    r'<(sql-query|query)\b[^>]*\bname=["\']([^"\']+)["\'][^>]*>\s*<!\[CDATA\[(.*?)\]\]>',
    re.IGNORECASE | re.DOTALL
)

RESULT_MAP_PATTERN = re.compile(r'<resultMap\b', re.IGNORECASE)
DYNAMIC_SQL_PATTERN = re.compile(r'<(?:if|choose|when|foreach|where|set)[\s>/]', re.IGNORECASE)
TYPE_HANDLER_PATTERN = re.compile(r'typeHandler=["\']([^"\']+)["\']', re.IGNORECASE)
LEADING_VERB_PATTERN = re.compile(r'^\s*(SELECT|INSERT|UPDATE|DELETE)\b', re.IGNORECASE)

# (pattern, syntax token, feature label), checked in order
POSTGRESQL_SYNTAX = [
    (re.compile(r'\bLIMIT\s+\d+', re.IGNORECASE), 'LIMIT', 'LIMIT clause'),
    (re.compile(r'\bOFFSET\s+\d+', re.IGNORECASE), 'OFFSET', 'OFFSET clause'),
    (re.compile(r'\bRETURNING\b', re.IGNORECASE), 'RETURNING', 'RETURNING clause'),
    (re.compile(r'\bON\s+CONFLICT\b', re.IGNORECASE), 'ON CONFLICT', 'ON CONFLICT (upsert)'),
    (re.compile(r'\bILIKE\b', re.IGNORECASE), 'ILIKE', 'ILIKE operator'),
    (re.compile(r'\bDISTINCT\s+ON\b', re.IGNORECASE), 'DISTINCT ON', 'DISTINCT ON'),
]

POSTGRESQL_FUNCTIONS = [
    'array_agg', 'string_agg', 'generate_series', 'unnest',
    'jsonb_', 'json_', 'array_to_string', 'regexp_matches',
    'regexp_replace', 'GREATEST', 'LEAST',
]

POSTGRESQL_DATA_TYPES = ['SERIAL', 'BIGSERIAL', 'SMALLSERIAL', 'UUID', 'JSONB', 'JSON', 'ARRAY', 'BOOLEAN']

POSTGRESQL_OPERATORS = [
    ('@>', '@> (contains) operator'),
    ('<@', '<@ (contained by) operator'),
    ('->', '-> (JSON field) operator'),
    ('->>', '->> (JSON text) operator'),
]


@dataclass
class SQLFeatureScan:
    """PostgreSQL features found in one SQL statement"""
    features: List[str] = field(default_factory=list)
    functions: List[str] = field(default_factory=list)
    data_types: List[str] = field(default_factory=list)
    syntax: List[str] = field(default_factory=list)

    @property
    def has_postgresql_features(self) -> bool:
        return bool(self.features)


@dataclass
class ORMQuery:
    id: str
    type: str  # select, insert, update, delete, other
    sql: str
    has_postgresql_features: bool = False
    features: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "type": self.type,
            "sql": self.sql,
            "hasPostgreSQLFeatures": self.has_postgresql_features,
            "features": list(self.features),
        }


@dataclass
class PostgreSQLFeatureSummary:
    native_queries: int = 0
    result_maps: int = 0
    dynamic_sql: int = 0
    postgresql_functions: List[str] = field(default_factory=list)
    postgresql_data_types: List[str] = field(default_factory=list)
    postgresql_syntax: List[str] = field(default_factory=list)
    custom_type_handlers: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "nativeQueries": self.native_queries,
            "resultMaps": self.result_maps,
            "dynamicSQL": self.dynamic_sql,
            "postgresqlFunctions": list(self.postgresql_functions),
            "postgresqlDataTypes": list(self.postgresql_data_types),
            "postgresqlSyntax": list(self.postgresql_syntax),
            "customTypeHandlers": list(self.custom_type_handlers),
        }


@dataclass
class ORMConfigAnalysisResult:
    type: ORMFileType
    file_path: str
    file_name: str
    postgresql_features: PostgreSQLFeatureSummary = field(default_factory=PostgreSQLFeatureSummary)
    queries: List[ORMQuery] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "type": self.type.value,
            "filePath": self.file_path,
            "fileName": self.file_name,
            "postgresqlFeatures": self.postgresql_features.to_dict(),
            "queries": [q.to_dict() for q in self.queries],
        }


def classify_orm_file(file_path: Union[str, Path], content: str) -> ORMFileType:
    """Sniff the mapping flavour of an XML file"""
    if Path(file_path).suffix.lower() != '.xml':
        return ORMFileType.UNKNOWN
    if '<!DOCTYPE mapper' in content or '<mapper' in content:
        return ORMFileType.MYBATIS
    if '<persistence' in content or '<entity-mappings' in content:
        return ORMFileType.JPA
    if '<!DOCTYPE hibernate-mapping' in content or '<hibernate-mapping' in content:
        return ORMFileType.HIBERNATE
    return ORMFileType.UNKNOWN


def clean_sql(sql: str) -> str:
    """Unescape XML entities and strip CDATA markers"""
    for entity, char in XML_ENTITIES:
        sql = sql.replace(entity, char)
    return sql.replace('<![CDATA[', '').replace(']]>', '').strip()


def scan_sql_features(sql: str) -> SQLFeatureScan:
    """Detect PostgreSQL-only syntax, functions, data types and operators"""
    scan = SQLFeatureScan()

    for pattern, token, label in POSTGRESQL_SYNTAX:
        if pattern.search(sql):
            scan.syntax.append(token)
            scan.features.append(label)

    for func in POSTGRESQL_FUNCTIONS:
        if re.search(rf'\b{re.escape(func)}', sql, re.IGNORECASE):
            scan.functions.append(func)
            scan.features.append(f"{func}() function")

    for data_type in POSTGRESQL_DATA_TYPES:
        if re.search(rf'\b{data_type}\b', sql, re.IGNORECASE):
            scan.data_types.append(data_type)
            scan.features.append(f"{data_type} data type")

    for operator, label in POSTGRESQL_OPERATORS:
        if operator in sql:
            scan.syntax.append(operator)
            scan.features.append(label)

    return scan


def _query_type(sql: str, default: str = 'select') -> str:
    match = LEADING_VERB_PATTERN.match(sql)
    return match.group(1).lower() if match else default


def _extract_mybatis(content: str) -> List[Tuple[str, str, str]]:
    statements = []
    for tag, pattern in MYBATIS_STATEMENT_PATTERNS:
        for match in pattern.finditer(content):
            statements.append((match.group(1), tag, clean_sql(match.group(2))))
    return statements


def _extract_jpa(content: str) -> List[Tuple[str, str, str]]:
    statements = []
    for match in JPA_QUERY_PATTERN.finditer(content):
        body = match.group(3) if match.group(3) is not None else match.group(4)
        sql = clean_sql(body)
        statements.append((match.group(2), _query_type(sql), sql))
    return statements


def _extract_hibernate(content: str) -> List[Tuple[str, str, str]]:
    statements = []
    for match in HIBERNATE_QUERY_PATTERN.finditer(content):
        sql = clean_sql(match.group(3))
        statements.append((match.group(2), _query_type(sql), sql))
    return statements


def _extract_nothing(content: str) -> List[Tuple[str, str, str]]:
    return []


QUERY_EXTRACTORS: Dict[ORMFileType, Callable[[str], List[Tuple[str, str, str]]]] = {
    ORMFileType.MYBATIS: _extract_mybatis,
    ORMFileType.JPA: _extract_jpa,
    ORMFileType.HIBERNATE: _extract_hibernate,
    ORMFileType.UNKNOWN: _extract_nothing,
}


class ORMConfigAnalyzer:
    """Extract SQL from ORM mapping files and flag PostgreSQL dependencies"""

    def analyze(self, file_path: Union[str, Path]) -> ORMConfigAnalysisResult:
        """
        Read and analyze an ORM configuration file.

        Raises:
            SourceReadError: the file could not be read
        """
        source = read_source(file_path)
        return self.analyze_text(source.content, file_path)

    def analyze_text(self, content: str, file_path: Union[str, Path]) -> ORMConfigAnalysisResult:
        file_path = Path(file_path)
        orm_type = classify_orm_file(file_path, content)
        logger.info(f"Analyzing {orm_type.value} configuration: {file_path.name}")

        summary = PostgreSQLFeatureSummary()
        queries = []
        for query_id, query_type, sql in QUERY_EXTRACTORS[orm_type](content):
            scan = scan_sql_features(sql)
            queries.append(ORMQuery(
                id=query_id,
                type=query_type,
                sql=sql,
                has_postgresql_features=scan.has_postgresql_features,
                features=scan.features,
            ))
            summary.postgresql_functions.extend(scan.functions)
            summary.postgresql_data_types.extend(scan.data_types)
            summary.postgresql_syntax.extend(scan.syntax)

        # Remove duplicates while preserving order
        summary.postgresql_functions = list(dict.fromkeys(summary.postgresql_functions))
        summary.postgresql_data_types = list(dict.fromkeys(summary.postgresql_data_types))
        summary.postgresql_syntax = list(dict.fromkeys(summary.postgresql_syntax))
        summary.native_queries = len(queries)

        if orm_type == ORMFileType.MYBATIS:
            summary.result_maps = len(RESULT_MAP_PATTERN.findall(content))
            summary.dynamic_sql = len(DYNAMIC_SQL_PATTERN.findall(content))
            summary.custom_type_handlers = list(dict.fromkeys(TYPE_HANDLER_PATTERN.findall(content)))

        flagged = sum(1 for q in queries if q.has_postgresql_features)
        logger.info(f"Found {len(queries)} queries, {flagged} with PostgreSQL-specific features")

        return ORMConfigAnalysisResult(
            type=orm_type,
            file_path=str(file_path),
            file_name=file_path.name,
            postgresql_features=summary,
            queries=queries,
        )
