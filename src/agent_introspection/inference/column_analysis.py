"""
Column Analysis
Short model-written summaries of each imported column: what it holds, a
realistic example and the shape of its values

Each column is analyzed on its own from its name, type and up to two sample
values. A reply that is not the requested JSON object, or a failed model
call, falls back to a summary derived from the column name and type, so a
table is never left half analyzed.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ValidationError, field_validator

from ..adapters import QueryResult
from ..llm_client import BaseLLMClient
from ..storage import MetadataRepository, PersistedColumn, PersistedTable
from ..utils import ModelInvocationError, get_logger, log_operation

logger = get_logger(__name__)

COLUMN_MAX_TOKENS = 150
COLUMN_TEMPERATURE = 0.1
MAX_SAMPLE_VALUES = 2
MAX_SAMPLE_LENGTH = 20

METADATA_KEY = "ai_analysis"

DATA_PATTERNS = (
    "alphanumeric", "email", "categorical", "encrypted", "numeric",
    "date", "datetime", "boolean", "url", "phone", "text",
)

COLUMN_SYSTEM_PROMPT = (
    "You are a database expert. You must respond with ONLY valid JSON - no explanatory "
    "text, no markdown, no additional commentary. Analyze the given column and return a "
    "JSON object with the exact structure requested."
)

_FENCED_OBJECT = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)

# Fallback examples never echo real sample values
_FALLBACK_EXAMPLES = (
    ("email", "user@example.com"),
    ("phone", "123-456-7890"),
    ("url", "https://example.com"),
    ("uuid", "uuid-123-456"),
    ("bool", "true"),
    ("timestamp", "2024-01-01 12:00:00"),
    ("datetime", "2024-01-01 12:00:00"),
    ("date", "2024-01-01"),
    ("decimal", "123.45"),
    ("numeric", "123.45"),
    ("float", "123.45"),
    ("double", "123.45"),
    ("real", "123.45"),
    ("int", "12345"),
    ("number", "12345"),
)


class ColumnAnalysis(BaseModel):
    """Model summary of one column"""
    purpose: str
    sample_value: str
    data_pattern: str

    model_config = {"extra": "ignore"}

    @field_validator("purpose", "sample_value", "data_pattern", mode="before")
    @classmethod
    def require_text(cls, v: Any) -> Any:
        if v is None or isinstance(v, (dict, list)):
            raise ValueError("expected a scalar value")
        text = str(v).strip()
        if not text:
            raise ValueError("must not be empty")
        return text

    @field_validator("data_pattern")
    @classmethod
    def normalize_pattern(cls, v: str) -> str:
        return v.lower()


@dataclass
class ColumnAnalysisResult:
    column_name: str
    analysis: ColumnAnalysis
    source: str

    def to_metadata(self) -> Dict[str, Any]:
        return {
            **self.analysis.model_dump(),
            "source": self.source,
            "analyzed_at": datetime.now(timezone.utc).isoformat(),
        }


@dataclass
class TableColumnAnalysis:
    """Outcome of analyzing every column of one table"""
    table_id: str
    table_name: str
    results: List[ColumnAnalysisResult] = field(default_factory=list)
    usage: Dict[str, int] = field(default_factory=dict)

    @property
    def analyzed(self) -> int:
        return sum(1 for r in self.results if r.source == "model")

    @property
    def fallbacks(self) -> int:
        return sum(1 for r in self.results if r.source == "fallback")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table_id": self.table_id,
            "table_name": self.table_name,
            "analyzed": self.analyzed,
            "fallbacks": self.fallbacks,
            "columns": {r.column_name: r.analysis.model_dump() for r in self.results},
            "usage": dict(self.usage),
        }


def sample_values_by_column(sample: Optional[QueryResult]) -> Dict[str, List[str]]:
    """
    Short, distinct, non-null sample values keyed by lower-cased column name

    Long values such as password hashes are cut to MAX_SAMPLE_LENGTH.
    """
    if sample is None or not sample.success:
        return {}
    values: Dict[str, List[str]] = {}
    for position, name in enumerate(sample.columns):
        kept: List[str] = []
        for row in sample.rows:
            if position >= len(row) or row[position] is None:
                continue
            value = row[position]
            text = value.hex() if isinstance(value, (bytes, bytearray)) else str(value)
            text = text.strip()
            if not text:
                continue
            if len(text) > MAX_SAMPLE_LENGTH:
                text = text[:MAX_SAMPLE_LENGTH - 3] + "..."
            if text not in kept:
                kept.append(text)
            if len(kept) >= MAX_SAMPLE_VALUES:
                break
        values[name.lower()] = kept
    return values


def build_column_prompt(
    column_name: str,
    data_type: str,
    sample_values: Optional[List[str]] = None,
    custom_prompt: Optional[str] = None,
) -> str:
    samples = [v for v in (sample_values or []) if v][:MAX_SAMPLE_VALUES]
    sample_text = f"Sample values: {', '.join(samples)}" if samples else "No sample values available"

    lines = [
        "Analyze this database column and provide structured information:",
        "",
        f"Column Name: {column_name}",
        f"Data Type: {data_type}",
        sample_text,
    ]
    if custom_prompt and custom_prompt.strip():
        lines += ["", f"Additional Context: {custom_prompt.strip()}"]
    lines += [
        "",
        "Respond with ONLY a JSON object in this exact format:",
        "{",
        '  "purpose": "brief description of what this column represents (no data types mentioned)",',
        '  "sample_value": "a short, realistic example value",',
        '  "data_pattern": "type of data pattern"',
        "}",
        "",
        f"Valid data_pattern values: {', '.join(DATA_PATTERNS)}",
        "",
        "Examples:",
        '{"purpose":"user identifier","sample_value":"user123","data_pattern":"alphanumeric"}',
        '{"purpose":"email address","sample_value":"user@domain.com","data_pattern":"email"}',
        '{"purpose":"creation timestamp","sample_value":"2024-01-15 10:30:00","data_pattern":"datetime"}',
        "",
        "No markdown, no text before or after the object.",
    ]
    return "\n".join(lines)


def parse_column_response(content: str) -> Optional[ColumnAnalysis]:
    """
    The reply's JSON object as a ColumnAnalysis, or None

    Accepts a bare object, a fenced block, or an object surrounded by
    prose. Missing or empty fields make the reply unusable.
    """
    text = (content or "").strip()
    if not text:
        return None
    fenced = _FENCED_OBJECT.search(text)
    if fenced:
        text = fenced.group(1).strip()
    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end <= start:
        return None
    try:
        parsed = json.loads(text[start:end + 1])
    except ValueError:
        return None
    if not isinstance(parsed, dict):
        return None
    try:
        return ColumnAnalysis.model_validate(parsed)
    except ValidationError as e:
        logger.debug(f"Column analysis reply rejected: {e.error_count()} validation errors")
        return None


def categorize_data_type(data_type: str) -> str:
    """Coarse data_pattern for a declared column type"""
    lowered = (data_type or "").lower()
    if "bool" in lowered or lowered == "bit":
        return "boolean"
    if "timestamp" in lowered or "datetime" in lowered:
        return "datetime"
    if "date" in lowered or "time" in lowered:
        return "date"
    if any(t in lowered for t in ("int", "number", "numeric", "decimal", "float", "double", "real")):
        return "numeric"
    return "text"


def fallback_analysis(column_name: str, data_type: str) -> ColumnAnalysis:
    """Summary derived from the column name and type alone"""
    name = column_name.replace("_", " ").strip().lower() or "unnamed"
    lowered_name = column_name.lower()
    lowered_type = (data_type or "").lower()

    example = "sample_value"
    for hint, value in _FALLBACK_EXAMPLES:
        if hint in lowered_name or hint in lowered_type:
            example = value
            break
    else:
        if lowered_name == "id" or lowered_name.endswith("_id"):
            example = "ID_12345"
        elif any(t in lowered_type for t in ("char", "text", "string", "clob")):
            example = "sample_text"

    return ColumnAnalysis(purpose=f"{name} field", sample_value=example, data_pattern=categorize_data_type(data_type))


class ColumnAnalyzer:
    """
    Writes a model summary of each column into the column's metadata

    Usage:
        analyzer = ColumnAnalyzer(llm_client, repository)
        outcome = analyzer.analyze_table(table, sample)
    """

    def __init__(
        self,
        llm_client: BaseLLMClient,
        repository: MetadataRepository,
        max_tokens: int = COLUMN_MAX_TOKENS,
        temperature: float = COLUMN_TEMPERATURE,
    ):
        self.llm_client = llm_client
        self.repository = repository
        self.max_tokens = max_tokens
        self.temperature = temperature

    def analyze_column(
        self,
        column_name: str,
        data_type: str,
        sample_values: Optional[List[str]] = None,
        custom_prompt: Optional[str] = None,
        usage: Optional[Dict[str, int]] = None,
    ) -> ColumnAnalysisResult:
        """One model call; a failed call or unusable reply yields the fallback summary"""
        json_mode = bool(self.llm_client.supports_json_mode)
        prompt = build_column_prompt(column_name, data_type, sample_values, custom_prompt)
        try:
            response = self.llm_client.invoke(
                prompt,
                system_prompt=COLUMN_SYSTEM_PROMPT,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                json_mode=json_mode,
            )
        except ModelInvocationError as e:
            logger.warning(f"Column analysis model call failed for {column_name}: {e.message}")
            return ColumnAnalysisResult(column_name, fallback_analysis(column_name, data_type), "fallback")

        if usage is not None:
            for key, value in response.usage.items():
                usage[key] = usage.get(key, 0) + value

        analysis = parse_column_response(response.content)
        if analysis is None:
            logger.info(
                "Column analysis reply was not usable JSON",
                extra={"extra_fields": {"column": column_name, "reply": response.content[:200]}}
            )
            return ColumnAnalysisResult(column_name, fallback_analysis(column_name, data_type), "fallback")
        return ColumnAnalysisResult(column_name, analysis, "model")

    def analyze_table(
        self,
        table: PersistedTable,
        sample: Optional[QueryResult] = None,
        custom_prompt: Optional[str] = None,
    ) -> TableColumnAnalysis:
        """Analyze every stored column of the table and persist each result as it lands"""
        columns = self.repository.list_columns(table.id)
        samples = sample_values_by_column(sample)
        outcome = TableColumnAnalysis(table_id=table.id, table_name=table.qualified_name)

        with log_operation(logger, "analyze_columns", table=table.qualified_name, columns=len(columns)) as ctx:
            for column in columns:
                result = self.analyze_column(
                    column.column_name,
                    column.data_type,
                    samples.get(column.column_name.lower()),
                    custom_prompt,
                    usage=outcome.usage,
                )
                self._store(column, result)
                outcome.results.append(result)
            ctx["analyzed"] = outcome.analyzed
            ctx["fallbacks"] = outcome.fallbacks

        return outcome

    def _store(self, column: PersistedColumn, result: ColumnAnalysisResult) -> None:
        metadata = dict(column.metadata)
        metadata[METADATA_KEY] = result.to_metadata()
        self.repository.upsert_column(
            table_id=column.table_id,
            column_name=column.column_name,
            data_type=column.data_type,
            nullable=column.nullable,
            default_value=column.default_value,
            is_primary_key=column.is_primary_key,
            comment=column.comment,
            metadata=metadata,
        )
