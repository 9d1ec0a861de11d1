"""
Relationship Inference Package
Model-assisted discovery of relationships between imported tables
and per-column summaries
"""
from .models import (
    RelationshipKind,
    RelationshipCandidate,
    ParsedResponse,
    InferenceResult,
    AnalysisOutcome,
)
from .prompt import (
    SYSTEM_PROMPT,
    TableContext,
    ColumnContext,
    build_relationship_prompt,
)
from .parser import (
    RepairStage,
    JsonRepairer,
    split_sections,
    extract_json_block,
    is_balanced,
    decode_structured_data,
    filter_candidates,
    parse_relationship_response,
)
from .engine import RelationshipInferenceEngine
from .column_analysis import (
    ColumnAnalysis,
    ColumnAnalysisResult,
    TableColumnAnalysis,
    ColumnAnalyzer,
    build_column_prompt,
    parse_column_response,
    fallback_analysis,
    sample_values_by_column,
)

__all__ = [
    "RelationshipKind",
    "RelationshipCandidate",
    "ParsedResponse",
    "InferenceResult",
    "AnalysisOutcome",
    "SYSTEM_PROMPT",
    "TableContext",
    "ColumnContext",
    "build_relationship_prompt",
    "RepairStage",
    "JsonRepairer",
    "split_sections",
    "extract_json_block",
    "is_balanced",
    "decode_structured_data",
    "filter_candidates",
    "parse_relationship_response",
    "RelationshipInferenceEngine",
    "ColumnAnalysis",
    "ColumnAnalysisResult",
    "TableColumnAnalysis",
    "ColumnAnalyzer",
    "build_column_prompt",
    "parse_column_response",
    "fallback_analysis",
    "sample_values_by_column",
]
