"""
Relationship inference data models
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class RelationshipKind(str, Enum):
    """Cardinalities a suggestion may carry"""
    ONE_TO_ONE = "one_to_one"
    ONE_TO_MANY = "one_to_many"
    MANY_TO_MANY = "many_to_many"


class RelationshipCandidate(BaseModel):
    """
    One relationship proposed by the model

    Validated straight from the model's JSON, which uses camelCase keys.
    Anything missing an identity field, with an unknown kind, or with a
    confidence outside [0, 1] fails validation.
    """
    source_table: str = Field(alias="sourceTable", min_length=1)
    source_column: str = Field(alias="sourceColumn", min_length=1)
    target_table: str = Field(alias="targetTable", min_length=1)
    target_column: str = Field(alias="targetColumn", min_length=1)
    kind: RelationshipKind = Field(alias="relationshipType")
    confidence: float = Field(ge=0.0, le=1.0)
    description: Optional[str] = None
    example: Optional[str] = None

    model_config = {"use_enum_values": True, "populate_by_name": True, "extra": "ignore"}

    @field_validator("source_table", "source_column", "target_table", "target_column", mode="before")
    @classmethod
    def strip_identifier(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("kind", mode="before")
    @classmethod
    def normalize_kind(cls, v: Any) -> Any:
        # "one-to-many" and "ONE_TO_MANY" are common spellings
        return v.strip().lower().replace("-", "_") if isinstance(v, str) else v

    @field_validator("description", "example", mode="before")
    @classmethod
    def stringify_free_text(cls, v: Any) -> Any:
        # Models sometimes send the example as an object or a number
        if v is None or isinstance(v, str):
            return v
        if isinstance(v, (dict, list)):
            return json.dumps(v)
        return str(v)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


@dataclass
class ParsedResponse:
    """Outcome of splitting, extracting and filtering one model response"""
    analysis_text: str
    candidates: List[RelationshipCandidate] = field(default_factory=list)
    raw_count: int = 0
    repaired: bool = False
    parse_error: Optional[str] = None

    @property
    def dropped_count(self) -> int:
        return self.raw_count - len(self.candidates)


@dataclass
class InferenceResult:
    """Model output for one analysis run, before merging"""
    analysis_text: str
    candidates: List[RelationshipCandidate]
    usage: Dict[str, int] = field(default_factory=dict)
    max_tokens: int = 0
    truncated: bool = False
    parse_error: Optional[str] = None


@dataclass
class AnalysisOutcome:
    """What analyze_relationships reports back to the caller"""
    analysis_text: str
    relationships_created: int
    total_suggestions: int
    skipped_existing: int = 0
    skipped_unmatched: int = 0
    failed: int = 0
    usage: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "analysis_text": self.analysis_text,
            "relationships_created": self.relationships_created,
            "total_suggestions": self.total_suggestions,
            "skipped_existing": self.skipped_existing,
            "skipped_unmatched": self.skipped_unmatched,
            "failed": self.failed,
            "usage": dict(self.usage),
        }
