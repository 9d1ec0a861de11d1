"""
Relationship analysis prompt construction
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..storage import PersistedColumn, PersistedTable

SYSTEM_PROMPT = (
    "You are a database expert. Analyze tables and return both a text analysis "
    "AND structured JSON data for relationships. Be precise and only suggest "
    "relationships with high confidence."
)

JSON_ONLY_SYSTEM_PROMPT = (
    "You are a database expert. Analyze tables and respond with ONLY a valid JSON "
    "object - no markdown, no commentary outside the JSON. Be precise and only "
    "suggest relationships with high confidence."
)

_EXAMPLE_CANDIDATE = """{
    "sourceTable": "table_name",
    "sourceColumn": "column_name",
    "targetTable": "table_name",
    "targetColumn": "column_name",
    "relationshipType": "one_to_many",
    "confidence": 0.9,
    "description": "Brief description of this relationship",
    "example": "SELECT * FROM source s JOIN target t ON s.column = t.column"
  }"""


@dataclass
class ColumnContext:
    name: str
    data_type: str
    is_primary_key: bool = False
    nullable: bool = True
    comment: Optional[str] = None


@dataclass
class TableContext:
    """Everything the prompt says about one imported table"""
    name: str
    columns: List[ColumnContext] = field(default_factory=list)
    schema_name: Optional[str] = None
    comment: Optional[str] = None
    row_count: Optional[int] = None
    foreign_keys: List[Dict[str, Any]] = field(default_factory=list)
    indexes: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_persisted(cls, table: PersistedTable, columns: List[PersistedColumn]) -> "TableContext":
        metadata = table.metadata or {}
        return cls(
            name=table.table_name,
            schema_name=table.schema_name,
            comment=table.comment,
            row_count=table.row_count,
            foreign_keys=list(metadata.get("foreign_keys") or []),
            indexes=list(metadata.get("indexes") or []),
            columns=[
                ColumnContext(
                    name=c.column_name,
                    data_type=c.data_type,
                    is_primary_key=c.is_primary_key,
                    nullable=c.nullable,
                    comment=c.comment,
                )
                for c in columns
            ],
        )


def _render_table(table: TableContext) -> List[str]:
    lines = [f"Table: {table.name}"]
    if table.comment:
        lines.append(f"  Comment: {table.comment}")
    for column in table.columns:
        line = f"  - {column.name} ({column.data_type})"
        if column.is_primary_key:
            line += " [PK]"
        if not column.nullable and not column.is_primary_key:
            line += " [NOT NULL]"
        if column.comment:
            line += f" -- {column.comment}"
        lines.append(line)
    for fk in table.foreign_keys:
        columns = ", ".join(fk.get("columns") or [])
        ref_columns = ", ".join(fk.get("referenced_columns") or [])
        lines.append(f"  FK: ({columns}) -> {fk.get('referenced_table')}({ref_columns})")
    for idx in table.indexes:
        if idx.get("is_primary"):
            continue
        kind = "UNIQUE INDEX" if idx.get("is_unique") else "INDEX"
        lines.append(f"  {kind} {idx.get('name')}: ({', '.join(idx.get('columns') or [])})")
    return lines


def build_relationship_prompt(
    tables: List[TableContext],
    json_mode: bool = False,
    large_schema_threshold: int = 10,
    min_confidence: float = 0.7,
) -> str:
    """
    Render the relationship analysis request for a set of tables

    With json_mode the reply is asked for as one JSON object carrying both
    the analysis and the relationships; otherwise as two marked sections.
    """
    lines = [
        "Analyze the following database tables to identify relationships. "
        "Return both analysis and structured JSON data.",
        "",
    ]
    if len(tables) > large_schema_threshold:
        lines.append(
            f"NOTE: Large schema detected ({len(tables)} tables). Focus on the most obvious "
            "and high-confidence relationships to stay within token limits."
        )
        lines.append("")

    for table in tables:
        lines.extend(_render_table(table))
        lines.append("")

    rules = [
        f"- Only include relationships with confidence >= {min_confidence}",
        '- Use relationship types: "one_to_one", "one_to_many", "many_to_many"',
        "- Always close the JSON array with ]",
        "- If no relationships found, return an empty array []",
        "- Prioritize the highest confidence relationships and keep descriptions and examples concise",
    ]

    if json_mode:
        lines.append("Respond with a single JSON object in exactly this shape:")
        lines.append("{")
        lines.append('  "analysis": "Concise text analysis of the relationships you identified",')
        lines.append(f'  "relationships": [\n  {_EXAMPLE_CANDIDATE}\n  ]')
        lines.append("}")
        lines.append("")
        lines.append("IMPORTANT:")
        lines.extend(rules)
        return "\n".join(lines)

    lines.append("Please provide:")
    lines.append("")
    lines.append("1. **ANALYSIS**: A detailed text analysis of the relationships you identified")
    lines.append("")
    lines.append("2. **STRUCTURED_DATA**: A JSON array of relationships in this exact format:")
    lines.append("```json")
    lines.append(f"[\n  {_EXAMPLE_CANDIDATE}\n]")
    lines.append("```")
    lines.append("")
    lines.append("IMPORTANT:")
    lines.extend(rules)
    lines.append("- The STRUCTURED_DATA section is JSON only, no prose")
    lines.append("")
    lines.append("Format your response as:")
    lines.append("**ANALYSIS:**")
    lines.append("[Your concise text analysis here]")
    lines.append("")
    lines.append("**STRUCTURED_DATA:**")
    lines.append("[Complete JSON array here]")
    return "\n".join(lines)
