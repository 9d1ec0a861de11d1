"""
Relationship Inference Engine

    PROMPT_BUILD -> MODEL_CALL -> RESPONSE_SPLIT -> JSON_EXTRACT
        -> JSON_REPAIR? -> FILTER -> MERGE

A model-call failure is fatal for the request. Anything that goes wrong
after the model answered is not: the caller always gets the analysis text,
with zero or more relationships merged into the store.
"""
from __future__ import annotations

from typing import Dict, List, Optional

from ..config import IntrospectionConfig
from ..llm_client import BaseLLMClient
from ..storage import MetadataRepository, PersistedTable
from ..utils import (
    ConfigurationError,
    IntrospectionMetrics,
    ModelInvocationError,
    NotFoundError,
    get_logger,
    log_operation,
)
from .models import AnalysisOutcome, InferenceResult, RelationshipCandidate
from .parser import parse_relationship_response
from .prompt import JSON_ONLY_SYSTEM_PROMPT, SYSTEM_PROMPT, TableContext, build_relationship_prompt

logger = get_logger(__name__)

DEFAULT_MAX_TOKENS = 10000
DEFAULT_TEMPERATURE = 0.1


class RelationshipInferenceEngine:
    """
    Proposes relationships between a data agent's imported tables

    Usage:
        engine = RelationshipInferenceEngine(llm_client, repository)
        outcome = engine.analyze(agent_id)
    """

    def __init__(
        self,
        llm_client: BaseLLMClient,
        repository: MetadataRepository,
        config: Optional[IntrospectionConfig] = None,
        max_tokens: Optional[int] = None,
        temperature: float = DEFAULT_TEMPERATURE,
    ):
        self.llm_client = llm_client
        self.repository = repository
        self.config = config or IntrospectionConfig()
        self.max_tokens = max_tokens or DEFAULT_MAX_TOKENS
        self.temperature = temperature

    def infer(self, tables: List[TableContext]) -> InferenceResult:
        """
        Build the prompt, call the model once and parse the reply

        Raises:
            ModelInvocationError: If the model call fails
        """
        json_mode = bool(self.llm_client.supports_json_mode)
        prompt = build_relationship_prompt(
            tables,
            json_mode=json_mode,
            large_schema_threshold=self.config.large_schema_threshold,
            min_confidence=self.config.min_confidence,
        )

        logger.info(
            f"Relationship analysis for {len(tables)} tables",
            extra={"extra_fields": {
                "max_tokens": self.max_tokens,
                "estimated_input_tokens": len(prompt) // 4,
                "json_mode": json_mode,
            }}
        )

        try:
            response = self.llm_client.invoke(
                prompt,
                system_prompt=JSON_ONLY_SYSTEM_PROMPT if json_mode else SYSTEM_PROMPT,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                json_mode=json_mode,
            )
        except ModelInvocationError:
            raise
        except Exception as e:
            raise ModelInvocationError(
                message=f"Relationship analysis model call failed: {e}",
                model_id=getattr(self.llm_client, "model_id", None),
                original_error=e,
            )

        utilization = response.output_tokens / self.max_tokens if self.max_tokens else 0.0
        truncated = response.truncated or utilization >= self.config.truncation_warning_ratio
        logger.info(
            "Relationship analysis token usage",
            extra={"extra_fields": {
                "prompt_tokens": response.input_tokens,
                "completion_tokens": response.output_tokens,
                "total_tokens": response.total_tokens,
                "max_tokens": self.max_tokens,
                "utilization": f"{utilization:.0%}",
            }}
        )
        if truncated:
            logger.warning(
                "Relationship analysis may be truncated; some relationships may be missing",
                extra={"extra_fields": {
                    "completion_tokens": response.output_tokens,
                    "max_tokens": self.max_tokens,
                }}
            )

        parsed = parse_relationship_response(
            response.content,
            min_confidence=self.config.min_confidence,
            json_mode=json_mode,
        )
        logger.info(
            "Parsed relationship suggestions",
            extra={"extra_fields": {
                "raw": parsed.raw_count,
                "kept": len(parsed.candidates),
                "repaired": parsed.repaired,
            }}
        )

        return InferenceResult(
            analysis_text=parsed.analysis_text,
            candidates=parsed.candidates,
            usage=response.usage,
            max_tokens=self.max_tokens,
            truncated=truncated,
            parse_error=parsed.parse_error,
        )

    def analyze(self, data_agent_id: str, environment_id: Optional[str] = None) -> AnalysisOutcome:
        """
        Run inference over the agent's imported tables and merge the results

        Raises:
            NotFoundError: Unknown data agent
            ConfigurationError: Fewer imported tables than the analysis needs
            ModelInvocationError: The model call failed
        """
        if self.repository.get_data_agent(data_agent_id) is None:
            raise NotFoundError("Data agent", data_agent_id)

        tables = self.repository.list_tables(data_agent_id, environment_id)
        if len(tables) < self.config.min_tables_for_analysis:
            raise ConfigurationError(
                f"Relationship analysis needs at least {self.config.min_tables_for_analysis} "
                f"imported tables, found {len(tables)}",
                suggestions=["Import more tables before analyzing relationships"],
            )

        contexts = []
        columns_by_table: Dict[str, Dict[str, str]] = {}
        for table in tables:
            columns = self.repository.list_columns(table.id)
            columns_by_table[table.id] = {c.column_name.lower(): c.column_name for c in columns}
            contexts.append(TableContext.from_persisted(table, columns))

        with log_operation(logger, "analyze_relationships", data_agent_id=data_agent_id, tables=len(tables)):
            result = self.infer(contexts)
            outcome = self.merge(data_agent_id, environment_id, tables, columns_by_table, result.candidates)

        outcome.analysis_text = result.analysis_text
        outcome.usage = dict(result.usage)
        self.repository.save_relationship_analysis(data_agent_id, result.analysis_text)
        IntrospectionMetrics.record_relationships(
            suggested=outcome.total_suggestions,
            created=outcome.relationships_created,
            skipped=outcome.skipped_existing + outcome.skipped_unmatched + outcome.failed,
        )
        return outcome

    def merge(
        self,
        data_agent_id: str,
        environment_id: Optional[str],
        tables: List[PersistedTable],
        columns_by_table: Dict[str, Dict[str, str]],
        candidates: List[RelationshipCandidate],
    ) -> AnalysisOutcome:
        """Insert novel candidates as unverified relationships, one at a time"""
        index = self._index_tables(tables)
        outcome = AnalysisOutcome(analysis_text="", relationships_created=0, total_suggestions=len(candidates))

        for candidate in candidates:
            label = (
                f"{candidate.source_table}.{candidate.source_column} -> "
                f"{candidate.target_table}.{candidate.target_column}"
            )
            try:
                source = index.get(candidate.source_table.lower())
                target = index.get(candidate.target_table.lower())
                if source is None or target is None:
                    outcome.skipped_unmatched += 1
                    logger.debug(f"Skipping relationship on unknown table: {label}")
                    continue

                source_column = columns_by_table.get(source.id, {}).get(
                    candidate.source_column.lower(), candidate.source_column
                )
                target_column = columns_by_table.get(target.id, {}).get(
                    candidate.target_column.lower(), candidate.target_column
                )

                existing = self.repository.find_existing_relationship(
                    data_agent_id, source.id, target.id, source_column, target_column
                )
                if existing is not None:
                    outcome.skipped_existing += 1
                    continue

                self.repository.upsert_relationship(
                    data_agent_id=data_agent_id,
                    source_table_id=source.id,
                    target_table_id=target.id,
                    source_column=source_column,
                    target_column=target_column,
                    kind=candidate.kind,
                    confidence=candidate.confidence,
                    is_verified=False,
                    environment_id=environment_id or source.environment_id,
                    description=candidate.description,
                    example=candidate.example,
                )
                outcome.relationships_created += 1
                logger.info(f"Added relationship: {label} (confidence: {candidate.confidence:.0%})")
            except Exception as e:
                outcome.failed += 1
                logger.warning(f"Failed to store relationship {label}: {e}")

        return outcome

    @staticmethod
    def _index_tables(tables: List[PersistedTable]) -> Dict[str, PersistedTable]:
        """Case-insensitive lookup by bare and schema-qualified name; first match wins"""
        index: Dict[str, PersistedTable] = {}
        for table in tables:
            for key in (table.table_name.lower(), table.qualified_name.lower()):
                index.setdefault(key, table)
        return index

