"""
Relationship Response Parser

Turns a free-form model reply into analysis text plus validated relationship
candidates:

    RESPONSE_SPLIT -> JSON_EXTRACT -> JSON_REPAIR (when unbalanced) -> FILTER

Structured output from a token-bounded model is frequently cut off
mid-object. JsonRepairer recovers the complete leading objects through a
small explicit state machine; when nothing can be recovered the candidate
list is empty and no exception escapes.
"""
from __future__ import annotations

import json
import re
from enum import Enum
from typing import Any, List, Optional, Tuple

from pydantic import ValidationError

from ..utils import ParseError, get_logger
from .models import ParsedResponse, RelationshipCandidate

logger = get_logger(__name__)

ANALYSIS_MARKER = "ANALYSIS:"
STRUCTURED_MARKER = "STRUCTURED_DATA:"

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)
_JSON_ANALYSIS_FIELD = re.compile(r'"analysis"\s*:\s*"((?:[^"\\]|\\.)*)"', re.DOTALL)

# A key left without its value, then any trailing separators
_DANGLING_KEY = re.compile(r'"[^"]*"\s*:\s*$')
_TRAILING_SEPARATORS = re.compile(r"[,:\s]+$")

_CLOSERS = {"[": "]", "{": "}"}


def _clean_section(text: str) -> str:
    # Markers are usually bolded: **ANALYSIS:**
    return text.strip().strip("*").strip()


def split_sections(content: str) -> Tuple[str, str]:
    """
    Split a reply into (analysis, structured_data)

    Without a STRUCTURED_DATA marker the whole reply is analysis and the
    structured section is empty.
    """
    structured_at = content.find(STRUCTURED_MARKER)
    analysis_at = content.find(ANALYSIS_MARKER)

    if structured_at == -1:
        if analysis_at == -1:
            return content.strip(), ""
        return _clean_section(content[analysis_at + len(ANALYSIS_MARKER):]), ""

    if analysis_at != -1 and analysis_at < structured_at:
        analysis = content[analysis_at + len(ANALYSIS_MARKER):structured_at]
    else:
        analysis = content[:structured_at]
    structured = content[structured_at + len(STRUCTURED_MARKER):]
    return _clean_section(analysis), _clean_section(structured)


def _scan(text: str):
    """Yield (index, char, open_stack) for brackets and braces outside string literals"""
    stack: List[str] = []
    in_string = False
    escaped = False
    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in "[{":
            stack.append(ch)
            yield i, ch, stack
        elif ch in "]}":
            if stack and _CLOSERS[stack[-1]] == ch:
                stack.pop()
            yield i, ch, stack


def _unterminated_string_start(text: str) -> Optional[int]:
    """Index of the opening quote when text ends inside a string literal"""
    start = None
    escaped = False
    for i, ch in enumerate(text):
        if start is not None:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                start = None
        elif ch == '"':
            start = i
    return start


def is_balanced(text: str) -> bool:
    """True when every bracket and brace outside string literals is closed"""
    opens = closes = 0
    for _i, ch, _stack in _scan(text):
        if ch in "[{":
            opens += 1
        else:
            closes += 1
    return opens == closes


def _matching_close(text: str, start: int) -> Optional[int]:
    for i, ch, stack in _scan(text[start:]):
        if ch in "]}" and not stack:
            return start + i
    return None


def extract_json_block(section: str) -> Optional[str]:
    """
    Locate the JSON array inside the structured section

    A fenced code block wins; otherwise the array starting at the first
    '[' up to its closing bracket, or to the end of the text when it was
    never closed.
    """
    if not section:
        return None
    fenced = _FENCED_BLOCK.search(section)
    if fenced and fenced.group(1).strip():
        return fenced.group(1).strip()

    start = section.find("[")
    if start == -1:
        return None
    end = _matching_close(section, start)
    if end is None:
        end = section.rfind("]")
        if end <= start:
            # Unterminated: drop a dangling opening fence marker if present
            return section[start:].split("```")[0].strip()
    return section[start:end + 1]


class RepairStage(str, Enum):
    STRIP_DANGLING = "strip_dangling"
    TRUNCATE_TO_LAST_OBJECT = "truncate_to_last_object"
    RECLOSE = "reclose"
    REPARSE = "reparse"
    DONE = "done"
    GIVE_UP = "give_up"


class JsonRepairer:
    """
    Best-effort recovery of a truncated JSON array of objects

    Each stage is a plain method so it can be tested on its own; repair()
    walks them in order and records the stages it visited.
    """

    def __init__(self):
        self.stages: List[RepairStage] = []

    @staticmethod
    def strip_dangling(text: str) -> str:
        """Drop an unterminated string, a key without a value and trailing commas"""
        cleaned = text.strip()
        open_quote = _unterminated_string_start(cleaned)
        if open_quote is not None:
            cleaned = cleaned[:open_quote]
        cleaned = _DANGLING_KEY.sub("", cleaned)
        return _TRAILING_SEPARATORS.sub("", cleaned)

    @staticmethod
    def truncate_to_last_object(text: str) -> Optional[str]:
        """Cut after the last object that closed directly inside the top-level array"""
        last_end = None
        top_is_array = text.lstrip().startswith("[")
        for i, ch, stack in _scan(text):
            if ch != "}":
                continue
            if (top_is_array and stack == ["["]) or (not top_is_array and not stack):
                last_end = i
        if last_end is None:
            return None
        return text[:last_end + 1]

    @staticmethod
    def reclose(text: str) -> str:
        stripped = text.rstrip().rstrip(",")
        if stripped.lstrip().startswith("[") and not stripped.endswith("]"):
            stripped += "]"
        return stripped

    @staticmethod
    def reparse(text: str) -> Optional[List[Any]]:
        try:
            parsed = json.loads(text)
        except ValueError:
            return None
        if isinstance(parsed, dict):
            return [parsed]
        if isinstance(parsed, list):
            return parsed
        return None

    def repair(self, text: str) -> Optional[List[Any]]:
        self.stages = []
        stage = RepairStage.STRIP_DANGLING
        current = text
        result: Optional[List[Any]] = None

        while stage not in (RepairStage.DONE, RepairStage.GIVE_UP):
            self.stages.append(stage)
            if stage == RepairStage.STRIP_DANGLING:
                current = self.strip_dangling(current)
                stage = RepairStage.TRUNCATE_TO_LAST_OBJECT
            elif stage == RepairStage.TRUNCATE_TO_LAST_OBJECT:
                truncated = self.truncate_to_last_object(current)
                if truncated is None:
                    stage = RepairStage.GIVE_UP
                else:
                    current = truncated
                    stage = RepairStage.RECLOSE
            elif stage == RepairStage.RECLOSE:
                current = self.reclose(current)
                stage = RepairStage.REPARSE
            elif stage == RepairStage.REPARSE:
                result = self.reparse(current)
                stage = RepairStage.DONE if result is not None else RepairStage.GIVE_UP

        self.stages.append(stage)
        return result


def decode_structured_data(structured: str) -> Tuple[List[Any], bool]:
    """
    Items of the JSON array in a structured section, and whether repair was needed

    Raises:
        ParseError: No array present, or nothing recoverable from it
    """
    block = extract_json_block(structured)
    if block is None:
        raise ParseError("No JSON array found in structured section", raw_text=structured)

    items = JsonRepairer.reparse(block) if is_balanced(block) else None
    if items is not None:
        return items, False

    repairer = JsonRepairer()
    items = repairer.repair(block)
    if items is None:
        raise ParseError(
            "Structured data could not be repaired",
            raw_text=block,
            stages=[s.value for s in repairer.stages],
        )
    logger.info(
        "Recovered truncated relationship data",
        extra={"extra_fields": {"recovered": len(items)}}
    )
    return items, True


def filter_candidates(raw_items: List[Any], min_confidence: float = 0.7) -> List[RelationshipCandidate]:
    """Keep well-formed candidates at or above min_confidence; drop the rest one by one"""
    candidates = []
    for item in raw_items:
        if not isinstance(item, dict):
            continue
        try:
            candidate = RelationshipCandidate.model_validate(item)
        except ValidationError as e:
            logger.debug(f"Dropping malformed relationship candidate: {e.error_count()} validation errors")
            continue
        if candidate.confidence < min_confidence:
            continue
        candidates.append(candidate)
    return candidates


def _parse_json_object_reply(content: str) -> Optional[Tuple[str, List[Any]]]:
    """Replies produced in JSON mode: {"analysis": "...", "relationships": [...]}"""
    text = content.strip()
    fenced = _FENCED_BLOCK.search(text)
    if fenced:
        text = fenced.group(1).strip()
    if not text.startswith("{"):
        return None
    try:
        parsed = json.loads(text)
    except ValueError:
        return None
    if not isinstance(parsed, dict):
        return None
    relationships = parsed.get("relationships")
    return str(parsed.get("analysis") or ""), relationships if isinstance(relationships, list) else []


def _json_object_fallback(content: str) -> Tuple[str, str]:
    """Analysis and array text from a truncated JSON-mode reply"""
    analysis = ""
    match = _JSON_ANALYSIS_FIELD.search(content)
    if match:
        try:
            analysis = json.loads(f'"{match.group(1)}"')
        except ValueError:
            analysis = match.group(1)
    key_at = content.find('"relationships"')
    return analysis, content[key_at:] if key_at != -1 else ""


def parse_relationship_response(
    content: str,
    min_confidence: float = 0.7,
    json_mode: bool = False,
) -> ParsedResponse:
    """
    Parse a model reply into analysis text and filtered candidates

    Never raises on malformed structured data: the result carries zero
    candidates and a parse_error instead.
    """
    content = content or ""
    repaired = False
    raw_items: Optional[List[Any]] = None
    parse_error = None

    if json_mode:
        direct = _parse_json_object_reply(content)
        if direct is not None:
            analysis, raw_items = direct
            structured = ""
        else:
            analysis, structured = _json_object_fallback(content)
            if not structured:
                analysis, structured = split_sections(content)
    else:
        analysis, structured = split_sections(content)

    if raw_items is None:
        raw_items = []
        if structured:
            try:
                raw_items, repaired = decode_structured_data(structured)
            except ParseError as e:
                parse_error = e.message
                logger.warning(
                    "Structured relationship data could not be parsed",
                    extra={"extra_fields": {"reason": e.message, "stages": e.stages}}
                )

    candidates = filter_candidates(raw_items, min_confidence)
    return ParsedResponse(
        analysis_text=analysis.strip() or content,
        candidates=candidates,
        raw_count=len(raw_items),
        repaired=repaired,
        parse_error=parse_error,
    )
