"""Helpers shared by analysis provider implementations.

Builds the user prompt sent alongside the system prompt and parses raw
model output into an AnalysisResult. Parsing failures are raised as
retryable ``ProviderError``s so the batch executor can split and retry.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from promptaudit.domain.models.analysis import (
    AnalysisPattern,
    AnalysisResult,
    AnalysisStats,
    BeforeAfter,
    MinimalResult,
    PatternSeverity,
    ProjectContext,
)
from promptaudit.domain.models.common import AnalysisDate, PromptText
from promptaudit.domain.models.errors import FailureKind, ProviderError
from promptaudit.domain.models.taxonomy import ISSUE_TAXONOMY
from promptaudit.infrastructure.providers.minimal_results import convert_minimal_to_analysis_result

logger = logging.getLogger(__name__)

_CODE_BLOCK_RE = re.compile(r"```(?:json)?\s*\n?([\s\S]*?)\n?```")
_SEVERITIES = {s.value for s in PatternSeverity}


def build_user_prompt(
    prompts: Sequence[PromptText], date: AnalysisDate, context: Optional[ProjectContext] = None
) -> str:
    """Formats a numbered list of prompts, with optional project context.

    Raises:
        ValueError: If ``prompts`` is empty.
    """
    if not prompts:
        raise ValueError("Cannot build prompt from empty array")

    prompts_list = "\n\n".join(f"{i}. {prompt}" for i, prompt in enumerate(prompts, start=1))
    plural = "" if len(prompts) == 1 else "s"

    context_section = ""
    if context:
        parts: List[str] = []
        if context.role:
            parts.append(f"Role: {context.role}")
        if context.project_type:
            parts.append(f"Project Type: {context.project_type}")
        if context.domain:
            parts.append(f"Domain: {context.domain}")
        if context.tech_stack:
            parts.append(f"Tech Stack: {', '.join(context.tech_stack)}")
        if context.guidelines:
            guidelines = "\n".join(f"- {g}" for g in context.guidelines)
            parts.append(f"Guidelines:\n{guidelines}")
        if parts:
            context_section = "\n\nProject Context:\n" + "\n".join(parts) + "\n"

    return (
        f"Analyze the following {len(prompts)} prompt{plural} from {date}:{context_section}\n\n"
        f"{prompts_list}\n\n"
        "Please provide your analysis as a JSON object following the specified schema."
    )


def try_fix_truncated_json(text: str) -> str:
    """Closes strings, arrays and objects left open by a truncated response."""
    fixed = text.strip()
    open_braces = open_brackets = 0
    in_string = escape_next = False

    for char in fixed:
        if escape_next:
            escape_next = False
            continue
        if char == "\\":
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == "{":
            open_braces += 1
        elif char == "}":
            open_braces -= 1
        elif char == "[":
            open_brackets += 1
        elif char == "]":
            open_brackets -= 1

    if in_string:
        fixed += '"'
    fixed = re.sub(r",\s*$", "", fixed)
    fixed += "]" * max(open_brackets, 0)
    fixed += "}" * max(open_braces, 0)
    return fixed


# --- Schema detection ---

def _is_minimal(obj: Any) -> bool:
    return isinstance(obj, dict) and isinstance(obj.get("issues"), list) and all(
        isinstance(i, str) for i in obj["issues"]
    )


def _is_simple(obj: Any) -> bool:
    if not isinstance(obj, dict) or not isinstance(obj.get("issues"), list):
        return False
    return all(
        isinstance(i, dict) and all(isinstance(i.get(k), str) for k in ("name", "example", "fix"))
        for i in obj["issues"]
    )


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_pattern(obj: Any) -> bool:
    if not isinstance(obj, dict):
        return False
    if not all(isinstance(obj.get(k), str) for k in ("id", "name", "suggestion")):
        return False
    if not _is_number(obj.get("frequency")) or obj.get("severity") not in _SEVERITIES:
        return False
    examples = obj.get("examples")
    if not isinstance(examples, list) or not all(isinstance(e, str) for e in examples):
        return False
    before_after = obj.get("beforeAfter")
    return isinstance(before_after, dict) and all(
        isinstance(before_after.get(k), str) for k in ("before", "after")
    )


def _is_full(obj: Any) -> bool:
    if not isinstance(obj, dict) or not isinstance(obj.get("patterns"), list):
        return False
    if not all(_is_pattern(p) for p in obj["patterns"]):
        return False
    stats = obj.get("stats")
    if not isinstance(stats, dict):
        return False
    if not all(_is_number(stats.get(k)) for k in ("totalPrompts", "promptsWithIssues", "overallScore")):
        return False
    return isinstance(obj.get("topSuggestion"), str)


def _slugify(name: str) -> str:
    return re.sub(r"^-|-$", "", re.sub(r"[^a-z0-9]+", "-", name.lower()))


def _simple_to_result(obj: Dict[str, Any], date: AnalysisDate) -> AnalysisResult:
    issues = obj["issues"]
    score = obj["score"] if _is_number(obj.get("score")) else 50
    if isinstance(obj.get("tip"), str):
        tip = obj["tip"]
    else:
        tip = issues[0]["fix"] if issues else "No suggestions"

    patterns = [
        AnalysisPattern(
            id=_slugify(issue["name"]) or f"issue-{index}",
            name=issue["name"],
            frequency=1,
            severity=PatternSeverity.MEDIUM,
            examples=[issue["example"]],
            suggestion=issue["fix"],
            before_after=BeforeAfter(before=issue["example"], after=issue["fix"]),
        )
        for index, issue in enumerate(issues)
    ]
    return AnalysisResult(
        date=date,
        patterns=patterns,
        # totalPrompts is filled in by the caller
        stats=AnalysisStats(total_prompts=0, prompts_with_issues=len(issues), overall_score=score),
        top_suggestion=tip,
    )


def parse_response(response: str, date: AnalysisDate) -> AnalysisResult:
    """Parses and validates raw model output into an AnalysisResult.

    Tries the minimal, simple and full schemas in that order.

    Raises:
        ProviderError: ``PARSE`` if no JSON can be recovered, ``SCHEMA`` if
            the JSON matches none of the schemas.
    """
    match = _CODE_BLOCK_RE.search(response)
    json_text = match.group(1).strip() if match else response.strip()

    try:
        parsed = json.loads(json_text)
    except json.JSONDecodeError:
        try:
            parsed = json.loads(try_fix_truncated_json(json_text))
        except json.JSONDecodeError as e:
            raise ProviderError(FailureKind.PARSE, f"Failed to parse response as JSON: {e}", cause=e) from e

    if _is_minimal(parsed):
        score = parsed["score"] if _is_number(parsed.get("score")) else 50
        minimal = MinimalResult(issues=list(parsed["issues"]), score=score)
        return convert_minimal_to_analysis_result(minimal, date, ISSUE_TAXONOMY)

    if _is_simple(parsed):
        return _simple_to_result(parsed, date)

    if _is_full(parsed):
        result = AnalysisResult.from_dict({**parsed, "date": date})
        logger.debug(f"Parsed full response with {len(result.patterns)} pattern(s)")
        return result

    raise ProviderError(FailureKind.SCHEMA, "Response does not match expected schema")
