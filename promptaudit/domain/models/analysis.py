"""Domain models specific to prompt quality analysis.

Covers analysis results (patterns, stats), provider batch limits, batches,
project context and the persisted per-prompt record. Models serialize to
camelCase dictionaries, which is the format written to disk.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .common import AnalysisDate, ModelName, PromptText, SchemaType, TokenCount


class PatternSeverity(str, Enum):
    """Severity of a detected pattern, ordered low < medium < high."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    PatternSeverity.LOW: 1,
    PatternSeverity.MEDIUM: 2,
    PatternSeverity.HIGH: 3,
}


class Prioritization(str, Enum):
    """Order in which prompts are packed into batches."""
    LONGEST_FIRST = "longest-first"
    CHRONOLOGICAL = "chronological"


# --- Analysis Result ---

@dataclass
class BeforeAfter:
    """Before/after rewrite example for a pattern."""
    before: str
    after: str

    def to_dict(self) -> Dict[str, str]:
        return {"before": self.before, "after": self.after}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BeforeAfter":
        return cls(before=str(data["before"]), after=str(data["after"]))


@dataclass
class AnalysisPattern:
    """One detected recurring issue. ``id`` is the merge key."""
    id: str
    name: str
    frequency: int
    severity: PatternSeverity
    examples: List[str]
    suggestion: str
    before_after: BeforeAfter

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "frequency": self.frequency,
            "severity": self.severity.value,
            "examples": list(self.examples),
            "suggestion": self.suggestion,
            "beforeAfter": self.before_after.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisPattern":
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            frequency=data["frequency"],
            severity=PatternSeverity(data["severity"]),
            examples=[str(e) for e in data["examples"]],
            suggestion=str(data["suggestion"]),
            before_after=BeforeAfter.from_dict(data["beforeAfter"]),
        )


@dataclass
class AnalysisStats:
    """Statistics from the analysis."""
    total_prompts: int
    prompts_with_issues: int
    overall_score: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalPrompts": self.total_prompts,
            "promptsWithIssues": self.prompts_with_issues,
            "overallScore": self.overall_score,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisStats":
        return cls(
            total_prompts=data["totalPrompts"],
            prompts_with_issues=data["promptsWithIssues"],
            overall_score=data["overallScore"],
        )


@dataclass
class AnalysisResult:
    """Complete analysis result: patterns, statistics and the top suggestion."""
    date: AnalysisDate
    patterns: List[AnalysisPattern]
    stats: AnalysisStats
    top_suggestion: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "patterns": [p.to_dict() for p in self.patterns],
            "stats": self.stats.to_dict(),
            "topSuggestion": self.top_suggestion,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisResult":
        return cls(
            date=AnalysisDate(str(data["date"])),
            patterns=[AnalysisPattern.from_dict(p) for p in data["patterns"]],
            stats=AnalysisStats.from_dict(data["stats"]),
            top_suggestion=str(data["topSuggestion"]),
        )


# --- Provider / Batching ---

@dataclass(frozen=True)
class ProviderLimits:
    """Input limits a provider imposes on a single analyze call."""
    max_tokens_per_batch: int
    prioritization: Prioritization
    max_prompts_per_batch: Optional[int] = None

    def __post_init__(self):
        if self.max_tokens_per_batch <= 0:
            raise ValueError("max_tokens_per_batch must be positive")
        if self.max_prompts_per_batch is not None and self.max_prompts_per_batch <= 0:
            raise ValueError("max_prompts_per_batch must be positive when set")


@dataclass(frozen=True)
class Batch:
    """An ordered, immutable group of prompts sent to the provider in one call."""
    prompts: Tuple[PromptText, ...]
    tokens: TokenCount

    def __len__(self) -> int:
        return len(self.prompts)


@dataclass(frozen=True)
class ProjectContext:
    """Optional project information injected into the provider's user prompt."""
    role: Optional[str] = None
    project_type: Optional[str] = None
    domain: Optional[str] = None
    tech_stack: Tuple[str, ...] = ()
    guidelines: Tuple[str, ...] = ()


# --- Incremental Results ---

@dataclass(frozen=True)
class ExtractedPrompt:
    """A prompt as extracted from the logs, with the fields that address it."""
    content: PromptText
    date: AnalysisDate
    project: Optional[str] = None
    timestamp: Optional[str] = None
    session_id: Optional[str] = None


@dataclass
class PromptResultMetadata:
    """Metadata stored next to a persisted prompt result."""
    date: AnalysisDate
    model: ModelName
    schema_type: SchemaType
    prompt_hash: str
    analyzed_at: int  # epoch milliseconds
    project: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "date": self.date,
            "model": self.model,
            "schemaType": self.schema_type,
            "promptHash": self.prompt_hash,
            "analyzedAt": self.analyzed_at,
        }
        if self.project is not None:
            data["project"] = self.project
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PromptResultMetadata":
        return cls(
            date=AnalysisDate(data["date"]),
            model=ModelName(data["model"]),
            schema_type=SchemaType(data["schemaType"]),
            prompt_hash=data["promptHash"],
            analyzed_at=data["analyzedAt"],
            project=data.get("project"),
        )


@dataclass
class PromptResultRecord:
    """The persisted unit of the per-prompt result store."""
    result: AnalysisResult
    metadata: PromptResultMetadata

    def to_dict(self) -> Dict[str, Any]:
        return {"result": self.result.to_dict(), "metadata": self.metadata.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PromptResultRecord":
        return cls(
            result=AnalysisResult.from_dict(data["result"]),
            metadata=PromptResultMetadata.from_dict(data["metadata"]),
        )


@dataclass
class RuleConfig:
    """User override for a single taxonomy pattern."""
    enabled: Optional[bool] = None
    severity: Optional[PatternSeverity] = None


# Pattern id -> rule override
RulesConfig = Dict[str, RuleConfig]


@dataclass
class MinimalResult:
    """Lightweight response from small models: issue ids plus a 0-100 score."""
    issues: List[str] = field(default_factory=list)
    score: float = 50
