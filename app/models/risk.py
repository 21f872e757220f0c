from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from app.services.service_errors import ConfigurationError


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _LEVEL_ORDER.index(self)

    def __lt__(self, other):
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank >= other.rank


_LEVEL_ORDER = [RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH, RiskLevel.CRITICAL]


class Impact(str, Enum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def parse_critical_paths(value: Union[str, List[str], Tuple[str, ...], None]) -> Tuple[str, ...]:
    """Split a comma-separated prefix list, trimming entries and dropping empties."""
    if value is None:
        return ()
    items = value.split(",") if isinstance(value, str) else list(value)
    return tuple(item.strip() for item in items if item and item.strip())


class ScoringConfig(_Record):
    files_changed_threshold: int = Field(default=20, gt=0)
    lines_changed_threshold: int = Field(default=500, gt=0)
    critical_paths: Tuple[str, ...] = ()

    @field_validator("critical_paths", mode="before")
    @classmethod
    def _split_critical_paths(cls, value: Any) -> Tuple[str, ...]:
        return parse_critical_paths(value)

    @classmethod
    def build(
        cls,
        files_changed_threshold: Optional[int] = None,
        lines_changed_threshold: Optional[int] = None,
        critical_paths: Union[str, List[str], None] = None,
        base: Optional["ScoringConfig"] = None,
    ) -> "ScoringConfig":
        """Build a config from optional overrides, raising ConfigurationError on bad thresholds."""
        base = base or cls()
        values = {
            "files_changed_threshold": (
                base.files_changed_threshold if files_changed_threshold is None else files_changed_threshold
            ),
            "lines_changed_threshold": (
                base.lines_changed_threshold if lines_changed_threshold is None else lines_changed_threshold
            ),
            "critical_paths": base.critical_paths if critical_paths is None else critical_paths,
        }
        try:
            return cls(**values)
        except ValidationError as exc:
            errors = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()]
            raise ConfigurationError("Invalid scoring configuration", errors=errors) from exc

    @classmethod
    def from_settings(cls, settings) -> "ScoringConfig":
        return cls.build(
            files_changed_threshold=settings.files_changed_threshold,
            lines_changed_threshold=settings.lines_changed_threshold,
            critical_paths=settings.critical_paths,
        )


class ChangeMetrics(_Record):
    files_changed: int = Field(ge=0)
    additions: int = Field(ge=0)
    deletions: int = Field(ge=0)
    synthetic: bool = False

    @property
    def total_lines(self) -> int:
        return self.additions + self.deletions

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filesChanged": self.files_changed,
            "additions": self.additions,
            "deletions": self.deletions,
            "totalLines": self.total_lines,
            "synthetic": self.synthetic,
        }


class RiskFactor(_Record):
    name: str
    observed_value: Union[bool, int, float, str]
    threshold: Union[int, float, str]
    contributed_score: float = Field(ge=0)
    impact: Impact


class RiskAssessment(_Record):
    score: int = Field(ge=0, le=100)
    level: RiskLevel
    factors: Tuple[RiskFactor, ...]
    metrics: ChangeMetrics
    recommendation: str
    approval_requirement: str
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def blocked(self) -> bool:
        return self.level is RiskLevel.CRITICAL

    def factor(self, name: str) -> Optional[RiskFactor]:
        for item in self.factors:
            if item.name == name:
                return item
        return None

    def analysis(self) -> Dict[str, Any]:
        return {
            "factors": [item.model_dump(mode="json", by_alias=True) for item in self.factors],
            "metrics": self.metrics.to_dict(),
            "recommendation": self.recommendation,
            "approvalRequirement": self.approval_requirement,
            "generatedAt": self.generated_at.isoformat(),
        }
