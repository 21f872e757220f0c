import logging
import math
from typing import Iterable, List, Optional, Sequence, Tuple

from app.models.risk import ChangeMetrics, Impact, RiskAssessment, RiskFactor, RiskLevel, ScoringConfig
from app.models.schemas import ChangeSet
from app.services.metrics_provider import SyntheticMetricsProvider
from app.services.service_errors import ConfigurationError

logger = logging.getLogger(__name__)

FILES_CHANGED = "Files Changed"
LINES_CHANGED = "Lines Changed"
CRITICAL_PATHS = "Critical Paths"
DELETION_RATIO = "Deletion Ratio"


def normalize_metrics(
    files_changed: Optional[int] = None,
    additions: Optional[int] = None,
    deletions: Optional[int] = None,
    fallback: Optional[SyntheticMetricsProvider] = None,
) -> ChangeMetrics:
    """Turn possibly-missing raw counts into a complete ChangeMetrics.

    When any count is missing the whole record comes from the synthetic
    provider and is flagged as such. Negative counts are coerced to zero.
    """
    if files_changed is None or additions is None or deletions is None:
        fallback = fallback or SyntheticMetricsProvider()
        synthetic = fallback.fetch()
        logger.warning(
            "Change metrics incomplete, using synthetic values",
            extra={
                "files_changed": synthetic.files_changed,
                "additions": synthetic.additions,
                "deletions": synthetic.deletions,
            },
        )
        return ChangeMetrics(
            files_changed=synthetic.files_changed,
            additions=synthetic.additions,
            deletions=synthetic.deletions,
            synthetic=True,
        )

    return ChangeMetrics(
        files_changed=max(0, int(files_changed)),
        additions=max(0, int(additions)),
        deletions=max(0, int(deletions)),
    )


def _normalize_path(path: str) -> str:
    path = path.strip()
    while path.startswith("./"):
        path = path[2:]
    return path.lstrip("/")


def touches_critical_path(changed_paths: Iterable[str], critical_paths: Sequence[str]) -> bool:
    prefixes = [p for p in (_normalize_path(c) for c in critical_paths) if p]
    if not prefixes:
        return False
    for path in changed_paths:
        normalized = _normalize_path(path)
        if any(normalized.startswith(prefix) for prefix in prefixes):
            return True
    return False


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class RiskEngine:
    files_weight = 30
    lines_weight = 35
    critical_path_weight = 25
    deletion_ratio_weight = 10
    deletion_ratio_limit = 0.5

    # (minimum score, level, recommendation, approval), highest first
    levels = [
        (
            75,
            RiskLevel.CRITICAL,
            "Deploy during maintenance window with full team availability",
            "VP approval required",
        ),
        (
            50,
            RiskLevel.HIGH,
            "Deploy during low-traffic hours with rollback plan ready",
            "Senior engineer approval required",
        ),
        (25, RiskLevel.MEDIUM, "Standard deployment process with monitoring", "Peer review required"),
        (0, RiskLevel.LOW, "Safe to deploy anytime", "Standard review process"),
    ]

    def __init__(self, config: Optional[ScoringConfig] = None) -> None:
        self.config = config or ScoringConfig()
        errors = []
        if self.config.files_changed_threshold <= 0:
            errors.append("files_changed_threshold must be positive")
        if self.config.lines_changed_threshold <= 0:
            errors.append("lines_changed_threshold must be positive")
        if errors:
            raise ConfigurationError("Invalid scoring configuration", errors=errors)

    def score_factors(self, metrics: ChangeMetrics, changed_paths: Sequence[str] = ()) -> Tuple[List[RiskFactor], float]:
        cfg = self.config
        factors: List[RiskFactor] = []

        files_score = min(metrics.files_changed / cfg.files_changed_threshold * self.files_weight, self.files_weight)
        factors.append(
            RiskFactor(
                name=FILES_CHANGED,
                observed_value=metrics.files_changed,
                threshold=cfg.files_changed_threshold,
                contributed_score=files_score,
                impact=Impact.HIGH if files_score > 20 else Impact.MEDIUM if files_score > 10 else Impact.LOW,
            )
        )

        lines_score = min(metrics.total_lines / cfg.lines_changed_threshold * self.lines_weight, self.lines_weight)
        factors.append(
            RiskFactor(
                name=LINES_CHANGED,
                observed_value=metrics.total_lines,
                threshold=cfg.lines_changed_threshold,
                contributed_score=lines_score,
                impact=Impact.HIGH if lines_score > 25 else Impact.MEDIUM if lines_score > 15 else Impact.LOW,
            )
        )

        if cfg.critical_paths:
            touched = touches_critical_path(changed_paths, cfg.critical_paths)
            factors.append(
                RiskFactor(
                    name=CRITICAL_PATHS,
                    observed_value=touched,
                    threshold="N/A",
                    contributed_score=self.critical_path_weight if touched else 0,
                    impact=Impact.HIGH if touched else Impact.NONE,
                )
            )

        ratio = metrics.deletions / (metrics.additions + 1)
        if ratio > self.deletion_ratio_limit:
            factors.append(
                RiskFactor(
                    name=DELETION_RATIO,
                    observed_value=round(ratio, 4),
                    threshold=self.deletion_ratio_limit,
                    contributed_score=self.deletion_ratio_weight,
                    impact=Impact.MEDIUM,
                )
            )

        return factors, sum(f.contributed_score for f in factors)

    def classify(self, raw_total: float) -> Tuple[int, RiskLevel, str, str]:
        score = max(0, min(100, round_half_up(min(raw_total, 100))))
        for minimum, level, recommendation, approval in self.levels:
            if score >= minimum:
                return score, level, recommendation, approval
        # unreachable: the last band starts at 0
        raise AssertionError(f"no risk level for score {score}")

    def assess(self, metrics: ChangeMetrics, changed_paths: Sequence[str] = ()) -> RiskAssessment:
        factors, raw_total = self.score_factors(metrics, changed_paths)
        score, level, recommendation, approval = self.classify(raw_total)
        logger.info(
            "Risk assessed",
            extra={"score": score, "level": level.value, "raw_total": round(raw_total, 2), "synthetic": metrics.synthetic},
        )
        return RiskAssessment(
            score=score,
            level=level,
            factors=tuple(factors),
            metrics=metrics,
            recommendation=recommendation,
            approval_requirement=approval,
        )

    def assess_change_set(
        self, change_set: ChangeSet, fallback: Optional[SyntheticMetricsProvider] = None
    ) -> RiskAssessment:
        metrics = normalize_metrics(fallback=fallback, **change_set.totals())
        if change_set.synthetic and not metrics.synthetic:
            metrics = metrics.model_copy(update={"synthetic": True})
        return self.assess(metrics, change_set.paths)
