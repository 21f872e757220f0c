import json
import logging
import uuid
from typing import Dict, Optional

from app.models.risk import RiskAssessment, RiskLevel

logger = logging.getLogger(__name__)

LEVEL_BADGES = {
    RiskLevel.LOW: "🟢",
    RiskLevel.MEDIUM: "🟡",
    RiskLevel.HIGH: "🟠",
    RiskLevel.CRITICAL: "🔴",
}


def assessment_outputs(assessment: RiskAssessment) -> Dict[str, str]:
    return {
        "score": str(assessment.score),
        "level": assessment.level.value,
        "recommendation": assessment.recommendation,
        "analysis": json.dumps(assessment.analysis(), sort_keys=True),
    }


def render_summary(assessment: RiskAssessment) -> str:
    badge = LEVEL_BADGES[assessment.level]
    metrics = assessment.metrics
    lines = [
        "## Deployment Risk Assessment",
        "",
        "| Metric | Value |",
        "| --- | --- |",
        f"| Risk Score | {assessment.score}/100 |",
        f"| Risk Level | {badge} {assessment.level.value.upper()} |",
        f"| Files Changed | {metrics.files_changed} |",
        f"| Lines Changed | +{metrics.additions} / -{metrics.deletions} |",
        "",
        "### Risk Factors",
        "",
        "| Factor | Value | Threshold | Score | Impact |",
        "| --- | --- | --- | --- | --- |",
    ]
    for factor in assessment.factors:
        lines.append(
            f"| {factor.name} | {factor.observed_value} | {factor.threshold} "
            f"| {factor.contributed_score:.1f} | {factor.impact.value} |"
        )
    lines += [
        "",
        f"**Recommendation:** {assessment.recommendation}",
        "",
        f"**Approval:** {assessment.approval_requirement}",
    ]
    if metrics.synthetic:
        lines += ["", "> ⚠️ Metrics are synthetic demo values; this score is not reproducible."]
    if assessment.blocked:
        lines += ["", "> ⛔ Critical risk: automated deployment halted."]
    return "\n".join(lines) + "\n"


def format_output_line(key: str, value: str, delimiter: Optional[str] = None) -> str:
    if "\n" not in value:
        return f"{key}={value}\n"
    delimiter = delimiter or f"ghadelimiter_{uuid.uuid4()}"
    return f"{key}<<{delimiter}\n{value}\n{delimiter}\n"


def write_outputs(outputs: Dict[str, str], path: str) -> None:
    with open(path, "a", encoding="utf-8") as f:
        for key, value in outputs.items():
            f.write(format_output_line(key, value))
    logger.info("Step outputs written", extra={"path": path, "keys": sorted(outputs)})


def write_summary(text: str, path: str) -> None:
    with open(path, "a", encoding="utf-8") as f:
        f.write(text)
