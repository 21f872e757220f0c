import json

from app.agents.risk_engine import RiskEngine, normalize_metrics
from app.models.risk import ChangeMetrics, ScoringConfig
from app.services.metrics_provider import SyntheticMetricsProvider
from app.services.reporting import assessment_outputs, format_output_line, render_summary, write_outputs, write_summary


def _assessment(files=10, additions=200, deletions=40, paths=(), critical=""):
    engine = RiskEngine(ScoringConfig(critical_paths=critical))
    return engine.assess(ChangeMetrics(files_changed=files, additions=additions, deletions=deletions), list(paths))


def test_outputs_are_strings():
    outputs = assessment_outputs(_assessment())

    assert set(outputs) == {"score", "level", "recommendation", "analysis"}
    assert all(isinstance(v, str) for v in outputs.values())
    assert outputs["score"].isdigit()
    analysis = json.loads(outputs["analysis"])
    assert analysis["approvalRequirement"]
    assert analysis["metrics"]["totalLines"] == 240


def test_summary_lists_factors_and_guidance():
    summary = render_summary(_assessment(paths=["src/auth/a.py"], critical="src/auth"))

    assert summary.startswith("## Deployment Risk Assessment")
    assert "| Critical Paths | True | N/A | 25.0 | high |" in summary
    assert "**Recommendation:**" in summary
    assert "**Approval:**" in summary
    assert "synthetic" not in summary


def test_summary_flags_synthetic_and_blocked():
    synthetic = render_summary(RiskEngine().assess(normalize_metrics(fallback=SyntheticMetricsProvider(seed=1))))
    assert "synthetic demo values" in synthetic

    blocked = render_summary(_assessment(files=20, additions=100, deletions=400, paths=["pay/x"], critical="pay"))
    assert "automated deployment halted" in blocked


def test_multiline_output_uses_delimiter():
    assert format_output_line("score", "42") == "score=42\n"
    assert format_output_line("notes", "a\nb", delimiter="EOF") == "notes<<EOF\na\nb\nEOF\n"


def test_write_outputs_and_summary_append(tmp_path):
    out = tmp_path / "output"
    out.write_text("existing=1\n", encoding="utf-8")
    write_outputs({"score": "5", "level": "low"}, str(out))
    assert out.read_text(encoding="utf-8") == "existing=1\nscore=5\nlevel=low\n"

    summary = tmp_path / "summary.md"
    write_summary("# one\n", str(summary))
    write_summary("# two\n", str(summary))
    assert summary.read_text(encoding="utf-8") == "# one\n# two\n"
