import logging
from typing import Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from app.agents.risk_engine import RiskEngine
from app.config import settings
from app.models.risk import RiskAssessment, ScoringConfig
from app.models.schemas import (
    AnalyzePRRequest,
    AssessmentResponse,
    AssessRequest,
    ChangeSet,
    DeploymentConfig,
    LoginRequest,
    LoginResponse,
    RepoInfo,
    ScoringOverrides,
    ValidateInputsRequest,
)
from app.services.github_service import GitHubService
from app.services.input_validation import validate_deployment_inputs
from app.services.metrics_provider import GitHubMetricsProvider, StaticMetricsProvider
from app.services.reporting import assessment_outputs
from app.services.service_errors import ServiceError
from app.utils.logging_utils import configure_logging
from app.utils.security import authenticate, create_access_token, get_current_user

configure_logging()
logger = logging.getLogger("deploy-risk")

limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])

app = FastAPI(title="Deployment Risk Scoring Service")
app.state.limiter = limiter
allowed_origins = [origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_exception_handler(
    RateLimitExceeded,
    lambda request, exc: JSONResponse(status_code=429, content={"detail": "Rate limit exceeded", "code": "rate_limited"}),
)
app.add_middleware(SlowAPIMiddleware)


github_service = GitHubService()


def _http_error(exc: ServiceError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.to_detail())


def _engine_for(overrides: ScoringOverrides) -> RiskEngine:
    config = ScoringConfig.build(
        files_changed_threshold=overrides.files_changed_threshold,
        lines_changed_threshold=overrides.lines_changed_threshold,
        critical_paths=overrides.critical_paths,
        base=ScoringConfig.from_settings(settings),
    )
    return RiskEngine(config)


def _require_complete_metrics(change_set: ChangeSet) -> None:
    totals = change_set.totals()
    missing = sorted(key for key, value in totals.items() if value is None)
    if missing and not settings.allow_synthetic_metrics:
        raise HTTPException(
            status_code=422,
            detail={
                "message": f"Change metrics incomplete: missing {', '.join(missing)}",
                "code": "incomplete_metrics",
            },
        )


def _to_response(assessment: RiskAssessment, changed_files: List[str]) -> AssessmentResponse:
    if assessment.blocked:
        logger.warning("Critical deployment risk", extra={"score": assessment.score})
    return AssessmentResponse(
        score=assessment.score,
        level=assessment.level.value,
        recommendation=assessment.recommendation,
        approvalRequirement=assessment.approval_requirement,
        blocked=assessment.blocked,
        changedFiles=changed_files,
        analysis=assessment.analysis(),
        outputs=assessment_outputs(assessment),
    )


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/auth/login", response_model=LoginResponse)
def login(payload: LoginRequest) -> LoginResponse:
    if not authenticate(payload.username, payload.password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    token = create_access_token(payload.username)
    return LoginResponse(access_token=token)


@app.post("/assess", response_model=AssessmentResponse)
@limiter.limit(settings.rate_limit)
def assess(request: Request, payload: AssessRequest, user: str = Depends(get_current_user)) -> AssessmentResponse:
    logger.info("Assess request", extra={"user": user, "paths": len(payload.changed_paths)})
    try:
        engine = _engine_for(payload)
        change_set = StaticMetricsProvider(
            files_changed=payload.files_changed,
            additions=payload.additions,
            deletions=payload.deletions,
            changed_paths=payload.changed_paths,
        ).fetch()
    except ServiceError as exc:
        raise _http_error(exc) from exc
    _require_complete_metrics(change_set)

    return _to_response(engine.assess_change_set(change_set), change_set.paths)


@app.post("/analyze-pr", response_model=AssessmentResponse)
@limiter.limit(settings.rate_limit)
def analyze_pr(request: Request, payload: AnalyzePRRequest, user: str = Depends(get_current_user)) -> AssessmentResponse:
    logger.info("Analyze PR request", extra={"user": user, "pr": payload.pr_number, "repo": str(payload.repo_url)})

    try:
        engine = _engine_for(payload)
        provider = GitHubMetricsProvider(github_service, str(payload.repo_url), payload.pr_number, payload.github_token)
        change_set = provider.fetch()
    except ServiceError as exc:
        logger.warning("PR assessment failed", extra={"error": exc.message, "code": exc.code})
        raise _http_error(exc) from exc
    if not change_set.changed_files:
        raise HTTPException(
            status_code=422,
            detail={"message": "PR has no changed files to analyze", "code": "no_changed_files"},
        )

    return _to_response(engine.assess_change_set(change_set), change_set.paths)


@app.post("/validate-inputs", response_model=DeploymentConfig)
def validate_inputs(payload: ValidateInputsRequest, user: str = Depends(get_current_user)) -> DeploymentConfig:
    try:
        return validate_deployment_inputs(payload.environment, payload.version, payload.port, payload.enable_ssl)
    except ServiceError as exc:
        raise _http_error(exc) from exc


@app.get("/repo-info", response_model=RepoInfo)
def repo_info(
    repo_url: str,
    include_collaborators: bool = Query(default=False),
    github_token: Optional[str] = Query(default=None),
    user: str = Depends(get_current_user),
) -> RepoInfo:
    try:
        info = github_service.fetch_repo_info(repo_url, github_token, include_collaborators)
    except ServiceError as exc:
        raise _http_error(exc) from exc
    return RepoInfo(**info)
