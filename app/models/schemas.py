from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, HttpUrl


class LoginRequest(BaseModel):
    username: str = Field(min_length=3, max_length=64)
    password: str = Field(min_length=3, max_length=128)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class ChangedFile(BaseModel):
    path: str
    additions: Optional[int] = None
    deletions: Optional[int] = None
    patch: Optional[str] = None


class ChangeSet(BaseModel):
    source: str
    title: str = ""
    commit_messages: List[str] = []
    changed_files: List[ChangedFile] = []
    files_changed: Optional[int] = None
    additions: Optional[int] = None
    deletions: Optional[int] = None
    synthetic: bool = False

    @property
    def paths(self) -> List[str]:
        return [f.path for f in self.changed_files]

    def totals(self) -> Dict[str, Optional[int]]:
        """Counts from explicit totals when set, otherwise summed over changed_files.

        A line count stays None when any changed file lacks it.
        """
        files = self.changed_files
        totals: Dict[str, Optional[int]] = {
            "files_changed": self.files_changed,
            "additions": self.additions,
            "deletions": self.deletions,
        }
        if not files:
            return totals
        if totals["files_changed"] is None:
            totals["files_changed"] = len(files)
        for key in ("additions", "deletions"):
            counts = [getattr(f, key) for f in files]
            if totals[key] is None and all(c is not None for c in counts):
                totals[key] = sum(counts)
        return totals


class ScoringOverrides(BaseModel):
    files_changed_threshold: Optional[int] = None
    lines_changed_threshold: Optional[int] = None
    critical_paths: Optional[Union[str, List[str]]] = None


class AssessRequest(ScoringOverrides):
    files_changed: Optional[int] = None
    additions: Optional[int] = None
    deletions: Optional[int] = None
    changed_paths: List[str] = []


class AnalyzePRRequest(ScoringOverrides):
    repo_url: HttpUrl
    pr_number: int = Field(gt=0)
    github_token: Optional[str] = Field(default=None, min_length=1)


class AssessmentResponse(BaseModel):
    score: int
    level: str
    recommendation: str
    approvalRequirement: str
    blocked: bool
    changedFiles: List[str]
    analysis: Dict[str, Any]
    outputs: Dict[str, str]


class ValidateInputsRequest(BaseModel):
    environment: str
    version: str
    port: str = "8080"
    enable_ssl: str = "true"


class DeploymentConfig(BaseModel):
    environment: str
    version: str
    port: int
    ssl: bool
    timestamp: datetime


class RepoInfo(BaseModel):
    full_name: str
    stars: int
    open_issues: int
    forks: int
    watchers: int
    collaborators: Optional[int] = None
