import logging
import random
import re
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Sequence, Tuple

from app.models.schemas import ChangedFile, ChangeSet
from app.services.service_errors import ServiceError

logger = logging.getLogger(__name__)


class MetricsProvider(ABC):
    """Source of change-set data for the risk engine."""

    @abstractmethod
    def fetch(self) -> ChangeSet:
        raise NotImplementedError


class StaticMetricsProvider(MetricsProvider):
    def __init__(
        self,
        files_changed: Optional[int] = None,
        additions: Optional[int] = None,
        deletions: Optional[int] = None,
        changed_paths: Sequence[str] = (),
    ) -> None:
        self.files_changed = files_changed
        self.additions = additions
        self.deletions = deletions
        self.changed_paths = list(changed_paths)

    def fetch(self) -> ChangeSet:
        return ChangeSet(
            source="static",
            changed_files=[ChangedFile(path=p) for p in self.changed_paths],
            files_changed=self.files_changed,
            additions=self.additions,
            deletions=self.deletions,
        )


class SyntheticMetricsProvider(MetricsProvider):
    """Bounded pseudo-random counts for demo runs. Results are not deterministic unless seeded."""

    files_range = (1, 30)
    additions_range = (50, 449)
    deletions_range = (20, 219)

    def __init__(self, rng: Optional[random.Random] = None, seed: Optional[int] = None) -> None:
        self.rng = rng or random.Random(seed)

    def fetch(self) -> ChangeSet:
        return ChangeSet(
            source="synthetic",
            title="Synthetic change set",
            files_changed=self.rng.randint(*self.files_range),
            additions=self.rng.randint(*self.additions_range),
            deletions=self.rng.randint(*self.deletions_range),
            synthetic=True,
        )


class GitHubMetricsProvider(MetricsProvider):
    def __init__(self, github_service, repo_url: str, pr_number: int, github_token: Optional[str] = None) -> None:
        self.github_service = github_service
        self.repo_url = repo_url
        self.pr_number = pr_number
        self.github_token = github_token

    def fetch(self) -> ChangeSet:
        pr_data = self.github_service.fetch_pr_data(self.repo_url, self.pr_number, self.github_token)
        return ChangeSet(
            source="github",
            title=pr_data.get("title", ""),
            commit_messages=pr_data.get("commit_messages", []),
            changed_files=[ChangedFile(**f) for f in pr_data.get("changed_files", [])],
        )


class PatchFileMetricsProvider(MetricsProvider):
    def __init__(self, patch_file: str) -> None:
        self.patch_file = patch_file

    def fetch(self) -> ChangeSet:
        try:
            with open(self.patch_file, "r", encoding="utf-8") as f:
                patch_text = f.read()
        except (OSError, UnicodeDecodeError) as exc:
            raise ServiceError(
                f"Unable to read patch file: {self.patch_file}",
                status_code=400,
                code="patch_unreadable",
            ) from exc

        files = parse_unified_diff(patch_text)
        logger.info("Parsed patch file", extra={"patch_file": self.patch_file, "files": len(files)})
        return ChangeSet(source="patch", title=self.patch_file, changed_files=files)


DIFF_HEADER = re.compile(r'^diff --git "?a/(?P<a>.+?)"? "?b/(?P<b>.+?)"?$')


def _header_path(line: str, prefix: str) -> Optional[str]:
    path = line[4:].split("\t")[0].strip().strip('"')
    if path == "/dev/null":
        return None
    return path[len(prefix):] if path.startswith(prefix) else path


def count_hunk_lines(patch_lines: Iterable[str]) -> Tuple[int, int]:
    """Count added and removed lines inside @@ hunks; file headers are skipped."""
    additions = 0
    deletions = 0
    in_hunk = False
    for line in patch_lines:
        if line.startswith("@@"):
            in_hunk = True
        elif not in_hunk:
            continue
        elif line.startswith("+"):
            additions += 1
        elif line.startswith("-"):
            deletions += 1
    return additions, deletions


def parse_unified_diff(patch_text: str) -> List[ChangedFile]:
    files: List[ChangedFile] = []
    blocks: List[List[str]] = []

    for line in patch_text.splitlines():
        if line.startswith("diff --git"):
            blocks.append([line])
        elif blocks:
            blocks[-1].append(line)

    for block in blocks:
        match = DIFF_HEADER.match(block[0])
        path = match.group("b") if match else block[0].split(" ")[-1]
        old_path = None
        for line in block[1:]:
            if line.startswith("@@"):
                break
            if line.startswith("+++ "):
                path = _header_path(line, "b/") or old_path or path
            elif line.startswith("--- "):
                old_path = _header_path(line, "a/")
        additions, deletions = count_hunk_lines(block)
        files.append(ChangedFile(path=path, additions=additions, deletions=deletions, patch="\n".join(block)))

    return files
