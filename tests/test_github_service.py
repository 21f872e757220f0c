import httpx
import pytest

from app.config import settings
from app.services.github_service import GitHubService
from app.services.service_errors import ServiceError


def _service(handler):
    return GitHubService(transport=httpx.MockTransport(handler))


def test_build_clone_url_uses_request_token_and_encodes():
    svc = GitHubService()
    url = svc._build_clone_url("acme", "private-repo", "ghp_tok/en+space")
    assert "x-access-token:" in url
    assert "ghp_tok%2Fen%2Bspace" in url
    assert url.endswith("@github.com/acme/private-repo.git")


def test_build_headers_uses_request_token_over_env(monkeypatch):
    monkeypatch.setattr(settings, "github_token", "env_token")
    headers = GitHubService()._build_headers("req_token")
    assert headers["Authorization"] == "Bearer req_token"


def test_build_headers_without_token_has_no_auth_header(monkeypatch):
    monkeypatch.setattr(settings, "github_token", "")
    headers = GitHubService()._build_headers(None)
    assert "Authorization" not in headers


def test_parse_repo_url_rejects_non_github():
    with pytest.raises(ServiceError) as exc_info:
        GitHubService()._parse_repo_url("https://gitlab.com/acme/shop")
    assert exc_info.value.code == "invalid_repo_url"


def test_fetch_pr_data_paginates_files():
    pages = {
        "1": [{"filename": f"src/f{i}.py", "additions": 1, "deletions": 0} for i in range(100)],
        "2": [{"filename": "src/payments/last.py", "additions": 5, "deletions": 7, "patch": "@@"}],
    }

    def handler(request):
        path = request.url.path
        if path == "/repos/acme/shop/pulls/3":
            return httpx.Response(200, json={"title": "Refactor checkout", "body": None})
        if path == "/repos/acme/shop/pulls/3/files":
            return httpx.Response(200, json=pages[request.url.params["page"]])
        if path == "/repos/acme/shop/pulls/3/commits":
            return httpx.Response(200, json=[{"commit": {"message": "refactor: checkout\n"}}, {"commit": {}}])
        return httpx.Response(500)

    data = _service(handler).fetch_pr_data("https://github.com/acme/shop", 3)

    assert data["title"] == "Refactor checkout"
    assert data["body"] == ""
    assert data["commit_messages"] == ["refactor: checkout"]
    assert len(data["changed_files"]) == 101
    assert data["changed_files"][-1] == {
        "path": "src/payments/last.py",
        "additions": 5,
        "deletions": 7,
        "patch": "@@",
    }


def test_fetch_pr_data_not_found_does_not_clone(monkeypatch):
    svc = _service(lambda request: httpx.Response(404))

    def _no_clone(*args, **kwargs):
        raise AssertionError("git fallback should not run")

    monkeypatch.setattr(svc, "_fetch_pr_data_via_git", _no_clone)

    with pytest.raises(ServiceError) as exc_info:
        svc.fetch_pr_data("https://github.com/acme/shop", 99)
    assert exc_info.value.status_code == 404
    assert exc_info.value.code == "pr_not_found"


def test_fetch_pr_data_access_denied():
    svc = _service(lambda request: httpx.Response(403))
    with pytest.raises(ServiceError) as exc_info:
        svc.fetch_pr_data("https://github.com/acme/private", 1)
    assert exc_info.value.code == "github_access_denied"


def test_fetch_pr_data_falls_back_to_git_on_api_error(monkeypatch):
    svc = _service(lambda request: httpx.Response(502))
    fallback = {"pr_number": 5, "title": "PR #5", "body": "", "commit_messages": [], "changed_files": []}
    monkeypatch.setattr(svc, "_fetch_pr_data_via_git", lambda owner, repo, pr, token: fallback)

    assert svc.fetch_pr_data("https://github.com/acme/shop", 5) is fallback


def test_fetch_pr_data_falls_back_when_unreachable(monkeypatch):
    def handler(request):
        raise httpx.ConnectError("boom", request=request)

    svc = _service(handler)
    calls = []
    monkeypatch.setattr(svc, "_fetch_pr_data_via_git", lambda owner, repo, pr, token: calls.append(owner) or {})

    svc.fetch_pr_data("https://github.com/acme/shop", 5)
    assert calls == ["acme"]


def test_fetch_repo_info_with_collaborators():
    def handler(request):
        if request.url.path == "/repos/acme/shop":
            return httpx.Response(
                200,
                json={
                    "full_name": "acme/shop",
                    "stargazers_count": 12,
                    "open_issues_count": 3,
                    "forks_count": 4,
                    "watchers_count": 12,
                },
            )
        if request.url.path == "/repos/acme/shop/collaborators":
            return httpx.Response(200, json=[{"login": "a"}, {"login": "b"}])
        return httpx.Response(500)

    info = _service(handler).fetch_repo_info("https://github.com/acme/shop", include_collaborators=True)

    assert info == {
        "full_name": "acme/shop",
        "stars": 12,
        "open_issues": 3,
        "forks": 4,
        "watchers": 12,
        "collaborators": 2,
    }


def test_fetch_repo_info_not_found():
    with pytest.raises(ServiceError) as exc_info:
        _service(lambda request: httpx.Response(404)).fetch_repo_info("https://github.com/acme/gone")
    assert exc_info.value.code == "repo_not_found"


def test_fetch_repo_info_unreachable():
    def handler(request):
        raise httpx.ConnectTimeout("slow", request=request)

    with pytest.raises(ServiceError) as exc_info:
        _service(handler).fetch_repo_info("https://github.com/acme/shop")
    assert exc_info.value.code == "github_api_unreachable"
    assert exc_info.value.status_code == 502


def _commit_file(repo, path, text, message):
    from git import Actor

    path.write_text(text, encoding="utf-8")
    repo.index.add([str(path)])
    actor = Actor("Release Bot", "bot@example.com")
    return repo.index.commit(message, author=actor, committer=actor)


def test_git_fallback_counts_lines_from_parent_to_pr_head(tmp_path, monkeypatch):
    from git import Repo

    origin_dir = tmp_path / "origin"
    origin_dir.mkdir()
    origin = Repo.init(str(origin_dir))
    source = origin_dir / "checkout.sql"
    base = _commit_file(origin, source, "select 1;\n-- legacy note\n", "base")
    pr_head = _commit_file(
        origin,
        source,
        "select 1;\nselect 2;\nselect 3;\n--- banner\n",
        "feat: more queries",
    )
    origin.git.update_ref("refs/pull/1/head", pr_head.hexsha)
    origin.head.reset(base, index=True, working_tree=True)

    svc = GitHubService()
    monkeypatch.setattr(svc, "_build_clone_url", lambda owner, repo, token: origin_dir.as_uri())

    data = svc._fetch_pr_data_via_git("acme", "shop", 1, None)

    assert data["commit_messages"][0] == "feat: more queries"
    assert len(data["changed_files"]) == 1
    changed = data["changed_files"][0]
    assert changed["path"] == "checkout.sql"
    # "-- legacy note" removed; two queries and "--- banner" added
    assert (changed["additions"], changed["deletions"]) == (3, 1)
