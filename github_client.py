"""GitHub REST API client.

A thin async wrapper over the endpoints the tools need. Every call is
scoped to the configured owner's repositories and authenticated with a
personal access token. No retries: failures surface as GitHubAPIError.
"""

import logging
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"


class GitHubAPIError(Exception):
    """A GitHub API request returned an error status."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class GitHubClient:
    def __init__(
        self,
        token: str,
        owner: str,
        base_url: str = GITHUB_API_URL,
        transport: httpx.AsyncBaseTransport = None,
        timeout: float = 30.0,
    ):
        self.token = token
        self.owner = owner
        self.base_url = base_url.rstrip("/")
        self._transport = transport
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self.token}",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        json: Optional[dict[str, Any]] = None,
    ) -> Any:
        # GitHub treats an empty query value differently from an absent one
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        if json:
            json = {k: v for k, v in json.items() if v is not None}

        async with httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers(),
            transport=self._transport,
            timeout=self._timeout,
        ) as client:
            response = await client.request(method, path, params=params, json=json)

        if response.status_code >= 400:
            try:
                message = response.json().get("message") or response.text
            except ValueError:
                message = response.text
            logger.warning(f"[GITHUB] {method} {path} failed: {response.status_code} {message}")
            raise GitHubAPIError(response.status_code, message)

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def _repo_path(self, repo: str) -> str:
        return f"/repos/{self.owner}/{repo}"

    # Repositories

    async def list_repos(self, type: str = "owner", per_page: int = 30) -> list[dict]:
        return await self._request(
            "GET", "/user/repos",
            params={"type": type, "per_page": per_page, "sort": "updated"},
        )

    # Issues

    async def create_issue(self, repo: str, title: str, body: str = "", labels: list[str] = None) -> dict:
        return await self._request(
            "POST", f"{self._repo_path(repo)}/issues",
            json={"title": title, "body": body, "labels": labels},
        )

    async def get_issue(self, repo: str, issue_number: int) -> dict:
        return await self._request("GET", f"{self._repo_path(repo)}/issues/{issue_number}")

    async def list_issues(self, repo: str, state: str = "open", labels: str = None, per_page: int = 20) -> list[dict]:
        return await self._request(
            "GET", f"{self._repo_path(repo)}/issues",
            params={"state": state, "labels": labels, "per_page": per_page},
        )

    async def create_issue_comment(self, repo: str, issue_number: int, body: str) -> dict:
        return await self._request(
            "POST", f"{self._repo_path(repo)}/issues/{issue_number}/comments",
            json={"body": body},
        )

    async def list_issue_comments(self, repo: str, issue_number: int, per_page: int = 30) -> list[dict]:
        return await self._request(
            "GET", f"{self._repo_path(repo)}/issues/{issue_number}/comments",
            params={"per_page": per_page},
        )

    # Pull requests

    async def create_pull_request(
        self, repo: str, title: str, head: str, base: str = "main", body: str = "", draft: bool = False
    ) -> dict:
        return await self._request(
            "POST", f"{self._repo_path(repo)}/pulls",
            json={"title": title, "head": head, "base": base, "body": body, "draft": draft},
        )

    async def get_pull_request(self, repo: str, pull_number: int) -> dict:
        return await self._request("GET", f"{self._repo_path(repo)}/pulls/{pull_number}")

    async def merge_pull_request(
        self,
        repo: str,
        pull_number: int,
        commit_title: str = None,
        commit_message: str = None,
        merge_method: str = "merge",
    ) -> dict:
        return await self._request(
            "PUT", f"{self._repo_path(repo)}/pulls/{pull_number}/merge",
            json={
                "commit_title": commit_title,
                "commit_message": commit_message,
                "merge_method": merge_method,
            },
        )

    async def list_pull_request_reviews(self, repo: str, pull_number: int) -> list[dict]:
        return await self._request("GET", f"{self._repo_path(repo)}/pulls/{pull_number}/reviews")

    async def list_check_runs(self, repo: str, ref: str) -> dict:
        return await self._request("GET", f"{self._repo_path(repo)}/commits/{ref}/check-runs")

    # Actions

    async def list_workflows(self, repo: str) -> dict:
        return await self._request("GET", f"{self._repo_path(repo)}/actions/workflows")

    async def list_workflow_runs(
        self,
        repo: str,
        workflow_id: str = None,
        branch: str = None,
        status: str = None,
        per_page: int = 10,
    ) -> dict:
        if workflow_id:
            path = f"{self._repo_path(repo)}/actions/workflows/{workflow_id}/runs"
        else:
            path = f"{self._repo_path(repo)}/actions/runs"
        return await self._request(
            "GET", path,
            params={"branch": branch, "status": status, "per_page": per_page},
        )

    async def get_workflow_run(self, repo: str, run_id: int) -> dict:
        return await self._request("GET", f"{self._repo_path(repo)}/actions/runs/{run_id}")

    async def list_workflow_run_jobs(self, repo: str, run_id: int) -> dict:
        return await self._request("GET", f"{self._repo_path(repo)}/actions/runs/{run_id}/jobs")

    async def rerun_workflow(self, repo: str, run_id: int) -> None:
        await self._request("POST", f"{self._repo_path(repo)}/actions/runs/{run_id}/rerun")

    async def rerun_failed_jobs(self, repo: str, run_id: int) -> None:
        await self._request("POST", f"{self._repo_path(repo)}/actions/runs/{run_id}/rerun-failed-jobs")
