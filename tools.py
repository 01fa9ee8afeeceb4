"""MCP tools exposed by the bridge.

The catalog is closed: every tool is registered here at import time with
the @tool decorator, which records its name, description, JSON input schema
and handler in TOOLS. Handlers take the GitHub client and the call's
arguments and return JSON-serializable data shaped down from GitHub's
response.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from mcp import types

from github_client import GitHubClient

logger = logging.getLogger(__name__)

DEFAULT_ISSUE_LABELS = ["claude-task"]

Handler = Callable[[GitHubClient, dict], Awaitable[Any]]


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    input_schema: dict
    handler: Handler

    @property
    def required(self) -> list[str]:
        return self.input_schema.get("required", [])

    def check_arguments(self, arguments: dict) -> None:
        """Raise ValueError if a required argument is missing."""
        missing = [name for name in self.required if arguments.get(name) is None]
        if missing:
            raise ValueError(f"Missing required argument(s): {', '.join(missing)}")

    def to_mcp(self) -> types.Tool:
        return types.Tool(
            name=self.name,
            description=self.description,
            inputSchema=self.input_schema,
        )


TOOLS: dict[str, ToolDefinition] = {}


def tool(name: str, description: str, properties: dict, required: Optional[list[str]] = None):
    """Register a handler under name in TOOLS."""
    schema = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required

    def decorator(handler: Handler) -> Handler:
        TOOLS[name] = ToolDefinition(name, description, schema, handler)
        return handler

    return decorator


def _label_names(labels: list) -> list[str]:
    return [label if isinstance(label, str) else label.get("name") for label in labels or []]


def _login(user: Optional[dict]) -> Optional[str]:
    return user.get("login") if user else None


REPO = {"type": "string", "description": "Repository name"}
ISSUE_NUMBER = {"type": "number", "description": "Issue number"}
PULL_NUMBER = {"type": "number", "description": "PR number"}
RUN_ID = {"type": "number", "description": "Workflow run ID"}


# ============== Repositories ==============

@tool(
    "list_repos",
    "List your GitHub repositories",
    {
        "type": {
            "type": "string",
            "enum": ["all", "owner", "public", "private"],
            "description": "Type of repos to list",
            "default": "owner",
        },
        "per_page": {"type": "number", "description": "Results per page (max 100)", "default": 30},
    },
)
async def list_repos(github: GitHubClient, args: dict) -> list[dict]:
    repos = await github.list_repos(type=args.get("type") or "owner", per_page=args.get("per_page") or 30)
    return [
        {
            "name": r["name"],
            "full_name": r["full_name"],
            "description": r.get("description"),
            "private": r.get("private"),
            "url": r.get("html_url"),
        }
        for r in repos
    ]


# ============== Issues ==============

@tool(
    "create_issue",
    "Create a GitHub issue. Use this to trigger Claude Code tasks.",
    {
        "repo": {"type": "string", "description": "Repository name (without owner)"},
        "title": {"type": "string", "description": "Issue title"},
        "body": {"type": "string", "description": "Issue body/description"},
        "labels": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Labels to add (e.g., ['claude-task'])",
        },
    },
    required=["repo", "title"],
)
async def create_issue(github: GitHubClient, args: dict) -> dict:
    issue = await github.create_issue(
        args["repo"],
        title=args["title"],
        body=args.get("body") or "",
        labels=list(DEFAULT_ISSUE_LABELS) if args.get("labels") is None else args["labels"],
    )
    logger.info(f"[TOOL] Created issue #{issue['number']} in {args['repo']}")
    return {
        "number": issue["number"],
        "url": issue.get("html_url"),
        "title": issue.get("title"),
        "state": issue.get("state"),
    }


@tool(
    "get_issue",
    "Get details of a specific issue",
    {"repo": REPO, "issue_number": ISSUE_NUMBER},
    required=["repo", "issue_number"],
)
async def get_issue(github: GitHubClient, args: dict) -> dict:
    issue = await github.get_issue(args["repo"], int(args["issue_number"]))
    return {
        "number": issue["number"],
        "title": issue.get("title"),
        "body": issue.get("body"),
        "state": issue.get("state"),
        "url": issue.get("html_url"),
        "labels": _label_names(issue.get("labels")),
    }


@tool(
    "list_issues",
    "List issues in a repository",
    {
        "repo": REPO,
        "state": {"type": "string", "enum": ["open", "closed", "all"], "default": "open"},
        "labels": {"type": "string", "description": "Comma-separated label names"},
    },
    required=["repo"],
)
async def list_issues(github: GitHubClient, args: dict) -> list[dict]:
    issues = await github.list_issues(
        args["repo"],
        state=args.get("state") or "open",
        labels=args.get("labels"),
        per_page=20,
    )
    return [
        {
            "number": i["number"],
            "title": i.get("title"),
            "state": i.get("state"),
            "url": i.get("html_url"),
            "labels": _label_names(i.get("labels")),
        }
        for i in issues
    ]


@tool(
    "add_issue_comment",
    "Add a comment to an issue",
    {"repo": REPO, "issue_number": ISSUE_NUMBER, "body": {"type": "string", "description": "Comment body"}},
    required=["repo", "issue_number", "body"],
)
async def add_issue_comment(github: GitHubClient, args: dict) -> dict:
    comment = await github.create_issue_comment(args["repo"], int(args["issue_number"]), args["body"])
    return {"id": comment["id"], "url": comment.get("html_url")}


@tool(
    "list_issue_comments",
    "List comments on an issue or pull request",
    {
        "repo": REPO,
        "issue_number": {"type": "number", "description": "Issue or PR number"},
        "per_page": {"type": "number", "description": "Results per page (max 100)", "default": 30},
    },
    required=["repo", "issue_number"],
)
async def list_issue_comments(github: GitHubClient, args: dict) -> list[dict]:
    comments = await github.list_issue_comments(
        args["repo"], int(args["issue_number"]), per_page=args.get("per_page") or 30
    )
    return [
        {
            "id": c["id"],
            "user": _login(c.get("user")),
            "body": c.get("body"),
            "created_at": c.get("created_at"),
            "url": c.get("html_url"),
        }
        for c in comments
    ]


# ============== Pull requests ==============

@tool(
    "create_pull_request",
    "Create a pull request",
    {
        "repo": REPO,
        "title": {"type": "string", "description": "PR title"},
        "body": {"type": "string", "description": "PR description"},
        "head": {"type": "string", "description": "Branch containing changes (e.g., 'feature-branch')"},
        "base": {"type": "string", "description": "Branch to merge into (e.g., 'main')", "default": "main"},
        "draft": {"type": "boolean", "description": "Create as draft PR", "default": False},
    },
    required=["repo", "title", "head"],
)
async def create_pull_request(github: GitHubClient, args: dict) -> dict:
    pr = await github.create_pull_request(
        args["repo"],
        title=args["title"],
        head=args["head"],
        base=args.get("base") or "main",
        body=args.get("body") or "",
        draft=bool(args.get("draft", False)),
    )
    return {
        "number": pr["number"],
        "url": pr.get("html_url"),
        "title": pr.get("title"),
        "state": pr.get("state"),
        "head": pr["head"]["ref"],
        "base": pr["base"]["ref"],
    }


@tool(
    "merge_pull_request",
    "Merge a pull request",
    {
        "repo": REPO,
        "pull_number": PULL_NUMBER,
        "commit_title": {"type": "string", "description": "Title for the merge commit (optional)"},
        "commit_message": {"type": "string", "description": "Message for the merge commit (optional)"},
        "merge_method": {
            "type": "string",
            "enum": ["merge", "squash", "rebase"],
            "description": "Merge method to use",
            "default": "merge",
        },
    },
    required=["repo", "pull_number"],
)
async def merge_pull_request(github: GitHubClient, args: dict) -> dict:
    result = await github.merge_pull_request(
        args["repo"],
        int(args["pull_number"]),
        commit_title=args.get("commit_title"),
        commit_message=args.get("commit_message"),
        merge_method=args.get("merge_method") or "merge",
    )
    return {"merged": result.get("merged"), "message": result.get("message"), "sha": result.get("sha")}


@tool(
    "get_pull_request",
    "Get details of a specific pull request",
    {"repo": REPO, "pull_number": PULL_NUMBER},
    required=["repo", "pull_number"],
)
async def get_pull_request(github: GitHubClient, args: dict) -> dict:
    pr = await github.get_pull_request(args["repo"], int(args["pull_number"]))
    return {
        "number": pr["number"],
        "title": pr.get("title"),
        "body": pr.get("body"),
        "state": pr.get("state"),
        "draft": pr.get("draft"),
        "merged": pr.get("merged"),
        "mergeable": pr.get("mergeable"),
        "mergeable_state": pr.get("mergeable_state"),
        "head": pr["head"]["ref"],
        "base": pr["base"]["ref"],
        "user": _login(pr.get("user")),
        "url": pr.get("html_url"),
        "created_at": pr.get("created_at"),
        "updated_at": pr.get("updated_at"),
        "additions": pr.get("additions"),
        "deletions": pr.get("deletions"),
        "changed_files": pr.get("changed_files"),
    }


@tool(
    "list_pr_checks",
    "List CI check runs for a pull request",
    {"repo": REPO, "pull_number": PULL_NUMBER},
    required=["repo", "pull_number"],
)
async def list_pr_checks(github: GitHubClient, args: dict) -> dict:
    # Check runs hang off the head commit, not the PR itself
    pr = await github.get_pull_request(args["repo"], int(args["pull_number"]))
    checks = await github.list_check_runs(args["repo"], pr["head"]["sha"])
    return {
        "total_count": checks.get("total_count"),
        "checks": [
            {
                "name": c.get("name"),
                "status": c.get("status"),
                "conclusion": c.get("conclusion"),
                "started_at": c.get("started_at"),
                "completed_at": c.get("completed_at"),
                "url": c.get("html_url"),
            }
            for c in checks.get("check_runs", [])
        ],
    }


@tool(
    "list_pr_reviews",
    "List reviews on a pull request",
    {"repo": REPO, "pull_number": PULL_NUMBER},
    required=["repo", "pull_number"],
)
async def list_pr_reviews(github: GitHubClient, args: dict) -> list[dict]:
    reviews = await github.list_pull_request_reviews(args["repo"], int(args["pull_number"]))
    return [
        {
            "id": r["id"],
            "user": _login(r.get("user")),
            "state": r.get("state"),
            "body": r.get("body"),
            "submitted_at": r.get("submitted_at"),
            "url": r.get("html_url"),
        }
        for r in reviews
    ]


# ============== Actions ==============

@tool(
    "list_workflows",
    "List GitHub Actions workflows in a repository",
    {"repo": REPO},
    required=["repo"],
)
async def list_workflows(github: GitHubClient, args: dict) -> list[dict]:
    workflows = await github.list_workflows(args["repo"])
    return [
        {
            "id": w["id"],
            "name": w.get("name"),
            "path": w.get("path"),
            "state": w.get("state"),
            "url": w.get("html_url"),
        }
        for w in workflows.get("workflows", [])
    ]


@tool(
    "list_workflow_runs",
    "List recent GitHub Actions workflow runs",
    {
        "repo": REPO,
        "workflow_id": {
            "type": "string",
            "description": "Workflow ID or filename (e.g., 'ci.yml'). If omitted, lists all runs.",
        },
        "branch": {"type": "string", "description": "Filter by branch name"},
        "status": {
            "type": "string",
            "enum": [
                "completed", "action_required", "cancelled", "failure", "neutral",
                "skipped", "stale", "success", "timed_out", "in_progress",
                "queued", "requested", "waiting", "pending",
            ],
            "description": "Filter by status",
        },
        "per_page": {"type": "number", "description": "Results per page (max 100)", "default": 10},
    },
    required=["repo"],
)
async def list_workflow_runs(github: GitHubClient, args: dict) -> dict:
    runs = await github.list_workflow_runs(
        args["repo"],
        workflow_id=args.get("workflow_id"),
        branch=args.get("branch"),
        status=args.get("status"),
        per_page=args.get("per_page") or 10,
    )
    return {
        "total_count": runs.get("total_count"),
        "runs": [
            {
                "id": r["id"],
                "name": r.get("name"),
                "workflow": r.get("workflow_id"),
                "status": r.get("status"),
                "conclusion": r.get("conclusion"),
                "branch": r.get("head_branch"),
                "event": r.get("event"),
                "created_at": r.get("created_at"),
                "updated_at": r.get("updated_at"),
                "url": r.get("html_url"),
                "run_number": r.get("run_number"),
            }
            for r in runs.get("workflow_runs", [])
        ],
    }


@tool(
    "get_workflow_run",
    "Get details of a specific workflow run",
    {"repo": REPO, "run_id": RUN_ID},
    required=["repo", "run_id"],
)
async def get_workflow_run(github: GitHubClient, args: dict) -> dict:
    run = await github.get_workflow_run(args["repo"], int(args["run_id"]))
    return {
        "id": run["id"],
        "name": run.get("name"),
        "status": run.get("status"),
        "conclusion": run.get("conclusion"),
        "branch": run.get("head_branch"),
        "commit_sha": run.get("head_sha"),
        "commit_message": (run.get("head_commit") or {}).get("message"),
        "event": run.get("event"),
        "actor": _login(run.get("actor")),
        "created_at": run.get("created_at"),
        "updated_at": run.get("updated_at"),
        "run_started_at": run.get("run_started_at"),
        "url": run.get("html_url"),
        "run_number": run.get("run_number"),
        "run_attempt": run.get("run_attempt"),
    }


@tool(
    "list_workflow_run_jobs",
    "List jobs for a workflow run",
    {"repo": REPO, "run_id": RUN_ID},
    required=["repo", "run_id"],
)
async def list_workflow_run_jobs(github: GitHubClient, args: dict) -> list[dict]:
    jobs = await github.list_workflow_run_jobs(args["repo"], int(args["run_id"]))
    return [
        {
            "id": j["id"],
            "name": j.get("name"),
            "status": j.get("status"),
            "conclusion": j.get("conclusion"),
            "started_at": j.get("started_at"),
            "completed_at": j.get("completed_at"),
            "url": j.get("html_url"),
            "steps": [
                {
                    "name": s.get("name"),
                    "status": s.get("status"),
                    "conclusion": s.get("conclusion"),
                    "number": s.get("number"),
                }
                for s in j.get("steps") or []
            ],
        }
        for j in jobs.get("jobs", [])
    ]


@tool(
    "rerun_workflow",
    "Rerun all jobs in a workflow run",
    {"repo": REPO, "run_id": RUN_ID},
    required=["repo", "run_id"],
)
async def rerun_workflow(github: GitHubClient, args: dict) -> dict:
    run_id = int(args["run_id"])
    await github.rerun_workflow(args["repo"], run_id)
    return {
        "success": True,
        "message": f"Workflow run {run_id} has been queued for rerun",
        "run_id": run_id,
    }


@tool(
    "rerun_failed_jobs",
    "Rerun only the failed jobs in a workflow run",
    {"repo": REPO, "run_id": RUN_ID},
    required=["repo", "run_id"],
)
async def rerun_failed_jobs(github: GitHubClient, args: dict) -> dict:
    run_id = int(args["run_id"])
    await github.rerun_failed_jobs(args["repo"], run_id)
    return {
        "success": True,
        "message": f"Failed jobs in workflow run {run_id} have been queued for rerun",
        "run_id": run_id,
    }
