"""Pytest configuration and shared fixtures for all-git tests."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from all_git import core
from all_git.core import (
    ActionDecision,
    CommandError,
    CommandResult,
    Divergence,
    FileStatusTally,
    RepositoryRef,
    RepositoryReport,
    RepositoryStatus,
    recommend_action,
)

# =============================================================================
# Fake command runner
# =============================================================================


def commits(count: int) -> str:
    """One-line log output listing ``count`` commits."""
    return "\n".join(f"{index:07x} commit {index}" for index in range(count))


def git_responses(
    *,
    porcelain: str = "",
    branch: str = "main",
    url: str = "git@host:org/repo.git",
    upstream: str | None = "origin/main",
    upstream_divergence: tuple[int, int] = (0, 0),
    default: str | None = "origin/main",
    default_divergence: tuple[int, int] = (0, 0),
    fetch_ok: bool = True,
) -> dict[tuple[str, ...], str | Exception]:
    """Canned git output for one repository; omitted entries fail."""
    responses: dict[tuple[str, ...], str | Exception] = {
        ("git", "status", "-z", "--porcelain=v1"): porcelain,
        ("git", "rev-parse", "--abbrev-ref", "HEAD"): branch,
        ("git", "config", "--get", "remote.origin.url"): url,
    }
    if fetch_ok:
        responses[("git", "fetch", "origin")] = ""
    if upstream:
        ref = f"{branch}@{{upstream}}"
        behind, ahead = upstream_divergence
        responses[("git", "rev-parse", "--abbrev-ref", ref)] = upstream
        responses[("git", "log", "--oneline", f"HEAD..{ref}")] = commits(behind)
        responses[("git", "log", "--oneline", f"{ref}..HEAD")] = commits(ahead)
    if default:
        behind, ahead = default_divergence
        responses[("git", "rev-parse", "--abbrev-ref", "origin/HEAD")] = default
        responses[("git", "log", "--oneline", f"HEAD..{default}")] = commits(behind)
        responses[("git", "log", "--oneline", f"{default}..HEAD")] = commits(ahead)
    return responses


class FakeRunner:
    """Stand-in for ``run_command`` answering from canned responses per repository.

    Responses are keyed by the repository directory name; commands without a
    response fail the way git does for unknown refs.
    """

    def __init__(self, responses: dict[str, dict[tuple[str, ...], str | Exception]]):
        self.responses = responses
        self.calls: list[tuple[str, tuple[str, ...]]] = []

    async def __call__(
        self, program: str, *args: str, cwd: Path, check: bool = True
    ) -> CommandResult:
        command = (program, *args)
        self.calls.append((Path(cwd).name, command))
        response = self.responses.get(Path(cwd).name, {}).get(
            command, CommandError(command, 128, "fatal: bad revision")
        )
        if isinstance(response, CommandError):
            if check:
                raise response
            return CommandResult(command, response.returncode or 1, "", response.stderr)
        if isinstance(response, Exception):
            raise response
        return CommandResult(command, 0, response, "")

    def commands_for(self, name: str) -> list[tuple[str, ...]]:
        return [command for repo, command in self.calls if repo == name]


class SlowRunner(FakeRunner):
    """FakeRunner whose commands take ``delay`` seconds and record overlap.

    ``events`` lists ("start" | "end", command) in order; ``overlaps`` holds
    the set of commands in flight each time a command starts.
    """

    def __init__(self, responses: dict[str, dict[tuple[str, ...], str | Exception]], delay: float = 0.02):
        super().__init__(responses)
        self.delay = delay
        self.in_flight: set[tuple[str, ...]] = set()
        self.events: list[tuple[str, tuple[str, ...]]] = []
        self.overlaps: list[frozenset[tuple[str, ...]]] = []

    async def __call__(
        self, program: str, *args: str, cwd: Path, check: bool = True
    ) -> CommandResult:
        command = (program, *args)
        self.in_flight.add(command)
        self.events.append(("start", command))
        self.overlaps.append(frozenset(self.in_flight))
        try:
            await asyncio.sleep(self.delay)
            return await super().__call__(program, *args, cwd=cwd, check=check)
        finally:
            self.in_flight.discard(command)
            self.events.append(("end", command))


@pytest.fixture
def fake_runner(monkeypatch: pytest.MonkeyPatch):
    """Install a FakeRunner in place of the real subprocess runner."""

    def install(responses: dict[str, dict[tuple[str, ...], str | Exception]]) -> FakeRunner:
        runner = FakeRunner(responses)
        monkeypatch.setattr(core, "run_command", runner)
        return runner

    return install


@pytest.fixture
def repo_tree(tmp_path: Path):
    """Create working trees (directories holding ``.git``) under tmp_path."""

    def create(*names: str) -> Path:
        for name in names:
            (tmp_path / name / ".git").mkdir(parents=True)
        return tmp_path

    return create


# =============================================================================
# Status builders
# =============================================================================


def make_status(
    name: str = "repo",
    *,
    counts: dict[str, int] | None = None,
    branch: str = "main",
    remote_url: str = "git@host:org/repo.git",
    upstream: Divergence | None = Divergence(behind=0, ahead=0),
    default: Divergence | None = Divergence(behind=0, ahead=0),
) -> RepositoryStatus:
    return RepositoryStatus(
        repository=RepositoryRef(path=Path("/work") / name, name=name),
        tally=FileStatusTally(counts or {}),
        branch=branch,
        remote_url=remote_url,
        upstream_branch="origin/main" if upstream is not None else "",
        upstream=upstream,
        default_branch="origin/main" if default is not None else "",
        default=default,
    )


def make_report(status: RepositoryStatus, decision: ActionDecision | None = None) -> RepositoryReport:
    return RepositoryReport(status=status, action=decision or recommend_action(status))
