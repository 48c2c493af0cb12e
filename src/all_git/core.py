"""
all-git: Status and bulk commands for every Git repository under a directory.

Discovers Git working trees below a root directory, reports local changes and
ahead/behind counts against the tracking and default branches together with a
recommended next action, and runs commands across all repositories at once.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Awaitable, Callable, Coroutine, Iterable
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any, TypeVar, assert_never

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn
from typer.core import TyperGroup

from ._version import __version__
from .formatters import OutputFormatter, build_status_table

logger = logging.getLogger(__name__)

T = TypeVar("T")

GIT_DIR_NAME = ".git"
DEFAULT_REMOTE = "origin"

# Two-character porcelain codes shown as their own columns
UNTRACKED = "??"
MODIFIED = " M"
DELETED = " D"

# =============================================================================
# Domain Models
# =============================================================================


class ActionKind(StrEnum):
    """Recommended next step for a repository, in priority order."""

    COMMIT = "commit"
    RESOLVE = "resolve"
    PULL = "pull"
    PUSH = "push"
    MERGE = "merge"
    PR = "pr"
    OK = "ok"


class FetchOutcome(StrEnum):
    """Result of fetching the remote before computing divergence."""

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class RepositoryRef:
    """A discovered working tree, named relative to the scan root."""

    path: Path
    name: str

    @classmethod
    def from_path(cls, path: Path, root: Path) -> RepositoryRef:
        try:
            name = str(path.relative_to(root))
        except ValueError:
            name = str(path)
        return cls(path=path, name=name)


@dataclass(frozen=True)
class FileStatusTally:
    """Changed-file counts keyed by two-character porcelain status code.

    Codes that never occurred read as zero through ``get``.
    """

    counts: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_porcelain(cls, output: str) -> FileStatusTally:
        """Tally the output of ``git status -z --porcelain=v1``.

        Rename and copy entries are followed by an extra NUL-separated field
        holding the original path; that field carries no status code.
        """
        counts: dict[str, int] = {}
        entries = iter(output.split("\0"))
        for entry in entries:
            if len(entry) <= 2:
                continue
            code = entry[:2]
            counts[code] = counts.get(code, 0) + 1
            if "R" in code or "C" in code:
                next(entries, None)
        return cls(counts)

    def get(self, code: str) -> int:
        return self.counts.get(code, 0)

    @property
    def has_changes(self) -> bool:
        return bool(self.counts)

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    @property
    def untracked(self) -> int:
        return self.get(UNTRACKED)

    @property
    def modified(self) -> int:
        return self.get(MODIFIED)

    @property
    def deleted(self) -> int:
        return self.get(DELETED)


@dataclass(frozen=True)
class Divergence:
    """Commits unique to each side of a branch comparison.

    An unknown comparison (missing ref, no upstream) is represented by
    ``None`` wherever a ``Divergence`` is expected.
    """

    behind: int
    ahead: int

    def to_dict(self) -> dict:
        return {"behind": self.behind, "ahead": self.ahead}


@dataclass(frozen=True)
class RepositoryStatus:
    """Everything collected about one repository in a single status run."""

    repository: RepositoryRef
    tally: FileStatusTally = field(default_factory=FileStatusTally)
    branch: str = ""
    remote_url: str = ""
    fetch: FetchOutcome = FetchOutcome.SKIPPED
    upstream_branch: str = ""
    upstream: Divergence | None = None
    default_branch: str = ""
    default: Divergence | None = None

    @property
    def path(self) -> Path:
        return self.repository.path

    @property
    def name(self) -> str:
        return self.repository.name

    @property
    def has_local_changes(self) -> bool:
        return self.tally.has_changes

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            "path": str(self.path),
            "name": self.name,
            "branch": self.branch,
            "remote_url": self.remote_url,
            "fetch": self.fetch.value,
            "changes": dict(self.tally.counts),
            "has_local_changes": self.has_local_changes,
            "upstream_branch": self.upstream_branch,
            "upstream": self.upstream.to_dict() if self.upstream else None,
            "default_branch": self.default_branch,
            "default": self.default.to_dict() if self.default else None,
        }


@dataclass(frozen=True)
class ActionDecision:
    """Recommended action with a human-readable explanation."""

    kind: ActionKind
    explanation: str


@dataclass(frozen=True)
class RepositoryReport:
    """A repository status paired with its recommended action."""

    status: RepositoryStatus
    action: ActionDecision

    def to_dict(self) -> dict:
        return {
            **self.status.to_dict(),
            "action": self.action.kind.value,
            "explanation": self.action.explanation,
        }


@dataclass(frozen=True)
class OperationResult:
    """Output of a command run in one repository."""

    repository: RepositoryRef
    operation: str
    output: str = ""

    @property
    def path(self) -> Path:
        return self.repository.path

    @property
    def name(self) -> str:
        return self.repository.name


@dataclass(frozen=True)
class CommandResult:
    """Captured result of an external command."""

    args: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def output(self) -> str:
        return self.stdout or self.stderr


class CommandError(Exception):
    """An external command could not be started or exited non-zero."""

    def __init__(self, command: Iterable[str], returncode: int | None, stderr: str = ""):
        self.command = tuple(command)
        self.returncode = returncode
        self.stderr = stderr
        lines = stderr.strip().splitlines()
        if lines:
            detail = lines[0]
        elif returncode is None:
            detail = "could not be started"
        else:
            detail = f"exited with status {returncode}"
        super().__init__(f"{' '.join(self.command)}: {detail}")


class RepositoryError(Exception):
    """A repository is not in a state the requested operation can handle."""


# =============================================================================
# Command Adapter
# =============================================================================


async def run_command(
    program: str, *args: str, cwd: Path, check: bool = True
) -> CommandResult:
    """Run ``program`` in ``cwd`` and capture its output.

    Raises CommandError when the process cannot be spawned, or when it exits
    non-zero and ``check`` is set.
    """
    command = (program, *args)
    logger.debug("Running %s in %s", " ".join(command), cwd)
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            cwd=cwd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise CommandError(command, None, str(e)) from e

    stdout, stderr = await process.communicate()
    result = CommandResult(
        args=command,
        returncode=process.returncode,
        stdout=stdout.decode(errors="replace").rstrip(),
        stderr=stderr.decode(errors="replace").rstrip(),
    )
    if check and result.returncode != 0:
        raise CommandError(command, result.returncode, result.stderr)
    return result


class GitOperations:
    """Git queries and commands for a single repository."""

    def __init__(self, repo_path: Path, remote: str = DEFAULT_REMOTE):
        self.repo_path = repo_path
        self.remote = remote

    async def _run(self, *args: str, check: bool = True) -> CommandResult:
        """Run a git command in the repository."""
        return await run_command("git", *args, cwd=self.repo_path, check=check)

    async def succeeds(self, *args: str) -> bool:
        """Check whether a git command exits with status zero."""
        try:
            result = await self._run(*args, check=False)
        except CommandError:
            return False
        return result.returncode == 0

    async def get_status_porcelain(self) -> FileStatusTally:
        """Tally changed files. Failures propagate."""
        result = await self._run("status", "-z", "--porcelain=v1")
        return FileStatusTally.from_porcelain(result.stdout)

    async def get_current_branch(self) -> str:
        """Get current branch name, empty when detached or unavailable."""
        try:
            result = await self._run("rev-parse", "--abbrev-ref", "HEAD")
        except CommandError:
            return ""
        branch = result.stdout
        return "" if branch == "HEAD" else branch

    async def get_remote_url(self) -> str:
        """Get the configured URL of the remote."""
        try:
            result = await self._run("config", "--get", f"remote.{self.remote}.url")
        except CommandError:
            return ""
        return result.stdout

    async def fetch(self) -> bool:
        """Fetch the remote."""
        try:
            await self._run("fetch", self.remote)
        except CommandError as e:
            logger.debug("Fetch failed in %s: %s", self.repo_path, e)
            return False
        return True

    async def get_upstream_branch(self, branch: str) -> str:
        """Get the abbreviated upstream of ``branch``, e.g. ``origin/main``."""
        try:
            result = await self._run("rev-parse", "--abbrev-ref", f"{branch}@{{upstream}}")
        except CommandError:
            return ""
        return result.stdout

    async def get_default_branch(self) -> str:
        """Resolve the remote's default branch, e.g. ``origin/main``."""
        unresolved = f"{self.remote}/HEAD"
        try:
            result = await self._run("rev-parse", "--abbrev-ref", unresolved)
        except CommandError:
            return ""
        return "" if result.stdout == unresolved else result.stdout

    async def count_commits(self, from_ref: str, to_ref: str) -> int:
        """Count commits reachable from ``to_ref`` but not from ``from_ref``."""
        result = await self._run("log", "--oneline", f"{from_ref}..{to_ref}")
        return len([line for line in result.stdout.split("\n") if line])

    async def get_divergence(self, ref: str) -> Divergence | None:
        """Compare HEAD with ``ref``; ``None`` when either count fails."""
        counts = await asyncio.gather(
            self.count_commits("HEAD", ref),
            self.count_commits(ref, "HEAD"),
            return_exceptions=True,
        )
        for count in counts:
            if isinstance(count, CommandError):
                return None
            if isinstance(count, BaseException):
                raise count
        behind, ahead = counts
        return Divergence(behind=behind, ahead=ahead)

    async def checkout(self, branch: str, create: bool = False) -> CommandResult:
        if create:
            return await self._run("checkout", "-b", branch)
        return await self._run("checkout", branch)

    async def push(self, set_upstream: str = "") -> CommandResult:
        if set_upstream:
            return await self._run("push", "--set-upstream", self.remote, set_upstream)
        return await self._run("push")

    async def pull(self) -> CommandResult:
        return await self._run("pull")

    async def add_tracked(self) -> CommandResult:
        return await self._run("add", "--update")

    async def commit(self, message: str) -> CommandResult:
        return await self._run("commit", "-m", message)


# =============================================================================
# Repository
# =============================================================================


class GitRepository:
    """High-level interface for a single Git repository."""

    def __init__(self, ref: RepositoryRef, remote: str = DEFAULT_REMOTE):
        self.ref = ref
        self.path = ref.path
        self.name = ref.name
        self.ops = GitOperations(ref.path, remote)

    async def get_status(self, fetch_first: bool = True) -> RepositoryStatus:
        """Collect the complete repository status.

        Independent queries run concurrently; divergence queries wait for the
        branch name and default-branch resolution they depend on. A failed
        fetch does not stop divergence from being computed against the refs
        already present.
        """
        tally, branch, remote_url, fetch = await asyncio.gather(
            self.ops.get_status_porcelain(),
            self.ops.get_current_branch(),
            self.ops.get_remote_url(),
            self._fetch(fetch_first),
        )
        (upstream_branch, upstream), (default_branch, default) = await asyncio.gather(
            self._upstream_divergence(branch),
            self._default_divergence(),
        )
        return RepositoryStatus(
            repository=self.ref,
            tally=tally,
            branch=branch,
            remote_url=remote_url,
            fetch=fetch,
            upstream_branch=upstream_branch,
            upstream=upstream,
            default_branch=default_branch,
            default=default,
        )

    async def _fetch(self, enabled: bool) -> FetchOutcome:
        if not enabled:
            return FetchOutcome.SKIPPED
        if await self.ops.fetch():
            return FetchOutcome.SUCCESS
        return FetchOutcome.FAILED

    async def _upstream_divergence(self, branch: str) -> tuple[str, Divergence | None]:
        if not branch:
            return "", None
        upstream_branch, divergence = await asyncio.gather(
            self.ops.get_upstream_branch(branch),
            self.ops.get_divergence(f"{branch}@{{upstream}}"),
        )
        return upstream_branch, divergence

    async def _default_divergence(self) -> tuple[str, Divergence | None]:
        default_branch = await self.ops.get_default_branch()
        if not default_branch:
            return "", None
        return default_branch, await self.ops.get_divergence(default_branch)

    async def run(self, command: str, *args: str) -> OperationResult:
        """Run an arbitrary command in the working tree."""
        result = await run_command(command, *args, cwd=self.path)
        return OperationResult(self.ref, "run", result.stdout)

    async def create_branch(self, branch: str) -> OperationResult:
        """Create ``branch``, then push it with upstream tracking."""
        await self.ops.checkout(branch, create=True)
        result = await self.ops.push(set_upstream=branch)
        return OperationResult(self.ref, "branch", result.output)

    async def checkout(self, branch: str | None = None) -> OperationResult:
        """Check out ``branch``, or the remote's default branch when omitted."""
        if not branch:
            default_branch = await self.ops.get_default_branch()
            if not default_branch:
                raise RepositoryError(
                    f"cannot resolve default branch of remote '{self.ops.remote}'"
                )
            branch = default_branch.removeprefix(f"{self.ops.remote}/")
        result = await self.ops.checkout(branch)
        return OperationResult(self.ref, "checkout", result.output)

    async def push(self) -> OperationResult:
        result = await self.ops.push()
        return OperationResult(self.ref, "push", result.output)

    async def pull(self) -> OperationResult:
        result = await self.ops.pull()
        return OperationResult(self.ref, "pull", result.output)

    async def commit(self, message: str) -> OperationResult:
        """Stage modifications to tracked files and commit them."""
        await self.ops.add_tracked()
        if await self.ops.succeeds("diff", "--cached", "--quiet"):
            return OperationResult(self.ref, "commit", "nothing to commit")
        result = await self.ops.commit(message)
        return OperationResult(self.ref, "commit", result.output)


# =============================================================================
# Action Recommendation
# =============================================================================


def recommend_action(status: RepositoryStatus) -> ActionDecision:
    """Map a repository status to its recommended action.

    Rules are checked in priority order and the first match wins. Unknown
    divergence never counts as behind or ahead.
    """
    upstream = status.upstream or Divergence(behind=0, ahead=0)
    default = status.default or Divergence(behind=0, ahead=0)

    if status.has_local_changes:
        kind = ActionKind.COMMIT
    elif upstream.behind > 0 and upstream.ahead > 0:
        kind = ActionKind.RESOLVE
    elif upstream.behind > 0:
        kind = ActionKind.PULL
    elif upstream.ahead > 0:
        kind = ActionKind.PUSH
    elif default.behind > 0:
        kind = ActionKind.MERGE
    elif default.ahead > 0:
        kind = ActionKind.PR
    else:
        kind = ActionKind.OK

    return ActionDecision(kind=kind, explanation=explain_action(kind, status))


def explain_action(kind: ActionKind, status: RepositoryStatus) -> str:
    """Describe why ``kind`` applies and the command that resolves it."""
    branch = status.branch or "HEAD"
    upstream_branch = status.upstream_branch or f"{branch}@{{upstream}}"
    default_branch = status.default_branch or "the default branch"
    upstream = status.upstream or Divergence(behind=0, ahead=0)
    default = status.default or Divergence(behind=0, ahead=0)

    match kind:
        case ActionKind.COMMIT:
            return (
                f"{status.tally.total} changed file(s) in the working tree.\n"
                "Review with `git status`, then `git add` and `git commit` them."
            )
        case ActionKind.RESOLVE:
            return (
                f"{branch} and {upstream_branch} have diverged "
                f"({upstream.ahead} local, {upstream.behind} remote commit(s)).\n"
                f"Run `git pull` to merge {upstream_branch}, resolve conflicts, then `git push`."
            )
        case ActionKind.PULL:
            return (
                f"{upstream_branch} has {upstream.behind} commit(s) not in {branch}.\n"
                f"Run `git pull` to bring {branch} up to date."
            )
        case ActionKind.PUSH:
            return (
                f"{branch} has {upstream.ahead} commit(s) not in {upstream_branch}.\n"
                f"Run `git push` to publish them to {upstream_branch}."
            )
        case ActionKind.MERGE:
            return (
                f"{default_branch} has {default.behind} commit(s) not in {branch}.\n"
                f"Run `git merge {default_branch}` to bring {branch} up to date."
            )
        case ActionKind.PR:
            target = default_branch.partition("/")[2] or default_branch
            return (
                f"{branch} has {default.ahead} commit(s) not in {default_branch}.\n"
                f"Open a pull request from {branch} into {target}."
            )
        case ActionKind.OK:
            return "Nothing to do.\nWorking tree clean and in sync with its upstream and default branch."
        case _:
            assert_never(kind)


# =============================================================================
# Discovery
# =============================================================================


async def find_repositories(path: Path) -> list[Path]:
    """Recursively find Git working trees below ``path``.

    A directory named ``.git`` marks its parent as a working tree and stops
    the descent along that branch. Sibling directories are gathered as separate
    tasks, but ``os.scandir`` blocks the event loop, so sibling scans do not
    overlap in time. Symlinked directories are followed without cycle detection.
    """
    if path.name == GIT_DIR_NAME:
        return [path.parent]

    with os.scandir(path) as entries:
        subdirectories = [Path(entry.path) for entry in entries if entry.is_dir()]

    found = await asyncio.gather(*(find_repositories(d) for d in subdirectories))
    return [repo for repos in found for repo in repos]


# =============================================================================
# Fleet Manager
# =============================================================================


class FleetManager:
    """Run operations across every repository under a root directory."""

    def __init__(
        self,
        root_path: Path,
        *,
        remote: str = DEFAULT_REMOTE,
        max_concurrency: int = 0,
    ):
        self.root_path = root_path.resolve()
        self.remote = remote
        self.max_concurrency = max_concurrency
        self._repositories: list[GitRepository] | None = None

    async def discover_repositories(self) -> list[GitRepository]:
        """Discover all Git repositories under root path."""
        if self._repositories is not None:
            return self._repositories

        paths = await find_repositories(self.root_path)
        self._repositories = [
            GitRepository(RepositoryRef.from_path(path, self.root_path), remote=self.remote)
            for path in paths
        ]
        logger.debug("Found %d repositories under %s", len(self._repositories), self.root_path)
        return self._repositories

    async def for_each_repository(
        self, operation: Callable[[GitRepository], Awaitable[T]]
    ) -> list[T]:
        """Run ``operation`` on every repository concurrently.

        A repository whose operation raises is logged and left out of the
        results; the others are unaffected. Results keep discovery order.
        """
        repos = await self.discover_repositories()
        limiter = asyncio.Semaphore(self.max_concurrency) if self.max_concurrency > 0 else None

        async def guarded(repo: GitRepository) -> T | None:
            try:
                if limiter is None:
                    return await operation(repo)
                async with limiter:
                    return await operation(repo)
            except Exception as e:
                logger.error("%s: %s", repo.name, e)
                return None

        results = await asyncio.gather(*(guarded(repo) for repo in repos))
        return [result for result in results if result is not None]

    async def get_all_status(self, fetch_first: bool = True) -> list[RepositoryReport]:
        """Collect status and recommended action for all repositories."""

        async def report(repo: GitRepository) -> RepositoryReport:
            status = await repo.get_status(fetch_first=fetch_first)
            return RepositoryReport(status=status, action=recommend_action(status))

        return await self.for_each_repository(report)

    async def run_all(self, command: str, *args: str) -> list[OperationResult]:
        return await self.for_each_repository(lambda repo: repo.run(command, *args))

    async def create_branch_all(self, branch: str) -> list[OperationResult]:
        return await self.for_each_repository(lambda repo: repo.create_branch(branch))

    async def checkout_all(self, branch: str | None = None) -> list[OperationResult]:
        return await self.for_each_repository(lambda repo: repo.checkout(branch))

    async def push_all(self) -> list[OperationResult]:
        return await self.for_each_repository(lambda repo: repo.push())

    async def pull_all(self) -> list[OperationResult]:
        return await self.for_each_repository(lambda repo: repo.pull())

    async def commit_all(self, message: str) -> list[OperationResult]:
        return await self.for_each_repository(lambda repo: repo.commit(message))


# =============================================================================
# Configuration
# =============================================================================


@dataclass
class FleetSettings:
    """Options shared by every command."""

    root: Path = Path(".")
    remote: str = DEFAULT_REMOTE
    jobs: int = 0

    def create_fleet(self) -> FleetManager:
        return FleetManager(self.root, remote=self.remote, max_concurrency=self.jobs)


def configure_logging(verbose: bool = False) -> None:
    """Route package logging to stderr through rich."""
    package_logger = logging.getLogger("all_git")
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if not any(isinstance(h, RichHandler) for h in package_logger.handlers):
        package_logger.addHandler(
            RichHandler(console=err_console, show_time=False, show_path=False, markup=False)
        )


# =============================================================================
# CLI Application
# =============================================================================


err_console = Console(stderr=True)


class FallbackGroup(TyperGroup):
    """Command group that sends unknown command names to ``help``."""

    def resolve_command(self, ctx: typer.Context, args: list[str]) -> tuple[str | None, Any, list[str]]:
        # help takes at most one argument; anything after it is dropped
        if args and args[0] not in self.commands:
            return "help", self.commands["help"], args[1:2]
        return super().resolve_command(ctx, args)


app = typer.Typer(
    name="all-git",
    cls=FallbackGroup,
    help="Status and bulk commands for every Git repository under a directory.",
)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        print(f"all-git {__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    root: Path = typer.Option(
        Path("."),
        "--root",
        "-C",
        envvar="ALL_GIT_ROOT",
        help="Directory to scan for repositories",
    ),
    remote: str = typer.Option(
        DEFAULT_REMOTE,
        "--remote",
        envvar="ALL_GIT_REMOTE",
        help="Remote used for URLs, fetch, default branch and new-branch push",
    ),
    jobs: int = typer.Option(
        0,
        "--jobs",
        envvar="ALL_GIT_JOBS",
        min=0,
        help="Maximum repositories processed at once (0 = no limit)",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log every command that is run",
    ),
):
    """all-git: Status and bulk commands for every Git repository under a directory."""
    configure_logging(verbose)
    ctx.obj = FleetSettings(root=root, remote=remote, jobs=jobs)

    if ctx.invoked_subcommand is None:
        print_command_summary(ctx)


def get_console_and_formatter(json_output: bool = False) -> tuple[Console, OutputFormatter]:
    """Create console and formatter."""
    console = Console(highlight=False)
    formatter = OutputFormatter(console, use_json=json_output)
    return console, formatter


def run_fleet(operation: Coroutine[Any, Any, T]) -> T:
    """Run a fleet coroutine, turning fatal errors into a non-zero exit."""
    try:
        return asyncio.run(operation)
    except (CommandError, RepositoryError, OSError) as e:
        err_console.print(f"[red]Error: {escape(str(e))}[/]")
        raise typer.Exit(1)


def command_usage(command: Any) -> str:
    """Build a one-line usage string from a command's parameters.

    Parameters are told apart by ``param_type_name`` ("option" or
    "argument") so this works whichever click build typer is running on.
    """
    params = getattr(command, "params", [])
    pieces = []
    if any(param.param_type_name == "option" for param in params):
        pieces.append("[OPTIONS]")
    for param in params:
        if param.param_type_name == "argument":
            pieces.append(param.metavar or (param.name or "").upper())
    return " ".join(pieces)


def list_commands(ctx: typer.Context) -> dict[str, Any]:
    """Commands registered on the root command group, by name."""
    return dict(getattr(ctx.find_root().command, "commands", {}))


def print_command_summary(ctx: typer.Context) -> None:
    for name, command in list_commands(ctx).items():
        typer.echo(f"all-git {name} {command_usage(command)}".rstrip())


@app.command()
def status(
    ctx: typer.Context,
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON",
    ),
    no_fetch: bool = typer.Option(
        False,
        "--no-fetch",
        help="Skip fetching before computing ahead/behind counts",
    ),
):
    """Show local changes, divergence and the recommended action per repository."""
    settings: FleetSettings = ctx.obj
    console, formatter = get_console_and_formatter(json_output)
    fleet = settings.create_fleet()

    if not json_output:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task(
                "Fetching and analyzing..." if not no_fetch else "Analyzing...",
                total=None,
            )
            reports = run_fleet(fleet.get_all_status(fetch_first=not no_fetch))
    else:
        reports = run_fleet(fleet.get_all_status(fetch_first=not no_fetch))

    formatter.print_status_table(build_status_table(reports))


@app.command(
    context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False}
)
def run(
    ctx: typer.Context,
    command: str = typer.Argument(..., metavar="<command>", help="Program to run"),
    args: list[str] = typer.Argument(None, metavar="<args>...", help="Arguments for the program"),
):
    """Run a command in each repository, e.g. `all-git run jq .version package.json`."""
    settings: FleetSettings = ctx.obj
    _, formatter = get_console_and_formatter()
    results = run_fleet(settings.create_fleet().run_all(command, *(args or [])))
    formatter.print_operation_results(results)


@app.command()
def branch(
    ctx: typer.Context,
    name: str = typer.Argument(..., metavar="<new-branch-name>", help="Branch to create"),
):
    """Create a branch in each repository and push it with upstream tracking."""
    settings: FleetSettings = ctx.obj
    _, formatter = get_console_and_formatter()
    results = run_fleet(settings.create_fleet().create_branch_all(name))
    formatter.print_operation_results(results)


@app.command()
def checkout(
    ctx: typer.Context,
    name: str = typer.Argument(
        None,
        metavar="[<branch-name>]",
        help="Branch to switch to (default: each repository's default branch)",
    ),
):
    """Switch every repository to a branch, or to its own default branch."""
    settings: FleetSettings = ctx.obj
    _, formatter = get_console_and_formatter()
    results = run_fleet(settings.create_fleet().checkout_all(name))
    formatter.print_operation_results(results)


@app.command()
def push(ctx: typer.Context):
    """Push every repository."""
    settings: FleetSettings = ctx.obj
    _, formatter = get_console_and_formatter()
    results = run_fleet(settings.create_fleet().push_all())
    formatter.print_operation_results(results)


@app.command()
def pull(ctx: typer.Context):
    """Pull every repository."""
    settings: FleetSettings = ctx.obj
    _, formatter = get_console_and_formatter()
    results = run_fleet(settings.create_fleet().pull_all())
    formatter.print_operation_results(results)


@app.command()
def commit(
    ctx: typer.Context,
    message: str = typer.Argument(..., metavar="<message>", help="Commit message"),
):
    """Stage modifications to tracked files and commit them in every repository."""
    settings: FleetSettings = ctx.obj
    _, formatter = get_console_and_formatter()
    results = run_fleet(settings.create_fleet().commit_all(message))
    formatter.print_operation_results(results)


@app.command(name="help")
def help_command(
    ctx: typer.Context,
    command: str = typer.Argument(None, metavar="[<command>]", help="Command to describe"),
):
    """Get help on a command. Omit for a summary of all commands."""
    if not command:
        print_command_summary(ctx)
        return

    target = list_commands(ctx).get(command)
    if target is None:
        typer.echo("Subcommand not known")
        print_command_summary(ctx)
        return

    typer.echo(f"all-git {command} {command_usage(target)}".rstrip())
    typer.echo(target.help or "")
