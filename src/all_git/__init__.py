"""all-git: Status and bulk commands for every Git repository under a directory."""

from ._version import __version__
from .core import (
    ActionDecision,
    ActionKind,
    CommandError,
    CommandResult,
    Divergence,
    FetchOutcome,
    FileStatusTally,
    FleetManager,
    FleetSettings,
    GitOperations,
    GitRepository,
    OperationResult,
    RepositoryError,
    RepositoryRef,
    RepositoryReport,
    RepositoryStatus,
    app,
    find_repositories,
    recommend_action,
    run_command,
)
from .formatters import OutputFormatter, StatusTable, build_status_table, common_prefix

__all__ = [
    # Version
    "__version__",
    # CLI
    "app",
    "FleetSettings",
    # Models
    "ActionDecision",
    "ActionKind",
    "CommandResult",
    "Divergence",
    "FetchOutcome",
    "FileStatusTally",
    "OperationResult",
    "RepositoryRef",
    "RepositoryReport",
    "RepositoryStatus",
    "StatusTable",
    # Errors
    "CommandError",
    "RepositoryError",
    # Operations
    "FleetManager",
    "GitOperations",
    "GitRepository",
    # Functions
    "build_status_table",
    "common_prefix",
    "find_repositories",
    "recommend_action",
    "run_command",
    # Formatters
    "OutputFormatter",
]
