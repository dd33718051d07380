# region Docstring
"""
gitops_cli.main
The `gitops` command line.
Overview:
- One command per operation plus `list-repositories` and `runs`. All repository
    commands share the organization, filter, reference, token, profile, log level and
    dry-run options.
- Each command configures logging, builds the GitHub client and the operation driver,
    runs the batch, prints the report, stores it in the run ledger and exits with 1 when
    any repository failed.
"""

# endregion
# region Imports
import re
from logging import Logger as T_Logger
from typing import Annotated, Optional

import typer
from rich.console import Console

from gitops_core.clients import GitHubClient
from gitops_core.config import GitHubSettings
from gitops_core.errors import GitOpsError
from gitops_services import OperationDriver, RepositoryFilter
from gitops_services.operations import (
    AddPackageJsonScriptOperation,
    FindAndReplaceOperation,
    InstallPackageOperation,
    Operation,
    PackageType,
    ReinstallPackageOperation,
    RemovePackageJsonScriptOperation,
    RenameFileOperation,
    UninstallPackageOperation,
    UpdateCondition,
    UpdatePackageVersionOperation,
    VersionConstraint,
)

from . import config
from .ledger import RunLedger
from .logger import configure_logging, log_file_paths
from .reporter import render_report, render_repositories, render_runs

# endregion
# region App

console = Console(
    record=True,
    width=120,
    color_system="auto",
)

app = typer.Typer(
    name="gitops",
    help="Fleet-wide maintenance of GitHub repositories, one commit per repository.",
    no_args_is_help=True,
)

# region Options
Organizations = Annotated[
    list[str],
    typer.Option(
        "--organizations", "-o", help="Organization to operate on (repeatable)."
    ),
]
Repositories = Annotated[
    Optional[str],
    typer.Option(
        "--repositories", "-r", help="Regular expression matched against repository names."
    ),
]
RepositoryList = Annotated[
    Optional[list[str]],
    typer.Option(
        "--repository-list",
        "-i",
        help="Repository name to include (repeatable); overrides --repositories.",
    ),
]
ExcludeRepositories = Annotated[
    Optional[list[str]],
    typer.Option("--exclude-repositories", "-e", help="Repository name to exclude."),
]
Ref = Annotated[
    Optional[str],
    typer.Option(
        "--ref", "-f", help="heads/<branch> or tags/<tag>. Defaults to the default branch."
    ),
]
GitHubToken = Annotated[
    Optional[str],
    typer.Option("--github-token", "-t", help="GitHub personal access token."),
]
TokenFilePath = Annotated[
    Optional[str],
    typer.Option(
        "--token-file-path", "-p", help="Token file, relative to the home directory."
    ),
]
Profile = Annotated[
    Optional[str],
    typer.Option("--profile", help="Named profile from the profiles file."),
]
LogLevel = Annotated[
    Optional[str],
    typer.Option("--log-level", "-l", help="DEBUG, INFO, WARNING or ERROR."),
]
DryRun = Annotated[
    bool,
    typer.Option("--dry-run", help="Plan the commits without writing anything."),
]
AbortOnRateLimit = Annotated[
    bool,
    typer.Option(
        "--abort-on-rate-limit", help="Stop the batch when the API rate limit is hit."
    ),
]
PackageName = Annotated[
    str, typer.Option("--package-name", "-n", help="Package name.")
]
PackageVersion = Annotated[
    str, typer.Option("--package-version", "-v", help="Version or dist-tag.")
]
PackageKind = Annotated[
    PackageType,
    typer.Option("--package-type", "-k", help="d: dev, s: prod, o: optional."),
]
PackageUpdateConstraint = Annotated[
    Optional[str],
    typer.Option(
        "--package-update-constraint",
        help="Version or dist-tag the currently declared version is compared against.",
    ),
]
PackageUpdateCondition = Annotated[
    Optional[UpdateCondition],
    typer.Option(
        "--package-update-condition",
        help="How the declared version must compare to the constraint.",
    ),
]
# endregion


def build_client(
    settings: GitHubSettings, logger: T_Logger, token: Optional[str] = None
) -> GitHubClient:
    return GitHubClient(settings, logger, token=token)


def _filters(
    repositories: Optional[str],
    repository_list: Optional[list[str]],
    exclude_repositories: Optional[list[str]],
) -> RepositoryFilter:
    try:
        return RepositoryFilter(
            pattern=repositories,
            include=repository_list or [],
            exclude=exclude_repositories or [],
        )
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--repositories") from e


def _run_operation(
    operation: Operation,
    organizations: list[str],
    repositories: Optional[str],
    repository_list: Optional[list[str]],
    exclude_repositories: Optional[list[str]],
    ref: Optional[str],
    github_token: Optional[str],
    token_file_path: Optional[str],
    profile: Optional[str],
    log_level: Optional[str],
    dry_run: bool,
    abort_on_rate_limit: bool = False,
) -> None:
    filters = _filters(repositories, repository_list, exclude_repositories)
    log_settings = config.logging_settings()
    logger = configure_logging(log_settings, log_level)
    settings = config.app_settings()
    try:
        with build_client(
            config.github_settings(profile, token_file_path), logger, github_token
        ) as client:
            driver = OperationDriver(
                client, logger, settings.temp_dir, abort_on_rate_limit=abort_on_rate_limit
            )
            report = driver.run(operation, organizations, filters, ref, dry_run)
    except GitOpsError as e:
        logger.error(str(e))
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(code=2)

    render_report(report, console)
    RunLedger(settings.ledger_path).record(report)
    paths = log_file_paths(log_settings.log_dir)
    console.print(f"View full output log at {paths['output']}")
    console.print(f"View full error log at {paths['error']}")
    raise typer.Exit(code=1 if report.has_failures else 0)


# endregion
# region Commands


@app.command(name="list-repositories", help="List the repositories a filter selects.")
def list_repositories(
    organizations: Organizations,
    repositories: Repositories = None,
    repository_list: RepositoryList = None,
    exclude_repositories: ExcludeRepositories = None,
    github_token: GitHubToken = None,
    token_file_path: TokenFilePath = None,
    profile: Profile = None,
    log_level: LogLevel = None,
):
    filters = _filters(repositories, repository_list, exclude_repositories)
    logger = configure_logging(config.logging_settings(), log_level)
    settings = config.app_settings()
    try:
        with build_client(
            config.github_settings(profile, token_file_path), logger, github_token
        ) as client:
            resolved = OperationDriver(client, logger, settings.temp_dir).resolve(
                organizations, filters
            )
    except GitOpsError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(code=2)
    render_repositories(resolved.repositories, console)
    for warning in resolved.warnings:
        console.print(f"[yellow]{warning}[/yellow]")


@app.command(name="find-and-replace", help="Regex find and replace in files.")
def find_and_replace(
    organizations: Organizations,
    search_for: Annotated[str, typer.Option("--search-for", "-s", help="Regular expression.")],
    replace_with: Annotated[str, typer.Option("--replace-with", "-w", help="Replacement.")],
    files_to_match: Annotated[
        list[str], typer.Option("--files-to-match", "-m", help="File path (repeatable).")
    ],
    search_for_flags: Annotated[
        str, typer.Option("--search-for-flags", "-g", help="Any of g, i, m, s.")
    ] = "g",
    repositories: Repositories = None,
    repository_list: RepositoryList = None,
    exclude_repositories: ExcludeRepositories = None,
    ref: Ref = None,
    github_token: GitHubToken = None,
    token_file_path: TokenFilePath = None,
    profile: Profile = None,
    log_level: LogLevel = None,
    dry_run: DryRun = False,
    abort_on_rate_limit: AbortOnRateLimit = False,
):
    try:
        operation = FindAndReplaceOperation(
            search_for, replace_with, files_to_match, search_for_flags
        )
    except (ValueError, re.error) as e:
        raise typer.BadParameter(str(e)) from e
    _run_operation(
        operation, organizations, repositories, repository_list, exclude_repositories,
        ref, github_token, token_file_path, profile, log_level, dry_run,
        abort_on_rate_limit,
    )


@app.command(name="rename-file", help="Rename a file within its directory.")
def rename_file(
    organizations: Organizations,
    target_file_path: Annotated[
        str, typer.Option("--target-file-path", "-c", help="Path of the file to rename.")
    ],
    new_file_name: Annotated[
        str, typer.Option("--new-file-name", "-n", help="New file name.")
    ],
    repositories: Repositories = None,
    repository_list: RepositoryList = None,
    exclude_repositories: ExcludeRepositories = None,
    ref: Ref = None,
    github_token: GitHubToken = None,
    token_file_path: TokenFilePath = None,
    profile: Profile = None,
    log_level: LogLevel = None,
    dry_run: DryRun = False,
    abort_on_rate_limit: AbortOnRateLimit = False,
):
    try:
        operation = RenameFileOperation(target_file_path, new_file_name)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--new-file-name") from e
    _run_operation(
        operation, organizations, repositories, repository_list, exclude_repositories,
        ref, github_token, token_file_path, profile, log_level, dry_run,
        abort_on_rate_limit,
    )


@app.command(name="add-package-json-script", help='Add a script to "scripts" in package.json.')
def add_package_json_script(
    organizations: Organizations,
    script_key: Annotated[str, typer.Option("--script-key", "-k", help="Script name.")],
    script_value: Annotated[str, typer.Option("--script-value", "-v", help="Script command.")],
    override_existing: Annotated[
        bool, typer.Option("--override-existing", help="Replace an existing script.")
    ] = False,
    repositories: Repositories = None,
    repository_list: RepositoryList = None,
    exclude_repositories: ExcludeRepositories = None,
    ref: Ref = None,
    github_token: GitHubToken = None,
    token_file_path: TokenFilePath = None,
    profile: Profile = None,
    log_level: LogLevel = None,
    dry_run: DryRun = False,
    abort_on_rate_limit: AbortOnRateLimit = False,
):
    operation = AddPackageJsonScriptOperation(script_key, script_value, override_existing)
    _run_operation(
        operation, organizations, repositories, repository_list, exclude_repositories,
        ref, github_token, token_file_path, profile, log_level, dry_run,
        abort_on_rate_limit,
    )


@app.command(
    name="remove-package-json-script", help='Remove a script from "scripts" in package.json.'
)
def remove_package_json_script(
    organizations: Organizations,
    script_key: Annotated[str, typer.Option("--script-key", "-k", help="Script name.")],
    repositories: Repositories = None,
    repository_list: RepositoryList = None,
    exclude_repositories: ExcludeRepositories = None,
    ref: Ref = None,
    github_token: GitHubToken = None,
    token_file_path: TokenFilePath = None,
    profile: Profile = None,
    log_level: LogLevel = None,
    dry_run: DryRun = False,
    abort_on_rate_limit: AbortOnRateLimit = False,
):
    operation = RemovePackageJsonScriptOperation(script_key)
    _run_operation(
        operation, organizations, repositories, repository_list, exclude_repositories,
        ref, github_token, token_file_path, profile, log_level, dry_run,
        abort_on_rate_limit,
    )


def _constraint(
    constraint: Optional[str], condition: Optional[UpdateCondition]
) -> Optional[VersionConstraint]:
    try:
        return VersionConstraint.from_options(constraint, condition)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e


@app.command(name="install-package", help="Install an npm package at a version.")
def install_package(
    organizations: Organizations,
    package_name: PackageName,
    package_version: PackageVersion,
    package_type: PackageKind = PackageType.PROD,
    repositories: Repositories = None,
    repository_list: RepositoryList = None,
    exclude_repositories: ExcludeRepositories = None,
    ref: Ref = None,
    github_token: GitHubToken = None,
    token_file_path: TokenFilePath = None,
    profile: Profile = None,
    log_level: LogLevel = None,
    dry_run: DryRun = False,
    abort_on_rate_limit: AbortOnRateLimit = False,
):
    operation = InstallPackageOperation(package_name, package_version, package_type)
    _run_operation(
        operation, organizations, repositories, repository_list, exclude_repositories,
        ref, github_token, token_file_path, profile, log_level, dry_run,
        abort_on_rate_limit,
    )


@app.command(
    name="update-package-version",
    help="Update an npm package already declared in the chosen dependency section.",
)
def update_package_version(
    organizations: Organizations,
    package_name: PackageName,
    package_version: PackageVersion,
    package_type: PackageKind = PackageType.PROD,
    package_update_constraint: PackageUpdateConstraint = None,
    package_update_condition: PackageUpdateCondition = None,
    repositories: Repositories = None,
    repository_list: RepositoryList = None,
    exclude_repositories: ExcludeRepositories = None,
    ref: Ref = None,
    github_token: GitHubToken = None,
    token_file_path: TokenFilePath = None,
    profile: Profile = None,
    log_level: LogLevel = None,
    dry_run: DryRun = False,
    abort_on_rate_limit: AbortOnRateLimit = False,
):
    operation = UpdatePackageVersionOperation(
        package_name,
        package_version,
        package_type,
        constraint=_constraint(package_update_constraint, package_update_condition),
    )
    _run_operation(
        operation, organizations, repositories, repository_list, exclude_repositories,
        ref, github_token, token_file_path, profile, log_level, dry_run,
        abort_on_rate_limit,
    )


@app.command(
    name="reinstall-package",
    help="Move an npm package from another dependency section into the chosen one.",
)
def reinstall_package(
    organizations: Organizations,
    package_name: PackageName,
    package_version: PackageVersion,
    package_type: PackageKind = PackageType.PROD,
    package_update_constraint: PackageUpdateConstraint = None,
    package_update_condition: PackageUpdateCondition = None,
    repositories: Repositories = None,
    repository_list: RepositoryList = None,
    exclude_repositories: ExcludeRepositories = None,
    ref: Ref = None,
    github_token: GitHubToken = None,
    token_file_path: TokenFilePath = None,
    profile: Profile = None,
    log_level: LogLevel = None,
    dry_run: DryRun = False,
    abort_on_rate_limit: AbortOnRateLimit = False,
):
    operation = ReinstallPackageOperation(
        package_name,
        package_version,
        package_type,
        constraint=_constraint(package_update_constraint, package_update_condition),
    )
    _run_operation(
        operation, organizations, repositories, repository_list, exclude_repositories,
        ref, github_token, token_file_path, profile, log_level, dry_run,
        abort_on_rate_limit,
    )


@app.command(name="uninstall-package", help="Uninstall an npm package.")
def uninstall_package(
    organizations: Organizations,
    package_name: PackageName,
    package_type: PackageKind = PackageType.PROD,
    package_update_constraint: PackageUpdateConstraint = None,
    package_update_condition: PackageUpdateCondition = None,
    repositories: Repositories = None,
    repository_list: RepositoryList = None,
    exclude_repositories: ExcludeRepositories = None,
    ref: Ref = None,
    github_token: GitHubToken = None,
    token_file_path: TokenFilePath = None,
    profile: Profile = None,
    log_level: LogLevel = None,
    dry_run: DryRun = False,
    abort_on_rate_limit: AbortOnRateLimit = False,
):
    operation = UninstallPackageOperation(
        package_name,
        package_type,
        constraint=_constraint(package_update_constraint, package_update_condition),
    )
    _run_operation(
        operation, organizations, repositories, repository_list, exclude_repositories,
        ref, github_token, token_file_path, profile, log_level, dry_run,
        abort_on_rate_limit,
    )


@app.command(name="runs", help="Show recent runs from the run ledger.")
def runs(
    limit: Annotated[int, typer.Option("--limit", "-n", help="Number of runs.")] = 10,
    run_id: Annotated[
        Optional[int], typer.Option("--run-id", help="Show the repositories of a run.")
    ] = None,
):
    ledger = RunLedger(config.app_settings().ledger_path)
    if run_id is None:
        render_runs(ledger.recent(limit), console)
        return
    outcomes = ledger.outcomes(run_id)
    if not outcomes:
        console.print(f"[yellow]No repositories recorded for run {run_id}[/yellow]")
        return
    for outcome in outcomes:
        console.print(
            f"{outcome['status']:<10} {outcome['repository']} <{outcome['ref']}> "
            f"{outcome['reason'] or ''}"
        )


# endregion


def main():
    app()


if __name__ == "__main__":
    main()
