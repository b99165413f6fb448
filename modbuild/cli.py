"""CLI entrypoints for modbuild commands."""

from __future__ import annotations

import argparse
from pathlib import Path

from .auth import Auth
from .config import ModBuildConfig, load_config
from .errors import ModBuildError
from .git.vc import GitVersionControl
from .logging import configure_logging
from .orchestrator import BuildRequest, Orchestrator, default_reviewers_file, load_reviewer_groups
from .scaffold import split_names
from .stash import PullRequest


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, subcommand: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "count",
        "help": "Increase log and build tool verbosity, can be repeated.",
    }
    if subcommand:
        # Counted apart from the top-level flag so `-v build -v` adds up.
        kwargs["dest"] = "command_verbose"
    kwargs["default"] = 0
    parser.add_argument("-v", "--verbose", **kwargs)


def _add_auth_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-u", "--user", required=True, help="User name on the review server.")
    parser.add_argument(
        "--password",
        help="Password on the review server (prompted for when omitted).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="modbuild",
        description="Build only the Gradle modules affected by a change.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--root-project-dir",
        help="Directory holding the build tool's root settings (autodetected by default).",
    )
    parser.add_argument(
        "--excluded-modules",
        help="Regex of module names that are never selected.",
    )
    parser.add_argument(
        "--build-cmd",
        help="Build tool command line (defaults to <root-project>/gradlew).",
    )
    parser.add_argument(
        "--config",
        help="Path to the .modbuild.yml file or its directory (defaults to the repository root).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    build_parser = subparsers.add_parser(
        "build",
        help="Build the modules changed since a commit and the modules depending on them.",
    )
    _add_verbose_option(build_parser, subcommand=True)
    build_parser.add_argument(
        "-a",
        "--all",
        dest="all_modules",
        action="store_true",
        help="Build every module regardless of changes.",
    )
    build_parser.add_argument(
        "-c",
        "--after-commit",
        help="Commit or ref to compare against (defaults to the upstream branch).",
    )
    build_parser.add_argument("-p", "--modules", help="Regex of module names to build.")
    build_parser.add_argument("--triggers-file", help="Trigger rules file.")
    build_parser.add_argument(
        "--no-impact",
        action="store_true",
        help="Do not add the modules depending on the changed ones.",
    )
    build_parser.add_argument(
        "-n",
        "--batch-size",
        type=int,
        help="Build the selection in batches of at most N modules.",
    )
    build_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the selected modules without writing or building anything.",
    )
    build_parser.add_argument("tasks", nargs="*", help="Build tool tasks to run.")

    open_parser = subparsers.add_parser(
        "open",
        help="Write the default settings file so an IDE opens only the selected modules.",
    )
    _add_verbose_option(open_parser, subcommand=True)
    open_parser.add_argument("-p", "--modules", help="Regex of module names to open.")
    open_parser.add_argument(
        "--clean",
        action="store_true",
        help="Remove IDE caches from the build tool root.",
    )

    create_parser = subparsers.add_parser("create", help="Create modules from templates.")
    _add_verbose_option(create_parser, subcommand=True)
    create_parser.add_argument("-p", "--path", required=True, help="Directory of the new module.")
    create_parser.add_argument(
        "-f",
        "--from",
        dest="template_dir",
        help="Template directory (defaults to <root-project>/module-templates).",
    )
    create_parser.add_argument("-t", "--types", help="Comma separated template types.")
    create_parser.add_argument("-x", "--excludes", help="Comma separated file names to skip.")

    pr_parser = subparsers.add_parser(
        "pull-request",
        help="Build the changes, push them and open a pull request.",
    )
    _add_verbose_option(pr_parser, subcommand=True)
    pr_parser.add_argument("-s", "--summary", default="", help="Pull request title.")
    pr_parser.add_argument("-d", "--description", default="", help="Pull request description.")
    pr_parser.add_argument(
        "-b",
        "--branch-name",
        default="",
        help="Remote branch to push to (defaults to the upstream branch).",
    )
    pr_parser.add_argument("-t", "--to-branch", default="develop", help="Target branch.")
    _add_auth_options(pr_parser)
    pr_parser.add_argument(
        "-r",
        "--reviewers",
        action="append",
        default=[],
        help="Reviewer names separated by ';', can be repeated.",
    )
    pr_parser.add_argument(
        "-R",
        "--reviewer-group",
        action="append",
        default=[],
        help="File holding reviewer names, can be repeated.",
    )
    pr_parser.add_argument(
        "-o",
        "--open",
        dest="open_browser",
        action="store_true",
        help="Open the pull request in a browser.",
    )
    pr_parser.add_argument("--triggers-file", help="Trigger rules file.")

    users_parser = subparsers.add_parser(
        "users",
        help="Look up users and store their names as default reviewers.",
    )
    _add_verbose_option(users_parser, subcommand=True)
    users_parser.add_argument(
        "-q", "--query", required=True, help="Filters separated by ';'."
    )
    users_parser.add_argument(
        "-f",
        "--file",
        help="File to write the names to (defaults to ~/.git_reviewers).",
    )
    users_parser.add_argument(
        "-a",
        "--append",
        action="store_true",
        help="Append to the file instead of overwriting it.",
    )
    _add_auth_options(users_parser)

    return parser


def _apply_overrides(config: ModBuildConfig, args: argparse.Namespace) -> ModBuildConfig:
    if args.root_project_dir:
        config.root_project_dir = args.root_project_dir
    if args.excluded_modules is not None:
        config.excluded_modules = args.excluded_modules
    if args.build_cmd:
        config.build_cmd = args.build_cmd
    return config


def _create_orchestrator(args: argparse.Namespace) -> Orchestrator:
    vc = GitVersionControl(Path.cwd())
    config_path = Path(args.config) if args.config else vc.root()
    config = _apply_overrides(load_config(config_path), args)
    return Orchestrator(config, vc)


def _verbosity(args: argparse.Namespace) -> int:
    return int(args.verbose or 0) + int(getattr(args, "command_verbose", 0) or 0)


def _optional_path(value: str | None) -> Path | None:
    return Path(value).expanduser() if value else None


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for modbuild commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbosity=_verbosity(args))

    try:
        orchestrator = _create_orchestrator(args)
        _dispatch(orchestrator, args)
    except ModBuildError as exc:
        parser.exit(1, f"{exc}\n")


def _dispatch(orchestrator: Orchestrator, args: argparse.Namespace) -> None:
    verbosity = _verbosity(args)
    if args.command == "build":
        request = BuildRequest(
            tasks=list(args.tasks),
            all_modules=bool(args.all_modules),
            after_commit=args.after_commit,
            name_pattern=args.modules,
            triggers_file=_optional_path(args.triggers_file),
            propagate_impact=False if args.no_impact else None,
            batch_size=args.batch_size,
            verbosity=verbosity,
            dry_run=bool(args.dry_run),
        )
        selection = orchestrator.run_build(request)
        if request.dry_run:
            for module in selection:
                print(module.name)
    elif args.command == "open":
        orchestrator.run_open(args.modules, clean=bool(args.clean))
    elif args.command == "create":
        created = orchestrator.run_create(
            args.path,
            template_dir=args.template_dir,
            types=split_names(args.types),
            excludes=split_names(args.excludes),
        )
        for module in created:
            print(f"Module {module.name} created at {module.path}")
    elif args.command == "pull-request":
        groups = [Path(item).expanduser() for item in args.reviewer_group]
        if default_reviewers_file().exists():
            groups.append(default_reviewers_file())
        reviewers = [*args.reviewers, *load_reviewer_groups(groups)]
        request = PullRequest(
            title=args.summary,
            description=args.description,
            branch_name=args.branch_name,
            to_branch=args.to_branch,
            reviewers=reviewers,
        )
        url = orchestrator.run_pull_request(
            request,
            Auth(args.user, args.password),
            verbosity=verbosity,
            open_browser=bool(args.open_browser),
            triggers_file=_optional_path(args.triggers_file),
        )
        print(url)
    elif args.command == "users":
        orchestrator.run_users(
            args.query.split(";"),
            Auth(args.user, args.password),
            file=_optional_path(args.file),
            append=bool(args.append),
        )
    else:  # pragma: no cover - argparse enforces choices
        raise ModBuildError(f"Unknown command {args.command}")


__all__ = ["main"]
