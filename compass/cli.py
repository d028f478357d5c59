"""compass CLI entry point."""

import argparse
import sys

from compass.commands import (
    DocCreateCommand,
    DocDeleteCommand,
    DocListCommand,
    DocShowCommand,
    DocUpdateCommand,
    ProjectCreateCommand,
    ProjectDeleteCommand,
    ProjectListCommand,
    ProjectSetDefaultCommand,
    ProjectShowCommand,
    RepoInitCommand,
    RepoShowCommand,
    RepoUnlinkCommand,
    SearchCommand,
    TaskCloseCommand,
    TaskCreateCommand,
    TaskDeleteCommand,
    TaskGraphCommand,
    TaskListCommand,
    TaskReadyCommand,
    TaskShowCommand,
    TaskStartCommand,
    TaskUpdateCommand,
)
from compass.config import set_verbose
from compass.model import VALID_STATUSES, VALID_TYPES, TYPE_TASK

VERSION = "0.1.0"


def cmd_project_create(args: argparse.Namespace) -> None:
    ProjectCreateCommand(args).run()


def cmd_project_list(args: argparse.Namespace) -> None:
    ProjectListCommand(args).run()


def cmd_project_show(args: argparse.Namespace) -> None:
    ProjectShowCommand(args).run()


def cmd_project_set_default(args: argparse.Namespace) -> None:
    ProjectSetDefaultCommand(args).run()


def cmd_project_delete(args: argparse.Namespace) -> None:
    ProjectDeleteCommand(args).run()


def cmd_task_create(args: argparse.Namespace) -> None:
    TaskCreateCommand(args).run()


def cmd_task_list(args: argparse.Namespace) -> None:
    TaskListCommand(args).run()


def cmd_task_show(args: argparse.Namespace) -> None:
    TaskShowCommand(args).run()


def cmd_task_update(args: argparse.Namespace) -> None:
    TaskUpdateCommand(args).run()


def cmd_task_start(args: argparse.Namespace) -> None:
    TaskStartCommand(args).run()


def cmd_task_close(args: argparse.Namespace) -> None:
    TaskCloseCommand(args).run()


def cmd_task_delete(args: argparse.Namespace) -> None:
    TaskDeleteCommand(args).run()


def cmd_task_ready(args: argparse.Namespace) -> None:
    TaskReadyCommand(args).run()


def cmd_task_graph(args: argparse.Namespace) -> None:
    TaskGraphCommand(args).run()


def cmd_doc_create(args: argparse.Namespace) -> None:
    DocCreateCommand(args).run()


def cmd_doc_list(args: argparse.Namespace) -> None:
    DocListCommand(args).run()


def cmd_doc_show(args: argparse.Namespace) -> None:
    DocShowCommand(args).run()


def cmd_doc_update(args: argparse.Namespace) -> None:
    DocUpdateCommand(args).run()


def cmd_doc_delete(args: argparse.Namespace) -> None:
    DocDeleteCommand(args).run()


def cmd_search(args: argparse.Namespace) -> None:
    SearchCommand(args).run()


def cmd_repo_init(args: argparse.Namespace) -> None:
    RepoInitCommand(args).run()


def cmd_repo_show(args: argparse.Namespace) -> None:
    RepoShowCommand(args).run()


def cmd_repo_unlink(args: argparse.Namespace) -> None:
    RepoUnlinkCommand(args).run()


def _add_project_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--project", "-P",
        type=str,
        default=None,
        metavar="KEY",
        help="Project key (defaults to the persisted default project)",
    )


def _add_body_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--body", "-b",
        type=str,
        default=None,
        metavar="TEXT",
        help="Markdown body text (\"-\" reads it from stdin)",
    )


def _add_verbose_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--verbose", "-v",
        choices=["true", "false"],
        default=None,
        metavar="BOOL",
        help="Enable/disable verbose output for this invocation only",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="compass",
        description="compass — task tracking with dependency-aware ready work",
    )
    # Top-level flag: when provided, persist to settings.json.
    parser.add_argument(
        "--verbose", "-v",
        choices=["true", "false"],
        default=None,
        dest="global_verbose",
        metavar="BOOL",
        help="Persist verbose setting to .compass/settings.json (true/false)",
    )
    parser.add_argument("--version", action="version", version=f"compass {VERSION}")

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    # compass project ...
    project_parser = subparsers.add_parser("project", help="Manage projects")
    project_sub = project_parser.add_subparsers(dest="subcommand", metavar="SUBCOMMAND")

    p = project_sub.add_parser("create", help="Create a new project")
    p.add_argument("name", metavar="<name>")
    p.add_argument("--key", "-k", type=str, default=None, metavar="KEY",
                   help="Project key (2-5 uppercase alphanumerics; derived from the name if omitted)")
    _add_body_flag(p)
    p.set_defaults(func=cmd_project_create)

    p = project_sub.add_parser("list", help="List all projects")
    p.set_defaults(func=cmd_project_list)

    p = project_sub.add_parser("show", help="Show project details")
    p.add_argument("id", metavar="<id>")
    p.set_defaults(func=cmd_project_show)

    p = project_sub.add_parser("set-default", help="Set the default project")
    p.add_argument("id", metavar="<id>")
    p.set_defaults(func=cmd_project_set_default)

    p = project_sub.add_parser("delete", help="Delete a project and all its tasks")
    p.add_argument("id", metavar="<id>")
    p.add_argument("--force", "-f", action="store_true", default=False, help="Skip the confirmation prompt")
    p.set_defaults(func=cmd_project_delete)

    p = project_sub.add_parser("link", help="Link the current directory to a project (same as 'repo init')")
    p.add_argument("id", nargs="?", default=None, metavar="<id>")
    p.set_defaults(func=cmd_repo_init)

    p = project_sub.add_parser("unlink", help="Remove the current directory's project link (same as 'repo unlink')")
    p.set_defaults(func=cmd_repo_unlink)

    # compass task ...
    task_parser = subparsers.add_parser("task", help="Manage tasks")
    task_sub = task_parser.add_subparsers(dest="subcommand", metavar="SUBCOMMAND")

    p = task_sub.add_parser("create", help="Create a new task")
    p.add_argument("title", metavar="<title>")
    _add_project_flag(p)
    p.add_argument("--type", "-t", choices=VALID_TYPES, default=TYPE_TASK, help="Task type (default: task)")
    p.add_argument("--epic", "-e", type=str, default=None, metavar="ID", help="Parent epic id")
    p.add_argument("--depends-on", "-d", type=str, default=None, metavar="IDS",
                   help="Comma-separated ids this task depends on")
    p.add_argument("--priority", "-p", type=int, default=None, metavar="N",
                   help="Priority 0-3 (0 = P0 critical, 3 = P3 low)")
    _add_body_flag(p)
    p.set_defaults(func=cmd_task_create)

    p = task_sub.add_parser("list", help="List tasks")
    _add_project_flag(p)
    p.add_argument("--status", "-s", choices=VALID_STATUSES, default=None)
    p.add_argument("--type", "-t", choices=VALID_TYPES, default=None)
    p.add_argument("--epic", "-e", type=str, default=None, metavar="ID")
    p.set_defaults(func=cmd_task_list)

    p = task_sub.add_parser("show", help="Show task details")
    p.add_argument("id", metavar="<id>")
    _add_verbose_flag(p)
    p.set_defaults(func=cmd_task_show)

    p = task_sub.add_parser("update", help="Update a task")
    p.add_argument("id", metavar="<id>")
    p.add_argument("--title", type=str, default=None)
    p.add_argument("--status", "-s", choices=VALID_STATUSES, default=None)
    p.add_argument("--depends-on", "-d", type=str, default=None, metavar="IDS",
                   help='Replace dependencies with a comma-separated id list ("" clears them)')
    p.add_argument("--priority", "-p", type=int, default=None, metavar="N",
                   help="Priority 0-3, or -1 to clear it")
    _add_body_flag(p)
    p.set_defaults(func=cmd_task_update)

    p = task_sub.add_parser("start", help="Start a task (set status to in_progress)")
    p.add_argument("id", metavar="<id>")
    p.set_defaults(func=cmd_task_start)

    p = task_sub.add_parser("close", help="Close a task (set status to closed)")
    p.add_argument("id", metavar="<id>")
    p.set_defaults(func=cmd_task_close)

    p = task_sub.add_parser("delete", help="Delete a task")
    p.add_argument("id", metavar="<id>")
    p.add_argument("--force", "-f", action="store_true", default=False, help="Skip the confirmation prompt")
    p.set_defaults(func=cmd_task_delete)

    p = task_sub.add_parser("ready", help="Show the next ready task(s)")
    _add_project_flag(p)
    p.add_argument("--all", "-a", action="store_true", default=False, help="List every ready task")
    p.set_defaults(func=cmd_task_ready)

    p = task_sub.add_parser("graph", help="Show the task dependency graph")
    _add_project_flag(p)
    p.set_defaults(func=cmd_task_graph)

    # compass doc ...
    doc_parser = subparsers.add_parser("doc", help="Manage documents")
    doc_sub = doc_parser.add_subparsers(dest="subcommand", metavar="SUBCOMMAND")

    p = doc_sub.add_parser("create", help="Create a new document")
    p.add_argument("title", metavar="<title>")
    _add_project_flag(p)
    _add_body_flag(p)
    p.set_defaults(func=cmd_doc_create)

    p = doc_sub.add_parser("list", help="List documents")
    _add_project_flag(p)
    p.set_defaults(func=cmd_doc_list)

    p = doc_sub.add_parser("show", help="Show a document")
    p.add_argument("id", metavar="<id>")
    p.set_defaults(func=cmd_doc_show)

    p = doc_sub.add_parser("update", help="Update a document")
    p.add_argument("id", metavar="<id>")
    p.add_argument("--title", type=str, default=None)
    _add_body_flag(p)
    p.set_defaults(func=cmd_doc_update)

    p = doc_sub.add_parser("delete", help="Delete a document")
    p.add_argument("id", metavar="<id>")
    p.add_argument("--force", "-f", action="store_true", default=False, help="Skip the confirmation prompt")
    p.set_defaults(func=cmd_doc_delete)

    # compass search ...
    p = subparsers.add_parser("search", help="Search projects, epics, tasks and documents")
    p.add_argument("query", metavar="<query>")
    p.add_argument("--project", "-P", type=str, default=None, metavar="KEY",
                   help="Only search this project (default: all projects)")
    p.set_defaults(func=cmd_search)

    # compass repo ...
    repo_parser = subparsers.add_parser("repo", help="Manage the repo-local project link")
    repo_sub = repo_parser.add_subparsers(dest="subcommand", metavar="SUBCOMMAND")

    p = repo_sub.add_parser("init", help="Link the current directory to a project")
    p.add_argument("id", nargs="?", default=None, metavar="<id>")
    p.set_defaults(func=cmd_repo_init)

    p = repo_sub.add_parser("show", help="Show which project this directory is linked to")
    p.set_defaults(func=cmd_repo_show)

    p = repo_sub.add_parser("unlink", help="Remove the project link in the current directory")
    p.set_defaults(func=cmd_repo_unlink)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.global_verbose is not None:
        set_verbose(args.global_verbose == "true")

    if not hasattr(args, "func"):
        if args.command is None and args.global_verbose is not None:
            return
        parser.parse_args([*([args.command] if args.command else []), "--help"])
        return

    try:
        args.func(args)
    except KeyboardInterrupt:
        print("\n[compass] Ok, stopping.", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
