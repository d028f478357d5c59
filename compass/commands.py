"""Command implementations for the compass CLI.

Each public class corresponds to a compass subcommand and owns its own
argument handling and store calls. Library errors (missing entities, invalid
fields, dependency cycles) are reported once, in ``Command.run``.
"""

from __future__ import annotations

import abc
import argparse
import os
import sys

from compass import dag
from compass import repofile
from compass.config import ensure_defaults, get_default_project, get_verbose, set_default_project
from compass.model import STATUS_CLOSED, STATUS_IN_PROGRESS, TYPE_EPIC, format_priority
from compass.store import Store, StoreError


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _fail(message: str) -> None:
    print(f"[compass] Error: {message}", file=sys.stderr)
    sys.exit(1)


def _resolve_verbose(args: argparse.Namespace) -> bool:
    """Return effective verbose: per-command CLI flag > persisted setting."""
    if getattr(args, "verbose", None) is not None:
        return args.verbose == "true"
    return get_verbose()


def _linked_project() -> str:
    return repofile.find(os.getcwd())[0]


def _project_or_default(args: argparse.Namespace) -> str:
    """Return --project, else the repo-linked project, else the default ("" if none)."""
    return getattr(args, "project", None) or _linked_project() or get_default_project()


def _resolve_project(args: argparse.Namespace) -> str:
    """Return the project key, failing when none can be resolved."""
    project = _project_or_default(args)
    if not project:
        _fail(
            "no project specified. Pass --project, link this directory with "
            "'compass repo init <id>', or run 'compass project set-default <id>' first."
        )
    return project


def _split_ids(value: str | None) -> list[str] | None:
    """Parse a comma-separated id list; None means "not given", "" means "clear"."""
    if value is None:
        return None
    return [part.strip() for part in value.split(",") if part.strip()]


def _read_body(value: str | None) -> str | None:
    """Return the --body text; ``-`` reads it from stdin."""
    if value == "-":
        return sys.stdin.read()
    return value


def _confirm(prompt: str) -> bool:
    while True:
        answer = input(f"{prompt} (y/n): ").strip().lower()
        if answer in ("y", "yes"):
            return True
        if answer in ("n", "no"):
            return False


def _status_label(task: dict, task_map: dict[str, dict]) -> str:
    if dag.is_blocked(task, task_map):
        return f"{task['status']} (blocked)"
    return task["status"]


def _table(rows: list[tuple]) -> str:
    """Left-align every column but the last, two spaces apart."""
    widths = [max(len(row[i]) for row in rows) for i in range(len(rows[0]) - 1)]
    lines = []
    for row in rows:
        cells = [f"{cell:<{width}}" for cell, width in zip(row, widths)]
        lines.append("  ".join([*cells, row[-1]]).rstrip())
    return "\n".join(lines)


def _task_table(tasks: list[dict], task_map: dict[str, dict]) -> str:
    rows = [("ID", "TYPE", "PRI", "STATUS", "TITLE")]
    for t in tasks:
        rows.append((
            t["id"],
            t.get("type", "task"),
            format_priority(t.get("priority")),
            _status_label(t, task_map),
            t["title"],
        ))
    return _table(rows)


def _print_body(body: str | None) -> None:
    if body:
        print()
        print(body.rstrip("\n"))


# ---------------------------------------------------------------------------
# Command base class
# ---------------------------------------------------------------------------


class Command(abc.ABC):
    """Base class for all compass commands."""

    def __init__(self, args: argparse.Namespace, store: Store | None = None) -> None:
        self.args = args
        self.store = store or Store()

    @abc.abstractmethod
    def execute(self) -> None:
        """Run the command."""
        raise NotImplementedError

    def run(self) -> None:
        """Execute, turning store and validation errors into a stderr message and exit 1."""
        try:
            self.execute()
        except (StoreError, ValueError) as e:
            _fail(str(e))


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


class ProjectCreateCommand(Command):
    """compass project create <name> [--key KEY] [--body TEXT]"""

    def execute(self) -> None:
        ensure_defaults()
        project = self.store.create_project(
            self.args.name,
            key=self.args.key,
            body=_read_body(getattr(self.args, "body", None)) or "",
        )
        print(f"[compass] Created project {project['id']} ({project['name']}).")
        if not get_default_project():
            set_default_project(project["id"])
            print(f"[compass] Default project set to {project['id']}.")


class ProjectListCommand(Command):
    """compass project list"""

    def execute(self) -> None:
        projects = self.store.list_projects()
        if not projects:
            print("No projects.")
            return
        default = get_default_project()
        for p in projects:
            marker = " (default)" if p["id"] == default else ""
            print(f"{p['id']}  {p['name']}{marker}")


class ProjectShowCommand(Command):
    """compass project show <id>"""

    def execute(self) -> None:
        project = self.store.get_project(self.args.id)
        tasks = self.store.list_tasks(project=project["id"])
        print(f"# {project['name']}")
        print(f"ID:          {project['id']}")
        print(f"Created by:  {project['created_by']}")
        print(f"Created:     {project['created_at']}")
        _print_body(project.get("body"))
        if tasks:
            print()
            print(_task_table(tasks, self.store.task_map(project["id"])))


class ProjectSetDefaultCommand(Command):
    """compass project set-default <id>"""

    def execute(self) -> None:
        project = self.store.get_project(self.args.id)
        set_default_project(project["id"])
        print(f"[compass] Default project set to {project['id']}.")


class ProjectDeleteCommand(Command):
    """compass project delete <id> [--force]"""

    def execute(self) -> None:
        project = self.store.get_project(self.args.id)
        count = len(self.store.list_tasks(project=project["id"]))
        print(f"Project: {project['name']} ({project['id']}), {count} task(s)")
        if not self.args.force and not _confirm(f"Delete project '{project['id']}' and all its tasks?"):
            print("[compass] Delete cancelled.")
            return
        self.store.delete_project(project["id"])
        if get_default_project() == project["id"]:
            set_default_project("")
        print(f"[compass] Deleted project {project['id']}.")


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


class TaskCreateCommand(Command):
    """compass task create <title> [--project P] [--type T] [--epic E] [--depends-on IDS] [--priority N]"""

    def execute(self) -> None:
        project = _resolve_project(self.args)
        task = self.store.create_task(
            self.args.title,
            project,
            task_type=self.args.type,
            epic=self.args.epic,
            depends_on=_split_ids(self.args.depends_on),
            priority=getattr(self.args, "priority", None),
            body=_read_body(getattr(self.args, "body", None)) or "",
        )
        print(f"[compass] Created {task['type']} {task['id']}: {task['title']}")


class TaskListCommand(Command):
    """compass task list [--project P] [--status S] [--type T] [--epic E]"""

    def execute(self) -> None:
        project = _project_or_default(self.args) or None
        if project:
            self.store.get_project(project)
        tasks = self.store.list_tasks(
            project=project,
            status=self.args.status,
            task_type=self.args.type,
            epic=self.args.epic,
        )
        if not tasks:
            print("No tasks.")
            return
        task_map: dict[str, dict] = {}
        for key in sorted({t["project"] for t in tasks}):
            task_map.update(self.store.task_map(key))
        print(_task_table(tasks, task_map))


class TaskShowCommand(Command):
    """compass task show <id>"""

    def execute(self) -> None:
        task = self.store.get_task(self.args.id)
        task_map = self.store.task_map(task["project"])
        graph = dag.build(list(task_map.values()))

        print(f"# {task['title']}")
        print(f"ID:          {task['id']}")
        print(f"Type:        {task.get('type', 'task')}")
        print(f"Project:     {task['project']}")
        print(f"Status:      {_status_label(task, task_map)}")
        if task.get("priority") is not None:
            print(f"Priority:    {format_priority(task['priority'])}")
        if task.get("epic"):
            print(f"Epic:        {task['epic']}")
        if task.get("depends_on"):
            print(f"Depends on:  {', '.join(task['depends_on'])}")
        dependents = dag.direct_dependents(graph, task["id"])
        if dependents:
            print(f"Dependents:  {', '.join(dependents)}")

        if _resolve_verbose(self.args):
            upstream = sorted(dag.transitive_dependencies(graph, task["id"]))
            if upstream:
                print(f"All deps:    {', '.join(upstream)}")
            print(f"Created by:  {task['created_by']}")
            print(f"Created:     {task['created_at']}")
            print(f"Updated:     {task['updated_at']}")

        _print_body(task.get("body"))

        if task.get("type") == TYPE_EPIC:
            children = self.store.list_tasks(project=task["project"], epic=task["id"])
            if children:
                print()
                print("Tasks:")
                print(_task_table(children, task_map))


class TaskUpdateCommand(Command):
    """compass task update <id> [--title T] [--status S] [--depends-on IDS] [--priority N] [--body TEXT]

    ``--priority -1`` clears the priority.
    """

    def execute(self) -> None:
        args = self.args
        changes = {}
        if args.title is not None:
            changes["title"] = args.title
        if args.status is not None:
            changes["status"] = args.status
        depends_on = _split_ids(args.depends_on)
        if depends_on is not None:
            changes["depends_on"] = depends_on
        priority = getattr(args, "priority", None)
        if priority is not None:
            changes["priority"] = None if priority < 0 else priority
        body = _read_body(getattr(args, "body", None))
        if body is not None:
            changes["body"] = body
        if not changes:
            _fail("nothing to update. Pass --title, --status, --depends-on, --priority or --body.")
        task = self.store.update_task(args.id, **changes)
        print(f"[compass] Updated task {task['id']}.")


class TaskStartCommand(Command):
    """compass task start <id>"""

    def execute(self) -> None:
        task = self.store.update_task(self.args.id, status=STATUS_IN_PROGRESS)
        print(f"[compass] Started task {task['id']}.")


class TaskCloseCommand(Command):
    """compass task close <id>"""

    def execute(self) -> None:
        task = self.store.update_task(self.args.id, status=STATUS_CLOSED)
        print(f"[compass] Closed task {task['id']}.")


class TaskDeleteCommand(Command):
    """compass task delete <id> [--force]"""

    def execute(self) -> None:
        task = self.store.get_task(self.args.id)
        print(f"Task: {task['title']} ({task['id']})")
        dependents = self.store.dependents_of(task["id"])
        if dependents:
            print(f"[compass] Heads up: {', '.join(dependents)} depend on this task and will stay blocked.")
        if not self.args.force and not _confirm(f"Delete task '{task['id']}'?"):
            print("[compass] Delete cancelled.")
            return
        self.store.delete_task(task["id"])
        print(f"[compass] Deleted task {task['id']}.")


class TaskReadyCommand(Command):
    """compass task ready [--project P] [--all]"""

    def execute(self) -> None:
        project = _resolve_project(self.args)
        ready = self.store.ready_tasks(project)
        if not ready:
            print("No ready tasks.")
            return
        if self.args.all:
            print(_task_table(ready, self.store.task_map(project)))
        else:
            print(f"{ready[0]['id']}  {ready[0]['title']}")


class TaskGraphCommand(Command):
    """compass task graph [--project P]"""

    def execute(self) -> None:
        project = _resolve_project(self.args)
        print(dag.render_tree(self.store.graph(project)))


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class DocCreateCommand(Command):
    """compass doc create <title> [--project P] [--body TEXT]"""

    def execute(self) -> None:
        project = _resolve_project(self.args)
        document = self.store.create_document(
            self.args.title, project, body=_read_body(self.args.body) or ""
        )
        print(f"[compass] Created document {document['id']}: {document['title']}")


class DocListCommand(Command):
    """compass doc list [--project P]"""

    def execute(self) -> None:
        project = _project_or_default(self.args) or None
        if project:
            self.store.get_project(project)
        documents = self.store.list_documents(project)
        if not documents:
            print("No documents.")
            return
        rows = [("ID", "PROJECT", "TITLE")]
        rows.extend((d["id"], d["project"], d["title"]) for d in documents)
        print(_table(rows))


class DocShowCommand(Command):
    """compass doc show <id>"""

    def execute(self) -> None:
        document = self.store.get_document(self.args.id)
        print(f"# {document['title']}")
        print(f"ID:          {document['id']}")
        print(f"Project:     {document['project']}")
        print(f"Created by:  {document['created_by']}")
        print(f"Created:     {document['created_at']}")
        print(f"Updated:     {document['updated_at']}")
        _print_body(document.get("body"))


class DocUpdateCommand(Command):
    """compass doc update <id> [--title T] [--body TEXT]"""

    def execute(self) -> None:
        body = _read_body(self.args.body)
        if self.args.title is None and body is None:
            _fail("nothing to update. Pass --title or --body.")
        document = self.store.update_document(self.args.id, title=self.args.title, body=body)
        print(f"[compass] Updated document {document['id']}.")


class DocDeleteCommand(Command):
    """compass doc delete <id> [--force]"""

    def execute(self) -> None:
        document = self.store.get_document(self.args.id)
        print(f"Document: {document['title']} ({document['id']})")
        if not self.args.force and not _confirm(f"Delete document '{document['id']}'?"):
            print("[compass] Delete cancelled.")
            return
        self.store.delete_document(document["id"])
        print(f"[compass] Deleted document {document['id']}.")


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------

_SEARCH_GROUPS = [("project", "Projects"), ("epic", "Epics"), ("task", "Tasks"), ("document", "Documents")]


class SearchCommand(Command):
    """compass search <query> [--project P]

    Without --project every project is searched.
    """

    def execute(self) -> None:
        results = self.store.search(self.args.query, project=self.args.project)
        if not results:
            print("No results found.")
            return
        for kind, heading in _SEARCH_GROUPS:
            group = [r for r in results if r["type"] == kind]
            if not group:
                continue
            print()
            print(f"{heading}:")
            for r in group:
                print(f"  {r['id']}  {r['title']}")
                if r["snippet"]:
                    print(f"    {r['snippet']}")


# ---------------------------------------------------------------------------
# Repo-local project link
# ---------------------------------------------------------------------------


class RepoInitCommand(Command):
    """compass repo init [<id>]  (also: compass project link [<id>])

    With no id, prompts for a project from the list.
    """

    def execute(self) -> None:
        key = self.args.id or self._choose_project()
        project = self.store.get_project(key)
        repofile.write(os.getcwd(), project["id"])
        print(f"[compass] Linked {repofile.FILE_NAME} to project {project['id']}.")

    def _choose_project(self) -> str:
        projects = self.store.list_projects()
        if not projects:
            raise StoreError("no projects exist; create one first with: compass project create <name>")
        for i, p in enumerate(projects, start=1):
            print(f"  {i}. {p['id']}  {p['name']}")
        while True:
            answer = input(f"Select a project (1-{len(projects)}): ").strip()
            if answer.isdigit() and 1 <= int(answer) <= len(projects):
                return projects[int(answer) - 1]["id"]


class RepoShowCommand(Command):
    """compass repo show"""

    def execute(self) -> None:
        key, directory = repofile.find(os.getcwd())
        if not key:
            print("No project linked. Run: compass repo init")
            return
        print(f"{key} (from {os.path.join(directory, repofile.FILE_NAME)})")


class RepoUnlinkCommand(Command):
    """compass repo unlink  (also: compass project unlink)"""

    def execute(self) -> None:
        if repofile.remove(os.getcwd()):
            print("[compass] Unlinked project.")
        else:
            print("No project linked.")
