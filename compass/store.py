"""Local JSON-backed store for compass projects, tasks and documents.

Layout under the base directory (``.compass`` by default)::

    projects/<KEY>/project.json
    projects/<KEY>/tasks.json        {"tasks": [...]}
    projects/<KEY>/documents.json    {"documents": [...]}

Every write that changes a task's dependencies runs the dependency checks and
the cycle validator while holding the lock on ``tasks.json``, so a rejected
write never reaches disk.
"""

from __future__ import annotations

import getpass
import os
import shutil
from datetime import datetime, timezone

from compass import dag
from compass import locks
from compass.ids import (
    KIND_DOCUMENT,
    generate_key,
    new_doc_id,
    new_task_id,
    parse_id,
    project_key_from,
    validate_key,
)
from compass.model import (
    STATUS_OPEN,
    TYPE_EPIC,
    TYPE_TASK,
    validate_document,
    validate_project,
    validate_status,
    validate_task,
    validate_type,
)

DEFAULT_BASE_DIR = ".compass"

_EMPTY_TASKS = {"tasks": []}
_EMPTY_DOCUMENTS = {"documents": []}

# Distinguishes "leave unchanged" from None ("clear") for optional fields.
_UNSET = object()

# Characters of context kept on each side of a search hit.
_SNIPPET_CONTEXT = 40


class StoreError(Exception):
    """A lookup or reference failed (missing entity, duplicate key, bad dependency)."""


def _now() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def _current_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return os.environ.get("USER") or "unknown"


def _snippet(body: str, needle: str) -> str:
    """Return the text around the first hit of ``needle``, on one line."""
    idx = body.lower().find(needle)
    if idx < 0:
        return ""
    start = max(idx - _SNIPPET_CONTEXT, 0)
    end = min(idx + len(needle) + _SNIPPET_CONTEXT, len(body))
    text = body[start:end]
    if start > 0:
        text = "..." + text
    if end < len(body):
        text = text + "..."
    return text.replace("\n", " ")


class Store:
    """File-backed CRUD over projects, tasks and documents."""

    def __init__(self, base_dir: str = DEFAULT_BASE_DIR) -> None:
        self.base_dir = base_dir

    # -----------------------------------------------------------------------
    # Paths
    # -----------------------------------------------------------------------

    @property
    def projects_dir(self) -> str:
        return os.path.join(self.base_dir, "projects")

    def project_dir(self, key: str) -> str:
        return os.path.join(self.projects_dir, key)

    def _project_path(self, key: str) -> str:
        return os.path.join(self.project_dir(key), "project.json")

    def _tasks_path(self, key: str) -> str:
        return os.path.join(self.project_dir(key), "tasks.json")

    def _documents_path(self, key: str) -> str:
        return os.path.join(self.project_dir(key), "documents.json")

    # -----------------------------------------------------------------------
    # Projects
    # -----------------------------------------------------------------------

    def create_project(self, name: str, key: str | None = None, body: str = "") -> dict:
        key = key or generate_key(name)
        validate_key(key)
        if os.path.exists(self._project_path(key)):
            raise StoreError(f"project {key} already exists")

        stamp = _now()
        project = {
            "id": key,
            "name": name,
            "body": body or "",
            "created_by": _current_user(),
            "created_at": stamp,
            "updated_at": stamp,
        }
        validate_project(project)

        os.makedirs(self.project_dir(key), exist_ok=True)
        locks.write_json(self._project_path(key), project)
        locks.write_json(self._tasks_path(key), _EMPTY_TASKS)
        return project

    def get_project(self, key: str) -> dict:
        path = self._project_path(key)
        if not os.path.exists(path):
            raise StoreError(f"project {key} not found (try: compass project list)")
        return locks.read_json(path)

    def list_projects(self) -> list[dict]:
        if not os.path.isdir(self.projects_dir):
            return []
        projects = []
        for name in sorted(os.listdir(self.projects_dir)):
            path = self._project_path(name)
            if os.path.exists(path):
                projects.append(locks.read_json(path))
        return projects

    def delete_project(self, key: str) -> None:
        self.get_project(key)
        shutil.rmtree(self.project_dir(key))

    # -----------------------------------------------------------------------
    # Tasks
    # -----------------------------------------------------------------------

    def _load_tasks(self, key: str) -> list[dict]:
        return locks.read_json(self._tasks_path(key), default=_EMPTY_TASKS)["tasks"]

    def create_task(
        self,
        title: str,
        project: str,
        task_type: str = TYPE_TASK,
        epic: str | None = None,
        depends_on: list[str] | None = None,
        priority: int | None = None,
        body: str = "",
    ) -> dict:
        self.get_project(project)
        validate_type(task_type)

        stamp = _now()
        task = {
            "id": new_task_id(project),
            "title": title,
            "project": project,
            "type": task_type,
            "epic": epic or "",
            "status": STATUS_OPEN,
            "depends_on": list(depends_on or []),
            "priority": priority,
            "body": body or "",
            "created_by": _current_user(),
            "created_at": stamp,
            "updated_at": stamp,
        }
        validate_task(task)

        with locks.locked_json_rw(self._tasks_path(project), default=_EMPTY_TASKS) as data:
            tasks = data["tasks"]
            if epic:
                parent = next((t for t in tasks if t["id"] == epic), None)
                if parent is None:
                    raise StoreError(f"epic {epic} not found")
                if parent["type"] != TYPE_EPIC:
                    raise StoreError(f"{epic} is not an epic-type task")
            if task["depends_on"]:
                self._validate_deps(task, tasks)
            tasks.append(task)
        return task

    def _find(self, task_id: str) -> str:
        """Return the project key that holds ``task_id``."""
        try:
            key = project_key_from(task_id)
        except ValueError as e:
            raise StoreError(str(e)) from e
        if any(t["id"] == task_id for t in self._load_tasks(key)):
            return key
        raise StoreError(f"{task_id} not found (try: compass task list)")

    def get_task(self, task_id: str) -> dict:
        key = self._find(task_id)
        return next(t for t in self._load_tasks(key) if t["id"] == task_id)

    def list_tasks(
        self,
        project: str | None = None,
        status: str | None = None,
        task_type: str | None = None,
        epic: str | None = None,
    ) -> list[dict]:
        keys = [project] if project else [p["id"] for p in self.list_projects()]
        result = []
        for key in keys:
            for task in self._load_tasks(key):
                if status and task["status"] != status:
                    continue
                if task_type and task.get("type", TYPE_TASK) != task_type:
                    continue
                if epic and task.get("epic") != epic:
                    continue
                result.append(task)
        return result

    def update_task(
        self,
        task_id: str,
        title: str | None = None,
        status: str | None = None,
        depends_on: list[str] | None = None,
        priority=_UNSET,
        body: str | None = None,
    ) -> dict:
        """Apply the given field changes; ``priority=None`` clears the priority."""
        key = self._find(task_id)
        if status is not None:
            validate_status(status)

        with locks.locked_json_rw(self._tasks_path(key), default=_EMPTY_TASKS) as data:
            tasks = data["tasks"]
            index = next((i for i, t in enumerate(tasks) if t["id"] == task_id), None)
            if index is None:
                raise StoreError(f"{task_id} not found (try: compass task list)")

            task = dict(tasks[index])
            if title is not None:
                task["title"] = title
            if status is not None:
                task["status"] = status
            if depends_on is not None:
                task["depends_on"] = list(depends_on)
            if priority is not _UNSET:
                task["priority"] = priority
            if body is not None:
                task["body"] = body
            task["updated_at"] = _now()

            validate_task(task)
            if depends_on is not None:
                self._validate_deps(task, tasks)
            tasks[index] = task
        return task

    def delete_task(self, task_id: str) -> None:
        key = self._find(task_id)
        with locks.locked_json_rw(self._tasks_path(key), default=_EMPTY_TASKS) as data:
            data["tasks"] = [t for t in data["tasks"] if t["id"] != task_id]

    def dependents_of(self, task_id: str) -> list[str]:
        key = self._find(task_id)
        return dag.direct_dependents(dag.build(self._load_tasks(key)), task_id)

    def task_map(self, project: str) -> dict[str, dict]:
        return {t["id"]: t for t in self._load_tasks(project)}

    def ready_tasks(self, project: str) -> list[dict]:
        self.get_project(project)
        return dag.ready_tasks(self._load_tasks(project))

    def graph(self, project: str) -> dag.Graph:
        self.get_project(project)
        return dag.build([t for t in self._load_tasks(project) if t.get("type", TYPE_TASK) == TYPE_TASK])

    # -----------------------------------------------------------------------
    # Documents
    # -----------------------------------------------------------------------

    def _load_documents(self, key: str) -> list[dict]:
        return locks.read_json(self._documents_path(key), default=_EMPTY_DOCUMENTS)["documents"]

    def create_document(self, title: str, project: str, body: str = "") -> dict:
        self.get_project(project)
        stamp = _now()
        document = {
            "id": new_doc_id(project),
            "title": title,
            "project": project,
            "body": body or "",
            "created_by": _current_user(),
            "created_at": stamp,
            "updated_at": stamp,
        }
        validate_document(document)
        with locks.locked_json_rw(self._documents_path(project), default=_EMPTY_DOCUMENTS) as data:
            data["documents"].append(document)
        return document

    def _find_document(self, doc_id: str) -> str:
        """Return the project key that holds document ``doc_id``."""
        try:
            key, kind, _ = parse_id(doc_id)
        except ValueError as e:
            raise StoreError(str(e)) from e
        if kind != KIND_DOCUMENT:
            raise StoreError(f"{doc_id} is not a document id")
        if any(d["id"] == doc_id for d in self._load_documents(key)):
            return key
        raise StoreError(f"{doc_id} not found (try: compass doc list)")

    def get_document(self, doc_id: str) -> dict:
        key = self._find_document(doc_id)
        return next(d for d in self._load_documents(key) if d["id"] == doc_id)

    def list_documents(self, project: str | None = None) -> list[dict]:
        keys = [project] if project else [p["id"] for p in self.list_projects()]
        result = []
        for key in keys:
            result.extend(self._load_documents(key))
        return result

    def update_document(self, doc_id: str, title: str | None = None, body: str | None = None) -> dict:
        key = self._find_document(doc_id)
        with locks.locked_json_rw(self._documents_path(key), default=_EMPTY_DOCUMENTS) as data:
            documents = data["documents"]
            index = next((i for i, d in enumerate(documents) if d["id"] == doc_id), None)
            if index is None:
                raise StoreError(f"{doc_id} not found (try: compass doc list)")
            document = dict(documents[index])
            if title is not None:
                document["title"] = title
            if body is not None:
                document["body"] = body
            document["updated_at"] = _now()
            validate_document(document)
            documents[index] = document
        return document

    def delete_document(self, doc_id: str) -> None:
        key = self._find_document(doc_id)
        with locks.locked_json_rw(self._documents_path(key), default=_EMPTY_DOCUMENTS) as data:
            data["documents"] = [d for d in data["documents"] if d["id"] != doc_id]

    # -----------------------------------------------------------------------
    # Search
    # -----------------------------------------------------------------------

    def search(self, query: str, project: str | None = None) -> list[dict]:
        """Case-insensitive substring search across projects, documents, epics and tasks.

        Names and titles are matched first, then bodies. Every entity appears
        at most once; a match found only in the body carries a ``snippet`` of
        the surrounding text. Results come grouped in that entity order.
        """
        needle = query.strip().lower()
        if not needle:
            raise ValueError("search query is required")
        projects = [self.get_project(project)] if project else self.list_projects()

        candidates = [("project", p["id"], p["name"], p.get("body", "")) for p in projects]
        for p in projects:
            candidates.extend(
                ("document", d["id"], d["title"], d.get("body", "")) for d in self._load_documents(p["id"])
            )
        for task_type in (TYPE_EPIC, TYPE_TASK):
            for p in projects:
                candidates.extend(
                    (task_type, t["id"], t["title"], t.get("body", ""))
                    for t in self._load_tasks(p["id"])
                    if t.get("type", TYPE_TASK) == task_type
                )

        results = []
        for kind, entity_id, title, body in candidates:
            if needle in title.lower():
                results.append({"type": kind, "id": entity_id, "title": title, "snippet": ""})
            elif needle in (body or "").lower():
                results.append({"type": kind, "id": entity_id, "title": title, "snippet": _snippet(body, needle)})
        return results

    # -----------------------------------------------------------------------
    # Dependency checks
    # -----------------------------------------------------------------------

    def _validate_deps(self, task: dict, tasks: list[dict]) -> None:
        """Check references, then reject the change if it closes a cycle.

        ``tasks`` is the current in-project list; ``task`` is the pending
        version of one entry (or a new one).
        """
        by_id = {t["id"]: t for t in tasks}
        for dep in task["depends_on"]:
            dep_task = by_id.get(dep)
            if dep_task is None:
                try:
                    dep_project = project_key_from(dep)
                except ValueError:
                    dep_project = None
                if dep_project and dep_project != task["project"]:
                    raise StoreError(
                        f"dependency {dep} is in project {dep_project}, not {task['project']}"
                    )
                raise StoreError(f"dependency {dep} not found")
            if dep_task.get("type", TYPE_TASK) == TYPE_EPIC:
                raise StoreError(f"cannot depend on epic-type task {dep}")

        snapshot = [t for t in tasks if t["id"] != task["id"] and t.get("type", TYPE_TASK) == TYPE_TASK]
        snapshot.append(task)
        dag.validate_acyclic(dag.build(snapshot))
