"""Dependency graph engine for compass tasks.

Tasks are plain dicts. The engine only reads ``id``, ``status``, ``type`` and
``depends_on`` and never mutates a task. Every entry point builds a fresh
:class:`Graph` from the snapshot it is given; nothing is cached between calls.

An edge runs from a task to each task it depends on. Dependency ids with no
matching task (dangling references) are kept in ``edges`` but skipped by every
traversal.
"""

from __future__ import annotations

import heapq

from compass.model import STATUS_CLOSED, STATUS_OPEN, TYPE_TASK


class CycleError(ValueError):
    """Raised when the dependency graph contains a cycle.

    ``path`` lists the ids forming the cycle in dependency order, with the
    first id repeated at the end, e.g. ``["A", "B", "A"]``.
    """

    def __init__(self, path: list[str]) -> None:
        self.path = list(path)
        super().__init__(f"cycle detected: {' -> '.join(self.path)}")


class Graph:
    """Adjacency view over a task snapshot."""

    def __init__(self) -> None:
        self.nodes: dict[str, dict] = {}
        self.edges: dict[str, list[str]] = {}
        self.reverse_edges: dict[str, list[str]] = {}

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, task_id: str) -> bool:
        return task_id in self.nodes

    def node(self, task_id: str) -> dict | None:
        return self.nodes.get(task_id)


def build(tasks: list[dict]) -> Graph:
    """Build a graph from a list of task dicts.

    Duplicate ids resolve to the last task seen.
    """
    graph = Graph()
    for task in tasks:
        graph.nodes[task["id"]] = task
        graph.edges[task["id"]] = list(task.get("depends_on") or [])
    for task_id, deps in graph.edges.items():
        for dep in deps:
            graph.reverse_edges.setdefault(dep, []).append(task_id)
    return graph


# ---------------------------------------------------------------------------
# Validation and ordering
# ---------------------------------------------------------------------------

_WHITE, _GRAY, _BLACK = 0, 1, 2


def _cycle_path(parent: dict[str, str], current: str, revisited: str) -> list[str]:
    path = [revisited]
    node = current
    while node != revisited:
        path.append(node)
        node = parent[node]
    path.append(revisited)
    path.reverse()
    return path


def validate_acyclic(graph: Graph) -> None:
    """Raise :class:`CycleError` for the first cycle found, else return None.

    Iterative three-colour DFS started from every unvisited node so that
    disconnected components are covered. When several cycles exist, which one
    is reported depends on node order and is not guaranteed.
    """
    color = {task_id: _WHITE for task_id in graph.nodes}
    parent: dict[str, str] = {}

    for start in graph.nodes:
        if color[start] != _WHITE:
            continue
        color[start] = _GRAY
        stack = [(start, iter(graph.edges.get(start, [])))]
        while stack:
            node, deps = stack[-1]
            for dep in deps:
                if dep not in graph:
                    continue
                if color[dep] == _GRAY:
                    raise CycleError(_cycle_path(parent, node, dep))
                if color[dep] == _WHITE:
                    parent[dep] = node
                    color[dep] = _GRAY
                    stack.append((dep, iter(graph.edges.get(dep, []))))
                    break
            else:
                color[node] = _BLACK
                stack.pop()


def topological_sort(graph: Graph) -> list[str]:
    """Return every node id in dependency order (Kahn's algorithm).

    Dependencies always precede their dependents. Ties are broken by picking
    the lexicographically smallest eligible id, so equal input always yields
    equal output. Raises :class:`CycleError` if the graph is cyclic.
    """
    in_degree = {
        task_id: sum(1 for dep in graph.edges.get(task_id, []) if dep in graph)
        for task_id in graph.nodes
    }
    frontier = [task_id for task_id, degree in in_degree.items() if degree == 0]
    heapq.heapify(frontier)

    order: list[str] = []
    while frontier:
        node = heapq.heappop(frontier)
        order.append(node)
        for dependent in graph.reverse_edges.get(node, []):
            if dependent not in in_degree:
                continue
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                heapq.heappush(frontier, dependent)

    if len(order) != len(graph):
        # Kahn only stalls on a cycle; the validator raises with its path.
        validate_acyclic(graph)
    return order


# ---------------------------------------------------------------------------
# Derived queries
# ---------------------------------------------------------------------------


def transitive_dependencies(graph: Graph, task_id: str) -> set[str]:
    """Return every known task reachable through ``depends_on`` from ``task_id``."""
    seen: set[str] = set()
    stack = [dep for dep in graph.edges.get(task_id, []) if dep in graph]
    while stack:
        node = stack.pop()
        if node in seen:
            continue
        seen.add(node)
        stack.extend(dep for dep in graph.edges.get(node, []) if dep in graph and dep not in seen)
    seen.discard(task_id)
    return seen


def direct_dependents(graph: Graph, task_id: str) -> list[str]:
    return list(graph.reverse_edges.get(task_id, []))


def roots(graph: Graph) -> list[str]:
    """Ids of tasks that declare no dependencies, sorted."""
    return sorted(task_id for task_id in graph.nodes if not graph.edges.get(task_id))


def leaves(graph: Graph) -> list[str]:
    """Ids of tasks nothing depends on, sorted."""
    return sorted(task_id for task_id in graph.nodes if not graph.reverse_edges.get(task_id))


# ---------------------------------------------------------------------------
# Readiness
# ---------------------------------------------------------------------------


def is_blocked(task: dict, task_map: dict[str, dict]) -> bool:
    """Return True if any dependency is missing or not closed."""
    for dep in task.get("depends_on") or []:
        dep_task = task_map.get(dep)
        if dep_task is None or dep_task["status"] != STATUS_CLOSED:
            return True
    return False


def ready_tasks(tasks: list[dict]) -> list[dict]:
    """Return open, unblocked, task-type entries in topological order.

    A cyclic snapshot does not raise: candidates come back in input order.
    Duplicate ids resolve to the last task seen, as in :func:`build`.
    """
    task_map = {t["id"]: t for t in tasks}
    candidates = [
        t for t in task_map.values()
        if t.get("type", TYPE_TASK) == TYPE_TASK
        and t["status"] == STATUS_OPEN
        and not is_blocked(t, task_map)
    ]
    if not candidates:
        return []

    try:
        order = topological_sort(build(tasks))
    except CycleError:
        return candidates

    by_id = {t["id"]: t for t in candidates}
    return [by_id[task_id] for task_id in order if task_id in by_id]


# ---------------------------------------------------------------------------
# Text rendering
# ---------------------------------------------------------------------------


def _label(task: dict, task_map: dict[str, dict]) -> str:
    status = task["status"]
    if is_blocked(task, task_map):
        status = f"{status} (blocked)"
    return f"{task['id']} {task.get('title', '')} [{status}]"


def render_tree(graph: Graph) -> str:
    """Render the graph as an indented tree, roots first, dependents below."""
    if not len(graph):
        return "No tasks."
    root_ids = roots(graph)
    if not root_ids:
        return "No root tasks (all tasks have dependencies)."

    lines: list[str] = []
    visited: set[str] = set()

    def walk(task_id: str, prefix: str, is_last: bool, top: bool) -> None:
        task = graph.node(task_id)
        if task is None:
            return
        connector = "" if top else ("└── " if is_last else "├── ")
        label = _label(task, graph.nodes)
        if task_id in visited:
            lines.append(f"{prefix}{connector}{label} (see above)")
            return
        visited.add(task_id)
        lines.append(f"{prefix}{connector}{label}")

        if top:
            child_prefix = "    "
        else:
            child_prefix = prefix + ("    " if is_last else "│   ")
        children = sorted(graph.reverse_edges.get(task_id, []))
        for i, child in enumerate(children):
            walk(child, child_prefix, i == len(children) - 1, False)

    for i, root in enumerate(root_ids):
        if i > 0:
            lines.append("")
        walk(root, "", True, True)
    return "\n".join(lines)
