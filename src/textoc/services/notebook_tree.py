"""In-memory notebook hierarchy.

Built from the flat notebook list after every refresh. Nodes are held in a
dict keyed by id and refer to their parent by id only, so the structure is
an arena rather than a web of object references.
"""
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from textoc.models.schema import Notebook

logger = logging.getLogger(__name__)


class NotebookForest:
    """Read-only view over a set of notebooks.

    Child lists keep the order the notebooks were given in. A notebook whose
    parent is not in the set is treated as a root.
    """

    def __init__(self, notebooks: Iterable[Notebook] = ()):
        self._nodes: Dict[str, Notebook] = {}
        self._order: Dict[str, int] = {}
        for index, notebook in enumerate(notebooks):
            self._nodes[notebook.id] = notebook
            self._order[notebook.id] = index
        self._children: Optional[Dict[Optional[str], List[str]]] = None

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, notebook_id: object) -> bool:
        return notebook_id in self._nodes

    def get(self, notebook_id: str) -> Optional[Notebook]:
        return self._nodes.get(notebook_id)

    def _child_index(self) -> Dict[Optional[str], List[str]]:
        # Computed on first use; the forest is rebuilt rather than mutated
        if self._children is None:
            index: Dict[Optional[str], List[str]] = {None: []}
            for node_id in sorted(self._nodes, key=self._order.__getitem__):
                parent = self._nodes[node_id].parent_id
                if parent not in self._nodes:
                    parent = None
                index.setdefault(parent, []).append(node_id)
            self._children = index
        return self._children

    def roots(self) -> List[Notebook]:
        return [self._nodes[i] for i in self._child_index()[None]]

    def children(self, notebook_id: str) -> List[Notebook]:
        return [self._nodes[i] for i in self._child_index().get(notebook_id, [])]

    def parent(self, notebook_id: str) -> Optional[Notebook]:
        node = self._nodes.get(notebook_id)
        if node is None or node.parent_id is None:
            return None
        return self._nodes.get(node.parent_id)

    def ancestors(self, notebook_id: str) -> List[Notebook]:
        """Parent first, root last. Stops if a corrupt cycle is met."""
        result: List[Notebook] = []
        seen = {notebook_id}
        current = self.parent(notebook_id)
        while current is not None and current.id not in seen:
            result.append(current)
            seen.add(current.id)
            current = self.parent(current.id)
        return result

    def descendants(self, notebook_id: str) -> List[Notebook]:
        """Every notebook below ``notebook_id``, depth-first, excluding itself."""
        result: List[Notebook] = []
        stack = list(reversed(self._child_index().get(notebook_id, [])))
        seen = {notebook_id}
        while stack:
            node_id = stack.pop()
            if node_id in seen:
                continue
            seen.add(node_id)
            result.append(self._nodes[node_id])
            stack.extend(reversed(self._child_index().get(node_id, [])))
        return result

    def depth(self, notebook_id: str) -> int:
        """0 for roots."""
        return len(self.ancestors(notebook_id))

    def path_names(self, notebook_id: str) -> List[str]:
        """Names from the root down to ``notebook_id``."""
        node = self._nodes.get(notebook_id)
        if node is None:
            return []
        return [nb.name for nb in reversed(self.ancestors(notebook_id))] + [node.name]

    def flatten(self) -> List[Tuple[Notebook, int]]:
        """Depth-first ``(notebook, depth)`` pairs in display order."""
        result: List[Tuple[Notebook, int]] = []
        stack: List[Tuple[str, int]] = [
            (node_id, 0) for node_id in reversed(self._child_index()[None])
        ]
        seen = set()
        while stack:
            node_id, depth = stack.pop()
            if node_id in seen:
                continue
            seen.add(node_id)
            result.append((self._nodes[node_id], depth))
            for child_id in reversed(self._child_index().get(node_id, [])):
                stack.append((child_id, depth + 1))
        return result

    def would_create_cycle(self, node_id: str, new_parent_id: Optional[str]) -> bool:
        """True if making ``new_parent_id`` the parent of ``node_id`` loops."""
        if new_parent_id is None:
            return False
        if new_parent_id == node_id:
            return True
        return any(a.id == node_id for a in self.ancestors(new_parent_id))
