"""In-process transform graph.

Stores named rigid-transform edges between frame labels as a tree (every
child label has exactly one parent) and answers composed-transform queries
with a bounded wait. Edges published are queryable immediately.
"""

from __future__ import annotations

import threading
import time
from typing import Optional

import numpy as np

from .transforms import as_transform, identity_transform, invert_transform

WORLD = "world"
CAMERA_POSITION = "camera_position"


def marker_label(marker_id: int) -> str:
    return f"marker_{marker_id}"


def camera_label(marker_id: int) -> str:
    return f"camera_{marker_id}"


def marker_globe_label(marker_id: int) -> str:
    return f"marker_globe_{marker_id}"


class TransformLookupError(TimeoutError):
    """No edge chain between two labels became available within the timeout."""

    def __init__(self, from_label: str, to_label: str, timeout: float):
        super().__init__(
            f"no transform {from_label} -> {to_label} within {timeout:.3f}s"
        )
        self.from_label = from_label
        self.to_label = to_label
        self.timeout = timeout


class TransformGraph:
    def __init__(self, default_timeout: float = 0.0):
        self.default_timeout = default_timeout
        # child label -> (parent label, T_parent_child)
        self._edges: dict[str, tuple[str, np.ndarray]] = {}
        self._cond = threading.Condition()

    def publish_edge(self, parent_label: str, child_label: str, transform) -> None:
        if parent_label == child_label:
            raise ValueError(f"edge {parent_label} -> {child_label} is a self loop")
        T = as_transform(transform).copy()
        with self._cond:
            self._edges[child_label] = (parent_label, T)
            self._cond.notify_all()

    def discard(self, child_label: str) -> bool:
        with self._cond:
            return self._edges.pop(child_label, None) is not None

    def parent_of(self, label: str) -> Optional[str]:
        edge = self._edges.get(label)
        return edge[0] if edge is not None else None

    def labels(self) -> set[str]:
        with self._cond:
            out = set(self._edges)
            out.update(parent for parent, _ in self._edges.values())
        return out

    def can_transform(self, from_label: str, to_label: str) -> bool:
        with self._cond:
            return self._lookup(from_label, to_label) is not None

    def query(self, from_label: str, to_label: str, timeout: Optional[float] = None) -> np.ndarray:
        """Return T_from_to, waiting at most ``timeout`` seconds for a path."""
        if timeout is None:
            timeout = self.default_timeout
        deadline = time.monotonic() + max(0.0, timeout)
        with self._cond:
            while True:
                T = self._lookup(from_label, to_label)
                if T is not None:
                    return T
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TransformLookupError(from_label, to_label, timeout)
                self._cond.wait(remaining)

    def _chain_to_root(self, label: str) -> list[tuple[str, np.ndarray]]:
        """[(ancestor, T_ancestor_label), ...] walking from ``label`` up to its root."""
        chain = []
        T_current_label = identity_transform()
        current = label
        while True:
            chain.append((current, T_current_label))
            edge = self._edges.get(current)
            if edge is None:
                return chain
            parent, T_parent_current = edge
            T_current_label = T_parent_current @ T_current_label
            current = parent
            if len(chain) > len(self._edges):
                raise ValueError(f"cycle detected above frame {label}")

    def _lookup(self, from_label: str, to_label: str) -> Optional[np.ndarray]:
        if from_label == to_label:
            known = from_label in self._edges or any(
                parent == from_label for parent, _ in self._edges.values()
            )
            return identity_transform() if known else None

        to_index = dict(self._chain_to_root(to_label))
        for ancestor, T_ancestor_from in self._chain_to_root(from_label):
            T_ancestor_to = to_index.get(ancestor)
            if T_ancestor_to is not None:
                return invert_transform(T_ancestor_from) @ T_ancestor_to
        return None
