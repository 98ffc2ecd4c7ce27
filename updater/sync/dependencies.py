"""
Dependency closure for Site Updater.
"""

from dataclasses import dataclass
from typing import Iterable, Tuple

from ..errors import DependencyDriftWarning, DependencyMissingWarning
from ..index.collection import FileCollection


@dataclass(frozen=True)
class DependencyClosure:
    """Files needed for a request, in discovery order, plus any index drift found."""
    files: Tuple[str, ...]
    warnings: Tuple[UserWarning, ...] = ()

    def __contains__(self, filename: str) -> bool:
        return filename in self.files

    def __len__(self) -> int:
        return len(self.files)


def resolve_closure(names: Iterable[str], collection: FileCollection) -> DependencyClosure:
    """
    Collect the requested files and everything they depend on, transitively.

    Walks depth-first with an explicit stack and a set of visited filenames,
    so cycles terminate and every file appears once. Dependencies pointing at
    files the collection does not know are dropped with a warning.

    Args:
        names: Requested filenames (unknown names are ignored)
        collection: Collection the filenames refer to

    Returns:
        DependencyClosure of filenames and warnings
    """
    visited = set()
    order = []
    warnings = []

    stack = [name for name in reversed(list(names)) if name in collection]
    while stack:
        name = stack.pop()
        if name in visited:
            continue
        visited.add(name)
        order.append(name)

        record = collection.get(name)
        for dependency in reversed(record.dependencies):
            target = collection.get(dependency.filename)
            if target is None:
                warnings.append(DependencyMissingWarning(
                    f"{name} depends on {dependency.filename}, which no index knows"
                ))
                continue
            latest = target.latest
            if not dependency.overrides and latest and latest.timestamp < dependency.timestamp:
                warnings.append(DependencyDriftWarning(
                    f"{name} requires {dependency.filename} from {dependency.timestamp}, "
                    f"newest known is {latest.timestamp}"
                ))
            if dependency.filename not in visited:
                stack.append(dependency.filename)

    return DependencyClosure(files=tuple(order), warnings=tuple(warnings))
