"""Registry pattern for named, read-only records."""

from typing import Dict, TypeVar, Generic, Optional, List, Any, Iterator, Callable

T = TypeVar('T')


class Registry(Generic[T]):
    """
    Keyed collection of records with optional aliases and metadata.

    Registries are plain instances owned by whoever builds them; there are
    no module-level registries, so two stores never share state.
    """

    def __init__(self, kind: str = "item"):
        self.kind = kind
        self._items: Dict[str, T] = {}
        self._aliases: Dict[str, str] = {}
        self._metadata: Dict[str, Dict[str, Any]] = {}

    def register(
        self,
        name: str,
        item: T,
        aliases: Optional[List[str]] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> T:
        """Register an item under a name."""
        self._items[name] = item
        self._metadata[name] = metadata or {}

        for alias in (aliases or []):
            self._aliases[alias] = name

        return item

    def resolve(self, name: str) -> str:
        """Map an alias to its registered name."""
        return self._aliases.get(name, name)

    def get(self, name: str) -> T:
        """Get a registered item by name or alias."""
        resolved_name = self.resolve(name)

        if resolved_name not in self._items:
            available = list(self._items.keys())
            raise KeyError(
                f"{self.kind} '{name}' not found in registry. Available: {available}"
            )

        return self._items[resolved_name]

    def find(self, name: str) -> Optional[T]:
        """Get an item or None."""
        return self._items.get(self.resolve(name))

    def list_registered(self) -> List[str]:
        """List all registered names, sorted."""
        return sorted(self._items.keys())

    def filter(self, predicate: Callable[[T], bool]) -> List[T]:
        """Items matching a predicate, in name order."""
        return [self._items[n] for n in self.list_registered() if predicate(self._items[n])]

    def get_metadata(self, name: str) -> Dict[str, Any]:
        """Get metadata for a registered item."""
        return self._metadata.get(self.resolve(name), {})

    def is_registered(self, name: str) -> bool:
        """Check if a name is registered."""
        return self.resolve(name) in self._items

    def unregister(self, name: str) -> None:
        """Unregister an item."""
        self._items.pop(name, None)
        self._metadata.pop(name, None)

        # Remove any aliases pointing to this name
        aliases_to_remove = [
            alias for alias, target in self._aliases.items()
            if target == name
        ]
        for alias in aliases_to_remove:
            del self._aliases[alias]

    def __contains__(self, name: str) -> bool:
        return self.is_registered(name)

    def __iter__(self) -> Iterator[str]:
        return iter(self.list_registered())

    def __len__(self) -> int:
        return len(self._items)
