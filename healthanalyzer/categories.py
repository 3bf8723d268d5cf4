"""
Category registry.

Maps category names to the handler responsible for that life-area. A
registry is built once at startup and handed to whatever needs category
lookups; there is no module-level registry.
"""

from typing import Dict, List, Optional, Protocol


class CategoryHandler(Protocol):
    """Anything that declares the category it handles."""

    @property
    def category(self) -> str:
        ...


class CategoryRegistry:
    """
    Registry of category handlers keyed by category name.

    Categories are free-form strings, so registering a new one needs no
    schema change in the store.
    """

    def __init__(self, handlers: Optional[List[CategoryHandler]] = None):
        self._handlers: Dict[str, CategoryHandler] = {}
        for handler in handlers or []:
            self.register(handler)

    def register(self, handler: CategoryHandler) -> None:
        """
        Add a handler under its category name.

        Raises:
            ValueError: empty category name, or the category is already registered
        """
        name = handler.category
        if not name or not name.strip():
            raise ValueError("category name cannot be empty")
        if name in self._handlers:
            raise ValueError(f"Category '{name}' is already registered")
        self._handlers[name] = handler

    def get(self, name: str) -> Optional[CategoryHandler]:
        """Handler for a category, or None if not registered."""
        return self._handlers.get(name)

    def all(self) -> Dict[str, CategoryHandler]:
        """Copy of every registered handler keyed by category."""
        return dict(self._handlers)

    def categories(self) -> List[str]:
        """Sorted names of all registered categories."""
        return sorted(self._handlers)

    def __contains__(self, name: str) -> bool:
        return name in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)
