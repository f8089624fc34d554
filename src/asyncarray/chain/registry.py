"""Registry of step kinds available to Operation.add_step.

Step classes register themselves under one or more names with the
register_step decorator.  Operation.add_step looks the kind up by name, so
new step kinds can be added without touching Operation.
"""

from typing import Dict, Type, TypeVar, Generic
import logging

logger = logging.getLogger(__name__)

T = TypeVar('T')


class StepRegistry(Generic[T]):
    """Name to class mapping for step kinds."""

    def __init__(self):
        self._registry: Dict[str, Type[T]] = {}

    def register(self, cls: Type[T], name: str) -> None:
        """
        Register a step class (called by the decorator when modules are imported).

        Args:
            cls: The class to register
            name: The registration name
        """
        if name in self._registry:
            existing = self._registry[name]
            if existing is not cls:
                logger.warning(
                    f"Step kind '{name}' already registered as {existing}. "
                    f"Overwriting with {cls}."
                )

        self._registry[name] = cls
        logger.debug(f"Registered '{name}' → {cls.__module__}.{cls.__name__}")

    def get(self, name: str) -> Type[T]:
        """
        Get a step class by name.

        Raises:
            KeyError: If no step kind is registered under that name
        """
        if name in self._registry:
            return self._registry[name]

        available = sorted(self._registry.keys())
        raise KeyError(
            f"Step kind '{name}' not found in registry. "
            f"Available kinds: {', '.join(available)}"
        )

    def __contains__(self, name: str) -> bool:
        return name in self._registry

    @property
    def all(self) -> Dict[str, Type[T]]:
        """A copy of every registered name and its class."""
        return self._registry.copy()


step_registry = StepRegistry()


def register_step(*names: str):
    """
    Decorator to register a step class with one or more names in the registry.

    Usage:
        @register_step("map")
        class MapStep(Step):
            ...

        # Register with multiple names
        @register_step("forEach", "for_each")
        class Step:
            ...
    """
    if not names:
        raise ValueError("At least one name must be provided")

    def wrap(cls):
        for step_name in names:
            step_registry.register(cls, name=step_name)
        return cls
    return wrap
