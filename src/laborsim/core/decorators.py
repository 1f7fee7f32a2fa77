# src/laborsim/core/decorators.py
"""
Decorator for simplified Stage definition.

Instead of:
    from dataclasses import dataclass
    from laborsim.core import Stage

    @dataclass(slots=True)
    class ClipHours(Stage):
        def execute(self, run): ...

You can write:
    from laborsim import stage

    @stage
    class ClipHours:
        def execute(self, run): ...

The decorator handles:
- Making the class a dataclass with slots
- Making it inherit from Stage (if not already)
- Auto-registration via __init_subclass__
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, TypeVar

T = TypeVar("T")


def stage(
    cls: type[T] | None = None,
    *,
    name: str | None = None,
    **dataclass_kwargs: Any,
) -> type[T] | Callable[[type[T]], type[T]]:
    """Decorator to define a Stage with automatic inheritance and dataclass.

    Parameters
    ----------
    cls : type | None
        The class to decorate (provided automatically when used without parens)
    name : str | None
        Optional custom name for the stage. If None, uses class name (snake_case).
    **dataclass_kwargs : Any
        Additional keyword arguments to pass to @dataclass.
        By default, slots=True is set.

    Returns
    -------
    type | Callable
        The decorated class or a decorator function

    Examples
    --------
        @stage
        class DrawPopulation:
            def execute(self, run: RegimeRun) -> None: ...

        @stage(name="my_draw")
        class DrawPopulation:
            def execute(self, run: RegimeRun) -> None: ...
    """
    from laborsim.core.stage import Stage

    dataclass_kwargs.setdefault("slots", True)

    def decorator(cls: type[T]) -> type[T]:
        if not issubclass(cls, Stage):
            # Rebuild the class with Stage as its only base so slots work
            namespace = {
                "__module__": cls.__module__,
                "__qualname__": cls.__qualname__,
                "__annotations__": getattr(cls, "__annotations__", {}),
            }
            if cls.__doc__ is not None:
                namespace["__doc__"] = cls.__doc__
            for attr_name in dir(cls):
                if not attr_name.startswith("__"):
                    namespace[attr_name] = getattr(cls, attr_name)

            stage_kwargs = {"name": name} if name is not None else {}
            cls = type(cls.__name__, (Stage,), namespace, **stage_kwargs)

        # Set custom name BEFORE applying dataclass so __init_subclass__ sees it
        if name is not None:
            cls.name = name  # type: ignore[attr-defined]

        cls = dataclass(**dataclass_kwargs)(cls)
        return cls

    if cls is None:
        return decorator
    return decorator(cls)
