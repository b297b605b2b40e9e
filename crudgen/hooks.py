# File: crudgen/hooks.py
"""
crudgen - Lifecycle Hooks
===========================
An explicit ``HookRegistry`` handed to the generator.  Nothing here is
global: two generators built with two registries never see each other's
callbacks.

Hook points and the arguments their callbacks receive::

    before_generate(entities)             after_generate(entities)
    before_model_generate(entity)         after_model_generate(entity, artifacts)
    before_controller_generate(entity)    after_controller_generate(entity, artifacts)
    before_view_generate(entity)          after_view_generate(entity, artifacts)
    before_routes_generate(tree)          after_routes_generate(tree, artifacts)

Callbacks run synchronously in registration order.  Any exception escaping a
callback is re-raised as ``HookError`` and aborts the run.  Callbacks only
get frozen values, so they can observe a run but not steer it.

Usage::

    hooks = HookRegistry()
    hooks.on("after_model_generate", lambda entity, artifacts: print(entity.name))

    class AuditPlugin(Plugin):
        name = "audit"

        def before_generate(self, entities):
            ...

    hooks.register(AuditPlugin())
    ScaffoldGenerator(config, hooks=hooks).generate(schema)
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from crudgen.errors import HookError

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen.hooks")

HookCallback = Callable[..., Any]

STAGES: Tuple[str, ...] = ("model", "controller", "view")

HOOK_NAMES: Tuple[str, ...] = (
    "before_generate",
    "after_generate",
    "before_model_generate",
    "after_model_generate",
    "before_controller_generate",
    "after_controller_generate",
    "before_view_generate",
    "after_view_generate",
    "before_routes_generate",
    "after_routes_generate",
)


class Plugin:
    """
    Convenience base class bundling several hooks.

    Override only the methods you need; :meth:`HookRegistry.register` skips
    the ones left as no-ops.
    """

    name: str = "plugin"

    def before_generate(self, entities: Sequence[Any]) -> None:
        pass

    def after_generate(self, entities: Sequence[Any]) -> None:
        pass

    def before_model_generate(self, entity: Any) -> None:
        pass

    def after_model_generate(self, entity: Any, artifacts: Sequence[Any]) -> None:
        pass

    def before_controller_generate(self, entity: Any) -> None:
        pass

    def after_controller_generate(self, entity: Any, artifacts: Sequence[Any]) -> None:
        pass

    def before_view_generate(self, entity: Any) -> None:
        pass

    def after_view_generate(self, entity: Any, artifacts: Sequence[Any]) -> None:
        pass

    def before_routes_generate(self, tree: Any) -> None:
        pass

    def after_routes_generate(self, tree: Any, artifacts: Sequence[Any]) -> None:
        pass


def _label_for(callback: HookCallback) -> str:
    owner: Any = getattr(callback, "__self__", None)
    if owner is not None:
        return f"{getattr(owner, 'name', type(owner).__name__)}.{callback.__name__}"
    return getattr(callback, "__qualname__", repr(callback))


class HookRegistry:
    """Ordered callbacks per hook point."""

    __slots__ = ("_callbacks",)

    def __init__(self) -> None:
        self._callbacks: Dict[str, List[Tuple[str, HookCallback]]] = {
            name: [] for name in HOOK_NAMES
        }

    @staticmethod
    def _check_name(hook: str) -> None:
        if hook not in HOOK_NAMES:
            raise ValueError(
                f"Unknown hook '{hook}'. Expected one of: {', '.join(HOOK_NAMES)}"
            )

    def on(
        self,
        hook: str,
        callback: Optional[HookCallback] = None,
        *,
        label: Optional[str] = None,
    ) -> Any:
        """
        Register *callback* for *hook*.

        Without a callback, returns a decorator::

            @hooks.on("before_generate")
            def announce(entities): ...
        """
        self._check_name(hook)

        def _register(fn: HookCallback) -> HookCallback:
            self._callbacks[hook].append((label or _label_for(fn), fn))
            logger.debug("Registered %s on %s.", label or _label_for(fn), hook)
            return fn

        if callback is None:
            return _register
        return _register(callback)

    def register(self, plugin: Any) -> None:
        """Register every hook method *plugin* implements."""
        registered: int = 0
        for hook in HOOK_NAMES:
            method: Any = getattr(plugin, hook, None)
            if not callable(method):
                continue
            if isinstance(plugin, Plugin) and getattr(type(plugin), hook) is getattr(Plugin, hook):
                continue
            self.on(hook, method)
            registered += 1
        logger.info(
            "Registered plugin %s (%d hook(s)).",
            getattr(plugin, "name", type(plugin).__name__),
            registered,
        )

    def run(self, hook: str, *args: Any) -> None:
        """
        Call every callback of *hook* in registration order.

        Raises:
            HookError: wrapping the first exception a callback raises.
        """
        self._check_name(hook)
        for label, callback in self._callbacks[hook]:
            logger.debug("Running hook %s -> %s", hook, label)
            try:
                callback(*args)
            except Exception as exc:
                raise HookError(hook, label, f"{type(exc).__name__}: {exc}") from exc

    def callbacks(self, hook: str) -> List[str]:
        """Labels of the callbacks registered for *hook*."""
        self._check_name(hook)
        return [label for label, _ in self._callbacks[hook]]

    def clear(self) -> None:
        for callbacks in self._callbacks.values():
            callbacks.clear()

    def __len__(self) -> int:
        return sum(len(cbs) for cbs in self._callbacks.values())

    def __repr__(self) -> str:
        return f"<HookRegistry {len(self)} callback(s)>"


__all__: List[str] = [
    "HOOK_NAMES",
    "STAGES",
    "HookCallback",
    "Plugin",
    "HookRegistry",
]

logger.debug("crudgen.hooks loaded.")
