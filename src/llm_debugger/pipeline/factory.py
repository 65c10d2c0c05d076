# src/llm_debugger/pipeline/factory.py
"""Factory functions for building a DebuggerSession.

This module is the glue between producer plugins and the session:
1. Discovering producer classes via the llm_debugger_get_sniffers hook
2. Instantiating one producer per class
3. Creating the session, and for install(), registering process teardown
   and auto-starting it

Usage:
    from llm_debugger import install

    debugger = install("?level=ERROR,WARNING&sniffers=console,error")
    ...
    debugger.flush()
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import pluggy
import structlog

from llm_debugger.core.config import DebuggerSettings, resolve_settings
from llm_debugger.errors import ConfigurationError, SnifferError
from llm_debugger.pipeline.lifecycle import PageLifecycle, register_process_teardown
from llm_debugger.pipeline.protocols import SnifferProtocol
from llm_debugger.pipeline.session import DebuggerSession
from llm_debugger.sniffers import BuiltinSniffersPlugin
from llm_debugger.sniffers.hookspecs import PROJECT_NAME, LLMDebuggerSnifferSpec

logger = structlog.get_logger(__name__)

SettingsSource = DebuggerSettings | Mapping[str, Any] | str | Path | None


def _resolve_sniffer_name(sniffer_class: type[SnifferProtocol]) -> str:
    """Resolve a producer's name from its class-level _name or an instance.

    Raises:
        SnifferError: If the class cannot be instantiated or its name is not
            a non-empty string.
    """
    try:
        class_name = sniffer_class.__name__
    except AttributeError as e:
        raise SnifferError("sniffer_plugins", f"Invalid sniffer declaration without __name__: {sniffer_class!r}") from e

    # Class-level _name avoids instantiating just to learn the name
    class_dict = sniffer_class.__dict__
    if "_name" in class_dict:
        class_name_hint = class_dict["_name"]
        if type(class_name_hint) is str and class_name_hint != "":
            return class_name_hint
        raise SnifferError(
            class_name,
            f"Sniffer class attribute _name must be a non-empty string, got {class_name_hint!r}",
        )

    try:
        instance = sniffer_class()
    except Exception as e:
        raise SnifferError(class_name, f"Failed to instantiate sniffer class during discovery: {e}") from e

    resolved_name = instance.name
    if type(resolved_name) is not str or resolved_name == "":
        raise SnifferError(class_name, f"Sniffer name must be a non-empty string, got {resolved_name!r}")
    return resolved_name


def discover_sniffers(sniffer_plugins: Iterable[Any] = ()) -> dict[str, type[SnifferProtocol]]:
    """Discover producers via pluggy hooks.

    Registers the built-in producers plus any plugin objects supplied by the
    caller, then builds the name -> class registry.

    Args:
        sniffer_plugins: Additional plugin objects implementing
            ``llm_debugger_get_sniffers``.

    Returns:
        Mapping of producer name to producer class, built-ins first.

    Raises:
        SnifferError: If a plugin fails validation, returns something that is
            not an iterable of classes, or two producers share a name.
    """
    plugin_manager = pluggy.PluginManager(PROJECT_NAME)
    plugin_manager.add_hookspecs(LLMDebuggerSnifferSpec)

    for plugin in [BuiltinSniffersPlugin(), *list(sniffer_plugins)]:
        try:
            plugin_manager.register(plugin)
            plugin_manager.check_pending()
        except (pluggy.PluginValidationError, ValueError) as e:
            if isinstance(e, pluggy.PluginValidationError):
                plugin_manager.unregister(plugin=plugin)
            raise SnifferError(
                "sniffer_plugins",
                f"Invalid sniffer plugin {type(plugin).__name__}: {e}",
            ) from e

    registry: dict[str, type[SnifferProtocol]] = {}
    # get_hookimpls() lists implementations in registration order
    for hook_impl in plugin_manager.hook.llm_debugger_get_sniffers.get_hookimpls():
        plugin_name = type(hook_impl.plugin).__name__
        try:
            sniffers = hook_impl.function()
        except Exception as e:
            raise SnifferError(
                "sniffer_plugins",
                f"Sniffer plugin {plugin_name} failed in llm_debugger_get_sniffers: {e}",
            ) from e

        if sniffers is None or type(sniffers) in (str, bytes):
            raise SnifferError(
                "sniffer_plugins",
                f"llm_debugger_get_sniffers in plugin {plugin_name} returned {type(sniffers).__name__}; "
                "expected iterable of sniffer classes",
            )
        try:
            sniffer_iter = iter(sniffers)
        except TypeError as e:
            raise SnifferError(
                "sniffer_plugins",
                f"llm_debugger_get_sniffers in plugin {plugin_name} returned {type(sniffers).__name__}; "
                "expected iterable of sniffer classes",
            ) from e

        for sniffer_class in sniffer_iter:
            sniffer_name = _resolve_sniffer_name(sniffer_class)
            if sniffer_name in registry:
                raise SnifferError(
                    sniffer_name,
                    f"Duplicate sniffer name '{sniffer_name}' discovered: "
                    f"{registry[sniffer_name].__name__} and {sniffer_class.__name__}",
                )
            registry[sniffer_name] = sniffer_class

    return registry


def create_session(
    settings: SettingsSource = None,
    *,
    sniffer_plugins: Iterable[Any] = (),
    **session_kwargs: Any,
) -> DebuggerSession:
    """Create a Stopped DebuggerSession with every discovered producer.

    Args:
        settings: Any source accepted by resolve_settings()
        sniffer_plugins: Additional producer plugins
        **session_kwargs: Passed through to DebuggerSession (transport,
            page, timer_factory, diagnostics)

    Returns:
        DebuggerSession in the Stopped state.

    Raises:
        SnifferError: If producer discovery or instantiation fails.
    """
    registry = discover_sniffers(sniffer_plugins)
    sniffers: list[SnifferProtocol] = []
    for name, sniffer_class in registry.items():
        try:
            sniffers.append(sniffer_class())
        except Exception as e:
            raise SnifferError(name, f"Failed to instantiate sniffer: {e}") from e

    logger.debug("Sniffers discovered", sniffers=list(registry))
    return DebuggerSession(settings, sniffers=sniffers, **session_kwargs)


def install(
    settings: SettingsSource = None,
    *,
    teardown: bool = True,
    sniffer_plugins: Iterable[Any] = (),
    **session_kwargs: Any,
) -> DebuggerSession:
    """Install the debugger in this process.

    Creates the session, registers the process-exit flush, and starts it
    when auto_start is set. Configuration problems never raise: the session
    is returned Stopped and the failure is on session.diagnostics.

    Args:
        settings: Any source accepted by resolve_settings()
        teardown: Register an atexit hook that flushes and closes the session
        sniffer_plugins: Additional producer plugins
        **session_kwargs: Passed through to DebuggerSession

    Returns:
        The installed session (Running if auto-started successfully).
    """
    page = session_kwargs.pop("page", None) or PageLifecycle()
    session = create_session(settings, sniffer_plugins=sniffer_plugins, page=page, **session_kwargs)

    if teardown:
        register_process_teardown(session, page)

    try:
        auto_start = resolve_settings(settings).auto_start
    except ConfigurationError:
        # start() records the configuration failure on the diagnostic channel
        auto_start = True

    if auto_start:
        session.start()
    return session
