"""Custom editor registry.

Functions flagged with ``customEditor`` in the catalogue are edited by a
pluggable editor instead of per-argument widgets. The engine's contract with
an editor is limited to a flat ``{argName: value}`` map in and out; the
editor's internals are never inspected.

Example:
    registry = CustomEditorRegistry()
    registry.register("dateRange", lambda args: {**args, "to": args["from"]})

    call = registry.edit(call, "dateRange")
"""

from dataclasses import replace
from typing import Any, Callable

from rulebuilder.core.logging import get_logger
from rulebuilder.core.tree.ast import (
    EXPRESSION_TYPES,
    TEXT,
    FunctionArg,
    FunctionCall,
    Literal,
)
from rulebuilder.core.tree.catalog import RuleBuilderConfig
from rulebuilder.core.tree.exceptions import ConfigurationError

logger = get_logger(__name__)

CustomEditor = Callable[[dict[str, Any]], dict[str, Any]]


class CustomEditorRegistry:
    """Name → editor callable lookup for custom function editors."""

    def __init__(self) -> None:
        """Initialize the editor registry."""
        self._editors: dict[str, CustomEditor] = {}

    def register(self, name: str, editor: CustomEditor) -> None:
        """Register ``editor`` under ``name``, replacing any previous one."""
        if name in self._editors:
            logger.warning("Replacing custom editor", editor=name)
        self._editors[name] = editor
        logger.debug("Custom editor registered", editor=name)

    def unregister(self, name: str) -> bool:
        """Remove an editor; returns False if it was not registered."""
        if name not in self._editors:
            logger.warning("Custom editor not found for unregister", editor=name)
            return False
        del self._editors[name]
        logger.debug("Custom editor unregistered", editor=name)
        return True

    def has(self, name: str) -> bool:
        return name in self._editors

    def get(self, name: str) -> CustomEditor:
        editor = self._editors.get(name)
        if editor is None:
            raise ConfigurationError(f"No custom editor registered as '{name}'", key=name)
        return editor

    def edit(
        self,
        call: FunctionCall,
        editor_name: str,
        config: RuleBuilderConfig | None = None,
    ) -> FunctionCall:
        """Run an editor over ``call``'s arguments and write the result back.

        Plain values returned by the editor become literals typed after the
        argument's declaration (or its current value); tree nodes are kept
        as they are.

        Raises:
            ConfigurationError: If no editor is registered as ``editor_name``.
        """
        editor = self.get(editor_name)
        updated = editor(call.arg_map())
        return replace(call, args=self._to_args(call, updated, config))

    def edit_function(self, call: FunctionCall, config: RuleBuilderConfig) -> FunctionCall:
        """Edit ``call`` with the editor its catalogue entry names."""
        definition = config.function(call.name)
        if not definition.custom_editor:
            raise ConfigurationError(
                f"Function '{call.name}' has no custom editor",
                key=f"functions.{call.name}.customEditor",
            )
        return self.edit(call, definition.custom_editor, config)

    def _to_args(
        self,
        call: FunctionCall,
        values: dict[str, Any],
        config: RuleBuilderConfig | None,
    ) -> list[FunctionArg]:
        declared: dict[str, str | None] = {}
        if config is not None and call.name in config.functions:
            declared = {arg.name: arg.type for arg in config.functions[call.name].args}
        current = {arg.name: arg.value for arg in call.args}

        args: list[FunctionArg] = []
        for name, value in values.items():
            if isinstance(value, EXPRESSION_TYPES):
                args.append(FunctionArg(name=name, value=value))
                continue
            previous = current.get(name)
            return_type = declared.get(name) or (previous.return_type if previous is not None else TEXT)
            args.append(FunctionArg(name=name, value=Literal(return_type=return_type, value=value)))
        return args
