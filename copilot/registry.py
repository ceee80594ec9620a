"""
Tool registry: maps tool names to executors and their declared schemas.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .display import SubmitHandler
from .errors import ToolArgumentError
from .models import ToolDeclaration, ToolResult

logger = logging.getLogger(__name__)


@dataclass
class ToolContext:
    """Per-invocation context handed to every executor.

    ``resubmit`` starts another full orchestrator turn; only interactive
    tools use it. ``user_id`` scopes per-user state such as memory.
    """
    resubmit: SubmitHandler
    user_id: Optional[str] = None


ToolExecutor = Callable[[Dict[str, Any], ToolContext], Awaitable[Optional[ToolResult]]]


@dataclass
class ToolRegistration:
    declaration: ToolDeclaration
    executor: ToolExecutor


class ToolRegistry:
    """Registry of the tools offered to the model.

    Example:
        registry = ToolRegistry()

        @registry.tool(ToolDeclaration(name="get_system_info", description="..."))
        async def get_system_info(args, ctx):
            return ToolResult(display="...", raw_data="...")
    """

    def __init__(self):
        self._tools: Dict[str, ToolRegistration] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def register(self, name: str, executor: ToolExecutor, schema: ToolDeclaration) -> None:
        """Register ``executor`` under ``name``. Redefinition overwrites."""
        if name in self._tools:
            logger.warning(f"Tool '{name}' is already registered, overwriting")
        if schema.name != name:
            schema = schema.model_copy(update={"name": name})
        self._tools[name] = ToolRegistration(declaration=schema, executor=executor)
        logger.debug(f"Registered tool: {name}")

    def tool(self, schema: ToolDeclaration):
        """Decorator form of ``register`` using the declaration's name."""
        def decorator(executor: ToolExecutor) -> ToolExecutor:
            self.register(schema.name, executor, schema)
            return executor
        return decorator

    def lookup(self, name: str) -> Optional[ToolExecutor]:
        registration = self._tools.get(name)
        return registration.executor if registration else None

    def schemas(self) -> List[ToolDeclaration]:
        """Declarations in registration order, as sent to the completion backend."""
        return [registration.declaration for registration in self._tools.values()]

    def validate(self, name: str, args: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Check ``args`` against the declaration of ``name``.

        Required fields must be present, declared fields are coerced to their
        declared type where that is lossless. Undeclared fields pass through,
        which is how internal calls carry extra flags.

        Raises:
            ToolArgumentError: If the arguments do not fit the declaration
        """
        registration = self._tools.get(name)
        if registration is None:
            raise ToolArgumentError(name, "tool is not registered")
        if args is None:
            args = {}
        if not isinstance(args, dict):
            raise ToolArgumentError(name, f"expected an object, got {type(args).__name__}")

        parameters = registration.declaration.parameters
        missing = [field for field in parameters.required if args.get(field) is None]
        if missing:
            raise ToolArgumentError(name, f"missing required field(s): {', '.join(missing)}")

        validated = dict(args)
        for field, value in args.items():
            prop = parameters.properties.get(field)
            if prop is None or value is None:
                continue
            validated[field] = _coerce(name, field, prop.type, value)
        return validated


def _coerce(tool_name: str, field: str, expected: str, value: Any) -> Any:
    if expected == "STRING":
        if isinstance(value, str):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
    elif expected == "INTEGER":
        if isinstance(value, bool):
            pass
        elif isinstance(value, int):
            return value
        elif isinstance(value, float) and value.is_integer():
            return int(value)
        elif isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError as e:
                raise ToolArgumentError(tool_name, f"field '{field}' should be {expected}, got {value!r}") from e
    elif expected == "NUMBER":
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            try:
                return float(value)
            except ValueError:
                pass
    elif expected == "BOOLEAN":
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.lower() in ("true", "false"):
            return value.lower() == "true"
    raise ToolArgumentError(tool_name, f"field '{field}' should be {expected}, got {value!r}")
