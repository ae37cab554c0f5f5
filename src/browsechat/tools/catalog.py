from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ToolValidationError, UnknownToolError

_SESSION_HINT = "If there is no session ID, create a new session with the createSession tool."


class ToolParams(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", str_strip_whitespace=True)


class NoParams(ToolParams):
    pass


class ConfirmationParams(ToolParams):
    message: str = Field(description="The message to ask for confirmation.")


class SessionParams(ToolParams):
    tool_name: str = Field(alias="toolName", description="What the tool is doing")
    session_id: str = Field(
        alias="sessionId",
        min_length=1,
        description=f"The session ID to use. {_SESSION_HINT}",
    )
    debugger_fullscreen_url: str = Field(
        alias="debuggerFullscreenUrl",
        description=f"The fullscreen debug URL of the session. {_SESSION_HINT}",
    )


class SearchParams(SessionParams):
    query: str = Field(
        min_length=1,
        description=(
            "The exact and complete search query as provided by the user. "
            "Do not modify this in any way."
        ),
    )


class PageParams(SessionParams):
    url: str = Field(pattern=r"^https?://\S+$", description="The url to get the content of")


class PullRepoParams(ToolParams):
    repo_url: str = Field(alias="repoUrl", min_length=1, description="The URL of the repository to clone")
    local_path: str = Field(
        alias="localPath",
        min_length=1,
        description="The local path where the repository should be cloned",
    )


Executor = Callable[[Any], Awaitable[dict[str, Any]]]


def _strip_titles(node: Any) -> Any:
    if isinstance(node, dict):
        return {k: _strip_titles(v) for k, v in node.items() if k != "title"}
    if isinstance(node, list):
        return [_strip_titles(v) for v in node]
    return node


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "arguments"
        parts.append(f"{loc}: {err.get('msg', 'invalid')}")
    return "; ".join(parts)


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    label: str
    description: str
    params: type[ToolParams]
    executor: Executor | None = None
    error_prefix: str = ""

    @property
    def confirmation_only(self) -> bool:
        """No server-side effect; the client answers with the user's decision."""
        return self.executor is None

    def parameters_schema(self) -> dict[str, Any]:
        schema = _strip_titles(self.params.model_json_schema(by_alias=True))
        schema.setdefault("properties", {})
        schema["type"] = "object"
        return schema

    def function_schema(self) -> dict[str, object]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters_schema(),
            },
        }

    def validate(self, args: dict[str, object]) -> ToolParams:
        if not isinstance(args, dict):
            raise ToolValidationError(f"Invalid arguments for {self.name}: expected an object")
        try:
            return self.params.model_validate(args)
        except ValidationError as exc:
            raise ToolValidationError(
                f"Invalid arguments for {self.name}: {_format_validation_error(exc)}"
            ) from exc


class ToolCatalog:
    def __init__(self) -> None:
        self._tools: dict[str, ToolDefinition] = {}

    def register(self, definition: ToolDefinition) -> None:
        if definition.name in self._tools:
            raise ValueError(f"Tool '{definition.name}' is already registered.")
        self._tools[definition.name] = definition

    def get(self, name: str) -> ToolDefinition:
        try:
            return self._tools[name]
        except KeyError as exc:
            raise UnknownToolError(f"Tool '{name}' is not in the catalog.") from exc

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def names(self) -> list[str]:
        return list(self._tools)

    def function_schemas(self) -> list[dict[str, object]]:
        return [definition.function_schema() for definition in self._tools.values()]
