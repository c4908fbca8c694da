"""
Registration of tools and resources onto the MCP low-level server.

Handlers return one of three result variants and the registry turns them
into the protocol envelope: ``CallToolResult.content`` for tools and
``ReadResourceResult.contents`` (keyed by the requested URI) for resources.
Any exception raised while handling becomes an ``Error: ...`` text item.
"""
import base64
import json
import logging
import re
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type, Union
from urllib.parse import quote, unquote

import mcp.types as types
from mcp.server.lowlevel import Server
from mcp.server.lowlevel.helper_types import ReadResourceContents
from pydantic import AnyUrl, BaseModel

from .logging_config import log_request
from .metrics import error_counter, mcp_resource_reads, mcp_tool_calls, mcp_tool_duration

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "text/markdown"

_TEMPLATE_PARAM = re.compile(r"\{(\w+)\}")


@dataclass(frozen=True)
class TextResult:
    text: str


@dataclass(frozen=True)
class PassthroughResult:
    """An envelope built by the handler itself, returned unchanged."""

    envelope: Union[types.CallToolResult, types.ReadResourceResult]


@dataclass(frozen=True)
class StructuredResult:
    """Arbitrary JSON-serializable data, rendered as pretty-printed JSON."""

    data: Any


HandlerResult = Union[TextResult, PassthroughResult, StructuredResult]

ToolHandler = Callable[[BaseModel], Awaitable[HandlerResult]]
ResourceHandler = Callable[[str, Dict[str, str]], Awaitable[HandlerResult]]


def _result_text(result: HandlerResult) -> str:
    if isinstance(result, TextResult):
        return result.text
    if isinstance(result, StructuredResult):
        return json.dumps(result.data, indent=2, ensure_ascii=False, default=str)
    raise TypeError(f"Unsupported handler result: {type(result).__name__}")


def tool_envelope(result: HandlerResult) -> types.CallToolResult:
    """Wrap a tool handler result in a CallToolResult."""
    if isinstance(result, PassthroughResult):
        if not isinstance(result.envelope, types.CallToolResult):
            raise TypeError("Tool passthrough result must carry a CallToolResult")
        return result.envelope

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=_result_text(result))]
    )


def tool_error(error: Exception) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=f"Error: {error}")]
    )


def resource_envelope(
    uri: str, result: HandlerResult, mime_type: str = DEFAULT_MIME_TYPE
) -> types.ReadResourceResult:
    """Wrap a resource handler result in a ReadResourceResult keyed by uri."""
    if isinstance(result, PassthroughResult):
        if not isinstance(result.envelope, types.ReadResourceResult):
            raise TypeError("Resource passthrough result must carry a ReadResourceResult")
        return result.envelope

    if isinstance(result, StructuredResult):
        mime_type = "application/json"

    return types.ReadResourceResult(
        contents=[
            types.TextResourceContents(
                uri=uri, mimeType=mime_type, text=_result_text(result)
            )
        ]
    )


def resource_error(uri: str, error: Exception) -> types.ReadResourceResult:
    return types.ReadResourceResult(
        contents=[
            types.TextResourceContents(
                uri=uri, mimeType="text/plain", text=f"Error: {error}"
            )
        ]
    )


@dataclass
class ToolDefinition:
    name: str
    description: str
    arguments: Type[BaseModel]
    handler: ToolHandler

    def to_tool(self) -> types.Tool:
        return types.Tool(
            name=self.name,
            description=self.description,
            inputSchema=self.arguments.model_json_schema(),
        )


@dataclass
class ResourceDefinition:
    """
    A resource bound to a URI template such as ``currentweather://{city}``.

    A template without parameters is a single static resource.
    """

    name: str
    uri_template: str
    description: str
    handler: ResourceHandler
    mime_type: str = DEFAULT_MIME_TYPE
    examples: List[Dict[str, str]] = field(default_factory=list)

    def __post_init__(self):
        self.params = _TEMPLATE_PARAM.findall(self.uri_template)
        pattern = ""
        for literal, param in zip(
            _TEMPLATE_PARAM.split(self.uri_template)[::2],
            self.params + [None],
        ):
            pattern += re.escape(literal)
            if param:
                # A parameter is one path segment; "/" in a value must be sent as %2F
                pattern += f"(?P<{param}>[^/]+)"
        self._pattern = re.compile(f"^{pattern}$", re.IGNORECASE)

    @property
    def is_template(self) -> bool:
        return bool(self.params)

    def match(self, uri: str) -> Optional[Dict[str, str]]:
        """Extract URL-decoded template parameters, or None if uri does not match."""
        match = self._pattern.match(uri)
        if not match:
            return None
        return {name: unquote(value) for name, value in match.groupdict().items()}

    def expand(self, **params: str) -> str:
        return _TEMPLATE_PARAM.sub(
            lambda m: quote(params[m.group(1)], safe=""), self.uri_template
        )


class McpRegistry:
    """Tool and resource registry with consistent envelopes and error handling."""

    def __init__(self):
        self._tools: Dict[str, ToolDefinition] = {}
        self._resources: List[ResourceDefinition] = []

    def register_tool(self, definition: ToolDefinition) -> "McpRegistry":
        if definition.name in self._tools:
            raise ValueError(f"Tool already registered: {definition.name}")
        self._tools[definition.name] = definition
        return self

    def register_tools(self, definitions: List[ToolDefinition]) -> "McpRegistry":
        for definition in definitions:
            self.register_tool(definition)
        return self

    def register_resource(self, definition: ResourceDefinition) -> "McpRegistry":
        self._resources.append(definition)
        return self

    def register_resources(self, definitions: List[ResourceDefinition]) -> "McpRegistry":
        for definition in definitions:
            self.register_resource(definition)
        return self

    def list_tools(self) -> List[types.Tool]:
        return [definition.to_tool() for definition in self._tools.values()]

    def list_resources(self) -> List[types.Resource]:
        resources = []
        for definition in self._resources:
            if definition.is_template:
                uris = [definition.expand(**params) for params in definition.examples]
            else:
                uris = [definition.uri_template]
            for uri in uris:
                resources.append(
                    types.Resource(
                        uri=uri,
                        name=definition.name,
                        description=definition.description,
                        mimeType=definition.mime_type,
                    )
                )
        return resources

    def list_resource_templates(self) -> List[types.ResourceTemplate]:
        return [
            types.ResourceTemplate(
                uriTemplate=definition.uri_template,
                name=definition.name,
                description=definition.description,
                mimeType=definition.mime_type,
            )
            for definition in self._resources
            if definition.is_template
        ]

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]]) -> types.CallToolResult:
        """Run a registered tool and return its envelope; never raises."""
        request_id = str(uuid.uuid4())
        start_time = time.time()
        status = "success"

        try:
            definition = self._tools.get(name)
            if definition is None:
                raise ValueError(f"Unknown tool: {name}")

            params = definition.arguments.model_validate(arguments or {})
            envelope = tool_envelope(await definition.handler(params))
        except Exception as e:
            status = "error"
            logger.error(
                f"Tool '{name}' failed: {e}",
                exc_info=True,
                extra={"request_id": request_id, "tool": name},
            )
            error_counter.labels(error_type=type(e).__name__, component="tool").inc()
            envelope = tool_error(e)

        duration = time.time() - start_time
        mcp_tool_calls.labels(tool_name=name, status=status).inc()
        mcp_tool_duration.labels(tool_name=name).observe(duration)
        log_request(
            logger, request_id, int(duration * 1000), status,
            message=f"Tool call {name}", tool=name,
        )
        return envelope

    async def read_resource(self, uri: str) -> types.ReadResourceResult:
        """Read a registered resource and return its envelope; never raises."""
        request_id = str(uuid.uuid4())
        start_time = time.time()
        status = "success"
        resource_name = "unknown"

        try:
            for definition in self._resources:
                params = definition.match(uri)
                if params is not None:
                    resource_name = definition.name
                    result = await definition.handler(uri, params)
                    envelope = resource_envelope(uri, result, definition.mime_type)
                    break
            else:
                raise ValueError(f"Unknown resource: {uri}")
        except Exception as e:
            status = "error"
            logger.error(
                f"Resource '{uri}' failed: {e}",
                exc_info=True,
                extra={"request_id": request_id, "resource": uri},
            )
            error_counter.labels(error_type=type(e).__name__, component="resource").inc()
            envelope = resource_error(uri, e)

        mcp_resource_reads.labels(resource_name=resource_name, status=status).inc()
        log_request(
            logger, request_id, int((time.time() - start_time) * 1000), status,
            message=f"Resource read {uri}", resource=uri,
        )
        return envelope

    def bind(self, server: Server) -> Server:
        """Install the registry's request handlers on a low-level MCP server."""

        @server.list_tools()
        async def handle_list_tools() -> List[types.Tool]:
            return self.list_tools()

        # Arguments are validated by the registry so failures become Error: envelopes
        @server.call_tool(validate_input=False)
        async def handle_call_tool(name: str, arguments: Dict[str, Any]) -> list:
            result = await self.call_tool(name, arguments)
            return list(result.content)

        @server.list_resources()
        async def handle_list_resources() -> List[types.Resource]:
            return self.list_resources()

        @server.list_resource_templates()
        async def handle_list_resource_templates() -> List[types.ResourceTemplate]:
            return self.list_resource_templates()

        @server.read_resource()
        async def handle_read_resource(uri: AnyUrl) -> List[ReadResourceContents]:
            result = await self.read_resource(str(uri))
            return [_read_contents(item) for item in result.contents]

        return server


def _read_contents(
    item: Union[types.TextResourceContents, types.BlobResourceContents]
) -> ReadResourceContents:
    if isinstance(item, types.TextResourceContents):
        return ReadResourceContents(content=item.text, mime_type=item.mimeType)
    return ReadResourceContents(content=base64.b64decode(item.blob), mime_type=item.mimeType)
