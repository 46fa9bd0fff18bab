"""HTTP Request Node.

Sends HTTP requests to external APIs with httpx.
"""

from __future__ import annotations

import base64
import json
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any, Literal

import httpx
from pydantic import Field, field_validator

from flowforge.core.config import get_settings
from flowforge.models.enums import NodeCategory
from flowforge.services.workflow.context import NodeExecutionContext
from flowforge.services.workflow.nodes.base import BaseNode, NodeProperties, PortDefinition
from flowforge.services.workflow.nodes.errors import NodeOperationError

# Security limits
MAX_TIMEOUT_MS: float = 300_000.0  # 5 minutes
MAX_RESPONSE_SIZE: int = 100 * 1024 * 1024  # 100MB

BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


class HttpRequestProperties(NodeProperties):
    url: str
    method: Literal["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"] = "GET"
    headers: dict[str, str] = Field(default_factory=lambda: {"Content-Type": "application/json"})
    body: dict[str, Any] = Field(default_factory=dict)
    timeout: float = Field(
        default_factory=lambda: get_settings().HTTP_REQUEST_TIMEOUT_SECONDS * 1000,
        gt=0,
        le=MAX_TIMEOUT_MS,
        description="Request timeout in milliseconds",
    )
    authentication: Literal["none", "basic", "bearer", "api-key"] = "none"
    username: str = ""
    password: str = ""
    token: str = ""
    api_key: str = Field(default="", alias="apiKey")
    api_key_header: str = Field(default="X-API-Key", alias="apiKeyHeader")
    max_response_size: int = Field(
        default_factory=lambda: get_settings().HTTP_MAX_RESPONSE_SIZE,
        gt=0,
        le=MAX_RESPONSE_SIZE,
        alias="maxResponseSize",
    )

    @field_validator("method", mode="before")
    @classmethod
    def normalize_method(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v:
            raise ValueError("URL is required for HTTP request")
        if not v.startswith(("http://", "https://")):
            raise ValueError("URL must use http:// or https:// scheme")
        return v


class HttpRequestNode(BaseNode):
    """Performs one HTTP request per dispatch.

    2xx responses are emitted on ``output``; other statuses on ``error`` so
    the workflow can route failures. Transport failures (timeouts,
    connection errors) raise NodeOperationError.

    The httpx client is opened in initialize() and closed in cleanup(), so
    all dispatches of the node within a run share one connection pool.
    """

    node_type = "HttpRequest"
    category = NodeCategory.DATA
    description = "Send HTTP requests to external APIs"
    inputs = (
        PortDefinition(name="input", type="object", description="Optional data to include in request"),
    )
    outputs = (
        PortDefinition(name="output", type="object", description="HTTP response data"),
        PortDefinition(name="error", type="object", description="Error information if request fails"),
    )
    properties_schema = HttpRequestProperties

    def __init__(self, config: dict[str, Any] | None = None, node_id: str | None = None):
        super().__init__(config, node_id)
        self._client: httpx.AsyncClient | None = None

    async def initialize(self) -> None:
        await self._get_client()

    async def cleanup(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(get_settings().HTTP_REQUEST_TIMEOUT_SECONDS),
                follow_redirects=True,
                limits=httpx.Limits(max_keepalive_connections=20, max_connections=100),
            )
        return self._client

    async def execute(self, context: NodeExecutionContext) -> dict[str, Any]:
        props: HttpRequestProperties = self.properties
        raw_input = context.get_input_data()
        input_data = dict(raw_input) if isinstance(raw_input, Mapping) else {}

        headers = dict(props.headers)
        self._apply_auth(headers, props)

        request_kwargs: dict[str, Any] = {
            "method": props.method,
            "url": props.url,
            "headers": headers,
            "timeout": props.timeout / 1000,
        }

        if props.method in BODY_METHODS:
            body = {**props.body, **input_data}
            if "application/json" in self._content_type(headers):
                request_kwargs["json"] = body
            else:
                request_kwargs["content"] = json.dumps(body, default=str).encode("utf-8")

        context.log("info", f"Making {props.method} request to {props.url}")

        try:
            client = await self._get_client()
            response = await client.request(**request_kwargs)
        except httpx.TimeoutException as e:
            context.log("error", "HTTP request failed", {"error": str(e)})
            raise NodeOperationError(
                node_type=self.node_type,
                node_id=self.id,
                message="Request timeout exceeded",
                code="TIMEOUT_ERROR",
                details={"url": props.url, "timeout_ms": props.timeout},
            ) from e
        except httpx.HTTPError as e:
            context.log("error", "HTTP request failed", {"error": str(e)})
            raise NodeOperationError(
                node_type=self.node_type,
                node_id=self.id,
                message=f"HTTP request failed: {e}",
                code="REQUEST_ERROR",
                details={"url": props.url, "method": props.method},
            ) from e

        result = {
            "status": response.status_code,
            "statusText": response.reason_phrase,
            "headers": dict(response.headers),
            "data": self._get_response_content(response, props.max_response_size),
            "url": str(response.url),
            "timestamp": datetime.now(UTC).isoformat(),
        }

        if not response.is_success:
            context.log("warn", f"HTTP request failed with status {response.status_code}")
            return {
                "error": {
                    **result,
                    "error": f"HTTP {response.status_code}: {response.reason_phrase}",
                }
            }

        context.log("info", f"HTTP request successful ({response.status_code})")
        return {"output": result}

    @staticmethod
    def _content_type(headers: dict[str, str]) -> str:
        for key, value in headers.items():
            if key.lower() == "content-type":
                return value.lower()
        return ""

    @staticmethod
    def _apply_auth(headers: dict[str, str], props: HttpRequestProperties) -> None:
        """Apply authentication to request."""
        match props.authentication:
            case "basic":
                credentials = base64.b64encode(
                    f"{props.username}:{props.password}".encode()
                ).decode("ascii")
                headers["Authorization"] = f"Basic {credentials}"
            case "bearer":
                headers["Authorization"] = f"Bearer {props.token}"
            case "api-key":
                headers[props.api_key_header] = props.api_key

    @staticmethod
    def _get_response_content(response: httpx.Response, max_size: int) -> Any:
        """Get response content with size limit enforcement."""
        content_type = response.headers.get("content-type", "")

        if "application/json" in content_type:
            try:
                response_data: Any = response.json()
            except ValueError:
                response_data = response.text
            if len(str(response_data)) > max_size:
                return {
                    "_truncated": True,
                    "_size": len(str(response_data)),
                    "_limit": max_size,
                    "message": "Response too large, truncated",
                }
            return response_data

        text_content: str = response.text
        if len(text_content) > max_size:
            return text_content[:max_size] + f"\n... [truncated at {max_size} bytes]"
        return text_content
