"""Internal data models for fluentrest.

All models use Pydantic v2. Configuration, proxy specs, captured responses
and outcomes are immutable; RequestSpec is the one mutable model and is
owned by a single RequestBuilder.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Configuration Models
# =============================================================================


class LogLevel(str, Enum):
    """Logging verbosity, ordered none < info < debug."""

    NONE = "none"
    INFO = "info"
    DEBUG = "debug"

    @property
    def rank(self) -> int:
        return _LOG_LEVEL_RANKS[self]


_LOG_LEVEL_RANKS = {LogLevel.NONE: 0, LogLevel.INFO: 1, LogLevel.DEBUG: 2}


class ProxyAuth(BaseModel):
    """Basic credentials for a classic proxy."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    username: str
    password: str


class ClassicProxy(BaseModel):
    """Direct proxy descriptor: host, port, optional auth and protocol."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    host: str = Field(min_length=1, description="Proxy host name or address")
    port: int = Field(gt=0, lt=65536, description="Proxy port")
    auth: ProxyAuth | None = Field(default=None, description="Basic proxy credentials")
    protocol: Literal["http", "https"] | None = Field(
        default=None, description="Scheme used to reach the proxy (default http)"
    )

    def to_url(self) -> str:
        """Render as a proxy URL without credentials."""
        return f"{self.protocol or 'http'}://{self.host}:{self.port}"


# A proxy spec is either a tunneling URL or a classic descriptor
ProxySpec = Union[str, ClassicProxy]


class EffectiveConfig(BaseModel):
    """Fully merged configuration used to construct a request.

    timeout is in milliseconds. version is the defaults-registry version the
    snapshot was derived from (0 for environment defaults).
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    timeout: int = Field(default=10000, gt=0, description="Request timeout in milliseconds")
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging verbosity")
    log_file_path: str = Field(description="Path of the append-only log file")
    base_url: str = Field(description="Base URL prefixed to relative endpoints")
    proxy: ClassicProxy | str | None = Field(default=None, description="Default proxy spec")
    version: int = Field(default=0, ge=0, description="Defaults registry version")


# =============================================================================
# Proxy Directives
# =============================================================================


class AgentDirective(BaseModel):
    """Tunneling agent bound to exactly one scheme path.

    An https:// proxy URL serves the HTTPS path only; an http:// URL serves
    the HTTP path only.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["agent"] = "agent"
    proxy_url: str

    @property
    def scheme(self) -> str:
        return "https" if self.proxy_url.lower().startswith("https://") else "http"

    @property
    def https_agent(self) -> str | None:
        return self.proxy_url if self.scheme == "https" else None

    @property
    def http_agent(self) -> str | None:
        return self.proxy_url if self.scheme == "http" else None


class ClassicDirective(BaseModel):
    """Direct proxy handed to the transport for every request."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["classic"] = "classic"
    proxy: ClassicProxy


ProxyDirective = Annotated[
    Union[AgentDirective, ClassicDirective], Field(discriminator="kind")
]


# =============================================================================
# Request Models
# =============================================================================


class BodyKind(str, Enum):
    """Closed set of body encodings."""

    JSON = "json"
    FORM = "form"
    MULTIPART = "multipart"
    RAW = "raw"


class EncodedBody(BaseModel):
    """Request payload after content-type driven encoding.

    content is a str for JSON and form bodies, bytes for multipart bodies,
    and the untouched payload for raw bodies.
    """

    model_config = ConfigDict(extra="forbid", frozen=True, arbitrary_types_allowed=True)

    kind: BodyKind
    content_type: str
    content: Any = None
    headers: dict[str, str] = Field(
        default_factory=dict, description="Headers the encoding requires (multipart boundary)"
    )


class RequestSpec(BaseModel):
    """Builder-accumulated description of one pending request.

    Mutable while the builder is in its "given" phase; the executor only
    ever receives a deep copy.
    """

    model_config = ConfigDict(extra="forbid")

    method: str | None = Field(default=None, description="HTTP method, set at send time")
    url: str | None = Field(default=None, description="Endpoint, set at send time")
    base_url: str = Field(description="Base URL for relative endpoints")
    headers: dict[str, str] = Field(default_factory=dict, description="Request headers")
    params: dict[str, Any] = Field(default_factory=dict, description="Query parameters")
    body: EncodedBody | None = Field(default=None, description="Encoded request body")
    timeout: int = Field(gt=0, description="Timeout in milliseconds")
    proxy: ProxyDirective | None = Field(default=None, description="Active proxy directive")

    def snapshot(self) -> dict[str, Any]:
        """Plain-dict view used for debugging, logging and request config."""
        return {
            "method": self.method,
            "url": self.url,
            "headers": dict(self.headers),
            "params": dict(self.params),
            "data": self.body.content if self.body is not None else None,
            "timeout": self.timeout,
            "base_url": self.base_url,
        }


# =============================================================================
# Response and Outcome Models
# =============================================================================


class CapturedResponse(BaseModel):
    """One HTTP response, whatever its status.

    Header keys are lowercase; repeated headers are joined with ", ".
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    status_code: int = Field(description="HTTP status code")
    status_text: str = Field(default="", description="Reason phrase")
    headers: dict[str, str] = Field(default_factory=dict, description="Lowercase headers")
    body: Any = Field(default=None, description="Parsed JSON, text, bytes, or None if empty")
    elapsed_ms: float = Field(default=0.0, description="Response time in milliseconds")

    def header(self, name: str) -> str | None:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower())


class Success(BaseModel):
    """A response was received; status is data, not failure."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["success"] = "success"
    response: CapturedResponse


class TransportFailure(BaseModel):
    """No usable response: DNS, connection, timeout or cancellation failure."""

    model_config = ConfigDict(extra="forbid", frozen=True, arbitrary_types_allowed=True)

    kind: Literal["failure"] = "failure"
    error: BaseException
    message: str = Field(description="Human-readable description of the failure")
    response: CapturedResponse | None = Field(default=None, description="Partial response, if any")


Outcome = Union[Success, TransportFailure]
