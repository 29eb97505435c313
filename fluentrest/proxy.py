"""Proxy resolution - turns proxy specs into transport directives.

A proxy spec is either a URL string (a tunneling endpoint) or a classic
host/port descriptor. Resolution yields exactly one directive form:

    None                          -> no directive (clears any existing one)
    "ftp://..." (no http[s] URL)  -> InvalidProxyUrl
    "https://proxy:8443"          -> AgentDirective bound to the HTTPS path
    "http://proxy:8080"           -> AgentDirective bound to the HTTP path
    {"host": ..} without port     -> InvalidProxyConfig
    {"host": .., "port": ..}      -> ClassicDirective

Because RequestSpec stores the directive in a single field, installing one
form always replaces the other.
"""

from __future__ import annotations

import re
from typing import Any, Mapping

import httpx
from pydantic import ValidationError

from fluentrest.errors import InvalidProxyConfig, InvalidProxyUrl
from fluentrest.models import (
    AgentDirective,
    ClassicDirective,
    ClassicProxy,
    ProxyDirective,
    ProxySpec,
)

_PROXY_URL_PATTERN = re.compile(r"^https?://")


def parse_proxy_spec(spec: Any) -> ProxySpec:
    """Validate a boundary proxy value and normalize it to a ProxySpec.

    Accepts a URL string, a ClassicProxy, or a mapping of the shape
    {host, port, auth?: {username, password}, protocol?: "http"|"https"}.

    Raises:
        InvalidProxyUrl: String without an http:// or https:// scheme.
        InvalidProxyConfig: Mapping missing host or port, or malformed.
    """
    if isinstance(spec, ClassicProxy):
        return spec

    if isinstance(spec, str):
        if not _PROXY_URL_PATTERN.match(spec):
            raise InvalidProxyUrl(
                f'Invalid proxy URL: "{spec}". Must start with http:// or https://'
            )
        return spec

    if isinstance(spec, Mapping):
        if not spec.get("host") or not spec.get("port"):
            raise InvalidProxyConfig(
                "Invalid proxy config. Must include 'host' and 'port'."
            )
        try:
            return ClassicProxy.model_validate(dict(spec))
        except ValidationError as e:
            raise InvalidProxyConfig(f"Invalid proxy config: {e}") from e

    raise InvalidProxyConfig(
        f"Unsupported proxy specification of type {type(spec).__name__}"
    )


def resolve_directive(spec: Any) -> ProxyDirective | None:
    """Resolve a proxy spec (or None) into the directive to install."""
    if spec is None:
        return None

    parsed = parse_proxy_spec(spec)
    if isinstance(parsed, str):
        return AgentDirective(proxy_url=parsed)
    return ClassicDirective(proxy=parsed)


def transport_kwargs(directive: ProxyDirective | None) -> dict[str, Any]:
    """Build httpx.Client kwargs realizing a directive.

    Agent directives mount a proxying transport on one scheme only, so the
    other scheme goes direct. Classic directives proxy every request.
    """
    if directive is None:
        return {}

    if isinstance(directive, AgentDirective):
        pattern = f"{directive.scheme}://"
        return {"mounts": {pattern: httpx.HTTPTransport(proxy=directive.proxy_url)}}

    classic = directive.proxy
    auth = (classic.auth.username, classic.auth.password) if classic.auth else None
    return {"proxy": httpx.Proxy(classic.to_url(), auth=auth)}
