"""Builders for Envoy routes, virtual hosts and HTTP connection managers."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import timedelta
from typing import Any

from kourier.endpoints import format_duration, headers_to_add
from kourier.ext_authz import (
    EXT_AUTHZ_FILTER_NAME,
    EXT_AUTHZ_PER_ROUTE_TYPE,
    ExternalAuthzConfig,
)

ROUTER_FILTER_NAME = "envoy.filters.http.router"
FILE_ACCESS_LOG_NAME = "envoy.file_access_log"
FILE_ACCESS_LOG_TYPE = (
    "type.googleapis.com/envoy.extensions.access_loggers.file.v3.FileAccessLog"
)
_RDS_INITIAL_FETCH_TIMEOUT = timedelta(seconds=10)


def _route_match(path: str, headers_match: Iterable[dict[str, Any]] | None) -> dict[str, Any]:
    match: dict[str, Any] = {"prefix": path}
    headers = list(headers_match or [])
    if headers:
        match["headers"] = headers
    return match


def new_route(
    name: str,
    headers_match: Iterable[dict[str, Any]] | None,
    path: str,
    weighted_clusters: Iterable[dict[str, Any]] | None,
    route_timeout: timedelta | int | float,
    headers: Mapping[str, str] | None,
    host_rewrite: str,
) -> dict[str, Any]:
    """Create a prefix route that splits traffic over weighted clusters."""
    action: dict[str, Any] = {
        "weighted_clusters": {"clusters": list(weighted_clusters or [])},
        "timeout": format_duration(route_timeout),
        "upgrade_configs": [{"upgrade_type": "websocket", "enabled": True}],
    }
    if host_rewrite:
        action["host_rewrite_literal"] = host_rewrite

    route: dict[str, Any] = {
        "name": name,
        "match": _route_match(path, headers_match),
        "route": action,
    }
    to_add = headers_to_add(headers)
    if to_add:
        route["request_headers_to_add"] = to_add
    return route


def new_redirect_route(
    name: str, headers_match: Iterable[dict[str, Any]] | None, path: str
) -> dict[str, Any]:
    """Create a route that redirects to HTTPS."""
    return {
        "name": name,
        "match": _route_match(path, headers_match),
        "redirect": {"https_redirect": True},
    }


def new_route_ext_authz_disabled(
    name: str,
    headers_match: Iterable[dict[str, Any]] | None,
    path: str,
    weighted_clusters: Iterable[dict[str, Any]] | None,
    route_timeout: timedelta | int | float,
    headers: Mapping[str, str] | None,
    host_rewrite: str,
) -> dict[str, Any]:
    """Create a route on which external authorization is switched off."""
    route = new_route(
        name, headers_match, path, weighted_clusters, route_timeout, headers, host_rewrite
    )
    route["typed_per_filter_config"] = {
        EXT_AUTHZ_FILTER_NAME: {"@type": EXT_AUTHZ_PER_ROUTE_TYPE, "disabled": True}
    }
    return route


def new_virtual_host(
    name: str, domains: Iterable[str], routes: Iterable[dict[str, Any]]
) -> dict[str, Any]:
    """Create a virtual host."""
    return {"name": name, "domains": list(domains), "routes": list(routes)}


def new_virtual_host_with_ext_authz(
    name: str,
    context_extensions: Mapping[str, str] | None,
    domains: Iterable[str],
    routes: Iterable[dict[str, Any]],
) -> dict[str, Any]:
    """Create a virtual host that passes context extensions to ext_authz."""
    check_settings: dict[str, Any] = {}
    if context_extensions:
        check_settings["context_extensions"] = dict(context_extensions)
    host = new_virtual_host(name, domains, routes)
    host["typed_per_filter_config"] = {
        EXT_AUTHZ_FILTER_NAME: {
            "@type": EXT_AUTHZ_PER_ROUTE_TYPE,
            "check_settings": check_settings,
        }
    }
    return host


def new_http_connection_manager(
    route_config_name: str,
    enable_access_log: bool,
    enable_proxy_protocol: bool,
    external_authz: ExternalAuthzConfig | None = None,
) -> dict[str, Any]:
    """Create an HTTP connection manager that takes its routes over ADS."""
    filters: list[dict[str, Any]] = []
    if external_authz is not None and external_authz.enabled:
        filters.append(external_authz.http_filter)
    filters.append({"name": ROUTER_FILTER_NAME})

    manager: dict[str, Any] = {
        "codec_type": "AUTO",
        "stat_prefix": "ingress_http",
        "http_filters": filters,
        "rds": {
            "config_source": {
                "resource_api_version": "V3",
                "ads": {},
                "initial_fetch_timeout": format_duration(_RDS_INITIAL_FETCH_TIMEOUT),
            },
            "route_config_name": route_config_name,
        },
    }

    if enable_proxy_protocol:
        manager["use_remote_address"] = True

    if enable_access_log:
        manager["access_log"] = [
            {
                "name": FILE_ACCESS_LOG_NAME,
                "typed_config": {"@type": FILE_ACCESS_LOG_TYPE, "path": "/dev/stdout"},
            }
        ]

    return manager


def new_route_config(name: str, virtual_hosts: Iterable[dict[str, Any]]) -> dict[str, Any]:
    """Create a route configuration that validates its clusters."""
    return {
        "name": name,
        "virtual_hosts": list(virtual_hosts),
        "validate_clusters": True,
    }