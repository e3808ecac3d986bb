from datetime import timedelta

from kourier.ext_authz import (
    EXT_AUTHZ_FILTER_NAME,
    EXT_AUTHZ_PER_ROUTE_TYPE,
    ExternalAuthzConfig,
)
from kourier.routes import (
    FILE_ACCESS_LOG_TYPE,
    ROUTER_FILTER_NAME,
    new_http_connection_manager,
    new_redirect_route,
    new_route,
    new_route_config,
    new_route_ext_authz_disabled,
    new_virtual_host,
    new_virtual_host_with_ext_authz,
)

HEADER_MATCH = [{"name": "myHeader", "exact_match": "strict"}]


def test_new_route_header_match():
    r = new_route("testRoute_12345", HEADER_MATCH, "/my_route", None, 0, None, "")
    assert r["match"]["headers"][0]["name"] == "myHeader"
    assert r["match"]["headers"][0]["exact_match"] == "strict"
    assert r["match"]["prefix"] == "/my_route"
    assert "host_rewrite_literal" not in r["route"]


def test_new_route_host_rewrite():
    r = new_route("testRoute_12345", None, "/my_route", None, 0, None, "test.host")
    assert r["route"]["host_rewrite_literal"] == "test.host"


def test_new_route_action_details():
    clusters = [{"name": "a", "weight": 100}]
    r = new_route("r", None, "/", clusters, timedelta(seconds=30), {"foo": "bar"}, "")
    assert r["route"]["weighted_clusters"] == {"clusters": clusters}
    assert r["route"]["timeout"] == "30s"
    assert r["route"]["upgrade_configs"] == [{"upgrade_type": "websocket", "enabled": True}]
    assert r["request_headers_to_add"] == [
        {"header": {"key": "foo", "value": "bar"}, "append": False}
    ]


def test_new_route_ext_authz_disabled():
    path = "/.well-known/acme-challenge/-VwB1vAXWaN6mVl3-6JVFTEvf7acguaFDUxsP9UzRkE"
    r = new_route_ext_authz_disabled(
        "testRoute_HTTP01_challenge", HEADER_MATCH, path, None, 0, None, ""
    )
    assert r["match"]["headers"][0]["name"] == "myHeader"
    assert len(r["typed_per_filter_config"]) != 0
    assert r["typed_per_filter_config"][EXT_AUTHZ_FILTER_NAME] == {
        "@type": EXT_AUTHZ_PER_ROUTE_TYPE,
        "disabled": True,
    }


def test_new_redirect_route():
    r = new_redirect_route("redirect", HEADER_MATCH, "/")
    assert r == {
        "name": "redirect",
        "match": {"prefix": "/", "headers": HEADER_MATCH},
        "redirect": {"https_redirect": True},
    }


def test_virtual_host():
    got = new_virtual_host("test", ["foo", "bar"], [{"name": "baz"}])
    assert got == {"name": "test", "domains": ["foo", "bar"], "routes": [{"name": "baz"}]}


def test_virtual_host_with_ext_authz():
    got = new_virtual_host_with_ext_authz("test", None, ["foo", "bar"], [{"name": "baz"}])
    assert got["name"] == "test"
    assert got["domains"] == ["foo", "bar"]
    assert got["routes"] == [{"name": "baz"}]
    assert got["typed_per_filter_config"][EXT_AUTHZ_FILTER_NAME] == {
        "@type": EXT_AUTHZ_PER_ROUTE_TYPE,
        "check_settings": {},
    }


def test_virtual_host_with_ext_authz_context_extensions():
    got = new_virtual_host_with_ext_authz("test", {"k": "v"}, ["foo"], [])
    settings = got["typed_per_filter_config"][EXT_AUTHZ_FILTER_NAME]["check_settings"]
    assert settings == {"context_extensions": {"k": "v"}}


def test_connection_manager_without_access_log_without_proxy_protocol():
    mgr = new_http_connection_manager("test", False, False)
    assert len(mgr.get("access_log", [])) == 0
    assert "use_remote_address" not in mgr


def test_connection_manager_with_access_log_without_proxy_protocol():
    mgr = new_http_connection_manager("test", True, False)
    assert "use_remote_address" not in mgr
    typed = mgr["access_log"][0]["typed_config"]
    assert typed["@type"] == FILE_ACCESS_LOG_TYPE
    assert typed["path"] == "/dev/stdout"


def test_connection_manager_without_access_log_with_proxy_protocol():
    mgr = new_http_connection_manager("test", False, True)
    assert len(mgr.get("access_log", [])) == 0
    assert mgr["use_remote_address"] is True


def test_connection_manager_with_access_log_with_proxy_protocol():
    mgr = new_http_connection_manager("test", True, True)
    assert mgr["use_remote_address"] is True
    assert mgr["access_log"][0]["typed_config"]["path"] == "/dev/stdout"


def test_connection_manager_rds_and_filters():
    mgr = new_http_connection_manager("my-routes", False, False)
    assert mgr["http_filters"] == [{"name": ROUTER_FILTER_NAME}]
    assert mgr["codec_type"] == "AUTO"
    assert mgr["stat_prefix"] == "ingress_http"
    assert mgr["rds"]["route_config_name"] == "my-routes"
    assert mgr["rds"]["config_source"]["initial_fetch_timeout"] == "10s"


def test_connection_manager_with_external_authz_filter_first():
    authz_filter = {"name": EXT_AUTHZ_FILTER_NAME, "typed_config": {}}
    authz = ExternalAuthzConfig(enabled=True, cluster={}, http_filter=authz_filter)
    mgr = new_http_connection_manager("test", False, False, authz)
    assert mgr["http_filters"] == [authz_filter, {"name": ROUTER_FILTER_NAME}]


def test_connection_manager_disabled_external_authz_ignored():
    mgr = new_http_connection_manager("test", False, False, ExternalAuthzConfig())
    assert mgr["http_filters"] == [{"name": ROUTER_FILTER_NAME}]


def test_new_route_config():
    vhost = new_virtual_host("test", ["foo", "bar"], [{"name": "baz"}])
    got = new_route_config("test", [vhost])
    assert got == {"name": "test", "virtual_hosts": [vhost], "validate_clusters": True}