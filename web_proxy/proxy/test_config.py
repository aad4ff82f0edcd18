import dataclasses
import importlib

import pytest

from web_proxy.proxy.config import (
    ConfigurationError,
    ProxyConfig,
    load_proxy_config,
    parse_headers,
)


class TestParseHeaders:
    def test_empty_string(self):
        assert parse_headers("") == {}

    def test_multiple_entries_keep_order(self):
        result = parse_headers("Authorization: Bearer abc, X-Api-Key:k1")
        assert list(result.items()) == [
            ("Authorization", "Bearer abc"),
            ("X-Api-Key", "k1"),
        ]

    def test_value_may_contain_colon(self):
        assert parse_headers("Referer: https://example.com:8443/x") == {
            "Referer": "https://example.com:8443/x"
        }

    def test_empty_entries_are_skipped(self):
        assert parse_headers(" , X-A:1,,") == {"X-A": "1"}

    def test_later_duplicate_wins(self):
        assert parse_headers("X-A:1,X-A:2") == {"X-A": "2"}

    def test_entry_without_separator_is_rejected(self):
        with pytest.raises(ConfigurationError):
            parse_headers("X-A:1,broken")

    def test_entry_with_empty_name_is_rejected(self):
        with pytest.raises(ConfigurationError):
            parse_headers(":value")


class TestProxyConfig:
    def test_defaults(self):
        config = ProxyConfig()
        assert config.base_uri == ""
        assert dict(config.request_headers) == {}
        assert dict(config.response_headers) == {}

    def test_base_uri_is_not_normalized(self):
        assert ProxyConfig(base_uri="http://api.example.com/").base_uri == (
            "http://api.example.com/"
        )

    def test_is_immutable(self):
        config = ProxyConfig(base_uri="http://a")
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.base_uri = "http://b"

    def test_header_maps_are_read_only_copies(self):
        source = {"X-A": "1"}
        config = ProxyConfig(request_headers=source)
        source["X-B"] = "2"

        assert dict(config.request_headers) == {"X-A": "1"}
        with pytest.raises(TypeError):
            config.request_headers["X-C"] = "3"

    def test_case_is_kept_literally(self):
        config = ProxyConfig(response_headers={"x-lower": "1", "X-Upper": "2"})
        assert list(config.response_headers) == ["x-lower", "X-Upper"]

    @pytest.mark.parametrize(
        "headers",
        [
            {"": "v"},
            {"Bad Name": "v"},
            {"X-A:": "v"},
            {"X-A": "line\r\nInjected: 1"},
            {"X-A": 1},
            {"X-A": "caf\u00e9"},
        ],
    )
    def test_invalid_headers_fail_fast(self, headers):
        with pytest.raises(ConfigurationError):
            ProxyConfig(request_headers=headers)

    @pytest.mark.parametrize("value", ["\u20ac", "line\nbreak"])
    def test_invalid_response_header_values_fail_fast(self, value):
        with pytest.raises(ConfigurationError):
            ProxyConfig(response_headers={"X-Note": value})

    def test_latin1_response_header_values_are_accepted(self):
        config = ProxyConfig(response_headers={"X-Note": "caf\u00e9"})
        assert config.response_headers["X-Note"] == "caf\u00e9"

    def test_non_mapping_headers_fail_fast(self):
        with pytest.raises(ConfigurationError):
            ProxyConfig(response_headers=[("X-A", "1")])

    def test_non_string_base_uri_fails_fast(self):
        with pytest.raises(ConfigurationError):
            ProxyConfig(base_uri=None)

    def test_from_strings(self):
        config = ProxyConfig.from_strings(
            "http://api.example.com",
            "Authorization: Bearer abc",
            "Access-Control-Allow-Origin: *",
        )
        assert config.base_uri == "http://api.example.com"
        assert dict(config.request_headers) == {"Authorization": "Bearer abc"}
        assert dict(config.response_headers) == {"Access-Control-Allow-Origin": "*"}


def test_load_proxy_config_from_environment(monkeypatch):
    monkeypatch.setenv("BASE_URI", "http://api.example.com")
    monkeypatch.setenv("INJECT_REQUEST_HEADERS", "X-Api-Key: secret")
    monkeypatch.setenv("INJECT_RESPONSE_HEADERS", "Access-Control-Allow-Origin: *")
    import web_proxy.vars as vars_module

    importlib.reload(vars_module)
    try:
        config = load_proxy_config()
    finally:
        monkeypatch.undo()
        importlib.reload(vars_module)

    assert config.base_uri == "http://api.example.com"
    assert dict(config.request_headers) == {"X-Api-Key": "secret"}
    assert dict(config.response_headers) == {"Access-Control-Allow-Origin": "*"}


def test_load_proxy_config_rejects_malformed_environment(monkeypatch):
    monkeypatch.setenv("INJECT_REQUEST_HEADERS", "no-separator")
    import web_proxy.vars as vars_module

    importlib.reload(vars_module)
    try:
        with pytest.raises(ConfigurationError):
            load_proxy_config()
    finally:
        monkeypatch.undo()
        importlib.reload(vars_module)
