"""Tests for user-agent parsing and IP geolocation."""

from unittest.mock import patch

import pytest

from stride.services.device_fingerprint import (
    LOCAL_LOCATION,
    UNKNOWN_LOCATION,
    DeviceInfo,
    GeolocationClient,
    Location,
    is_local_address,
    parse_user_agent,
)
from stride.services.shared.http_client import HTTPClientError
from tests.factories import CHROME_MAC, EDGE_WINDOWS, FIREFOX_WINDOWS, SAFARI_IPHONE


class TestParseUserAgent:
    """Tests for parse_user_agent."""

    def test_chrome_on_mac(self):
        assert parse_user_agent(CHROME_MAC) == DeviceInfo("Chrome", "macOS", "desktop")

    def test_edge_wins_over_chrome_token(self):
        info = parse_user_agent(EDGE_WINDOWS)
        assert info.browser == "Edge"
        assert info.os == "Windows"

    def test_firefox_on_windows(self):
        assert parse_user_agent(FIREFOX_WINDOWS).browser == "Firefox"

    def test_safari_on_iphone_is_mobile(self):
        assert parse_user_agent(SAFARI_IPHONE) == DeviceInfo("Safari", "iOS", "mobile")

    def test_ipad_is_tablet(self):
        ua = "Mozilla/5.0 (iPad; CPU OS 17_0 like Mac OS X) AppleWebKit/605.1.15 Safari/604.1"
        info = parse_user_agent(ua)
        assert info.device_type == "tablet"
        assert info.os == "iOS"

    def test_android_without_mobile_token_is_tablet(self):
        ua = "Mozilla/5.0 (Linux; Android 13; SM-X700) AppleWebKit/537.36 Chrome/120.0 Safari/537.36"
        assert parse_user_agent(ua).device_type == "tablet"

    def test_android_phone_is_mobile(self):
        ua = "Mozilla/5.0 (Linux; Android 14; Pixel 8) AppleWebKit/537.36 Chrome/120.0 Mobile Safari/537.36"
        info = parse_user_agent(ua)
        assert info.device_type == "mobile"
        assert info.os == "Android"

    def test_case_insensitive(self):
        assert parse_user_agent("FIREFOX on LINUX").browser == "Firefox"

    @pytest.mark.parametrize("ua", [None, "", "curl/8.4.0"])
    def test_unknown_input_degrades_to_defaults(self, ua):
        info = parse_user_agent(ua)
        assert info.browser == "Unknown"
        assert info.os == "Unknown"
        assert info.device_type == "desktop"


class TestIsLocalAddress:
    @pytest.mark.parametrize("ip", ["127.0.0.1", "::1", "10.0.0.4", "192.168.1.20", "", None])
    def test_local(self, ip):
        assert is_local_address(ip) is True

    @pytest.mark.parametrize("ip", ["8.8.8.8", "not-an-ip", "testclient"])
    def test_not_local(self, ip):
        assert is_local_address(ip) is False


class TestGeolocationClient:
    """GeolocationClient.locate never raises."""

    @pytest.fixture
    def client(self):
        return GeolocationClient(base_url="http://geo.test")

    def test_loopback_is_local_without_lookup(self, client):
        with patch.object(client, "get_json") as mock_get:
            assert client.locate("127.0.0.1") == LOCAL_LOCATION
        mock_get.assert_not_called()

    def test_unparsable_address_is_unknown(self, client):
        with patch.object(client, "get_json") as mock_get:
            assert client.locate("testclient") == UNKNOWN_LOCATION
        mock_get.assert_not_called()

    def test_success(self, client):
        payload = {"status": "success", "city": "Mountain View", "country": "United States"}
        with patch.object(client, "get_json", return_value=payload) as mock_get:
            location = client.locate("8.8.8.8")

        assert location == Location(city="Mountain View", country="United States")
        mock_get.assert_called_once_with("/8.8.8.8", params={"fields": "status,city,country"})

    def test_failed_status_is_unknown(self, client):
        with patch.object(client, "get_json", return_value={"status": "fail"}):
            assert client.locate("8.8.8.8") == UNKNOWN_LOCATION

    def test_http_error_is_unknown(self, client):
        with patch.object(client, "get_json", side_effect=HTTPClientError("timed out")):
            assert client.locate("8.8.8.8") == UNKNOWN_LOCATION

    def test_unexpected_error_is_unknown(self, client):
        with patch.object(client, "get_json", side_effect=RuntimeError("boom")):
            assert client.locate("8.8.8.8") == UNKNOWN_LOCATION

    def test_missing_fields_default_to_unknown(self, client):
        with patch.object(client, "get_json", return_value={"status": "success"}):
            assert client.locate("8.8.8.8") == UNKNOWN_LOCATION
