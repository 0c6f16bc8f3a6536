"""
Unit Tests for the Address Classifier
=====================================

Tests for:
- Cloud metadata host set
- Localhost aliases and 127.0.0.0/8 prefix matching
- Private IPv4 regex families
- Private/reserved IPv6 literals and prefixes
- Hostname normalization and IPv4-mapped extraction
"""

import pytest

from outbound_guard.classifier import (
    CLOUD_METADATA_HOSTS,
    embedded_ipv4,
    is_cloud_metadata,
    is_localhost,
    is_private_ipv4,
    is_reserved_ipv6,
    normalize_hostname,
)


class TestCloudMetadata:
    @pytest.mark.parametrize(
        "host",
        [
            "169.254.169.254",
            "169.254.170.2",
            "metadata.google.internal",
            "metadata",
            "100.100.100.200",
            "192.0.0.192",
        ],
    )
    def test_known_endpoints(self, host):
        assert is_cloud_metadata(host)

    @pytest.mark.parametrize(
        "host", ["example.com", "169.254.169.253", "metadata.example.com", ""]
    )
    def test_other_hosts(self, host):
        assert not is_cloud_metadata(host)

    def test_set_is_immutable(self):
        assert isinstance(CLOUD_METADATA_HOSTS, frozenset)


class TestLocalhost:
    @pytest.mark.parametrize(
        "host",
        [
            "localhost",
            "127.0.0.1",
            "127.1.2.3",
            "::1",
            "0.0.0.0",
            "localhost.localdomain",
        ],
    )
    def test_localhost_forms(self, host):
        assert is_localhost(host)

    @pytest.mark.parametrize("host", ["128.0.0.1", "example.com", "10.0.0.1", "::2"])
    def test_not_localhost(self, host):
        assert not is_localhost(host)


class TestPrivateIPv4:
    @pytest.mark.parametrize(
        "addr",
        [
            "10.0.0.1",
            "10.255.255.255",
            "192.168.1.1",
            "172.16.0.1",
            "172.31.255.255",
            "169.254.1.1",
            "127.0.0.1",
            "0.1.2.3",
        ],
    )
    def test_private_ranges(self, addr):
        assert is_private_ipv4(addr)

    @pytest.mark.parametrize(
        "addr", ["172.15.0.1", "172.32.0.1", "8.8.8.8", "93.184.216.34", "100.10.0.1"]
    )
    def test_public_addresses(self, addr):
        assert not is_private_ipv4(addr)

    def test_matching_is_textual(self):
        """Malformed input is not rejected here; upstream parsing handles it."""
        assert is_private_ipv4("10.not-an-ip")
        assert not is_private_ipv4("not-an-ip")


class TestReservedIPv6:
    @pytest.mark.parametrize(
        "addr",
        [
            "::1",
            "::",
            "fe80::1",
            "fc00::1",
            "fd00::abcd",
            "::ffff:10.0.0.1",
            "fd12:3456:789a::1",
            "fc01::1",
            "fe90::1",
            "febf::1",
            "0:0:0:0:0:0:0:1",
        ],
    )
    def test_reserved(self, addr):
        assert is_reserved_ipv6(addr)

    @pytest.mark.parametrize(
        "addr", ["2001:db8::1", "2606:4700::1111", "fec0::1", "fbff::1", "example.com", "fd12:zz::1"]
    )
    def test_not_reserved(self, addr):
        assert not is_reserved_ipv6(addr)


class TestNormalization:
    def test_lowercases(self):
        assert normalize_hostname("LocalHost") == "localhost"

    def test_strips_ipv6_brackets(self):
        assert normalize_hostname("[::1]") == "::1"

    def test_unbalanced_brackets_kept(self):
        assert normalize_hostname("[::1") == "[::1"

    def test_embedded_ipv4_dotted(self):
        assert embedded_ipv4("::ffff:169.254.169.254") == "169.254.169.254"

    def test_embedded_ipv4_hex(self):
        assert embedded_ipv4("::ffff:a9fe:a9fe") == "169.254.169.254"

    def test_embedded_ipv4_none_for_plain_addresses(self):
        assert embedded_ipv4("169.254.169.254") is None
        assert embedded_ipv4("fe80::1") is None
        assert embedded_ipv4("::ffff:zzzz") is None
