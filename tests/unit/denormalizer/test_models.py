"""Tests for policy doc record (de)serialization."""

from datetime import datetime, timezone

import pytest

from policy_docs.denormalizer.models import (
    Denormalized,
    DeserializationError,
    EdgeLogic,
    Hostname,
    HostnameMetadata,
)


class TestFromDocument:
    """Tests for building records from stored documents."""

    def test_hostname_metadata_fields(self, metadata_doc):
        hm = HostnameMetadata.from_document(metadata_doc)

        assert hm.hostname == "a.com"
        assert hm.zone == "z1"
        assert hm.site_id == "s1"
        assert hm.site_env == "dev"
        assert hm.created == datetime(2024, 1, 10, 8, 0, tzinfo=timezone.utc)
        assert hm.updated == datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

    def test_edge_logic_fields(self, edge_logic_doc):
        el = EdgeLogic.from_document(edge_logic_doc)

        assert el.redirect_to == "b.com"
        assert el.enforce_https == "true"
        assert el.cache_control == "max-age=300"
        assert el.backend == "be1"
        assert el.build_id == "123"
        assert el.jurisdiction == "US"

    def test_missing_fields_take_zero_values(self):
        assert Hostname.from_document({}) == Hostname(verified=False)
        el = EdgeLogic.from_document({"backend": "be1"})
        assert el.redirect_to == ""
        assert el.created is None

    def test_trailing_z_timestamp(self):
        hm = HostnameMetadata.from_document({"created": "2024-01-10T08:00:00Z"})
        assert hm.created == datetime(2024, 1, 10, 8, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value,microsecond", [
        ("2024-01-10T08:00:00.123456789Z", 123456),
        ("2024-01-10T08:00:00.5Z", 500000),
        ("2024-01-10T08:00:00.1234+00:00", 123400),
    ])
    def test_fractional_seconds_of_any_precision(self, value, microsecond):
        hm = HostnameMetadata.from_document({"created": value})
        assert hm.created == datetime(2024, 1, 10, 8, 0, 0, microsecond, tzinfo=timezone.utc)

    def test_naive_timestamp_is_utc(self):
        hm = HostnameMetadata.from_document({"updated": datetime(2024, 1, 1)})
        assert hm.updated.tzinfo == timezone.utc

    @pytest.mark.parametrize("record_type,document", [
        (Hostname, {"verified": "yes"}),
        (HostnameMetadata, {"hostname": 42}),
        (HostnameMetadata, {"created": "last tuesday"}),
        (EdgeLogic, {"enforce_https": True}),
        (EdgeLogic, {"updated": 1700000000}),
        (EdgeLogic, ["not", "an", "object"]),
        (Hostname, "verified"),
    ])
    def test_wrong_shapes_raise(self, record_type, document):
        with pytest.raises(DeserializationError):
            record_type.from_document(document)

    def test_deserialization_error_mentions_path(self):
        error = DeserializationError("bad field", path="edgelogic/s1/dev/a.com")
        assert "edgelogic/s1/dev/a.com" in str(error)
        assert error.retryable is False


class TestToDocument:
    """Tests for serializing records."""

    def test_denormalized_document_keys(self):
        doc = Denormalized(hostname="a.com", created=datetime(2024, 1, 1, tzinfo=timezone.utc)).to_document()

        assert set(doc) == {
            "hostname", "zone", "redirect_to", "enforce_https", "backend", "build_id",
            "jurisdiction", "site_id", "site_env", "created", "updated",
        }
        assert doc["created"] == "2024-01-01T00:00:00+00:00"
        assert doc["updated"] is None

    def test_edge_logic_round_trip(self, edge_logic_doc):
        el = EdgeLogic.from_document(edge_logic_doc)
        assert EdgeLogic.from_document(el.to_document()) == el
