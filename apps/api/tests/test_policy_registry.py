"""Tests for policy document publication and resolution."""

import pytest

from consent_api.consent import ConsentType, hash_content
from consent_api.db.seed import SEED_EFFECTIVE_DATE
from consent_api.errors import ConflictError, NotFoundError, ValidationError


class TestPublish:
    """Documents are immutable once published."""

    def test_hash_is_sha256_of_content(self, empty_ledger, at):
        document = empty_ledger.policies.publish(
            ConsentType.NEWSLETTER, version="1.0", content="Hello", effective_date=at(0)
        )
        assert document.hash == hash_content("Hello")
        assert len(document.hash) == 64

    def test_supplied_hash_must_match(self, empty_ledger, at):
        with pytest.raises(ValidationError):
            empty_ledger.policies.publish(
                "newsletter",
                version="1.0",
                content="Hello",
                effective_date=at(0),
                document_hash="deadbeef",
            )

    def test_supplied_matching_hash_accepted(self, empty_ledger, at):
        document = empty_ledger.policies.publish(
            "newsletter",
            version="1.0",
            content="Hello",
            effective_date=at(0),
            document_hash=hash_content("Hello"),
        )
        assert document.version == "1.0"

    def test_identical_republish_is_idempotent(self, empty_ledger, at):
        first = empty_ledger.policies.publish("newsletter", "1.0", "Hello", effective_date=at(0))
        second = empty_ledger.policies.publish("newsletter", "1.0", "Hello", effective_date=at(0))
        assert second.id == first.id
        assert len(empty_ledger.policies.documents("newsletter")) == 1

    def test_republish_without_date_is_idempotent(self, empty_ledger, at):
        first = empty_ledger.policies.publish("newsletter", "1.0", "Hello", effective_date=at(0))
        second = empty_ledger.policies.publish("newsletter", "1.0", "Hello")
        assert second.id == first.id

    def test_changed_content_conflicts(self, empty_ledger, at):
        empty_ledger.policies.publish("newsletter", "1.0", "Hello", effective_date=at(0))
        with pytest.raises(ConflictError):
            empty_ledger.policies.publish("newsletter", "1.0", "Hello, edited", effective_date=at(0))

    @pytest.mark.parametrize("version,content", [("", "text"), ("  ", "text"), ("1.0", "")])
    def test_empty_fields_rejected(self, empty_ledger, version, content):
        with pytest.raises(ValidationError):
            empty_ledger.policies.publish("newsletter", version, content)

    def test_unknown_type_rejected(self, empty_ledger):
        with pytest.raises(ValidationError):
            empty_ledger.policies.publish("smoke_signals", "1.0", "text")


class TestResolution:
    """Effective document lookup."""

    def test_effective_at_picks_latest_not_after(self, ledger, at):
        ledger.policies.publish("privacy_policy", "2.0", "v2", effective_date=at(100))

        assert ledger.policies.effective_at("privacy_policy", at(50)).version == "1.0"
        assert ledger.policies.effective_at("privacy_policy", at(100)).version == "2.0"
        assert ledger.policies.effective_at("privacy_policy", at(200)).version == "2.0"

    def test_nothing_in_effect_before_first_document(self, ledger):
        before = SEED_EFFECTIVE_DATE.replace(year=2023)
        assert ledger.policies.effective_at("privacy_policy", before) is None

    def test_future_document_not_yet_latest(self, ledger):
        from datetime import timedelta

        from consent_api.consent import utcnow

        ledger.policies.publish(
            "terms_of_service", "9.0", "future", effective_date=utcnow() + timedelta(days=30)
        )
        assert ledger.policies.latest_version("terms_of_service") == "1.0"
        assert ledger.policies.get("terms_of_service").version == "1.0"
        assert ledger.policies.get("terms_of_service", "9.0").content == "future"

    def test_documents_sorted_by_effective_date(self, ledger, at):
        ledger.policies.publish("newsletter", "3.0", "v3", effective_date=at(200))
        ledger.policies.publish("newsletter", "2.0", "v2", effective_date=at(100))
        versions = [d.version for d in ledger.policies.documents("newsletter")]
        assert versions == ["1.0", "2.0", "3.0"]

    def test_get_missing_version(self, ledger):
        with pytest.raises(NotFoundError):
            ledger.policies.get("newsletter", "42")

    def test_get_without_documents(self, empty_ledger):
        with pytest.raises(NotFoundError):
            empty_ledger.policies.get(ConsentType.COOKIES_ANALYTICS)

    def test_latest_version_none_without_documents(self, empty_ledger):
        assert empty_ledger.policies.latest_version("newsletter") is None


def test_seed_covers_document_types(ledger):
    """Test the seed publishes a document for every document-backed type."""
    from consent_api.consent import CONSENT_TYPES

    for consent_type, info in CONSENT_TYPES.items():
        documents = ledger.policies.documents(consent_type)
        if info.requires_document:
            assert [d.version for d in documents] == ["1.0"]
            assert documents[0].effective_date == SEED_EFFECTIVE_DATE
        else:
            assert documents == []
