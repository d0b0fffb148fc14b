"""
Tests for Pydantic schemas and records.
"""
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from signurl.schemas import BatchRequest, SendOTPRequest, SignedUrlResponse, UploadRequest, VerifyOTPRequest
from signurl.storage.records import SignedUrlRecord, UploadUrlRecord

EXPIRES_AT = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


def make_record(**overrides) -> SignedUrlRecord:
    fields = {
        "url": "https://storage.test/b/books/a.png?sig=1",
        "file_path": "books/a.png",
        "content_type": "image/png",
        "expires_in": 7200,
        "expires_at": EXPIRES_AT,
    }
    fields.update(overrides)
    return SignedUrlRecord(**fields)


class TestSignedUrlRecord:
    """Tests for SignedUrlRecord."""

    def test_serialize_roundtrip(self):
        record = make_record()
        restored = SignedUrlRecord.deserialize(record.serialize())
        assert restored == record
        assert restored.expires_at == EXPIRES_AT

    def test_from_cache_copies(self):
        record = make_record()
        cached = record.from_cache()
        assert cached.issued_from_cache is True
        assert record.issued_from_cache is False
        assert cached.url == record.url

    def test_immutable(self):
        record = make_record()
        with pytest.raises(ValidationError):
            record.url = "https://elsewhere"

    def test_deserialize_rejects_garbage(self):
        with pytest.raises(ValidationError):
            SignedUrlRecord.deserialize('{"url": "x"}')


class TestRequestSchemas:
    """Tests for camelCase request parsing."""

    def test_batch_request(self):
        request = BatchRequest.model_validate({"files": ["a.png"], "batchSize": 5})
        assert request.files == ["a.png"]
        assert request.batch_size == 5

    def test_batch_request_defaults(self):
        request = BatchRequest.model_validate({})
        assert request.files is None
        assert request.batch_size is None

    def test_batch_size_must_be_int(self):
        with pytest.raises(ValidationError):
            BatchRequest.model_validate({"files": ["a.png"], "batchSize": "many"})

    def test_upload_request(self):
        request = UploadRequest.model_validate({"file": "a.mp3", "contentType": "audio/mpeg"})
        assert request.file == "a.mp3"
        assert request.content_type == "audio/mpeg"

    def test_otp_requests(self):
        send = SendOTPRequest.model_validate({"phoneNumber": "9647701234567"})
        verify = VerifyOTPRequest.model_validate({"phoneNumber": "9647701234567", "verificationCode": "123456"})
        assert send.phone_number == "9647701234567"
        assert verify.verification_code == "123456"


class TestResponseSchemas:
    """Tests for camelCase response serialization."""

    def test_signed_url_response(self):
        response = SignedUrlResponse.from_record(make_record().from_cache(), cache_key="r2:get:b:books/a.png")
        data = response.model_dump(by_alias=True, mode="json")

        assert data["signedUrl"] == "https://storage.test/b/books/a.png?sig=1"
        assert data["file"] == "books/a.png"
        assert data["contentType"] == "image/png"
        assert data["expiresIn"] == 7200
        assert data["fromCache"] is True
        assert data["cacheKey"] == "r2:get:b:books/a.png"
        assert data["expiresAt"].startswith("2026-01-15T12:00:00")

    def test_upload_record_metadata(self):
        record = UploadUrlRecord(
            url="https://storage.test/b/a.mp3?upload=1",
            file_path="a.mp3",
            content_type="audio/mpeg",
            expires_in=7200,
            expires_at=EXPIRES_AT,
            metadata={"Content-Disposition": "inline"},
        )
        assert record.metadata == {"Content-Disposition": "inline"}
