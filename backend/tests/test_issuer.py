"""
Tests for SignedUrlIssuer.
"""
from datetime import datetime, timezone

import pytest

from signurl.cache import UrlCache
from signurl.errors import NotFoundError, ProviderError, ValidationError
from signurl.storage.issuer import SignedUrlIssuer
from signurl.storage.records import SignedUrlRecord

BUCKET = "test-bucket"


@pytest.fixture
def long_ttl_issuer(fake_signer, url_cache, clock) -> SignedUrlIssuer:
    """Issuer whose cache TTL matches URL expiry, so only the buffer decides freshness."""
    return SignedUrlIssuer(
        signer=fake_signer,
        cache=url_cache,
        expires_in=7200,
        cache_ttl=7200,
        expiry_buffer=300,
        clock=clock,
    )


@pytest.fixture
def two_tier_issuer(fake_signer, two_tier_cache, clock) -> SignedUrlIssuer:
    return SignedUrlIssuer(
        signer=fake_signer,
        cache=two_tier_cache,
        expires_in=7200,
        cache_ttl=3600,
        expiry_buffer=300,
        clock=clock,
    )

class TestIssue:
    """Tests for download URL issuance."""

    @pytest.mark.asyncio
    async def test_second_issue_served_from_cache(self, issuer: SignedUrlIssuer, fake_signer):
        first = await issuer.issue(BUCKET, "books/a.mp3")
        second = await issuer.issue(BUCKET, "books/a.mp3")

        assert first.issued_from_cache is False
        assert second.issued_from_cache is True
        assert second.url == first.url
        assert len(fake_signer.get_calls) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path,content_type", [
        ("books/a.mp3", "audio/mpeg"),
        ("books/a.png", "image/png"),
        ("books/a.xyz", "application/octet-stream"),
    ])
    async def test_content_type(self, issuer: SignedUrlIssuer, path, content_type):
        record = await issuer.issue("mybucket", path)
        assert record.content_type == content_type

    @pytest.mark.asyncio
    async def test_record_fields(self, issuer: SignedUrlIssuer, clock):
        record = await issuer.issue(BUCKET, "books/a.png")
        assert record.file_path == "books/a.png"
        assert record.expires_in == 7200
        assert record.expires_at.timestamp() == clock() + 7200

    @pytest.mark.asyncio
    async def test_traversal_stripped_before_signing(self, issuer: SignedUrlIssuer, fake_signer):
        record = await issuer.issue(BUCKET, "../books/../a.png")
        signed_path = fake_signer.get_calls[0][1]
        assert ".." not in signed_path
        assert record.file_path == signed_path

    @pytest.mark.asyncio
    async def test_signs_with_response_headers(self, issuer: SignedUrlIssuer, fake_signer):
        await issuer.issue(BUCKET, "books/a.mp3")
        headers = fake_signer.get_calls[0][2]
        assert headers["Content-Type"] == "audio/mpeg"
        assert headers["Cache-Control"] == "public, max-age=31536000"

    @pytest.mark.asyncio
    async def test_blank_path_rejected(self, issuer: SignedUrlIssuer, fake_signer):
        with pytest.raises(ValidationError):
            await issuer.issue(BUCKET, "   ")
        assert fake_signer.get_calls == []

    @pytest.mark.asyncio
    async def test_near_expiry_record_is_reissued(self, long_ttl_issuer: SignedUrlIssuer, fake_signer, clock):
        """A cached URL with 5 minutes or less left is never returned."""
        first = await long_ttl_issuer.issue(BUCKET, "books/a.png")
        clock.advance(7200 - 300)

        second = await long_ttl_issuer.issue(BUCKET, "books/a.png")
        assert second.issued_from_cache is False
        assert second.url != first.url
        assert len(fake_signer.get_calls) == 2

        third = await long_ttl_issuer.issue(BUCKET, "books/a.png")
        assert third.issued_from_cache is True
        assert third.url == second.url

    @pytest.mark.asyncio
    async def test_record_outside_buffer_is_hit(self, long_ttl_issuer: SignedUrlIssuer, clock):
        await long_ttl_issuer.issue(BUCKET, "books/a.png")
        clock.advance(7200 - 301)
        record = await long_ttl_issuer.issue(BUCKET, "books/a.png")
        assert record.issued_from_cache is True

    @pytest.mark.asyncio
    async def test_corrupt_cache_entry_treated_as_miss(self, issuer: SignedUrlIssuer, url_cache: UrlCache):
        await url_cache.set(issuer.cache_key(BUCKET, "books/a.png"), "not-json", 60)
        record = await issuer.issue(BUCKET, "books/a.png")
        assert record.issued_from_cache is False

    @pytest.mark.asyncio
    async def test_not_found_is_distinct_and_not_cached(self, issuer: SignedUrlIssuer, fake_signer, url_cache):
        fake_signer.missing.add("books/missing.png")
        with pytest.raises(NotFoundError):
            await issuer.issue(BUCKET, "books/missing.png")
        assert url_cache.stats()["memory"]["keys"] == 0

    @pytest.mark.asyncio
    async def test_provider_failure_not_cached(self, issuer: SignedUrlIssuer, fake_signer, url_cache):
        fake_signer.failing.add("books/a.png")
        with pytest.raises(ProviderError):
            await issuer.issue(BUCKET, "books/a.png")
        assert url_cache.stats()["memory"]["keys"] == 0

    @pytest.mark.asyncio
    async def test_unexpected_signer_error_wrapped(self, issuer: SignedUrlIssuer, fake_signer):
        async def broken(*args, **kwargs):
            raise RuntimeError("socket closed")

        fake_signer.presign_get = broken
        with pytest.raises(ProviderError) as exc_info:
            await issuer.issue(BUCKET, "books/a.png")
        assert exc_info.value.detail == "socket closed"

    @pytest.mark.asyncio
    async def test_works_when_remote_tier_down(self, fake_signer, two_tier_cache, fake_redis, clock):
        fake_redis.fail = True
        issuer = SignedUrlIssuer(fake_signer, two_tier_cache, 7200, 3600, 300, clock=clock)
        await issuer.issue(BUCKET, "books/a.png")
        record = await issuer.issue(BUCKET, "books/a.png")
        assert record.issued_from_cache is True


class TestInvalidate:
    """Tests for cache invalidation and deletion."""

    @pytest.mark.asyncio
    async def test_invalidate_then_issue_is_fresh(self, issuer: SignedUrlIssuer):
        await issuer.issue(BUCKET, "books/a.png")
        key = await issuer.invalidate(BUCKET, "books/a.png")
        assert key == "r2:get:test-bucket:books/a.png"

        record = await issuer.issue(BUCKET, "books/a.png")
        assert record.issued_from_cache is False

    @pytest.mark.asyncio
    async def test_invalidate_drops_audio_entry(self, issuer: SignedUrlIssuer):
        await issuer.issue_audio(BUCKET, "books/a.mp3")
        await issuer.invalidate(BUCKET, "books/a.mp3")
        record = await issuer.issue_audio(BUCKET, "books/a.mp3")
        assert record.issued_from_cache is False

    @pytest.mark.asyncio
    async def test_delete_invalidates_cache(self, issuer: SignedUrlIssuer, fake_signer):
        await issuer.issue(BUCKET, "books/a.png")
        deleted = await issuer.delete(BUCKET, " books/a.png ")
        assert deleted == "books/a.png"
        assert fake_signer.deleted == ["books/a.png"]

        record = await issuer.issue(BUCKET, "books/a.png")
        assert record.issued_from_cache is False

    @pytest.mark.asyncio
    async def test_delete_missing_file(self, issuer: SignedUrlIssuer, fake_signer):
        fake_signer.missing.add("books/gone.png")
        with pytest.raises(NotFoundError):
            await issuer.delete(BUCKET, "books/gone.png")


class TestAudioAndUpload:
    """Tests for audio and upload URLs."""

    @pytest.mark.asyncio
    async def test_audio_requires_audio_extension(self, issuer: SignedUrlIssuer):
        with pytest.raises(ValidationError) as exc_info:
            await issuer.issue_audio(BUCKET, "books/a.txt")
        assert exc_info.value.message == "File must be an audio file (.mp3, .m4a, .aac, .wav)"

    @pytest.mark.asyncio
    async def test_audio_cached_separately(self, issuer: SignedUrlIssuer, fake_signer):
        await issuer.issue(BUCKET, "books/a.m4a")
        audio = await issuer.issue_audio(BUCKET, "books/a.m4a")

        assert audio.issued_from_cache is False
        assert audio.content_type == "audio/mp4"
        assert fake_signer.get_calls[1][2]["Accept-Ranges"] == "bytes"

        again = await issuer.issue_audio(BUCKET, "books/a.m4a")
        assert again.issued_from_cache is True

    @pytest.mark.asyncio
    async def test_upload_defaults_and_not_cached(self, issuer: SignedUrlIssuer, fake_signer, url_cache):
        record = await issuer.issue_upload(BUCKET, "books/a.bin")
        assert record.content_type == "application/octet-stream"
        assert record.metadata == {}
        assert fake_signer.put_calls == [(BUCKET, "books/a.bin", "application/octet-stream", None)]
        assert url_cache.stats()["memory"]["keys"] == 0

    @pytest.mark.asyncio
    async def test_audio_upload_metadata(self, issuer: SignedUrlIssuer, fake_signer):
        record = await issuer.issue_upload(BUCKET, "books/a.mp3", "audio/mpeg")
        assert record.metadata["Content-Disposition"] == "inline"
        assert fake_signer.put_calls[0][3] == record.metadata


class TestTwoTierIssue:
    """Tests for issuance over memory and redis tiers."""

    @pytest.mark.asyncio
    async def test_invalidate_after_redis_blip(self, two_tier_issuer: SignedUrlIssuer, two_tier_cache: UrlCache, fake_redis):
        await two_tier_issuer.issue(BUCKET, "books/a.png")
        key = two_tier_issuer.cache_key(BUCKET, "books/a.png")
        assert key in fake_redis.store

        # A failure on an unrelated key marks the redis tier unavailable
        fake_redis.fail = True
        await two_tier_cache.get("r2:get:test-bucket:other.png")
        fake_redis.fail = False

        await two_tier_issuer.invalidate(BUCKET, "books/a.png")
        assert key not in fake_redis.store

        await two_tier_cache.sweep()
        record = await two_tier_issuer.issue(BUCKET, "books/a.png")
        assert record.issued_from_cache is False

    @pytest.mark.asyncio
    async def test_stale_redis_entry_is_replaced(self, two_tier_issuer: SignedUrlIssuer, fake_redis, fake_signer, clock):
        key = two_tier_issuer.cache_key(BUCKET, "books/a.png")
        stale = SignedUrlRecord(
            url="https://storage.test/test-bucket/books/a.png?sig=stale",
            file_path="books/a.png",
            content_type="image/png",
            expires_in=7200,
            expires_at=datetime.fromtimestamp(clock() + 100, tz=timezone.utc),
        )
        fake_redis.store[key] = stale.serialize()

        record = await two_tier_issuer.issue(BUCKET, "books/a.png")

        assert record.issued_from_cache is False
        assert record.url != stale.url
        assert key in fake_redis.deleted_keys
        assert len(fake_signer.get_calls) == 1
        assert SignedUrlRecord.deserialize(fake_redis.store[key]).url == record.url
