"""
Test configuration and fixtures.
Storage, cache and OTP collaborators are replaced by in-memory doubles;
no network access is needed.
"""
import fnmatch
import os

# Set test environment before any imports
os.environ["ENVIRONMENT"] = "test"
os.environ["STORAGE_PROVIDER"] = "r2"
os.environ["R2_BUCKET"] = "test-bucket"
os.environ.pop("REDIS_URL", None)

import pytest
from typing import AsyncGenerator, Dict, List, Optional

from httpx import AsyncClient, ASGITransport
from redis.exceptions import ConnectionError as RedisConnectionError

from signurl.auth.otp_service import OTPService, get_otp_service
from signurl.auth.rate_limit import send_otp_limit, verify_otp_limit
from signurl.auth.verification_store import VerificationStore
from signurl.cache import MemoryTier, RedisTier, UrlCache, get_url_cache
from signurl.errors import NotFoundError, OTPDeliveryError, ProviderError
from signurl.storage.base import SigningClient
from signurl.storage.batch import BatchIssuer, get_batch_issuer
from signurl.storage.issuer import SignedUrlIssuer, get_issuer

BUCKET = "test-bucket"
START_TIME = 1_700_000_000.0


class FakeClock:
    """Manually advanced clock usable as a ``time.time`` replacement."""

    def __init__(self, now: float = START_TIME):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSigner(SigningClient):
    """Signing client minting deterministic URLs without a provider."""

    provider_name = "fake"

    def __init__(self, bucket: str = BUCKET):
        self._bucket = bucket
        self.get_calls: List[tuple] = []
        self.put_calls: List[tuple] = []
        self.deleted: List[str] = []
        self.missing = set()
        self.failing = set()

    @property
    def is_configured(self) -> bool:
        return True

    @property
    def bucket(self) -> str:
        return self._bucket

    async def presign_get(self, bucket, file_path, expires_in, response_headers=None):
        self.get_calls.append((bucket, file_path, response_headers))
        if file_path in self.missing:
            raise NotFoundError("File not found", file=file_path)
        if file_path in self.failing:
            raise ProviderError("Storage provider failed to presign_get", detail="signing backend down", file=file_path)
        return f"https://storage.test/{bucket}/{file_path}?sig={len(self.get_calls)}"

    async def presign_put(self, bucket, file_path, content_type, expires_in, metadata=None):
        self.put_calls.append((bucket, file_path, content_type, metadata))
        return f"https://storage.test/{bucket}/{file_path}?upload={len(self.put_calls)}"

    async def delete_object(self, bucket, file_path):
        if file_path in self.missing:
            raise NotFoundError(
                "File not found",
                detail="The specified file does not exist in the bucket",
                file=file_path,
            )
        self.deleted.append(file_path)

    async def object_exists(self, bucket, file_path):
        return file_path not in self.missing


class FakeOTPProvider:
    """Records codes instead of sending them."""

    def __init__(self):
        self.sent: List[tuple] = []
        self.fail_with: Optional[str] = None

    async def send_verification(self, phone_number: str, code: str) -> Dict:
        if self.fail_with:
            raise OTPDeliveryError(self.fail_with, detail="provider rejected request")
        self.sent.append((phone_number, code))
        return {"message": "sent"}

    def last_code(self) -> str:
        return self.sent[-1][1]

    async def close(self) -> None:
        pass


class FakePipeline:
    def __init__(self, client: "FakeRedis"):
        self._client = client
        self._ops: List[tuple] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    def setex(self, key, ttl, value):
        self._ops.append((key, ttl, value))
        return self

    async def execute(self):
        if self._client.fail or self._client.fail_pipeline:
            raise RedisConnectionError("pipeline failed")
        for key, ttl, value in self._ops:
            self._client.store[key] = value
            self._client.ttls[key] = ttl
        return [True] * len(self._ops)


class FakeRedis:
    """Subset of the redis.asyncio client used by RedisTier."""

    def __init__(self):
        self.store: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}
        self.fail = False
        self.fail_pipeline = False
        self.deleted_keys: List[str] = []

    def _check(self):
        if self.fail:
            raise RedisConnectionError("redis unreachable")

    async def ping(self):
        self._check()
        return True

    async def get(self, key):
        self._check()
        return self.store.get(key)

    async def setex(self, key, ttl, value):
        self._check()
        self.store[key] = value
        self.ttls[key] = ttl
        return True

    async def delete(self, *keys):
        self._check()
        removed = 0
        for key in keys:
            self.deleted_keys.append(key)
            if self.store.pop(key, None) is not None:
                removed += 1
        return removed

    async def mget(self, keys):
        self._check()
        return [self.store.get(key) for key in keys]

    def pipeline(self, transaction=True):
        return FakePipeline(self)

    async def scan_iter(self, match="*", count=None):
        self._check()
        for key in list(self.store):
            if fnmatch.fnmatchcase(key, match):
                yield key

    async def aclose(self):
        pass


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_signer() -> FakeSigner:
    return FakeSigner()


@pytest.fixture
def memory_tier(clock) -> MemoryTier:
    return MemoryTier(maxsize=100, timer=clock)


@pytest.fixture
def url_cache(memory_tier) -> UrlCache:
    return UrlCache(memory_tier)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
async def redis_tier(fake_redis) -> RedisTier:
    tier = RedisTier(fake_redis, namespace="r2")
    await tier.connect()
    return tier


@pytest.fixture
def two_tier_cache(memory_tier, redis_tier) -> UrlCache:
    return UrlCache(memory_tier, remote=redis_tier)


@pytest.fixture
def issuer(fake_signer, url_cache, clock) -> SignedUrlIssuer:
    return SignedUrlIssuer(
        signer=fake_signer,
        cache=url_cache,
        expires_in=7200,
        cache_ttl=3600,
        expiry_buffer=300,
        clock=clock,
    )


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def batch_issuer(issuer, sleeps) -> BatchIssuer:
    async def record_sleep(seconds: float):
        sleeps.append(seconds)

    return BatchIssuer(
        issuer=issuer,
        max_files=500,
        default_chunk_size=15,
        min_delay_ms=50,
        max_delay_ms=200,
        delay_per_file_ms=10,
        sleep=record_sleep,
    )


@pytest.fixture
def otp_provider() -> FakeOTPProvider:
    return FakeOTPProvider()


@pytest.fixture
def verification_store(clock) -> VerificationStore:
    return VerificationStore(ttl_seconds=300, maxsize=100, timer=clock)


@pytest.fixture
def otp_service(otp_provider, verification_store) -> OTPService:
    return OTPService(provider=otp_provider, store=verification_store)


@pytest.fixture(autouse=True)
def reset_rate_limits():
    send_otp_limit.limiter.reset()
    verify_otp_limit.limiter.reset()
    yield


@pytest.fixture
async def client(issuer, batch_issuer, url_cache, otp_service) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with collaborators overridden."""
    from signurl.main import app

    app.dependency_overrides[get_issuer] = lambda: issuer
    app.dependency_overrides[get_batch_issuer] = lambda: batch_issuer
    app.dependency_overrides[get_url_cache] = lambda: url_cache
    app.dependency_overrides[get_otp_service] = lambda: otp_service

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
