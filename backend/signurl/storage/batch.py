"""
Batch issuance of signed download URLs.

Files are processed in consecutive chunks. Every file in a chunk is issued
concurrently, the next chunk starts only after the previous one has fully
settled, and a short delay separates chunks to throttle the request rate
against the storage provider.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

from signurl.config import settings
from signurl.errors import SignUrlError, ValidationError
from signurl.storage.issuer import SignedUrlIssuer, get_issuer
from signurl.storage.records import SignedUrlRecord
from signurl.utils.logging import log_batch_completed
from signurl.utils.metrics import batch_files

logger = logging.getLogger(__name__)


@dataclass
class BatchError:
    """A file that could not be issued."""

    file: Any
    error: str


@dataclass
class BatchResult:
    results: List[SignedUrlRecord] = field(default_factory=list)
    errors: List[BatchError] = field(default_factory=list)
    stats: Dict[str, Any] = field(default_factory=dict)


def chunked(items: Sequence, size: int) -> List[Sequence]:
    """Split ``items`` into consecutive chunks of at most ``size``."""
    return [items[i:i + size] for i in range(0, len(items), size)]


class BatchIssuer:
    """Runs the issuer over many files with bounded concurrency."""

    def __init__(
        self,
        issuer: SignedUrlIssuer,
        max_files: int = 500,
        default_chunk_size: int = 15,
        min_delay_ms: int = 50,
        max_delay_ms: int = 200,
        delay_per_file_ms: int = 10,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.issuer = issuer
        self.max_files = max_files
        self.default_chunk_size = default_chunk_size
        self.min_delay_ms = min_delay_ms
        self.max_delay_ms = max_delay_ms
        self.delay_per_file_ms = delay_per_file_ms
        self._sleep = sleep
        self._clock = clock

    def delay_ms(self, chunk_size: int) -> int:
        """Inter-chunk delay: size-scaled, capped, never below the minimum."""
        return max(self.min_delay_ms, min(self.max_delay_ms, chunk_size * self.delay_per_file_ms))

    def validate(self, files: Optional[Sequence], chunk_size: Optional[int]) -> int:
        """
        Check the request before any file is issued.

        Returns:
            The chunk size to use

        Raises:
            ValidationError: If the list is missing, empty or oversized,
                or the chunk size is not a positive integer
        """
        if not files or not isinstance(files, (list, tuple)):
            raise ValidationError("Files array is required")
        if len(files) > self.max_files:
            raise ValidationError(
                f"Maximum {self.max_files} files per batch request. "
                "For larger batches, split into multiple requests."
            )
        if chunk_size is None:
            return self.default_chunk_size
        if isinstance(chunk_size, bool) or not isinstance(chunk_size, int) or chunk_size < 1:
            raise ValidationError("batchSize must be a positive integer")
        return chunk_size

    async def _issue_one(self, bucket: str, file: Any) -> Union[SignedUrlRecord, BatchError]:
        try:
            return await self.issuer.issue(bucket, file)
        except SignUrlError as e:
            return BatchError(file=file, error=e.message)
        except Exception as e:
            logger.error(f"Unexpected error issuing {file!r}: {e}")
            return BatchError(file=file, error=str(e) or "Failed to generate signed URL")

    async def issue_batch(
        self,
        bucket: str,
        files: Sequence,
        chunk_size: Optional[int] = None,
    ) -> BatchResult:
        """
        Issue signed URLs for every file, isolating per-file failures.

        Args:
            bucket: Bucket holding the objects
            files: Client-supplied file paths
            chunk_size: Files issued concurrently per chunk

        Returns:
            BatchResult with one outcome per input file
        """
        chunk_size = self.validate(files, chunk_size)
        chunks = chunked(list(files), chunk_size)
        batch_files.observe(len(files))
        logger.info(f"Processing batch of {len(files)} files in {len(chunks)} chunks of {chunk_size}")

        result = BatchResult()
        start = self._clock()

        for index, chunk in enumerate(chunks):
            outcomes = await asyncio.gather(*(self._issue_one(bucket, file) for file in chunk))
            for outcome in outcomes:
                if isinstance(outcome, BatchError):
                    result.errors.append(outcome)
                else:
                    result.results.append(outcome)

            if index < len(chunks) - 1:
                await self._sleep(self.delay_ms(chunk_size) / 1000)

        duration_ms = (self._clock() - start) * 1000
        result.stats = self._stats(len(files), result, duration_ms)
        log_batch_completed(logger, len(files), len(result.results), len(result.errors), duration_ms)
        return result

    @staticmethod
    def _stats(total: int, result: BatchResult, duration_ms: float) -> Dict[str, Any]:
        cached = sum(1 for record in result.results if record.issued_from_cache)
        return {
            "total": total,
            "successful": len(result.results),
            "failed": len(result.errors),
            "cached": cached,
            "fresh": len(result.results) - cached,
            "performance": {
                "totalTimeMs": round(duration_ms),
                "avgTimePerFileMs": round(duration_ms / total, 2),
                "throughputFilesPerSecond": round(total / (duration_ms / 1000), 2) if duration_ms > 0 else float(total),
            },
        }


# Singleton instance
_batch_issuer: Optional[BatchIssuer] = None


def get_batch_issuer() -> BatchIssuer:
    global _batch_issuer
    if _batch_issuer is None:
        _batch_issuer = BatchIssuer(
            issuer=get_issuer(),
            max_files=settings.batch_max_files,
            default_chunk_size=settings.batch_default_size,
            min_delay_ms=settings.batch_delay_ms,
            max_delay_ms=settings.batch_max_delay_ms,
            delay_per_file_ms=settings.batch_delay_per_file_ms,
        )
    return _batch_issuer
