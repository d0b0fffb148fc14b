"""
Prometheus metrics definitions.
All metrics are registered here and can be imported by other modules.
"""
from prometheus_client import Counter, Histogram

# HTTP request metrics
http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'path', 'status']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'path'],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

# Error metrics
errors_total = Counter(
    'errors_total',
    'Total errors',
    ['error_type']
)

# Signed URL metrics
signed_urls_issued_total = Counter(
    'signed_urls_issued_total',
    'Total signed URLs handed out',
    ['operation', 'source']
)

cache_tier_failures_total = Counter(
    'cache_tier_failures_total',
    'Total swallowed cache tier failures',
    ['tier', 'action']
)

batch_files = Histogram(
    'batch_files',
    'Number of files per batch issuance request',
    buckets=[1, 5, 15, 50, 100, 250, 500]
)

# Provider metrics
provider_requests_total = Counter(
    'provider_requests_total',
    'Total storage/SMS provider requests',
    ['provider', 'operation']
)

provider_failures_total = Counter(
    'provider_failures_total',
    'Total storage/SMS provider failures',
    ['provider', 'operation']
)

provider_latency_seconds = Histogram(
    'provider_latency_seconds',
    'Provider request latency in seconds',
    ['provider', 'operation'],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0]
)

# OTP metrics
otp_requests_total = Counter(
    'otp_requests_total',
    'Total OTP send/verify outcomes',
    ['action', 'outcome']
)
