"""
Prometheus metrics definitions for the storage service.
All metrics are registered here and can be imported by other modules.
"""
from prometheus_client import Counter, Histogram

# Storage verb metrics
storage_operations_total = Counter(
    'storage_operations_total',
    'Total storage operations',
    ['operation']
)

storage_operation_failures_total = Counter(
    'storage_operation_failures_total',
    'Total failed storage operations',
    ['operation']
)

storage_operation_duration_seconds = Histogram(
    'storage_operation_duration_seconds',
    'Storage operation duration in seconds',
    ['operation'],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 300.0]
)

# Range downloader metrics
storage_download_chunks_total = Counter(
    'storage_download_chunks_total',
    'Total chunks fetched by ranged downloads'
)

storage_download_bytes_total = Counter(
    'storage_download_bytes_total',
    'Total bytes received by ranged downloads'
)
