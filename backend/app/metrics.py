from __future__ import annotations

from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "moodpeek_requests_total",
    "Total HTTP requests processed by MoodPeek",
    ("method", "path", "status"),
)

REQUEST_LATENCY = Histogram(
    "moodpeek_request_latency_seconds",
    "HTTP request latency in seconds",
    ("method", "path"),
)

REQUEST_ERRORS = Counter(
    "moodpeek_request_errors_total",
    "HTTP requests resulting in server errors",
    ("method", "path", "status"),
)

IMAGE_RESOLUTIONS = Counter(
    "moodpeek_image_resolutions_total",
    "Resolved image references by kind and provenance",
    ("kind", "source"),
)

IMAGE_CACHE_HITS = Counter(
    "moodpeek_image_cache_hits_total",
    "Image cache hits per cache layer",
    ("layer",),
)

IMAGE_PROVIDER_FAILURES = Counter(
    "moodpeek_image_provider_failures_total",
    "Image provider attempts that fell through to the next source",
    ("provider", "reason"),
)

IMAGE_RATE_LIMITED = Counter(
    "moodpeek_image_rate_limited_total",
    "Photo provider calls refused by the token bucket",
)

WEEKLY_REPORTS = Counter(
    "moodpeek_weekly_reports_total",
    "Weekly insight reports computed",
    ("result",),
)

ENTRY_WRITES = Counter(
    "moodpeek_entry_writes_total",
    "Mood entry mutations per operation",
    ("operation",),
)

__all__ = [
    "ENTRY_WRITES",
    "IMAGE_CACHE_HITS",
    "IMAGE_PROVIDER_FAILURES",
    "IMAGE_RATE_LIMITED",
    "IMAGE_RESOLUTIONS",
    "REQUEST_COUNT",
    "REQUEST_ERRORS",
    "REQUEST_LATENCY",
    "WEEKLY_REPORTS",
]
