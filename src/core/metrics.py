"""Prometheus counters for case resolution and the update pipeline.

HTTP request metrics live with the request middleware; these cover the
work done outside a request (batch runs, provider fallbacks).
"""

from prometheus_client import Counter

CASES_CHECKED = Counter(
    "tracker_cases_checked_total",
    "Tracked cases resolved during update runs",
)
CHANGE_EVENTS = Counter(
    "tracker_change_events_total",
    "Change events detected on tracked cases",
    ["kind"],
)
PROVIDER_FAILURES = Counter(
    "tracker_provider_failures_total",
    "Provider calls that raised instead of returning a result",
    ["provider"],
)
