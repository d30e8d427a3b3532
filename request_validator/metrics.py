from prometheus_client import Counter, Histogram

# Counter for validation calls
# outcome: passed, failed, error (store failure or misconfiguration)
validation_requests_total = Counter(
    'validation_requests_total',
    'Total request validation calls',
    ['outcome']
)

# Counter for field failures, labeled by the rule that rejected the field
# Custom validators share the 'custom' label to keep cardinality bounded
validation_field_failures_total = Counter(
    'validation_field_failures_total',
    'Total fields rejected, by rule',
    ['rule']
)

# Histogram for unique/exists lookup latency (seconds)
existence_lookup_latency_seconds = Histogram(
    'existence_lookup_latency_seconds',
    'Latency of existence lookups issued by unique/exists rules',
    ['rule']
)

# Counter for upload cleanup attempts
# status: deleted, error
file_cleanup_total = Counter(
    'file_cleanup_total',
    'Uploaded files removed after a failed validation',
    ['status']
)
