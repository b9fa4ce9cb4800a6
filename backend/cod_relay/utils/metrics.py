# /cod_relay/utils/metrics.py

from prometheus_client import Counter, Histogram

# This file defines all Prometheus metrics used for application monitoring.
# Centralizing them here makes them easy to find and manage.

# Webhook Metrics
webhook_events_counter = Counter('webhook_events_total', 'MSG91 webhook events handled', ['endpoint', 'outcome'])
response_time_histogram = Histogram('response_time_seconds', 'Response time in seconds', ['endpoint'])

# Upstream Metrics
shopify_requests_counter = Counter('shopify_requests_total', 'Shopify Admin API calls', ['operation', 'status'])
order_lookup_attempts_histogram = Histogram(
    'order_lookup_attempts', 'Search attempts needed to resolve an order', ['flow'],
    buckets=(1, 2, 3, 4, 5, 6, 8, 10)
)
