"""End-to-end scenarios for idempotent webhook execution.

Each scenario drives IdempotencyManager through one aspect of redelivery
handling: replay, concurrency, failures, expiry, crash recovery and store
outages.
"""
