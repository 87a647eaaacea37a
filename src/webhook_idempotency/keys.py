"""Deterministic idempotency keys for externally triggered events.

A key identifies one logical event from an upstream sender and must stay
stable across every redelivery of that event. It is derived from canonical
representations of its components:

1. Provider: stripped, lowercased (e.g. "venmo", "sms")
2. Context: stripped, lowercased, "default" when absent
3. Transaction or message id: used verbatim
4. Digest: SHA-256 over the newline-joined components, first 32 hex chars

The readable ``<provider>:<context>:`` prefix keeps keys scannable per
provider, while the digest keeps arbitrary ids out of the store's key space.
"""

import hashlib
import re

DEFAULT_CONTEXT = "default"
DIGEST_LENGTH = 32
LOCK_SUFFIX = ":lock"

_COMPONENT_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_.-]*$")


def generate_key(provider: str, transaction_id: str, context: str | None = None) -> str:
    """Compute the idempotency key for an event.

    Args:
        provider: Upstream sender identifier (e.g. "venmo", "twilio").
        transaction_id: The sender's transaction or message id.
        context: Optional tag separating use cases that might share a
            provider and id (e.g. "payment" vs "email").

    Returns:
        Key of the form ``<provider>:<context>:<digest>``.

    Raises:
        ValueError: If the provider or id is empty, or the provider or
            context contains characters outside ``[a-z0-9_.-]``.

    Examples:
        >>> key = generate_key("Venmo", "txn_1")
        >>> key.startswith("venmo:default:")
        True
        >>> key == generate_key("venmo", "txn_1")
        True
        >>> key == generate_key("venmo", "txn_1", context="payment")
        False
    """
    canonical_provider = _canonicalize_component(provider, "provider")
    canonical_context = (
        DEFAULT_CONTEXT if context is None else _canonicalize_component(context, "context")
    )

    if not transaction_id:
        raise ValueError("transaction_id must not be empty")

    digest_input = "\n".join([canonical_provider, canonical_context, transaction_id])
    digest = hashlib.sha256(digest_input.encode("utf-8")).hexdigest()[:DIGEST_LENGTH]

    return f"{canonical_provider}:{canonical_context}:{digest}"


def ledger_key(prefix: str, key: str) -> str:
    """Store key holding the ledger record for ``key``."""
    return f"{prefix}:{key}"


def lock_key(prefix: str, key: str) -> str:
    """Store key holding the processing lock for ``key``."""
    return f"{prefix}:{key}{LOCK_SUFFIX}"


def provider_pattern(prefix: str, provider: str | None = None) -> str:
    """Glob pattern matching the store keys of one provider, or all of them."""
    if provider is None:
        return f"{prefix}:*"
    return f"{prefix}:{_canonicalize_component(provider, 'provider')}:*"


def is_lock_key(store_key: str) -> bool:
    return store_key.endswith(LOCK_SUFFIX)


def _canonicalize_component(value: str, name: str) -> str:
    """Strip and lowercase a key component, rejecting unsafe characters.

    Args:
        value: Raw component value
        name: Component name used in error messages

    Returns:
        The canonical component
    """
    canonical = value.strip().lower() if value else ""
    if not canonical:
        raise ValueError(f"{name} must not be empty")
    if not _COMPONENT_PATTERN.match(canonical):
        raise ValueError(f"{name} must match {_COMPONENT_PATTERN.pattern}, got {value!r}")
    return canonical
