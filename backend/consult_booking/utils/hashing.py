# Contact lookup digest and rate-limit key hashing.

import hashlib
import hmac

from ..config import settings


def hash_value(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def hash_ip(ip: str | None) -> str:
    if not ip:
        return "no-ip"
    return hash_value(ip)


def normalize_contact(contact: str) -> str:
    return contact.strip()


def contact_digest(contact: str, key: str | None = None) -> str:
    """Deterministic keyed digest; equal contacts ⇔ equal digests."""
    key = key or settings.contact_digest_key or settings.encryption_key
    if not key:
        raise RuntimeError("CONTACT_DIGEST_KEY or ENCRYPTION_KEY must be set")
    return hmac.new(
        key.encode("utf-8"),
        normalize_contact(contact).encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
