# noteledger/core/encoding.py
import base64

PUBKEY_LENGTH = 32


def b64url_encode(data: bytes) -> str:
    """Encode bytes to base64url (no padding, URL-safe)."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(s: str) -> bytes:
    """Decode base64url string back to bytes."""
    # Restore padding
    padding = len(s) % 4
    if padding:
        s += "=" * (4 - padding)
    return base64.urlsafe_b64decode(s)


def pubkey_to_str(key: bytes) -> str:
    """Text form of a 32-byte public key / account address."""
    if len(key) != PUBKEY_LENGTH:
        raise ValueError(f"Public key must be {PUBKEY_LENGTH} bytes, got {len(key)}")
    return b64url_encode(key)


def pubkey_from_str(s: str) -> bytes:
    """Parse a base64url public key, rejecting anything that isn't 32 bytes."""
    try:
        raw = b64url_decode(s.strip())
    except (ValueError, TypeError) as e:
        raise ValueError(f"Invalid public key text {s!r}: {e}") from e
    if len(raw) != PUBKEY_LENGTH:
        raise ValueError(f"Public key must decode to {PUBKEY_LENGTH} bytes, got {len(raw)}")
    return raw


def short_key(key: bytes, width: int = 8) -> str:
    """Abbreviated key for log lines and tables."""
    text = b64url_encode(key)
    return text if len(text) <= width * 2 else f"{text[:width]}…{text[-4:]}"
