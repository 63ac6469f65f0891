from __future__ import annotations

import base64
import hashlib
import json
from dataclasses import dataclass
from email.utils import formatdate
from typing import Any, Dict, Optional, Tuple

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

SIGNATURE_ALGORITHM = "rsa-sha256"
SIGNED_HEADERS = "(request-target) host date digest"


class SigningError(ValueError):
    """Raised when a private key cannot be loaded or used for signing."""


@dataclass(frozen=True)
class SignedRequest:
    """Headers and body of a signed outbound POST."""

    body: bytes
    host: str
    date: str
    digest: str
    signature: str

    def headers(self) -> Dict[str, str]:
        return {
            "Host": self.host,
            "Date": self.date,
            "Digest": f"SHA-256={self.digest}",
            "Signature": self.signature,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }


def serialize_activity(activity: Dict[str, Any]) -> bytes:
    """Serialize an activity exactly as it is sent on the wire."""
    return json.dumps(activity, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def content_digest(body: bytes) -> str:
    """Base64-encoded SHA-256 digest of a request body."""
    return base64.b64encode(hashlib.sha256(body).digest()).decode("ascii")


def http_date(timestamp: Optional[float] = None) -> str:
    """RFC 1123 date in GMT, as used by the Date header."""
    return formatdate(timeval=timestamp, localtime=False, usegmt=True)


def signing_string(inbox_path: str, host: str, date: str, digest: str) -> str:
    return "\n".join(
        (
            f"(request-target): post {inbox_path}",
            f"host: {host}",
            f"date: {date}",
            f"digest: SHA-256={digest}",
        )
    )


def load_private_key(private_key_pem: str) -> rsa.RSAPrivateKey:
    """Load a PEM encoded RSA private key.

    Raises:
        SigningError: If the PEM cannot be parsed or is not an RSA key.
    """
    try:
        key = serialization.load_pem_private_key(
            private_key_pem.encode("utf-8"), password=None
        )
    except (TypeError, ValueError, UnsupportedAlgorithm) as exc:
        raise SigningError("invalid private key PEM") from exc
    if not isinstance(key, rsa.RSAPrivateKey):
        raise SigningError("private key is not an RSA key")
    return key


def sign_request(
    activity: Dict[str, Any],
    *,
    key_id: str,
    private_key_pem: str,
    target_host: str,
    inbox_path: str,
    date: Optional[str] = None,
) -> SignedRequest:
    """
    Build the HTTP Signature for delivering ``activity`` to an inbox.

    Signing is deterministic for a fixed body and date: RSASSA-PKCS1-v1_5 has no
    random component, so the same key signs the same string to the same bytes.
    """
    body = serialize_activity(activity)
    digest = content_digest(body)
    date = date or http_date()
    private_key = load_private_key(private_key_pem)
    raw_signature = private_key.sign(
        signing_string(inbox_path, target_host, date, digest).encode("utf-8"),
        padding.PKCS1v15(),
        hashes.SHA256(),
    )
    signature_b64 = base64.b64encode(raw_signature).decode("ascii")
    header = (
        f'keyId="{key_id}",algorithm="{SIGNATURE_ALGORITHM}",'
        f'headers="{SIGNED_HEADERS}",signature="{signature_b64}"'
    )
    return SignedRequest(
        body=body, host=target_host, date=date, digest=digest, signature=header
    )


def generate_key_pair(key_size: int = 4096) -> Tuple[str, str]:
    """Generate an RSA key pair as ``(public SPKI PEM, private PKCS8 PEM)``."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return public_pem.decode("utf-8"), private_pem.decode("utf-8")


__all__ = [
    "SignedRequest",
    "SigningError",
    "content_digest",
    "generate_key_pair",
    "http_date",
    "load_private_key",
    "serialize_activity",
    "sign_request",
    "signing_string",
]
