# File: app/core/security.py
"""
Security utilities for the expense documentation service.

This module provides signed-URL token generation for object storage reads
and the API key comparison used by the request dependencies.
"""

import hmac
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from jose import jwt, JWTError

from app.core.exceptions import SignedUrlException

TOKEN_TYPE = "storage_read"


def create_storage_token(
    bucket: str,
    path: str,
    secret_key: str,
    expires_in: int,
    algorithm: str = "HS256",
) -> str:
    """
    Create a short-lived JWT granting read access to one stored object.

    Args:
        bucket: Bucket name
        path: Object path inside the bucket
        secret_key: Signing key
        expires_in: Lifetime in seconds
        algorithm: JWT signing algorithm

    Returns:
        str: Encoded token
    """
    expire = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
    to_encode = {"exp": expire, "bucket": bucket, "path": path, "type": TOKEN_TYPE}
    return jwt.encode(to_encode, secret_key, algorithm=algorithm)


def verify_storage_token(
    token: str,
    secret_key: str,
    bucket: Optional[str] = None,
    path: Optional[str] = None,
    algorithm: str = "HS256",
) -> Dict[str, str]:
    """
    Decode and check a storage token.

    Args:
        token: Encoded token
        secret_key: Signing key
        bucket: If given, the token must be for this bucket
        path: If given, the token must be for this path
        algorithm: JWT signing algorithm

    Returns:
        Dict with the token's bucket and path

    Raises:
        SignedUrlException: If the token is expired, tampered with or for another object
    """
    try:
        payload = jwt.decode(token, secret_key, algorithms=[algorithm])
    except JWTError as e:
        raise SignedUrlException(f"Invalid or expired signed URL: {e}")

    if payload.get("type") != TOKEN_TYPE:
        raise SignedUrlException("Signed URL token has the wrong type")
    if bucket is not None and payload.get("bucket") != bucket:
        raise SignedUrlException("Signed URL does not match the requested bucket")
    if path is not None and payload.get("path") != path:
        raise SignedUrlException("Signed URL does not match the requested path")

    return {"bucket": payload["bucket"], "path": payload["path"]}


def api_key_matches(provided: Optional[str], expected: Optional[str]) -> bool:
    """Constant-time API key comparison. An unset expected key accepts everything."""
    if not expected:
        return True
    if not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))
