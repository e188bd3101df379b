# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""OSS header signing (HMAC-SHA1).

Builds the canonical string for an OSS request and signs it with the
access secret:

    VERB\\n
    Content-MD5\\n
    Content-Type\\n
    Date\\n
    x-oss-header:value\\n   (zero or more, sorted by lower-cased key)
    /bucket/object

The signature is the standard base64 encoding of
``HMAC-SHA1(secret, canonical_string)`` and travels in the
``Authorization: OSS <access_id>:<signature>`` header.

Everything here is pure and safe to call from any thread.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from email.utils import format_datetime


#: Scheme tag placed in front of ``<access_id>:<signature>``.
SIGNING_SCHEME = "OSS"


class SigningError(Exception):
    """The request signature could not be computed."""


@dataclass(frozen=True)
class SigningRequest:
    """Request metadata covered by the signature.

    Attributes:
        verb: HTTP method.  Upper-cased when canonicalized.
        content_md5: Base64 MD5 of the body, empty when there is no body.
        content_type: Content-Type header value, may be empty.
        date: Date header value in RFC 1123 format (GMT).
        resource: Canonical resource path (``/bucket/object``).
        headers: Extra signed headers as ``(key, value)`` pairs.
    """

    verb: str
    content_md5: str
    content_type: str
    date: str
    resource: str
    headers: tuple[tuple[str, str], ...] = field(default=())

    @classmethod
    def create(
        cls,
        verb: str,
        content_md5: str,
        content_type: str,
        date: str,
        resource: str,
        headers: Mapping[str, str] | Iterable[tuple[str, str]] | None = None,
    ) -> SigningRequest:
        """Build a request, accepting headers as a mapping or pairs."""
        if headers is None:
            pairs: tuple[tuple[str, str], ...] = ()
        elif isinstance(headers, Mapping):
            pairs = tuple(headers.items())
        else:
            pairs = tuple(headers)
        return cls(
            verb=verb,
            content_md5=content_md5,
            content_type=content_type,
            date=date,
            resource=resource,
            headers=pairs,
        )


def canonical_headers_string(headers: Iterable[tuple[str, str]]) -> str:
    """Build the signed-headers block of the canonical string.

    Args:
        headers: ``(key, value)`` pairs in any order.

    Returns:
        One ``key:value`` line per header (newline-terminated), keys
        lower-cased and sorted.  Empty string when there are no headers.

    Raises:
        ValueError: If two keys are equal after lower-casing.
    """
    lowered: dict[str, str] = {}
    for key, value in headers:
        name = key.lower()
        if name in lowered:
            raise ValueError(f"Duplicate signed header: {name!r}")
        lowered[name] = value

    return "".join(f"{name}:{lowered[name]}\n" for name in sorted(lowered))


def build_string_to_sign(request: SigningRequest) -> str:
    """Build the canonical string for a request.

    Args:
        request: Request metadata.

    Returns:
        Canonical string (no trailing newline).

    Raises:
        ValueError: If the verb is empty, the resource does not start
            with ``/``, or header keys collide.
    """
    if not request.verb:
        raise ValueError("Signing verb must not be empty")
    if not request.resource.startswith("/"):
        raise ValueError(
            f"Canonical resource must start with '/': {request.resource!r}"
        )

    return (
        f"{request.verb.upper()}\n"
        f"{request.content_md5}\n"
        f"{request.content_type}\n"
        f"{request.date}\n"
        f"{canonical_headers_string(request.headers)}"
        f"{request.resource}"
    )


def hmac_sha1_base64(secret_key: str, message: str) -> str:
    """Base64-encoded HMAC-SHA1 of ``message`` keyed with ``secret_key``.

    Raises:
        SigningError: If the key or message cannot be UTF-8 encoded.
    """
    try:
        key_bytes = secret_key.encode("utf-8")
        msg_bytes = message.encode("utf-8")
    except UnicodeEncodeError as e:
        raise SigningError(f"Cannot encode signing input: {e}") from e

    digest = hmac.new(key_bytes, msg_bytes, hashlib.sha1).digest()
    return base64.b64encode(digest).decode("ascii")


def compute_signature(request: SigningRequest, secret_key: str) -> str:
    """Sign a request.

    Args:
        request: Request metadata.
        secret_key: Access secret.

    Returns:
        Base64 signature.

    Raises:
        ValueError: If the request is malformed (caller error).
        SigningError: If the MAC cannot be computed.
    """
    return hmac_sha1_base64(secret_key, build_string_to_sign(request))


def build_authorization(access_id: str, signature: str) -> str:
    """Format the ``Authorization`` header value."""
    return f"{SIGNING_SCHEME} {access_id}:{signature}"


def content_md5(data: bytes) -> str:
    """Base64 MD5 digest of ``data`` for the ``Content-MD5`` header."""
    return base64.b64encode(hashlib.md5(data).digest()).decode("ascii")


def format_http_date(when: datetime | None = None) -> str:
    """Format a timestamp for the ``Date`` header.

    The service only accepts GMT, e.g. ``Mon, 19 Oct 2026 08:30:00 GMT``.
    Naive datetimes are taken to be UTC.

    Args:
        when: Timestamp to format.  Defaults to now.

    Returns:
        RFC 1123 date string.
    """
    if when is None:
        when = datetime.now(UTC)
    elif when.tzinfo is None:
        when = when.replace(tzinfo=UTC)
    else:
        when = when.astimezone(UTC)
    return format_datetime(when, usegmt=True)
