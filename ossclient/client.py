# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""OSS upload client.

Uploads a single JPEG object with a signed PUT request:

1. Validate the content (non-empty JPEG).
2. Hash the body (base64 MD5) and take the current GMT date, once each.
3. Normalize the object key to end in ``.jpg``.
4. Sign ``PUT``/MD5/type/date/``/bucket/key`` with the access secret.
5. PUT the body with ``Content-Type``, ``Content-MD5``, ``Date`` and
   ``Authorization`` headers carrying exactly the signed values.
6. Map the response: 200 is success, anything else is a failure.

``upload()`` runs the exchange on the calling thread and returns an
``UploadResult``.  ``submit()`` runs it on the client's thread pool and
returns an ``UploadHandle`` with optional success/failure callbacks that
fire at most once and never after a successful ``cancel()``.

There are no retries.  Each call builds its own signing request and
HTTP client; the only shared state is the immutable credentials and
region.  An injected transport is shared by all uploads and is never
closed by the client.
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Callable
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, cast

import httpx

from ossclient.imaging import (
    JPEG_CONTENT_TYPE,
    InvalidImageError,
    encode_jpeg,
    normalize_object_key,
    validate_jpeg,
)
from ossclient.logging import SecretFilter
from ossclient.region import Region
from ossclient.signing import (
    SigningError,
    SigningRequest,
    build_authorization,
    compute_signature,
    content_md5,
    format_http_date,
)


if TYPE_CHECKING:
    from PIL import Image

    from ossclient.config import ClientConfig


logger = logging.getLogger(__name__)

#: Verb used for uploads.
_UPLOAD_VERB = "PUT"

#: Maximum response body length included in log messages.
_LOG_BODY_LIMIT = 200

#: OSS bucket naming rule: 3-63 lowercase letters, digits and hyphens,
#: starting and ending with a letter or digit.
_BUCKET_NAME_RE = re.compile(r"[a-z0-9][a-z0-9-]{1,61}[a-z0-9]")


class InvalidInputError(ValueError):
    """Bucket or object name is unusable."""


def validate_bucket_name(bucket: str) -> None:
    """Check ``bucket`` against the OSS naming rules.

    The bucket becomes part of the request host, so anything outside the
    naming rules is refused before signing.

    Raises:
        InvalidInputError: If the name is empty or malformed.
    """
    if not bucket:
        raise InvalidInputError("Bucket name is empty")
    if _BUCKET_NAME_RE.fullmatch(bucket) is None:
        raise InvalidInputError(
            f"Invalid bucket name {bucket!r}: use 3-63 lowercase letters, "
            "digits or hyphens, starting and ending with a letter or digit"
        )


class UploadErrorKind(Enum):
    """Why an upload failed."""

    INVALID_INPUT = "invalid-input"
    SIGNING_FAILURE = "signing-failure"
    UPLOAD_FAILURE = "upload-failure"


@dataclass(frozen=True)
class UploadResult:
    """Outcome of one upload.

    Attributes:
        url: Object URL on success.
        error: Failure kind, None on success.
        status_code: HTTP status for rejected uploads.  None on success
            and for failures that never got a response.
        detail: Response body or error message for diagnostics.
    """

    url: str | None = None
    error: UploadErrorKind | None = None
    status_code: int | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, url: str) -> UploadResult:
        return cls(url=url)

    @classmethod
    def failure(
        cls,
        error: UploadErrorKind,
        *,
        status_code: int | None = None,
        detail: str = "",
    ) -> UploadResult:
        return cls(error=error, status_code=status_code, detail=detail)

    def raise_for_error(self) -> str:
        """Return the URL, or raise ``UploadError`` for failures."""
        if self.error is not None:
            raise UploadError(self)
        return cast(str, self.url)


class UploadError(Exception):
    """Raised by ``UploadResult.raise_for_error`` for failed uploads."""

    def __init__(self, result: UploadResult) -> None:
        if result.error is None:
            raise ValueError("UploadError needs a failed result")
        self.result = result
        message = result.error.value
        if result.status_code is not None:
            message += f" (HTTP {result.status_code})"
        if result.detail:
            message += f": {result.detail}"
        super().__init__(message)


@dataclass(frozen=True)
class Credentials:
    """Access key pair.  The secret is kept out of ``repr``."""

    access_id: str
    access_secret: str = field(repr=False)


@dataclass(frozen=True)
class PreparedUpload:
    """A signed request ready to send.

    ``headers`` holds the same ``Content-MD5`` and ``Date`` strings that
    went into ``signing_request``.
    """

    url: str
    object_key: str
    body: bytes
    headers: dict[str, str]
    signing_request: SigningRequest


class _BorrowedTransport(httpx.BaseTransport):
    """Per-upload view of a transport owned by the caller.

    Closing the view stops it from issuing further requests without
    closing the shared transport underneath.
    """

    def __init__(self, transport: httpx.BaseTransport) -> None:
        self._transport = transport
        self._closed = threading.Event()

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        if self._closed.is_set():
            raise httpx.ConnectError("Upload cancelled", request=request)
        return self._transport.handle_request(request)

    def close(self) -> None:
        self._closed.set()


class UploadHandle:
    """Handle for an upload running on the client's thread pool.

    Callbacks run on the worker thread, at most once, and never after
    ``cancel()`` has returned True.
    """

    def __init__(
        self,
        on_success: Callable[[str], Any] | None = None,
        on_failure: Callable[[UploadResult], Any] | None = None,
    ) -> None:
        self._on_success = on_success
        self._on_failure = on_failure
        self._lock = threading.Lock()
        self._cancelled = False
        self._delivered = False
        self._http: httpx.Client | None = None
        self._future: Future[UploadResult] | None = None

    def cancel(self) -> bool:
        """Abort the upload.

        A queued upload never starts.  A running upload has its own HTTP
        client closed; with an injected transport the shared transport
        stays open and only this upload's result is dropped.

        Returns:
            True if the upload is now cancelled, False if its result
            was already delivered.
        """
        with self._lock:
            if self._cancelled:
                return True
            if self._delivered:
                return False
            self._cancelled = True
            http = self._http
            future = self._future

        if future is not None:
            future.cancel()
        if http is not None:
            http.close()
        logger.debug("Upload cancelled")
        return True

    def cancelled(self) -> bool:
        with self._lock:
            return self._cancelled

    def done(self) -> bool:
        if self.cancelled():
            return True
        return self._future is not None and self._future.done()

    def result(self, timeout: float | None = None) -> UploadResult:
        """Wait for the result.

        Raises:
            concurrent.futures.CancelledError: If the upload was cancelled.
            TimeoutError: If ``timeout`` elapses first.
            RuntimeError: If the handle was never submitted.
        """
        if self.cancelled():
            raise CancelledError()
        if self._future is None:
            raise RuntimeError("Upload was never submitted")
        result = self._future.result(timeout)
        if self.cancelled():
            raise CancelledError()
        return result

    def _attach(self, future: Future[UploadResult]) -> None:
        with self._lock:
            self._future = future

    def _bind_http(self, http: httpx.Client | None) -> bool:
        """Track the in-flight client; False if already cancelled."""
        with self._lock:
            if self._cancelled:
                return False
            self._http = http
            return True

    def _deliver(self, result: UploadResult) -> None:
        with self._lock:
            if self._cancelled or self._delivered:
                return
            self._delivered = True

        try:
            if result.ok:
                if self._on_success is not None:
                    self._on_success(cast(str, result.url))
            elif self._on_failure is not None:
                self._on_failure(result)
        except Exception:
            logger.exception("Upload callback raised")


class OSSClient:
    """Signed JPEG uploads to OSS.

    Args:
        access_id: Public access key ID.
        access_secret: Secret used to sign requests.
        region: Region endpoint.
        timeout: HTTP timeout in seconds.  None keeps the httpx default.
        transport: httpx transport override (tests use
            ``httpx.MockTransport``).
        max_workers: Thread pool size for ``submit()``.
    """

    def __init__(
        self,
        access_id: str,
        access_secret: str,
        region: Region = Region.HANGZHOU,
        *,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
        max_workers: int = 4,
    ) -> None:
        self._credentials = Credentials(access_id, access_secret)
        self._region = region
        self._timeout = timeout
        self._transport = transport
        self._max_workers = max_workers
        self._executor: ThreadPoolExecutor | None = None
        self._executor_lock = threading.Lock()
        SecretFilter.register_secret(access_secret)

    @classmethod
    def from_config(
        cls, config: ClientConfig, **kwargs: Any
    ) -> OSSClient:
        """Build a client from a loaded ``ClientConfig``."""
        return cls(
            config.access_id,
            config.access_secret,
            config.region,
            timeout=config.timeout,
            **kwargs,
        )

    @property
    def credentials(self) -> Credentials:
        return self._credentials

    @property
    def region(self) -> Region:
        return self._region

    # ------------------------------------------------------------------
    # Synchronous API
    # ------------------------------------------------------------------

    def prepare(
        self,
        content: bytes,
        name: str,
        bucket: str,
        *,
        now: datetime | None = None,
    ) -> PreparedUpload:
        """Validate, hash and sign an upload without sending it.

        Args:
            content: JPEG bytes.
            name: Object name; ``.jpg`` is appended if missing.
            bucket: Bucket name.
            now: Request time.  Defaults to the current time.

        Raises:
            InvalidInputError: If the bucket name is malformed or the
                object name is empty.
            InvalidImageError: If the content is empty or not a JPEG.
            SigningError: If the signature cannot be computed.
        """
        logger.debug("Validating upload %s/%s", bucket, name)
        validate_bucket_name(bucket)
        if not name:
            raise InvalidInputError("Object name is empty")
        validate_jpeg(content)

        logger.debug("Hashing %d bytes", len(content))
        md5 = content_md5(content)
        date = format_http_date(now)

        object_key = normalize_object_key(name)
        signing_request = SigningRequest.create(
            verb=_UPLOAD_VERB,
            content_md5=md5,
            content_type=JPEG_CONTENT_TYPE,
            date=date,
            resource=f"/{bucket}/{object_key}",
        )

        logger.debug("Signing %s", signing_request.resource)
        signature = compute_signature(
            signing_request, self._credentials.access_secret
        )

        return PreparedUpload(
            url=self._region.url_for(object_key, bucket),
            object_key=object_key,
            body=content,
            headers={
                "Content-Type": signing_request.content_type,
                "Content-MD5": signing_request.content_md5,
                "Date": signing_request.date,
                "Authorization": build_authorization(
                    self._credentials.access_id, signature
                ),
            },
            signing_request=signing_request,
        )

    def upload(self, content: bytes, name: str, bucket: str) -> UploadResult:
        """Upload JPEG bytes and wait for the response.

        Args:
            content: JPEG bytes.
            name: Object name; ``.jpg`` is appended if missing.
            bucket: Bucket name.

        Returns:
            Success with the object URL, or a failure.  Never raises;
            unexpected errors are logged and reported as upload failures.
        """
        return self._upload(content, name, bucket, None)

    def upload_image(
        self, image: Image.Image, name: str, bucket: str
    ) -> UploadResult:
        """Encode a Pillow image as JPEG and upload it."""
        return self._upload_image(image, name, bucket, None)

    # ------------------------------------------------------------------
    # Asynchronous API
    # ------------------------------------------------------------------

    def submit(
        self,
        content: bytes,
        name: str,
        bucket: str,
        *,
        on_success: Callable[[str], Any] | None = None,
        on_failure: Callable[[UploadResult], Any] | None = None,
    ) -> UploadHandle:
        """Upload JPEG bytes on the thread pool.

        Args:
            content: JPEG bytes.
            name: Object name.
            bucket: Bucket name.
            on_success: Called with the object URL.
            on_failure: Called with the failed ``UploadResult``.

        Returns:
            Handle to wait on or cancel the upload.
        """
        handle = UploadHandle(on_success, on_failure)
        self._start(handle, self._upload, content, name, bucket, handle)
        return handle

    def submit_image(
        self,
        image: Image.Image,
        name: str,
        bucket: str,
        *,
        on_success: Callable[[str], Any] | None = None,
        on_failure: Callable[[UploadResult], Any] | None = None,
    ) -> UploadHandle:
        """Encode and upload a Pillow image on the thread pool."""
        handle = UploadHandle(on_success, on_failure)
        self._start(handle, self._upload_image, image, name, bucket, handle)
        return handle

    def close(self) -> None:
        """Shut down the thread pool, waiting for running uploads."""
        with self._executor_lock:
            executor = self._executor
            self._executor = None
        if executor is not None:
            executor.shutdown(wait=True)

    def __enter__(self) -> OSSClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers,
                    thread_name_prefix="OSSUpload",
                )
            return self._executor

    def _start(
        self,
        handle: UploadHandle,
        fn: Callable[..., UploadResult],
        *args: Any,
    ) -> None:
        future = self._get_executor().submit(self._run, handle, fn, *args)
        handle._attach(future)

    def _run(
        self,
        handle: UploadHandle,
        fn: Callable[..., UploadResult],
        *args: Any,
    ) -> UploadResult:
        """Worker entry point: run the upload and deliver its result."""
        if handle.cancelled():
            raise CancelledError()
        try:
            result = fn(*args)
        except Exception as e:
            if handle.cancelled():
                raise CancelledError() from e
            raise
        if handle.cancelled():
            raise CancelledError()
        handle._deliver(result)
        return result

    def _upload_image(
        self,
        image: Image.Image,
        name: str,
        bucket: str,
        handle: UploadHandle | None,
    ) -> UploadResult:
        try:
            content = encode_jpeg(image)
        except InvalidImageError as e:
            logger.warning("Upload %s/%s rejected: %s", bucket, name, e)
            return UploadResult.failure(
                UploadErrorKind.INVALID_INPUT, detail=str(e)
            )
        except Exception as e:
            return self._unexpected_failure(bucket, name, e)
        return self._upload(content, name, bucket, handle)

    def _upload(
        self,
        content: bytes,
        name: str,
        bucket: str,
        handle: UploadHandle | None,
    ) -> UploadResult:
        try:
            prepared = self.prepare(content, name, bucket)
        except (InvalidInputError, InvalidImageError) as e:
            logger.warning("Upload %s/%s rejected: %s", bucket, name, e)
            return UploadResult.failure(
                UploadErrorKind.INVALID_INPUT, detail=str(e)
            )
        except SigningError as e:
            logger.error("Signing %s/%s failed: %s", bucket, name, e)
            return UploadResult.failure(
                UploadErrorKind.SIGNING_FAILURE, detail=str(e)
            )
        except Exception as e:
            return self._unexpected_failure(bucket, name, e)

        try:
            return self._send(prepared, handle)
        except CancelledError:
            raise
        except Exception as e:
            if handle is not None and handle.cancelled():
                raise CancelledError() from e
            return self._unexpected_failure(bucket, name, e)

    def _unexpected_failure(
        self, bucket: str, name: str, error: Exception
    ) -> UploadResult:
        logger.exception("Upload %s/%s failed unexpectedly", bucket, name)
        return UploadResult.failure(
            UploadErrorKind.UPLOAD_FAILURE, detail=str(error)
        )

    def _client_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {}
        if self._timeout is not None:
            kwargs["timeout"] = self._timeout
        if self._transport is not None:
            kwargs["transport"] = _BorrowedTransport(self._transport)
        return kwargs

    def _send(
        self, prepared: PreparedUpload, handle: UploadHandle | None
    ) -> UploadResult:
        """Issue the PUT and map the response."""
        logger.debug("PUT %s (%d bytes)", prepared.url, len(prepared.body))
        with httpx.Client(**self._client_kwargs()) as http:
            if handle is not None and not handle._bind_http(http):
                raise CancelledError()
            try:
                response = http.put(
                    prepared.url,
                    content=prepared.body,
                    headers=prepared.headers,
                )
            except httpx.TransportError as e:
                logger.warning("PUT %s failed: %s", prepared.url, e)
                return UploadResult.failure(
                    UploadErrorKind.UPLOAD_FAILURE, detail=str(e)
                )
            finally:
                if handle is not None:
                    handle._bind_http(None)

        if response.status_code == 200:
            logger.info("Uploaded %s", prepared.url)
            return UploadResult.success(prepared.url)

        body = response.text
        logger.warning(
            "PUT %s rejected with HTTP %d: %s",
            prepared.url,
            response.status_code,
            body[:_LOG_BODY_LIMIT],
        )
        return UploadResult.failure(
            UploadErrorKind.UPLOAD_FAILURE,
            status_code=response.status_code,
            detail=body,
        )
