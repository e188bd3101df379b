# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Signed JPEG uploads to Aliyun OSS.

Example:
    from ossclient import OSSClient, Region

    with OSSClient("AKID", "SECRET", Region.HANGZHOU) as client:
        result = client.upload(jpeg_bytes, "photo", "my-bucket")
        if result.ok:
            print(result.url)
"""

from ossclient.client import (
    Credentials,
    InvalidInputError,
    OSSClient,
    PreparedUpload,
    UploadError,
    UploadErrorKind,
    UploadHandle,
    UploadResult,
)
from ossclient.config import ClientConfig, ConfigError
from ossclient.imaging import InvalidImageError
from ossclient.region import Region
from ossclient.signing import SigningError, SigningRequest, compute_signature


__all__ = [
    "ClientConfig",
    "ConfigError",
    "Credentials",
    "InvalidImageError",
    "InvalidInputError",
    "OSSClient",
    "PreparedUpload",
    "Region",
    "SigningError",
    "SigningRequest",
    "UploadError",
    "UploadErrorKind",
    "UploadHandle",
    "UploadResult",
    "compute_signature",
]
