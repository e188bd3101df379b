# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""OSS region endpoints."""

from __future__ import annotations

from enum import Enum
from urllib.parse import quote


class Region(Enum):
    """OSS region, valued by its endpoint host."""

    HANGZHOU = "oss-cn-hangzhou.aliyuncs.com"

    @property
    def host(self) -> str:
        return self.value

    def url_for(self, object_key: str, bucket: str) -> str:
        """Public URL of ``object_key`` in ``bucket``.

        The key is percent-encoded for the URL path (``/`` is kept); the
        signed resource uses the raw key.

        Args:
            object_key: Object key (already normalized).
            bucket: Bucket name (already validated).

        Returns:
            ``https://<bucket>.<host>/<quoted object_key>``.
        """
        return f"https://{bucket}.{self.host}/{quote(object_key, safe='/')}"

    @classmethod
    def from_name(cls, name: str) -> Region:
        """Look up a region by member name or endpoint host.

        Args:
            name: ``hangzhou``, ``HANGZHOU`` or
                ``oss-cn-hangzhou.aliyuncs.com``.

        Raises:
            ValueError: If no region matches.
        """
        key = name.strip()
        for region in cls:
            if key.upper() == region.name or key.lower() == region.value:
                return region
        known = ", ".join(r.name.lower() for r in cls)
        raise ValueError(f"Unknown region {name!r} (known: {known})")
