# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Logging setup that keeps access secrets out of log output.

Clients and configs register their access secret with ``SecretFilter``
as soon as they are created.  Entry points call ``configure_logging()``,
which installs a handler carrying the filter; library modules just use
``logging.getLogger(__name__)``.
"""

import logging
import re
from collections.abc import Mapping
from typing import Any, ClassVar


_REDACTED = "[REDACTED]"

_DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class SecretFilter(logging.Filter):
    """Replace registered access secrets with ``[REDACTED]``.

    Secrets are process-wide, so every handler carrying a ``SecretFilter``
    hides every secret registered so far.
    """

    _secrets: ClassVar[set[str]] = set()
    _pattern: ClassVar[re.Pattern[str] | None] = None

    @classmethod
    def register_secret(cls, secret: str) -> None:
        """Hide ``secret`` from now on.  Empty strings are ignored."""
        if not secret or secret in cls._secrets:
            return
        cls._secrets.add(secret)
        # Longest first so a secret containing another is replaced whole.
        ordered = sorted(cls._secrets, key=len, reverse=True)
        cls._pattern = re.compile("|".join(map(re.escape, ordered)))

    @classmethod
    def clear_secrets(cls) -> None:
        """Forget all registered secrets (tests)."""
        cls._secrets.clear()
        cls._pattern = None

    @classmethod
    def redact(cls, text: str) -> str:
        """Return ``text`` with every registered secret replaced."""
        if cls._pattern is None:
            return text
        return cls._pattern.sub(_REDACTED, text)

    def _redact_arg(self, arg: Any) -> Any:
        return self.redact(arg) if isinstance(arg, str) else arg

    def filter(self, record: logging.LogRecord) -> bool:
        if self._pattern is None:
            return True
        record.msg = self.redact(str(record.msg))
        if isinstance(record.args, Mapping):
            record.args = {
                k: self._redact_arg(v) for k, v in record.args.items()
            }
        elif record.args:
            record.args = tuple(self._redact_arg(a) for a in record.args)
        return True


def configure_logging(
    level: int = logging.INFO,
    *,
    fmt: str = _DEFAULT_FORMAT,
    redact: bool = True,
) -> None:
    """Send log records to stderr through a single root handler.

    Args:
        level: Root logger level.
        fmt: ``logging.Formatter`` format string.
        redact: Attach ``SecretFilter`` to the handler.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(fmt))
    if redact:
        handler.addFilter(SecretFilter())

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)
