"""Object key conventions for recorded audio."""

import re
from datetime import UTC, datetime

WALLET_ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")


def is_valid_wallet_address(address: str | None) -> bool:
    return bool(address) and WALLET_ADDRESS_PATTERN.match(address) is not None


def file_extension(filename: str | None, default: str = "wav") -> str:
    """Extension of ``filename`` without the dot, or ``default`` when it has none."""
    if not filename or "." not in filename:
        return default
    ext = filename.rsplit(".", 1)[1]
    return ext or default


def build_recording_key(
    wallet_address: str,
    sentence_id: str,
    extension: str = "wav",
    now: datetime | None = None,
) -> str:
    """Build ``{wallet}/{sentence}_{timestamp}.{ext}``.

    The timestamp is ISO-8601 in UTC with millisecond precision and a ``Z``
    suffix; ``:`` and ``.`` are replaced by ``-`` so the key stays path safe.
    """
    now = now or datetime.now(UTC)
    stamp = now.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    stamp = stamp.replace(":", "-").replace(".", "-")
    return f"{wallet_address}/{sentence_id}_{stamp}.{extension.lstrip('.')}"
