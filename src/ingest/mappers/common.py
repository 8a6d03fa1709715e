from datetime import datetime
from typing import Any, Optional


def iso_to_unix(value: Optional[str]) -> int:
    """ISO-8601 timestamp -> unix seconds (0 when missing)."""
    if not value:
        return 0
    return int(datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp())


def none_if_blank(value: Any) -> Optional[Any]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return value


def spdx_id(license_obj: Any) -> Optional[str]:
    if isinstance(license_obj, dict):
        return none_if_blank(license_obj.get("spdx_id"))
    return None
