import re
from typing import Optional

_LINK_TARGET = re.compile(r"<([^>]*)>")


def parse_next_link(link_header: Optional[str]) -> Optional[str]:
    """
    Extract the rel="next" target from a Link header.

    <https://api.github.com/...&page=2>; rel="next", <...&page=9>; rel="last"
    """
    if not link_header:
        return None
    for part in link_header.split(","):
        if 'rel="next"' in part:
            match = _LINK_TARGET.search(part)
            if match:
                return match.group(1)
    return None
