"""
Relative-to-absolute URL resolution.

Used to rewrite href/src attributes of the slides and transcript, url()
references in slide style sheets, and the player and caption URLs written
into the page. Malformed input never raises: parts that cannot be found
are simply left out of the result.
"""

import re
from urllib.parse import SplitResult, urlsplit

# "/seg/../" where seg is not "." or ".."
_PARENT_SEGMENT = re.compile(r'/([^./][^/]*|\.[^./][^/]*|\.\.[^/]+)/\.\./')


def _split(url: str) -> SplitResult:
    try:
        return urlsplit(url)
    except ValueError:
        # e.g. an unbalanced "[" in the host; treat the whole thing as a path
        return SplitResult("", "", url, "", "")


def normalize_path(path: str) -> str:
    """Collapse "/./" and "/seg/../" until nothing changes."""
    while "/./" in path:
        path = path.replace("/./", "/")
    n = 1
    while n:
        path, n = _PARENT_SEGMENT.subn("/", path)
    return path


def resolve(relative: str, base: str) -> str:
    """Combine a (possibly) relative URL with a base URL."""
    if relative == "":
        return base
    if relative[0] in "#?":
        return re.sub(r'[?#].*', '', base, flags=re.S) + relative

    base_parts = _split(base)
    if relative.startswith("//"):
        return f"{base_parts.scheme}:{relative}" if base_parts.scheme else relative

    rel = _split(relative)
    if rel.scheme:
        return relative  # Already absolute

    if rel.path.startswith("/"):
        path = rel.path
    elif base_parts.netloc and not base_parts.path:
        path = "/" + rel.path
    else:
        path = base_parts.path[:base_parts.path.rfind("/") + 1] + rel.path
    path = normalize_path(path)

    url = ""
    if base_parts.scheme:
        url += base_parts.scheme + ":"
    if base_parts.netloc:
        url += "//" + base_parts.netloc
    url += path
    query = rel.query or base_parts.query
    if query:
        url += "?" + query
    fragment = rel.fragment or base_parts.fragment
    if fragment:
        url += "#" + fragment
    return url
