"""
Parsers for gcloud storage text output.

gcloud gives no stable structured format for ``ls`` and ``sign-url`` output,
so every string heuristic lives here, behind small functions with one
well-defined failure each.

Known ``ls -r`` shape::

    gs://bucket/prefix/:
    gs://bucket/prefix/a.txt

    gs://bucket/prefix/dir/:
    gs://bucket/prefix/dir/b.txt

Known ``sign-url`` shape::

    ---
    expiration: '2024-01-01 01:00:00'
    http_verb: GET
    resource: gs://bucket/a.txt
    signed_url: https://storage.googleapis.com/bucket/a.txt?x-goog-signature=...
"""
import json
from typing import Any, Dict, List

from gcseval.exceptions import ParseFailure

GS_SCHEME = "gs://"

# stderr phrases meaning "nothing matched", which is an empty listing, not an error
NO_MATCH_MARKERS = (
    "No URLs matched",
    "One or more URLs matched no objects",
    "matched no objects",
)

# sign-url line prefixes, in priority order
SIGNED_URL_PREFIXES = ("signed_url:", "url:")

# Query markers present in V2 and V4 signed URLs
EXPIRY_MARKERS = ("Expires=", "x-goog-expires", "X-Goog-Expires")
SIGNATURE_MARKERS = ("Signature=", "x-goog-signature", "X-Goog-Signature")


def is_remote(path: str) -> bool:
    return path.startswith(GS_SCHEME)


def parse_listing(stdout: str) -> List[str]:
    """
    Extract object paths from ``gcloud storage ls`` output.

    Keeps lines starting with ``gs://`` and drops directory headers (lines
    ending with ``:``). Order is preserved; duplicates are kept.
    """
    paths = []
    for line in stdout.splitlines():
        line = line.strip()
        if line.startswith(GS_SCHEME) and not line.endswith(":"):
            paths.append(line)
    return paths


def is_no_match_error(stderr: str) -> bool:
    """True when stderr says the path or prefix simply matched nothing."""
    return any(marker in stderr for marker in NO_MATCH_MARKERS)


def parse_signed_url(stdout: str) -> str:
    """
    Extract the signed URL from ``gcloud storage sign-url`` output.

    Looks for a ``signed_url:`` line first, then a ``url:`` line, then a bare
    ``http(s)://`` line.

    Raises:
        ParseFailure: If no line matches any known shape
    """
    lines = [line.strip() for line in stdout.splitlines()]

    for prefix in SIGNED_URL_PREFIXES:
        for line in lines:
            if line.startswith(prefix):
                value = line[len(prefix):].strip().strip("'\"")
                if value:
                    return value

    for line in lines:
        if line.startswith("http://") or line.startswith("https://"):
            return line

    raise ParseFailure("Could not parse signed URL from output", stdout)


def parse_auth_accounts(stdout: str) -> List[Dict[str, Any]]:
    """
    Parse ``gcloud auth list --format=json``.

    Raises:
        ParseFailure: If the output is not a JSON array
    """
    try:
        accounts = json.loads(stdout)
    except (TypeError, ValueError) as e:
        raise ParseFailure(f"Invalid auth list JSON ({e})", stdout) from e
    if not isinstance(accounts, list):
        raise ParseFailure("Expected a JSON array from auth list", stdout)
    return accounts


def parse_json_document(stdout: str) -> Any:
    """
    Parse ``--format=json`` / ``--json`` output of describe and ls.

    Raises:
        ParseFailure: If the output is not valid JSON
    """
    try:
        return json.loads(stdout)
    except (TypeError, ValueError) as e:
        raise ParseFailure(f"Invalid JSON output ({e})", stdout) from e


def has_expiry_marker(url: str) -> bool:
    return any(marker in url for marker in EXPIRY_MARKERS)


def has_signature_marker(url: str) -> bool:
    return any(marker in url for marker in SIGNATURE_MARKERS)


def looks_like_signed_url(url: str) -> bool:
    """Superficial format check; the URL is never re-derived."""
    return (
        url.startswith("http")
        and has_expiry_marker(url)
        and has_signature_marker(url)
        and " " not in url
    )
