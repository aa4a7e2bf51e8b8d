"""
Test data generators.

Object keys combine the configured prefix, a millisecond timestamp and a
random id, so concurrent runs against one bucket never collide.
"""
import json
import secrets
import string
import time
import uuid

CHARACTERS = string.ascii_letters + string.digits


def unique_id() -> str:
    return str(uuid.uuid4())


def random_string(length: int) -> str:
    return "".join(secrets.choice(CHARACTERS) for _ in range(length))


def unique_file_name(prefix: str, extension: str) -> str:
    """``<prefix><millis>-<8 hex>.<extension>``"""
    return f"{prefix}{int(time.time() * 1000)}-{unique_id()[:8]}.{extension}"


def unique_namespace(prefix: str, label: str) -> str:
    """A key prefix ending in ``/`` for tests that create nested objects."""
    return f"{prefix}{label}-{unique_id()[:8]}/"


def random_content(size_kb: int) -> str:
    """size_kb KiB of random text, followed by a unique trailer."""
    chunk = random_string(1024)
    trailer = f"\nGenerated at: {int(time.time() * 1000)}\nUnique ID: {unique_id()}"
    return chunk * size_kb + trailer


def json_content() -> str:
    document = {
        "id": unique_id(),
        "timestamp": int(time.time() * 1000),
        "data": {
            "message": "Test data for GCS CLI testing",
            "random": random_string(20),
            "size": "small",
        },
    }
    return json.dumps(document, indent=2)


def csv_content(rows: int) -> str:
    lines = ["id,name,value,timestamp"]
    for _ in range(rows):
        lines.append(
            f"{unique_id()[:8]},test-{random_string(5)},"
            f"{secrets.randbelow(1000)},{int(time.time() * 1000)}"
        )
    return "\n".join(lines) + "\n"


def html_content() -> str:
    page_id = unique_id()
    return (
        "<!DOCTYPE html>\n"
        "<html>\n"
        "<head>\n"
        f"    <title>Test File {page_id}</title>\n"
        "</head>\n"
        "<body>\n"
        "    <h1>GCS CLI Test File</h1>\n"
        "    <p>This is a test file generated for GCS CLI testing.</p>\n"
        f"    <p>ID: {page_id}</p>\n"
        f"    <p>Timestamp: {int(time.time() * 1000)}</p>\n"
        "</body>\n"
        "</html>"
    )


def binary_content(size_kb: int) -> bytes:
    return secrets.token_bytes(size_kb * 1024)
