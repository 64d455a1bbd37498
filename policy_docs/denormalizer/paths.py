"""
Document path builders.

Documents are addressed the way a hierarchical document store addresses them:
alternating collection and document segments joined by "/". A document path
always has an even number of segments, a collection path an odd number.

Layout:
    {collection}/{site_id}                      site document
    {collection}/{site_id}/{env}/{hostname}     normalized record
    denormed/policydoc/{hostname}/policydoc     denormalized record
"""

from __future__ import annotations

HOSTNAME_COLLECTION = "hostnames"
HOSTNAME_METADATA_COLLECTION = "hostnameMetadata"
EDGE_LOGIC_COLLECTION = "edgelogic"

NORMALIZED_COLLECTIONS = (
    HOSTNAME_COLLECTION,
    HOSTNAME_METADATA_COLLECTION,
    EDGE_LOGIC_COLLECTION,
)

DENORMALIZED_COLLECTION = "denormed/policydoc"
DENORMALIZED_DOC_ID = "policydoc"


class InvalidPathError(ValueError):
    """Raised when a path segment or document path is malformed."""
    pass


def _check_segment(name: str, value: str) -> str:
    if not isinstance(value, str) or not value:
        raise InvalidPathError(f"{name} must be a non-empty string")
    if "/" in value:
        raise InvalidPathError(f"{name} must not contain '/': {value!r}")
    if value in (".", ".."):
        raise InvalidPathError(f"{name} must not be '.' or '..'")
    return value


def site_doc_path(collection: str, site_id: str) -> str:
    """Return the path of the site document that parents a site's hostnames."""
    _check_segment("collection", collection)
    _check_segment("site_id", site_id)
    return f"{collection}/{site_id}"


def normalized_doc_path(collection: str, site_id: str, env: str, hostname: str) -> str:
    """
    Build the path of a normalized record.

    Args:
        collection: One of the normalized collections (hostnames,
                    hostnameMetadata, edgelogic)
        site_id: Site identifier
        env: Site environment (e.g. "dev", "live")
        hostname: Hostname the record belongs to

    Returns:
        Path of the form {collection}/{site_id}/{env}/{hostname}

    Raises:
        InvalidPathError: If any segment is empty or contains a separator

    Example:
        >>> normalized_doc_path("edgelogic", "s1", "dev", "a.com")
        'edgelogic/s1/dev/a.com'
    """
    _check_segment("env", env)
    _check_segment("hostname", hostname)
    return f"{site_doc_path(collection, site_id)}/{env}/{hostname}"


def denormalized_doc_path(hostname: str) -> str:
    """
    Build the output path of a denormalized policy doc.

    The path depends on the hostname only, so every run for the same hostname
    overwrites the same document.

    Example:
        >>> denormalized_doc_path("a.com")
        'denormed/policydoc/a.com/policydoc'
    """
    _check_segment("hostname", hostname)
    return f"{DENORMALIZED_COLLECTION}/{hostname}/{DENORMALIZED_DOC_ID}"


def assert_valid_doc_path(path: str) -> str:
    """
    Validate a document path and return it without a leading "/".

    Raises:
        InvalidPathError: If the path is empty, has empty segments or an odd
                          number of segments (i.e. names a collection)
    """
    if not isinstance(path, str):
        raise InvalidPathError("path must be a string")

    path = path.lstrip("/")
    segments = path.split("/")
    if not path or any(not segment for segment in segments):
        raise InvalidPathError(f"path has empty segments: {path!r}")
    if len(segments) % 2 != 0:
        raise InvalidPathError(f"path should have an even number of components: {path}")
    return path


__all__ = [
    "DENORMALIZED_COLLECTION",
    "EDGE_LOGIC_COLLECTION",
    "HOSTNAME_COLLECTION",
    "HOSTNAME_METADATA_COLLECTION",
    "InvalidPathError",
    "NORMALIZED_COLLECTIONS",
    "assert_valid_doc_path",
    "denormalized_doc_path",
    "normalized_doc_path",
    "site_doc_path",
]
