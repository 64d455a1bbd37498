"""
Policy Doc Denormalization Logic

This module merges the normalized records of one hostname into a single
denormalized policy doc and writes it to the document store.

Key Responsibilities:
- Read hostname, hostname metadata and edge logic from one snapshot
- Flatten metadata and edge logic into a Denormalized record
- Overwrite the record at a path derived from the hostname only
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from .document_store import NormalizedDocumentStore
from .models import Denormalized, DeserializationError, EdgeLogic, HostnameMetadata
from .paths import (
    HOSTNAME_METADATA_COLLECTION,
    InvalidPathError,
    denormalized_doc_path,
    normalized_doc_path,
)


def _earliest(*values: Optional[datetime]) -> Optional[datetime]:
    present = [value for value in values if value is not None]
    return min(present) if present else None


def _latest(*values: Optional[datetime]) -> Optional[datetime]:
    present = [value for value in values if value is not None]
    return max(present) if present else None


def populate_denormalized_document(hm: HostnameMetadata, el: EdgeLogic) -> Denormalized:
    """
    Merge hostname metadata and edge logic into a denormalized policy doc.

    The result depends on the two inputs only: `created` is the earliest and
    `updated` the latest timestamp of the inputs. Edge logic `cache_control`
    is not part of the denormalized doc.

    Args:
        hm: Hostname metadata record
        el: Edge logic record of the same site/env/hostname

    Returns:
        Denormalized record

    Example:
        >>> hm = HostnameMetadata(hostname="a.com", zone="z1", site_id="s1", site_env="dev")
        >>> el = EdgeLogic(redirect_to="b.com", enforce_https="true", backend="be1")
        >>> populate_denormalized_document(hm, el).redirect_to
        'b.com'
    """
    return Denormalized(
        hostname=hm.hostname,
        zone=hm.zone,
        redirect_to=el.redirect_to,
        enforce_https=el.enforce_https,
        backend=el.backend,
        build_id=el.build_id,
        jurisdiction=el.jurisdiction,
        site_id=hm.site_id,
        site_env=hm.site_env,
        created=_earliest(hm.created, el.created),
        updated=_latest(hm.updated, el.updated),
    )


class Denormalizer:
    """
    Loads the normalized policy docs of a hostname, denormalizes them and
    writes the result back to the document store.
    """

    def __init__(self, store: NormalizedDocumentStore, logger: Optional[logging.Logger] = None):
        self.store = store
        self.logger = logger or logging.getLogger(__name__)

    def denormalize(self, site_id: str, env: str, hostname: str) -> tuple[str, Denormalized]:
        """
        Denormalize the policy docs of one hostname.

        Reads happen in one transaction, the write in a second one. Nothing
        is written when the read fails.

        Args:
            site_id: Site identifier
            env: Site environment
            hostname: Hostname whose policy docs changed

        Returns:
            Tuple of (written path, denormalized record)

        Raises:
            NotFoundError: If a normalized record is missing
            DeserializationError: If a normalized record is malformed
            TransientStoreError: If the store is unreachable while reading
            WriteFailureError: If the denormalized doc could not be written
        """
        context = {'site_id': site_id, 'env': env, 'hostname': hostname}

        docs = self.store.read_normalized_docs(site_id, env, hostname)
        denormed = populate_denormalized_document(docs.metadata, docs.edge_logic)

        try:
            output_path = denormalized_doc_path(denormed.hostname)
        except InvalidPathError as e:
            raise DeserializationError(
                f"hostname metadata carries an unusable hostname: {e}",
                path=normalized_doc_path(HOSTNAME_METADATA_COLLECTION, site_id, env, hostname),
            ) from e

        path = self.store.write_denormalized_doc(output_path, denormed)

        self.logger.info(
            "Policy doc denormalized",
            extra={**context, 'path': path, 'verified': docs.hostname.verified},
        )
        return path, denormed


__all__ = ["Denormalizer", "populate_denormalized_document"]
