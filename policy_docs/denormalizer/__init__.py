"""
Denormalizer Service

This service flattens the normalized policy documents of a single hostname
into one read-optimized document.

Key responsibilities:
- Read hostname, hostname metadata and edge logic in one transaction
- Merge metadata and edge logic into a denormalized policy doc
- Overwrite the denormalized document at denormed/policydoc/{hostname}/policydoc
- React to policy doc change notifications delivered as Pub/Sub envelopes
"""

__version__ = "0.1.0"
