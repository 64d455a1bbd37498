"""Policy Docs Package.

This package contains the services that maintain read-optimized views of
hostname policy documents:
- denormalizer: Merges hostname metadata and edge logic into one document
"""

__version__ = "0.1.0"
