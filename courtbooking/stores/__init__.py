"""Backend collaborator abstractions and implementations."""

from .base import BlobStore, IdentityProvider, ResourceStore, StoreError

__all__ = ["BlobStore", "IdentityProvider", "ResourceStore", "StoreError"]
