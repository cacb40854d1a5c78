"""Repository description models: the parsed discovery document and its services."""

from .models import RepositoryDescription, ServiceDescriptor

__all__ = [
    "RepositoryDescription",
    "ServiceDescriptor",
]
