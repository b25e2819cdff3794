"""Persistence adapters."""

from cugino.repositories.user_repository import CredentialStore, SqlUserRepository

__all__ = ["CredentialStore", "SqlUserRepository"]
