"""Local relational store."""

from .sql_store import LocalStore, SqlLocalStore, StoreCriteria

__all__ = ["LocalStore", "SqlLocalStore", "StoreCriteria"]
