from .base import BaseWhere
from .firestore import FirestoreWhereCompiler, firestore_where

__all__ = (
    "BaseWhere",
    "FirestoreWhereCompiler",
    "firestore_where",
)
