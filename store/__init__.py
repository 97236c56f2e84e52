"""
VCF DocStore Storage Module

Document store interface and its MongoDB implementation.
"""

from .document_store import DocumentStore, InsertDocument, UpdateDocument
from .mongo_store import MongoDocumentStore

__all__ = [
    'DocumentStore',
    'InsertDocument',
    'UpdateDocument',
    'MongoDocumentStore'
]
