"""Batch-level analysis cache.

Provides the file-backed implementation of the BatchResultCache interface,
with an in-memory L1 in front of JSON files on disk (L2).
Bounded Context: Cache Management
"""
