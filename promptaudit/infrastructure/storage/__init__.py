"""Per-prompt result storage.

Content-addressed JSON records, one directory per analysis date.
Bounded Context: Incremental Analysis
"""
