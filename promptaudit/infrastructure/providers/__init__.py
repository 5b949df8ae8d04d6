"""Helper surface for ``AnalysisProvider`` implementations.

Concrete providers live outside this package and build on these modules:

- ``prompts``: the minimal and full system prompts and their fingerprint.
- ``base``: ``build_user_prompt`` for the request body and ``parse_response``
  for turning raw model output into an ``AnalysisResult``.
- ``minimal_results``: conversion of minimal-schema answers to full results.
"""
