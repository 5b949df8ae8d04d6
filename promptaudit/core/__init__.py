"""Core Application Layer: batching, fault-tolerant execution, merging
and the analysis pipeline itself.

Connects the domain layer with the infrastructure layer through interfaces.
"""
