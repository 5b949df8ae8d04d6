"""Domain Interfaces: contracts implemented by the infrastructure layer
(providers, caches, sanitizers).
"""
