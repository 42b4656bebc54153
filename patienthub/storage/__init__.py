"""
Local persistence: the query cache, the encrypted HDS store, its degraded
fallback and demo-session storage.
"""
