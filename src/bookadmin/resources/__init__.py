"""Per-resource query functions and mutation builders.

Queries are coroutines taking the ResourceCache; mutation builders validate
their input and return a MutationRequest for ``ResourceCache.mutate``.
"""
