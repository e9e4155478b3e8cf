"""Game engines: the shared lifecycle base, the deck/hand evaluator and the three game types.

Kept free of FastAPI and Redis concerns so the registry, API routes, bots and tests can reuse them.
"""
