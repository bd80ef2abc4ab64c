"""
Services Layer

Pool engine logic that:
- Accepts domain inputs (IDs, sessions, RNGs)
- Returns domain outputs (models, dataclasses, dicts)
- Does NOT depend on HTTP request/response objects
- Raises the exceptions in services.errors; routes translate them
"""
