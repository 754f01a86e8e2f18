"""
Services Layer

Roster engine operations that:
- Accept a RosterState (plus ids / names) and mutate it in memory
- Return structured results instead of raising on conflicts or bad lookups
- Do NOT depend on HTTP request/response objects
- Leave persistence to workspace_store
"""
