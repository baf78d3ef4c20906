"""
Chat story module.

Provides the game built on top of the chat engine:
- Dialog (script table, interpreter)
- Chat (contacts, histories, routing)
- Progression (countdown, safe phase)
- Session (service wiring)
"""
