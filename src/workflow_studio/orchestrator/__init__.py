"""Orchestrator components.

- Settings loaded from .env
- Structured logging
- Assistant CLI process orchestration (``generation``)
- Multi-root workflow persistence (``storage``)
"""
