# apps/board/__init__.py

"""
Board - Kanban API of Corkboard

- REST endpoints for boards, columns, cards and card extras
- WebSockets for real-time updates
"""
