# apps/__init__.py

"""
Corkboard - Django applications

- core: models, authentication and permissions
- board: Kanban REST API and WebSockets
- exports: board export and import
- offline: offline client kit (local store, sync engine, response cache)
"""

__version__ = '0.1.0'
