# apps/core/__init__.py

"""
Core - main application of Corkboard

Holds:
- Models (User, Board, Column, Card and the card extras)
- Board role permissions
- Authentication service and API
- Seed command for development
"""
