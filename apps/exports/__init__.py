# apps/exports/__init__.py
