# apps/offline/__init__.py
