# apps/integrations/__init__.py
