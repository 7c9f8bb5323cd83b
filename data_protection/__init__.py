"""
Data Protection Package

Provides column-level encryption of text values before they are persisted,
with optional deterministic encryption for fields that must stay searchable
by equality.
"""

__version__ = '1.0.0'

# Model fields are not imported here so the package can be used without a
# configured Django project.
__all__ = [
    '__version__',
]
