"""
Tests for column-level data protection.

This package contains unit tests for:
- Key and IV derivation
- IV mode resolution
- The protect/unprotect pipeline and its error kinds
- Configuration loading
- The explicit field registry and value converter
- Protected Django model fields
- Bulk helpers and the management command
"""
