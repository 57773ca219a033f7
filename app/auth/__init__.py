"""Authentication module."""

from app.auth.access_gate import API_KEY_HEADER, AccessGate, extract_credential

__all__ = ["API_KEY_HEADER", "AccessGate", "extract_credential"]
