"""Integrations with persistence, session storage, and mail."""
