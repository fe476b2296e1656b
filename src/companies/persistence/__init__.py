"""Append-only audit log of committed company actions."""
