"""Relay of money movements as company economic events."""
