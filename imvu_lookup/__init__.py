"""Lookup of IMVU users, avatars and profiles behind a small HTTP API."""
