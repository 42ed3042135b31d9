"""Persona management."""
