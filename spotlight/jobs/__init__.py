"""Scheduled persona content generation."""
