"""LLM providers used for persona content generation."""
