"""Suggestion schema, LLM client and providers."""
