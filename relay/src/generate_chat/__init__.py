"""Stateless chat relay in front of the OpenRouter completion API."""
