"""Tests for the OpenAI-compatible gateway."""
