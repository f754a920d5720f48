"""Prompt building, delivery and agent execution services."""
