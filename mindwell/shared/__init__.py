"""Shared models, errors and utilities for Mindwell services."""
