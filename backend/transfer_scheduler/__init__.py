"""Scheduled-transfer execution service."""
