"""Concrete notifier implementations."""
