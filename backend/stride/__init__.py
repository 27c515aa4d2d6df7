"""Stride session tracking and two-factor authentication backend."""
