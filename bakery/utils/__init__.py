"""Shared helpers for content normalisation and date handling."""
