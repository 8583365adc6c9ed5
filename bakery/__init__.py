"""Bakery: Azure DevOps work item scraper with OpenSpec plan generation."""

__version__ = "0.1.4"
