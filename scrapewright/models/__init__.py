"""Pydantic models for requests, rules, policies and results."""

from scrapewright.models.policy import RetryPolicy
from scrapewright.models.requests import ExtractionRule, NavigationStep, ScrapeRequest
from scrapewright.models.results import (
    FieldValue,
    NavigationOutcome,
    ScrapeMetadata,
    ScrapeResult,
    ScrapeState,
)

__all__ = [
    'ExtractionRule',
    'NavigationStep',
    'ScrapeRequest',
    'RetryPolicy',
    'FieldValue',
    'NavigationOutcome',
    'ScrapeMetadata',
    'ScrapeResult',
    'ScrapeState',
]
