"""Selector and pattern based field extraction."""

from scrapewright.core.extraction.extractor import CompiledRule, ExtractionPipeline

__all__ = ['CompiledRule', 'ExtractionPipeline']
