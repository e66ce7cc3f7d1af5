"""Extracts structured fields from rendered pages using selector and pattern rules."""

import re
from collections.abc import Sequence
from dataclasses import dataclass

import soupsieve
from bs4 import BeautifulSoup, Tag
from rich.console import Console

from scrapewright.exceptions import InvalidRule, MissingField
from scrapewright.models import ExtractionRule, FieldValue


@dataclass(frozen=True)
class CompiledRule:
    """An ExtractionRule with its selector or pattern already compiled."""

    rule: ExtractionRule
    selector: soupsieve.SoupSieve | None = None
    pattern: re.Pattern[str] | None = None


class ExtractionPipeline:
    """Turns rendered HTML into field values. Holds no per-page state.

    Given the same HTML and rules, ``extract`` always returns the same mapping,
    keyed in rule order.

    Attributes:
        console: Optional Rich console for per-field output

    """

    def __init__(self, console: Console | None = None):
        """Initialize the pipeline."""
        self.console = console

    def compile(self, rules: Sequence[ExtractionRule]) -> list[CompiledRule]:
        """Compile every rule, failing fast on malformed syntax.

        Args:
            rules: Rules in output order

        Returns:
            Compiled rules in the same order.

        Raises:
            InvalidRule: If a selector or pattern does not parse.

        """
        return [self._compile_rule(rule) for rule in rules]

    def _compile_rule(self, rule: ExtractionRule) -> CompiledRule:
        if rule.selector is not None:
            if not rule.selector.strip():
                raise InvalidRule(rule.field, 'empty selector')
            try:
                return CompiledRule(rule=rule, selector=soupsieve.compile(rule.selector))
            except soupsieve.SelectorSyntaxError as e:
                raise InvalidRule(rule.field, f'invalid_syntax: {e}') from e

        assert rule.pattern is not None
        try:
            return CompiledRule(rule=rule, pattern=re.compile(rule.pattern))
        except re.error as e:
            raise InvalidRule(rule.field, f'invalid_pattern: {e}') from e

    def extract(self, html: str, rules: Sequence[ExtractionRule] | Sequence[CompiledRule]) -> dict[str, FieldValue]:
        """Apply rules to HTML.

        Args:
            html: Rendered page content
            rules: Raw or precompiled rules

        Returns:
            Mapping of field name to a string, a list of strings, or None.

        Raises:
            InvalidRule: If a raw rule does not compile.
            MissingField: If a required single-value field matched nothing.

        """
        compiled = [r if isinstance(r, CompiledRule) else self._compile_rule(r) for r in rules]

        soup = BeautifulSoup(html, 'lxml')
        text: str | None = None
        extracted: dict[str, FieldValue] = {}

        if self.console:
            self.console.print(f'  ↻ Extracting {len(compiled)} fields...')

        for item in compiled:
            rule = item.rule
            if item.selector is not None:
                matches = self._select(soup, item)
            else:
                if rule.source == 'text':
                    if text is None:
                        text = soup.get_text(' ', strip=True)
                    haystack = text
                else:
                    haystack = html
                matches = self._search(haystack, item)

            extracted[rule.field] = self._resolve(rule, matches)

        return extracted

    def _select(self, soup: BeautifulSoup, item: CompiledRule) -> list[str]:
        assert item.selector is not None
        attribute = item.rule.attribute
        values = []
        for element in item.selector.select(soup):
            if attribute:
                value = self._attribute(element, attribute)
                if value is None:
                    continue
                values.append(value)
            else:
                values.append(element.get_text(' ', strip=True))
        return values

    @staticmethod
    def _attribute(element: Tag, attribute: str) -> str | None:
        value = element.get(attribute)
        if value is None:
            return None
        # BeautifulSoup returns lists for multi-valued attributes such as class
        return ' '.join(value) if isinstance(value, list) else str(value)

    @staticmethod
    def _search(haystack: str, item: CompiledRule) -> list[str]:
        assert item.pattern is not None
        group = 1 if item.pattern.groups else 0
        return [m.group(group) or '' for m in item.pattern.finditer(haystack)]

    def _resolve(self, rule: ExtractionRule, matches: list[str]) -> FieldValue:
        if rule.cardinality == 'many':
            if self.console:
                self.console.print(f'  ✓ {rule.field} ({rule.kind}): {len(matches)} match(es)')
            return matches

        if matches:
            if self.console:
                self.console.print(f'  ✓ {rule.field} ({rule.kind}): extracted')
            return matches[0]

        if rule.required:
            if self.console:
                self.console.print(f'  ✗ {rule.field} ({rule.kind}): required field not found')
            raise MissingField(rule.field)

        if self.console:
            self.console.print(f'  → {rule.field} ({rule.kind}): optional, absent')
        return None
