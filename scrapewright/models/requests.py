"""Pydantic models for scrape requests and extraction rules."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class NavigationStep(BaseModel):
    """A single page interaction executed after the initial load.

    Attributes:
        action: What to do ('click', 'wait_for', 'scroll', 'fill', 'pause')
        selector: CSS selector, or XPath when prefixed with 'xpath=' or '//'
        value: Text typed into the element for 'fill'
        timeout: Per-step timeout in seconds (falls back to the engine default)
        duration: Seconds to wait for 'pause', pixels to scroll for 'scroll' without a selector

    """

    model_config = ConfigDict(frozen=True)

    action: Literal['click', 'wait_for', 'scroll', 'fill', 'pause'] = Field(description='Interaction kind')
    selector: str | None = Field(default=None, description='Target element')
    value: str | None = Field(default=None, description='Text for fill')
    timeout: float | None = Field(default=None, gt=0, description='Step timeout in seconds')
    duration: float | None = Field(default=None, ge=0, description='Pause seconds or scroll pixels')

    @model_validator(mode='after')
    def check_arguments(self) -> 'NavigationStep':
        if self.action in ('click', 'wait_for', 'fill') and not self.selector:
            raise ValueError(f"'{self.action}' step requires a selector")
        if self.action == 'fill' and self.value is None:
            raise ValueError("'fill' step requires a value")
        if self.action == 'pause' and self.duration is None:
            raise ValueError("'pause' step requires a duration")
        return self


class ExtractionRule(BaseModel):
    """How to pull one output field out of a rendered page.

    Attributes:
        field: Output key
        selector: CSS selector applied to the parsed document
        pattern: Regular expression applied to the page text or HTML
        source: What a pattern rule runs against ('text' or 'html')
        attribute: Read this attribute instead of the element text (selector rules)
        cardinality: 'single' for the first match, 'many' for all matches
        required: Whether a single-value field with no match is an error

    """

    model_config = ConfigDict(frozen=True)

    field: str = Field(min_length=1, description='Output field name')
    selector: str | None = Field(default=None, description='CSS selector')
    pattern: str | None = Field(default=None, description='Regular expression')
    source: Literal['text', 'html'] = Field(default='text', description='Pattern input')
    attribute: str | None = Field(default=None, description='Attribute to read')
    cardinality: Literal['single', 'many'] = Field(default='single', description='One value or all values')
    required: bool = Field(default=True, description='Missing single value is an error')

    @model_validator(mode='after')
    def check_strategy(self) -> 'ExtractionRule':
        if (self.selector is None) == (self.pattern is None):
            raise ValueError(f"rule '{self.field}' needs exactly one of selector or pattern")
        if self.attribute and self.pattern is not None:
            raise ValueError(f"rule '{self.field}': attribute only applies to selector rules")
        return self

    @property
    def kind(self) -> str:
        """Return 'selector' or 'pattern'."""
        return 'selector' if self.selector is not None else 'pattern'


class ScrapeRequest(BaseModel):
    """A single scrape job. Immutable once built.

    Attributes:
        url: Page to load
        rules: Ordered extraction rules
        timeout: Wall-clock budget in seconds for the whole request
        steps: Interactions executed after the page loads
        wait_for: Element that must be present before the page counts as stable

    """

    model_config = ConfigDict(frozen=True)

    url: str = Field(description='Target URL')
    rules: tuple[ExtractionRule, ...] = Field(min_length=1, description='Extraction rules')
    timeout: float | None = Field(default=None, gt=0, description='Request timeout in seconds')
    steps: tuple[NavigationStep, ...] = Field(default=(), description='Navigation steps')
    wait_for: str | None = Field(default=None, description='Stability element')

    @field_validator('url')
    @classmethod
    def check_url(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith(('http://', 'https://')):
            raise ValueError('url must start with http:// or https://')
        return value

    @field_validator('rules')
    @classmethod
    def check_unique_fields(cls, rules: tuple[ExtractionRule, ...]) -> tuple[ExtractionRule, ...]:
        seen: set[str] = set()
        for rule in rules:
            if rule.field in seen:
                raise ValueError(f"duplicate field '{rule.field}'")
            seen.add(rule.field)
        return rules
