"""Response rendering and report generation."""
from .llm import LLMReporter, parse_report
from .templates import TemplateReporter

__all__ = ["LLMReporter", "TemplateReporter", "parse_report"]
