"""Built-in plugins: the test-lines extractor and the JSON / CSV transformers."""

from pipestage.plugins.extractors.lines import TestLinesExtractor
from pipestage.plugins.transformers.csv import CsvTransformer
from pipestage.plugins.transformers.json import JsonTransformer

__all__ = [
    "TestLinesExtractor",
    "JsonTransformer",
    "CsvTransformer",
]
