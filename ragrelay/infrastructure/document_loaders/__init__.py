"""Corpus loader implementations."""
from .text_loader import MarkdownLoader, TextLoader
from .corpus_reader import CorpusReader

__all__ = ["MarkdownLoader", "TextLoader", "CorpusReader"]
