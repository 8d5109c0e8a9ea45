"""Paragraph/sentence chunking for indexing."""

import re

DEFAULT_CHUNK_SIZE = 1000

_PARAGRAPH_RE = re.compile(r"\n\s*\n")
_SENTENCE_END = frozenset(".!?。\n")


def split_sentences(text: str) -> list[str]:
    """Split text after each sentence terminator, keeping the terminator."""
    sentences = []
    current: list[str] = []
    for ch in text:
        current.append(ch)
        if ch in _SENTENCE_END:
            sentence = "".join(current).strip()
            if sentence:
                sentences.append(sentence)
            current = []

    tail = "".join(current).strip()
    if tail:
        sentences.append(tail)
    return sentences


def chunk_text(text: str, max_size: int = DEFAULT_CHUNK_SIZE, overlap: int = 0) -> list[str]:
    """Split text into chunks of at most ``max_size`` characters.

    Paragraphs are packed together while they fit. A paragraph that is longer
    than ``max_size`` on its own is packed sentence by sentence instead; a
    single sentence longer than ``max_size`` becomes its own chunk.

    Args:
        text: Text to chunk.
        max_size: Maximum chunk length in characters.
        overlap: Accepted for configuration symmetry. Chunks never overlap.

    Returns:
        Chunks in source order.
    """
    if max_size <= 0:
        max_size = DEFAULT_CHUNK_SIZE

    chunks: list[str] = []
    current_chunk = ""

    for para in _PARAGRAPH_RE.split(text):
        para = para.strip()
        if not para:
            continue

        if len(current_chunk) + len(para) + 2 <= max_size:
            current_chunk = f"{current_chunk}\n\n{para}" if current_chunk else para
            continue

        if current_chunk:
            chunks.append(current_chunk)

        if len(para) <= max_size:
            current_chunk = para
            continue

        current_chunk = ""
        for sent in split_sentences(para):
            if len(current_chunk) + len(sent) + 1 <= max_size:
                current_chunk = f"{current_chunk} {sent}" if current_chunk else sent
            else:
                if current_chunk:
                    chunks.append(current_chunk)
                current_chunk = sent

    if current_chunk:
        chunks.append(current_chunk)

    return chunks
