from pathlib import Path

from ...core.placeholders import render_document


class TextLoader:

    EXTENSIONS = {".txt"}

    def supports(self, file_path: Path) -> bool:
        return file_path.suffix.lower() in self.EXTENSIONS

    def load(self, file_path: Path) -> str:
        return file_path.read_text(encoding="utf-8")


class MarkdownLoader(TextLoader):
    """Markdown with optional YAML front-matter.

    Declared ``variables`` are substituted into ``{{name}}`` placeholders
    and the ``variables`` block is removed; ``\\{{name}}`` stays literal.
    """

    EXTENSIONS = {".md", ".markdown"}

    def load(self, file_path: Path) -> str:
        return render_document(super().load(file_path))
