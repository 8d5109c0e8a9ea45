"""Tests for front-matter variables and placeholder rendering."""

from ragrelay.core.placeholders import (
    declared_defaults,
    render_document,
    render_placeholders,
    split_front_matter,
)


class TestSplitFrontMatter:

    def test_no_front_matter(self):
        assert split_front_matter("# Title\n\nBody") == ({}, "# Title\n\nBody")

    def test_parses_block(self):
        data, body = split_front_matter("---\ntitle: Guide\n---\nBody text")
        assert data == {"title": "Guide"}
        assert body == "Body text"

    def test_unterminated_block_is_body(self):
        content = "---\ntitle: Guide\nBody"
        assert split_front_matter(content) == ({}, content)

    def test_non_mapping_is_body(self):
        content = "---\n- a\n- b\n---\nBody"
        assert split_front_matter(content) == ({}, content)


class TestDeclaredDefaults:

    def test_scalar_and_mapping_declarations(self):
        fm = {"variables": {"host": "db.local", "port": {"default": 5432}, "user": {"type": "string"}}}
        assert declared_defaults(fm) == {"host": "db.local", "port": 5432, "user": None}

    def test_missing_variables(self):
        assert declared_defaults({"title": "x"}) == {}


class TestRenderPlaceholders:

    def test_substitutes_declared(self):
        assert render_placeholders("Connect to {{host}}", {"host": "db"}) == "Connect to db"

    def test_leaves_undeclared(self):
        assert render_placeholders("{{other}} and {{host}}", {"host": "db"}) == "{{other}} and db"

    def test_declared_without_value_is_left(self):
        assert render_placeholders("{{user}}", {"user": None}) == "{{user}}"

    def test_escaped_placeholder_is_literal(self):
        content = r"Use \{{host}} in templates, here it is {{host}}."
        assert render_placeholders(content, {"host": "db"}) == "Use {{host}} in templates, here it is db."

    def test_multiple_escapes_keep_order(self):
        content = r"\{{a}} {{a}} \{{b}}"
        assert render_placeholders(content, {"a": 1, "b": 2}) == "{{a}} 1 {{b}}"


class TestRenderDocument:

    def test_variables_applied_and_removed(self):
        content = (
            "---\n"
            "title: Ops\n"
            "variables:\n"
            "  host: db.local\n"
            "---\n"
            "# Ops\n\nHost is {{host}}, write \\{{host}} in templates."
        )
        rendered = render_document(content)
        assert "variables" not in rendered
        assert "title: Ops" in rendered
        assert "Host is db.local, write {{host}} in templates." in rendered

    def test_only_variables_drops_front_matter(self):
        content = "---\nvariables:\n  name: World\n---\nHello {{name}}"
        assert render_document(content) == "Hello World"

    def test_without_variables_resolves_escapes_only(self):
        content = "---\ntitle: T\n---\n\\{{name}} {{name}}"
        assert render_document(content) == "---\ntitle: T\n---\n{{name}} {{name}}"
