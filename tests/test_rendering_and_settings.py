"""
Unit tests for segment rendering and presentation settings.
"""

import pytest

from mdx_presenter import (
    FONT_SIZE_MAX,
    FONT_SIZE_MIN,
    THEME_GRADIENTS,
    PresenterSettings,
    render_fallback,
    render_segment,
)


class TestRenderSegment:
    def test_raw_html_is_escaped(self):
        out = render_segment("<script>alert(1)</script>")
        assert "<script>" not in out
        assert "&lt;script&gt;" in out

    def test_table_is_rendered(self):
        out = render_segment("| a | b |\n|---|---|\n| 1 | 2 |")
        assert "<table>" in out
        assert "<td>1</td>" in out

    def test_code_fence_keeps_language_class(self):
        out = render_segment("```python\nx = 1\n```")
        assert '<code class="language-python">' in out

    def test_javascript_links_are_not_linked(self):
        out = render_segment("[click](javascript:alert(1))")
        assert 'href="javascript:' not in out

    def test_fallback_escapes_content(self):
        assert render_fallback('a < b & "c"') == '<pre class="segment-fallback">a &lt; b &amp; &quot;c&quot;</pre>'


class TestPresenterSettings:
    def test_defaults(self):
        settings = PresenterSettings()
        assert settings.to_dict() == {"theme": THEME_GRADIENTS[0], "fontSize": 36, "codeTheme": "normal"}

    def test_update_with_valid_values(self):
        updated = PresenterSettings().update({"theme": THEME_GRADIENTS[3], "fontSize": 42, "codeTheme": "dark"})
        assert updated.theme == THEME_GRADIENTS[3]
        assert updated.font_size == 42
        assert updated.code_theme == "dark"

    @pytest.mark.parametrize("size,expected", [(2, FONT_SIZE_MIN), (500, FONT_SIZE_MAX), ("48", 48), ("large", 58), (float("inf"), 36), (float("-inf"), 36)])
    def test_font_size_is_clamped_and_coerced(self, size, expected):
        assert PresenterSettings().update({"fontSize": size}).font_size == expected

    def test_junk_values_keep_previous(self):
        base = PresenterSettings(font_size=24, code_theme="light")
        updated = base.update({"theme": "url(evil)", "fontSize": "huge", "codeTheme": 7})
        assert updated == base

    def test_update_is_partial(self):
        base = PresenterSettings(font_size=50)
        assert base.update({"codeTheme": "dark"}).font_size == 50
