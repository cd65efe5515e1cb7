"""Test prompt normalizer."""

from gengate.pipeline.normalizer import PromptNormalizer, normalize_prompt


class TestPromptNormalizer:
    """Test prompt normalization."""

    def test_should_casefold_and_collapse_whitespace(self):
        """Test case and whitespace differences vanish."""
        assert normalize_prompt("  A   Lighthouse\tat\nDusk ") == "a lighthouse at dusk"

    def test_should_return_empty_for_empty_text(self):
        """Test empty input."""
        assert normalize_prompt("") == ""
        assert normalize_prompt("   ") == ""

    def test_should_apply_nfkc(self):
        """Test compatibility characters are folded."""
        assert normalize_prompt("ＡBC") == "abc"

    def test_should_respect_disabled_steps(self):
        """Test steps can be disabled."""
        normalizer = PromptNormalizer(casefold=False, collapse_whitespace=False)
        assert normalizer.normalize(" A  B ") == "A  B"

    def test_should_normalize_nested_values(self):
        """Test mappings are trimmed and sorted and None is dropped."""
        normalizer = PromptNormalizer()
        result = normalizer.normalize_value(
            {" b ": "X", "a": [" Y ", 1], "c": None}
        )
        assert result == {"a": ["y", 1], "b": "x"}
        assert list(result) == ["a", "b"]
