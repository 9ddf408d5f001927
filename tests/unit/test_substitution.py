"""Unit tests for placeholder substitution in SQL templates."""

from __future__ import annotations

import pytest
from entities.shared.substitution import escape_literal, substitute_placeholders


class TestSubstitutePlaceholders:
    """Template filling."""

    def test_no_placeholders_unchanged(self) -> None:
        """Templates without tokens come back as-is, even with no values."""
        assert substitute_placeholders("SELECT 1 FROM film", []) == "SELECT 1 FROM film"

    def test_single_placeholder(self) -> None:
        """A token is replaced inside the template's own quotes."""
        sql = substitute_placeholders("SELECT * FROM film WHERE title = '%{{title}}%'", ["alien"])

        assert sql == "SELECT * FROM film WHERE title = 'alien'"

    def test_repeated_name_gets_same_value(self) -> None:
        """Every occurrence of a name gets one value."""
        sql = substitute_placeholders("%{{a}}% %{{b}}% %{{a}}%", ["x", "y"])

        assert sql == "x y x"

    def test_values_cycle(self) -> None:
        """Values are reused when names outnumber them."""
        assert substitute_placeholders("%{{a}}% %{{b}}% %{{c}}%", ["x", "y"]) == "x y x"

    def test_whitespace_inside_token(self) -> None:
        """Tokens may pad the name with spaces."""
        assert substitute_placeholders("%{{ name }}%", ["v"]) == "v"

    def test_missing_values_raise(self) -> None:
        """Placeholders with no values are an error."""
        with pytest.raises(ValueError):
            substitute_placeholders("%{{a}}%", [])

    def test_quotes_escaped(self) -> None:
        """Single quotes are doubled so the literal stays closed."""
        sql = substitute_placeholders("WHERE name = '%{{n}}%'", ["o'brien"])

        assert sql == "WHERE name = 'o''brien'"


def test_escape_literal_drops_backslashes() -> None:
    """Backslashes cannot escape the closing quote."""
    assert escape_literal("a\\'b") == "a''b"


class TestPositionalPlaceholders:
    """Bare ``?`` markers used by older rule sets."""

    def test_filled_and_quoted(self) -> None:
        """Each marker becomes a quoted literal."""
        sql = substitute_placeholders("SELECT * FROM customer WHERE state = ?", ["california"])

        assert sql == "SELECT * FROM customer WHERE state = 'california'"

    def test_values_rotate(self) -> None:
        """Markers take values in order, wrapping around."""
        sql = substitute_placeholders("WHERE a = ? AND b = ? AND c = ?", ["x", "y"])

        assert sql == "WHERE a = 'x' AND b = 'y' AND c = 'x'"

    def test_marker_inside_literal_ignored(self) -> None:
        """A question mark inside quotes is text, not a placeholder."""
        assert substitute_placeholders("SELECT 'why?' FROM film", []) == "SELECT 'why?' FROM film"

    def test_value_escaped(self) -> None:
        """Quotes in positional values are doubled."""
        assert substitute_placeholders("WHERE n = ?", ["o'brien"]) == "WHERE n = 'o''brien'"

    def test_missing_values_raise(self) -> None:
        """Markers with no values are an error."""
        with pytest.raises(ValueError):
            substitute_placeholders("WHERE n = ?", [])
