"""Pure-function placeholder substitution for SQL templates.

Templates mark parameters with ``%{{name}}%``; the template decides the
quoting (e.g. ``WHERE name = '%{{name}}%'``). Older rule sets use bare
``?`` markers instead, which are filled by position and quoted here.
Values are inlined with single quotes doubled.
"""

from itertools import cycle

from models import PLACEHOLDER_RE, positional_slots


def escape_literal(value: str) -> str:
    """Double single quotes and drop backslashes so a value stays inside its quotes."""
    return value.replace("\\", "").replace("'", "''")


def _fill_positional(template: str, slots: list[int], values: list[str]) -> str:
    parts: list[str] = []
    last = 0
    for offset, value in zip(slots, cycle(values)):
        parts.append(template[last:offset])
        parts.append(f"'{escape_literal(value)}'")
        last = offset + 1
    parts.append(template[last:])
    return "".join(parts)


def substitute_placeholders(template: str, values: list[str]) -> str:
    """Replace every placeholder in *template* with one of *values*.

    Distinct placeholder names are assigned values in order of first
    appearance, cycling through *values* when there are more names than
    values. Every occurrence of a name gets the same value. Positional
    ``?`` markers outside quotes each take the next value in rotation
    and are wrapped in single quotes.

    Args:
        template: SQL template with ``%{{name}}%`` tokens or ``?`` markers.
        values: Literals to substitute; must be non-empty if the template
            has placeholders.

    Returns:
        The SQL text with no placeholders left.

    Raises:
        ValueError: If the template has placeholders and *values* is empty.
    """
    names: list[str] = []
    for name in PLACEHOLDER_RE.findall(template):
        if name not in names:
            names.append(name)
    slots = positional_slots(template)
    if not names and not slots:
        return template
    if not values:
        raise ValueError("Template has placeholders but no values were supplied")

    if slots:
        template = _fill_positional(template, slots, values)
    if not names:
        return template
    assigned = dict(zip(names, cycle(values)))
    return PLACEHOLDER_RE.sub(lambda m: escape_literal(assigned[m.group(1)]), template)
