"""Line splitting and quote-aware field tokenizing for uploaded CSV text."""

from __future__ import annotations


def split_lines(text: str) -> list[str]:
    """Split on newlines, trim each line (dropping any ``\\r``) and skip blank lines."""
    return [line.strip() for line in text.split("\n") if line.strip()]


def tokenize_line(line: str) -> list[str]:
    """Split one CSV line into trimmed fields.

    A double quote toggles quoting, except that ``""`` inside a quoted field
    is a literal quote. Commas only separate fields outside quotes.

    Unbalanced quotes are not an error: a stray opening quote swallows the
    rest of the line into the current field.

    >>> tokenize_line('"a,b",c')
    ['a,b', 'c']
    >>> tokenize_line('"a""b",c')
    ['a"b', 'c']
    """
    fields: list[str] = []
    current: list[str] = []
    in_quotes = False
    i = 0
    while i < len(line):
        char = line[i]
        if char == '"':
            if in_quotes and i + 1 < len(line) and line[i + 1] == '"':
                current.append('"')
                i += 1
            else:
                in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(char)
        i += 1
    fields.append("".join(current).strip())
    return fields
