NULL_LITERAL = "NULL"

_QUOTES = ("'", '"')


def normalize_value(raw: str | None) -> str | None:
    """Strip SQL quoting and escaping from one field substring.

    - ``None`` or the unquoted literal ``NULL`` becomes None.
    - One matching pair of outer single or double quotes is removed.
    - ``\\'``, ``\\"`` and ``\\\\`` are unescaped, in that order.

    Numbers and dates stay text; typing happens in the coercion table.
    """
    if raw is None or raw == NULL_LITERAL:
        return None

    value = raw
    if len(value) >= 2 and value[0] in _QUOTES and value[-1] == value[0]:
        value = value[1:-1]

    return value.replace("\\'", "'").replace('\\"', '"').replace("\\\\", "\\")
