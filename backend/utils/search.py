# utils/search.py
LIKE_ESCAPE = "\\"


# Substring pattern for ILIKE with the wildcards in user text taken literally
def contains_pattern(text: str) -> str:
    escaped = (
        text.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"
