import re
import textwrap


def normalize_text(value: str) -> str:
    if value is None:
        return ""
    return re.sub(r"\s+", " ", str(value).strip()).lower()


def slugify(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", normalize_text(value)).strip("_")


def title_from_slug(value: str) -> str:
    """'purchasers_30d' -> 'Purchasers 30D'."""
    return " ".join(word.upper() if word[:1].isdigit() else word.capitalize() for word in value.split("_") if word)


def safe_truncate(text: str, limit: int) -> str:
    if not text:
        return ""
    if len(text) <= limit:
        return text
    return textwrap.shorten(text, width=limit, placeholder="...")
