# src/services/slugify.py
import re
import unicodedata


def slugify(text: str, fallback: str = "recipe") -> str:
    """Lowercase, accent-free, hyphen-separated form of `text`."""
    # strip accents
    t = unicodedata.normalize("NFKD", text or "").encode("ascii", "ignore").decode("ascii")
    # everything that is not a letter/digit becomes "-"
    t = re.sub(r"[^a-zA-Z0-9]+", "-", t).strip("-").lower()
    return t or fallback
