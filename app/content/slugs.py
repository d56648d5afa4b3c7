import re
import unicodedata

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(value: str | None) -> str:
    """Lowercase, ASCII-folded, hyphen-separated form of ``value``."""
    if not value:
        return ""
    folded = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    folded = folded.replace("@", " at ")
    return _NON_ALNUM.sub("-", folded.lower()).strip("-")
