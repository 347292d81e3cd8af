import re
import secrets
import time

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]+")

MAX_STEM_LENGTH = 64


def sanitize_stem(filename: str) -> str:
    """Reduce a filename's stem to [A-Za-z0-9_-], lower-cased.

    Directory components are dropped, so "../../etc/passwd" cannot
    escape the upload directory.
    """
    name = filename.replace("\\", "/").rsplit("/", 1)[-1]
    stem = name.rsplit(".", 1)[0] if "." in name else name
    stem = _UNSAFE_CHARS.sub("-", stem).strip("-_").lower()
    return stem[:MAX_STEM_LENGTH] or "image"


def unique_filename(filename: str, default_ext: str = "jpg") -> str:
    """Return a collision-resistant name: <stem>-<ms timestamp>-<token>.<ext>.

    Example: "Red Shoe.PNG" -> "red-shoe-1718000000000-3f9a1c2b.png"
    """
    name = filename.replace("\\", "/").rsplit("/", 1)[-1]
    ext = name.rsplit(".", 1)[1].lower() if "." in name else ""
    ext = _UNSAFE_CHARS.sub("", ext) or default_ext
    timestamp = int(time.time() * 1000)
    return f"{sanitize_stem(filename)}-{timestamp}-{secrets.token_hex(4)}.{ext}"
