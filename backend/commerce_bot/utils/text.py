import re
import unicodedata

_NON_WORD = re.compile(r"[^\w\s]")
_SPACES = re.compile(r"\s+")
_SENDER_NOISE = re.compile(r"@s\.whatsapp\.net|@c\.us|[\s\-\(\)\+]")


def fold_accents(text: str) -> str:
    """Lower-case and drop combining marks (``Azúcar`` -> ``azucar``)."""
    if text is None:
        return None
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).lower()


def normalize_message(text: str) -> str:
    folded = fold_accents(text or "")
    folded = _NON_WORD.sub(" ", folded)
    return _SPACES.sub(" ", folded).strip()


def normalize_sender(sender: str) -> str:
    """
    Turn a transport identifier into the session key.

    ``584141234567@s.whatsapp.net`` -> ``04141234567``
    """
    clean = _SENDER_NOISE.sub("", sender or "")
    if clean.startswith("58") and len(clean) > 10:
        return "0" + clean[2:]
    return clean


def only_digits(text: str) -> str:
    return re.sub(r"\D", "", text or "")


def escape_like(text: str, escape: str = "/") -> str:
    """Escape ``%`` and ``_`` so user text matches literally inside ``LIKE``."""
    return (
        text.replace(escape, escape * 2)
        .replace("%", escape + "%")
        .replace("_", escape + "_")
    )
