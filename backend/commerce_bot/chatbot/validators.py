import re

from commerce_bot.core.constants import MOBILE_PREFIXES, PAYMENT_METHODS
from commerce_bot.core.errors import ValidationError
from commerce_bot.utils.text import fold_accents, only_digits

_MOBILE = re.compile(r"^0?(%s)\d{7}$" % "|".join(MOBILE_PREFIXES))
_IDENTIFICATION = re.compile(r"^([VEJP])?-?(\d{6,9})$")
_FULL_NAME = re.compile(r"^[a-zA-ZáéíóúÁÉÍÓÚñÑüÜ\s]+$")
_LIST_HINTS = (
    re.compile(r",.*,"),
    re.compile(r"\n.*\n"),
    re.compile(r";.*;"),
    re.compile(r"lista de"),
    re.compile(r"necesito.*,"),
    re.compile(r"quiero.*,"),
)
_LIST_SPLIT = re.compile(r"[,\n;]+")


def is_cancel(text):
    return "cancelar" in (text or "").lower()


def valid_payment_method(text):
    text = (text or "").strip()
    if not text.isdigit() or int(text) not in PAYMENT_METHODS:
        raise ValidationError("payment_method")
    return int(text)


def valid_bank_code(text):
    code = (text or "").strip()
    if not re.fullmatch(r"\d{4}", code):
        raise ValidationError("bank_code")
    return code


def valid_mobile_phone(text):
    """Venezuelan mobile number, returned with its leading 0 (``04141234567``)."""
    phone = re.sub(r"[\s\-\(\)\.]", "", text or "")
    if not _MOBILE.match(phone):
        raise ValidationError("payer_phone")
    return phone if phone.startswith("0") else "0" + phone


def valid_identification(text):
    """Cédula/RIF with 6 to 9 digits; the prefix defaults to ``V``."""
    raw = re.sub(r"[\s\.]", "", text or "").upper()
    match = _IDENTIFICATION.match(raw)
    if not match:
        raise ValidationError("payer_identification")
    return (match.group(1) or "V") + match.group(2)


def valid_reference(text):
    reference = (text or "").strip()
    if not re.fullmatch(r"\d{4}", reference):
        raise ValidationError("reference")
    return reference


def valid_full_name(text):
    name = re.sub(r"\s+", " ", (text or "").strip())
    if len(name.split(" ")) < 2 or not _FULL_NAME.match(name):
        raise ValidationError("full_name")
    return name


def looks_like_list(text):
    text = (text or "").lower()
    if any(pattern.search(text) for pattern in _LIST_HINTS):
        return True
    return len(re.split(r"[,\n;]", text)) > 2


def split_list_terms(text):
    terms = []
    for part in _LIST_SPLIT.split(text or ""):
        term = fold_accents(part).strip()
        term = re.sub(r"[^\w\s]", " ", term)
        term = re.sub(r"\s+", " ", term).strip()
        if len(term) > 2 and term not in terms:
            terms.append(term)
    return terms


def identification_digits(text):
    return only_digits(text)
