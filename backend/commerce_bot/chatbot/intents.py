"""
Rule-based intent classification.

Input is a message already passed through ``normalize_message``. Every rule
that matches scores ``min(0.7 + 0.3 * min(len/10, 1), 1)``; the best score
wins and ties keep the earlier intent in ``RULES``.
"""
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from commerce_bot.core.constants import MENU_KEYWORDS, SEARCH_STOP_WORDS


class Intent(str, Enum):
    PRODUCT_SEARCH = "product_search"
    MENU_OPTION = "menu_option"
    CART_ACTION = "cart_action"
    IDENTIFICATION = "identification"
    GREETING = "greeting"
    HELP = "help"
    UNKNOWN = "unknown"


@dataclass
class IntentResult:
    type: Intent
    confidence: float
    entities: dict = field(default_factory=dict)


class IntentClassifier(Protocol):
    def classify(self, message: str) -> IntentResult: ...


# Declaration order is the tie-break order
RULES = (
    (Intent.PRODUCT_SEARCH, (
        re.compile(r"busco?|buscar|necesito|quiero(?!\s+(el\s+)?producto\s+\d)|dame|tienes?|hay|vendo?|vender"),
        re.compile(r"producto(?!\s+\d)|marca|presentacion|litro|kilo|gramo|paquete"),
    )),
    (Intent.MENU_OPTION, (
        re.compile(r"^[1-4]$|saldo|factura|pedido(?!\s)|historial"),
    )),
    (Intent.CART_ACTION, (
        re.compile(r"carrito|agregar|anadir|quitar|eliminar|comprar(?!\s)|finalizar|proceder"),
        re.compile(r"quiero\s+(el\s+)?producto\s+\d+|agregar\s+producto\s+\d+|producto\s+\d+\s+al\s+carrito"),
        re.compile(r"ver\s+carrito|mi\s+carrito|vaciar\s+carrito|limpiar\s+carrito"),
    )),
    (Intent.IDENTIFICATION, (
        re.compile(r"^[vejp]?[\s-]?\d{6,9}$"),
    )),
    (Intent.GREETING, (
        re.compile(r"hola|buenos?|buenas?|saludos|hey|hi"),
    )),
    (Intent.HELP, (
        re.compile(r"ayuda|help|como|que puedo|opciones|menu"),
    )),
)

_MENU_DIGIT = re.compile(r"[1-4]")
_PRODUCT_INDEX = re.compile(r"producto\s+(\d+)|(\d+)")
_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


def rule_confidence(message: str) -> float:
    length_factor = min(len(message) / 10, 1)
    return min(0.7 + length_factor * 0.3, 1.0)


def search_term(message: str) -> str:
    words = [
        word for word in message.split(" ")
        if len(word) > 2 and word not in SEARCH_STOP_WORDS
    ]
    return " ".join(words)


def menu_option(message: str) -> str | None:
    match = _MENU_DIGIT.search(message)
    if match:
        return match.group(0)
    for keyword, option in MENU_KEYWORDS.items():
        if keyword in message:
            return option
    return None


def product_index(message: str) -> int | None:
    match = _PRODUCT_INDEX.search(message)
    if not match:
        return None
    return int(match.group(1) or match.group(2))


class RuleBasedIntentClassifier:
    def __init__(self, rules=RULES):
        self.rules = rules

    def classify(self, message: str) -> IntentResult:
        best_type, best_confidence = Intent.UNKNOWN, 0.0

        for intent, patterns in self.rules:
            for pattern in patterns:
                if not pattern.search(message):
                    continue
                confidence = rule_confidence(message)
                if confidence > best_confidence:
                    best_type, best_confidence = intent, confidence

        return IntentResult(
            type=best_type,
            confidence=best_confidence,
            entities=self.extract_entities(message, best_type),
        )

    def extract_entities(self, message: str, intent: Intent) -> dict:
        if intent == Intent.PRODUCT_SEARCH:
            return {"search_term": search_term(message)}
        if intent == Intent.MENU_OPTION:
            return {"option": menu_option(message)}
        if intent == Intent.CART_ACTION:
            return {"action": message.lower(), "product_index": product_index(message)}
        if intent == Intent.IDENTIFICATION:
            return {"identification": _NON_ALNUM.sub("", message).upper()}
        return {}
