import threading
import time

from commerce_bot.chatbot.handler import DialogueRouter
from commerce_bot.core.errors import CollaboratorError

KNOWN_PHONE = "04141234567"
UNKNOWN_PHONE = "04249999999"


class FlakyGateway:
    """Delegates to a real gateway but fails the named calls."""

    def __init__(self, gateway, failing=(), error_id="deadbeef"):
        self.gateway = gateway
        self.failing = set(failing)
        self.error_id = error_id

    def __getattr__(self, name):
        if name in self.failing:
            def fail(*args, **kwargs):
                raise CollaboratorError(f"{name} timed out", error_id=self.error_id)
            return fail
        return getattr(self.gateway, name)


def make_router(db, gateway, **overrides):
    parts = {"catalog": gateway, "identity": gateway, "orders": gateway, "banks": gateway}
    parts.update(overrides)
    return DialogueRouter(db, **parts)


def slow_down(target, name, delay):
    """
    Make ``target.<name>`` sleep ``delay`` seconds before running.

    Returns an event that is set once the slowed call has finished, whatever
    its outcome.
    """
    original = getattr(target, name)
    finished = threading.Event()

    def slowed(*args, **kwargs):
        time.sleep(delay)
        try:
            return original(*args, **kwargs)
        finally:
            finished.set()

    setattr(target, name, slowed)
    return finished
