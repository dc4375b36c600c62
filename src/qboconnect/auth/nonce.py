"""Signed, time-limited nonces for the OAuth ``state`` parameter.

A nonce is an HMAC-SHA256 of the current *tick* and an action name. A tick
is half of the nonce lifetime, and a nonce is accepted for the tick it was
issued in and the one after, so its effective lifetime is between
``lifetime / 2`` and ``lifetime`` seconds. No server-side state is kept:
anyone holding the secret can verify a nonce, nobody else can mint one.
"""

from __future__ import annotations

import hashlib
import hmac
import math
import time
from typing import Callable
from urllib.parse import parse_qs, urlencode

DAY_IN_SECONDS = 24 * 60 * 60
DEFAULT_ACTION = "qbo_connect_authorize"
AUTHORIZE_STEP = "authorize"

_NONCE_LENGTH = 20


class NonceSigner:
    """Create and verify nonces bound to an action.

    Args:
        secret: HMAC key. Rotating it invalidates every outstanding nonce.
        action: Name mixed into the signature so nonces are not reusable
            across purposes.
        lifetime: Maximum validity in seconds.
        clock: Returns the current UNIX time; injectable for tests.
    """

    def __init__(
        self,
        secret: str,
        action: str = DEFAULT_ACTION,
        lifetime: int = DAY_IN_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._secret = secret.encode("utf-8")
        self._action = action
        self._lifetime = lifetime
        self._clock = clock

    def tick(self) -> int:
        return math.ceil(self._clock() / (self._lifetime / 2))

    def create(self) -> str:
        return self._sign(self.tick())

    def verify(self, nonce: str) -> int:
        """Check *nonce* against the current and previous tick.

        Returns:
            ``1`` if issued in the current tick, ``2`` if issued in the
            previous one, ``0`` if invalid or expired.
        """
        if not nonce:
            return 0
        tick = self.tick()
        if hmac.compare_digest(self._sign(tick), nonce):
            return 1
        if hmac.compare_digest(self._sign(tick - 1), nonce):
            return 2
        return 0

    def _sign(self, tick: int) -> str:
        message = f"{tick}|{self._action}".encode("utf-8")
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()[:_NONCE_LENGTH]


def build_state(signer: NonceSigner) -> str:
    """Return the ``state`` value sent to the authorization endpoint."""
    return urlencode({"step": AUTHORIZE_STEP, "nonce": signer.create()})


def verify_state(signer: NonceSigner, state: str) -> bool:
    """Validate a ``state`` value that came back on the callback.

    The state must be a form-encoded ``step=authorize&nonce=...`` pair
    carrying a nonce that *signer* accepts.
    """
    parsed = parse_qs(state or "")
    step = parsed.get("step", [""])[0]
    nonce = parsed.get("nonce", [""])[0]
    if step != AUTHORIZE_STEP or not nonce:
        return False
    return signer.verify(nonce) > 0
