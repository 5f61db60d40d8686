"""HoloHash: Encoding helpers for ledger action hashes.

An action hash is 39 bytes: a 3-byte type prefix, a 32-byte digest and a
4-byte location. Its string form is ``"u"`` followed by unpadded URL-safe
base64, e.g. ``uhCkk...``.

.. code-block:: python

    >>> action_hash_to_b64(ZERO_ACTION_HASH)[:5]
    'uhCkk'
    >>> action_hash_from_b64(action_hash_to_b64(ZERO_ACTION_HASH)) == ZERO_ACTION_HASH
    True
"""

import base64

ACTION_HASH_PREFIX = bytes([0x84, 0x29, 0x24])
CORE_LENGTH = 36
ACTION_HASH_LENGTH = len(ACTION_HASH_PREFIX) + CORE_LENGTH


def action_hash_from_raw_36(core: bytes) -> bytes:
    """Build a full action hash from its 36-byte core.

    :param core: 32-byte digest followed by 4-byte location.
    :returns: 39-byte action hash.
    :raises ValueError: If core is not 36 bytes long.
    """
    if len(core) != CORE_LENGTH:
        raise ValueError(f"Action hash core must be {CORE_LENGTH} bytes, got {len(core)}")
    return ACTION_HASH_PREFIX + bytes(core)


def action_hash_to_b64(action_hash: bytes) -> str:
    """Encode an action hash in its ``u``-prefixed base64 string form.

    :param action_hash: 39-byte action hash.
    :returns: String such as "uhCkk...".
    """
    return "u" + base64.urlsafe_b64encode(action_hash).decode("ascii").rstrip("=")


def action_hash_from_b64(text: str) -> bytes:
    """Decode the ``u``-prefixed base64 form of an action hash.

    :param text: Encoded action hash (e.g., "uhCkk...").
    :returns: 39-byte raw action hash.
    :raises ValueError: If text is not a valid encoded action hash.
    """
    if not text or not text.startswith("u"):
        raise ValueError(f"Invalid action hash: {text!r}")

    body = text[1:]
    try:
        raw = base64.urlsafe_b64decode(body + "=" * (-len(body) % 4))
    except ValueError as e:
        raise ValueError(f"Invalid action hash: {text!r}") from e

    if len(raw) != ACTION_HASH_LENGTH or not raw.startswith(ACTION_HASH_PREFIX):
        raise ValueError(f"Invalid action hash: {text!r}")
    return raw


# Published when the current global definition could not be looked up.
ZERO_ACTION_HASH = action_hash_from_raw_36(bytes(CORE_LENGTH))
