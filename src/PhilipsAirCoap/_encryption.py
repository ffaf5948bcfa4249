import binascii
import logging
from binascii import b2a_hex as b2a
from hashlib import md5, sha256

from cryptography.hazmat.primitives.ciphers import Cipher
from cryptography.hazmat.primitives.ciphers.algorithms import AES
from cryptography.hazmat.primitives.ciphers.modes import CBC

from ._constants import BLOCK_SIZE, CHECKSUM_LEN, HEADER_LEN, MAGIC_WORD
from ._session import SessionID
from .errors import CryptoError, FormatError

_LOGGER = logging.getLogger(__name__)


def deriveKeyIV(session: SessionID) -> tuple[bytes, bytes]:
    """Derive the AES key and IV for a session.

    The MD5 digest only has 16 bytes, so the firmware "stretches" each half to 16
    bytes by hex encoding it. The uppercase hex text is used as key and IV as is.
    """
    digest = md5(MAGIC_WORD + session.hex().encode("ascii")).digest()
    key = binascii.hexlify(digest[:8]).upper()
    iv = binascii.hexlify(digest[8:]).upper()
    return key, iv


def pad(data: bytes) -> bytes:
    # Unlike PKCS#7 an aligned message gets no padding block.
    padding = (BLOCK_SIZE - len(data) % BLOCK_SIZE) % BLOCK_SIZE
    return data + bytes([padding]) * padding


def unpad(data: bytes) -> bytes:
    # The device sometimes appends a whole block of 0x10 to an already aligned
    # message, so keep stripping while the last byte looks like padding.
    end = len(data)
    while end > 0 and 1 <= data[end - 1] <= BLOCK_SIZE:
        end -= 1
    return data[:end]


class Encryptor:
    """AES-128-CBC with the key and IV derived from one session id."""

    def __init__(self, session: SessionID) -> None:
        self._session = session.copy()
        key, iv = deriveKeyIV(self._session)
        try:
            self._cipher = Cipher(AES(key), mode=CBC(iv))
        except ValueError as e:
            raise CryptoError(f"Failed to set up cipher for {session}.") from e

    @property
    def session(self) -> SessionID:
        return self._session.copy()

    def _checkLength(self, data: bytes) -> None:
        if len(data) % BLOCK_SIZE != 0:
            raise FormatError(
                f"Data of length {len(data)} isn't a multiple of the block size {BLOCK_SIZE}."
            )

    def encrypt(self, data: bytes) -> bytes:
        self._checkLength(data)
        context = self._cipher.encryptor()
        return context.update(data) + context.finalize()

    def decrypt(self, data: bytes) -> bytes:
        self._checkLength(data)
        context = self._cipher.decryptor()
        return context.update(data) + context.finalize()


def encodeMessage(session: SessionID, plaintext: bytes) -> bytes:
    """Wrap a plaintext (usually JSON) into a wire frame for ``session``.

    Frame layout, all uppercase hex::

        session (8) | ciphertext | sha256 of the preceding hex text (64)

    :param session: The session to key the frame on.
    :param plaintext: The payload. Must not be empty.
    :return: The frame as ASCII bytes.
    :raises FormatError: The plaintext is empty.
    :raises CryptoError: The cipher couldn't be set up.
    """
    if not plaintext:
        raise FormatError("Refusing to encode an empty message.")

    _LOGGER.debug(f"Encoding {plaintext!r} with session {session.hex()}")
    ciphertext = Encryptor(session).encrypt(pad(bytes(plaintext)))

    frame = session.hex() + ciphertext.hex().upper()
    # Plain hash over public data, not a MAC.
    frame += sha256(frame.encode("ascii")).hexdigest().upper()
    return frame.encode("ascii")


def decodeMessage(frame: bytes | str) -> bytes:
    """Return the plaintext of a received wire frame.

    The key is derived from the session at the start of the frame. Checking that
    this session is the expected one is up to the caller. The SHA-256 suffix is
    ignored: Ethernet and UDP already checksum the data and a plain hash adds no
    authenticity.

    :param frame: The frame as received, i.e. hex text.
    :return: The plaintext with padding stripped.
    :raises FormatError: The frame isn't hex or is too short.
    :raises CryptoError: The cipher couldn't be set up.
    """
    if isinstance(frame, str):
        frame = frame.encode("ascii", errors="replace")

    session = SessionID.parse(frame)
    try:
        data = binascii.a2b_hex(frame)
    except (binascii.Error, ValueError) as e:
        raise FormatError(f"Frame isn't valid hex: {frame[:64]!r}") from e

    if len(data) < HEADER_LEN + CHECKSUM_LEN:
        raise FormatError(f"Frame too short, only {len(data)} bytes.")

    ciphertext = data[HEADER_LEN : len(data) - CHECKSUM_LEN]
    _LOGGER.debug(f"Decrypting {b2a(ciphertext)} with session {session.hex()}")
    plaintext = Encryptor(session).decrypt(ciphertext)
    return unpad(plaintext)
