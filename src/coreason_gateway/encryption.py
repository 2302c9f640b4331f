# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_gateway

"""
Symmetric cipher used to protect session values stored in cookies.
"""

import base64
import os

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

AES_KEY_SIZES = (16, 24, 32)


class AESCipher:
    """
    AES-CFB cipher producing URL-safe base64 tokens of `iv || ciphertext`.

    Attributes:
        key_size (int): The key length in bytes (16, 24 or 32).
    """

    def __init__(self, key: bytes) -> None:
        """
        Initialize the AESCipher.

        Args:
            key: The raw AES key.

        Raises:
            ValueError: If the key is not 16, 24 or 32 bytes long.
        """
        if len(key) not in AES_KEY_SIZES:
            raise ValueError(f"AES key must be 16, 24 or 32 bytes, got {len(key)}")
        self._key = key
        self.key_size = len(key)

    def __repr__(self) -> str:
        return f"AESCipher(key_size={self.key_size})"

    def encrypt(self, value: str) -> str:
        iv = os.urandom(16)
        encryptor = Cipher(algorithms.AES(self._key), modes.CFB(iv)).encryptor()
        ciphertext = encryptor.update(value.encode("utf-8")) + encryptor.finalize()
        return base64.urlsafe_b64encode(iv + ciphertext).decode("ascii")

    def decrypt(self, token: str) -> str:
        """
        Reverses `encrypt`.

        Raises:
            ValueError: If the token is not valid base64 or is shorter than one IV.
        """
        raw = base64.urlsafe_b64decode(token.encode("ascii"))
        if len(raw) < 16:
            raise ValueError("encrypted value is shorter than the AES block size")
        iv, ciphertext = raw[:16], raw[16:]
        decryptor = Cipher(algorithms.AES(self._key), modes.CFB(iv)).decryptor()
        return (decryptor.update(ciphertext) + decryptor.finalize()).decode("utf-8")
