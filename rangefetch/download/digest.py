"""Incremental digest computation."""

import hashlib
from pathlib import Path
from typing import Union

from rangefetch.storage.exceptions import FileSystemError, UseAfterFinalizeError
from rangefetch.storage.models import Digest
from rangefetch.utils.constants import DEFAULT_DIGEST_ALGORITHM, VERIFY_BLOCK_SIZE


class DigestAccumulator:
    """Running hash over a byte stream.

    Feeding the stream in any number of slices gives the same digest as
    hashing the concatenation in one call. After :meth:`finalize` the
    accumulator is spent.
    """

    def __init__(self, algorithm: str = DEFAULT_DIGEST_ALGORITHM):
        try:
            self._context = hashlib.new(algorithm)
        except ValueError:
            raise ValueError(f"Unsupported digest algorithm: {algorithm}")
        self.algorithm = self._context.name
        self.bytes_seen = 0
        self._finalized = False

    def update(self, data: bytes) -> None:
        if self._finalized:
            raise UseAfterFinalizeError("update() called after finalize()")
        self._context.update(data)
        self.bytes_seen += len(data)

    def finalize(self) -> Digest:
        if self._finalized:
            raise UseAfterFinalizeError("finalize() called twice")
        self._finalized = True
        return Digest(algorithm=self.algorithm, value=self._context.digest())

    @property
    def finalized(self) -> bool:
        return self._finalized


def digest_file(
    file_path: Union[str, Path],
    algorithm: str = DEFAULT_DIGEST_ALGORITHM,
    block_size: int = VERIFY_BLOCK_SIZE
) -> Digest:
    """Hash a file by reading it sequentially from offset 0.

    Raises:
        FileSystemError: If the file cannot be read
    """
    accumulator = DigestAccumulator(algorithm)
    try:
        with open(file_path, 'rb') as f:
            while chunk := f.read(block_size):
                accumulator.update(chunk)
    except OSError as e:
        raise FileSystemError(f"Failed to read {file_path} for hashing: {e}", str(file_path), e) from e
    return accumulator.finalize()
