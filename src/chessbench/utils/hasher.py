import hashlib


class Hasher:
    """
    Hasher provides static methods for generating SHA256 hashes.

    Methods
    -------
    hash_string(input_string: str) -> str
        Returns a SHA256 hash of the input string.
    hash_file(file_path: str) -> str
        Returns a SHA256 hash of the contents of the specified file.
    """

    @staticmethod
    def hash_string(input_string: str) -> str:
        """Returns a SHA256 hash of the input string."""

        return hashlib.sha256(input_string.encode("utf-8")).hexdigest()

    @staticmethod
    def hash_file(file_path: str) -> str:
        """Returns a SHA256 hash of the contents of the specified file."""

        sha256 = hashlib.sha256()
        with open(file_path, "rb") as f:
            for chunk in iter(lambda: f.read(4096), b""):
                sha256.update(chunk)
        return sha256.hexdigest()


def short_hash(data: str, length: int = 16) -> str:
    """Return the first ``length`` hex characters of the SHA256 of ``data``.

    Used wherever an identifier has to be stable across processes, which
    rules out the salted builtin ``hash``.
    """
    return Hasher.hash_string(data)[:length]
