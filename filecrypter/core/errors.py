class FileCrypterError(Exception):
    """Base class for every failure surfaced by FileCrypter."""

    user_message = "The operation failed."

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.user_message)


class ValidationError(FileCrypterError, ValueError):
    """Input validation failure."""

    user_message = "The input is not valid."


class EmptyPassphrase(ValidationError):
    user_message = "Enter a passphrase."


class NoInputSelected(ValidationError):
    user_message = "Select a file first."


class InputNotReadable(ValidationError):
    user_message = "The selected file could not be read."


class PassphraseMismatch(ValidationError):
    user_message = "The passphrases do not match."


class OutputExists(ValidationError):
    user_message = "The output file already exists. Use --force to overwrite it."


class ContainerFormatError(ValidationError):
    """The container bytes do not have the expected layout."""

    user_message = "The file is not a valid encrypted file."


class TruncatedHeader(ContainerFormatError):
    user_message = "The file is too short or is not a valid encrypted file."


class TruncatedFilename(ContainerFormatError):
    user_message = "The filename metadata in the encrypted file is damaged."


class FilenameTooLong(ContainerFormatError):
    user_message = "The file name is too long to be stored."


class InvalidParameters(FileCrypterError, ValueError):
    """Programming-contract violation: wrong key, nonce or salt size."""

    user_message = "Internal error: invalid cryptographic parameters."


class CryptographyError(FileCrypterError):
    """Cryptography-related failure."""

    user_message = "A cryptographic operation failed."


class AuthenticationFailed(CryptographyError, ValueError):
    """Tag verification failed.

    Wrong passphrase, wrong iteration count and a corrupted or tampered file
    all end up here and share one message on purpose.
    """

    user_message = "Decryption failed: the passphrase may be wrong or the file is corrupted."


class CryptoUnavailable(CryptographyError, RuntimeError):
    """The platform cannot do cryptography at all. Fatal."""

    user_message = "Cryptography support is not available on this system."


class OperationCancelled(FileCrypterError):
    user_message = "The operation was cancelled."


def user_message(exc: BaseException) -> str:
    """Return the single human-readable message for a failure kind."""
    if isinstance(exc, FileCrypterError):
        return exc.user_message
    if isinstance(exc, PermissionError):
        return "Permission denied while accessing the file."
    if isinstance(exc, OSError):
        return f"File error: {exc.strerror or exc}"
    return f"An unexpected error occurred: {exc}"
