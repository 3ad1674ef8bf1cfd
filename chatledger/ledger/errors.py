"""Ledger exceptions."""


class LedgerError(Exception):
    """A ledger operation could not be applied."""
    pass


class LedgerLockTimeout(LedgerError):
    """
    The ledger lock was not acquired within the configured wait.

    Raised before anything is written, so the operation can simply be
    retried.
    """
    pass
