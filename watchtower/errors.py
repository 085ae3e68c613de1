from __future__ import annotations
# watchtower/errors.py
"""
Error types for the watchtower duties (price submission, challenge response).

Every error aborts only the current cycle; the scheduler logs it and the next
cycle starts from fresh ledger state. "Not eligible" is never an error.

Exports:
- WatchtowerError (base)
- ConfigurationError
- SyncError, NotSynced
- ReadError, HistoryUnavailable
- RpcError
- SourceUnavailableError
- SubmissionError
"""

import json
from typing import Any, Dict, Mapping, Optional


class WatchtowerError(Exception):
    """Base class for watchtower errors."""

    code: str = "WATCHTOWER_ERROR"

    def __init__(self, message: str = "", *, details: Optional[Mapping[str, Any]] = None) -> None:
        self.message = message or self.__class__.__name__
        self.details = dict(details or {})
        super().__init__(self.__str__())

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}

    def __str__(self) -> str:  # pragma: no cover - trivial
        if self.details:
            try:
                packed = json.dumps(self.details, sort_keys=True, separators=(",", ":"), default=str)
            except Exception:
                packed = str(self.details)
            return f"{self.code}: {self.message} [{packed}]"
        return f"{self.code}: {self.message}"


class ConfigurationError(WatchtowerError):
    """Invalid configuration or protocol setting (e.g. a zero submission frequency)."""
    code = "WATCHTOWER_CONFIG_ERROR"


class SyncError(WatchtowerError):
    """The read source could not confirm it is caught up with the network head."""
    code = "WATCHTOWER_SYNC_ERROR"


class NotSynced(SyncError):
    """The node reported it is behind the network head."""
    code = "WATCHTOWER_NOT_SYNCED"


class ReadError(WatchtowerError):
    """A read-only ledger fact could not be fetched."""
    code = "WATCHTOWER_READ_ERROR"


class HistoryUnavailable(ReadError):
    """The node cannot serve state pinned at the requested height (pruned or unsupported)."""
    code = "WATCHTOWER_HISTORY_UNAVAILABLE"

    def __init__(
        self,
        message: str = "historical state unavailable",
        *,
        height: Optional[int] = None,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        if height is not None:
            d.setdefault("height", height)
        self.height = height
        super().__init__(message, details=d)


class RpcError(ReadError):
    """The node's JSON-RPC endpoint returned an error object or could not be reached."""
    code = "WATCHTOWER_RPC_ERROR"

    def __init__(
        self,
        message: str = "rpc call failed",
        *,
        method: Optional[str] = None,
        rpc_code: Optional[int] = None,
        data: Any = None,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        if method is not None:
            d.setdefault("method", method)
        if rpc_code is not None:
            d.setdefault("rpc_code", rpc_code)
        if data is not None:
            d.setdefault("data", data)
        self.method = method
        self.rpc_code = rpc_code
        self.data = data
        super().__init__(message, details=d)


class SourceUnavailableError(WatchtowerError):
    """The value source could not answer for the given checkpoint."""
    code = "WATCHTOWER_SOURCE_UNAVAILABLE"

    def __init__(
        self,
        message: str = "value source unavailable",
        *,
        checkpoint: int,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        d.setdefault("checkpoint", checkpoint)
        self.checkpoint = checkpoint
        super().__init__(message, details=d)


class SubmissionError(WatchtowerError):
    """A state-changing transaction failed to sign, broadcast, or was reverted on-chain."""
    code = "WATCHTOWER_SUBMISSION_ERROR"

    def __init__(
        self,
        message: str = "submission failed",
        *,
        checkpoint: Optional[int] = None,
        tx_hash: Optional[str] = None,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        if checkpoint is not None:
            d.setdefault("checkpoint", checkpoint)
        if tx_hash is not None:
            d.setdefault("tx_hash", tx_hash)
        self.checkpoint = checkpoint
        self.tx_hash = tx_hash
        super().__init__(message, details=d)


__all__ = [
    "WatchtowerError",
    "ConfigurationError",
    "SyncError",
    "NotSynced",
    "ReadError",
    "HistoryUnavailable",
    "RpcError",
    "SourceUnavailableError",
    "SubmissionError",
]
