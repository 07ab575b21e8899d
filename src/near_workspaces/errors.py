import json
from typing import Optional, Dict, Any


class WorkspaceError(Exception):
    """Base error for workspaces with message, detail and extra attributes."""

    def __init__(
        self,
        message: str,
        detail: Optional[Any] = None,
        **kwargs: Any
    ):
        self.message = message
        self.detail = detail
        self.extra = kwargs
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary format."""
        error_dict = {
            "message": self.message,
            "detail": self.detail,
        }
        error_dict.update(self.extra)
        # Remove None values
        return {k: v for k, v in error_dict.items() if v is not None}

    def to_json(self) -> str:
        """Convert error to JSON string."""
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)

    def __str__(self) -> str:
        parts = [f"Error: {self.message}"]
        if self.detail:
            parts.append(f"Detail: {self.detail}")
        if self.extra:
            parts.append(f"Extra: {self.extra}")
        return "\n".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(message='{self.message}', "
            f"detail='{self.detail}', extra={self.extra})"
        )


class InvalidArgumentsError(WorkspaceError):
    """Raised when Workspace.init receives neither `(config, fn)` nor `(fn)`."""

    def __init__(self, detail: Optional[Any] = None, **kwargs: Any):
        super().__init__(
            "Invalid arguments! "
            "Expected `(config, run_function)` or just `(run_function)`",
            detail,
            **kwargs
        )


class InvalidNetworkError(WorkspaceError):
    """Raised when the network selected through the environment is unknown."""

    def __init__(self, variable: str, value: str):
        super().__init__(
            f"environment variable {variable}={value} invalid; "
            "use 'testnet' or 'sandbox' (the default)",
            variable=variable,
            value=value,
        )


class SandboxStartError(WorkspaceError):
    """Raised when a local sandbox process fails to start or become ready."""


class RpcError(WorkspaceError):
    """Error returned by a JSON-RPC endpoint, either as HTTP status or `error` member."""

    def __init__(
        self,
        url: str,
        status: int,
        reason: str,
        message: str = "Request failed",
        detail: Optional[Any] = None,
        code: Optional[int] = None,
        **kwargs: Any
    ):
        super().__init__(message, detail, **kwargs)
        self.url = url
        self.status = status
        self.reason = reason
        self.code = code

    def to_dict(self) -> Dict[str, Any]:
        error_dict = super().to_dict()
        error_dict.update(
            {
                k: v
                for k, v in {
                    "url": self.url,
                    "status": self.status,
                    "reason": self.reason,
                    "code": self.code,
                }.items()
                if v is not None
            }
        )
        return error_dict
