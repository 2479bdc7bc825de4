"""
Exception hierarchy for near-deploy

Every error raised by the tool derives from NearDeployError so that the CLI
can map failures to exit codes and the runner can serialize them into the
deployment report.
"""

from typing import Any, Dict, List, Optional


class ErrorCodes:
    """Numeric error codes, grouped by area"""

    # General (1000-1099)
    UNKNOWN = 1000

    # Configuration (1100-1199)
    CONFIG_FILE_NOT_FOUND = 1100
    CONFIG_VALIDATION_FAILED = 1101
    CONFIG_PARSE_FAILED = 1102

    # Accounts and artifacts (1200-1299)
    INVALID_ACCOUNT_ID = 1200
    ARTIFACT_NOT_FOUND = 1201
    ENV_FILE_INVALID = 1202
    INVALID_ARGUMENTS = 1203

    # External tool (1300-1399)
    CLI_NOT_FOUND = 1300
    CLI_COMMAND_FAILED = 1301
    CLI_TIMEOUT = 1302

    # RPC (1400-1499)
    RPC_ERROR = 1400
    RPC_TIMEOUT = 1401
    RPC_CONNECTION_FAILED = 1402

    # Plans (1500-1599)
    STEP_FAILED = 1500
    PLAN_NOT_FOUND = 1501


class NearDeployError(Exception):
    """Base exception class for near-deploy"""

    default_code = ErrorCodes.UNKNOWN

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        self.message = message
        self.code = code if code is not None else self.default_code
        self.details = details or {}
        self.cause = cause
        super().__init__(message)

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "error": type(self).__name__,
            "message": self.message,
            "code": self.code,
            "details": self.details,
        }
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result


class ConfigurationError(NearDeployError):
    """Invalid or missing configuration"""

    default_code = ErrorCodes.CONFIG_VALIDATION_FAILED

    def __init__(
        self,
        message: str,
        config_file: Optional[str] = None,
        field: Optional[str] = None,
        errors: Optional[List[str]] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        if config_file:
            self.details["config_file"] = config_file
        if field:
            self.details["field"] = field
        if errors:
            self.details["errors"] = errors


class AccountIdError(NearDeployError):
    """Account identifier does not follow NEAR naming rules"""

    default_code = ErrorCodes.INVALID_ACCOUNT_ID

    def __init__(self, message: str, account_id: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.details["account_id"] = account_id


class ArtifactError(NearDeployError):
    """Contract artifact missing or unreadable"""

    default_code = ErrorCodes.ARTIFACT_NOT_FOUND

    def __init__(self, message: str, path: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        if path:
            self.details["path"] = path


class ArgumentsError(NearDeployError):
    """Contract call arguments failed validation"""

    default_code = ErrorCodes.INVALID_ARGUMENTS


class EnvFileError(NearDeployError):
    """Environment file written by dev-deploy is missing or malformed"""

    default_code = ErrorCodes.ENV_FILE_INVALID

    def __init__(self, message: str, path: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        if path:
            self.details["path"] = path


class NearCliError(NearDeployError):
    """Error invoking the external near command-line tool"""

    default_code = ErrorCodes.CLI_COMMAND_FAILED

    def __init__(self, message: str, argv: Optional[List[str]] = None, **kwargs):
        super().__init__(message, **kwargs)
        if argv:
            self.details["argv"] = list(argv)


class NearCliNotFoundError(NearCliError):
    """The near binary could not be executed"""

    default_code = ErrorCodes.CLI_NOT_FOUND


class CommandFailedError(NearCliError):
    """The near command exited with a non-zero status"""

    def __init__(
        self,
        message: str,
        argv: Optional[List[str]] = None,
        returncode: Optional[int] = None,
        stderr: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, argv=argv, **kwargs)
        self.returncode = returncode
        self.details["returncode"] = returncode
        if stderr:
            self.details["stderr"] = stderr


class CommandTimeoutError(NearCliError):
    """The near command did not finish in time"""

    default_code = ErrorCodes.CLI_TIMEOUT

    def __init__(self, message: str, argv: Optional[List[str]] = None, timeout: Optional[float] = None, **kwargs):
        super().__init__(message, argv=argv, **kwargs)
        self.details["timeout"] = timeout


class RpcError(NearDeployError):
    """NEAR JSON-RPC call failed"""

    default_code = ErrorCodes.RPC_ERROR

    def __init__(self, message: str, method: Optional[str] = None, rpc_error: Optional[Dict] = None, **kwargs):
        super().__init__(message, **kwargs)
        if method:
            self.details["method"] = method
        self.rpc_error = rpc_error or {}
        if rpc_error:
            self.details["rpc_error"] = rpc_error

    @property
    def cause_name(self) -> Optional[str]:
        """Name of the structured error cause, e.g. UNKNOWN_ACCOUNT"""
        cause = self.rpc_error.get("cause")
        if isinstance(cause, dict):
            return cause.get("name")
        return None


class StepFailedError(NearDeployError):
    """A plan step failed and the plan was halted"""

    default_code = ErrorCodes.STEP_FAILED

    def __init__(self, message: str, step: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.step = step
        if step:
            self.details["step"] = step
