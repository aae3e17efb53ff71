"""Remote sessions, command execution and file staging."""

from .channel import (
    Channel,
    ChannelEvent,
    Close,
    Data,
    Eof,
    ExitSignal,
    ExitStatus,
    ExtendedData,
    ParamikoChannel,
)
from .elevation import (
    ElevatedCommandExecutor,
    PromptState,
    classify_chunk,
    su_command,
)
from .errors import CommandError, HostKeyMismatch, RemoteError, TransferError
from .execution import (
    CommandExecutor,
    CommandFailure,
    CommandOutput,
    CommandResult,
    FailureReason,
    Outcome,
)
from .session import (
    ParamikoSession,
    ParamikoSessionProvider,
    Session,
    SessionGateway,
    SessionProvider,
)
from .staging import (
    LocalStagingArea,
    SftpStagingArea,
    remote_invocation,
    temp_cmd_file,
)
from .transfer import download, upload

__all__ = [
    "Channel",
    "ChannelEvent",
    "Close",
    "CommandError",
    "CommandExecutor",
    "CommandFailure",
    "CommandOutput",
    "CommandResult",
    "Data",
    "ElevatedCommandExecutor",
    "Eof",
    "ExitSignal",
    "ExitStatus",
    "ExtendedData",
    "FailureReason",
    "HostKeyMismatch",
    "LocalStagingArea",
    "Outcome",
    "ParamikoChannel",
    "ParamikoSession",
    "ParamikoSessionProvider",
    "PromptState",
    "RemoteError",
    "Session",
    "SessionGateway",
    "SessionProvider",
    "SftpStagingArea",
    "TransferError",
    "classify_chunk",
    "download",
    "remote_invocation",
    "su_command",
    "temp_cmd_file",
    "upload",
]
