"""Voice journaling: vendor event normalisation, transcript handling and call control."""

from .assistant import build_assistant_config
from .extract import (
    ExtractionResult,
    extract_all_content,
    extract_journal_content,
    extract_user_content,
    word_count,
)
from .normalizer import normalize_event, normalize_events
from .session import CallSession, VoiceJournal, VoiceSessionConfig
from .submission import EntrySubmitter, SubmissionResult
from .transcript import TranscriptAccumulator
from .types import CallStatus, Role, TranscriptMessage
from .vendor import (
    MicrophonePermissionError,
    VendorUnavailableError,
    VoiceSessionError,
    VoiceVendorClient,
)

__all__ = [
    "CallSession",
    "CallStatus",
    "EntrySubmitter",
    "ExtractionResult",
    "MicrophonePermissionError",
    "Role",
    "SubmissionResult",
    "TranscriptAccumulator",
    "TranscriptMessage",
    "VendorUnavailableError",
    "VoiceJournal",
    "VoiceSessionConfig",
    "VoiceSessionError",
    "VoiceVendorClient",
    "build_assistant_config",
    "extract_all_content",
    "extract_journal_content",
    "extract_user_content",
    "normalize_event",
    "normalize_events",
    "word_count",
]
