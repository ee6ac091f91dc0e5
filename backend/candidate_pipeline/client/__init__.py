"""Client side of the matching, calling and question-suggestion services."""

from .http import ApiClient, CredentialProvider, StaticCredentialProvider
from .services import (
    CallingService,
    CandidateDetail,
    MatchingService,
    QuestionService,
    ResultsPage,
    Services,
    UploadFile,
)

__all__ = [
    "ApiClient",
    "CallingService",
    "CandidateDetail",
    "CredentialProvider",
    "MatchingService",
    "QuestionService",
    "ResultsPage",
    "Services",
    "StaticCredentialProvider",
    "UploadFile",
]
