from __future__ import annotations
from enum import Enum


class MailingLabelError(Exception):
    pass


class UnknownTemplateError(MailingLabelError, KeyError):
    def __init__(self, code: str):
        super().__init__(code)
        self.code = code

    def __str__(self) -> str:
        return f"Unknown label template: {self.code}"


class EditSessionError(MailingLabelError):
    pass


class CorrectionServiceError(MailingLabelError):
    """The correction collaborator could not be reached or answered with an error."""


class CorrectionAuthError(CorrectionServiceError):
    pass


class CorrectionError(MailingLabelError):
    pass


class CorrectionAlreadyApplied(CorrectionError):
    def __init__(self) -> None:
        super().__init__(
            "Addresses have already been corrected in this session. Reset the session to run again."
        )


class CorrectionInProgress(CorrectionError):
    def __init__(self, state: str):
        super().__init__(f"A correction run is already {state}")
        self.state = state


class EmptyReason(str, Enum):
    NO_OFFICES = "no_offices"
    NO_ADDRESSES = "no_addresses"
    FILTERED_OUT = "filtered_out"


_EMPTY_MESSAGES = {
    EmptyReason.NO_OFFICES: "There are no partner offices to correct.",
    EmptyReason.NO_ADDRESSES: "None of the partner offices have an address.",
    EmptyReason.FILTERED_OUT: "No partner offices with addresses match the current filters.",
}


class NothingToCorrect(CorrectionError):
    def __init__(self, reason: EmptyReason):
        super().__init__(_EMPTY_MESSAGES[reason])
        self.reason = reason


class CorrectionFailed(CorrectionError):
    pass
