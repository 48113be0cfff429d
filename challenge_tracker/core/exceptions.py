from fastapi import HTTPException, status


class TrackerServiceError(HTTPException):
    def __init__(self, detail: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR):
        super().__init__(status_code=status_code, detail=detail)


class ChallengeNotFoundError(TrackerServiceError):
    def __init__(self):
        super().__init__(detail="Challenge non trovata", status_code=status.HTTP_404_NOT_FOUND)


class PayoutNotFoundError(TrackerServiceError):
    def __init__(self):
        super().__init__(detail="Payout non trovato", status_code=status.HTTP_404_NOT_FOUND)


class DuplicateChallengeError(TrackerServiceError):
    def __init__(self):
        super().__init__(
            detail="Esiste già una challenge per questo account MetaCopier",
            status_code=status.HTTP_409_CONFLICT,
        )


class MetaCopierApiError(Exception):
    def __init__(self, status_code: int, reason: str = ""):
        self.status_code = status_code
        self.reason = reason
        super().__init__(f"MetaCopier API error: {status_code} {reason}".rstrip())
