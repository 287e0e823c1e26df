from __future__ import annotations


class ReportError(Exception):
    """Base class for every error raised by the report engine."""


class ContentError(ReportError):
    """A structured content field is malformed.

    Recovered where it is raised: the field is treated as absent and the
    renderer substitutes its pending placeholder.
    """

    def __init__(self, field: str, reason: str):
        super().__init__(f'{field}: {reason}')
        self.field = field
        self.reason = reason


class ResourceError(ReportError):
    """The branding icon or the drawing library could not be loaded."""

    def __init__(self, resource: str, reason: str, *, fatal: bool):
        super().__init__(f'{resource}: {reason}')
        self.resource = resource
        self.reason = reason
        self.fatal = fatal


class ExportUnavailable(ReportError):
    """The single user-visible failure of an export."""

    user_message = 'Export unavailable'

    def __init__(self, detail: str | None = None):
        super().__init__(self.user_message if not detail else f'{self.user_message}: {detail}')
        self.detail = detail


class IntegrityMismatch(ReportError):
    """A persisted checksum disagrees with the fingerprint of its markup."""

    def __init__(self, *, expected: str, actual: str, report_id: str | None = None):
        target = f' for report {report_id}' if report_id else ''
        super().__init__(f'checksum mismatch{target}: stored {expected}, recomputed {actual}')
        self.expected = expected
        self.actual = actual
        self.report_id = report_id
