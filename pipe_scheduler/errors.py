# Exceptions raised by the pipe production scheduler.
# Version: 1.0.0
# One base class for callers to catch, with row, config and file context on the subclasses.

from pathlib import Path
from typing import Any


class SchedulingError(Exception):
    """Base class for every error this package raises on purpose.

    Unplaceable orders are not errors; they are reported as conflicts on
    the SchedulingResult. This hierarchy covers input that cannot be read
    or configuration that cannot be trusted.

    Attributes:
        message: Text shown to the user.
        details: Structured context (row number, section name, path...).
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = dict(details or {})
        super().__init__(message)

    def __str__(self) -> str:
        if not self.details:
            return self.message
        context = ", ".join(f"{key}={value}" for key, value in self.details.items())
        return f"{self.message} [{context}]"


class ValidationError(SchedulingError):
    """An order row that cannot be decoded at all.

    Bad cells fall back to defaults during decoding, so this is only
    raised for rows with nothing usable in them. convert_to_orders logs
    and skips such rows.

    Attributes:
        field: Column header (or "row" for the whole row).
        value: Offending cell value.
        reason: What is wrong with it.
        row: Spreadsheet row number, header being row 1.
    """

    def __init__(self, field: str, value: Any, reason: str, row: int | None = None) -> None:
        self.field = field
        self.value = value
        self.reason = reason
        self.row = row

        where = f" (row {row})" if row is not None else ""
        details = {"field": field}
        if row is not None:
            details["row"] = row
        super().__init__(f"{reason}{where}: {field}={value!r}", details)


class ConfigurationError(SchedulingError):
    """A malformed section of the scheduler YAML file.

    Attributes:
        config_source: Section name, or the file path for top-level problems.
        issue: What is wrong with it.
    """

    def __init__(self, config_source: str, issue: str) -> None:
        self.config_source = config_source
        self.issue = issue
        super().__init__(f"Bad scheduler config in {config_source}: {issue}", {"source": config_source})


class FileLoadError(SchedulingError):
    """An order table or config file that could not be opened or parsed.

    Attributes:
        filepath: Path as given by the caller.
        cause: Exception raised by the reader.
    """

    def __init__(self, filepath: str, cause: Exception) -> None:
        self.filepath = filepath
        self.cause = cause

        name = Path(filepath).name or filepath
        super().__init__(
            f"Could not load {name}: {cause}",
            {"filepath": filepath, "cause_type": type(cause).__name__},
        )
