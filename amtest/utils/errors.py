# amtest/utils/errors.py
class HarnessError(RuntimeError):
    """
    Base class for every error raised by the harness itself.
    """


class HarnessSetupError(HarnessError):
    """
    Raised when a test cannot even be built: no free listen address,
    no temp file for the configuration, no data directory.
    Fatal: the test aborts immediately.
    """


class InstanceStartError(HarnessError):
    """
    Raised when a managed instance process cannot be launched.
    """


class ClientError(HarnessError):
    """
    Raised by the service API client for transport errors and non-2xx responses.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class MissingSilenceIDError(HarnessError):
    """
    Raised when a silence is deleted before the action that creates it
    has assigned its identifier.
    """


class AcceptanceFailure(AssertionError):
    """
    Raised by RunResult.raise_for_failures() when recoverable errors were
    recorded or a collector report did not pass.
    """

    def __init__(self, errors, reports):
        self.errors = list(errors)
        self.reports = list(reports)

        lines = [f"{len(self.errors)} error(s), {len(self.reports)} failed report(s)"]
        lines += [f"  error: {e}" for e in self.errors]
        lines += [r.render() for r in self.reports]
        super().__init__("\n".join(lines))
