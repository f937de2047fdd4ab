# File: seo_autofix/errors.py
"""seo_autofix.errors: typed failures raised by the crawler, the VCS layer and the change tracker.

Every error carries the site and batch it concerns (when known) so callers
never have to parse a message to find out what failed.
"""
from __future__ import annotations

from typing import Optional, Sequence

__all__: Sequence[str] = (
    "SEOAutofixError",
    "ExternalToolFailure",
    "CommandFailed",
    "CommandTimeout",
    "NavigationFailure",
    "InvalidState",
    "NoOpenBatch",
    "BatchAlreadyOpen",
    "EditNotApplicable",
    "RollbackConflict",
    "NotFound",
    "BatchNotFound",
    "TagNotFound",
    "PolicyViolation",
    "CrawlDisallowed",
    "UnsupportedChangeType",
    "PathOutsideRepository",
)


class SEOAutofixError(Exception):
    """Base class for all project errors."""

    def __init__(
        self,
        message: str,
        *,
        site_id: Optional[str] = None,
        batch_id: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.site_id = site_id
        self.batch_id = batch_id

    def annotate(
        self, *, site_id: Optional[str] = None, batch_id: Optional[str] = None
    ) -> SEOAutofixError:
        """Attach site/batch identifiers without overwriting ones already set."""
        if self.site_id is None:
            self.site_id = site_id
        if self.batch_id is None:
            self.batch_id = batch_id
        return self

    def __str__(self) -> str:
        context = []
        if self.site_id is not None:
            context.append(f"site={self.site_id}")
        if self.batch_id is not None:
            context.append(f"batch={self.batch_id}")
        if not context:
            return self.message
        return f"{self.message} [{', '.join(context)}]"


# --------------------------------------------------------------------------- #
# External tools (git binary, HTTP navigation)                                #
# --------------------------------------------------------------------------- #


class ExternalToolFailure(SEOAutofixError):
    """An external process or remote endpoint failed."""


class CommandFailed(ExternalToolFailure):
    """A VCS command exited with a nonzero status."""

    def __init__(self, command: Sequence[str], exit_code: int, stderr: str, **kwargs) -> None:
        self.command = list(command)
        self.exit_code = exit_code
        self.stderr = stderr.strip()
        detail = self.stderr or "no output"
        super().__init__(f"`{' '.join(self.command)}` failed ({exit_code}): {detail}", **kwargs)


class CommandTimeout(ExternalToolFailure):
    """A VCS command did not finish within its timeout."""

    def __init__(self, command: Sequence[str], timeout: float, **kwargs) -> None:
        self.command = list(command)
        self.timeout = timeout
        super().__init__(f"`{' '.join(self.command)}` timed out after {timeout:g}s", **kwargs)


class NavigationFailure(ExternalToolFailure):
    """A page could not be fetched (timeout, connection error, exhausted retries)."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Navigation to {url} failed: {reason}")


# --------------------------------------------------------------------------- #
# Lifecycle / caller contract violations                                      #
# --------------------------------------------------------------------------- #


class InvalidState(SEOAutofixError):
    """Operation attempted on a batch or site in the wrong lifecycle state."""


class NoOpenBatch(InvalidState):
    """A change was recorded while no batch was open."""


class BatchAlreadyOpen(InvalidState):
    """A second batch was started while one is still open (or the id is taken)."""


class EditNotApplicable(InvalidState):
    """The text a fix expects to replace is not present in the file."""


class RollbackConflict(InvalidState):
    """Reverting a batch conflicts with later changes to the same files."""

    def __init__(self, message: str, files: Sequence[str], **kwargs) -> None:
        self.files = list(files)
        super().__init__(f"{message}: {', '.join(self.files)}", **kwargs)


class NotFound(SEOAutofixError):
    """A batch, tag or commit could not be resolved."""


class BatchNotFound(NotFound):
    """Unknown batch id."""


class TagNotFound(NotFound):
    """The completion tag of a batch is missing (batch never completed)."""


# --------------------------------------------------------------------------- #
# Policy                                                                      #
# --------------------------------------------------------------------------- #


class PolicyViolation(SEOAutofixError):
    """The request is refused by policy (robots rules, closed enums, paths)."""


class CrawlDisallowed(PolicyViolation):
    """robots.txt disallows crawling the whole origin."""


class UnsupportedChangeType(PolicyViolation, ValueError):
    """A change type outside the known set."""


class PathOutsideRepository(PolicyViolation, ValueError):
    """A file path resolves outside the site's working tree."""
