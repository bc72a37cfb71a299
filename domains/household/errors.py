"""Exceptions raised by the household domain."""


class HouseholdError(Exception):
    """Base class for household domain errors."""


class NotFoundError(HouseholdError):
    """A referenced household, member or task does not exist."""


class TransferError(HouseholdError):
    """A task cannot be transferred (no target and no secondary assignee)."""


class CorruptRuleError(HouseholdError, ValueError):
    """A stored recurrence rule could not be parsed or validated."""
