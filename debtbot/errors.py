"""
Domain Errors

Every refusal the bot can give is one of these. Each carries the
message shown to the party who sent the command; handlers raise them
before any write happens and the orchestrator turns them into replies.
"""


class DebtBotError(Exception):
    """Base exception for command-level failures."""

    def __init__(self, user_message: str):
        self.user_message = user_message
        super().__init__(user_message)


class InvalidCommandError(DebtBotError):
    """Command parsed but its arguments are unusable."""
    pass


class AliasRequiredError(InvalidCommandError):
    """The command needs the sender to have a display name first."""
    pass


class RecordNotFoundError(DebtBotError):
    """Unknown code or counterparty index."""
    pass


class NotAuthorizedError(DebtBotError):
    """Sender may not act on this entry."""
    pass


class ConflictError(DebtBotError):
    """State already taken: alias claimed, pair linked, code used."""
    pass


class AlreadyProcessedError(ConflictError):
    """Confirm/reject on an entry that is no longer pending."""
    pass
