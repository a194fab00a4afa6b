"""
Errors raised by the invoicing services.

Validation problems use Django's own ``ValidationError`` (field -> messages);
the classes here cover failures of the database writes and of the email
transport.
"""


class InvoicingError(Exception):
    """Base class for invoicing service failures."""


class PersistenceError(InvoicingError):
    """A step of an invoice or payment write failed."""


class TransportError(InvoicingError):
    """The invoice could not be handed to the email transport."""
