"""Root exception shared by every joistmail module."""

from __future__ import annotations


class JoistmailError(Exception):
    """Base class for all errors raised by joistmail.

    Catching this class is enough to handle any failure coming from the
    configuration loader, the message assembler or a mail transport.
    """


__all__ = ["JoistmailError"]
