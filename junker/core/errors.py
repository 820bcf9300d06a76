"""Exception hierarchy shared by the junker modules."""


class JunkerError(Exception):
    """Base class for every error raised by junker"""


class ConfigError(JunkerError):
    """Invalid scan configuration (aborts before scanning starts)"""


class InputError(JunkerError):
    """A target line could not be parsed or resolved"""

    def __init__(self, line: str, reason: str):
        super().__init__(f"{reason}: {line!r}")
        self.line = line
        self.reason = reason


class TransportError(JunkerError):
    """Connect, write or read failure while talking to a target"""


class TransportTimeout(TransportError):
    """The target did not finish its response before the deadline"""
