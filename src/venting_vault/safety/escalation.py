"""
External escalation contact attached to crisis notices.
"""

import logging
import webbrowser
from dataclasses import dataclass, field
from typing import Callable

from ..core.config import EscalationConfig

logger = logging.getLogger(__name__)

Opener = Callable[[str], bool]


@dataclass
class EscalationContact:
    """A human lifeline the user can reach from a crisis notice."""

    label: str = "CALL 988 LIFELINE"
    uri: str = "tel:988"
    opener: Opener = field(default=webbrowser.open, repr=False)

    @classmethod
    def from_config(cls, config: EscalationConfig) -> "EscalationContact":
        return cls(label=config.label, uri=config.uri)

    def invoke(self) -> bool:
        """Hand the contact URI to the platform opener."""
        logger.info(f"Opening escalation contact {self.uri}")
        opened = bool(self.opener(self.uri))
        if not opened:
            logger.warning(f"No handler accepted {self.uri}")
        return opened
