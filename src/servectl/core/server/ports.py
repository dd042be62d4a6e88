from __future__ import annotations

import logging
import random
from typing import List, Optional

from servectl.core.exceptions import PortInUseError
from servectl.core.process import SystemProbe

from .models import MAX_PORT, validate_port

logger = logging.getLogger(__name__)

RANDOM_SPAN = 1000


class PortProber:
    """Answers "is this port taken?" and finds free ones.

    Probe failures propagate as ``ProbeUnavailableError``; a port is never
    reported free because the OS could not be asked.
    """

    def __init__(self, system: SystemProbe, *, scan_limit: int = 1000, default_port: int = 8000) -> None:
        self.system = system
        self.scan_limit = max(1, int(scan_limit))
        self.default_port = validate_port(default_port)

    def is_in_use(self, port: int) -> bool:
        return bool(self.system.is_port_bound(validate_port(port)))

    def pids_on_port(self, port: int) -> List[int]:
        return sorted(set(self.system.pids_on_port(validate_port(port))))

    def find_available(self, start_port: Optional[int] = None) -> int:
        start = validate_port(start_port if start_port is not None else self.default_port)
        stop = min(MAX_PORT, start + self.scan_limit - 1)
        for port in range(start, stop + 1):
            if not self.is_in_use(port):
                if port != start:
                    logger.debug("Port %s busy; using %s", start, port)
                return port
        raise PortInUseError(
            f"No free port in {start}-{stop}",
            context={"start_port": start, "end_port": stop},
        )

    def random_start(self, rng: Optional[random.Random] = None) -> int:
        chooser = rng or random
        upper = min(MAX_PORT, self.default_port + RANDOM_SPAN - 1)
        return chooser.randint(self.default_port, upper)


__all__ = ["PortProber", "RANDOM_SPAN"]
