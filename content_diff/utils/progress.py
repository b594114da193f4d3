from __future__ import annotations

from typing import Callable, Optional


class ProgressMeter:
    """Reports each 10% step of a loop over ``total`` items.

    :param total: Number of items in the loop.
    :param report: Callable receiving messages such as ``"30%"``.
    :param increment: Percentage step between two reports.
    """

    def __init__(self, total: int, report: Callable[[str], None] = print, increment: int = 10) -> None:
        self.total = total
        self.report = report
        self.increment = increment
        self.current_percent = 0

    def advance(self, current: int) -> Optional[int]:
        """Report progress after item number ``current`` (1 based).

        Returns the newly reached percentage or ``None`` if no step was crossed.
        """
        if self.total <= 0:
            return None
        percent = int(current * 100 / self.total)
        reached = percent - percent % self.increment
        if reached <= self.current_percent:
            return None
        self.current_percent = reached
        self.report(f"{reached}%")
        return reached
