import time

from remote_matches.models import Block


class SystemClock:
    """Wall clock in epoch seconds. Tests swap in a fixed clock."""

    def now(self) -> float:
        return time.time()


class BlockList:
    def is_blocked(self, blocker_id: int, blocked_id: int) -> bool:
        return Block.query.filter_by(blocker_id=blocker_id, blocked_id=blocked_id).first() is not None
