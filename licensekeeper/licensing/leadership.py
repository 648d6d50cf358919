"""
Renewal ownership decision.

Only one instance of a deployment may talk to the license authority.  Which
one is decided here from the instance role, the multi-instance flag, the
leadership status reported by the external leader election and the auto-renew
setting.  Nothing is cached: callers evaluate the gate every time they need
an answer.
"""

from enum import Enum
from typing import Callable, List, Optional


class InstanceRole(str, Enum):
    """Role of the running process within the deployment."""

    MAIN = "main"
    WORKER = "worker"
    WEBHOOK = "webhook"


class LeadershipStatus(str, Enum):
    """Leader election state of a main instance."""

    LEADER = "leader"
    FOLLOWER = "follower"
    UNSET = "unset"


def should_renew(
    role: InstanceRole,
    multi_instance_enabled: bool,
    leadership_status: LeadershipStatus,
    auto_renew_configured: bool,
) -> bool:
    """
    Decide whether this instance owns license renewal.

    In multi-instance mode every main starts out "unset" and stays ineligible
    until the election settles; otherwise all mains would hit the authority at
    startup and get rate limited.
    """
    return renewal_skip_reason(
        role, multi_instance_enabled, leadership_status, auto_renew_configured
    ) is None


def renewal_skip_reason(
    role: InstanceRole,
    multi_instance_enabled: bool,
    leadership_status: LeadershipStatus,
    auto_renew_configured: bool,
) -> Optional[str]:
    """
    Same decision as should_renew(), but says why renewal is skipped.

    Returns:
        None if this instance should renew, otherwise a short reason
    """
    if role != InstanceRole.MAIN:
        return f"instance role is {getattr(role, 'value', role)}"
    if not auto_renew_configured:
        return "auto renewal is disabled"
    if not multi_instance_enabled:
        return None
    if leadership_status == LeadershipStatus.LEADER:
        return None
    if leadership_status == LeadershipStatus.FOLLOWER:
        return "instance is a follower"
    return "leadership status is unset"


class LeadershipSignal:
    """
    Interface of the external leader election: a queryable status plus a
    push notification on change.
    """

    def current_status(self) -> LeadershipStatus:
        raise NotImplementedError

    def subscribe(self, callback: Callable[[LeadershipStatus], None]) -> None:
        raise NotImplementedError


class StaticLeadershipSignal(LeadershipSignal):
    """
    In-process leadership signal.  Used for single-instance deployments, where
    the status never matters, and by anything that wants to push status
    changes by hand.
    """

    def __init__(self, status: LeadershipStatus = LeadershipStatus.UNSET):
        self._status = LeadershipStatus(status)
        self._subscribers: List[Callable[[LeadershipStatus], None]] = []

    def current_status(self) -> LeadershipStatus:
        return self._status

    def subscribe(self, callback: Callable[[LeadershipStatus], None]) -> None:
        self._subscribers.append(callback)

    def set_status(self, status: LeadershipStatus) -> None:
        """Change the status and notify every subscriber."""
        self._status = LeadershipStatus(status)
        for callback in list(self._subscribers):
            callback(self._status)
