"""Task and push actions invoked by the web app's request handlers.

These are the on-demand entry points into the core: completing a task rolls
its due date forward through the recurrence engine, transfers and nudges fan
out a push to the rest of the household.
"""

from datetime import date
from typing import Optional

import config
from logger import logger
from . import messages, store
from .calendar_math import household_zone, local_today, to_local_date
from .errors import NotFoundError, TransferError
from .recurrence import advance
from .reminders.push import DispatchResult, PushDispatcher
from .types import Member, Recurrence, Task


def _require_task(task_id: int) -> Task:
    task = store.get_task(task_id)
    if not task:
        raise NotFoundError(f"Task {task_id} not found")
    return task


def _require_member(member_id: int) -> Member:
    member = store.get_member(member_id)
    if not member:
        raise NotFoundError(f"Member {member_id} not found")
    return member


def _optional_member(member_id: Optional[int]) -> Optional[Member]:
    return store.get_member(member_id) if member_id else None


def complete_task(
    task_id: int,
    completed_at=None,
    completed_by_member_id: Optional[int] = None,
) -> Task:
    """Record a completion and roll the task forward.

    One-off tasks are deactivated. Recurring tasks get their next due date,
    skipping past any dates that are already behind the completion date.

    Args:
        task_id: Task being completed
        completed_at: Completion date (date/ISO string/datetime), default today in the household zone
        completed_by_member_id: Member who did it, if known

    Returns:
        The updated task
    """
    task = _require_task(task_id)
    household = store.get_household(task.household_id)
    zone = household_zone(household.timezone if household else None)
    completed_on: date = to_local_date(completed_at, zone) if completed_at else local_today(zone)

    store.record_completion(task.id, completed_on, completed_by_member_id)

    if task.recurrence is Recurrence.ONCE:
        store.deactivate_task(task.id)
        logger.info(f"Task {task.id} completed once, deactivated")
    else:
        next_due = advance(
            task.due_date,
            task.recurrence,
            task.recurrence_rule,
            tz=zone,
            not_before=completed_on,
        )
        store.reschedule_task(task.id, next_due)
        logger.info(f"Task {task.id} completed on {completed_on}, next due {next_due}")

    return store.get_task(task.id)


async def transfer_task(
    task_id: int,
    dispatcher: PushDispatcher,
    to_member_id: Optional[int] = None,
    from_member_id: Optional[int] = None,
) -> tuple[Task, DispatchResult]:
    """Hand a task to someone else and tell the household.

    With to_member_id the target becomes primary and the old primary becomes
    secondary; without it primary and secondary swap.

    Raises:
        NotFoundError: unknown task
        TransferError: no target given and no secondary assignee to swap with
    """
    task = _require_task(task_id)

    if to_member_id:
        new_primary = to_member_id
        new_secondary = task.primary_member_id
    elif task.secondary_member_id:
        new_primary = task.secondary_member_id
        new_secondary = task.primary_member_id
    else:
        raise TransferError(f"Task {task.id} has no secondary member to transfer to")

    store.reassign_task(task.id, new_primary, new_secondary, task.primary_member_id)
    updated = store.get_task(task.id)
    logger.info(f"Task {task.id} transferred from {task.primary_member_id} to {new_primary}")

    members = store.get_household_members(task.household_id)
    if not members:
        return updated, DispatchResult()

    payload = messages.transfer_payload(
        updated, _optional_member(from_member_id), _optional_member(new_primary)
    )
    result = await dispatcher.dispatch_many(
        [member.id for member in members], payload, exclude_member_id=from_member_id
    )
    return updated, result


async def nudge_task(
    task_id: int,
    dispatcher: PushDispatcher,
    from_member_id: Optional[int] = None,
) -> DispatchResult:
    """Remind the household about a task; the nudger is not notified."""
    task = _require_task(task_id)
    members = store.get_household_members(task.household_id)

    target_ids = [
        member_id
        for member_id in (task.primary_member_id, task.secondary_member_id)
        if member_id and member_id != from_member_id
    ]
    targets = [member for member in members if member.id in target_ids]

    payload = messages.nudge_payload(task, _optional_member(from_member_id), targets)
    return await dispatcher.dispatch_many(
        [member.id for member in members], payload, exclude_member_id=from_member_id
    )


async def send_test_push(member_id: int, dispatcher: PushDispatcher) -> dict:
    """Send a connectivity test to a member's devices.

    Returns:
        Dispatch result plus the number of subscriptions left afterwards
    """
    member = _require_member(member_id)
    result = await dispatcher.dispatch(member.id, messages.connectivity_payload())
    return {**result.to_dict(), "subscriptions": store.count_subscriptions(member.id)}


def push_status(member_id: int) -> dict:
    """Whether push is configured and how many devices a member has."""
    member = _require_member(member_id)
    return {
        "configured": config.push_configured(),
        "subscriptions": store.count_subscriptions(member.id),
    }


def save_push_subscription(member_id: int, subscription: dict) -> int:
    """Register a member's browser subscription, replacing older ones.

    Raises:
        NotFoundError: unknown member
        ValueError: subscription without an endpoint
    """
    member = _require_member(member_id)
    if not subscription or not subscription.get("endpoint"):
        raise ValueError("Subscription with an endpoint is required")
    subscription_id = store.replace_subscription(member.id, subscription)
    logger.info(f"Saved push subscription {subscription_id} for member {member.id}")
    return subscription_id


def public_key() -> Optional[str]:
    """VAPID public key for the browser's pushManager.subscribe()."""
    return config.VAPID_PUBLIC_KEY or None
