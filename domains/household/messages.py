"""Push payloads shown on members' devices.

Copy is German (households are de-CH); `data.type` lets the service worker
route a click.
"""

from datetime import date
from typing import Optional

from .types import Member, Task

APP_TITLE = "Familienplan"


def _payload(title: str, body: str, **data) -> dict:
    return {"title": title, "body": body, "data": data}


def morning_payload(member: Member, tasks: list[Task], today: date) -> dict:
    """Aggregated "what's due today" push."""
    if len(tasks) == 1:
        body = f"Guten Morgen {member.name}, schau dir deine Aufgabe für heute an: {tasks[0].title}"
    else:
        body = (
            f"Guten Morgen {member.name}, schau dir an, was heute ansteht. "
            f"Du hast {len(tasks)} Aufgaben."
        )
    return _payload(f"{APP_TITLE} – Heute", body, type="daily", date=today.isoformat())


def evening_payload(member: Member, tasks: list[Task], today: date) -> dict:
    """20:00 check-in for the primary assignee."""
    if len(tasks) == 1:
        body = f"Hey {member.name}, ist die Aufgabe „{tasks[0].title}“ bis 21:00 erledigt?"
    else:
        body = (
            f"Hey {member.name}, hast du deine Aufgaben für heute erledigt? "
            f"Du hast noch {len(tasks)} offene."
        )
    return _payload(f"{APP_TITLE} – 20:00 Erinnerung", body, type="evening", date=today.isoformat())


def penalty_payload(task: Task, secondary: Optional[Member], today: date) -> dict:
    """21:00 notice that a task is still open and a penalty is owed."""
    owed_to = f" an {secondary.name}" if secondary else ""
    body = f"Aufgabe „{task.title}“ ist nicht erledigt. Du schuldest deine Strafe{owed_to}."
    return _payload(
        f"{APP_TITLE} – 21:00 Strafe", body, type="penalty", taskId=task.id, date=today.isoformat()
    )


def transfer_payload(task: Task, sender: Optional[Member], recipient: Optional[Member]) -> dict:
    sender_name = sender.name if sender else "Jemand"
    recipient_name = recipient.name if recipient else "jemanden"
    body = f"{sender_name} hat die Aufgabe „{task.title}“ an {recipient_name} übertragen."
    return _payload("Aufgabe übertragen", body, type="transfer", taskId=task.id)


def nudge_payload(task: Task, sender: Optional[Member], targets: list[Member]) -> dict:
    sender_name = sender.name if sender else "Jemand"
    if targets:
        names = " & ".join(member.name for member in targets)
        body = f"{sender_name} hat {names} an „{task.title}“ erinnert."
    else:
        body = f"{sender_name} hat an „{task.title}“ erinnert."
    return _payload("Erinnerung", body, type="nudge", taskId=task.id)


def connectivity_payload() -> dict:
    return {"title": APP_TITLE, "body": "Push-Benachrichtigungen sind aktiv."}
