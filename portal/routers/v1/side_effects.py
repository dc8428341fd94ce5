"""Post-commit side effects shared by the v1 routers."""


from fastapi import BackgroundTasks, Request
from sqlalchemy.ext.asyncio import AsyncSession

from portal.services.artifacts import release_artifacts
from portal.services.notifications import NotificationEvent, dispatch_events
from portal.services.submission import Outcome


async def commit_and_schedule(
    request: Request,
    background: BackgroundTasks,
    session: AsyncSession,
    outcome: Outcome | None = None,
    *,
    events: list[NotificationEvent] | None = None,
) -> None:
    """Commit the unit of work, then queue notifications and artifact removal.

    Nothing is queued unless the commit succeeded.
    """
    await session.commit()
    pending = list(events or [])
    released: list[str] = []
    if outcome is not None:
        pending.extend(outcome.events)
        released.extend(outcome.released_artifacts)
    if pending:
        background.add_task(dispatch_events, request.app.state.dispatcher, pending)
    if released:
        background.add_task(release_artifacts, request.app.state.artifact_store, released)
