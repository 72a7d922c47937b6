"""Escalation notification dispatch.

Delivers notification requests produced by the evaluator through one
sender per channel. Delivery is fire-and-forget: a failing sender is
logged and skipped, and never rolls back the escalation transition that
produced the request. Retries and backoff belong to the channel senders.
"""

from collections.abc import Mapping
from typing import Protocol

from compliance_escalation.core.escalation.enums import Channel, NotificationStatus
from compliance_escalation.core.escalation.models import (
    AssigneeRef,
    NotificationRequest,
)
from compliance_escalation.logging_config import get_logger

logger = get_logger(__name__)


class NotificationDeliveryError(Exception):
    """Raised by a channel sender when a message could not be delivered."""


class ChannelSender(Protocol):
    """Delivers one notification to one assignee over a single channel."""

    async def send(
        self,
        assignee: AssigneeRef,
        notification: NotificationRequest,
    ) -> None: ...


class LoggingSender:
    """Sender that records deliveries in the structured log.

    Used for channels that have no real integration configured.
    """

    def __init__(self, channel: Channel) -> None:
        self.channel = channel

    async def send(
        self,
        assignee: AssigneeRef,
        notification: NotificationRequest,
    ) -> None:
        logger.info(
            "Escalation notification delivered",
            channel=self.channel.value,
            assignee_id=assignee.id,
            assignee_email=assignee.email,
            escalation_id=notification.escalation_id,
            escalation_level=notification.level,
        )


def default_senders() -> dict[Channel, ChannelSender]:
    return {channel: LoggingSender(channel) for channel in Channel}


class NotificationDispatcher:
    """Fans a notification request out over its channels and assignees."""

    def __init__(self, senders: Mapping[Channel, ChannelSender] | None = None) -> None:
        self._senders: dict[Channel, ChannelSender] = dict(
            default_senders() if senders is None else senders
        )

    def register(self, channel: Channel, sender: ChannelSender) -> None:
        self._senders[channel] = sender

    async def dispatch(self, notification: NotificationRequest) -> NotificationStatus:
        """Deliver ``notification``; never raises.

        Returns:
            ``sent`` if at least one delivery succeeded, otherwise ``failed``.
        """
        if not notification.assignees:
            logger.warning(
                "No assignees to notify for escalation",
                escalation_id=notification.escalation_id,
                escalation_level=notification.level,
            )
            return NotificationStatus.failed

        success_count = 0
        failure_count = 0
        for channel in notification.channels:
            sender = self._senders.get(channel)
            if sender is None:
                logger.warning(
                    "No sender configured for channel, skipping",
                    channel=channel.value,
                    escalation_id=notification.escalation_id,
                )
                continue

            for assignee in notification.assignees:
                try:
                    await sender.send(assignee, notification)
                    success_count += 1
                except NotificationDeliveryError:
                    failure_count += 1
                    logger.warning(
                        "Failed to deliver escalation notification",
                        channel=channel.value,
                        assignee_id=assignee.id,
                        escalation_id=notification.escalation_id,
                        exc_info=True,
                    )
                except Exception:
                    failure_count += 1
                    logger.exception(
                        "Unexpected error delivering escalation notification",
                        channel=channel.value,
                        assignee_id=assignee.id,
                        escalation_id=notification.escalation_id,
                    )

        status = NotificationStatus.sent if success_count > 0 else NotificationStatus.failed
        logger.info(
            "Escalation notification dispatched",
            escalation_id=notification.escalation_id,
            escalation_level=notification.level,
            deliveries=success_count,
            failures=failure_count,
            status=status.value,
        )
        return status
