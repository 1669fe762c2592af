"""Notification module for reelgrab using Apprise."""

import apprise
from humanfriendly import format_size

from . import logger


class Notifier:
    """Push notification handler using Apprise.

    Delivery is best effort: every ``send_*`` method returns a bool and
    never raises, so callers can fire and forget.
    """

    def __init__(self, urls: list[str]):
        """Initialize the notifier with Apprise URLs.

        Args:
            urls: List of Apprise notification URLs.

        Raises:
            ValueError: If any URL is invalid.
        """
        self.apprise = apprise.Apprise()

        for url in urls:
            if not self.apprise.add(url):
                raise ValueError(
                    f"Invalid notification URL: {logger.redact_url_password(url)}"
                )
            logger.debug("Added notification URL: %s", logger.redact_url_password(url))

        logger.info(
            "Notifier initialized with %d notification service(s)", len(self.apprise)
        )

    async def notify(
        self,
        title: str,
        body: str,
        notify_type: apprise.NotifyType = apprise.NotifyType.INFO,
    ) -> bool:
        """Send notification to all configured services.

        Args:
            title: Notification title.
            body: Notification body/message.
            notify_type: Type of notification (INFO, SUCCESS, WARNING, FAILURE).

        Returns:
            True if at least one notification was sent successfully.
        """
        try:
            result = await self.apprise.async_notify(
                title=title,
                body=body,
                notify_type=notify_type,
            )
            if result:
                logger.debug("Notification sent: %s", title)
            else:
                logger.warning("Failed to send notification: %s", title)
            return bool(result)
        except Exception as e:
            logger.error("Error sending notification: %s", e)
            return False

    async def send_test(self) -> bool:
        return await self.notify(
            title="reelgrab",
            body="Test notification - reelgrab is configured correctly!",
            notify_type=apprise.NotifyType.INFO,
        )

    async def send_grab(
        self, title: str, release_title: str, client_name: str, size: int = 0
    ) -> bool:
        """Send notification for a release handed to a download client.

        Args:
            title: Wanted item title.
            release_title: Raw title of the grabbed release.
            client_name: Download client that received it.
            size: Release size in bytes, 0 if the indexer did not report one.
        """
        body = f"{title}\nRelease: {release_title}\nClient: {client_name}"
        if size:
            body += f"\nSize: {format_size(size)}"
        return await self.notify(
            title="reelgrab - Release Grabbed",
            body=body,
            notify_type=apprise.NotifyType.INFO,
        )

    async def send_import_success(self, title: str, destination: str) -> bool:
        return await self.notify(
            title="reelgrab - Imported",
            body=f"{title}\nImported to: {destination}",
            notify_type=apprise.NotifyType.SUCCESS,
        )

    async def send_import_failure(self, title: str, reason: str, unmatched: bool = False) -> bool:
        """Send notification for a failed or unmatched import.

        Args:
            title: Release or wanted item title.
            reason: Why the import did not complete.
            unmatched: The files were quarantined rather than left in place.
        """
        heading = "Unmatched" if unmatched else "Import Failed"
        return await self.notify(
            title=f"reelgrab - {heading}",
            body=f"{title}\nReason: {reason}",
            notify_type=apprise.NotifyType.WARNING if unmatched else apprise.NotifyType.FAILURE,
        )

    async def send_download_failure(self, title: str, reason: str) -> bool:
        return await self.notify(
            title="reelgrab - Download Failed",
            body=f"{title}\nReason: {reason}",
            notify_type=apprise.NotifyType.FAILURE,
        )


# Global notifier instance
_notifier_instance: Notifier | None = None


def init_notifier(urls: list[str]) -> None:
    """Initialize global notifier instance.

    Should be called once during application startup.

    Raises:
        RuntimeError: If already initialized.
        ValueError: If any URL is invalid.
    """
    global _notifier_instance
    if _notifier_instance is not None:
        raise RuntimeError("Notifier already initialized.")

    _notifier_instance = Notifier(urls)


def get_notifier() -> Notifier:
    """Get global notifier instance.

    Must be called after init_notifier() has been invoked and only when
    notification URLs are configured.

    Raises:
        RuntimeError: If notifier has not been initialized.
    """
    if _notifier_instance is None:
        raise RuntimeError("Notifier not initialized. Call init_notifier() first.")
    return _notifier_instance
