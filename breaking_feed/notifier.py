"""Top-video push notifications via Firebase Cloud Messaging."""

from datetime import UTC, datetime

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from firebase_admin import exceptions as firebase_exceptions
from firebase_admin import messaging

from .logging_config import create_execution_logger
from .models import FeedItem, NotificationState

DEFAULT_TOPIC = "breaking_top_video"
CLICK_ACTION = "FLUTTER_NOTIFICATION_CLICK"
STATE_KEY = "last_notified"


class NotificationError(RuntimeError):
    """Raised when the notification step of a cycle fails."""

    def __init__(self, action: str, message: str):
        super().__init__(f"Notification {action} failed: {message}")
        self.action = action


class Notifier:
    """Sends one push notification per cycle for the most viewed new video.

    The last notified video is kept in a singleton DynamoDB record, so
    the same video is not announced again on consecutive cycles. The
    record is only written after a successful send.
    """

    def __init__(
        self,
        table_name: str,
        topic: str = DEFAULT_TOPIC,
        aws_region: str = "us-east-1",
        firebase_app=None,
        execution_id: str | None = None,
    ):
        """Initialize the notifier.

        Args:
            table_name: DynamoDB table holding the notification state
            topic: FCM topic devices subscribe to
            aws_region: AWS region for DynamoDB
            firebase_app: Initialized firebase_admin App (default app if None)
            execution_id: Execution ID for logging context
        """
        self.topic = topic
        self.firebase_app = firebase_app
        self.logger = create_execution_logger("notifier", execution_id)
        self.dynamodb = boto3.resource("dynamodb", region_name=aws_region)
        self.table = self.dynamodb.Table(table_name)

        self.logger.info("Notifier initialized", table_name=table_name, topic=topic)

    @staticmethod
    def select_top_video(new_videos: list[FeedItem]) -> FeedItem | None:
        """Return the most viewed video; the first one wins on ties."""
        if not new_videos:
            return None
        return max(new_videos, key=lambda video: video.views or 0)

    def get_last_notified(self) -> NotificationState | None:
        """Read the last notification state, or None if never notified.

        Raises:
            NotificationError: If the state cannot be read
        """
        try:
            response = self.table.get_item(Key={"notification_id": STATE_KEY})
        except (ClientError, BotoCoreError) as e:
            self.logger.error(f"Error reading notification state: {e}", error=str(e))
            raise NotificationError("state read", str(e)) from e

        item = response.get("Item")
        if not item:
            return None

        notified_at = item.get("notifiedAt")
        return NotificationState(
            video_id=item.get("videoId", ""),
            title=item.get("title", ""),
            notified_at=datetime.fromisoformat(notified_at) if notified_at else None,
        )

    def build_message(self, video: FeedItem) -> messaging.Message:
        """Build the FCM topic message announcing a video."""
        return messaging.Message(
            topic=self.topic,
            data={
                "type": "video",
                "videoId": video.video_id or "",
                "title": video.title or "",
                "image": video.image or "",
                "url": video.url or "",
                "source": video.source or "",
                "click_action": CLICK_ACTION,
            },
            notification=messaging.Notification(
                title=video.title or "Breaking News",
                body=f"From {video.source}" if video.source else "Tap to watch",
                image=video.image or None,
            ),
            android=messaging.AndroidConfig(
                priority="high",
                notification=messaging.AndroidNotification(
                    sound="default",
                    click_action=CLICK_ACTION,
                ),
            ),
            apns=messaging.APNSConfig(
                headers={"apns-priority": "10"},
                payload=messaging.APNSPayload(
                    aps=messaging.Aps(sound="default", category="TOP_VIDEO"),
                ),
            ),
        )

    def notify_top_video(self, new_videos: list[FeedItem]) -> FeedItem | None:
        """Notify subscribers about the most viewed of this cycle's new videos.

        Args:
            new_videos: Videos not previously present in the feed store

        Returns:
            The video that was announced, or None if nothing was sent

        Raises:
            NotificationError: If sending or recording the notification fails
        """
        top = self.select_top_video(new_videos)
        if top is None:
            self.logger.info("No new videos, skipping notification")
            return None

        last = self.get_last_notified()
        if last and last.video_id == top.video_id:
            self.logger.info(
                f"Already notified for {top.video_id}, skipping",
                video_id=top.video_id,
            )
            return None

        message = self.build_message(top)
        try:
            message_id = messaging.send(message, app=self.firebase_app)
        except (firebase_exceptions.FirebaseError, ValueError) as e:
            self.logger.error(
                f"Failed to send notification for {top.video_id}: {e}",
                video_id=top.video_id,
                error=str(e),
            )
            raise NotificationError("send", str(e)) from e

        self.logger.info(
            f"Sent notification for top video: {top.title}",
            video_id=top.video_id,
            item_title=top.title,
            message_id=message_id,
        )

        self._save_state(
            NotificationState(
                video_id=top.video_id or "",
                title=top.title,
                notified_at=datetime.now(UTC),
            )
        )
        return top

    def _save_state(self, state: NotificationState) -> None:
        try:
            self.table.put_item(
                Item={
                    "notification_id": STATE_KEY,
                    "videoId": state.video_id,
                    "title": state.title,
                    "notifiedAt": state.notified_at.isoformat(),
                }
            )
        except (ClientError, BotoCoreError) as e:
            self.logger.error(
                f"Error recording notification state: {e}",
                video_id=state.video_id,
                error=str(e),
            )
            raise NotificationError("state write", str(e)) from e
