import logging

logger = logging.getLogger(__name__)

NEW_PROOF = "new-proof"
PROOF_VERIFIED = "proof-verified"


class SocketIOChannelSender:
    def __init__(self, socketio):
        self._socketio = socketio

    def send(self, channel_id, event_name, payload):
        self._socketio.emit(event_name, payload, to=channel_id)


class NotificationDispatcher:
    """Best-effort push of events to whoever is online.

    Recipients without a registered channel are skipped. There is no
    queueing, retry or acknowledgement; a failing send for one recipient is
    logged and does not stop delivery to the rest.
    """

    def __init__(self, presence, sender):
        self._presence = presence
        self._sender = sender

    def notify_habit_members(self, habit_id, member_ids, event_name, payload):
        delivered = 0
        for member_id in member_ids:
            if self._deliver(member_id, event_name, payload):
                delivered += 1
        logger.debug(f"{event_name} for habit {habit_id} delivered to {delivered}/{len(member_ids)} members")
        return delivered

    def notify_user(self, user_id, event_name, payload):
        return self._deliver(user_id, event_name, payload)

    def _deliver(self, user_id, event_name, payload):
        channel_id = self._presence.lookup(user_id)
        if channel_id is None:
            logger.debug(f"User {user_id} offline, dropping {event_name}")
            return False
        try:
            self._sender.send(channel_id, event_name, payload)
        except Exception:
            logger.exception(f"Failed to push {event_name} to user {user_id}")
            return False
        return True
