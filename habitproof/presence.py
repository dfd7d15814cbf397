import logging
import threading

logger = logging.getLogger(__name__)


class PresenceDirectory:
    """Volatile map from user id to the one channel currently open for them.

    Registration is last-write-wins. A channel can be mapped to at most one
    user, and unregistering a channel only removes the user's entry while
    that channel is still the user's current one. Nothing survives a restart.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._channel_by_user = {}
        self._user_by_channel = {}

    def register(self, user_id, channel_id):
        user_key = str(user_id)
        with self._lock:
            previous_owner = self._user_by_channel.get(channel_id)
            if previous_owner is not None and previous_owner != user_key:
                if self._channel_by_user.get(previous_owner) == channel_id:
                    del self._channel_by_user[previous_owner]
            previous_channel = self._channel_by_user.get(user_key)
            if previous_channel is not None and previous_channel != channel_id:
                self._user_by_channel.pop(previous_channel, None)
            self._channel_by_user[user_key] = channel_id
            self._user_by_channel[channel_id] = user_key
        logger.info(f"User {user_key} registered on channel {channel_id}")

    def unregister(self, channel_id):
        with self._lock:
            user_key = self._user_by_channel.pop(channel_id, None)
            if user_key is None:
                return None
            if self._channel_by_user.get(user_key) == channel_id:
                del self._channel_by_user[user_key]
        logger.info(f"User {user_key} unregistered from channel {channel_id}")
        return user_key

    def lookup(self, user_id):
        with self._lock:
            return self._channel_by_user.get(str(user_id))

    def __len__(self):
        with self._lock:
            return len(self._channel_by_user)
