import logging

from flask import current_app, request

from . import socketio

logger = logging.getLogger(__name__)

CONNECTED = "connected"
REGISTERED = "registered"
CLOSED = "closed"


class ChannelSession:
    """Lifecycle of one realtime connection: connected -> registered -> closed."""

    def __init__(self, channel_id):
        self.channel_id = channel_id
        self.user_id = None
        self.state = CONNECTED

    def register(self, presence, user_id):
        if self.state == CLOSED:
            logger.warning(f"Ignoring register on closed channel {self.channel_id}")
            return False
        presence.register(user_id, self.channel_id)
        self.user_id = str(user_id)
        self.state = REGISTERED
        return True

    def close(self, presence):
        if self.state == REGISTERED:
            presence.unregister(self.channel_id)
        self.state = CLOSED


class ChannelManager:
    def __init__(self, presence):
        self.presence = presence
        self._sessions = {}

    def open(self, channel_id):
        session = ChannelSession(channel_id)
        self._sessions[channel_id] = session
        logger.debug(f"Channel {channel_id} connected")
        return session

    def register(self, channel_id, user_id):
        session = self._sessions.get(channel_id)
        if session is None:
            session = self.open(channel_id)
        return session.register(self.presence, user_id)

    def close(self, channel_id):
        session = self._sessions.pop(channel_id, None)
        if session is None:
            return
        session.close(self.presence)
        logger.debug(f"Channel {channel_id} closed")

    def get(self, channel_id):
        return self._sessions.get(channel_id)


def _manager():
    return current_app.extensions["habitproof.channels"]


@socketio.on("connect")
def handle_connect(auth=None):
    _manager().open(request.sid)


@socketio.on("register")
def handle_register(user_id):
    if user_id is None or str(user_id).strip() == "":
        logger.warning(f"Channel {request.sid} sent register without a user id")
        return
    _manager().register(request.sid, user_id)


@socketio.on("disconnect")
def handle_disconnect(reason=None):
    _manager().close(request.sid)
