import io
import os


def media_upload(data=b"\x89PNG fake bytes", filename="proof.png", content_type="image/png"):
    return {"media": (io.BytesIO(data), filename, content_type)}


def events_named(socket_client, name):
    return [event["args"][0] for event in socket_client.get_received() if event["name"] == name]


def leftover_files(folder):
    if not os.path.isdir(folder):
        return []
    return os.listdir(folder)
