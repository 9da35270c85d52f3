"""ASGI entrypoint for the remote recorder API."""

from remote_recorder.api.app import create_app
from remote_recorder.containers import build_container

app = create_app(build_container())
