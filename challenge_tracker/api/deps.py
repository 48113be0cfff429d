from fastapi import Request

from challenge_tracker.services.runtime import TrackerRuntime


def get_runtime(request: Request) -> TrackerRuntime:
    return request.app.state.tracker
