from fastapi import Request

from release_notifier.startup import Services


def get_services(request: Request) -> Services:
    return request.app.state.services
