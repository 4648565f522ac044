from fastapi import Request

from wikiquiz.services.container import Services


def get_services(request: Request) -> Services:
  """Return the process-wide services built during startup."""
  return request.app.state.services
