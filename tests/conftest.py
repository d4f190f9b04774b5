import contextlib

import pytest

from fakes import SiteSession, session_factory
from mailcrawl.errors import SessionError


@pytest.fixture()
def make_site():
    """Return a builder producing fetch-session factories over fake pages."""

    def build(pages, **kwargs):
        return session_factory(SiteSession(pages, **kwargs))

    return build


@pytest.fixture()
def broken_capability():
    """A fetch-session factory whose capability never starts."""

    @contextlib.asynccontextmanager
    async def factory(_settings):
        raise SessionError("could not start browser: no display")
        yield  # pragma: no cover

    return factory
