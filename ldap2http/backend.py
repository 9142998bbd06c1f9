import json

from twisted.internet import defer
from twisted.web import error as weberror
from twisted.web.client import (
    Agent, PartialDownloadError, RedirectAgent, ResponseFailed, readBody)
from twisted.web.http_headers import Headers


class BackendError(Exception):
    """The backend could not answer a search."""

    def __init__(self, url, reason):
        Exception.__init__(self, url, reason)
        self.url = url
        self.reason = reason

    def __str__(self):
        return '{}: {}'.format(self.url, self.reason)


class BackendNotFound(BackendError):
    """The backend answered with a status below 500."""


class BackendUnavailable(BackendError):
    """Status 500 and above, or no HTTP answer at all."""


class MalformedBackendResponse(BackendUnavailable):
    """The body is not a JSON array of objects."""


def classify_status(url, code, phrase=None):
    """
    Pick the error for a failed backend request.
    Everything below 500, 4xx and leftover 3xx alike, counts as not found.
    """
    reason = '{} {}'.format(code, phrase or '').strip()
    if code is not None and code < 500:
        return BackendNotFound(url, reason)
    return BackendUnavailable(url, reason)


def parse_entries(url, body):
    try:
        entries = json.loads(body)
    except ValueError as e:
        raise MalformedBackendResponse(url, 'invalid JSON: {}'.format(e))
    if not isinstance(entries, list):
        raise MalformedBackendResponse(
            url, 'expected a JSON array, got {}'.format(
                type(entries).__name__))
    for entry in entries:
        if not isinstance(entry, dict):
            raise MalformedBackendResponse(
                url, 'expected JSON objects in the array, got {}'.format(
                    type(entry).__name__))
    return entries


class HttpBackend():
    """
    Runs searches as HTTP GETs against the JSON backend.

    One request per search and never a retry: a failing backend is
    reported to the LDAP client straight away.
    """
    headers = Headers({b'Accept': [b'application/json']})

    def __init__(self, agent):
        self.agent = agent

    @classmethod
    def fromReactor(cls, reactor):
        return cls(RedirectAgent(Agent(reactor)))

    @defer.inlineCallbacks
    def search(self, url):
        """Fires with the list of entry mappings, or a BackendError."""
        try:
            response = yield self.agent.request(
                b'GET', url.encode('utf-8'), self.headers)
        except ResponseFailed as e:
            raise _response_failed(url, e)
        except Exception as e:
            raise BackendUnavailable(url, repr(e))

        if not 200 <= response.code < 300:
            raise classify_status(url, response.code, _text(response.phrase))

        try:
            body = yield readBody(response)
        except PartialDownloadError as e:
            # body delimited by the connection closing, it is complete
            body = e.response
        except Exception as e:
            raise MalformedBackendResponse(url, repr(e))
        return parse_entries(url, body)


def _response_failed(url, e):
    # a redirect RedirectAgent could not follow still has its status
    for reason in e.reasons:
        if reason.check(weberror.Error):
            return classify_status(url, int(reason.value.status),
                                   _text(reason.value.message))
    return BackendUnavailable(url, repr(e))


def _text(value):
    if isinstance(value, bytes):
        return value.decode('utf-8', 'replace')
    return value
