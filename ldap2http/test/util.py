"""Fakes for driving the gateway and the backend without a network."""
from twisted.internet import defer
from twisted.python import failure
from twisted.web.client import ResponseDone

from ldaptor.protocols import pureldap, pureber


class BackendTestDriver:
    """
    Stands in for HttpBackend.

    Pass one result per expected search: a list of entry mappings, or
    an exception instance to fail that search with. Searched URLs are
    kept in self.urls.
    """

    def __init__(self, *responses):
        self.urls = []
        self.responses = list(responses)

    def search(self, url):
        self.urls.append(url)
        assert self.responses, 'Ran out of responses'
        r = self.responses.pop(0)
        if isinstance(r, Exception):
            return defer.fail(r)
        return defer.succeed(r)


class PendingBackendTestDriver:
    """
    Stands in for HttpBackend, leaving every search unanswered.

    self.pending holds a Deferred per search, in arrival order; the
    test fires them in whatever order it likes.
    """

    def __init__(self):
        self.urls = []
        self.pending = []

    def search(self, url):
        self.urls.append(url)
        d = defer.Deferred()
        self.pending.append(d)
        return d


class FakeResponse:
    def __init__(self, code, body=b'', phrase=b'', lost=None):
        self.code = code
        self.phrase = phrase
        self.body = body
        self.lost = lost

    def deliverBody(self, protocol):
        protocol.dataReceived(self.body)
        protocol.connectionLost(failure.Failure(self.lost or ResponseDone()))


class AgentTestDriver:
    """An IAgent answering every request with the next canned response."""

    def __init__(self, *responses):
        self.requests = []
        self.responses = list(responses)

    def request(self, method, uri, headers=None, bodyProducer=None):
        self.requests.append((method, uri, headers))
        r = self.responses.pop(0)
        if isinstance(r, Exception):
            return defer.fail(r)
        return defer.succeed(r)


berdecoder = pureldap.LDAPBERDecoderContext_TopLevel(
    inherit=pureldap.LDAPBERDecoderContext_LDAPMessage(
        fallback=pureldap.LDAPBERDecoderContext(
            fallback=pureber.BERDecoderContext()),
        inherit=pureldap.LDAPBERDecoderContext(
            fallback=pureber.BERDecoderContext())))


def decodeMessages(buffer):
    """All LDAPMessages written to a transport, in order."""
    messages = []
    while 1:
        o, bytes = pureber.berDecodeObject(berdecoder, buffer)
        buffer = buffer[bytes:]
        if not o:
            break
        messages.append(o)
    return messages
