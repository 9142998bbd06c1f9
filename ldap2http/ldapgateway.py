import json

from ldaptor.protocols import pureldap
from ldaptor.protocols.ldap import ldaperrors
from ldaptor.protocols.ldap.ldapserver import LDAPServer
from twisted.python import log

from ldap2http.backend import BackendNotFound, BackendError
from ldap2http.urlmap import filter_text, search_url


def _text(value):
    # undecodable bytes survive as surrogates and simply never match
    if isinstance(value, bytes):
        return value.decode('utf-8', 'surrogateescape')
    return value


def attribute_values(value):
    # LDAP values are octet strings; JSON gives us scalars or lists of them
    if value is None:
        return []
    if not isinstance(value, list):
        value = [value]
    values = []
    for v in value:
        if v is None:
            continue
        elif isinstance(v, bool):
            values.append('TRUE' if v else 'FALSE')
        elif isinstance(v, str):
            values.append(v)
        elif isinstance(v, (dict, list)):
            values.append(json.dumps(v))
        else:
            values.append(str(v))
    return values


def entry_to_search_result(entry):
    """
    One backend JSON object becomes one search result entry.

    Either a flat attribute mapping, or the {"dn": ..., "attributes": {...}}
    envelope an ldapjs style backend sends. Attributes are passed through
    in their original order, the backend already applied the filter.
    """
    if isinstance(entry.get('dn'), str) and \
       isinstance(entry.get('attributes'), dict):
        objectName, attributes = entry['dn'], entry['attributes']
    else:
        objectName, attributes = '', entry

    return pureldap.LDAPSearchResultEntry(
        objectName=objectName,
        attributes=[(key, attribute_values(value))
                    for key, value in attributes.items()])


class LDAPHttpGateway(LDAPServer):
    """
    LDAP server that only performs searches, answering each one with
    a GET against the HTTP backend.

    identity, backend and backend_url are set on every instance when the
    factory builds it.
    """
    identity = None
    backend = None
    backend_url = None

    def authenticate(self, dn, credentials):
        """
        Check a simple bind against the configured identity.
        DN and password must both match exactly; the client is not told which
        one was wrong.
        """
        dn = _text(dn)
        if isinstance(credentials, tuple) or \
           not self.identity.matches(dn, _text(credentials)):
            self.boundUser = None
            if self.debug:
                log.msg("bad bind with {}".format(dn))
            raise ldaperrors.LDAPInvalidCredentials()
        self.boundUser = dn

    def handle_LDAPBindRequest(self, request, controls, reply):
        if request.version != 3:
            raise ldaperrors.LDAPProtocolError(
                'Version %u not supported' % request.version)

        self.checkControls(controls)
        self.authenticate(request.dn, request.auth)
        return pureldap.LDAPBindResponse(
            resultCode=ldaperrors.Success.resultCode)

    def handle_LDAPSearchRequest(self, request, controls, reply):
        self.checkControls(controls)

        if self.boundUser is None:
            raise ldaperrors.LDAPInsufficientAccessRights(
                'Bind required before search')

        ldapfilter = None
        if request.filter is not None:
            ldapfilter = filter_text(request.filter)
        url = search_url(self.backend_url, request.baseObject,
                         filter=ldapfilter, scope=request.scope)
        if self.debug:
            log.msg("invoking backend with {}".format(url))

        d = self.backend.search(url)
        d.addCallback(self._cbSearchGotEntries, reply)
        d.addErrback(self._cbSearchBackendError)
        return d

    def _cbSearchGotEntries(self, entries, reply):
        # Not taking the filter into account, the backend must do it.
        # All attributes are returned.
        for entry in entries:
            if self.debug:
                log.msg("entry: {!r}".format(entry))
            reply(entry_to_search_result(entry))

        if self.debug:
            log.msg("response sent")
        return pureldap.LDAPSearchResultDone(
            resultCode=ldaperrors.Success.resultCode)

    def _cbSearchBackendError(self, reason):
        reason.trap(BackendError)
        if reason.check(BackendNotFound):
            log.msg("not found: {}".format(reason.value))
            raise ldaperrors.LDAPNoSuchObject()
        log.msg("backend unavailable: {}".format(reason.value))
        raise ldaperrors.LDAPUnavailable()

    def _readOnly(self, request, controls, reply):
        raise ldaperrors.LDAPUnwillingToPerform(
            '{} not supported, this gateway only searches'.format(
                request.__class__.__name__))

    handle_LDAPCompareRequest = _readOnly
    handle_LDAPAddRequest = _readOnly
    handle_LDAPDelRequest = _readOnly
    handle_LDAPModifyRequest = _readOnly
    handle_LDAPModifyDNRequest = _readOnly
    handle_LDAPExtendedRequest = _readOnly
