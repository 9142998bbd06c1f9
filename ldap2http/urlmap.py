"""
Turn an LDAP search (base DN, filter, scope) into the backend URL.

The search base is appended to the backend URL with its RDNs reversed
and joined by slashes, so ou=math,dc=example,dc=com becomes
/dc=com/dc=example/ou=math. The filter and scope travel as the "filter"
and "scope" query string parameters.
"""
from urllib.parse import quote

from ldaptor.protocols import pureldap
from ldaptor.protocols.ldap import distinguishedname, ldaperrors

SCOPES = {
    pureldap.LDAP_SCOPE_baseObject: 'base',
    pureldap.LDAP_SCOPE_singleLevel: 'one',
    pureldap.LDAP_SCOPE_wholeSubtree: 'sub',
}

# characters left alone inside a path segment
RDN_SAFE = '=+,\\@:'


def _text(value):
    if isinstance(value, bytes):
        return value.decode('utf-8')
    return value


def dn_components(dn):
    """RDNs of dn as strings, leaf first."""
    try:
        dn = distinguishedname.DistinguishedName(_text(dn))
    except distinguishedname.InvalidRelativeDistinguishedName as e:
        raise ldaperrors.LDAPInvalidDNSyntax(str(e))
    except UnicodeDecodeError:
        raise ldaperrors.LDAPInvalidDNSyntax('DN is not valid UTF-8')
    return [rdn.getText() for rdn in dn.split()]


def dn_path(dn):
    components = dn_components(dn)
    components.reverse()
    return '/'.join(quote(c, safe=RDN_SAFE) for c in components)


def _value(ldapstring):
    value = ldapstring.value
    if isinstance(value, bytes):
        try:
            value = value.decode('utf-8')
        except UnicodeDecodeError:
            # binary assertion value, every byte as \xx
            return ''.join('\\%02x' % b for b in value)
    return pureldap.escape(value)


def filter_text(ldapfilter):
    """
    Render a filter as its RFC 4515 string.
    Filters decoded from the wire carry bytes, so the asText() of
    the filter classes can't be used on them directly.
    """
    if isinstance(ldapfilter, pureldap.LDAPFilter_and):
        return '(&' + ''.join(filter_text(f) for f in ldapfilter) + ')'

    elif isinstance(ldapfilter, pureldap.LDAPFilter_or):
        return '(|' + ''.join(filter_text(f) for f in ldapfilter) + ')'

    elif isinstance(ldapfilter, pureldap.LDAPFilter_not):
        return '(!' + filter_text(ldapfilter.value) + ')'

    elif isinstance(ldapfilter, pureldap.LDAPFilter_present):
        return '(%s=*)' % _text(ldapfilter.value)

    elif isinstance(ldapfilter, pureldap.LDAPFilter_substrings):
        initial = final = ''
        middle = []
        for s in ldapfilter.substrings:
            if isinstance(s, pureldap.LDAPFilter_substrings_initial):
                initial = _value(s)
            elif isinstance(s, pureldap.LDAPFilter_substrings_final):
                final = _value(s)
            else:
                middle.append(_value(s))
        return '(%s=%s)' % (_text(ldapfilter.type),
                            '*'.join([initial] + middle + [final]))

    elif isinstance(ldapfilter, pureldap.LDAPFilter_extensibleMatch):
        text = _text(ldapfilter.type.value) if ldapfilter.type else ''
        if ldapfilter.dnAttributes and ldapfilter.dnAttributes.value:
            text += ':dn'
        if ldapfilter.matchingRule:
            text += ':' + _text(ldapfilter.matchingRule.value)
        return '(%s:=%s)' % (text, _value(ldapfilter.matchValue))

    for klass, operator in ((pureldap.LDAPFilter_equalityMatch, '='),
                            (pureldap.LDAPFilter_greaterOrEqual, '>='),
                            (pureldap.LDAPFilter_lessOrEqual, '<='),
                            (pureldap.LDAPFilter_approxMatch, '~=')):
        if isinstance(ldapfilter, klass):
            return '(%s%s%s)' % (_text(ldapfilter.attributeDesc.value),
                                 operator,
                                 _value(ldapfilter.assertionValue))

    raise ldaperrors.LDAPProtocolError(
        'Unsupported filter {!r}'.format(ldapfilter))


def scope_token(scope):
    if scope is None:
        return None
    try:
        return SCOPES[scope]
    except KeyError:
        raise ldaperrors.LDAPProtocolError('Unknown scope {!r}'.format(scope))


def search_url(base_url, dn, filter=None, scope=None):
    """
    Build the backend URL for one search.

    filter is the string form of the search filter, scope the ldaptor
    scope constant; either may be None to leave its parameter out.
    """
    query = []
    if filter is not None:
        query.append('filter=' + quote(filter, safe=''))
    token = scope_token(scope)
    if token is not None:
        query.append('scope=' + token)
    url = base_url.rstrip('/') + '/' + dn_path(dn)
    if query:
        url += '?' + '&'.join(query)
    return url
