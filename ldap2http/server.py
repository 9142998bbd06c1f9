#! /usr/bin/env python
"""
LDAP server that only performs searches, which are redirected to an
HTTP backend.

    ldap2http --url http://localhost:8010 --port 1389 \\
        --bind uid=root --password secret --debug

    ldapsearch -H ldap://localhost:1389 -x -D uid=root -w secret \\
        -b ou=mathematicians,dc=example,dc=com -s sub 'objectclass=*'
"""
import os
import sys

from twisted.internet import error, protocol
from twisted.internet.protocol import Factory
from twisted.python import log

from ldap2http.backend import HttpBackend
from ldap2http.config import ConfigurationError, build_parser, resolve_config
from ldap2http.ldapgateway import LDAPHttpGateway


def make_factory(config, backend):
    factory = protocol.ServerFactory()

    def buildProtocol():
        proto = LDAPHttpGateway()
        proto.identity = config.identity
        proto.backend = backend
        proto.backend_url = config.backend_url
        proto.debug = config.debug
        return proto

    factory.protocol = buildProtocol
    return factory


def main(argv=None, environ=None, reactor=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if environ is None:
        environ = os.environ
    try:
        config = resolve_config(args, environ)
    except ConfigurationError as e:
        parser.error(str(e))

    if reactor is None:
        from twisted.internet import reactor

    log.startLogging(sys.stdout)
    Factory.noisy = False
    factory = make_factory(config, HttpBackend.fromReactor(reactor))
    try:
        reactor.listenTCP(config.port, factory)
    except error.CannotListenError:
        log.err(None, "LDAP server cannot listen in port {}".format(
            config.port))
        sys.exit(1)
    log.msg("LDAP server listening in port {}".format(config.port))
    reactor.run()


if __name__ == '__main__':
    main()
