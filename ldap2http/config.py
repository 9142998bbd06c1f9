import argparse
from collections import namedtuple

from ldap2http import __version__


class ConfigurationError(Exception):
    """A required setting is missing or unusable; the gateway can't start."""


class Identity(namedtuple('Identity', ['dn', 'password'])):
    """
    The one DN/password pair allowed to bind.
    Compared verbatim, no DN normalization or case folding.
    """
    __slots__ = ()

    def matches(self, dn, password):
        return dn == self.dn and password == self.password


GatewayConfig = namedtuple(
    'GatewayConfig', ['backend_url', 'port', 'identity', 'debug'])

# command line option -> environment fallback
ENVIRONMENT = {
    'url': 'LDAP2HTTP_BACKEND_URL',
    'port': 'LDAP2HTTP_PORT',
    'bind': 'LDAP2HTTP_BIND_DN',
    'password': 'LDAP2HTTP_BIND_PASSWORD',
}


def build_parser():
    parser = argparse.ArgumentParser(
        prog='ldap2http',
        description="LDAP server that only performs searches, "
                    "which are redirected to an HTTP backend.")
    parser.add_argument('-v', '--version', action='version',
                        version='%(prog)s ' + __version__)
    parser.add_argument('-u', '--url',
                        help='url for the http backend. May also use '
                             'LDAP2HTTP_BACKEND_URL environment variable')
    parser.add_argument('-p', '--port',
                        help='LDAP listening port. May also use '
                             'LDAP2HTTP_PORT environment variable')
    parser.add_argument('-b', '--bind', metavar='BIND_DN',
                        help='bind dn. May also use '
                             'LDAP2HTTP_BIND_DN environment variable')
    parser.add_argument('-w', '--password', metavar='BIND_PASSWORD',
                        help='bind password. May also use '
                             'LDAP2HTTP_BIND_PASSWORD environment variable')
    parser.add_argument('-d', '--debug', action='store_true',
                        help='debug mode')
    return parser


def _setting(args, environ, name, description):
    value = getattr(args, name, None)
    if not value:
        value = environ.get(ENVIRONMENT[name])
    if not value:
        raise ConfigurationError("{} not specified".format(description))
    return value


def parse_port(value):
    try:
        port = int(value)
    except (TypeError, ValueError):
        raise ConfigurationError("invalid port {!r}".format(value))
    if not 0 < port < 65536:
        raise ConfigurationError("port {} out of range".format(port))
    return port


def resolve_config(args, environ):
    """
    Merge parsed command line arguments with the environment.
    Command line values take precedence.
    """
    backend_url = _setting(args, environ, 'url', 'url')
    port = parse_port(_setting(args, environ, 'port', 'port'))
    bind_dn = _setting(args, environ, 'bind', 'bind dn')
    password = _setting(args, environ, 'password', 'bind password')
    return GatewayConfig(backend_url=backend_url,
                         port=port,
                         identity=Identity(bind_dn, password),
                         debug=bool(getattr(args, 'debug', False)))
