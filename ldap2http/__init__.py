"""Read-only LDAP gateway that answers searches from an HTTP JSON backend"""
__version__ = "0.0.1"

__title__ = "ldap2http"
__description__ = "LDAP server that redirects searches to an HTTP backend"
