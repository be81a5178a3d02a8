"""Connection URL derivation for managed PostgreSQL resources."""

from urllib.parse import quote

from pgharbor.config import settings

VERIFYING_SSL_MODES = frozenset({"verify-ca", "verify-full"})


def _userinfo(user: str, password: str) -> str:
    # RFC 3986 encoding; "@", ":" and "/" in credentials would otherwise split the URL
    return f"{quote(user, safe='')}:{quote(password, safe='')}"


def _ssl_query(resource) -> str:
    if not resource.enable_ssl:
        return ""
    query = f"?sslmode={resource.ssl_mode}"
    if resource.ssl_mode in VERIFYING_SSL_MODES:
        query += f"&sslrootcert={settings.postgres.ca_cert_path}"
    return query


def _build_url(resource, host: str, port: int) -> str:
    userinfo = _userinfo(resource.postgres_user, resource.postgres_password)
    return (
        f"postgres://{userinfo}@{host}:{port}/{resource.postgres_db}"
        f"{_ssl_query(resource)}"
    )


def build_internal_url(resource) -> str:
    """URL usable from containers on the platform network.

    The resource uuid is the container's hostname on that network.
    """
    return _build_url(resource, resource.uuid, settings.postgres.internal_port)


def build_external_url(resource, server_ip: str) -> str | None:
    """URL usable from outside the platform, or None when not published."""
    if not (resource.is_public and resource.public_port):
        return None
    return _build_url(resource, server_ip, resource.public_port)
