"""LDAP-backed directory client."""

from __future__ import annotations

import logging
from typing import Any, Callable

from ldap3 import NONE, SUBTREE, Connection, Server
from ldap3.core.exceptions import LDAPException
from ldap3.utils.conv import escape_filter_chars

from ..config import Settings
from ..domain.account import DirectoryUser
from ..domain.errors import DirectoryLookupError

logger = logging.getLogger(__name__)

ConnectionFactory = Callable[[], Connection]


class LdapDirectoryClient:
    """Resolve usernames against an LDAP tree.

    A connection is opened and unbound for every lookup, so one client can be
    shared by concurrent requests.
    """

    def __init__(self, settings: Settings, connection_factory: ConnectionFactory | None = None) -> None:
        self._settings = settings
        self._connection_factory = connection_factory or self._connect

    def _connect(self) -> Connection:
        server = Server(
            self._settings.ldap_url,
            get_info=NONE,
            connect_timeout=self._settings.ldap_connect_timeout_seconds,
        )
        return Connection(
            server,
            user=self._settings.ldap_bind_dn or None,
            password=self._settings.ldap_bind_password or None,
            auto_bind=True,
            read_only=True,
            receive_timeout=self._settings.ldap_receive_timeout_seconds,
        )

    def user_filter(self, username: str) -> str:
        """Build the search filter matching exactly one directory user."""
        return "(&(objectClass={0})({1}={2}))".format(
            self._settings.ldap_user_object_class,
            self._settings.ldap_username_attribute,
            escape_filter_chars(username),
        )

    def lookup(self, username: str) -> DirectoryUser:
        """Return the directory record for ``username``.

        Raises
        ------
        DirectoryLookupError
            If the server cannot be reached or bound, or no entry matches.
        """
        settings = self._settings
        attributes = [
            settings.ldap_username_attribute,
            settings.ldap_email_attribute,
            settings.ldap_firstname_attribute,
            settings.ldap_lastname_attribute,
        ]
        try:
            conn = self._connection_factory()
        except LDAPException as exc:
            logger.warning("ldap connection to %s failed: %s", settings.ldap_url, exc)
            raise DirectoryLookupError(username, reason="unreachable") from exc

        try:
            conn.search(
                search_base=settings.ldap_base_dn,
                search_filter=self.user_filter(username),
                search_scope=SUBTREE,
                attributes=attributes,
            )
            entries = [item for item in conn.response or [] if item.get("type") == "searchResEntry"]
        except LDAPException as exc:
            logger.warning("ldap search for %s failed: %s", username, exc)
            raise DirectoryLookupError(username, reason="unreachable") from exc
        finally:
            conn.unbind()

        if not entries:
            raise DirectoryLookupError(username, reason="not_found")
        if len(entries) > 1:
            logger.info("ldap returned %d entries for %s, using %s", len(entries), username, entries[0].get("dn"))

        attrs: dict[str, Any] = entries[0].get("attributes") or {}
        return DirectoryUser(
            username=username,
            first_name=_first_value(attrs.get(settings.ldap_firstname_attribute)),
            last_name=_first_value(attrs.get(settings.ldap_lastname_attribute)),
            email=_first_value(attrs.get(settings.ldap_email_attribute)),
        )


def _first_value(value: Any) -> str | None:
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)
