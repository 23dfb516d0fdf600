# =============================================================================
# core/ad_client.py - Read-only Active Directory query adapter
# =============================================================================

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional

from ldap3 import ALL, KERBEROS, NTLM, SASL, SIMPLE, SUBTREE, Connection, Server
from ldap3.core.exceptions import LDAPException

from core.models import EndpointRecord, RecoveryEscrowObject

COMPUTER_FILTER = "(objectClass=computer)"
ESCROW_FILTER = "(objectClass=msFVE-RecoveryInformation)"
COMPUTER_ATTRIBUTES = ['cn', 'operatingSystem', 'lastLogonTimestamp']
ESCROW_ATTRIBUTES = ['whenCreated']

FILETIME_EPOCH = datetime(1601, 1, 1, tzinfo=timezone.utc)
FILETIME_NEVER = 0x7FFFFFFFFFFFFFFF


class DirectoryUnavailableError(ConnectionError):
    """Directory cannot be reached or bound; nothing was queried"""


class DirectoryQueryError(Exception):
    """A search against the directory failed"""


def to_utc_datetime(value: Any) -> Optional[datetime]:
    """Normalize an AD timestamp (datetime, FILETIME or generalized time) to aware UTC"""
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
        # ldap3 formats a zero lastLogonTimestamp as the FILETIME epoch
        return None if value <= FILETIME_EPOCH else value

    if isinstance(value, bytes):
        value = value.decode('utf-8', errors='replace')

    text = str(value).strip()
    if text.lstrip('-').isdigit():
        ticks = int(text)
        if ticks <= 0 or ticks >= FILETIME_NEVER:
            return None
        return FILETIME_EPOCH + timedelta(microseconds=ticks // 10)

    # Generalized time, e.g. 20240601120000.0Z
    text = text.rstrip('Z')
    for fmt in ("%Y%m%d%H%M%S.%f", "%Y%m%d%H%M%S"):
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    raise ValueError(f"Unrecognized directory timestamp: {value!r}")


def _first_value(attributes: dict, name: str, default: Any = None) -> Any:
    value = attributes.get(name, default)
    if isinstance(value, (list, tuple)):
        return value[0] if value else default
    return value if value is not None else default


class ActiveDirectoryClient:
    """
    Read-only Active Directory client for computer and BitLocker escrow lookups.

    Use as a context manager. Worker threads each get their own bound
    connection, so enrichment can fan out without sharing one socket.
    """

    def __init__(self, server_url: str, username: Optional[str] = None,
                 password: Optional[str] = None, base_dn: Optional[str] = None,
                 use_ssl: bool = False, timeout: int = 30, page_size: int = 500):
        self.server_url = server_url
        self.username = username
        self.password = password
        self.base_dn = base_dn
        self.use_ssl = use_ssl
        self.timeout = timeout
        self.page_size = page_size
        self.server: Optional[Server] = None
        self.connection: Optional[Connection] = None
        self.logger = logging.getLogger(__name__)
        self._local = threading.local()
        self._connections: List[Connection] = []
        self._lock = threading.Lock()

    def __enter__(self):
        """Context manager entry"""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit"""
        self.disconnect()

    def connect(self) -> None:
        """Bind to Active Directory, raising DirectoryUnavailableError on failure"""
        try:
            self.server = Server(self.server_url, use_ssl=self.use_ssl,
                                 get_info=ALL, connect_timeout=self.timeout)
            self.connection = self._bind()
        except LDAPException as e:
            self.logger.error(f"Failed to connect to AD at {self.server_url}: {e}")
            raise DirectoryUnavailableError(
                f"Cannot bind to {self.server_url}: {e}. Check AD_SERVER, credentials "
                f"(or a valid Kerberos ticket when AD_USERNAME is unset) and network reachability."
            ) from e

        self._local.connection = self.connection
        if not self.base_dn:
            try:
                self.base_dn = self._default_naming_context()
            except DirectoryUnavailableError:
                self.disconnect()
                raise
        self.logger.info(f"Successfully connected to Active Directory (base DN: {self.base_dn})")

    def disconnect(self) -> None:
        """Close every connection opened by this client"""
        with self._lock:
            connections, self._connections = self._connections, []
        for connection in connections:
            try:
                connection.unbind()
            except LDAPException as e:
                self.logger.debug(f"Ignoring unbind failure: {e}")
        if self.connection:
            self.connection = None
            self._local = threading.local()
            self.logger.info("Disconnected from Active Directory")

    def _bind(self) -> Connection:
        if self.username:
            authentication = NTLM if '\\' in self.username else SIMPLE
            connection = Connection(
                self.server,
                user=self.username,
                password=self.password,
                authentication=authentication,
                receive_timeout=self.timeout,
                read_only=True,
                raise_exceptions=True,
                auto_bind=True
            )
        else:
            connection = Connection(
                self.server,
                authentication=SASL,
                sasl_mechanism=KERBEROS,
                receive_timeout=self.timeout,
                read_only=True,
                raise_exceptions=True,
                auto_bind=True
            )
        with self._lock:
            self._connections.append(connection)
        return connection

    def _default_naming_context(self) -> str:
        info = self.server.info if self.server else None
        contexts = info.other.get('defaultNamingContext') if info and info.other else None
        if not contexts:
            raise DirectoryUnavailableError(
                "BASE_DN is not set and the server did not publish a defaultNamingContext"
            )
        return contexts[0]

    def _thread_connection(self) -> Connection:
        if not self.connection:
            raise DirectoryUnavailableError("Not connected to Active Directory")
        connection = getattr(self._local, 'connection', None)
        if connection is None:
            try:
                connection = self._bind()
            except LDAPException as e:
                raise DirectoryQueryError(f"Worker bind failed: {e}") from e
            self._local.connection = connection
        return connection

    def _search(self, search_base: str, search_filter: str, attributes: List[str]) -> List[dict]:
        connection = self._thread_connection()
        try:
            response = connection.extend.standard.paged_search(
                search_base=search_base,
                search_filter=search_filter,
                search_scope=SUBTREE,
                attributes=attributes,
                paged_size=self.page_size,
                generator=True
            )
            return [entry for entry in response if entry.get('type') == 'searchResEntry']
        except LDAPException as e:
            raise DirectoryQueryError(f"Search {search_filter} under {search_base} failed: {e}") from e

    def list_endpoints(self, scope: Optional[str] = None) -> List[EndpointRecord]:
        """List computer objects under scope (or the whole directory)"""
        search_base = scope or self.base_dn
        entries = self._search(search_base, COMPUTER_FILTER, COMPUTER_ATTRIBUTES)

        endpoints = []
        for entry in entries:
            attributes = entry.get('attributes', {})
            dn = entry['dn']
            endpoints.append(EndpointRecord(
                distinguished_name=dn,
                name=str(_first_value(attributes, 'cn', '') or dn.split(',', 1)[0].partition('=')[2]),
                operating_system=str(_first_value(attributes, 'operatingSystem', '') or ''),
                last_logon=self._last_logon(dn, attributes.get('lastLogonTimestamp'))
            ))

        self.logger.info(f"Found {len(endpoints)} computer objects under {search_base}")
        return endpoints

    def _last_logon(self, dn: str, value: Any) -> Optional[datetime]:
        try:
            return to_utc_datetime(value)
        except ValueError as e:
            self.logger.warning(f"Ignoring unreadable lastLogonTimestamp on {dn}: {e}")
            return None

    def list_escrow_children(self, endpoint_dn: str) -> List[RecoveryEscrowObject]:
        """List BitLocker recovery objects stored beneath a computer object"""
        entries = self._search(endpoint_dn, ESCROW_FILTER, ESCROW_ATTRIBUTES)

        children = []
        for entry in entries:
            raw = entry.get('attributes', {}).get('whenCreated')
            try:
                created = to_utc_datetime(raw)
            except ValueError as e:
                raise DirectoryQueryError(f"Recovery object {entry['dn']} has an unreadable whenCreated: {e}") from e
            # A key without a date cannot be reported, so the whole lookup fails
            if created is None:
                raise DirectoryQueryError(f"Recovery object {entry['dn']} has no whenCreated")
            children.append(RecoveryEscrowObject(parent_dn=endpoint_dn, created=created))

        self.logger.debug(f"Found {len(children)} recovery objects under {endpoint_dn}")
        return children
