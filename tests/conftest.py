from datetime import datetime, timezone

import pytest

from core.ad_client import DirectoryQueryError
from core.models import EndpointRecord, EscrowLookupStatus, InventoryRow, RecoveryEscrowObject


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def make_endpoint(name, os_name="Windows 11 Pro", last_logon=None, ou="OU=Workstations"):
    return EndpointRecord(
        distinguished_name=f"CN={name},{ou},DC=contoso,DC=com",
        name=name,
        operating_system=os_name,
        last_logon=last_logon
    )


def make_row(name, key_count=0, os_name="Windows 11 Pro", dn=None,
             status=EscrowLookupStatus.OK):
    return InventoryRow(
        computer_name=name,
        operating_system=os_name,
        last_logon_date=utc(2024, 5, 1),
        has_recovery_key=key_count > 0,
        recovery_key_count=key_count,
        encryption_date=utc(2024, 1, 1) if key_count else None,
        distinguished_name=dn or f"CN={name},OU=Workstations,DC=contoso,DC=com",
        lookup_status=status
    )


class FakeADClient:
    """In-memory stand-in for ActiveDirectoryClient"""

    def __init__(self, endpoints=(), escrow=None, failing=()):
        self.endpoints = list(endpoints)
        self.escrow = escrow or {}
        self.failing = set(failing)
        self.scopes = []
        self.escrow_queries = []

    def list_endpoints(self, scope=None):
        self.scopes.append(scope)
        if scope is None:
            return list(self.endpoints)
        return [e for e in self.endpoints if e.distinguished_name.lower().endswith(scope.lower())]

    def list_escrow_children(self, endpoint_dn):
        self.escrow_queries.append(endpoint_dn)
        if endpoint_dn in self.failing:
            raise DirectoryQueryError(f"insufficientAccessRights on {endpoint_dn}")
        return [RecoveryEscrowObject(parent_dn=endpoint_dn, created=created)
                for created in self.escrow.get(endpoint_dn, [])]


@pytest.fixture
def now():
    return utc(2024, 6, 1)


@pytest.fixture
def laptop():
    return make_endpoint("LAPTOP-01", last_logon=utc(2024, 5, 15))


@pytest.fixture
def desktop():
    return make_endpoint("DESKTOP-07", "Windows 10 Enterprise", last_logon=utc(2024, 5, 20))


@pytest.fixture
def server():
    return make_endpoint("SRV-FILE01", "Windows Server 2019 Standard",
                         last_logon=utc(2024, 5, 30), ou="OU=Servers")


@pytest.fixture
def fake_ad(laptop, desktop, server):
    escrow = {
        laptop.distinguished_name: [utc(2023, 3, 1), utc(2024, 2, 10), utc(2023, 11, 5)],
        server.distinguished_name: [utc(2022, 8, 1)],
    }
    return FakeADClient([laptop, desktop, server], escrow)
