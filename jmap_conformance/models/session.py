"""Pydantic models for the JMAP session resource (RFC 8620 section 2)."""

from collections.abc import Mapping
from typing import Any

from pydantic import Field

from jmap_conformance.models.base import Model

CORE_CAPABILITY = "urn:ietf:params:jmap:core"
MAIL_CAPABILITY = "urn:ietf:params:jmap:mail"
SUBMISSION_CAPABILITY = "urn:ietf:params:jmap:submission"
VACATION_CAPABILITY = "urn:ietf:params:jmap:vacationresponse"


class Account(Model):
    """An account entry of the session resource."""

    name: str
    is_personal: bool = Field(default=True, alias="isPersonal")
    is_read_only: bool = Field(default=False, alias="isReadOnly")
    account_capabilities: Mapping[str, Any] = Field(
        default_factory=dict, alias="accountCapabilities"
    )


class Session(Model):
    """The JMAP session resource."""

    capabilities: Mapping[str, Any]
    accounts: Mapping[str, Account]
    primary_accounts: Mapping[str, str] = Field(alias="primaryAccounts")
    username: str
    api_url: str = Field(alias="apiUrl")
    download_url: str = Field(alias="downloadUrl")
    upload_url: str = Field(alias="uploadUrl")
    event_source_url: str = Field(alias="eventSourceUrl")
    state: str

    def has_capability(self, capability: str) -> bool:
        """Check whether the server advertises a capability."""
        return capability in self.capabilities

    def mail_account_id(self) -> str:
        """Return the primary account id for the mail capability.

        Raises:
            ValueError: If no primary mail account is advertised or it is
                missing from ``accounts``.

        """
        account_id = self.primary_accounts.get(MAIL_CAPABILITY)
        if not account_id:
            raise ValueError(f"No primary account for {MAIL_CAPABILITY} capability")
        if account_id not in self.accounts:
            raise ValueError(
                f"Primary mail account {account_id} not found in session accounts"
            )
        return account_id
