from __future__ import annotations

from typing import List, Optional, Union

from .errors import BridgeError, RemoteRejection
from .models import Transfer
from .principal import IcrcAccount, Principal
from .remote import OneSecCanister


def get_transfers(
    onesec: OneSecCanister,
    principal: Union[Principal, str],
    *,
    subaccount: Optional[bytes] = None,
    count: int = 10,
    skip: int = 0,
) -> List[Transfer]:
    """Recent transfers of an ICP account, newest first.

    ``count`` and ``skip`` page through the history.
    """
    if count <= 0 or skip < 0:
        raise BridgeError("count must be positive and skip must not be negative")
    owner = principal if isinstance(principal, Principal) else Principal.from_text(principal)
    account = IcrcAccount(owner=owner, subaccount=subaccount)
    try:
        return onesec.get_transfers(accounts=[account], count=count, skip=skip)
    except RemoteRejection as exc:
        raise BridgeError(f"Failed to get transfers: {exc}") from exc
