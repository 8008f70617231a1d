"""Deposit ("forwarding") addresses for EVM -> ICP transfers."""
from __future__ import annotations

from .config import DEFAULT_CONFIG, Config, get_forwarding_key_id
from .constants import SUBACCOUNT_LENGTH
from .errors import BridgeError
from .logging_utils import get_bridge_logger
from .models import Chain, Deployment, EvmAccount, ForwardingResponse, Token, Transfer, TransferId
from .principal import IcrcAccount
from .remote import AddressDeriver, OneSecCanister

logger = get_bridge_logger()


class OneSecForwarding:
    """Computes forwarding addresses and queries their status with OneSec.

    ``derive_address`` is the deterministic address derivation function; it
    is called as ``derive_address(key_id, principal_bytes, subaccount_bytes)``.
    """

    def __init__(
        self,
        onesec: OneSecCanister,
        derive_address: AddressDeriver,
        deployment: Deployment = Deployment.MAINNET,
        config: Config = DEFAULT_CONFIG,
    ):
        self._onesec = onesec
        self._derive_address = derive_address
        self.deployment = deployment
        self._config = config

    def key_id(self) -> int:
        return get_forwarding_key_id(self._config, self.deployment)

    def compute_address_for(self, receiver: IcrcAccount) -> EvmAccount:
        subaccount = receiver.subaccount if receiver.subaccount is not None else bytes(SUBACCOUNT_LENGTH)
        if len(subaccount) != SUBACCOUNT_LENGTH:
            raise BridgeError(f"invalid subaccount length: expected {SUBACCOUNT_LENGTH}, but {len(subaccount)}")
        address = self._derive_address(self.key_id(), receiver.owner.raw, subaccount)
        return EvmAccount(address=address)

    def address_for(self, receiver: IcrcAccount) -> str:
        """Compute the forwarding address for ``receiver`` and have OneSec validate it."""
        account = self.compute_address_for(receiver)
        self._onesec.validate_forwarding_address(receiver=receiver, address=account.address)
        logger.info("Forwarding address for %s is %s", receiver.owner, account.address)
        return account.address

    def get_forwarding_status(
        self, token: Token, source_chain: Chain, address: str, receiver: IcrcAccount
    ) -> ForwardingResponse:
        return self._onesec.get_forwarding_status(token=token, evm_chain=source_chain, address=address, receiver=receiver)

    def forward_evm_to_icp(
        self, token: Token, source_chain: Chain, address: str, receiver: IcrcAccount
    ) -> ForwardingResponse:
        return self._onesec.forward_evm_to_icp(token=token, evm_chain=source_chain, address=address, receiver=receiver)

    def get_transfer(self, transfer_id: TransferId) -> Transfer:
        return self._onesec.get_transfer(transfer_id)


def forwarding_address(
    onesec: OneSecCanister,
    derive_address: AddressDeriver,
    receiver: IcrcAccount,
    deployment: Deployment = Deployment.MAINNET,
) -> str:
    return OneSecForwarding(onesec, derive_address, deployment).address_for(receiver)


def notify_forwarding_payment(
    onesec: OneSecCanister,
    token: Token,
    source_chain: Chain,
    address: str,
    receiver: IcrcAccount,
) -> ForwardingResponse:
    """Tell OneSec that ``address`` has been funded; returns the forwarding state."""
    return onesec.forward_evm_to_icp(token=token, evm_chain=source_chain, address=address, receiver=receiver)
