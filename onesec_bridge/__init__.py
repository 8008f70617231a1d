from __future__ import annotations

from .backoff import Backoff, exponential_backoff
from .builders import EvmToIcpBridgeBuilder, IcpToEvmBridgeBuilder
from .config import DEFAULT_CONFIG, BridgeSettings, Config, load_settings
from .errors import (
    BridgeError,
    ConfigError,
    PlanStructureError,
    RemoteCallError,
    RemoteRejection,
    ResumeError,
)
from .forwarding import OneSecForwarding, forwarding_address, notify_forwarding_payment
from .models import (
    Amount,
    Chain,
    Deployment,
    EvmAccount,
    EvmTx,
    IcpTx,
    OperatingMode,
    Token,
    Transfer,
    TransferId,
)
from .plan import BridgingPlan
from .principal import IcrcAccount, Principal
from .resume import resume_evm_to_icp, resume_icp_to_evm
from .status import About, StepState, StepStatus
from .transfers import get_transfers
from .utils import amount_from_tokens, amount_from_units

__version__ = "0.1.0"
