import pytest

from onesec_bridge.config import (
    DEFAULT_CONFIG,
    DEPLOYMENT_ENV,
    GAS_LIMIT_ENV,
    GAS_PRICE_GWEI_ENV,
    ICP_POLL_DELAY_ENV,
    get_confirm_blocks,
    get_forwarding_key_id,
    get_icp_host,
    get_icp_poll_delay_ms,
    get_token_erc20_address,
    get_token_ledger_canister,
    get_token_locker_address,
    load_settings,
    operating_mode,
    token_config,
)
from onesec_bridge.errors import ConfigError
from onesec_bridge.models import Chain, Deployment, OperatingMode, Token

ENV_KEYS = [
    DEPLOYMENT_ENV,
    GAS_LIMIT_ENV,
    GAS_PRICE_GWEI_ENV,
    ICP_POLL_DELAY_ENV,
    "ONESEC_BASE_RPC_URL",
    "ONESEC_ARBITRUM_RPC_URL",
    "ONESEC_ETHEREUM_RPC_URL",
    "ONESEC_EVM_PRIVATE_KEY",
    "PRIVATE_KEY",
    "ONESEC_RECEIPT_TIMEOUT",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    # setenv first so variables loaded from a .env file are removed afterwards
    for key in ENV_KEYS:
        monkeypatch.setenv(key, "unset")
        monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


def test_addresses_resolve_from_most_to_least_specific_key():
    mainnet, testnet = Deployment.MAINNET, Deployment.TESTNET
    assert get_token_erc20_address(DEFAULT_CONFIG, Token.USDC, mainnet, Chain.BASE) == (
        "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
    )
    assert get_token_erc20_address(DEFAULT_CONFIG, Token.USDC, testnet, Chain.BASE) is None
    assert get_token_erc20_address(DEFAULT_CONFIG, Token.CBBTC, testnet, Chain.ARBITRUM) == (
        "0xcbB7C0000aB88B473b1f5aFd9ef808440eed33Bf"
    )
    assert get_token_locker_address(DEFAULT_CONFIG, Token.USDC, testnet, Chain.BASE) == (
        "0x38200DD4c3adbE86Be49717ccA8a3fD08466Cba6"
    )
    assert get_token_locker_address(DEFAULT_CONFIG, Token.ICP, mainnet, Chain.BASE) is None
    assert get_token_ledger_canister(DEFAULT_CONFIG, Token.ICP, testnet) == "ryjl3-tyaaa-aaaaa-aaaba-cai"


def test_operating_modes():
    assert operating_mode(DEFAULT_CONFIG, Token.USDC) is OperatingMode.LOCKER
    assert operating_mode(DEFAULT_CONFIG, Token.CKBTC) is OperatingMode.MINTER
    assert token_config(DEFAULT_CONFIG, "cbBTC").decimals == 8
    with pytest.raises(ConfigError):
        token_config(DEFAULT_CONFIG, "DOGE")


def test_deployment_specific_values():
    assert get_confirm_blocks(DEFAULT_CONFIG, Chain.BASE, Deployment.MAINNET) == (12, 1_900)
    assert get_confirm_blocks(DEFAULT_CONFIG, Chain.ARBITRUM, Deployment.LOCAL) == (96, 10)
    assert get_forwarding_key_id(DEFAULT_CONFIG, Deployment.TESTNET) == 1
    assert get_icp_poll_delay_ms(DEFAULT_CONFIG, Deployment.LOCAL) == 100
    assert get_icp_host(DEFAULT_CONFIG, Deployment.LOCAL) == "http://127.0.0.1:8080"


def test_load_settings_defaults(clean_env):
    settings, error = load_settings()
    assert error is None
    assert settings.deployment is Deployment.MAINNET
    assert settings.rpc_urls == {}
    assert settings.gas_price_wei is None
    with pytest.raises(ConfigError, match="ONESEC_BASE_RPC_URL"):
        settings.rpc_url(Chain.BASE)


def test_load_settings_reads_env_file(clean_env, tmp_path):
    env_file = tmp_path / "bridge.env"
    env_file.write_text(
        "ONESEC_DEPLOYMENT=Testnet\n"
        "ONESEC_BASE_RPC_URL=https://base.example\n"
        "ONESEC_EVM_GAS_PRICE_GWEI=1.5\n"
        "ONESEC_EVM_GAS_LIMIT=0x5208\n"
        "PRIVATE_KEY=0xabc\n"
    )

    settings, error = load_settings(env_file)

    assert error is None
    assert settings.deployment is Deployment.TESTNET
    assert settings.rpc_url(Chain.BASE) == "https://base.example"
    assert settings.gas_price_wei == 1_500_000_000
    assert settings.gas_limit == 21_000
    assert settings.private_key == "0xabc"


def test_load_settings_reports_bad_values(clean_env):
    clean_env.setenv(DEPLOYMENT_ENV, "Staging")
    settings, error = load_settings()
    assert settings is None
    assert "Staging" in error

    clean_env.setenv(DEPLOYMENT_ENV, "Mainnet")
    clean_env.setenv(ICP_POLL_DELAY_ENV, "-5")
    settings, error = load_settings()
    assert settings is None
    assert ICP_POLL_DELAY_ENV in error
