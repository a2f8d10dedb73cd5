"""
Margined Deploy - Transaction Executor

Builds, signs and submits one logical chain operation at a time.

Every mutating call follows the same path:
  1. Fetch the wallet's current account number / sequence
  2. Pick the fee bid for (network, operation kind)
  3. Estimate gas when the bid carries the estimate sentinel
  4. Sign (SIGN_MODE_DIRECT) and broadcast, wait for inclusion
  5. Raise ChainError when the chain rejected the transaction

Mutating calls are never retried here; read queries are retried by the
client.
"""

import logging
from pathlib import Path
from typing import Any, List, Optional, Sequence, Union

from . import tx_codec
from .chain_types import Coin, TransactionResult
from .fee_policy import FeeBid, FeePolicy, OperationKind
from .gas_logger import GasLogger
from .lcd_client import ChainError, LCDClient, NetworkError
from .messages import Message, render
from .wallet import Wallet

log = logging.getLogger(__name__)


class TxExecutor:
    """
    High level chain operations for one network.

    Usage:
        executor = TxExecutor(client, default_fee_policy(), network="local")
        code_id = executor.upload(wallet, Path("artifacts/margined_vamm.wasm"))
        vamm = executor.instantiate(wallet, code_id, init_msg, "vamm")
        executor.execute(wallet, vamm, {"set_open": {"open": True}})
        state = executor.query(vamm, {"state": {}})
    """

    def __init__(self, client: LCDClient, fee_policy: FeePolicy, network: str,
                 gas_logger: Optional[GasLogger] = None, memo: str = ""):
        """
        Initialize executor.

        Args:
            client: LCD client connected to the target network
            fee_policy: Fee table; must know `network`
            network: Network name used for fee lookups
            gas_logger: Optional sink for execute gas consumption
            memo: Memo attached to every transaction
        """
        self.client = client
        self.fee_policy = fee_policy
        self.network = network
        self.gas_logger = gas_logger
        self.memo = memo

    # ═══════════════════════════════════════════════════════════════════════
    # TRANSACTION PIPELINE
    # ═══════════════════════════════════════════════════════════════════════

    def _check_wallet(self, wallet: Wallet) -> None:
        if not self.client.endpoint.owns_address(wallet.address):
            raise ValueError(f"Address {wallet.address} does not belong to "
                             f"{self.client.endpoint.chain_id} (prefix {self.client.endpoint.prefix})")

    def _sign(self, wallet: Wallet, body: bytes, sequence: int, account_number: int,
              fee_amount: Sequence[Coin], gas_limit: int) -> bytes:
        auth_info = tx_codec.encode_auth_info(wallet.public_key, sequence, fee_amount, gas_limit)
        sign_doc = tx_codec.encode_sign_doc(body, auth_info, self.client.endpoint.chain_id,
                                            account_number)
        return tx_codec.encode_tx_raw(body, auth_info, [wallet.sign(sign_doc)])

    def perform(self, wallet: Wallet, messages: List[bytes], kind: OperationKind,
                fee: Optional[FeeBid] = None) -> TransactionResult:
        """
        Sign and broadcast encoded messages as one transaction.

        Raises:
            ChainError: transaction rejected at CheckTx or failed in the block
            NetworkError: endpoint unreachable; the transaction may or may not
                          have landed, check before resubmitting
        """
        self._check_wallet(wallet)
        fee = fee or self.fee_policy.fee_for(self.network, kind)
        account = self.client.fetch_account(wallet.address)
        body = tx_codec.encode_tx_body(messages, self.memo)

        gas_limit = fee.gas_limit
        if fee.estimates_gas:
            auth_info = tx_codec.encode_auth_info(wallet.public_key, account.sequence,
                                                  fee.coins(), 0)
            gas_limit = self.client.estimate_gas(tx_codec.encode_tx_raw(body, auth_info, [b""]))

        log.debug(f"{kind.value}: sequence={account.sequence} gas_limit={gas_limit} "
                  f"fee={fee.amount}{fee.denom}")
        tx_bytes = self._sign(wallet, body, account.sequence, account.account_number,
                              fee.coins(), gas_limit)
        result = self.client.broadcast(tx_bytes)
        if not result.success:
            log.error(f"{kind.value} failed: code={result.code} codespace={result.codespace}")
            raise ChainError.from_result(result)
        return result

    # ═══════════════════════════════════════════════════════════════════════
    # OPERATIONS
    # ═══════════════════════════════════════════════════════════════════════

    def upload(self, wallet: Wallet, wasm: Union[bytes, Path, str],
               fee: Optional[FeeBid] = None) -> int:
        """
        Store contract bytecode.

        Args:
            wasm: Bytecode or path to a .wasm file

        Returns:
            Code id assigned by the chain
        """
        if not isinstance(wasm, bytes):
            wasm = Path(wasm).read_bytes()
        result = self.perform(wallet, [tx_codec.msg_store_code(wallet.address, wasm)],
                              OperationKind.UPLOAD, fee)
        code_id = result.attribute("store_code", "code_id")
        if code_id is None:
            raise NetworkError(f"Upload {result.txhash} succeeded but reported no code id",
                               txhash=result.txhash)
        log.info(f"Uploaded code id {code_id} (gas {result.gas_used})")
        return int(code_id)

    def instantiate(self, wallet: Wallet, code_id: int, init_msg: Message, label: str,
                    admin: Optional[str] = None, funds: Sequence[Coin] = (),
                    fee: Optional[FeeBid] = None) -> str:
        """
        Instantiate stored code.

        Args:
            admin: Migration admin; defaults to the wallet itself

        Returns:
            Address of the new contract
        """
        if admin is None:
            admin = wallet.address
        msg = tx_codec.msg_instantiate(wallet.address, admin, code_id, label,
                                       render(init_msg), funds)
        result = self.perform(wallet, [msg], OperationKind.INSTANTIATE, fee)
        address = (result.attribute("instantiate", "_contract_address")
                   or result.attribute("instantiate", "contract_address"))
        if not address:
            raise NetworkError(f"Instantiate {result.txhash} succeeded but reported no address",
                               txhash=result.txhash)
        log.info(f"Instantiated {label} (code {code_id}) at {address}")
        return address

    def deploy(self, wallet: Wallet, wasm: Union[bytes, Path, str], init_msg: Message,
               label: str, admin: Optional[str] = None) -> str:
        """Upload then instantiate; returns the contract address."""
        code_id = self.upload(wallet, wasm)
        return self.instantiate(wallet, code_id, init_msg, label, admin=admin)

    def execute(self, wallet: Wallet, contract: str, msg: Message,
                funds: Sequence[Coin] = (), fee: Optional[FeeBid] = None) -> TransactionResult:
        """Execute a contract call, optionally attaching native funds."""
        rendered = render(msg)
        result = self.perform(wallet, [tx_codec.msg_execute(wallet.address, contract,
                                                            rendered, funds)],
                              OperationKind.EXECUTE, fee)
        if self.gas_logger is not None:
            self.gas_logger.record(rendered, result.gas_used)
        return result

    def query(self, contract: str, msg: Message) -> Any:
        """Read-only smart query."""
        return self.client.query_contract(contract, render(msg))

    def transfer(self, wallet: Wallet, recipient: str, coins: Sequence[Coin],
                 fee: Optional[FeeBid] = None) -> TransactionResult:
        """Bank send of native coins."""
        return self.perform(wallet, [tx_codec.msg_send(wallet.address, recipient, coins)],
                            OperationKind.TRANSFER, fee)

    def migrate(self, wallet: Wallet, contract: str, new_code_id: int,
                msg: Optional[Message] = None, fee: Optional[FeeBid] = None) -> TransactionResult:
        """Migrate a contract to new code (wallet must be its admin)."""
        return self.perform(
            wallet,
            [tx_codec.msg_migrate(wallet.address, contract, new_code_id, render(msg or {}))],
            OperationKind.MIGRATE, fee)

    def update_admin(self, wallet: Wallet, contract: str, new_admin: str,
                     fee: Optional[FeeBid] = None) -> TransactionResult:
        return self.perform(wallet, [tx_codec.msg_update_admin(wallet.address, new_admin, contract)],
                            OperationKind.UPDATE_ADMIN, fee)

    def query_balance(self, address: str, denom: str) -> int:
        """Native balance of one denom (0 when the account holds none)."""
        for coin in self.client.query_balances(address):
            if coin.denom == denom:
                return coin.amount
        return 0
