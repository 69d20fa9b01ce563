"""Ledger client backed by web3.py and eth-account."""

from typing import Any, Optional

import structlog
from eth_account import Account
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted

from ..errors import BatchReadError, LedgerReadError, SettlementSubmissionError
from .abi import MULTICALL3_ABI, MULTICALL3_ADDRESS, abi_for, output_types
from .base import CallResult, FinalityReceipt, LedgerClient, ReadCall

logger = structlog.get_logger(__name__)


class Web3LedgerClient(LedgerClient):
    """
    Ledger capability for one EVM chain.

    Reads go through ``eth_call``; batched reads are packed into a single
    Multicall3 ``aggregate3`` request with ``allowFailure`` set so that one
    reverting call does not fail its batch. Writes are signed locally with
    the caller's key and submitted as raw transactions.
    """

    def __init__(
        self,
        web3: Web3,
        chain_id: int,
        caller_address: str,
        private_key: Optional[str] = None,
        receipt_timeout_seconds: int = 120,
        multicall_address: str = MULTICALL3_ADDRESS,
    ):
        self.web3 = web3
        self.chain_id = chain_id
        self.caller_address = Web3.to_checksum_address(caller_address)
        self._private_key = private_key
        self.receipt_timeout_seconds = receipt_timeout_seconds
        self.multicall_address = Web3.to_checksum_address(multicall_address)
        self._contracts: dict[tuple[str, str], Any] = {}

    @classmethod
    def from_rpc_url(
        cls,
        rpc_url: str,
        chain_id: int,
        caller_address: str,
        private_key: Optional[str] = None,
        receipt_timeout_seconds: int = 120,
        request_timeout_seconds: int = 30,
    ) -> "Web3LedgerClient":
        """Create a client talking JSON-RPC over HTTP."""
        web3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": request_timeout_seconds}))
        return cls(
            web3=web3,
            chain_id=chain_id,
            caller_address=caller_address,
            private_key=private_key,
            receipt_timeout_seconds=receipt_timeout_seconds,
        )

    def _contract(self, address: str, function: str) -> Any:
        abi = abi_for(function)
        key = (address.lower(), abi[0]["name"])
        if key not in self._contracts:
            self._contracts[key] = self.web3.eth.contract(
                address=Web3.to_checksum_address(address),
                abi=abi,
            )
        return self._contracts[key]

    def read_call(self, contract: str, function: str, args: tuple = ()) -> Any:
        """Execute a read-only contract call and return its decoded value."""
        try:
            bound = getattr(self._contract(contract, function).functions, function)
            return bound(*args).call()
        except KeyError:
            raise
        except Exception as e:
            raise LedgerReadError(
                f"Read call {function} failed: {e}",
                contract=contract,
                function=function,
                context={"args": list(args)},
            ) from e

    def batch_read_call(self, calls: list[ReadCall]) -> list[CallResult]:
        """Execute read calls through Multicall3, reporting per-call failures."""
        if not calls:
            return []

        encoded = []
        for call in calls:
            call_data = self._contract(call.contract, call.function).encode_abi(
                call.function, args=list(call.args)
            )
            encoded.append((Web3.to_checksum_address(call.contract), True, call_data))

        multicall = self.web3.eth.contract(address=self.multicall_address, abi=MULTICALL3_ABI)
        try:
            responses = multicall.functions.aggregate3(encoded).call()
        except Exception as e:
            raise BatchReadError(
                f"Multicall batch failed: {e}",
                batch_size=len(calls),
            ) from e

        results = []
        for call, (success, return_data) in zip(calls, responses):
            if not success:
                results.append(CallResult(success=False, error="call reverted"))
                continue
            try:
                decoded = self.web3.codec.decode(output_types(call.function), return_data)
            except Exception as e:
                results.append(CallResult(success=False, error=f"undecodable return data: {e}"))
                continue
            results.append(CallResult(success=True, value=decoded[0] if len(decoded) == 1 else decoded))

        return results

    def write_call(self, contract: str, function: str, args: tuple, gas_limit: int) -> str:
        """Sign and submit a contract call; returns the transaction hash."""
        if not self._private_key:
            raise SettlementSubmissionError("No signing key configured for write calls")

        try:
            bound = getattr(self._contract(contract, function).functions, function)
            transaction = bound(*args).build_transaction({
                "from": self.caller_address,
                "gas": gas_limit,
                "nonce": self.web3.eth.get_transaction_count(self.caller_address, "pending"),
                "chainId": self.chain_id,
            })
            signed = Account.from_key(self._private_key).sign_transaction(transaction)
            tx_hash = self.web3.eth.send_raw_transaction(signed.raw_transaction)
        except Exception as e:
            raise SettlementSubmissionError(
                f"Failed to submit {function}: {e}",
                context={"contract": contract},
            ) from e

        transaction_ref = Web3.to_hex(tx_hash)
        logger.info("Transaction sent", tx_hash=transaction_ref, function=function)
        return transaction_ref

    def wait_for_finality(self, transaction_ref: str) -> FinalityReceipt:
        """Wait for the receipt and report the ledger's own status field."""
        try:
            receipt = self.web3.eth.wait_for_transaction_receipt(
                transaction_ref, timeout=self.receipt_timeout_seconds
            )
        except TimeExhausted as e:
            raise SettlementSubmissionError(
                f"Transaction not final after {self.receipt_timeout_seconds}s",
                transaction_ref=transaction_ref,
            ) from e
        except Exception as e:
            raise SettlementSubmissionError(
                f"Failed to fetch receipt: {e}",
                transaction_ref=transaction_ref,
            ) from e

        return FinalityReceipt(
            transaction_ref=transaction_ref,
            succeeded=receipt["status"] == 1,
            resource_used=receipt.get("gasUsed"),
            block_number=receipt.get("blockNumber"),
        )

    def get_balance(self, account: str) -> int:
        """Native balance in wei."""
        try:
            return int(self.web3.eth.get_balance(Web3.to_checksum_address(account)))
        except Exception as e:
            raise LedgerReadError(f"Balance read failed: {e}", function="eth_getBalance") from e

    def diagnose_failure(self, transaction_ref: str) -> Optional[str]:
        """
        Replay a failed transaction's input as an ``eth_call`` to recover the
        revert reason. Errors raised here are for the caller to swallow.
        """
        tx = self.web3.eth.get_transaction(transaction_ref)
        try:
            self.web3.eth.call({
                "from": self.caller_address,
                "to": tx["to"],
                "data": tx["input"],
            })
        except ContractLogicError as e:
            return e.message or str(e)
        return "Transaction failed"
