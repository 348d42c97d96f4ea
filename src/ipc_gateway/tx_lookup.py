# Author: PB and Claude
# Date: 2026-10-18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ---
# src/ipc_gateway/tx_lookup.py

"""
Transaction hash lookup over the chain's RPC endpoint.

Best-effort: after a bucket/file mutation the CLI does not print the
transaction it sent, so we look at the latest block for a transaction from
our address. If nothing shows up we wait one block interval and look once
more, then give up.

This depends on the chain's block time: a transaction confirmed later than
the second check is never found.

Debug logging:
    Enable with: IPC_GATEWAY_DEBUG=1
"""

import asyncio
import logging
from collections.abc import Mapping
from typing import Optional

import requests
from eth_account import Account
from web3 import Web3
from web3.exceptions import Web3Exception


DEFAULT_RETRY_DELAY = 5.0
DEFAULT_RPC_TIMEOUT = 10

logger = logging.getLogger(__name__)


def normalize_private_key(private_key: str) -> str:
    """Strip an optional 0x prefix; the CLI wants bare hex."""
    if private_key and private_key.startswith("0x"):
        return private_key[2:]
    return private_key


def derive_address(private_key: str) -> str:
    """Return the checksummed address for a hex private key."""
    return Account.from_key("0x" + normalize_private_key(private_key)).address


def _tx_hash(value) -> str:
    if isinstance(value, str):
        return value
    return Web3.to_hex(value)


def _last_from(block: Mapping, address: str) -> Optional[str]:
    """Hash of the last transaction in block sent from address."""
    address = address.lower()
    hashes = [
        tx.get("hash")
        for tx in block.get("transactions", [])
        if isinstance(tx, Mapping) and (tx.get("from") or "").lower() == address
    ]
    return _tx_hash(hashes[-1]) if hashes else None


class TransactionLookup:
    """Finds the hash of the caller's most recent on-chain transaction."""

    def __init__(
        self,
        rpc_url: str = None,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        timeout: float = DEFAULT_RPC_TIMEOUT,
        w3: Web3 = None,
    ):
        if w3 is None and rpc_url is None:
            raise ValueError("TransactionLookup needs an rpc_url or a Web3 instance")
        self.w3 = w3 or Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))
        self.retry_delay = retry_delay

    def check_latest_block(self, address: str) -> Optional[str]:
        block = self.w3.eth.get_block("latest", full_transactions=True)
        logger.debug(f"Checking block {block.get('number')} for transactions from {address}")
        return _last_from(block, address)

    async def latest_transaction(self, address: str, command_id: str = "-") -> Optional[str]:
        """
        Look up the latest transaction hash sent from address.

        One immediate check, one more after retry_delay seconds.

        Returns:
            Transaction hash, or None if nothing was found or the lookup failed.
            Never raises.
        """
        try:
            tx_hash = await asyncio.to_thread(self.check_latest_block, address)
            if tx_hash:
                logger.info(f"[{command_id}] Found transaction hash on first check: {tx_hash}")
                return tx_hash

            logger.info(f"[{command_id}] No transaction found, retrying in {self.retry_delay}s")
            await asyncio.sleep(self.retry_delay)

            tx_hash = await asyncio.to_thread(self.check_latest_block, address)
            if tx_hash:
                logger.info(f"[{command_id}] Found transaction hash on second check: {tx_hash}")
            else:
                logger.info(f"[{command_id}] No transaction found after retrying")
            return tx_hash
        except (Web3Exception, requests.RequestException, ValueError) as e:
            logger.warning(f"[{command_id}] Transaction lookup failed: {e}")
            return None
