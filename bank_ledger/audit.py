"""
Transaction Log Module

Append-only, hash-chained record of every balance-affecting event. Each entry
carries the SHA-256 of its predecessor so any later edit to the history is
detectable with verify_integrity().

The log does no locking of its own; LedgerStore serializes appends under its
exclusive section.
"""

import hashlib
import json
from dataclasses import dataclass
from typing import Any, Dict, List

from .models import Transaction


@dataclass(frozen=True)
class LogEntry:
    """A transaction plus its position in the hash chain"""
    sequence: int
    transaction: Transaction
    previous_hash: str
    current_hash: str

    @staticmethod
    def calculate_hash(sequence: int, transaction: Transaction, previous_hash: str) -> str:
        """SHA-256 over the transaction content and the previous hash"""
        hash_data = {
            'sequence': sequence,
            'previous_hash': previous_hash,
            'transaction': transaction.to_dict(),
        }
        json_data = json.dumps(hash_data, sort_keys=True, separators=(',', ':'))
        return hashlib.sha256(json_data.encode('utf-8')).hexdigest()

    def verify_hash(self) -> bool:
        expected = self.calculate_hash(self.sequence, self.transaction, self.previous_hash)
        return self.current_hash == expected


class TransactionLog:
    """
    Append-only transaction history with an account -> entry index.

    append() is O(1); reading one account's history is O(k) in the number of
    transactions touching that account.
    """

    def __init__(self):
        self._entries: List[LogEntry] = []
        self._by_account: Dict[str, List[int]] = {}

    def append(self, transaction: Transaction) -> LogEntry:
        previous_hash = self._entries[-1].current_hash if self._entries else ""
        sequence = len(self._entries)
        entry = LogEntry(
            sequence=sequence,
            transaction=transaction,
            previous_hash=previous_hash,
            current_hash=LogEntry.calculate_hash(sequence, transaction, previous_hash),
        )
        self._entries.append(entry)

        for account_id in {transaction.from_account_id, transaction.to_account_id}:
            if account_id:
                self._by_account.setdefault(account_id, []).append(sequence)
        return entry

    def discard_last(self, transaction_id: str) -> None:
        """
        Drop the newest entry. Only LedgerStore.atomic() calls this, to undo an
        append made inside a section that is being rolled back.
        """
        if not self._entries or self._entries[-1].transaction.id != transaction_id:
            raise RuntimeError(f"Transaction {transaction_id} is not the newest log entry")
        entry = self._entries.pop()
        for account_id in {entry.transaction.from_account_id, entry.transaction.to_account_id}:
            if account_id:
                positions = self._by_account[account_id]
                positions.pop()
                if not positions:
                    del self._by_account[account_id]

    def for_account(self, account_id: str) -> List[Transaction]:
        """Transactions touching the account, oldest first"""
        return [self._entries[i].transaction for i in self._by_account.get(account_id, [])]

    def all(self) -> List[Transaction]:
        return [entry.transaction for entry in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def latest_hash(self) -> str:
        return self._entries[-1].current_hash if self._entries else ""

    def verify_integrity(self) -> Dict[str, Any]:
        """
        Verify every entry hash and the chain linkage

        Returns:
            Dictionary with integrity check results
        """
        result = {
            'valid': True,
            'total_entries': len(self._entries),
            'hash_errors': [],
            'chain_breaks': [],
        }

        previous_hash = ""
        for entry in self._entries:
            if not entry.verify_hash():
                result['valid'] = False
                result['hash_errors'].append({
                    'transaction_id': entry.transaction.id,
                    'position': entry.sequence,
                })
            if entry.previous_hash != previous_hash:
                result['valid'] = False
                result['chain_breaks'].append({
                    'transaction_id': entry.transaction.id,
                    'position': entry.sequence,
                    'expected_previous_hash': previous_hash,
                    'actual_previous_hash': entry.previous_hash,
                })
            previous_hash = entry.current_hash

        return result
