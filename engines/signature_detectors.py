#!/usr/bin/env python3
# SPDX-License-Identifier: BUSL-1.1
"""
signature_detectors.py - Call-Data Fingerprints for Flash-Loan Detection

Each SignatureDetector recognises a family of 4-byte function selectors.
Detectors live in a ranked registry; the manipulation detector only asks the
registry whether a transaction matches, so new attack fingerprints can be
added here without touching orchestration.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from web3 import Web3

from shared.detection_types import TransactionRecord

logger = logging.getLogger(__name__)


def _normalize_selector(selector: str) -> str:
    selector = selector.lower()
    if not selector.startswith("0x"):
        selector = "0x" + selector
    if len(selector) != 10:
        raise ValueError(f"Selector must be 4 bytes (0x + 8 hex chars): {selector!r}")
    return selector


def selector_for(signature: str) -> str:
    """4-byte selector for a canonical Solidity signature, e.g. 'flashLoan(address,uint256)'"""
    return Web3.to_hex(Web3.keccak(text=signature)[:4])


@dataclass(frozen=True)
class SignatureDetector:
    """A named family of selectors; lower rank is checked first"""

    name: str
    selectors: Tuple[str, ...]
    rank: int = 100
    description: str = ""

    @classmethod
    def from_selectors(
        cls, name: str, selectors: Iterable[str], rank: int = 100, description: str = ""
    ) -> "SignatureDetector":
        return cls(
            name=name,
            selectors=tuple(_normalize_selector(s) for s in selectors),
            rank=rank,
            description=description,
        )

    @classmethod
    def from_signature(
        cls, name: str, signatures: Iterable[str], rank: int = 100, description: str = ""
    ) -> "SignatureDetector":
        """Build a detector from textual Solidity signatures"""
        return cls(
            name=name,
            selectors=tuple(selector_for(s) for s in signatures),
            rank=rank,
            description=description,
        )

    def matches(self, tx: TransactionRecord) -> bool:
        return tx.selector in self.selectors


class SignatureRegistry:
    """Ranked collection of signature detectors"""

    def __init__(self, detectors: Optional[Iterable[SignatureDetector]] = None):
        self._detectors: List[SignatureDetector] = []
        for detector in detectors or ():
            self.register(detector)

    def register(self, detector: SignatureDetector) -> None:
        if any(d.name == detector.name for d in self._detectors):
            raise ValueError(f"Signature detector already registered: {detector.name}")
        self._detectors.append(detector)
        self._detectors.sort(key=lambda d: d.rank)
        logger.debug(f"Registered signature detector {detector.name} (rank {detector.rank})")

    def unregister(self, name: str) -> None:
        self._detectors = [d for d in self._detectors if d.name != name]

    @property
    def detectors(self) -> List[SignatureDetector]:
        return list(self._detectors)

    def match(self, tx: TransactionRecord) -> Optional[SignatureDetector]:
        """First detector (by rank) recognising the transaction, if any"""
        for detector in self._detectors:
            if detector.matches(tx):
                return detector
        return None

    def __len__(self) -> int:
        return len(self._detectors)


def default_flash_loan_detectors() -> List[SignatureDetector]:
    """Built-in lending-protocol flash-loan selectors"""
    return [
        SignatureDetector.from_selectors(
            "flash_loan",
            ["0xc3018a0e", "0xab9c4b5d"],
            rank=10,
            description="Multi-asset lending pool flashLoan",
        ),
        SignatureDetector.from_selectors(
            "flash_loan_simple",
            ["0x6b07c94f", "0x42b0b77c"],
            rank=20,
            description="Single-asset flashLoanSimple",
        ),
        SignatureDetector.from_selectors(
            "flash_loan_v3",
            ["0x3d7b66bf"],
            rank=30,
            description="V3 pool flashLoan",
        ),
        SignatureDetector.from_signature(
            "erc3156_flash_loan",
            ["flashLoan(address,address,uint256,bytes)"],
            rank=40,
            description="ERC-3156 flash lender",
        ),
    ]


def default_signature_registry() -> SignatureRegistry:
    return SignatureRegistry(default_flash_loan_detectors())


# Known selectors, for readable evidence
METHOD_NAMES = {
    "0x38ed1739": "swapExactTokensForTokens",
    "0x8803dbee": "swapTokensForExactTokens",
    "0xc3018a0e": "flashLoan",
    "0xab9c4b5d": "flashLoan",
    "0x3d7b66bf": "flashLoan",
    "0x6b07c94f": "flashLoanSimple",
    "0x42b0b77c": "flashLoanSimple",
}


def describe_method(input_data: str) -> str:
    """Method name for known selectors, raw selector otherwise"""
    if len(input_data) < 10:
        return "unknown"
    selector = input_data[:10].lower()
    return METHOD_NAMES.get(selector, selector)
