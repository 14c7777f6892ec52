"""
Calldata resolution: selector -> ranked candidates -> first structural decode.

Candidates come from the public signature directory and are tried strictly in
ranking order; the first one that parses, matches the selector and decodes
wins. When none does and a contract address plus Etherscan credential are
available, the contract's verified ABI is used for one final attempt.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

from .abi_decoding import DecodedValue, decode_parameters
from .directory_client import SignatureDirectoryClient
from .errors import (
    AllCandidatesExhausted,
    DecodeCancelled,
    DecodeLayoutError,
    DirectoryError,
    SignatureSyntaxError,
    TxDecodeError,
)
from .selector import extract_selector, selector_hex
from .signatures import FunctionDescriptor, parse_signature
from .verified_abi import VerifiedABIClient

logger = logging.getLogger(__name__)

WELL_KNOWN_FUNCTION_NAMES = ("transfer", "approve", "transferFrom", "mint", "burn", "swap")

SOURCE_DIRECTORY = "directory"
SOURCE_VERIFIED_ABI = "verified_abi"

PARSE_FAILED = "parse_failed"
SELECTOR_MISMATCH = "selector_mismatch"
DECODE_FAILED = "decode_failed"
DECODED = "decoded"


@dataclass
class DecodeResult:
    descriptor: FunctionDescriptor
    values: List[DecodedValue]
    source: str
    selector: str
    candidates_tried: int

    @property
    def function_name(self) -> str:
        return self.descriptor.name


@dataclass
class DecodeRequest:
    calldata: bytes
    contract_address: Optional[str] = None


@dataclass
class TrialOutcome:
    """Result of trying one candidate signature against calldata."""

    status: str
    candidate: str
    descriptor: Optional[FunctionDescriptor] = None
    values: Optional[List[DecodedValue]] = None
    error: Optional[TxDecodeError] = None

    @property
    def ok(self) -> bool:
        return self.status == DECODED


def candidate_name(text: str) -> str:
    name = text.strip()
    if name.startswith("function "):
        name = name[len("function "):].lstrip()
    return name.split("(", 1)[0].strip()


def rank_candidates(candidates: Sequence[str]) -> List[str]:
    """
    Order candidates so well-known operations are tried first.

    Two stable groups: names starting with a well-known operation (``transfer``,
    ``approve``, ``mint`` ...), then everything else. Directory order is
    preserved inside each group, so ``transferWithData`` listed before
    ``transfer`` stays first.
    """
    prefixed: List[str] = []
    rest: List[str] = []
    for text in candidates:
        name = candidate_name(text)
        if any(name.startswith(known) for known in WELL_KNOWN_FUNCTION_NAMES):
            prefixed.append(text)
        else:
            rest.append(text)
    return prefixed + rest


def try_candidate(text: str, selector: bytes, calldata: bytes) -> TrialOutcome:
    try:
        descriptor = parse_signature(text)
    except SignatureSyntaxError as exc:
        return TrialOutcome(PARSE_FAILED, text, error=exc)

    if descriptor.selector != selector:
        return TrialOutcome(SELECTOR_MISMATCH, text, descriptor=descriptor)

    try:
        values = decode_parameters(descriptor, calldata)
    except DecodeLayoutError as exc:
        return TrialOutcome(DECODE_FAILED, text, descriptor=descriptor, error=exc)
    return TrialOutcome(DECODED, text, descriptor=descriptor, values=values)


class CalldataDecoder:
    """Resolve calldata to a single decoded function call."""

    def __init__(
        self,
        directory: SignatureDirectoryClient,
        verified_abi: Optional[VerifiedABIClient] = None,
        api_key: Optional[str] = None,
        chain_id: int = 1,
    ) -> None:
        self.directory = directory
        self.verified_abi = verified_abi
        self.api_key = api_key
        self.chain_id = chain_id

    def decode(
        self,
        calldata: bytes,
        contract_address: Optional[str] = None,
        api_key: Optional[str] = None,
        chain_id: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> DecodeResult:
        """
        Decode ``calldata`` into a function call.

        Raises:
            MalformedCalldata: If calldata is shorter than a selector.
            LookupUnavailable / LookupMalformed: If the directory fails and no
                verified-ABI fallback is possible.
            AllCandidatesExhausted: If nothing decoded and no fallback is possible.
            DecodeCancelled: If ``cancel_event`` is set before completion.
            ABIServiceUnavailable / ABIServiceRejected / ABIParseError /
                FunctionNotFound / DecodeLayoutError: From the fallback attempt.
        """
        selector = extract_selector(calldata)
        sel_hex = selector_hex(selector)
        key = api_key or self.api_key
        can_fallback = (
            bool(contract_address)
            and self.verified_abi is not None
            and self.verified_abi.has_credential(key)
        )

        _check_cancelled(cancel_event, sel_hex, "directory")
        directory_error: Optional[DirectoryError] = None
        try:
            candidates = self.directory.lookup(selector)
        except DirectoryError as exc:
            if not can_fallback:
                raise
            logger.warning(f"Signature directory failed for {sel_hex}, using verified ABI: {exc.message}")
            directory_error = exc
            candidates = []
        _check_cancelled(cancel_event, sel_hex, "directory")

        tried = 0
        for text in rank_candidates(candidates):
            _check_cancelled(cancel_event, sel_hex, "trial_decode", candidates_tried=tried)
            tried += 1
            outcome = try_candidate(text, selector, calldata)
            if outcome.ok:
                logger.info(f"Decoded {sel_hex} as {outcome.descriptor.signature}")
                return DecodeResult(outcome.descriptor, outcome.values, SOURCE_DIRECTORY, sel_hex, tried)
            logger.debug(f"Skipping candidate {text!r} for {sel_hex}: {outcome.status}")

        if can_fallback:
            try:
                return self._decode_verified(calldata, selector, contract_address, key, chain_id, tried, cancel_event)
            except TxDecodeError as exc:
                exc.details.setdefault("selector", sel_hex)
                exc.details.setdefault("candidates_tried", tried)
                if directory_error is not None:
                    exc.details.setdefault("directory_error", directory_error.message)
                raise

        raise AllCandidatesExhausted(sel_hex, tried, stage="trial_decode" if candidates else "directory")

    def _decode_verified(
        self,
        calldata: bytes,
        selector: bytes,
        contract_address: str,
        api_key: Optional[str],
        chain_id: Optional[int],
        tried: int,
        cancel_event: Optional[threading.Event],
    ) -> DecodeResult:
        sel_hex = selector_hex(selector)
        _check_cancelled(cancel_event, sel_hex, "verified_abi", candidates_tried=tried)
        descriptor = self.verified_abi.fetch_function(
            contract_address, selector, api_key=api_key, chain_id=chain_id or self.chain_id
        )
        _check_cancelled(cancel_event, sel_hex, "verified_abi", candidates_tried=tried)

        try:
            values = decode_parameters(descriptor, calldata)
        except DecodeLayoutError as exc:
            exc.details["stage"] = "verified_abi"
            raise
        logger.info(f"Decoded {sel_hex} as {descriptor.signature} from verified ABI of {contract_address}")
        return DecodeResult(descriptor, values, SOURCE_VERIFIED_ABI, sel_hex, tried)

    def decode_batch(
        self,
        batch: Sequence[Union[DecodeRequest, bytes]],
        max_workers: int = 4,
        api_key: Optional[str] = None,
        chain_id: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[Union[DecodeResult, TxDecodeError]]:
        """
        Decode independent requests concurrently.

        Returns one entry per request, in input order: the :class:`DecodeResult`
        or the :class:`TxDecodeError` that request failed with.
        """
        items = [req if isinstance(req, DecodeRequest) else DecodeRequest(req) for req in batch]

        def run(item: DecodeRequest) -> Union[DecodeResult, TxDecodeError]:
            try:
                return self.decode(
                    item.calldata,
                    contract_address=item.contract_address,
                    api_key=api_key,
                    chain_id=chain_id,
                    cancel_event=cancel_event,
                )
            except TxDecodeError as exc:
                return exc

        with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
            results = list(executor.map(run, items))

        failed = sum(1 for result in results if isinstance(result, TxDecodeError))
        logger.info(f"Decoded {len(results) - failed} of {len(results)} calldata payloads ({failed} failed)")
        return results


def _check_cancelled(
    cancel_event: Optional[threading.Event], selector: str, stage: str, candidates_tried: Optional[int] = None
) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise DecodeCancelled(selector=selector, stage=stage, candidates_tried=candidates_tried)
