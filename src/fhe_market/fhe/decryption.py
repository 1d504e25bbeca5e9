# src/fhe_market/fhe/decryption.py

from __future__ import annotations

"""
Two-phase decryption coordinator.

Phase 1 (reveal): ask the decryption-proof service for candidate cleartexts
of the handles and a proof that they are correct.

Phase 2 (anchor): ABI-encode the cleartexts and hand them, with the proof, to
a caller-supplied submit callback that records them on the ledger. The
coordinator does not know which task or contract method anchors the result.

The cleartext is never trusted until phase 2 succeeds. Phase 2 is a paid
transaction and is never retried here.
"""

import logging
from collections.abc import Iterable

from eth_abi import encode

from ..core.errors import RevealError
from ..core.ports import RevealService, SubmitCallback
from ..tasks.task_models import DecryptionResult, normalize_handle

logger = logging.getLogger(__name__)


def encode_clear_values(handles: list[str], clear_values: dict[str, int]) -> bytes:
    """One uint256 word per handle, in handle order."""
    values = [int(clear_values[h]) for h in handles]
    return encode(["uint256"] * len(values), values)


class DecryptionCoordinator:
    def __init__(self, reveal_service: RevealService) -> None:
        self._reveal = reveal_service
        self._decrypting = False

    @property
    def is_decrypting(self) -> bool:
        return self._decrypting

    async def verify_decryption(
            self,
            handles: Iterable[str],
            context: str,
            submit: SubmitCallback,
    ) -> DecryptionResult:
        wanted = [normalize_handle(h) for h in handles]
        if not wanted:
            raise RevealError("No handles to decrypt")

        self._decrypting = True
        try:
            try:
                reveal = await self._reveal.request_reveal(wanted, context)
            except RevealError:
                raise
            except Exception as e:
                raise RevealError(f"Reveal request failed: {e}") from e

            clear = {normalize_handle(h): int(v) for h, v in reveal.clear_values.items()}
            missing = [h for h in wanted if h not in clear]
            if missing:
                raise RevealError(f"Reveal returned no value for {', '.join(missing)}")

            abi_encoded = encode_clear_values(wanted, clear)
            logger.info("Reveal ok for %d handle(s); anchoring on-chain", len(wanted))

            # Errors from the anchor phase (AlreadyVerified included) propagate as-is.
            receipt = await submit(abi_encoded, reveal.decryption_proof)

            return DecryptionResult(
                clear_values={h: clear[h] for h in wanted},
                abi_encoded_clear_values=abi_encoded,
                decryption_proof=reveal.decryption_proof,
                receipt=receipt,
            )
        finally:
            self._decrypting = False
